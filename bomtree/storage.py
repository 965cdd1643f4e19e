"""
Blob storage for original workbooks.

Uploaded workbooks are kept byte-for-byte so they can be downloaded again
later. The ingestion step stores them under the asset's hierarchy path.
"""

import logging
from pathlib import Path
from typing import Union

from .errors import InvalidPath, NotFound, PersistenceFailure

logger = logging.getLogger(__name__)


class BlobStore:
    """Abstract blob storage interface."""

    def upload(self, path: str, data: bytes) -> str:
        """
        Store ``data`` at ``path``, replacing any existing blob.

        Returns:
            The storage path to record on the asset
        """
        raise NotImplementedError

    def download(self, path: str) -> bytes:
        """
        Fetch a stored blob.

        Raises:
            NotFound: If nothing is stored at ``path``
        """
        raise NotImplementedError

    def delete(self, path: str) -> None:
        """Remove a stored blob. Deleting a missing blob is not an error."""
        raise NotImplementedError


class LocalBlobStore(BlobStore):
    """Blob store backed by a directory on the local filesystem."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).resolve()

    @classmethod
    def from_settings(cls, settings) -> "LocalBlobStore":
        return cls(settings.blob_dir)

    def _resolve(self, path: str) -> Path:
        target = (self.root / path.lstrip("/")).resolve()
        if target != self.root and self.root not in target.parents:
            raise InvalidPath(f"Storage path escapes blob root: {path!r}")
        return target

    def upload(self, path: str, data: bytes) -> str:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise PersistenceFailure(f"Could not store blob {path}: {e}") from e
        logger.debug(f"Stored {len(data)} bytes at {target}")
        return path

    def download(self, path: str) -> bytes:
        target = self._resolve(path)
        if not target.is_file():
            raise NotFound(f"No blob stored at {path}")
        try:
            return target.read_bytes()
        except OSError as e:
            raise PersistenceFailure(f"Could not read blob {path}: {e}") from e

    def delete(self, path: str) -> None:
        target = self._resolve(path)
        try:
            target.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise PersistenceFailure(f"Could not delete blob {path}: {e}") from e
        logger.debug(f"Deleted {target}")
