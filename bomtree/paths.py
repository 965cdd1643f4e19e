"""Turn an uploaded file's path into hierarchy segment names."""

import re
from typing import List, Sequence

from .errors import InvalidPath

# Workbook extensions removed from the final segment
_WORKBOOK_SUFFIX = re.compile(r"\.xls[xm]?$", re.IGNORECASE)


def split_asset_path(path: str) -> List[str]:
    """
    Split a file path into ordered, non-empty segment names.

    The path is a folder-upload relative path ("Plant/Unit1/pump.xlsx") or a
    bare filename. The final segment loses a trailing ".xlsx", ".xlsm" or ".xls".

    Raises:
        InvalidPath: If no segment remains.
    """
    if not path or not isinstance(path, str):
        raise InvalidPath(f"Invalid asset path: {path!r}")

    segments = [s.strip() for s in path.replace("\\", "/").split("/")]
    segments = [s for s in segments if s]
    if not segments:
        raise InvalidPath(f"Invalid asset path: {path!r}")

    # A bare ".xlsx" names no asset
    leaf = _WORKBOOK_SUFFIX.sub("", segments[-1]).strip()
    if not leaf:
        raise InvalidPath(f"Invalid asset path: {path!r}")
    segments[-1] = leaf
    return segments


def join_path(segments: Sequence[str]) -> str:
    return "/".join(segments)
