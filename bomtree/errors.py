"""Exception types raised by bomtree."""

from typing import List, Tuple


class BomTreeError(Exception):
    """Base class for all bomtree errors."""


class InvalidPath(BomTreeError, ValueError):
    """A file path could not be turned into hierarchy segments."""


class ParseFailure(BomTreeError):
    """A workbook is unreadable or structurally unexpected (e.g. no sheets)."""


class PersistenceFailure(BomTreeError):
    """The record store or blob store rejected a call.

    The driver exception, when there is one, is chained as ``__cause__``.
    """


class NotFound(BomTreeError, LookupError):
    """An operation addressed a node, sheet or line item that does not exist."""


class UploadFailed(BomTreeError):
    """One or more files of an upload batch could not be ingested.

    Raised once per batch. ``failures`` holds ``(path, error)`` pairs for
    the files that were aborted.
    """

    def __init__(self, failures: List[Tuple[str, Exception]]):
        self.failures = failures
        super().__init__(f"upload failed ({len(failures)} file(s))")
