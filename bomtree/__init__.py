from .parser import WorkbookParser, default_parser, parse_metadata, parse_sheet_rows
from .paths import split_asset_path
from .assets import AssetService, LineItemTable, SheetView
from .tree import build_forest, filter_forest, TreeViewState
from .errors import BomTreeError, InvalidPath, ParseFailure, PersistenceFailure, NotFound, UploadFailed

__all__ = [
    "WorkbookParser",
    "default_parser",
    "parse_metadata",
    "parse_sheet_rows",
    "split_asset_path",
    "AssetService",
    "LineItemTable",
    "SheetView",
    "build_forest",
    "filter_forest",
    "TreeViewState",
    "BomTreeError",
    "InvalidPath",
    "ParseFailure",
    "PersistenceFailure",
    "NotFound",
    "UploadFailed",
]
