"""
Browsing side of the BOM store: the hierarchy tree, per-sheet line-item
tables, field edits, node deletion and download of the original workbook.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .errors import NotFound
from .ingest.record_store import RecordStore, select_one
from .models import (
    EDITABLE_LINE_ITEM_FIELDS,
    LEGACY_SHEET_NAME,
    LINE_ITEM_NUMERIC_FIELDS,
    BomLineItem,
    HierarchyNode,
    Sheet,
    TreeNode,
)
from .parser import parse_number
from .schema import LINE_ITEMS_TABLE, NODES_TABLE, SHEETS_TABLE
from .storage import BlobStore
from .tree.builder import build_forest

logger = logging.getLogger(__name__)


@dataclass
class SheetView:
    """A sheet and its line items, ready for display."""
    sheet: Sheet
    items: List[BomLineItem] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """True for sheets without line items (e.g. a drawing-only tab)."""
        return not self.items

    @property
    def is_legacy(self) -> bool:
        return self.sheet.id is None


def legacy_sheet(asset_id: Any) -> Sheet:
    """The stand-in sheet for line items uploaded before sheets were recorded."""
    return Sheet(id=None, asset_id=asset_id, sheet_name=LEGACY_SHEET_NAME, sheet_index=0)


def coerce_line_item_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate a line-item edit and convert values to their column types.

    Text fields are trimmed, blank becomes None. Numeric fields accept numbers
    or numeric text; blank becomes None.

    Raises:
        ValueError: For an unknown or read-only field, or non-numeric input
            to a numeric field
    """
    values = {}
    for name, value in changes.items():
        if name not in EDITABLE_LINE_ITEM_FIELDS:
            raise ValueError(f"Field '{name}' is not editable")

        if name in LINE_ITEM_NUMERIC_FIELDS:
            if value is None or (isinstance(value, str) and not value.strip()):
                values[name] = None
                continue
            number = parse_number(value)
            if number is None:
                raise ValueError(f"Field '{name}' must be numeric, got {value!r}")
            values[name] = number
        else:
            text = "" if value is None else str(value).strip()
            values[name] = text or None
    return values


class AssetService:
    """Read and edit persisted hierarchy nodes, sheets and line items."""

    def __init__(self, db: RecordStore, blob_store: Optional[BlobStore] = None):
        self.db = db
        self.blob_store = blob_store

    def load_tree(self) -> List[TreeNode]:
        """Fetch every hierarchy node (ordered by path) and assemble the forest."""
        rows = self.db.select(NODES_TABLE, order_by="path")
        return build_forest(rows)

    def get_node(self, node_id: Any) -> HierarchyNode:
        row = select_one(self.db, NODES_TABLE, {"id": node_id})
        if row is None:
            raise NotFound(f"Node {node_id} not found")
        return HierarchyNode.from_row(row)

    def list_sheets(self, asset_id: Any) -> List[SheetView]:
        """
        Sheets of an asset in workbook order, each with its line items.

        Line items are ordered by item number. Items without a sheet (legacy
        uploads), or whose sheet no longer exists, are grouped under a
        synthetic "Legacy Upload" sheet listed first.
        """
        sheets = [
            Sheet.from_row(row)
            for row in self.db.select(SHEETS_TABLE, {"asset_id": asset_id}, order_by="sheet_index")
        ]
        items = [
            BomLineItem.from_row(row)
            for row in self.db.select(LINE_ITEMS_TABLE, {"asset_id": asset_id}, order_by="item_no")
        ]

        views = {sheet.id: SheetView(sheet=sheet) for sheet in sheets}
        legacy = SheetView(sheet=legacy_sheet(asset_id))
        for item in items:
            views.get(item.sheet_id, legacy).items.append(item)

        result = list(views.values())
        if legacy.items:
            result.insert(0, legacy)
        return result

    def update_line_item(self, item_id: Any, changes: Dict[str, Any]) -> BomLineItem:
        """
        Persist a field-by-field edit of one line item.

        Returns:
            The line item as stored after the update

        Raises:
            ValueError: If the edit is invalid (nothing is written)
            NotFound: If the line item no longer exists
            PersistenceFailure: If the store rejects the update
        """
        values = coerce_line_item_changes(changes)
        if not values:
            raise ValueError("No fields to update")

        rows = self.db.update(LINE_ITEMS_TABLE, values, {"id": item_id})
        if not rows:
            raise NotFound(f"Line item {item_id} not found")
        logger.info(f"Line item {item_id} updated: {sorted(values)}")
        return BomLineItem.from_row(rows[0])

    def delete_node(self, node_id: Any) -> None:
        """
        Delete a node. Descendants, sheets and line items go with it through
        the store's cascading foreign keys.
        """
        deleted = self.db.delete(NODES_TABLE, {"id": node_id})
        if not deleted:
            raise NotFound(f"Node {node_id} not found")
        logger.info(f"Node {node_id} deleted")

    def export_original(self, node_id: Any) -> Tuple[str, bytes]:
        """
        Download the workbook an asset was created from.

        Returns:
            (filename, data) with filename "<asset name>.xlsx"

        Raises:
            NotFound: If the node doesn't exist or has no stored workbook
        """
        node = self.get_node(node_id)
        storage_path = node.metadata.storage_path if node.metadata else None
        if not storage_path or self.blob_store is None:
            raise NotFound(f"No stored workbook for node {node_id}")
        return f"{node.name}.xlsx", self.blob_store.download(storage_path)


class LineItemTable:
    """
    Line items of one sheet as currently displayed.

    Edits are not applied optimistically: the local row only changes after
    the store has confirmed the update. A failed edit raises and leaves the
    table as it was.
    """

    def __init__(self, service: AssetService, view: SheetView):
        self.service = service
        self.sheet = view.sheet
        self.items = list(view.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def get(self, item_id: Any) -> BomLineItem:
        for item in self.items:
            if item.id == item_id:
                return item
        raise NotFound(f"Line item {item_id} is not in sheet '{self.sheet.sheet_name}'")

    def save_edit(self, item_id: Any, changes: Dict[str, Any]) -> BomLineItem:
        self.get(item_id)
        updated = self.service.update_line_item(item_id, changes)
        self.items = [updated if item.id == item_id else item for item in self.items]
        return updated
