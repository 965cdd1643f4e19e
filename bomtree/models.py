"""
Data model for hierarchy nodes, sheets and BOM line items.

These dataclasses mirror the rows of the three persisted tables
(asset_hierarchy, asset_sheets, bom_items). The ``from_row`` / ``to_record``
helpers are the only place where column names are spelled out.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional


@dataclass
class AssetMetadata:
    """
    Descriptive fields attached to a leaf node created from an uploaded workbook.

    Intermediate folder nodes never carry metadata.
    """
    assembly_name: Optional[str] = None
    assembly_manufacturer: Optional[str] = None
    description: Optional[str] = None
    system: Optional[str] = None
    rebuild_item: Optional[str] = None
    asset_number: Optional[str] = None
    approval_date: Optional[str] = None
    total_cost: Optional[float] = None
    storage_path: Optional[str] = None

    @classmethod
    def from_mapping(cls, values: Dict[str, Any]) -> "AssetMetadata":
        """
        Build metadata from a scanned key/value mapping.

        Empty strings become None. ``total_cost`` is parsed as a float and
        dropped when it is non-numeric or negative.
        """
        kwargs: Dict[str, Any] = {}
        for f in fields(cls):
            value = values.get(f.name)
            if isinstance(value, str):
                value = value.strip() or None
            kwargs[f.name] = value

        kwargs["total_cost"] = _parse_cost(kwargs.get("total_cost"))
        return cls(**kwargs)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> Optional["AssetMetadata"]:
        """Extract metadata columns from an asset_hierarchy row, or None if all are empty."""
        values = {f.name: row.get(f.name) for f in fields(cls)}
        if all(v is None for v in values.values()):
            return None
        if values["total_cost"] is not None:
            values["total_cost"] = float(values["total_cost"])
        return cls(**values)

    def to_record(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))


def _parse_cost(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        cost = float(str(value).replace(",", "").strip())
    except (TypeError, ValueError):
        return None
    if cost != cost or cost < 0:  # NaN or negative
        return None
    return cost


@dataclass
class HierarchyNode:
    """One folder or leaf-asset entry in the path tree."""
    id: Any
    name: str
    parent_id: Optional[Any]
    path: str
    level: int
    metadata: Optional[AssetMetadata] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "HierarchyNode":
        level = row.get("level")
        return cls(
            id=row["id"],
            name=row["name"],
            parent_id=row.get("parent_id"),
            path=row["path"],
            level=level if level is not None else row["path"].count("/"),
            metadata=AssetMetadata.from_row(row),
        )


@dataclass
class TreeNode:
    """A HierarchyNode with its ordered children, as assembled for display."""
    id: Any
    name: str
    parent_id: Optional[Any]
    path: str
    level: int
    metadata: Optional[AssetMetadata] = None
    children: List["TreeNode"] = field(default_factory=list)
    is_folder: bool = False

    @classmethod
    def from_node(cls, node: HierarchyNode) -> "TreeNode":
        return cls(
            id=node.id,
            name=node.name,
            parent_id=node.parent_id,
            path=node.path,
            level=node.level,
            metadata=node.metadata,
        )

    @property
    def is_leaf_asset(self) -> bool:
        """True for an uploaded workbook, with or without header metadata."""
        return self.metadata is not None or not self.is_folder


@dataclass
class Sheet:
    """One tab of an uploaded workbook."""
    id: Any
    asset_id: Any
    sheet_name: str
    sheet_index: int

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Sheet":
        return cls(
            id=row["id"],
            asset_id=row["asset_id"],
            sheet_name=row["sheet_name"],
            sheet_index=row["sheet_index"],
        )


# Stand-in for line items uploaded before sheets were tracked (sheet_id is NULL)
LEGACY_SHEET_NAME = "Legacy Upload"

# Text columns of a line item, in display order
LINE_ITEM_TEXT_FIELDS = [
    "item_no",
    "description",
    "details",
    "manufacturer",
    "part_number",
    "item_code",
    "uom",
]

LINE_ITEM_NUMERIC_FIELDS = ["sys_qty", "cost"]

EDITABLE_LINE_ITEM_FIELDS = LINE_ITEM_TEXT_FIELDS + LINE_ITEM_NUMERIC_FIELDS


@dataclass
class BomLineItem:
    """One BOM row belonging to a sheet."""
    id: Any
    asset_id: Any
    sheet_id: Optional[Any] = None
    item_no: Optional[str] = None
    description: Optional[str] = None
    details: Optional[str] = None
    manufacturer: Optional[str] = None
    part_number: Optional[str] = None
    item_code: Optional[str] = None
    uom: Optional[str] = None
    sys_qty: Optional[float] = None
    cost: Optional[float] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "BomLineItem":
        kwargs = {f.name: row.get(f.name) for f in fields(cls)}
        for name in LINE_ITEM_NUMERIC_FIELDS:
            if kwargs[name] is not None:
                kwargs[name] = float(kwargs[name])
        return cls(**kwargs)


@dataclass
class ParsedSheet:
    """Line items read from one sheet, before persistence."""
    sheet_name: str
    sheet_index: int
    items: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class ParsedWorkbook:
    """Everything the ingestion step needs from a workbook."""
    metadata: AssetMetadata
    sheets: List[ParsedSheet]

    @property
    def item_count(self) -> int:
        return sum(len(s.items) for s in self.sheets)
