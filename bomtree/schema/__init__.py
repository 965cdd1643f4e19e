"""Workbook schema: metadata labels, line-item column titles and table names."""

from typing import Dict, List, Any

# Persisted tables
NODES_TABLE = "asset_hierarchy"
SHEETS_TABLE = "asset_sheets"
LINE_ITEMS_TABLE = "bom_items"

# Only the first rows of the first sheet are scanned for metadata labels
METADATA_SCAN_ROWS = 20

# Metadata labels looked for in the header block of the first sheet, in order
METADATA_FIELDS = [
    "Assembly Name",
    "Assembly Manufacturer",
    "Description",
    "System",
    "Rebuild Item",
    "Asset Number",
    "Approval Date",
    "Total Cost",
]

# Column titles of the line-item table, in workbook order
LINE_ITEM_HEADERS = [
    "ITEM NO.",
    "DESCRIPTION",
    "DETAILS",
    "MANUFACTURER",
    "PART NUMBER",
    "ITEM CODE",
    "UOM",
    "SYS QTY",
    "COST",
]

# Line-item field definitions keyed by column title
LINE_ITEM_FIELDS: List[Dict[str, Any]] = [
    {
        "id": "item_no",
        "header": "ITEM NO.",
        "kind": "string",
        "description": "Item number as printed in the BOM. Kept as text so '1.10' and '1.1' stay distinct.",
    },
    {
        "id": "description",
        "header": "DESCRIPTION",
        "kind": "string",
        "description": "Short human-readable name of the component.",
    },
    {
        "id": "details",
        "header": "DETAILS",
        "kind": "string",
        "description": "Free-text specification details (size, rating, material).",
    },
    {
        "id": "manufacturer",
        "header": "MANUFACTURER",
        "kind": "string",
        "description": "Manufacturer of the component.",
    },
    {
        "id": "part_number",
        "header": "PART NUMBER",
        "kind": "string",
        "description": "Manufacturer part number.",
    },
    {
        "id": "item_code",
        "header": "ITEM CODE",
        "kind": "string",
        "description": "Internal stock or catalogue code.",
    },
    {
        "id": "uom",
        "header": "UOM",
        "kind": "string",
        "description": "Unit of measure for the quantity (EA, M, SET).",
    },
    {
        "id": "sys_qty",
        "header": "SYS QTY",
        "kind": "number",
        "description": "Quantity installed in the system. Non-numeric cells are stored as empty.",
    },
    {
        "id": "cost",
        "header": "COST",
        "kind": "number",
        "description": "Unit cost. Non-numeric cells are stored as empty.",
    },
]

# Lookup: normalized column title -> line-item field id
HEADER_TO_FIELD: Dict[str, str] = {
    f["header"].upper(): f["id"] for f in LINE_ITEM_FIELDS
}

NUMERIC_FIELDS = {f["id"] for f in LINE_ITEM_FIELDS if f["kind"] == "number"}


def metadata_key(label: str) -> str:
    """Snake-case a metadata label: 'Assembly Name' -> 'assembly_name'."""
    return "_".join(label.lower().split())


__all__ = [
    "NODES_TABLE",
    "SHEETS_TABLE",
    "LINE_ITEMS_TABLE",
    "METADATA_SCAN_ROWS",
    "METADATA_FIELDS",
    "LINE_ITEM_HEADERS",
    "LINE_ITEM_FIELDS",
    "HEADER_TO_FIELD",
    "NUMERIC_FIELDS",
    "metadata_key",
]
