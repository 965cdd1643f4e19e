import datetime
import logging
import math
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .adapters.excel_adapter import ExcelAdapter, WorkbookSource
from .errors import ParseFailure
from .models import AssetMetadata, ParsedSheet, ParsedWorkbook
from .schema import (
    HEADER_TO_FIELD,
    LINE_ITEM_FIELDS,
    METADATA_FIELDS,
    METADATA_SCAN_ROWS,
    NUMERIC_FIELDS,
    metadata_key,
)

logger = logging.getLogger(__name__)


def _cell_text(value: Any) -> Optional[str]:
    """Render a cell value as trimmed text, or None for an empty cell."""
    if value is None:
        return None
    if isinstance(value, datetime.datetime):
        if value.time() == datetime.time(0, 0):
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, datetime.date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    text = str(value).strip()
    return text or None


def parse_number(value: Any) -> Optional[float]:
    """Parse a numeric cell; anything that is not a finite number becomes None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip().replace(",", "")
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _is_blank(row: Sequence[Any]) -> bool:
    return all(_cell_text(v) is None for v in row)


def parse_metadata(
    header_rows: Iterable[Sequence[Any]],
    known_fields: Optional[Iterable[str]] = None
) -> Dict[str, str]:
    """Scan the header block of a sheet for labelled metadata values.

    Looks at no more than the first ``METADATA_SCAN_ROWS`` rows. A row whose
    first cell contains one of ``known_fields`` (case-insensitive) records its
    second cell under the snake-cased field key. When a label contains several
    field names the longest one wins, so "Assembly Description" is read as
    "description" and "Assembly Name" is never mistaken for it.

    Labels that don't contain a known field are skipped; this is a
    label scan, not positional parsing.

    Args:
        header_rows: Rows of cell values, first sheet first row first
        known_fields: Field labels to look for (defaults to METADATA_FIELDS)

    Returns:
        Mapping of field key -> value text ("" when the value cell is empty)
    """
    fields = list(known_fields) if known_fields is not None else list(METADATA_FIELDS)
    # Longest label first so the most specific field wins
    fields.sort(key=len, reverse=True)

    metadata: Dict[str, str] = {}
    for i, row in enumerate(header_rows):
        if i >= METADATA_SCAN_ROWS:
            break
        if not row:
            continue
        label = _cell_text(row[0])
        if not label:
            continue
        label_lower = label.lower()
        for field_label in fields:
            if field_label.lower() in label_lower:
                value = _cell_text(row[1]) if len(row) > 1 else None
                metadata[metadata_key(field_label)] = value or ""
                break
    return metadata


def find_header_row(rows: Sequence[Sequence[Any]]) -> int:
    """Index of the row holding the line-item column titles.

    The first row is the header unless it holds no known title and a later
    row within the metadata scan window holds at least two (a metadata block
    above the table; a single "Description" label there is metadata, not a
    header). Falls back to the first row.
    """
    for i, row in enumerate(rows[:METADATA_SCAN_ROWS]):
        titles = {(_cell_text(v) or "").upper() for v in row}
        known = len(titles & HEADER_TO_FIELD.keys())
        if known >= (1 if i == 0 else 2):
            return i
    return 0


def parse_sheet_rows(
    rows: Sequence[Sequence[Any]],
    detect_header: bool = True
) -> List[Dict[str, Any]]:
    """
    Read a sheet's tabular region into line-item records.

    Column titles are matched trimmed and case-insensitively against
    LINE_ITEM_HEADERS. Every record has every line-item field; columns that
    are missing and cells that are empty give None. SYS QTY and COST are
    parsed as floats and become None when they aren't numeric.

    The column titles are in the first row. With ``detect_header`` a sheet
    whose first row holds no known title is searched for a header further
    down (see find_header_row), so a metadata block above the table is
    skipped; a plain table reads the same either way. Pass False to always
    use the first row.

    Blank rows are skipped. A sheet with no data rows (for instance one that
    only holds a picture) yields an empty list.
    """
    if not rows:
        return []

    header_index = find_header_row(rows) if detect_header else 0
    column_fields: Dict[int, str] = {}
    for col, title in enumerate(rows[header_index]):
        field_id = HEADER_TO_FIELD.get((_cell_text(title) or "").upper())
        # First occurrence wins for duplicated titles
        if field_id and field_id not in column_fields.values():
            column_fields[col] = field_id

    items = []
    for row in rows[header_index + 1:]:
        if _is_blank(row):
            continue
        item: Dict[str, Any] = {f["id"]: None for f in LINE_ITEM_FIELDS}
        for col, field_id in column_fields.items():
            value = row[col] if col < len(row) else None
            if field_id in NUMERIC_FIELDS:
                item[field_id] = parse_number(value)
            else:
                item[field_id] = _cell_text(value)
        items.append(item)
    return items


class WorkbookParser:
    """Parser for BOM workbooks: header metadata plus per-sheet line items."""

    def __init__(
        self,
        metadata_fields: Optional[Iterable[str]] = None,
        detect_header: bool = True
    ):
        """Initialize the workbook parser.

        Args:
            metadata_fields: Metadata labels to scan for (default: METADATA_FIELDS)
            detect_header: Look past a metadata block for the column titles
                when the first row holds none (see parse_sheet_rows)
        """
        self.detect_header = detect_header
        self.adapters = []
        self.metadata_fields = list(metadata_fields) if metadata_fields else list(METADATA_FIELDS)

    def register_adapter(self, adapter):
        """Register a file adapter for parsing.

        Args:
            adapter: Adapter instance with can_handle() and read() methods
        """
        self.adapters.append(adapter)

    def _find_adapter(self, filename: str):
        for a in self.adapters:
            if a.can_handle(filename):
                return a
        raise ParseFailure(f"No adapter found for {filename}")

    def parse_workbook(self, source: WorkbookSource, filename: Optional[str] = None) -> ParsedWorkbook:
        """Parse a workbook into metadata and per-sheet line items.

        Args:
            source: Path to the workbook, or its raw bytes
            filename: Name used to pick an adapter (required for bytes)

        Returns:
            ParsedWorkbook with sheets in native order (sheet_index 0..n-1)

        Raises:
            ParseFailure: If no adapter handles the file, the file can't be
                read, or it has no sheets
        """
        if filename is None:
            if isinstance(source, (bytes, bytearray)):
                raise ParseFailure("A filename is required to parse workbook bytes")
            filename = Path(source).name

        adapter = self._find_adapter(filename)
        raw_sheets = adapter.read(source)
        if not raw_sheets:
            raise ParseFailure(f"Workbook {filename} has no sheets")

        first_rows = raw_sheets[0][1]
        metadata = AssetMetadata.from_mapping(
            parse_metadata(first_rows, self.metadata_fields)
        )

        sheets = []
        for sheet_index, (sheet_name, rows) in enumerate(raw_sheets):
            items = parse_sheet_rows(rows, detect_header=self.detect_header)
            sheets.append(ParsedSheet(sheet_name=sheet_name, sheet_index=sheet_index, items=items))
            logger.debug(f"Parsed sheet {sheet_index} '{sheet_name}' of {filename}: {len(items)} items")

        return ParsedWorkbook(metadata=metadata, sheets=sheets)


def default_parser() -> WorkbookParser:
    """A WorkbookParser with the Excel adapter registered."""
    parser = WorkbookParser()
    parser.register_adapter(ExcelAdapter())
    return parser
