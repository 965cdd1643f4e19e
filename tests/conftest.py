"""
Pytest configuration and shared fixtures.

MemoryRecordStore stands in for Postgres: it keeps rows in dictionaries,
generates uuid ids, honours transactions by snapshot/restore and cascades
node deletes the way the real foreign keys do.
"""

import copy
import io
import re
import sys
import zipfile
from pathlib import Path
from uuid import uuid4

import openpyxl
import pytest
from openpyxl.chart import BarChart, Reference

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from bomtree.errors import PersistenceFailure
from bomtree.ingest.record_store import RecordStore
from bomtree.schema import LINE_ITEMS_TABLE, NODES_TABLE, SHEETS_TABLE


class MemoryRecordStore(RecordStore):
    """In-memory RecordStore for tests."""

    def __init__(self):
        self.tables = {NODES_TABLE: [], SHEETS_TABLE: [], LINE_ITEMS_TABLE: []}
        self.calls = []
        self.fail_on = set()
        self.commits = 0
        self.rollbacks = 0
        self._snapshot = None

    # -- helpers ---------------------------------------------------------

    def _check(self, operation, table):
        self.calls.append((operation, table))
        if (operation, table) in self.fail_on:
            raise PersistenceFailure(f"simulated {operation} failure on {table}")

    @staticmethod
    def _matches(row, filters):
        return all(row.get(column) == value for column, value in (filters or {}).items())

    def rows(self, table, **filters):
        return [dict(r) for r in self.tables[table] if self._matches(r, filters)]

    # -- RecordStore -----------------------------------------------------

    def select(self, table, filters=None, order_by=None):
        self._check("select", table)
        rows = [dict(r) for r in self.tables[table] if self._matches(r, filters)]
        if order_by:
            columns = [order_by] if isinstance(order_by, str) else list(order_by)
            rows.sort(key=lambda r: [(r.get(c) is None, r.get(c)) for c in columns])
        return rows

    def insert(self, table, records):
        self._check("insert", table)
        single = isinstance(records, dict)
        created = []
        for record in ([records] if single else records):
            row = dict(record)
            row.setdefault("id", str(uuid4()))
            self.tables[table].append(row)
            created.append(dict(row))
        return created[0] if single else created

    def update(self, table, values, filters):
        self._check("update", table)
        if not filters:
            raise ValueError("update() requires filters")
        updated = []
        for row in self.tables[table]:
            if self._matches(row, filters):
                row.update(values)
                updated.append(dict(row))
        return updated

    def delete(self, table, filters):
        self._check("delete", table)
        if not filters:
            raise ValueError("delete() requires filters")
        doomed = [r for r in self.tables[table] if self._matches(r, filters)]
        ids = {r["id"] for r in doomed}
        self.tables[table] = [r for r in self.tables[table] if r["id"] not in ids]

        if table == NODES_TABLE and ids:
            # Descendants, then everything hanging off the removed nodes
            children = {r["id"] for r in self.tables[NODES_TABLE] if r.get("parent_id") in ids}
            for child_id in children:
                self.delete(NODES_TABLE, {"id": child_id})
            self.tables[SHEETS_TABLE] = [
                r for r in self.tables[SHEETS_TABLE] if r["asset_id"] not in ids
            ]
            self.tables[LINE_ITEMS_TABLE] = [
                r for r in self.tables[LINE_ITEMS_TABLE] if r["asset_id"] not in ids
            ]
        elif table == SHEETS_TABLE and ids:
            self.tables[LINE_ITEMS_TABLE] = [
                r for r in self.tables[LINE_ITEMS_TABLE] if r.get("sheet_id") not in ids
            ]
        return len(doomed)

    def begin_transaction(self):
        if self._snapshot is not None:
            raise RuntimeError("Transaction already in progress")
        self._snapshot = copy.deepcopy(self.tables)

    def commit_transaction(self):
        if self._snapshot is None:
            raise RuntimeError("No transaction in progress")
        self._snapshot = None
        self.commits += 1

    def rollback_transaction(self):
        if self._snapshot is None:
            raise RuntimeError("No transaction in progress")
        self.tables = self._snapshot
        self._snapshot = None
        self.rollbacks += 1

    @property
    def in_transaction(self):
        return self._snapshot is not None


class RollbackFailingRecordStore(MemoryRecordStore):
    """Restores its snapshot, then reports the rollback as failed."""

    def rollback_transaction(self):
        super().rollback_transaction()
        raise PersistenceFailure("connection lost during rollback")


# =============================================================================
# FIXTURES
# =============================================================================

BOM_HEADER = [
    "ITEM NO.", "DESCRIPTION", "DETAILS", "MANUFACTURER",
    "PART NUMBER", "ITEM CODE", "UOM", "SYS QTY", "COST",
]


@pytest.fixture
def db():
    return MemoryRecordStore()


@pytest.fixture
def make_workbook():
    """Factory: build .xlsx bytes from ``[(sheet_name, rows), ...]``."""
    def _make(sheets):
        wb = openpyxl.Workbook()
        wb.remove(wb.active)
        for name, rows in sheets:
            ws = wb.create_sheet(title=name)
            for row in rows:
                ws.append(list(row))
        buffer = io.BytesIO()
        wb.save(buffer)
        return buffer.getvalue()
    return _make


@pytest.fixture
def pump_workbook(make_workbook):
    """A two-sheet BOM: items on the first sheet, a drawing-only second sheet."""
    return make_workbook([
        ("Parts", [
            BOM_HEADER,
            ["1", "Impeller", "316SS", "Acme", "IMP-100", "C-01", "EA", 2, 150.5],
            ["2", "Seal kit", None, "Acme", "SK-7", "C-02", None, "N/A", "1,200"],
        ]),
        ("Drawing", []),
    ])


@pytest.fixture
def bom_header():
    return list(BOM_HEADER)


@pytest.fixture
def rollback_failing_db():
    return RollbackFailingRecordStore()


@pytest.fixture
def chart_workbook(bom_header):
    """Worksheet, chart sheet, worksheet: .xlsx bytes with a chart tab in the middle."""
    wb = openpyxl.Workbook()
    parts = wb.active
    parts.title = "Parts"
    parts.append(bom_header)
    parts.append(["1", "Impeller", None, "Acme", "IMP-100", "C-01", "EA", 2, 150.5])

    chart = BarChart()
    chart.add_data(Reference(parts, min_col=8, min_row=1, max_row=2), titles_from_data=True)
    chart_sheet = wb.create_chartsheet("Chart")
    chart_sheet.add_chart(chart)

    spares = wb.create_sheet("Spares")
    spares.append(bom_header)
    spares.append(["1", "Seal kit", None, "Acme", "SK-7", "C-02", "EA", 1, 80])

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def truncate_sheets():
    """Factory: copy .xlsx bytes with every worksheet part cut in half."""
    def _truncate(data):
        source = zipfile.ZipFile(io.BytesIO(data))
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as target:
            for info in source.infolist():
                content = source.read(info.filename)
                if re.fullmatch(r"xl/worksheets/sheet\d+\.xml", info.filename):
                    content = content[:len(content) // 2]
                target.writestr(info.filename, content)
        return buffer.getvalue()
    return _truncate
