import io
from pathlib import Path
from typing import Any, List, Tuple, Union

import openpyxl
from openpyxl.chartsheet import Chartsheet

from ..errors import ParseFailure

WorkbookSource = Union[str, Path, bytes]


class ExcelAdapter:
    """Reads every sheet of an .xlsx workbook as lists of cell values."""

    def can_handle(self, file_path):
        return Path(str(file_path)).suffix.lower() in [".xlsx", ".xlsm"]

    def read(self, source: WorkbookSource) -> List[Tuple[str, List[List[Any]]]]:
        """Return ``(sheet_name, rows)`` pairs for every tab, in the workbook's native order.

        Chart sheets have no cells and come back with no rows, so tab positions
        stay aligned with the workbook. Cached values are read for formula
        cells; formulas are never evaluated.

        Raises:
            ParseFailure: If the package or any sheet in it can't be read.
                openpyxl reads sheets lazily in read-only mode, so a damaged
                sheet only surfaces while its rows are iterated.
        """
        if isinstance(source, (bytes, bytearray)):
            source = io.BytesIO(source)

        try:
            wb = openpyxl.load_workbook(source, data_only=True, read_only=True)
        except Exception as e:
            raise ParseFailure(f"Workbook could not be read: {e}") from e

        sheets = []
        name = None
        try:
            for name in wb.sheetnames:
                ws = wb[name]
                if isinstance(ws, Chartsheet):
                    sheets.append((name, []))
                    continue
                sheets.append((name, [list(row) for row in ws.iter_rows(values_only=True)]))
        except Exception as e:
            raise ParseFailure(f"Sheet '{name}' could not be read: {e}") from e
        finally:
            wb.close()
        return sheets
