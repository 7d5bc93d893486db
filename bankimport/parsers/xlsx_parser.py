"""XLSX bank statement parser.

Reads the first worksheet with openpyxl and feeds its rows through the same
header mapping as the CSV parser. Date cells come back as datetime objects
and amount cells as numbers; both are rendered to the text forms
parse_date()/parse_amount() accept.
"""

from __future__ import annotations

import zipfile
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

import openpyxl

from .base import ParsedBankTransaction
from .csv_parser import StatementTableParser


def _cell_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float):
        # Plain notation; "1e-05" would not parse as an amount
        return format(Decimal(repr(value)), "f")
    return str(value).strip()


class BankXlsxParser(StatementTableParser):
    """Parse Excel statement exports (.xlsx)."""

    EXTENSIONS = {".xlsx", ".xlsm"}

    def detect(self, file_path: Path) -> bool:
        """XLSX files are zip archives; check extension and magic."""
        if file_path.suffix.lower() not in self.EXTENSIONS:
            return False
        try:
            return zipfile.is_zipfile(file_path)
        except OSError:
            return False

    def parse(self, file_path: Path) -> list[ParsedBankTransaction]:
        wb = openpyxl.load_workbook(file_path, read_only=True, data_only=True)
        try:
            ws = wb.worksheets[0]
            rows = [
                [_cell_text(v) for v in row]
                for row in ws.iter_rows(values_only=True)
            ]
        finally:
            wb.close()
        return self.parse_rows(rows)
