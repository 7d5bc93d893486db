"""Tests for the XLSX statement parser."""

from datetime import datetime
from decimal import Decimal

import openpyxl
import pytest

from bankimport.parsers.xlsx_parser import BankXlsxParser


def _write_workbook(path, rows):
    wb = openpyxl.Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    wb.save(path)
    return path


@pytest.fixture
def statement(tmp_path):
    return _write_workbook(tmp_path / "jyske.xlsx", [
        ["Kontoudtog", None, None, None],
        ["Dato", "Tekst", "Beløb", "Saldo"],
        [datetime(2024, 1, 2), "Netto", -50.25, 949.75],
        ["02-01-2024", "Løn", "25.000,00", "25.949,75"],
        [None, "Saldo ultimo", None, None],
    ])


class TestBankXlsxParser:
    def test_parses_typed_and_text_cells(self, statement):
        parser = BankXlsxParser()
        txns = parser.parse(statement)
        assert len(txns) == 2
        assert txns[0].transaction_date == "2024-01-02"
        assert txns[0].amount == Decimal("-50.25")
        assert txns[0].balance == Decimal("949.75")
        assert txns[1].amount == Decimal("25000.00")

    def test_skips_rows_without_date(self, statement):
        parser = BankXlsxParser()
        parser.parse(statement)
        assert parser.skipped_count == 1

    def test_detect(self, statement, tmp_path):
        parser = BankXlsxParser()
        assert parser.detect(statement) is True
        fake = tmp_path / "fake.xlsx"
        fake.write_text("Dato;Tekst;Beløb\n", encoding="utf-8")
        assert parser.detect(fake) is False

    def test_integer_amounts(self, tmp_path):
        path = _write_workbook(tmp_path / "int.xlsx", [
            ["Date", "Description", "Amount"],
            [datetime(2024, 3, 1), "Deposit", 5000],
        ])
        txns = BankXlsxParser().parse(path)
        assert txns[0].amount == Decimal("5000")

    def test_float_cells_in_exponent_form(self, tmp_path):
        path = _write_workbook(tmp_path / "tiny.xlsx", [
            ["Date", "Description", "Amount"],
            [datetime(2024, 3, 1), "Interest", 0.00001],
            [datetime(2024, 3, 2), "Transfer", 1e16],
        ])
        txns = BankXlsxParser().parse(path)
        assert txns[0].amount == Decimal("0.00001")
        assert txns[1].amount == Decimal("10000000000000000")
