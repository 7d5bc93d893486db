"""Tests for parser auto-detection."""

import openpyxl
import pytest

from bankimport.config import Config
from bankimport.parsers.csv_parser import BankCsvParser
from bankimport.parsers.detect import SUPPORTED_EXTENSIONS, detect_parser
from bankimport.parsers.ofx_parser import OfxParser
from bankimport.parsers.xlsx_parser import BankXlsxParser
from tests.conftest import FIXTURE_CONFIG_DIR

CSV_TEXT = "Dato;Tekst;Beløb\n02-01-2024;Netto;-50,00\n"
OFX_TEXT = "OFXHEADER:100\n<OFX>\n<STMTTRN>\n<DTPOSTED>20240102\n<TRNAMT>-1.00\n</OFX>\n"


class TestDetectParser:
    def test_csv(self, tmp_path):
        f = tmp_path / "s.csv"
        f.write_text(CSV_TEXT, encoding="utf-8")
        assert isinstance(detect_parser(f), BankCsvParser)

    def test_txt_is_csv(self, tmp_path):
        f = tmp_path / "s.txt"
        f.write_text(CSV_TEXT, encoding="utf-8")
        assert isinstance(detect_parser(f), BankCsvParser)

    def test_ofx(self, tmp_path):
        f = tmp_path / "s.ofx"
        f.write_text(OFX_TEXT)
        assert isinstance(detect_parser(f), OfxParser)

    def test_ofx_content_with_csv_name(self, tmp_path):
        f = tmp_path / "s.csv"
        f.write_text(OFX_TEXT)
        assert isinstance(detect_parser(f), OfxParser)

    def test_xlsx(self, tmp_path):
        f = tmp_path / "s.xlsx"
        wb = openpyxl.Workbook()
        wb.active.append(["Dato", "Tekst", "Beløb"])
        wb.save(f)
        assert isinstance(detect_parser(f), BankXlsxParser)

    def test_config_aliases_passed(self, tmp_path):
        f = tmp_path / "s.csv"
        f.write_text(CSV_TEXT, encoding="utf-8")
        config = Config(FIXTURE_CONFIG_DIR)
        parser = detect_parser(f, config)
        assert parser.column_aliases == config.column_aliases

    @pytest.mark.parametrize("name,content", [
        ("s.pdf", "%PDF"),
        ("s.csv", "foo,bar\n1,2\n"),
        ("s.ofx", "not ofx at all"),
    ])
    def test_unsupported(self, tmp_path, name, content):
        f = tmp_path / name
        f.write_text(content)
        with pytest.raises(ValueError, match="No parser found"):
            detect_parser(f)

    def test_supported_extensions(self):
        assert {".csv", ".txt", ".xlsx", ".ofx", ".qfx"} <= SUPPORTED_EXTENSIONS
