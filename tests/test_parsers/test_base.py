"""Tests for the shared parser helpers: amounts, dates and upload summaries."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from bankimport.parsers.base import (
    ParsedBankTransaction,
    parse_amount,
    parse_date,
    summarize_upload,
)


class TestParseAmount:
    @pytest.mark.parametrize("raw,expected", [
        ("1.234,56", "1234.56"),
        ("-50,00", "-50.00"),
        ("1,234.56", "1234.56"),
        ("1234.56", "1234.56"),
        ("50,00-", "-50.00"),
        ("−75,25", "-75.25"),
        ("kr. 12,50", "12.50"),
        ("12,50 kr.", "12.50"),
        ("100.00 DKK", "100.00"),
        ("1 234,56", "1234.56"),
        ("1.234.567", "1234567"),
        ("1,234,567", "1234567"),
        ("+20", "20"),
        ("150.00 CR", "150.00"),
    ])
    def test_strings(self, raw, expected):
        assert parse_amount(raw) == Decimal(expected)

    def test_numbers(self):
        assert parse_amount(5000) == Decimal("5000")
        assert parse_amount(-50.1) == Decimal("-50.1")
        assert parse_amount(Decimal("1.5")) == Decimal("1.5")

    @pytest.mark.parametrize("raw", [None, "", "abc", "-", True, [1], float("nan")])
    def test_not_a_number(self, raw):
        assert parse_amount(raw) is None

    @pytest.mark.parametrize("raw", [
        "12abc34", "1e3", "5O.00", "12 DKK 34", "12 34", "1 23,4", "kr 12 kr 5",
        "DKK", "50,00 abc",
    ])
    def test_letters_or_loose_spaces_inside_number(self, raw):
        assert parse_amount(raw) is None


class TestParseDate:
    @pytest.mark.parametrize("raw,expected", [
        ("2024-01-31", date(2024, 1, 31)),
        ("2024/01/31", date(2024, 1, 31)),
        ("2024-01-31 10:00:00", date(2024, 1, 31)),
        ("2024-01-31T23:59:00+02:00", date(2024, 1, 31)),
        ("31-01-2024", date(2024, 1, 31)),
        ("31/01/2024", date(2024, 1, 31)),
        ("31.01.2024", date(2024, 1, 31)),
        ("28-Apr-17", date(2017, 4, 28)),
        ("28-Apr-2017", date(2017, 4, 28)),
        ("28. okt 2024", date(2024, 10, 28)),
        ("1 maj 99", date(1999, 5, 1)),
        ("20240131120000.000[-7:MST]", date(2024, 1, 31)),
    ])
    def test_formats(self, raw, expected):
        assert parse_date(raw) == expected

    def test_date_objects(self):
        assert parse_date(datetime(2024, 1, 1, 12)) == date(2024, 1, 1)
        assert parse_date(date(2024, 1, 1)) == date(2024, 1, 1)

    @pytest.mark.parametrize("raw", [None, "", "Saldo", "2024-13-01", "31-02-2024",
                                     "12-Xyz-2024", 20240101])
    def test_invalid(self, raw):
        assert parse_date(raw) is None


class TestParsedBankTransaction:
    def test_to_dict_serializes_decimals_and_dates(self):
        data = ParsedBankTransaction(
            transaction_date=date(2024, 1, 1), amount=Decimal("-1.50"),
            balance=Decimal("10"),
        ).to_dict()
        assert data["transaction_date"] == "2024-01-01"
        assert data["amount"] == -1.5
        assert data["balance"] == 10.0
        assert "warnings" not in data

    def test_to_dict_keeps_warnings(self):
        data = ParsedBankTransaction("2024-01-01", 0, warnings=["Zero amount transaction"]).to_dict()
        assert data["warnings"] == ["Zero amount transaction"]


class TestSummarizeUpload:
    def test_totals_and_range(self):
        txns = [
            ParsedBankTransaction("2024-01-05", Decimal("-100.50"), account_number="1234"),
            ParsedBankTransaction("2024-01-02", Decimal("200"), currency="EUR"),
            ParsedBankTransaction("2024-01-09", Decimal("-0.50")),
        ]
        upload = summarize_upload("jan.csv", txns, skipped_count=2)
        assert upload.total_debits == 101.0
        assert upload.total_credits == 200.0
        assert upload.currency == "EUR"
        assert upload.account_number == "1234"
        assert upload.date_range_start == "2024-01-02"
        assert upload.date_range_end == "2024-01-09"
        data = upload.to_dict()
        assert data["date_range"] == {"start": "2024-01-02", "end": "2024-01-09"}
        assert data["skipped_count"] == 2
        assert len(data["transactions"]) == 3

    def test_empty_uses_default_currency(self):
        upload = summarize_upload("x.csv", [], default_currency="SEK")
        assert upload.currency == "SEK"
        assert upload.date_range_start is None
