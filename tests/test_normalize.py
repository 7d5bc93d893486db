"""Tests for bankimport.normalize: row normalization before matching."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from bankimport.database.models import StoredTransaction
from bankimport.errors import ValidationError
from bankimport.normalize import match_key, normalize, normalize_batch, round_amount
from bankimport.parsers.base import ParsedBankTransaction


class TestRoundAmount:
    @pytest.mark.parametrize("raw,expected", [
        ("10.005", "10.01"),
        ("-10.005", "-10.01"),
        ("10.004", "10.00"),
        ("5", "5.00"),
    ])
    def test_half_away_from_zero(self, raw, expected):
        assert round_amount(Decimal(raw)) == Decimal(expected)


class TestMatchKey:
    def test_case_and_whitespace(self):
        assert match_key("  Indbetaling   fra\tKUNDE ") == "indbetaling fra kunde"

    def test_casefold(self):
        assert match_key("STRASSE") == match_key("straße")

    def test_empty(self):
        assert match_key(None) == ""
        assert match_key("") == ""


class TestNormalize:
    def test_parsed_transaction(self):
        txn = normalize(ParsedBankTransaction(
            transaction_date="31-01-2024", amount="-1.234,56",
            description=" Husleje  januar ", reference="REF1",
        ))
        assert txn.transaction_date == date(2024, 1, 31)
        assert txn.amount == Decimal("-1234.56")
        assert txn.description == "Husleje  januar"
        assert txn.match_description == "husleje januar"
        assert txn.reference == "REF1"
        assert txn.transaction_type == "debit"
        assert txn.currency == "DKK"

    def test_dict_input(self):
        txn = normalize({"transaction_date": "2024-01-01", "amount": 5000})
        assert txn.amount == Decimal("5000.00")
        assert txn.transaction_type == "credit"
        assert txn.description == ""

    def test_stored_transaction_input(self):
        stored = StoredTransaction(
            organization_id=1, transaction_date="2024-01-01", amount=-50.0,
            description="Netto", currency="EUR",
        )
        txn = normalize(stored)
        assert txn.amount == Decimal("-50.00")
        assert txn.currency == "EUR"

    def test_datetime_and_timestamp_dropped_to_date(self):
        assert normalize({"transaction_date": datetime(2024, 1, 1, 23, 59),
                          "amount": 1}).transaction_date == date(2024, 1, 1)
        assert normalize({"transaction_date": "2024-01-01T10:00:00+01:00",
                          "amount": 1}).transaction_date == date(2024, 1, 1)

    def test_float_amount_rounded_to_cent(self):
        assert normalize({"transaction_date": "2024-01-01",
                          "amount": 0.1 + 0.2}).amount == Decimal("0.30")

    def test_blank_reference_and_account_absent(self):
        txn = normalize({"transaction_date": "2024-01-01", "amount": 1,
                         "reference": "  ", "account_number": ""})
        assert txn.reference is None
        assert txn.account_number is None

    def test_reference_not_trimmed(self):
        txn = normalize({"transaction_date": "2024-01-01", "amount": 1,
                         "reference": "REF 1 "})
        assert txn.reference == "REF 1 "

    def test_currency_upper_and_default(self):
        assert normalize({"transaction_date": "2024-01-01", "amount": 1,
                          "currency": "eur"}).currency == "EUR"
        assert normalize({"transaction_date": "2024-01-01", "amount": 1},
                         default_currency="SEK").currency == "SEK"

    def test_explicit_transaction_type_kept(self):
        txn = normalize({"transaction_date": "2024-01-01", "amount": 50,
                         "transaction_type": "debit"})
        assert txn.transaction_type == "debit"

    def test_invalid_amount(self):
        with pytest.raises(ValidationError, match="Row 3: invalid amount"):
            normalize({"transaction_date": "2024-01-01", "amount": "abc"}, index=3)

    @pytest.mark.parametrize("amount", ["12abc34", "1e3", "12 DKK 34"])
    def test_amount_with_embedded_letters_rejected(self, amount):
        with pytest.raises(ValidationError, match="invalid amount"):
            normalize({"transaction_date": "2024-01-01", "amount": amount})

    @pytest.mark.parametrize("amount", [None, "", True])
    def test_missing_amount(self, amount):
        with pytest.raises(ValidationError):
            normalize({"transaction_date": "2024-01-01", "amount": amount})

    @pytest.mark.parametrize("raw_date", [None, "", "yesterday", "2024-02-30"])
    def test_invalid_date(self, raw_date):
        with pytest.raises(ValidationError, match="invalid transaction date"):
            normalize({"transaction_date": raw_date, "amount": 1})


class TestNormalizeBatch:
    def test_all_rows(self):
        rows = normalize_batch([
            {"transaction_date": "2024-01-01", "amount": 1},
            {"transaction_date": "2024-01-02", "amount": "2,50"},
        ])
        assert [r.amount for r in rows] == [Decimal("1.00"), Decimal("2.50")]

    def test_collects_every_error(self):
        with pytest.raises(ValidationError) as exc:
            normalize_batch([
                {"transaction_date": "2024-01-01", "amount": "x"},
                {"transaction_date": "2024-01-01", "amount": 1},
                {"transaction_date": "nope", "amount": 1},
            ])
        assert len(exc.value.errors) == 2
        assert exc.value.errors[0].startswith("Row 0:")
        assert exc.value.errors[1].startswith("Row 2:")
