"""Base parser: shared interface, data structures, and utility functions."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any


@dataclass
class ParsedBankTransaction:
    """Intermediate representation output by parsers, before normalization.

    Fields are loosely typed on purpose: rows also arrive as JSON from the
    review screen, where amounts may be strings and dates may be in any of
    the formats banks export.
    """
    transaction_date: Any          # str, date or datetime
    amount: Any                    # str, int, float or Decimal; signed
    description: str = ""
    reference: str | None = None
    account_number: str | None = None
    currency: str | None = None
    value_date: Any = None
    balance: Any = None
    counterparty: str | None = None
    transaction_type: str | None = None  # "debit" or "credit"
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = asdict(self)
        for key in ("amount", "balance"):
            if isinstance(data[key], Decimal):
                data[key] = float(data[key])
        for key in ("transaction_date", "value_date"):
            if isinstance(data[key], date):
                data[key] = data[key].isoformat()
        if not data["warnings"]:
            del data["warnings"]
        return data


@dataclass
class StatementUpload:
    """Summary of one parsed statement file, shown before duplicate review."""
    filename: str
    uploaded_at: str
    transactions: list[ParsedBankTransaction]
    total_debits: float
    total_credits: float
    currency: str
    account_number: str | None
    date_range_start: str | None
    date_range_end: str | None
    skipped_count: int = 0

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "uploaded_at": self.uploaded_at,
            "transactions": [t.to_dict() for t in self.transactions],
            "total_debits": self.total_debits,
            "total_credits": self.total_credits,
            "currency": self.currency,
            "account_number": self.account_number,
            "date_range": {
                "start": self.date_range_start,
                "end": self.date_range_end,
            },
            "skipped_count": self.skipped_count,
        }


class BaseParser(ABC):
    """Abstract base for all statement parsers.

    Attributes:
        skipped_count: Number of rows skipped during parsing (no parseable
            date, blank lines inside the table). Check this after parse()
            to detect silent data loss.
    """

    def __init__(self):
        self.skipped_count: int = 0

    @abstractmethod
    def parse(self, file_path: Path) -> list[ParsedBankTransaction]:
        """Parse a statement file and return its transactions in file order."""

    @abstractmethod
    def detect(self, file_path: Path) -> bool:
        """Return True if this parser can handle the given file."""


def summarize_upload(
    filename: str,
    transactions: list[ParsedBankTransaction],
    default_currency: str = "DKK",
    skipped_count: int = 0,
) -> StatementUpload:
    """Totals, detected account/currency and covered period of a parsed file."""
    debits = Decimal("0")
    credits = Decimal("0")
    dates: list[str] = []
    currency: str | None = None
    account: str | None = None
    for txn in transactions:
        amount = parse_amount(txn.amount) or Decimal("0")
        if amount < 0:
            debits += -amount
        else:
            credits += amount
        parsed = parse_date(txn.transaction_date)
        if parsed is not None:
            dates.append(parsed.isoformat())
        if currency is None and txn.currency:
            currency = txn.currency
        if account is None and txn.account_number:
            account = txn.account_number
    dates.sort()
    return StatementUpload(
        filename=filename,
        uploaded_at=datetime.now(timezone.utc).isoformat(timespec="seconds"),
        transactions=transactions,
        total_debits=float(debits),
        total_credits=float(credits),
        currency=currency or default_currency,
        account_number=account,
        date_range_start=dates[0] if dates else None,
        date_range_end=dates[-1] if dates else None,
        skipped_count=skipped_count,
    )


# ── Amounts ───────────────────────────────────────────────

_AMOUNT_SUFFIX = re.compile(r"\s*(CR|DR)\s*$", re.IGNORECASE)
_AMOUNT_NUMBER = re.compile(r"^[+-]?\d+(\.\d+)?$")
_CURRENCY_TOKEN = r"(?:kr\.?|dkk|eur|usd|sek|nok|gbp|chf|[$€£])"
_CURRENCY_PREFIX = re.compile(rf"^{_CURRENCY_TOKEN}\s*", re.IGNORECASE)
_CURRENCY_SUFFIX = re.compile(rf"\s*{_CURRENCY_TOKEN}$", re.IGNORECASE)
# "1 234,56": spaces only as thousands separators between 3-digit groups
_SPACE_GROUPED = re.compile(r"^[+-]?\d{1,3}( \d{3})+([.,]\d+)?-?$")


def parse_amount(value: Any) -> Decimal | None:
    """Parse a bank amount into a Decimal, or None if it is not a number.

    Handles Danish formatting (``1.234,56``, ``-50,00``, ``kr. 12,50``),
    international formatting (``1,234.56``), CR/DR suffixes, trailing minus
    signs (``50,00-``) and the unicode minus sign. Currency tokens are only
    stripped at either end; letters or loose spaces between the digits
    (``12abc34``, ``1e3``, ``12 DKK 34``) make the value invalid.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        result = Decimal(repr(value))
        return result if result.is_finite() else None
    if not isinstance(value, str):
        return None

    text = value.replace("−", "-").replace("\xa0", " ").strip()
    text = _AMOUNT_SUFFIX.sub("", text)
    text = _CURRENCY_PREFIX.sub("", text)
    text = _CURRENCY_SUFFIX.sub("", text).strip()
    # Anything but digits, separators and signs left over means "not a number"
    if re.search(r"[^\d,.+\- ]", text):
        return None
    if " " in text:
        if not _SPACE_GROUPED.match(text):
            return None
        text = text.replace(" ", "")
    negative = False
    if text.endswith("-"):
        negative = True
        text = text[:-1]
    if not text or not any(c.isdigit() for c in text):
        return None

    if "," in text and "." in text:
        # Whichever separator comes last is the decimal separator
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif text.count(",") > 1:
        text = text.replace(",", "")
    elif "," in text:
        text = text.replace(",", ".")
    elif text.count(".") > 1:
        text = text.replace(".", "")

    if not _AMOUNT_NUMBER.match(text):
        return None
    try:
        result = Decimal(text)
    except InvalidOperation:
        return None
    return -result if negative else result


# ── Dates ─────────────────────────────────────────────────

_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "maj": 5,
    "jun": 6, "jul": 7, "aug": 8, "sep": 9, "oct": 10, "okt": 10,
    "nov": 11, "dec": 12,
}

_ISO_DATE = re.compile(r"^(\d{4})[-/](\d{1,2})[-/](\d{1,2})")
_DMY_NAMED = re.compile(
    r"^(\d{1,2})\.?[-/. ]\s*([A-Za-z]{3})[A-Za-z]*\.?[-/. ]\s*(\d{2,4})"
)
_DMY_NUMERIC = re.compile(r"^(\d{1,2})[-/.](\d{1,2})[-/.](\d{4})")
_COMPACT = re.compile(r"^(\d{4})(\d{2})(\d{2})")


def _expand_year(year: str) -> int:
    """Two-digit years 00-30 are 20xx, 31-99 are 19xx."""
    if len(year) == 2:
        n = int(year)
        return 2000 + n if n <= 30 else 1900 + n
    return int(year)


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_date(value: Any) -> date | None:
    """Extract a calendar date from the formats bank exports use.

    Handles:
        2024-01-31, 2024-01-31 10:00:00, 2024-01-31T10:00:00+01:00
        31-01-2024, 31/01/2024, 31.01.2024
        28-Apr-17, 28-Apr-2017, 28. okt 2024
        20240131120000.000[-7:MST]   (OFX)

    Time and timezone are dropped. Returns None when nothing matches.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None

    m = _ISO_DATE.match(text)
    if m:
        return _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))

    m = _DMY_NAMED.match(text)
    if m:
        month = _MONTHS.get(m.group(2).lower())
        if month is None:
            return None
        return _safe_date(_expand_year(m.group(3)), month, int(m.group(1)))

    m = _DMY_NUMERIC.match(text)
    if m:
        return _safe_date(int(m.group(3)), int(m.group(2)), int(m.group(1)))

    m = _COMPACT.match(text)
    if m:
        return _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))

    return None
