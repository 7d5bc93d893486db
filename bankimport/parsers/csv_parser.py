"""Bank statement CSV parser for Danish bank exports.

Handles the formats of Danske Bank, Nordea, Jyske Bank and similar exports:
- delimiter detection (semicolon, tab, comma)
- account-info preamble lines before the header row (first 5 lines searched)
- header-to-role mapping through configurable aliases (Dato/Date,
  Tekst/Beskrivelse/Description, Beløb/Amount or separate Debit/Credit ...)
- Danish number formats (1.234,56) via parse_amount()

Rows without a parseable date are skipped and counted in skipped_count.
A non-empty amount that cannot be parsed is passed through as text so the
normalizer rejects the whole batch instead of importing a wrong amount.
"""

from __future__ import annotations

import csv
import io
import logging
import re
from decimal import Decimal
from pathlib import Path

from .base import BaseParser, ParsedBankTransaction, parse_amount, parse_date

logger = logging.getLogger(__name__)

DEFAULT_COLUMN_ALIASES: dict[str, list[str]] = {
    "date": ["dato", "date", "transaktionsdato", "bogføringsdato",
             "transaction date", "posting date"],
    "value_date": ["valørdato", "value date", "værdidato", "payment date", "record date"],
    "description": ["tekst", "beskrivelse", "description", "text",
                    "transaktionstekst", "note", "notat", "details"],
    "amount": ["beløb", "amount", "beløb i valuta", "beløb i dkk", "kr"],
    "debit": ["debit", "udgift", "udbetaling", "withdrawal", "minus"],
    "credit": ["credit", "indtægt", "indbetaling", "deposit", "plus"],
    "balance": ["saldo", "balance", "disponibelt", "tilgængeligt"],
    "reference": ["reference", "ref", "reference nummer", "reference nr", "reference number"],
    "counterparty": ["modpart", "modparti", "counterparty", "navn", "name",
                     "modtager", "afsender"],
    "account": ["konto", "account", "kontonummer", "account number", "regnr", "kontonr"],
    "currency": ["valuta", "currency", "valutakode"],
}

# Resolution order matters: a column claimed by an earlier role is not
# offered to later ones ("Valørdato" must not also become the date column).
ROLE_ORDER = (
    "date", "value_date", "description", "amount", "debit", "credit",
    "balance", "reference", "counterparty", "account", "currency",
)

HEADER_KEYWORDS = ("date", "dato", "description", "beskrivelse", "tekst",
                   "debit", "credit", "amount", "beløb")

HEADER_SEARCH_LINES = 5

# Aliases shorter than this only match whole headers, never substrings
MIN_SUBSTRING_ALIAS = 4


def normalize_column_name(name: str) -> str:
    name = re.sub(r"[^\w\s]", "", name.strip().lower())
    return re.sub(r"\s+", " ", name).strip()


def map_columns(
    headers: list[str], aliases: dict[str, list[str]] | None = None
) -> dict[str, int]:
    """Map column roles to header indices.

    Exact alias matches win over substring matches; each header is used for
    at most one role. Roles with no matching header are absent from the result.
    """
    aliases = aliases or DEFAULT_COLUMN_ALIASES
    normalized = [normalize_column_name(h) for h in headers]
    mapping: dict[str, int] = {}
    used: set[int] = set()
    for role in ROLE_ORDER:
        role_aliases = [normalize_column_name(a) for a in aliases.get(role, [])]
        index = _find_column(normalized, role_aliases, used)
        if index is not None:
            mapping[role] = index
            used.add(index)
    return mapping


def _find_column(headers: list[str], aliases: list[str], used: set[int]) -> int | None:
    for i, header in enumerate(headers):
        if i not in used and header in aliases:
            return i
    for i, header in enumerate(headers):
        if i in used or not header:
            continue
        for alias in aliases:
            if len(alias) >= MIN_SUBSTRING_ALIAS and alias in header:
                return i
    return None


def detect_delimiter(lines: list[str]) -> str:
    """Semicolon, then tab, then comma. Danish amounts contain commas, so a
    semicolon anywhere near the top decides."""
    head = lines[:HEADER_SEARCH_LINES]
    if any(";" in line for line in head):
        return ";"
    if any("\t" in line for line in head):
        return "\t"
    return ","


def read_text(file_path: Path) -> str:
    """Decode a bank export: UTF-8 (with or without BOM), else Latin-1."""
    data = file_path.read_bytes()
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("latin-1")


class StatementTableParser(BaseParser):
    """Shared row handling for tabular statements (CSV and XLSX).

    Args:
        column_aliases: Column role -> header aliases. Configure in
            config/columns.yaml; defaults to DEFAULT_COLUMN_ALIASES.
    """

    def __init__(self, column_aliases: dict[str, list[str]] | None = None):
        super().__init__()
        self.column_aliases = column_aliases or DEFAULT_COLUMN_ALIASES

    def find_header(self, rows: list[list[str]]) -> int:
        """Index of the header row among the first few non-empty rows."""
        for i, row in enumerate(rows[:HEADER_SEARCH_LINES]):
            names = [normalize_column_name(c) for c in row]
            if any(k in name for name in names for k in HEADER_KEYWORDS):
                return i
        return 0

    def parse_rows(self, rows: list[list[str]]) -> list[ParsedBankTransaction]:
        rows = [r for r in rows if any(c.strip() for c in r)]
        self.skipped_count = 0
        if not rows:
            raise ValueError("Statement file is empty")

        header_index = self.find_header(rows)
        columns = map_columns(rows[header_index], self.column_aliases)
        self._require_columns(columns)

        transactions: list[ParsedBankTransaction] = []
        for row in rows[header_index + 1:]:
            txn = self._parse_row(row, columns)
            if txn is None:
                self.skipped_count += 1
            else:
                transactions.append(txn)
        if self.skipped_count:
            logger.debug("Skipped %d row(s) without a parseable date", self.skipped_count)
        return transactions

    @staticmethod
    def _require_columns(columns: dict[str, int]):
        if "date" not in columns:
            raise ValueError(
                "Could not find date column. Expected columns: Dato, Date, Transaktionsdato"
            )
        if "description" not in columns:
            raise ValueError(
                "Could not find description column. Expected columns: Tekst, Beskrivelse, Description"
            )
        if not {"amount", "debit", "credit"} & columns.keys():
            raise ValueError(
                "Could not find amount column. Expected columns: Beløb, Amount, Debit, Credit"
            )

    def _parse_row(
        self, row: list[str], columns: dict[str, int]
    ) -> ParsedBankTransaction | None:
        def cell(role: str) -> str:
            i = columns.get(role)
            if i is None or i >= len(row):
                return ""
            return (row[i] or "").strip()

        txn_date = parse_date(cell("date"))
        if txn_date is None:
            return None

        warnings: list[str] = []
        amount = self._row_amount(cell("amount"), cell("debit"), cell("credit"))
        if amount == 0:
            warnings.append("Zero amount transaction")
        description = cell("description")
        if not description:
            warnings.append("Missing description")

        value_date = parse_date(cell("value_date"))
        balance = parse_amount(cell("balance")) if cell("balance") else None
        currency = cell("currency").upper() or None

        return ParsedBankTransaction(
            transaction_date=txn_date.isoformat(),
            amount=amount,
            description=description,
            reference=cell("reference") or None,
            account_number=cell("account") or None,
            currency=currency,
            value_date=value_date.isoformat() if value_date else None,
            balance=balance,
            counterparty=cell("counterparty") or None,
            transaction_type=None,
            warnings=warnings,
        )

    @staticmethod
    def _row_amount(amount_str: str, debit_str: str, credit_str: str) -> Decimal | str:
        """Signed amount: separate debit/credit columns win over a single column.

        Debit values become negative and credit values positive, whatever
        sign the bank printed. Returns the raw text when a single amount
        column holds something that is not a number.
        """
        debit = parse_amount(debit_str) if debit_str else None
        if debit:
            return -abs(debit)
        credit = parse_amount(credit_str) if credit_str else None
        if credit:
            return abs(credit)
        if amount_str:
            parsed = parse_amount(amount_str)
            return parsed if parsed is not None else amount_str
        return Decimal("0")


class BankCsvParser(StatementTableParser):
    """Parse delimited-text bank statements (.csv, .txt)."""

    EXTENSIONS = {".csv", ".txt"}

    def detect(self, file_path: Path) -> bool:
        """CSV statements have a recognizable header within the first lines."""
        if file_path.suffix.lower() not in self.EXTENSIONS:
            return False
        try:
            rows = self._read_rows(file_path)
        except (OSError, csv.Error):
            return False
        rows = [r for r in rows if any(c.strip() for c in r)]
        if not rows:
            return False
        columns = map_columns(rows[self.find_header(rows)], self.column_aliases)
        return "date" in columns

    def parse(self, file_path: Path) -> list[ParsedBankTransaction]:
        return self.parse_text(read_text(file_path))

    def parse_text(self, content: str) -> list[ParsedBankTransaction]:
        """Parse CSV content that is already decoded."""
        return self.parse_rows(self._split_rows(content))

    def _read_rows(self, file_path: Path) -> list[list[str]]:
        return self._split_rows(read_text(file_path))

    @staticmethod
    def _split_rows(content: str) -> list[list[str]]:
        lines = [line for line in content.splitlines() if line.strip()]
        if not lines:
            return []
        delimiter = detect_delimiter(lines)
        reader = csv.reader(io.StringIO("\n".join(lines)), delimiter=delimiter)
        return [[c.strip() for c in row] for row in reader]
