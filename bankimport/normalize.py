"""Transaction normalizer: loosely typed statement rows -> comparable records.

A parsed row can carry its amount as a string or number and its date in
whatever format the bank exported. Normalization makes every row comparable:

- amount: Decimal rounded to 2 places, half away from zero
- transaction_date: calendar date, time and timezone dropped
- description: original kept for display, case-folded and
  whitespace-collapsed copy kept for matching
- reference / account_number: untouched, except empty means absent

A row whose amount or date cannot be parsed is a ValidationError. Batches
are all-or-nothing: ``normalize_batch`` reports every bad row and returns
nothing rather than a partial list.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable

from bankimport.errors import ValidationError
from bankimport.parsers.base import ParsedBankTransaction, parse_amount, parse_date

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
DEFAULT_CURRENCY = "DKK"


@dataclass(frozen=True)
class NormalizedTransaction:
    transaction_date: date
    amount: Decimal
    description: str
    match_description: str
    reference: str | None = None
    account_number: str | None = None
    currency: str = DEFAULT_CURRENCY
    value_date: date | None = None
    balance: Decimal | None = None
    counterparty: str | None = None
    transaction_type: str | None = None


def round_amount(amount: Decimal) -> Decimal:
    """Round to cents. ROUND_HALF_UP rounds half away from zero for negatives too."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def match_key(description: str | None) -> str:
    """Case-folded description with whitespace runs collapsed."""
    if not description:
        return ""
    return re.sub(r"\s+", " ", description).strip().casefold()


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text if text.strip() else None


def _field(raw: Any, name: str) -> Any:
    if isinstance(raw, dict):
        return raw.get(name)
    return getattr(raw, name, None)


def normalize(
    raw: ParsedBankTransaction | dict | Any,
    index: int = 0,
    default_currency: str = DEFAULT_CURRENCY,
) -> NormalizedTransaction:
    """Normalize one row. ``index`` is only used in error messages.

    Accepts a ParsedBankTransaction, a plain dict (HTTP payload) or any
    object with the same attribute names, such as a StoredTransaction.

    Raises:
        ValidationError: If the amount or the transaction date cannot be parsed.
    """
    raw_amount = _field(raw, "amount")
    amount = parse_amount(raw_amount)
    if amount is None:
        raise ValidationError(
            f"Row {index}: invalid amount {raw_amount!r}",
            errors=[f"Row {index}: invalid amount {raw_amount!r}"],
        )

    raw_date = _field(raw, "transaction_date")
    txn_date = parse_date(raw_date)
    if txn_date is None:
        raise ValidationError(
            f"Row {index}: invalid transaction date {raw_date!r}",
            errors=[f"Row {index}: invalid transaction date {raw_date!r}"],
        )

    amount = round_amount(amount)
    description = str(_field(raw, "description") or "").strip()
    balance = parse_amount(_field(raw, "balance"))
    currency = _optional_text(_field(raw, "currency"))
    txn_type = _field(raw, "transaction_type")
    if txn_type not in ("debit", "credit"):
        txn_type = "credit" if amount >= 0 else "debit"

    return NormalizedTransaction(
        transaction_date=txn_date,
        amount=amount,
        description=description,
        match_description=match_key(description),
        reference=_optional_text(_field(raw, "reference")),
        account_number=_optional_text(_field(raw, "account_number")),
        currency=currency.strip().upper() if currency else default_currency,
        value_date=parse_date(_field(raw, "value_date")),
        balance=round_amount(balance) if balance is not None else None,
        counterparty=_optional_text(_field(raw, "counterparty")),
        transaction_type=txn_type,
    )


def normalize_batch(
    rows: Iterable[Any],
    default_currency: str = DEFAULT_CURRENCY,
) -> list[NormalizedTransaction]:
    """Normalize every row or none.

    Raises:
        ValidationError: Listing every row that failed, by index.
    """
    normalized: list[NormalizedTransaction] = []
    errors: list[str] = []
    for index, raw in enumerate(rows):
        try:
            normalized.append(normalize(raw, index, default_currency))
        except ValidationError as e:
            errors.extend(e.errors or [str(e)])
    if errors:
        logger.warning("Rejected batch: %d invalid row(s)", len(errors))
        raise ValidationError(
            f"{len(errors)} invalid transaction row(s): " + "; ".join(errors),
            errors=errors,
        )
    return normalized
