"""Import history: reconstruct upload batches from stored transactions.

No upload-session id is stored, so a batch is rebuilt from the rows
themselves: rows sharing (import day, account number, currency) form one
batch. Two unrelated uploads for the same account on the same day merge
into one batch; that imprecision is accepted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable

from bankimport.database.dedup import validate_organization_id
from bankimport.database.models import StoredTransaction
from bankimport.database.repository import Repository
from bankimport.normalize import DEFAULT_CURRENCY, round_amount
from bankimport.parsers.base import parse_amount

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 20


@dataclass
class ImportBatchSummary:
    id: int
    filename: str
    upload_date: str
    uploaded_at: str
    account_number: str | None
    currency: str
    transaction_count: int
    total_credits: float
    total_debits: float
    date_range_start: str
    date_range_end: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "filename": self.filename,
            "upload_date": self.upload_date,
            "uploaded_at": self.uploaded_at,
            "account_number": self.account_number,
            "currency": self.currency,
            "transaction_count": self.transaction_count,
            "total_credits": self.total_credits,
            "total_debits": self.total_debits,
            "date_range_start": self.date_range_start,
            "date_range_end": self.date_range_end,
        }


def _import_day(created_at: str) -> str:
    """UTC calendar day of an ISO-8601 import timestamp."""
    try:
        ts = datetime.fromisoformat(created_at)
    except ValueError:
        return created_at[:10]
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc)
    return ts.date().isoformat()


def _display_label(account_number: str | None, upload_date: str) -> str:
    yyyy, mm, dd = upload_date.split("-")
    day = f"{dd}-{mm}-{yyyy}"
    if account_number:
        return f"Bank Statement - {account_number} ({day})"
    return f"Bank Statement Import - {day}"


@dataclass
class _Group:
    count: int = 0
    credits: Decimal = Decimal("0")
    debits: Decimal = Decimal("0")
    first_date: str | None = None
    last_date: str | None = None
    uploaded_at: str = ""

    def add(self, txn: StoredTransaction):
        amount = parse_amount(txn.amount) or Decimal("0")
        self.count += 1
        if amount > 0:
            self.credits += amount
        elif amount < 0:
            self.debits += -amount
        if self.first_date is None or txn.transaction_date < self.first_date:
            self.first_date = txn.transaction_date
        if self.last_date is None or txn.transaction_date > self.last_date:
            self.last_date = txn.transaction_date
        if txn.created_at > self.uploaded_at:
            self.uploaded_at = txn.created_at


def summarize_imports(
    transactions: Iterable[StoredTransaction],
    limit: int = DEFAULT_HISTORY_LIMIT,
    default_currency: str = DEFAULT_CURRENCY,
) -> list[ImportBatchSummary]:
    """Group stored rows into synthetic upload batches, newest import first."""
    groups: dict[tuple[str, str | None, str | None], _Group] = {}
    for txn in transactions:
        key = (_import_day(txn.created_at), txn.account_number, txn.currency)
        groups.setdefault(key, _Group()).add(txn)

    ordered = sorted(groups.items(), key=lambda item: item[1].uploaded_at, reverse=True)
    summaries = []
    for rank, ((day, account, currency), group) in enumerate(ordered[:limit], start=1):
        summaries.append(ImportBatchSummary(
            id=rank,
            filename=_display_label(account, day),
            upload_date=day,
            uploaded_at=group.uploaded_at,
            account_number=account,
            currency=currency or default_currency,
            transaction_count=group.count,
            total_credits=float(round_amount(group.credits)),
            total_debits=float(round_amount(group.debits)),
            date_range_start=group.first_date or "",
            date_range_end=group.last_date or "",
        ))
    return summaries


def import_history(
    repo: Repository,
    organization_id: object,
    limit: int = DEFAULT_HISTORY_LIMIT,
) -> list[ImportBatchSummary]:
    """History for one organization, read with a single query.

    Raises:
        ValidationError: If the organization id is missing or not numeric.
    """
    org_id = validate_organization_id(organization_id)
    org = repo.get_organization(org_id)
    default_currency = org.default_currency if org else DEFAULT_CURRENCY
    summaries = summarize_imports(
        repo.fetch_transactions(org_id), limit=limit,
        default_currency=default_currency,
    )
    logger.debug("Import history for organization %d: %d batch(es)", org_id, len(summaries))
    return summaries
