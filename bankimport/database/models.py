"""Dataclass models matching the SQLite schema.

Each dataclass corresponds to one table. Fields match column names exactly.
Primary keys are INTEGER rowids assigned by SQLite on insert.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass
class Organization:
    name: str
    id: int | None = None
    default_currency: str = "DKK"
    created_at: str = field(default_factory=_now)


@dataclass(frozen=True)
class StoredTransaction:
    """One previously imported bank statement line. Never updated in place."""
    organization_id: int
    transaction_date: str   # YYYY-MM-DD
    amount: float           # signed: negative=debit, positive=credit
    description: str
    id: int | None = None
    reference: str | None = None
    account_number: str | None = None
    currency: str | None = None
    value_date: str | None = None
    balance: float | None = None
    counterparty: str | None = None
    transaction_type: str | None = None  # "debit" or "credit"
    created_at: str = field(default_factory=_now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "transaction_date": self.transaction_date,
            "value_date": self.value_date,
            "description": self.description,
            "amount": self.amount,
            "balance": self.balance,
            "reference": self.reference,
            "counterparty": self.counterparty,
            "account_number": self.account_number,
            "currency": self.currency,
            "transaction_type": self.transaction_type,
            "created_at": self.created_at,
        }
