"""Duplicate detection for bank statement imports.

Rules (evaluated in order, first match wins; each rule is tried against the
whole existing set before the next, weaker one):
1. exact-reference    same date + amount (to the cent) + equal non-empty reference
2. exact-description  same date + amount + description equal after case-folding
                      and whitespace collapsing
3. date-amount        same date + amount, only when neither side has a reference

Description text varies between re-exports of the same statement (encoding,
truncation), so rule 2 alone under-detects. Reference numbers are the most
reliable anchor, but many Danish bank exports omit them, hence rule 3.

Rows on different bank accounts never match: when both sides carry an
account number and the numbers differ, the pair is skipped by every rule.
Rule 2 also skips pairs whose references are both present and differ.

Debit/credit sign conventions are not unified: -50.00 and 50.00 are
different amounts here, whatever a "type" column says.

Candidates are compared only against stored rows, never against each other.
Two concurrent imports of overlapping statements can both see a row as new;
this module offers best-effort detection, not an exactly-once guarantee.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Sequence

from bankimport.database.repository import Repository
from bankimport.errors import NotFoundError, ValidationError
from bankimport.normalize import NormalizedTransaction, normalize, normalize_batch
from bankimport.parsers.base import ParsedBankTransaction

logger = logging.getLogger(__name__)

REASON_EXACT_REFERENCE = "exact-reference"
REASON_EXACT_DESCRIPTION = "exact-description"
REASON_DATE_AMOUNT = "date-amount"

MATCH_REASONS = {
    REASON_EXACT_REFERENCE: "Duplicate reference number with matching date and amount",
    REASON_EXACT_DESCRIPTION: "Exact match: date, amount and description",
    REASON_DATE_AMOUNT: "Possible duplicate: date and amount match",
}


@dataclass(frozen=True)
class DuplicateCheckResult:
    """Outcome of the duplicate check for a single candidate."""
    is_duplicate: bool
    matched_transaction_id: int | None = None
    reason: str | None = None  # "exact-reference", "exact-description", "date-amount"

    @property
    def match_reason(self) -> str | None:
        return MATCH_REASONS.get(self.reason) if self.reason else None

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"isDuplicate": self.is_duplicate}
        if self.is_duplicate:
            data["matchedTransactionId"] = self.matched_transaction_id
            data["reason"] = self.reason
            data["matchReason"] = self.match_reason
        return data


@dataclass
class BatchCheckRow:
    index: int
    transaction: Any
    result: DuplicateCheckResult

    def to_dict(self) -> dict:
        txn = self.transaction
        if isinstance(txn, ParsedBankTransaction):
            txn = txn.to_dict()
        return {"index": self.index, "transaction": txn, **self.result.to_dict()}


@dataclass
class BatchCheckResult:
    """Per-row classification plus the aggregate counts shown in the UI."""
    total: int
    duplicates: int
    unique: int
    results: list[BatchCheckRow]

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "duplicates": self.duplicates,
            "unique": self.unique,
            "results": [r.to_dict() for r in self.results],
        }


# ── Matcher ───────────────────────────────────────────────


@dataclass(frozen=True)
class _Existing:
    """A stored row paired with its normalized form."""
    id: int | None
    txn: NormalizedTransaction


def _prepare(existing: Iterable[Any]) -> list[_Existing]:
    prepared = []
    for row in existing:
        norm = row if isinstance(row, NormalizedTransaction) else normalize(row)
        prepared.append(_Existing(id=getattr(row, "id", None), txn=norm))
    return prepared


def _accounts_conflict(a: NormalizedTransaction, b: NormalizedTransaction) -> bool:
    return bool(a.account_number and b.account_number
                and a.account_number != b.account_number)


def _match_prepared(
    candidate: NormalizedTransaction,
    existing: Sequence[_Existing],
    date_amount: bool = True,
) -> DuplicateCheckResult:
    same_day_amount = [
        e for e in existing
        if e.txn.transaction_date == candidate.transaction_date
        and e.txn.amount == candidate.amount
        and not _accounts_conflict(candidate, e.txn)
    ]
    if not same_day_amount:
        return DuplicateCheckResult(is_duplicate=False)

    if candidate.reference:
        for e in same_day_amount:
            if e.txn.reference == candidate.reference:
                return DuplicateCheckResult(True, e.id, REASON_EXACT_REFERENCE)

    for e in same_day_amount:
        if (candidate.reference and e.txn.reference
                and candidate.reference != e.txn.reference):
            continue
        if e.txn.match_description == candidate.match_description:
            return DuplicateCheckResult(True, e.id, REASON_EXACT_DESCRIPTION)

    if date_amount and not candidate.reference:
        for e in same_day_amount:
            if not e.txn.reference:
                return DuplicateCheckResult(True, e.id, REASON_DATE_AMOUNT)

    return DuplicateCheckResult(is_duplicate=False)


def match_transaction(
    candidate: NormalizedTransaction | ParsedBankTransaction | dict,
    existing: Iterable[Any],
) -> DuplicateCheckResult:
    """Classify one candidate against the stored rows of its organization.

    ``existing`` may hold StoredTransaction or NormalizedTransaction rows.
    Pure: no I/O, inputs are not modified, and the classification does not
    depend on the order of ``existing`` (only which row id is reported when
    several rows match the same rule).
    """
    if not isinstance(candidate, NormalizedTransaction):
        candidate = normalize(candidate)
    return _match_prepared(candidate, _prepare(existing))


class ExistingIndex:
    """Stored rows bucketed by (date, amount), the key every rule requires."""

    def __init__(self, existing: Iterable[Any] = ()):
        self._buckets: dict[tuple[date, Decimal], list[_Existing]] = {}
        for e in _prepare(existing):
            self._add(e)

    def _add(self, e: _Existing):
        key = (e.txn.transaction_date, e.txn.amount)
        self._buckets.setdefault(key, []).append(e)

    def add(self, txn: NormalizedTransaction, txn_id: int | None = None):
        self._add(_Existing(id=txn_id, txn=txn))

    def match(
        self, candidate: NormalizedTransaction, date_amount: bool = True
    ) -> DuplicateCheckResult:
        """Match against the indexed rows. ``date_amount=False`` skips the
        date-amount rule, leaving only the reference and description rules."""
        key = (candidate.transaction_date, candidate.amount)
        return _match_prepared(candidate, self._buckets.get(key, ()), date_amount)

    def __len__(self) -> int:
        return sum(len(b) for b in self._buckets.values())


# ── Batch checker ─────────────────────────────────────────


def validate_organization_id(organization_id: Any) -> int:
    """Coerce an organization id from JSON/query input to a positive int.

    Raises:
        ValidationError: If the id is missing, not an integer, or not positive.
    """
    if organization_id is None or organization_id == "":
        raise ValidationError("Organization ID is required")
    if isinstance(organization_id, bool):
        raise ValidationError("Invalid organization ID")
    if isinstance(organization_id, float):
        if not organization_id.is_integer():
            raise ValidationError("Invalid organization ID")
        organization_id = int(organization_id)
    if isinstance(organization_id, str):
        text = organization_id.strip()
        if not text.isdigit():
            raise ValidationError("Organization ID must be a valid number")
        organization_id = int(text)
    if not isinstance(organization_id, int) or organization_id <= 0:
        raise ValidationError("Invalid organization ID")
    return organization_id


def validate_candidates(candidates: Any) -> list:
    if candidates is None or isinstance(candidates, (str, bytes, dict)):
        raise ValidationError("Transactions array is required")
    try:
        rows = list(candidates)
    except TypeError as e:
        raise ValidationError("Transactions array is required") from e
    if not rows:
        raise ValidationError("Transactions array must not be empty")
    return rows


class DuplicateChecker:
    """Check a batch of candidates against one organization's stored rows."""

    def __init__(self, repo: Repository):
        self.repo = repo

    def check_batch(self, candidates: Any, organization_id: Any) -> BatchCheckResult:
        """Classify every candidate; results keep input order.

        Input is validated before any query. The organization's stored rows
        are fetched once and every candidate is matched against that snapshot.

        Raises:
            ValidationError: Missing/invalid organization id, empty or
                non-list candidates, or any row with an unparseable amount/date.
            NotFoundError: If the organization does not exist.
        """
        result, _ = self.check_batch_normalized(candidates, organization_id)
        return result

    def check_batch_normalized(
        self, candidates: Any, organization_id: Any
    ) -> tuple[BatchCheckResult, list[NormalizedTransaction]]:
        """Like check_batch, also returning the normalized candidates."""
        org_id = validate_organization_id(organization_id)
        rows = validate_candidates(candidates)

        org = self.repo.get_organization(org_id)
        if org is None:
            raise NotFoundError("Organization", org_id)

        normalized = normalize_batch(rows, default_currency=org.default_currency)
        index = ExistingIndex(self.repo.fetch_transactions(org_id))

        results = [
            BatchCheckRow(index=i, transaction=raw, result=index.match(norm))
            for i, (raw, norm) in enumerate(zip(rows, normalized))
        ]
        duplicates = sum(1 for r in results if r.result.is_duplicate)
        logger.info(
            "Duplicate check for organization %d: %d of %d look like duplicates"
            " (%d stored rows)",
            org_id, duplicates, len(results), len(index),
        )
        return BatchCheckResult(
            total=len(results),
            duplicates=duplicates,
            unique=len(results) - duplicates,
            results=results,
        ), normalized
