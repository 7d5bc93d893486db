"""Import orchestration: parse -> duplicate check -> persist accepted rows.

Rows the checker classifies as new are stored. Rows classified as
duplicates are skipped unless the user confirmed them on the review screen
(their index is in ``confirmed``). Within one call, a row that repeats an
earlier accepted row of the same batch by reference or by description is
skipped as well, so importing a file that lists the same line twice stores
it once. Date and amount alone never merge two rows of one file.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable

from bankimport.database.dedup import DuplicateChecker, ExistingIndex, validate_organization_id
from bankimport.database.models import StoredTransaction
from bankimport.database.repository import Repository
from bankimport.errors import ValidationError
from bankimport.normalize import NormalizedTransaction
from bankimport.parsers.detect import detect_parser

if TYPE_CHECKING:
    from bankimport.config import Config

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    """Summary of one import call."""
    total: int
    inserted: int
    skipped: int
    transactions: list[StoredTransaction] = field(default_factory=list)
    skipped_duplicates: list[str] = field(default_factory=list)
    filename: str | None = None

    def to_dict(self) -> dict:
        data = {
            "success": True,
            "inserted": self.inserted,
            "skipped": self.skipped,
            "total": self.total,
            "transactions": [t.to_dict() for t in self.transactions],
        }
        if self.skipped_duplicates:
            data["skippedDuplicates"] = self.skipped_duplicates
        return data


def _describe(txn: NormalizedTransaction) -> str:
    return f"{txn.description or 'Unknown'} ({txn.transaction_date.isoformat()}, {txn.amount})"


def _validate_confirmed(confirmed: Iterable[Any] | None, total: int) -> set[int]:
    indices: set[int] = set()
    for value in confirmed or ():
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"Confirmed index must be an integer: {value!r}")
        if not 0 <= value < total:
            raise ValidationError(f"Confirmed index out of range: {value}")
        indices.add(value)
    return indices


class ImportOrchestrator:
    """Persist the accepted rows of a checked batch.

    Args:
        repo: Transaction repository.
        config: Optional Config, used for parser column aliases in import_file().
    """

    def __init__(self, repo: Repository, config: Config | None = None):
        self.repo = repo
        self.config = config
        self.checker = DuplicateChecker(repo)

    def import_transactions(
        self,
        organization_id: Any,
        candidates: Any,
        filename: str | None = None,
        confirmed: Iterable[int] | None = None,
    ) -> ImportResult:
        """Check and store a batch.

        Raises:
            ValidationError: Invalid organization id, empty batch, invalid
                rows (the whole batch is rejected), or bad confirmed indices.
            NotFoundError: If the organization does not exist.
        """
        check, normalized = self.checker.check_batch_normalized(
            candidates, organization_id
        )
        org_id = validate_organization_id(organization_id)
        confirmed_idx = _validate_confirmed(confirmed, check.total)

        accepted: list[NormalizedTransaction] = []
        skipped: list[str] = []
        in_batch = ExistingIndex()
        for row, txn in zip(check.results, normalized):
            forced = row.index in confirmed_idx
            repeated = in_batch.match(txn, date_amount=False).is_duplicate
            if not forced and (row.result.is_duplicate or repeated):
                skipped.append(_describe(txn))
                continue
            in_batch.add(txn)
            accepted.append(txn)

        stored = self.repo.insert_transactions(org_id, accepted) if accepted else []

        logger.info(
            "Imported %d bank transaction(s) for organization %d%s"
            " (skipped=%d, total=%d)",
            len(stored), org_id,
            f" from {filename}" if filename else "",
            len(skipped), check.total,
        )
        return ImportResult(
            total=check.total,
            inserted=len(stored),
            skipped=len(skipped),
            transactions=stored,
            skipped_duplicates=skipped,
            filename=filename,
        )

    def import_file(
        self,
        organization_id: Any,
        file_path: Path,
        confirmed: Iterable[int] | None = None,
    ) -> ImportResult:
        """Parse a statement file and import its rows.

        Raises:
            ValueError: If no parser handles the file or its columns are missing.
            ValidationError: If the file contains no transactions.
        """
        parser = detect_parser(file_path, self.config)
        rows = parser.parse(file_path)
        if parser.skipped_count:
            logger.warning(
                "Parser skipped %d row(s) in %s", parser.skipped_count, file_path.name
            )
        if not rows:
            raise ValidationError(f"No transactions found in {file_path.name}")
        return self.import_transactions(
            organization_id, rows, filename=file_path.name, confirmed=confirmed
        )
