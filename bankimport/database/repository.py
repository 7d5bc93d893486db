"""Repository: organization and bank-transaction storage against SQLite.

All methods take/return dataclass instances from models.py. Column names are
snake_case everywhere; rows are mapped to dataclasses in one place
(``_row_to_*``) so callers never see raw ``sqlite3.Row`` objects.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING

from .models import Organization, StoredTransaction, _now

if TYPE_CHECKING:
    from bankimport.normalize import NormalizedTransaction

MIGRATIONS_DIR = Path(__file__).parent / "migrations"

_TRANSACTION_COLUMNS = (
    "organization_id, transaction_date, value_date, description, amount,"
    " balance, reference, counterparty, account_number, currency,"
    " transaction_type, created_at"
)


class Repository:
    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            if self.db_path != ":memory:":
                self._conn.execute("PRAGMA journal_mode = WAL")
        return self._conn

    def close(self):
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # ── Migrations ──────────────────────────────────────────

    def apply_migrations(self, migrations_dir: Path = MIGRATIONS_DIR):
        """Apply all pending SQL migrations in order.

        Each migration runs in a transaction: if the SQL fails, the
        schema_version row is not inserted, allowing retry on next startup.
        """
        self.conn.execute(
            "CREATE TABLE IF NOT EXISTS schema_version ("
            "  version INTEGER PRIMARY KEY,"
            "  description TEXT,"
            "  applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP"
            ")"
        )
        self.conn.commit()

        row = self.conn.execute(
            "SELECT MAX(version) FROM schema_version"
        ).fetchone()
        current = row[0] or 0

        for sql_file in sorted(migrations_dir.glob("*.sql")):
            version = int(sql_file.name.split("_")[0])
            if version > current:
                try:
                    self.conn.execute("BEGIN")
                    # executescript auto-commits, so we split statements manually
                    for statement in sql_file.read_text().split(";"):
                        statement = statement.strip()
                        if statement:
                            self.conn.execute(statement)
                    self.conn.execute(
                        "INSERT INTO schema_version (version, description) VALUES (?, ?)",
                        (version, sql_file.stem),
                    )
                    self.conn.commit()
                except Exception:
                    self.conn.rollback()
                    raise

    # ── Organizations ───────────────────────────────────────

    def insert_organization(self, org: Organization) -> Organization:
        cur = self.conn.execute(
            "INSERT INTO organizations (name, default_currency, created_at)"
            " VALUES (?, ?, ?)",
            (org.name, org.default_currency, org.created_at),
        )
        self.conn.commit()
        org.id = cur.lastrowid
        return org

    def get_organization(self, organization_id: int) -> Organization | None:
        row = self.conn.execute(
            "SELECT * FROM organizations WHERE id = ?", (organization_id,)
        ).fetchone()
        return self._row_to_organization(row) if row else None

    def list_organizations(self) -> list[Organization]:
        rows = self.conn.execute(
            "SELECT * FROM organizations ORDER BY id"
        ).fetchall()
        return [self._row_to_organization(r) for r in rows]

    # ── Bank transactions ───────────────────────────────────

    def fetch_transactions(self, organization_id: int) -> list[StoredTransaction]:
        """All stored transactions for one organization, newest first.

        This is the single read the duplicate checker and the history view
        issue per request.
        """
        rows = self.conn.execute(
            "SELECT * FROM bank_transactions WHERE organization_id = ?"
            " ORDER BY transaction_date DESC, created_at DESC, id DESC",
            (organization_id,),
        ).fetchall()
        return [self._row_to_transaction(r) for r in rows]

    def insert_transactions(
        self,
        organization_id: int,
        rows: list[NormalizedTransaction],
        created_at: str | None = None,
    ) -> list[StoredTransaction]:
        """Insert normalized rows atomically and return the stored versions.

        Either every row is stored or none is. All rows of one call share the
        same ``created_at`` import timestamp.
        """
        created_at = created_at or _now()
        stored: list[StoredTransaction] = []
        try:
            self.conn.execute("BEGIN")
            for row in rows:
                values = (
                    organization_id,
                    row.transaction_date.isoformat(),
                    row.value_date.isoformat() if row.value_date else None,
                    row.description,
                    float(row.amount),
                    float(row.balance) if row.balance is not None else None,
                    row.reference,
                    row.counterparty,
                    row.account_number,
                    row.currency,
                    row.transaction_type,
                    created_at,
                )
                cur = self.conn.execute(
                    f"INSERT INTO bank_transactions ({_TRANSACTION_COLUMNS})"
                    " VALUES (?,?,?,?,?,?,?,?,?,?,?,?)",
                    values,
                )
                stored.append(StoredTransaction(
                    id=cur.lastrowid,
                    organization_id=organization_id,
                    transaction_date=values[1],
                    value_date=values[2],
                    description=values[3],
                    amount=values[4],
                    balance=values[5],
                    reference=values[6],
                    counterparty=values[7],
                    account_number=values[8],
                    currency=values[9],
                    transaction_type=values[10],
                    created_at=created_at,
                ))
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise
        return stored

    def count_transactions(self, organization_id: int) -> int:
        row = self.conn.execute(
            "SELECT COUNT(*) FROM bank_transactions WHERE organization_id = ?",
            (organization_id,),
        ).fetchone()
        return row[0]

    # ── Row mappers ─────────────────────────────────────────

    @staticmethod
    def _row_to_organization(row: sqlite3.Row) -> Organization:
        return Organization(
            id=row["id"],
            name=row["name"],
            default_currency=row["default_currency"],
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_transaction(row: sqlite3.Row) -> StoredTransaction:
        return StoredTransaction(
            id=row["id"],
            organization_id=row["organization_id"],
            transaction_date=row["transaction_date"],
            value_date=row["value_date"],
            description=row["description"],
            amount=row["amount"],
            balance=row["balance"],
            reference=row["reference"],
            counterparty=row["counterparty"],
            account_number=row["account_number"],
            currency=row["currency"],
            transaction_type=row["transaction_type"],
            created_at=row["created_at"],
        )
