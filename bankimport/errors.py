"""Error taxonomy shared by the import core, the CLI and the HTTP boundary."""

from __future__ import annotations


class BankImportError(Exception):
    """Base class for errors surfaced to callers."""


class ValidationError(BankImportError):
    """Malformed or missing input: organization id, empty batch, bad row.

    Row-level failures are collected into ``errors`` so the caller can show
    every offending row at once instead of stopping at the first.
    """

    def __init__(self, message: str, errors: list[str] | None = None):
        self.errors = errors or []
        super().__init__(message)


class NotFoundError(BankImportError):
    """Raised when the referenced organization does not exist."""

    def __init__(self, entity: str, entity_id: object):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")
