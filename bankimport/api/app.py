"""Application factory for the bank statement import API."""

from __future__ import annotations

import logging
import os

from fastapi import FastAPI

from bankimport.api.dependencies import get_db_path
from bankimport.api.routes import router
from bankimport.database.repository import Repository


def setup_logging() -> None:
    """Configure logging based on BANKIMPORT_LOG_LEVEL env var."""
    level = os.environ.get("BANKIMPORT_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def migrate_database(db_path: str | None = None) -> None:
    """Create or upgrade the schema before serving requests."""
    repo = Repository(db_path=db_path or get_db_path())
    try:
        repo.apply_migrations()
    finally:
        repo.close()


def create_app(migrate: bool = True) -> FastAPI:
    """Build the FastAPI app. ``migrate=False`` skips the schema upgrade (tests)."""
    app = FastAPI(title="bankimport", description="Bank statement import and duplicate review")
    app.include_router(router)

    if migrate:
        @app.on_event("startup")
        def startup_db() -> None:
            migrate_database()

    return app
