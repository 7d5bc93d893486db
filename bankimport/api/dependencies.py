"""FastAPI dependencies for DI (repository, config).

Endpoints receive a Repository per request and the process-wide Config, so
tests can swap either through ``app.dependency_overrides``.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from functools import lru_cache

from bankimport.config import Config
from bankimport.database.repository import Repository

logger = logging.getLogger(__name__)


def get_db_path() -> str:
    return os.environ.get("BANKIMPORT_DB_PATH", "bankimport.db")


@lru_cache(maxsize=1)
def get_config() -> Config | None:
    """Load config from BANKIMPORT_CONFIG_DIR, or None when it is absent.

    Without config the parsers fall back to their built-in column aliases.
    """
    config_dir = os.environ.get("BANKIMPORT_CONFIG_DIR", "config")
    try:
        return Config(config_dir=config_dir)
    except FileNotFoundError as e:
        logger.warning("Config not available, using defaults: %s", e)
        return None


def get_repo() -> Iterator[Repository]:
    """Provide a Repository connected to the configured database."""
    repo = Repository(db_path=get_db_path())
    try:
        yield repo
    finally:
        repo.close()
