"""YAML configuration loader for bankimport.

Loads the seed config files from the config/ directory:
  columns.yaml   header aliases for CSV/XLSX statement columns
  settings.yaml  default currency, history limit, upload size limit
"""

from pathlib import Path

import yaml

DEFAULT_CURRENCY = "DKK"
DEFAULT_HISTORY_LIMIT = 20
DEFAULT_MAX_UPLOAD_BYTES = 25 * 1024 * 1024


class Config:
    """Loads and provides access to all YAML configuration files."""

    def __init__(self, config_dir: Path | str = "config"):
        self.config_dir = Path(config_dir)
        if not self.config_dir.is_dir():
            raise FileNotFoundError(f"Config directory not found: {self.config_dir}")

        self._columns: dict | None = None
        self._settings: dict | None = None

    def _load(self, filename: str) -> dict | list:
        path = self.config_dir / filename
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path, encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {path}: {e}") from e
        if data is None:
            raise ValueError(f"Empty config file: {path}")
        return data

    @property
    def column_aliases(self) -> dict[str, list[str]]:
        """Column role -> header aliases, e.g. {"date": ["dato", "date", ...]}."""
        if self._columns is None:
            data = self._load("columns.yaml")
            columns = data.get("columns", data) if isinstance(data, dict) else None
            if not isinstance(columns, dict):
                raise ValueError("columns.yaml must map column roles to alias lists")
            self._columns = {
                role: [str(a) for a in aliases or []]
                for role, aliases in columns.items()
            }
        return self._columns

    @property
    def settings(self) -> dict:
        if self._settings is None:
            data = self._load("settings.yaml")
            if not isinstance(data, dict):
                raise ValueError("settings.yaml must be a mapping")
            self._settings = data
        return self._settings

    @property
    def default_currency(self) -> str:
        return str(self.settings.get("default_currency", DEFAULT_CURRENCY)).upper()

    @property
    def history_limit(self) -> int:
        return int(self.settings.get("history", {}).get("limit", DEFAULT_HISTORY_LIMIT))

    @property
    def max_upload_bytes(self) -> int:
        return int(self.settings.get("upload", {}).get("max_bytes", DEFAULT_MAX_UPLOAD_BYTES))
