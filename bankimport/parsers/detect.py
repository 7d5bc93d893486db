"""Parser auto-detection for uploaded statement files."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from .base import BaseParser
from .csv_parser import BankCsvParser
from .ofx_parser import OfxParser
from .xlsx_parser import BankXlsxParser

if TYPE_CHECKING:
    from bankimport.config import Config

SUPPORTED_EXTENSIONS = (
    BankCsvParser.EXTENSIONS | BankXlsxParser.EXTENSIONS | OfxParser.EXTENSIONS
)


def detect_parser(file_path: Path, config: Config | None = None) -> BaseParser:
    """Pick the parser for a statement file by extension, then content.

    Args:
        file_path: Path to the statement file.
        config: Optional Config supplying column aliases for CSV/XLSX.

    Returns:
        An instantiated parser ready to parse the file.

    Raises:
        ValueError: If no parser can handle the file.
    """
    aliases = config.column_aliases if config else None
    suffix = file_path.suffix.lower()

    if suffix in OfxParser.EXTENSIONS:
        ofx = OfxParser()
        if ofx.detect(file_path):
            return ofx

    if suffix in BankXlsxParser.EXTENSIONS:
        xlsx = BankXlsxParser(column_aliases=aliases)
        if xlsx.detect(file_path):
            return xlsx

    if suffix in BankCsvParser.EXTENSIONS:
        # Some banks export OFX with a .txt/.csv name
        ofx = OfxParser()
        if ofx.detect(file_path):
            return ofx
        csv_parser = BankCsvParser(column_aliases=aliases)
        if csv_parser.detect(file_path):
            return csv_parser

    raise ValueError(f"No parser found for file: {file_path.name}")
