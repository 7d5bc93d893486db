"""CLI entry point for bankimport.

Commands:
    bankimport org add NAME [--currency DKK]    Create an organization
    bankimport org list                          List organizations
    bankimport check FILE --org ID               Duplicate check, nothing stored
    bankimport import FILE --org ID [--confirm IDX ...]
                                                 Import, skipping duplicates
    bankimport history --org ID [--limit N]      Synthetic upload batches
    bankimport serve [--host H] [--port P]       Run the HTTP API
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from bankimport.errors import BankImportError

logger = logging.getLogger(__name__)


def _setup_logging() -> None:
    """Configure logging based on BANKIMPORT_LOG_LEVEL env var."""
    level = os.environ.get("BANKIMPORT_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _get_config():
    """Load application config, or None when the config directory is absent."""
    from bankimport.config import Config

    config_dir = os.environ.get("BANKIMPORT_CONFIG_DIR", "config")
    if not Path(config_dir).is_dir():
        return None
    return Config(config_dir=config_dir)


def _get_repo():
    """Create a Repository connected to the configured database, schema applied."""
    from bankimport.database.repository import Repository

    db_path = os.environ.get("BANKIMPORT_DB_PATH", "bankimport.db")
    repo = Repository(db_path=db_path)
    repo.apply_migrations()
    return repo


def _print_check_row(row) -> None:
    txn = row.transaction
    status = "DUPLICATE" if row.result.is_duplicate else "new"
    detail = ""
    if row.result.is_duplicate:
        detail = f"  [{row.result.reason} -> #{row.result.matched_transaction_id}]"
    print(
        f"  {row.index:>4}  {txn.transaction_date}  {str(txn.amount):>12}"
        f"  {txn.description[:40]:<40}  {status}{detail}"
    )


# ── Command handlers ─────────────────────────────────────


def cmd_org(args: argparse.Namespace) -> int:
    from bankimport.database.models import Organization

    repo = _get_repo()
    try:
        if args.org_command == "add":
            org = repo.insert_organization(
                Organization(name=args.name, default_currency=args.currency.upper())
            )
            print(f"Created organization {org.id}: {org.name} ({org.default_currency})")
            return 0
        if args.org_command == "list":
            orgs = repo.list_organizations()
            if not orgs:
                print("No organizations.")
            for org in orgs:
                print(f"  {org.id:>4}  {org.name}  ({org.default_currency})")
            return 0
        print("Usage: bankimport org {add,list}")
        return 1
    finally:
        repo.close()


def cmd_check(args: argparse.Namespace) -> int:
    """Parse a statement and report duplicates without storing anything."""
    from bankimport.database.dedup import DuplicateChecker
    from bankimport.parsers.detect import detect_parser

    filepath = args.file.resolve()
    if not filepath.exists():
        print(f"Error: File not found: {filepath}")
        return 1

    repo = _get_repo()
    try:
        parser = detect_parser(filepath, _get_config())
        rows = parser.parse(filepath)
        if not rows:
            print(f"No transactions found in {filepath.name}")
            return 1
        result = DuplicateChecker(repo).check_batch(rows, args.org)
        for row in result.results:
            _print_check_row(row)
        print(
            f"\n{filepath.name}: {result.duplicates} of {result.total} look like"
            f" duplicates ({result.unique} new)"
        )
        return 0
    except (BankImportError, ValueError) as e:
        print(f"Error: {e}")
        return 1
    finally:
        repo.close()


def cmd_import(args: argparse.Namespace) -> int:
    """Import a statement file, skipping duplicates unless confirmed."""
    from bankimport.importer import ImportOrchestrator

    filepath = args.file.resolve()
    if not filepath.exists():
        print(f"Error: File not found: {filepath}")
        return 1

    repo = _get_repo()
    try:
        result = ImportOrchestrator(repo, _get_config()).import_file(
            args.org, filepath, confirmed=args.confirm,
        )
        print(
            f"{filepath.name}: inserted={result.inserted}"
            f" skipped={result.skipped} total={result.total}"
        )
        for line in result.skipped_duplicates:
            print(f"  skipped: {line}")
        return 0
    except (BankImportError, ValueError) as e:
        print(f"Error: {e}")
        return 1
    finally:
        repo.close()


def cmd_history(args: argparse.Namespace) -> int:
    from bankimport.history import import_history

    config = _get_config()
    limit = args.limit or (config.history_limit if config else 20)
    repo = _get_repo()
    try:
        batches = import_history(repo, args.org, limit=limit)
        if not batches:
            print("No imports yet.")
        for b in batches:
            print(
                f"  {b.filename}: {b.transaction_count} txns,"
                f" +{b.total_credits:.2f} / -{b.total_debits:.2f} {b.currency},"
                f" {b.date_range_start}..{b.date_range_end}"
            )
        return 0
    except BankImportError as e:
        print(f"Error: {e}")
        return 1
    finally:
        repo.close()


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from bankimport.api.app import create_app

    logger.info("Serving bankimport API on %s:%d", args.host, args.port)
    uvicorn.run(create_app(), host=args.host, port=args.port)
    return 0


_COMMANDS = {
    "org": cmd_org,
    "check": cmd_check,
    "import": cmd_import,
    "history": cmd_history,
    "serve": cmd_serve,
}


def main(argv: list[str] | None = None):
    _setup_logging()

    parser = argparse.ArgumentParser(
        prog="bankimport",
        description="Bank statement import with duplicate detection",
    )
    subparsers = parser.add_subparsers(dest="command")

    # org
    org_p = subparsers.add_parser("org", help="Manage organizations")
    org_sub = org_p.add_subparsers(dest="org_command")
    org_add_p = org_sub.add_parser("add", help="Create an organization")
    org_add_p.add_argument("name", help="Organization name")
    org_add_p.add_argument("--currency", default="DKK", help="Default currency (default: DKK)")
    org_sub.add_parser("list", help="List organizations")

    # check
    check_p = subparsers.add_parser("check", help="Report duplicates in a statement file")
    check_p.add_argument("file", type=Path, help="Statement file (CSV, XLSX, OFX)")
    check_p.add_argument("--org", required=True, help="Organization ID")

    # import
    import_p = subparsers.add_parser("import", help="Import a statement file")
    import_p.add_argument("file", type=Path, help="Statement file (CSV, XLSX, OFX)")
    import_p.add_argument("--org", required=True, help="Organization ID")
    import_p.add_argument(
        "--confirm", type=int, nargs="*", default=[], metavar="IDX",
        help="Row indices to import even if flagged as duplicates",
    )

    # history
    history_p = subparsers.add_parser("history", help="Show import history")
    history_p.add_argument("--org", required=True, help="Organization ID")
    history_p.add_argument("--limit", type=int, default=None, help="Max batches")

    # serve
    serve_p = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_p.add_argument("--host", default=os.environ.get("BANKIMPORT_HOST", "127.0.0.1"))
    serve_p.add_argument(
        "--port", type=int, default=int(os.environ.get("BANKIMPORT_PORT", "8000"))
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    handler = _COMMANDS.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}")
        sys.exit(1)

    sys.exit(handler(args))


if __name__ == "__main__":
    main()
