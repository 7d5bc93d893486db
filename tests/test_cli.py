"""Tests for bankimport.cli: argument parsing and command handlers.

Tests call main(argv=[...]) against a temporary SQLite file selected through
BANKIMPORT_DB_PATH, so every command runs end to end without subprocesses.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest

from bankimport.cli import main
from bankimport.database.models import Organization
from bankimport.database.repository import Repository
from tests.conftest import FIXTURE_CONFIG_DIR

STATEMENT = (
    "Dato;Tekst;Beløb;Reference\n"
    "02-01-2024;Netto;-50,00;R1\n"
    "03-01-2024;Løn;25.000,00;R2\n"
)


# ── Helpers ──────────────────────────────────────────────


@pytest.fixture
def env(tmp_path, monkeypatch):
    db_path = tmp_path / "test.db"
    monkeypatch.setenv("BANKIMPORT_DB_PATH", str(db_path))
    monkeypatch.setenv("BANKIMPORT_CONFIG_DIR", str(FIXTURE_CONFIG_DIR))
    return db_path


@pytest.fixture
def org_id(env):
    repo = Repository(str(env))
    repo.apply_migrations()
    org = repo.insert_organization(Organization(name="Hansen ApS"))
    repo.close()
    return org.id


@pytest.fixture
def statement(tmp_path):
    f = tmp_path / "jan.csv"
    f.write_text(STATEMENT, encoding="utf-8")
    return f


def _run(argv) -> int:
    with pytest.raises(SystemExit) as exc:
        main(argv)
    return exc.value.code


# ── Argument parsing ─────────────────────────────────────


class TestCliParsing:
    def test_no_command_prints_help(self, capsys):
        assert _run([]) == 0
        assert "Bank statement import" in capsys.readouterr().out

    def test_help_exits_zero(self, capsys):
        assert _run(["--help"]) == 0

    def test_check_requires_org(self, statement):
        assert _run(["check", str(statement)]) == 2


# ── org ──────────────────────────────────────────────────


class TestOrgCommand:
    def test_add_and_list(self, env, capsys):
        assert _run(["org", "add", "Hansen ApS", "--currency", "eur"]) == 0
        assert "Created organization 1: Hansen ApS (EUR)" in capsys.readouterr().out
        assert _run(["org", "list"]) == 0
        assert "Hansen ApS" in capsys.readouterr().out

    def test_list_empty(self, env, capsys):
        assert _run(["org", "list"]) == 0
        assert "No organizations." in capsys.readouterr().out

    def test_missing_subcommand(self, env):
        assert _run(["org"]) == 1


# ── check / import ───────────────────────────────────────


class TestCheckCommand:
    def test_reports_new_rows(self, org_id, statement, capsys):
        assert _run(["check", str(statement), "--org", str(org_id)]) == 0
        out = capsys.readouterr().out
        assert "0 of 2 look like duplicates (2 new)" in out

    def test_reports_duplicates_after_import(self, org_id, statement, capsys):
        _run(["import", str(statement), "--org", str(org_id)])
        capsys.readouterr()
        assert _run(["check", str(statement), "--org", str(org_id)]) == 0
        out = capsys.readouterr().out
        assert "DUPLICATE" in out
        assert "exact-reference" in out
        assert "2 of 2 look like duplicates" in out

    def test_missing_file(self, org_id, tmp_path, capsys):
        assert _run(["check", str(tmp_path / "nope.csv"), "--org", str(org_id)]) == 1
        assert "File not found" in capsys.readouterr().out

    def test_unknown_org(self, env, statement, capsys):
        assert _run(["check", str(statement), "--org", "99"]) == 1
        assert "Organization 99 not found" in capsys.readouterr().out


class TestImportCommand:
    def test_import_then_reimport(self, org_id, statement, env, capsys):
        assert _run(["import", str(statement), "--org", str(org_id)]) == 0
        assert "inserted=2 skipped=0 total=2" in capsys.readouterr().out
        assert _run(["import", str(statement), "--org", str(org_id)]) == 0
        out = capsys.readouterr().out
        assert "inserted=0 skipped=2 total=2" in out
        assert "skipped: Netto (2024-01-02, -50.00)" in out

        repo = Repository(str(env))
        assert repo.count_transactions(org_id) == 2
        repo.close()

    def test_confirm_forces_duplicate(self, org_id, statement, capsys):
        _run(["import", str(statement), "--org", str(org_id)])
        capsys.readouterr()
        assert _run(["import", str(statement), "--org", str(org_id), "--confirm", "1"]) == 0
        assert "inserted=1 skipped=1" in capsys.readouterr().out

    def test_invalid_org(self, env, statement, capsys):
        assert _run(["import", str(statement), "--org", "abc"]) == 1
        assert "Organization ID must be a valid number" in capsys.readouterr().out

    def test_unsupported_file(self, org_id, tmp_path, capsys):
        f = tmp_path / "x.pdf"
        f.write_bytes(b"%PDF")
        assert _run(["import", str(f), "--org", str(org_id)]) == 1
        assert "No parser found" in capsys.readouterr().out


# ── history / serve ──────────────────────────────────────


class TestHistoryCommand:
    def test_empty(self, org_id, capsys):
        assert _run(["history", "--org", str(org_id)]) == 0
        assert "No imports yet." in capsys.readouterr().out

    def test_after_import(self, org_id, statement, capsys):
        _run(["import", str(statement), "--org", str(org_id)])
        capsys.readouterr()
        assert _run(["history", "--org", str(org_id), "--limit", "5"]) == 0
        out = capsys.readouterr().out
        assert "Bank Statement Import - " in out
        assert "2 txns" in out
        assert "+25000.00 / -50.00 DKK" in out
        assert "2024-01-02..2024-01-03" in out


class TestServeCommand:
    def test_runs_uvicorn(self, env):
        with patch("uvicorn.run") as run:
            assert _run(["serve", "--host", "0.0.0.0", "--port", "9000"]) == 0
        run.assert_called_once()
        assert run.call_args.kwargs == {"host": "0.0.0.0", "port": 9000}
