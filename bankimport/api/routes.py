"""FastAPI endpoints for bank statement import.

Routes:
    POST /api/bank-transactions/check-duplicates   classify rows before import
    POST /api/bank-transactions                    import rows (skip duplicates)
    GET  /api/bank-transactions                    stored rows of an organization
    GET  /api/bank-transactions/import-history     synthetic upload batches
    POST /api/bank-transactions/parse              parse an uploaded file (no storage)
    GET  /health

Request bodies are read on the event loop; storage and parsing run in the
threadpool.

Errors are returned as ``{"error": message}``: 400 for invalid input, 404
for an unknown organization, 500 (details logged, not returned) otherwise.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from fastapi import APIRouter, Depends, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from bankimport.api.dependencies import get_config, get_repo
from bankimport.config import DEFAULT_HISTORY_LIMIT, DEFAULT_MAX_UPLOAD_BYTES, Config
from bankimport.database.dedup import DuplicateChecker, validate_organization_id
from bankimport.database.repository import Repository
from bankimport.errors import NotFoundError, ValidationError
from bankimport.history import import_history
from bankimport.importer import ImportOrchestrator
from bankimport.normalize import DEFAULT_CURRENCY
from bankimport.parsers.base import StatementUpload, summarize_upload
from bankimport.parsers.detect import SUPPORTED_EXTENSIONS, detect_parser

router = APIRouter()
logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


async def _json_body(request: Request) -> dict:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError("Request body must be valid JSON") from e
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


@router.post("/api/bank-transactions/check-duplicates")
async def check_duplicates(
    request: Request, repo: Repository = Depends(get_repo)
) -> JSONResponse:
    """Check which transactions are duplicates before importing."""
    try:
        body = await _json_body(request)
        result = await run_in_threadpool(
            DuplicateChecker(repo).check_batch,
            body.get("transactions"),
            body.get("organization_id"),
        )
        return JSONResponse(result.to_dict())
    except ValidationError as e:
        return _error(400, str(e))
    except NotFoundError as e:
        return _error(404, str(e))
    except Exception:
        logger.exception("Error in POST /api/bank-transactions/check-duplicates")
        return _error(500, "Internal server error")


@router.post("/api/bank-transactions")
async def import_transactions(
    request: Request,
    repo: Repository = Depends(get_repo),
    config: Config | None = Depends(get_config),
) -> JSONResponse:
    """Import bank transactions, skipping duplicates not confirmed by the user."""
    try:
        body = await _json_body(request)
        result = await run_in_threadpool(
            ImportOrchestrator(repo, config).import_transactions,
            body.get("organization_id"),
            body.get("transactions"),
            filename=body.get("filename"),
            confirmed=body.get("confirmed"),
        )
        return JSONResponse(result.to_dict(), status_code=201)
    except ValidationError as e:
        return _error(400, str(e))
    except NotFoundError as e:
        return _error(404, str(e))
    except Exception:
        logger.exception("Error in POST /api/bank-transactions")
        return _error(500, "Internal server error")


@router.get("/api/bank-transactions")
def list_transactions(
    organizationId: str | None = None,  # noqa: N803 - query parameter name
    repo: Repository = Depends(get_repo),
) -> JSONResponse:
    """Stored bank transactions for an organization, newest first."""
    try:
        org_id = validate_organization_id(organizationId)
        rows = repo.fetch_transactions(org_id)
        return JSONResponse([r.to_dict() for r in rows])
    except ValidationError as e:
        return _error(400, str(e))
    except Exception:
        logger.exception("Error in GET /api/bank-transactions")
        return _error(500, "Internal server error")


@router.get("/api/bank-transactions/import-history")
def get_import_history(
    organizationId: str | None = None,  # noqa: N803 - query parameter name
    repo: Repository = Depends(get_repo),
    config: Config | None = Depends(get_config),
) -> JSONResponse:
    """Import history grouped into upload batches (day + account + currency)."""
    try:
        limit = config.history_limit if config else DEFAULT_HISTORY_LIMIT
        history = import_history(repo, organizationId, limit=limit)
        return JSONResponse([h.to_dict() for h in history])
    except ValidationError as e:
        return _error(400, str(e))
    except Exception:
        logger.exception("Error in GET /api/bank-transactions/import-history")
        return _error(500, "Internal server error")


@router.post("/api/bank-transactions/parse")
async def parse_statement(
    file: UploadFile,
    config: Config | None = Depends(get_config),
) -> JSONResponse:
    """Parse an uploaded CSV/XLSX/OFX statement and return its rows for review."""
    filename = file.filename or "statement"
    suffix = Path(filename).suffix.lower()
    if suffix not in SUPPORTED_EXTENSIONS:
        logger.warning("Rejected upload with unsupported type: %s", suffix or "(none)")
        return _error(400, "Unsupported file type. Upload a CSV, XLSX or OFX file")

    max_bytes = config.max_upload_bytes if config else DEFAULT_MAX_UPLOAD_BYTES
    data = await file.read()
    if len(data) > max_bytes:
        return _error(400, f"File too large (limit {max_bytes // (1024 * 1024)} MB)")

    try:
        upload = await run_in_threadpool(_parse_upload, filename, suffix, data, config)
        return JSONResponse(upload.to_dict())
    except ValueError as e:
        return _error(400, str(e))
    except Exception:
        logger.exception("Error in POST /api/bank-transactions/parse")
        return _error(500, "Internal server error")


def _parse_upload(
    filename: str, suffix: str, data: bytes, config: Config | None
) -> StatementUpload:
    tmp = tempfile.NamedTemporaryFile(suffix=suffix, delete=False)
    try:
        with tmp:
            tmp.write(data)
        path = Path(tmp.name)
        parser = detect_parser(path, config)
        transactions = parser.parse(path)
        return summarize_upload(
            filename,
            transactions,
            default_currency=config.default_currency if config else DEFAULT_CURRENCY,
            skipped_count=parser.skipped_count,
        )
    finally:
        os.unlink(tmp.name)


@router.get("/health")
def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}
