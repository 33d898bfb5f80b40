"""
Paper Checker API Router

    POST    /analyze     upload a paper, run structure analysis, get report links
    GET     /download    fetch a stored artifact by path
    GET     /history     placeholder (history lives client-side)
    DELETE  /history     placeholder
    GET     /test        liveness check used by the frontend
    GET     /debug       configuration presence check, never secret values
    OPTIONS on every route

Every route is also reachable under /api (see the prefix alias in main.py).

The analyze handler reads the multipart body itself, via request.form(),
so the declared Content-Length is rejected before a single body byte is
parsed. Text fields may be as large as the request ceiling allows. All failures come back as {"error": message}.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from functools import partial

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse, Response

from paper_checker.api.dependencies import AppSettings, Orchestrator, Storage
from paper_checker.core.errors import SubmissionError
from paper_checker.schemas.submissions import DOCX_CONTENT_TYPE, MAX_REQUEST_BYTES, ErrorBody

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Paper Checker"])

CORS_ALLOW_HEADERS = "Content-Type, Authorization"

DOWNLOAD_CONTENT_TYPES: dict[str, str] = {
    ".json": "application/json",
    ".md":   "text/markdown",
    ".txt":  "text/plain",
    ".pdf":  "application/pdf",
    ".docx": DOCX_CONTENT_TYPE,
}

_NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma":        "no-cache",
    "Expires":       "0",
}


def utc_timestamp() -> str:
    """ISO-8601 UTC with millisecond precision, e.g. 2024-05-01T12:00:00.000Z"""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _preflight(methods: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={},
        headers={
            "Access-Control-Allow-Origin":  "*",
            "Access-Control-Allow-Methods": methods,
            "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
        },
    )


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorBody(error=message).model_dump(),
    )


# ---------------------------------------------------------------------------
# POST /analyze
# ---------------------------------------------------------------------------

@router.post(
    "/analyze",
    summary="Analyze the structure of a scientific paper",
    description=(
        "Multipart upload with a `file` field (DOCX, PDF or plain text) and an "
        "optional `fileText` field holding text already extracted by the client. "
        "Returns the analysis plus download links for the JSON and Markdown report."
    ),
    responses={
        200: {"description": "Analysis result with submissionId and reportLinks"},
        400: {"model": ErrorBody, "description": "Missing file, document too large or extraction failed"},
        413: {"model": ErrorBody, "description": "Declared request body exceeds 15MB"},
        500: {"model": ErrorBody, "description": "Analysis or persistence failed"},
    },
)
async def analyze_document(request: Request, orchestrator: Orchestrator) -> JSONResponse:
    try:
        read_form = partial(request.form, max_part_size=MAX_REQUEST_BYTES)
        body = await orchestrator.run(request.headers, read_form)
    except SubmissionError as exc:
        return _error(exc.status_code, exc.message)
    return JSONResponse(status_code=status.HTTP_200_OK, content=body)


@router.options("/analyze", include_in_schema=False)
async def analyze_options() -> JSONResponse:
    return _preflight("GET, POST, OPTIONS")


# ---------------------------------------------------------------------------
# GET /download
# ---------------------------------------------------------------------------

@router.get(
    "/download",
    summary="Download a stored analysis artifact",
    responses={
        200: {"description": "Artifact bytes"},
        400: {"model": ErrorBody},
        403: {"model": ErrorBody},
        404: {"model": ErrorBody},
    },
)
async def download_artifact(storage: Storage, path: str | None = None) -> Response:
    if not path:
        return _error(status.HTTP_400_BAD_REQUEST, "File path is required")

    try:
        data = await storage.read_file(path)
    except PermissionError:
        return _error(status.HTTP_403_FORBIDDEN, "Access denied to file path")
    except (FileNotFoundError, IsADirectoryError):
        return _error(status.HTTP_404_NOT_FOUND, "File not found")
    except OSError as exc:
        logger.error("Download failed | path=%s error=%s", path, exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to download file")

    filename = os.path.basename(path)
    ext = os.path.splitext(filename)[1].lower()
    content_type = DOWNLOAD_CONTENT_TYPES.get(ext, "application/octet-stream")

    logger.info("Download | file=%s size=%d", filename, len(data))
    return Response(
        content=data,
        media_type=content_type,
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            **_NO_CACHE_HEADERS,
        },
    )


@router.options("/download", include_in_schema=False)
async def download_options() -> JSONResponse:
    return _preflight("GET, OPTIONS")


# ---------------------------------------------------------------------------
# /history — placeholders, history is kept by the client
# ---------------------------------------------------------------------------

@router.get("/history", summary="Submission history (not stored server-side)")
async def get_history() -> dict:
    return {
        "message": (
            "History API is not yet implemented server-side. "
            "Currently using client-side storage."
        ),
        "timestamp": utc_timestamp(),
    }


@router.delete("/history", summary="Clear submission history (not stored server-side)")
async def clear_history() -> dict:
    return {
        "message": "Clear history API is not yet implemented server-side.",
        "timestamp": utc_timestamp(),
    }


@router.options("/history", include_in_schema=False)
async def history_options() -> JSONResponse:
    return _preflight("GET, DELETE, OPTIONS")


# ---------------------------------------------------------------------------
# /test and /debug
# ---------------------------------------------------------------------------

@router.get("/test", summary="Route liveness check")
async def test_route() -> dict:
    return {
        "status": "success",
        "message": "API route is functioning correctly",
        "timestamp": utc_timestamp(),
    }


@router.options("/test", include_in_schema=False)
async def test_options() -> JSONResponse:
    return _preflight("GET, OPTIONS")


@router.get("/debug", summary="Report which settings are configured")
async def debug_info(settings: AppSettings) -> dict:
    return {
        "status": "ok",
        "environment": settings.app_env,
        "timestamp": utc_timestamp(),
        "envCheck": {
            "hasOpenAI":  bool(settings.openai_api_key),
            "hasModel":   bool(settings.openai_model),
            "hasBaseUrl": bool(settings.next_public_base_url),
        },
    }


@router.options("/debug", include_in_schema=False)
async def debug_options() -> JSONResponse:
    return _preflight("GET, OPTIONS")
