"""
FastAPI Application — Entry Point

Paper Checker API: structure analysis of scientific papers

Architecture:
  - Routes are served at /<route> and, through a prefix alias, at /api/<route>
  - Long-lived collaborators (storage, extractor, analyzer, cleanup
    scheduler) are built once in create_app() and stored on app.state
  - Uniform {"error": message} JSON bodies on every 4xx/5xx

Middleware stack (innermost → outermost):
  1. CORS — configured origins on actual requests; OPTIONS preflights pass
     through to the per-route handlers, which always answer 200
  2. Request ID + logging — X-Request-ID header and one log line per request
  3. /api prefix alias — rewrites /api/<route> to /<route>
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from paper_checker.api.routes import router
from paper_checker.core.config import Settings, get_settings
from paper_checker.core.errors import SubmissionError
from paper_checker.llm.analyzer import LLMStructureAnalyzer
from paper_checker.processing.extractor import TextExtractor
from paper_checker.services.cleanup import CleanupScheduler
from paper_checker.storage.local import LocalArtifactStorage

logger = logging.getLogger(__name__)

API_PREFIX = "/api"

# OpenAPI pages live under /api already and are not aliased
_DOCS_PATHS = ("/api/docs", "/api/redoc", "/api/openapi.json")


class RouteOwnedPreflightCORS(CORSMiddleware):
    """CORS headers on actual requests; OPTIONS goes straight to the router."""

    async def __call__(self, scope, receive, send) -> None:
        if scope["type"] == "http" and scope["method"] == "OPTIONS":
            await self.app(scope, receive, send)
            return
        await super().__call__(scope, receive, send)


# ---------------------------------------------------------------------------
# Application lifespan — startup / shutdown hooks
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: create the storage root, log a config summary.
    Shutdown: cancel pending cleanup timers (they do not survive restarts).
    """
    settings: Settings = app.state.settings
    await app.state.storage.ensure_root()
    logger.info(
        "Starting Paper Checker | env=%s storage_root=%s model=%s openai_key=%s",
        settings.app_env, app.state.storage.root, settings.openai_model,
        "set" if settings.openai_api_key else "missing",
    )

    yield

    logger.info("Shutting down Paper Checker")
    await app.state.cleanup_scheduler.shutdown()


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title="Paper Checker API",
        description=(
            "Upload a scientific paper (DOCX, PDF or text) and receive a structure "
            "analysis with downloadable JSON and Markdown reports."
        ),
        version="1.0.0",
        docs_url="/api/docs" if not settings.is_production else None,
        redoc_url="/api/redoc" if not settings.is_production else None,
        openapi_url="/api/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )

    # ----------------------------------------------------------------
    # Shared collaborators
    # ----------------------------------------------------------------

    storage = LocalArtifactStorage(settings.storage_root)
    app.state.settings          = settings
    app.state.storage           = storage
    app.state.extractor         = TextExtractor()
    app.state.analyzer          = LLMStructureAnalyzer(settings)
    app.state.cleanup_scheduler = CleanupScheduler(
        storage, default_delay=settings.cleanup_delay_seconds,
    )

    # ----------------------------------------------------------------
    # Middleware (applied in reverse order — last added = outermost)
    # ----------------------------------------------------------------

    app.add_middleware(
        RouteOwnedPreflightCORS,
        allow_origins=settings.cors_origins or ["*"],
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    @app.middleware("http")
    async def request_id_and_logging(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        start = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = request_id

        logger.info(
            "HTTP %s %s %d %.1fms | request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            request_id,
        )
        return response

    @app.middleware("http")
    async def api_prefix_alias(request: Request, call_next):
        """Serve every route at both `/route` and `/api/route`."""
        path = request.scope.get("path", "")
        if path.startswith(API_PREFIX + "/") and not path.startswith(_DOCS_PATHS):
            request.scope["path"] = path[len(API_PREFIX):]
        return await call_next(request)

    # ----------------------------------------------------------------
    # Exception handlers — uniform {"error": message} bodies
    # ----------------------------------------------------------------

    @app.exception_handler(SubmissionError)
    async def submission_error_handler(request: Request, exc: SubmissionError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch-all for unhandled exceptions — never expose stack traces."""
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        logger.exception(
            "Unhandled exception | path=%s request_id=%s",
            request.url.path, request_id,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": f"Error analyzing document: {exc}"},
            headers={"X-Request-ID": request_id},
        )

    # ----------------------------------------------------------------
    # Routers
    # ----------------------------------------------------------------

    app.include_router(router)

    return app


# ---------------------------------------------------------------------------
# Application instance (imported by uvicorn)
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.DEBUG if get_settings().debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

app = create_app()


# ---------------------------------------------------------------------------
# Local development entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "paper_checker.main:app",
        host="0.0.0.0",
        port=8000,
        reload=get_settings().app_env == "development",
        log_level="debug" if get_settings().debug else "info",
        access_log=True,
    )
