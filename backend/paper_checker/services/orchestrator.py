"""
Submission Orchestration Service

Runs the analyze pipeline for one request:
  1. Check the declared Content-Length against the 15 MiB ceiling (413)
  2. Parse the multipart form (400 if unparseable); require a `file` part (400)
  3. Mint the submission id
  4. Acquire text: client-supplied `fileText`, or save upload + extract (400)
  5. Check the character ceiling (400) — always before the analyzer
  6. Call the structure analyzer once (500 on failure, no retry)
  7. Persist the JSON result and the Markdown report (500 on failure)
  8. Schedule deferred cleanup (fire-and-forget)
  9. Build absolute download links and assemble the response

Invariants enforced here:
  - size checks precede the analyzer call; it is billed
  - exactly one submission id per accepted request, minted after the file check
  - no partial success: a persistence failure after a good analysis fails the request
  - links are only built for artifacts that were written
  - if anything was written for a failed submission, cleanup is still scheduled
"""

from __future__ import annotations

import logging
import secrets
import time
from typing import Any, Awaitable, Callable, Mapping
from urllib.parse import quote

from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException
from starlette.formparsers import MultiPartException

from paper_checker.core.config import Settings
from paper_checker.core.errors import SubmissionError
from paper_checker.llm.analyzer import StructureAnalyzer
from paper_checker.processing.extractor import TextExtractor
from paper_checker.schemas.submissions import (
    MAX_REQUEST_BYTES,
    SUBMISSION_ID_PREFIX,
    AnalyzeErrors,
    BasicDocumentSeed,
    PipelineState,
    ReportLinks,
    Submission,
    SubmissionStatus,
)
from paper_checker.services.cleanup import CleanupScheduler
from paper_checker.services.size_guard import check_document_size, check_payload_size
from paper_checker.services.text_acquirer import TextAcquirer
from paper_checker.storage.local import LocalArtifactStorage

logger = logging.getLogger(__name__)

DOWNLOAD_PATH = "/api/download"

FormLoader = Callable[[], Awaitable[Mapping[str, Any]]]


def mint_submission_id() -> str:
    """sub_<epoch millis><6 random digits> — unique across same-millisecond requests."""
    millis = int(time.time() * 1000)
    return f"{SUBMISSION_ID_PREFIX}{millis}{secrets.randbelow(10**6):06d}"


def resolve_base_url(configured: str, headers: Mapping[str, str]) -> str:
    """Configured base URL wins; otherwise forwarded proto + Host header."""
    if configured:
        return configured.rstrip("/")
    proto = headers.get("x-forwarded-proto") or "http"
    host = headers.get("host") or "localhost"
    return f"{proto}://{host}"


def build_download_url(base_url: str, path: str) -> str:
    return f"{base_url}{DOWNLOAD_PATH}?path={quote(path, safe='')}"


class _PipelineRun:
    """Mutable state of one request's trip through the pipeline."""

    def __init__(self) -> None:
        self.state = PipelineState.RECEIVED
        self.submission_id: str | None = None
        self.started = time.perf_counter()

    def advance(self, state: PipelineState) -> None:
        self.state = state
        logger.debug("Analyze | submission=%s state=%s", self.submission_id or "-", state.value)

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.started) * 1000


class SubmissionOrchestrator:
    """
    Built per request by get_orchestrator(); holds no state between runs.
    All collaborators are injected.
    """

    def __init__(
        self,
        settings:  Settings,
        storage:   LocalArtifactStorage,
        extractor: TextExtractor,
        analyzer:  StructureAnalyzer,
        scheduler: CleanupScheduler,
        id_factory: Callable[[], str] = mint_submission_id,
    ) -> None:
        self._settings   = settings
        self._storage    = storage
        self._analyzer   = analyzer
        self._scheduler  = scheduler
        self._acquirer   = TextAcquirer(storage, extractor)
        self._id_factory = id_factory

    # ------------------------------------------------------------------
    # Public entry point
    # ------------------------------------------------------------------

    async def run(self, headers: Mapping[str, str], read_form: FormLoader) -> dict[str, Any]:
        """
        Full pipeline. Returns the success body; raises SubmissionError
        (already carrying its HTTP status) on every failure.
        """
        run = _PipelineRun()
        try:
            return await self._run(run, headers, read_form)
        except SubmissionError as exc:
            await self._fail(run, exc)
            raise
        except Exception as exc:
            logger.exception("Analyze | unexpected error submission=%s", run.submission_id or "-")
            error = AnalyzeErrors.unknown(str(exc))
            await self._fail(run, error)
            raise error from exc

    # ------------------------------------------------------------------
    # Pipeline steps
    # ------------------------------------------------------------------

    async def _run(
        self,
        run: _PipelineRun,
        headers: Mapping[str, str],
        read_form: FormLoader,
    ) -> dict[str, Any]:
        # ---- Step 1: Declared payload size -----------------------------
        content_length = headers.get("content-length")
        if not check_payload_size(content_length, MAX_REQUEST_BYTES):
            raise AnalyzeErrors.payload_too_large()
        run.advance(PipelineState.SIZE_CHECKED)

        # ---- Step 2: Form parsing + file presence ----------------------
        try:
            form = await read_form()
        except (HTTPException, MultiPartException) as exc:
            detail = getattr(exc, "detail", None) or getattr(exc, "message", None) or str(exc)
            raise AnalyzeErrors.malformed_form(detail) from exc
        upload = form.get("file")
        if not isinstance(upload, UploadFile):
            raise AnalyzeErrors.missing_file()

        file_text = await self._read_file_text(form)

        # ---- Step 3: Mint submission id --------------------------------
        run.submission_id = self._id_factory()
        submission = Submission(
            submission_id=run.submission_id,
            original_filename=upload.filename or "upload",
        )
        logger.info(
            "Analyze start | submission=%s file=%s content_length=%s client_text=%s",
            submission.submission_id, submission.original_filename,
            content_length, file_text is not None,
        )

        # ---- Step 4: Text acquisition ----------------------------------
        acquired = await self._acquirer.acquire_text(upload, submission.submission_id, file_text)
        submission.raw_text = acquired.text
        run.advance(PipelineState.TEXT_ACQUIRED)

        # ---- Step 5: Character ceiling ---------------------------------
        max_chars = self._settings.max_char_count
        if not check_document_size(submission.raw_text, max_chars):
            logger.warning(
                "Document too large | submission=%s chars=%d max=%d",
                submission.submission_id, len(submission.raw_text), max_chars,
            )
            raise AnalyzeErrors.document_too_large(max_chars)
        run.advance(PipelineState.DOCUMENT_SIZE_CHECKED)

        # ---- Step 6: Structure analysis (single call) ------------------
        seed = BasicDocumentSeed.from_text(submission.raw_text)
        try:
            analysis = await self._analyzer.analyze(seed, submission.raw_text)
        except SubmissionError as exc:
            raise AnalyzeErrors.analysis_failed(exc.message) from exc
        except Exception as exc:
            raise AnalyzeErrors.analysis_failed(str(exc)) from exc
        if not isinstance(analysis, dict):
            raise AnalyzeErrors.analysis_failed("AI analysis failed to produce valid results.")
        submission.analysis = analysis
        run.advance(PipelineState.ANALYZED)

        # ---- Step 7: Persist artifacts ---------------------------------
        try:
            results_path = await self._storage.save_results(analysis, submission.submission_id)
            report_path = await self._storage.generate_summary_report(analysis, submission.submission_id)
        except SubmissionError as exc:
            raise AnalyzeErrors.persistence_failed(exc.message) from exc
        submission.status = SubmissionStatus.COMPLETED
        run.advance(PipelineState.PERSISTED)

        # ---- Step 8: Deferred cleanup (not awaited) --------------------
        self._scheduler.schedule_cleanup(submission.submission_id)

        # ---- Step 9: Links + response ----------------------------------
        base_url = resolve_base_url(self._settings.next_public_base_url, headers)
        links = ReportLinks(
            report=build_download_url(base_url, report_path),
            json=build_download_url(base_url, results_path),
        )
        run.advance(PipelineState.LINKS_BUILT)

        body = {
            **analysis,
            "submissionId": submission.submission_id,
            "reportLinks": links.model_dump(by_alias=True),
        }
        run.advance(PipelineState.RESPONDED)
        logger.info(
            "Analyze complete | submission=%s source=%s chars=%d elapsed_ms=%.0f",
            submission.submission_id, acquired.source,
            len(submission.raw_text), run.elapsed_ms,
        )
        return body

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _read_file_text(form: Mapping[str, Any]) -> str | None:
        if "fileText" not in form:
            return None
        value = form.get("fileText")
        if isinstance(value, UploadFile):
            return (await value.read()).decode("utf-8", errors="replace")
        return value if isinstance(value, str) else None

    async def _fail(self, run: _PipelineRun, error: SubmissionError) -> None:
        failed_at = run.state
        run.advance(PipelineState.FAILED)
        logger.error(
            "Analyze failed | submission=%s at=%s status=%d error=%s elapsed_ms=%.0f",
            run.submission_id or "-", failed_at.value, error.status_code,
            error.message, run.elapsed_ms,
        )
        if run.submission_id is None:
            return
        try:
            leftovers = await self._storage.list_artifacts(run.submission_id)
        except (OSError, ValueError) as exc:
            logger.warning("Could not list artifacts | submission=%s error=%s", run.submission_id, exc)
            return
        if leftovers:
            self._scheduler.schedule_cleanup(run.submission_id)
