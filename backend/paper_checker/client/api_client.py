"""
Analysis HTTP Client

Submits a document to POST /api/analyze and mirrors the submission into a
ClientSubmissionStore:

    add (status=processing) ──► POST /api/analyze ──► update(status=completed, results)
                                                 └──► update(status=error, results={"error": ...})

With extract_locally=True the text is extracted on the client first and
sent as `fileText`, so the server skips its own extraction. A local
extraction failure falls back to server-side extraction.
"""

from __future__ import annotations

import logging
import mimetypes
import os
import time
from typing import Any

import httpx

from paper_checker.client.store import ClientSubmissionStore
from paper_checker.core.errors import ExtractionError
from paper_checker.processing.extractor import TextExtractor

logger = logging.getLogger(__name__)

ANALYZE_PATH = "/api/analyze"


class AnalysisRequestError(Exception):
    """The analyze endpoint answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class AnalysisClient:
    """
    Usage::

        async with AnalysisClient("http://localhost:8000") as client:
            results = await client.analyze_file("paper.docx", extract_locally=True)
    """

    def __init__(
        self,
        base_url: str,
        store: ClientSubmissionStore | None = None,
        extractor: TextExtractor | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 200.0,
    ) -> None:
        self.store = store or ClientSubmissionStore()
        self._extractor = extractor or TextExtractor()
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def __aenter__(self) -> "AnalysisClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def analyze_file(self, path: str, extract_locally: bool = False) -> dict[str, Any]:
        with open(path, "rb") as fh:
            data = fh.read()
        return await self.analyze_bytes(os.path.basename(path), data, extract_locally=extract_locally)

    async def analyze_bytes(
        self,
        filename: str,
        data: bytes,
        content_type: str | None = None,
        extract_locally: bool = False,
    ) -> dict[str, Any]:
        """
        Run one submission end to end. Returns the analysis body; raises
        AnalysisRequestError (or httpx.HTTPError) after recording the failure.
        """
        content_type = content_type or mimetypes.guess_type(filename)[0] or "application/octet-stream"
        entry = self.store.add({
            "fileName": filename,
            "fileSize": len(data),
            "fileType": content_type,
            "status": "processing",
        })

        try:
            file_text = await self._local_text(filename, content_type, data) if extract_locally else None
            results = await self._post(filename, content_type, data, file_text)
        except (AnalysisRequestError, httpx.HTTPError) as exc:
            message = getattr(exc, "message", None) or str(exc) or "Processing failed"
            self.store.update(entry["id"], {"status": "error", "results": {"error": message}})
            logger.error("Analysis request failed | entry=%s error=%s", entry["id"], message)
            raise

        self.store.update(entry["id"], {"status": "completed", "results": results})
        logger.info(
            "Analysis stored | entry=%s submission=%s",
            entry["id"], results.get("submissionId"),
        )
        return results

    async def _local_text(self, filename: str, content_type: str, data: bytes) -> str | None:
        try:
            text = await self._extractor.extract(filename, content_type, data)
        except ExtractionError as exc:
            logger.warning("Local extraction failed, server will extract | file=%s error=%s", filename, exc.message)
            return None
        logger.debug("Local extraction | file=%s chars=%d", filename, len(text))
        return text

    async def _post(
        self,
        filename: str,
        content_type: str,
        data: bytes,
        file_text: str | None,
    ) -> dict[str, Any]:
        form = {"fileText": file_text} if file_text is not None else None
        response = await self._http.post(
            ANALYZE_PATH,
            params={"t": int(time.time() * 1000)},
            files={"file": (filename, data, content_type)},
            data=form,
            headers={"Accept": "application/json", "Cache-Control": "no-cache"},
        )
        if response.is_success:
            return response.json()

        try:
            body = response.json()
            message = body.get("error") or body.get("message") if isinstance(body, dict) else None
        except ValueError:
            message = response.text
        raise AnalysisRequestError(
            response.status_code,
            message or f"HTTP error! status: {response.status_code}",
        )
