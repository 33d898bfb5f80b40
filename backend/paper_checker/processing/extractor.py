"""
Text Extraction
═══════════════

Converts an uploaded binary document into plain text.

Strategy selection (by detected type):
  .docx  → python-docx   paragraphs joined with "\n"
  .pdf   → pypdf         page texts joined with "\n\n"
  .txt / .md / .tex → UTF-8 decode (latin-1 fallback)

Parsers are blocking, so they run in the default thread executor to keep the
event loop free for other requests.

Every failure surfaces as ExtractionError — an empty file, an unsupported type,
or a parser that choked on malformed bytes. The orchestrator reports these as
client errors (400), never as 500s.
"""

from __future__ import annotations

import asyncio
import io
import logging
import time

from paper_checker.core.errors import ExtractionError
from paper_checker.schemas.submissions import (
    DOCX_CONTENT_TYPE,
    PDF_CONTENT_TYPE,
    SUPPORTED_CONTENT_TYPES,
    SUPPORTED_EXTENSIONS,
)

logger = logging.getLogger(__name__)

_TEXT_CONTENT_TYPES = SUPPORTED_CONTENT_TYPES - {DOCX_CONTENT_TYPE, PDF_CONTENT_TYPE}
_TEXT_EXTENSIONS = SUPPORTED_EXTENSIONS - {".docx", ".pdf"}


def _get_extension(filename: str) -> str:
    """Return lowercased file extension including the dot."""
    parts = filename.rsplit(".", 1)
    return f".{parts[-1].lower()}" if len(parts) == 2 else ""


def detect_kind(filename: str, content_type: str | None) -> str | None:
    """Return "docx" | "pdf" | "text", or None if the type is unsupported."""
    ext = _get_extension(filename or "")
    content_type = (content_type or "").split(";", 1)[0].strip().lower()

    if content_type == DOCX_CONTENT_TYPE or ext == ".docx":
        return "docx"
    if content_type == PDF_CONTENT_TYPE or ext == ".pdf":
        return "pdf"
    if content_type in _TEXT_CONTENT_TYPES or ext in _TEXT_EXTENSIONS:
        return "text"
    return None


class TextExtractor:
    """
    Stateless extractor — safe to share across concurrent requests.

    Usage:
        text = await TextExtractor().extract("paper.docx", content_type, data)
    """

    async def extract(self, filename: str, content_type: str | None, data: bytes) -> str:
        if not data:
            raise ExtractionError("File is empty")

        kind = detect_kind(filename, content_type)
        if kind is None:
            logger.warning(
                "Unsupported file type for extraction | file=%s type=%s",
                filename, content_type,
            )
            raise ExtractionError(
                f"Unsupported file type for direct text extraction: {filename} ({content_type})"
            )

        loop = asyncio.get_running_loop()
        t0 = time.monotonic()
        try:
            text = await loop.run_in_executor(None, self._extract_sync, kind, data)
        except Exception as exc:
            logger.warning("Extraction failed | file=%s kind=%s error=%s", filename, kind, exc)
            raise ExtractionError(
                f'Failed to extract text from file "{filename}": {exc}'
            ) from exc

        logger.info(
            "Extraction | file=%s kind=%s chars=%d elapsed_ms=%.0f",
            filename, kind, len(text), (time.monotonic() - t0) * 1000,
        )
        return text

    def _extract_sync(self, kind: str, data: bytes) -> str:
        """Blocking extraction — runs in thread executor."""
        if kind == "docx":
            return _extract_docx(data)
        if kind == "pdf":
            return _extract_pdf(data)
        return _decode_text(data)


def _extract_docx(data: bytes) -> str:
    """Extract text from DOCX bytes using python-docx."""
    import docx

    doc = docx.Document(io.BytesIO(data))
    return "\n".join(para.text for para in doc.paragraphs if para.text.strip())


def _extract_pdf(data: bytes) -> str:
    """Extract text from PDF bytes using pypdf."""
    from pypdf import PdfReader

    reader = PdfReader(io.BytesIO(data))
    pages = [page.extract_text() or "" for page in reader.pages]
    return "\n\n".join(pages)


def _decode_text(data: bytes) -> str:
    # Plain text / markdown / TeX — decode with UTF-8, fallback to latin-1
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return data.decode("latin-1", errors="replace")
