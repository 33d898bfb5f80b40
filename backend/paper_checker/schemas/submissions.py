"""
Document Analysis — Pydantic Schemas and Constants

Covers the lifecycle of POST /analyze:
  - Request ceilings and supported file types
  - The per-request Submission record and its seed document
  - Report link payload returned alongside the analysis
  - Error factories for every documented failure (400, 413, 500)

Design decisions:
  - submission_id is always server-generated (sub_<millis><random>); never client-supplied.
  - The analysis payload is an opaque dict; only its presence is validated.
  - All timestamps are UTC.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from paper_checker.core.errors import (
    AnalysisError,
    DocumentTooLarge,
    ExtractionError,
    MalformedRequest,
    MissingFile,
    PayloadTooLarge,
    PersistenceError,
    UnknownError,
)


# ---------------------------------------------------------------------------
# Ceilings and supported types
# ---------------------------------------------------------------------------

# 15 MiB hard ceiling on the declared request body — checked before reading it
MAX_REQUEST_BYTES: int = 15 * 1024 * 1024

DOCX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
PDF_CONTENT_TYPE = "application/pdf"

SUPPORTED_CONTENT_TYPES: frozenset[str] = frozenset(
    {
        DOCX_CONTENT_TYPE,
        PDF_CONTENT_TYPE,
        "text/plain",
        "text/markdown",
        "text/x-tex",
        "application/x-tex",
    }
)

SUPPORTED_EXTENSIONS: frozenset[str] = frozenset(
    {".docx", ".pdf", ".txt", ".md", ".tex"}
)

SUBMISSION_ID_PREFIX = "sub_"


# ---------------------------------------------------------------------------
# Submission lifecycle
# ---------------------------------------------------------------------------

class SubmissionStatus(str, Enum):
    PENDING   = "pending"     # accepted, analysis not yet returned
    COMPLETED = "completed"   # analysis returned and artifacts written


class PipelineState(str, Enum):
    """
    Per-request orchestration states.
    received → size_checked → text_acquired → document_size_checked →
    analyzed → persisted → links_built → responded; failed from anywhere.
    """
    RECEIVED              = "received"
    SIZE_CHECKED          = "size_checked"
    TEXT_ACQUIRED         = "text_acquired"
    DOCUMENT_SIZE_CHECKED = "document_size_checked"
    ANALYZED              = "analyzed"
    PERSISTED             = "persisted"
    LINKS_BUILT           = "links_built"
    RESPONDED             = "responded"
    FAILED                = "failed"


class BasicDocumentSeed(BaseModel):
    """Hint passed to the analyzer; built from the first line of text only."""
    title:    str
    abstract: str = ""
    sections: list[Any] = Field(default_factory=list)

    @classmethod
    def from_text(cls, text: str | None) -> "BasicDocumentSeed":
        lines = [line for line in (text or "").split("\n") if line.strip()]
        if not lines:
            return cls(title="Untitled")
        title = lines[0].replace("**", "").strip()
        return cls(title=title or "Untitled Document")


class Submission(BaseModel):
    submission_id:     str
    original_filename: str
    raw_text:          str = ""
    analysis:          dict[str, Any] | None = None
    status:            SubmissionStatus = SubmissionStatus.PENDING
    created_at:        datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ReportLinks(BaseModel):
    report: str = Field(..., description="Absolute URL of the Markdown summary report")
    json_:  str = Field(..., alias="json", description="Absolute URL of the JSON analysis")

    model_config = {"populate_by_name": True}


class ErrorBody(BaseModel):
    """Uniform error envelope for every non-2xx response."""
    error: str


# ---------------------------------------------------------------------------
# Pre-defined error factories (keeps the orchestrator and routes thin)
# ---------------------------------------------------------------------------

class AnalyzeErrors:
    """Factories for every documented error case."""

    @staticmethod
    def payload_too_large() -> PayloadTooLarge:
        limit_mb = MAX_REQUEST_BYTES // (1024 * 1024)
        return PayloadTooLarge(f"Payload too large. Limit is {limit_mb}MB.")

    @staticmethod
    def missing_file() -> MissingFile:
        return MissingFile("No valid file provided")

    @staticmethod
    def malformed_form(reason: str) -> MalformedRequest:
        return MalformedRequest(f"Invalid form data: {reason}")

    @staticmethod
    def document_too_large(max_chars: int) -> DocumentTooLarge:
        return DocumentTooLarge(
            f"Document is too large. Maximum {max_chars} characters allowed."
        )

    @staticmethod
    def extraction_failed(reason: str) -> ExtractionError:
        return ExtractionError(f"Could not extract text from the file: {reason}")

    @staticmethod
    def analysis_failed(reason: str) -> AnalysisError:
        return AnalysisError(f"Error analyzing document: {reason}")

    @staticmethod
    def persistence_failed(reason: str) -> PersistenceError:
        return PersistenceError(f"Error analyzing document: {reason}")

    @staticmethod
    def unknown(reason: str) -> UnknownError:
        return UnknownError(f"Error analyzing document: {reason}")
