"""
Root conftest.py — Shared fixtures for ALL tests (unit + integration)

Fixture hierarchy:
  function-scoped : test_settings, storage, fake_analyzer, extractor_spy,
                    fake_clock, cleanup_scheduler, app_with_overrides,
                    async_client, sample_* bytes

Environment strategy:
  - Artifact storage is a per-test tmp_path; nothing touches ./tmp.
  - The AI service is never called: the analyzer is an AsyncMock returning
    a canned analysis payload (override return_value / side_effect per test).
  - Cleanup timers run on a FakeClock, so a 24h retention window elapses
    instantly and deterministically.

How to run:
  pytest                          # all tests
  pytest -m unit                  # unit tests only (fast, no HTTP)
  pytest -m integration           # full FastAPI stack over ASGITransport
  pytest tests/unit/test_storage.py
"""

from __future__ import annotations

import asyncio
import copy
import io
import os
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import AsyncClient

# ─────────────────────────────────────────────────────────────────────────────
# Patch settings BEFORE any app imports so modules read test config
# ─────────────────────────────────────────────────────────────────────────────

os.environ.setdefault("OPENAI_API_KEY", "sk-test-key")
os.environ.setdefault("OPENAI_MODEL",   "gpt-4o")
os.environ.setdefault("APP_ENV",        "development")
os.environ.setdefault("DEBUG",          "true")


# ─────────────────────────────────────────────────────────────────────────────
# Canned analysis payload
# ─────────────────────────────────────────────────────────────────────────────

SAMPLE_ANALYSIS: dict = {
    "title": "Effects of Sleep on Memory Consolidation",
    "abstract": {
        "text": "Sleep supports memory. We tested 40 participants.",
        "summary": "Sleep improves recall.",
        "evaluations": {"cccStructure": True, "sentenceQuality": True},
        "issues": [
            {"issue": "Gap not stated", "severity": "major", "recommendation": "State the gap."},
        ],
    },
    "documentAssessment": {
        "titleQuality":          {"score": 8, "assessment": "Clear.", "recommendation": ""},
        "abstractCompleteness":  {"score": 6, "assessment": "Missing gap.", "recommendation": "Add gap."},
        "introductionStructure": {"score": 7, "assessment": "Good.", "recommendation": ""},
        "resultsOrganization":   {"score": 7, "assessment": "Fine.", "recommendation": ""},
        "discussionQuality":     {"score": 5, "assessment": "Thin.", "recommendation": "Add limitations."},
        "messageFocus":          {"score": 8, "assessment": "Focused.", "recommendation": ""},
        "topicOrganization":     {"score": 7, "assessment": "Ordered.", "recommendation": ""},
    },
    "majorIssues": [
        {"issue": "No limitations", "location": "Discussion", "severity": "critical",
         "recommendation": "Add a limitations paragraph."},
    ],
    "overallRecommendations": ["State the research gap.", "Discuss limitations."],
    "sections": [
        {
            "name": "Introduction",
            "paragraphs": [
                {
                    "text": "Memory matters.",
                    "summary": "Context.",
                    "evaluations": {"cccStructure": False, "topicContinuity": True},
                    "issues": [{"issue": "No conclusion", "severity": "minor", "recommendation": "Close it."}],
                },
            ],
        },
    ],
    "statistics": {"critical": 1, "major": 1, "minor": 1},
}

SAMPLE_TEXT = (
    "**Effects of Sleep on Memory Consolidation**\n\n"
    "Abstract\nSleep supports memory. We tested 40 participants.\n\n"
    "Introduction\nMemory matters.\n"
)


@pytest.fixture
def sample_analysis() -> dict:
    return copy.deepcopy(SAMPLE_ANALYSIS)


# ─────────────────────────────────────────────────────────────────────────────
# Sample file bytes
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def sample_txt_bytes() -> bytes:
    return SAMPLE_TEXT.encode("utf-8")


@pytest.fixture
def sample_docx_bytes() -> bytes:
    """A real DOCX built with python-docx."""
    import docx

    document = docx.Document()
    document.add_paragraph("Effects of Sleep on Memory Consolidation")
    document.add_paragraph("")
    document.add_paragraph("Sleep supports memory.")
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def sample_pdf_bytes() -> bytes:
    """A single blank page PDF written by pypdf (extracts to empty text)."""
    from pypdf import PdfWriter

    writer = PdfWriter()
    writer.add_blank_page(width=612, height=792)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


# ─────────────────────────────────────────────────────────────────────────────
# Settings + storage
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def storage_root(tmp_path) -> str:
    return str(tmp_path / "artifacts")


@pytest.fixture
def test_settings(storage_root):
    from paper_checker.core.config import Settings

    return Settings(
        temp_file_path=storage_root,
        next_public_base_url="",
        openai_api_key="sk-test-key",
        max_char_count=100_000,
        cleanup_delay_seconds=24 * 60 * 60,
        app_env="development",
    )


@pytest.fixture
def storage(storage_root):
    from paper_checker.storage.local import LocalArtifactStorage
    return LocalArtifactStorage(storage_root)


# ─────────────────────────────────────────────────────────────────────────────
# Fake clock for deferred cleanup
# ─────────────────────────────────────────────────────────────────────────────

class FakeClock:
    """
    Drop-in replacement for asyncio.sleep.

    Sleepers park on a future until advance() moves virtual time past their
    deadline. Nothing ever sleeps for real.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._sleepers: list[tuple[float, asyncio.Future]] = []

    async def sleep(self, delay: float) -> None:
        future = asyncio.get_running_loop().create_future()
        self._sleepers.append((self.now + delay, future))
        await future

    @property
    def sleeping(self) -> int:
        return sum(1 for _, f in self._sleepers if not f.done())

    async def advance(self, seconds: float) -> None:
        # Let freshly created tasks reach their sleep() before moving time
        for _ in range(5):
            await asyncio.sleep(0)
        self.now += seconds
        for deadline, future in self._sleepers:
            if deadline <= self.now and not future.done():
                future.set_result(None)
        self._sleepers = [(d, f) for d, f in self._sleepers if not f.done()]
        for _ in range(5):
            await asyncio.sleep(0)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cleanup_scheduler(storage, fake_clock, test_settings):
    from paper_checker.services.cleanup import CleanupScheduler
    return CleanupScheduler(
        storage,
        default_delay=test_settings.cleanup_delay_seconds,
        sleep=fake_clock.sleep,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Collaborator spies
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def fake_analyzer(sample_analysis):
    """
    Analyzer double. analyze() is an AsyncMock returning sample_analysis;
    set .analyze.side_effect to simulate upstream failures.
    """
    from paper_checker.llm.analyzer import LLMStructureAnalyzer

    analyzer = AsyncMock(spec=LLMStructureAnalyzer)
    analyzer.analyze = AsyncMock(return_value=sample_analysis)
    return analyzer


@pytest.fixture
def extractor_spy():
    """Real TextExtractor whose extract() is wrapped in an AsyncMock spy."""
    from paper_checker.processing.extractor import TextExtractor

    real = TextExtractor()
    spy = AsyncMock(spec=TextExtractor)
    spy.extract = AsyncMock(side_effect=real.extract)
    return spy


# ─────────────────────────────────────────────────────────────────────────────
# FastAPI test client with dependency overrides
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def app_with_overrides(test_settings, storage, extractor_spy, fake_analyzer, cleanup_scheduler):
    """
    Fresh FastAPI app per test with every collaborator overridden:
      - get_app_settings      → test_settings (tmp storage root)
      - get_storage           → storage under tmp_path
      - get_extractor         → extractor_spy (real extraction, call-recorded)
      - get_analyzer          → fake_analyzer (no AI calls)
      - get_cleanup_scheduler → scheduler on the fake clock
    """
    from paper_checker.api.dependencies import (
        get_analyzer,
        get_app_settings,
        get_cleanup_scheduler,
        get_extractor,
        get_storage,
    )
    from paper_checker.main import create_app

    app = create_app(test_settings)
    app.dependency_overrides[get_app_settings]      = lambda: test_settings
    app.dependency_overrides[get_storage]           = lambda: storage
    app.dependency_overrides[get_extractor]         = lambda: extractor_spy
    app.dependency_overrides[get_analyzer]          = lambda: fake_analyzer
    app.dependency_overrides[get_cleanup_scheduler] = lambda: cleanup_scheduler

    yield app

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def async_client(app_with_overrides, cleanup_scheduler) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client over ASGITransport (no lifespan, no network)."""
    from httpx import ASGITransport

    transport = ASGITransport(app=app_with_overrides)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    await cleanup_scheduler.shutdown()
