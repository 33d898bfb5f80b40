"""
Composed FastAPI Dependencies

The long-lived collaborators (storage, extractor, analyzer, cleanup
scheduler) are built once in create_app() and hung on app.state. Route
handlers receive them from here so tests can swap any of them through
app.dependency_overrides.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from paper_checker.core.config import Settings
from paper_checker.llm.analyzer import StructureAnalyzer
from paper_checker.processing.extractor import TextExtractor
from paper_checker.services.cleanup import CleanupScheduler
from paper_checker.services.orchestrator import SubmissionOrchestrator
from paper_checker.storage.local import LocalArtifactStorage


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> LocalArtifactStorage:
    return request.app.state.storage


def get_extractor(request: Request) -> TextExtractor:
    return request.app.state.extractor


def get_analyzer(request: Request) -> StructureAnalyzer:
    return request.app.state.analyzer


def get_cleanup_scheduler(request: Request) -> CleanupScheduler:
    return request.app.state.cleanup_scheduler


def get_orchestrator(
    settings:  Annotated[Settings, Depends(get_app_settings)],
    storage:   Annotated[LocalArtifactStorage, Depends(get_storage)],
    extractor: Annotated[TextExtractor, Depends(get_extractor)],
    analyzer:  Annotated[StructureAnalyzer, Depends(get_analyzer)],
    scheduler: Annotated[CleanupScheduler, Depends(get_cleanup_scheduler)],
) -> SubmissionOrchestrator:
    """One orchestrator per request; it holds no state of its own."""
    return SubmissionOrchestrator(
        settings=settings,
        storage=storage,
        extractor=extractor,
        analyzer=analyzer,
        scheduler=scheduler,
    )


# ---------------------------------------------------------------------------
# Type aliases for cleaner route signatures
# ---------------------------------------------------------------------------

AppSettings  = Annotated[Settings, Depends(get_app_settings)]
Storage      = Annotated[LocalArtifactStorage, Depends(get_storage)]
Orchestrator = Annotated[SubmissionOrchestrator, Depends(get_orchestrator)]
