"""
Local Artifact Storage — Submission-Isolated

Isolation model:
  Every artifact is stored under
      <root>/<submission_id>/<filename>
  The submission_id and filename are constructed server-side, so one
  submission can never overwrite another's files, and cleanup removes
  exactly one directory.

Artifact kinds:
  upload   <submission_id>-<sanitized original name>   raw uploaded bytes
  results  results-<submission_id>.json                analysis payload
  report   report-<submission_id>.md                   Markdown summary

Every write failure surfaces as PersistenceError; the orchestrator never
links an artifact that failed to write. Reads are confined to the root so
the download route cannot be used for path traversal.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
import shutil
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Any

from paper_checker.core.errors import PersistenceError
from paper_checker.reports.summary import render_summary_report
from paper_checker.schemas.submissions import SUBMISSION_ID_PREFIX

logger = logging.getLogger(__name__)

_SUBMISSION_ID_RE = re.compile(r"^sub_[0-9]+$")


class ArtifactKind(str, Enum):
    UPLOAD  = "upload"
    RESULTS = "results"
    REPORT  = "report"


@dataclass(frozen=True)
class StoredArtifact:
    """A file written for one submission."""
    submission_id: str
    kind:          ArtifactKind
    path:          str
    size_bytes:    int


def sanitize_filename(filename: str) -> str:
    """
    Strip path components and replace unsafe characters.
    Returns only the basename with OS-safe characters.
    """
    basename = (filename or "upload").replace("\\", "/").rsplit("/", 1)[-1]
    safe = re.sub(r"[^a-zA-Z0-9.\-]", "_", basename)
    return safe[:200] or "upload"


def artifact_filename(kind: ArtifactKind, submission_id: str, original: str = "") -> str:
    if kind is ArtifactKind.RESULTS:
        return f"results-{submission_id}.json"
    if kind is ArtifactKind.REPORT:
        return f"report-{submission_id}.md"
    return f"{submission_id}-{sanitize_filename(original)}"


class LocalArtifactStorage:
    """
    Async filesystem storage for submission artifacts.

    Blocking file I/O runs in the default thread executor. The instance holds
    no per-request state and is shared across the application.
    """

    def __init__(self, root: str) -> None:
        self._root = os.path.abspath(root)

    @property
    def root(self) -> str:
        return self._root

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def submission_dir(self, submission_id: str) -> str:
        if not _SUBMISSION_ID_RE.match(submission_id or ""):
            raise ValueError(f"Invalid submission id: {submission_id!r}")
        return os.path.join(self._root, submission_id)

    def path_for(self, kind: ArtifactKind, submission_id: str, original: str = "") -> str:
        return os.path.join(
            self.submission_dir(submission_id),
            artifact_filename(kind, submission_id, original),
        )

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args))

    def _write_sync(self, path: str, data: bytes) -> None:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as fh:
            fh.write(data)

    async def _write(
        self,
        kind: ArtifactKind,
        submission_id: str,
        data: bytes,
        original: str = "",
    ) -> StoredArtifact:
        try:
            path = self.path_for(kind, submission_id, original)
            await self._run(self._write_sync, path, data)
        except (OSError, ValueError) as exc:
            logger.error(
                "Artifact write failed | submission=%s kind=%s error=%s",
                submission_id, kind.value, exc,
            )
            raise PersistenceError(f"Failed to save {kind.value} artifact: {exc}") from exc

        logger.info(
            "Artifact saved | submission=%s kind=%s path=%s size=%d",
            submission_id, kind.value, path, len(data),
        )
        return StoredArtifact(
            submission_id=submission_id, kind=kind, path=path, size_bytes=len(data),
        )

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    async def ensure_root(self) -> None:
        """Create the storage root if it does not exist yet."""
        await self._run(partial(os.makedirs, self._root, exist_ok=True))

    async def save_file(self, data: bytes, name: str, submission_id: str) -> str:
        """Persist the raw uploaded bytes; returns the stored path."""
        artifact = await self._write(ArtifactKind.UPLOAD, submission_id, data, original=name)
        return artifact.path

    async def save_results(self, analysis: dict[str, Any], submission_id: str) -> str:
        """Persist the analysis payload as pretty-printed JSON."""
        try:
            body = json.dumps(analysis, indent=2, ensure_ascii=False).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise PersistenceError(f"Analysis result is not JSON serializable: {exc}") from exc
        artifact = await self._write(ArtifactKind.RESULTS, submission_id, body)
        return artifact.path

    async def generate_summary_report(self, analysis: dict[str, Any], submission_id: str) -> str:
        """Render and persist the Markdown summary report."""
        report = render_summary_report(analysis)
        artifact = await self._write(ArtifactKind.REPORT, submission_id, report.encode("utf-8"))
        return artifact.path

    def is_within_root(self, path: str) -> bool:
        resolved = os.path.realpath(path)
        root = os.path.realpath(self._root)
        return os.path.commonpath([resolved, root]) == root and resolved != root

    async def read_file(self, path: str) -> bytes:
        """
        Read an artifact by path.
        Raises PermissionError outside the root, FileNotFoundError if missing.
        """
        if not path or not self.is_within_root(path):
            logger.warning("Refusing read outside storage root | path=%s", path)
            raise PermissionError("Access denied to file path.")

        def _read() -> bytes:
            with open(os.path.realpath(path), "rb") as fh:
                return fh.read()

        return await self._run(_read)

    async def list_artifacts(self, submission_id: str) -> list[str]:
        directory = self.submission_dir(submission_id)

        def _list() -> list[str]:
            if not os.path.isdir(directory):
                return []
            return sorted(os.path.join(directory, name) for name in os.listdir(directory))

        return await self._run(_list)

    async def delete_submission(self, submission_id: str) -> int:
        """
        Delete every artifact of a submission. Returns the number of files
        removed; a submission with nothing on disk returns 0.
        """
        if not (submission_id or "").startswith(SUBMISSION_ID_PREFIX):
            raise ValueError(f"Invalid submission id: {submission_id!r}")
        directory = self.submission_dir(submission_id)

        def _delete() -> int:
            if not os.path.isdir(directory):
                return 0
            count = len(os.listdir(directory))
            shutil.rmtree(directory, ignore_errors=False)
            return count

        try:
            removed = await self._run(_delete)
        except FileNotFoundError:
            removed = 0
        logger.info("Artifacts deleted | submission=%s files=%d", submission_id, removed)
        return removed
