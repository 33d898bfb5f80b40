"""
Text acquisition — the two mutually exclusive ways a submission gets its text.

  client path  fileText was posted alongside the file: use it verbatim, never
               re-extract and never touch the binary.
  server path  persist the raw upload first (so the original survives later
               failures), then run the extractor over the bytes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from starlette.datastructures import UploadFile

from paper_checker.core.errors import ExtractionError, PersistenceError
from paper_checker.schemas.submissions import AnalyzeErrors

logger = logging.getLogger(__name__)


class UploadSaver(Protocol):
    async def save_file(self, data: bytes, name: str, submission_id: str) -> str: ...


class Extractor(Protocol):
    async def extract(self, filename: str, content_type: str | None, data: bytes) -> str: ...


@dataclass
class AcquiredText:
    text:        str
    source:      str            # "client" | "server"
    upload_path: str | None = None


class TextAcquirer:

    def __init__(self, storage: UploadSaver, extractor: Extractor) -> None:
        self._storage   = storage
        self._extractor = extractor

    async def acquire_text(
        self,
        upload: UploadFile,
        submission_id: str,
        precomputed_text: str | None = None,
    ) -> AcquiredText:
        if precomputed_text is not None:
            logger.info(
                "Text acquired from client | submission=%s chars=%d",
                submission_id, len(precomputed_text),
            )
            return AcquiredText(text=precomputed_text, source="client")

        filename = upload.filename or "upload"
        data = await upload.read()

        upload_path: str | None = None
        try:
            upload_path = await self._storage.save_file(data, filename, submission_id)
        except PersistenceError as exc:
            # The original upload is kept for reference only; analysis can proceed in memory
            logger.warning(
                "Upload not saved, continuing in memory | submission=%s error=%s",
                submission_id, exc,
            )

        try:
            text = await self._extractor.extract(filename, upload.content_type, data)
        except ExtractionError as exc:
            raise AnalyzeErrors.extraction_failed(exc.message) from exc

        return AcquiredText(text=text, source="server", upload_path=upload_path)
