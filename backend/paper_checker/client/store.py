"""
Client-side submission history.

The browser keeps past submissions in localStorage under a single key; this
store reproduces that contract over an injectable key/value backend:

    key     paperCheckerSubmissions
    value   JSON list, newest first
    entry   {...submission, "id": "submission-<millis>", "date": <ISO>,
             "status": submission.status or "processing", "results": None}

Anything in the slot that is not a JSON list is discarded and the slot is
reset, so a corrupt history never breaks the caller.
"""

from __future__ import annotations

import json
import logging
import os
import time
from datetime import datetime, timezone
from typing import Any, Protocol

logger = logging.getLogger(__name__)

STORAGE_KEY = "paperCheckerSubmissions"


class KeyValueStorage(Protocol):
    def get_item(self, key: str) -> str | None: ...
    def set_item(self, key: str, value: str) -> None: ...
    def remove_item(self, key: str) -> None: ...


class InMemoryStorage:
    """Dict-backed storage, the default for tests and scripts."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStorage:
    """
    One JSON object on disk mapping keys to string values.
    An unreadable file behaves as empty storage.
    """

    def __init__(self, path: str) -> None:
        self._path = path

    def _load(self) -> dict[str, str]:
        if not os.path.isfile(self._path):
            return {}
        try:
            with open(self._path, encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.warning("Storage file unreadable, starting empty | path=%s error=%s", self._path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _dump(self, data: dict[str, str]) -> None:
        directory = os.path.dirname(self._path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self._path, "w", encoding="utf-8") as fh:
            json.dump(data, fh)

    def get_item(self, key: str) -> str | None:
        value = self._load().get(key)
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._dump(data)

    def remove_item(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._dump(data)


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ClientSubmissionStore:

    def __init__(self, storage: KeyValueStorage | None = None, key: str = STORAGE_KEY) -> None:
        self._storage = storage if storage is not None else InMemoryStorage()
        self._key = key

    def load(self) -> list[dict[str, Any]]:
        raw = self._storage.get_item(self._key)
        if not raw:
            return []
        try:
            submissions = json.loads(raw)
        except ValueError:
            logger.warning("Corrupt submission history discarded | key=%s", self._key)
            self._storage.remove_item(self._key)
            return []
        if not isinstance(submissions, list):
            logger.warning("Submission history is not a list, resetting | key=%s", self._key)
            self._storage.remove_item(self._key)
            return []
        return submissions

    def save(self, submissions: list[dict[str, Any]]) -> None:
        self._storage.set_item(self._key, json.dumps(submissions))

    def add(self, submission: dict[str, Any]) -> dict[str, Any]:
        """Prepend a new entry and return it (with its generated id and date)."""
        entry = {
            **submission,
            "id": f"submission-{int(time.time() * 1000)}",
            "date": _iso_now(),
            "status": submission.get("status") or "processing",
            "results": None,
        }
        self.save([entry, *self.load()])
        return entry

    def get(self, submission_id: str) -> dict[str, Any] | None:
        for entry in self.load():
            if isinstance(entry, dict) and entry.get("id") == submission_id:
                return entry
        return None

    def clear(self) -> None:
        self._storage.remove_item(self._key)

    def update(self, submission_id: str, changes: dict[str, Any]) -> dict[str, Any] | None:
        """Merge `changes` into an entry; returns the updated entry or None if unknown."""
        submissions = self.load()
        for index, entry in enumerate(submissions):
            if isinstance(entry, dict) and entry.get("id") == submission_id:
                submissions[index] = {**entry, **changes}
                self.save(submissions)
                return submissions[index]
        return None
