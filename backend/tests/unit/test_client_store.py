"""
Unit Tests — ClientSubmissionStore
"""

from __future__ import annotations

import json

import pytest

from paper_checker.client.store import (
    STORAGE_KEY,
    ClientSubmissionStore,
    InMemoryStorage,
    JsonFileStorage,
)


@pytest.fixture
def backend():
    return InMemoryStorage()


@pytest.fixture
def store(backend):
    return ClientSubmissionStore(backend)


@pytest.mark.unit
class TestStoreOperations:

    def test_empty_store_loads_empty_list(self, store):
        assert store.load() == []

    def test_add_generates_id_date_and_defaults(self, store):
        entry = store.add({"fileName": "paper.docx", "fileSize": 10})

        assert entry["id"].startswith("submission-")
        assert entry["date"].endswith("Z")
        assert entry["status"] == "processing"
        assert entry["results"] is None
        assert entry["fileName"] == "paper.docx"

    def test_add_keeps_given_status(self, store):
        assert store.add({"status": "queued"})["status"] == "queued"

    def test_newest_first(self, store, backend):
        store.save([{"id": "submission-1", "fileName": "old.docx"}])
        store.add({"fileName": "new.docx"})

        names = [s["fileName"] for s in json.loads(backend.get_item(STORAGE_KEY))]
        assert names == ["new.docx", "old.docx"]

    def test_get_by_id(self, store):
        entry = store.add({"fileName": "a.txt"})
        assert store.get(entry["id"]) == entry
        assert store.get("submission-unknown") is None

    def test_update_merges(self, store):
        entry = store.add({"fileName": "a.txt"})

        updated = store.update(entry["id"], {"status": "completed", "results": {"title": "T"}})

        assert updated["fileName"] == "a.txt"
        assert updated["status"] == "completed"
        assert store.get(entry["id"])["results"] == {"title": "T"}

    def test_update_unknown_returns_none(self, store):
        assert store.update("submission-404", {"status": "completed"}) is None

    def test_clear(self, store, backend):
        store.add({"fileName": "a.txt"})
        store.clear()
        assert backend.get_item(STORAGE_KEY) is None
        assert store.load() == []


@pytest.mark.unit
class TestCorruptStorage:

    def test_invalid_json_is_discarded(self, backend, store):
        backend.set_item(STORAGE_KEY, "{not json")
        assert store.load() == []
        assert backend.get_item(STORAGE_KEY) is None

    def test_non_list_is_reset(self, backend, store):
        backend.set_item(STORAGE_KEY, json.dumps({"id": "submission-1"}))
        assert store.load() == []
        assert backend.get_item(STORAGE_KEY) is None

    def test_add_after_corruption_works(self, backend, store):
        backend.set_item(STORAGE_KEY, "42")
        store.add({"fileName": "a.txt"})
        assert len(store.load()) == 1


@pytest.mark.unit
class TestJsonFileStorage:

    def test_persists_across_instances(self, tmp_path):
        path = str(tmp_path / "state" / "store.json")
        ClientSubmissionStore(JsonFileStorage(path)).add({"fileName": "a.txt"})

        reopened = ClientSubmissionStore(JsonFileStorage(path))
        assert reopened.load()[0]["fileName"] == "a.txt"

    def test_unreadable_file_is_empty(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("garbage")
        assert JsonFileStorage(str(path)).get_item(STORAGE_KEY) is None

    def test_remove_item(self, tmp_path):
        backend = JsonFileStorage(str(tmp_path / "store.json"))
        backend.set_item("k", "v")
        backend.remove_item("k")
        assert backend.get_item("k") is None
