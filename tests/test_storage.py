import json

import pytest

from docshelf.exceptions import StorageError
from docshelf.models import RepoReleaseDraft
from docshelf.services.registry import SourceRegistry
from docshelf.services.storage import JsonFileStore


def test_missing_file_reads_as_empty(tmp_path):
    store = JsonFileStore(tmp_path / "nested" / "store.json")
    assert store.get("anything") is None


def test_set_keeps_other_keys(tmp_path):
    path = tmp_path / "store.json"
    store = JsonFileStore(path)
    store.set("a", "1")
    store.set("b", "2")
    store.set("a", "3")

    assert json.loads(path.read_text(encoding="utf-8")) == {"a": "3", "b": "2"}
    assert [p.name for p in tmp_path.iterdir()] == ["store.json"]


def test_unreadable_file_raises(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("[1, 2, 3]", encoding="utf-8")
    with pytest.raises(StorageError):
        JsonFileStore(path).get("a")


def test_registry_survives_reopen(tmp_path):
    path = tmp_path / "shelf.json"
    registry = SourceRegistry(JsonFileStore(path))
    added = registry.add(RepoReleaseDraft(owner="octo", repo_name="docs"))

    reopened = SourceRegistry(JsonFileStore(path))
    assert reopened.list() == [added]
