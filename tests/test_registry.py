import json
from datetime import datetime, timedelta, timezone

import pytest

from docshelf.exceptions import SourceKindError, SourceValidationError, StorageError
from docshelf.models import DirectLinkDraft, DirectLinkSource, RepoReleaseDraft, RepoReleaseSource
from docshelf.services.registry import SourceRegistry, dump_sources, load_sources
from docshelf.services.storage import InMemoryStore

KEY = "pdf_lib_storage_final"


class FixedClock:
    def __init__(self):
        self.now = datetime(2024, 5, 1, tzinfo=timezone.utc)

    def __call__(self):
        return self.now


class FailingStore(InMemoryStore):
    def __init__(self):
        super().__init__()
        self.fail = False

    def set(self, key, value):
        if self.fail:
            raise StorageError("disk full")
        super().set(key, value)


def stored(store):
    return json.loads(store.get(KEY))


def test_add_assigns_id_and_persists():
    store = InMemoryStore()
    registry = SourceRegistry(store, clock=FixedClock())

    source = registry.add(RepoReleaseDraft(owner="octo", repo_name="docs"))

    assert isinstance(source, RepoReleaseSource)
    assert source.added_at == datetime(2024, 5, 1, tzinfo=timezone.utc)
    assert registry.list() == [source]
    assert stored(store) == [
        {"id": source.id, "addedAt": "2024-05-01T00:00:00Z", "type": "github", "owner": "octo", "repo": "docs"}
    ]


def test_ids_stay_unique_within_the_same_millisecond():
    registry = SourceRegistry(InMemoryStore(), clock=FixedClock())
    first = registry.add(RepoReleaseDraft(owner="a", repo_name="x"))
    second = registry.add(RepoReleaseDraft(owner="a", repo_name="y"))
    assert second.id == first.id + 1


def test_duplicates_are_not_rejected():
    registry = SourceRegistry(InMemoryStore())
    registry.add(RepoReleaseDraft(owner="a", repo_name="x"))
    registry.add(RepoReleaseDraft(owner="A", repo_name="X"))
    assert len(registry) == 2
    assert registry.has_repository("a", "x")


@pytest.mark.parametrize(
    "draft",
    [
        RepoReleaseDraft(owner="", repo_name="x"),
        RepoReleaseDraft(owner="a", repo_name="  "),
        DirectLinkDraft(url="nonsense", display_name="x"),
        DirectLinkDraft(url="", display_name=""),
    ],
)
def test_invalid_drafts_are_rejected_without_persisting(draft):
    store = InMemoryStore()
    registry = SourceRegistry(store)
    with pytest.raises(SourceValidationError):
        registry.add(draft)
    assert registry.list() == []
    assert store.get(KEY) is None


def test_link_without_name_derives_it_from_url():
    registry = SourceRegistry(InMemoryStore())
    source = registry.add(DirectLinkDraft(url="https://example.org/papers/Deep%20Dive.pdf"))
    assert source.display_name == "Deep Dive"

    folder = registry.add(DirectLinkDraft(url="https://example.org/papers/"))
    assert folder.display_name == "Untitled document"


def test_remove_keeps_order_and_ignores_unknown_ids():
    store = InMemoryStore()
    registry = SourceRegistry(store)
    a = registry.add(RepoReleaseDraft(owner="o", repo_name="a"))
    b = registry.add(DirectLinkDraft(url="https://example.org/b.pdf"))
    c = registry.add(RepoReleaseDraft(owner="o", repo_name="c"))

    assert registry.remove(b.id) is True
    assert [s.id for s in registry.list()] == [a.id, c.id]
    assert [r["id"] for r in stored(store)] == [a.id, c.id]

    assert registry.remove(12345) is False
    assert [s.id for s in registry.list()] == [a.id, c.id]


def test_rename_link_source():
    store = InMemoryStore()
    registry = SourceRegistry(store)
    first = registry.add(RepoReleaseDraft(owner="o", repo_name="a"))
    link = registry.add(DirectLinkDraft(url="https://example.org/b.pdf", display_name="B"))

    renamed = registry.rename(link.id, "  Better name ")

    assert isinstance(renamed, DirectLinkSource)
    assert renamed.display_name == "Better name"
    assert renamed.added_at == link.added_at
    assert [s.id for s in registry.list()] == [first.id, link.id]
    assert stored(store)[1]["name"] == "Better name"


def test_rename_rejects_repo_sources_and_blank_names():
    registry = SourceRegistry(InMemoryStore())
    repo = registry.add(RepoReleaseDraft(owner="o", repo_name="a"))
    link = registry.add(DirectLinkDraft(url="https://example.org/b.pdf"))

    with pytest.raises(SourceKindError):
        registry.rename(repo.id, "whatever")
    with pytest.raises(SourceValidationError):
        registry.rename(link.id, "   ")
    assert registry.rename(999, "ghost") is None


def test_failed_write_leaves_memory_untouched():
    store = FailingStore()
    registry = SourceRegistry(store)
    kept = registry.add(RepoReleaseDraft(owner="o", repo_name="a"))

    store.fail = True
    with pytest.raises(StorageError):
        registry.add(RepoReleaseDraft(owner="o", repo_name="b"))
    with pytest.raises(StorageError):
        registry.remove(kept.id)

    assert registry.list() == [kept]


def test_round_trip_preserves_order_and_legacy_records():
    legacy = [
        {"id": 1, "owner": "old", "repo": "style", "addedAt": "2023-01-01T00:00:00.000Z"},
        {"id": 2, "type": "link", "url": "https://example.org/a.pdf", "name": "A", "addedAt": "2023-02-01T00:00:00.000Z"},
        {"id": 3, "type": "github", "owner": "new", "repo": "style", "addedAt": "2023-03-01T00:00:00.000Z"},
    ]
    store = InMemoryStore({KEY: json.dumps(legacy)})

    registry = SourceRegistry(store)
    sources = registry.list()

    assert [type(s) for s in sources] == [RepoReleaseSource, DirectLinkSource, RepoReleaseSource]
    assert sources[0].owner == "old"
    assert load_sources(dump_sources(sources)) == sources

    reopened = SourceRegistry(InMemoryStore({KEY: dump_sources(sources)}))
    assert reopened.list() == sources


def test_new_ids_follow_loaded_ones():
    future = datetime.now(timezone.utc) + timedelta(days=365)
    records = [{"id": int(future.timestamp() * 1000), "owner": "o", "repo": "r", "addedAt": future.isoformat()}]
    registry = SourceRegistry(InMemoryStore({KEY: json.dumps(records)}))
    added = registry.add(RepoReleaseDraft(owner="o", repo_name="s"))
    assert added.id == records[0]["id"] + 1


@pytest.mark.parametrize("raw", ["{not json", '{"id": 1}', '[{"id": 1, "type": "link", "url": "x"}]'])
def test_corrupt_store_raises_storage_error(raw):
    with pytest.raises(StorageError):
        SourceRegistry(InMemoryStore({KEY: raw}))


def test_repository_names_only_for_owner():
    registry = SourceRegistry(InMemoryStore())
    registry.add(RepoReleaseDraft(owner="Octo", repo_name="Docs"))
    registry.add(RepoReleaseDraft(owner="other", repo_name="tools"))
    registry.add(DirectLinkDraft(url="https://example.org/docs.pdf"))
    assert registry.repository_names("octo") == {"docs"}
