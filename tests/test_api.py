import pytest
from fastapi.testclient import TestClient

from docshelf.config import Settings
from docshelf.main import app, get_library
from docshelf.services.library import Library
from docshelf.services.storage import InMemoryStore
from tests.fakes import FakeHostingSource, make_detail, make_release


@pytest.fixture
def source():
    return FakeHostingSource(
        listings={"octo": ["docs", "tools"]},
        releases={("octo", "docs"): make_release("v1.0", (9, "handbook.pdf", 2023))},
        details={("octo", "docs"): make_detail("octo/docs", "Handbook sources", ["pdf", "docs"])},
    )


@pytest.fixture
def library(source):
    return Library(InMemoryStore(), Settings(), source=source)


@pytest.fixture
def client(library):
    app.dependency_overrides[get_library] = lambda: library
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json()["status"] == "ok"


def test_add_list_and_remove_sources(client):
    repo = client.post("/sources/github", json={"owner": "octo", "repo": "docs"})
    assert repo.status_code == 201
    assert repo.json()["type"] == "github"

    link = client.post("/sources/link", json={"url": "https://example.org/files/Field%20Notes.pdf"})
    assert link.status_code == 201
    assert link.json()["name"] == "Field Notes"

    listed = client.get("/sources").json()
    assert [s["type"] for s in listed] == ["github", "link"]

    removed = client.delete(f"/sources/{repo.json()['id']}")
    assert removed.json() == {"id": repo.json()["id"], "removed": True}
    assert client.delete("/sources/1").json()["removed"] is False


def test_invalid_source_is_422(client):
    assert client.post("/sources/github", json={"owner": " ", "repo": "docs"}).status_code == 422
    assert client.post("/sources/link", json={"url": "nope"}).status_code == 422


def test_rename_rules(client):
    repo = client.post("/sources/github", json={"owner": "octo", "repo": "docs"}).json()
    link = client.post("/sources/link", json={"url": "https://example.org/a.pdf", "name": "A"}).json()

    renamed = client.patch(f"/sources/{link['id']}", json={"name": "Renamed"})
    assert renamed.status_code == 200
    assert renamed.json()["name"] == "Renamed"

    assert client.patch(f"/sources/{repo['id']}", json={"name": "x"}).status_code == 409
    assert client.patch("/sources/424242", json={"name": "x"}).status_code == 404


def test_refresh_builds_catalog(client):
    client.post("/sources/github", json={"owner": "octo", "repo": "docs"})
    client.post("/sources/link", json={"url": "https://example.org/a.pdf", "name": "A"})

    body = client.post("/catalog/refresh").json()

    names = {d["display_name"] for d in body["documents"]}
    assert names == {"handbook.pdf", "A"}
    assert body["notice"] is None
    assert client.get("/catalog").json()["documents"] == body["documents"]


def test_refresh_with_nothing_found_reports_notice(client, source):
    source.releases[("octo", "empty")] = make_release("v0")
    client.post("/sources/github", json={"owner": "octo", "repo": "empty"})

    body = client.post("/catalog/refresh").json()

    assert body["documents"] == []
    assert body["notice"] == "No documents were found in the added sources."


def test_suggestions_filter_registered(client):
    client.post("/sources/github", json={"owner": "octo", "repo": "DOCS"})

    body = client.get("/suggestions", params={"owner": "octo"}).json()

    assert body["mode"] == "listing"
    assert body["suggestions"] == ["tools"]
    assert body["open"] is True


def test_repository_detail_is_cached(client, source):
    first = client.get("/repos/octo/docs")
    second = client.get("/repos/OCTO/Docs")

    assert first.json()["topics"] == ["pdf", "docs"]
    assert second.status_code == 200
    assert source.calls.count(("repo", "octo", "docs")) == 1
    assert client.get("/repos/octo/missing").status_code == 502
