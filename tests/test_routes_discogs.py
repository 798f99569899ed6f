"""Tests for the Discogs proxy routes (app/routes_discogs.py)."""

from __future__ import annotations

from unittest.mock import ANY, AsyncMock

import pytest

from app import discogs
from app.http_client import UpstreamTimeoutError
from app.routes_discogs import is_release_id
from core.models import CollectionItem, CollectionPage, SearchItem, SearchPage


def _error(resp) -> dict:
    return resp.json()["error"]


@pytest.mark.parametrize(
    "value, ok",
    [("249504", True), ("0", True), ("", False), ("12a", False), ("-1", False), ("١٢", False)],
)
def test_is_release_id(value, ok):
    assert is_release_id(value) is ok


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------

def test_collection_requires_discogs(client):
    resp = client.get("/api/discogs/collection")
    assert resp.status_code == 401
    assert _error(resp)["code"] == "DISCOGS_NOT_CONNECTED"


def test_collection_returns_page(client, connect_discogs, monkeypatch):
    connect_discogs()
    monkeypatch.setattr(discogs, "get_identity", AsyncMock(return_value="digger"))
    page = CollectionPage(
        page=1,
        pages=1,
        per_page=50,
        total_items=1,
        items=[CollectionItem(instance_id="9", release_id="10", title="Blue Lines", artist="Massive Attack")],
    )
    get_collection = AsyncMock(return_value=page)
    monkeypatch.setattr(discogs, "get_collection", get_collection)

    resp = client.get("/api/discogs/collection", params={"page": 0, "perPage": 500})

    assert resp.status_code == 200
    body = resp.json()
    assert body["total_items"] == 1
    assert body["items"][0]["release_id"] == "10"
    get_collection.assert_awaited_once_with(ANY, "digger", 1, 50)
    auth_header = get_collection.await_args.args[0]
    assert auth_header.startswith("OAuth ")


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("query", ["", "   "])
def test_search_requires_query(client, query):
    resp = client.get("/api/discogs/search", params={"query": query})
    assert resp.status_code == 400
    assert _error(resp)["code"] == "INVALID_QUERY"


def test_search_returns_page(client, monkeypatch):
    result = SearchPage(
        query="dummy",
        page=1,
        pages=1,
        per_page=5,
        total_items=1,
        items=[SearchItem(release_id="42", title="Dummy", artist="Portishead")],
    )
    search = AsyncMock(return_value=result)
    monkeypatch.setattr(discogs, "search_releases", search)

    resp = client.get("/api/discogs/search", params={"query": " dummy ", "perPage": 1})

    assert resp.status_code == 200
    assert resp.json()["items"][0]["artist"] == "Portishead"
    search.assert_awaited_once_with("dummy", 1, 5)


def test_search_invalid_page_is_validation_error(client):
    resp = client.get("/api/discogs/search", params={"query": "x", "page": "one"})
    assert resp.status_code == 400
    assert _error(resp)["code"] == "VALIDATION_ERROR"
    assert resp.json()["error"]["details"]


# ---------------------------------------------------------------------------
# Release
# ---------------------------------------------------------------------------

def test_release_rejects_non_numeric_id(client):
    resp = client.get("/api/discogs/release/abc")
    assert resp.status_code == 400
    assert _error(resp)["code"] == "INVALID_RELEASE_ID"


def test_release_returns_normalized_release(client, monkeypatch, make_release):
    get_release = AsyncMock(return_value=make_release(100, 200))
    monkeypatch.setattr(discogs, "get_release", get_release)

    resp = client.get("/api/discogs/release/249504")

    assert resp.status_code == 200
    release = resp.json()["release"]
    assert release["id"] == "249504"
    assert [t["position"] for t in release["tracks"]] == ["A1", "A2"]
    get_release.assert_awaited_once_with("249504")


def test_release_rate_limited(client, monkeypatch):
    monkeypatch.setattr(
        discogs,
        "get_release",
        AsyncMock(side_effect=discogs.DiscogsError(429, "Discogs returned 429", retry_after="30")),
    )
    resp = client.get("/api/discogs/release/1")
    assert resp.status_code == 429
    assert resp.headers["retry-after"] == "30"
    assert _error(resp)["code"] == "DISCOGS_RATE_LIMIT"


@pytest.mark.parametrize(
    "exc, status",
    [
        (discogs.DiscogsError(404, "Discogs returned 404"), 400),
        (discogs.DiscogsError(503, "Discogs returned 503"), 502),
        (UpstreamTimeoutError("https://api.discogs.com/releases/1", 20_000), 502),
    ],
)
def test_release_upstream_errors(client, monkeypatch, exc, status):
    monkeypatch.setattr(discogs, "get_release", AsyncMock(side_effect=exc))
    resp = client.get("/api/discogs/release/1")
    assert resp.status_code == status
    assert _error(resp)["code"] == "DISCOGS_ERROR"
