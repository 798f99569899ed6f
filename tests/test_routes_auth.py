"""Tests for the account connection routes (app/routes_auth.py)."""

from __future__ import annotations

from unittest.mock import AsyncMock
from urllib.parse import parse_qs, urlparse

from app import discogs, lastfm
from app.config import get_settings


def _error(resp) -> dict:
    return resp.json()["error"]


def test_status_starts_disconnected(client):
    resp = client.get("/api/auth/status")
    assert resp.status_code == 200
    assert resp.json() == {"lastfm_connected": False, "discogs_connected": False}


# ---------------------------------------------------------------------------
# Last.fm
# ---------------------------------------------------------------------------

def test_lastfm_start_returns_auth_url(client):
    resp = client.get("/api/auth/lastfm/start")
    assert resp.status_code == 200

    url = urlparse(resp.json()["redirect_url"])
    assert f"{url.scheme}://{url.netloc}{url.path}" == lastfm.LASTFM_AUTH_URL
    query = parse_qs(url.query)
    assert query["api_key"] == ["test_api_key"]
    assert query["cb"] == ["http://testserver/api/auth/lastfm/callback"]


def test_lastfm_start_without_api_key(client, monkeypatch):
    monkeypatch.setenv("LASTFM_API_KEY", "")
    get_settings.cache_clear()

    resp = client.get("/api/auth/lastfm/start")
    assert resp.status_code == 500
    assert _error(resp)["code"] == "CONFIG_ERROR"


def test_lastfm_callback_stores_session_key(client, monkeypatch):
    get_key = AsyncMock(return_value="sk123")
    monkeypatch.setattr(lastfm, "get_session_key", get_key)

    resp = client.get("/api/auth/lastfm/callback", params={"token": "tok"}, follow_redirects=False)

    assert resp.status_code == 302
    assert resp.headers["location"] == "http://localhost:5173/settings?auth=lastfm"
    get_key.assert_awaited_once_with("tok")
    assert client.get("/api/auth/status").json()["lastfm_connected"] is True


def test_lastfm_callback_without_token(client):
    resp = client.get("/api/auth/lastfm/callback", follow_redirects=False)
    assert resp.status_code == 403
    assert _error(resp)["code"] == "AUTH_DENIED"


def test_lastfm_callback_upstream_error(client, monkeypatch):
    monkeypatch.setattr(
        lastfm,
        "get_session_key",
        AsyncMock(side_effect=lastfm.LastFmError("Invalid token", code=4)),
    )

    resp = client.get("/api/auth/lastfm/callback", params={"token": "bad"}, follow_redirects=False)

    assert resp.status_code == 502
    assert _error(resp)["code"] == "LASTFM_ERROR"
    assert _error(resp)["message"] == "Invalid token"
    assert client.get("/api/auth/status").json()["lastfm_connected"] is False


def test_lastfm_disconnect(client, connect_lastfm):
    connect_lastfm()
    resp = client.post("/api/auth/lastfm/disconnect")
    assert resp.json() == {"success": True}
    assert client.get("/api/auth/status").json()["lastfm_connected"] is False


# ---------------------------------------------------------------------------
# Discogs
# ---------------------------------------------------------------------------

def test_discogs_start_returns_authorize_url(client, monkeypatch):
    request_token = AsyncMock(return_value=("rt", "rs"))
    monkeypatch.setattr(discogs, "request_token", request_token)

    resp = client.post("/api/auth/discogs/start")

    assert resp.status_code == 200
    assert resp.json() == {"redirect_url": discogs.authorize_url("rt")}
    request_token.assert_awaited_once_with("http://testserver/api/auth/discogs/callback")


def test_discogs_callback_exchanges_verifier(client, monkeypatch):
    monkeypatch.setattr(discogs, "request_token", AsyncMock(return_value=("rt", "rs")))
    access_token = AsyncMock(return_value=("at", "as"))
    monkeypatch.setattr(discogs, "access_token", access_token)
    client.post("/api/auth/discogs/start")

    resp = client.get(
        "/api/auth/discogs/callback",
        params={"oauth_token": "rt", "oauth_verifier": "v"},
        follow_redirects=False,
    )

    assert resp.status_code == 302
    assert resp.headers["location"] == "http://localhost:5173/settings?auth=discogs"
    access_token.assert_awaited_once_with("rt", "rs", "v")
    assert client.get("/api/auth/status").json()["discogs_connected"] is True


def test_discogs_callback_state_is_single_use(client, connect_discogs):
    connect_discogs()
    resp = client.get(
        "/api/auth/discogs/callback",
        params={"oauth_token": "rt", "oauth_verifier": "v"},
        follow_redirects=False,
    )
    assert resp.status_code == 403
    assert _error(resp)["code"] == "INVALID_STATE"


def test_discogs_callback_unknown_token(client):
    resp = client.get(
        "/api/auth/discogs/callback",
        params={"oauth_token": "forged", "oauth_verifier": "v"},
        follow_redirects=False,
    )
    assert resp.status_code == 403
    assert _error(resp)["code"] == "INVALID_STATE"


def test_discogs_callback_denied(client):
    resp = client.get(
        "/api/auth/discogs/callback", params={"oauth_token": "rt"}, follow_redirects=False
    )
    assert resp.status_code == 403
    assert _error(resp)["code"] == "AUTH_DENIED"


def test_discogs_start_upstream_rejects(client, monkeypatch):
    monkeypatch.setattr(
        discogs,
        "request_token",
        AsyncMock(side_effect=discogs.DiscogsError(401, "Discogs returned 401")),
    )
    resp = client.post("/api/auth/discogs/start")
    assert resp.status_code == 400
    assert _error(resp)["code"] == "DISCOGS_ERROR"


def test_discogs_disconnect(client, connect_discogs):
    connect_discogs()
    assert client.post("/api/auth/discogs/disconnect").json() == {"success": True}
    assert client.get("/api/auth/status").json()["discogs_connected"] is False


def test_error_envelope_has_request_id(client):
    resp = client.get("/api/auth/lastfm/callback", follow_redirects=False)
    error = _error(resp)
    assert set(error) == {"code", "message", "request_id"}
    assert len(error["request_id"]) == 36
