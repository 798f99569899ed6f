"""Shared fixtures: isolated settings and a temporary database per test."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from app import discogs, lastfm
from app.config import get_settings
from app.main import app
from core.models import Release, Track


@pytest.fixture(autouse=True)
def _setup_env(monkeypatch, tmp_path):
    """Provide env vars so Settings can load, pointing at a temp database."""
    monkeypatch.setenv("DB_PATH", str(tmp_path / "test.db"))
    monkeypatch.setenv("SECRET_KEY", "test_secret")
    monkeypatch.setenv("LASTFM_API_KEY", "test_api_key")
    monkeypatch.setenv("LASTFM_API_SECRET", "test_shared_secret")
    monkeypatch.setenv("LASTFM_CALLBACK_URL", "http://testserver/api/auth/lastfm/callback")
    monkeypatch.setenv("DISCOGS_CONSUMER_KEY", "test_ck")
    monkeypatch.setenv("DISCOGS_CONSUMER_SECRET", "test_cs")
    monkeypatch.setenv("DISCOGS_CALLBACK_URL", "http://testserver/api/auth/discogs/callback")
    monkeypatch.setenv("PUBLIC_APP_ORIGIN", "http://localhost:5173")
    monkeypatch.setenv("DEV_MODE", "false")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()



@pytest.fixture
def client(_setup_env):
    """TestClient with the lifespan running (database opened on a temp path)."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def connect_lastfm(client, monkeypatch):
    """Connect Last.fm for the client's cookie session through the callback."""

    def _connect(session_key: str = "sk") -> None:
        monkeypatch.setattr(lastfm, "get_session_key", AsyncMock(return_value=session_key))
        resp = client.get(
            "/api/auth/lastfm/callback", params={"token": "tok"}, follow_redirects=False
        )
        assert resp.status_code == 302

    return _connect


@pytest.fixture
def connect_discogs(client, monkeypatch):
    """Connect Discogs for the client's cookie session through start + callback."""

    def _connect() -> None:
        monkeypatch.setattr(discogs, "request_token", AsyncMock(return_value=("rt", "rs")))
        monkeypatch.setattr(discogs, "access_token", AsyncMock(return_value=("at", "as")))
        assert client.post("/api/auth/discogs/start").status_code == 200
        resp = client.get(
            "/api/auth/discogs/callback",
            params={"oauth_token": "rt", "oauth_verifier": "v"},
            follow_redirects=False,
        )
        assert resp.status_code == 302

    return _connect


def _build_release(*durations, release_id: str = "249504") -> Release:
    tracks = []
    for i, duration in enumerate(durations):
        side = "A" if i < 2 else "B"
        tracks.append(
            Track(
                index=i,
                position=f"{side}{i % 2 + 1}",
                title=f"Track {i + 1}",
                artist="Test Artist",
                duration_sec=duration,
                side=side,
            )
        )
    return Release(id=release_id, title="Test Album", artist="Test Artist", tracks=tuple(tracks))


@pytest.fixture
def make_release():
    """Builder: one track per duration, positions A1, A2, B1, B2, ..."""
    return _build_release
