"""Smoke tests for FastAPI app startup and /api/health endpoint."""

from app.main import app


def test_health_returns_ok(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["dev_mode"] is False
    assert isinstance(data["timestamp"], int)


def test_health_version_matches_app(client):
    data = client.get("/api/health").json()
    assert data["version"] == app.version


def test_cors_allows_public_origin(client):
    response = client.options(
        "/api/health",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "http://localhost:5173"
    assert response.headers["access-control-allow-credentials"] == "true"


def test_unknown_route_is_404(client):
    assert client.get("/api/nope").status_code == 404
