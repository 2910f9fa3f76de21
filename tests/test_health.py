"""Tests for the health endpoint."""

from fastapi.testclient import TestClient

from vibetrip.app.core.config import Settings
from vibetrip.app.main import create_app


def test_health_ok(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["status"] == "ok"
    assert body["has_gemini_api_key"] is True
    assert body["uptime_seconds"] >= 0
    assert "max_rss_mb" in body["memory"]
    assert body["circuit_breakers"] == {"gemini": "CLOSED", "maps": "CLOSED"}


def test_health_degraded_without_api_key():
    app = create_app(Settings(_env_file=None, gemini_api_key=""), use_async_logging=False)

    with TestClient(app) as client:
        response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "degraded"
    assert response.json()["has_gemini_api_key"] is False


def test_health_degraded_when_circuit_open(client, container):
    container.maps_breaker._open()

    body = client.get("/api/health").json()

    assert body["status"] == "degraded"
    assert body["circuit_breakers"]["maps"] == "OPEN"
