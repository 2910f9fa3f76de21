"""Tests for administrative endpoints."""

import pytest

ADMIN_HEADERS = {"x-admin-token": "test-admin-token"}


class TestAdminAuth:
    @pytest.mark.parametrize("headers", [{}, {"x-admin-token": "wrong"}, {"x-admin-token": ""}])
    def test_rejects_missing_or_wrong_token(self, client, headers):
        response = client.post(
            "/api/admin/rate-limit/reset", json={"ip": "1.2.3.4"}, headers=headers
        )

        assert response.status_code == 403
        assert response.json()["error"] == "Forbidden"

    def test_token_whitespace_is_ignored(self, client):
        response = client.post(
            "/api/admin/cache/clear", headers={"x-admin-token": " test-admin-token "}
        )

        assert response.status_code == 200


class TestRateLimitReset:
    def test_reset_restores_model_call_quota(self, client):
        body = {"model": "gemini-2.5-flash", "contents": "Hello"}
        for _ in range(5):
            client.post("/api/gemini/generate", json=body)
        assert client.post("/api/gemini/generate", json=body).status_code == 429

        response = client.post(
            "/api/admin/rate-limit/reset",
            json={"ip": "testclient", "limiter": "gemini"},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "limiter": "gemini", "reset": True}
        assert client.post("/api/gemini/generate", json=body).status_code == 200

    def test_unknown_client_reports_nothing_reset(self, client):
        response = client.post(
            "/api/admin/rate-limit/reset", json={"ip": "198.51.100.1"}, headers=ADMIN_HEADERS
        )

        assert response.json()["reset"] is False
        assert response.json()["limiter"] == "global"

    def test_invalid_limiter_name(self, client):
        response = client.post(
            "/api/admin/rate-limit/reset",
            json={"ip": "1.2.3.4", "limiter": "maps"},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 400


class TestCircuitBreakerReset:
    def test_reset_closes_breaker(self, client, container):
        container.gemini_breaker._open()
        assert container.gemini_breaker.state.value == "OPEN"

        response = client.post("/api/admin/circuit-breakers/gemini/reset", headers=ADMIN_HEADERS)

        assert response.status_code == 200
        assert response.json()["breaker"]["state"] == "CLOSED"

    def test_unknown_breaker(self, client):
        response = client.post("/api/admin/circuit-breakers/nope/reset", headers=ADMIN_HEADERS)

        assert response.status_code == 404


def test_cache_clear(client, container):
    client.post("/api/gemini/generate", json={"model": "gemini-2.5-flash", "contents": "Hi"})
    assert len(container.caches["general"]) == 1

    response = client.post("/api/admin/cache/clear", headers=ADMIN_HEADERS)

    assert response.status_code == 200
    assert len(container.caches["general"]) == 0
