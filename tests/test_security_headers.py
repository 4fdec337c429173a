"""Tests for security headers and the health endpoints."""

import os
from unittest.mock import patch

from conftest import USER_TEST_PASSWORD


class TestSecurityHeaders:
    def test_headers_on_health_check(self, client):
        with patch.dict(os.environ, {"ENVIRONMENT": "dev"}):
            response = client.get("/api-health")

        assert response.status_code == 200
        assert "default-src 'self'" in response.headers["Content-Security-Policy"]
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert "Referrer-Policy" in response.headers
        assert "Strict-Transport-Security" not in response.headers

    def test_hsts_in_production(self, client):
        with patch.dict(os.environ, {"ENVIRONMENT": "prod"}):
            response = client.get("/ping")

        hsts = response.headers["Strict-Transport-Security"]
        assert "max-age=31536000" in hsts
        assert "includeSubDomains" in hsts

    def test_login_responses_are_not_cached(self, client, regular_user):
        response = client.post(
            "/auth",
            json={"email": "user@test.com", "password": USER_TEST_PASSWORD},
            environ_base={"REMOTE_ADDR": "10.3.3.3"},
        )
        assert response.status_code == 200
        assert response.headers["Cache-Control"] == "no-store"


class TestHealth:
    def test_health_check(self, client):
        data = client.get("/api-health").json
        assert data["status"] == "ok"
        assert data["database"] == "healthy"

    def test_ping(self, client):
        assert client.get("/ping").json["message"] == "pong"

    def test_unknown_route_is_json(self, client):
        response = client.get("/api/v1/does-not-exist")
        assert response.status_code == 404
        assert response.json["detail"] == "Not Found"
