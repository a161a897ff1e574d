"""Unit tests for rate limiting and security headers middleware

Tests cover:
- Requests under limit allowed
- Minute and hour limit enforcement
- Health endpoint bypass
- Per-IP isolation and forwarded header handling
- CORS headers on 429 responses
- Security headers
"""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from codelens.api.middleware.rate_limit import RateLimitMiddleware
from codelens.api.middleware.security_headers import BASE_HEADERS, SecurityHeadersMiddleware
from codelens.observability.telemetry import get_counter

ORIGIN = "http://localhost:3000"


def build_app(**limits) -> FastAPI:
    test_app = FastAPI()
    test_app.add_middleware(
        RateLimitMiddleware,
        trust_forwarded=limits.pop("trust_forwarded", True),
        cors_origins=[ORIGIN],
        **limits,
    )

    @test_app.get("/api/test")
    async def test_endpoint():
        return {"status": "ok"}

    @test_app.get("/health")
    async def health():
        return {"status": "healthy"}

    return test_app


@pytest.fixture
def client():
    """Low limits for testing"""
    return TestClient(build_app(requests_per_minute=5, requests_per_hour=20))


def test_requests_under_limit_allowed(client):
    for _ in range(3):
        response = client.get("/api/test")
        assert response.status_code == 200
        assert response.headers["X-RateLimit-Limit-Minute"] == "5"

    assert response.headers["X-RateLimit-Remaining-Minute"] == "2"
    assert response.headers["X-RateLimit-Remaining-Hour"] == "17"


def test_minute_limit_enforced(client):
    for _ in range(5):
        assert client.get("/api/test").status_code == 200

    response = client.get("/api/test")
    assert response.status_code == 429
    assert "per minute" in response.json()["detail"]
    assert response.json()["retry_after"] == 60
    assert response.headers["Retry-After"] == "60"
    assert get_counter("api.rate_limited") == 1


def test_hour_limit_enforced():
    client = TestClient(build_app(requests_per_minute=100, requests_per_hour=3))

    for _ in range(3):
        assert client.get("/api/test").status_code == 200

    response = client.get("/api/test")
    assert response.status_code == 429
    assert "per hour" in response.json()["detail"]
    assert response.headers["Retry-After"] == "3600"


def test_health_bypasses_rate_limit(client):
    for _ in range(6):
        client.get("/api/test")

    response = client.get("/health")
    assert response.status_code == 200
    assert "X-RateLimit-Limit-Minute" not in response.headers


def test_per_ip_isolation(client):
    for _ in range(5):
        client.get("/api/test", headers={"X-Forwarded-For": "192.168.1.1"})

    assert client.get("/api/test", headers={"X-Forwarded-For": "192.168.1.1"}).status_code == 429
    assert client.get("/api/test", headers={"X-Forwarded-For": "192.168.1.2"}).status_code == 200


def test_forwarded_chain_uses_first_ip(client):
    for _ in range(5):
        client.get("/api/test", headers={"X-Forwarded-For": "203.0.113.1, 10.0.0.1"})

    response = client.get("/api/test", headers={"X-Forwarded-For": "203.0.113.1, 10.0.0.2"})
    assert response.status_code == 429


def test_forwarded_header_ignored_when_untrusted():
    """Spoofed X-Forwarded-For must not give a client fresh buckets"""
    client = TestClient(
        build_app(requests_per_minute=2, requests_per_hour=10, trust_forwarded=False)
    )

    client.get("/api/test", headers={"X-Forwarded-For": "10.0.0.1"})
    client.get("/api/test", headers={"X-Forwarded-For": "10.0.0.2"})

    response = client.get("/api/test", headers={"X-Forwarded-For": "10.0.0.3"})
    assert response.status_code == 429


def test_invalid_forwarded_ip_ignored(client):
    for _ in range(5):
        client.get("/api/test", headers={"X-Forwarded-For": "not-an-ip"})

    # All five were counted against the socket address
    assert client.get("/api/test").status_code == 429


def test_rejection_keeps_cors_header_for_allowed_origin():
    client = TestClient(build_app(requests_per_minute=1, requests_per_hour=10))
    client.get("/api/test")

    allowed = client.get("/api/test", headers={"Origin": ORIGIN})
    assert allowed.status_code == 429
    assert allowed.headers["Access-Control-Allow-Origin"] == ORIGIN

    other = client.get("/api/test", headers={"Origin": "https://evil.example"})
    assert "Access-Control-Allow-Origin" not in other.headers


def test_preflight_not_counted():
    client = TestClient(build_app(requests_per_minute=1, requests_per_hour=10))
    for _ in range(3):
        client.options("/api/test")

    assert client.get("/api/test").status_code == 200


class TestSecurityHeaders:
    @staticmethod
    def build(monkeypatch, env: str) -> TestClient:
        monkeypatch.setenv("CODELENS_ENV", env)
        test_app = FastAPI()
        test_app.add_middleware(SecurityHeadersMiddleware)

        @test_app.get("/api/test")
        async def test_endpoint():
            return {"status": "ok"}

        return TestClient(test_app)

    def test_headers_added(self, monkeypatch):
        response = self.build(monkeypatch, "development").get("/api/test")
        for name, value in BASE_HEADERS.items():
            assert response.headers[name] == value
        assert "Strict-Transport-Security" not in response.headers

    def test_hsts_in_production(self, monkeypatch):
        response = self.build(monkeypatch, "production").get("/api/test")
        assert "max-age=31536000" in response.headers["Strict-Transport-Security"]
