"""
Sliding-window rate limiter
"""
from types import SimpleNamespace

from fastapi import FastAPI
from fastapi.testclient import TestClient

from sitebooks.core.config import settings
from sitebooks.core.rate_limit import RateLimiter, RateLimitMiddleware


def fake_request(path, method="POST", headers=None, host="10.0.0.7"):
    return SimpleNamespace(
        url=SimpleNamespace(path=path),
        method=method,
        headers=headers or {},
        client=SimpleNamespace(host=host),
    )


def test_login_is_limited_to_five_attempts():
    limiter = RateLimiter()
    for _ in range(5):
        allowed, _ = limiter.is_allowed(fake_request("/api/v1/auth/login"))
        assert allowed

    allowed, info = limiter.is_allowed(fake_request("/api/v1/auth/login"))
    assert not allowed
    assert info["limit"] == 5
    assert info["retry_after"] >= 1


def test_reads_outside_auth_are_not_limited():
    limiter = RateLimiter(limits={"default": (1, 60)})
    for _ in range(3):
        allowed, info = limiter.is_allowed(fake_request("/api/v1/projects", method="GET"))
        assert allowed
        assert info is None


def test_clients_are_counted_separately():
    limiter = RateLimiter(limits={"default": (1, 60)})
    assert limiter.is_allowed(fake_request("/api/v1/expenses"))[0]
    assert not limiter.is_allowed(fake_request("/api/v1/expenses"))[0]
    assert limiter.is_allowed(fake_request("/api/v1/expenses", host="10.0.0.8"))[0]
    assert limiter.is_allowed(fake_request("/api/v1/expenses", headers={"X-Forwarded-For": "172.16.4.2, 10.0.0.1"}))[0]


def test_path_prefix_picks_the_limit():
    limiter = RateLimiter()
    allowed, info = limiter.is_allowed(fake_request("/api/v1/bank-transactions"))
    assert allowed
    assert info["limit"] == 20
    assert info["remaining"] == 19


def test_middleware_answers_429(monkeypatch):
    monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", True)
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, limiter=RateLimiter(limits={"default": (2, 60)}))

    @app.post("/api/v1/ping")
    async def ping():
        return {"ok": True}

    client = TestClient(app)
    first = client.post("/api/v1/ping")
    assert first.headers["X-RateLimit-Remaining"] == "1"
    client.post("/api/v1/ping")

    response = client.post("/api/v1/ping")
    assert response.status_code == 429
    assert response.json()["error"] == "Too many requests. Please try again later."
    assert "Retry-After" in response.headers
