"""Tests for health, request ids, security headers and rate limiting."""

import pytest
from fastapi.testclient import TestClient

from seatline.main import create_app
from seatline.middleware.rate_limiter import WINDOW_SECONDS, RateLimiterMiddleware


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_request_id_is_echoed(client):
    resp = client.get("/health", headers={"X-Request-ID": "abc123"})
    assert resp.headers["X-Request-ID"] == "abc123"

    generated = client.get("/health").headers["X-Request-ID"]
    assert len(generated) == 32


def test_error_envelope_carries_request_id(client):
    resp = client.get("/api/v1/roles/nobody", headers={"X-Request-ID": "req-1"})
    assert resp.json()["error"]["request_id"] == "req-1"
    assert resp.json()["error"]["type"] == "not_found"


def test_security_headers(client):
    resp = client.get("/health")
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"


@pytest.fixture
def limited_client(settings):
    app = create_app(settings.model_copy(update={"RATE_LIMIT_STANDARD": 3, "RATE_LIMIT_SEND": 1}))
    with TestClient(app) as c:
        yield c


def test_standard_rate_limit(limited_client):
    for _ in range(3):
        assert limited_client.get("/api/v1/tables").status_code == 200

    resp = limited_client.get("/api/v1/tables")
    assert resp.status_code == 429
    assert resp.json()["error"]["code"] == "RATE_LIMITED"
    assert int(resp.headers["Retry-After"]) >= 1

    # Health checks are never limited
    assert limited_client.get("/health").status_code == 200


def test_send_rate_limit(limited_client):
    body = {"fromRoleId": "a", "toRoleId": "b", "text": "hi"}
    assert limited_client.post("/api/v1/messages", json=body).status_code == 404

    resp = limited_client.post("/api/v1/messages", json=body)
    assert resp.status_code == 429
    assert resp.json()["error"]["type"] == "rate_limit"


def test_idle_clients_are_forgotten(settings):
    limiter = RateLimiterMiddleware(create_app(settings), settings)
    start = limiter._last_sweep
    for client in ("10.0.0.1", "10.0.0.2", "10.0.0.3"):
        limiter._check_limit(limiter._standard_windows[client], 10, start)
        limiter._check_limit(limiter._send_windows[client], 10, start)

    # Too soon: nothing is swept yet
    limiter._sweep(start + 1)
    assert len(limiter._standard_windows) == 3

    limiter._check_limit(limiter._standard_windows["10.0.0.3"], 10, start + 30)
    limiter._sweep(start + WINDOW_SECONDS + 1)
    assert list(limiter._standard_windows) == ["10.0.0.3"]
    assert limiter._send_windows == {}

    limiter._sweep(start + 2 * WINDOW_SECONDS + 2)
    assert limiter._standard_windows == {}
