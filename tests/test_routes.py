"""Tests for the issuance and health endpoints."""

from starlette.testclient import TestClient

from csrf_guard.config import CSRFSettings


def test_issuance_requires_session_cookie(app):
    client = TestClient(app)

    response = client.get("/api/csrf-token")

    assert response.status_code == 401
    assert response.json()["code"] == "SESSION_TOKEN_MISSING"
    assert "no-store" in response.headers["cache-control"]
    assert "csrfToken" not in response.json()


def test_issuance_ignores_session_in_query_string(app):
    client = TestClient(app)

    response = client.get("/api/csrf-token?token=" + "s" * 40)

    assert response.status_code == 401


def test_issuance_returns_token_and_lifetime(app, authority, token_store):
    client = TestClient(app)
    client.cookies.set("sessionToken", "session-1")

    response = client.get("/api/csrf-token")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["expiresIn"] == 3_600_000
    assert len(body["csrfToken"]) == 64
    assert body["csrfToken"] in token_store
    assert "no-store" in response.headers["cache-control"]
    assert response.headers["pragma"] == "no-cache"


def test_issuance_is_rate_limited_per_client(make_app):
    app = make_app(CSRFSettings(rate_limit_max=2, rate_limit_window_seconds=60))
    client = TestClient(app)
    client.cookies.set("sessionToken", "session-1")

    assert client.get("/api/csrf-token").status_code == 200
    assert client.get("/api/csrf-token").status_code == 200
    response = client.get("/api/csrf-token")

    assert response.status_code == 429
    body = response.json()
    assert body["code"] == "CSRF_RATE_LIMITED"
    assert 1 <= body["retryAfter"] <= 60
    assert int(response.headers["retry-after"]) == body["retryAfter"]
    assert "no-store" in response.headers["cache-control"]
    assert "csrfToken" not in body


def test_health_reports_store_backend(app):
    client = TestClient(app)

    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["store"] == "memory"
    assert body["timestamp"].endswith("Z")


def test_lifespan_closes_authority(make_app, authority):
    closed = []

    async def close():
        closed.append(True)

    authority.close = close
    with TestClient(make_app()) as client:
        assert client.get("/health").status_code == 200

    assert closed == [True]
