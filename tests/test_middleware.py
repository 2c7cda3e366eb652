"""
test_middleware.py — Tests for request/response middleware

Verifies request ID generation, security headers and the structured
error envelope produced by the handlers in main.py.

Called by: pytest
Depends on: app/main.py (middleware, exception handlers), tests/conftest.py (client fixture)
"""

from fastapi.testclient import TestClient


def test_request_id_header_present(client):
    """Every response should include X-Request-ID."""
    resp = client.get("/health")
    assert "X-Request-ID" in resp.headers
    assert len(resp.headers["X-Request-ID"]) == 8  # uuid4().hex[:8]


def test_request_id_unique_per_request(client):
    ids = {client.get("/health").headers["X-Request-ID"] for _ in range(5)}
    assert len(ids) == 5


def test_health_returns_status_and_version(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "version": "1.0.0"}


def test_security_headers(client):
    resp = client.get("/health")
    assert resp.headers.get("X-Content-Type-Options") == "nosniff"
    assert resp.headers.get("X-Frame-Options") == "DENY"
    assert resp.headers.get("Referrer-Policy") == "strict-origin-when-cross-origin"
    assert resp.headers.get("X-API-Version") == "v1"


def test_404_envelope_carries_request_id(client):
    resp = client.get("/nonexistent-route-xyz")
    assert resp.status_code == 404
    data = resp.json()
    assert data["status_code"] == 404
    assert data["request_id"] == resp.headers["X-Request-ID"]
    assert "X-Content-Type-Options" in resp.headers


def test_catch_all_handler_registered():
    from app.main import app

    assert Exception in app.exception_handlers


def test_unexpected_error_is_generic_500(db_session):
    """Internal failures answer 500 without leaking the exception text."""
    from app.database import get_db
    from app.main import app

    def _broken_db():
        raise RuntimeError("secret connection string in here")
        yield  # pragma: no cover

    app.dependency_overrides[get_db] = _broken_db
    try:
        with TestClient(app, raise_server_exceptions=False) as c:
            resp = c.get("/api/catalog/warehouses")
    finally:
        app.dependency_overrides.clear()
    assert resp.status_code == 500
    assert resp.json()["error"] == "Internal server error"
    assert "secret" not in resp.text
