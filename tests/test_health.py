"""
tests/test_health.py -- Integration tests for GET /api/health.

Covers:
  - 200 response with status, version and database fields
  - no authentication required
  - 503 "degraded" when the database does not answer
"""

from __future__ import annotations

from sqlalchemy.exc import OperationalError

from api.main import API_VERSION


def test_health_returns_200(api_client):
    client, _, _ = api_client
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "version": API_VERSION, "database": "ok"}


def test_health_no_auth_required(api_client):
    """Health endpoint is accessible without any authentication headers."""
    client, _, _ = api_client
    client.cookies.clear()
    resp = client.get("/api/health", headers={})
    assert resp.status_code == 200


def test_health_reports_database_failure(api_client, monkeypatch):
    client, _, _ = api_client

    def broken_ping() -> bool:
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    monkeypatch.setattr(client.app.state.user_store, "ping", broken_ping)
    resp = client.get("/api/health")
    assert resp.status_code == 503
    data = resp.json()
    assert data["status"] == "degraded"
    assert data["database"] == "error"
