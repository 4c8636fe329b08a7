"""
tests/test_health.py -- Integration tests for GET /api/v1/health.

Covers:
  - 200 response with status, version, and components fields
  - components.database reports 'ok' against the in-memory DB
  - No authentication required
  - every response carries an X-Request-ID
"""

from __future__ import annotations


def test_health_returns_200_with_components(api_client):
    """Health endpoint returns 200 with status, version, and components."""
    resp = api_client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert "version" in data
    assert data["components"]["app"] == "ok"
    assert data["components"]["database"] == "ok"


def test_health_no_auth_required(api_client):
    """Health endpoint is accessible without any cookie."""
    resp = api_client.get("/api/v1/health", headers={})
    assert resp.status_code == 200


def test_request_id_header(api_client):
    first = api_client.get("/api/v1/health").headers["x-request-id"]
    second = api_client.get("/api/v1/health").headers["x-request-id"]
    assert len(first) == 32
    assert first != second


def test_unknown_host_rejected(api_client):
    resp = api_client.get("/api/v1/health", headers={"Host": "evil.example.com"})
    assert resp.status_code == 400
