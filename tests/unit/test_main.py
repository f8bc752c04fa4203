"""
Unit tests for FastAPI application.
"""

import pytest
from fastapi.testclient import TestClient

from pipeline_sync import __version__
from pipeline_sync.main import app


@pytest.fixture
def client():
    """Create a test client for the FastAPI application. Startup hooks do not run."""
    return TestClient(app)


def test_health_check(client):
    """Test health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["version"] == __version__
    assert data["running_monitors"] == 0


def test_root_endpoint(client):
    """Test root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert "message" in data
    assert "version" in data
    assert data["docs"] == "/docs"
    assert data["endpoints"]["github_webhook"] == "/webhooks/github"


def test_request_id_is_echoed(client):
    """Test that the request id header is propagated."""
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_request_id_is_generated(client):
    response = client.get("/health")
    assert len(response.headers["X-Request-ID"]) == 32


def test_routes_without_services_return_503(client):
    """Test that service-backed routes fail cleanly before startup."""
    response = client.post("/api/docker/deploy-failure", json={"feature_name": "feature-x"})
    assert response.status_code == 503
