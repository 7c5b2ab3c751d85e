"""API tests for health routes."""

import pytest


@pytest.mark.api
def test_health_check(client):
    """GET /health should report the service as healthy."""
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "billing-core-api"}


@pytest.mark.api
def test_detailed_health_reports_gateways(client):
    """GET /health/detailed should include the store and gateway checks."""
    response = client.get("/health/detailed")

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "healthy"
    assert payload["checks"]["database"] == "healthy"
    assert payload["checks"]["clearinghouse"] == "healthy"
    assert payload["checks"]["denialintelligence"] == "healthy"


@pytest.mark.api
def test_root(client):
    """GET / should describe the API."""
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["name"] == "Billing Core API"
    assert response.json()["environment"] == "testing"
