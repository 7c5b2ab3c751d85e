"""API tests for denial triage routes."""

import pytest

COMPANY_ID = "company-1"


@pytest.mark.api
def test_list_denials_scoped_to_company(client):
    """GET /denials should include the tenant's rows and unscoped rows."""
    response = client.get("/api/v1/denials", params={"company_id": COMPANY_ID})

    assert response.status_code == 200
    payload = response.json()
    assert [item["denial"]["id"] for item in payload["denials"]] == ["d2", "d1", "d3"]
    assert payload["total_denials"] == 3
    assert payload["total_denied_amount"] == pytest.approx(970.5)
    assert payload["denials"][2]["claim"]["patient_name"] == "Institutional Patient"


@pytest.mark.api
def test_list_denials_search(client):
    response = client.get("/api/v1/denials", params={"company_id": COMPANY_ID, "search": "john"})

    assert response.status_code == 200
    assert [item["denial"]["id"] for item in response.json()["denials"]] == ["d2"]


@pytest.mark.api
def test_triage(client):
    """POST /triage should return a ranked queue and clusters."""
    response = client.post("/api/v1/denials/triage", json={"company_id": COMPANY_ID})

    assert response.status_code == 200
    payload = response.json()
    assert len(payload["queue"]) == 3
    assert payload["queue"][0]["denial_id"] == "d2"
    assert payload["clusters"]


@pytest.mark.api
def test_trends(client):
    response = client.get("/api/v1/denials/trends", params={"period": "1y"})

    assert response.status_code == 200
    assert "top_denial_codes" in response.json()


@pytest.mark.api
def test_trends_rejects_unknown_period(client):
    response = client.get("/api/v1/denials/trends", params={"period": "decade"})
    assert response.status_code == 422


@pytest.mark.api
def test_analysis(client):
    """GET /{id}/analysis should return the appealability assessment."""
    response = client.get("/api/v1/denials/d2/analysis", params={"claim_id": "c2"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["appealability"]["can_appeal"] is True
    assert payload["category"]["type"] == "authorization"


@pytest.mark.api
def test_analysis_of_missing_denial(client):
    response = client.get("/api/v1/denials/nope/analysis", params={"claim_id": "c2"})

    assert response.status_code == 404
    assert response.json()["detail"] == "Denial not found: nope"


@pytest.mark.api
def test_generate_appeal_requires_login(client, store):
    response = client.post("/api/v1/denials/d2/appeal", json={})

    assert response.status_code == 422
    assert response.json()["detail"] == "You must be logged in to generate an appeal workflow"
    assert store.rows("appeal_workflows") == []


@pytest.mark.api
def test_generate_appeal(client, store, auth_headers):
    """POST /{id}/appeal should draft a workflow and audit it."""
    response = client.post(
        "/api/v1/denials/d2/appeal", json={"company_id": COMPANY_ID}, headers=auth_headers
    )

    assert response.status_code == 200
    assert "AUTH-9" in response.json()["appeal_letter"]
    assert len(store.rows("appeal_workflows")) == 1

    logs = store.rows("authorization_audit_logs")
    assert logs[0]["action"] == "appeal"
    assert logs[0]["user_name"] == "Jane Smith"


@pytest.mark.api
def test_generate_appeal_for_other_tenant(client, auth_headers):
    response = client.post(
        "/api/v1/denials/d4/appeal", json={"company_id": COMPANY_ID}, headers=auth_headers
    )
    assert response.status_code == 404


@pytest.mark.api
def test_non_appealable_denial(client, auth_headers):
    response = client.post(
        "/api/v1/denials/appeals",
        json={"denial_id": "d3", "claim_id": "c3"},
        headers=auth_headers,
    )

    assert response.status_code == 422
    assert response.json()["detail"] == "This denial is not appealable"


@pytest.mark.api
def test_appeal_workflow_submit_once(client, auth_headers):
    """A drafted appeal can be submitted exactly once."""
    created = client.post(
        "/api/v1/denials/appeals",
        json={"denial_id": "d2", "claim_id": "c2", "appeal_type": "expedited"},
        headers=auth_headers,
    )
    assert created.status_code == 200
    assert created.json()["status"] == "draft"
    assert created.json()["appeal_type"] == "expedited"

    appeal_id = created.json()["id"]
    submitted = client.post(f"/api/v1/denials/appeals/{appeal_id}/submit", headers=auth_headers)
    assert submitted.status_code == 200
    assert submitted.json()["status"] == "submitted"

    again = client.post(f"/api/v1/denials/appeals/{appeal_id}/submit", headers=auth_headers)
    assert again.status_code == 409


@pytest.mark.api
def test_submit_missing_appeal(client, auth_headers):
    response = client.post("/api/v1/denials/appeals/nope/submit", headers=auth_headers)
    assert response.status_code == 404
