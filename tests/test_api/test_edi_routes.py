"""API tests for EDI routes.
Exercises the routes against the mock clearinghouse and the in-memory store.
"""

import pytest

from src.services.edi.mock_clearinghouse import MockClearinghouse

CLAIM = {
    "claim_id": "CLM001",
    "payer_id": "ACME01",
    "payer_name": "ACME HEALTH",
    "patient_id": "MBR123",
    "patient_last_name": "DOE",
    "patient_first_name": "JANE",
    "claim_amount": 150,
    "primary_diagnosis": "J06.9",
    "service_code": "0450",
}


@pytest.mark.api
def test_eligibility_without_record_is_unknown(client):
    """POST /eligibility should answer unknown when nothing was verified."""
    response = client.post(
        "/api/v1/edi/eligibility",
        json={"patient_id": "PAT-1", "payer_id": "acme", "service_date": "2024-03-01"},
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "unknown"
    assert payload["is_eligible"] is False
    assert payload["benefits"] == []


@pytest.mark.api
def test_eligibility_requires_payer(client):
    response = client.post(
        "/api/v1/edi/eligibility",
        json={"patient_id": "PAT-1", "service_date": "2024-03-01"},
    )
    assert response.status_code == 422


@pytest.mark.api
def test_claim_status(client):
    """POST /claim-status should round trip through the simulator."""
    response = client.post(
        "/api/v1/edi/claim-status",
        json={"claim_id": "CLM9", "patient_id": "MBR123", "payer_id": "ACME01", "service_date": "2024-03-01"},
    )

    assert response.status_code == 200
    assert response.json()["claim_id"] == "CLM9"
    assert response.json()["status"] in {"pending", "processing", "paid", "denied", "rejected"}


@pytest.mark.api
def test_claim_status_requires_claim_id(client):
    response = client.post(
        "/api/v1/edi/claim-status",
        json={"claim_id": "", "payer_id": "ACME01", "service_date": "2024-03-01"},
    )
    assert response.status_code == 422
    assert response.json()["detail"] == "Claim status inquiry requires a claim id"


@pytest.mark.api
def test_submit_claim(client):
    """POST /claims should return a processed transaction."""
    response = client.post("/api/v1/edi/claims", json=CLAIM)

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "processed"
    assert payload["acknowledgment_code"] == "A"
    assert payload["payload"].startswith("ISA*")


@pytest.mark.api
def test_submit_rejected_claim(client):
    response = client.post("/api/v1/edi/claims", json=dict(CLAIM, claim_amount=0))

    assert response.status_code == 200
    assert response.json()["status"] == "rejected"


@pytest.mark.api
def test_submit_claim_with_bad_control_numbers(client):
    response = client.post("/api/v1/edi/claims", json=dict(CLAIM, control={"isa": "1"}))

    assert response.status_code == 422
    assert response.json()["detail"] == "Unknown control number fields: isa"


@pytest.mark.api
def test_remittance_by_payer(client):
    response = client.post("/api/v1/edi/remittance", json={"payer_id": "ACME01"})

    assert response.status_code == 200
    assert len(response.json()["claims"]) == 2


@pytest.mark.api
def test_remittance_requires_input(client):
    response = client.post("/api/v1/edi/remittance", json={})
    assert response.status_code == 422


@pytest.mark.api
def test_generate_then_parse(client):
    """Generated 837 content is tokenizable but is not a parseable response."""
    generated = client.post(
        "/api/v1/edi/generate/837",
        json={"data": CLAIM, "control": {"interchange": "000000042", "group": "42", "transaction": "0042"}},
    )
    assert generated.status_code == 200
    content = generated.json()["content"]
    assert "ISA*" in content
    assert "000000042" in content

    parsed = client.post("/api/v1/edi/parse", json={"content": content})
    assert parsed.status_code == 422
    assert "Unsupported response transaction set: 837" in parsed.json()["detail"]


@pytest.mark.api
def test_parse_remittance(client):
    remittance = client.post("/api/v1/edi/remittance", json={"payer_id": "SUMMIT"})
    assert remittance.status_code == 200

    parsed = client.post("/api/v1/edi/parse", json={"content": MockClearinghouse().remittance("SUMMIT")})
    assert parsed.status_code == 200
    assert parsed.json()["type"] == "RemittanceAdvice"
    assert parsed.json()["result"]["payer_name"] == "PAYER SUMMIT"


@pytest.mark.api
def test_generate_unknown_type(client):
    response = client.post("/api/v1/edi/generate/999", json={"data": {}})
    assert response.status_code == 422
