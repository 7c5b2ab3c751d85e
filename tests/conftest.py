"""
Pytest Configuration and Fixtures.
Shared test fixtures for all test modules.
"""

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from src.api.config import Settings  # noqa: E402
from src.api.main import create_app  # noqa: E402
from src.db.memory_store import InMemoryDataStore  # noqa: E402
from src.services.audit.authorization_audit import AuditActor  # noqa: E402
from src.services.container import ServiceContainer  # noqa: E402

COMPANY_ID = "company-1"
OTHER_COMPANY_ID = "company-2"
USER_ID = "user-1"


# =============================================================================
# Sample Rows
# =============================================================================


def sample_tables() -> dict[str, list[dict]]:
    """A small tenant with institutional and professional claims."""
    return {
        "claim_denials": [
            {
                "id": "d1",
                "claim_id": "c1",
                "denial_code": "CO-50",
                "denial_reason": "Non-covered Services",
                "denied_amount": "120.50",
                "denial_date": "2024-03-10",
                "company_id": COMPANY_ID,
            },
            {
                "id": "d2",
                "claim_id": "c2",
                "denial_code": "CO-16",
                "denial_reason": "Prior Authorization Required",
                "denied_amount": 800,
                "denial_date": "2024-03-12",
                "company_id": COMPANY_ID,
            },
            {
                "id": "d3",
                "claim_id": "c3",
                "denial_code": "CO-1",
                "denial_reason": "Deductible Amount",
                "denied_amount": 50,
                "denial_date": "2024-03-08",
                "company_id": None,
            },
            {
                "id": "d4",
                "claim_id": "c4",
                "denial_code": "CO-11",
                "denial_reason": "Diagnosis Not Covered",
                "denied_amount": 300,
                "denial_date": "2024-03-11",
                "company_id": OTHER_COMPANY_ID,
            },
        ],
        "claims": [
            {
                "id": "c1",
                "claim_number": "CLM-1001",
                "patient_name": "Jane Doe",
                "payer_name": "Acme Health",
                "procedure_codes": ["99213"],
                "diagnosis_codes": ["J06.9"],
                "service_date_from": "2024-02-20",
                "status": "denied",
            },
            {
                "id": "c3",
                "claim_number": "CLM-1003",
                "patient_name": "Institutional Patient",
                "payer_name": "Acme Health",
                "procedure_codes": ["0450"],
                "diagnosis_codes": ["R07.9"],
                "status": "denied",
            },
        ],
        "professional_claims": [
            {
                "id": "c2",
                "claim_number": "PRO-2002",
                "patient_name": "John Roe",
                "payer_name": "Summit Mutual",
                "procedure_codes": ["72148"],
                "diagnosis_codes": ["M54.5"],
                "prior_auth_number": "AUTH-9",
                "status": "denied",
            },
            {
                "id": "c3",
                "claim_number": "PRO-2003",
                "patient_name": "Professional Patient",
                "payer_name": "Summit Mutual",
                "status": "denied",
            },
            {
                "id": "c4",
                "claim_number": "PRO-2004",
                "patient_name": "Other Tenant",
                "diagnosis_codes": ["E11.9"],
                "status": "denied",
            },
        ],
        "appeal_workflows": [],
        "profiles": [{"id": USER_ID, "full_name": "Jane Smith"}],
        "authorization_audit_logs": [],
        "authorization_tasks": [
            {"id": "t1", "status": "open", "title": "Call payer"},
            {"id": "t2", "status": "open", "title": "Fax records"},
        ],
        "authorization_requests": [
            {"id": "a1", "status": "pending", "payer_name": "Acme Health"},
            {"id": "a2", "status": "pending", "payer_name": "Summit Mutual"},
        ],
        "patients": [],
        "eligibility_verifications": [],
        "report_definitions": [],
    }


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def settings():
    """Settings for the in-memory demo stack."""
    return Settings(ENVIRONMENT="testing", DATA_BACKEND="memory", LOG_LEVEL="WARNING")


@pytest.fixture
def store():
    """In-memory store seeded with the sample tenant."""
    return InMemoryDataStore(sample_tables())


@pytest.fixture
def actor():
    return AuditActor(id=USER_ID, email="jane.smith@clinic.test")


@pytest.fixture
def container(settings, store):
    """Service container over the seeded store."""
    return ServiceContainer.from_settings(settings, store=store)


@pytest.fixture
def client(settings, container):
    """Test client for the API with the seeded container."""
    app = create_app(settings, container)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers():
    """Headers identifying the sample actor."""
    return {"X-User-Id": USER_ID, "X-User-Email": "jane.smith@clinic.test"}


# Configure pytest markers
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "api: mark test as an API test"
    )
