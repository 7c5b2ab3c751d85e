"""
EDI Processing API Endpoints.

Provides:
- 270/271 eligibility lookup
- 276/277 claim status inquiry
- 837 claim submission with 999 acknowledgment
- 835 remittance processing
- X12 generation and parsing utilities
"""

from dataclasses import asdict
from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from src.api.deps import get_container
from src.core.enums import EDITransactionType
from src.core.exceptions import InputValidationError
from src.services.container import ServiceContainer
from src.services.edi.models import ClaimStatusRequest, EligibilityRequest
from src.services.edi.x12_base import X12ParseError
from src.services.edi.x12_generator import X12ControlNumbers
from src.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/api/v1/edi",
    tags=["edi"],
)


# =============================================================================
# Request Models
# =============================================================================


class EligibilityRequestBody(BaseModel):
    patient_id: str = Field(..., min_length=1)
    subscriber_id: str = ""
    payer_id: str = Field(..., min_length=1)
    service_date: date
    service_codes: list[str] = Field(default_factory=list)
    diagnosis_codes: list[str] = Field(default_factory=list)


class ClaimStatusRequestBody(BaseModel):
    claim_id: str
    patient_id: str = ""
    payer_id: str
    service_date: date
    payer_name: str = ""
    patient_first_name: str = ""
    patient_last_name: str = ""
    claim_amount: float = 0.0


class RemittanceRequestBody(BaseModel):
    content: Optional[str] = Field(None, description="Raw 835 interchange")
    payer_id: Optional[str] = Field(None, description="Pull the next remittance for this payer")


class ControlNumbersBody(BaseModel):
    interchange: str = "000000001"
    group: str = "1"
    transaction: str = "0001"


class GenerateRequestBody(BaseModel):
    data: dict[str, Any] = Field(default_factory=dict)
    control: Optional[ControlNumbersBody] = None


class ParseRequestBody(BaseModel):
    content: str = Field(..., min_length=1)


# =============================================================================
# Endpoints
# =============================================================================


@router.post("/eligibility", summary="Check patient eligibility")
async def check_eligibility(
    body: EligibilityRequestBody,
    company_id: Optional[str] = Query(None),
    container: ServiceContainer = Depends(get_container),
) -> dict[str, Any]:
    response = await container.edi.check_eligibility(EligibilityRequest(**body.model_dump()), company_id)
    return asdict(response)


@router.post("/claim-status", summary="Inquire claim status (276/277)")
async def check_claim_status(
    body: ClaimStatusRequestBody,
    container: ServiceContainer = Depends(get_container),
) -> dict[str, Any]:
    response = await container.edi.check_claim_status(ClaimStatusRequest(**body.model_dump()))
    return asdict(response)


@router.post("/claims", summary="Submit an 837 claim")
async def submit_claim(
    claim: dict[str, Any],
    container: ServiceContainer = Depends(get_container),
) -> dict[str, Any]:
    transaction = await container.edi.submit_claim(claim)
    return asdict(transaction)


@router.post("/remittance", summary="Process an 835 remittance")
async def process_remittance(
    body: RemittanceRequestBody,
    container: ServiceContainer = Depends(get_container),
) -> dict[str, Any]:
    remittance = await container.edi.process_remittance(body.model_dump(exclude_none=True))
    return asdict(remittance)


@router.post("/generate/{transaction_type}", summary="Render data as an X12 interchange")
async def generate_x12(
    transaction_type: EDITransactionType,
    body: GenerateRequestBody,
    container: ServiceContainer = Depends(get_container),
) -> dict[str, Any]:
    control = X12ControlNumbers(**body.control.model_dump()) if body.control else None
    content = container.edi.generate_x12_format(transaction_type.value, body.data, control)
    return {"transaction_type": transaction_type.value, "content": content}


@router.post("/parse", summary="Parse a 271, 277, 835 or 999 interchange")
async def parse_x12(
    body: ParseRequestBody,
    container: ServiceContainer = Depends(get_container),
) -> dict[str, Any]:
    try:
        parsed = container.edi.parse_response(body.content)
    except X12ParseError as e:
        raise InputValidationError(str(e)) from e
    return {"type": type(parsed).__name__, "result": asdict(parsed)}
