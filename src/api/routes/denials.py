"""
Denial Triage API Endpoints.

Provides:
- Denial listing with search and totals
- Batched triage (ranked queue and clusters)
- Per-denial root-cause analysis
- Appeal drafting and submission
- Denial trends
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from src.api.deps import get_actor, get_container
from src.core.enums import AppealType, TrendPeriod
from src.core.exceptions import InputValidationError, RecordNotFoundError
from src.services.audit.authorization_audit import AuditActor, bind_actor
from src.services.container import ServiceContainer
from src.services.denials.models import DENIAL_LIST_DISPLAY_LIMIT, DenialClaimPair
from src.services.denials.triage import LOGIN_REQUIRED_MESSAGE
from src.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/api/v1/denials",
    tags=["denials"],
)


class TriageRequestBody(BaseModel):
    company_id: Optional[str] = None
    search: str = ""


class AppealRequestBody(BaseModel):
    company_id: Optional[str] = None


class AppealWorkflowRequestBody(BaseModel):
    denial_id: str = Field(..., min_length=1)
    claim_id: str = Field(..., min_length=1)
    appeal_type: AppealType = AppealType.STANDARD


async def _load_filtered(
    container: ServiceContainer, company_id: Optional[str], search: str
) -> list[DenialClaimPair]:
    pairs = await container.triage.load_denials(company_id)
    return container.triage.filter_pairs(pairs, search)


@router.get("", summary="List denials with their claims")
async def list_denials(
    company_id: Optional[str] = Query(None),
    search: str = Query(""),
    container: ServiceContainer = Depends(get_container),
) -> dict[str, Any]:
    filtered = await _load_filtered(container, company_id, search)
    totals = container.triage.compute_totals(filtered)
    return {
        "denials": [pair.to_dict() for pair in filtered[:DENIAL_LIST_DISPLAY_LIMIT]],
        "total_denials": totals.total_denials,
        "total_denied_amount": totals.total_denied_amount,
    }


@router.post("/triage", summary="Rank and cluster denials")
async def run_triage(
    body: TriageRequestBody,
    container: ServiceContainer = Depends(get_container),
) -> dict[str, Any]:
    filtered = await _load_filtered(container, body.company_id, body.search)
    result = await container.triage.run_triage(filtered)
    return result.display().to_dict()


@router.get("/trends", summary="Denial trends for a period")
async def denial_trends(
    period: TrendPeriod = Query(TrendPeriod.MONTH),
    container: ServiceContainer = Depends(get_container),
) -> dict[str, Any]:
    trends = await container.denials.get_denial_trends(period)
    return trends.to_dict()


@router.get("/{denial_id}/analysis", summary="Analyze one denial")
async def analyze_denial(
    denial_id: str,
    claim_id: str = Query(..., min_length=1),
    container: ServiceContainer = Depends(get_container),
) -> dict[str, Any]:
    analysis = await container.denials.analyze_denial(denial_id, claim_id)
    return analysis.to_dict()


@router.post("/{denial_id}/appeal", summary="Draft an appeal from the triage view")
async def generate_appeal(
    denial_id: str,
    body: AppealRequestBody,
    container: ServiceContainer = Depends(get_container),
    actor: Optional[AuditActor] = Depends(get_actor),
) -> dict[str, Any]:
    if actor is None:
        raise InputValidationError(LOGIN_REQUIRED_MESSAGE)

    pair = await container.triage.find_pair(denial_id, body.company_id)
    if pair is None:
        raise RecordNotFoundError("Denial", denial_id)

    with bind_actor(actor):
        letter = await container.triage.generate_appeal(pair, actor.id)
    return {"denial_id": denial_id, "appeal_letter": letter}


@router.post("/appeals", summary="Create an appeal workflow")
async def create_appeal_workflow(
    body: AppealWorkflowRequestBody,
    container: ServiceContainer = Depends(get_container),
    actor: Optional[AuditActor] = Depends(get_actor),
) -> dict[str, Any]:
    if actor is None:
        raise InputValidationError(LOGIN_REQUIRED_MESSAGE)
    workflow = await container.denials.create_appeal_workflow(
        body.denial_id, body.claim_id, body.appeal_type, actor.id
    )
    return workflow.to_dict()


@router.post("/appeals/{appeal_id}/submit", summary="Submit a drafted appeal")
async def submit_appeal(
    appeal_id: str,
    container: ServiceContainer = Depends(get_container),
    actor: Optional[AuditActor] = Depends(get_actor),
) -> dict[str, Any]:
    if actor is None:
        raise InputValidationError("You must be logged in to submit an appeal")
    workflow = await container.denials.submit_appeal(appeal_id, actor.id)
    return workflow.to_dict()
