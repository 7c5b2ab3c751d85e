"""
Audit Routes.

Authorization audit trail: record actions and query history.
"""

from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from src.api.deps import get_actor, get_container
from src.core.enums import AuditAction, AuditActionCategory
from src.services.audit.authorization_audit import (
    AuditActor,
    AuditLogQuery,
    AuthorizationAuditLog,
    bind_actor,
)
from src.services.container import ServiceContainer
from src.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/audit", tags=["audit"])


class AuditActionRequest(BaseModel):
    """Single audit entry submitted by a workflow."""

    action: AuditAction = Field(..., description="Action performed")
    old_status: Optional[str] = None
    new_status: Optional[str] = None
    old_values: Optional[dict[str, Any]] = None
    new_values: Optional[dict[str, Any]] = None
    notes: Optional[str] = None
    reason: Optional[str] = None
    details: dict[str, Any] = Field(default_factory=dict)


@router.post(
    "/authorizations/{authorization_id}",
    response_model=AuthorizationAuditLog,
    status_code=status.HTTP_201_CREATED,
    summary="Record an authorization action",
)
async def log_authorization_action(
    authorization_id: str,
    request: AuditActionRequest,
    container: ServiceContainer = Depends(get_container),
    actor: Optional[AuditActor] = Depends(get_actor),
) -> AuthorizationAuditLog:
    with bind_actor(actor):
        entry = await container.audit.log_action(
            authorization_id,
            request.action,
            old_status=request.old_status,
            new_status=request.new_status,
            old_values=request.old_values,
            new_values=request.new_values,
            notes=request.notes,
            reason=request.reason,
            details=request.details,
        )
    if entry is None:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Audit entry could not be stored")
    return entry


@router.get("/logs", response_model=list[AuthorizationAuditLog], summary="Search the audit trail")
async def get_audit_logs(
    authorization_request_id: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
    action: Optional[AuditAction] = Query(None),
    action_category: Optional[AuditActionCategory] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    container: ServiceContainer = Depends(get_container),
) -> list[AuthorizationAuditLog]:
    query = AuditLogQuery(
        authorization_request_id=authorization_request_id,
        user_id=user_id,
        action=action,
        action_category=action_category,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
    return await container.audit.get_audit_logs(query)


@router.get(
    "/authorizations/{authorization_id}/history",
    response_model=list[AuthorizationAuditLog],
    summary="Audit history of one authorization",
)
async def get_authorization_history(
    authorization_id: str,
    container: ServiceContainer = Depends(get_container),
) -> list[AuthorizationAuditLog]:
    return await container.audit.get_authorization_history(authorization_id)


@router.get(
    "/users/{user_id}/activity",
    response_model=list[AuthorizationAuditLog],
    summary="Recent actions by one user",
)
async def get_user_activity(
    user_id: str,
    limit: int = Query(100, ge=1, le=1000),
    container: ServiceContainer = Depends(get_container),
) -> list[AuthorizationAuditLog]:
    return await container.audit.get_user_activity(user_id, limit)
