"""
Bulk Operations API Endpoints.

Batch status updates, assignment, deletion and export over tasks, claims
and authorizations. Partial failures come back in the result body with a
200 status; only invalid input or a failed export fetch produces an error.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, Field

from src.api.deps import get_actor, get_container
from src.core.enums import BulkTargetType
from src.services.audit.authorization_audit import AuditActor, bind_actor
from src.services.container import ServiceContainer
from src.utils.export_formatters import MEDIA_TYPES, ExportFormat
from src.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/api/v1/bulk",
    tags=["bulk"],
)


class BulkIdsBody(BaseModel):
    ids: list[str] = Field(..., min_length=1)


class BulkStatusBody(BulkIdsBody):
    status: str = Field(..., min_length=1)


class BulkAssignBody(BulkIdsBody):
    assignee_id: str = Field(..., min_length=1)


def _actor_id(actor: Optional[AuditActor]) -> Optional[str]:
    return actor.id if actor else None


@router.post("/{target_type}/status", summary="Set status on many rows")
async def bulk_update_status(
    target_type: BulkTargetType,
    body: BulkStatusBody,
    container: ServiceContainer = Depends(get_container),
    actor: Optional[AuditActor] = Depends(get_actor),
) -> dict[str, Any]:
    with bind_actor(actor):
        result = await container.bulk.bulk_update_status(target_type, body.ids, body.status, _actor_id(actor))
    return result.to_dict()


@router.post("/{target_type}/assign", summary="Assign many rows")
async def bulk_assign(
    target_type: BulkTargetType,
    body: BulkAssignBody,
    container: ServiceContainer = Depends(get_container),
    actor: Optional[AuditActor] = Depends(get_actor),
) -> dict[str, Any]:
    with bind_actor(actor):
        result = await container.bulk.bulk_assign(target_type, body.ids, body.assignee_id, _actor_id(actor))
    return result.to_dict()


@router.post("/{target_type}/delete", summary="Delete many rows")
async def bulk_delete(
    target_type: BulkTargetType,
    body: BulkIdsBody,
    container: ServiceContainer = Depends(get_container),
    actor: Optional[AuditActor] = Depends(get_actor),
) -> dict[str, Any]:
    with bind_actor(actor):
        result = await container.bulk.bulk_delete(target_type, body.ids, _actor_id(actor))
    return result.to_dict()


@router.post("/{target_type}/export", summary="Export many rows")
async def bulk_export(
    target_type: BulkTargetType,
    body: BulkIdsBody,
    format: ExportFormat = Query(ExportFormat.CSV),
    container: ServiceContainer = Depends(get_container),
) -> Response:
    export = await container.bulk.bulk_export(target_type, body.ids, format)
    return Response(
        content=export.data,
        media_type=MEDIA_TYPES[export.format],
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
    )
