"""
Report API Endpoints.

Run report definitions, export results, and manage saved definitions.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from src.api.deps import get_actor, get_container
from src.services.audit.authorization_audit import AuditActor
from src.services.container import ServiceContainer
from src.services.reports.report_engine import ReportDefinition, ReportResult
from src.utils.export_formatters import MEDIA_TYPES, ExportFormat, export_filename
from src.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/api/v1/reports",
    tags=["reports"],
)


@router.post("/generate", response_model=ReportResult, summary="Run a report definition")
async def generate_report(
    definition: ReportDefinition,
    container: ServiceContainer = Depends(get_container),
) -> ReportResult:
    return await container.reports.generate_report(definition)


@router.post("/export", summary="Run a report definition and export the result")
async def export_report(
    definition: ReportDefinition,
    format: ExportFormat = Query(ExportFormat.CSV),
    container: ServiceContainer = Depends(get_container),
) -> Response:
    reports = container.reports
    result = await reports.generate_report(definition)

    if format == ExportFormat.JSON:
        content, extension = reports.export_to_json(result), "json"
    elif format == ExportFormat.EXCEL:
        content, extension = reports.export_to_excel(result), "csv"
    elif format == ExportFormat.PDF:
        content, extension = reports.export_to_pdf(definition, result), "txt"
    else:
        content, extension = reports.export_to_csv(result), "csv"

    filename = export_filename(definition.name.replace(" ", "_").lower() or "report", extension)
    return Response(
        content=content,
        media_type=MEDIA_TYPES[format],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/definitions", response_model=list[ReportDefinition], summary="List saved definitions")
async def list_definitions(
    created_by: Optional[str] = Query(None),
    container: ServiceContainer = Depends(get_container),
) -> list[ReportDefinition]:
    return await container.reports.get_report_definitions(created_by)


@router.post(
    "/definitions",
    response_model=ReportDefinition,
    status_code=status.HTTP_201_CREATED,
    summary="Save a definition",
)
async def save_definition(
    definition: ReportDefinition,
    container: ServiceContainer = Depends(get_container),
    actor: Optional[AuditActor] = Depends(get_actor),
) -> ReportDefinition:
    return await container.reports.save_report_definition(definition, actor.id if actor else None)


@router.get("/definitions/{report_id}", response_model=ReportDefinition, summary="Get a definition")
async def get_definition(
    report_id: str,
    container: ServiceContainer = Depends(get_container),
) -> ReportDefinition:
    return await container.reports.get_report_definition(report_id)


@router.delete(
    "/definitions/{report_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a definition",
)
async def delete_definition(
    report_id: str,
    container: ServiceContainer = Depends(get_container),
) -> Response:
    await container.reports.delete_report_definition(report_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/definitions/{report_id}/run", response_model=ReportResult, summary="Run a saved definition")
async def run_definition(
    report_id: str,
    container: ServiceContainer = Depends(get_container),
) -> ReportResult:
    definition = await container.reports.get_report_definition(report_id)
    return await container.reports.generate_report(definition)
