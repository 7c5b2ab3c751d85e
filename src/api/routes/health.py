"""
Health Check Routes
Service health monitoring endpoints
Source: https://microservices.io/patterns/observability/health-check-api.html
"""

from typing import Any

from fastapi import APIRouter, Depends

from src.api.config import Settings, get_settings
from src.api.deps import get_container
from src.db.connection import check_db_connection
from src.services.container import ServiceContainer
from src.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Health"])

SERVICE_NAME = "billing-core-api"


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
    }


@router.get("/health/detailed")
async def detailed_health_check(
    container: ServiceContainer = Depends(get_container),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Detailed health check with data store and gateway status."""
    db_healthy = await check_db_connection(settings)
    gateways = {
        gateway.gateway_name: gateway.health.status.value
        for gateway in (container.clearinghouse, container.intelligence)
    }

    overall_status = "healthy" if db_healthy else "unhealthy"
    if db_healthy and any(value != "healthy" for value in gateways.values()):
        overall_status = "degraded"

    return {
        "status": overall_status,
        "service": SERVICE_NAME,
        "checks": {
            "database": "healthy" if db_healthy else "unhealthy",
            "data_backend": settings.DATA_BACKEND,
            **{name.lower(): value for name, value in gateways.items()},
        },
    }
