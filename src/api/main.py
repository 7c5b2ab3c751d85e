"""
FastAPI Main Application
Entry point for the API server
Source: https://fastapi.tiangolo.com/
"""

from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.config import Settings, get_settings
from src.api.routes import audit, bulk, denials, edi, health, reports
from src.core.exceptions import BillingCoreError
from src.db.connection import close_db_connection
from src.db.store import StoreError
from src.gateways.base import GatewayError
from src.services.edi.x12_base import X12ParseError
from src.services.container import ServiceContainer
from src.utils.errors import http_error_for
from src.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


async def handle_core_error(request: Request, exc: Exception) -> JSONResponse:
    """Render core, store and gateway failures as a single ``detail`` message."""
    error = http_error_for(exc)
    if error.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {error.detail}")
    return JSONResponse(status_code=error.status_code, content={"detail": error.detail})


def create_app(
    settings: Optional[Settings] = None,
    container: Optional[ServiceContainer] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings override; cached environment settings by default
        container: Prebuilt service container (tests pass one over an
            in-memory store); built from settings at startup otherwise
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):  # type: ignore[no-untyped-def]
        """
        Application lifespan manager.

        Source: https://fastapi.tiangolo.com/advanced/events/
        """
        # Startup
        logger.info(f"Starting application in {settings.ENVIRONMENT} mode")
        logger.info(f"Debug mode: {settings.DEBUG}")
        owns_container = container is None
        app.state.container = container or ServiceContainer.from_settings(settings)

        yield

        # Shutdown
        logger.info("Shutting down application")
        if owns_container:
            await app.state.container.close()
            await close_db_connection()
            logger.info("Services and database connections closed")

    app = FastAPI(
        title="Billing Core API",
        description="EDI transactions, denial triage and appeals, bulk operations, reports and audit",
        version="1.0.0",
        docs_url="/docs" if not settings.is_production else None,  # Disable docs in production
        redoc_url="/redoc" if not settings.is_production else None,
        openapi_url="/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )

    # CORS middleware
    # Source: https://fastapi.tiangolo.com/tutorial/cors/
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=settings.CORS_CREDENTIALS,
        allow_methods=settings.CORS_METHODS,
        allow_headers=settings.CORS_HEADERS,
    )

    for error_type in (BillingCoreError, StoreError, GatewayError, X12ParseError):
        app.add_exception_handler(error_type, handle_core_error)

    # Include routers
    app.include_router(health.router)
    app.include_router(edi.router)
    app.include_router(denials.router)
    app.include_router(bulk.router)
    app.include_router(reports.router)
    app.include_router(audit.router)

    @app.get("/")
    async def root() -> dict[str, Any]:
        """Root endpoint with API information."""
        return {
            "name": "Billing Core API",
            "version": "1.0.0",
            "environment": settings.ENVIRONMENT,
            "docs": "/docs" if not settings.is_production else "disabled",
        }

    return app


_settings = get_settings()

# Setup logging
setup_logging(
    level=_settings.LOG_LEVEL,
    log_file=_settings.LOG_FILE,
    json_logs=_settings.is_production,
)

app = create_app(_settings)
