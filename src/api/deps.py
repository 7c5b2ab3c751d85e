"""
FastAPI Dependencies
Service container access and request actor extraction
Source: https://fastapi.tiangolo.com/tutorial/dependencies/

Authentication happens upstream; the acting user arrives in ``X-User-Id``,
``X-User-Email`` and ``X-User-Name`` headers.
"""

from typing import Optional

from fastapi import Header, Request

from src.services.audit.authorization_audit import AuditActor
from src.services.container import ServiceContainer


def get_container(request: Request) -> ServiceContainer:
    """Service container built during application startup."""
    return request.app.state.container


async def get_actor(
    request: Request,
    x_user_id: Optional[str] = Header(default=None),
    x_user_email: Optional[str] = Header(default=None),
    x_user_name: Optional[str] = Header(default=None),
    user_agent: Optional[str] = Header(default=None),
) -> Optional[AuditActor]:
    """
    Acting user for this request, or None when anonymous.

    Routes bind it with ``bind_actor`` around service calls that audit.
    """
    if not x_user_id:
        return None
    return AuditActor(
        id=x_user_id,
        email=x_user_email,
        name=x_user_name,
        ip_address=request.client.host if request.client else None,
        user_agent=user_agent,
    )
