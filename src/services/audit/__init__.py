"""Authorization audit trail."""

from src.services.audit.authorization_audit import (
    AuditActor,
    AuditLogQuery,
    AuthorizationAuditLog,
    AuthorizationAuditService,
    UNKNOWN_ACTOR,
    bind_actor,
    category_for,
    current_actor,
    severity_for,
)

__all__ = [
    "AuditActor",
    "AuditLogQuery",
    "AuthorizationAuditLog",
    "AuthorizationAuditService",
    "UNKNOWN_ACTOR",
    "bind_actor",
    "category_for",
    "current_actor",
    "severity_for",
]
