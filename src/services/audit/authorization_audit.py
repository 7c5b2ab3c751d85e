"""
Authorization Audit Service.

Append-only audit trail for authorization actions: who did what, when,
and why. Writes are best effort; a failed audit write is logged and never
interrupts the audited operation. Queries propagate backend failures.

The acting user is request scoped. The HTTP layer binds it with
``bind_actor`` and services read it through ``current_actor``.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterator, Optional
import logging

from pydantic import BaseModel, Field, field_validator

from src.core.coercion import to_mapping, to_optional_str
from src.core.enums import AuditAction, AuditActionCategory, AuditSeverity
from src.db.store import DataStore

logger = logging.getLogger(__name__)

AUDIT_TABLE = "authorization_audit_logs"
PROFILES_TABLE = "profiles"
DEFAULT_PAGE_SIZE = 100


# =============================================================================
# Actor Context
# =============================================================================


@dataclass(frozen=True)
class AuditActor:
    """The user on whose behalf an operation runs."""

    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


UNKNOWN_ACTOR = AuditActor(id="unknown", email="unknown", name="Unknown User")

_current_actor: ContextVar[Optional[AuditActor]] = ContextVar("audit_actor", default=None)


def current_actor() -> Optional[AuditActor]:
    return _current_actor.get()


@contextmanager
def bind_actor(actor: Optional[AuditActor]) -> Iterator[None]:
    """Bind ``actor`` for the duration of the block."""
    token = _current_actor.set(actor)
    try:
        yield
    finally:
        _current_actor.reset(token)


# =============================================================================
# Models
# =============================================================================


class AuthorizationAuditLog(BaseModel):
    """One audit row."""

    id: Optional[str] = None
    user_id: str
    user_email: Optional[str] = None
    user_name: Optional[str] = None
    authorization_request_id: str
    action: AuditAction
    action_category: AuditActionCategory
    old_status: Optional[str] = None
    new_status: Optional[str] = None
    old_values: Optional[dict[str, Any]] = None
    new_values: Optional[dict[str, Any]] = None
    notes: Optional[str] = None
    reason: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    details: dict[str, Any] = Field(default_factory=dict)
    severity: AuditSeverity = AuditSeverity.LOW
    created_at: Optional[datetime] = None

    @field_validator("details", mode="before")
    @classmethod
    def _details_default(cls, value: Any) -> dict[str, Any]:
        return to_mapping(value)


class AuditLogQuery(BaseModel):
    """Query parameters for audit log search."""

    authorization_request_id: Optional[str] = None
    user_id: Optional[str] = None
    action: Optional[AuditAction] = None
    action_category: Optional[AuditActionCategory] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    limit: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, le=1000)
    offset: int = Field(default=0, ge=0)


# =============================================================================
# Derivation Rules
# =============================================================================

_SEVERITY = {
    AuditAction.DELETE: AuditSeverity.HIGH,
    AuditAction.CANCEL: AuditSeverity.HIGH,
    AuditAction.DENY: AuditSeverity.MEDIUM,
    AuditAction.APPEAL: AuditSeverity.MEDIUM,
    AuditAction.APPROVE: AuditSeverity.MEDIUM,
}

_CATEGORY = {
    AuditAction.CREATE: AuditActionCategory.CREATION,
    AuditAction.USE_VISIT: AuditActionCategory.VISIT_USAGE,
    AuditAction.RENEW: AuditActionCategory.RENEWAL,
    AuditAction.APPEAL: AuditActionCategory.APPEAL,
    AuditAction.UPDATE: AuditActionCategory.MODIFICATION,
    AuditAction.VIEW: AuditActionCategory.ACCESS,
    AuditAction.EXPORT: AuditActionCategory.EXPORT,
}

_STATUS_ACTIONS = frozenset({AuditAction.APPROVE, AuditAction.DENY, AuditAction.SUBMIT})

_STATUS_TO_ACTION = {
    "approved": AuditAction.APPROVE,
    "denied": AuditAction.DENY,
    "pending": AuditAction.SUBMIT,
}


def severity_for(action: AuditAction) -> AuditSeverity:
    """Severity depends on the action alone; statuses do not influence it."""
    return _SEVERITY.get(action, AuditSeverity.LOW)


def category_for(action: AuditAction, old_status: Optional[str] = None) -> AuditActionCategory:
    if action in _STATUS_ACTIONS:
        return AuditActionCategory.STATUS_CHANGE if old_status else AuditActionCategory.CREATION
    return _CATEGORY.get(action, AuditActionCategory.MODIFICATION)


# =============================================================================
# Service
# =============================================================================


class AuthorizationAuditService:
    """
    Authorization audit trail.

    Usage:
        audit = AuthorizationAuditService(store)
        with bind_actor(AuditActor(id=user_id, email=email)):
            await audit.log_submit(authorization_id, from_status="draft")
        history = await audit.get_authorization_history(authorization_id)
    """

    def __init__(self, store: DataStore):
        self.store = store

    async def _resolve_actor(self, user_id: Optional[str]) -> AuditActor:
        """
        Resolve the acting user.

        An explicit ``user_id`` that differs from the bound actor wins and
        carries no email or name. Otherwise the bound actor is enriched with
        ``profiles.full_name``, falling back to the supplied name and then the
        local part of the email address.
        """
        actor = current_actor()
        if user_id and (actor is None or actor.id != user_id):
            return AuditActor(
                id=user_id,
                ip_address=actor.ip_address if actor else None,
                user_agent=actor.user_agent if actor else None,
            )

        if actor is None or not actor.id:
            logger.warning("Audit write without an authenticated actor")
            return UNKNOWN_ACTOR

        try:
            profile = await (
                self.store.table(PROFILES_TABLE).select("full_name").eq("id", actor.id).fetch_one()
            )
        except Exception as e:
            logger.error(f"Error getting user info for audit: {e}")
            if user_id:
                return AuditActor(
                    id=user_id,
                    email=actor.email,
                    name=actor.name,
                    ip_address=actor.ip_address,
                    user_agent=actor.user_agent,
                )
            return UNKNOWN_ACTOR

        name = (to_optional_str(profile.get("full_name")) if profile else None) or actor.name
        if not name and actor.email:
            name = actor.email.split("@")[0]
        return AuditActor(
            id=actor.id,
            email=actor.email,
            name=name or "Unknown",
            ip_address=actor.ip_address,
            user_agent=actor.user_agent,
        )

    async def log_action(
        self,
        authorization_id: str,
        action: AuditAction,
        *,
        old_status: Optional[str] = None,
        new_status: Optional[str] = None,
        old_values: Optional[dict[str, Any]] = None,
        new_values: Optional[dict[str, Any]] = None,
        notes: Optional[str] = None,
        reason: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> Optional[AuthorizationAuditLog]:
        """
        Append one audit entry.

        Returns:
            The stored entry, or None when the write failed
        """
        try:
            action = AuditAction(action)
            actor = await self._resolve_actor(user_id)
            entry = AuthorizationAuditLog(
                user_id=actor.id,
                user_email=actor.email,
                user_name=actor.name,
                authorization_request_id=authorization_id,
                action=action,
                action_category=category_for(action, old_status),
                old_status=old_status,
                new_status=new_status,
                old_values=old_values,
                new_values=new_values,
                notes=notes,
                reason=reason,
                ip_address=actor.ip_address,
                user_agent=actor.user_agent,
                details=details or {},
                severity=severity_for(action),
                created_at=datetime.now(timezone.utc),
            )
            row = entry.model_dump(mode="json", exclude={"id"})
            row["created_at"] = entry.created_at
            rows = await self.store.table(AUDIT_TABLE).insert(row)
        except Exception as e:
            logger.error(f"Error logging authorization action {action} for {authorization_id}: {e}")
            return None

        if rows:
            entry.id = to_optional_str(rows[0].get("id"))
        return entry

    # =========================================================================
    # Convenience Wrappers
    # =========================================================================

    async def log_create(
        self, authorization_id: str, details: Optional[dict[str, Any]] = None, notes: Optional[str] = None
    ) -> Optional[AuthorizationAuditLog]:
        return await self.log_action(
            authorization_id, AuditAction.CREATE, new_status="draft", details=details, notes=notes
        )

    async def log_update(
        self,
        authorization_id: str,
        old_values: dict[str, Any],
        new_values: dict[str, Any],
        notes: Optional[str] = None,
    ) -> Optional[AuthorizationAuditLog]:
        return await self.log_action(
            authorization_id, AuditAction.UPDATE, old_values=old_values, new_values=new_values, notes=notes
        )

    async def log_status_change(
        self,
        authorization_id: str,
        old_status: str,
        new_status: str,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> Optional[AuthorizationAuditLog]:
        action = _STATUS_TO_ACTION.get(new_status, AuditAction.UPDATE)
        return await self.log_action(
            authorization_id,
            action,
            old_status=old_status,
            new_status=new_status,
            reason=reason,
            notes=notes,
            details=details,
        )

    async def log_submit(
        self, authorization_id: str, from_status: str, notes: Optional[str] = None
    ) -> Optional[AuthorizationAuditLog]:
        return await self.log_action(
            authorization_id,
            AuditAction.SUBMIT,
            old_status=from_status,
            new_status="pending",
            notes=notes,
            reason="Authorization submitted to payer",
        )

    async def log_use_visit(
        self, authorization_id: str, visit_details: dict[str, Any], notes: Optional[str] = None
    ) -> Optional[AuthorizationAuditLog]:
        return await self.log_action(
            authorization_id,
            AuditAction.USE_VISIT,
            details=visit_details,
            notes=notes,
            reason="Visit recorded against authorization",
        )

    async def log_renewal(
        self, authorization_id: str, renewal_details: dict[str, Any], notes: Optional[str] = None
    ) -> Optional[AuthorizationAuditLog]:
        return await self.log_action(
            authorization_id,
            AuditAction.RENEW,
            details=renewal_details,
            notes=notes,
            reason="Renewal initiated for expiring authorization",
        )

    async def log_appeal(
        self, authorization_id: str, appeal_details: dict[str, Any], notes: Optional[str] = None
    ) -> Optional[AuthorizationAuditLog]:
        return await self.log_action(
            authorization_id,
            AuditAction.APPEAL,
            details=appeal_details,
            notes=notes,
            reason="Appeal submitted for denied authorization",
        )

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_audit_logs(self, query: AuditLogQuery) -> list[AuthorizationAuditLog]:
        """Search the audit trail, newest first."""
        builder = self.store.table(AUDIT_TABLE).order("created_at", descending=True)

        if query.authorization_request_id:
            builder = builder.eq("authorization_request_id", query.authorization_request_id)
        if query.user_id:
            builder = builder.eq("user_id", query.user_id)
        if query.action:
            builder = builder.eq("action", query.action.value)
        if query.action_category:
            builder = builder.eq("action_category", query.action_category.value)
        if query.start_date:
            builder = builder.gte("created_at", query.start_date)
        if query.end_date:
            builder = builder.lte("created_at", query.end_date)

        builder = builder.range(query.offset, query.offset + query.limit - 1)
        rows = await builder.fetch()
        return [AuthorizationAuditLog.model_validate(row) for row in rows]

    async def get_authorization_history(self, authorization_id: str) -> list[AuthorizationAuditLog]:
        return await self.get_audit_logs(
            AuditLogQuery(authorization_request_id=authorization_id, limit=DEFAULT_PAGE_SIZE)
        )

    async def get_user_activity(
        self, user_id: str, limit: int = DEFAULT_PAGE_SIZE
    ) -> list[AuthorizationAuditLog]:
        return await self.get_audit_logs(AuditLogQuery(user_id=user_id, limit=limit))
