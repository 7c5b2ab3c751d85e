"""
Bulk Operations Service.

Applies one operation to many rows of a target table: status updates,
assignment, deletion and export. Each operation is a single batched
statement filtered by ``id IN (...)``; atomicity is per row, not per batch.

Failures are reported, never raised:
    - ids missing from the statement's returned rows fail with a generic
      message ("Update failed", "Assignment failed", "Delete failed")
    - a statement that raises fails every id with the raised message
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Awaitable, Callable, Optional, Sequence
import logging

from src.core.coercion import to_optional_str
from src.core.enums import AuditAction, BulkOperationType, BulkTargetType
from src.core.exceptions import ExportFormatError, InputValidationError
from src.db.store import DataStore
from src.services.audit.authorization_audit import AuthorizationAuditService
from src.utils.export_formatters import (
    ExportFormat,
    export_filename,
    format_as_json,
    format_rows_as_csv,
)

logger = logging.getLogger(__name__)

TARGET_TABLES = {
    BulkTargetType.TASKS: "authorization_tasks",
    BulkTargetType.CLAIMS: "claims",
    BulkTargetType.AUTHORIZATIONS: "authorization_requests",
}

UPDATE_FAILED = "Update failed"
ASSIGNMENT_FAILED = "Assignment failed"
DELETE_FAILED = "Delete failed"
PDF_NOT_IMPLEMENTED = "PDF export not yet implemented"


@dataclass
class BulkOperation:
    """A requested batch action."""

    type: BulkOperationType
    target_type: BulkTargetType
    item_ids: list[str]
    parameters: dict[str, Any] = field(default_factory=dict)


@dataclass
class BulkOperationResult:
    """
    Per-item outcome of a batch action.

    ``successful + failed == total`` and each input id appears exactly once
    across ``succeeded_ids`` and ``errors``.
    """

    total: int = 0
    successful: int = 0
    failed: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)
    succeeded_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "errors": list(self.errors),
            "succeeded_ids": list(self.succeeded_ids),
        }


@dataclass
class BulkExport:
    data: str
    filename: str
    format: ExportFormat


def _outcome(ids: Sequence[str], returned: Sequence[dict[str, Any]], message: str) -> BulkOperationResult:
    matched = {to_optional_str(row.get("id")) for row in returned}
    result = BulkOperationResult(total=len(ids))
    for item_id in ids:
        if item_id in matched:
            result.succeeded_ids.append(item_id)
        else:
            result.errors.append({"id": item_id, "error": message})
    result.successful = len(result.succeeded_ids)
    result.failed = len(result.errors)
    return result


def _batch_failure(ids: Sequence[str], message: str) -> BulkOperationResult:
    return BulkOperationResult(
        total=len(ids),
        failed=len(ids),
        errors=[{"id": item_id, "error": message} for item_id in ids],
    )


class BulkOperationsService:
    """
    Batch actions over tasks, claims and authorizations.

    Usage:
        bulk = BulkOperationsService(store, audit)
        result = await bulk.bulk_update_status(BulkTargetType.CLAIMS, ids, "submitted", user_id)
        export = await bulk.bulk_export(BulkTargetType.CLAIMS, ids, ExportFormat.CSV)
    """

    def __init__(
        self,
        store: DataStore,
        audit: Optional[AuthorizationAuditService] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.store = store
        self.audit = audit
        self.clock = clock

    @staticmethod
    def table_for(target_type: BulkTargetType | str) -> str:
        try:
            return TARGET_TABLES[BulkTargetType(target_type)]
        except ValueError:
            raise InputValidationError(f"Unknown bulk target: {target_type}") from None

    async def _run(
        self,
        target_type: BulkTargetType | str,
        ids: Sequence[str],
        statement: Callable[[str, list[str]], Awaitable[list[dict[str, Any]]]],
        failure_message: str,
        operation: BulkOperationType,
    ) -> BulkOperationResult:
        table = self.table_for(target_type)
        ids = [str(item_id) for item_id in ids]
        if not ids:
            return BulkOperationResult(total=0)
        unique_ids = list(dict.fromkeys(ids))

        try:
            returned = await statement(table, unique_ids)
        except Exception as e:
            logger.error(f"Bulk {operation.value} on {table} failed for {len(unique_ids)} ids: {e}")
            return _batch_failure(ids, str(e) or failure_message)

        result = _outcome(ids, returned, failure_message)
        logger.info(
            f"Bulk {operation.value} on {table}: {result.successful}/{result.total} succeeded"
        )
        return result

    async def _audit_authorizations(
        self,
        target_type: BulkTargetType | str,
        result: BulkOperationResult,
        action: AuditAction,
        actor_id: Optional[str],
        **fields: Any,
    ) -> None:
        if self.audit is None or BulkTargetType(target_type) != BulkTargetType.AUTHORIZATIONS:
            return
        for item_id in dict.fromkeys(result.succeeded_ids):
            await self.audit.log_action(item_id, action, user_id=actor_id, **fields)

    # =========================================================================
    # Operations
    # =========================================================================

    async def bulk_update_status(
        self,
        target_type: BulkTargetType | str,
        ids: Sequence[str],
        new_status: str,
        actor_id: Optional[str] = None,
    ) -> BulkOperationResult:
        """Set ``status`` on every target row."""
        if not new_status:
            raise InputValidationError("new_status is required")
        now = self.clock()

        async def statement(table: str, unique_ids: list[str]) -> list[dict[str, Any]]:
            return await (
                self.store.table(table)
                .select("id")
                .in_("id", unique_ids)
                .update({"status": new_status, "updated_at": now})
            )

        result = await self._run(target_type, ids, statement, UPDATE_FAILED, BulkOperationType.STATUS_UPDATE)
        await self._audit_authorizations(
            target_type,
            result,
            AuditAction.UPDATE,
            actor_id,
            new_status=new_status,
            notes="Bulk status update",
        )
        return result

    async def bulk_assign(
        self,
        target_type: BulkTargetType | str,
        ids: Sequence[str],
        assignee_id: str,
        actor_id: Optional[str] = None,
    ) -> BulkOperationResult:
        """Assign every target row to ``assignee_id``."""
        if not assignee_id:
            raise InputValidationError("assignee_id is required")
        now = self.clock()

        async def statement(table: str, unique_ids: list[str]) -> list[dict[str, Any]]:
            return await (
                self.store.table(table)
                .select("id")
                .in_("id", unique_ids)
                .update(
                    {
                        "assigned_to": assignee_id,
                        "assigned_by": actor_id,
                        "assigned_at": now,
                        "updated_at": now,
                    }
                )
            )

        result = await self._run(target_type, ids, statement, ASSIGNMENT_FAILED, BulkOperationType.ASSIGNMENT)
        await self._audit_authorizations(
            target_type,
            result,
            AuditAction.UPDATE,
            actor_id,
            new_values={"assigned_to": assignee_id},
            notes="Bulk assignment",
        )
        return result

    async def bulk_delete(
        self,
        target_type: BulkTargetType | str,
        ids: Sequence[str],
        actor_id: Optional[str] = None,
    ) -> BulkOperationResult:
        async def statement(table: str, unique_ids: list[str]) -> list[dict[str, Any]]:
            return await self.store.table(table).select("id").in_("id", unique_ids).delete()

        result = await self._run(target_type, ids, statement, DELETE_FAILED, BulkOperationType.DELETE)
        await self._audit_authorizations(
            target_type, result, AuditAction.DELETE, actor_id, notes="Bulk delete"
        )
        return result

    async def bulk_export(
        self,
        target_type: BulkTargetType | str,
        ids: Sequence[str],
        format: ExportFormat | str = ExportFormat.CSV,
        on: Optional[date] = None,
    ) -> BulkExport:
        """
        Export the selected rows.

        Raises:
            ExportFormatError: Unknown format, or PDF
            StoreError: The fetch failed
        """
        try:
            export_format = ExportFormat(format)
        except ValueError:
            raise ExportFormatError(f"Unsupported export format: {format}") from None
        if export_format == ExportFormat.PDF:
            raise ExportFormatError(PDF_NOT_IMPLEMENTED)

        table = self.table_for(target_type)
        ids = list(dict.fromkeys(str(item_id) for item_id in ids))
        rows = await self.store.table(table).in_("id", ids).fetch() if ids else []

        if export_format == ExportFormat.JSON:
            data = format_as_json(rows)
        else:
            # Excel degrades to CSV content
            data = format_rows_as_csv(rows)

        filename = export_filename(BulkTargetType(target_type).value, export_format.value, on or self.clock().date())
        logger.info(f"Exported {len(rows)} rows from {table} as {export_format.value}")
        return BulkExport(data=data, filename=filename, format=export_format)

    async def execute(self, operation: BulkOperation, actor_id: Optional[str] = None) -> BulkOperationResult:
        """Dispatch a ``BulkOperation`` to the matching batch action."""
        params = operation.parameters
        if operation.type == BulkOperationType.STATUS_UPDATE:
            return await self.bulk_update_status(
                operation.target_type, operation.item_ids, params.get("status", ""), actor_id
            )
        if operation.type == BulkOperationType.ASSIGNMENT:
            return await self.bulk_assign(
                operation.target_type, operation.item_ids, params.get("assignee_id", ""), actor_id
            )
        if operation.type == BulkOperationType.DELETE:
            return await self.bulk_delete(operation.target_type, operation.item_ids, actor_id)
        if operation.type == BulkOperationType.ARCHIVE:
            return await self.bulk_update_status(
                operation.target_type, operation.item_ids, "archived", actor_id
            )
        raise InputValidationError(f"Use bulk_export for {operation.type.value} operations")
