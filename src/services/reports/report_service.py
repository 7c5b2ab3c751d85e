"""
Report Service.

Runs report definitions against their data source table and manages the
persisted definitions in ``report_definitions``. Results are computed fresh
on every call and never cached.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Optional
import logging
import time

from src.core.enums import FilterOperator
from src.core.exceptions import RecordNotFoundError
from src.db.store import DataStore, Query
from src.services.reports.report_engine import (
    ReportDefinition,
    ReportFilter,
    ReportMetadata,
    ReportResult,
    ReportSummary,
    build_report,
    validate_definition,
)
from src.utils.export_formatters import format_as_json, format_report_as_text, format_rows_as_csv

logger = logging.getLogger(__name__)

DEFINITIONS_TABLE = "report_definitions"

_DEFINITION_COLUMNS = (
    "name",
    "description",
    "type",
    "data_source",
    "fields",
    "filters",
    "grouping",
    "sorting",
    "format",
    "chart_type",
    "schedule",
)


def _push_down(query: Query, report_filter: ReportFilter) -> Query:
    """Translate one filter into the store's query builder."""
    operator = FilterOperator(report_filter.operator)
    column, value = report_filter.field, report_filter.value

    if operator == FilterOperator.EQUALS:
        return query.eq(column, value)
    if operator == FilterOperator.NOT_EQUALS:
        return query.neq(column, value)
    if operator == FilterOperator.CONTAINS:
        return query.ilike(column, f"%{value}%")
    if operator == FilterOperator.GREATER_THAN:
        return query.gt(column, value)
    if operator == FilterOperator.LESS_THAN:
        return query.lt(column, value)
    if operator == FilterOperator.BETWEEN:
        return query.gte(column, value[0]).lte(column, value[1])
    return query.in_(column, value)


class ReportService:
    """
    Report execution and definition storage.

    Usage:
        reports = ReportService(store)
        result = await reports.generate_report(definition)
        csv_text = reports.export_to_csv(result)
    """

    def __init__(
        self,
        store: DataStore,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.store = store
        self.clock = clock

    async def generate_report(self, definition: ReportDefinition) -> ReportResult:
        """
        Execute ``definition``.

        Raises:
            ReportDefinitionError: The definition is invalid
            StoreError: The data source query failed
        """
        validate_definition(definition)
        started = time.perf_counter()

        query = self.store.table(definition.data_source)
        for report_filter in definition.filters:
            query = _push_down(query, report_filter)
        rows = await query.fetch()

        data, aggregates = build_report(rows, definition)
        elapsed_ms = (time.perf_counter() - started) * 1000

        logger.info(
            f"Report '{definition.name}' on {definition.data_source}: {len(data)} rows in {elapsed_ms:.1f}ms"
        )
        return ReportResult(
            data=data,
            summary=ReportSummary(total=len(data), aggregates=aggregates),
            metadata=ReportMetadata(
                generated_at=self.clock(),
                record_count=len(data),
                execution_time_ms=round(elapsed_ms, 3),
            ),
        )

    # =========================================================================
    # Export
    # =========================================================================

    def export_to_csv(self, result: ReportResult) -> str:
        return format_rows_as_csv(result.data)

    def export_to_excel(self, result: ReportResult) -> str:
        # CSV content until a spreadsheet writer is introduced
        return format_rows_as_csv(result.data)

    def export_to_json(self, result: ReportResult) -> str:
        return format_as_json(result.model_dump(mode="json"))

    def export_to_pdf(self, definition: ReportDefinition, result: ReportResult) -> str:
        """Plain-text approximation of a printable report."""
        return format_report_as_text(
            definition.name,
            result.metadata.generated_at,
            result.data,
            result.summary.aggregates,
        )

    # =========================================================================
    # Definitions
    # =========================================================================

    @staticmethod
    def _to_row(definition: ReportDefinition) -> dict[str, Any]:
        dumped = definition.model_dump(mode="json")
        return {column: dumped[column] for column in _DEFINITION_COLUMNS}

    async def save_report_definition(
        self, definition: ReportDefinition, user_id: Optional[str] = None
    ) -> ReportDefinition:
        """
        Insert a new definition, or update it when it carries an id.

        Raises:
            ReportDefinitionError: The definition is invalid
            RecordNotFoundError: Updating an id that does not exist
        """
        validate_definition(definition)
        now = self.clock()
        row = self._to_row(definition)
        row["updated_at"] = now

        if definition.id:
            rows = await self.store.table(DEFINITIONS_TABLE).eq("id", definition.id).update(row)
            if not rows:
                raise RecordNotFoundError("Report definition", definition.id)
        else:
            row["created_by"] = user_id or definition.created_by
            row["created_at"] = now
            rows = await self.store.table(DEFINITIONS_TABLE).insert(row)

        saved = ReportDefinition.model_validate(rows[0])
        logger.info(f"Saved report definition {saved.id} ({saved.name})")
        return saved

    async def get_report_definitions(self, user_id: Optional[str] = None) -> list[ReportDefinition]:
        """Definitions newest first, optionally limited to one owner."""
        query = self.store.table(DEFINITIONS_TABLE).order("created_at", descending=True)
        if user_id:
            query = query.eq("created_by", user_id)
        rows = await query.fetch()
        return [ReportDefinition.model_validate(row) for row in rows]

    async def get_report_definition(self, report_id: str) -> ReportDefinition:
        row = await self.store.table(DEFINITIONS_TABLE).eq("id", report_id).fetch_one()
        if row is None:
            raise RecordNotFoundError("Report definition", report_id)
        return ReportDefinition.model_validate(row)

    async def delete_report_definition(self, report_id: str) -> None:
        rows = await self.store.table(DEFINITIONS_TABLE).eq("id", report_id).delete()
        if not rows:
            raise RecordNotFoundError("Report definition", report_id)
        logger.info(f"Deleted report definition {report_id}")
