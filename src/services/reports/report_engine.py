"""
Report Engine.

Executes a declarative report definition against in-memory rows. The
pipeline order is fixed:

    filter -> group -> sort -> select/rename -> aggregate

Sorting runs on grouped rows, so group keys are sortable fields. Summary
aggregates are computed on the selected rows and looked up by the field's
original ``name``; a field whose ``label`` differs from its name therefore
aggregates over nothing and reports 0.

Usage:
    definition = ReportDefinition.model_validate(payload)
    validate_definition(definition)
    data, aggregates = build_report(rows, definition)
"""

from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional, Sequence
import math

from pydantic import BaseModel, Field

from src.core.coercion import temporal_operands
from src.core.enums import (
    AggregateFunction,
    ChartType,
    FieldType,
    FilterOperator,
    ReportFormat,
    ReportType,
    SortOrder,
)
from src.core.exceptions import ReportDefinitionError

GROUP_KEY_SEPARATOR = "|"


# =============================================================================
# Definition Models
# =============================================================================


class ReportField(BaseModel):
    name: str
    label: Optional[str] = None
    type: FieldType = FieldType.STRING
    aggregate: Optional[str] = None
    format: Optional[str] = None

    @property
    def output_name(self) -> str:
        return self.label or self.name


class ReportFilter(BaseModel):
    field: str
    operator: str
    value: Any = None


class ReportSorting(BaseModel):
    field: str
    order: SortOrder = SortOrder.ASC


class ReportDefinition(BaseModel):
    """A named, persisted report configuration."""

    id: Optional[str] = None
    name: str
    description: Optional[str] = None
    type: ReportType = ReportType.CUSTOM
    data_source: str
    fields: list[ReportField] = Field(default_factory=list)
    filters: list[ReportFilter] = Field(default_factory=list)
    grouping: Optional[list[str]] = None
    sorting: Optional[list[ReportSorting]] = None
    format: ReportFormat = ReportFormat.TABLE
    chart_type: Optional[ChartType] = None
    schedule: Optional[dict[str, Any]] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ReportSummary(BaseModel):
    total: int = 0
    aggregates: dict[str, float] = Field(default_factory=dict)


class ReportMetadata(BaseModel):
    generated_at: datetime
    record_count: int
    execution_time_ms: float


class ReportResult(BaseModel):
    data: list[dict[str, Any]] = Field(default_factory=list)
    summary: ReportSummary = Field(default_factory=ReportSummary)
    metadata: ReportMetadata


# =============================================================================
# Validation
# =============================================================================


def validate_definition(definition: ReportDefinition) -> None:
    """
    Reject definitions that cannot be executed as written.

    Raises:
        ReportDefinitionError: Empty field list, unknown filter operator,
            malformed ``between``/``in`` value, or unknown aggregate
    """
    if not definition.data_source:
        raise ReportDefinitionError("Report data source is required")
    if not definition.fields:
        raise ReportDefinitionError("Report must select at least one field")

    for report_filter in definition.filters:
        try:
            operator = FilterOperator(report_filter.operator)
        except ValueError:
            raise ReportDefinitionError(
                f"Unknown filter operator: {report_filter.operator}",
                {"field": report_filter.field, "operator": report_filter.operator},
            ) from None
        if operator == FilterOperator.BETWEEN and not (
            isinstance(report_filter.value, (list, tuple)) and len(report_filter.value) == 2
        ):
            raise ReportDefinitionError(
                f"Filter on {report_filter.field}: between requires a two-element list"
            )
        if operator == FilterOperator.IN and not isinstance(report_filter.value, (list, tuple)):
            raise ReportDefinitionError(f"Filter on {report_filter.field}: in requires a list")

    for report_field in definition.fields:
        if report_field.aggregate is None:
            continue
        try:
            AggregateFunction(report_field.aggregate)
        except ValueError:
            raise ReportDefinitionError(
                f"Unknown aggregate function: {report_field.aggregate}",
                {"field": report_field.name},
            ) from None


# =============================================================================
# Filtering
# =============================================================================


def _number(value: Any) -> Optional[float]:
    """Finite float, or None when the value is not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
    return number if math.isfinite(number) else None


def _loose_equal(left: Any, right: Any) -> bool:
    temporal = temporal_operands(left, right)
    if temporal is not None:
        return temporal[0] == temporal[1]
    return left == right or str(left) == str(right)


def _compare(left: Any, right: Any) -> int:
    """Typed comparison for dates and numbers, text comparison otherwise."""
    temporal = temporal_operands(left, right)
    left_num, right_num = _number(left), _number(right)
    if temporal is not None:
        a, b = temporal
    elif left_num is not None and right_num is not None:
        a, b = left_num, right_num
    else:
        a = left.isoformat() if isinstance(left, (datetime, date)) else str(left)
        b = right.isoformat() if isinstance(right, (datetime, date)) else str(right)
    return (a > b) - (a < b)


def _matches(value: Any, operator: FilterOperator, target: Any) -> bool:
    if operator == FilterOperator.IN:
        return any(_loose_equal(value, candidate) for candidate in target)
    if value is None:
        return False
    if operator == FilterOperator.EQUALS:
        return _loose_equal(value, target)
    if operator == FilterOperator.NOT_EQUALS:
        return not _loose_equal(value, target)
    if operator == FilterOperator.CONTAINS:
        return str(target).lower() in str(value).lower()
    if operator == FilterOperator.GREATER_THAN:
        return _compare(value, target) == 1
    if operator == FilterOperator.LESS_THAN:
        return _compare(value, target) == -1
    if operator == FilterOperator.BETWEEN:
        low, high = target
        return _compare(value, low) >= 0 and _compare(value, high) <= 0
    return False


def apply_filters(rows: Iterable[Mapping[str, Any]], filters: Sequence[ReportFilter]) -> list[dict[str, Any]]:
    """All filters must match (AND)."""
    parsed = [(f.field, FilterOperator(f.operator), f.value) for f in filters]
    return [
        dict(row)
        for row in rows
        if all(_matches(row.get(column), operator, target) for column, operator, target in parsed)
    ]


# =============================================================================
# Aggregation
# =============================================================================


def calculate_aggregate(values: Iterable[Any], aggregate: AggregateFunction | str) -> float:
    """
    Aggregate over the numeric values only; everything else is discarded.

    An empty numeric set yields 0 for every function.
    """
    numbers = [n for n in (_number(v) for v in values) if n is not None]
    function = AggregateFunction(aggregate)
    if function == AggregateFunction.COUNT:
        return len(numbers)
    if not numbers:
        return 0
    if function == AggregateFunction.SUM:
        return sum(numbers)
    if function == AggregateFunction.AVG:
        return sum(numbers) / len(numbers)
    if function == AggregateFunction.MIN:
        return min(numbers)
    return max(numbers)


def apply_grouping(
    rows: Sequence[Mapping[str, Any]], grouping: Sequence[str], fields: Sequence[ReportField]
) -> list[dict[str, Any]]:
    """
    Collapse rows into one row per distinct group key.

    Output rows carry the group-by values plus each aggregate field; other
    member values are not carried.
    """
    groups: dict[str, list[Mapping[str, Any]]] = {}
    for row in rows:
        key = GROUP_KEY_SEPARATOR.join(str(row.get(column)) for column in grouping)
        groups.setdefault(key, []).append(row)

    grouped = []
    for members in groups.values():
        item = {column: members[0].get(column) for column in grouping}
        for report_field in fields:
            if report_field.aggregate:
                item[report_field.name] = calculate_aggregate(
                    (member.get(report_field.name) for member in members), report_field.aggregate
                )
        grouped.append(item)
    return grouped


def calculate_aggregates(
    rows: Sequence[Mapping[str, Any]], fields: Sequence[ReportField]
) -> dict[str, float]:
    return {
        report_field.name: calculate_aggregate(
            (row.get(report_field.name) for row in rows), report_field.aggregate
        )
        for report_field in fields
        if report_field.aggregate
    }


# =============================================================================
# Sorting and Selection
# =============================================================================


def _sort_key(value: Any) -> tuple[int, Any]:
    number = _number(value)
    if number is not None:
        return (0, number)
    if isinstance(value, (datetime, date)):
        return (1, value.isoformat())
    return (1, str(value))


def apply_sorting(rows: Sequence[dict[str, Any]], sorting: Sequence[ReportSorting]) -> list[dict[str, Any]]:
    """Stable multi-key sort; missing values sort last in either direction."""
    ordered = list(rows)
    # Last key first so earlier keys dominate
    for sort in reversed(sorting):
        present = [row for row in ordered if row.get(sort.field) is not None]
        missing = [row for row in ordered if row.get(sort.field) is None]
        present.sort(key=lambda row: _sort_key(row[sort.field]), reverse=sort.order == SortOrder.DESC)
        ordered = present + missing
    return ordered


def select_fields(rows: Sequence[Mapping[str, Any]], fields: Sequence[ReportField]) -> list[dict[str, Any]]:
    return [
        {report_field.output_name: row.get(report_field.name) for report_field in fields}
        for row in rows
    ]


def build_report(
    rows: Sequence[Mapping[str, Any]], definition: ReportDefinition
) -> tuple[list[dict[str, Any]], dict[str, float]]:
    """
    Run the full pipeline over ``rows``.

    Pure and deterministic: identical input yields identical output.

    Returns:
        (selected rows, summary aggregates)
    """
    validate_definition(definition)

    data = apply_filters(rows, definition.filters)
    if definition.grouping:
        data = apply_grouping(data, definition.grouping, definition.fields)
    if definition.sorting:
        data = apply_sorting(data, definition.sorting)
    selected = select_fields(data, definition.fields)
    return selected, calculate_aggregates(selected, definition.fields)
