"""
Declarative report engine and report definition storage.
"""

from src.services.reports.report_engine import (
    ReportDefinition,
    ReportField,
    ReportFilter,
    ReportMetadata,
    ReportResult,
    ReportSorting,
    ReportSummary,
    apply_filters,
    apply_grouping,
    apply_sorting,
    build_report,
    calculate_aggregate,
    calculate_aggregates,
    select_fields,
    validate_definition,
)
from src.services.reports.report_service import ReportService

__all__ = [
    "ReportDefinition",
    "ReportField",
    "ReportFilter",
    "ReportMetadata",
    "ReportResult",
    "ReportService",
    "ReportSorting",
    "ReportSummary",
    "apply_filters",
    "apply_grouping",
    "apply_sorting",
    "build_report",
    "calculate_aggregate",
    "calculate_aggregates",
    "select_fields",
    "validate_definition",
]
