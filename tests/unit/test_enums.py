"""
Unit tests for core enumerations.
"""

import pytest

from src.core.enums import (
    AggregateFunction,
    AppealStatus,
    AppealType,
    AuditAction,
    AuditActionCategory,
    AuditSeverity,
    BulkOperationType,
    BulkTargetType,
    ClaimStatus,
    DenialState,
    EDITransactionStatus,
    EDITransactionType,
    EligibilityStatus,
    FilterOperator,
    ProviderStatus,
    ReportType,
    SortOrder,
    TrendPeriod,
)


class TestProviderEnums:
    """Tests for external provider enums."""

    def test_provider_status_values(self):
        """Test provider status enum values."""
        assert ProviderStatus.HEALTHY == "healthy"
        assert ProviderStatus.DEGRADED == "degraded"
        assert ProviderStatus.UNHEALTHY == "unhealthy"


class TestEDIEnums:
    """Tests for EDI enums."""

    def test_transaction_types_are_x12_codes(self):
        assert {t.value for t in EDITransactionType} == {"837", "835", "270", "271", "276", "277"}

    def test_transaction_status_values(self):
        assert [s.value for s in EDITransactionStatus] == [
            "pending",
            "sent",
            "acknowledged",
            "rejected",
            "processed",
        ]

    def test_claim_status_values(self):
        assert [s.value for s in ClaimStatus] == ["pending", "processing", "paid", "denied", "rejected"]

    def test_eligibility_has_unknown(self):
        assert EligibilityStatus("unknown") == EligibilityStatus.UNKNOWN


class TestDenialEnums:
    """Tests for denial and appeal enums."""

    def test_denial_states_in_order(self):
        assert [s.value for s in DenialState] == ["denied", "analyzing", "analyzed", "appeal_drafted"]

    def test_appeal_types(self):
        assert AppealType.NOT_APPEALABLE == "not_appealable"
        assert AppealType("expedited") == AppealType.EXPEDITED

    def test_appeal_statuses(self):
        assert [s.value for s in AppealStatus] == [
            "draft",
            "submitted",
            "under_review",
            "approved",
            "denied",
            "withdrawn",
        ]

    @pytest.mark.parametrize("value", ["7d", "30d", "90d", "1y"])
    def test_trend_periods(self, value):
        assert TrendPeriod(value).value == value


class TestAuditEnums:
    """Tests for audit enums."""

    def test_actions(self):
        assert len(AuditAction) == 12
        assert AuditAction.USE_VISIT == "use_visit"

    def test_categories(self):
        assert {c.value for c in AuditActionCategory} == {
            "creation",
            "modification",
            "status_change",
            "visit_usage",
            "renewal",
            "appeal",
            "access",
            "export",
        }

    def test_severities(self):
        assert [s.value for s in AuditSeverity] == ["low", "medium", "high"]


class TestBulkAndReportEnums:
    """Tests for bulk operation and report enums."""

    def test_bulk_types(self):
        assert BulkOperationType.STATUS_UPDATE == "status_update"
        assert [t.value for t in BulkTargetType] == ["tasks", "claims", "authorizations"]

    def test_filter_operators(self):
        assert [o.value for o in FilterOperator] == [
            "equals",
            "not_equals",
            "contains",
            "greater_than",
            "less_than",
            "between",
            "in",
        ]

    def test_aggregates_and_sorting(self):
        assert {f.value for f in AggregateFunction} == {"sum", "avg", "count", "min", "max"}
        assert SortOrder("desc") == SortOrder.DESC

    def test_report_types(self):
        assert ReportType.CUSTOM == "custom"
        with pytest.raises(ValueError):
            ReportType("invoices")
