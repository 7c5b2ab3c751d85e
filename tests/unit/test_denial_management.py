"""
Unit Tests for Denial Management.

Tests:
- Root cause, categorization and appealability rules
- Full denial analysis
- Appeal workflow creation and submission
- Denial trends
"""

from datetime import date, datetime, timezone

import pytest

from src.core.enums import (
    ActionPriority,
    AppealStatus,
    AppealType,
    DenialCategoryType,
    DenialSeverity,
    TrendPeriod,
)
from src.core.exceptions import InputValidationError, RecordNotFoundError, TransactionStateError
from src.db.memory_store import InMemoryDataStore
from src.gateways.base import GatewayConfig
from src.gateways.denial_intelligence_gateway import DenialIntelligenceGateway
from src.services.denials.denial_management import DenialManagementService
from src.services.denials.models import ClaimRecord, DenialRecord

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)
USER_ID = "user-1"


def _service(store) -> DenialManagementService:
    return DenialManagementService(
        store,
        DenialIntelligenceGateway(GatewayConfig(provider="local")),
        clock=lambda: NOW,
    )


def _denial(code: str, **overrides) -> DenialRecord:
    row = {"id": "dx", "claim_id": "cx", "denial_code": code, "denied_amount": 100}
    row.update(overrides)
    return DenialRecord.from_row(row)


def _claim(**overrides) -> ClaimRecord:
    row = {"id": "cx", "diagnosis_codes": ["J06.9"]}
    row.update(overrides)
    return ClaimRecord.from_row(row, "claims")


# =============================================================================
# Rules
# =============================================================================


@pytest.mark.unit
class TestDenialRules:
    """Pure rule methods."""

    def test_root_cause_evidence(self, store):
        service = _service(store)
        cause = service.identify_root_cause(
            _denial("co-16"),
            _claim(diagnosis_codes=[], service_date_from="2024-04-01"),
        )
        assert cause.primary == "Prior authorization missing or expired"
        assert cause.confidence == "high"
        assert cause.evidence == [
            "No prior authorization number found in claim",
            "No diagnosis codes provided",
            "Service date is in the future",
        ]

    def test_root_cause_without_evidence(self, store):
        cause = _service(store).identify_root_cause(_denial("CO-50"), _claim())
        assert cause.primary == "Medical necessity not established"
        assert cause.confidence == "medium"
        assert cause.evidence == []

    def test_unknown_code_needs_manual_review(self, store):
        cause = _service(store).identify_root_cause(_denial("PR-204"), _claim())
        assert cause.primary == "Unknown root cause - requires manual review"
        assert cause.secondary == []

    @pytest.mark.parametrize(
        "code,category,severity",
        [
            ("CO-18", DenialCategoryType.ADMINISTRATIVE, DenialSeverity.MEDIUM),
            ("CO-16", DenialCategoryType.AUTHORIZATION, DenialSeverity.HIGH),
            ("CO-11", DenialCategoryType.CLINICAL, DenialSeverity.HIGH),
            ("CO-45", DenialCategoryType.ELIGIBILITY, DenialSeverity.CRITICAL),
            ("CO-97", DenialCategoryType.OTHER, DenialSeverity.MEDIUM),
        ],
    )
    def test_categorize(self, code, category, severity):
        result = DenialManagementService.categorize_denial(_denial(code))
        assert result.type == category
        assert result.severity == severity

    @pytest.mark.parametrize("code", ["CO-1", "CO-2", "CO-3"])
    def test_patient_responsibility_is_not_appealable(self, store, code):
        result = _service(store).determine_appealability(_denial(code), _claim(), 90)
        assert result.can_appeal is False
        assert result.appeal_type == AppealType.NOT_APPEALABLE
        assert result.success_probability == 0
        assert result.required_documents == []

    def test_linked_authorization_boost_is_capped(self, store):
        result = _service(store).determine_appealability(
            _denial("CO-16", denial_date="2024-03-01"), _claim(prior_auth_number="AUTH-9"), 85
        )
        assert result.success_probability == 100
        assert result.required_documents[0] == "Prior authorization documentation"
        assert result.deadline == datetime(2024, 4, 30, tzinfo=timezone.utc)

    def test_diagnosis_boost_and_expedited(self, store):
        result = _service(store).determine_appealability(
            _denial("CO-11", urgency="STAT"), _claim(), 75
        )
        assert result.success_probability == 90
        assert result.appeal_type == AppealType.EXPEDITED
        assert result.required_documents == [
            "Clinical notes",
            "Medical necessity documentation",
            "Original claim",
            "Denial letter",
            "Appeal letter",
        ]

    def test_deadline_defaults_to_today(self, store):
        result = _service(store).determine_appealability(_denial("CO-50"), _claim(), 70)
        assert result.deadline == datetime(2024, 5, 14, tzinfo=timezone.utc)

    def test_prevention_strategies(self, store):
        service = _service(store)
        cause = service.identify_root_cause(_denial("CO-18"), _claim())
        strategies = service.generate_prevention_strategies(cause)
        assert strategies[0] == "Implement duplicate claim detection before submission"
        assert strategies[-1] == "Maintain accurate patient eligibility records"


# =============================================================================
# Analysis
# =============================================================================


@pytest.mark.unit
class TestAnalyzeDenial:
    """End-to-end analysis over the seeded store."""

    @pytest.mark.asyncio
    async def test_prior_auth_denial(self, store):
        analysis = await _service(store).analyze_denial("d2", "c2")

        assert analysis.appealability.can_appeal is True
        assert analysis.appealability.success_probability == 100
        assert analysis.estimated_recovery_probability == 100
        assert analysis.estimated_recovery_amount == pytest.approx(720.0)
        assert analysis.category.type == DenialCategoryType.AUTHORIZATION
        assert [a.action for a in analysis.recommended_actions] == [
            "File Appeal",
            "Obtain/Link Authorization",
            "Gather Supporting Documents",
        ]
        assert analysis.recommended_actions[0].priority == ActionPriority.CRITICAL
        assert analysis.appealability.deadline == datetime(2024, 5, 11, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_non_appealable_denial(self, store):
        analysis = await _service(store).analyze_denial("d3", "c3")
        assert analysis.appealability.can_appeal is False
        assert analysis.estimated_recovery_amount == 0
        assert analysis.recommended_actions[-1].action == "Gather Supporting Documents"

    @pytest.mark.asyncio
    async def test_similar_denials(self):
        store = InMemoryDataStore(
            {
                "claim_denials": [
                    {"id": "d1", "claim_id": "c1", "denial_code": "CO-50", "denied_amount": 10},
                    {"id": "d2", "claim_id": "c9", "denial_code": "CO-50", "appeal_status": "approved"},
                    {"id": "d3", "claim_id": "c8", "denial_code": "CO-11"},
                ],
                "claims": [{"id": "c1", "diagnosis_codes": ["J06.9"]}],
            }
        )
        analysis = await _service(store).analyze_denial("d1", "c1")
        assert len(analysis.similar_denials) == 1
        assert analysis.similar_denials[0].claim_id == "c9"
        assert analysis.similar_denials[0].resolution == "approved"

    @pytest.mark.asyncio
    async def test_missing_denial(self, store):
        with pytest.raises(RecordNotFoundError) as exc_info:
            await _service(store).analyze_denial("nope", "c1")
        assert str(exc_info.value) == "Denial not found: nope"

    @pytest.mark.asyncio
    async def test_missing_claim(self, store):
        with pytest.raises(RecordNotFoundError):
            await _service(store).analyze_denial("d1", "missing")

    @pytest.mark.asyncio
    async def test_institutional_claim_wins(self, store):
        claim = await _service(store).get_claim("c3")
        assert claim.source_table == "claims"
        assert claim.patient_name == "Institutional Patient"


# =============================================================================
# Appeal Workflows
# =============================================================================


@pytest.mark.unit
class TestAppealWorkflow:
    """Draft and submit appeals."""

    @pytest.mark.asyncio
    async def test_create_and_submit(self, store):
        service = _service(store)
        workflow = await service.create_appeal_workflow("d2", "c2", "standard", USER_ID)

        assert workflow.id
        assert workflow.status == AppealStatus.DRAFT
        assert workflow.appeal_type == AppealType.STANDARD
        assert workflow.created_by == USER_ID
        assert "AUTH-9" in workflow.appeal_letter
        assert "Prior authorization documentation" in workflow.supporting_documents

        submitted = await service.submit_appeal(workflow.id, USER_ID)
        assert submitted.status == AppealStatus.SUBMITTED
        assert submitted.submitted_at is not None

        denial = next(row for row in store.rows("claim_denials") if row["id"] == "d2")
        assert denial["appeal_status"] == "submitted"

        with pytest.raises(TransactionStateError):
            await service.submit_appeal(workflow.id, USER_ID)

    @pytest.mark.asyncio
    async def test_non_appealable_raises(self, store):
        with pytest.raises(InputValidationError) as exc_info:
            await _service(store).create_appeal_workflow("d3", "c3", AppealType.STANDARD, USER_ID)
        assert str(exc_info.value) == "This denial is not appealable"
        assert store.rows("appeal_workflows") == []

    @pytest.mark.asyncio
    async def test_unknown_appeal_type(self, store):
        with pytest.raises(InputValidationError):
            await _service(store).create_appeal_workflow("d2", "c2", "urgent-ish", USER_ID)

    @pytest.mark.asyncio
    async def test_submit_missing_appeal(self, store):
        with pytest.raises(RecordNotFoundError):
            await _service(store).submit_appeal("nope", USER_ID)


# =============================================================================
# Trends
# =============================================================================


@pytest.mark.unit
class TestDenialTrends:
    """Trend aggregation."""

    @pytest.mark.asyncio
    async def test_month_trends(self):
        store = InMemoryDataStore(
            {
                "claim_denials": [
                    {"id": "1", "denial_code": "CO-16", "denial_date": "2024-03-01", "appeal_status": "approved"},
                    {"id": "2", "denial_code": "CO-16", "denial_date": "2024-03-05", "appeal_status": "denied"},
                    {"id": "3", "denial_code": "CO-50", "denial_date": "2024-03-10"},
                    {"id": "4", "denial_code": "CO-50", "denial_date": "2023-12-01"},
                ],
                "claims": [
                    {"id": f"c{i}", "status": "submitted", "created_at": "2024-03-02T00:00:00"} for i in range(6)
                ],
            }
        )
        trends = await _service(store).get_denial_trends(TrendPeriod.MONTH)

        assert trends.total_denials == 3
        assert trends.denial_rate == pytest.approx(50.0)
        assert trends.appeal_success_rate == pytest.approx(50.0)
        assert trends.top_denial_codes[0].code == "CO-16"
        assert trends.top_denial_codes[0].count == 2
        assert trends.top_denial_codes[0].reason == "Prior Authorization Required"
        assert trends.top_denial_codes[0].rate == pytest.approx(200 / 3)

    @pytest.mark.asyncio
    async def test_empty_period(self):
        trends = await _service(InMemoryDataStore()).get_denial_trends("7d")
        assert trends.total_denials == 0
        assert trends.denial_rate == 0
        assert trends.top_denial_codes == []

    @pytest.mark.asyncio
    async def test_unknown_period(self):
        with pytest.raises(InputValidationError):
            await _service(InMemoryDataStore()).get_denial_trends("decade")


@pytest.mark.unit
class TestRowDecoding:
    """Malformed rows decode to neutral defaults."""

    def test_denial_row_defaults(self):
        denial = DenialRecord.from_row({"id": 7, "denialCode": " CO-16 ", "amount": "abc"})
        assert denial.id == "7"
        assert denial.denial_code == "CO-16"
        assert denial.denied_amount == 0
        assert denial.denial_date is None

    def test_claim_row_aliases(self):
        claim = ClaimRecord.from_row(
            {"id": "c1", "cpt_codes": "99213, 99214", "insurance_provider": "Acme", "service_date_from": "20240301"},
            "professional_claims",
        )
        assert claim.procedure_codes == ["99213", "99214"]
        assert claim.payer_name == "Acme"
        assert claim.service_date_from == date(2024, 3, 1)
