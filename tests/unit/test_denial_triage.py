"""
Unit Tests for Denial Triage.

Tests:
- Tenant-scoped loading with the unscoped fallback
- Claim resolution across institutional and professional tables
- Search filtering and totals
- Batched triage, display caps and failure handling
- Operator session state
"""

import pytest

from src.core.enums import DenialState, TriagePriority
from src.core.exceptions import InputValidationError, TriageError
from src.db.memory_store import InMemoryDataStore
from src.gateways.base import GatewayConfig, ProviderUnavailableError
from src.gateways.denial_intelligence_gateway import DenialIntelligenceGateway
from src.services.audit.authorization_audit import AuthorizationAuditService, bind_actor
from src.services.denials.denial_management import DenialManagementService
from src.services.denials.models import TriageResult
from src.services.denials.triage import (
    LOGIN_REQUIRED_MESSAGE,
    DenialTriageService,
    TriageSession,
)

COMPANY_ID = "company-1"
USER_ID = "user-1"


class RecordingIntelligence(DenialIntelligenceGateway):
    """Local provider that records triage batches."""

    def __init__(self, fail: bool = False):
        super().__init__(GatewayConfig(provider="local"))
        self.batches: list[list[dict]] = []
        self.fail = fail

    async def triage(self, candidates):
        self.batches.append(list(candidates))
        if self.fail:
            raise ProviderUnavailableError("Denial intelligence unavailable", provider="local")
        return await super().triage(candidates)


def _service(store, intelligence=None, **kwargs) -> DenialTriageService:
    intelligence = intelligence or DenialIntelligenceGateway(GatewayConfig(provider="local"))
    return DenialTriageService(
        store,
        DenialManagementService(store, intelligence),
        intelligence,
        AuthorizationAuditService(store),
        **kwargs,
    )


def _bulk_store(count: int) -> InMemoryDataStore:
    return InMemoryDataStore(
        {
            "claim_denials": [
                {
                    "id": f"d{i:03d}",
                    "claim_id": f"c{i:03d}",
                    "denial_code": "CO-16",
                    "denied_amount": 100 + i,
                    "denial_date": f"2024-01-{(i % 28) + 1:02d}",
                }
                for i in range(count)
            ],
            "claims": [],
            "professional_claims": [],
        }
    )


# =============================================================================
# Loading
# =============================================================================


@pytest.mark.unit
class TestLoadDenials:
    """Narrow-then-broad loading."""

    @pytest.mark.asyncio
    async def test_tenant_scope_includes_unscoped_rows(self, store):
        pairs = await _service(store).load_denials(COMPANY_ID)
        assert [p.denial.id for p in pairs] == ["d2", "d1", "d3"]

    @pytest.mark.asyncio
    async def test_without_company_loads_everything(self, store):
        pairs = await _service(store).load_denials()
        assert {p.denial.id for p in pairs} == {"d1", "d2", "d3", "d4"}

    @pytest.mark.asyncio
    async def test_falls_back_when_company_column_missing(self):
        store = InMemoryDataStore(
            {
                "claim_denials": [{"id": "d1", "claim_id": "c1", "denial_code": "CO-50", "denial_date": "2024-03-01"}],
                "claims": [],
                "professional_claims": [],
            },
            schemas={
                "claim_denials": ["id", "claim_id", "denial_code", "denial_date"],
                "claims": ["id"],
                "professional_claims": ["id"],
            },
        )
        pairs = await _service(store).load_denials(COMPANY_ID)
        assert [p.denial.id for p in pairs] == ["d1"]
        assert pairs[0].claim is None

    @pytest.mark.asyncio
    async def test_claims_resolved_from_both_tables(self, store):
        pairs = {p.denial.id: p for p in await _service(store).load_denials(COMPANY_ID)}
        assert pairs["d1"].claim.source_table == "claims"
        assert pairs["d2"].claim.source_table == "professional_claims"
        assert pairs["d2"].claim.prior_auth_number == "AUTH-9"
        # c3 exists in both tables
        assert pairs["d3"].claim.source_table == "claims"
        assert pairs["d3"].claim.patient_name == "Institutional Patient"

    @pytest.mark.asyncio
    async def test_fetch_limit(self):
        pairs = await _service(_bulk_store(10), fetch_limit=4).load_denials()
        assert len(pairs) == 4

    @pytest.mark.asyncio
    async def test_find_pair(self, store):
        service = _service(store)
        assert (await service.find_pair("d1", COMPANY_ID)).claim.claim_number == "CLM-1001"
        assert await service.find_pair("d4", COMPANY_ID) is None


# =============================================================================
# Filtering and Totals
# =============================================================================


@pytest.mark.unit
class TestFilteringAndTotals:
    """Search and totals."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "term,expected",
        [
            ("co-50", ["d1"]),
            ("JANE", ["d1"]),
            ("pro-2002", ["d2"]),
            ("deductible", ["d3"]),
            ("", ["d2", "d1", "d3"]),
            ("   ", ["d2", "d1", "d3"]),
            ("zzz", []),
        ],
    )
    async def test_filter(self, store, term, expected):
        service = _service(store)
        pairs = await service.load_denials(COMPANY_ID)
        assert [p.denial.id for p in service.filter_pairs(pairs, term)] == expected

    @pytest.mark.asyncio
    async def test_totals_coerce_amounts(self, store):
        service = _service(store)
        totals = service.compute_totals(await service.load_denials(COMPANY_ID))
        assert totals.total_denials == 3
        assert totals.total_denied_amount == pytest.approx(970.5)

    def test_totals_of_nothing(self, store):
        totals = _service(store).compute_totals([])
        assert totals.total_denials == 0
        assert totals.total_denied_amount == 0


# =============================================================================
# Triage
# =============================================================================


@pytest.mark.unit
class TestRunTriage:
    """Batched triage."""

    @pytest.mark.asyncio
    async def test_candidate_payload(self, store):
        intelligence = RecordingIntelligence()
        service = _service(store, intelligence)
        pairs = service.filter_pairs(await service.load_denials(COMPANY_ID), "CO-50")

        result = await service.run_triage(pairs)

        assert intelligence.batches == [
            [
                {
                    "denialId": "d1",
                    "claimId": "c1",
                    "denialCode": "CO-50",
                    "denialReason": "Non-covered Services",
                    "amount": 120.5,
                    "payerName": "Acme Health",
                    "procedureCodes": ["99213"],
                    "diagnosisCodes": ["J06.9"],
                    "denialDate": "2024-03-10",
                }
            ]
        ]
        assert result.queue[0].denial_id == "d1"
        assert result.queue[0].priority == TriagePriority.LOW

    @pytest.mark.asyncio
    async def test_candidate_amount_from_amount_column(self):
        store = InMemoryDataStore(
            {
                "claim_denials": [{"id": "d9", "claim_id": None, "denial_code": "CO-16", "amount": "75.25"}],
                "claims": [],
                "professional_claims": [],
            }
        )
        intelligence = RecordingIntelligence()
        service = _service(store, intelligence)

        await service.run_triage(await service.load_denials())

        assert intelligence.batches[0][0]["amount"] == 75.25

    @pytest.mark.asyncio
    async def test_batch_is_capped(self):
        intelligence = RecordingIntelligence()
        service = _service(_bulk_store(150), intelligence)
        pairs = await service.load_denials()
        assert len(pairs) == 150

        result = await service.run_triage(pairs)

        assert len(intelligence.batches[0]) == 80
        assert len(result.queue) == 80
        assert len(result.display().queue) == 10

    @pytest.mark.asyncio
    async def test_failure_raises_triage_error(self, store):
        service = _service(store, RecordingIntelligence(fail=True))
        with pytest.raises(TriageError) as exc_info:
            await service.run_triage(await service.load_denials(COMPANY_ID))
        assert "unavailable" in exc_info.value.message

    def test_malformed_response_decodes_to_defaults(self):
        result = TriageResult.from_payload(
            {
                "queue": [{"denialId": "d1", "priority": "URGENT", "estimatedRecoveryAmount": "n/a"}, "junk"],
                "clusters": [{"count": "3", "denialCodes": "CO-16, CO-50"}],
            }
        )
        assert result.queue[0].priority == TriagePriority.LOW
        assert result.queue[0].estimated_recovery_amount == 0
        assert len(result.queue) == 1
        assert result.clusters[0].label == "Cluster"
        assert result.clusters[0].count == 3
        assert result.clusters[0].denial_codes == ["CO-16", "CO-50"]
        assert TriageResult.from_payload(None).queue == []


# =============================================================================
# Appeals and Sessions
# =============================================================================


@pytest.mark.unit
class TestAppealsAndSessions:
    """Appeal drafting and operator session state."""

    @pytest.mark.asyncio
    async def test_generate_appeal_requires_actor(self, store):
        service = _service(store)
        pair = await service.find_pair("d2", COMPANY_ID)
        with pytest.raises(InputValidationError) as exc_info:
            await service.generate_appeal(pair, None)
        assert str(exc_info.value) == LOGIN_REQUIRED_MESSAGE
        assert store.rows("appeal_workflows") == []

    @pytest.mark.asyncio
    async def test_generate_appeal_drafts_and_audits(self, store, actor):
        service = _service(store)
        pair = await service.find_pair("d2", COMPANY_ID)

        with bind_actor(actor):
            letter = await service.generate_appeal(pair, actor.id)

        assert "AUTH-9" in letter
        workflows = store.rows("appeal_workflows")
        assert len(workflows) == 1
        assert workflows[0]["status"] == "draft"

        audit_rows = store.rows("authorization_audit_logs")
        assert audit_rows[0]["action"] == "appeal"
        assert audit_rows[0]["authorization_request_id"] == "d2"
        assert audit_rows[0]["user_name"] == "Jane Smith"

    @pytest.mark.asyncio
    async def test_session_states(self, store):
        session = TriageSession(_service(store), company_id=COMPANY_ID)
        await session.load()
        pair = session.visible[1]
        assert pair.denial.id == "d1"
        assert session.state_of("d1") == DenialState.DENIED

        analysis = await session.open_analysis(pair)
        assert analysis is not None
        assert session.state_of("d1") == DenialState.ANALYZED

        letter = await session.generate_appeal(USER_ID)
        assert letter.startswith("Dear Claims Department,")
        assert session.state_of("d1") == DenialState.APPEAL_DRAFTED

        # Re-analysis never moves a denial backward
        await session.open_analysis(pair)
        assert session.state_of("d1") == DenialState.APPEAL_DRAFTED

    @pytest.mark.asyncio
    async def test_failed_analysis_restores_state(self, store):
        session = TriageSession(_service(store), company_id=COMPANY_ID)
        await session.load()
        pair = session.pairs[0]
        pair.denial.claim_id = "missing"
        pair.claim = None

        assert await session.open_analysis(pair) is None
        assert session.state_of(pair.denial.id) == DenialState.DENIED

    @pytest.mark.asyncio
    async def test_session_triage_error_is_kept(self, store):
        session = TriageSession(_service(store, RecordingIntelligence(fail=True)), company_id=COMPANY_ID)
        await session.load()
        assert await session.run_triage() is None
        assert "unavailable" in session.triage_error

    @pytest.mark.asyncio
    async def test_session_search_and_totals(self, store):
        session = TriageSession(_service(store), company_id=COMPANY_ID, search="acme")
        await session.load()
        assert session.totals.total_denials == 0
        session.search = "CLM-100"
        assert [p.denial.id for p in session.filtered] == ["d1", "d3"]
        assert session.totals.total_denied_amount == pytest.approx(170.5)
