"""
Denial Triage Service.

Loads denial + claim pairs for a tenant, filters and totals them, runs the
batched triage capability, and drives per-denial analysis and appeal
drafting. ``TriageSession`` keeps one operator's working state.

Loading is narrow-then-broad: the tenant-scoped query runs first and, when
the backend rejects it (e.g. a schema without ``company_id``), an unscoped
query runs instead. Claims are resolved from ``claims`` and
``professional_claims``; when an id exists in both, the institutional row
is kept.
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence
import asyncio
import logging

from src.core.enums import AppealType, DenialState
from src.core.exceptions import InputValidationError, TriageError
from src.db.store import Condition, DataStore, StoreError
from src.gateways.denial_intelligence_gateway import DenialIntelligenceGateway
from src.services.audit.authorization_audit import AuthorizationAuditService
from src.services.denials.denial_management import DenialManagementService
from src.services.denials.models import (
    DENIAL_LIST_DISPLAY_LIMIT,
    ClaimRecord,
    DenialAnalysis,
    DenialClaimPair,
    DenialRecord,
    DenialTotals,
    TriageCandidate,
    TriageResult,
)

logger = logging.getLogger(__name__)

DENIALS_TABLE = "claim_denials"
INSTITUTIONAL_CLAIMS_TABLE = "claims"
PROFESSIONAL_CLAIMS_TABLE = "professional_claims"

DEFAULT_FETCH_LIMIT = 200
DEFAULT_BATCH_LIMIT = 80

LOGIN_REQUIRED_MESSAGE = "You must be logged in to generate an appeal workflow"


class DenialTriageService:
    """
    Denial triage orchestration.

    Usage:
        service = DenialTriageService(store, management, intelligence, audit)
        pairs = await service.load_denials(company_id)
        visible = service.filter_pairs(pairs, "CO-50")
        result = await service.run_triage(visible)
    """

    def __init__(
        self,
        store: DataStore,
        management: DenialManagementService,
        intelligence: DenialIntelligenceGateway,
        audit: Optional[AuthorizationAuditService] = None,
        fetch_limit: int = DEFAULT_FETCH_LIMIT,
        batch_limit: int = DEFAULT_BATCH_LIMIT,
    ):
        self.store = store
        self.management = management
        self.intelligence = intelligence
        self.audit = audit
        self.fetch_limit = fetch_limit
        self.batch_limit = batch_limit

    # =========================================================================
    # Loading
    # =========================================================================

    def _denials_query(self):
        return self.store.table(DENIALS_TABLE).order("denial_date", descending=True).limit(self.fetch_limit)

    async def load_denials(self, company_id: Optional[str] = None) -> list[DenialClaimPair]:
        """
        Load the newest denials with their claims.

        Raises:
            StoreError: The unscoped fallback query failed, or a claim lookup failed
        """
        if company_id:
            try:
                rows = await self._denials_query().or_(
                    Condition.eq("company_id", company_id),
                    Condition.is_null("company_id"),
                ).fetch()
            except StoreError as e:
                logger.warning(f"Tenant-scoped denial query failed, retrying unscoped: {e}")
                rows = await self._denials_query().fetch()
        else:
            rows = await self._denials_query().fetch()

        denials = [DenialRecord.from_row(row) for row in rows]
        claims = await self._resolve_claims(denials)

        pairs = [
            DenialClaimPair(denial=denial, claim=claims.get(denial.claim_id) if denial.claim_id else None)
            for denial in denials
        ]
        logger.info(f"Loaded {len(pairs)} denials ({sum(1 for p in pairs if p.claim)} with claims)")
        return pairs

    async def _resolve_claims(self, denials: Sequence[DenialRecord]) -> dict[str, ClaimRecord]:
        claim_ids = list(dict.fromkeys(d.claim_id for d in denials if d.claim_id))
        if not claim_ids:
            return {}

        institutional, professional = await asyncio.gather(
            self.store.table(INSTITUTIONAL_CLAIMS_TABLE).in_("id", claim_ids).fetch(),
            self.store.table(PROFESSIONAL_CLAIMS_TABLE).in_("id", claim_ids).fetch(),
        )

        claims: dict[str, ClaimRecord] = {}
        for row in professional:
            record = ClaimRecord.from_row(row, PROFESSIONAL_CLAIMS_TABLE)
            claims[record.id] = record
        for row in institutional:
            record = ClaimRecord.from_row(row, INSTITUTIONAL_CLAIMS_TABLE)
            if record.id in claims:
                logger.warning(
                    f"Claim id {record.id} exists in both claim tables; using {INSTITUTIONAL_CLAIMS_TABLE}"
                )
            claims[record.id] = record
        return claims

    # =========================================================================
    # Filtering and Totals
    # =========================================================================

    @staticmethod
    def filter_pairs(pairs: Sequence[DenialClaimPair], term: Optional[str]) -> list[DenialClaimPair]:
        """Case-insensitive substring match on code, reason, claim number and patient name."""
        needle = (term or "").strip().lower()
        if not needle:
            return list(pairs)

        def matches(pair: DenialClaimPair) -> bool:
            claim = pair.claim
            haystacks = (
                pair.denial.denial_code,
                pair.denial.denial_reason,
                (claim.claim_number or claim.id) if claim else "",
                (claim.patient_name or "") if claim else "",
            )
            return any(needle in value.lower() for value in haystacks)

        return [pair for pair in pairs if matches(pair)]

    @staticmethod
    def compute_totals(pairs: Sequence[DenialClaimPair]) -> DenialTotals:
        return DenialTotals(
            total_denials=len(pairs),
            total_denied_amount=sum(pair.denial.denied_amount for pair in pairs),
        )

    # =========================================================================
    # Triage
    # =========================================================================

    def build_candidates(self, pairs: Sequence[DenialClaimPair]) -> list[TriageCandidate]:
        return [TriageCandidate.from_pair(pair) for pair in pairs[: self.batch_limit]]

    async def run_triage(self, pairs: Sequence[DenialClaimPair]) -> TriageResult:
        """
        Triage up to ``batch_limit`` denials in one capability call.

        Raises:
            TriageError: The call failed; no partial result is returned
        """
        candidates = self.build_candidates(pairs)
        payload = [candidate.to_payload() for candidate in candidates]
        try:
            response = await self.intelligence.triage(payload)
        except Exception as e:
            logger.error(f"Triage failed for {len(payload)} denials: {e}")
            raise TriageError(str(e) or "Failed to run triage") from e

        result = TriageResult.from_payload(response)
        logger.info(f"Triage returned {len(result.queue)} queue items, {len(result.clusters)} clusters")
        return result

    # =========================================================================
    # Analysis and Appeals
    # =========================================================================

    async def open_analysis(self, pair: DenialClaimPair) -> Optional[DenialAnalysis]:
        """Analyze one denial; None when no analysis is available."""
        try:
            return await self.management.analyze_denial(pair.denial.id, pair.claim_ref)
        except Exception as e:
            logger.warning(f"Analysis failed for denial {pair.denial.id}: {e}")
            return None

    async def generate_appeal(self, pair: DenialClaimPair, actor_id: Optional[str]) -> str:
        """
        Draft a standard appeal workflow and return its letter.

        Raises:
            InputValidationError: No actor, or the denial is not appealable
        """
        if not actor_id:
            raise InputValidationError(LOGIN_REQUIRED_MESSAGE)

        workflow = await self.management.create_appeal_workflow(
            pair.denial.id, pair.claim_ref, AppealType.STANDARD, actor_id
        )
        if self.audit is not None:
            await self.audit.log_appeal(
                pair.denial.id,
                {"appeal_id": workflow.id, "claim_id": workflow.claim_id, "appeal_type": workflow.appeal_type.value},
                notes="Appeal draft generated from denial triage",
            )
        return workflow.appeal_letter

    async def find_pair(self, denial_id: str, company_id: Optional[str] = None) -> Optional[DenialClaimPair]:
        """Locate one loaded pair by denial id."""
        for pair in await self.load_denials(company_id):
            if pair.denial.id == denial_id:
                return pair
        return None


@dataclass
class TriageSession:
    """
    One operator's working state.

    Per denial: DENIED -> ANALYZING -> ANALYZED -> APPEAL_DRAFTED. Re-running
    analysis replaces the stored analysis; states never move backward.
    """

    service: DenialTriageService
    company_id: Optional[str] = None
    pairs: list[DenialClaimPair] = field(default_factory=list)
    search: str = ""
    triage_result: Optional[TriageResult] = None
    triage_error: Optional[str] = None
    selected: Optional[DenialClaimPair] = None
    analysis: Optional[DenialAnalysis] = None
    appeal_letter: Optional[str] = None
    states: dict[str, DenialState] = field(default_factory=dict)

    _ORDER = (DenialState.DENIED, DenialState.ANALYZING, DenialState.ANALYZED, DenialState.APPEAL_DRAFTED)

    async def load(self) -> list[DenialClaimPair]:
        self.pairs = await self.service.load_denials(self.company_id)
        self.states = {pair.denial.id: DenialState.DENIED for pair in self.pairs}
        return self.pairs

    @property
    def filtered(self) -> list[DenialClaimPair]:
        return self.service.filter_pairs(self.pairs, self.search)

    @property
    def visible(self) -> list[DenialClaimPair]:
        return self.filtered[:DENIAL_LIST_DISPLAY_LIMIT]

    @property
    def totals(self) -> DenialTotals:
        return self.service.compute_totals(self.filtered)

    def state_of(self, denial_id: str) -> DenialState:
        return self.states.get(denial_id, DenialState.DENIED)

    def _advance(self, denial_id: str, state: DenialState) -> None:
        if self._ORDER.index(state) > self._ORDER.index(self.state_of(denial_id)):
            self.states[denial_id] = state

    async def run_triage(self) -> Optional[TriageResult]:
        """Triage the filtered pairs; on failure keep the error message instead."""
        self.triage_error = None
        try:
            self.triage_result = await self.service.run_triage(self.filtered)
        except TriageError as e:
            self.triage_error = e.message
            return None
        return self.triage_result

    async def open_analysis(self, pair: DenialClaimPair) -> Optional[DenialAnalysis]:
        self.selected = pair
        self.analysis = None
        self.appeal_letter = None

        denial_id = pair.denial.id
        previous = self.state_of(denial_id)
        self._advance(denial_id, DenialState.ANALYZING)
        self.analysis = await self.service.open_analysis(pair)
        if self.analysis is not None:
            self._advance(denial_id, DenialState.ANALYZED)
        elif self.states.get(denial_id) == DenialState.ANALYZING:
            # Analysis never completed
            self.states[denial_id] = previous
        return self.analysis

    async def generate_appeal(self, actor_id: Optional[str]) -> Optional[str]:
        if self.selected is None:
            return None
        self.appeal_letter = await self.service.generate_appeal(self.selected, actor_id)
        self._advance(self.selected.denial.id, DenialState.APPEAL_DRAFTED)
        return self.appeal_letter

