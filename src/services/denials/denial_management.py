"""
Denial Management Service.

Rule-based denial analysis and appeal workflows:
- Root cause identification from the denial code and claim evidence
- Categorization and appealability (type, success probability, deadline)
- Similar denials, recommended actions and prevention strategies
- Appeal workflow creation, submission and denial trends

Success probabilities are percentages on a 0-100 scale.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional
import logging

from src.core.coercion import to_number, to_optional_str, to_str
from src.core.denial_codes import (
    APPEAL_DEADLINE_DAYS,
    NON_APPEALABLE_CODES,
    appeal_strategy,
    categorize,
    denial_reason,
    estimate_recovery,
    normalize_code,
    root_cause_for,
)
from src.core.enums import ActionPriority, AppealStatus, AppealType, TrendPeriod
from src.core.exceptions import InputValidationError, RecordNotFoundError, TransactionStateError
from src.db.store import DataStore, StoreError
from src.gateways.denial_intelligence_gateway import DenialIntelligenceGateway
from src.services.denials.models import (
    Appealability,
    AppealWorkflow,
    ClaimRecord,
    DenialAnalysis,
    DenialCategory,
    DenialCodeCount,
    DenialRecord,
    DenialTrends,
    RecommendedAction,
    RootCause,
    SimilarDenial,
)

logger = logging.getLogger(__name__)

DENIALS_TABLE = "claim_denials"
CLAIM_TABLES = ("claims", "professional_claims")
APPEALS_TABLE = "appeal_workflows"

SIMILAR_DENIAL_LIMIT = 5
FILE_APPEAL_THRESHOLD = 70
AUTH_LINK_BOOST = 20
DIAGNOSIS_BOOST = 15

TREND_DAYS = {
    TrendPeriod.WEEK: 7,
    TrendPeriod.MONTH: 30,
    TrendPeriod.QUARTER: 90,
    TrendPeriod.YEAR: 365,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DenialManagementService:
    """
    Denial analysis and appeal workflow service.

    Usage:
        service = DenialManagementService(store, intelligence)
        analysis = await service.analyze_denial(denial_id, claim_id)
        workflow = await service.create_appeal_workflow(denial_id, claim_id, "standard", user_id)
        await service.submit_appeal(workflow.id, user_id)
    """

    def __init__(
        self,
        store: DataStore,
        intelligence: DenialIntelligenceGateway,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.intelligence = intelligence
        self.clock = clock

    # =========================================================================
    # Lookups
    # =========================================================================

    async def get_denial(self, denial_id: str) -> DenialRecord:
        row = await self.store.table(DENIALS_TABLE).eq("id", denial_id).fetch_one()
        if row is None:
            raise RecordNotFoundError("Denial", denial_id)
        return DenialRecord.from_row(row)

    async def get_claim(self, claim_id: str) -> ClaimRecord:
        """Institutional claims first, then professional claims."""
        if claim_id:
            for table in CLAIM_TABLES:
                row = await self.store.table(table).eq("id", claim_id).fetch_one()
                if row is not None:
                    return ClaimRecord.from_row(row, table)
        raise RecordNotFoundError("Claim", claim_id)

    # =========================================================================
    # Analysis
    # =========================================================================

    async def analyze_denial(self, denial_id: str, claim_id: str) -> DenialAnalysis:
        """
        Analyze one denial.

        Raises:
            RecordNotFoundError: Denial or claim does not exist
            GatewayError: The assessment call failed
        """
        denial = await self.get_denial(denial_id)
        claim = await self.get_claim(claim_id)

        assessment = await self.intelligence.assess(self._capability_payload(denial, claim))
        base_probability = to_number(
            assessment.get("successProbability") if isinstance(assessment, dict) else None
        )

        root_cause = self.identify_root_cause(denial, claim)
        category = self.categorize_denial(denial)
        appealability = self.determine_appealability(denial, claim, base_probability)
        similar = await self.find_similar_denials(denial)
        actions = self.generate_recommended_actions(denial, root_cause, appealability)
        prevention = self.generate_prevention_strategies(root_cause)

        return DenialAnalysis(
            denial_id=denial_id,
            claim_id=claim_id,
            root_cause=root_cause,
            category=category,
            appealability=appealability,
            recommended_actions=actions,
            similar_denials=similar,
            prevention_strategies=prevention,
            estimated_recovery_amount=estimate_recovery(
                denial.denied_amount, appealability.success_probability
            ),
            estimated_recovery_probability=appealability.success_probability,
        )

    @staticmethod
    def _capability_payload(denial: DenialRecord, claim: ClaimRecord) -> dict[str, Any]:
        return {
            "claimId": claim.claim_number or claim.id,
            "patientName": claim.patient_name or "Unknown",
            "denialCode": denial.denial_code,
            "denialReason": denial.denial_reason,
            "amount": denial.denied_amount,
            "procedureCodes": claim.procedure_codes,
            "diagnosisCodes": claim.diagnosis_codes,
            "priorAuthNumber": claim.prior_auth_number,
        }

    def identify_root_cause(self, denial: DenialRecord, claim: ClaimRecord) -> RootCause:
        code = normalize_code(denial.denial_code)
        mapped = root_cause_for(code)

        evidence = []
        if code == "CO-16" and not claim.prior_auth_number:
            evidence.append("No prior authorization number found in claim")
        if not claim.diagnosis_codes:
            evidence.append("No diagnosis codes provided")
        if claim.service_date_from and claim.service_date_from > self.clock().date():
            evidence.append("Service date is in the future")

        return RootCause(
            primary=mapped.primary,
            secondary=list(mapped.secondary),
            confidence="high" if evidence else "medium",
            evidence=evidence,
        )

    @staticmethod
    def categorize_denial(denial: DenialRecord) -> DenialCategory:
        entry = categorize(denial.denial_code)
        return DenialCategory(type=entry.type, subcategory=entry.subcategory, severity=entry.severity)

    def determine_appealability(
        self, denial: DenialRecord, claim: ClaimRecord, base_probability: float
    ) -> Appealability:
        code = normalize_code(denial.denial_code)

        if code in NON_APPEALABLE_CODES:
            return Appealability(
                can_appeal=False,
                appeal_type=AppealType.NOT_APPEALABLE,
                success_probability=0.0,
                recommended_appeal_strategy="This denial is not appealable. Patient responsibility.",
                required_documents=[],
            )

        urgency = (denial.urgency or "").lower()
        appeal_type = AppealType.EXPEDITED if urgency in ("urgent", "stat") else AppealType.STANDARD

        probability = base_probability
        if code == "CO-16" and claim.prior_auth_number:
            # Authorization exists but was not linked
            probability += AUTH_LINK_BOOST
        if code == "CO-11" and claim.diagnosis_codes:
            probability += DIAGNOSIS_BOOST

        documents = []
        if code == "CO-16":
            documents.append("Prior authorization documentation")
        if code in ("CO-11", "CO-50"):
            documents.extend(["Clinical notes", "Medical necessity documentation"])
        documents.extend(["Original claim", "Denial letter", "Appeal letter"])

        denied_on = denial.denial_date or self.clock().date()
        deadline = datetime(denied_on.year, denied_on.month, denied_on.day, tzinfo=timezone.utc) + timedelta(
            days=APPEAL_DEADLINE_DAYS
        )

        return Appealability(
            can_appeal=True,
            appeal_type=appeal_type,
            success_probability=min(100.0, probability),
            recommended_appeal_strategy=appeal_strategy(code),
            required_documents=documents,
            deadline=deadline,
        )

    async def find_similar_denials(self, denial: DenialRecord) -> list[SimilarDenial]:
        """Other denials with the same code. Best effort."""
        if not denial.denial_code:
            return []
        try:
            rows = await (
                self.store.table(DENIALS_TABLE)
                .eq("denial_code", denial.denial_code)
                .neq("id", denial.id)
                .limit(SIMILAR_DENIAL_LIMIT)
                .fetch()
            )
        except StoreError as e:
            logger.warning(f"Similar denial lookup failed for {denial.id}: {e}")
            return []

        return [
            SimilarDenial(
                claim_id=to_optional_str(row.get("claim_id")),
                denial_code=to_str(row.get("denial_code")),
                resolution=to_str(row.get("appeal_status")) or "pending",
                outcome=to_optional_str(row.get("appeal_outcome")),
                notes=to_optional_str(row.get("appeal_notes")),
            )
            for row in rows
        ]

    @staticmethod
    def generate_recommended_actions(
        denial: DenialRecord, root_cause: RootCause, appealability: Appealability
    ) -> list[RecommendedAction]:
        actions = []
        primary = root_cause.primary.lower()

        if appealability.can_appeal and appealability.success_probability >= FILE_APPEAL_THRESHOLD:
            actions.append(
                RecommendedAction(
                    action="File Appeal",
                    priority=ActionPriority.CRITICAL,
                    description=(
                        f"High success probability ({appealability.success_probability:g}%). "
                        "File appeal before deadline."
                    ),
                    estimated_time="2-4 hours",
                    automated=True,
                )
            )

        if "authorization" in primary:
            actions.append(
                RecommendedAction(
                    action="Obtain/Link Authorization",
                    priority=ActionPriority.CRITICAL,
                    description="Prior authorization is required. Obtain or link existing authorization.",
                    estimated_time="1-2 days",
                    automated=False,
                )
            )

        if "diagnosis" in primary:
            actions.append(
                RecommendedAction(
                    action="Review Diagnosis Codes",
                    priority=ActionPriority.HIGH,
                    description="Verify diagnosis codes are correct and support the procedure.",
                    estimated_time="30 minutes",
                    automated=False,
                )
            )

        if normalize_code(denial.denial_code) == "CO-18":
            actions.append(
                RecommendedAction(
                    action="Check for Duplicates",
                    priority=ActionPriority.HIGH,
                    description="Verify this is not a duplicate submission before resubmitting.",
                    estimated_time="15 minutes",
                    automated=True,
                )
            )

        actions.append(
            RecommendedAction(
                action="Gather Supporting Documents",
                priority=ActionPriority.MEDIUM,
                description=f"Collect required documents: {', '.join(appealability.required_documents)}",
                estimated_time="1-2 hours",
                automated=False,
            )
        )
        return actions

    @staticmethod
    def generate_prevention_strategies(root_cause: RootCause) -> list[str]:
        strategies = []
        primary = root_cause.primary.lower()

        if "authorization" in primary:
            strategies.extend(
                [
                    "Verify prior authorization requirements before submitting claims",
                    "Link authorization numbers to claims at submission",
                    "Set up automated authorization checks",
                ]
            )
        if "diagnosis" in primary:
            strategies.extend(
                [
                    "Validate diagnosis codes before claim submission",
                    "Ensure primary diagnosis is clearly identified",
                    "Verify diagnosis codes support procedure codes",
                ]
            )
        if "duplicate" in primary:
            strategies.extend(
                [
                    "Implement duplicate claim detection before submission",
                    "Check claim history before submitting",
                ]
            )

        strategies.extend(
            [
                "Use claim scrubbing before submission",
                "Review payer-specific requirements",
                "Maintain accurate patient eligibility records",
            ]
        )
        return strategies

    # =========================================================================
    # Appeal Workflows
    # =========================================================================

    async def create_appeal_workflow(
        self,
        denial_id: str,
        claim_id: str,
        appeal_type: AppealType | str,
        user_id: str,
    ) -> AppealWorkflow:
        """
        Draft an appeal workflow with a generated letter.

        Raises:
            InputValidationError: Unknown appeal type or non-appealable denial
            RecordNotFoundError: Denial or claim does not exist
        """
        try:
            appeal_type = AppealType(appeal_type)
        except ValueError as e:
            raise InputValidationError(f"Unknown appeal type: {appeal_type}") from e

        analysis = await self.analyze_denial(denial_id, claim_id)
        if not analysis.appealability.can_appeal:
            raise InputValidationError("This denial is not appealable")

        denial = await self.get_denial(denial_id)
        claim = await self.get_claim(claim_id)
        letter = await self.intelligence.draft_appeal_letter(self._capability_payload(denial, claim))

        now = self.clock()
        rows = await self.store.table(APPEALS_TABLE).insert(
            {
                "denial_id": denial_id,
                "claim_id": claim_id,
                "appeal_type": appeal_type.value,
                "status": AppealStatus.DRAFT.value,
                "appeal_letter": letter,
                "supporting_documents": analysis.appealability.required_documents,
                "created_by": user_id,
                "created_at": now,
                "updated_at": now,
            }
        )
        workflow = AppealWorkflow.from_row(rows[0])
        logger.info(f"Appeal workflow {workflow.id} drafted for denial {denial_id}")
        return workflow

    async def submit_appeal(self, appeal_id: str, user_id: str) -> AppealWorkflow:
        """
        Submit a drafted appeal and mark the denial as appealed.

        Raises:
            RecordNotFoundError: Appeal does not exist
            TransactionStateError: Appeal is not a draft
        """
        row = await self.store.table(APPEALS_TABLE).eq("id", appeal_id).fetch_one()
        if row is None:
            raise RecordNotFoundError("Appeal", appeal_id)

        workflow = AppealWorkflow.from_row(row)
        if workflow.status != AppealStatus.DRAFT:
            raise TransactionStateError(
                f"Appeal {appeal_id} is {workflow.status.value}; only drafts can be submitted"
            )

        now = self.clock()
        updated = await (
            self.store.table(APPEALS_TABLE)
            .eq("id", appeal_id)
            .update({"status": AppealStatus.SUBMITTED.value, "submitted_at": now, "updated_at": now})
        )
        await (
            self.store.table(DENIALS_TABLE)
            .eq("id", workflow.denial_id)
            .update({"appeal_status": AppealStatus.SUBMITTED.value, "appeal_submitted_at": now})
        )

        logger.info(f"Appeal {appeal_id} submitted by {user_id}")
        return AppealWorkflow.from_row(updated[0]) if updated else workflow

    # =========================================================================
    # Trends
    # =========================================================================

    async def get_denial_trends(self, period: TrendPeriod | str = TrendPeriod.MONTH) -> DenialTrends:
        try:
            period = TrendPeriod(period)
        except ValueError as e:
            raise InputValidationError(f"Unknown trend period: {period}") from e

        start = self.clock() - timedelta(days=TREND_DAYS[period])
        denials = await self.store.table(DENIALS_TABLE).gte("denial_date", start).fetch()
        claims = await self.store.table("claims").select("id", "status").gte("created_at", start).fetch()

        total_denials = len(denials)
        denial_rate = total_denials / len(claims) * 100 if claims else 0.0

        counts: dict[str, int] = {}
        for row in denials:
            code = to_str(row.get("denial_code")) or "Unknown"
            counts[code] = counts.get(code, 0) + 1
        top_codes = sorted(counts.items(), key=lambda item: item[1], reverse=True)[:5]

        appealed = [row for row in denials if row.get("appeal_status")]
        approved = [row for row in appealed if row.get("appeal_status") == AppealStatus.APPROVED.value]
        success_rate = len(approved) / len(appealed) * 100 if appealed else 0.0

        return DenialTrends(
            total_denials=total_denials,
            denial_rate=denial_rate,
            top_denial_codes=[
                DenialCodeCount(
                    code=code,
                    reason=denial_reason(code),
                    count=count,
                    rate=count / total_denials * 100,
                )
                for code, count in top_codes
            ],
            appeal_success_rate=success_rate,
        )
