"""
Eligibility Verification Service.

Answers eligibility questions from the persisted verification store:
- Resolve the patient reference to the canonical patient id
- Search eligibility_verifications by patient, else by subscriber id
- Narrow by payer, service date and tenant
- Map the newest matching record into an EligibilityResponse

A lookup that finds nothing returns an UNKNOWN response, never an error.
Backend failures propagate as StoreError.
"""

from datetime import date
from typing import Any, Optional
from uuid import UUID
import logging

from src.core.coercion import (
    first_present,
    to_bool,
    to_date,
    to_mapping_list,
    to_number,
    to_optional_str,
    to_str,
    to_str_list,
)
from src.core.enums import EligibilityStatus
from src.core.exceptions import InputValidationError
from src.db.store import Condition, DataStore
from src.services.edi.models import (
    Benefit,
    CoverageSummary,
    EligibilityRequest,
    EligibilityResponse,
)

logger = logging.getLogger(__name__)

VERIFICATIONS_TABLE = "eligibility_verifications"
PATIENTS_TABLE = "patients"


def is_canonical_id(value: Optional[str]) -> bool:
    """True when ``value`` is a UUID, the shape of internal identifiers."""
    if not value:
        return False
    try:
        UUID(str(value))
    except ValueError:
        return False
    return True


def _like_literal(text: str) -> str:
    return text.replace("%", "").replace("_", "").strip()


class EligibilityService:
    """
    Eligibility lookup against the verification store.

    Usage:
        service = EligibilityService(store)
        response = await service.check_eligibility(
            EligibilityRequest(
                patient_id="PAT-0042",
                subscriber_id="MBR123",
                payer_id="Aetna",
                service_date=date(2024, 3, 1),
            ),
            company_id=company_id,
        )
        if response.status == EligibilityStatus.UNKNOWN:
            ...  # no verification on file
    """

    def __init__(self, store: DataStore):
        self.store = store

    async def check_eligibility(
        self,
        request: EligibilityRequest,
        company_id: Optional[str] = None,
    ) -> EligibilityResponse:
        """
        Look up eligibility for a patient, payer and service date.

        Args:
            request: Eligibility request
            company_id: Tenant scope, applied when supplied

        Returns:
            EligibilityResponse; ``status`` is UNKNOWN when no record matched
        """
        if not request.patient_id and not request.subscriber_id:
            raise InputValidationError("Eligibility check requires a patient id or subscriber id")
        if request.service_date is None:
            raise InputValidationError("Eligibility check requires a service date")

        patient_id = await self.resolve_patient_id(request.patient_id)

        query = self.store.table(VERIFICATIONS_TABLE)
        if patient_id:
            query = query.eq("patient_id", patient_id)
        elif request.subscriber_id:
            logger.info(
                f"Patient {request.patient_id!r} not resolved, searching by subscriber {request.subscriber_id}"
            )
            query = query.eq("insurance_id", request.subscriber_id)
        else:
            logger.info(f"Patient {request.patient_id!r} not resolved and no subscriber id supplied")
            return EligibilityResponse.unknown(request.service_date)

        if request.payer_id:
            if is_canonical_id(request.payer_id):
                query = query.eq("payer_id", request.payer_id)
            else:
                query = query.ilike("payer_name", f"%{_like_literal(request.payer_id)}%")

        service_date = request.service_date.isoformat()
        query = query.or_(
            Condition.eq("service_date", service_date),
            Condition.eq("date_of_service", service_date),
        )
        if company_id:
            query = query.eq("company_id", company_id)

        row = await query.order("created_at", descending=True).fetch_one()
        if row is None:
            logger.info(
                f"No eligibility verification for patient={patient_id or request.subscriber_id} "
                f"payer={request.payer_id} date={service_date}"
            )
            return EligibilityResponse.unknown(request.service_date)

        return self._to_response(row, request.service_date)

    async def resolve_patient_id(self, patient_ref: Optional[str]) -> Optional[str]:
        """
        Resolve a patient reference to the canonical id.

        UUIDs are already canonical. Anything else is treated as the
        human-entered patient code and looked up in ``patients.patient_id``.
        """
        if not patient_ref:
            return None
        if is_canonical_id(patient_ref):
            return str(patient_ref)

        row = await (
            self.store.table(PATIENTS_TABLE).select("id").eq("patient_id", patient_ref).fetch_one()
        )
        return to_optional_str(row.get("id")) if row else None

    def _to_response(self, row: dict[str, Any], service_date: date) -> EligibilityResponse:
        eligible = to_bool(first_present(row, ("is_eligible", "eligibility_status")))
        coverage = CoverageSummary(
            copay=to_number(first_present(row, ("copay", "copay_amount"))),
            deductible=to_number(first_present(row, ("deductible", "deductible_amount"))),
            coinsurance=to_number(first_present(row, ("coinsurance", "coinsurance_percentage"))),
            out_of_pocket_max=to_number(first_present(row, ("out_of_pocket_max", "oop_max"))),
        )

        benefits = []
        for item in to_mapping_list(row.get("benefits")):
            service_type = to_str(first_present(item, ("service_type", "serviceType", "service_code", "description")))
            if not service_type:
                continue
            benefits.append(
                Benefit(
                    service_type=service_type,
                    coverage_level=to_str(first_present(item, ("coverage_level", "coverageLevel")), "IND"),
                    limitations=to_str_list(item.get("limitations")),
                )
            )

        effective = to_date(row.get("effective_date")) or service_date
        termination = to_date(row.get("termination_date"))
        if termination and termination < effective:
            logger.warning(
                f"Verification {row.get('id')} has termination {termination} before effective {effective}; ignoring termination"
            )
            termination = None

        return EligibilityResponse(
            is_eligible=eligible,
            coverage=coverage,
            benefits=benefits,
            effective_date=effective,
            termination_date=termination,
            status=EligibilityStatus.ELIGIBLE if eligible else EligibilityStatus.INELIGIBLE,
            verification_id=to_optional_str(row.get("id")),
        )
