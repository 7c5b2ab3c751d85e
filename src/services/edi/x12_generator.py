"""
X12 Interchange Generator.

Assembles X12 005010 interchanges in the fixed envelope order
ISA, GS, ST, transaction body, SE, GE, IEA. Bodies are built for 270
eligibility inquiries, 276 claim status inquiries and 837 claims; any other
transaction set gets the envelope around a caller-supplied body.

Control numbers are caller-supplied or fixed placeholders. This module does
not allocate unique control numbers and performs no control-total
validation.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional

from src.core.coercion import to_date, to_number, to_str
from src.core.enums import EDITransactionType
from src.services.edi.x12_base import format_x12_amount, format_x12_date, format_x12_time


@dataclass(frozen=True)
class X12ControlNumbers:
    """ISA13, GS06 and ST02 control numbers."""

    interchange: str = "000000001"
    group: str = "1"
    transaction: str = "0001"


class X12Generator:
    """
    Deterministic X12 generator.

    Usage:
        generator = X12Generator(sender_id="CLINIC01", receiver_id="PAYER01")
        content = generator.generate("270", {
            "payer_name": "ACME HEALTH",
            "payer_id": "ACME",
            "patient_last_name": "DOE",
            "patient_first_name": "JANE",
            "patient_id": "MBR123",
        })
    """

    FUNCTIONAL_IDS = {
        "270": "HS",
        "271": "HB",
        "276": "HR",
        "277": "HN",
        "835": "HP",
        "837": "HC",
        "999": "FA",
    }

    IMPLEMENTATION_VERSIONS = {
        "270": "005010X279A1",
        "271": "005010X279A1",
        "276": "005010X212",
        "277": "005010X212",
        "835": "005010X221A1",
        "837": "005010X222A1",
        "999": "005010X231A1",
    }

    def __init__(
        self,
        sender_id: str = "SENDER",
        receiver_id: str = "RECEIVER",
        submitter_name: str = "BILLWISE AI NEXUS",
        usage_indicator: str = "P",
        element_separator: str = "*",
        segment_terminator: str = "~",
        component_separator: str = ":",
    ):
        self.sender_id = sender_id
        self.receiver_id = receiver_id
        self.submitter_name = submitter_name
        self.usage_indicator = usage_indicator
        self.element_sep = element_separator
        self.segment_term = segment_terminator
        self.component_sep = component_separator

    # =========================================================================
    # Public API
    # =========================================================================

    def generate(
        self,
        transaction_type: str,
        data: Mapping[str, Any],
        control: Optional[X12ControlNumbers] = None,
        now: Optional[datetime] = None,
    ) -> str:
        """
        Generate an interchange for ``transaction_type`` from ``data``.

        Args:
            transaction_type: X12 transaction set id ("270", "276", "837", ...)
            data: Flat mapping of the values placed into the body
            control: Control numbers; placeholders when omitted
            now: Generation timestamp; current UTC time when omitted

        Returns:
            X12 content, every segment terminated by ``~``
        """
        code = self._type_code(transaction_type)
        control = control or X12ControlNumbers()
        now = now or datetime.now(timezone.utc)

        if code == EDITransactionType.ELIGIBILITY_270.value:
            body = self._eligibility_body(data, control, now)
        elif code == EDITransactionType.CLAIM_STATUS_276.value:
            body = self._claim_status_body(data, control, now)
        elif code == EDITransactionType.CLAIM_837.value:
            body = self._claim_body(data, control, now)
        else:
            body = []

        return self.build_interchange(code, body, control, now)

    def build_interchange(
        self,
        transaction_type: str,
        body: List[str],
        control: Optional[X12ControlNumbers] = None,
        now: Optional[datetime] = None,
    ) -> str:
        """Wrap pre-built body segments in the ISA/GS/ST ... SE/GE/IEA envelope."""
        code = self._type_code(transaction_type)
        control = control or X12ControlNumbers()
        now = now or datetime.now(timezone.utc)
        version = self.IMPLEMENTATION_VERSIONS.get(code, "005010X222A1")

        transaction = [self.segment("ST", code, control.transaction, version)]
        transaction.extend(body)
        # SE01 counts every segment from ST through SE inclusive
        transaction.append(self.segment("SE", str(len(transaction) + 1), control.transaction))

        segments = [self._build_isa(control, now), self._build_gs(code, control, now, version)]
        segments.extend(transaction)
        segments.append(self.segment("GE", "1", control.group))
        segments.append(self.segment("IEA", "1", control.interchange.zfill(9)))

        return self.segment_term.join(segments) + self.segment_term

    # =========================================================================
    # Envelope
    # =========================================================================

    @staticmethod
    def _type_code(transaction_type: Any) -> str:
        if isinstance(transaction_type, EDITransactionType):
            return transaction_type.value
        return to_str(transaction_type).strip()[:3]

    def segment(self, *elements: str) -> str:
        """Build a segment from elements."""
        return self.element_sep.join(elements)

    def _build_isa(self, control: X12ControlNumbers, now: datetime) -> str:
        """Build the fixed-width ISA segment."""
        return self.segment(
            "ISA",
            "00",  # Authorization Info Qualifier
            " " * 10,  # Authorization Info
            "00",  # Security Info Qualifier
            " " * 10,  # Security Info
            "ZZ",  # Sender ID Qualifier
            self.sender_id[:15].ljust(15),
            "ZZ",  # Receiver ID Qualifier
            self.receiver_id[:15].ljust(15),
            now.strftime("%y%m%d"),  # ISA09 is fixed-width YYMMDD
            now.strftime("%H%M"),  # ISA10 is fixed-width HHMM
            "^",  # Repetition Separator
            "00501",  # Version
            control.interchange.zfill(9),
            "0",  # Acknowledgment Requested
            self.usage_indicator,
            self.component_sep,
        )

    def _build_gs(
        self, code: str, control: X12ControlNumbers, now: datetime, version: str
    ) -> str:
        return self.segment(
            "GS",
            self.FUNCTIONAL_IDS.get(code, "HC"),
            self.sender_id,
            self.receiver_id,
            format_x12_date(now),
            format_x12_time(now),
            control.group,
            "X",  # Responsible Agency Code
            version,
        )

    def _bht(self, structure: str, data: Mapping[str, Any], control: X12ControlNumbers, now: datetime) -> str:
        return self.segment(
            "BHT",
            structure,
            "13" if structure != "0019" else "00",
            _field(data, "transaction_id") or control.transaction,
            format_x12_date(now),
            format_x12_time(now),
        )

    # =========================================================================
    # Bodies
    # =========================================================================

    def _submitter_receiver(self, data: Mapping[str, Any]) -> List[str]:
        return [
            self.segment("NM1", "41", "2", self.submitter_name, "", "", "", "", "46", _field(data, "submitter_id")),
            self.segment("NM1", "40", "2", _field(data, "payer_name"), "", "", "", "", "46", _field(data, "payer_id")),
        ]

    def _patient(self, data: Mapping[str, Any]) -> List[str]:
        return [
            self.segment(
                "NM1", "QC", "1",
                _field(data, "patient_last_name"),
                _field(data, "patient_first_name"),
                "", "", "", "MI",
                _field(data, "patient_id"),
            ),
            self.segment("DMG", "D8", _date_field(data, "patient_dob"), _field(data, "patient_gender")),
        ]

    def _eligibility_body(
        self, data: Mapping[str, Any], control: X12ControlNumbers, now: datetime
    ) -> List[str]:
        """270: BHT, NM1*41, NM1*40, HL, NM1*QC, DMG, EQ."""
        segments = [self._bht("0022", data, control, now)]
        segments.extend(self._submitter_receiver(data))
        segments.append(self.segment("HL", "1", "", "20", "1"))
        segments.extend(self._patient(data))
        segments.append(self.segment("EQ", _field(data, "service_type_code") or "30"))
        return segments

    def _claim_status_body(
        self, data: Mapping[str, Any], control: X12ControlNumbers, now: datetime
    ) -> List[str]:
        """276: payer, receiver, provider and patient levels plus the claim trace."""
        return [
            self._bht("0010", data, control, now),
            self.segment("HL", "1", "", "20", "1"),
            self.segment("NM1", "PR", "2", _field(data, "payer_name"), "", "", "", "", "PI", _field(data, "payer_id")),
            self.segment("HL", "2", "1", "21", "1"),
            self.segment("NM1", "41", "2", self.submitter_name, "", "", "", "", "46", _field(data, "submitter_id")),
            self.segment("HL", "3", "2", "19", "1"),
            self.segment("NM1", "85", "2", _field(data, "provider_name"), "", "", "", "", "XX", _field(data, "provider_npi")),
            self.segment("HL", "4", "3", "22", "0"),
            self.segment(
                "NM1", "QC", "1",
                _field(data, "patient_last_name"),
                _field(data, "patient_first_name"),
                "", "", "", "MI",
                _field(data, "patient_id"),
            ),
            self.segment("TRN", "1", _field(data, "claim_id")),
            self.segment("AMT", "T3", format_x12_amount(to_number(data.get("claim_amount")))),
            self.segment("DTP", "472", "D8", _date_field(data, "service_date")),
        ]

    def _claim_body(
        self, data: Mapping[str, Any], control: X12ControlNumbers, now: datetime
    ) -> List[str]:
        """837: submitter, billing provider, patient, claim and one service line."""
        segments = [self._bht("0019", data, control, now)]
        segments.extend(self._submitter_receiver(data))
        segments.append(self.segment("HL", "1", "", "20", "1"))
        segments.append(self.segment("PRV", "BI", "PXC", _field(data, "provider_taxonomy")))
        segments.append(
            self.segment("NM1", "85", "2", _field(data, "provider_name"), "", "", "", "", "XX", _field(data, "provider_npi"))
        )
        segments.append(self.segment("N3", _field(data, "provider_address")))
        segments.append(
            self.segment("N4", _field(data, "provider_city"), _field(data, "provider_state"), _field(data, "provider_zip"))
        )
        segments.append(self.segment("HL", "2", "1", "22", "0"))
        segments.extend(self._patient(data))
        segments.append(
            self.segment(
                "CLM",
                _field(data, "claim_id"),
                format_x12_amount(to_number(data.get("claim_amount"))),
                "",
                "",
                self.component_sep.join(["11", "B", "1"]),
                "Y", "A", "Y", "I",
            )
        )
        segments.append(self.segment("DTP", "434", "D8", _date_field(data, "service_date")))
        segments.append(self.segment("HI", f"ABK{self.component_sep}{_field(data, 'primary_diagnosis')}"))
        segments.append(self.segment("LX", "1"))
        segments.append(
            self.segment(
                "SV2",
                _field(data, "service_code"),
                format_x12_amount(to_number(data.get("service_amount", data.get("claim_amount")))),
                "UN",
                "1",
            )
        )
        return segments


def _field(data: Mapping[str, Any], key: str) -> str:
    """Element value with X12 delimiters stripped."""
    value = to_str(data.get(key)).strip()
    for delimiter in ("*", "~", ":", "^"):
        value = value.replace(delimiter, " ")
    return value


def _date_field(data: Mapping[str, Any], key: str) -> str:
    """Render a date value as CCYYMMDD; unparsable values pass through as text."""
    raw = data.get(key)
    parsed = to_date(raw)
    if parsed is not None:
        return format_x12_date(parsed)
    return _field(data, key)
