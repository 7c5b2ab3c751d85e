"""
X12 EDI Services for Claims Processing.

Provides X12 EDI integration:
- 270/271 eligibility (store-backed lookup)
- 276/277 claim status inquiry
- 837 claim submission with 999 acknowledgment
- 835 remittance processing
"""

from src.services.edi.x12_base import (
    X12Segment,
    X12Interchange,
    X12Tokenizer,
    X12ParseError,
)
from src.services.edi.x12_generator import (
    X12ControlNumbers,
    X12Generator,
)
from src.services.edi.x12_response_parser import (
    ParsedResponse,
    X12ResponseParser,
)
from src.services.edi.models import (
    Benefit,
    ClaimStatusRequest,
    ClaimStatusResponse,
    CoverageSummary,
    EDITransaction,
    EligibilityRequest,
    EligibilityResponse,
    FunctionalAcknowledgment,
    RemittanceAdjustment,
    RemittanceAdvice,
    RemittanceClaim,
)
from src.services.edi.eligibility_service import EligibilityService
from src.services.edi.mock_clearinghouse import MockClearinghouse
from src.services.edi.edi_service import EDIService

__all__ = [
    # Base
    "X12Segment",
    "X12Interchange",
    "X12Tokenizer",
    "X12ParseError",
    # Generation / Parsing
    "X12ControlNumbers",
    "X12Generator",
    "ParsedResponse",
    "X12ResponseParser",
    # Models
    "Benefit",
    "ClaimStatusRequest",
    "ClaimStatusResponse",
    "CoverageSummary",
    "EDITransaction",
    "EligibilityRequest",
    "EligibilityResponse",
    "FunctionalAcknowledgment",
    "RemittanceAdjustment",
    "RemittanceAdvice",
    "RemittanceClaim",
    # Services
    "EligibilityService",
    "MockClearinghouse",
    "EDIService",
]
