"""
X12 EDI Base Tokenizer and Utilities.

Provides core X12 functionality shared by the generator and the response
parser:
- Segment model and tokenizer with delimiter detection from ISA
- Interchange envelope extraction
- Date, time and amount formatting helpers
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional, Tuple
import logging

logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================


class X12ParseError(Exception):
    """X12 content could not be parsed."""

    def __init__(
        self,
        message: str,
        segment_id: Optional[str] = None,
        segment_position: Optional[int] = None,
    ):
        self.message = message
        self.segment_id = segment_id
        self.segment_position = segment_position
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = [self.message]
        if self.segment_id:
            parts.append(f"Segment: {self.segment_id}")
        if self.segment_position is not None:
            parts.append(f"Position: {self.segment_position}")
        return " | ".join(parts)


# =============================================================================
# Data Models
# =============================================================================


@dataclass
class X12Segment:
    """
    A single X12 segment.

    Example: NM1*IL*1*DOE*JOHN****MI*12345~
    - segment_id: NM1
    - elements: ['IL', '1', 'DOE', 'JOHN', '', '', '', 'MI', '12345']
    """

    segment_id: str
    elements: List[str]
    position: int = 0

    def get_element(self, index: int, default: str = "") -> str:
        """Get element at index (0-based after segment ID)."""
        if 0 <= index < len(self.elements):
            return self.elements[index]
        return default

    def get_element_float(self, index: int, default: float = 0.0) -> float:
        return parse_x12_amount(self.get_element(index), default)

    def get_composite(self, index: int, separator: str = ":") -> List[str]:
        """Get composite element as list of sub-elements."""
        value = self.get_element(index)
        if value:
            return value.split(separator)
        return []

    def __str__(self) -> str:
        return f"{self.segment_id}*{'*'.join(self.elements)}"


@dataclass
class X12Interchange:
    """Envelope data plus the transaction set body of one interchange."""

    sender_id: str
    receiver_id: str
    interchange_control_number: str
    functional_id: str
    group_control_number: str
    transaction_set_id: str
    transaction_control_number: str
    body: List[X12Segment] = field(default_factory=list)

    def find(self, segment_id: str) -> Optional[X12Segment]:
        for segment in self.body:
            if segment.segment_id == segment_id:
                return segment
        return None

    def find_all(self, segment_id: str) -> List[X12Segment]:
        return [s for s in self.body if s.segment_id == segment_id]


# =============================================================================
# Tokenizer
# =============================================================================


class X12Tokenizer:
    """
    X12 EDI tokenizer.

    Splits raw X12 content into segments and elements, detecting the
    delimiters from the fixed-width ISA segment when present.
    """

    DEFAULT_ELEMENT_SEPARATOR = "*"
    DEFAULT_SEGMENT_TERMINATOR = "~"
    DEFAULT_COMPONENT_SEPARATOR = ":"

    def __init__(self) -> None:
        self.element_separator = self.DEFAULT_ELEMENT_SEPARATOR
        self.segment_terminator = self.DEFAULT_SEGMENT_TERMINATOR
        self.component_separator = self.DEFAULT_COMPONENT_SEPARATOR

    @staticmethod
    def detect_delimiters(content: str) -> Tuple[str, str, str]:
        """
        Detect delimiters from the ISA segment.

        ISA is 106 characters with fixed positions:
        - Element separator: position 3
        - Component separator: position 104
        - Segment terminator: position 105
        """
        if not content.startswith("ISA"):
            raise X12ParseError("Content must start with ISA segment")
        if len(content) < 106:
            raise X12ParseError("ISA segment must be at least 106 characters")
        return content[3], content[105], content[104]

    def tokenize(self, content: str) -> List[X12Segment]:
        """Tokenize X12 content into segments."""
        if content is None:
            raise X12ParseError("No content provided to tokenize")

        content = content.strip()
        if not content:
            raise X12ParseError("Empty X12 content")

        if content.startswith("ISA") and len(content) >= 106:
            (
                self.element_separator,
                self.segment_terminator,
                self.component_separator,
            ) = self.detect_delimiters(content)

        segments = []
        for position, raw in enumerate(content.split(self.segment_terminator)):
            raw = raw.replace("\n", "").replace("\r", "").strip()
            if not raw:
                continue
            elements = raw.split(self.element_separator)
            segments.append(
                X12Segment(segment_id=elements[0], elements=elements[1:], position=position)
            )
        return segments

    def parse_interchange(self, content: str) -> X12Interchange:
        """Tokenize and split envelope segments from the transaction set body."""
        segments = self.tokenize(content)
        by_id = {}
        for segment in segments:
            by_id.setdefault(segment.segment_id, segment)

        st = by_id.get("ST")
        if st is None:
            raise X12ParseError("Missing ST segment")
        isa = by_id.get("ISA")
        gs = by_id.get("GS")

        body: List[X12Segment] = []
        inside = False
        for segment in segments:
            if segment.segment_id == "ST":
                inside = True
                continue
            if segment.segment_id == "SE":
                break
            if inside:
                body.append(segment)

        return X12Interchange(
            sender_id=isa.get_element(5).strip() if isa else "",
            receiver_id=isa.get_element(7).strip() if isa else "",
            interchange_control_number=isa.get_element(12) if isa else "",
            functional_id=gs.get_element(0) if gs else "",
            group_control_number=gs.get_element(5) if gs else "",
            transaction_set_id=st.get_element(0),
            transaction_control_number=st.get_element(1),
            body=body,
        )


# =============================================================================
# Utility Functions
# =============================================================================


def parse_x12_date(date_str: str) -> Optional[date]:
    """Parse X12 date format (CCYYMMDD or YYMMDD)."""
    if not date_str:
        return None

    try:
        if len(date_str) == 8:
            return datetime.strptime(date_str, "%Y%m%d").date()
        elif len(date_str) == 6:
            year = int(date_str[:2])
            year += 2000 if year < 50 else 1900
            return date(year, int(date_str[2:4]), int(date_str[4:6]))
    except ValueError:
        pass

    return None


def parse_x12_date_range(value: str) -> Tuple[Optional[date], Optional[date]]:
    """Parse an RD8 range ``CCYYMMDD-CCYYMMDD``."""
    if "-" not in value:
        single = parse_x12_date(value)
        return single, None
    start, _, end = value.partition("-")
    return parse_x12_date(start), parse_x12_date(end)


def format_x12_date(d: date) -> str:
    """Format date as X12 CCYYMMDD."""
    return d.strftime("%Y%m%d")


def format_x12_time(t: datetime) -> str:
    """Format time as X12 HHMMSS."""
    return t.strftime("%H%M%S")


def parse_x12_amount(amount_str: str, default: float = 0.0) -> float:
    """Parse X12 monetary amount."""
    if not amount_str:
        return default
    try:
        return float(amount_str)
    except ValueError:
        return default


def format_x12_amount(amount: float) -> str:
    """Format amount for X12 (2 decimal places)."""
    return f"{amount:.2f}"
