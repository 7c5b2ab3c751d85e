"""
Coerce-or-default helpers for externally sourced values.

Rows read from the data store and payloads returned by external
capabilities are untrusted. Every numeric, string, list and date field is
decoded through these helpers so a malformed value degrades to a neutral
default instead of failing the surrounding operation.
"""

import math
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional


def to_number(value: Any) -> float:
    """
    Currency guard: parse, and if the result is not finite use 0.

    Accepts numbers and numeric strings. ``None``, empty strings, booleans,
    unparsable text and NaN/Infinity all yield ``0.0``.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, Decimal):
        try:
            number = float(value)
        except (InvalidOperation, ValueError):
            return 0.0
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            number = float(text)
        except ValueError:
            return 0.0
    else:
        return 0.0
    return number if math.isfinite(number) else 0.0


def to_optional_number(value: Any) -> Optional[float]:
    """Like ``to_number`` but keeps absence distinguishable from zero."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return to_number(value)


def to_str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def to_optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = to_str(value).strip()
    return text or None


def to_str_list(value: Any) -> list[str]:
    """Decode a list of codes; tolerates a comma separated string."""
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, (list, tuple, set)):
        return [to_str(item) for item in value if item is not None and to_str(item) != ""]
    return []


def to_bool(value: Any, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "t", "yes", "y", "1", "active", "eligible"):
            return True
        if lowered in ("false", "f", "no", "n", "0", "inactive", "ineligible"):
            return False
        return default
    if isinstance(value, (int, float)):
        return value != 0
    return default


def to_date(value: Any) -> Optional[date]:
    """Decode ISO dates, ISO datetimes and X12 CCYYMMDD strings."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    if len(text) == 8 and text.isdigit():
        try:
            return datetime.strptime(text, "%Y%m%d").date()
        except ValueError:
            return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def to_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def to_mapping(value: Any) -> dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}


def to_mapping_list(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, (list, tuple)):
        return []
    return [dict(item) for item in value if isinstance(item, Mapping)]


def first_present(row: Mapping[str, Any], keys: Iterable[str]) -> Any:
    """Return the first non-empty value among ``keys``."""
    for key in keys:
        value = row.get(key)
        if value is not None and value != "":
            return value
    return None


def temporal_operands(left: Any, right: Any) -> Optional[tuple[Any, Any]]:
    """
    Pair a date or datetime with a comparable decoding of the other side.

    Returns None when neither side is temporal or the other side does not
    decode. Naive datetimes are read as UTC so they compare with aware ones.
    """
    if isinstance(right, (date, datetime)) and not isinstance(left, (date, datetime)):
        pair = temporal_operands(right, left)
        return None if pair is None else (pair[1], pair[0])
    if isinstance(left, datetime):
        other = to_datetime(right)
        if other is None:
            return None
        return _as_utc(left), _as_utc(other)
    if isinstance(left, date):
        other = to_date(right)
        return None if other is None else (left, other)
    return None


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
