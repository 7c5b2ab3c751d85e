"""
Export Formatters for Billing Records and Reports.

Provides CSV, JSON and plain-text formatting for bulk exports and report
results. The CSV layout is consumed by downstream spreadsheet imports and
must stay byte-compatible:

    - header row = keys of the first record
    - every value quoted with ``"``, embedded quotes doubled
    - ``None`` renders as an empty, unquoted field
    - dicts and lists are JSON-encoded before quoting
    - rows joined with ``\\n``
"""

import csv
import io
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional, Sequence
from uuid import UUID


class ExportFormat(str, Enum):
    """Supported export formats."""

    CSV = "csv"
    JSON = "json"
    EXCEL = "excel"
    PDF = "pdf"


MEDIA_TYPES = {
    ExportFormat.CSV: "text/csv",
    ExportFormat.JSON: "application/json",
    ExportFormat.EXCEL: "text/csv",
    ExportFormat.PDF: "text/plain",
}


class JSONEncoder(json.JSONEncoder):
    """
    JSON encoder for store rows.

    Handles UUID, Decimal, datetime, date, and Enum types.
    """

    def default(self, obj: Any) -> Any:
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, Decimal):
            return float(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, date):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        return super().default(obj)


def format_as_json(data: Any) -> str:
    """Pretty-printed JSON (indent 2)."""
    return json.dumps(data, cls=JSONEncoder, indent=2)


# =============================================================================
# CSV
# =============================================================================


def _csv_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, cls=JSONEncoder)
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_csv_value(value: Any) -> str:
    """Quote one field; None becomes an empty field."""
    if value is None:
        return ""
    return '"' + _csv_text(value).replace('"', '""') + '"'


def format_rows_as_csv(rows: Sequence[Mapping[str, Any]]) -> str:
    """
    Format records as CSV.

    Columns come from the first record only; keys that appear solely in
    later records are not exported.

    Args:
        rows: Records to export

    Returns:
        CSV string, empty when there are no records
    """
    if not rows:
        return ""

    headers = list(rows[0].keys())
    lines = [",".join(headers)]
    for row in rows:
        lines.append(",".join(format_csv_value(row.get(header)) for header in headers))
    return "\n".join(lines)


def parse_csv(content: str) -> list[dict[str, str]]:
    """
    Parse CSV produced by ``format_rows_as_csv``.

    Values come back as strings; empty fields come back as ``""``.
    """
    if not content.strip():
        return []
    reader = csv.DictReader(io.StringIO(content))
    return [dict(row) for row in reader]


# =============================================================================
# Plain Text
# =============================================================================


def _text_value(value: Any) -> str:
    if value is None:
        return ""
    return _csv_text(value)


def format_report_as_text(
    name: str,
    generated_at: Any,
    rows: Sequence[Mapping[str, Any]],
    aggregates: Optional[Mapping[str, Any]] = None,
) -> str:
    """
    Human-readable report dump.

    Layout::

        Report: <name>
        Generated: <timestamp>
        Records: <count>

        Summary:
          <field>: <value>

        Data:
        <header>\\t<header>
        <value>\\t<value>
    """
    generated = generated_at.isoformat() if isinstance(generated_at, (datetime, date)) else generated_at
    text = f"Report: {name}\nGenerated: {generated}\nRecords: {len(rows)}\n\n"

    if aggregates:
        text += "Summary:\n"
        for field, value in aggregates.items():
            text += f"  {field}: {_text_value(value)}\n"
        text += "\n"

    text += "Data:\n"
    if rows:
        headers = list(rows[0].keys())
        text += "\t".join(headers) + "\n"
        for row in rows:
            text += "\t".join(_text_value(row.get(header)) for header in headers) + "\n"

    return text


def export_filename(prefix: str, extension: str, on: Optional[date] = None) -> str:
    """``<prefix>_export_<YYYY-MM-DD>.<extension>``"""
    day = on or datetime.now().date()
    return f"{prefix}_export_{day.isoformat()}.{extension}"
