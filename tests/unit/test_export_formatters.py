"""
Unit Tests for Export Formatters.

Tests:
- CSV quoting rules
- JSON encoding of store values
- Plain-text report layout and filenames
"""

import json
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import UUID

import pytest

from src.core.enums import ClaimStatus
from src.utils.export_formatters import (
    export_filename,
    format_as_json,
    format_csv_value,
    format_report_as_text,
    format_rows_as_csv,
    parse_csv,
)


@pytest.mark.unit
class TestCSV:
    """CSV layout consumed by spreadsheet imports."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ('O\'Brien, "Bob"', '"O\'Brien, ""Bob"""'),
            (None, ""),
            (12, '"12"'),
            (12.0, '"12"'),
            (12.5, '"12.5"'),
            (True, '"true"'),
            (["99213", "99214"], '"[""99213"", ""99214""]"'),
            (date(2024, 3, 1), '"2024-03-01"'),
            (ClaimStatus.PAID, '"paid"'),
        ],
    )
    def test_value_quoting(self, value, expected):
        assert format_csv_value(value) == expected

    def test_headers_come_from_first_row(self):
        csv_text = format_rows_as_csv(
            [
                {"id": "1", "amount": 10},
                {"id": "2", "amount": None, "extra": "dropped"},
            ]
        )
        assert csv_text == 'id,amount\n"1","10"\n"2",'

    def test_empty(self):
        assert format_rows_as_csv([]) == ""
        assert parse_csv("") == []

    def test_parse_round_trip(self):
        rows = [{"id": "c1", "payer": 'O\'Brien, "Bob"', "note": "line"}]
        assert parse_csv(format_rows_as_csv(rows)) == rows


@pytest.mark.unit
class TestJSON:
    """JSON encoding of store values."""

    def test_encodes_store_types(self):
        payload = {
            "id": UUID("12345678-1234-5678-1234-567812345678"),
            "amount": Decimal("10.50"),
            "at": datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc),
            "status": ClaimStatus.DENIED,
        }
        decoded = json.loads(format_as_json(payload))
        assert decoded == {
            "id": "12345678-1234-5678-1234-567812345678",
            "amount": 10.5,
            "at": "2024-03-15T12:00:00+00:00",
            "status": "denied",
        }

    def test_pretty_printed(self):
        assert format_as_json([{"a": 1}]) == '[\n  {\n    "a": 1\n  }\n]'


@pytest.mark.unit
class TestTextAndFilenames:
    """Plain-text report layout and suggested filenames."""

    def test_report_text(self):
        text = format_report_as_text(
            "Denials",
            datetime(2024, 3, 15, 8, 0),
            [{"code": "CO-16", "count": 2}],
            {"count": 2.0},
        )
        assert text == (
            "Report: Denials\n"
            "Generated: 2024-03-15T08:00:00\n"
            "Records: 1\n\n"
            "Summary:\n"
            "  count: 2\n\n"
            "Data:\n"
            "code\tcount\n"
            "CO-16\t2\n"
        )

    def test_report_text_without_rows(self):
        text = format_report_as_text("Empty", "2024-03-15", [])
        assert text == "Report: Empty\nGenerated: 2024-03-15\nRecords: 0\n\nData:\n"

    def test_export_filename(self):
        assert export_filename("claims", "csv", date(2024, 3, 15)) == "claims_export_2024-03-15.csv"
