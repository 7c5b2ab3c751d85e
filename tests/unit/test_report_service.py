"""
Unit Tests for the Report Service.

Tests:
- Report generation against the store with filter push-down
- Export renderings
- Report definition storage
"""

import json
from datetime import datetime, timezone

import pytest

from src.core.exceptions import RecordNotFoundError, ReportDefinitionError
from src.db.memory_store import InMemoryDataStore
from src.db.store import StoreError
from src.services.reports.report_engine import ReportDefinition
from src.services.reports.report_service import ReportService

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)
USER_ID = "user-1"


def _store() -> InMemoryDataStore:
    return InMemoryDataStore(
        {
            "claims": [
                {"id": "c1", "payer_name": "Acme", "status": "paid", "total_charges": 100},
                {"id": "c2", "payer_name": "Acme", "status": "denied", "total_charges": 250},
                {"id": "c3", "payer_name": "Summit", "status": "paid", "total_charges": "75.5"},
                {"id": "c4", "payer_name": "O'Brien, \"Bob\"", "status": "paid", "total_charges": None},
            ],
            "report_definitions": [],
        }
    )


def _service(store=None) -> ReportService:
    return ReportService(store or _store(), clock=lambda: NOW)


def _definition(**overrides) -> ReportDefinition:
    values = {
        "name": "Paid claims",
        "type": "claims",
        "data_source": "claims",
        "fields": [
            {"name": "id", "label": "Claim"},
            {"name": "payer_name"},
            {"name": "total_charges", "aggregate": "sum"},
        ],
        "filters": [{"field": "status", "operator": "equals", "value": "paid"}],
        "sorting": [{"field": "id"}],
    }
    values.update(overrides)
    return ReportDefinition.model_validate(values)


# =============================================================================
# Generation
# =============================================================================


@pytest.mark.unit
class TestGenerateReport:
    """Run definitions against the store."""

    @pytest.mark.asyncio
    async def test_generate(self):
        result = await _service().generate_report(_definition())

        assert [row["Claim"] for row in result.data] == ["c1", "c3", "c4"]
        assert result.summary.total == 3
        assert result.summary.aggregates == {"total_charges": pytest.approx(175.5)}
        assert result.metadata.record_count == 3
        assert result.metadata.generated_at == NOW
        assert result.metadata.execution_time_ms >= 0

    @pytest.mark.asyncio
    async def test_pushed_down_filters(self):
        definition = _definition(
            filters=[
                {"field": "payer_name", "operator": "contains", "value": "acm"},
                {"field": "total_charges", "operator": "between", "value": [50, 200]},
            ]
        )
        result = await _service().generate_report(definition)
        assert [row["Claim"] for row in result.data] == ["c1"]

    @pytest.mark.asyncio
    async def test_date_range_on_timestamp_column(self):
        store = InMemoryDataStore(
            {
                "claims": [
                    {"id": "c1", "created_at": datetime(2024, 1, 31, tzinfo=timezone.utc)},
                    {"id": "c2", "created_at": datetime(2024, 2, 2, tzinfo=timezone.utc)},
                ]
            }
        )
        definition = _definition(
            fields=[{"name": "id"}],
            filters=[{"field": "created_at", "operator": "between", "value": ["2024-01-01", "2024-01-31"]}],
            sorting=[],
        )
        result = await _service(store).generate_report(definition)
        assert result.data == [{"id": "c1"}]

    @pytest.mark.asyncio
    async def test_invalid_definition_raises_before_io(self):
        store = InMemoryDataStore(schemas={})
        definition = _definition(filters=[{"field": "status", "operator": "like", "value": "p"}])
        with pytest.raises(ReportDefinitionError):
            await _service(store).generate_report(definition)

    @pytest.mark.asyncio
    async def test_unknown_source_propagates(self):
        store = InMemoryDataStore(schemas={"claims": ["id"]})
        with pytest.raises(StoreError):
            await _service(store).generate_report(_definition(data_source="invoices", filters=[]))


# =============================================================================
# Export
# =============================================================================


@pytest.mark.unit
class TestReportExport:
    """CSV, JSON and text renderings."""

    @pytest.mark.asyncio
    async def test_csv_escapes_quotes(self):
        service = _service()
        result = await service.generate_report(_definition())
        lines = service.export_to_csv(result).split("\n")

        assert lines[0] == "Claim,payer_name,total_charges"
        assert lines[1] == '"c1","Acme","100"'
        assert lines[3] == '"c4","O\'Brien, ""Bob""",'
        assert service.export_to_excel(result) == service.export_to_csv(result)

    @pytest.mark.asyncio
    async def test_json(self):
        service = _service()
        result = await service.generate_report(_definition())
        payload = json.loads(service.export_to_json(result))
        assert payload["summary"]["total"] == 3
        assert payload["metadata"]["generated_at"].startswith("2024-03-15T12:00:00")

    @pytest.mark.asyncio
    async def test_text(self):
        service = _service()
        definition = _definition()
        result = await service.generate_report(definition)
        text = service.export_to_pdf(definition, result)

        assert text.startswith("Report: Paid claims\nGenerated: 2024-03-15T12:00:00+00:00\nRecords: 3\n\n")
        assert "Summary:\n  total_charges: 175.5\n" in text
        assert "Data:\nClaim\tpayer_name\ttotal_charges\n" in text
        assert "c3\tSummit\t75.5\n" in text


# =============================================================================
# Definitions
# =============================================================================


@pytest.mark.unit
class TestReportDefinitions:
    """Definition CRUD."""

    @pytest.mark.asyncio
    async def test_save_and_load(self):
        service = _service()
        saved = await service.save_report_definition(_definition(), USER_ID)

        assert saved.id
        assert saved.created_by == USER_ID
        assert saved.created_at == NOW

        loaded = await service.get_report_definition(saved.id)
        assert loaded.name == "Paid claims"
        assert loaded.fields[0].label == "Claim"
        assert loaded.filters[0].operator == "equals"

    @pytest.mark.asyncio
    async def test_update_existing(self):
        service = _service()
        saved = await service.save_report_definition(_definition(), USER_ID)

        updated = await service.save_report_definition(saved.model_copy(update={"name": "Paid claims v2"}))
        assert updated.id == saved.id
        assert updated.name == "Paid claims v2"
        assert len(await service.get_report_definitions()) == 1

    @pytest.mark.asyncio
    async def test_update_missing(self):
        with pytest.raises(RecordNotFoundError):
            await _service().save_report_definition(_definition(id="nope"))

    @pytest.mark.asyncio
    async def test_invalid_definition_is_not_saved(self):
        store = _store()
        with pytest.raises(ReportDefinitionError):
            await _service(store).save_report_definition(_definition(fields=[]))
        assert store.rows("report_definitions") == []

    @pytest.mark.asyncio
    async def test_list_by_owner(self):
        service = _service()
        await service.save_report_definition(_definition(name="Mine"), USER_ID)
        await service.save_report_definition(_definition(name="Theirs"), "user-2")

        mine = await service.get_report_definitions(USER_ID)
        assert [d.name for d in mine] == ["Mine"]
        assert len(await service.get_report_definitions()) == 2

    @pytest.mark.asyncio
    async def test_delete(self):
        service = _service()
        saved = await service.save_report_definition(_definition(), USER_ID)
        await service.delete_report_definition(saved.id)

        with pytest.raises(RecordNotFoundError):
            await service.get_report_definition(saved.id)
        with pytest.raises(RecordNotFoundError):
            await service.delete_report_definition(saved.id)
