"""Performance sentinels (gated)."""

from __future__ import annotations

import asyncio

import pytest

from fieldsync.adapters.airtable import AirtableAdapter, parse_property
from fieldsync.kernel import field_config
from fieldsync.kernel.batch import process_all_records
from fieldsync.kernel.models import SourceRecord, SourceSchema
from fieldsync.kernel.projector import ProjectionContext

MAX_PROJECT_RECORDS_MS = 1500.0
RECORD_COUNT = 5000

CHOICES = {"choices": [{"id": f"sel{i}", "name": f"Option {i}"} for i in range(20)]}

SCHEMA = SourceSchema(id="tbl1", name="Posts", properties=tuple(parse_property(field) for field in (
    {"id": "fldName", "name": "Name", "type": "singleLineText"},
    {"id": "fldDone", "name": "Done", "type": "checkbox"},
    {"id": "fldTags", "name": "Tags", "type": "multipleSelects", "options": CHOICES},
    {"id": "fldWhen", "name": "When", "type": "dateTime"},
    {"id": "fldPrice", "name": "Price", "type": "currency", "options": {"precision": 2, "symbol": "$"}},
)))


def _records():
    return [
        SourceRecord(id=f"rec{i}", locator=f"rec{i}", values={
            "fldName": f"Record {i}",
            "fldDone": i % 2 == 0,
            "fldTags": [f"Option {i % 20}", f"Option {(i + 7) % 20}"],
            "fldWhen": "2024-04-26T15:30:00.000Z",
            "fldPrice": i * 1.5,
        })
        for i in range(RECORD_COUNT)
    ]


def _project(records):
    adapter = AirtableAdapter(None, "app1", "tbl1")
    mappings = field_config.build_field_mapping(adapter, SCHEMA, records)
    fields = field_config.build_destination_fields(adapter, mappings)
    context = ProjectionContext(
        adapter=adapter,
        properties_by_id=SCHEMA.property_map(),
        fields_by_id={dest_field.id: dest_field for dest_field in fields},
        slug_field_id="fldName",
    )
    return asyncio.run(process_all_records(records, context, {record.id for record in records}))


def _assert_budget(benchmark, max_ms: float) -> None:
    mean_ms = benchmark.stats.stats.mean * 1000.0
    assert mean_ms < max_ms, f"Mean {mean_ms:.2f} ms exceeded budget {max_ms:.2f} ms"


@pytest.mark.perf
def test_project_records_sentinel(benchmark):
    records = _records()
    result = benchmark.pedantic(lambda: _project(records), rounds=3, iterations=1)

    assert len(result.records) == RECORD_COUNT
    assert result.status.warnings == []
    assert result.records[1].field_data["fldTags"] == ["sel1", "sel8"]

    _assert_budget(benchmark, MAX_PROJECT_RECORDS_MS)
