"""Tests for schema-change detection and resync gating."""

from fieldsync.adapters.airtable import AIRTABLE_CONVERSIONS, parse_property
from fieldsync.adapters.notion import NOTION_CONVERSIONS, NotionAdapter
from fieldsync.codes import DestinationType
from fieldsync.kernel.models import DestinationField, SourceProperty, SourceSchema
from fieldsync.kernel.schema_change import (
    has_field_configuration_changed,
    is_unchanged_since_last_sync,
    resolve_last_synced_time,
)


def _schema(*fields):
    return SourceSchema(id="tbl1", properties=tuple(parse_property(field) for field in fields))


NAME = {"id": "fldName", "name": "Name", "type": "singleLineText"}
TAGS = {"id": "fldTags", "name": "Tags", "type": "multipleSelects"}
LINKS = {"id": "fldLinks", "name": "Links", "type": "multipleRecordLinks"}


def _field(field_id, field_type):
    return DestinationField(id=field_id, name=field_id, type=field_type)


def test_unchanged_configuration():
    existing = [_field("fldName", DestinationType.STRING), _field("fldTags", DestinationType.ENUM)]
    assert not has_field_configuration_changed(existing, _schema(NAME, TAGS, LINKS), AIRTABLE_CONVERSIONS)


def test_array_slots_count_as_one_field():
    existing = [
        _field("fldName", DestinationType.STRING),
        _field("fldTags-[[0]]", DestinationType.ENUM),
        _field("fldTags-[[1]]", DestinationType.ENUM),
    ]
    assert not has_field_configuration_changed(existing, _schema(NAME, TAGS), AIRTABLE_CONVERSIONS)


def test_added_property_is_a_change():
    existing = [_field("fldName", DestinationType.STRING)]
    assert has_field_configuration_changed(existing, _schema(NAME, TAGS), AIRTABLE_CONVERSIONS)


def test_disabled_property_is_ignored():
    existing = [_field("fldName", DestinationType.STRING)]
    assert not has_field_configuration_changed(existing, _schema(NAME, TAGS), AIRTABLE_CONVERSIONS, ["fldTags"])


def test_renamed_id_is_a_change():
    existing = [_field("fldName", DestinationType.STRING), _field("fldOther", DestinationType.ENUM)]
    assert has_field_configuration_changed(existing, _schema(NAME, TAGS), AIRTABLE_CONVERSIONS)


def test_illegal_type_is_a_change():
    existing = [_field("fldName", DestinationType.NUMBER)]
    assert has_field_configuration_changed(existing, _schema(NAME), AIRTABLE_CONVERSIONS)


def test_page_level_fields_are_not_compared():
    schema = SourceSchema(id="db", properties=(SourceProperty(id="title", name="Name", kind="title"),))
    existing = [
        _field("title", DestinationType.STRING),
        _field("page-content", DestinationType.FORMATTED_TEXT),
        _field("page-icon", DestinationType.STRING),
    ]
    assert not has_field_configuration_changed(
        existing, schema, NOTION_CONVERSIONS, page_level_field_ids=NotionAdapter.page_level_field_ids
    )


def test_resolve_last_synced_time():
    assert resolve_last_synced_time("2024-01-01T00:00:00Z", "fldName", "fldName", False) == "2024-01-01T00:00:00Z"
    assert resolve_last_synced_time("2024-01-01T00:00:00Z", "fldName", "fldOther", False) is None
    assert resolve_last_synced_time("2024-01-01T00:00:00Z", "fldName", "fldName", True) is None
    assert resolve_last_synced_time(None, "fldName", "fldName", False) is None


def test_is_unchanged_since_last_sync_rounds_to_the_minute():
    assert is_unchanged_since_last_sync("2024-01-01T10:00:00.000Z", "2024-01-01T10:01:30.000Z")
    assert not is_unchanged_since_last_sync("2024-01-01T10:01:00.000Z", "2024-01-01T10:01:30.000Z")
    assert not is_unchanged_since_last_sync("2024-01-01T10:05:00.000Z", "2024-01-01T10:01:30.000Z")
    assert not is_unchanged_since_last_sync("2024-01-01T10:00:00.000Z", None)
