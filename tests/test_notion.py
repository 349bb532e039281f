"""Tests for the document-database source adapter."""

import pytest

from fieldsync.adapters.notion import (
    PAGE_CONTENT_FIELD_ID,
    PAGE_COVER_FIELD_ID,
    PAGE_ICON_FIELD_ID,
    NotionAdapter,
    page_icon_type,
    parse_property,
)
from fieldsync.codes import NONE_OPTION_ID, DestinationType
from fieldsync.contracts import SyncStatus
from fieldsync.kernel.field_config import build_destination_fields, build_field_mapping, initial_field_settings
from fieldsync.kernel.models import DestinationField, SourceProperty, SourceRecord, SourceSchema
from fieldsync.kernel.projector import ProjectionContext, project_record
from fieldsync.kernel.settings import FieldSettings


def _text(content, **annotations):
    return {"plain_text": content, "annotations": annotations, "href": None}


def _value(kind, payload):
    return {"id": "x", "type": kind, kind: payload}


def _convert(kind, payload, field_type, **settings):
    prop = SourceProperty(id="x", name="X", kind=kind)
    return NotionAdapter(None, "db1").convert_value(prop, _value(kind, payload), field_type, FieldSettings(**settings))


DATABASE = {
    "id": "db1",
    "title": [_text("Blog "), _text("Posts")],
    "properties": {
        "Name": {"id": "title", "name": "Name", "type": "title", "title": {}},
        "Tags": {"id": "tg", "name": "Tags", "type": "multi_select",
                 "multi_select": {"options": [{"id": "t1", "name": "News"}, {"id": "t2", "name": "Tech"}]}},
        "Stage": {"id": "st", "name": "Stage", "type": "status",
                  "status": {"options": [{"id": "s1", "name": "Draft"}, {"id": "s2", "name": "Done"}]}},
        "Score": {"id": "sc", "name": "Score", "type": "formula", "formula": {}},
        "Owner": {"id": "ow", "name": "Owner", "type": "people", "people": {}},
    },
}


def _page(page_id, title, icon=None, cover=None, score=None, edited="2024-04-26T10:00:00.000Z"):
    return {
        "id": page_id,
        "url": f"https://notion.so/{page_id}",
        "last_edited_time": edited,
        "icon": icon,
        "cover": cover,
        "properties": {
            "Name": {"id": "title", "type": "title", "title": [_text(title)]},
            "Score": {"id": "sc", "type": "formula", "formula": score or {"type": "number", "number": None}},
        },
    }


def test_simple_kinds():
    assert _convert("checkbox", False, DestinationType.BOOLEAN) is False
    assert _convert("number", 4, DestinationType.NUMBER) == 4
    assert _convert("title", [_text("Hello "), _text("World")], DestinationType.STRING) == "Hello World"
    assert _convert("created_time", "2024-04-26T10:00:00.000Z", DestinationType.DATE) == "2024-04-26"
    assert _convert("date", {"start": "2024-04-26T10:00:00.000Z"}, DestinationType.DATE, time=True) == "2024-04-26T10:00:00.000Z"
    assert _convert("date", None, DestinationType.DATE) is None
    assert _convert("people", [{"id": "u1"}, {"id": "u2"}], DestinationType.STRING) == "u1, u2"


def test_selects():
    options = [{"id": "t1", "name": "News"}, {"id": "t2", "name": "Tech"}]
    assert _convert("multi_select", options, DestinationType.ENUM) == ["t1", "t2"]
    assert _convert("multi_select", options, DestinationType.STRING, multipleFields=False) == "News"
    assert _convert("multi_select", [], DestinationType.ENUM, multipleFields=False) is None
    assert _convert("select", None, DestinationType.ENUM) == NONE_OPTION_ID
    assert _convert("select", {"id": "o1", "name": "One"}, DestinationType.STRING) == "One"
    assert _convert("status", {"id": "s1", "name": "Draft"}, DestinationType.ENUM) == "s1"
    assert _convert("status", None, DestinationType.ENUM) is None


def test_rich_text_modes():
    segments = [_text("Hi", bold=True)]
    assert _convert("rich_text", segments, DestinationType.FORMATTED_TEXT) == "<p><strong>Hi</strong></p>"
    assert _convert("rich_text", [], DestinationType.FORMATTED_TEXT) is None
    assert _convert(
        "rich_text", [_text("<b>raw</b>")], DestinationType.FORMATTED_TEXT, importDefaultMarkdownOrHTML="html"
    ) == "<b>raw</b>"
    assert _convert(
        "rich_text", [_text("**md**")], DestinationType.FORMATTED_TEXT, importDefaultMarkdownOrHTML="markdown"
    ) == "<p><strong>md</strong></p>"
    assert _convert("rich_text", segments, DestinationType.STRING) == "Hi"


def test_formula_by_destination_type():
    assert _convert("formula", {"type": "number", "number": 5}, DestinationType.STRING) == "5"
    assert _convert("formula", {"type": "boolean", "boolean": True}, DestinationType.STRING) == "true"
    assert _convert("formula", {"type": "string", "string": None}, DestinationType.STRING) == ""
    assert _convert("formula", {"type": "string", "string": "12.5"}, DestinationType.NUMBER) == 12.5
    assert _convert("formula", {"type": "number", "number": None}, DestinationType.NUMBER) == 0
    assert _convert("formula", {"type": "date", "date": {"start": "2024-04-26T10:00:00Z"}}, DestinationType.DATE) == "2024-04-26"
    assert _convert("formula", {"type": "string", "string": "x"}, DestinationType.DATE) is None
    assert _convert("formula", {"type": "boolean", "boolean": False}, DestinationType.BOOLEAN) is False


def test_rollup():
    array = {"type": "array", "array": [{"type": "title", "title": [_text("First")]}, {"type": "title", "title": []}]}
    assert _convert("rollup", array, DestinationType.STRING) == "First"
    assert _convert("rollup", {"type": "array", "array": []}, DestinationType.STRING) is None
    assert _convert("rollup", {"type": "number", "number": 7}, DestinationType.NUMBER) == 7
    assert _convert("rollup", {"type": "date", "date": {"start": "2024-01-02T03:04:05Z"}}, DestinationType.DATE) == "2024-01-02"


def test_files_and_unique_id():
    files = [
        {"name": "a.png", "type": "file", "file": {"url": "https://f/a.png"}},
        {"name": "b.png", "type": "external", "external": {"url": "https://f/b.png"}},
    ]
    assert _convert("files", files, DestinationType.IMAGE) == ["https://f/a.png", "https://f/b.png"]
    assert _convert("files", files, DestinationType.IMAGE, multipleFields=False) == "https://f/a.png"
    assert _convert("unique_id", {"prefix": "TASK", "number": 42}, DestinationType.STRING) == "TASK-42"
    assert _convert("unique_id", {"prefix": None, "number": 42}, DestinationType.STRING) == "42"
    assert _convert("unique_id", {"prefix": "TASK", "number": 42}, DestinationType.NUMBER) == 42


def test_parse_property_reads_status_options():
    prop = parse_property("Stage", DATABASE["properties"]["Stage"])
    assert prop.id == "st"
    assert [option.name for option in prop.options] == ["Draft", "Done"]


def test_page_icon_type():
    emoji = SourceRecord(id="a", locator="a", page={"icon": {"type": "emoji", "emoji": "🙂"}})
    image = SourceRecord(id="b", locator="b", page={"icon": {"type": "external", "external": {"url": "https://i"}}})
    assert page_icon_type([emoji, emoji, image]) == DestinationType.STRING
    assert page_icon_type([emoji, image]) == DestinationType.IMAGE


@pytest.mark.asyncio
async def test_fetch_schema_records_and_mapping(make_client):
    client = make_client({
        ("GET", "databases/db1"): DATABASE,
        ("POST", "databases/db1/query"): [
            {"results": [_page("p1", "One", icon={"type": "emoji", "emoji": "🙂"},
                               score={"type": "number", "number": 3})],
             "has_more": True, "next_cursor": "c1"},
            {"results": [_page("p2", "Two")], "has_more": False, "next_cursor": None},
        ],
    })
    adapter = NotionAdapter(client, "db1")

    schema = await adapter.fetch_schema()
    records = await adapter.fetch_records(schema)
    mappings = build_field_mapping(adapter, schema, records)
    by_id = {mapping.property.id: mapping for mapping in mappings}

    assert schema.name == "Blog Posts"
    assert client.calls[2][2] == {"page_size": 100, "start_cursor": "c1"}
    assert [record.locator for record in records] == ["https://notion.so/p1", "https://notion.so/p2"]
    assert [mapping.property.id for mapping in mappings] == [
        "title", PAGE_CONTENT_FIELD_ID, PAGE_COVER_FIELD_ID, PAGE_ICON_FIELD_ID, "tg", "st", "sc", "ow",
    ]
    assert by_id[PAGE_COVER_FIELD_ID].auto_disabled is True
    assert by_id[PAGE_ICON_FIELD_ID].auto_disabled is False
    assert by_id[PAGE_ICON_FIELD_ID].default_type == DestinationType.STRING
    assert by_id["sc"].default_type == DestinationType.NUMBER
    assert by_id["ow"].unsupported

    fields = {dest_field.id: dest_field for dest_field in build_destination_fields(adapter, mappings)}
    assert [case.id for case in fields["st"].cases] == ["s1", "s2"]
    assert [case.id for case in fields["tg"].cases] == [NONE_OPTION_ID, "t1", "t2"]


def test_files_auto_detection():
    schema = SourceSchema(id="db1", properties=(SourceProperty(id="fl", name="Files", kind="files"),))
    records = [
        SourceRecord(id="a", locator="a", values={"fl": {"type": "files", "files": [{"name": "x.PNG"}]}}),
        SourceRecord(id="b", locator="b", values={"fl": {"type": "files", "files": [{"name": "y.pdf"}]}}),
    ]
    adapter = NotionAdapter(None, "db1")
    assert adapter.detect_auto_types(schema, records)["fl"].field_type == DestinationType.FILE
    assert adapter.detect_auto_types(schema, records[:1])["fl"].field_type == DestinationType.IMAGE


def _page_context(adapter, fields, last_synced_time=None):
    return ProjectionContext(
        adapter=adapter,
        properties_by_id={},
        fields_by_id={dest_field.id: dest_field for dest_field in fields},
        slug_field_id="title",
        last_synced_time=last_synced_time,
    )


PAGE_FIELDS = [
    DestinationField(id=PAGE_CONTENT_FIELD_ID, name="Content", type=DestinationType.FORMATTED_TEXT),
    DestinationField(id=PAGE_COVER_FIELD_ID, name="Cover Image", type=DestinationType.IMAGE),
    DestinationField(id=PAGE_ICON_FIELD_ID, name="Icon", type=DestinationType.STRING),
]


@pytest.mark.asyncio
async def test_page_fields_fetch_content_cover_and_icon(make_client):
    client = make_client({
        ("GET", "blocks/p1/children"): {
            "results": [{"type": "paragraph", "paragraph": {"rich_text": [_text("Body")]}}],
            "has_more": False,
        },
    })
    adapter = NotionAdapter(client, "db1")
    record = SourceRecord(id="p1", locator="https://notion.so/p1", page={
        "last_edited_time": "2024-04-26T10:00:00.000Z",
        "cover": {"type": "external", "external": {"url": "https://c.png"}},
        "icon": {"type": "emoji", "emoji": "🙂"},
    })

    values = await adapter.project_page_fields(record, _page_context(adapter, PAGE_FIELDS), SyncStatus())

    assert values == {PAGE_CONTENT_FIELD_ID: "<p>Body</p>", PAGE_COVER_FIELD_ID: "https://c.png", PAGE_ICON_FIELD_ID: "🙂"}


@pytest.mark.asyncio
async def test_unchanged_page_content_is_skipped_with_info(make_client):
    client = make_client({})
    adapter = NotionAdapter(client, "db1")
    record = SourceRecord(id="p1", locator="https://notion.so/p1", page={"last_edited_time": "2024-04-26T10:00:00.000Z"})
    status = SyncStatus()

    context = _page_context(adapter, PAGE_FIELDS[:1], last_synced_time="2024-04-26T11:00:00.000Z")
    values = await adapter.project_page_fields(record, context, status)

    assert values == {}
    assert client.calls == []
    assert status.info[0].locator == "https://notion.so/p1"
    assert status.info[0].message == (
        "Skipping page content import. last updated: 04/26/2024, 10:00:00, last synced: 04/26/2024, 11:00:00"
    )


@pytest.mark.asyncio
async def test_emoji_icon_is_not_an_image(make_client):
    adapter = NotionAdapter(make_client({}), "db1")
    fields = [DestinationField(id=PAGE_ICON_FIELD_ID, name="Icon", type=DestinationType.IMAGE)]
    record = SourceRecord(id="p1", locator="p1", page={"icon": {"type": "emoji", "emoji": "🙂"}})
    assert await adapter.project_page_fields(record, _page_context(adapter, fields), SyncStatus()) == {}


@pytest.mark.asyncio
async def test_number_rollup_can_be_the_slug():
    adapter = NotionAdapter(None, "db1")
    rollup = SourceProperty(id="ru", name="Total", kind="rollup")
    context = ProjectionContext(adapter=adapter, properties_by_id={"ru": rollup}, fields_by_id={}, slug_field_id="ru")
    record = SourceRecord(id="p1", locator="p1", values={"ru": _value("rollup", {"type": "number", "number": 42})})
    status = SyncStatus()

    projected = await project_record(record, context, status, set())

    assert projected.slug == "42"
    assert status.warnings == []


def test_date_formula_gets_time_setting_from_detected_type():
    adapter = NotionAdapter(None, "db1")
    schema = SourceSchema(id="db1", properties=(SourceProperty(id="f1", name="Due", kind="formula"),))
    records = [SourceRecord(id="a", locator="a", values={
        "f1": _value("formula", {"type": "date", "date": {"start": "2024-04-26T10:00:00Z"}}),
    })]
    mappings = [mapping for mapping in build_field_mapping(adapter, schema, records) if mapping.property.id == "f1"]

    assert mappings[0].default_type == DestinationType.DATE
    assert initial_field_settings(adapter, mappings) == {"f1": {"time": False}}
