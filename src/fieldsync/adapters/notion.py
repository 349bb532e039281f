"""Document-database source adapter (Notion-style API).

Schema: `GET databases/{id}`. Records: `POST databases/{id}/query` with
cursor pagination. Page content: `GET blocks/{page}/children`.

Besides its columns, every page carries a title, a body of blocks, a cover
and an icon; those four are offered as page-level fields.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from fieldsync._internal.text import format_timestamp, truncate_to_date
from fieldsync.codes import NONE_OPTION_ID, DestinationType
from fieldsync.contracts import SyncStatus
from fieldsync.errors import SchemaFetchError
from fieldsync.kernel.conversion import ConversionTable, types
from fieldsync.kernel.field_config import IMAGE_FILE_EXTENSIONS, AutoDetection, file_extension, image_or_file
from fieldsync.kernel.models import FieldMapping, SelectOption, SourceProperty, SourceRecord, SourceSchema
from fieldsync.kernel.projector import ProjectionContext
from fieldsync.kernel.schema_change import is_unchanged_since_last_sync
from fieldsync.kernel.settings import FieldSettingKey, FieldSettings, SettingRule
from fieldsync.markup.blocks import blocks_to_html, file_url, rich_text_to_html, rich_text_to_plain_text
from fieldsync.markup.markdown import markdown_to_html
from .base import SourceAdapter

logger = logging.getLogger(__name__)

PAGE_SIZE = 100

PAGE_CONTENT_FIELD_ID = "page-content"
PAGE_COVER_FIELD_ID = "page-cover"
PAGE_ICON_FIELD_ID = "page-icon"


class NotionKind(str, Enum):
    CHECKBOX = "checkbox"
    CREATED_BY = "created_by"
    CREATED_TIME = "created_time"
    DATE = "date"
    EMAIL = "email"
    FILES = "files"
    FORMULA = "formula"
    LAST_EDITED_BY = "last_edited_by"
    LAST_EDITED_TIME = "last_edited_time"
    MULTI_SELECT = "multi_select"
    NUMBER = "number"
    PEOPLE = "people"
    PHONE_NUMBER = "phone_number"
    RELATION = "relation"
    RICH_TEXT = "rich_text"
    ROLLUP = "rollup"
    SELECT = "select"
    STATUS = "status"
    TITLE = "title"
    UNIQUE_ID = "unique_id"
    URL = "url"


K = NotionKind

NOTION_CONVERSIONS = ConversionTable(
    source="notion",
    kinds=NotionKind,
    types_by_kind={
        K.CHECKBOX.value: types("boolean"),
        K.CREATED_BY.value: (),
        K.CREATED_TIME.value: types("date"),
        K.DATE.value: types("date"),
        K.EMAIL.value: types("string"),
        K.FILES.value: types("file", "image"),
        K.FORMULA.value: types("string", "number", "boolean", "date", "link", "image", "file"),
        K.LAST_EDITED_BY.value: (),
        K.LAST_EDITED_TIME.value: types("date"),
        K.MULTI_SELECT.value: types("enum", "string"),
        K.NUMBER.value: types("number"),
        K.PEOPLE.value: (),
        K.PHONE_NUMBER.value: types("string"),
        K.RELATION.value: (),
        K.RICH_TEXT.value: types("formattedText", "string"),
        K.ROLLUP.value: types("string", "number", "boolean", "date", "link", "image", "file"),
        K.SELECT.value: types("enum", "string"),
        K.STATUS.value: types("enum", "string"),
        K.TITLE.value: types("string", "formattedText"),
        K.UNIQUE_ID.value: types("string", "number"),
        K.URL.value: types("link", "string", "file"),
    },
)

PASSTHROUGH_KINDS = frozenset({
    K.CHECKBOX.value, K.URL.value, K.NUMBER.value, K.PHONE_NUMBER.value, K.EMAIL.value,
})
SELECT_KINDS = frozenset({K.SELECT.value, K.MULTI_SELECT.value, K.STATUS.value})


def _display_string(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, dict):
        return value.get("start") or ""
    return str(value)


def _to_number(value: Any) -> Optional[float]:
    if value is None:
        return 0
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_property(key: str, data: Dict[str, Any]) -> SourceProperty:
    """SourceProperty from one entry of the database `properties` object."""
    kind = data.get("type", "")
    options = ()
    if kind in SELECT_KINDS:
        options = tuple(
            SelectOption(id=option["id"], name=option.get("name", ""))
            for option in (data.get(kind) or {}).get("options", [])
        )
    return SourceProperty(id=data.get("id", key), name=data.get("name") or key, kind=kind, options=options)


def page_icon_type(records: Sequence[SourceRecord]) -> DestinationType:
    """STRING when emoji icons outnumber image icons, IMAGE otherwise."""
    emojis = 0
    images = 0
    for record in records:
        icon = record.page.get("icon") or {}
        if icon.get("type") == "emoji":
            emojis += 1
        elif file_url(icon):
            images += 1
    return DestinationType.STRING if emojis > images else DestinationType.IMAGE


class NotionAdapter(SourceAdapter):
    """Adapter for one database."""

    source = "notion"
    conversion_table = NOTION_CONVERSIONS
    slug_kinds = (K.TITLE.value, K.RICH_TEXT.value, K.UNIQUE_ID.value, K.FORMULA.value, K.ROLLUP.value)
    boolean_kinds = frozenset({K.CHECKBOX.value})
    page_level_field_ids = frozenset({PAGE_CONTENT_FIELD_ID, PAGE_COVER_FIELD_ID, PAGE_ICON_FIELD_ID})
    # Every page has a status, so status enums get no None case
    kinds_without_none_case = frozenset({K.STATUS.value})
    setting_rules = (
        SettingRule(K.MULTI_SELECT.value, FieldSettingKey.MULTIPLE_FIELDS),
        SettingRule(K.FILES.value, FieldSettingKey.MULTIPLE_FIELDS),
        SettingRule(K.CREATED_TIME.value, FieldSettingKey.TIME),
        SettingRule(K.DATE.value, FieldSettingKey.TIME),
        SettingRule(K.LAST_EDITED_TIME.value, FieldSettingKey.TIME),
        SettingRule(K.FORMULA.value, FieldSettingKey.TIME, DestinationType.DATE),
        SettingRule(K.ROLLUP.value, FieldSettingKey.TIME, DestinationType.DATE),
        SettingRule(K.SELECT.value, FieldSettingKey.NONE_OPTION, DestinationType.ENUM),
        SettingRule(K.MULTI_SELECT.value, FieldSettingKey.NONE_OPTION, DestinationType.ENUM),
        SettingRule(K.RICH_TEXT.value, FieldSettingKey.IMPORT_DEFAULT_MARKDOWN_OR_HTML, DestinationType.FORMATTED_TEXT),
    )

    def __init__(self, client, database_id: str):
        super().__init__(client)
        self.database_id = database_id

    @property
    def schema_ref(self) -> str:
        return self.database_id

    def integration_data(self) -> Dict[str, Any]:
        return {"databaseId": self.database_id}

    async def fetch_schema(self) -> SourceSchema:
        database = await self.client.get(f"databases/{self.database_id}")
        if not database or "properties" not in database:
            raise SchemaFetchError(self.source, f"database {self.database_id} not found")

        return SourceSchema(
            id=database.get("id", self.database_id),
            name=rich_text_to_plain_text(database.get("title")),
            properties=tuple(parse_property(key, data) for key, data in database["properties"].items()),
        )

    async def fetch_records(self, schema: SourceSchema) -> List[SourceRecord]:
        records: List[SourceRecord] = []
        cursor = None

        while True:
            body: Dict[str, Any] = {"page_size": PAGE_SIZE}
            if cursor:
                body["start_cursor"] = cursor
            response = await self.client.post(f"databases/{schema.id}/query", body)

            for page in response.get("results", []):
                properties = page.get("properties") or {}
                records.append(SourceRecord(
                    id=page["id"],
                    locator=page.get("url") or page["id"],
                    values={value.get("id", key): value for key, value in properties.items()},
                    page={key: page.get(key) for key in ("icon", "cover", "last_edited_time")},
                ))

            logger.debug(f"[SYNC] Read {len(records)} pages from database {schema.id}")
            if not response.get("has_more"):
                break
            cursor = response.get("next_cursor")

        return records

    async def fetch_page_blocks(self, page_id: str) -> List[Dict[str, Any]]:
        """Top-level blocks of a page, every page of results."""
        blocks: List[Dict[str, Any]] = []
        cursor = None
        while True:
            params: Dict[str, Any] = {"page_size": PAGE_SIZE}
            if cursor:
                params["start_cursor"] = cursor
            response = await self.client.get(f"blocks/{page_id}/children", params)
            blocks.extend(response.get("results", []))
            if not response.get("has_more"):
                return blocks
            cursor = response.get("next_cursor")

    def page_level_mappings(
        self,
        schema: SourceSchema,
        records: Sequence[SourceRecord],
        is_new_field: Callable[[str], bool],
    ) -> List[FieldMapping]:
        mappings: List[FieldMapping] = []

        title = next((prop for prop in schema.properties if prop.kind == K.TITLE.value), None)
        if title is not None:
            mappings.append(FieldMapping(
                property=title,
                conversion_types=list(NOTION_CONVERSIONS.destination_types_for(K.TITLE.value)),
                effective_kind=K.TITLE.value,
                is_new_field=is_new_field(title.id),
                is_page_level_field=True,
            ))

        has_cover = any(record.page.get("cover") for record in records)
        has_icon = any(record.page.get("icon") for record in records)

        mappings.append(FieldMapping(
            property=SourceProperty(id=PAGE_CONTENT_FIELD_ID, name="Content", kind=PAGE_CONTENT_FIELD_ID),
            conversion_types=[DestinationType.FORMATTED_TEXT],
            effective_kind=PAGE_CONTENT_FIELD_ID,
            is_new_field=is_new_field(PAGE_CONTENT_FIELD_ID),
            is_page_level_field=True,
        ))
        mappings.append(FieldMapping(
            property=SourceProperty(id=PAGE_COVER_FIELD_ID, name="Cover Image", kind=PAGE_COVER_FIELD_ID),
            conversion_types=[DestinationType.IMAGE],
            effective_kind=PAGE_COVER_FIELD_ID,
            is_new_field=is_new_field(PAGE_COVER_FIELD_ID),
            is_page_level_field=True,
            auto_disabled=not has_cover,
        ))
        mappings.append(FieldMapping(
            property=SourceProperty(id=PAGE_ICON_FIELD_ID, name="Icon", kind=PAGE_ICON_FIELD_ID),
            conversion_types=[DestinationType.IMAGE, DestinationType.STRING],
            effective_kind=PAGE_ICON_FIELD_ID,
            is_new_field=is_new_field(PAGE_ICON_FIELD_ID),
            auto_field_type=page_icon_type(records),
            is_page_level_field=True,
            auto_disabled=not has_icon,
        ))
        return mappings

    def detect_auto_types(self, schema: SourceSchema, records: Sequence[SourceRecord]) -> Dict[str, AutoDetection]:
        """Formulas take the type of their last non-empty result; files become images when every extension is one."""
        detections: Dict[str, AutoDetection] = {}

        for prop in schema.properties:
            if prop.kind == K.FORMULA.value:
                result_type = None
                for record in records:
                    formula = (record.values.get(prop.id) or {}).get(K.FORMULA.value) or {}
                    if formula.get(formula.get("type")) is not None:
                        result_type = formula.get("type")
                if result_type in {member.value for member in DestinationType}:
                    detections[prop.id] = AutoDetection(field_type=DestinationType(result_type))

            elif prop.kind == K.FILES.value:
                extensions = [
                    file_extension(item.get("name", ""))
                    for record in records
                    for item in (record.values.get(prop.id) or {}).get(K.FILES.value) or []
                ]
                detected = image_or_file(extensions, IMAGE_FILE_EXTENSIONS)
                if detected is not None:
                    detections[prop.id] = AutoDetection(field_type=detected)

        return detections

    def convert_value(self, prop: SourceProperty, raw: Any, field_type: DestinationType, settings: FieldSettings) -> Any:
        if not isinstance(raw, dict):
            return None
        kind = raw.get("type") or prop.kind
        return self._convert(kind, raw.get(kind), prop, field_type, settings)

    def _date(self, value: Optional[str], settings: FieldSettings) -> Optional[str]:
        return value if settings.time else truncate_to_date(value)

    def _convert(
        self,
        kind: str,
        value: Any,
        prop: SourceProperty,
        field_type: DestinationType,
        settings: FieldSettings,
    ) -> Any:
        if kind in PASSTHROUGH_KINDS:
            return value
        if kind in (K.CREATED_TIME.value, K.LAST_EDITED_TIME.value):
            return self._date(value, settings)
        if kind == K.DATE.value:
            return self._date(value.get("start"), settings) if value else None
        if kind == K.TITLE.value:
            return rich_text_to_plain_text(value)
        if kind == K.RICH_TEXT.value:
            return self._rich_text(value, field_type, settings)
        if kind in (K.CREATED_BY.value, K.LAST_EDITED_BY.value):
            return value.get("id") if value else None
        if kind == K.PEOPLE.value:
            return ", ".join(person.get("id", "") for person in value or [])

        if kind == K.MULTI_SELECT.value:
            key = "id" if field_type == DestinationType.ENUM else "name"
            selected = [option.get(key) for option in value or []]
            if settings.multiple_fields:
                return selected
            return selected[0] if selected else None
        if kind == K.SELECT.value:
            if field_type == DestinationType.ENUM:
                return value.get("id") if value else NONE_OPTION_ID
            return value.get("name") if value else None
        if kind == K.STATUS.value:
            key = "id" if field_type == DestinationType.ENUM else "name"
            return value.get(key) if value else None

        if kind == K.FILES.value:
            urls = [url for url in (file_url(item) for item in value or []) if url]
            if settings.multiple_fields:
                return urls
            return urls[0] if urls else ""
        if kind == K.UNIQUE_ID.value:
            if not value or value.get("number") is None:
                return None
            if field_type == DestinationType.NUMBER:
                return value["number"]
            prefix = value.get("prefix")
            return f"{prefix}-{value['number']}" if prefix else str(value["number"])

        if kind == K.FORMULA.value:
            return self._formula(value, field_type, settings)
        if kind == K.ROLLUP.value:
            return self._rollup(value, prop, field_type, settings)

        # relation, buttons and kinds the table does not know
        return None

    def _rich_text(self, segments: Any, field_type: DestinationType, settings: FieldSettings) -> Optional[str]:
        if field_type != DestinationType.FORMATTED_TEXT:
            return rich_text_to_plain_text(segments)

        mode = settings.import_default_markdown_or_html
        if mode == "html":
            return rich_text_to_plain_text(segments)
        if mode == "markdown":
            return markdown_to_html(rich_text_to_plain_text(segments))
        html = rich_text_to_html(segments)
        return f"<p>{html}</p>" if html else None

    def _formula(self, formula: Any, field_type: DestinationType, settings: FieldSettings) -> Any:
        if not formula:
            return None
        result_type = formula.get("type")
        result = formula.get(result_type)

        if field_type in (DestinationType.STRING, DestinationType.LINK, DestinationType.IMAGE, DestinationType.FILE):
            return _display_string(result)
        if field_type == DestinationType.NUMBER:
            return _to_number(result)
        if field_type == DestinationType.DATE:
            if result_type != "date" or not result:
                return None
            return self._date(result.get("start"), settings)
        if field_type == DestinationType.BOOLEAN:
            return bool(result)
        return None

    def _rollup(self, rollup: Any, prop: SourceProperty, field_type: DestinationType, settings: FieldSettings) -> Any:
        if not rollup:
            return None
        result_type = rollup.get("type")

        if result_type == "array":
            items = rollup.get("array") or []
            if not items:
                return None
            first = items[0]
            item_kind = first.get("type")
            return self._convert(item_kind, first.get(item_kind), prop, field_type, settings.with_single_value())
        if result_type == "number":
            return rollup.get("number")
        if result_type == "date":
            date = rollup.get("date")
            return self._date(date.get("start"), settings) if date else None
        return None

    async def project_page_fields(
        self,
        record: SourceRecord,
        context: ProjectionContext,
        status: SyncStatus,
    ) -> Dict[str, Any]:
        fields = context.fields_by_id
        result: Dict[str, Any] = {}

        if PAGE_CONTENT_FIELD_ID in fields:
            last_edited = record.page.get("last_edited_time")
            if is_unchanged_since_last_sync(last_edited, context.last_synced_time):
                status.add_info(
                    record.locator,
                    f"Skipping page content import. last updated: {format_timestamp(last_edited)}, "
                    f"last synced: {format_timestamp(context.last_synced_time)}",
                )
            else:
                result[PAGE_CONTENT_FIELD_ID] = blocks_to_html(await self.fetch_page_blocks(record.id))

        cover = record.page.get("cover")
        if PAGE_COVER_FIELD_ID in fields and cover:
            url = file_url(cover)
            if url:
                result[PAGE_COVER_FIELD_ID] = url

        icon = record.page.get("icon")
        if PAGE_ICON_FIELD_ID in fields and icon:
            if icon.get("type") == "emoji":
                value = icon.get("emoji") if fields[PAGE_ICON_FIELD_ID].type == DestinationType.STRING else None
            else:
                value = file_url(icon)
            if value:
                result[PAGE_ICON_FIELD_ID] = value

        return result
