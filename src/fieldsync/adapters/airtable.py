"""Base/table source adapter (Airtable-style API).

Schema: `GET meta/bases/{base}/tables`. Records: `GET {base}/{table}` with
offset pagination, JSON cell format and values keyed by field id.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from fieldsync._internal.text import truncate_to_date
from fieldsync.codes import NONE_OPTION_ID, DestinationType
from fieldsync.errors import SchemaFetchError
from fieldsync.kernel.conversion import ConversionTable, types
from fieldsync.kernel.field_config import IMAGE_MIME_TYPES, AutoDetection, image_or_file
from fieldsync.kernel.models import SelectOption, SourceProperty, SourceRecord, SourceSchema
from fieldsync.kernel.settings import FieldSettingKey, FieldSettings, SettingRule
from fieldsync.markup.markdown import markdown_to_html
from fieldsync.markup.rich_text import rich_text_to_html, rich_text_to_plain_text
from .base import SourceAdapter

logger = logging.getLogger(__name__)


class AirtableKind(str, Enum):
    AI_TEXT = "aiText"
    MULTIPLE_ATTACHMENTS = "multipleAttachments"
    AUTO_NUMBER = "autoNumber"
    BARCODE = "barcode"
    BUTTON = "button"
    CHECKBOX = "checkbox"
    SINGLE_COLLABORATOR = "singleCollaborator"
    COUNT = "count"
    CREATED_BY = "createdBy"
    CREATED_TIME = "createdTime"
    CURRENCY = "currency"
    DATE = "date"
    DATE_TIME = "dateTime"
    DURATION = "duration"
    EMAIL = "email"
    LAST_MODIFIED_BY = "lastModifiedBy"
    LAST_MODIFIED_TIME = "lastModifiedTime"
    MULTILINE_TEXT = "multilineText"
    MULTIPLE_COLLABORATORS = "multipleCollaborators"
    MULTIPLE_SELECTS = "multipleSelects"
    NUMBER = "number"
    PERCENT = "percent"
    PHONE_NUMBER = "phoneNumber"
    RATING = "rating"
    RICH_TEXT = "richText"
    SINGLE_LINE_TEXT = "singleLineText"
    SINGLE_SELECT = "singleSelect"
    EXTERNAL_SYNC_SOURCE = "externalSyncSource"
    URL = "url"
    MULTIPLE_RECORD_LINKS = "multipleRecordLinks"
    FORMULA = "formula"
    MULTIPLE_LOOKUP_VALUES = "multipleLookupValues"
    ROLLUP = "rollup"


K = AirtableKind

AIRTABLE_CONVERSIONS = ConversionTable(
    source="airtable",
    kinds=AirtableKind,
    types_by_kind={
        K.AI_TEXT.value: types("string", "formattedText"),
        K.MULTIPLE_ATTACHMENTS.value: types("file", "image"),
        K.AUTO_NUMBER.value: types("number"),
        K.BARCODE.value: types("string"),
        K.BUTTON.value: types("link"),
        K.CHECKBOX.value: types("boolean"),
        K.SINGLE_COLLABORATOR.value: types("string"),
        K.COUNT.value: types("number"),
        K.CREATED_BY.value: types("string"),
        K.CREATED_TIME.value: types("date"),
        K.CURRENCY.value: types("number", "string"),
        K.DATE.value: types("date"),
        K.DATE_TIME.value: types("date"),
        K.DURATION.value: types("string"),
        K.EMAIL.value: types("string"),
        K.LAST_MODIFIED_BY.value: types("string"),
        K.LAST_MODIFIED_TIME.value: types("date"),
        K.MULTILINE_TEXT.value: types("string", "formattedText"),
        K.MULTIPLE_COLLABORATORS.value: types("string"),
        K.MULTIPLE_SELECTS.value: types("enum", "string"),
        K.NUMBER.value: types("number"),
        K.PERCENT.value: types("number"),
        K.PHONE_NUMBER.value: types("string"),
        K.RATING.value: types("number"),
        K.RICH_TEXT.value: types("formattedText", "string"),
        K.SINGLE_LINE_TEXT.value: types("string", "formattedText"),
        K.SINGLE_SELECT.value: types("enum", "string"),
        K.EXTERNAL_SYNC_SOURCE.value: types("string"),
        K.URL.value: types("link", "string"),
        K.MULTIPLE_RECORD_LINKS.value: (),
    },
    computed_kinds=frozenset({K.FORMULA.value, K.MULTIPLE_LOOKUP_VALUES.value, K.ROLLUP.value}),
    # Formatting cannot be extracted from rich text behind a computed field
    unsupported_computed_results=frozenset({K.RICH_TEXT.value}),
)

PASSTHROUGH_KINDS = frozenset({
    K.EMAIL.value, K.AUTO_NUMBER.value, K.COUNT.value, K.CHECKBOX.value, K.NUMBER.value,
    K.PERCENT.value, K.PHONE_NUMBER.value, K.RATING.value, K.URL.value,
})
TEXT_KINDS = frozenset({K.SINGLE_LINE_TEXT.value, K.MULTILINE_TEXT.value, K.AI_TEXT.value})
DATE_KINDS = frozenset({K.DATE.value, K.DATE_TIME.value, K.CREATED_TIME.value, K.LAST_MODIFIED_TIME.value})
USER_KINDS = frozenset({
    K.SINGLE_COLLABORATOR.value, K.CREATED_BY.value, K.LAST_MODIFIED_BY.value, K.MULTIPLE_COLLABORATORS.value,
})
SELECT_KINDS = frozenset({K.SINGLE_SELECT.value, K.MULTIPLE_SELECTS.value})

# Number of fraction digits per duration format; None: no seconds component
DURATION_FRACTION_DIGITS: Dict[str, Optional[int]] = {
    "h:mm": None,
    "h:mm:ss": 0,
    "h:mm:ss.S": 1,
    "h:mm:ss.SS": 2,
    "h:mm:ss.SSS": 3,
}


def format_duration(seconds: float, duration_format: Optional[str]) -> str:
    """Seconds as h:mm[:ss[.fraction]]; hours are not zero-padded, everything else is."""
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    remaining = seconds % 60

    result = f"{hours}:{minutes:02d}"
    if duration_format not in DURATION_FRACTION_DIGITS or DURATION_FRACTION_DIGITS[duration_format] is None:
        return result

    result += f":{int(remaining):02d}"
    digits = DURATION_FRACTION_DIGITS[duration_format]
    if digits:
        result += "." + f"{remaining % 1:.{digits}f}"[2:]
    return result


def format_currency(value: Any, metadata: Dict[str, Any]) -> str:
    precision = metadata.get("precision", 2)
    symbol = metadata.get("symbol", "")
    amount = Decimal(str(value)).quantize(Decimal(1).scaleb(-precision), rounding=ROUND_HALF_UP)
    return f"{symbol}{amount:.{precision}f}"


def select_option_id(name: Any, prop: SourceProperty) -> str:
    """Id of the option called `name`, or the None sentinel."""
    if not name:
        return NONE_OPTION_ID
    for option in prop.choices():
        if option.name == name:
            return option.id
    return NONE_OPTION_ID


def parse_property(data: Dict[str, Any]) -> SourceProperty:
    """SourceProperty from one field of the table schema."""
    options = data.get("options") or {}
    result = options.get("result")
    return SourceProperty(
        id=data["id"],
        name=data.get("name", data["id"]),
        kind=data["type"],
        result=parse_property({"id": data["id"], "name": data.get("name", data["id"]), **result}) if result else None,
        options=tuple(SelectOption(id=choice["id"], name=choice["name"]) for choice in options.get("choices", [])),
        metadata={key: value for key, value in options.items() if key not in ("choices", "result")},
    )


class AirtableAdapter(SourceAdapter):
    """Adapter for one table of a base."""

    source = "airtable"
    conversion_table = AIRTABLE_CONVERSIONS
    slug_kinds = (K.SINGLE_LINE_TEXT.value, K.MULTILINE_TEXT.value, K.AUTO_NUMBER.value, K.AI_TEXT.value)
    boolean_kinds = frozenset({K.CHECKBOX.value})
    setting_rules = (
        SettingRule(K.CREATED_TIME.value, FieldSettingKey.TIME),
        SettingRule(K.DATE_TIME.value, FieldSettingKey.TIME),
        SettingRule(K.LAST_MODIFIED_TIME.value, FieldSettingKey.TIME),
        SettingRule(K.FORMULA.value, FieldSettingKey.TIME, DestinationType.DATE),
        SettingRule(K.MULTIPLE_ATTACHMENTS.value, FieldSettingKey.MULTIPLE_FIELDS),
        SettingRule(K.MULTIPLE_LOOKUP_VALUES.value, FieldSettingKey.MULTIPLE_FIELDS),
        SettingRule(K.MULTIPLE_COLLABORATORS.value, FieldSettingKey.MULTIPLE_FIELDS),
        SettingRule(K.MULTIPLE_SELECTS.value, FieldSettingKey.MULTIPLE_FIELDS),
        SettingRule(K.SINGLE_SELECT.value, FieldSettingKey.NONE_OPTION, DestinationType.ENUM),
        SettingRule(K.MULTIPLE_SELECTS.value, FieldSettingKey.NONE_OPTION, DestinationType.ENUM),
        SettingRule(K.SINGLE_LINE_TEXT.value, FieldSettingKey.IMPORT_MARKDOWN_OR_HTML, DestinationType.FORMATTED_TEXT),
        SettingRule(K.MULTILINE_TEXT.value, FieldSettingKey.IMPORT_MARKDOWN_OR_HTML, DestinationType.FORMATTED_TEXT),
        SettingRule(K.AI_TEXT.value, FieldSettingKey.IMPORT_MARKDOWN_OR_HTML, DestinationType.FORMATTED_TEXT),
    )

    def __init__(self, client, base_id: str, table_id: str):
        super().__init__(client)
        self.base_id = base_id
        self.table_id = table_id

    @property
    def schema_ref(self) -> str:
        return self.table_id

    def integration_data(self) -> Dict[str, Any]:
        return {"baseId": self.base_id, "tableId": self.table_id}

    async def fetch_schema(self) -> SourceSchema:
        base_schema = await self.client.get(f"meta/bases/{self.base_id}/tables")
        tables = (base_schema or {}).get("tables") or []
        table = next((candidate for candidate in tables if candidate.get("id") == self.table_id), None)
        if table is None:
            raise SchemaFetchError(self.source, f"table {self.table_id} not found in base {self.base_id}")

        return SourceSchema(
            id=self.table_id,
            name=table.get("name", ""),
            properties=tuple(parse_property(field) for field in table.get("fields", [])),
        )

    async def fetch_records(self, schema: SourceSchema) -> List[SourceRecord]:
        records: List[SourceRecord] = []
        offset = None

        while True:
            params: Dict[str, Any] = {"cellFormat": "json", "returnFieldsByFieldId": True}
            if offset:
                params["offset"] = offset
            page = await self.client.get(f"{self.base_id}/{self.table_id}", params)

            for record in page.get("records", []):
                records.append(SourceRecord(id=record["id"], locator=record["id"], values=record.get("fields") or {}))

            offset = page.get("offset")
            logger.debug(f"[SYNC] Read {len(records)} records from table {self.table_id}")
            if not offset:
                break

        return records

    def detect_auto_types(self, schema: SourceSchema, records: Sequence[SourceRecord]) -> Dict[str, AutoDetection]:
        """Attachment columns whose every MIME type is an image type become images, others files."""
        attachment_ids = [
            prop.id for prop in schema.properties
            if self.conversion_table.effective_kind(prop) == K.MULTIPLE_ATTACHMENTS.value
        ]
        mime_types: Dict[str, List[str]] = {prop_id: [] for prop_id in attachment_ids}

        for record in records:
            for prop_id in attachment_ids:
                files = record.values.get(prop_id)
                if not isinstance(files, list):
                    continue
                mime_types[prop_id].extend(
                    item["type"] for item in files if isinstance(item, dict) and item.get("type")
                )

        detections: Dict[str, AutoDetection] = {}
        for prop_id, observed in mime_types.items():
            detected = image_or_file(observed, IMAGE_MIME_TYPES)
            if detected is not None:
                detections[prop_id] = AutoDetection(field_type=detected)
        return detections

    def convert_value(self, prop: SourceProperty, raw: Any, field_type: DestinationType, settings: FieldSettings) -> Any:
        if raw is None:
            return None

        if isinstance(raw, list):
            values = list(raw)
            if prop.kind == K.MULTIPLE_ATTACHMENTS.value and prop.metadata.get("isReversed"):
                values.reverse()
            if not settings.multiple_fields:
                values = values[:1]
        else:
            values = [raw]

        converted = [self._convert_one(prop, value, field_type, settings) for value in values]
        if isinstance(raw, list) and settings.multiple_fields:
            return converted
        return converted[0] if converted else None

    def _convert_one(self, prop: SourceProperty, value: Any, field_type: DestinationType, settings: FieldSettings) -> Any:
        kind = prop.kind

        if self.conversion_table.is_computed(prop):
            if prop.result is None:
                return None
            return self.convert_value(prop.result, value, field_type, settings.with_single_value())

        if kind in PASSTHROUGH_KINDS:
            return value
        if kind in TEXT_KINDS:
            text = value.get("value") if isinstance(value, dict) else value
            if (
                text
                and field_type == DestinationType.FORMATTED_TEXT
                and settings.import_markdown_or_html == "markdown"
            ):
                return markdown_to_html(text)
            return text
        if kind == K.CURRENCY.value:
            if field_type == DestinationType.STRING:
                return format_currency(value, prop.metadata)
            return float(value)
        if kind in DATE_KINDS:
            return value if settings.time else truncate_to_date(value)
        if kind == K.RICH_TEXT.value:
            if field_type == DestinationType.FORMATTED_TEXT:
                return rich_text_to_html(value)
            return rich_text_to_plain_text(value)
        if kind == K.MULTIPLE_ATTACHMENTS.value:
            return value.get("url") or ""
        if kind == K.BARCODE.value:
            return value.get("text") or ""
        if kind == K.BUTTON.value:
            return value.get("url") or None
        if kind in USER_KINDS:
            return (value.get("name") or "") if isinstance(value, dict) else value
        if kind in SELECT_KINDS:
            return select_option_id(value, prop) if field_type == DestinationType.ENUM else value
        if kind == K.EXTERNAL_SYNC_SOURCE.value:
            return value.get("name") if isinstance(value, dict) else value
        if kind == K.DURATION.value:
            return format_duration(float(value), prop.metadata.get("durationFormat"))

        # multipleRecordLinks and kinds the table does not know
        return None
