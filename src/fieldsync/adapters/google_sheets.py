"""Spreadsheet source adapter (Google Sheets-style API).

One sheet of a spreadsheet is one schema: the header row names the columns
and every non-empty row below it is a record. Sheets carry no column types,
so each column's kind is inferred from its cells.

Schema and records both come from `GET spreadsheets/{id}` with grid data
for the sheet's range.
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from dateutil import parser as date_parser

from fieldsync._internal.text import is_url, is_web_url, to_iso_string
from fieldsync.codes import DestinationType
from fieldsync.errors import SchemaFetchError
from fieldsync.kernel.conversion import ConversionTable, types
from fieldsync.kernel.field_config import IMAGE_FILE_EXTENSIONS, AutoDetection
from fieldsync.kernel.models import SourceProperty, SourceRecord, SourceSchema
from fieldsync.kernel.reconcile import default_value
from fieldsync.kernel.settings import FieldSettingKey, FieldSettings, SettingRule
from fieldsync.markup.markdown import markdown_to_html
from .base import SourceAdapter

logger = logging.getLogger(__name__)


class SheetsKind(str, Enum):
    BOOLEAN = "BOOLEAN"
    TEXT = "TEXT"
    FORMULA = "FORMULA"
    NUMBER = "NUMBER"
    DATE = "DATE"
    TIME = "TIME"
    DATE_TIME = "DATE_TIME"
    IMAGE = "IMAGE"
    HYPERLINK = "HYPERLINK"


K = SheetsKind
KIND_VALUES = frozenset(kind.value for kind in SheetsKind)

_TEXT_TYPES = types("string", "formattedText", "boolean", "number", "link", "image", "file", "date")

SHEETS_CONVERSIONS = ConversionTable(
    source="google_sheets",
    kinds=SheetsKind,
    types_by_kind={
        K.BOOLEAN.value: types("boolean", "string"),
        K.TEXT.value: _TEXT_TYPES,
        K.FORMULA.value: _TEXT_TYPES,
        K.NUMBER.value: types("number", "string"),
        K.DATE.value: types("date", "string"),
        K.TIME.value: types("string"),
        K.DATE_TIME.value: types("date", "string"),
        K.IMAGE.value: types("image", "link", "file", "string"),
        K.HYPERLINK.value: types("link", "string", "image", "file"),
    },
)

IMAGE_FIELD_TYPES = frozenset(SHEETS_CONVERSIONS.destination_types_for(K.IMAGE.value))
HYPERLINK_FIELD_TYPES = frozenset(SHEETS_CONVERSIONS.destination_types_for(K.HYPERLINK.value))

# Day 0 of the spreadsheet serial date system
SERIAL_DATE_EPOCH = datetime(1899, 12, 30, tzinfo=timezone.utc)

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_IMAGE_FORMULA = re.compile(r'=IMAGE\("(.+)"\)')
_LEADING_NUMBER = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
HTML_TAG = re.compile(r"^<([a-z][a-z0-9]*)\b[^>]*>.*</([a-z][a-z0-9]*)>$", re.IGNORECASE | re.DOTALL)

MARKDOWN_INDICATORS = (
    re.compile(r"#{1,6}\s.+", re.MULTILINE),  # headers
    re.compile(r"(\*\*|__).+?\1"),  # bold
    re.compile(r"(\*|_).+?\1"),  # italic
    re.compile(r"`{1,3}[^`\n]+`{1,3}"),  # inline code
    re.compile(r"^\s*[-*+]\s", re.MULTILINE),  # unordered list items
    re.compile(r"^\s*\d+\.\s", re.MULTILINE),  # ordered list items
    re.compile(r"\[.+?\]\(.+?\)"),  # links
    re.compile(r"!\[.+?\]\(.+?\)"),  # images
    re.compile(r"^\s*([-*_]){3,}\s*$", re.MULTILINE),  # horizontal rules
    re.compile(r"^>.+", re.MULTILINE),  # blockquotes
    re.compile(r"^\s*```[\s\S]+?```\s*$", re.MULTILINE),  # fenced code blocks
    re.compile(r"\|.+\|.+\|"),  # tables
    re.compile(r"~~.+?~~"),  # strikethrough
)
MIN_MARKDOWN_INDICATORS = 3


def generate_column_id(header: Optional[str]) -> str:
    """
    Stable column id derived from the header text.

    32-bit string hash over UTF-16 code units ((h << 5) - h + unit, wrapped
    to a signed 32-bit integer), rendered as the absolute value in hex,
    left-padded with zeros to 32 characters.
    """
    if not header:
        return ""

    encoded = header.encode("utf-16-le")
    value = 0
    for index in range(0, len(encoded), 2):
        unit = encoded[index] | (encoded[index + 1] << 8)
        value = ((value << 5) - value + unit) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000

    return format(abs(value), "x").rjust(32, "0")[:32]


def is_markdown(text: str) -> bool:
    """True when at least three distinct markdown constructs appear in the text."""
    matches = sum(1 for pattern in MARKDOWN_INDICATORS if pattern.search(text))
    return matches >= MIN_MARKDOWN_INDICATORS


def _has_link_run(cell: Dict[str, Any]) -> bool:
    return any((run.get("format") or {}).get("link") for run in cell.get("textFormatRuns") or [])


def _is_image_formula(formula: Optional[str]) -> bool:
    return bool(formula) and formula.startswith("=IMAGE(") and formula.endswith(")")


def cell_kind(cell: Dict[str, Any]) -> Optional[str]:
    """Kind suggested by one cell, or None for a cell without a value."""
    effective = cell.get("effectiveValue")
    if not effective:
        return None

    number_format = ((cell.get("effectiveFormat") or {}).get("numberFormat") or {}).get("type")
    if number_format in KIND_VALUES:
        return number_format
    if isinstance(effective.get("numberValue"), (int, float)) and not isinstance(effective.get("numberValue"), bool):
        return K.NUMBER.value
    if isinstance(effective.get("boolValue"), bool):
        return K.BOOLEAN.value
    if effective.get("stringValue") and _ISO_DATE.match(effective["stringValue"]):
        return K.DATE.value
    if cell.get("hyperlink") or _has_link_run(cell):
        return K.HYPERLINK.value
    if _is_image_formula(effective.get("formulaValue")):
        return K.IMAGE.value
    return K.TEXT.value


def infer_column_kind(cells: Sequence[Optional[Dict[str, Any]]]) -> str:
    """Common kind of a column's cells; columns mixing kinds (or holding nothing) are TEXT."""
    column_kind = None
    for cell in cells:
        kind = cell_kind(cell) if cell else None
        if kind is None:
            continue
        if column_kind is None:
            column_kind = kind
        elif column_kind != kind:
            return K.TEXT.value
    return column_kind or K.TEXT.value


def detect_column_format(kind: str, cells: Sequence[Optional[Dict[str, Any]]]) -> Optional[AutoDetection]:
    """
    Auto-detect a better default than the kind's first conversion type.

    TEXT columns where more than half the non-empty cells hold HTML or
    markdown become formatted text, imported as whichever of the two is more
    common. HYPERLINK columns whose every link ends in an image extension
    become images.
    """
    present = [cell for cell in cells if cell and cell.get("effectiveValue")]

    if kind == K.TEXT.value:
        html_count = 0
        markdown_count = 0
        for cell in present:
            text = (cell["effectiveValue"].get("stringValue") or "").strip()
            if not text:
                continue
            if HTML_TAG.match(text):
                html_count += 1
            elif is_markdown(text):
                markdown_count += 1
        if html_count + markdown_count > len(present) / 2:
            return AutoDetection(
                field_type=DestinationType.FORMATTED_TEXT,
                settings={
                    FieldSettingKey.IMPORT_MARKDOWN_OR_HTML.value: "html" if html_count > markdown_count else "markdown",
                },
            )

    elif kind == K.HYPERLINK.value:
        links = [
            cell["effectiveValue"]["stringValue"].strip().lower()
            for cell in present
            if cell["effectiveValue"].get("stringValue")
        ]
        if links and all(link.rsplit(".", 1)[-1] in IMAGE_FILE_EXTENSIONS for link in links):
            return AutoDetection(field_type=DestinationType.IMAGE)

    return None


def _number_string(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _leading_number(text: str) -> float:
    match = _LEADING_NUMBER.match(text)
    return float(match.group(0)) if match else 0


def _parse_date(text: str) -> Optional[str]:
    try:
        return to_iso_string(date_parser.parse(text))
    except (ValueError, OverflowError):
        return None


def serial_to_iso(serial: float) -> str:
    return to_iso_string(SERIAL_DATE_EPOCH + timedelta(days=serial))


def serial_to_time(serial: float) -> str:
    total_seconds = serial * 86400
    hours = int(total_seconds // 3600)
    minutes = int((total_seconds % 3600) // 60)
    seconds = int(total_seconds % 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def cell_value(cell: Dict[str, Any], field_type: DestinationType, settings: FieldSettings) -> Any:
    """Raw value of one cell for a destination type, before coercion; None when the cell says nothing."""
    effective = cell.get("effectiveValue") or {}
    formatted = cell.get("formattedValue")
    number_format = ((cell.get("effectiveFormat") or {}).get("numberFormat") or {}).get("type")
    value: Any = None

    if "boolValue" in effective:
        flag = effective["boolValue"]
        value = flag if field_type == DestinationType.BOOLEAN else ("true" if flag else "false")
    elif "numberValue" in effective:
        number = effective["numberValue"]
        if number_format in (K.DATE.value, K.DATE_TIME.value):
            value = serial_to_iso(number)
        elif number_format == K.TIME.value:
            value = serial_to_time(number)
        else:
            value = number if field_type == DestinationType.NUMBER else _number_string(number)
    elif "stringValue" in effective:
        text = effective["stringValue"]
        value = _parse_date(text) if field_type == DestinationType.DATE else text
    elif formatted:
        if field_type == DestinationType.NUMBER:
            value = _leading_number(formatted)
        elif field_type == DestinationType.BOOLEAN:
            value = formatted.lower() in ("true", "yes")
        elif field_type == DestinationType.DATE:
            value = _parse_date(formatted)
        else:
            value = formatted

    formula = effective.get("formulaValue")
    if _is_image_formula(formula) and field_type in IMAGE_FIELD_TYPES:
        match = _IMAGE_FORMULA.search(formula)
        if match:
            value = match.group(1)

    if field_type in HYPERLINK_FIELD_TYPES:
        if cell.get("hyperlink"):
            value = cell["hyperlink"]
        else:
            run = next((run for run in cell.get("textFormatRuns") or [] if (run.get("format") or {}).get("link")), None)
            if run is not None:
                value = run["format"]["link"].get("uri", value)

    if value is None:
        return None
    if field_type == DestinationType.FORMATTED_TEXT and settings.import_markdown_or_html == "markdown":
        return markdown_to_html(str(value))
    if field_type == DestinationType.LINK and not is_url(value):
        return None
    return value


def coerce_value(value: Any, field_type: DestinationType) -> Any:
    """Force a cell value into the destination type's value domain."""
    if field_type == DestinationType.STRING:
        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        return _number_string(value) if isinstance(value, float) else str(value)
    if field_type == DestinationType.NUMBER:
        if value is None:
            return 0
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return value
        try:
            return float(value)
        except (TypeError, ValueError):
            return 0
    if field_type == DestinationType.BOOLEAN:
        if isinstance(value, str):
            return value.strip().lower() in ("true", "yes")
        return bool(value)
    if field_type in (DestinationType.LINK, DestinationType.IMAGE, DestinationType.FILE):
        return value if is_web_url(value) else None
    return value


class GoogleSheetsAdapter(SourceAdapter):
    """Adapter for one sheet of a spreadsheet."""

    source = "google_sheets"
    conversion_table = SHEETS_CONVERSIONS
    slug_kinds = (K.TEXT.value, K.NUMBER.value)
    boolean_kinds = frozenset({K.BOOLEAN.value})
    setting_rules = (
        SettingRule(K.TEXT.value, FieldSettingKey.IMPORT_MARKDOWN_OR_HTML, DestinationType.FORMATTED_TEXT),
    )

    def __init__(self, client, spreadsheet_id: str, sheet_id: str):
        super().__init__(client)
        self.spreadsheet_id = spreadsheet_id
        self.sheet_id = str(sheet_id)

    @property
    def schema_ref(self) -> str:
        return self.sheet_id

    def integration_data(self) -> Dict[str, Any]:
        return {"spreadsheetId": self.spreadsheet_id, "sheetId": self.sheet_id}

    async def fetch_sheet_title(self) -> str:
        metadata = await self.client.get(
            f"spreadsheets/{self.spreadsheet_id}",
            {"fields": "properties.title,sheets.properties"},
        )
        for sheet in (metadata or {}).get("sheets", []):
            properties = sheet.get("properties") or {}
            if str(properties.get("sheetId")) == self.sheet_id:
                return properties.get("title", "")
        raise SchemaFetchError(self.source, f"sheet {self.sheet_id} not found in spreadsheet {self.spreadsheet_id}")

    async def fetch_rows(self, title: str) -> List[List[Optional[Dict[str, Any]]]]:
        """Every row of the sheet (header included) as a list of cells."""
        response = await self.client.get(
            f"spreadsheets/{self.spreadsheet_id}",
            {"ranges": title, "includeGridData": "true", "fields": "sheets(properties,data)"},
        )
        sheets = (response or {}).get("sheets") or []
        if not sheets:
            raise SchemaFetchError(self.source, f"no grid data for sheet {title}")
        data = sheets[0].get("data") or [{}]
        return [row.get("values") or [] for row in data[0].get("rowData") or []]

    def _columns(self, header: Sequence[Optional[Dict[str, Any]]]) -> List[tuple]:
        """(column index, column id, header text) for each named column; repeated headers keep the first column."""
        columns = []
        seen = set()
        for index, cell in enumerate(header):
            name = (cell or {}).get("formattedValue")
            if not name:
                continue
            column_id = generate_column_id(name)
            if column_id in seen:
                logger.warning(f"[SYNC] Duplicate column header {name!r}; only the first column is synced")
                continue
            seen.add(column_id)
            columns.append((index, column_id, name))
        return columns

    async def fetch_schema(self) -> SourceSchema:
        title = await self.fetch_sheet_title()
        rows = await self.fetch_rows(title)
        if not rows:
            return SourceSchema(id=self.sheet_id, name=title)

        header, data_rows = rows[0], rows[1:]
        properties = []
        for index, column_id, name in self._columns(header):
            cells = [row[index] if index < len(row) else None for row in data_rows]
            properties.append(SourceProperty(
                id=column_id,
                name=name,
                kind=infer_column_kind(cells),
                metadata={"columnIndex": index},
            ))
        return SourceSchema(id=self.sheet_id, name=title, properties=tuple(properties))

    async def fetch_records(self, schema: SourceSchema) -> List[SourceRecord]:
        rows = await self.fetch_rows(schema.name)
        if not rows:
            return []

        columns = [(prop.metadata["columnIndex"], prop.id) for prop in schema.properties]
        records: List[SourceRecord] = []
        for row_index, row in enumerate(rows[1:]):
            if not any(cell and cell.get("formattedValue") for cell in row):
                continue
            records.append(SourceRecord(
                id=str(len(records)),
                locator=f"Row {row_index + 2}",
                values={column_id: row[index] if index < len(row) else None for index, column_id in columns},
            ))

        logger.debug(f"[SYNC] Read {len(records)} rows from sheet {schema.name}")
        return records

    def detect_auto_types(self, schema: SourceSchema, records: Sequence[SourceRecord]) -> Dict[str, AutoDetection]:
        detections: Dict[str, AutoDetection] = {}
        for prop in schema.properties:
            detection = detect_column_format(prop.kind, [record.values.get(prop.id) for record in records])
            if detection is not None:
                detections[prop.id] = detection
        return detections

    def convert_value(self, prop: SourceProperty, raw: Any, field_type: DestinationType, settings: FieldSettings) -> Any:
        if not raw:
            return default_value(field_type)
        value = cell_value(raw, field_type, settings)
        if value is None and field_type not in (DestinationType.LINK, DestinationType.IMAGE, DestinationType.FILE):
            value = default_value(field_type)
        return coerce_value(value, field_type)
