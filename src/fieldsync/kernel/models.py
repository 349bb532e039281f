"""Pydantic models for the source schema, field mappings and destination records."""

import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from fieldsync.codes import DestinationType, NONE_OPTION_ID


class SelectOption(BaseModel):
    """One option of an enumeration-like source property."""
    id: str
    name: str

    model_config = ConfigDict(frozen=True)


class SourceProperty(BaseModel):
    """One column/field/property of the external schema.

    Immutable for the duration of one sync. Computed properties (formulas,
    rollups, lookups) carry the property describing their resolved value in
    `result`; its kind is the computed property's effective kind.
    """
    id: str  # Stable identifier from the source
    name: str
    kind: str  # Source-specific kind tag, e.g. "singleSelect", "rich_text", "TEXT"
    result: Optional["SourceProperty"] = None
    options: tuple[SelectOption, ...] = ()
    metadata: Dict[str, Any] = Field(default_factory=dict)  # precision, symbol, durationFormat, isReversed, ...

    model_config = ConfigDict(frozen=True)

    @property
    def result_kind(self) -> str | None:
        return self.result.kind if self.result is not None else None

    def choices(self) -> tuple[SelectOption, ...]:
        """Options to resolve enum values against (the result's for computed properties)."""
        if self.result is not None and self.result.options:
            return self.result.options
        return self.options


class SourceRecord(BaseModel):
    """One record of the external source, normalized by its adapter.

    `values` maps a SourceProperty id to the raw value the source returned
    for it. Properties absent from the record are absent from `values`.
    """
    id: str
    locator: str  # URL, record id or row label used in status entries
    values: Dict[str, Any] = Field(default_factory=dict)
    page: Dict[str, Any] = Field(default_factory=dict)  # document-level metadata (icon, cover, last edited time)


class FieldMapping(BaseModel):
    """One decision unit of the mapping: a source property and what it may become.

    Built fresh each sync by the field configuration builder, never persisted.
    """
    property: SourceProperty
    conversion_types: List[DestinationType]  # Ordered; first is the default
    effective_kind: str
    is_new_field: bool = False
    auto_field_type: Optional[DestinationType] = None
    auto_field_settings: Dict[str, Any] = Field(default_factory=dict)
    is_page_level_field: bool = False
    auto_disabled: bool = False

    @computed_field
    @property
    def unsupported(self) -> bool:
        """A mapping is unsupported iff it can produce no destination type."""
        return not self.conversion_types

    @property
    def default_type(self) -> Optional[DestinationType]:
        """Auto-detected type when it is legal for this property, else the table default."""
        if self.auto_field_type is not None and self.auto_field_type in self.conversion_types:
            return self.auto_field_type
        return self.conversion_types[0] if self.conversion_types else None


class EnumCase(BaseModel):
    """One case of a destination enum field."""
    id: str
    name: str


class DestinationField(BaseModel):
    """One field of the destination collection schema."""
    id: str
    name: str
    type: DestinationType
    cases: Optional[List[EnumCase]] = None
    allowed_file_types: Optional[List[str]] = None

    model_config = ConfigDict(extra="forbid")

    def with_slot(self, index: int) -> "DestinationField":
        """Physical sibling holding element `index` of an array-valued field."""
        return self.model_copy(update={
            "id": array_field_id(self.id, index),
            "name": f"{self.name} {index + 1}",
        })


class ProjectedRecord(BaseModel):
    """One output item: record id, slug and flat field data keyed by destination field id."""
    id: str
    slug: str
    field_data: Dict[str, Any] = Field(default_factory=dict)


def array_field_id(field_id: str, index: int) -> str:
    """Id of the physical field holding element `index` of an array-valued field."""
    return f"{field_id}-[[{index}]]"


def none_case(label: str | None = None) -> EnumCase:
    """The synthetic enum case prepended to every enum field."""
    return EnumCase(id=NONE_OPTION_ID, name=label or "None")


class SourceSchema(BaseModel):
    """Snapshot of one external table/database/sheet.

    `id` is the schema ref the record sample is cached under; `name` is the
    human-readable title persisted as the database name.
    """
    id: str
    name: str = ""
    properties: tuple[SourceProperty, ...] = ()

    model_config = ConfigDict(frozen=True)

    def property_map(self) -> Dict[str, SourceProperty]:
        return {prop.id: prop for prop in self.properties}


_ARRAY_FIELD_SUFFIX = re.compile(r"-\[\[\d+\]\]$")


def is_array_field_id(field_id: str) -> bool:
    return bool(_ARRAY_FIELD_SUFFIX.search(field_id))


def collapse_array_fields(fields: List[DestinationField]) -> Dict[str, DestinationField]:
    """Map physical destination fields back to their logical fields, keyed by logical id.

    Array slots (`{id}-[[i]]`, `{Name} {i+1}`) collapse into one entry whose id
    drops the suffix and whose name drops the final space-separated token.
    """
    result: Dict[str, DestinationField] = {}
    for field in fields:
        if is_array_field_id(field.id):
            logical_id = field.id[:field.id.rindex("-[[")]
            name = field.name.rsplit(" ", 1)[0]
            result[logical_id] = field.model_copy(update={"id": logical_id, "name": name})
        else:
            result[field.id] = field
    return result
