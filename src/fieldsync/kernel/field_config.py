"""Field configuration builder.

Turns a source schema (plus, when updating, the existing destination schema)
into the ordered FieldMapping list the user edits, and turns the user's
choices back into the DestinationField list the destination receives.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from fieldsync.codes import DestinationType
from .conversion import kind_rank
from .models import (
    DestinationField,
    FieldMapping,
    SourceRecord,
    SourceSchema,
    collapse_array_fields,
)
from .settings import DEFAULT_FIELD_SETTINGS, FieldSettings, applicable_settings

if TYPE_CHECKING:
    from fieldsync.adapters.base import SourceAdapter

logger = logging.getLogger(__name__)

IMAGE_FILE_EXTENSIONS = frozenset({
    "jpg", "jpeg", "png", "gif", "webp", "svg", "bmp", "tif", "tiff", "ico", "avif", "heic", "heif",
})

IMAGE_MIME_TYPES = frozenset({
    "image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp", "image/svg+xml", "image/bmp",
    "image/tiff", "image/x-icon", "image/vnd.microsoft.icon", "image/avif", "image/heic", "image/heif",
})


@dataclass
class AutoDetection:
    """What a record sample says about one property."""
    field_type: Optional[DestinationType] = None
    settings: Dict[str, Any] = field(default_factory=dict)


def file_extension(name: str) -> str:
    """Lower-cased text after the last dot ('' when there is none)."""
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[1].lower()


def image_or_file(observed: Iterable[str], image_types: frozenset) -> Optional[DestinationType]:
    """IMAGE when every observed type is an image type, FILE otherwise, None when nothing was observed."""
    observed = [value.lower() for value in observed]
    if not observed:
        return None
    if all(value in image_types for value in observed):
        return DestinationType.IMAGE
    return DestinationType.FILE


def sort_unsupported_last(mappings: Iterable[FieldMapping]) -> List[FieldMapping]:
    """Stable sort: unsupported mappings sink to the bottom, relative order kept otherwise."""
    return sorted(mappings, key=lambda mapping: mapping.unsupported)


def build_field_mapping(
    adapter: "SourceAdapter",
    schema: SourceSchema,
    records: Sequence[SourceRecord],
    existing_fields: Optional[List[DestinationField]] = None,
    disabled_ids: Iterable[str] = (),
) -> List[FieldMapping]:
    """
    Build one FieldMapping per source property (plus page-level fields).

    Args:
        adapter: Source adapter owning the conversion table and auto-detection
        schema: Freshly fetched source schema
        records: Record sample used for auto-detection
        existing_fields: Current destination fields when updating a prior sync, else None
        disabled_ids: Property ids the user disabled

    Returns:
        Mappings in schema order with unsupported ones last
    """
    existing = collapse_array_fields(existing_fields) if existing_fields is not None else None
    disabled = set(disabled_ids)

    def is_new_field(field_id: str) -> bool:
        if existing is None:
            return False
        return field_id not in existing and field_id not in disabled

    detections = adapter.detect_auto_types(schema, records)
    mappings = adapter.page_level_mappings(schema, records, is_new_field)
    page_level_ids = {mapping.property.id for mapping in mappings}

    for prop in schema.properties:
        if prop.id in page_level_ids:
            continue
        detection = detections.get(prop.id) or AutoDetection()
        mappings.append(FieldMapping(
            property=prop,
            conversion_types=adapter.conversion_types(prop),
            effective_kind=adapter.conversion_table.effective_kind(prop),
            is_new_field=is_new_field(prop.id),
            auto_field_type=detection.field_type,
            auto_field_settings=detection.settings,
        ))

    logger.debug(f"[MAPPING] Built {len(mappings)} mappings for schema {schema.id}")
    return sort_unsupported_last(mappings)


def possible_slug_fields(mappings: Iterable[FieldMapping], slug_kinds: Sequence[str]) -> List[FieldMapping]:
    """Mappings usable as the slug source, in the adapter's preferred kind order."""
    candidates = [
        mapping for mapping in mappings
        if not mapping.unsupported and mapping.effective_kind in slug_kinds
    ]
    return sorted(candidates, key=lambda mapping: kind_rank(slug_kinds, mapping.effective_kind))


def initial_field_settings(
    adapter: "SourceAdapter",
    mappings: Iterable[FieldMapping],
    persisted: Optional[Mapping[str, Mapping[str, Any]]] = None,
    field_types: Optional[Mapping[str, DestinationType]] = None,
) -> Dict[str, Dict[str, Any]]:
    """Starting settings per property id.

    Auto-detected settings overlaid with persisted ones; every setting that
    applies to the field's type (the chosen type when legal, else the
    mapping's default type) and is still unset gets its central default.
    """
    persisted = persisted or {}
    field_types = field_types or {}
    result: Dict[str, Dict[str, Any]] = {}

    for mapping in mappings:
        prop_id = mapping.property.id
        settings = {**mapping.auto_field_settings, **persisted.get(prop_id, {})}
        field_type = choose_field_type(mapping, field_types.get(prop_id))
        keys = applicable_settings(
            [mapping.property.kind, mapping.effective_kind], field_type, adapter.setting_rules
        )
        for key in keys:
            settings.setdefault(key.value, DEFAULT_FIELD_SETTINGS[key])
        result[prop_id] = settings

    return result


def choose_field_type(mapping: FieldMapping, chosen: Optional[DestinationType]) -> Optional[DestinationType]:
    """The user's type when it is legal for the mapping, else the mapping's default."""
    if chosen is not None and chosen in mapping.conversion_types:
        return chosen
    if chosen is not None:
        logger.warning(
            f"[MAPPING] {chosen.value} is not a legal type for {mapping.property.name}; "
            f"using {mapping.default_type.value if mapping.default_type else None}"
        )
    return mapping.default_type


def build_destination_fields(
    adapter: "SourceAdapter",
    mappings: Iterable[FieldMapping],
    disabled_ids: Iterable[str] = (),
    field_types: Optional[Mapping[str, DestinationType]] = None,
    field_names: Optional[Mapping[str, str]] = None,
    settings_for: Optional[Callable[[str], FieldSettings]] = None,
) -> List[DestinationField]:
    """DestinationFields for every enabled, supported mapping, in mapping order."""
    disabled = set(disabled_ids)
    field_types = field_types or {}
    field_names = field_names or {}
    fields: List[DestinationField] = []

    for mapping in mappings:
        prop_id = mapping.property.id
        if mapping.unsupported or prop_id in disabled:
            continue
        field_type = choose_field_type(mapping, field_types.get(prop_id))
        settings = settings_for(prop_id) if settings_for else FieldSettings()
        name = field_names.get(prop_id) or mapping.property.name
        fields.append(adapter.destination_field(mapping, field_type, name, settings))

    return fields
