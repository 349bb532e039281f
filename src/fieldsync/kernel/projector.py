"""Per-record value projector: one source record in, one destination record (or None) out."""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, MutableSet, Optional

from fieldsync.codes import DestinationType
from fieldsync.contracts import SyncStatus
from .models import DestinationField, ProjectedRecord, SourceProperty, SourceRecord
from .settings import FieldSettings

if TYPE_CHECKING:
    from fieldsync.adapters.base import SourceAdapter

logger = logging.getLogger(__name__)

SLUG_MISSING_MESSAGE = "Slug is missing. Skipping item."


@dataclass
class ProjectionContext:
    """Lookups shared by every projection of one sync run (read-only during the batch)."""
    adapter: "SourceAdapter"
    properties_by_id: Dict[str, SourceProperty]
    fields_by_id: Dict[str, DestinationField]
    slug_field_id: str
    field_settings: Dict[str, FieldSettings] = field(default_factory=dict)
    last_synced_time: Optional[str] = None

    def settings_for(self, field_id: str) -> FieldSettings:
        return self.field_settings.get(field_id) or FieldSettings()


def is_empty_value(value: Any) -> bool:
    """None, empty string and empty list are missing values; False and 0 are real values."""
    return value is None or value == "" or (isinstance(value, list) and not value)


def _slug_candidate(value: Any) -> Optional[str]:
    if isinstance(value, list):
        value = value[0] if value else None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if isinstance(value, str) and value:
        return value
    return None


async def project_record(
    record: SourceRecord,
    context: ProjectionContext,
    status: SyncStatus,
    unsynced_ids: MutableSet[str],
) -> Optional[ProjectedRecord]:
    """
    Project one source record under the active field mapping.

    The record id leaves `unsynced_ids` before anything else happens, so a
    record that fails to project is never proposed for deletion.

    Returns:
        The projected record, or None when no slug could be resolved
    """
    unsynced_ids.discard(record.id)

    adapter = context.adapter
    slug: Optional[str] = None
    field_data: Dict[str, Any] = {}

    for property_id, raw in record.values.items():
        prop = context.properties_by_id.get(property_id)
        if prop is None:
            continue

        if property_id == context.slug_field_id and slug is None:
            slug = _slug_candidate(adapter.convert_value(prop, raw, DestinationType.STRING, FieldSettings()))

        dest_field = context.fields_by_id.get(property_id)
        if dest_field is None:
            continue

        value = adapter.convert_value(prop, raw, dest_field.type, context.settings_for(property_id))
        if is_empty_value(value):
            status.warning(record.locator, f"Value is missing for field {dest_field.name}", dest_field.id)
            continue

        field_data[dest_field.id] = value

    # Boolean-like properties absent from the record mean "false", not "missing"
    for field_id in context.fields_by_id:
        if field_id in record.values or field_id in field_data:
            continue
        prop = context.properties_by_id.get(field_id)
        if prop is not None and prop.kind in adapter.boolean_kinds:
            field_data[field_id] = False

    field_data.update(await adapter.project_page_fields(record, context, status))

    if not slug:
        status.warning(record.locator, SLUG_MISSING_MESSAGE)
        return None

    logger.debug(f"[SYNC] Projected {record.id} with {len(field_data)} fields")
    return ProjectedRecord(id=record.id, slug=slug, field_data=field_data)
