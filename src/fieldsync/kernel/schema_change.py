"""Schema-change detection and resync gating.

Decides whether an unattended resync may trust the cached last-synced time,
or must run a full pass because the field configuration moved underneath it.
"""

import logging
from typing import AbstractSet, Iterable, List, Optional

from fieldsync._internal.text import parse_iso_datetime
from .conversion import ConversionTable
from .models import DestinationField, SourceSchema, collapse_array_fields

logger = logging.getLogger(__name__)


def has_field_configuration_changed(
    existing_fields: List[DestinationField],
    schema: SourceSchema,
    conversion_table: ConversionTable,
    disabled_ids: Iterable[str] = (),
    page_level_field_ids: AbstractSet[str] = frozenset(),
) -> bool:
    """
    Compare the persisted destination fields against a fresh source schema.

    Array slots are collapsed back to their logical field first; page-level
    fields are not columns of the schema and are left out of the comparison.

    Returns:
        True when the number of enabled convertible properties differs from
        the number of fields, an enabled property has no field, or a field's
        type is no longer a legal conversion for its property
    """
    disabled = set(disabled_ids)
    current = {
        field_id: dest_field
        for field_id, dest_field in collapse_array_fields(existing_fields).items()
        if field_id not in page_level_field_ids
    }
    properties = [
        prop for prop in schema.properties
        if prop.id not in disabled and conversion_table.conversion_types(prop)
    ]

    if len(properties) != len(current):
        logger.info(f"[SYNC] Configuration changed: {len(properties)} properties, {len(current)} fields")
        return True

    for prop in properties:
        dest_field = current.get(prop.id)
        if dest_field is None:
            logger.info(f"[SYNC] Configuration changed: no field for {prop.name}")
            return True
        if dest_field.type not in conversion_table.conversion_types(prop):
            logger.info(f"[SYNC] Configuration changed: {prop.name} can no longer be {dest_field.type.value}")
            return True

    return False


def resolve_last_synced_time(
    persisted_last_synced: Optional[str],
    persisted_slug_field_id: Optional[str],
    slug_field_id: str,
    configuration_changed: bool,
) -> Optional[str]:
    """The cached last-synced time, or None when the slug field or configuration changed."""
    if persisted_slug_field_id != slug_field_id:
        return None
    if configuration_changed:
        return None
    return persisted_last_synced


def is_unchanged_since_last_sync(last_edited_time: Optional[str], last_synced_time: Optional[str]) -> bool:
    """True when a record was last edited before the previous sync.

    Last-edited times are reported at minute precision, so the last-synced
    time is rounded down to the minute before comparing.
    """
    if not last_synced_time or not last_edited_time:
        return False
    last_edited = parse_iso_datetime(last_edited_time)
    last_synced = parse_iso_datetime(last_synced_time).replace(second=0, microsecond=0)
    return last_synced > last_edited
