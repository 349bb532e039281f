"""Collection reconciler.

Takes projected records and the set of destination item ids that were not
revisited, and applies the result to the destination in a fixed order:

1. survey array-valued fields
2. backfill null values with type defaults
3. materialize array fields into numbered sibling fields
4. push the expanded schema
5. de-duplicate slugs
6. remove unseen items, then add/upsert projected records
7. persist bookkeeping together with the last-synced time
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from fieldsync._internal.bookkeeping import Bookkeeping, save_bookkeeping
from fieldsync._internal.text import slugify, utcnow_iso
from fieldsync.codes import MAX_ARRAY_FIELDS, NONE_OPTION_ID, DestinationType
from fieldsync.contracts import DestinationCollection
from .models import DestinationField, ProjectedRecord, array_field_id

logger = logging.getLogger(__name__)

DEFAULT_FIELD_VALUES: Dict[DestinationType, Any] = {
    DestinationType.ENUM: NONE_OPTION_ID,
    DestinationType.NUMBER: 0,
    DestinationType.BOOLEAN: False,
    DestinationType.DATE: None,
    DestinationType.STRING: "",
    DestinationType.LINK: "",
    DestinationType.IMAGE: "",
    DestinationType.FILE: "",
    DestinationType.COLOR: "",
    DestinationType.FORMATTED_TEXT: "",
}


def default_value(field_type: DestinationType) -> Any:
    return DEFAULT_FIELD_VALUES.get(field_type)


@dataclass
class ArraySurvey:
    """Maximum observed array length per field id (capped)."""
    lengths: Dict[str, int] = field(default_factory=dict)

    def is_array_field(self, field_id: str) -> bool:
        return field_id in self.lengths

    def slot_count(self, field_id: str) -> int:
        """Physical sibling fields needed; 0 or 1 means the field stays scalar."""
        return self.lengths.get(field_id, 0)


def survey_array_fields(
    records: Sequence[ProjectedRecord],
    fields: Sequence[DestinationField],
    max_array_fields: int = MAX_ARRAY_FIELDS,
) -> ArraySurvey:
    survey = ArraySurvey()
    for record in records:
        for dest_field in fields:
            value = record.field_data.get(dest_field.id)
            if isinstance(value, list):
                current = survey.lengths.get(dest_field.id, 0)
                survey.lengths[dest_field.id] = min(max(current, len(value)), max_array_fields)
    return survey


def backfill_defaults(records: Sequence[ProjectedRecord], fields_by_id: Dict[str, DestinationField]) -> None:
    """Replace null values of present keys with the field type's default."""
    for record in records:
        for field_id, value in record.field_data.items():
            if value is None:
                dest_field = fields_by_id.get(field_id)
                record.field_data[field_id] = default_value(dest_field.type) if dest_field else None


def _slot_value(field_type: DestinationType, values: List[Any], index: int) -> Any:
    value = values[index] if index < len(values) else None
    if field_type == DestinationType.ENUM:
        return value or NONE_OPTION_ID
    return value if value is not None else default_value(field_type)


def materialize_array_fields(
    records: Sequence[ProjectedRecord],
    fields: Sequence[DestinationField],
    survey: ArraySurvey,
) -> List[DestinationField]:
    """
    Flatten array values into numbered sibling fields.

    Fields whose surveyed length is at most 1 keep their id and receive the
    first element (or the type default). Longer fields are replaced, in
    every record, by `slot_count` siblings padded with the type default.

    Returns:
        The expanded destination field list, in the original field order
    """
    expanded: List[DestinationField] = []

    for dest_field in fields:
        if not survey.is_array_field(dest_field.id):
            expanded.append(dest_field)
            continue

        slots = survey.slot_count(dest_field.id)
        for record in records:
            raw = record.field_data.get(dest_field.id)
            values = raw if isinstance(raw, list) else ([] if raw is None else [raw])

            if slots <= 1:
                if dest_field.id in record.field_data:
                    record.field_data[dest_field.id] = _slot_value(dest_field.type, values, 0)
                continue

            record.field_data.pop(dest_field.id, None)
            for index in range(slots):
                record.field_data[array_field_id(dest_field.id, index)] = _slot_value(dest_field.type, values, index)

        if slots <= 1:
            expanded.append(dest_field)
        else:
            expanded.extend(dest_field.with_slot(index) for index in range(slots))

    return expanded


def dedupe_slugs(records: Sequence[ProjectedRecord]) -> None:
    """Make slugs unique in record order: foo, foo-2, foo-3, ..."""
    seen = set()
    for record in records:
        base = slugify(record.slug) or record.id
        slug = base
        counter = 1
        while slug in seen:
            counter += 1
            slug = f"{base}-{counter}"
        seen.add(slug)
        record.slug = slug


async def reconcile_collection(
    collection: DestinationCollection,
    records: List[ProjectedRecord],
    unseen_ids: Sequence[str],
    fields: Sequence[DestinationField],
    bookkeeping: Bookkeeping,
    max_array_fields: int = MAX_ARRAY_FIELDS,
) -> List[DestinationField]:
    """
    Apply projected records to the destination collection.

    Records are modified in place (defaults, array slots, unique slugs).
    Collaborator exceptions propagate and abort the remaining steps.

    Returns:
        The expanded field list that was pushed to the destination
    """
    fields_by_id = {dest_field.id: dest_field for dest_field in fields}

    survey = survey_array_fields(records, fields, max_array_fields)
    backfill_defaults(records, fields_by_id)
    expanded_fields = materialize_array_fields(records, fields, survey)

    await collection.set_fields(expanded_fields)
    logger.info(f"[RECONCILE] Pushed {len(expanded_fields)} fields ({len(fields)} logical)")

    dedupe_slugs(records)

    if unseen_ids:
        await collection.remove_items(list(unseen_ids))
        logger.info(f"[RECONCILE] Removed {len(unseen_ids)} items")
    await collection.add_items(records)
    logger.info(f"[RECONCILE] Added {len(records)} items")

    bookkeeping.last_synced_time = utcnow_iso()
    await save_bookkeeping(collection, bookkeeping)

    return expanded_fields
