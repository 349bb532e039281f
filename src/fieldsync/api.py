"""Public API for the fieldsync engine.

Entry points the orchestration layer calls: build the field mapping for a
source, decide whether a cached last-synced time can still be trusted, and
run one synchronization pass into a destination collection.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from fieldsync._internal.bookkeeping import Bookkeeping, load_bookkeeping
from fieldsync.codes import DestinationType, SyncOutcome
from fieldsync.contracts import DestinationCollection, SynchronizeResult, SyncStatus
from fieldsync.errors import SyncInvariantError
from fieldsync.kernel import field_config, schema_change
from fieldsync.kernel.batch import process_all_records
from fieldsync.kernel.models import DestinationField, FieldMapping, SourceSchema, collapse_array_fields
from fieldsync.kernel.projector import ProjectionContext
from fieldsync.kernel.reconcile import reconcile_collection
from fieldsync.kernel.session import SyncSession
from fieldsync.kernel.settings import FieldSettings, merge_field_settings

logger = logging.getLogger(__name__)


class SyncConfiguration(BaseModel):
    """The user's choices for one sync, plus the bookkeeping a previous sync left behind."""
    slug_field_id: Optional[str] = None
    disabled_field_ids: List[str] = Field(default_factory=list)
    field_types: Dict[str, DestinationType] = Field(default_factory=dict)  # property id -> chosen type
    field_names: Dict[str, str] = Field(default_factory=dict)  # property id -> destination label
    field_settings: Dict[str, Dict[str, Any]] = Field(default_factory=dict)  # property id -> setting values
    last_synced_time: Optional[str] = None
    integration_id: Optional[str] = None
    database_name: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


async def load_configuration(collection: DestinationCollection) -> SyncConfiguration:
    """
    Restore the configuration of the previous sync from the collection.

    Chosen types and labels come from the collection's current fields
    (array slots collapsed); everything else from the persisted bookkeeping.
    """
    bookkeeping = await load_bookkeeping(collection)
    fields = collapse_array_fields(await collection.get_fields())
    return SyncConfiguration(
        slug_field_id=bookkeeping.slug_field_id,
        disabled_field_ids=bookkeeping.disabled_field_ids,
        field_types={field_id: dest_field.type for field_id, dest_field in fields.items()},
        field_names={field_id: dest_field.name for field_id, dest_field in fields.items()},
        field_settings=bookkeeping.field_settings,
        last_synced_time=bookkeeping.last_synced_time,
        integration_id=bookkeeping.integration_id,
        database_name=bookkeeping.database_name,
    )


async def build_field_mapping(
    session: SyncSession,
    existing_fields: Optional[List[DestinationField]] = None,
    disabled_ids: Iterable[str] = (),
) -> List[FieldMapping]:
    """
    Build the field mapping for the session's source.

    Args:
        session: Sync session wrapping the source adapter
        existing_fields: Destination fields of a previous sync, or None for a first sync
        disabled_ids: Property ids the user disabled

    Returns:
        One FieldMapping per source property, unsupported ones last; an
        empty list when the schema or the record sample cannot be read
    """
    try:
        schema = await session.schema()
        records = await session.records()
    except SyncInvariantError:
        raise
    except Exception as error:
        logger.warning(f"[MAPPING] Could not read source {session.adapter.source}: {error}")
        return []

    return field_config.build_field_mapping(session.adapter, schema, records, existing_fields, disabled_ids)


def possible_slug_fields(session: SyncSession, mappings: Iterable[FieldMapping]) -> List[FieldMapping]:
    """Mappings usable as the slug, in the source's preferred order."""
    return field_config.possible_slug_fields(mappings, session.adapter.slug_kinds)


def initial_disabled_field_ids(mappings: Iterable[FieldMapping]) -> List[str]:
    """Property ids to disable on a first sync (page-level fields no sampled record uses)."""
    return [mapping.property.id for mapping in mappings if mapping.auto_disabled]


def initial_field_settings(
    session: SyncSession,
    mappings: Iterable[FieldMapping],
    persisted: Optional[Dict[str, Dict[str, Any]]] = None,
    field_types: Optional[Dict[str, DestinationType]] = None,
) -> Dict[str, Dict[str, Any]]:
    return field_config.initial_field_settings(session.adapter, mappings, persisted, field_types)


def has_configuration_changed(
    session: SyncSession,
    existing_fields: List[DestinationField],
    schema: SourceSchema,
    disabled_ids: Iterable[str] = (),
) -> bool:
    """True when the destination fields no longer match the source schema."""
    adapter = session.adapter
    return schema_change.has_field_configuration_changed(
        existing_fields,
        schema,
        adapter.conversion_table,
        disabled_ids,
        adapter.page_level_field_ids,
    )


def resolve_last_synced_time(
    configuration: SyncConfiguration,
    persisted_slug_field_id: Optional[str],
    configuration_changed: bool,
) -> Optional[str]:
    """The last-synced time to project with; None forces a full pass."""
    return schema_change.resolve_last_synced_time(
        configuration.last_synced_time,
        persisted_slug_field_id,
        configuration.slug_field_id,
        configuration_changed,
    )


def _resolve_settings(mappings: Sequence[FieldMapping], configuration: SyncConfiguration) -> Dict[str, FieldSettings]:
    return {
        mapping.property.id: merge_field_settings(
            mapping.auto_field_settings,
            explicit=configuration.field_settings.get(mapping.property.id),
        )
        for mapping in mappings
    }


async def run(
    session: SyncSession,
    collection: DestinationCollection,
    mappings: Sequence[FieldMapping],
    configuration: SyncConfiguration,
) -> SynchronizeResult:
    """
    Run one full synchronization pass.

    Every record of the source is projected under the mapping, then the
    destination collection is reconciled: fields pushed, items the source no
    longer has removed, projected items added, bookkeeping persisted.

    A failure while reconciling is logged and reported as an error result
    carrying the status accumulated so far; a failure while projecting
    propagates.

    Raises:
        SyncInvariantError: if no slug field was chosen, or it is not a
            property of the source schema
    """
    if not configuration.slug_field_id:
        raise SyncInvariantError("a slug field must be chosen before synchronizing")

    adapter = session.adapter
    schema = await session.schema()
    properties_by_id = schema.property_map()
    properties_by_id.update({mapping.property.id: mapping.property for mapping in mappings})
    if configuration.slug_field_id not in properties_by_id:
        raise SyncInvariantError(f"slug field {configuration.slug_field_id} is not a property of {schema.id}")

    settings = _resolve_settings(mappings, configuration)
    fields = field_config.build_destination_fields(
        adapter,
        mappings,
        configuration.disabled_field_ids,
        configuration.field_types,
        configuration.field_names,
        settings_for=lambda field_id: settings.get(field_id) or FieldSettings(),
    )
    context = ProjectionContext(
        adapter=adapter,
        properties_by_id=properties_by_id,
        fields_by_id={dest_field.id: dest_field for dest_field in fields},
        slug_field_id=configuration.slug_field_id,
        field_settings=settings,
        last_synced_time=configuration.last_synced_time,
    )

    records = await session.records()
    existing_ids = await collection.get_item_ids()
    unsynced_ids = set(existing_ids)

    logger.info(f"[SYNC] Synchronizing {len(records)} records into {len(fields)} fields")
    batch = await process_all_records(records, context, unsynced_ids, session.options.concurrency_limit)
    status: SyncStatus = batch.status

    bookkeeping = Bookkeeping(
        integration_id=configuration.integration_id,
        integration_data=adapter.integration_data(),
        disabled_field_ids=list(configuration.disabled_field_ids),
        slug_field_id=configuration.slug_field_id,
        database_name=configuration.database_name or schema.name,
        field_settings=field_config.initial_field_settings(
            adapter, mappings, configuration.field_settings, configuration.field_types
        ),
    )

    try:
        await reconcile_collection(
            collection,
            batch.records,
            [item_id for item_id in existing_ids if item_id in unsynced_ids],
            fields,
            bookkeeping,
            session.options.max_array_fields,
        )
    except Exception as error:
        logger.exception(f"[SYNC] Reconciliation failed for {schema.id}")
        status.error(schema.name or schema.id, f"Synchronization failed: {error}")
        return status.to_result(SyncOutcome.ERROR)

    result = status.to_result()
    logger.info(
        f"[SYNC] Finished with status {result.status.value}: "
        f"{len(result.errors)} errors, {len(result.warnings)} warnings, {len(result.info)} info"
    )
    return result
