"""Bookkeeping persisted against the destination collection.

The destination stores flat string values per key, so lists and maps are
written as canonical JSON and read back leniently.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from fieldsync._internal.canonical_json import canonical_dumps, json_string_to_dict, json_string_to_list


class BookkeepingKey(str, Enum):
    """Keys of the persisted bookkeeping values."""

    INTEGRATION_ID = "integrationId"
    INTEGRATION_DATA = "integrationData"
    DISABLED_FIELD_IDS = "disabledFieldIds"
    LAST_SYNCED_TIME = "lastSyncedTime"
    SLUG_FIELD_ID = "slugFieldId"
    DATABASE_NAME = "databaseName"
    FIELD_SETTINGS = "fieldSettings"


ALL_KEYS = [key.value for key in BookkeepingKey]


@dataclass
class Bookkeeping:
    """Everything a later sync needs to find its source and restore the user's choices."""
    integration_id: Optional[str] = None
    integration_data: Dict[str, Any] = field(default_factory=dict)
    disabled_field_ids: List[str] = field(default_factory=list)
    last_synced_time: Optional[str] = None
    slug_field_id: Optional[str] = None
    database_name: Optional[str] = None
    field_settings: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def to_values(self) -> Dict[str, Optional[str]]:
        return {
            BookkeepingKey.INTEGRATION_ID.value: self.integration_id,
            BookkeepingKey.INTEGRATION_DATA.value: canonical_dumps(self.integration_data),
            BookkeepingKey.DISABLED_FIELD_IDS.value: canonical_dumps(self.disabled_field_ids),
            BookkeepingKey.LAST_SYNCED_TIME.value: self.last_synced_time,
            BookkeepingKey.SLUG_FIELD_ID.value: self.slug_field_id,
            BookkeepingKey.DATABASE_NAME.value: self.database_name,
            BookkeepingKey.FIELD_SETTINGS.value: (
                canonical_dumps(self.field_settings) if self.field_settings else None
            ),
        }

    @classmethod
    def from_values(cls, values: Dict[str, Optional[str]]) -> "Bookkeeping":
        """Rebuild from stored strings; missing or malformed JSON yields empty collections."""
        return cls(
            integration_id=values.get(BookkeepingKey.INTEGRATION_ID.value),
            integration_data=json_string_to_dict(values.get(BookkeepingKey.INTEGRATION_DATA.value)),
            disabled_field_ids=json_string_to_list(values.get(BookkeepingKey.DISABLED_FIELD_IDS.value)),
            last_synced_time=values.get(BookkeepingKey.LAST_SYNCED_TIME.value),
            slug_field_id=values.get(BookkeepingKey.SLUG_FIELD_ID.value),
            database_name=values.get(BookkeepingKey.DATABASE_NAME.value),
            field_settings=json_string_to_dict(values.get(BookkeepingKey.FIELD_SETTINGS.value)),
        )


async def load_bookkeeping(collection) -> Bookkeeping:
    """Read every bookkeeping key from the destination collection."""
    return Bookkeeping.from_values(await collection.get_bookkeeping(ALL_KEYS))


async def save_bookkeeping(collection, bookkeeping: Bookkeeping) -> None:
    """Write every bookkeeping key in one call."""
    await collection.set_bookkeeping(bookkeeping.to_values())
