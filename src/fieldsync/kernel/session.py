"""Sync session: explicit owner of per-sync caches.

A session wraps one source adapter. The schema and the record sample are
fetched at most once per session (records keyed by schema ref) and are
dropped by `invalidate()`; nothing is shared between sessions.
"""

import logging
from typing import TYPE_CHECKING, Dict, List, Optional

from fieldsync.contracts import SyncOptions
from fieldsync.errors import SyncInvariantError
from .models import SourceRecord, SourceSchema

if TYPE_CHECKING:
    from fieldsync.adapters.base import SourceAdapter

logger = logging.getLogger(__name__)


class SyncSession:
    """Per-sync context passed to every entry point."""

    def __init__(self, adapter: "SourceAdapter", options: Optional[SyncOptions] = None):
        self.adapter = adapter
        self.options = options or SyncOptions()
        self._schema: Optional[SourceSchema] = None
        self._records_by_schema: Dict[str, List[SourceRecord]] = {}
        self._closed = False

    @classmethod
    def create(cls, adapter: "SourceAdapter", options: Optional[SyncOptions] = None) -> "SyncSession":
        return cls(adapter, options)

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise SyncInvariantError("sync session was invalidated")

    async def schema(self) -> SourceSchema:
        """The source schema, fetched on first use."""
        self._ensure_open()
        if self._schema is None:
            self._schema = await self.adapter.fetch_schema()
        return self._schema

    async def records(self) -> List[SourceRecord]:
        """Every record of the schema, fetched once per schema ref."""
        self._ensure_open()
        schema = await self.schema()
        if schema.id not in self._records_by_schema:
            records = await self.adapter.fetch_records(schema)
            logger.info(f"[SYNC] Fetched {len(records)} records from {self.adapter.source} ({schema.id})")
            self._records_by_schema[schema.id] = records
        return self._records_by_schema[schema.id]

    def invalidate(self) -> None:
        """Drop cached schema and records; the session cannot be used afterwards."""
        self._schema = None
        self._records_by_schema.clear()
        self._closed = True
