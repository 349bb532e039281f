"""Concurrent batch processor: projects every record under a bounded concurrency limit."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, MutableSet, Sequence

from fieldsync.codes import DEFAULT_CONCURRENCY_LIMIT
from fieldsync.contracts import SyncStatus
from .models import ProjectedRecord, SourceRecord
from .projector import ProjectionContext, project_record

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    """Surviving projected records plus the status accumulated while producing them."""
    records: List[ProjectedRecord] = field(default_factory=list)
    status: SyncStatus = field(default_factory=SyncStatus)


async def process_all_records(
    records: Sequence[SourceRecord],
    context: ProjectionContext,
    unsynced_ids: MutableSet[str],
    concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT,
) -> BatchResult:
    """
    Project all records with at most `concurrency_limit` projections in flight.

    Every projection runs to completion; records without a slug are dropped.
    Each record id is removed from `unsynced_ids` by its projection, once
    that projection holds a semaphore slot, so the set holds the deletion
    candidates once this returns. An exception raised by a projection
    propagates and fails the whole batch.
    """
    semaphore = asyncio.Semaphore(concurrency_limit)
    result = BatchResult()

    async def run_one(record: SourceRecord):
        async with semaphore:
            return await project_record(record, context, result.status, unsynced_ids)

    projected = await asyncio.gather(*(run_one(record) for record in records))
    result.records = [record for record in projected if record is not None]

    logger.info(
        f"[SYNC] Projected {len(result.records)}/{len(records)} records "
        f"({len(result.status.warnings)} warnings, {len(result.status.errors)} errors)"
    )
    return result
