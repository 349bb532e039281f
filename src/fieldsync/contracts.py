"""Public result models and collaborator protocols for the fieldsync package."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence

from pydantic import BaseModel, ConfigDict, Field

from fieldsync.codes import DEFAULT_CONCURRENCY_LIMIT, MAX_ARRAY_FIELDS, SyncOutcome
from fieldsync.kernel.models import DestinationField, ProjectedRecord


class ItemResult(BaseModel):
    """One status entry produced while projecting records."""
    locator: str  # record URL, id or row label
    field_id: Optional[str] = Field(None, alias="fieldId")
    message: str

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class SynchronizeResult(BaseModel):
    """Outcome of one run: status plus the three ordered status lists."""
    status: SyncOutcome
    errors: List[ItemResult] = Field(default_factory=list)
    warnings: List[ItemResult] = Field(default_factory=list)
    info: List[ItemResult] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class SyncOptions(BaseModel):
    """Engine configuration for one run."""
    concurrency_limit: int = Field(DEFAULT_CONCURRENCY_LIMIT, ge=1)
    max_array_fields: int = Field(MAX_ARRAY_FIELDS, ge=1)

    model_config = ConfigDict(extra="forbid", frozen=True)


@dataclass
class SyncStatus:
    """Accumulates status entries during projection.

    A report, not a control signal: nothing here ever aborts the batch.
    """
    errors: List[ItemResult] = field(default_factory=list)
    warnings: List[ItemResult] = field(default_factory=list)
    info: List[ItemResult] = field(default_factory=list)

    def error(self, locator: str, message: str, field_id: str | None = None) -> None:
        self.errors.append(ItemResult(locator=locator, field_id=field_id, message=message))

    def warning(self, locator: str, message: str, field_id: str | None = None) -> None:
        self.warnings.append(ItemResult(locator=locator, field_id=field_id, message=message))

    def add_info(self, locator: str, message: str, field_id: str | None = None) -> None:
        self.info.append(ItemResult(locator=locator, field_id=field_id, message=message))

    def to_result(self, outcome: SyncOutcome | None = None) -> SynchronizeResult:
        """Build the run result; without an explicit outcome it follows the error list."""
        if outcome is None:
            outcome = SyncOutcome.SUCCESS if not self.errors else SyncOutcome.COMPLETED_WITH_ERRORS
        return SynchronizeResult(
            status=outcome,
            errors=list(self.errors),
            warnings=list(self.warnings),
            info=list(self.info),
        )


class JSONClient(Protocol):
    """Transport to one source API. Owns auth, retries and HTTP details."""

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        ...

    async def post(self, path: str, body: Optional[Dict[str, Any]] = None) -> Any:
        ...


class DestinationCollection(Protocol):
    """CRUD primitives of the destination collection."""

    async def get_fields(self) -> List[DestinationField]:
        ...

    async def set_fields(self, fields: Sequence[DestinationField]) -> None:
        ...

    async def get_item_ids(self) -> List[str]:
        ...

    async def remove_items(self, item_ids: Sequence[str]) -> None:
        ...

    async def add_items(self, items: Sequence[ProjectedRecord]) -> None:
        ...

    async def get_bookkeeping(self, keys: Sequence[str]) -> Dict[str, Optional[str]]:
        ...

    async def set_bookkeeping(self, values: Dict[str, Optional[str]]) -> None:
        ...
