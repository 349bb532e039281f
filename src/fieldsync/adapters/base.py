"""Source adapter base class.

An adapter is everything the engine knows about one source ecosystem: its
kind enumeration and conversion table, how to fetch its schema and records
through a JSONClient, how to convert one raw value for a chosen destination
type, and which mapping decisions it can auto-detect from a record sample.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Dict, FrozenSet, List, Optional, Sequence, Tuple

from fieldsync.codes import DestinationType
from fieldsync.contracts import JSONClient, SyncStatus
from fieldsync.kernel.conversion import ConversionTable
from fieldsync.kernel.models import (
    DestinationField,
    EnumCase,
    FieldMapping,
    SourceProperty,
    SourceRecord,
    SourceSchema,
    none_case,
)
from fieldsync.kernel.settings import FieldSettings, SettingRule

if TYPE_CHECKING:
    from fieldsync.kernel.field_config import AutoDetection
    from fieldsync.kernel.projector import ProjectionContext


class SourceAdapter(ABC):
    """Per-source capability set consumed by the engine.

    Subclasses set the class attributes and implement the three abstract
    methods; the hooks with default bodies cover sources without
    auto-detection or document-level fields.
    """

    source: ClassVar[str]
    conversion_table: ClassVar[ConversionTable]
    slug_kinds: ClassVar[Tuple[str, ...]] = ()
    setting_rules: ClassVar[Tuple[SettingRule, ...]] = ()
    boolean_kinds: ClassVar[FrozenSet[str]] = frozenset()
    page_level_field_ids: ClassVar[FrozenSet[str]] = frozenset()
    kinds_without_none_case: ClassVar[FrozenSet[str]] = frozenset()

    def __init__(self, client: JSONClient):
        self.client = client

    @property
    @abstractmethod
    def schema_ref(self) -> str:
        """Identifier of the external schema this adapter reads (sample cache key)."""

    @abstractmethod
    async def fetch_schema(self) -> SourceSchema:
        """Read the external schema; raise SchemaFetchError when it is unavailable."""

    @abstractmethod
    async def fetch_records(self, schema: SourceSchema) -> List[SourceRecord]:
        """Read every record of the schema, following the source's pagination."""

    @abstractmethod
    def convert_value(
        self,
        prop: SourceProperty,
        raw: Any,
        field_type: DestinationType,
        settings: FieldSettings,
    ) -> Any:
        """Destination value for one raw value; None when there is nothing to import."""

    def integration_data(self) -> Dict[str, Any]:
        """Source identifiers persisted with the collection so a later sync finds the source again."""
        return {}

    def resolve_computed_kind(self, prop: SourceProperty) -> Optional[str]:
        """Kind of a computed property's resolved result, or None for non-computed properties."""
        if not self.conversion_table.is_computed(prop):
            return None
        return prop.result_kind

    def conversion_types(self, prop: SourceProperty) -> List[DestinationType]:
        return self.conversion_table.conversion_types(prop)

    def detect_auto_types(
        self, schema: SourceSchema, records: Sequence[SourceRecord]
    ) -> Dict[str, "AutoDetection"]:
        """Auto-detected type/settings per property id, from a record sample."""
        return {}

    def page_level_mappings(
        self,
        schema: SourceSchema,
        records: Sequence[SourceRecord],
        is_new_field: Callable[[str], bool],
    ) -> List[FieldMapping]:
        """Mappings synthesized from document-level metadata rather than columns."""
        return []

    async def project_page_fields(
        self,
        record: SourceRecord,
        context: "ProjectionContext",
        status: SyncStatus,
    ) -> Dict[str, Any]:
        """Values of mapped page-level fields for one record."""
        return {}

    def destination_field(
        self,
        mapping: FieldMapping,
        field_type: DestinationType,
        name: str,
        settings: FieldSettings,
    ) -> DestinationField:
        """DestinationField for a mapping under the chosen type, label and settings."""
        cases: Optional[List[EnumCase]] = None
        allowed_file_types: Optional[List[str]] = None

        if field_type == DestinationType.ENUM:
            cases = [EnumCase(id=option.id, name=option.name) for option in mapping.property.choices()]
            if mapping.effective_kind not in self.kinds_without_none_case:
                cases.insert(0, none_case(settings.none_option))
        elif field_type == DestinationType.FILE:
            allowed_file_types = []

        return DestinationField(
            id=mapping.property.id,
            name=name,
            type=field_type,
            cases=cases,
            allowed_file_types=allowed_file_types,
        )
