"""Type conversion table: which destination types each source kind can produce.

A ConversionTable is plain data. Each source adapter declares its kinds as an
Enum and builds one table over it; the table checks at construction time (so
when the adapter module is imported) that every kind has an entry.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Sequence, Type

from fieldsync.codes import DestinationType
from fieldsync.errors import ConversionTableError
from .models import SourceProperty


@dataclass(frozen=True)
class ConversionTable:
    """Static mapping from source kind to ordered destination types.

    Attributes:
        source: Name of the source ecosystem (used in error messages)
        kinds: Enum listing every kind the source can declare
        types_by_kind: kind -> ordered destination types (first is the default)
        computed_kinds: kinds whose apparent kind is the kind of their resolved result
        unsupported_computed_results: result kinds a computed property cannot be
            extracted as (e.g. rich text behind a formula); such properties get
            an empty conversion list
    """
    source: str
    kinds: Type[Enum]
    types_by_kind: Mapping[str, Sequence[DestinationType]]
    computed_kinds: frozenset[str] = field(default_factory=frozenset)
    unsupported_computed_results: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self):
        declared = {member.value for member in self.kinds}
        covered = set(self.types_by_kind) | set(self.computed_kinds)
        missing = declared - covered
        if missing:
            raise ConversionTableError(self.source, missing)

    def destination_types_for(self, kind: str | None) -> list[DestinationType]:
        """Ordered destination types for a kind; empty when the kind is unknown or unsupported."""
        if kind is None:
            return []
        return list(self.types_by_kind.get(kind, ()))

    def effective_kind(self, prop: SourceProperty) -> str:
        """Kind of the value a property actually holds.

        For computed properties this is the kind of their resolved result
        (one level of indirection); otherwise the declared kind.
        """
        if prop.kind in self.computed_kinds and prop.result_kind:
            return prop.result_kind
        return prop.kind

    def conversion_types(self, prop: SourceProperty) -> list[DestinationType]:
        """Destination types a property can legally produce."""
        effective = self.effective_kind(prop)
        if prop.kind in self.computed_kinds and effective in self.unsupported_computed_results:
            return []
        return self.destination_types_for(effective)

    def is_computed(self, prop: SourceProperty) -> bool:
        return prop.kind in self.computed_kinds


def types(*names: str) -> tuple[DestinationType, ...]:
    """Shorthand for building table rows: types("enum", "string")."""
    return tuple(DestinationType(name) for name in names)


def kind_rank(kind_order: Sequence[str], kind: str) -> int:
    """Position of `kind` in `kind_order`; unknown kinds rank after every listed kind."""
    try:
        return list(kind_order).index(kind)
    except ValueError:
        return len(kind_order)
