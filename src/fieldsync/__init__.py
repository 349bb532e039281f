"""fieldsync: field-mapping and synchronization engine for structured content sources."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("fieldsync")
except PackageNotFoundError:
    __version__ = "dev"

# Public API exports
# Note: adapters live in fieldsync.adapters, kernel building blocks in fieldsync.kernel
from fieldsync.api import (
    SyncConfiguration,
    build_field_mapping,
    has_configuration_changed,
    initial_disabled_field_ids,
    initial_field_settings,
    load_configuration,
    possible_slug_fields,
    resolve_last_synced_time,
    run,
)
from fieldsync.contracts import ItemResult, SynchronizeResult, SyncOptions
from fieldsync.codes import DestinationType, SyncOutcome
from fieldsync.kernel.session import SyncSession

__all__ = [
    "__version__",
    "build_field_mapping",
    "has_configuration_changed",
    "initial_disabled_field_ids",
    "initial_field_settings",
    "load_configuration",
    "possible_slug_fields",
    "resolve_last_synced_time",
    "run",
    "SyncConfiguration",
    "SyncSession",
    "ItemResult",
    "SynchronizeResult",
    "SyncOptions",
    "DestinationType",
    "SyncOutcome",
]
