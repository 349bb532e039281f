"""Exception hierarchy for fieldsync."""


class FieldSyncError(Exception):
    """Base exception for fieldsync errors."""
    pass


class SyncInvariantError(FieldSyncError):
    """Raised when the engine is driven in a way that violates an invariant.

    These are defects in the caller (e.g. reconciling without a slug field),
    never recoverable conditions.
    """
    pass


class SchemaFetchError(FieldSyncError):
    """Raised by a source adapter when its schema cannot be read."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Could not read schema from {source}: {reason}")


class ConversionTableError(FieldSyncError):
    """Raised when a conversion table does not cover every kind of its source."""

    def __init__(self, source: str, missing: set[str]):
        self.source = source
        self.missing = missing
        missing_str = ", ".join(sorted(missing))
        super().__init__(f"Conversion table for {source} is missing kinds: {missing_str}")
