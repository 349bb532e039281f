"""Destination type tags, sync outcomes and engine-wide constants.

These constants prevent stringly-typed field types and outcomes and ensure
client code uses the same tags the destination collection understands.
"""

from enum import Enum


class DestinationType(str, Enum):
    """Field types understood by the destination collection."""

    STRING = "string"
    FORMATTED_TEXT = "formattedText"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    LINK = "link"
    IMAGE = "image"
    FILE = "file"
    ENUM = "enum"
    COLOR = "color"


class SyncOutcome(str, Enum):
    """Overall status of one synchronization run."""

    SUCCESS = "success"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    ERROR = "error"


# Synthetic enum case used whenever no real option can be resolved
NONE_OPTION_ID = "##NONE##"

# Ceiling on physical sibling fields produced from one array-valued field
MAX_ARRAY_FIELDS = 10

# Maximum number of record projections in flight (source API rate limits)
DEFAULT_CONCURRENCY_LIMIT = 5
