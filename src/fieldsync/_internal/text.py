"""Small text helpers shared by the kernel and the adapters."""

import re
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlparse

from dateutil.parser import isoparse

# Runs of anything except letters, numbers and parentheses
_NON_SLUG_CHARACTERS = re.compile(r"(?:[^\w()]|_)+")
_TRIM_SLUG = re.compile(r"^-+|-+$")


def slugify(value: str) -> str:
    """
    Make a freeform string URL safe.

    Lower-cases the value, replaces every run of characters other than
    letters, numbers and parentheses with a single dash and trims leading and
    trailing dashes.
    """
    return _TRIM_SLUG.sub("", _NON_SLUG_CHARACTERS.sub("-", value.lower()))


def is_url(value: Any) -> bool:
    """True if value parses as an absolute URL with a scheme."""
    if not isinstance(value, str):
        return False
    parsed = urlparse(value)
    return bool(parsed.scheme) and bool(parsed.netloc or parsed.path)


def is_web_url(value: Any) -> bool:
    """True if value is an http(s) URL."""
    if not isinstance(value, str):
        return False
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def truncate_to_date(value: str | None) -> str | None:
    """Drop the time-of-day part of an ISO 8601 literal.

    Plain string truncation: "2024-04-26T15:30:00Z" -> "2024-04-26". The
    calendar day is never shifted by a timezone conversion.
    """
    if not value:
        return None
    return value.split("T")[0]


def to_iso_string(value: datetime) -> str:
    """Format a datetime as UTC ISO 8601 with milliseconds and a Z suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_iso_datetime(value: str) -> datetime:
    """Parse an ISO 8601 literal; naive values are taken as UTC."""
    parsed = isoparse(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def utcnow_iso() -> str:
    """Return current UTC time as ISO 8601 string."""
    return to_iso_string(datetime.now(timezone.utc))


def format_timestamp(value: str) -> str:
    """Human-readable form of an ISO timestamp for status messages: 04/26/2024, 15:30:00."""
    return parse_iso_datetime(value).strftime("%m/%d/%Y, %H:%M:%S")
