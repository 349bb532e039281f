"""Centralized canonical JSON serialization.

Bookkeeping values (disabled field ids, field settings, integration data) are
persisted as JSON strings on the destination collection. Serializing them the
same way every time keeps the stored strings byte-stable across runs, so an
unchanged configuration never looks changed to the store.
"""

import json
from typing import Any


def canonical_dumps(obj: Any) -> str:
    """
    Canonical JSON serialization for persisted bookkeeping.

    Rules:
    - UTF-8 (no ASCII escaping)
    - Sorted keys
    - Stable separators (",", ":")
    - Lists keep the order they are given in

    Args:
        obj: Python object to serialize

    Returns:
        Canonical JSON string
    """
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False
    )


def json_string_to_list(value: str | None) -> list[str]:
    """Decode a JSON array of strings, tolerating missing or malformed input."""
    if not value:
        return []

    try:
        parsed = json.loads(value)
    except ValueError:
        return []

    if not isinstance(parsed, list):
        return []
    if not all(isinstance(item, str) for item in parsed):
        return []

    return parsed


def json_string_to_dict(value: str | None) -> dict[str, Any]:
    """Decode a JSON object, tolerating missing or malformed input."""
    if not value:
        return {}

    try:
        parsed = json.loads(value)
    except ValueError:
        return {}

    return parsed if isinstance(parsed, dict) else {}
