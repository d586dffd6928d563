"""
JSON serialization utilities.

Configuration documents and audit snapshots are stored in JSON columns.
Everything written there goes through ``to_jsonable`` so that UUIDs,
timestamps, decimals and enums round-trip as plain JSON values.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


def _json_serializer(obj: Any) -> Any:
    """
    Custom JSON serializer for types not natively supported.

    Raises:
        TypeError: If object type is not supported.
    """
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: Any) -> str:
    """Deterministic JSON: sorted keys, no whitespace."""
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def to_jsonable(data: Any) -> Any:
    """Return a copy of ``data`` made only of JSON-native types."""
    if data is None:
        return None
    return json.loads(canonicalize_json(data))
