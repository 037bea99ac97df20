"""
JSON-safe conversion for log details and DTO payloads.

Log entry ``details`` columns are plain JSON; everything written there goes
through ``json_safe`` first so UUIDs, Decimals, datetimes and enum members
are stored in a stable textual form.
"""

from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


def enum_value(value: Any) -> Any:
    """Return ``value.value`` for enum members, the value itself otherwise.

    Status columns are declared with str-mixin enums but come back from the
    database as plain strings; this normalizes both.
    """
    if isinstance(value, Enum):
        return value.value
    return value


def json_safe(obj: Any) -> Any:
    """
    Recursively convert ``obj`` into JSON-serializable primitives.

    Raises:
        TypeError: If an object type is not supported.
    """
    if isinstance(obj, Enum):
        return obj.value
    if obj is None or isinstance(obj, (bool, int, float, str)):
        return obj
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, Mapping):
        return {str(enum_value(k)): json_safe(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set, frozenset)):
        items = [json_safe(v) for v in obj]
        if isinstance(obj, (set, frozenset)):
            items.sort(key=str)
        return items
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")
