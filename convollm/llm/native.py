"""
Helpers for reading native backend objects.

LiteLLM hands back pydantic objects, dict-like hybrids, or plain dicts
depending on provider and version; tests feed plain dicts. These helpers read
fields uniformly from any of them.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


def field(obj: Any, name: str, default: Any = None) -> Any:
    """Read ``name`` from an attribute-style or mapping-style object."""
    if obj is None:
        return default
    if isinstance(obj, Mapping):
        value = obj.get(name, default)
    else:
        value = getattr(obj, name, default)
    return default if value is None else value


def as_dict(obj: Any) -> dict[str, Any]:
    """Convert a native object to a plain dict (empty dict if not possible)."""
    if obj is None:
        return {}
    if isinstance(obj, Mapping):
        return dict(obj)
    dump = getattr(obj, "model_dump", None)
    if callable(dump):
        data = dump()
        if isinstance(data, dict):
            return data
    data = getattr(obj, "__dict__", None)
    return dict(data) if isinstance(data, dict) else {}


def event_type(event: Any) -> str | None:
    """Return an event's ``type`` as a plain string (enum members unwrapped)."""
    value = field(event, "type")
    value = getattr(value, "value", value)
    return value if isinstance(value, str) else None
