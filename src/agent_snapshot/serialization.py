"""
Deterministic JSON serialization helpers for snapshot artifacts and hashing.

Artifacts on disk are pretty-printed with sorted keys so fixtures stay
diff-friendly in code review.
"""

from __future__ import annotations

import dataclasses
from enum import Enum
from pathlib import Path
from typing import Any

import orjson


def _type_id(obj_type: type) -> str:
    return f"{obj_type.__module__}.{obj_type.__name__}"


def canonicalize(obj: Any) -> Any:
    """
    Convert complex objects into JSON-friendly, deterministic structures.
    """
    if isinstance(obj, dict):
        return {str(k): canonicalize(obj[k]) for k in sorted(obj, key=str)}
    if isinstance(obj, (list, tuple)):
        return [canonicalize(v) for v in obj]
    if isinstance(obj, (set, frozenset)):
        return sorted((canonicalize(v) for v in obj), key=lambda v: orjson.dumps(v, option=orjson.OPT_SORT_KEYS))
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, type):
        return {"__type__": _type_id(obj)}
    if hasattr(obj, "to_dict") and callable(obj.to_dict):
        return canonicalize(obj.to_dict())
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return canonicalize(dataclasses.asdict(obj))
    return obj


def stable_json_dumps(obj: Any) -> str:
    """
    Dump an object to compact JSON with stable ordering for hashing.
    """
    return orjson.dumps(canonicalize(obj), option=orjson.OPT_SORT_KEYS).decode("utf-8")


def pretty_json_dumps(obj: Any) -> str:
    """
    Dump an object to indented JSON with sorted keys (fixture format).
    """
    data = orjson.dumps(canonicalize(obj), option=orjson.OPT_SORT_KEYS | orjson.OPT_INDENT_2)
    return data.decode("utf-8") + "\n"


def json_loads(data: bytes | str) -> Any:
    """Deserialize JSON produced by the dump helpers."""
    return orjson.loads(data)


__all__ = [
    "canonicalize",
    "stable_json_dumps",
    "pretty_json_dumps",
    "json_loads",
]
