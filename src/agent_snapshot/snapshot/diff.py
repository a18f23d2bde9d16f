"""
Deterministic structural diff for normalized payloads.

Ordering guarantees:
- dict: removed keys (sorted), then added keys (sorted), then common keys
  (sorted, recursed)
- list: by index; removes at tail, then adds at tail
- type mismatch: replace the whole node
- int vs float compare as numbers; bool is never equal to a number

Paths use ``$`` for the root, ``.key`` for mapping keys and ``[i]`` for
list positions, e.g. ``$.messages[2].content``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from ..logging import truncate_for_log
from ..serialization import stable_json_dumps

DiffOp = Literal["add", "remove", "replace"]


@dataclass(frozen=True)
class DiffEntry:
    """One difference between an expected and an actual value."""

    op: DiffOp
    path: str
    expected: Any = None
    actual: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "op": self.op,
            "path": self.path,
            "expected": self.expected,
            "actual": self.actual,
        }

    def describe(self) -> str:
        if self.op == "remove":
            return f"- {self.path}: {_render(self.expected)}"
        if self.op == "add":
            return f"+ {self.path}: {_render(self.actual)}"
        return f"~ {self.path}: expected {_render(self.expected)}, got {_render(self.actual)}"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def structural_diff(expected: Any, actual: Any, path: str = "$") -> list[DiffEntry]:
    """Produce a deterministic list of differences between two JSON-like values."""
    entries: list[DiffEntry] = []

    if type(expected) is not type(actual):
        if _is_number(expected) and _is_number(actual):
            if expected != actual:
                entries.append(DiffEntry("replace", path, expected, actual))
            return entries
        entries.append(DiffEntry("replace", path, expected, actual))
        return entries

    if isinstance(expected, dict):
        expected_keys = set(expected)
        actual_keys = set(actual)
        for k in sorted(expected_keys - actual_keys, key=str):
            entries.append(DiffEntry("remove", f"{path}.{k}", expected=expected[k]))
        for k in sorted(actual_keys - expected_keys, key=str):
            entries.append(DiffEntry("add", f"{path}.{k}", actual=actual[k]))
        for k in sorted(expected_keys & actual_keys, key=str):
            entries.extend(structural_diff(expected[k], actual[k], f"{path}.{k}"))
        return entries

    if isinstance(expected, list):
        common = min(len(expected), len(actual))
        for i in range(common):
            entries.extend(structural_diff(expected[i], actual[i], f"{path}[{i}]"))
        for i in range(common, len(expected)):
            entries.append(DiffEntry("remove", f"{path}[{i}]", expected=expected[i]))
        for i in range(common, len(actual)):
            entries.append(DiffEntry("add", f"{path}[{i}]", actual=actual[i]))
        return entries

    if expected != actual:
        entries.append(DiffEntry("replace", path, expected, actual))
    return entries


def _render(value: Any) -> str:
    if isinstance(value, str):
        return truncate_for_log(repr(value), 120)
    return truncate_for_log(stable_json_dumps(value), 120)


def format_diff(entries: list[DiffEntry], limit: int = 20) -> str:
    """Render diff entries as readable lines, at most ``limit`` of them."""
    if not entries:
        return "(no differences)"
    lines = [entry.describe() for entry in entries[:limit]]
    if len(entries) > limit:
        lines.append(f"... and {len(entries) - limit} more differences")
    return "\n".join(lines)


__all__ = ["DiffEntry", "DiffOp", "structural_diff", "format_diff"]
