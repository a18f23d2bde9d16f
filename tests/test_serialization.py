"""Tests for deterministic serialization."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from agent_snapshot.providers.types import ToolCall
from agent_snapshot.serialization import canonicalize, json_loads, pretty_json_dumps, stable_json_dumps


class Color(str, Enum):
    RED = "red"


@dataclass
class Point:
    x: int
    y: int


class TestStableJsonDumps:
    def test_is_deterministic(self) -> None:
        a = {"b": 1, "a": {"z": 3, "y": 2}}
        b = {"a": {"y": 2, "z": 3}, "b": 1}
        assert stable_json_dumps(a) == stable_json_dumps(b)

    def test_compact(self) -> None:
        assert stable_json_dumps({"b": [1, 2], "a": None}) == '{"a":null,"b":[1,2]}'


class TestPrettyJsonDumps:
    def test_fixture_format(self) -> None:
        """Fixtures are indented, key-sorted and newline-terminated."""
        text = pretty_json_dumps({"b": 1, "a": [True]})

        assert text == '{\n  "a": [\n    true\n  ],\n  "b": 1\n}\n'
        assert json_loads(text) == {"a": [True], "b": 1}


class TestCanonicalize:
    def test_enum_path_and_dataclass(self) -> None:
        result = canonicalize({"color": Color.RED, "path": Path("a/b"), "point": Point(1, 2)})

        assert result == {"color": "red", "path": "a/b", "point": {"x": 1, "y": 2}}

    def test_uses_to_dict(self) -> None:
        call = ToolCall(id="call_1", name="get_weather", arguments="{}")

        assert canonicalize([call]) == [call.to_dict()]

    def test_sets_are_sorted(self) -> None:
        assert canonicalize({3, 1, 2}) == [1, 2, 3]

    def test_types_are_tagged(self) -> None:
        assert canonicalize(Point) == {"__type__": f"{__name__}.Point"}
