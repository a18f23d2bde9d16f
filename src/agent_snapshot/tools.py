"""
Tools an agent can call.

A tool's definition is sent with every LLM request, so it ends up in
``llm-request.json`` and must be identical across processes: properties
follow the signature order and nothing depends on object identity. Each
invocation produces a ``ToolResult`` whose ``to_dict()`` is what the
snapshot records in ``tool-calls.json``.
"""

from __future__ import annotations

import inspect
import re
import types
from collections.abc import Awaitable, Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from functools import wraps
from typing import Any, Union, get_args, get_origin, get_type_hints

import jsonschema
from jsonschema.exceptions import ValidationError as JsonSchemaValidationError

from .serialization import json_loads, pretty_json_dumps

ToolHandler = Callable[..., Awaitable[Any]]
ToolArguments = Union[str, Mapping[str, Any], None]


@dataclass
class ToolResult:
    """
    Outcome of one tool invocation.

    ``render()`` is the text fed back to the model; ``to_dict()`` is the
    recorded form.
    """

    content: str | dict[str, Any] | None = None
    success: bool = True
    error: str | None = None

    @classmethod
    def ok(cls, content: str | dict[str, Any] | None) -> ToolResult:
        return cls(content=content)

    @classmethod
    def failed(cls, error: str) -> ToolResult:
        return cls(success=False, error=error)

    @classmethod
    def coerce(cls, value: Any) -> ToolResult:
        """Wrap a handler's return value; dicts stay structured."""
        if isinstance(value, ToolResult):
            return value
        if isinstance(value, dict):
            return cls.ok(value)
        return cls.ok(str(value))

    def render(self) -> str:
        if self.error:
            return f"Error: {self.error}"
        if isinstance(self.content, dict):
            return pretty_json_dumps(self.content).rstrip("\n")
        return "" if self.content is None else str(self.content)

    def to_dict(self) -> dict[str, Any]:
        return {"content": self.content, "success": self.success, "error": self.error}


@dataclass
class Tool:
    """
    A named, JSON-schema-described coroutine the model may call.

    Example:
        ```python
        async def lookup(city: str) -> dict:
            return {"city": city, "forecast": "sunny"}

        weather = Tool(
            name="get_weather",
            description="Get current weather for a city",
            parameters={
                "type": "object",
                "properties": {"city": {"type": "string"}},
                "required": ["city"],
            },
            handler=lookup,
        )
        result = await weather.invoke('{"city": "Oslo"}')
        ```
    """

    name: str
    description: str
    parameters: dict[str, Any]
    handler: ToolHandler
    strict: bool = False

    def definition(self) -> dict[str, Any]:
        """Function-calling definition, as sent with each LLM request."""
        function: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }
        if self.strict:
            function["strict"] = True
        return {"type": "function", "function": function}

    def to_dict(self) -> dict[str, Any]:
        return self.definition()

    def validate(self, arguments: Mapping[str, Any]) -> str | None:
        """Check arguments against ``parameters`` when strict; returns the problem or None."""
        if not self.strict:
            return None
        try:
            jsonschema.validate(instance=dict(arguments), schema=self.parameters)
        except JsonSchemaValidationError as e:
            location = ".".join(str(p) for p in e.absolute_path)
            return f"{location}: {e.message}" if location else e.message
        return None

    async def invoke(self, arguments: ToolArguments = None) -> ToolResult:
        """
        Run the handler with JSON-encoded or mapping arguments.

        Bad arguments and handler exceptions become a failed result so the
        agent can report them to the model.
        """
        if isinstance(arguments, str):
            try:
                arguments = json_loads(arguments) if arguments.strip() else {}
            except ValueError as e:
                return ToolResult.failed(f"Invalid JSON arguments: {e}")
            if not isinstance(arguments, dict):
                return ToolResult.failed("Invalid JSON arguments: expected an object")

        kwargs = dict(arguments or {})
        problem = self.validate(kwargs)
        if problem:
            return ToolResult.failed(f"Tool validation failed: {problem}")

        try:
            value = await self.handler(**kwargs)
        except Exception as e:
            return ToolResult.failed(f"{type(e).__name__}: {e}")
        return ToolResult.coerce(value)


class ToolRegistry:
    """Tools indexed by name, iterated in registration order."""

    def __init__(self, tools: Iterable[Tool] | None = None) -> None:
        self._by_name: dict[str, Tool] = {}
        for tool in tools or ():
            self.register(tool)

    def register(self, tool: Tool) -> ToolRegistry:
        """
        Add a tool.

        Raises:
            ValueError: The name is empty or already taken
        """
        if not tool.name:
            raise ValueError("Tool name must not be empty")
        if tool.name in self._by_name:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._by_name[tool.name] = tool
        return self

    def unregister(self, name: str) -> bool:
        return self._by_name.pop(name, None) is not None

    def get(self, name: str) -> Tool | None:
        return self._by_name.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    def __len__(self) -> int:
        return len(self._by_name)

    def __iter__(self) -> Iterator[Tool]:
        return iter(self._by_name.values())

    @property
    def tools(self) -> list[Tool]:
        return list(self._by_name.values())

    @property
    def names(self) -> list[str]:
        return list(self._by_name)

    def definitions(self) -> list[dict[str, Any]]:
        return [tool.definition() for tool in self]

    async def invoke(self, name: str, arguments: ToolArguments = None) -> ToolResult:
        tool = self._by_name.get(name)
        if tool is None:
            return ToolResult.failed(f"Unknown tool: {name}")
        return await tool.invoke(arguments)


# =============================================================================
# Tools from plain functions
# =============================================================================

_SCALAR_TYPES: dict[Any, str] = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    type(None): "null",
}

_ARG_SECTIONS = ("Args", "Arguments", "Parameters")
_ARG_LINE = re.compile(r"^\s+(\w+)\s*(?:\([^)]*\))?\s*:\s*(.+?)\s*$")


def _annotation_schema(annotation: Any) -> dict[str, Any]:
    """JSON schema for a parameter annotation; unknown types map to string."""
    if annotation is Any:
        return {}
    origin = get_origin(annotation)
    if origin in (Union, types.UnionType):
        options = [a for a in get_args(annotation) if a is not type(None)]
        if len(options) == 1:
            return _annotation_schema(options[0])
        return {"anyOf": [_annotation_schema(a) for a in options]}
    if annotation in (list, tuple, set) or origin in (list, tuple, set):
        args = get_args(annotation)
        return {"type": "array", "items": _annotation_schema(args[0])} if args else {"type": "array"}
    if annotation is dict or origin is dict:
        return {"type": "object"}
    return {"type": _SCALAR_TYPES.get(annotation, "string")}


def _parse_docstring(doc: str | None) -> tuple[str, dict[str, str]]:
    """Split a Google-style docstring into its summary and argument descriptions."""
    if not doc:
        return "", {}
    text = inspect.cleandoc(doc)
    summary = " ".join(text.split("\n\n", 1)[0].split())

    described: dict[str, str] = {}
    section: str | None = None
    for line in text.splitlines():
        if line and not line[0].isspace():
            section = line.rstrip()[:-1] if line.rstrip().endswith(":") else None
            continue
        if section in _ARG_SECTIONS:
            match = _ARG_LINE.match(line)
            if match:
                described.setdefault(match.group(1), match.group(2))
    if summary.endswith(":") and summary[:-1] in _ARG_SECTIONS:
        summary = ""
    return summary, described


def _signature_schema(func: Callable[..., Any], described: dict[str, str]) -> dict[str, Any]:
    try:
        hints = get_type_hints(func)
    except (NameError, TypeError):
        hints = dict(getattr(func, "__annotations__", {}))

    properties: dict[str, Any] = {}
    required: list[str] = []
    for name, param in inspect.signature(func).parameters.items():
        if name in ("self", "cls") or param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        schema = _annotation_schema(hints.get(name, str))
        if name in described:
            schema["description"] = described[name]
        properties[name] = schema
        if param.default is inspect.Parameter.empty:
            required.append(name)

    parameters: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        parameters["required"] = required
    return parameters


def tool_from_function(
    func: Callable[..., Any],
    *,
    name: str | None = None,
    description: str | None = None,
    strict: bool = False,
) -> Tool:
    """
    Build a Tool from a function's signature and docstring.

    Synchronous functions are called inline on the event loop, which keeps
    tool execution order identical between generate and replay runs.
    """
    summary, described = _parse_docstring(func.__doc__)

    handler: ToolHandler
    if inspect.iscoroutinefunction(func):
        handler = func
    else:

        @wraps(func)
        async def handler(**kwargs: Any) -> Any:
            return func(**kwargs)

    return Tool(
        name=name or func.__name__,
        description=description or summary or f"Call {func.__name__}",
        parameters=_signature_schema(func, described),
        handler=handler,
        strict=strict,
    )


__all__ = [
    "Tool",
    "ToolResult",
    "ToolRegistry",
    "tool_from_function",
]
