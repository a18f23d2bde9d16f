"""
Values exchanged between an agent and its LLM client.

Responses and stream chunks are written to fixtures and read back during
replay, so every type here converts to plain JSON data with ``to_dict`` and
back with ``from_dict`` without loss. Recorded values carry no wall-clock
timestamps.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class StreamEventType(str, Enum):
    """
    Kinds of stream chunk and the payload each carries.

    TOKEN and REASONING carry text, TOOL_CALL_DELTA a ``ToolCallDelta``,
    TOOL_CALL_END a complete ``ToolCall``, USAGE a ``Usage``, DONE the final
    ``CompletionResult`` and ERROR a ``{"status", "message"}`` mapping.
    """

    TOKEN = "token"
    REASONING = "reasoning"
    TOOL_CALL_DELTA = "tool_call_delta"
    TOOL_CALL_END = "tool_call_end"
    USAGE = "usage"
    DONE = "done"
    ERROR = "error"


@dataclass
class ToolCall:
    """A function call requested by the model; ``arguments`` is JSON text."""

    id: str
    name: str
    arguments: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "arguments": self.arguments}

    def to_wire(self) -> dict[str, Any]:
        """Chat-completions shape used inside assistant messages."""
        return {"id": self.id, "type": "function", "function": {"name": self.name, "arguments": self.arguments}}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ToolCall:
        function = data.get("function")
        if isinstance(function, dict):
            return cls(id=data["id"], name=function["name"], arguments=function.get("arguments", ""))
        return cls(id=data["id"], name=data["name"], arguments=data.get("arguments", ""))


@dataclass
class ToolCallDelta:
    """A fragment of a tool call still being streamed."""

    id: str
    index: int = 0
    name: str | None = None
    arguments_delta: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "index": self.index, "name": self.name, "arguments_delta": self.arguments_delta}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ToolCallDelta:
        return cls(
            id=data["id"],
            index=data.get("index", 0),
            name=data.get("name"),
            arguments_delta=data.get("arguments_delta", ""),
        )


@dataclass
class Message:
    role: Role
    content: str | None = None
    name: str | None = None
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Chat-completions dict; unset fields are omitted so requests stay minimal."""
        data: dict[str, Any] = {"role": self.role.value}
        optional = {
            "content": self.content,
            "name": self.name,
            "tool_calls": [tc.to_wire() for tc in self.tool_calls] if self.tool_calls else None,
            "tool_call_id": self.tool_call_id,
        }
        data.update((key, value) for key, value in optional.items() if value is not None)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        return cls(
            role=Role(data["role"]),
            content=data.get("content"),
            name=data.get("name"),
            tool_calls=[ToolCall.from_dict(tc) for tc in data.get("tool_calls") or []] or None,
            tool_call_id=data.get("tool_call_id"),
        )

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str | None = None, tool_calls: list[ToolCall] | None = None) -> Message:
        return cls(role=Role.ASSISTANT, content=content, tool_calls=tool_calls)

    @classmethod
    def tool_result(cls, tool_call_id: str, content: str, name: str | None = None) -> Message:
        return cls(role=Role.TOOL, content=content, tool_call_id=tool_call_id, name=name)


@dataclass
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Usage:
        return cls(**{key: int(data.get(key) or 0) for key in ("input_tokens", "output_tokens", "total_tokens")})


@dataclass
class CompletionResult:
    """
    A finished model answer, whether it arrived in one piece or was streamed.

    A failed call is represented by a non-200 ``status`` and an ``error``
    message rather than an exception, so it can be recorded like any other
    answer.
    """

    content: str | None = None
    tool_calls: list[ToolCall] | None = None
    usage: Usage | None = None
    reasoning: str | None = None
    model: str | None = None
    finish_reason: str | None = None
    status: int = 200
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == 200 and self.error is None

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    @classmethod
    def failure(cls, error: str, status: int = 500, content: str | None = None) -> CompletionResult:
        return cls(content=content, status=status, error=error)

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "tool_calls": [tc.to_dict() for tc in self.tool_calls or []],
            "usage": self.usage.to_dict() if self.usage else None,
            "reasoning": self.reasoning,
            "model": self.model,
            "finish_reason": self.finish_reason,
            "status": self.status,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CompletionResult:
        usage = data.get("usage")
        return cls(
            content=data.get("content"),
            tool_calls=[ToolCall.from_dict(tc) for tc in data.get("tool_calls") or []] or None,
            usage=Usage.from_dict(usage) if usage else None,
            reasoning=data.get("reasoning"),
            model=data.get("model"),
            finish_reason=data.get("finish_reason"),
            status=data.get("status", 200),
            error=data.get("error"),
        )


# Decoders for the structured stream payloads; text payloads pass through.
_PAYLOAD_DECODERS: dict[StreamEventType, Callable[[Any], Any]] = {
    StreamEventType.TOOL_CALL_DELTA: ToolCallDelta.from_dict,
    StreamEventType.TOOL_CALL_END: ToolCall.from_dict,
    StreamEventType.USAGE: lambda data: Usage.from_dict(data or {}),
    StreamEventType.DONE: CompletionResult.from_dict,
}


@dataclass
class StreamEvent:
    """One chunk of a streamed answer; see ``StreamEventType`` for payloads."""

    type: StreamEventType
    data: Any = None

    def to_dict(self) -> dict[str, Any]:
        data = self.data.to_dict() if hasattr(self.data, "to_dict") else self.data
        return {"type": self.type.value, "data": data}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StreamEvent:
        event_type = StreamEventType(data["type"])
        payload = data.get("data")
        decode = _PAYLOAD_DECODERS.get(event_type)
        if decode is not None and (payload is not None or event_type == StreamEventType.USAGE):
            payload = decode(payload)
        return cls(type=event_type, data=payload)


def completion_from_events(events: Sequence[StreamEvent]) -> CompletionResult:
    """
    Assemble the final answer of a stream.

    A DONE chunk carrying a result is authoritative. Otherwise text, reasoning,
    completed tool calls and the last usage are accumulated, and an ERROR chunk
    turns the result into a failure.
    """
    done = [e.data for e in events if e.type == StreamEventType.DONE and isinstance(e.data, CompletionResult)]
    if done:
        return done[-1]

    text = "".join(e.data or "" for e in events if e.type == StreamEventType.TOKEN) or None
    errors = [e.data for e in events if e.type == StreamEventType.ERROR]
    if errors:
        error = errors[-1] if isinstance(errors[-1], dict) else {"message": str(errors[-1])}
        return CompletionResult.failure(
            str(error.get("message", "stream error")),
            status=int(error.get("status", 500)),
            content=text,
        )

    tool_calls = [e.data for e in events if e.type == StreamEventType.TOOL_CALL_END]
    usages = [e.data for e in events if e.type == StreamEventType.USAGE]
    return CompletionResult(
        content=text,
        tool_calls=tool_calls or None,
        usage=usages[-1] if usages else None,
        reasoning="".join(e.data or "" for e in events if e.type == StreamEventType.REASONING) or None,
        finish_reason="tool_calls" if tool_calls else "stop",
    )


MessageInput = str | dict[str, Any] | Message | Sequence[str | dict[str, Any] | Message]


def _to_message(item: Any) -> Message:
    if isinstance(item, Message):
        return item
    if isinstance(item, str):
        return Message.user(item)
    if isinstance(item, dict):
        return Message.from_dict(item)
    raise TypeError(f"Unsupported message type: {type(item)}")


def normalize_messages(messages: MessageInput) -> list[Message]:
    """Coerce a prompt string, message dict, ``Message`` or a list of them into messages."""
    if isinstance(messages, (str, dict, Message)):
        return [_to_message(messages)]
    if isinstance(messages, (list, tuple)):
        return [_to_message(m) for m in messages]
    raise TypeError(f"Unsupported messages type: {type(messages)}")


__all__ = [
    "Role",
    "StreamEventType",
    "ToolCall",
    "ToolCallDelta",
    "Message",
    "Usage",
    "StreamEvent",
    "CompletionResult",
    "MessageInput",
    "completion_from_events",
    "normalize_messages",
]
