"""
Agent event stream.

Every observable step of a run (user input, streamed tokens, tool calls,
final answer) is appended to the agent's ``AgentEventStream``. Snapshot
hooks subscribe to it to attribute events to loop iterations.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class AgentEventType(str, Enum):
    """Kinds of events an agent emits."""

    AGENT_RUN_START = "agent_run_start"
    USER_MESSAGE = "user_message"
    ASSISTANT_STREAMING_MESSAGE = "assistant_streaming_message"
    ASSISTANT_MESSAGE = "assistant_message"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    SYSTEM = "system"
    AGENT_RUN_END = "agent_run_end"


@dataclass
class AgentEvent:
    """One entry in the event stream."""

    type: AgentEventType
    data: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "timestamp": self.timestamp,
            "data": self.data,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AgentEvent:
        return cls(
            type=AgentEventType(data["type"]),
            data=dict(data.get("data") or {}),
            id=data.get("id") or uuid.uuid4().hex,
            timestamp=data.get("timestamp", 0.0),
        )


EventListener = Callable[[AgentEvent], Any]


class AgentEventStream:
    """Ordered, in-memory event log with synchronous subscribers."""

    def __init__(self) -> None:
        self._events: list[AgentEvent] = []
        self._listeners: list[EventListener] = []

    def send(self, event: AgentEvent) -> AgentEvent:
        self._events.append(event)
        for listener in list(self._listeners):
            listener(event)
        return event

    def get_events(self, types: Iterable[AgentEventType] | None = None) -> list[AgentEvent]:
        if types is None:
            return list(self._events)
        wanted = set(types)
        return [e for e in self._events if e.type in wanted]

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        """Register a listener; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def clear(self) -> None:
        self._events.clear()

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[AgentEvent]:
        return iter(list(self._events))


__all__ = ["AgentEventType", "AgentEvent", "AgentEventStream", "EventListener"]
