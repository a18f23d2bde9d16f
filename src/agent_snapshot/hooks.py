"""
Lightweight hooks for observing an agent run.

Agents broadcast their lifecycle through a ``HookManager``; the snapshot
hooks (generate and replay) subscribe to it. Event names emitted by the
reference agent:

- ``loop.start``   payload: ``{"loop_index"}``
- ``llm.request``  payload: ``{"loop_index", "request", "streaming"}``
- ``llm.response`` payload: ``{"loop_index", "response"}``
- ``llm.stream``   payload: ``{"loop_index", "chunks"}``
- ``tool.start``   payload: ``{"loop_index", "tool_call"}``
- ``tool.end``     payload: ``{"loop_index", "tool_call", "result"}``
- ``loop.end``     payload: ``{"loop_index"}``
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import Any, Protocol

LOOP_START = "loop.start"
LLM_REQUEST = "llm.request"
LLM_RESPONSE = "llm.response"
LLM_STREAM = "llm.stream"
TOOL_START = "tool.start"
TOOL_END = "tool.end"
LOOP_END = "loop.end"


class Hook(Protocol):
    """Protocol for agent lifecycle hooks."""

    async def emit(self, event: str, payload: dict, context: Any) -> None:
        """Emit an event with payload and run context."""
        ...


class HookManager:
    """Manages multiple hooks and broadcasts events to all of them.

    Exceptions raised by a hook propagate to the emitter.
    """

    def __init__(self, hooks: Iterable[Hook] | None = None) -> None:
        self._hooks = list(hooks or [])

    def add(self, hook: Hook) -> None:
        """Add a hook to the manager."""
        self._hooks.append(hook)

    def remove(self, hook: Hook) -> bool:
        """Remove a hook; returns False when it was not registered."""
        try:
            self._hooks.remove(hook)
        except ValueError:
            return False
        return True

    def __contains__(self, hook: Hook) -> bool:
        return hook in self._hooks

    def __len__(self) -> int:
        return len(self._hooks)

    async def emit(self, event: str, payload: dict, context: Any) -> None:
        """Emit an event to all registered hooks."""
        for hook in list(self._hooks):
            result = hook.emit(event, payload, context)
            if asyncio.iscoroutine(result):
                await result


class RecordingHook:
    """
    Hook that keeps every emitted event in memory.

    Useful in tests to assert on the order of lifecycle callbacks.
    """

    def __init__(self) -> None:
        self.events: list[tuple[str, dict]] = []

    async def emit(self, event: str, payload: dict, context: Any) -> None:
        self.events.append((event, payload))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def reset(self) -> None:
        self.events.clear()


__all__ = [
    "Hook",
    "HookManager",
    "RecordingHook",
    "LOOP_START",
    "LLM_REQUEST",
    "LLM_RESPONSE",
    "LLM_STREAM",
    "TOOL_START",
    "TOOL_END",
    "LOOP_END",
]
