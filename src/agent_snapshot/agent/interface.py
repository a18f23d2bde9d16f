"""
The agent boundary consumed by the snapshot harness.

Any agent can be snapshotted as long as it exposes a swappable LLM client,
a hook manager that broadcasts the lifecycle events listed in
``agent_snapshot.hooks``, an event stream and its current loop counter.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from ..providers.types import MessageInput, normalize_messages
from ..serialization import canonicalize

if TYPE_CHECKING:
    from ..hooks import Hook
    from ..providers.base import Provider
    from .events import AgentEvent, AgentEventStream
    from .options import RunOptions


@dataclass(frozen=True)
class LLMRequest:
    """
    The request an agent sends to its LLM client, in wire-neutral form.

    ``params`` holds the sampling parameters that were explicitly set; the
    stream flag is not part of the request so a fixture recorded in one run
    mode can be replayed in the other.
    """

    messages: list[dict[str, Any]]
    tools: list[dict[str, Any]] = field(default_factory=list)
    params: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "messages": self.messages,
            "tools": self.tools,
            "params": self.params,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LLMRequest:
        return cls(
            messages=list(data.get("messages") or []),
            tools=list(data.get("tools") or []),
            params=dict(data.get("params") or {}),
        )

    @classmethod
    def from_call(
        cls,
        messages: MessageInput,
        tools: Sequence[Any] | None = None,
        **params: Any,
    ) -> LLMRequest:
        """Build the request from the arguments of a ``complete``/``stream`` call."""
        return cls(
            messages=[m.to_dict() for m in normalize_messages(messages)],
            tools=[canonicalize(t) for t in tools or []],
            params={k: canonicalize(v) for k, v in sorted(params.items()) if v is not None},
        )


@runtime_checkable
class SnapshotAgent(Protocol):
    """What the snapshot harness needs from an agent."""

    @property
    def current_loop_iteration(self) -> int:
        """Loops started in the current (or last) run; 0 before any run."""
        ...

    def set_llm_client(self, client: Provider) -> None:
        ...

    def get_llm_client(self) -> Provider:
        ...

    def add_hook(self, hook: Hook) -> None:
        ...

    def remove_hook(self, hook: Hook) -> bool:
        ...

    def get_event_stream(self) -> AgentEventStream:
        ...

    async def run(self, options: str | RunOptions) -> AgentEvent | AsyncIterator[AgentEvent]:
        ...


__all__ = ["LLMRequest", "SnapshotAgent"]
