"""
The LLM client contract an agent is driven through.

Network adapters for concrete vendors are not part of this package. The
replay mock and the test doubles implement ``Provider`` so that
``agent.set_llm_client()`` can swap one for another mid-test.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from .types import CompletionResult, Message, MessageInput, StreamEvent, normalize_messages

if TYPE_CHECKING:
    from ..tools import Tool


@runtime_checkable
class Provider(Protocol):
    """
    What an agent needs from its LLM client.

    Sampling parameters (``temperature``, ``max_tokens``, ``tool_choice`` and
    the like) travel as keyword arguments; clients ignore the ones they do
    not understand.
    """

    @property
    def model_name(self) -> str:
        ...

    async def complete(
        self,
        messages: MessageInput,
        *,
        tools: Sequence[Tool] | None = None,
        **params: Any,
    ) -> CompletionResult:
        """Answer the conversation in one piece."""
        ...

    def stream(
        self,
        messages: MessageInput,
        *,
        tools: Sequence[Tool] | None = None,
        **params: Any,
    ) -> AsyncIterator[StreamEvent]:
        """Answer the conversation as token, tool-call, usage and done events."""
        ...

    async def close(self) -> None:
        ...

    async def __aenter__(self) -> Provider:
        ...

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        ...


class BaseProvider(Provider, ABC):
    """Shared plumbing for clients: model name, message coercion, async context."""

    def __init__(self, model: str = "mock-model") -> None:
        self._model_name = model

    @property
    def model_name(self) -> str:
        return self._model_name

    @staticmethod
    def message_list(messages: MessageInput) -> list[Message]:
        return normalize_messages(messages)

    @abstractmethod
    async def complete(
        self,
        messages: MessageInput,
        *,
        tools: Sequence[Tool] | None = None,
        **params: Any,
    ) -> CompletionResult:
        ...

    @abstractmethod
    def stream(
        self,
        messages: MessageInput,
        *,
        tools: Sequence[Tool] | None = None,
        **params: Any,
    ) -> AsyncIterator[StreamEvent]:
        ...

    async def close(self) -> None:
        return None

    async def __aenter__(self) -> Provider:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


__all__ = ["Provider", "BaseProvider"]
