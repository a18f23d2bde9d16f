"""
Run options for agents.

A run is either non-streaming (the caller awaits the final assistant
message) or streaming (the caller iterates over events as they are
produced). The two shapes are distinct types so callers dispatch on
``options.mode`` instead of probing for a flag.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar

from ..cancellation import CancellationToken
from ..providers.types import Message


class RunMode(str, Enum):
    NON_STREAMING = "non_streaming"
    STREAMING = "streaming"


@dataclass
class RunOptions:
    """
    Options shared by both run modes.

    Attributes:
        input: User prompt, or a list of messages to start from
        session_id: Optional identifier used to correlate logs and events
        cancellation_token: Token checked at each loop start and between chunks
    """

    input: str | list[Message | dict[str, Any]]
    session_id: str | None = None
    cancellation_token: CancellationToken | None = None

    mode: ClassVar[RunMode]

    def __post_init__(self):
        if type(self) is RunOptions:
            raise TypeError("RunOptions has no mode; use NonStreamingRunOptions or StreamingRunOptions")

    @property
    def is_streaming(self) -> bool:
        return self.mode == RunMode.STREAMING

    @property
    def token(self) -> CancellationToken:
        return self.cancellation_token or CancellationToken.none()


@dataclass
class NonStreamingRunOptions(RunOptions):
    mode: ClassVar[RunMode] = RunMode.NON_STREAMING


@dataclass
class StreamingRunOptions(RunOptions):
    mode: ClassVar[RunMode] = RunMode.STREAMING


def as_run_options(value: str | RunOptions | dict[str, Any]) -> RunOptions:
    """
    Coerce the accepted run inputs into a ``RunOptions`` instance.

    A bare string is a non-streaming run; a mapping is read as
    ``{"input": ..., "stream": bool, "session_id": ...}``.
    """
    if isinstance(value, RunOptions):
        return value
    if isinstance(value, str):
        return NonStreamingRunOptions(input=value)
    if isinstance(value, dict):
        if "input" not in value:
            raise ValueError("Run options mapping requires an 'input' key")
        cls = StreamingRunOptions if value.get("stream") else NonStreamingRunOptions
        return cls(
            input=value["input"],
            session_id=value.get("session_id"),
            cancellation_token=value.get("cancellation_token"),
        )
    raise TypeError(f"Unsupported run options type: {type(value).__name__}")


__all__ = [
    "RunMode",
    "RunOptions",
    "NonStreamingRunOptions",
    "StreamingRunOptions",
    "as_run_options",
]
