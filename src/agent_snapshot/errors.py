"""
Error taxonomy for agent-snapshot.

This module provides a hierarchical exception system with:
- Error codes for programmatic handling
- Structured context (case name, loop index) for debugging
- Structural diffs attached to verification failures

Snapshot errors are never retryable: a retry would hide exactly the
non-determinism a fixture exists to catch.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .snapshot.diff import DiffEntry


class ErrorCode(str, Enum):
    """Standardized error codes for agent-snapshot."""

    # Fixture errors (1xxx)
    SNAPSHOT_ERROR = "ERR_1000"
    SNAPSHOT_NOT_FOUND = "ERR_1001"
    INCOMPLETE_SNAPSHOT = "ERR_1002"
    INCOMPLETE_LOOP = "ERR_1003"

    # Verification errors (2xxx)
    VERIFICATION_ERROR = "ERR_2000"
    REQUEST_MISMATCH = "ERR_2001"
    EVENT_STREAM_MISMATCH = "ERR_2002"
    TOOL_CALL_MISMATCH = "ERR_2003"

    # Control-flow errors (3xxx)
    LOOP_COUNT_MISMATCH = "ERR_3001"
    UNEXPECTED_LOOP = "ERR_3002"
    CONCURRENT_REQUEST = "ERR_3003"
    REPLAY_CANCELLED = "ERR_3004"

    # Configuration errors (6xxx)
    CONFIG_ERROR = "ERR_6000"
    INVALID_CONFIG = "ERR_6002"

    # Internal errors (9xxx)
    INTERNAL_ERROR = "ERR_9000"


@dataclass
class ErrorContext:
    """Structured context for error debugging."""

    case_name: str | None = None
    loop_index: int | None = None
    operation: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "case_name": self.case_name,
            "loop_index": self.loop_index,
            "operation": self.operation,
            **self.extra,
        }


class SnapshotError(Exception):
    """
    Base exception for all agent-snapshot errors.

    Attributes:
        code: Standardized error code for programmatic handling
        message: Human-readable error message
        context: Structured debugging context
        cause: Original exception that caused this error
    """

    code: ErrorCode = ErrorCode.SNAPSHOT_ERROR
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.context = context or ErrorContext()
        self.cause = cause

    @property
    def loop_index(self) -> int | None:
        return self.context.loop_index

    def __str__(self) -> str:
        parts = [f"[{self.code.value}] {self.message}"]
        if self.context.loop_index is not None:
            parts.append(f"(loop={self.context.loop_index})")
        return " ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code.value,
            "message": self.message,
            "retryable": self.retryable,
            "context": self.context.to_dict(),
            "cause": str(self.cause) if self.cause else None,
        }


# =============================================================================
# Fixture Errors
# =============================================================================


class SnapshotNotFoundError(SnapshotError):
    """Replay was requested against a case (or loop) that does not exist."""

    code = ErrorCode.SNAPSHOT_NOT_FOUND

    def __init__(self, message: str, *, path: str | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.path = path


class IncompleteSnapshotError(SnapshotError):
    """Loop entries are not contiguous from zero."""

    code = ErrorCode.INCOMPLETE_SNAPSHOT


class IncompleteLoopError(SnapshotError):
    """A loop entry exists but lacks its request or response artifact."""

    code = ErrorCode.INCOMPLETE_LOOP

    def __init__(self, message: str, *, missing: list[str] | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.missing = missing or []


# =============================================================================
# Verification Errors
# =============================================================================


class VerificationError(SnapshotError):
    """Base class for live-vs-recorded mismatches."""

    code = ErrorCode.VERIFICATION_ERROR

    def __init__(
        self,
        message: str,
        *,
        diff: list[DiffEntry] | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.diff = diff or []

    @property
    def first_difference(self) -> DiffEntry | None:
        return self.diff[0] if self.diff else None

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["diff"] = [entry.to_dict() for entry in self.diff]
        return data


class RequestMismatchError(VerificationError):
    """A live LLM request differs from the recorded one."""

    code = ErrorCode.REQUEST_MISMATCH


class EventStreamMismatchError(VerificationError):
    """The live event stream differs from the recorded one."""

    code = ErrorCode.EVENT_STREAM_MISMATCH


class ToolCallMismatchError(VerificationError):
    """A live tool call differs from the recorded one."""

    code = ErrorCode.TOOL_CALL_MISMATCH


# =============================================================================
# Control-flow Errors
# =============================================================================


class LoopCountMismatchError(SnapshotError):
    """The agent executed a different number of loops than the fixture holds."""

    code = ErrorCode.LOOP_COUNT_MISMATCH

    def __init__(self, expected: int, actual: int, **kwargs):
        message = (
            f"Loop count mismatch: agent executed {actual} loops, "
            f"but fixture has {expected} loop records"
        )
        super().__init__(message, **kwargs)
        self.expected = expected
        self.actual = actual


class UnexpectedLoopError(SnapshotError):
    """The agent issued a request beyond the fixture's last loop."""

    code = ErrorCode.UNEXPECTED_LOOP

    def __init__(self, loop_index: int, expected_loop_count: int, **kwargs):
        context = kwargs.pop("context", None) or ErrorContext()
        context.loop_index = loop_index
        super().__init__(
            f"Agent requested loop {loop_index} but fixture only has {expected_loop_count} loops",
            context=context,
            **kwargs,
        )
        self.expected_loop_count = expected_loop_count


class ConcurrentRequestError(SnapshotError):
    """A request arrived while the previous response was still being delivered."""

    code = ErrorCode.CONCURRENT_REQUEST


class ReplayCancelledError(SnapshotError):
    """The run was cancelled by its caller."""

    code = ErrorCode.REPLAY_CANCELLED


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigError(SnapshotError):
    """Base class for configuration errors."""

    code = ErrorCode.CONFIG_ERROR


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    code = ErrorCode.INVALID_CONFIG


def is_retryable(error: Exception) -> bool:
    """
    Check if an error is retryable.

    Snapshot errors never are; anything else is left to the caller's own
    policy and reported as not retryable here.
    """
    if isinstance(error, SnapshotError):
        return error.retryable
    return False


__all__ = [
    "ErrorCode",
    "ErrorContext",
    "SnapshotError",
    "SnapshotNotFoundError",
    "IncompleteSnapshotError",
    "IncompleteLoopError",
    "VerificationError",
    "RequestMismatchError",
    "EventStreamMismatchError",
    "ToolCallMismatchError",
    "LoopCountMismatchError",
    "UnexpectedLoopError",
    "ConcurrentRequestError",
    "ReplayCancelledError",
    "ConfigError",
    "InvalidConfigError",
    "is_retryable",
]
