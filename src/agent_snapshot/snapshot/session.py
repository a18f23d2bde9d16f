"""
Per-run session state shared by the snapshot hooks and the orchestrator.

Every boundary callback returns a ``HookOutcome``; the session collects
them so the orchestrator can check for failures after the agent returns
and between streamed elements. A cancellation recorded with
``mark_cancelled`` always takes precedence over earlier mismatches.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum

from ..errors import ErrorContext, ReplayCancelledError


class SnapshotMode(str, Enum):
    GENERATE = "generate"
    REPLAY = "replay"


@dataclass(frozen=True)
class HookOutcome:
    """Result of handling one boundary callback."""

    error: BaseException | None = None
    loop_index: int | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, loop_index: int | None = None) -> HookOutcome:
        return cls(loop_index=loop_index)

    @classmethod
    def failed(cls, error: BaseException, loop_index: int | None = None) -> HookOutcome:
        return cls(error=error, loop_index=loop_index)


@dataclass
class RunSession:
    """Mutable state of one generate or replay run."""

    mode: SnapshotMode
    case_name: str
    loop_pointer: int = 0
    started_at: float = field(default_factory=time.perf_counter)
    outcomes: list[HookOutcome] = field(default_factory=list)
    cancelled: ReplayCancelledError | None = None

    def record(self, outcome: HookOutcome) -> HookOutcome:
        self.outcomes.append(outcome)
        return outcome

    def fail(self, error: BaseException, loop_index: int | None = None) -> HookOutcome:
        return self.record(HookOutcome.failed(error, loop_index))

    def has_error(self) -> bool:
        return self.cancelled is not None or any(not o.ok for o in self.outcomes)

    def get_last_error(self) -> BaseException | None:
        if self.cancelled is not None:
            return self.cancelled
        for outcome in reversed(self.outcomes):
            if not outcome.ok:
                return outcome.error
        return None

    def clear_error(self) -> None:
        self.outcomes = [o for o in self.outcomes if o.ok]
        self.cancelled = None

    def mark_cancelled(self, reason: str | None = None, loop_index: int | None = None) -> ReplayCancelledError:
        """Record that the caller cancelled the run."""
        if self.cancelled is None:
            self.cancelled = ReplayCancelledError(
                reason or "Run was cancelled",
                context=ErrorContext(case_name=self.case_name, loop_index=loop_index, operation=self.mode.value),
            )
        return self.cancelled

    def raise_if_failed(self) -> None:
        error = self.get_last_error()
        if error is not None:
            raise error

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.started_at) * 1000

    def close(self) -> None:
        self.outcomes.clear()
        self.cancelled = None


__all__ = ["HookOutcome", "RunSession", "SnapshotMode"]
