"""
Post-run verification of event streams and tool calls.

Both sides are normalized with the same configuration before comparison,
so masked fields never cause mismatches and re-normalizing an already
normalized fixture is a no-op. Tool calls are matched by position.
"""

from __future__ import annotations

from typing import Any

from ..config.snapshot import VerificationConfig
from ..errors import ErrorContext, EventStreamMismatchError, ToolCallMismatchError, VerificationError
from ..logging import get_logger
from .diff import DiffEntry, format_diff, structural_diff
from .normalizer import Normalizer, PayloadKind
from .store import LoopArtifact, SnapshotStore


class SnapshotVerifier:
    """Compares live per-loop events and tool calls against the store."""

    def __init__(self, store: SnapshotStore, normalizer: Normalizer):
        self.store = store
        self.normalizer = normalizer
        self._logger = get_logger()

    def _normalize_all(self, kind: PayloadKind, items: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return [self.normalizer.normalize(kind, item) for item in items]

    def _check(
        self,
        case_name: str,
        loop_index: int,
        artifact: LoopArtifact,
        expected: list[dict[str, Any]],
        actual: list[dict[str, Any]],
        error_cls: type[VerificationError],
        label: str,
        update: bool,
    ) -> list[DiffEntry]:
        diff = structural_diff(expected, actual)
        if not diff:
            return []

        if update:
            self.store.write_part(case_name, loop_index, artifact, actual)
            self._logger.warning(
                f"Updated recorded {label}",
                case=case_name,
                loop_index=loop_index,
                differences=len(diff),
            )
            return diff

        self.store.write_actual(case_name, loop_index, artifact, actual)
        raise error_cls(
            f"{label.capitalize()} mismatch at loop {loop_index} of snapshot '{case_name}' "
            f"({len(diff)} differences):\n{format_diff(diff)}",
            diff=diff,
            context=ErrorContext(case_name=case_name, loop_index=loop_index, operation="verify"),
        )

    def verify_events(
        self,
        case_name: str,
        loop_index: int,
        live_events: list[dict[str, Any]],
        update: bool = False,
    ) -> list[DiffEntry]:
        """
        Compare one loop's live events with the recorded ones.

        Returns the differences that were written back in update mode.

        Raises:
            EventStreamMismatchError: The streams differ and update mode is off
        """
        record = self.store.read(case_name, loop_index)
        return self._check(
            case_name,
            loop_index,
            LoopArtifact.EVENTS,
            self._normalize_all(PayloadKind.EVENT, record.events),
            self._normalize_all(PayloadKind.EVENT, live_events),
            EventStreamMismatchError,
            "event stream",
            update,
        )

    def verify_tool_calls(
        self,
        case_name: str,
        loop_index: int,
        live_calls: list[dict[str, Any]],
        update: bool = False,
    ) -> list[DiffEntry]:
        """
        Compare one loop's live tool calls with the recorded ones.

        Raises:
            ToolCallMismatchError: The calls differ and update mode is off
        """
        record = self.store.read(case_name, loop_index)
        return self._check(
            case_name,
            loop_index,
            LoopArtifact.TOOL_CALLS,
            self._normalize_all(PayloadKind.TOOL_CALL, record.tool_calls),
            self._normalize_all(PayloadKind.TOOL_CALL, live_calls),
            ToolCallMismatchError,
            "tool calls",
            update,
        )

    def verify_run(
        self,
        case_name: str,
        live_by_loop: dict[int, dict[str, list[dict[str, Any]]]],
        verification: VerificationConfig,
        update: bool = False,
    ) -> int:
        """
        Verify every loop of a replayed run.

        ``live_by_loop`` maps loop index to ``{"events": [...], "tool_calls": [...]}``.
        Returns the number of artifacts rewritten in update mode.
        """
        recorded = self.store.loop_indices(case_name)
        live = sorted(live_by_loop)
        if verification.verify_event_streams and live != recorded and not update:
            raise EventStreamMismatchError(
                f"Event stream of snapshot '{case_name}' covers loops {recorded}, "
                f"but the live run produced loops {live}",
                context=ErrorContext(case_name=case_name, operation="verify"),
            )

        rewritten = 0
        for loop_index in live:
            if loop_index not in recorded:
                continue
            loop = live_by_loop[loop_index]
            if verification.verify_event_streams and self.verify_events(
                case_name, loop_index, loop.get("events", []), update
            ):
                rewritten += 1
            if verification.verify_tool_calls and self.verify_tool_calls(
                case_name, loop_index, loop.get("tool_calls", []), update
            ):
                rewritten += 1
        return rewritten


__all__ = ["SnapshotVerifier"]
