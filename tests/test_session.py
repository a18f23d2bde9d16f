"""
Tests for run session state.
"""

import pytest

from agent_snapshot.errors import ReplayCancelledError, RequestMismatchError
from agent_snapshot.snapshot.session import HookOutcome, RunSession, SnapshotMode


class TestHookOutcome:
    def test_success(self):
        outcome = HookOutcome.success(2)
        assert outcome.ok
        assert outcome.loop_index == 2

    def test_failed(self):
        error = ValueError("boom")
        outcome = HookOutcome.failed(error, 1)
        assert not outcome.ok
        assert outcome.error is error


class TestRunSession:
    """Test the error slot and cancellation precedence."""

    def test_starts_clean(self):
        session = RunSession(mode=SnapshotMode.REPLAY, case_name="case")
        assert session.loop_pointer == 0
        assert not session.has_error()
        assert session.get_last_error() is None
        session.raise_if_failed()

    def test_fail_records_error(self):
        session = RunSession(mode=SnapshotMode.REPLAY, case_name="case")
        session.record(HookOutcome.success(0))
        error = RequestMismatchError("mismatch")
        session.fail(error, 1)

        assert session.has_error()
        assert session.get_last_error() is error
        with pytest.raises(RequestMismatchError):
            session.raise_if_failed()

    def test_last_error_wins(self):
        session = RunSession(mode=SnapshotMode.GENERATE, case_name="case")
        first, second = ValueError("a"), ValueError("b")
        session.fail(first)
        session.fail(second)
        assert session.get_last_error() is second

    def test_cancellation_takes_precedence(self):
        session = RunSession(mode=SnapshotMode.REPLAY, case_name="case")
        session.fail(RequestMismatchError("mismatch"), 0)
        cancelled = session.mark_cancelled("user stop", 1)

        assert isinstance(cancelled, ReplayCancelledError)
        assert session.get_last_error() is cancelled
        assert cancelled.context.loop_index == 1
        assert cancelled.context.operation == "replay"

    def test_mark_cancelled_is_idempotent(self):
        session = RunSession(mode=SnapshotMode.REPLAY, case_name="case")
        first = session.mark_cancelled("a")
        assert session.mark_cancelled("b") is first
        assert first.message == "a"

    def test_clear_error(self):
        session = RunSession(mode=SnapshotMode.REPLAY, case_name="case")
        session.record(HookOutcome.success(0))
        session.fail(ValueError("x"))
        session.mark_cancelled()
        session.clear_error()

        assert not session.has_error()
        assert len(session.outcomes) == 1

    def test_close(self):
        session = RunSession(mode=SnapshotMode.REPLAY, case_name="case")
        session.fail(ValueError("x"))
        session.close()
        assert session.outcomes == []
        assert session.elapsed_ms >= 0
