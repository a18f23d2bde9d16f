"""
Tests for the error taxonomy.
"""
import pytest

from agent_snapshot.errors import (
    ConcurrentRequestError,
    ConfigError,
    ErrorCode,
    ErrorContext,
    EventStreamMismatchError,
    IncompleteLoopError,
    IncompleteSnapshotError,
    InvalidConfigError,
    LoopCountMismatchError,
    ReplayCancelledError,
    RequestMismatchError,
    SnapshotError,
    SnapshotNotFoundError,
    ToolCallMismatchError,
    UnexpectedLoopError,
    VerificationError,
    is_retryable,
)
from agent_snapshot.snapshot.diff import DiffEntry


class TestErrorCodes:
    """Test error code enumeration."""

    def test_error_codes_are_strings(self):
        assert ErrorCode.REQUEST_MISMATCH.value.startswith("ERR_")
        assert ErrorCode.SNAPSHOT_NOT_FOUND.value.startswith("ERR_")

    def test_error_codes_unique(self):
        """Test that all error codes are unique."""
        values = [e.value for e in ErrorCode]
        assert len(values) == len(set(values))


class TestErrorContext:
    def test_to_dict(self):
        """Test context serialization."""
        ctx = ErrorContext(case_name="weather", loop_index=2, operation="replay", extra={"custom": "data"})

        assert ctx.to_dict() == {
            "case_name": "weather",
            "loop_index": 2,
            "operation": "replay",
            "custom": "data",
        }


class TestSnapshotError:
    """Test the base error."""

    def test_create_error(self):
        error = SnapshotError("Something went wrong")

        assert error.message == "Something went wrong"
        assert error.code == ErrorCode.SNAPSHOT_ERROR
        assert error.loop_index is None
        assert not error.retryable

    def test_str_includes_code_and_loop(self):
        error = SnapshotError("Test error", context=ErrorContext(loop_index=3))

        assert str(error) == "[ERR_1000] Test error (loop=3)"

    def test_code_override(self):
        error = SnapshotError("x", code=ErrorCode.INTERNAL_ERROR)
        assert error.code == ErrorCode.INTERNAL_ERROR

    def test_to_dict(self):
        cause = OSError("disk full")
        error = SnapshotError("Test error", context=ErrorContext(case_name="weather"), cause=cause)

        d = error.to_dict()

        assert d["error_type"] == "SnapshotError"
        assert d["message"] == "Test error"
        assert d["context"]["case_name"] == "weather"
        assert d["cause"] == "disk full"


class TestHierarchy:
    @pytest.mark.parametrize(
        "error_cls, base",
        [
            (SnapshotNotFoundError, SnapshotError),
            (IncompleteSnapshotError, SnapshotError),
            (IncompleteLoopError, SnapshotError),
            (RequestMismatchError, VerificationError),
            (EventStreamMismatchError, VerificationError),
            (ToolCallMismatchError, VerificationError),
            (ConcurrentRequestError, SnapshotError),
            (ReplayCancelledError, SnapshotError),
            (InvalidConfigError, ConfigError),
        ],
    )
    def test_subclasses(self, error_cls, base):
        assert issubclass(error_cls, base)
        assert issubclass(error_cls, SnapshotError)


class TestFixtureErrors:
    def test_not_found_path(self):
        error = SnapshotNotFoundError("missing", path="/tmp/x")
        assert error.path == "/tmp/x"
        assert error.code == ErrorCode.SNAPSHOT_NOT_FOUND

    def test_incomplete_loop_missing_parts(self):
        error = IncompleteLoopError("partial", missing=["llm-response.json"])
        assert error.missing == ["llm-response.json"]


class TestVerificationErrors:
    def test_diff_attached(self):
        diff = [DiffEntry("replace", "$.messages[0].content", "a", "b")]
        error = RequestMismatchError("mismatch", diff=diff, context=ErrorContext(loop_index=0))

        assert error.first_difference is diff[0]
        assert error.to_dict()["diff"] == [
            {"op": "replace", "path": "$.messages[0].content", "expected": "a", "actual": "b"}
        ]

    def test_no_diff(self):
        assert EventStreamMismatchError("x").first_difference is None


class TestControlFlowErrors:
    def test_loop_count_mismatch(self):
        error = LoopCountMismatchError(expected=3, actual=2)

        assert error.expected == 3
        assert error.actual == 2
        assert error.message == "Loop count mismatch: agent executed 2 loops, but fixture has 3 loop records"

    def test_unexpected_loop(self):
        error = UnexpectedLoopError(3, 3, context=ErrorContext(case_name="weather"))

        assert error.loop_index == 3
        assert error.expected_loop_count == 3
        assert error.context.case_name == "weather"
        assert "fixture only has 3 loops" in error.message


class TestRetryable:
    def test_snapshot_errors_never_retryable(self):
        assert not is_retryable(RequestMismatchError("x"))
        assert not is_retryable(ReplayCancelledError("x"))

    def test_other_errors(self):
        assert not is_retryable(ValueError("x"))
