"""
Tests for the structured logging module.
"""

import json
import logging

from agent_snapshot.logging import (
    JSONFormatter,
    LogContext,
    LoopLog,
    StructuredLogger,
    TextFormatter,
    Timer,
    configure_logging,
    generate_trace_id,
    get_logger,
    timed,
    truncate_for_log,
)
from agent_snapshot.errors import ErrorContext, RequestMismatchError


class TestLogContext:
    """Test LogContext dataclass."""

    def test_to_dict_skips_unset(self):
        ctx = LogContext(trace_id="t1", snapshot="weather", extra={"custom": "value"})

        assert ctx.to_dict() == {"trace_id": "t1", "snapshot": "weather", "custom": "value"}

    def test_with_update(self):
        """Test creating updated context."""
        ctx = LogContext(trace_id="t1", snapshot="weather")
        updated = ctx.with_update(mode="replay", extra={"new": "value"})

        assert updated.trace_id == "t1"
        assert updated.snapshot == "weather"
        assert updated.mode == "replay"
        assert updated.extra == {"new": "value"}
        assert ctx.mode is None


class TestLoopLog:
    def test_to_dict(self):
        log = LoopLog(loop_index=2, mode="replay", action="replayed", streaming=True, chunk_count=5)

        d = log.to_dict()

        assert d["loop_index"] == 2
        assert d["action"] == "replayed"
        assert d["chunk_count"] == 5
        assert "timestamp" in d
        assert "fingerprint" not in d


class TestStructuredLogger:
    """Test StructuredLogger."""

    def test_trace_context_restores(self):
        logger = StructuredLogger("agent_snapshot.test.trace")

        with logger.trace_context(snapshot="weather", mode="generate") as trace_id:
            assert trace_id.startswith("trace_")
            assert logger.context.snapshot == "weather"
            assert logger.context.trace_id == trace_id

        assert logger.context.snapshot is None
        assert logger.context.trace_id is None

    def test_text_output_includes_context(self, caplog):
        logger = StructuredLogger("agent_snapshot.test.text")

        with caplog.at_level(logging.INFO, logger="agent_snapshot.test.text"):
            with logger.trace_context(trace_id="trace_x", snapshot="weather"):
                logger.info("Replaying snapshot", expected_loops=2)

        assert "Replaying snapshot" in caplog.text
        assert "snapshot=weather" in caplog.text
        assert "expected_loops=2" in caplog.text

    def test_json_output(self, caplog):
        logger = StructuredLogger("agent_snapshot.test.json", json_output=True)

        with caplog.at_level(logging.INFO, logger="agent_snapshot.test.json"):
            logger.success("Snapshot generated", loop_count=3)

        payload = json.loads(caplog.records[-1].getMessage())
        assert payload["message"] == "Snapshot generated"
        assert payload["event_type"] == "success"
        assert payload["loop_count"] == 3

    def test_log_loop_is_debug(self, caplog):
        logger = StructuredLogger("agent_snapshot.test.loop", level="DEBUG")

        with caplog.at_level(logging.DEBUG, logger="agent_snapshot.test.loop"):
            logger.log_loop(LoopLog(loop_index=0, mode="generate", action="recorded"))

        record = caplog.records[-1]
        assert record.levelno == logging.DEBUG
        assert "Loop 0 recorded" in record.getMessage()

    def test_log_error_includes_code_and_context(self, caplog):
        logger = StructuredLogger("agent_snapshot.test.error", json_output=True)
        error = RequestMismatchError("mismatch", context=ErrorContext(case_name="weather", loop_index=1))

        with caplog.at_level(logging.ERROR, logger="agent_snapshot.test.error"):
            logger.log_error(error, "Snapshot replay failed")

        payload = json.loads(caplog.records[-1].getMessage())
        assert payload["error_type"] == "RequestMismatchError"
        assert payload["error_code"] == "ERR_2001"
        assert payload["error_context"]["loop_index"] == 1


class TestFormatters:
    def test_json_formatter_merges_payload(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, json.dumps({"message": "hi", "a": 1}), None, None)

        data = json.loads(JSONFormatter().format(record))

        assert data["level"] == "INFO"
        assert data["message"] == "hi"
        assert data["a"] == 1

    def test_json_formatter_plain_message(self):
        record = logging.LogRecord("x", logging.WARNING, __file__, 1, "plain text", None, None)

        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "plain text"

    def test_text_formatter(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "hello", None, None)

        text = TextFormatter(color=False).format(record)

        assert text.endswith("INFO     hello")
        assert "\033[" not in text

    def test_reconfiguring_reuses_handler(self):
        first = StructuredLogger("agent_snapshot.test.handlers")
        second = StructuredLogger("agent_snapshot.test.handlers", json_output=True)

        handlers = second._logger.handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0].formatter, JSONFormatter)
        assert first._logger is second._logger


class TestUtilities:
    """Test utility functions."""

    def test_generate_trace_id(self):
        first, second = generate_trace_id(), generate_trace_id()

        assert first.startswith("trace_")
        assert first != second

    def test_truncate_for_log(self):
        assert truncate_for_log("short") == "short"
        long = "x" * 300
        assert truncate_for_log(long, 10) == "x" * 10 + "... (300 chars total)"

    def test_timer(self):
        timer = Timer()
        elapsed = timer.stop()

        assert elapsed >= 0
        assert timer.elapsed_ms == elapsed

    def test_timed(self):
        with timed() as timer:
            pass

        assert timer.end_time is not None
        assert timer.elapsed_ms >= 0


class TestGlobalLogger:
    def test_get_logger_is_shared(self):
        assert get_logger() is get_logger()

    def test_configure_logging_replaces_default(self):
        logger = configure_logging(level="WARNING")

        assert get_logger() is logger
        assert logger._logger.level == logging.WARNING
        configure_logging(level="INFO")
