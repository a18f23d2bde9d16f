"""
Structured logging for agent-snapshot.

Every record carries the run it belongs to (trace id, snapshot name, mode)
so a failing replay can be followed loop by loop. Output is either one JSON
object per line or ``key=value`` text.
"""

from __future__ import annotations

import logging
import sys
import time
import uuid
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from typing import Any

import orjson

DEFAULT_LOGGER_NAME = "agent_snapshot"

# =============================================================================
# Record Types
# =============================================================================


@dataclass(frozen=True)
class LogContext:
    """Fields stamped onto every record emitted inside a trace."""

    trace_id: str | None = None
    snapshot: str | None = None
    mode: str | None = None
    loop_index: int | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "extra"}
        data = {k: v for k, v in data.items() if v is not None}
        data.update(self.extra)
        return data

    def with_update(self, *, extra: Mapping[str, Any] | None = None, **values: Any) -> LogContext:
        return replace(self, **values, extra={**self.extra, **(extra or {})})


@dataclass
class LoopLog:
    """One loop recorded, replayed, updated or captured."""

    loop_index: int
    mode: str
    action: str
    streaming: bool = False
    chunk_count: int = 0
    fingerprint: str | None = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}


# =============================================================================
# Structured Logger
# =============================================================================


class StructuredLogger:
    """
    Wrapper around a stdlib logger that adds run context and typed helpers.

    Example:
        ```python
        logger = get_logger()
        with logger.trace_context(snapshot="weather", mode="replay"):
            logger.info("Replaying snapshot", expected_loops=3)
        ```
    """

    def __init__(self, name: str = DEFAULT_LOGGER_NAME, level: str = "INFO", json_output: bool = False):
        self.name = name
        self.json_output = json_output
        self.context = LogContext()
        self._logger = logging.getLogger(name)
        self._logger.setLevel(level.upper())
        self._install_handler()

    def _install_handler(self) -> None:
        formatter = JSONFormatter() if self.json_output else TextFormatter()
        for handler in self._logger.handlers:
            if getattr(handler, "_agent_snapshot", False):
                handler.setFormatter(formatter)
                return
        handler = logging.StreamHandler(sys.stderr)
        handler._agent_snapshot = True  # type: ignore[attr-defined]
        handler.setFormatter(formatter)
        self._logger.addHandler(handler)

    @contextmanager
    def trace_context(self, trace_id: str | None = None, **values: Any) -> Iterator[str]:
        """Stamp ``trace_id`` and ``values`` on records until the block exits."""
        previous = self.context
        trace_id = trace_id or generate_trace_id()
        self.context = previous.with_update(trace_id=trace_id, **values)
        try:
            yield trace_id
        finally:
            self.context = previous

    def _emit(
        self,
        level: int,
        message: str,
        event_type: str | None = None,
        data: Mapping[str, Any] | None = None,
    ) -> None:
        if not self._logger.isEnabledFor(level):
            return
        payload: dict[str, Any] = {"message": message, **self.context.to_dict()}
        if event_type:
            payload["event_type"] = event_type
        payload.update(data or {})

        if self.json_output:
            line = orjson.dumps(payload, default=str).decode("utf-8")
        else:
            line = " ".join([message, *(f"{k}={v}" for k, v in payload.items() if k != "message")])
        self._logger.log(level, line)

    def debug(self, message: str, **data: Any) -> None:
        self._emit(logging.DEBUG, message, data=data)

    def info(self, message: str, **data: Any) -> None:
        self._emit(logging.INFO, message, data=data)

    def success(self, message: str, **data: Any) -> None:
        self._emit(logging.INFO, message, "success", data)

    def warning(self, message: str, **data: Any) -> None:
        self._emit(logging.WARNING, message, data=data)

    def error(self, message: str, **data: Any) -> None:
        self._emit(logging.ERROR, message, data=data)

    def log_loop(self, loop: LoopLog) -> None:
        self._emit(logging.DEBUG, f"Loop {loop.loop_index} {loop.action}", "loop", loop.to_dict())

    def log_error(self, error: BaseException, message: str | None = None, **data: Any) -> None:
        """Log an exception with its error code and context when it carries them."""
        details: dict[str, Any] = {"error_type": type(error).__name__, "error_message": str(error)}
        code = getattr(error, "code", None)
        if code is not None:
            details["error_code"] = getattr(code, "value", str(code))
        context = getattr(error, "context", None)
        if context is not None and hasattr(context, "to_dict"):
            details["error_context"] = context.to_dict()
        details.update(data)
        self._emit(logging.ERROR, message or f"Error: {error}", "error", details)


# =============================================================================
# Formatters
# =============================================================================


class JSONFormatter(logging.Formatter):
    """One JSON object per record; JSON messages are merged into it."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
        }
        message = record.getMessage()
        try:
            parsed = orjson.loads(message)
        except orjson.JSONDecodeError:
            parsed = None
        if isinstance(parsed, dict):
            entry.update(parsed)
        else:
            entry["message"] = message
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return orjson.dumps(entry, default=str).decode("utf-8")


class TextFormatter(logging.Formatter):
    """``HH:MM:SS.mmm LEVEL message``, colored when writing to a terminal."""

    COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }

    def __init__(self, color: bool | None = None):
        super().__init__("%(asctime)s.%(msecs)03d %(levelname)-8s %(message)s", datefmt="%H:%M:%S")
        self.color = sys.stderr.isatty() if color is None else color

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        code = self.COLORS.get(record.levelno) if self.color else None
        return f"{code}{text}\033[0m" if code else text


# =============================================================================
# Utilities
# =============================================================================


def generate_trace_id() -> str:
    return f"trace_{uuid.uuid4().hex[:16]}"


def truncate_for_log(text: str, max_length: int = 200) -> str:
    if len(text) <= max_length:
        return text
    return f"{text[:max_length]}... ({len(text)} chars total)"


@dataclass
class Timer:
    """Wall-clock stopwatch reporting milliseconds."""

    start_time: float = field(default_factory=time.perf_counter)
    end_time: float | None = None

    def stop(self) -> float:
        if self.end_time is None:
            self.end_time = time.perf_counter()
        return self.elapsed_ms

    @property
    def elapsed_ms(self) -> float:
        end = self.end_time if self.end_time is not None else time.perf_counter()
        return (end - self.start_time) * 1000.0


@contextmanager
def timed() -> Iterator[Timer]:
    timer = Timer()
    try:
        yield timer
    finally:
        timer.stop()


# =============================================================================
# Shared Loggers
# =============================================================================

_loggers: dict[str, StructuredLogger] = {}


def get_logger(name: str = DEFAULT_LOGGER_NAME) -> StructuredLogger:
    """Return the shared logger for ``name``, creating it on first use."""
    logger = _loggers.get(name)
    if logger is None:
        logger = _loggers[name] = StructuredLogger(name)
    return logger


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    name: str = DEFAULT_LOGGER_NAME,
) -> StructuredLogger:
    """Replace the shared logger for ``name`` with one using the given settings."""
    logger = _loggers[name] = StructuredLogger(name, level=level, json_output=json_output)
    return logger


__all__ = [
    "DEFAULT_LOGGER_NAME",
    "LogContext",
    "LoopLog",
    "StructuredLogger",
    "JSONFormatter",
    "TextFormatter",
    "Timer",
    "timed",
    "generate_trace_id",
    "truncate_for_log",
    "get_logger",
    "configure_logging",
]
