"""
Logging configuration.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import InvalidConfigError
from .base import VALID_LOG_FORMATS, VALID_LOG_LEVELS, LogFormat, LogLevel


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: LogLevel = "INFO"
    format: LogFormat = "text"

    def __post_init__(self):
        """Validate configuration after initialization."""
        self.level = self.level.upper()  # type: ignore[assignment]
        if self.level not in VALID_LOG_LEVELS:
            raise InvalidConfigError(f"Invalid log level: {self.level}. Must be one of {VALID_LOG_LEVELS}")
        if self.format not in VALID_LOG_FORMATS:
            raise InvalidConfigError(f"Invalid log format: {self.format}. Must be one of {VALID_LOG_FORMATS}")

    @property
    def json_output(self) -> bool:
        return self.format == "json"


__all__ = ["LoggingConfig"]
