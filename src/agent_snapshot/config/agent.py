"""
Agent configuration.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import InvalidConfigError


@dataclass
class AgentConfig:
    """Configuration for the reference agent loop."""

    # Loop limits
    max_iterations: int = 10
    max_tool_calls_per_loop: int = 10

    # Sampling parameters forwarded to the LLM client
    temperature: float | None = None
    max_tokens: int | None = None

    # Behavior
    stop_on_tool_error: bool = False

    def __post_init__(self):
        if self.max_iterations < 1:
            raise InvalidConfigError("max_iterations must be at least 1")
        if self.max_tool_calls_per_loop < 1:
            raise InvalidConfigError("max_tool_calls_per_loop must be at least 1")
        if self.temperature is not None and not 0.0 <= self.temperature <= 2.0:
            raise InvalidConfigError("temperature must be between 0.0 and 2.0")
        if self.max_tokens is not None and self.max_tokens < 1:
            raise InvalidConfigError("max_tokens must be positive")

    def sampling_params(self) -> dict[str, float | int]:
        """Non-empty sampling parameters, in the order they are sent."""
        params: dict[str, float | int] = {}
        if self.temperature is not None:
            params["temperature"] = self.temperature
        if self.max_tokens is not None:
            params["max_tokens"] = self.max_tokens
        return params


__all__ = ["AgentConfig"]
