"""
Agent result types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from ..providers.types import ToolCall, Usage


@dataclass
class AgentRunResult:
    """Final result of an agent run."""

    content: str | None = None
    loop_count: int = 0
    tool_calls: list[ToolCall] = field(default_factory=list)
    total_usage: Usage = field(default_factory=Usage)

    status: Literal["success", "max_iterations", "error"] = "success"
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "success"

    def add_usage(self, usage: Usage | None) -> None:
        if usage is None:
            return
        self.total_usage.input_tokens += usage.input_tokens
        self.total_usage.output_tokens += usage.output_tokens
        self.total_usage.total_tokens += usage.total_tokens

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "loop_count": self.loop_count,
            "status": self.status,
            "error": self.error,
            "total_usage": self.total_usage.to_dict(),
        }


__all__ = ["AgentRunResult"]
