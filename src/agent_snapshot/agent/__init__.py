"""
Agent boundary and reference agent.

This module provides:
- The SnapshotAgent protocol the harness hooks into
- A reference Agent with a bounded tool-calling loop
- Run options, event stream and result types
"""

from .core import Agent
from .events import AgentEvent, AgentEventStream, AgentEventType
from .interface import LLMRequest, SnapshotAgent
from .options import (
    NonStreamingRunOptions,
    RunMode,
    RunOptions,
    StreamingRunOptions,
    as_run_options,
)
from .result import AgentRunResult

__all__ = [
    "Agent",
    "AgentEvent",
    "AgentEventStream",
    "AgentEventType",
    "AgentRunResult",
    "LLMRequest",
    "SnapshotAgent",
    "RunMode",
    "RunOptions",
    "NonStreamingRunOptions",
    "StreamingRunOptions",
    "as_run_options",
]
