"""
LLM client boundary.

This module provides the client protocol and the value types exchanged
between an agent and its LLM client.
"""

from .base import BaseProvider, Provider
from .types import (
    CompletionResult,
    Message,
    MessageInput,
    Role,
    StreamEvent,
    StreamEventType,
    ToolCall,
    ToolCallDelta,
    Usage,
    completion_from_events,
    normalize_messages,
)

__all__ = [
    # Protocols and base classes
    "Provider",
    "BaseProvider",
    # Types
    "Role",
    "StreamEventType",
    "ToolCall",
    "ToolCallDelta",
    "Message",
    "Usage",
    "StreamEvent",
    "CompletionResult",
    "MessageInput",
    "completion_from_events",
    "normalize_messages",
]
