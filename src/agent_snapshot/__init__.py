"""
Top-level package for agent-snapshot.

Record one live agent run as a per-loop fixture, then replay the agent
against it with a deterministic mock LLM client while verifying requests,
events and tool calls.
"""

from .agent import (
    Agent,
    AgentEvent,
    AgentEventStream,
    AgentEventType,
    LLMRequest,
    NonStreamingRunOptions,
    RunMode,
    RunOptions,
    SnapshotAgent,
    StreamingRunOptions,
)
from .cancellation import CancellationToken, CancelledError
from .config import (
    Settings,
    SnapshotOptions,
    TestRunConfig,
    VerificationConfig,
    VerificationOverride,
    configure,
    get_settings,
    load_env,
)
from .errors import (
    ConcurrentRequestError,
    ErrorCode,
    EventStreamMismatchError,
    IncompleteLoopError,
    IncompleteSnapshotError,
    LoopCountMismatchError,
    ReplayCancelledError,
    RequestMismatchError,
    SnapshotError,
    SnapshotNotFoundError,
    ToolCallMismatchError,
    UnexpectedLoopError,
    VerificationError,
)
from .hooks import Hook, HookManager
from .providers import BaseProvider, CompletionResult, Message, Provider, StreamEvent, StreamEventType, ToolCall
from .snapshot import (
    AgentSnapshot,
    FieldRule,
    MockLLMClient,
    NormalizeAction,
    Normalizer,
    NormalizerConfig,
    SnapshotGenerationResult,
    SnapshotMeta,
    SnapshotRunResult,
    SnapshotStore,
)
from .tools import Tool, ToolRegistry, ToolResult, tool_from_function

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Orchestrator
    "AgentSnapshot",
    "SnapshotOptions",
    "TestRunConfig",
    "VerificationConfig",
    "VerificationOverride",
    "SnapshotGenerationResult",
    "SnapshotRunResult",
    "SnapshotMeta",
    "SnapshotStore",
    "MockLLMClient",
    "Normalizer",
    "NormalizerConfig",
    "FieldRule",
    "NormalizeAction",
    # Agent
    "Agent",
    "SnapshotAgent",
    "AgentEvent",
    "AgentEventStream",
    "AgentEventType",
    "LLMRequest",
    "RunMode",
    "RunOptions",
    "NonStreamingRunOptions",
    "StreamingRunOptions",
    "Hook",
    "HookManager",
    "Tool",
    "ToolRegistry",
    "ToolResult",
    "tool_from_function",
    # Providers
    "Provider",
    "BaseProvider",
    "CompletionResult",
    "Message",
    "StreamEvent",
    "StreamEventType",
    "ToolCall",
    # Cancellation
    "CancellationToken",
    "CancelledError",
    # Config
    "Settings",
    "configure",
    "get_settings",
    "load_env",
    # Errors
    "SnapshotError",
    "ErrorCode",
    "SnapshotNotFoundError",
    "IncompleteSnapshotError",
    "IncompleteLoopError",
    "VerificationError",
    "RequestMismatchError",
    "EventStreamMismatchError",
    "ToolCallMismatchError",
    "LoopCountMismatchError",
    "UnexpectedLoopError",
    "ConcurrentRequestError",
    "ReplayCancelledError",
]
