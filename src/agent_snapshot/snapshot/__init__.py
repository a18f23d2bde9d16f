"""
Snapshot record/replay engine.

This module provides:
- SnapshotStore for per-loop fixture persistence
- Normalizer and structural diff for tolerant comparison
- Generate and replay hooks (with the mock LLM client)
- SnapshotVerifier for events and tool calls
- AgentSnapshot, the orchestrator tying them together
"""

from .core import AgentSnapshot
from .diff import DiffEntry, format_diff, structural_diff
from .generate_hook import AgentGenerateSnapshotHook, LoopCapture
from .normalizer import (
    DEFAULT_MASK_PLACEHOLDER,
    DEFAULT_RULES,
    FieldRule,
    NormalizeAction,
    Normalizer,
    NormalizerConfig,
    PayloadKind,
    SnapshotNormalizer,
    normalize,
)
from .replay_hook import AgentReplaySnapshotHook, MockLLMClient, ReplayStream
from .result import SnapshotGenerationResult, SnapshotMeta, SnapshotRunResult
from .session import HookOutcome, RunSession, SnapshotMode
from .store import ACTUAL_SUFFIX, LoopArtifact, LoopRecord, RecordedResponse, SnapshotStore
from .verifier import SnapshotVerifier

__all__ = [
    # Orchestrator
    "AgentSnapshot",
    "SnapshotGenerationResult",
    "SnapshotRunResult",
    "SnapshotMeta",
    # Store
    "SnapshotStore",
    "LoopArtifact",
    "LoopRecord",
    "RecordedResponse",
    "ACTUAL_SUFFIX",
    # Normalization
    "Normalizer",
    "SnapshotNormalizer",
    "NormalizerConfig",
    "FieldRule",
    "NormalizeAction",
    "PayloadKind",
    "DEFAULT_RULES",
    "DEFAULT_MASK_PLACEHOLDER",
    "normalize",
    "DiffEntry",
    "structural_diff",
    "format_diff",
    # Hooks
    "AgentGenerateSnapshotHook",
    "AgentReplaySnapshotHook",
    "LoopCapture",
    "MockLLMClient",
    "ReplayStream",
    "SnapshotVerifier",
    # Session
    "RunSession",
    "HookOutcome",
    "SnapshotMode",
]
