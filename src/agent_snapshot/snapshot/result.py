"""
Result types returned by ``AgentSnapshot``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..agent.events import AgentEvent


@dataclass(frozen=True)
class SnapshotMeta:
    """Metadata about one generate or replay run."""

    snapshot_name: str
    execution_time_ms: float
    loop_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "snapshot_name": self.snapshot_name,
            "execution_time_ms": round(self.execution_time_ms, 3),
            "loop_count": self.loop_count,
        }


@dataclass
class SnapshotRunResult:
    """Outcome of a replay."""

    response: AgentEvent | None
    events: list[AgentEvent] = field(default_factory=list)
    meta: SnapshotMeta | None = None
    rewritten_artifacts: int = 0

    @property
    def content(self) -> str | None:
        if self.response is None:
            return None
        return self.response.data.get("content")

    def to_dict(self) -> dict[str, Any]:
        return {
            "response": self.response.to_dict() if self.response else None,
            "events": [e.to_dict() for e in self.events],
            "meta": self.meta.to_dict() if self.meta else None,
            "rewritten_artifacts": self.rewritten_artifacts,
        }


@dataclass
class SnapshotGenerationResult(SnapshotRunResult):
    """Outcome of a generate run; adds where the fixture was written."""

    artifacts_path: Path | None = None

    @property
    def loop_count(self) -> int:
        return self.meta.loop_count if self.meta else 0

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["artifacts_path"] = str(self.artifacts_path) if self.artifacts_path else None
        return data


__all__ = ["SnapshotGenerationResult", "SnapshotMeta", "SnapshotRunResult"]
