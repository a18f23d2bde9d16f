"""
Filesystem store for snapshot cases.

Layout::

    <snapshot_dir>/<case_name>/
        loop-0/
            llm-request.json
            llm-response.json
            event-stream.json
            tool-calls.json
        loop-1/
            ...

Artifacts are indented JSON with sorted keys so fixtures diff cleanly in
code review. Every file is written atomically (temp file + ``os.replace``).
Diagnostic copies of live payloads are written beside the canonical file as
``<artifact>.actual.json`` and removed once a replay succeeds.
"""

from __future__ import annotations

import os
import re
import shutil
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Literal

import orjson

from ..errors import (
    ErrorContext,
    IncompleteLoopError,
    IncompleteSnapshotError,
    InvalidConfigError,
    SnapshotError,
    SnapshotNotFoundError,
)
from ..hashing import content_hash
from ..logging import get_logger
from ..providers.types import (
    CompletionResult,
    StreamEvent,
    StreamEventType,
    completion_from_events,
)
from ..serialization import canonicalize, json_loads, pretty_json_dumps

LOOP_DIR_PATTERN = re.compile(r"^loop-(\d+)$")
ACTUAL_SUFFIX = ".actual.json"


class LoopArtifact(str, Enum):
    """Files making up one loop record."""

    REQUEST = "llm-request"
    RESPONSE = "llm-response"
    EVENTS = "event-stream"
    TOOL_CALLS = "tool-calls"

    @property
    def filename(self) -> str:
        return f"{self.value}.json"

    @property
    def actual_filename(self) -> str:
        return f"{self.value}{ACTUAL_SUFFIX}"


# =============================================================================
# Record Types
# =============================================================================


@dataclass(frozen=True)
class RecordedResponse:
    """
    What the agent received from its LLM client in one loop.

    ``kind`` is ``"completion"`` for a single result or ``"stream"`` for the
    ordered chunk sequence of a streamed response. Either form can be
    served to either kind of request.
    """

    kind: Literal["completion", "stream"]
    completion: dict[str, Any] | None = None
    chunks: list[dict[str, Any]] | None = None

    def __post_init__(self):
        if self.kind not in ("completion", "stream"):
            raise ValueError(f"Unknown response kind: {self.kind!r}")
        if self.kind == "completion" and self.completion is None:
            raise ValueError("completion response requires a completion payload")
        if self.kind == "stream" and self.chunks is None:
            raise ValueError("stream response requires a chunk list")

    @property
    def is_stream(self) -> bool:
        return self.kind == "stream"

    @classmethod
    def from_completion(cls, result: CompletionResult | dict[str, Any]) -> RecordedResponse:
        payload = result.to_dict() if isinstance(result, CompletionResult) else dict(result)
        return cls(kind="completion", completion=canonicalize(payload))

    @classmethod
    def from_chunks(cls, chunks: list[StreamEvent | dict[str, Any]]) -> RecordedResponse:
        return cls(kind="stream", chunks=[canonicalize(c) for c in chunks])

    def to_dict(self) -> dict[str, Any]:
        if self.kind == "completion":
            return {"kind": "completion", "completion": self.completion}
        return {"kind": "stream", "chunks": self.chunks}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RecordedResponse:
        kind = data.get("kind")
        if kind == "stream":
            return cls(kind="stream", chunks=list(data.get("chunks") or []))
        if kind == "completion":
            return cls(kind="completion", completion=dict(data.get("completion") or {}))
        raise ValueError(f"Unknown response kind: {kind!r}")

    def to_completion(self) -> CompletionResult:
        """The final completion, assembled from chunks for streamed responses."""
        if self.kind == "completion":
            return CompletionResult.from_dict(self.completion or {})

        return completion_from_events([StreamEvent.from_dict(c) for c in self.chunks or []])

    def to_chunks(self) -> list[StreamEvent]:
        """The chunk sequence, synthesized from the completion when not streamed."""
        if self.kind == "stream":
            return [StreamEvent.from_dict(c) for c in self.chunks or []]

        result = self.to_completion()
        chunks: list[StreamEvent] = []
        if result.content:
            chunks.append(StreamEvent(type=StreamEventType.TOKEN, data=result.content))
        for tc in result.tool_calls or []:
            chunks.append(StreamEvent(type=StreamEventType.TOOL_CALL_END, data=tc))
        if result.usage:
            chunks.append(StreamEvent(type=StreamEventType.USAGE, data=result.usage))
        chunks.append(StreamEvent(type=StreamEventType.DONE, data=result))
        return chunks


@dataclass(frozen=True)
class LoopRecord:
    """Everything recorded for one agent loop iteration."""

    index: int
    request: dict[str, Any]
    response: RecordedResponse
    events: list[dict[str, Any]] = field(default_factory=list)
    tool_calls: list[dict[str, Any]] = field(default_factory=list)

    @property
    def fingerprint(self) -> str:
        return content_hash(
            {
                "request": self.request,
                "response": self.response.to_dict(),
                "events": self.events,
                "tool_calls": self.tool_calls,
            },
            truncate=16,
        )


# =============================================================================
# Store
# =============================================================================


class SnapshotStore:
    """
    Reads and writes loop records under a base directory.

    Example:
        ```python
        store = SnapshotStore("tests/__snapshots__")
        store.write("weather", 0, record)
        assert store.count("weather") == 1
        ```
    """

    def __init__(self, base_dir: str | Path):
        self.base_dir = Path(base_dir)
        self._logger = get_logger()

    # -- paths ---------------------------------------------------------------

    def case_path(self, case_name: str) -> Path:
        if not case_name or case_name in (".", "..") or "/" in case_name or "\\" in case_name:
            raise InvalidConfigError(f"Invalid snapshot case name: {case_name!r}")
        return self.base_dir / case_name

    def loop_path(self, case_name: str, loop_index: int) -> Path:
        if loop_index < 0:
            raise ValueError(f"Loop index must be non-negative, got {loop_index}")
        return self.case_path(case_name) / f"loop-{loop_index}"

    def exists(self, case_name: str) -> bool:
        return self.case_path(case_name).is_dir()

    # -- writes --------------------------------------------------------------

    def _write_json(self, path: Path, payload: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
        tmp_path.write_text(pretty_json_dumps(payload), encoding="utf-8")
        os.replace(tmp_path, path)

    def write(self, case_name: str, loop_index: int, record: LoopRecord) -> Path:
        """Write all four artifacts of a loop record."""
        loop_dir = self.loop_path(case_name, loop_index)
        self._write_json(loop_dir / LoopArtifact.REQUEST.filename, record.request)
        self._write_json(loop_dir / LoopArtifact.RESPONSE.filename, record.response.to_dict())
        self._write_json(loop_dir / LoopArtifact.EVENTS.filename, record.events)
        self._write_json(loop_dir / LoopArtifact.TOOL_CALLS.filename, record.tool_calls)
        self._logger.debug(
            "Wrote loop record",
            case=case_name,
            loop_index=loop_index,
            fingerprint=record.fingerprint,
        )
        return loop_dir

    def write_part(self, case_name: str, loop_index: int, part: LoopArtifact, payload: Any) -> Path:
        """Write a single artifact of a loop record."""
        part = LoopArtifact(part)
        path = self.loop_path(case_name, loop_index) / part.filename
        if isinstance(payload, RecordedResponse):
            payload = payload.to_dict()
        self._write_json(path, payload)
        return path

    def write_actual(self, case_name: str, loop_index: int, part: LoopArtifact, payload: Any) -> Path:
        """Write the live payload beside the recorded one for diagnosis."""
        part = LoopArtifact(part)
        path = self.loop_path(case_name, loop_index) / part.actual_filename
        if isinstance(payload, RecordedResponse):
            payload = payload.to_dict()
        self._write_json(path, payload)
        self._logger.debug("Wrote diagnostic artifact", case=case_name, path=str(path))
        return path

    # -- reads ---------------------------------------------------------------

    def _read_json(self, path: Path, case_name: str, loop_index: int) -> Any:
        try:
            return json_loads(path.read_bytes())
        except orjson.JSONDecodeError as e:
            raise SnapshotError(
                f"Corrupt snapshot artifact {path}: {e}",
                context=ErrorContext(case_name=case_name, loop_index=loop_index, operation="read"),
                cause=e,
            ) from e

    def read(self, case_name: str, loop_index: int) -> LoopRecord:
        """
        Load one loop record.

        Raises:
            SnapshotNotFoundError: The loop entry does not exist
            IncompleteLoopError: The request or response artifact is missing
        """
        loop_dir = self.loop_path(case_name, loop_index)
        context = ErrorContext(case_name=case_name, loop_index=loop_index, operation="read")
        if not loop_dir.is_dir():
            raise SnapshotNotFoundError(
                f"No loop {loop_index} recorded for snapshot '{case_name}'",
                path=str(loop_dir),
                context=context,
            )

        missing = [
            part.filename
            for part in (LoopArtifact.REQUEST, LoopArtifact.RESPONSE)
            if not (loop_dir / part.filename).is_file()
        ]
        if missing:
            raise IncompleteLoopError(
                f"Loop {loop_index} of snapshot '{case_name}' is missing {', '.join(missing)}; "
                "regenerate the snapshot",
                missing=missing,
                context=context,
            )

        request = self._read_json(loop_dir / LoopArtifact.REQUEST.filename, case_name, loop_index)
        raw_response = self._read_json(loop_dir / LoopArtifact.RESPONSE.filename, case_name, loop_index)
        try:
            response = RecordedResponse.from_dict(raw_response)
        except ValueError as e:
            raise SnapshotError(str(e), context=context, cause=e) from e

        events: list[dict[str, Any]] = []
        events_path = loop_dir / LoopArtifact.EVENTS.filename
        if events_path.is_file():
            events = self._read_json(events_path, case_name, loop_index)

        tool_calls: list[dict[str, Any]] = []
        tools_path = loop_dir / LoopArtifact.TOOL_CALLS.filename
        if tools_path.is_file():
            tool_calls = self._read_json(tools_path, case_name, loop_index)

        return LoopRecord(
            index=loop_index,
            request=request,
            response=response,
            events=events,
            tool_calls=tool_calls,
        )

    def loop_indices(self, case_name: str) -> list[int]:
        """Recorded loop indices, sorted numerically."""
        case_dir = self.case_path(case_name)
        if not case_dir.is_dir():
            return []
        indices = []
        for entry in case_dir.iterdir():
            match = LOOP_DIR_PATTERN.match(entry.name)
            if match and entry.is_dir():
                indices.append(int(match.group(1)))
        return sorted(indices)

    def count(self, case_name: str) -> int:
        """Number of loop entries in a case; unrelated entries are ignored."""
        return len(self.loop_indices(case_name))

    def validate(self, case_name: str) -> int:
        """
        Check that a case can be replayed and return its loop count.

        Raises:
            SnapshotNotFoundError: The case does not exist
            IncompleteSnapshotError: Loop indices are not contiguous from zero
            IncompleteLoopError: A loop lacks its request or response
        """
        case_dir = self.case_path(case_name)
        if not case_dir.is_dir():
            raise SnapshotNotFoundError(
                f"Snapshot '{case_name}' not found at {case_dir}; run generate first",
                path=str(case_dir),
                context=ErrorContext(case_name=case_name, operation="validate"),
            )

        indices = self.loop_indices(case_name)
        expected = list(range(len(indices)))
        if indices != expected:
            gaps = sorted(set(range(max(indices, default=-1) + 1)) - set(indices))
            raise IncompleteSnapshotError(
                f"Snapshot '{case_name}' has non-contiguous loops {indices}; missing {gaps}",
                context=ErrorContext(case_name=case_name, operation="validate"),
            )

        for index in indices:
            loop_dir = self.loop_path(case_name, index)
            missing = [
                part.filename
                for part in (LoopArtifact.REQUEST, LoopArtifact.RESPONSE)
                if not (loop_dir / part.filename).is_file()
            ]
            if missing:
                raise IncompleteLoopError(
                    f"Loop {index} of snapshot '{case_name}' is missing {', '.join(missing)}; "
                    "regenerate the snapshot",
                    missing=missing,
                    context=ErrorContext(case_name=case_name, loop_index=index, operation="validate"),
                )
        return len(indices)

    # -- cleanup -------------------------------------------------------------

    def cleanup_transient(self, case_name: str) -> int:
        """Remove every ``*.actual.json`` under the case; returns how many."""
        case_dir = self.case_path(case_name)
        if not case_dir.is_dir():
            return 0
        removed = 0
        for path in sorted(case_dir.rglob(f"*{ACTUAL_SUFFIX}")):
            path.unlink(missing_ok=True)
            removed += 1
        if removed:
            self._logger.debug("Removed diagnostic artifacts", case=case_name, count=removed)
        return removed

    def remove_loop(self, case_name: str, loop_index: int) -> bool:
        loop_dir = self.loop_path(case_name, loop_index)
        if not loop_dir.is_dir():
            return False
        shutil.rmtree(loop_dir)
        return True

    def prune_from(self, case_name: str, first_index: int) -> list[int]:
        """Remove loop entries with index >= ``first_index``."""
        removed = [i for i in self.loop_indices(case_name) if i >= first_index]
        for index in removed:
            self.remove_loop(case_name, index)
        return removed

    def remove_case(self, case_name: str) -> bool:
        case_dir = self.case_path(case_name)
        if not case_dir.is_dir():
            return False
        shutil.rmtree(case_dir)
        return True


__all__ = [
    "ACTUAL_SUFFIX",
    "LoopArtifact",
    "LoopRecord",
    "RecordedResponse",
    "SnapshotStore",
]
