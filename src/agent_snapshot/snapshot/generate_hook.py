"""
Recording hook for generate runs.

The hook observes a live agent run without altering it: every LLM request
is normalized and staged on disk as soon as it is issued, the response is
written once it has been fully received, and the events and tool calls of
each loop are flushed when the next loop starts (or at ``finalize``).

Events emitted before loop 0 starts (run start, user input) belong to
loop 0; events after the last loop start belong to the last loop.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from ..agent.events import AgentEvent
from ..agent.interface import SnapshotAgent
from ..agent.options import RunOptions
from ..errors import ErrorContext, IncompleteLoopError, SnapshotError
from ..hooks import LLM_REQUEST, LLM_RESPONSE, LLM_STREAM, LOOP_START, TOOL_END
from ..logging import LoopLog, get_logger
from .normalizer import Normalizer, PayloadKind
from .session import HookOutcome, RunSession, SnapshotMode
from .store import LoopArtifact, LoopRecord, RecordedResponse, SnapshotStore


class LoopCapture:
    """Collects live events and tool calls per loop index."""

    def __init__(self) -> None:
        self.current: int | None = None
        self.events: dict[int, list[dict[str, Any]]] = {}
        self.tool_calls: dict[int, list[dict[str, Any]]] = {}
        self._pending: list[dict[str, Any]] = []

    def start_loop(self, loop_index: int) -> None:
        self.current = loop_index
        self.events.setdefault(loop_index, []).extend(self._pending)
        self._pending = []
        self.tool_calls.setdefault(loop_index, [])

    def add_event(self, event: AgentEvent) -> None:
        if self.current is None:
            self._pending.append(event.to_dict())
        else:
            self.events[self.current].append(event.to_dict())

    def add_tool_call(self, loop_index: int, call: dict[str, Any]) -> None:
        self.tool_calls.setdefault(loop_index, []).append(call)

    def loops(self) -> list[int]:
        return sorted(self.events)

    def reset(self) -> None:
        self.current = None
        self.events.clear()
        self.tool_calls.clear()
        self._pending = []


def tool_call_record(payload: dict[str, Any]) -> dict[str, Any]:
    """Flatten a ``tool.end`` payload into the persisted tool-call shape."""
    call = payload.get("tool_call") or {}
    return {
        "name": call.get("name"),
        "arguments": call.get("arguments"),
        "result": payload.get("result"),
        "tool_call_id": call.get("id"),
    }


class AgentGenerateSnapshotHook:
    """
    Hook that records a live run into the snapshot store.

    Example:
        ```python
        hook = AgentGenerateSnapshotHook(agent, store, "weather", normalizer)
        hook.hook_agent()
        try:
            await agent.run("Weather in Oslo?")
            hook.finalize()
        finally:
            hook.unhook_agent()
        ```
    """

    def __init__(
        self,
        agent: SnapshotAgent,
        store: SnapshotStore,
        case_name: str,
        normalizer: Normalizer,
    ):
        self.agent = agent
        self.store = store
        self.case_name = case_name
        self.normalizer = normalizer
        self.session = RunSession(mode=SnapshotMode.GENERATE, case_name=case_name)
        self.capture = LoopCapture()
        self._run_options: RunOptions | None = None
        self._staged: dict[int, dict[str, Any]] = {}
        self._written: set[int] = set()
        self._unsubscribe: Callable[[], None] | None = None
        self._logger = get_logger()

    # -- lifecycle -------------------------------------------------------------

    def hook_agent(self) -> None:
        self.agent.add_hook(self)
        self._unsubscribe = self.agent.get_event_stream().subscribe(self.capture.add_event)

    def unhook_agent(self) -> None:
        self.agent.remove_hook(self)
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def set_current_run_options(self, options: RunOptions) -> None:
        self._run_options = options

    def loop_count(self) -> int:
        return len(self._written)

    # -- error slot ------------------------------------------------------------

    def has_error(self) -> bool:
        return self.session.has_error()

    def get_last_error(self) -> BaseException | None:
        return self.session.get_last_error()

    def clear_error(self) -> None:
        self.session.clear_error()

    # -- hook protocol ---------------------------------------------------------

    async def emit(self, event: str, payload: dict, context: Any) -> None:
        if self.session.has_error():
            return
        loop_index = payload.get("loop_index")
        try:
            if event == LOOP_START:
                outcome = self.on_loop_start(loop_index)
            elif event == LLM_REQUEST:
                outcome = self.before_llm_request(loop_index, payload["request"])
            elif event == LLM_RESPONSE:
                outcome = self.after_llm_response(loop_index, payload["response"])
            elif event == LLM_STREAM:
                outcome = self.after_llm_stream(loop_index, payload["chunks"])
            elif event == TOOL_END:
                outcome = self.on_tool_call_end(loop_index, payload)
            else:
                return
        except Exception as e:
            outcome = self.session.fail(e, loop_index)
            self._logger.log_error(e, "Snapshot generation failed", loop_index=loop_index)
        if not outcome.ok:
            raise outcome.error

    # -- boundary callbacks ----------------------------------------------------

    def on_loop_start(self, loop_index: int) -> HookOutcome:
        if self.capture.current is not None:
            self._flush_loop(self.capture.current)
        self.capture.start_loop(loop_index)
        self.session.loop_pointer = loop_index
        return self.session.record(HookOutcome.success(loop_index))

    def before_llm_request(self, loop_index: int, request: dict[str, Any]) -> HookOutcome:
        normalized = self.normalizer.normalize(PayloadKind.REQUEST, request)
        self._staged[loop_index] = normalized
        self.store.write_part(self.case_name, loop_index, LoopArtifact.REQUEST, normalized)
        return self.session.record(HookOutcome.success(loop_index))

    def after_llm_response(self, loop_index: int, response: dict[str, Any]) -> HookOutcome:
        return self._write_record(loop_index, RecordedResponse.from_completion(response), streaming=False)

    def after_llm_stream(self, loop_index: int, chunks: list[dict[str, Any]]) -> HookOutcome:
        return self._write_record(loop_index, RecordedResponse.from_chunks(chunks), streaming=True)

    def on_tool_call_end(self, loop_index: int, payload: dict[str, Any]) -> HookOutcome:
        record = self.normalizer.normalize(PayloadKind.TOOL_CALL, tool_call_record(payload))
        self.capture.add_tool_call(loop_index, record)
        return self.session.record(HookOutcome.success(loop_index))

    def finalize(self) -> int:
        """
        Flush the trailing loop and return the number of loops written.

        Raises:
            IncompleteLoopError: A loop issued a request but never got a response
        """
        if self.capture.current is not None:
            self._flush_loop(self.capture.current)
        unanswered = sorted(set(self._staged) - self._written)
        if unanswered:
            error = IncompleteLoopError(
                f"Loop {unanswered[0]} issued an LLM request but no response was recorded; "
                "the LLM client failed during generation",
                missing=[LoopArtifact.RESPONSE.filename],
                context=ErrorContext(case_name=self.case_name, loop_index=unanswered[0], operation="generate"),
            )
            self.session.fail(error, unanswered[0])
            raise error
        return self.loop_count()

    # -- internals -------------------------------------------------------------

    def _write_record(self, loop_index: int, response: RecordedResponse, streaming: bool) -> HookOutcome:
        request = self._staged.get(loop_index)
        if request is None:
            raise SnapshotError(
                f"Response for loop {loop_index} arrived before its request",
                context=ErrorContext(case_name=self.case_name, loop_index=loop_index, operation="generate"),
            )
        normalized = RecordedResponse.from_dict(
            self.normalizer.normalize(PayloadKind.RESPONSE, response.to_dict())
        )
        record = LoopRecord(index=loop_index, request=request, response=normalized)
        self.store.write(self.case_name, loop_index, record)
        self._written.add(loop_index)
        self._logger.log_loop(
            LoopLog(
                loop_index=loop_index,
                mode=SnapshotMode.GENERATE.value,
                action="recorded",
                streaming=streaming,
                chunk_count=len(response.chunks or []),
                fingerprint=record.fingerprint,
            )
        )
        return self.session.record(HookOutcome.success(loop_index))

    def _flush_loop(self, loop_index: int) -> None:
        if loop_index not in self._written:
            return
        events = [self.normalizer.normalize(PayloadKind.EVENT, e) for e in self.capture.events.get(loop_index, [])]
        self.store.write_part(self.case_name, loop_index, LoopArtifact.EVENTS, events)
        self.store.write_part(
            self.case_name, loop_index, LoopArtifact.TOOL_CALLS, self.capture.tool_calls.get(loop_index, [])
        )


__all__ = ["AgentGenerateSnapshotHook", "LoopCapture", "tool_call_record"]
