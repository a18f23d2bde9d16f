"""
Replay hook and mock LLM client.

During replay the agent's LLM client is swapped for ``MockLLMClient``. On
every request the mock:

1. rejects requests beyond the fixture's last loop (``UnexpectedLoopError``),
   unless update mode is on and the agent's original client is available,
   in which case the extra loop is answered live and captured;
2. loads the loop record at the current pointer;
3. verifies the normalized live request against the recorded one
   (``RequestMismatchError`` with a structural diff, or a fixture rewrite
   in update mode);
4. answers with the recorded completion, or with a ``ReplayStream`` over the
   recorded chunks;
5. advances the pointer once the response has been fully delivered.

Completions and streams are interchangeable: a completion request against a
streamed fixture receives the assembled result, and a stream request
against a completion fixture receives synthesized chunks.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Sequence
from typing import TYPE_CHECKING, Any

from ..agent.interface import LLMRequest, SnapshotAgent
from ..agent.options import RunOptions
from ..cancellation import CancellationToken, CancelledError
from ..config.snapshot import EffectiveRunConfig, VerificationConfig
from ..errors import (
    ConcurrentRequestError,
    ErrorContext,
    RequestMismatchError,
    UnexpectedLoopError,
)
from ..hooks import LOOP_START, TOOL_END
from ..logging import LoopLog, get_logger
from ..providers.base import BaseProvider, Provider
from ..providers.types import CompletionResult, MessageInput, StreamEvent
from .diff import format_diff, structural_diff
from .generate_hook import LoopCapture, tool_call_record
from .normalizer import Normalizer, PayloadKind
from .session import HookOutcome, RunSession, SnapshotMode
from .store import LoopArtifact, LoopRecord, RecordedResponse, SnapshotStore

if TYPE_CHECKING:
    from ..tools import Tool


class ReplayStream:
    """
    Async iterable over the recorded chunks of one loop.

    Each ``async for`` starts a fresh pass over the chunks. The replay
    pointer advances the first time a pass runs to completion; a cancelled
    pass never advances it.
    """

    def __init__(
        self,
        hook: AgentReplaySnapshotHook,
        loop_index: int,
        chunks: list[StreamEvent],
        token: CancellationToken,
    ):
        self._hook = hook
        self.loop_index = loop_index
        self._chunks = chunks
        self._token = token
        self.delivered = False

    def __len__(self) -> int:
        return len(self._chunks)

    def __aiter__(self) -> AsyncIterator[StreamEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[StreamEvent]:
        for chunk in self._chunks:
            if self._token.is_cancelled:
                raise self._hook.cancel_delivery(self.loop_index, self._token.reason)
            yield StreamEvent(type=chunk.type, data=chunk.data)
        if not self.delivered:
            self.delivered = True
            self._hook.complete_delivery(self.loop_index, streaming=True, chunk_count=len(self._chunks))


class MockLLMClient(BaseProvider):
    """LLM client that answers from a snapshot instead of a provider."""

    def __init__(self, hook: AgentReplaySnapshotHook, model: str = "agent-snapshot-replay"):
        super().__init__(model)
        self._hook = hook

    async def complete(
        self,
        messages: MessageInput,
        *,
        tools: Sequence[Tool] | None = None,
        **params: Any,
    ) -> CompletionResult:
        request = LLMRequest.from_call(messages, tools, **params)
        if self._hook.should_capture():
            return await self._hook.capture_completion(request, messages, tools, params)
        return self._hook.respond(request, streaming=False)

    def stream(
        self,
        messages: MessageInput,
        *,
        tools: Sequence[Tool] | None = None,
        **params: Any,
    ) -> AsyncIterator[StreamEvent]:
        request = LLMRequest.from_call(messages, tools, **params)
        if self._hook.should_capture():
            return self._hook.capture_stream(request, messages, tools, params)
        return self._hook.respond(request, streaming=True)


class AgentReplaySnapshotHook:
    """
    Drives a replay: owns the loop pointer, the mock client and the live
    per-loop capture used by the verifier.
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
        self.session = RunSession(mode=SnapshotMode.REPLAY, case_name=case_name)
        self.capture = LoopCapture()
        self.verification = VerificationConfig()
        self.update_snapshots = False
        self.fallback_client: Provider | None = None
        self.captured_loops: list[int] = []
        self._expected_loop_count = 0
        self._mock: MockLLMClient | None = None
        self._token: CancellationToken = CancellationToken.none()
        self._in_flight: int | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._logger = get_logger()

    # -- setup -----------------------------------------------------------------

    def setup(
        self,
        expected_loop_count: int | None = None,
        config: EffectiveRunConfig | None = None,
    ) -> MockLLMClient:
        """
        Prepare a replay run and return the mock client to install.

        Raises:
            SnapshotNotFoundError: The case does not exist
            IncompleteSnapshotError: The case has gaps in its loop indices
        """
        recorded = self.store.validate(self.case_name)
        self._expected_loop_count = recorded if expected_loop_count is None else expected_loop_count
        if config is not None:
            self.verification = config.verification
            self.update_snapshots = config.update_snapshots
            self.normalizer.update_config(config.normalizer_config)
        self.session = RunSession(mode=SnapshotMode.REPLAY, case_name=self.case_name)
        self.capture.reset()
        self.captured_loops = []
        self._in_flight = None
        self.fallback_client = self.agent.get_llm_client()
        self._mock = MockLLMClient(self)
        return self._mock

    def hook_agent(self) -> None:
        self.agent.add_hook(self)
        self._unsubscribe = self.agent.get_event_stream().subscribe(self.capture.add_event)

    def unhook_agent(self) -> None:
        self.agent.remove_hook(self)
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def set_current_run_options(self, options: RunOptions) -> None:
        self._token = options.token

    def get_mock_llm_client(self) -> MockLLMClient:
        if self._mock is None:
            raise RuntimeError("Replay hook is not set up; call setup() first")
        return self._mock

    @property
    def current_loop(self) -> int:
        return self.session.loop_pointer

    @property
    def expected_loop_count(self) -> int:
        return self._expected_loop_count

    # -- error slot ------------------------------------------------------------

    def has_error(self) -> bool:
        return self.session.has_error()

    def get_last_error(self) -> BaseException | None:
        return self.session.get_last_error()

    def clear_error(self) -> None:
        self.session.clear_error()

    # -- hook protocol ---------------------------------------------------------

    async def emit(self, event: str, payload: dict, context: Any) -> None:
        if event == LOOP_START:
            self.capture.start_loop(payload["loop_index"])
        elif event == TOOL_END:
            record = self.normalizer.normalize(PayloadKind.TOOL_CALL, tool_call_record(payload))
            self.capture.add_tool_call(payload["loop_index"], record)

    # -- request handling ------------------------------------------------------

    def should_capture(self) -> bool:
        """True when the next request lies beyond the fixture and can be answered live."""
        return (
            self.session.loop_pointer >= self._expected_loop_count
            and self.update_snapshots
            and self.fallback_client is not None
        )

    def _check_request_allowed(self) -> int:
        loop_index = self.session.loop_pointer
        if self._in_flight is not None:
            error = ConcurrentRequestError(
                f"LLM request issued while the response of loop {self._in_flight} is still being delivered",
                context=ErrorContext(case_name=self.case_name, loop_index=self._in_flight, operation="replay"),
            )
            self.session.fail(error, loop_index)
            raise error
        if self._token.is_cancelled:
            raise self.cancel_delivery(loop_index, self._token.reason)
        return loop_index

    def respond(self, request: LLMRequest, streaming: bool) -> CompletionResult | ReplayStream:
        """Answer one live request from the fixture."""
        loop_index = self._check_request_allowed()

        if loop_index >= self._expected_loop_count:
            error = UnexpectedLoopError(
                loop_index,
                self._expected_loop_count,
                context=ErrorContext(case_name=self.case_name, operation="replay"),
            )
            self.session.fail(error, loop_index)
            raise error

        try:
            record = self.store.read(self.case_name, loop_index)
            if self.verification.verify_llm_requests:
                self._verify_request(record, request)
        except CancelledError:
            raise
        except Exception as e:
            self.session.fail(e, loop_index)
            raise

        if streaming:
            self._in_flight = loop_index
            return ReplayStream(self, loop_index, record.response.to_chunks(), self._token)

        result = record.response.to_completion()
        self.complete_delivery(loop_index, streaming=False)
        return result

    def _verify_request(self, record: LoopRecord, request: LLMRequest) -> None:
        live = self.normalizer.normalize(PayloadKind.REQUEST, request.to_dict())
        expected = self.normalizer.normalize(PayloadKind.REQUEST, record.request)
        diff = structural_diff(expected, live)
        if not diff:
            return

        if self.update_snapshots:
            self.store.write_part(self.case_name, record.index, LoopArtifact.REQUEST, live)
            self._logger.warning(
                "Updated recorded LLM request",
                case=self.case_name,
                loop_index=record.index,
                differences=len(diff),
            )
            return

        self.store.write_actual(self.case_name, record.index, LoopArtifact.REQUEST, live)
        raise RequestMismatchError(
            f"LLM request mismatch at loop {record.index} of snapshot '{self.case_name}' "
            f"({len(diff)} differences):\n{format_diff(diff)}",
            diff=diff,
            context=ErrorContext(case_name=self.case_name, loop_index=record.index, operation="replay"),
        )

    def complete_delivery(self, loop_index: int, streaming: bool, chunk_count: int = 0) -> None:
        """Mark a loop's response as fully delivered and advance the pointer."""
        if self._in_flight == loop_index:
            self._in_flight = None
        if self.session.loop_pointer != loop_index:
            return
        self.session.loop_pointer = loop_index + 1
        self.session.record(HookOutcome.success(loop_index))
        self._logger.log_loop(
            LoopLog(
                loop_index=loop_index,
                mode=SnapshotMode.REPLAY.value,
                action="replayed",
                streaming=streaming,
                chunk_count=chunk_count,
            )
        )

    def cancel_delivery(self, loop_index: int, reason: str | None) -> CancelledError:
        """Record a cancellation; returns the exception to raise."""
        if self._in_flight == loop_index:
            self._in_flight = None
        self.session.mark_cancelled(reason, loop_index)
        return CancelledError(reason or "Replay was cancelled")

    # -- update mode: capture loops beyond the fixture ---------------------------

    def _captured(self, loop_index: int, request: LLMRequest, response: RecordedResponse) -> None:
        record = LoopRecord(
            index=loop_index,
            request=self.normalizer.normalize(PayloadKind.REQUEST, request.to_dict()),
            response=RecordedResponse.from_dict(
                self.normalizer.normalize(PayloadKind.RESPONSE, response.to_dict())
            ),
        )
        self.store.write(self.case_name, loop_index, record)
        self.captured_loops.append(loop_index)
        self.session.loop_pointer = loop_index + 1
        self.session.record(HookOutcome.success(loop_index))
        self._logger.log_loop(
            LoopLog(
                loop_index=loop_index,
                mode=SnapshotMode.REPLAY.value,
                action="captured",
                streaming=response.is_stream,
                chunk_count=len(response.chunks or []),
                fingerprint=record.fingerprint,
            )
        )

    async def capture_completion(
        self,
        request: LLMRequest,
        messages: MessageInput,
        tools: Sequence[Tool] | None,
        params: dict[str, Any],
    ) -> CompletionResult:
        loop_index = self._check_request_allowed()
        try:
            result = await self.fallback_client.complete(messages, tools=tools, **params)
        except CancelledError:
            raise
        except Exception as e:
            self.session.fail(e, loop_index)
            raise
        self._captured(loop_index, request, RecordedResponse.from_completion(result))
        return result

    async def capture_stream(
        self,
        request: LLMRequest,
        messages: MessageInput,
        tools: Sequence[Tool] | None,
        params: dict[str, Any],
    ) -> AsyncIterator[StreamEvent]:
        loop_index = self._check_request_allowed()
        self._in_flight = loop_index
        chunks: list[StreamEvent] = []
        try:
            async for chunk in self.fallback_client.stream(messages, tools=tools, **params):
                if self._token.is_cancelled:
                    raise self.cancel_delivery(loop_index, self._token.reason)
                chunks.append(chunk)
                yield chunk
        except CancelledError:
            raise
        except Exception as e:
            self.session.fail(e, loop_index)
            raise
        finally:
            if self._in_flight == loop_index:
                self._in_flight = None
        self._captured(loop_index, request, RecordedResponse.from_chunks(chunks))

    # -- results ---------------------------------------------------------------

    def live_loops(self) -> dict[int, dict[str, list[dict[str, Any]]]]:
        """Live events and tool calls per loop, for the verifier."""
        return {
            index: {
                "events": self.capture.events.get(index, []),
                "tool_calls": self.capture.tool_calls.get(index, []),
            }
            for index in self.capture.loops()
        }

    def close(self) -> None:
        self.session.close()
        self._in_flight = None
        self._mock = None


__all__ = ["AgentReplaySnapshotHook", "MockLLMClient", "ReplayStream"]
