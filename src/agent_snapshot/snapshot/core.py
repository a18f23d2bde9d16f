"""
AgentSnapshot orchestrator.

Wires the store, normalizer, hooks and verifier around one agent and one
snapshot case:

- ``generate`` runs the agent against its real LLM client and records
  every loop into the store.
- ``replay`` swaps the agent's client for the mock, runs the agent, checks
  the loop count and verifies events and tool calls against the fixture.

Example:
    ```python
    snapshot = AgentSnapshot(agent, SnapshotOptions(snapshot_name="weather"))
    await snapshot.generate("What's the weather in Oslo?")

    result = await snapshot.replay("What's the weather in Oslo?")
    assert result.meta.loop_count == 2
    ```
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from ..agent.events import AgentEvent, AgentEventType
from ..agent.interface import SnapshotAgent
from ..agent.options import RunOptions, as_run_options
from ..cancellation import CancelledError
from ..config.snapshot import EffectiveRunConfig, SnapshotOptions, TestRunConfig, resolve_run_config
from ..errors import ErrorContext, LoopCountMismatchError
from ..logging import get_logger, timed
from .generate_hook import AgentGenerateSnapshotHook
from .normalizer import Normalizer, NormalizerConfig
from .replay_hook import AgentReplaySnapshotHook
from .result import SnapshotGenerationResult, SnapshotMeta, SnapshotRunResult
from .session import RunSession, SnapshotMode
from .store import SnapshotStore
from .verifier import SnapshotVerifier


class AgentSnapshot:
    """
    Record/replay harness for one agent and one snapshot case.

    Args:
        agent: Agent exposing the snapshot boundary (client swap, hooks, events)
        options: Case name, snapshot directory and default run configuration
    """

    def __init__(self, agent: SnapshotAgent, options: SnapshotOptions):
        self.agent = agent
        self.options = options
        self.store = SnapshotStore(options.snapshot_dir)
        self._session: RunSession | None = None
        self._logger = get_logger()

    @property
    def snapshot_name(self) -> str:
        return self.options.snapshot_name

    # === Accessors ===

    def get_current_loop(self) -> int:
        """Replay pointer during a replay; otherwise the agent's loop counter."""
        if self._session is not None and self._session.mode == SnapshotMode.REPLAY:
            return self._session.loop_pointer
        return self.agent.current_loop_iteration

    def get_agent(self) -> SnapshotAgent:
        return self.agent

    def update_normalizer_config(self, config: NormalizerConfig) -> None:
        self.options.normalizer_config = config

    # === Generate ===

    async def generate(self, run_options: str | RunOptions | dict[str, Any]) -> SnapshotGenerationResult:
        """
        Run the agent live and record every loop.

        Existing loop records of the case are replaced.

        Raises:
            IncompleteLoopError: The LLM client failed before a loop was recorded
            ReplayCancelledError: The run was cancelled
        """
        opts = as_run_options(run_options)
        case = self.snapshot_name
        hook = AgentGenerateSnapshotHook(self.agent, self.store, case, Normalizer(self.options.normalizer_config))

        with self._logger.trace_context(snapshot=case, mode=SnapshotMode.GENERATE.value), timed() as timer:
            self._logger.info("Generating snapshot", path=str(self.store.case_path(case)))
            removed = self.store.prune_from(case, 0)
            if removed:
                self._logger.debug("Removed previous loop records", count=len(removed))
            self.store.cleanup_transient(case)
            # A run without LLM calls still leaves a replayable, empty case.
            self.store.case_path(case).mkdir(parents=True, exist_ok=True)

            hook.set_current_run_options(opts)
            hook.hook_agent()
            self._session = hook.session
            try:
                response, events = await self._drive(opts, hook.session)
                loop_count = hook.finalize()
            except CancelledError as e:
                error = hook.session.mark_cancelled(str(e) or None, hook.session.loop_pointer)
                self._logger.warning("Snapshot generation cancelled", reason=error.message)
                raise error from e
            finally:
                hook.unhook_agent()
                hook.session.close()
                self._session = None

            self._logger.success("Snapshot generated", loop_count=loop_count)

        return SnapshotGenerationResult(
            response=response,
            events=events,
            meta=SnapshotMeta(snapshot_name=case, execution_time_ms=timer.elapsed_ms, loop_count=loop_count),
            artifacts_path=self.store.case_path(case),
        )

    # === Replay ===

    async def replay(
        self,
        run_options: str | RunOptions | dict[str, Any],
        config: TestRunConfig | None = None,
    ) -> SnapshotRunResult:
        """
        Run the agent against the recorded fixture and verify it.

        Args:
            run_options: Prompt or run options; streaming runs are consumed here
            config: Per-call overrides; values left as None use the instance defaults

        Raises:
            SnapshotNotFoundError: The case has not been generated
            RequestMismatchError: A live request differs from the recorded one
            UnexpectedLoopError: The agent ran more loops than recorded
            LoopCountMismatchError: The agent ran fewer loops than recorded
            EventStreamMismatchError: The live events differ from the recorded ones
            ToolCallMismatchError: The live tool calls differ from the recorded ones
            ReplayCancelledError: The run was cancelled
        """
        opts = as_run_options(run_options)
        case = self.snapshot_name
        effective = resolve_run_config(self.options, config)
        normalizer = Normalizer(effective.normalizer_config)
        hook = AgentReplaySnapshotHook(self.agent, self.store, case, normalizer)

        with self._logger.trace_context(snapshot=case, mode=SnapshotMode.REPLAY.value), timed() as timer:
            mock = hook.setup(config=effective)
            self._logger.info(
                "Replaying snapshot",
                expected_loops=hook.expected_loop_count,
                update_snapshots=effective.update_snapshots,
            )

            original_client = self.agent.get_llm_client()
            self.agent.set_llm_client(mock)
            hook.set_current_run_options(opts)
            hook.hook_agent()
            self._session = hook.session
            try:
                response, events = await self._drive(opts, hook.session)
                hook.session.raise_if_failed()
                loop_count = self._reconcile_loop_count(hook, effective)
                rewritten = SnapshotVerifier(self.store, normalizer).verify_run(
                    case,
                    hook.live_loops(),
                    effective.verification,
                    update=effective.update_snapshots,
                )
                self.store.cleanup_transient(case)
            except CancelledError as e:
                error = hook.session.mark_cancelled(str(e) or None, hook.current_loop)
                self._logger.warning("Snapshot replay cancelled", reason=error.message)
                raise error from e
            except Exception as e:
                self._logger.log_error(e, "Snapshot replay failed")
                raise
            finally:
                self.agent.set_llm_client(original_client)
                hook.unhook_agent()
                hook.close()
                self._session = None

            self._logger.success("Snapshot replayed", loop_count=loop_count, rewritten=rewritten)

        return SnapshotRunResult(
            response=response,
            events=events,
            meta=SnapshotMeta(snapshot_name=case, execution_time_ms=timer.elapsed_ms, loop_count=loop_count),
            rewritten_artifacts=rewritten,
        )

    # === Internals ===

    async def _drive(self, opts: RunOptions, session: RunSession) -> tuple[AgentEvent | None, list[AgentEvent]]:
        """Run the agent in the requested mode; returns the final response and all events."""
        if not opts.is_streaming:
            response = await self.agent.run(opts)
            session.raise_if_failed()
            return response, list(self.agent.get_event_stream().get_events())

        stream: AsyncIterator[AgentEvent] = await self.agent.run(opts)
        events: list[AgentEvent] = []
        response: AgentEvent | None = None
        try:
            async for event in stream:
                events.append(event)
                if event.type == AgentEventType.ASSISTANT_MESSAGE:
                    response = event
                session.raise_if_failed()
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()
        return response, events

    def _reconcile_loop_count(self, hook: AgentReplaySnapshotHook, effective: EffectiveRunConfig) -> int:
        actual = self.agent.current_loop_iteration
        expected = hook.expected_loop_count + len(hook.captured_loops)
        if actual == expected:
            return actual

        if effective.update_snapshots and actual < expected:
            removed = self.store.prune_from(self.snapshot_name, actual)
            self._logger.warning("Removed stale loop records", loops=removed)
            return actual

        raise LoopCountMismatchError(
            expected,
            actual,
            context=ErrorContext(case_name=self.snapshot_name, loop_index=actual, operation="replay"),
        )


__all__ = ["AgentSnapshot"]
