"""
Tests for snapshot generation (recording a live run).
"""

import json

import pytest

from agent_snapshot.agent.options import NonStreamingRunOptions, StreamingRunOptions
from agent_snapshot.cancellation import CancellationToken
from agent_snapshot.errors import IncompleteLoopError, ReplayCancelledError
from agent_snapshot.hooks import LLM_REQUEST, LOOP_START
from agent_snapshot.snapshot.generate_hook import AgentGenerateSnapshotHook, LoopCapture, tool_call_record
from agent_snapshot.snapshot.normalizer import DEFAULT_MASK_PLACEHOLDER, Normalizer
from agent_snapshot.snapshot.store import LoopArtifact, SnapshotStore

from tests._snapshot_testkit import make_completion_result, make_tool_call


def read_artifact(snapshot_dir, case, loop, part: LoopArtifact):
    return json.loads((snapshot_dir / case / f"loop-{loop}" / part.filename).read_text())


class TestGenerate:
    """Test recording through AgentSnapshot.generate."""

    async def test_generate_writes_one_entry_per_loop(self, agent_factory, snapshot_factory, snapshot_dir):
        """A tool call followed by a final answer produces two loop records."""
        snapshot = snapshot_factory(agent_factory())

        result = await snapshot.generate("What's the weather in Oslo?")

        assert result.loop_count == 2
        assert result.meta.snapshot_name == "weather"
        assert result.meta.execution_time_ms >= 0
        assert result.artifacts_path == snapshot_dir / "weather"
        assert result.content == "It is sunny in Oslo."
        assert SnapshotStore(snapshot_dir).loop_indices("weather") == [0, 1]

    async def test_generate_returns_full_event_list(self, agent_factory, snapshot_factory):
        snapshot = snapshot_factory(agent_factory())

        result = await snapshot.generate("What's the weather in Oslo?")

        types = [e.type.value for e in result.events]
        assert types == [
            "agent_run_start",
            "user_message",
            "assistant_message",
            "tool_call",
            "tool_result",
            "assistant_message",
            "agent_run_end",
        ]

    async def test_events_attributed_to_loops(self, agent_factory, snapshot_factory, snapshot_dir):
        """Events before loop 0 belong to loop 0; trailing events belong to the last loop."""
        snapshot = snapshot_factory(agent_factory())
        await snapshot.generate("What's the weather in Oslo?")

        loop0 = read_artifact(snapshot_dir, "weather", 0, LoopArtifact.EVENTS)
        loop1 = read_artifact(snapshot_dir, "weather", 1, LoopArtifact.EVENTS)

        assert [e["type"] for e in loop0] == [
            "agent_run_start",
            "user_message",
            "assistant_message",
            "tool_call",
            "tool_result",
        ]
        assert [e["type"] for e in loop1] == ["assistant_message", "agent_run_end"]
        assert all(e["id"] == DEFAULT_MASK_PLACEHOLDER for e in loop0 + loop1)
        assert all(e["timestamp"] == DEFAULT_MASK_PLACEHOLDER for e in loop0 + loop1)

    async def test_tool_calls_recorded(self, agent_factory, snapshot_factory, snapshot_dir):
        snapshot = snapshot_factory(agent_factory())
        await snapshot.generate("What's the weather in Oslo?")

        calls = read_artifact(snapshot_dir, "weather", 0, LoopArtifact.TOOL_CALLS)

        assert calls == [
            {
                "arguments": '{"city": "Oslo"}',
                "name": "get_weather",
                "result": {
                    "content": {"city": "Oslo", "forecast": "sunny", "temperature_c": 21},
                    "error": None,
                    "success": True,
                },
                "tool_call_id": DEFAULT_MASK_PLACEHOLDER,
            }
        ]
        assert read_artifact(snapshot_dir, "weather", 1, LoopArtifact.TOOL_CALLS) == []

    async def test_requests_are_normalized(self, agent_factory, snapshot_factory, snapshot_dir):
        snapshot = snapshot_factory(agent_factory())
        await snapshot.generate("What's the weather in Oslo?")

        request = read_artifact(snapshot_dir, "weather", 1, LoopArtifact.REQUEST)

        roles = [m["role"] for m in request["messages"]]
        assert roles == ["system", "user", "assistant", "tool"]
        assert request["messages"][3]["tool_call_id"] == DEFAULT_MASK_PLACEHOLDER
        assert request["tools"][0]["function"]["name"] == "get_weather"

    async def test_response_keeps_tool_call_ids(self, agent_factory, snapshot_factory, snapshot_dir):
        snapshot = snapshot_factory(agent_factory())
        await snapshot.generate("What's the weather in Oslo?")

        response = read_artifact(snapshot_dir, "weather", 0, LoopArtifact.RESPONSE)

        assert response["kind"] == "completion"
        assert response["completion"]["tool_calls"][0]["id"] == "call_1"

    async def test_streaming_generate_records_chunks(self, agent_factory, snapshot_factory, snapshot_dir):
        snapshot = snapshot_factory(agent_factory())

        result = await snapshot.generate(StreamingRunOptions(input="What's the weather in Oslo?"))

        assert result.loop_count == 2
        final = read_artifact(snapshot_dir, "weather", 1, LoopArtifact.RESPONSE)
        assert final["kind"] == "stream"
        tokens = [c["data"] for c in final["chunks"] if c["type"] == "token"]
        assert "".join(tokens) == "It is sunny in Oslo."
        assert final["chunks"][-1]["type"] == "done"

        loop1 = read_artifact(snapshot_dir, "weather", 1, LoopArtifact.EVENTS)
        streamed = [e for e in loop1 if e["type"] == "assistant_streaming_message"]
        assert len(streamed) == len(tokens)

    async def test_generate_replaces_previous_fixture(self, agent_factory, snapshot_factory, snapshot_dir):
        """Stale loops from a longer earlier recording are removed."""
        snapshot = snapshot_factory(
            agent_factory(
                responses=[
                    make_completion_result(content=None, tool_calls=[make_tool_call(id=f"c{i}")])
                    for i in range(3)
                ]
                + [make_completion_result(content="done")]
            )
        )
        await snapshot.generate("Weather?")
        assert SnapshotStore(snapshot_dir).count("weather") == 4

        short = snapshot_factory(agent_factory(responses=[make_completion_result(content="Hi")]))
        await short.generate("Weather?")
        assert SnapshotStore(snapshot_dir).loop_indices("weather") == [0]

    async def test_generate_removes_diagnostic_files(self, agent_factory, snapshot_factory, snapshot_dir):
        snapshot = snapshot_factory(agent_factory())
        await snapshot.generate("Weather?")
        store = SnapshotStore(snapshot_dir)
        stale = store.write_actual("weather", 0, LoopArtifact.REQUEST, {})

        await snapshot.generate("Weather?")

        assert not stale.exists()

    async def test_client_failure_fails_generation(self, agent_factory, snapshot_factory, snapshot_dir):
        """A loop whose request never got a response leaves an incomplete fixture."""
        snapshot = snapshot_factory(agent_factory(responses=[RuntimeError("provider down")]))

        with pytest.raises(IncompleteLoopError) as exc_info:
            await snapshot.generate("Weather?")

        assert exc_info.value.loop_index == 0
        loop_dir = snapshot_dir / "weather" / "loop-0"
        assert (loop_dir / LoopArtifact.REQUEST.filename).is_file()
        assert not (loop_dir / LoopArtifact.RESPONSE.filename).exists()

    async def test_cancelled_generation(self, agent_factory, snapshot_factory):
        token = CancellationToken()
        token.cancel("stop")
        snapshot = snapshot_factory(agent_factory())

        with pytest.raises(ReplayCancelledError, match="stop"):
            await snapshot.generate(NonStreamingRunOptions(input="Weather?", cancellation_token=token))

    async def test_hook_removed_after_generate(self, agent_factory, snapshot_factory):
        agent = agent_factory()
        snapshot = snapshot_factory(agent)
        await snapshot.generate("Weather?")

        assert len(agent._hooks) == 0


class TestGenerateHook:
    """Test the recording hook directly."""

    def make_hook(self, agent, snapshot_dir):
        return AgentGenerateSnapshotHook(agent, SnapshotStore(snapshot_dir), "direct", Normalizer())

    def test_hook_and_unhook(self, agent_factory, snapshot_dir):
        agent = agent_factory()
        hook = self.make_hook(agent, snapshot_dir)

        hook.hook_agent()
        assert hook in agent._hooks
        hook.unhook_agent()
        assert hook not in agent._hooks

    async def test_request_staged_immediately(self, agent_factory, snapshot_dir):
        hook = self.make_hook(agent_factory(), snapshot_dir)

        await hook.emit(LOOP_START, {"loop_index": 0}, None)
        await hook.emit(LLM_REQUEST, {"loop_index": 0, "request": {"messages": [], "tools": [], "params": {}}}, None)

        assert (snapshot_dir / "direct" / "loop-0" / LoopArtifact.REQUEST.filename).is_file()
        assert hook.loop_count() == 0

    async def test_response_without_request_fails(self, agent_factory, snapshot_dir):
        hook = self.make_hook(agent_factory(), snapshot_dir)

        with pytest.raises(Exception, match="arrived before its request"):
            hook.after_llm_response(3, make_completion_result().to_dict())

    async def test_callbacks_skipped_after_error(self, agent_factory, snapshot_dir):
        hook = self.make_hook(agent_factory(), snapshot_dir)
        hook.session.fail(RuntimeError("earlier failure"), 0)

        await hook.emit(LLM_REQUEST, {"loop_index": 0, "request": {"messages": []}}, None)

        assert not (snapshot_dir / "direct").exists()
        assert isinstance(hook.get_last_error(), RuntimeError)
        hook.clear_error()
        assert not hook.has_error()


class TestLoopCapture:
    def test_pending_events_join_loop_zero(self):
        from agent_snapshot.agent.events import AgentEvent, AgentEventType

        capture = LoopCapture()
        capture.add_event(AgentEvent(type=AgentEventType.AGENT_RUN_START))
        capture.start_loop(0)
        capture.add_event(AgentEvent(type=AgentEventType.SYSTEM))
        capture.start_loop(1)

        assert [e["type"] for e in capture.events[0]] == ["agent_run_start", "system"]
        assert capture.events[1] == []
        assert capture.loops() == [0, 1]

    def test_tool_call_record(self):
        payload = {
            "loop_index": 0,
            "tool_call": {"id": "call_1", "name": "x", "arguments": "{}"},
            "result": {"content": "ok", "success": True, "error": None},
        }
        assert tool_call_record(payload) == {
            "name": "x",
            "arguments": "{}",
            "result": {"content": "ok", "success": True, "error": None},
            "tool_call_id": "call_1",
        }
