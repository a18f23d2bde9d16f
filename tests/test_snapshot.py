"""
Tests for the AgentSnapshot orchestrator and its run configuration.
"""

from pathlib import Path

import pytest

import agent_snapshot
from agent_snapshot import AgentSnapshot, SnapshotOptions, TestRunConfig, VerificationConfig, VerificationOverride
from agent_snapshot.agent import Agent, AgentEventType
from agent_snapshot.errors import InvalidConfigError, RequestMismatchError
from agent_snapshot.snapshot.normalizer import (
    DEFAULT_MASK_PLACEHOLDER,
    FieldRule,
    NormalizeAction,
    NormalizerConfig,
    PayloadKind,
    normalize,
)
from agent_snapshot.config.snapshot import resolve_run_config
from agent_snapshot.snapshot.store import SnapshotStore

from tests._snapshot_testkit import ScriptedProvider

PROMPT = "What's the weather in Oslo?"


class TestSnapshotOptions:
    def test_defaults(self):
        options = SnapshotOptions(snapshot_name="case")

        assert options.snapshot_dir == Path("__snapshots__")
        assert options.case_path == Path("__snapshots__") / "case"
        assert options.update_snapshots is False
        assert isinstance(options.normalizer_config, NormalizerConfig)
        assert options.verification == VerificationConfig()

    def test_coerces_mappings(self, tmp_path):
        options = SnapshotOptions(
            snapshot_name="case",
            snapshot_dir=str(tmp_path),
            normalizer_config={"ignore": ["usage"]},
            verification={"verify_tool_calls": False},
        )

        assert options.snapshot_dir == tmp_path
        assert options.normalizer_config.ignore == ["usage"]
        assert options.verification.verify_tool_calls is False

    @pytest.mark.parametrize("name", ["", "..", "a/b", "a\\b"])
    def test_invalid_names(self, name):
        with pytest.raises(InvalidConfigError):
            SnapshotOptions(snapshot_name=name)


class TestResolveRunConfig:
    """Per-call values override instance defaults."""

    def test_no_override(self):
        options = SnapshotOptions(snapshot_name="case", update_snapshots=True)

        effective = resolve_run_config(options, None)

        assert effective.update_snapshots is True
        assert effective.normalizer_config is options.normalizer_config
        assert effective.verification == VerificationConfig()
        assert effective.verification is not options.verification

    def test_update_flag_override(self):
        options = SnapshotOptions(snapshot_name="case", update_snapshots=True)

        assert resolve_run_config(options, TestRunConfig(update_snapshots=False)).update_snapshots is False

    def test_verification_override_is_partial(self):
        options = SnapshotOptions(snapshot_name="case", verification=VerificationConfig(verify_tool_calls=False))
        override = TestRunConfig(verification=VerificationOverride(verify_event_streams=False))

        effective = resolve_run_config(options, override)

        assert effective.verification == VerificationConfig(
            verify_llm_requests=True,
            verify_event_streams=False,
            verify_tool_calls=False,
        )

    def test_normalizer_configs_merge(self):
        options = SnapshotOptions(
            snapshot_name="case",
            normalizer_config=NormalizerConfig(ignore=["usage"], rules=[FieldRule("model")]),
        )
        override = TestRunConfig(
            normalizer_config=NormalizerConfig(ignore=["usage", "name"], mask_placeholder="***")
        )

        merged = resolve_run_config(options, override).normalizer_config

        assert merged.ignore == ["usage", "name"]
        assert [r.pattern for r in merged.rules] == ["model"]
        assert merged.mask_placeholder == "***"

    def test_per_call_rule_wins_over_instance_ignore(self):
        options = SnapshotOptions(snapshot_name="case", normalizer_config=NormalizerConfig(ignore=["temperature"]))
        override = TestRunConfig(
            normalizer_config=NormalizerConfig(rules=[FieldRule("temperature", NormalizeAction.MASK)])
        )

        config = resolve_run_config(options, override).normalizer_config

        assert normalize(PayloadKind.REQUEST, {"temperature": 0.2}, config) == {
            "temperature": DEFAULT_MASK_PLACEHOLDER
        }

    def test_per_call_ignore_wins_over_instance_rule(self):
        options = SnapshotOptions(
            snapshot_name="case",
            normalizer_config=NormalizerConfig(rules=[FieldRule("model", NormalizeAction.MASK)]),
        )
        override = TestRunConfig(normalizer_config=NormalizerConfig(ignore=["model"]))

        config = resolve_run_config(options, override).normalizer_config

        assert normalize(PayloadKind.REQUEST, {"model": "gpt", "n": 1}, config) == {"n": 1}


class TestAgentSnapshot:
    def test_package_exports(self):
        assert agent_snapshot.AgentSnapshot is AgentSnapshot
        assert agent_snapshot.__version__

    def test_accessors(self, agent_factory, snapshot_factory, snapshot_dir):
        agent = agent_factory()
        snapshot = snapshot_factory(agent)

        assert snapshot.get_agent() is agent
        assert snapshot.snapshot_name == "weather"
        assert snapshot.store.base_dir == snapshot_dir
        assert snapshot.get_current_loop() == 0

    async def test_current_loop_after_generate(self, agent_factory, snapshot_factory):
        snapshot = snapshot_factory(agent_factory())
        await snapshot.generate(PROMPT)

        # Outside a replay the agent's own counter is reported.
        assert snapshot.get_current_loop() == 2

    async def test_update_normalizer_config(self, agent_factory, snapshot_factory, snapshot_dir):
        snapshot = snapshot_factory(agent_factory())
        snapshot.update_normalizer_config(
            NormalizerConfig(rules=[FieldRule("model", NormalizeAction.MASK)])
        )

        await snapshot.generate(PROMPT)

        record = SnapshotStore(snapshot_dir).read("weather", 0)
        assert record.response.completion["model"] == DEFAULT_MASK_PLACEHOLDER

    async def test_instance_normalizer_applies_to_replay(self, agent_factory, snapshot_factory):
        await snapshot_factory(agent_factory()).generate(PROMPT)
        pirate = snapshot_factory(agent_factory(system_message="You are a pirate."))

        with pytest.raises(RequestMismatchError):
            await pirate.replay(PROMPT)

        pirate.update_normalizer_config(
            NormalizerConfig(rules=[FieldRule("messages.0.content", NormalizeAction.MASK)])
        )
        result = await pirate.replay(PROMPT)
        assert result.meta.loop_count == 2

    async def test_result_serializes(self, agent_factory, snapshot_factory, snapshot_dir):
        result = await snapshot_factory(agent_factory()).generate(PROMPT)

        data = result.to_dict()

        assert data["meta"]["loop_count"] == 2
        assert data["meta"]["snapshot_name"] == "weather"
        assert data["artifacts_path"] == str(snapshot_dir / "weather")
        assert data["response"]["data"]["content"] == "It is sunny in Oslo."

    async def test_cases_are_independent(self, agent_factory, snapshot_factory, snapshot_dir):
        await snapshot_factory(agent_factory(), name="first").generate(PROMPT)
        await snapshot_factory(agent_factory(), name="second").generate("Weather in Bergen?")

        store = SnapshotStore(snapshot_dir)
        assert store.count("first") == 2
        assert store.count("second") == 2

        await snapshot_factory(agent_factory(), name="first").replay(PROMPT)
        await snapshot_factory(agent_factory(), name="second").replay("Weather in Bergen?")


class CannedAnswerAgent(Agent):
    """Answers from a canned reply without consulting its LLM client."""

    async def _execute(self, opts):
        self._loop_iteration = 0
        self._event_stream.clear()
        yield self._send(AgentEventType.AGENT_RUN_START, {"agent": self.name})
        yield self._send(AgentEventType.ASSISTANT_MESSAGE, {"content": "Hello!", "tool_calls": []})
        yield self._send(AgentEventType.AGENT_RUN_END, {"status": "success"})


class TestZeroLoopCase:
    async def test_generate_creates_empty_case(self, snapshot_factory, snapshot_dir):
        snapshot = snapshot_factory(CannedAnswerAgent(ScriptedProvider([])), name="zero")

        result = await snapshot.generate("hi")

        assert result.loop_count == 0
        assert result.artifacts_path == snapshot_dir / "zero"
        assert result.artifacts_path.is_dir()
        assert SnapshotStore(snapshot_dir).exists("zero")
        assert SnapshotStore(snapshot_dir).validate("zero") == 0

    async def test_zero_loop_round_trip(self, snapshot_factory):
        provider = ScriptedProvider([])
        snapshot = snapshot_factory(CannedAnswerAgent(provider), name="zero")
        await snapshot.generate("hi")

        result = await snapshot.replay("hi")

        assert result.meta.loop_count == 0
        assert result.response.data["content"] == "Hello!"
        assert provider.calls == []
