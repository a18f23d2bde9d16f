"""
Shared test fixtures for agent-snapshot tests.

This module provides:
- Factories for completions and tool calls
- Test tools (async, sync and failing)
- An agent factory around the scripted LLM client
- An AgentSnapshot factory rooted in a temp directory
"""

from __future__ import annotations

import pytest

from agent_snapshot.agent import Agent
from agent_snapshot.config.agent import AgentConfig
from agent_snapshot.config.snapshot import SnapshotOptions
from agent_snapshot.snapshot.core import AgentSnapshot
from agent_snapshot.tools import Tool, tool_from_function
from tests._snapshot_testkit import (
    ScriptedProvider,
    add_numbers,
    get_weather,
    make_completion_result,
    make_failing_tool,
    make_tool_call,
    weather_script,
)

# =============================================================================
# Pytest Fixtures
# =============================================================================


@pytest.fixture
def mock_completion_result():
    """Fixture providing a factory for CompletionResults."""
    return make_completion_result


@pytest.fixture
def mock_tool_call():
    """Fixture providing a factory for ToolCalls."""
    return make_tool_call


@pytest.fixture
def weather_tool() -> Tool:
    return tool_from_function(get_weather)


@pytest.fixture
def add_tool() -> Tool:
    return tool_from_function(add_numbers)


@pytest.fixture
def failing_tool() -> Tool:
    return make_failing_tool()


@pytest.fixture
def scripted_provider():
    """Fixture providing a factory for scripted providers."""

    def _factory(responses=None, model="scripted-model"):
        return ScriptedProvider(responses=responses, model=model)

    return _factory


@pytest.fixture
def agent_factory(weather_tool):
    """Fixture building an Agent around a ScriptedProvider."""

    def _factory(responses=None, tools=None, system_message="You are a weather assistant.", **config):
        provider = ScriptedProvider(responses=responses if responses is not None else weather_script())
        return Agent(
            provider,
            tools=tools if tools is not None else [weather_tool],
            system_message=system_message,
            config=AgentConfig(**config) if config else None,
        )

    return _factory


@pytest.fixture
def snapshot_dir(tmp_path):
    return tmp_path / "__snapshots__"


@pytest.fixture
def snapshot_factory(snapshot_dir):
    """Fixture building an AgentSnapshot for an agent under the temp snapshot dir."""

    def _factory(agent, name="weather", **options):
        return AgentSnapshot(agent, SnapshotOptions(snapshot_name=name, snapshot_dir=snapshot_dir, **options))

    return _factory
