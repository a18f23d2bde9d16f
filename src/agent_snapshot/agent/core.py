"""
Reference agent implementation.

A bounded tool-calling loop that exposes the boundary the snapshot harness
hooks into: a swappable LLM client, lifecycle hooks, an event stream and a
loop counter.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from ..cancellation import CancelledError
from ..config.agent import AgentConfig
from ..hooks import (
    LLM_REQUEST,
    LLM_RESPONSE,
    LLM_STREAM,
    LOOP_END,
    LOOP_START,
    TOOL_END,
    TOOL_START,
    Hook,
    HookManager,
)
from ..logging import get_logger
from ..providers.base import Provider
from ..providers.types import (
    CompletionResult,
    Message,
    StreamEvent,
    StreamEventType,
    completion_from_events,
    normalize_messages,
)
from ..tools import Tool, ToolRegistry, ToolResult
from .events import AgentEvent, AgentEventStream, AgentEventType
from .interface import LLMRequest
from .options import RunOptions, as_run_options
from .result import AgentRunResult


class Agent:
    """
    Tool-calling agent driven by an LLM client.

    Each loop iteration issues one LLM request, executes any tool calls the
    model made and feeds the results back; the run ends when the model
    answers without tool calls or ``max_iterations`` is reached. Every run
    starts from the system message and the run input, so repeated runs of
    the same input issue the same requests.

    Example:
        ```python
        agent = Agent(
            llm_client=my_client,
            tools=[tool_from_function(get_weather)],
            system_message="You are a weather assistant.",
        )

        final = await agent.run("Weather in Oslo?")
        print(final.data["content"])

        stream = await agent.run(StreamingRunOptions(input="Weather in Oslo?"))
        async for event in stream:
            ...
        ```
    """

    def __init__(
        self,
        llm_client: Provider,
        *,
        tools: list[Tool] | ToolRegistry | None = None,
        system_message: str | None = None,
        config: AgentConfig | None = None,
        hooks: list[Hook] | None = None,
        name: str = "agent",
        # Shortcut for config.max_iterations
        max_iterations: int | None = None,
    ) -> None:
        self.name = name
        self._llm_client = llm_client

        if isinstance(tools, ToolRegistry):
            self.tools = tools
        else:
            self.tools = ToolRegistry(tools or [])

        self.config = config or AgentConfig()
        if max_iterations is not None:
            self.config.max_iterations = max_iterations

        self.system_message = system_message
        self._hooks = HookManager(hooks)
        self._event_stream = AgentEventStream()
        self._loop_iteration = 0
        self.last_result: AgentRunResult | None = None
        self._logger = get_logger()

    # === Boundary ===

    @property
    def current_loop_iteration(self) -> int:
        """Loops started in the current (or last) run; 0 before any run."""
        return self._loop_iteration

    def set_llm_client(self, client: Provider) -> None:
        self._llm_client = client

    def get_llm_client(self) -> Provider:
        return self._llm_client

    def add_hook(self, hook: Hook) -> None:
        self._hooks.add(hook)

    def remove_hook(self, hook: Hook) -> bool:
        return self._hooks.remove(hook)

    def get_event_stream(self) -> AgentEventStream:
        return self._event_stream

    # === Main API ===

    async def run(self, options: str | RunOptions | dict[str, Any]) -> AgentEvent | AsyncIterator[AgentEvent]:
        """
        Run the agent.

        Non-streaming runs return the final assistant message event.
        Streaming runs return an async iterator over every event of the run,
        ending with the final assistant message and the run-end event.

        LLM client failures end the run with an error result; hook failures
        and cancellation propagate to the caller.
        """
        opts = as_run_options(options)
        if opts.is_streaming:
            return self._execute(opts)

        final: AgentEvent | None = None
        async for event in self._execute(opts):
            if event.type == AgentEventType.ASSISTANT_MESSAGE:
                final = event
        if final is None:
            raise RuntimeError("Agent run ended without an assistant message")
        return final

    async def chat(self, message: str) -> str:
        """Simple chat interface; returns just the response text."""
        final = await self.run(message)
        return final.data.get("content") or ""

    # === Loop ===

    def _send(self, event_type: AgentEventType, data: dict[str, Any]) -> AgentEvent:
        return self._event_stream.send(AgentEvent(type=event_type, data=data))

    def _initial_messages(self, opts: RunOptions) -> list[Message]:
        messages: list[Message] = []
        if self.system_message:
            messages.append(Message.system(self.system_message))
        messages.extend(normalize_messages(opts.input))
        return messages

    async def _execute(self, opts: RunOptions) -> AsyncIterator[AgentEvent]:
        self._loop_iteration = 0
        self._event_stream.clear()
        result = AgentRunResult()
        self.last_result = result
        messages = self._initial_messages(opts)
        token = opts.token
        params = self.config.sampling_params()
        tool_defs = self.tools.tools or None

        yield self._send(AgentEventType.AGENT_RUN_START, {"session_id": opts.session_id, "agent": self.name})
        if isinstance(opts.input, str):
            yield self._send(AgentEventType.USER_MESSAGE, {"content": opts.input})
        else:
            yield self._send(
                AgentEventType.USER_MESSAGE,
                {"messages": [m.to_dict() for m in normalize_messages(opts.input)]},
            )

        final_data: dict[str, Any] | None = None

        for loop_index in range(self.config.max_iterations):
            token.raise_if_cancelled()
            self._loop_iteration = loop_index + 1
            await self._hooks.emit(LOOP_START, {"loop_index": loop_index}, opts)

            request = LLMRequest.from_call(messages, tool_defs, **params)
            await self._hooks.emit(
                LLM_REQUEST,
                {"loop_index": loop_index, "request": request.to_dict(), "streaming": opts.is_streaming},
                opts,
            )

            chunks: list[StreamEvent] = []
            client_failed = False
            try:
                if opts.is_streaming:
                    stream = self._llm_client.stream(messages, tools=tool_defs, **params)
                    async for chunk in stream:
                        token.raise_if_cancelled()
                        chunks.append(chunk)
                        if chunk.type == StreamEventType.TOKEN:
                            yield self._send(
                                AgentEventType.ASSISTANT_STREAMING_MESSAGE,
                                {"content": chunk.data, "loop_index": loop_index},
                            )
                    completion = completion_from_events(chunks)
                else:
                    completion = await self._llm_client.complete(messages, tools=tool_defs, **params)
            except CancelledError:
                raise
            except Exception as e:
                self._logger.log_error(e, "LLM client failed", loop_index=loop_index)
                client_failed = True
                completion = CompletionResult.failure(f"{type(e).__name__}: {e}")

            if not client_failed and opts.is_streaming:
                await self._hooks.emit(
                    LLM_STREAM,
                    {"loop_index": loop_index, "chunks": [c.to_dict() for c in chunks]},
                    opts,
                )
            elif not client_failed:
                await self._hooks.emit(
                    LLM_RESPONSE,
                    {"loop_index": loop_index, "response": completion.to_dict()},
                    opts,
                )

            result.loop_count = loop_index + 1
            result.add_usage(completion.usage)

            if not completion.ok:
                yield self._send(AgentEventType.SYSTEM, {"level": "error", "error": completion.error})
                result.status = "error"
                result.error = completion.error
                result.content = completion.error
                final_data = {"content": completion.error, "tool_calls": [], "finish_reason": "error"}
                await self._hooks.emit(LOOP_END, {"loop_index": loop_index}, opts)
                break

            if completion.has_tool_calls:
                tool_calls = (completion.tool_calls or [])[: self.config.max_tool_calls_per_loop]
                messages.append(Message.assistant(content=completion.content, tool_calls=tool_calls))
                yield self._send(
                    AgentEventType.ASSISTANT_MESSAGE,
                    {
                        "content": completion.content,
                        "tool_calls": [tc.to_dict() for tc in tool_calls],
                        "finish_reason": "tool_calls",
                    },
                )

                failed: ToolResult | None = None
                for tc in tool_calls:
                    result.tool_calls.append(tc)
                    await self._hooks.emit(TOOL_START, {"loop_index": loop_index, "tool_call": tc.to_dict()}, opts)
                    yield self._send(
                        AgentEventType.TOOL_CALL,
                        {"tool_call_id": tc.id, "name": tc.name, "arguments": tc.arguments},
                    )
                    tool_result = await self.tools.invoke(tc.name, tc.arguments)
                    yield self._send(
                        AgentEventType.TOOL_RESULT,
                        {"tool_call_id": tc.id, "name": tc.name, **tool_result.to_dict()},
                    )
                    await self._hooks.emit(
                        TOOL_END,
                        {"loop_index": loop_index, "tool_call": tc.to_dict(), "result": tool_result.to_dict()},
                        opts,
                    )
                    messages.append(Message.tool_result(tc.id, tool_result.render(), tc.name))
                    if not tool_result.success and failed is None:
                        failed = tool_result

                await self._hooks.emit(LOOP_END, {"loop_index": loop_index}, opts)

                if failed is not None and self.config.stop_on_tool_error:
                    result.status = "error"
                    result.error = failed.error
                    result.content = f"Tool error: {failed.error}"
                    final_data = {"content": result.content, "tool_calls": [], "finish_reason": "error"}
                    break
                continue

            messages.append(Message.assistant(content=completion.content or ""))
            result.content = completion.content
            final_data = {
                "content": completion.content,
                "tool_calls": [],
                "finish_reason": completion.finish_reason or "stop",
            }
            await self._hooks.emit(LOOP_END, {"loop_index": loop_index}, opts)
            break
        else:
            result.status = "max_iterations"
            final_data = {"content": None, "tool_calls": [], "finish_reason": "max_iterations"}

        yield self._send(AgentEventType.ASSISTANT_MESSAGE, final_data)
        yield self._send(AgentEventType.AGENT_RUN_END, result.to_dict())

    # === Tool Management ===

    def add_tool(self, tool: Tool) -> Agent:
        self.tools.register(tool)
        return self

    def remove_tool(self, name: str) -> Agent:
        self.tools.unregister(name)
        return self

    # === Context Manager ===

    async def __aenter__(self) -> Agent:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Clean up resources."""
        await self._llm_client.close()


__all__ = ["Agent"]
