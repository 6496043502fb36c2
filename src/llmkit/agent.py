"""Stateful multi-turn conversations on top of ``prompt()``."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
import inspect
import json
import logging
from typing import TYPE_CHECKING

from llmkit.errors import RequestError, ValidationError
from llmkit.options import Options
from llmkit.prompt import prompt
from llmkit.request import Message, Request, Tool
from llmkit.result import Response, Usage

if TYPE_CHECKING:
    from llmkit._http import Transport
    from llmkit.config import Provider
    from llmkit.request import File, Image, SchemaInput
    from llmkit.result import ToolCall

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOOL_ITERATIONS = 10


class Agent:
    """A conversation with one provider that remembers its turns.

    The transcript only grows: each successful ``chat()`` appends exactly one
    user turn and one assistant turn, and a failed call leaves it untouched.
    An Agent is not safe for concurrent use; overlapping ``chat()`` calls
    raise ``RuntimeError``.

    Example:
        agent = Agent(Provider.from_env("anthropic"), system="Be brief.")
        reply = await agent.chat("What is the capital of France?")
        reply = await agent.chat("And its population?")
    """

    def __init__(
        self,
        provider: Provider,
        *,
        system: str | None = None,
        options: Options | None = None,
        tools: Sequence[Tool] = (),
        transport: Transport | None = None,
        max_turns: int | None = None,
        max_tool_iterations: int = DEFAULT_MAX_TOOL_ITERATIONS,
    ) -> None:
        """Create an agent.

        Args:
            provider: Which vendor, key and model to talk to.
            system: System prompt sent with every turn.
            options: Generation options sent with every turn.
            tools: Tools the model may call.
            transport: Shared HTTP transport; one is created per call if omitted.
            max_turns: Send only the last N user/assistant pairs as history.
                The stored transcript is never truncated.
            max_tool_iterations: Upper bound on tool round-trips per chat.
        """
        if max_turns is not None and max_turns < 0:
            raise ValidationError("max_turns", "must be >= 0")
        if max_tool_iterations < 1:
            raise ValidationError("max_tool_iterations", "must be >= 1")
        self.provider = provider
        self.system = system
        self.options = options or Options()
        self.transport = transport
        self.max_turns = max_turns
        self.max_tool_iterations = max_tool_iterations
        self._tools: list[Tool] = []
        for tool in tools:
            self.add_tool(tool)
        self._transcript: list[Message] = []
        self._busy = False

    @property
    def transcript(self) -> tuple[Message, ...]:
        """Snapshot of the conversation so far, oldest first."""
        return tuple(self._transcript)

    @property
    def tools(self) -> tuple[Tool, ...]:
        return tuple(self._tools)

    def set_system(self, system: str | None) -> None:
        """Replace the system prompt for subsequent turns."""
        self.system = system

    def add_tool(self, tool: Tool) -> None:
        """Register *tool*, replacing any tool with the same name."""
        self._tools = [t for t in self._tools if t.name != tool.name]
        self._tools.append(tool)

    def reset(self) -> None:
        """Forget the conversation. System prompt and tools are kept."""
        self._transcript.clear()

    def _history(self) -> tuple[Message, ...]:
        if self.max_turns is None:
            return tuple(self._transcript)
        if self.max_turns == 0:
            return ()
        return tuple(self._transcript[-2 * self.max_turns :])

    def _find_tool(self, name: str) -> Tool:
        for tool in self._tools:
            if tool.name == name:
                return tool
        raise RequestError(
            "tool_call",
            LookupError(f"model called unknown tool {name!r}"),
            hint=f"Registered tools: {', '.join(t.name for t in self._tools) or 'none'}",
        )

    async def chat(
        self,
        text: str,
        *,
        images: Sequence[Image] = (),
        files: Sequence[File] = (),
        schema: SchemaInput | None = None,
        timeout: float | None = None,
    ) -> Response:
        """Send *text* with the conversation so far and record the exchange.

        When the model calls registered tools, they are run and their results
        sent back until the model answers without tool calls. Usage in the
        returned Response covers every round-trip.

        Raises:
            RuntimeError: Another ``chat()`` on this agent is in flight.
            ValidationError: The request failed local validation.
            RequestError: The model called an unknown tool (operation
                ``tool_call``) or the tool loop exceeded
                ``max_tool_iterations`` (operation ``tool_loop``).
        """
        if self._busy:
            raise RuntimeError("Agent.chat() is already running; await it first")
        self._busy = True
        try:
            request = Request(
                user=text,
                system=self.system,
                images=tuple(images),
                files=tuple(files),
                schema=schema,
                tools=tuple(self._tools),
                options=self.options,
                history=self._history(),
            )
            response = await self._run(request, timeout=timeout)
            self._transcript.append(Message(role="user", content=text))
            self._transcript.append(Message(role="assistant", content=response.text))
            return response
        finally:
            self._busy = False

    async def _run(self, request: Request, *, timeout: float | None) -> Response:
        usage = Usage()
        continuation: list[Message] = []
        for iteration in range(self.max_tool_iterations):
            response = await prompt(
                self.provider,
                request,
                transport=self.transport,
                timeout=timeout,
            )
            usage = usage + response.tokens
            if not response.tool_calls or not any(t.run for t in self._tools):
                return replace(response, tokens=usage)

            logger.debug(
                "Tool iteration %d: %d call(s)", iteration + 1, len(response.tool_calls)
            )
            continuation.append(
                Message(
                    role="assistant",
                    content=response.text,
                    tool_calls=response.tool_calls,
                    provider_state=response.provider_state,
                )
            )
            for call in response.tool_calls:
                continuation.append(await self._call_tool(call))
            request = replace(request, continuation=tuple(continuation))

        raise RequestError(
            "tool_loop",
            RuntimeError(
                f"model still calling tools after {self.max_tool_iterations} iterations"
            ),
            hint="Raise max_tool_iterations or make tool results more conclusive.",
        )

    async def _call_tool(self, call: ToolCall) -> Message:
        tool = self._find_tool(call.name)
        if tool.run is None:
            result = f"error: tool {call.name!r} has no implementation"
        else:
            try:
                value = tool.run(call.input())
                if inspect.isawaitable(value):
                    value = await value
                result = value if isinstance(value, str) else json.dumps(value)
            except Exception as e:
                logger.debug("Tool %s raised %s", call.name, e)
                result = f"error: {e}"
        return Message(
            role="tool", content=result, tool_call_id=call.id, name=call.name
        )
