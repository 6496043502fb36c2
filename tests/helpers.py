"""Test helpers (small, reusable doubles).

Keep this file tiny and purpose-built: a scripted ``httpx.MockTransport``
plus canned vendor replies, so suites don't grow one-off fake servers.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
import inspect
import json
from typing import Any

import httpx

from llmkit._http import Transport
from llmkit.config import Settings

Reply = httpx.Response | BaseException | Callable[[httpx.Request], Any]


class MockAPI:
    """Scripted HTTP endpoint that records every request it receives.

    Replies are served in order; the last one repeats once the script runs
    out. A reply may be an ``httpx.Response``, an exception to raise, or a
    (sync or async) callable taking the request.
    """

    def __init__(self, *replies: Reply) -> None:
        self.replies: list[Reply] = list(replies)
        self.requests: list[httpx.Request] = []

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.replies:
            raise AssertionError(f"unexpected request to {request.url}")
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, BaseException):
            raise reply
        if isinstance(reply, httpx.Response):
            # Fresh copy: the last reply may be served more than once.
            return httpx.Response(
                reply.status_code, content=reply.content, headers=reply.headers
            )
        result = reply(request)
        if inspect.isawaitable(result):
            result = await result
        return result

    def transport(self, settings: Settings | None = None) -> Transport:
        return Transport(
            settings=settings or Settings(),
            http_transport=httpx.MockTransport(self._handle),
        )

    @property
    def calls(self) -> int:
        return len(self.requests)

    def body(self, index: int = -1) -> dict[str, Any]:
        """Decoded JSON body of the request at *index*."""
        return json.loads(self.requests[index].content)


def json_reply(
    payload: Any, status: int = 200, headers: dict[str, str] | None = None
) -> httpx.Response:
    return httpx.Response(status, json=payload, headers=headers)


def slow_reply(delay_s: float, payload: Any) -> Callable[[httpx.Request], Any]:
    """Reply that waits *delay_s* before answering."""

    async def _reply(_request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(delay_s)
        return json_reply(payload)

    return _reply


# =============================================================================
# Canned vendor replies
# =============================================================================


def anthropic_text(text: str, *, input_tokens: int = 10, output_tokens: int = 5) -> dict[str, Any]:
    return {
        "id": "msg_1",
        "type": "message",
        "role": "assistant",
        "model": "claude-sonnet-4-5",
        "content": [{"type": "text", "text": text}],
        "stop_reason": "end_turn",
        "usage": {"input_tokens": input_tokens, "output_tokens": output_tokens},
    }


def anthropic_tool_use(
    name: str, args: dict[str, Any], call_id: str = "toolu_1", *, thinking: str | None = None
) -> dict[str, Any]:
    content: list[dict[str, Any]] = []
    if thinking is not None:
        content.append({"type": "thinking", "thinking": thinking, "signature": "sig123"})
    content.append({"type": "tool_use", "id": call_id, "name": name, "input": args})
    return {
        "id": "msg_2",
        "type": "message",
        "role": "assistant",
        "model": "claude-sonnet-4-5",
        "content": content,
        "stop_reason": "tool_use",
        "usage": {"input_tokens": 20, "output_tokens": 8},
    }


def openai_text(text: str, *, prompt_tokens: int = 10, completion_tokens: int = 5) -> dict[str, Any]:
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "model": "gpt-4o-2024-08-06",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": text},
                "finish_reason": "stop",
            }
        ],
        "usage": {
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "total_tokens": prompt_tokens + completion_tokens,
        },
    }


def openai_tool_call(name: str, args: dict[str, Any], call_id: str = "call_1") -> dict[str, Any]:
    return {
        "id": "chatcmpl-2",
        "model": "gpt-4o-2024-08-06",
        "choices": [
            {
                "index": 0,
                "message": {
                    "role": "assistant",
                    "content": None,
                    "tool_calls": [
                        {
                            "id": call_id,
                            "type": "function",
                            "function": {"name": name, "arguments": json.dumps(args)},
                        }
                    ],
                },
                "finish_reason": "tool_calls",
            }
        ],
        "usage": {"prompt_tokens": 20, "completion_tokens": 8},
    }


def google_text(text: str, *, prompt_tokens: int = 10, candidate_tokens: int = 5) -> dict[str, Any]:
    return {
        "candidates": [
            {
                "content": {"role": "model", "parts": [{"text": text}]},
                "finishReason": "STOP",
            }
        ],
        "usageMetadata": {
            "promptTokenCount": prompt_tokens,
            "candidatesTokenCount": candidate_tokens,
        },
        "modelVersion": "gemini-2.5-flash",
    }


def google_function_call(name: str, args: dict[str, Any]) -> dict[str, Any]:
    return {
        "candidates": [
            {
                "content": {
                    "role": "model",
                    "parts": [{"functionCall": {"name": name, "args": args}}],
                },
                "finishReason": "STOP",
            }
        ],
        "usageMetadata": {"promptTokenCount": 20, "candidatesTokenCount": 8},
    }


def grok_text(text: str, *, input_tokens: int = 10, output_tokens: int = 5) -> dict[str, Any]:
    return {
        "id": "resp_1",
        "object": "response",
        "model": "grok-3-fast",
        "status": "completed",
        "output": [
            {
                "type": "message",
                "role": "assistant",
                "content": [{"type": "output_text", "text": text}],
            }
        ],
        "usage": {"input_tokens": input_tokens, "output_tokens": output_tokens},
    }


def grok_function_call(name: str, args: dict[str, Any], call_id: str = "call_1") -> dict[str, Any]:
    return {
        "id": "resp_2",
        "model": "grok-3-fast",
        "status": "completed",
        "output": [
            {
                "type": "function_call",
                "call_id": call_id,
                "name": name,
                "arguments": json.dumps(args),
            }
        ],
        "usage": {"input_tokens": 20, "output_tokens": 8},
    }


TEXT_REPLIES: dict[str, Callable[[str], dict[str, Any]]] = {
    "anthropic": anthropic_text,
    "openai": openai_text,
    "google": google_text,
    "grok": grok_text,
}

TOOL_REPLIES: dict[str, Callable[[str, dict[str, Any]], dict[str, Any]]] = {
    "anthropic": anthropic_tool_use,
    "openai": openai_tool_call,
    "google": google_function_call,
    "grok": grok_function_call,
}
