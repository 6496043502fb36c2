"""Anthropic Messages API adapter."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from llmkit import capabilities
from llmkit._http import WireRequest
from llmkit.errors import ValidationError
from llmkit.providers._errors import api_error_from_reply, decode_success
from llmkit.providers._utils import (
    as_int,
    ensure_content,
    parse_timestamp,
    split_data_uri,
    to_strict_schema,
)
from llmkit.providers.base import HTTPAdapter
from llmkit.request import File
from llmkit.result import Response, ToolCall, Usage

if TYPE_CHECKING:
    from llmkit._http import RawReply
    from llmkit.config import Provider
    from llmkit.options import Options
    from llmkit.request import Message, Request

_CHAT_PATH = "/v1/messages"
_FILES_PATH = "/v1/files"
_API_VERSION = "2023-06-01"
_FILES_BETA = "files-api-2025-04-14"
_THINKING_BLOCKS_KEY = "anthropic_thinking_blocks"


class AnthropicAdapter(HTTPAdapter):
    """Anthropic Messages API adapter."""

    name = capabilities.ANTHROPIC

    def _headers(self, provider: Provider, *, files_beta: bool = False) -> dict[str, str]:
        headers = {"x-api-key": provider.api_key, "anthropic-version": _API_VERSION}
        if files_beta:
            headers["anthropic-beta"] = _FILES_BETA
        return headers

    def render(
        self, provider: Provider, request: Request, options: Options
    ) -> WireRequest:
        """Render *request* as a Messages API call."""
        messages: list[dict[str, Any]] = []
        for item in request.history:
            _append_history_item(messages, item)
        _append_message(
            messages, {"role": "user", "content": _user_content(request)}
        )
        for item in request.continuation:
            _append_history_item(messages, item)

        default_max = capabilities.default_for(self.name, "max_tokens")
        max_tokens = options.max_tokens
        if max_tokens is None:
            max_tokens = default_max
            if options.thinking_budget is not None:
                max_tokens = options.thinking_budget + default_max

        body: dict[str, Any] = {
            "model": provider.resolved_model(),
            "max_tokens": max_tokens,
            "messages": messages,
        }
        if request.system:
            body["system"] = request.system
        if options.temperature is not None:
            body["temperature"] = options.temperature
        if options.top_p is not None:
            body["top_p"] = options.top_p
        if options.top_k is not None:
            body["top_k"] = options.top_k
        if options.stop_sequences:
            body["stop_sequences"] = list(options.stop_sequences)
        if options.thinking_budget is not None:
            body["thinking"] = {
                "type": "enabled",
                "budget_tokens": options.thinking_budget,
            }

        if request.tools:
            body["tools"] = [
                {
                    "name": t.name,
                    "description": t.description,
                    "input_schema": t.parameters,
                }
                for t in request.tools
            ]

        schema = request.schema_dict()
        if schema is not None:
            body["output_config"] = {
                "format": {"type": "json_schema", "schema": to_strict_schema(schema)}
            }

        return WireRequest(
            method="POST",
            url=provider.url(_CHAT_PATH),
            headers=self._headers(provider, files_beta=bool(request.files)),
            json=body,
        )

    def parse(self, provider: Provider, reply: RawReply, request: Request) -> Response:
        """Parse a Messages API reply."""
        if reply.status_code >= 400:
            raise api_error_from_reply(
                self.name, reply, schema_sent=request.schema_dict() is not None
            )
        payload = decode_success(self.name, reply)

        text_parts: list[str] = []
        tool_calls: list[ToolCall] = []
        thinking_blocks: list[dict[str, str]] = []
        for block in payload.get("content") or []:
            if not isinstance(block, dict):
                continue
            block_type = block.get("type")
            if block_type == "text":
                text_parts.append(block.get("text") or "")
            elif block_type in ("thinking", "redacted_thinking"):
                replay = _thinking_block_for_replay(block)
                if replay is not None:
                    thinking_blocks.append(replay)
            elif block_type == "tool_use":
                tool_calls.append(
                    ToolCall(
                        id=str(block.get("id", "")),
                        name=str(block.get("name", "")),
                        arguments=json.dumps(block.get("input") or {}),
                    )
                )

        usage = payload.get("usage") or {}
        response = Response(
            text="\n\n".join(p for p in text_parts if p),
            tokens=Usage(
                input=as_int(usage.get("input_tokens")),
                output=as_int(usage.get("output_tokens")),
            ),
            tool_calls=tuple(tool_calls),
            provider=self.name,
            model=payload.get("model") or provider.resolved_model(),
            finish_reason=_normalize_stop_reason(payload.get("stop_reason")),
            provider_state=(
                {_THINKING_BLOCKS_KEY: thinking_blocks} if thinking_blocks else None
            ),
            raw=payload,
        )
        return ensure_content(self.name, reply, response)

    def render_upload(
        self, provider: Provider, filename: str, data: bytes, mime_type: str
    ) -> WireRequest:
        """Upload through the Files API (beta)."""
        return WireRequest(
            method="POST",
            url=provider.url(_FILES_PATH),
            headers=self._headers(provider, files_beta=True),
            files={"file": (filename, data, mime_type)},
        )

    def parse_upload(self, provider: Provider, reply: RawReply) -> File:
        """Parse a Files API upload reply."""
        if reply.status_code >= 400:
            raise api_error_from_reply(self.name, reply)
        payload = decode_success(self.name, reply)
        return File(
            id=str(payload.get("id", "")),
            name=str(payload.get("filename", "")),
            size_bytes=as_int(payload.get("size_bytes")),
            provider=self.name,
            created_at=parse_timestamp(payload.get("created_at")),
            mime_type=payload.get("mime_type") or "application/octet-stream",
        )


def _user_content(request: Request) -> list[dict[str, Any]]:
    """Build the current user turn: files, then images, then text."""
    content: list[dict[str, Any]] = []
    for f in request.files:
        block_type = "image" if f.mime_type.startswith("image/") else "document"
        content.append(
            {"type": block_type, "source": {"type": "file", "file_id": f.id}}
        )
    for img in request.images:
        if img.is_inline:
            mime, data = split_data_uri(img.url)
            source = {
                "type": "base64",
                "media_type": mime or img.mime_type,
                "data": data,
            }
        else:
            source = {"type": "url", "url": img.url}
        content.append({"type": "image", "source": source})
    content.append({"type": "text", "text": request.user})
    return content


def _append_history_item(messages: list[dict[str, Any]], item: Message) -> None:
    if item.role == "tool":
        if not item.tool_call_id:
            raise ValidationError("history", "tool message is missing tool_call_id")
        _append_message(
            messages,
            {
                "role": "user",
                "content": [
                    {
                        "type": "tool_result",
                        "tool_use_id": item.tool_call_id,
                        "content": item.content,
                    }
                ],
            },
        )
        return

    blocks: list[dict[str, Any]] = []
    if item.role == "assistant" and item.tool_calls:
        # Thinking must lead the turn when a tool_use is replayed.
        blocks.extend(_thinking_blocks_from_state(item.provider_state))
    if item.content:
        blocks.append({"type": "text", "text": item.content})
    for tc in item.tool_calls:
        blocks.append(
            {"type": "tool_use", "id": tc.id, "name": tc.name, "input": tc.input()}
        )
    if blocks:
        _append_message(messages, {"role": item.role, "content": blocks})


def _thinking_block_for_replay(block: dict[str, Any]) -> dict[str, str] | None:
    """Keep only the fields Anthropic accepts back on a thinking block."""
    if block.get("type") == "redacted_thinking":
        data = block.get("data")
        if isinstance(data, str):
            return {"type": "redacted_thinking", "data": data}
        return None
    thinking = block.get("thinking")
    signature = block.get("signature")
    if isinstance(thinking, str) and isinstance(signature, str):
        return {"type": "thinking", "thinking": thinking, "signature": signature}
    return None


def _thinking_blocks_from_state(
    provider_state: dict[str, Any] | None,
) -> list[dict[str, str]]:
    if not provider_state:
        return []
    raw_blocks = provider_state.get(_THINKING_BLOCKS_KEY)
    if not isinstance(raw_blocks, list):
        return []
    blocks: list[dict[str, str]] = []
    for raw in raw_blocks:
        if isinstance(raw, dict):
            block = _thinking_block_for_replay(raw)
            if block is not None:
                blocks.append(block)
    return blocks


def _append_message(messages: list[dict[str, Any]], msg: dict[str, Any]) -> None:
    """Append *msg*, merging into the previous message when roles match.

    Anthropic requires strict user/assistant alternation.
    """
    if messages and messages[-1]["role"] == msg["role"]:
        messages[-1]["content"] = messages[-1]["content"] + msg["content"]
    else:
        messages.append(msg)


def _normalize_stop_reason(stop_reason: Any) -> str | None:
    """Map Anthropic stop_reason to a normalized lowercase string."""
    if stop_reason is None:
        return None
    reason = str(stop_reason).lower()

    mapping: dict[str, str] = {
        "end_turn": "stop",
        "stop_sequence": "stop",
        "max_tokens": "max_tokens",
        "tool_use": "tool_calls",
    }
    return mapping.get(reason, reason)
