"""OpenAI Chat Completions adapter."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from llmkit import capabilities
from llmkit._http import WireRequest
from llmkit.errors import ValidationError
from llmkit.providers._errors import api_error_from_reply, decode_success
from llmkit.providers._utils import (
    as_int,
    ensure_content,
    parse_timestamp,
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

_CHAT_PATH = "/v1/chat/completions"
_FILES_PATH = "/v1/files"
_UPLOAD_PURPOSE = "user_data"


class OpenAIAdapter(HTTPAdapter):
    """OpenAI Chat Completions adapter."""

    name = capabilities.OPENAI

    def render(
        self, provider: Provider, request: Request, options: Options
    ) -> WireRequest:
        """Render *request* as a Chat Completions call."""
        messages: list[dict[str, Any]] = []
        if request.system:
            messages.append({"role": "system", "content": request.system})
        messages.extend(_history_message(m) for m in request.history)
        messages.append({"role": "user", "content": _user_content(request)})
        messages.extend(_history_message(m) for m in request.continuation)

        body: dict[str, Any] = {
            "model": provider.resolved_model(),
            "messages": messages,
        }
        if options.temperature is not None:
            body["temperature"] = options.temperature
        if options.top_p is not None:
            body["top_p"] = options.top_p
        if options.max_tokens is not None:
            body["max_completion_tokens"] = options.max_tokens
        if options.stop_sequences:
            body["stop"] = list(options.stop_sequences)
        if options.seed is not None:
            body["seed"] = options.seed
        if options.frequency_penalty is not None:
            body["frequency_penalty"] = options.frequency_penalty
        if options.presence_penalty is not None:
            body["presence_penalty"] = options.presence_penalty
        if options.reasoning_effort is not None:
            body["reasoning_effort"] = options.reasoning_effort

        if request.tools:
            body["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": t.name,
                        "description": t.description,
                        "parameters": t.parameters,
                    },
                }
                for t in request.tools
            ]

        schema = request.schema_dict()
        if schema is not None:
            body["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": "response",
                    "schema": to_strict_schema(schema),
                    "strict": True,
                },
            }

        return WireRequest(
            method="POST",
            url=provider.url(_CHAT_PATH),
            headers={"Authorization": f"Bearer {provider.api_key}"},
            json=body,
        )

    def parse(self, provider: Provider, reply: RawReply, request: Request) -> Response:
        """Parse a Chat Completions reply (first choice only)."""
        if reply.status_code >= 400:
            raise api_error_from_reply(
                self.name, reply, schema_sent=request.schema_dict() is not None
            )
        payload = decode_success(self.name, reply)

        choices = payload.get("choices") or []
        choice = choices[0] if choices and isinstance(choices[0], dict) else {}
        message = choice.get("message") or {}

        text = message.get("content")
        if not isinstance(text, str):
            text = ""
        if not text and isinstance(message.get("refusal"), str):
            text = message["refusal"]

        tool_calls: list[ToolCall] = []
        for call in message.get("tool_calls") or []:
            if not isinstance(call, dict):
                continue
            fn = call.get("function") or {}
            tool_calls.append(
                ToolCall(
                    id=str(call.get("id", "")),
                    name=str(fn.get("name", "")),
                    arguments=fn.get("arguments") or "{}",
                )
            )

        usage = payload.get("usage") or {}
        response = Response(
            text=text,
            tokens=Usage(
                input=as_int(usage.get("prompt_tokens")),
                output=as_int(usage.get("completion_tokens")),
            ),
            tool_calls=tuple(tool_calls),
            provider=self.name,
            model=payload.get("model") or provider.resolved_model(),
            finish_reason=_normalize_finish_reason(choice.get("finish_reason")),
            raw=payload,
        )
        return ensure_content(self.name, reply, response)

    def render_upload(
        self, provider: Provider, filename: str, data: bytes, mime_type: str
    ) -> WireRequest:
        """Upload to the Files API with the ``user_data`` purpose."""
        return WireRequest(
            method="POST",
            url=provider.url(_FILES_PATH),
            headers={"Authorization": f"Bearer {provider.api_key}"},
            data={"purpose": _UPLOAD_PURPOSE},
            files={"file": (filename, data, mime_type)},
        )

    def parse_upload(self, provider: Provider, reply: RawReply) -> File:
        if reply.status_code >= 400:
            raise api_error_from_reply(self.name, reply)
        payload = decode_success(self.name, reply)
        return File(
            id=str(payload.get("id", "")),
            name=str(payload.get("filename", "")),
            size_bytes=as_int(payload.get("bytes")),
            provider=self.name,
            created_at=parse_timestamp(payload.get("created_at")),
        )


def _user_content(request: Request) -> list[dict[str, Any]]:
    """Build the current user turn: text, then images, then files."""
    content: list[dict[str, Any]] = [{"type": "text", "text": request.user}]
    for img in request.images:
        content.append(
            {
                "type": "image_url",
                "image_url": {"url": img.url, "detail": img.detail or "auto"},
            }
        )
    for f in request.files:
        content.append({"type": "file", "file": {"file_id": f.id}})
    return content


def _history_message(item: Message) -> dict[str, Any]:
    if item.role == "tool":
        if not item.tool_call_id:
            raise ValidationError("history", "tool message is missing tool_call_id")
        return {
            "role": "tool",
            "tool_call_id": item.tool_call_id,
            "content": item.content,
        }

    msg: dict[str, Any] = {"role": item.role, "content": item.content}
    if item.tool_calls:
        msg["content"] = item.content or None
        msg["tool_calls"] = [
            {
                "id": tc.id,
                "type": "function",
                "function": {"name": tc.name, "arguments": tc.arguments},
            }
            for tc in item.tool_calls
        ]
    return msg


def _normalize_finish_reason(reason: Any) -> str | None:
    if reason is None:
        return None
    reason = str(reason).lower()
    return "max_tokens" if reason == "length" else reason
