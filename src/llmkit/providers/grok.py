"""xAI Grok adapter (Responses API)."""

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

_RESPONSES_PATH = "/v1/responses"
_FILES_PATH = "/v1/files"
_UPLOAD_PURPOSE = "assistants"


class GrokAdapter(HTTPAdapter):
    """xAI Grok adapter."""

    name = capabilities.GROK

    def render(
        self, provider: Provider, request: Request, options: Options
    ) -> WireRequest:
        """Render *request* as a Responses API call."""
        items: list[dict[str, Any]] = []
        for m in request.history:
            items.extend(_history_items(m))
        items.append({"role": "user", "content": _user_content(request)})
        for m in request.continuation:
            items.extend(_history_items(m))

        body: dict[str, Any] = {
            "model": provider.resolved_model(),
            "input": items,
        }
        if request.system:
            body["instructions"] = request.system
        if options.temperature is not None:
            body["temperature"] = options.temperature
        if options.top_p is not None:
            body["top_p"] = options.top_p
        if options.max_tokens is not None:
            body["max_output_tokens"] = options.max_tokens

        if request.tools:
            body["tools"] = [
                {
                    "type": "function",
                    "name": t.name,
                    "description": t.description,
                    "parameters": t.parameters,
                }
                for t in request.tools
            ]

        schema = request.schema_dict()
        if schema is not None:
            body["text"] = {
                "format": {
                    "type": "json_schema",
                    "name": "response",
                    "schema": to_strict_schema(schema),
                    "strict": True,
                }
            }

        return WireRequest(
            method="POST",
            url=provider.url(_RESPONSES_PATH),
            headers={"Authorization": f"Bearer {provider.api_key}"},
            json=body,
        )

    def parse(self, provider: Provider, reply: RawReply, request: Request) -> Response:
        """Parse a Responses API reply."""
        if reply.status_code >= 400:
            raise api_error_from_reply(
                self.name, reply, schema_sent=request.schema_dict() is not None
            )
        payload = decode_success(self.name, reply)

        text_parts: list[str] = []
        tool_calls: list[ToolCall] = []
        for item in payload.get("output") or []:
            if not isinstance(item, dict):
                continue
            item_type = item.get("type")
            if item_type == "message":
                for part in item.get("content") or []:
                    if isinstance(part, dict) and part.get("type") == "output_text":
                        text_parts.append(part.get("text") or "")
            elif item_type == "function_call":
                tool_calls.append(
                    ToolCall(
                        id=str(item.get("call_id") or item.get("id") or ""),
                        name=str(item.get("name", "")),
                        arguments=item.get("arguments") or "{}",
                    )
                )

        finish_reason = "tool_calls" if tool_calls else None
        status = payload.get("status")
        if finish_reason is None and isinstance(status, str):
            finish_reason = "stop" if status == "completed" else status.lower()
            details = payload.get("incomplete_details") or {}
            if details.get("reason") == "max_output_tokens":
                finish_reason = "max_tokens"

        usage = payload.get("usage") or {}
        response = Response(
            text="".join(text_parts),
            tokens=Usage(
                input=as_int(usage.get("input_tokens")),
                output=as_int(usage.get("output_tokens")),
            ),
            tool_calls=tuple(tool_calls),
            provider=self.name,
            model=payload.get("model") or provider.resolved_model(),
            finish_reason=finish_reason,
            raw=payload,
        )
        return ensure_content(self.name, reply, response)

    def render_upload(
        self, provider: Provider, filename: str, data: bytes, mime_type: str
    ) -> WireRequest:
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
            size_bytes=as_int(payload.get("bytes", payload.get("size"))),
            provider=self.name,
            created_at=parse_timestamp(payload.get("created_at")),
        )


def _user_content(request: Request) -> list[dict[str, Any]]:
    content: list[dict[str, Any]] = [{"type": "input_text", "text": request.user}]
    for img in request.images:
        content.append(
            {
                "type": "input_image",
                "image_url": img.url,
                "detail": img.detail or "auto",
            }
        )
    for f in request.files:
        content.append({"type": "input_file", "file_id": f.id})
    return content


def _history_items(item: Message) -> list[dict[str, Any]]:
    """Render one turn as Responses API input items."""
    if item.role == "tool":
        if not item.tool_call_id:
            raise ValidationError("history", "tool message is missing tool_call_id")
        return [
            {
                "type": "function_call_output",
                "call_id": item.tool_call_id,
                "output": item.content,
            }
        ]

    items: list[dict[str, Any]] = []
    if item.content:
        items.append({"role": item.role, "content": item.content})
    for tc in item.tool_calls:
        items.append(
            {
                "type": "function_call",
                "call_id": tc.id,
                "name": tc.name,
                "arguments": tc.arguments,
            }
        )
    return items
