"""Google Gemini generateContent adapter."""

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
    to_google_schema,
)
from llmkit.providers.base import HTTPAdapter
from llmkit.request import File
from llmkit.result import Response, ToolCall, Usage

if TYPE_CHECKING:
    from llmkit._http import RawReply
    from llmkit.config import Provider
    from llmkit.options import Options
    from llmkit.request import Message, Request

_UPLOAD_PATH = "/upload/v1beta/files"


class GoogleAdapter(HTTPAdapter):
    """Google Gemini API adapter."""

    name = capabilities.GOOGLE

    def render(
        self, provider: Provider, request: Request, options: Options
    ) -> WireRequest:
        """Render *request* as a generateContent call.

        Raises:
            ValidationError: An image is a remote URL; Gemini only accepts
                inline image bytes here.
        """
        contents: list[dict[str, Any]] = []
        for item in request.history:
            _append_history_item(contents, item)
        _append_content(contents, {"role": "user", "parts": _user_parts(request)})
        for item in request.continuation:
            _append_history_item(contents, item)

        body: dict[str, Any] = {"contents": contents}
        if request.system:
            body["systemInstruction"] = {"parts": [{"text": request.system}]}

        if request.tools:
            body["tools"] = [
                {
                    "functionDeclarations": [
                        {
                            "name": t.name,
                            "description": t.description,
                            "parameters": to_google_schema(t.parameters),
                        }
                        for t in request.tools
                    ]
                }
            ]

        config = _generation_config(options)
        schema = request.schema_dict()
        if schema is not None:
            config["responseMimeType"] = "application/json"
            config["responseSchema"] = to_google_schema(schema)
        if config:
            body["generationConfig"] = config

        model = provider.resolved_model()
        return WireRequest(
            method="POST",
            url=provider.url(f"/v1beta/models/{model}:generateContent"),
            headers={"x-goog-api-key": provider.api_key},
            json=body,
        )

    def parse(self, provider: Provider, reply: RawReply, request: Request) -> Response:
        """Parse a generateContent reply (first candidate only)."""
        if reply.status_code >= 400:
            raise api_error_from_reply(
                self.name, reply, schema_sent=request.schema_dict() is not None
            )
        payload = decode_success(self.name, reply)

        candidates = payload.get("candidates") or []
        candidate = (
            candidates[0] if candidates and isinstance(candidates[0], dict) else {}
        )
        parts = (candidate.get("content") or {}).get("parts") or []

        text_parts: list[str] = []
        tool_calls: list[ToolCall] = []
        for part in parts:
            if not isinstance(part, dict) or part.get("thought"):
                continue
            if isinstance(part.get("text"), str):
                text_parts.append(part["text"])
            call = part.get("functionCall")
            if isinstance(call, dict):
                name = str(call.get("name", ""))
                tool_calls.append(
                    ToolCall(
                        # Gemini matches results to calls by function name.
                        id=str(call.get("id") or name),
                        name=name,
                        arguments=json.dumps(call.get("args") or {}),
                    )
                )

        usage = payload.get("usageMetadata") or {}
        response = Response(
            text="".join(text_parts),
            tokens=Usage(
                input=as_int(usage.get("promptTokenCount")),
                output=as_int(usage.get("candidatesTokenCount")),
            ),
            tool_calls=tuple(tool_calls),
            provider=self.name,
            model=payload.get("modelVersion") or provider.resolved_model(),
            finish_reason=_normalize_finish_reason(candidate.get("finishReason")),
            raw=payload,
        )
        return ensure_content(self.name, reply, response)

    def render_upload(
        self, provider: Provider, filename: str, data: bytes, mime_type: str
    ) -> WireRequest:
        """Upload through the media endpoint as a multipart request."""
        return WireRequest(
            method="POST",
            url=provider.url(_UPLOAD_PATH),
            headers={
                "x-goog-api-key": provider.api_key,
                "X-Goog-Upload-Protocol": "multipart",
            },
            data={"metadata": json.dumps({"file": {"display_name": filename}})},
            files={"file": (filename, data, mime_type)},
        )

    def parse_upload(self, provider: Provider, reply: RawReply) -> File:
        if reply.status_code >= 400:
            raise api_error_from_reply(self.name, reply)
        payload = decode_success(self.name, reply)
        info = payload.get("file") if isinstance(payload.get("file"), dict) else payload
        return File(
            id=str(info.get("name", "")),
            name=str(info.get("displayName", "")),
            size_bytes=as_int(info.get("sizeBytes")),
            provider=self.name,
            created_at=parse_timestamp(info.get("createTime")),
            mime_type=info.get("mimeType") or "application/octet-stream",
            uri=info.get("uri"),
        )


def _generation_config(options: Options) -> dict[str, Any]:
    config: dict[str, Any] = {}
    if options.temperature is not None:
        config["temperature"] = options.temperature
    if options.top_p is not None:
        config["topP"] = options.top_p
    if options.top_k is not None:
        config["topK"] = options.top_k
    if options.max_tokens is not None:
        config["maxOutputTokens"] = options.max_tokens
    if options.stop_sequences:
        config["stopSequences"] = list(options.stop_sequences)
    if options.seed is not None:
        config["seed"] = options.seed
    if options.thinking_budget is not None:
        config["thinkingConfig"] = {"thinkingBudget": options.thinking_budget}
    elif options.reasoning_effort is not None:
        config["thinkingConfig"] = {"thinkingLevel": options.reasoning_effort}
    return config


def _user_parts(request: Request) -> list[dict[str, Any]]:
    """Build the current user turn: text, then images, then files."""
    parts: list[dict[str, Any]] = [{"text": request.user}]
    for img in request.images:
        if not img.is_inline:
            raise ValidationError(
                "images",
                "google requires inline image data",
                hint="Pass the image as a data: URI or upload it with upload_file().",
            )
        mime, data = split_data_uri(img.url)
        parts.append({"inline_data": {"mime_type": mime or img.mime_type, "data": data}})
    for f in request.files:
        parts.append(
            {"file_data": {"mime_type": f.mime_type, "file_uri": f.uri or f.id}}
        )
    return parts


def _append_history_item(contents: list[dict[str, Any]], item: Message) -> None:
    if item.role == "tool":
        name = item.name or item.tool_call_id
        if not name:
            raise ValidationError("history", "tool message is missing its tool name")
        _append_content(
            contents,
            {
                "role": "user",
                "parts": [
                    {
                        "functionResponse": {
                            "name": name,
                            "response": {"result": item.content},
                        }
                    }
                ],
            },
        )
        return

    parts: list[dict[str, Any]] = []
    if item.content:
        parts.append({"text": item.content})
    for tc in item.tool_calls:
        parts.append({"functionCall": {"name": tc.name, "args": tc.input()}})
    if parts:
        role = "model" if item.role == "assistant" else "user"
        _append_content(contents, {"role": role, "parts": parts})


def _append_content(contents: list[dict[str, Any]], entry: dict[str, Any]) -> None:
    """Append *entry*, merging parts into the previous entry of the same role."""
    if contents and contents[-1]["role"] == entry["role"]:
        contents[-1]["parts"] = contents[-1]["parts"] + entry["parts"]
    else:
        contents.append(entry)


def _normalize_finish_reason(reason: Any) -> str | None:
    if reason is None:
        return None
    # STOP, MAX_TOKENS, SAFETY, ... already match the normalized vocabulary.
    return str(reason).lower()
