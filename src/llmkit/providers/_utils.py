"""Shared utilities for provider implementations."""

from __future__ import annotations

from copy import deepcopy
from datetime import UTC, datetime
import mimetypes
from typing import TYPE_CHECKING, Any

from llmkit.errors import APIError, SchemaError

if TYPE_CHECKING:
    from llmkit._http import RawReply
    from llmkit.result import Response

# Keywords Gemini's OpenAPI-subset responseSchema rejects.
_GOOGLE_UNSUPPORTED_KEYWORDS = frozenset({"additionalProperties", "$schema", "$id"})
_GOOGLE_DEFS_KEYWORDS = ("$defs", "definitions")


def to_strict_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Normalize a JSON schema for strict structured-output requirements.

    Ensures that for all 'object' types:
    1. additionalProperties is False
    2. All defined properties are listed in 'required'
    """
    normalized = deepcopy(schema)

    def walk(node: Any) -> Any:
        if isinstance(node, list):
            return [walk(item) for item in node]
        if not isinstance(node, dict):
            return node

        updated: dict[str, Any] = {}
        for key, value in node.items():
            updated[key] = walk(value)

        if updated.get("type") == "object" or "properties" in updated:
            properties = updated.get("properties", {})
            if isinstance(properties, dict):
                updated["additionalProperties"] = False
                updated["required"] = list(properties.keys())

        return updated

    result = walk(normalized)
    if not isinstance(result, dict):
        raise SchemaError("schema", "expected an object schema")
    return result


def to_google_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Rewrite *schema* into Gemini's responseSchema dialect.

    Local ``$ref`` pointers (as emitted by pydantic for nested models) are
    inlined from ``$defs``/``definitions``, and keywords the dialect does
    not accept are stripped. Recursive models cannot be inlined and raise
    ``SchemaError``.
    """
    defs: dict[str, Any] = {}
    for key in _GOOGLE_DEFS_KEYWORDS:
        block = schema.get(key)
        if isinstance(block, dict):
            for name, value in block.items():
                defs[f"#/{key}/{name}"] = value

    def walk(node: Any, seen: frozenset[str]) -> Any:
        if isinstance(node, list):
            return [walk(item, seen) for item in node]
        if not isinstance(node, dict):
            return node

        ref = node.get("$ref")
        if isinstance(ref, str):
            if ref not in defs:
                raise SchemaError("schema", f"unresolvable $ref {ref!r}")
            if ref in seen:
                raise SchemaError(
                    "schema",
                    f"recursive $ref {ref!r} is not supported by Gemini",
                )
            target = walk(defs[ref], seen | {ref})
            siblings = {k: v for k, v in node.items() if k != "$ref"}
            return {**target, **walk(siblings, seen)}

        return {
            key: walk(value, seen)
            for key, value in node.items()
            if key not in _GOOGLE_UNSUPPORTED_KEYWORDS
            and key not in _GOOGLE_DEFS_KEYWORDS
        }

    return walk(schema, frozenset())


def split_data_uri(uri: str) -> tuple[str | None, str]:
    """Split ``data:<mime>;base64,<data>`` into ``(mime, data)``.

    Strings without a comma are returned as-is with no mime type.
    """
    if not uri.startswith("data:") or "," not in uri:
        return None, uri
    header, data = uri.split(",", 1)
    mime = header[len("data:") :].split(";", 1)[0] or None
    return mime, data


def detect_mime_type(filename: str) -> str:
    """Guess a MIME type from *filename*, defaulting to octet-stream."""
    if filename.lower().endswith(".md"):
        return "text/markdown"
    return mimetypes.guess_type(filename)[0] or "application/octet-stream"


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 string or a Unix timestamp."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=UTC)
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def as_int(value: Any) -> int:
    """Coerce token counts that may arrive as strings or be missing."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def ensure_content(provider: str, reply: RawReply, response: Response) -> Response:
    """Reject successful replies that carry neither text nor tool calls."""
    if response.text or response.tool_calls:
        return response
    reason = f" (finish_reason={response.finish_reason})" if response.finish_reason else ""
    raise APIError(
        f"empty response{reason}",
        provider=provider,
        status_code=reply.status_code,
        endpoint=reply.endpoint,
        hint="The model returned no text and no tool calls; check max_tokens and safety settings.",
    )
