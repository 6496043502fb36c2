"""Canonical request model and its local validation."""

from __future__ import annotations

from collections.abc import Callable  # noqa: TC003 - used at runtime in dataclass
from dataclasses import dataclass, field
from datetime import datetime  # noqa: TC003 - used at runtime in dataclass
import json
from typing import Any, Literal

from pydantic import BaseModel

from llmkit.errors import SchemaError, ValidationError
from llmkit.options import Options
from llmkit.result import ToolCall

Role = Literal["user", "assistant", "tool"]
SchemaInput = str | dict[str, Any] | type[BaseModel]


@dataclass(frozen=True)
class Image:
    """An image input: an http(s) URL or a ``data:`` URI."""

    url: str
    mime_type: str = "image/png"
    #: OpenAI-style detail hint: "auto", "low" or "high".
    detail: str | None = None

    @property
    def is_inline(self) -> bool:
        return self.url.startswith("data:")


@dataclass(frozen=True)
class File:
    """A file uploaded to one provider. Only valid against that provider."""

    id: str
    name: str
    size_bytes: int
    provider: str
    created_at: datetime | None = None
    mime_type: str = "application/octet-stream"
    #: Gemini addresses uploads by URI rather than id.
    uri: str | None = None


@dataclass(frozen=True)
class Tool:
    """A function the model may ask the caller to run."""

    name: str
    description: str = ""
    #: JSON Schema for the function arguments.
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )
    #: Executed by ``Agent`` when the model calls this tool.
    run: Callable[[dict[str, Any]], str] | None = field(default=None, compare=False)


@dataclass(frozen=True)
class Message:
    """One conversational turn."""

    role: Role
    content: str = ""
    tool_calls: tuple[ToolCall, ...] = ()
    #: For tool results: the id of the call being answered.
    tool_call_id: str | None = None
    #: For tool results: the name of the tool that produced them.
    name: str | None = None
    #: Opaque provider data replayed with this turn (e.g. Anthropic
    #: thinking blocks that must precede a tool_use continuation).
    provider_state: dict[str, Any] | None = field(default=None, compare=False)


@dataclass(frozen=True)
class Request:
    """One prompt turn in provider-neutral form."""

    user: str
    system: str | None = None
    images: tuple[Image, ...] = ()
    files: tuple[File, ...] = ()
    #: JSON Schema (as a string, dict or pydantic model) for structured output.
    schema: SchemaInput | None = None
    tools: tuple[Tool, ...] = ()
    options: Options = field(default_factory=Options)
    #: Prior turns, oldest first, rendered before ``user``.
    history: tuple[Message, ...] = ()
    #: Turns rendered after ``user`` (tool calls and their results).
    continuation: tuple[Message, ...] = ()

    def __post_init__(self) -> None:
        """Coerce sequence fields to tuples so requests stay immutable."""
        for name in ("images", "files", "tools", "history", "continuation"):
            value = getattr(self, name)
            if not isinstance(value, tuple):
                object.__setattr__(self, name, tuple(value))

    def schema_dict(self) -> dict[str, Any] | None:
        """Return the structured-output schema as a JSON Schema dict.

        Raises:
            SchemaError: The schema string is not valid JSON or not an object.
        """
        schema = self.schema
        if schema is None or schema == "":
            return None
        if isinstance(schema, type) and issubclass(schema, BaseModel):
            return schema.model_json_schema()
        if isinstance(schema, dict):
            return schema
        if isinstance(schema, str):
            try:
                parsed = json.loads(schema)
            except json.JSONDecodeError as e:
                raise SchemaError(
                    "schema",
                    f"invalid JSON: {e.msg} at position {e.pos}",
                    hint="Pass a JSON Schema object such as '{\"type\": \"object\"}'.",
                ) from e
            if not isinstance(parsed, dict):
                raise SchemaError("schema", "must be a JSON object")
            return parsed
        raise SchemaError(
            "schema",
            f"unsupported schema type {type(schema).__name__}",
            hint="Pass a JSON string, a dict or a pydantic BaseModel subclass.",
        )


def validate_request(provider: str, request: Request) -> None:
    """Check local preconditions that need no network access.

    Raises:
        ValidationError: Empty user content, a foreign file or a malformed
            attachment.
        SchemaError: The structured-output schema does not parse.
    """
    if not isinstance(request.user, str) or not request.user.strip():
        raise ValidationError(
            "user",
            "required",
            hint="Each request must carry non-empty user content.",
        )

    for f in request.files:
        if f.provider != provider:
            raise ValidationError(
                "files",
                f"file {f.id!r} was uploaded to {f.provider}, not {provider}",
                hint="Upload the file to the provider you are prompting.",
            )

    for img in request.images:
        if not img.url:
            raise ValidationError("images", "image url is empty")
        if not img.is_inline and not img.url.startswith(("http://", "https://")):
            raise ValidationError(
                "images",
                f"unsupported image url {img.url[:40]!r}",
                hint="Use an http(s) URL or a data: URI.",
            )

    seen: set[str] = set()
    for tool in request.tools:
        if not tool.name:
            raise ValidationError("tools", "tool name is empty")
        if tool.name in seen:
            raise ValidationError("tools", f"duplicate tool name {tool.name!r}")
        seen.add(tool.name)

    request.schema_dict()
