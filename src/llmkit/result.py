"""Canonical response model shared by every provider adapter."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
from typing import TYPE_CHECKING, Any, TypeVar

from llmkit.errors import SchemaError

if TYPE_CHECKING:
    from pydantic import BaseModel

M = TypeVar("M", bound="BaseModel")


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation requested by the model."""

    id: str
    name: str
    #: JSON-encoded arguments object.
    arguments: str = "{}"

    def input(self) -> dict[str, Any]:
        """Decode the arguments, treating malformed JSON as no arguments."""
        try:
            value = json.loads(self.arguments or "{}")
        except json.JSONDecodeError:
            return {}
        return value if isinstance(value, dict) else {}


@dataclass(frozen=True)
class Usage:
    """Token counts for one exchange."""

    input: int = 0
    output: int = 0

    @property
    def total(self) -> int:
        return self.input + self.output

    def __add__(self, other: Usage) -> Usage:
        return Usage(input=self.input + other.input, output=self.output + other.output)


@dataclass(frozen=True)
class Response:
    """A provider reply in canonical form.

    On success ``text`` is non-empty, ``tool_calls`` is non-empty, or both.
    For structured output ``text`` holds the raw JSON document.
    """

    text: str = ""
    tokens: Usage = field(default_factory=Usage)
    tool_calls: tuple[ToolCall, ...] = ()
    provider: str | None = None
    model: str | None = None
    finish_reason: str | None = None
    #: Provider data to carry on the assistant turn when it is replayed.
    provider_state: dict[str, Any] | None = field(default=None, compare=False)
    #: Decoded provider reply, kept for diagnostics.
    raw: dict[str, Any] | None = field(default=None, repr=False, compare=False)

    def json(self) -> Any:
        """Parse ``text`` as JSON.

        Raises:
            SchemaError: The text is not a JSON document.
        """
        try:
            return json.loads(self.text)
        except json.JSONDecodeError as e:
            raise SchemaError(
                "text", f"response is not valid JSON: {e.msg}"
            ) from e

    def parse(self, model: type[M]) -> M:
        """Validate ``text`` into a pydantic model.

        Raises:
            SchemaError: The text does not satisfy *model*.
        """
        from pydantic import ValidationError as PydanticValidationError

        try:
            return model.model_validate_json(self.text)
        except PydanticValidationError as e:
            raise SchemaError(
                model.__name__, f"response does not match schema: {e.error_count()} error(s)"
            ) from e
