"""Provider adapters, keyed by provider name."""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType

from llmkit.errors import ValidationError

from .anthropic import AnthropicAdapter
from .base import Adapter, HTTPAdapter
from .google import GoogleAdapter
from .grok import GrokAdapter
from .openai import OpenAIAdapter

ADAPTERS: Mapping[str, Adapter] = MappingProxyType(
    {
        adapter.name: adapter
        for adapter in (
            AnthropicAdapter(),
            OpenAIAdapter(),
            GoogleAdapter(),
            GrokAdapter(),
        )
    }
)


def get_adapter(name: str) -> Adapter:
    """Return the adapter registered for *name*.

    Raises:
        ValidationError: No adapter is registered under *name*.
    """
    try:
        return ADAPTERS[name]
    except KeyError:
        raise ValidationError(
            "provider",
            f"unknown provider {name!r}",
            hint=f"Supported providers: {', '.join(sorted(ADAPTERS))}",
        ) from None


__all__ = [
    "ADAPTERS",
    "Adapter",
    "AnthropicAdapter",
    "GoogleAdapter",
    "GrokAdapter",
    "HTTPAdapter",
    "OpenAIAdapter",
    "get_adapter",
]
