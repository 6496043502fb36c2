"""Capability matrix: which optional settings each provider accepts.

The table is read-only process state; lookups are pure and safe to share
across threads and tasks.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping

ANTHROPIC = "anthropic"
OPENAI = "openai"
GOOGLE = "google"
GROK = "grok"

PROVIDER_NAMES: tuple[str, ...] = (ANTHROPIC, OPENAI, GOOGLE, GROK)

OPTION_NAMES: tuple[str, ...] = (
    "temperature",
    "top_p",
    "top_k",
    "max_tokens",
    "stop_sequences",
    "seed",
    "frequency_penalty",
    "presence_penalty",
    "thinking_budget",
    "reasoning_effort",
)


@dataclass(frozen=True)
class OptionSpec:
    """One cell of the matrix."""

    supported: bool
    minimum: float | None = None
    maximum: float | None = None
    default: Any = None
    choices: frozenset[str] | None = None
    #: Upper bound on the number of items for list-valued options.
    max_items: int | None = None
    #: When True, exceeding ``max_items`` truncates instead of failing.
    downscale: bool = False


UNSUPPORTED = OptionSpec(supported=False)


def _range(
    minimum: float | None = None,
    maximum: float | None = None,
    *,
    default: Any = None,
) -> OptionSpec:
    return OptionSpec(supported=True, minimum=minimum, maximum=maximum, default=default)


def _choices(*values: str) -> OptionSpec:
    return OptionSpec(supported=True, choices=frozenset(values))


_MATRIX: Mapping[str, Mapping[str, OptionSpec]] = MappingProxyType(
    {
        ANTHROPIC: MappingProxyType(
            {
                "temperature": _range(0.0, 1.0),
                "top_p": _range(0.0, 1.0),
                "top_k": _range(1),
                "max_tokens": _range(1, default=4096),
                "stop_sequences": OptionSpec(supported=True),
                # Extended thinking rejects budgets under 1024 tokens.
                "thinking_budget": _range(1024),
            }
        ),
        OPENAI: MappingProxyType(
            {
                "temperature": _range(0.0, 2.0),
                "top_p": _range(0.0, 1.0),
                "max_tokens": _range(1),
                "stop_sequences": OptionSpec(
                    supported=True, max_items=4, downscale=True
                ),
                "seed": _range(),
                "frequency_penalty": _range(-2.0, 2.0),
                "presence_penalty": _range(-2.0, 2.0),
                "reasoning_effort": _choices("minimal", "low", "medium", "high"),
            }
        ),
        GOOGLE: MappingProxyType(
            {
                "temperature": _range(0.0, 2.0),
                "top_p": _range(0.0, 1.0),
                "top_k": _range(1),
                "max_tokens": _range(1),
                "stop_sequences": OptionSpec(supported=True, max_items=5),
                "seed": _range(),
                # -1 asks Gemini for a dynamic budget, 0 disables thinking.
                "thinking_budget": _range(-1, 32768),
                "reasoning_effort": _choices("low", "high"),
            }
        ),
        GROK: MappingProxyType(
            {
                "temperature": _range(0.0, 2.0),
                "top_p": _range(0.0, 1.0),
                "max_tokens": _range(1),
            }
        ),
    }
)


def lookup(provider: str, option: str) -> OptionSpec:
    """Return the matrix cell for *provider*/*option*.

    Unknown providers and options resolve to an unsupported cell rather than
    raising; callers decide whether that is fatal.
    """
    return _MATRIX.get(provider, {}).get(option, UNSUPPORTED)


def supports(provider: str, option: str) -> bool:
    """Whether *provider* accepts *option* at all."""
    return lookup(provider, option).supported


def supported_options(provider: str) -> tuple[str, ...]:
    """Option names accepted by *provider*, in canonical order."""
    return tuple(name for name in OPTION_NAMES if supports(provider, name))


def default_for(provider: str, option: str) -> Any:
    """Default value the provider's adapter applies when *option* is unset."""
    return lookup(provider, option).default
