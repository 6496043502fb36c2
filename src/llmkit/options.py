"""Generation options and their per-provider validation."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
import logging
from typing import TYPE_CHECKING, Any

from llmkit import capabilities
from llmkit.errors import UnsupportedOptionError, ValidationError

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)

_ANTHROPIC_THINKING_MIN_TOP_P = 0.95


@dataclass(frozen=True)
class Options:
    """Provider-agnostic generation settings. Every field is optional."""

    #: Sampling temperature. Legal range depends on the provider.
    temperature: float | None = None
    #: Nucleus sampling threshold (0.0-1.0).
    top_p: float | None = None
    #: Limit sampling to the top K tokens.
    top_k: int | None = None
    #: Maximum tokens to generate.
    max_tokens: int | None = None
    #: Strings that halt generation.
    stop_sequences: tuple[str, ...] | None = None
    #: Seed for best-effort deterministic sampling.
    seed: int | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None
    #: Token budget for extended thinking. Counts towards ``max_tokens``.
    thinking_budget: int | None = None
    #: Reasoning intensity, e.g. ``"low"`` or ``"high"``.
    reasoning_effort: str | None = None

    def __post_init__(self) -> None:
        """Normalize list-valued fields so instances stay hashable."""
        if self.stop_sequences is not None and not isinstance(
            self.stop_sequences, tuple
        ):
            if isinstance(self.stop_sequences, str):
                raise ValidationError(
                    "stop_sequences",
                    "must be a sequence of strings",
                    hint="Pass stop_sequences=['END'] rather than a bare string.",
                )
            object.__setattr__(self, "stop_sequences", tuple(self.stop_sequences))

    def populated(self) -> Iterator[tuple[str, Any]]:
        """Yield ``(name, value)`` for every field that was set."""
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None:
                yield f.name, value

    def merged(self, other: Options | None) -> Options:
        """Return a copy with *other*'s set fields layered on top."""
        if other is None:
            return self
        return replace(self, **dict(other.populated()))


def validate_options(provider: str, options: Options | None) -> Options:
    """Check *options* against the capability matrix for *provider*.

    Runs before any network I/O. The first unsupported field fails the whole
    call; out-of-range values are rejected, not clamped. The returned Options
    may differ from the input only where the matrix allows down-scoping.

    Raises:
        UnsupportedOptionError: A set field is not supported by *provider*.
        ValidationError: A value is outside the provider's legal range.
    """
    if options is None:
        return Options()

    populated = list(options.populated())
    for name, _ in populated:
        if not capabilities.supports(provider, name):
            raise UnsupportedOptionError(name, provider)

    adjusted = options
    for name, value in populated:
        spec = capabilities.lookup(provider, name)
        if name == "stop_sequences":
            adjusted = _check_stop_sequences(provider, adjusted, value, spec)
            continue
        if spec.choices is not None:
            if value not in spec.choices:
                allowed = ", ".join(sorted(spec.choices))
                raise ValidationError(
                    name,
                    f"{value!r} not supported by {provider}",
                    hint=f"Use one of: {allowed}.",
                )
            continue
        _check_number(provider, name, value, spec)

    _check_cross_field(provider, adjusted)
    return adjusted


def _check_number(
    provider: str, name: str, value: Any, spec: capabilities.OptionSpec
) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(name, f"must be a number, got {type(value).__name__}")
    if name in {"top_k", "max_tokens", "seed", "thinking_budget"} and not isinstance(
        value, int
    ):
        raise ValidationError(name, "must be an integer")
    if spec.minimum is not None and value < spec.minimum:
        raise ValidationError(
            name,
            f"{value} is below the {provider} minimum of {_fmt(spec.minimum)}",
        )
    if spec.maximum is not None and value > spec.maximum:
        raise ValidationError(
            name,
            f"{value} is above the {provider} maximum of {_fmt(spec.maximum)}",
        )


def _check_stop_sequences(
    provider: str,
    options: Options,
    value: tuple[str, ...],
    spec: capabilities.OptionSpec,
) -> Options:
    if not all(isinstance(s, str) and s for s in value):
        raise ValidationError("stop_sequences", "entries must be non-empty strings")
    if spec.max_items is None or len(value) <= spec.max_items:
        return options
    if not spec.downscale:
        raise ValidationError(
            "stop_sequences",
            f"{provider} accepts at most {spec.max_items} stop sequences, got {len(value)}",
        )
    logger.warning(
        "%s accepts at most %d stop sequences; dropping %d",
        provider,
        spec.max_items,
        len(value) - spec.max_items,
    )
    return replace(options, stop_sequences=value[: spec.max_items])


def _check_cross_field(provider: str, options: Options) -> None:
    if provider == capabilities.ANTHROPIC and options.thinking_budget is not None:
        if options.max_tokens is not None and options.max_tokens <= options.thinking_budget:
            raise ValidationError(
                "max_tokens",
                "must be greater than thinking_budget",
                hint="The thinking budget counts towards max_tokens.",
            )
        hint = "Extended thinking fixes temperature at 1 and top_k off."
        if options.temperature is not None and options.temperature != 1:
            raise ValidationError(
                "temperature", "cannot be changed with thinking_budget", hint=hint
            )
        if options.top_k is not None:
            raise ValidationError(
                "top_k", "cannot be combined with thinking_budget", hint=hint
            )
        if options.top_p is not None and options.top_p < _ANTHROPIC_THINKING_MIN_TOP_P:
            raise ValidationError(
                "top_p",
                f"must be >= {_ANTHROPIC_THINKING_MIN_TOP_P} with thinking_budget",
                hint=hint,
            )
    if (
        provider == capabilities.GOOGLE
        and options.thinking_budget is not None
        and options.reasoning_effort is not None
    ):
        raise ValidationError(
            "reasoning_effort",
            "cannot be combined with thinking_budget",
            hint="Gemini 2.5 models take thinking_budget; Gemini 3 takes reasoning_effort.",
        )


def _fmt(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)
