"""Option validation against the capability matrix."""

from __future__ import annotations

import logging

from hypothesis import given
from hypothesis import strategies as st
import pytest

from llmkit import capabilities
from llmkit.errors import UnsupportedOptionError, ValidationError
from llmkit.options import Options, validate_options

pytestmark = pytest.mark.unit


# =============================================================================
# Options value object
# =============================================================================


def test_options_normalize_stop_sequences_to_tuple() -> None:
    opts = Options(stop_sequences=["END", "STOP"])
    assert opts.stop_sequences == ("END", "STOP")
    assert hash(opts) == hash(Options(stop_sequences=("END", "STOP")))


def test_options_reject_bare_string_stop_sequences() -> None:
    with pytest.raises(ValidationError) as exc:
        Options(stop_sequences="END")  # type: ignore[arg-type]
    assert exc.value.field == "stop_sequences"


def test_merged_layers_set_fields_only() -> None:
    base = Options(temperature=0.2, max_tokens=100)
    merged = base.merged(Options(max_tokens=50, seed=1))
    assert merged == Options(temperature=0.2, max_tokens=50, seed=1)
    assert base.merged(None) is base


# =============================================================================
# Support and range checks
# =============================================================================


def test_none_and_empty_options_validate_everywhere() -> None:
    for provider in capabilities.PROVIDER_NAMES:
        assert validate_options(provider, None) == Options()
        assert validate_options(provider, Options()) == Options()


@pytest.mark.parametrize(
    ("provider", "options", "field"),
    [
        ("grok", Options(seed=42), "seed"),
        ("grok", Options(top_k=5), "top_k"),
        ("anthropic", Options(seed=1), "seed"),
        ("anthropic", Options(reasoning_effort="high"), "reasoning_effort"),
        ("openai", Options(top_k=5), "top_k"),
        ("openai", Options(thinking_budget=2048), "thinking_budget"),
        ("google", Options(frequency_penalty=0.5), "frequency_penalty"),
    ],
)
def test_unsupported_option_names_field_and_provider(
    provider: str, options: Options, field: str
) -> None:
    with pytest.raises(UnsupportedOptionError) as exc:
        validate_options(provider, options)
    assert exc.value.field == field
    assert exc.value.provider == provider


@pytest.mark.parametrize(
    ("provider", "options", "field"),
    [
        ("anthropic", Options(temperature=1.5), "temperature"),
        ("openai", Options(temperature=2.5), "temperature"),
        ("openai", Options(temperature=-0.1), "temperature"),
        ("google", Options(top_p=1.01), "top_p"),
        ("openai", Options(frequency_penalty=3.0), "frequency_penalty"),
        ("anthropic", Options(thinking_budget=512), "thinking_budget"),
        ("google", Options(thinking_budget=40000), "thinking_budget"),
        ("openai", Options(max_tokens=0), "max_tokens"),
        ("anthropic", Options(top_k=2.5), "top_k"),  # type: ignore[arg-type]
    ],
)
def test_out_of_range_values_are_rejected_not_clamped(
    provider: str, options: Options, field: str
) -> None:
    with pytest.raises(ValidationError) as exc:
        validate_options(provider, options)
    assert exc.value.field == field


def test_boundary_values_are_accepted() -> None:
    assert validate_options("anthropic", Options(temperature=1.0)).temperature == 1.0
    assert validate_options("openai", Options(temperature=2.0)).temperature == 2.0
    assert validate_options("google", Options(thinking_budget=-1)).thinking_budget == -1


def test_reasoning_effort_choices_per_provider() -> None:
    assert validate_options("openai", Options(reasoning_effort="minimal"))
    with pytest.raises(ValidationError) as exc:
        validate_options("google", Options(reasoning_effort="minimal"))
    assert exc.value.field == "reasoning_effort"


# =============================================================================
# Stop sequences
# =============================================================================


def test_openai_stop_sequences_are_down_scoped_with_warning(
    caplog: pytest.LogCaptureFixture,
) -> None:
    opts = Options(stop_sequences=("a", "b", "c", "d", "e", "f"))

    with caplog.at_level(logging.WARNING, logger="llmkit.options"):
        result = validate_options("openai", opts)

    assert result.stop_sequences == ("a", "b", "c", "d")
    assert "dropping 2" in caplog.text


def test_google_stop_sequences_over_limit_fail() -> None:
    with pytest.raises(ValidationError) as exc:
        validate_options("google", Options(stop_sequences=tuple("abcdef")))
    assert exc.value.field == "stop_sequences"


def test_empty_stop_sequence_entry_is_rejected() -> None:
    with pytest.raises(ValidationError):
        validate_options("anthropic", Options(stop_sequences=("END", "")))


# =============================================================================
# Cross-field rules
# =============================================================================


def test_anthropic_max_tokens_must_exceed_thinking_budget() -> None:
    with pytest.raises(ValidationError) as exc:
        validate_options("anthropic", Options(thinking_budget=2048, max_tokens=2048))
    assert exc.value.field == "max_tokens"

    ok = validate_options("anthropic", Options(thinking_budget=2048, max_tokens=4096))
    assert ok.thinking_budget == 2048


@pytest.mark.parametrize(
    ("options", "field"),
    [
        (Options(thinking_budget=2048, temperature=0.2), "temperature"),
        (Options(thinking_budget=2048, top_k=40), "top_k"),
        (Options(thinking_budget=2048, top_p=0.5), "top_p"),
    ],
)
def test_anthropic_thinking_rejects_sampling_overrides(options: Options, field: str) -> None:
    with pytest.raises(ValidationError) as exc:
        validate_options("anthropic", options)
    assert exc.value.field == field


def test_anthropic_thinking_accepts_neutral_sampling() -> None:
    ok = validate_options(
        "anthropic", Options(thinking_budget=2048, temperature=1.0, top_p=0.95)
    )
    assert ok.temperature == 1.0
    # Without thinking the same overrides are fine.
    assert validate_options("anthropic", Options(temperature=0.2, top_k=40)).top_k == 40


def test_google_thinking_budget_and_effort_are_exclusive() -> None:
    with pytest.raises(ValidationError) as exc:
        validate_options(
            "google", Options(thinking_budget=1024, reasoning_effort="high")
        )
    assert exc.value.field == "reasoning_effort"


# =============================================================================
# Properties
# =============================================================================


@given(
    provider=st.sampled_from(capabilities.PROVIDER_NAMES),
    temperature=st.floats(min_value=0.0, max_value=1.0),
    top_p=st.floats(min_value=0.0, max_value=1.0),
    max_tokens=st.integers(min_value=1, max_value=100_000),
)
def test_validation_is_idempotent_for_accepted_options(
    provider: str, temperature: float, top_p: float, max_tokens: int
) -> None:
    opts = Options(temperature=temperature, top_p=top_p, max_tokens=max_tokens)
    once = validate_options(provider, opts)
    assert validate_options(provider, once) == once
    assert once == opts


@given(
    stops=st.lists(st.text(min_size=1, max_size=5), min_size=0, max_size=10),
)
def test_openai_down_scope_never_exceeds_limit(stops: list[str]) -> None:
    result = validate_options("openai", Options(stop_sequences=tuple(stops)))
    assert len(result.stop_sequences or ()) <= 4
    assert list(result.stop_sequences or ()) == stops[:4]
