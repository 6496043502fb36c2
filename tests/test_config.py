"""Provider identity and layered settings."""

from __future__ import annotations

from pathlib import Path

import pytest

from llmkit.config import (
    Provider,
    Settings,
    default_options_from_env,
    get_settings,
    load_settings,
)
from llmkit.errors import ConfigurationError
from llmkit.options import Options

pytestmark = pytest.mark.unit


# =============================================================================
# Provider
# =============================================================================


def test_provider_from_env_reads_standard_variable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("XAI_API_KEY", "xai-secret")

    provider = Provider.from_env("grok")

    assert provider.api_key == "xai-secret"
    assert provider.resolved_model() == "grok-3-fast"


def test_provider_from_env_missing_key_raises_clear_error() -> None:
    with pytest.raises(ConfigurationError) as exc:
        Provider.from_env("anthropic")
    assert exc.value.hint is not None
    assert "ANTHROPIC_API_KEY" in exc.value.hint


def test_provider_from_env_unknown_name() -> None:
    with pytest.raises(ConfigurationError, match="Unknown provider"):
        Provider.from_env("mistral")


def test_explicit_model_and_base_url_win() -> None:
    provider = Provider(
        "openai", api_key="k", model="gpt-4o-mini", base_url="http://localhost:8080/"
    )
    assert provider.resolved_model() == "gpt-4o-mini"
    assert provider.url("/v1/chat/completions") == "http://localhost:8080/v1/chat/completions"


def test_default_base_urls() -> None:
    assert Provider("google", api_key="k").url("/x") == "https://generativelanguage.googleapis.com/x"
    assert Provider("grok", api_key="k").url("/x") == "https://api.x.ai/x"


def test_provider_repr_redacts_key() -> None:
    provider = Provider("anthropic", api_key="sk-ant-very-secret")
    assert "very-secret" not in repr(provider)
    assert "very-secret" not in str(provider)
    assert "[REDACTED]" in repr(provider)


# =============================================================================
# Settings
# =============================================================================


def test_settings_defaults(tmp_path: Path) -> None:
    settings = load_settings(pyproject_path=tmp_path / "missing.toml")
    assert settings == Settings()
    assert settings.http_log is False
    assert settings.timeout_s == 120.0


def test_pyproject_table_overrides_home_file(tmp_path: Path) -> None:
    home = tmp_path / "home.toml"
    home.write_text('log_level = "DEBUG"\ntimeout_s = 10\n')
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text("[tool.llmkit]\ntimeout_s = 30\nhttp_log = true\n")

    settings = load_settings(pyproject_path=pyproject, home_path=home)

    assert settings.log_level == "DEBUG"
    assert settings.timeout_s == 30
    assert settings.http_log is True


def test_environment_overrides_files(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text("[tool.llmkit]\ntimeout_s = 30\n")
    monkeypatch.setenv("LLMKIT_TIMEOUT_S", "5.5")
    monkeypatch.setenv("LLMKIT_HTTP_LOG", "yes")

    settings = load_settings(pyproject_path=pyproject)

    assert settings.timeout_s == 5.5
    assert settings.http_log is True


def test_invalid_values_raise_configuration_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    missing = tmp_path / "missing.toml"
    monkeypatch.setenv("LLMKIT_TIMEOUT_S", "soon")
    with pytest.raises(ConfigurationError, match="LLMKIT_TIMEOUT_S"):
        load_settings(pyproject_path=missing)

    monkeypatch.setenv("LLMKIT_TIMEOUT_S", "-1")
    with pytest.raises(ConfigurationError, match="timeout_s"):
        load_settings(pyproject_path=missing)

    monkeypatch.delenv("LLMKIT_TIMEOUT_S")
    monkeypatch.setenv("LLMKIT_LOG_LEVEL", "chatty")
    with pytest.raises(ConfigurationError, match="log level"):
        load_settings(pyproject_path=missing)


def test_malformed_toml_raises_configuration_error(tmp_path: Path) -> None:
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text("[tool.llmkit\n")
    with pytest.raises(ConfigurationError, match="Could not read"):
        load_settings(pyproject_path=pyproject)


def test_get_settings_is_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    first = get_settings()
    monkeypatch.setenv("LLMKIT_TIMEOUT_S", "7")
    assert get_settings() is first


# =============================================================================
# Environment option defaults
# =============================================================================


def test_default_options_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LLMKIT_TEMPERATURE", "0.3")
    monkeypatch.setenv("LLMKIT_MAX_TOKENS", "256")
    monkeypatch.setenv("LLMKIT_REASONING_EFFORT", "low")

    assert default_options_from_env() == Options(
        temperature=0.3, max_tokens=256, reasoning_effort="low"
    )


def test_default_options_skip_unparsable_values(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    monkeypatch.setenv("LLMKIT_SEED", "abc")
    assert default_options_from_env() == Options()
    assert "LLMKIT_SEED" in caplog.text
