"""Pytest configuration and fixtures.

Provides environment isolation, logging configuration, marker registration,
and automatic API test skipping. All fixtures here are autouse unless noted.
"""

from __future__ import annotations

import logging
import os

import pytest

from llmkit.config import reset_settings

# =============================================================================
# Environment Isolation (Autouse)
# =============================================================================

_PROVIDER_ENV_PREFIXES = ("ANTHROPIC_", "OPENAI_", "GEMINI_", "XAI_", "LLMKIT_")


@pytest.fixture(autouse=True)
def block_dotenv(request, monkeypatch):
    """Prevent python-dotenv from loading project .env files during tests.

    Opt-out: @pytest.mark.allow_dotenv
    """
    if request.node.get_closest_marker("allow_dotenv"):
        return
    monkeypatch.setattr("llmkit.config.load_dotenv", lambda *_args, **_kwargs: False)


@pytest.fixture(autouse=True)
def isolate_provider_env(request, monkeypatch, tmp_path):
    """Ensure a clean provider environment for each test.

    Clears provider API keys and LLMKIT_* settings, and points the home config
    at an empty directory.
    Opt-out: @pytest.mark.allow_env_pollution or @pytest.mark.api
    """
    if request.node.get_closest_marker("allow_env_pollution") or (
        "api" in request.node.keywords
    ):
        return

    for key in list(os.environ.keys()):
        if key.startswith(_PROVIDER_ENV_PREFIXES):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("LLMKIT_CONFIG_HOME", str(tmp_path / "config-home"))


@pytest.fixture(autouse=True)
def fresh_settings():
    """Drop cached process settings around each test."""
    reset_settings()
    yield
    reset_settings()


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Suppress noisy third-party loggers."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# =============================================================================
# Pytest Hooks
# =============================================================================

API_TESTS_REASON = "API tests require ENABLE_API_TESTS=1"


def _api_tests_enabled() -> bool:
    return bool(os.getenv("ENABLE_API_TESTS"))


def pytest_collection_modifyitems(items):
    """Automatically skip API tests when not explicitly enabled."""
    if _api_tests_enabled():
        return
    skip_api = pytest.mark.skip(reason=API_TESTS_REASON)
    for item in items:
        if "api" in item.keywords:
            item.add_marker(skip_api)


# =============================================================================
# API Test Configuration
# =============================================================================

# Cheapest current model per provider for live tests.
_API_TEST_MODELS = {
    "anthropic": ("ANTHROPIC_API_KEY", "claude-haiku-4-5"),
    "openai": ("OPENAI_API_KEY", "gpt-5-nano"),
    "google": ("GEMINI_API_KEY", "gemini-2.5-flash-lite"),
    "grok": ("XAI_API_KEY", "grok-3-mini"),
}


@pytest.fixture
def live_provider(request):
    """Return a Provider for ``request.param`` or skip if its key is unset.

    Use with indirect parametrization:
    ``@pytest.mark.parametrize("live_provider", ["openai"], indirect=True)``.
    """
    from llmkit.config import Provider

    name = request.param
    env_var, model = _API_TEST_MODELS[name]
    key = os.getenv(env_var)
    if not key:
        pytest.skip(f"{env_var} not set")
    return Provider(name, api_key=key, model=model)


# =============================================================================
# Shared values
# =============================================================================

PROVIDER_NAMES = ("anthropic", "openai", "google", "grok")


@pytest.fixture
def anthropic():
    from llmkit.config import Provider

    return Provider("anthropic", api_key="sk-ant-test")


@pytest.fixture
def openai():
    from llmkit.config import Provider

    return Provider("openai", api_key="sk-test")


@pytest.fixture
def google():
    from llmkit.config import Provider

    return Provider("google", api_key="gm-test")


@pytest.fixture
def grok():
    from llmkit.config import Provider

    return Provider("grok", api_key="xai-test")
