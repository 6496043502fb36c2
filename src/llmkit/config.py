"""Provider identity and process-wide settings.

``Provider`` is the immutable value callers pass to ``prompt()``. ``Settings``
holds transport-level toggles (HTTP logging, timeouts) resolved once per
process from layered sources: defaults, then a TOML file, then ``LLMKIT_*``
environment variables. The dispatcher never reads these sources itself; it is
handed a transport built from them.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import cache
import logging
import os
from pathlib import Path
import tomllib
from typing import TYPE_CHECKING, Any

from dotenv import load_dotenv

from llmkit.capabilities import ANTHROPIC, GOOGLE, GROK, OPENAI
from llmkit.errors import ConfigurationError
from llmkit.options import Options

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

CONFIG_TOOL_NAME = "llmkit"
ENV_PREFIX = "LLMKIT_"

DEFAULT_MODELS: Mapping[str, str] = {
    ANTHROPIC: "claude-sonnet-4-5",
    OPENAI: "gpt-4o-2024-08-06",
    GOOGLE: "gemini-2.5-flash",
    GROK: "grok-3-fast",
}

DEFAULT_BASE_URLS: Mapping[str, str] = {
    ANTHROPIC: "https://api.anthropic.com",
    OPENAI: "https://api.openai.com",
    GOOGLE: "https://generativelanguage.googleapis.com",
    GROK: "https://api.x.ai",
}

# Provider-specific API key environment variable names
_API_KEY_ENV_VARS: Mapping[str, str] = {
    ANTHROPIC: "ANTHROPIC_API_KEY",
    OPENAI: "OPENAI_API_KEY",
    GOOGLE: "GEMINI_API_KEY",
    GROK: "XAI_API_KEY",
}


@dataclass(frozen=True)
class Provider:
    """Which vendor to call, with which key and model.

    Unknown names are accepted here and rejected when a request is attempted.

    Example:
        provider = Provider("anthropic", api_key="sk-...")
        provider = Provider("openai", api_key="sk-...", model="gpt-4o-mini")
    """

    name: str
    api_key: str = ""
    #: Overrides the per-provider default model when set.
    model: str | None = None
    #: Overrides the default endpoint (proxies, compatible self-hosted servers).
    base_url: str | None = None

    @classmethod
    def from_env(
        cls, name: str, *, model: str | None = None, base_url: str | None = None
    ) -> Provider:
        """Build a Provider whose key comes from the standard environment variable."""
        load_dotenv()
        env_var = _API_KEY_ENV_VARS.get(name)
        if env_var is None:
            raise ConfigurationError(
                f"Unknown provider: {name!r}",
                hint=f"Supported providers: {', '.join(DEFAULT_MODELS)}",
            )
        api_key = os.environ.get(env_var, "")
        if not api_key:
            raise ConfigurationError(
                f"API key required for {name}",
                hint=f"Set {env_var} environment variable or pass api_key=...",
            )
        return cls(name=name, api_key=api_key, model=model, base_url=base_url)

    def resolved_model(self) -> str | None:
        """Return the explicit model, else the provider default (None if unknown)."""
        if self.model:
            return self.model
        return DEFAULT_MODELS.get(self.name)

    def url(self, path: str) -> str:
        """Join *path* onto the configured or default base URL."""
        base = self.base_url or DEFAULT_BASE_URLS.get(self.name, "")
        return base.rstrip("/") + path

    def __str__(self) -> str:
        """Return a redacted, developer-friendly representation."""
        return (
            f"Provider(name={self.name!r}, model={self.model!r}, "
            f"api_key={'[REDACTED]' if self.api_key else None}, "
            f"base_url={self.base_url!r})"
        )

    __repr__ = __str__


@dataclass(frozen=True)
class Settings:
    """Transport-level settings shared by every call in the process."""

    #: Log each HTTP exchange (method, redacted URL, status, duration).
    http_log: bool = False
    #: Level for the ``llmkit.http`` logger when ``http_log`` is on.
    log_level: str = "INFO"
    #: Default per-request timeout in seconds; None waits indefinitely.
    timeout_s: float | None = 120.0

    def __post_init__(self) -> None:
        """Validate resolved values for clear errors."""
        if logging.getLevelName(self.log_level.upper()) == f"Level {self.log_level.upper()}":
            raise ConfigurationError(
                f"Unknown log level: {self.log_level!r}",
                hint="Use DEBUG, INFO, WARNING or ERROR.",
            )
        if self.timeout_s is not None and self.timeout_s <= 0:
            raise ConfigurationError(
                f"timeout_s must be > 0, got {self.timeout_s}",
                hint="Set timeout_s to a positive number of seconds, or omit it.",
            )


def _coerce_bool(v: str) -> bool:
    """Convert string to boolean using common conventions."""
    return v.strip().lower() in {"1", "true", "yes", "on"}


def _read_toml(path: Path | None) -> dict[str, Any]:
    if path is None or not path.is_file():
        return {}
    try:
        with path.open("rb") as fh:
            return tomllib.load(fh)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigurationError(
            f"Could not read config file {path}: {e}",
            hint="Fix the TOML syntax or remove the file.",
        ) from e


def _home_config_path() -> Path:
    override = os.environ.get(f"{ENV_PREFIX}CONFIG_HOME")
    base = Path(override) if override else Path.home() / ".config"
    return base / CONFIG_TOOL_NAME / "config.toml"


def load_file_settings(
    pyproject_path: Path | None = None, home_path: Path | None = None
) -> dict[str, Any]:
    """Read ``[tool.llmkit]`` from pyproject.toml, layered over the home config.

    The home file (``~/.config/llmkit/config.toml``) holds top-level keys.
    """
    merged: dict[str, Any] = dict(_read_toml(home_path or _home_config_path()))
    project = _read_toml(pyproject_path or Path.cwd() / "pyproject.toml")
    merged.update(project.get("tool", {}).get(CONFIG_TOOL_NAME, {}))
    return {k: v for k, v in merged.items() if k in {"http_log", "log_level", "timeout_s"}}


def load_env_settings() -> dict[str, Any]:
    """Read ``LLMKIT_HTTP_LOG``, ``LLMKIT_LOG_LEVEL`` and ``LLMKIT_TIMEOUT_S``."""
    values: dict[str, Any] = {}
    if (raw := os.environ.get(f"{ENV_PREFIX}HTTP_LOG")) is not None:
        values["http_log"] = _coerce_bool(raw)
    if (raw := os.environ.get(f"{ENV_PREFIX}LOG_LEVEL")) is not None:
        values["log_level"] = raw.strip()
    if (raw := os.environ.get(f"{ENV_PREFIX}TIMEOUT_S")) is not None:
        values["timeout_s"] = _parse_number(f"{ENV_PREFIX}TIMEOUT_S", raw, float)
    return values


def load_settings(
    *, pyproject_path: Path | None = None, home_path: Path | None = None
) -> Settings:
    """Resolve Settings: defaults < config files < environment."""
    load_dotenv()
    values = load_file_settings(pyproject_path, home_path)
    values.update(load_env_settings())
    settings = Settings(**values)
    logger.debug("Resolved settings: %s", settings)
    return settings


@cache
def get_settings() -> Settings:
    """Return the process-wide Settings, loading them on first use."""
    return load_settings()


def reset_settings() -> None:
    """Forget the cached Settings so the next call reloads them."""
    get_settings.cache_clear()


def default_options_from_env() -> Options:
    """Build Options from ``LLMKIT_*`` generation defaults.

    Unset or unparsable variables are skipped. Intended for callers that want
    environment-driven defaults; pass the result (or merge it) explicitly.
    """
    load_dotenv()
    spec: dict[str, type] = {
        "temperature": float,
        "top_p": float,
        "top_k": int,
        "max_tokens": int,
        "seed": int,
        "frequency_penalty": float,
        "presence_penalty": float,
        "thinking_budget": int,
    }
    values: dict[str, Any] = {}
    for name, kind in spec.items():
        raw = os.environ.get(f"{ENV_PREFIX}{name.upper()}")
        if not raw:
            continue
        try:
            values[name] = kind(raw)
        except ValueError:
            logger.warning("Ignoring %s%s=%r: not a %s", ENV_PREFIX, name.upper(), raw, kind.__name__)
    effort = os.environ.get(f"{ENV_PREFIX}REASONING_EFFORT")
    if effort:
        values["reasoning_effort"] = effort
    return Options(**values)


def _parse_number(name: str, raw: str, kind: type) -> Any:
    try:
        return kind(raw)
    except ValueError as e:
        raise ConfigurationError(
            f"{name} must be a {kind.__name__}, got {raw!r}"
        ) from e
