"""llmkit: one request model for Anthropic, OpenAI, Google and Grok.

Public API:
    - prompt(): Send one request and get one canonical Response
    - upload_file(): Upload a file for later use with the same provider
    - Agent: Multi-turn conversation with an append-only transcript
    - Provider / Request / Options: Inputs
    - Response: Output
"""

from __future__ import annotations

import logging

from llmkit._http import Transport
from llmkit.agent import Agent
from llmkit.capabilities import supported_options, supports
from llmkit.config import (
    Provider,
    Settings,
    default_options_from_env,
    get_settings,
    load_settings,
)
from llmkit.errors import (
    APIError,
    ConfigurationError,
    LLMKitError,
    RateLimitError,
    RequestCancelledError,
    RequestError,
    SchemaError,
    UnsupportedOptionError,
    ValidationError,
)
from llmkit.options import Options, validate_options
from llmkit.prompt import prompt, upload_file
from llmkit.request import File, Image, Message, Request, Tool
from llmkit.result import Response, ToolCall, Usage

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("llmkit")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("llmkit").addHandler(logging.NullHandler())

__all__ = [
    "APIError",
    "Agent",
    "ConfigurationError",
    "File",
    "Image",
    "LLMKitError",
    "Message",
    "Options",
    "Provider",
    "RateLimitError",
    "Request",
    "RequestCancelledError",
    "RequestError",
    "Response",
    "SchemaError",
    "Settings",
    "Tool",
    "ToolCall",
    "Transport",
    "UnsupportedOptionError",
    "Usage",
    "ValidationError",
    "default_options_from_env",
    "get_settings",
    "load_settings",
    "prompt",
    "supported_options",
    "supports",
    "upload_file",
    "validate_options",
]
