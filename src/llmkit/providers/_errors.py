"""Shared provider-side error helpers.

Adapters map HTTP failures into the error taxonomy here so every provider
reports status, message and retry metadata the same way.
"""

from __future__ import annotations

import asyncio
import re
from typing import TYPE_CHECKING, Any

import httpx

from llmkit._http import RETRYABLE_STATUS_CODES
from llmkit.errors import (
    APIError,
    RateLimitError,
    RequestError,
    SchemaError,
    _walk_exception_chain,
)

if TYPE_CHECKING:
    from llmkit._http import RawReply

_PROTO_DURATION_RE = re.compile(r"^(\d+(?:\.\d+)?)s$")

_ENV_VARS = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "google": "GEMINI_API_KEY",
    "grok": "XAI_API_KEY",
}


def _retry_info_seconds(payload: Any) -> float | None:
    """Extract retry delay from Google API-style RetryInfo in error details.

    Shaped like::

        {"error": {"details": [{"@type": "...RetryInfo", "retryDelay": "8s"}]}}
    """
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if not isinstance(error, dict):
        return None
    details = error.get("details")
    if not isinstance(details, list):
        return None
    for entry in details:
        if not isinstance(entry, dict):
            continue
        at_type = entry.get("@type", "")
        if not isinstance(at_type, str) or "RetryInfo" not in at_type:
            continue
        delay_raw = entry.get("retryDelay")
        if not isinstance(delay_raw, str):
            continue
        m = _PROTO_DURATION_RE.match(delay_raw)
        if m:
            return float(m.group(1))
    return None


def extract_retry_after_s(reply: RawReply) -> float | None:
    """Read a retry delay from ``Retry-After`` or a Google RetryInfo body."""
    raw = None
    for key, value in reply.headers.items():
        if key.lower() == "retry-after":
            raw = value
            break
    if isinstance(raw, str) and raw.strip():
        try:
            seconds = float(raw)
        except ValueError:
            seconds = None
        if seconds is not None and seconds >= 0:
            return seconds
    return _retry_info_seconds(reply.payload())


def _error_fields(payload: Any) -> tuple[str | None, str | None]:
    """Return ``(message, type)`` from a vendor error envelope.

    Anthropic, OpenAI and xAI use ``{"error": {"message", "type"}}``; Google
    uses ``{"error": {"code", "message", "status"}}``. xAI sometimes returns a
    bare ``{"error": "..."}`` string.
    """
    if not isinstance(payload, dict):
        return None, None
    error = payload.get("error")
    if isinstance(error, str):
        return error, None
    if not isinstance(error, dict):
        return None, None
    message = error.get("message")
    kind = error.get("type") or error.get("status")
    return (
        message if isinstance(message, str) and message else None,
        kind if isinstance(kind, str) and kind else None,
    )


def _auth_hint(provider: str, status_code: int, message: str) -> str | None:
    lowered = message.lower()
    if status_code in {401, 403} or (
        status_code == 400 and ("api key" in lowered or "api_key" in lowered)
    ):
        env_var = _ENV_VARS.get(provider, "the provider API key")
        return f"Check credentials/permissions (try setting {env_var})."
    return None


def api_error_from_reply(
    provider: str, reply: RawReply, *, schema_sent: bool = False
) -> APIError | SchemaError:
    """Map a >= 400 reply into APIError, RateLimitError or SchemaError.

    A 400 that names the schema while structured output was requested is
    reported as a SchemaError so callers can tell a bad schema from a bad
    request.
    """
    status = reply.status_code
    message, error_type = _error_fields(reply.payload())
    if message is None:
        message = reply.text().strip() or f"HTTP {status}"

    if schema_sent and status == 400 and "schema" in message.lower():
        return SchemaError("schema", f"{provider} rejected the schema: {message}")

    retry_after_s = extract_retry_after_s(reply)
    err_cls: type[APIError] = RateLimitError if status == 429 else APIError
    return err_cls(
        message,
        provider=provider,
        status_code=status,
        endpoint=reply.endpoint,
        error_type=error_type,
        retryable=status in RETRYABLE_STATUS_CODES or status >= 500,
        retry_after_s=retry_after_s,
        hint=_auth_hint(provider, status, message),
    )


def wrap_transport_error(exc: BaseException, *, operation: str) -> RequestError:
    """Wrap a transport or serialization failure in RequestError."""
    if isinstance(exc, asyncio.CancelledError):
        raise exc
    if isinstance(exc, RequestError):
        return exc

    hint = None
    for e in _walk_exception_chain(exc):
        if isinstance(e, httpx.ConnectError):
            hint = "Check network connectivity and the provider base_url."
            break
        if isinstance(e, httpx.TimeoutException):
            hint = "The HTTP client timed out; raise LLMKIT_TIMEOUT_S or pass timeout=..."
            break
    return RequestError(operation, exc, hint=hint)


def decode_success(provider: str, reply: RawReply) -> dict[str, Any]:
    """Return the JSON object of a 2xx reply.

    Raises:
        APIError: The body is not a JSON object.
    """
    payload = reply.payload()
    if not isinstance(payload, dict):
        raise APIError(
            f"malformed response body: {reply.text()[:200]!r}",
            provider=provider,
            status_code=reply.status_code,
            endpoint=reply.endpoint,
        )
    return payload
