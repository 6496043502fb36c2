"""HTTP transport shared by all provider adapters.

The transport is the only component that touches the network. It is built
from process settings (or injected by the caller) and handed to the
dispatcher as an opaque object.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
import time
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import httpx

if TYPE_CHECKING:
    from llmkit.config import Settings

logger = logging.getLogger(__name__)
http_logger = logging.getLogger("llmkit.http")

# Status codes callers commonly treat as transient.
RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({408, 409, 429, 500, 502, 503, 504})

_SENSITIVE_QUERY_KEYS = frozenset({"key", "api_key", "apikey"})
_START_KEY = "llmkit_start"


@dataclass(frozen=True)
class WireRequest:
    """A rendered HTTP request, ready to send."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    #: JSON body; mutually exclusive with ``files``/``data``.
    json: dict[str, Any] | None = None
    #: Multipart form fields.
    data: dict[str, str] | None = None
    #: Multipart file parts: ``{field: (filename, bytes, mime_type)}``.
    files: dict[str, tuple[str, bytes, str]] | None = None

    def body(self) -> dict[str, Any]:
        """Return the JSON body (empty dict for multipart requests)."""
        return self.json or {}


@dataclass(frozen=True)
class RawReply:
    """An HTTP reply before provider-specific parsing."""

    status_code: int
    content: bytes
    endpoint: str
    headers: dict[str, str] = field(default_factory=dict)

    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    def payload(self) -> Any:
        """Decode the body as JSON, returning None when it is not JSON."""
        if not self.content:
            return None
        try:
            return json.loads(self.content)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return None


def redact_url(url: str) -> str:
    """Mask credentials carried in query parameters."""
    parts = urlsplit(url)
    if not parts.query:
        return url
    query = [
        (k, "[REDACTED]" if k.lower() in _SENSITIVE_QUERY_KEYS else v)
        for k, v in parse_qsl(parts.query, keep_blank_values=True)
    ]
    return urlunsplit(parts._replace(query=urlencode(query, safe="[]")))


def provider_from_url(url: str) -> str:
    """Best-effort provider label for log lines."""
    host = urlsplit(url).hostname or ""
    for needle, name in (
        ("anthropic", "anthropic"),
        ("openai", "openai"),
        ("googleapis", "google"),
        ("x.ai", "grok"),
    ):
        if needle in host:
            return name
    return host or "unknown"


async def _log_request(request: httpx.Request) -> None:
    request.extensions[_START_KEY] = time.perf_counter()


async def _log_response(response: httpx.Response) -> None:
    request = response.request
    started = request.extensions.get(_START_KEY)
    duration_ms = (time.perf_counter() - started) * 1000 if started else 0.0
    url = str(request.url)
    level = logging.WARNING if response.status_code >= 400 else logging.INFO
    http_logger.log(
        level,
        "HTTP %s %s -> %d (%.0fms)",
        request.method,
        redact_url(url),
        response.status_code,
        duration_ms,
        extra={
            "provider": provider_from_url(url),
            "status": response.status_code,
            "duration_ms": duration_ms,
        },
    )


class Transport:
    """Thin async wrapper over ``httpx.AsyncClient``.

    Holds no per-request state, so one instance may serve concurrent calls.
    Clients passed in by the caller are never closed by the transport.
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Create a transport.

        Args:
            settings: Transport settings. Defaults to the process-wide settings.
            client: Caller-owned client to send through.
            http_transport: Low-level httpx transport for an owned client
                (for example ``httpx.MockTransport`` in tests).
        """
        if settings is None:
            from llmkit.config import get_settings

            settings = get_settings()
        self.settings = settings
        self._client = client
        self._owns_client = client is None
        self._http_transport = http_transport

    def _get_client(self) -> httpx.AsyncClient:
        """Lazily initialize and return the owned client."""
        if self._client is None:
            hooks: dict[str, list[Any]] = {"request": [], "response": []}
            if self.settings.http_log:
                http_logger.setLevel(self.settings.log_level.upper())
                hooks = {"request": [_log_request], "response": [_log_response]}
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.settings.timeout_s),
                transport=self._http_transport,
                event_hooks=hooks,
            )
        return self._client

    async def send(self, wire: WireRequest) -> RawReply:
        """Perform one request/response exchange.

        httpx errors propagate unchanged; the dispatcher maps them.
        """
        client = self._get_client()
        kwargs: dict[str, Any] = {"headers": wire.headers}
        if wire.files is not None:
            kwargs["files"] = wire.files
            if wire.data:
                kwargs["data"] = wire.data
        elif wire.json is not None:
            kwargs["json"] = wire.json
        response = await client.request(wire.method, wire.url, **kwargs)
        return RawReply(
            status_code=response.status_code,
            content=response.content,
            endpoint=redact_url(wire.url),
            headers=dict(response.headers),
        )

    async def aclose(self) -> None:
        """Close the owned client, if one was created."""
        client = self._client
        if client is None or not self._owns_client:
            return
        self._client = None
        await client.aclose()

    async def __aenter__(self) -> Transport:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
