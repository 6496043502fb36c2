"""Adapter protocol: the render/dispatch/parse contract every provider meets."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from llmkit._http import RawReply, Transport, WireRequest
    from llmkit.config import Provider
    from llmkit.options import Options
    from llmkit.request import File, Request
    from llmkit.result import Response


@runtime_checkable
class Adapter(Protocol):
    """Translate canonical requests to one vendor's wire format and back.

    Adapters are stateless: the Provider (key, model, base URL) is passed to
    every call, so a single instance is shared process-wide.
    """

    name: str

    def render(
        self, provider: Provider, request: Request, options: Options
    ) -> WireRequest:
        """Build the vendor JSON body, headers and endpoint for *request*."""
        ...

    async def dispatch(self, transport: Transport, wire: WireRequest) -> RawReply:
        """Send *wire* and return the raw reply."""
        ...

    def parse(self, provider: Provider, reply: RawReply, request: Request) -> Response:
        """Map a raw reply to a Response, or raise APIError/SchemaError."""
        ...

    def render_upload(
        self, provider: Provider, filename: str, data: bytes, mime_type: str
    ) -> WireRequest:
        """Build the multipart upload request for a file."""
        ...

    def parse_upload(self, provider: Provider, reply: RawReply) -> File:
        """Map an upload reply to a provider-scoped File."""
        ...


class HTTPAdapter:
    """Shared dispatch for adapters that speak JSON over HTTPS."""

    name: str = ""

    async def dispatch(self, transport: Transport, wire: WireRequest) -> RawReply:
        """Send *wire* through *transport*."""
        return await transport.send(wire)
