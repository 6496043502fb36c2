"""Single-shot dispatch: validate, render, send and parse one request."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import inspect
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from llmkit._http import Transport
from llmkit.errors import (
    ConfigurationError,
    RequestCancelledError,
    RequestError,
    ValidationError,
)
from llmkit.options import validate_options
from llmkit.providers import get_adapter
from llmkit.providers._errors import wrap_transport_error
from llmkit.providers._utils import detect_mime_type
from llmkit.request import validate_request

if TYPE_CHECKING:
    from llmkit._http import RawReply, WireRequest
    from llmkit.config import Provider
    from llmkit.providers.base import Adapter
    from llmkit.request import File, Request
    from llmkit.result import Response

logger = logging.getLogger(__name__)

BeforeRequest = Callable[["Provider", "Request"], "Request | None | Awaitable[Request | None]"]
AfterResponse = Callable[["Response | None", "BaseException | None"], Any]


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def _resolve(provider: Provider) -> Adapter:
    adapter = get_adapter(provider.name)
    if not provider.api_key:
        raise ValidationError(
            "api_key",
            "required",
            hint=f"Pass api_key=... or use Provider.from_env({provider.name!r}).",
        )
    return adapter


async def _send(
    adapter: Adapter,
    transport: Transport | None,
    wire: WireRequest,
    *,
    operation: str,
    timeout: float | None,
) -> RawReply:
    """Dispatch *wire* under *timeout*, mapping transport failures."""
    owned = transport is None
    if transport is not None:
        active = transport
    else:
        try:
            active = Transport()
        except ConfigurationError as e:
            raise RequestError(
                "transport",
                e,
                hint="Fix the LLMKIT_* settings or pass transport=... explicitly.",
            ) from e
    try:
        async with asyncio.timeout(timeout):
            return await adapter.dispatch(active, wire)
    except TimeoutError as e:
        raise RequestCancelledError(
            operation,
            TimeoutError(f"timed out after {timeout}s"),
            hint="Raise timeout=... or check the provider's status.",
        ) from e
    except asyncio.CancelledError:
        raise
    except Exception as e:
        raise wrap_transport_error(e, operation=operation) from e
    finally:
        if owned:
            try:
                await active.aclose()
            except Exception as cleanup_error:
                logger.warning("Transport cleanup failed: %s", cleanup_error)


async def prompt(
    provider: Provider,
    request: Request,
    *,
    transport: Transport | None = None,
    timeout: float | None = None,
    before_request: BeforeRequest | None = None,
    after_response: AfterResponse | None = None,
) -> Response:
    """Send one request to *provider* and return its canonical response.

    Every local check runs before any network I/O, so a request that fails
    validation never reaches the provider.

    Args:
        provider: Which vendor, key and model to use.
        request: The prompt turn.
        transport: Shared HTTP transport. A private one is created (and closed)
            when omitted.
        timeout: Seconds to wait for the reply. None waits as long as the
            transport allows.
        before_request: Called with ``(provider, request)`` after validation;
            may return a replacement request or raise to abort.
        after_response: Called with ``(response, error)`` once the call ends.

    Raises:
        ValidationError: Unknown provider, missing key, bad request or options.
        SchemaError: The schema does not parse or the provider rejected it.
        RequestError: Transport failure; RequestCancelledError on timeout.
        APIError: The provider answered with an error.
    """
    adapter = _resolve(provider)
    validate_request(provider.name, request)
    options = validate_options(provider.name, request.options)

    if before_request is not None:
        replacement = await _maybe_await(before_request(provider, request))
        if replacement is not None and replacement is not request:
            request = replacement
            validate_request(provider.name, request)
            options = validate_options(provider.name, request.options)

    response: Response | None = None
    error: BaseException | None = None
    try:
        wire = adapter.render(provider, request, options)
        logger.debug(
            "Dispatching %s request to %s (model=%s)",
            provider.name,
            wire.url,
            provider.resolved_model(),
        )
        reply = await _send(
            adapter, transport, wire, operation="prompt", timeout=timeout
        )
        response = adapter.parse(provider, reply, request)
        logger.debug(
            "Parsed %s response: %d tool call(s), %d tokens",
            provider.name,
            len(response.tool_calls),
            response.tokens.total,
        )
        return response
    except BaseException as e:
        error = e
        raise
    finally:
        if after_response is not None:
            try:
                await _maybe_await(after_response(response, error))
            except Exception as hook_error:
                if error is None:
                    raise
                logger.warning("after_response hook failed: %s", hook_error)


async def upload_file(
    provider: Provider,
    source: str | Path | bytes,
    *,
    filename: str | None = None,
    mime_type: str | None = None,
    transport: Transport | None = None,
    timeout: float | None = None,
) -> File:
    """Upload a file to *provider* and return its provider-scoped handle.

    The returned File is only valid in requests sent to the same provider.

    Raises:
        ValidationError: Unknown provider, missing key or missing filename.
        RequestError: The path could not be read, or the transport failed.
        APIError: The provider rejected the upload.
    """
    adapter = _resolve(provider)

    if isinstance(source, bytes):
        if not filename:
            raise ValidationError(
                "filename",
                "required when uploading bytes",
                hint="Pass filename='report.pdf' alongside the bytes.",
            )
        data = source
    else:
        path = Path(source)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise RequestError(
                "read_file", e, hint=f"Check that {path} exists and is readable."
            ) from e
        filename = filename or path.name

    mime_type = mime_type or detect_mime_type(filename)
    wire = adapter.render_upload(provider, filename, data, mime_type)
    logger.debug(
        "Uploading %s (%d bytes, %s) to %s", filename, len(data), mime_type, provider.name
    )
    reply = await _send(adapter, transport, wire, operation="upload", timeout=timeout)
    return adapter.parse_upload(provider, reply)
