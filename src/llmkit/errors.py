"""Exception hierarchy for llmkit.

Every failure raised by the library belongs to one of four kinds so callers
can branch on type:

- ``APIError``: the vendor rejected or failed the request.
- ``ValidationError``: a local precondition failed before any network I/O.
- ``RequestError``: building or transmitting the request failed.
- ``SchemaError``: a structured-output schema could not be used.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator


class LLMKitError(Exception):
    """Base exception for all llmkit errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(LLMKitError):
    """Settings could not be loaded or resolved."""


class APIError(LLMKitError):
    """Provider returned an error response.

    The HTTP status is preserved so callers can apply their own
    retry policy.
    """

    def __init__(
        self,
        message: str,
        *,
        provider: str | None = None,
        status_code: int | None = None,
        endpoint: str | None = None,
        error_type: str | None = None,
        retryable: bool | None = None,
        retry_after_s: float | None = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.message = message
        self.provider = provider
        self.status_code = status_code
        self.endpoint = endpoint
        self.error_type = error_type
        self.retryable = retryable
        self.retry_after_s = retry_after_s

    def __str__(self) -> str:
        if self.provider is None and self.status_code is None:
            return self.message
        return f"{self.provider}: {self.message} ({self.status_code})"


class RateLimitError(APIError):
    """Rate limit exceeded (HTTP 429)."""


class ValidationError(LLMKitError):
    """A request failed local validation; no network call was made."""

    def __init__(self, field: str, message: str, *, hint: str | None = None) -> None:
        super().__init__(f"validation: {field} - {message}", hint=hint)
        self.field = field
        self.message = message


class UnsupportedOptionError(ValidationError):
    """An option was set that the selected provider does not support."""

    def __init__(self, option: str, provider: str) -> None:
        super().__init__(
            option,
            f"not supported by {provider}",
            hint=f"Remove {option} or choose a provider that supports it.",
        )
        self.option = option
        self.provider = provider


class RequestError(LLMKitError):
    """Building or sending a request failed below the API layer."""

    def __init__(
        self, operation: str, cause: BaseException | None = None, *, hint: str | None = None
    ) -> None:
        detail = f": {cause}" if cause is not None and str(cause) else ""
        super().__init__(f"request error during {operation}{detail}", hint=hint)
        self.operation = operation
        self.cause = cause


class RequestCancelledError(RequestError):
    """The exchange was abandoned because its deadline expired."""


class SchemaError(LLMKitError):
    """A structured-output schema failed to parse or was rejected."""

    def __init__(self, field: str, message: str, *, hint: str | None = None) -> None:
        super().__init__(f"schema error for field '{field}': {message}", hint=hint)
        self.field = field
        self.message = message


def _walk_exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield *exc* and its ``__cause__``/``__context__`` chain, with cycle protection."""
    seen: set[int] = set()
    stack: list[BaseException] = [exc]
    while stack:
        cur = stack.pop()
        if id(cur) in seen:
            continue
        seen.add(id(cur))
        yield cur

        cause = cur.__cause__
        if isinstance(cause, BaseException):
            stack.append(cause)
        context = cur.__context__
        if isinstance(context, BaseException):
            stack.append(context)
