"""Error hierarchy for the Responses API transport."""
from __future__ import annotations

from typing import Any


class TransportError(Exception):
    """Base error for every failure raised by a transport."""

    retryable: bool = False

    def __init__(self, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class TransientTransportError(TransportError):
    """A failure worth retrying (timeouts, resets, overloaded servers)."""

    retryable = True

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        retry_after: float | None = None,
        raw: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.status_code = status_code
        self.retry_after = retry_after
        self.raw = raw


class FatalTransportError(TransportError):
    """A failure that no amount of retrying will fix."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_code: str | None = None,
        raw: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.status_code = status_code
        self.error_code = error_code
        self.raw = raw


# ---------------------------------------------------------------------------
# Transient errors
# ---------------------------------------------------------------------------


class RequestTimeoutError(TransientTransportError):
    """The request or a stream read timed out."""


class NetworkError(TransientTransportError):
    """Connection refused, reset, or dropped."""


class RateLimitError(TransientTransportError):
    """Rate limit exceeded."""


class ServerError(TransientTransportError):
    """Server-side error from the API."""


class StreamInterruptedError(TransientTransportError):
    """The event stream ended before a terminal event arrived."""


# ---------------------------------------------------------------------------
# Fatal errors
# ---------------------------------------------------------------------------


class AuthenticationError(FatalTransportError):
    """Authentication failed (e.g. invalid API key)."""


class AccessDeniedError(FatalTransportError):
    """Access denied (e.g. insufficient permissions)."""


class NotFoundError(FatalTransportError):
    """Resource not found (e.g. unknown model or response id)."""


class InvalidRequestError(FatalTransportError):
    """The request was malformed or invalid."""


class ContextLengthError(FatalTransportError):
    """Input exceeded the model's context window."""


class QuotaExceededError(FatalTransportError):
    """Account quota has been exceeded."""


class ResponseFailedError(FatalTransportError):
    """The service reported the response as failed."""


class IncompleteResponseError(FatalTransportError):
    """The response stopped early (``response.incomplete``)."""


class ConfigurationError(FatalTransportError):
    """The transport is missing required configuration (e.g. an API key)."""


class RetriesExhaustedError(FatalTransportError):
    """A transient error persisted through every permitted attempt."""

    def __init__(self, message: str, *, attempts: int, cause: Exception | None = None) -> None:
        super().__init__(message, cause=cause)
        self.attempts = attempts


# ---------------------------------------------------------------------------
# Protocol anomalies
# ---------------------------------------------------------------------------


class ProtocolAnomaly(Exception):
    """An unexpected or malformed stream event.

    Never crosses the core boundary: the offending event is logged and
    skipped.
    """

    def __init__(self, message: str, *, raw: Any = None) -> None:
        super().__init__(message)
        self.raw = raw


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

# Failure codes the service reports in ``response.failed`` / ``error`` events
# that will fail again on retry.
FATAL_ERROR_CODES = frozenset({
    "invalid_prompt",
    "invalid_request_error",
    "context_length_exceeded",
    "insufficient_quota",
    "invalid_api_key",
})


def error_from_status_code(
    status_code: int,
    message: str,
    *,
    error_code: str | None = None,
    raw: dict[str, Any] | None = None,
    retry_after: float | None = None,
) -> TransportError:
    """Map an HTTP status code to the appropriate error type."""
    fatal = dict(status_code=status_code, error_code=error_code, raw=raw)
    transient = dict(status_code=status_code, raw=raw, retry_after=retry_after)

    if status_code in (400, 422):
        if error_code == "context_length_exceeded":
            return ContextLengthError(message, **fatal)
        return InvalidRequestError(message, **fatal)
    if status_code == 401:
        return AuthenticationError(message, **fatal)
    if status_code == 403:
        return AccessDeniedError(message, **fatal)
    if status_code == 404:
        return NotFoundError(message, **fatal)
    if status_code == 408:
        return RequestTimeoutError(message, **transient)
    if status_code == 413:
        return ContextLengthError(message, **fatal)
    if status_code == 429:
        if error_code == "insufficient_quota":
            return QuotaExceededError(message, **fatal)
        return RateLimitError(message, **transient)
    if 500 <= status_code <= 599:
        return ServerError(message, **transient)

    # Unknown status codes are retryable by default
    return TransientTransportError(message, **transient)


def error_from_failure(payload: dict[str, Any] | None) -> TransportError:
    """Build an error from a ``response.failed`` or ``error`` event payload."""
    payload = payload or {}
    message = payload.get("message") or "response failed"
    code = payload.get("code") or payload.get("type")
    if code in FATAL_ERROR_CODES:
        return ResponseFailedError(message, error_code=code, raw=payload)
    if code == "rate_limit_exceeded":
        return RateLimitError(message, raw=payload)
    return ServerError(message, raw=payload)
