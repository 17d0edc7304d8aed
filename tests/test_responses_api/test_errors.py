"""Tests for the transport error hierarchy."""
from __future__ import annotations

import pytest

from responses_api.errors import (
    AccessDeniedError,
    AuthenticationError,
    ContextLengthError,
    FatalTransportError,
    InvalidRequestError,
    NotFoundError,
    ProtocolAnomaly,
    QuotaExceededError,
    RateLimitError,
    RequestTimeoutError,
    ResponseFailedError,
    RetriesExhaustedError,
    ServerError,
    TransientTransportError,
    TransportError,
    error_from_failure,
    error_from_status_code,
)


# ---------------------------------------------------------------------------
# Hierarchy
# ---------------------------------------------------------------------------


class TestHierarchy:
    def test_transient_errors_are_retryable(self) -> None:
        for cls in (RequestTimeoutError, RateLimitError, ServerError):
            err = cls("x")
            assert isinstance(err, TransientTransportError)
            assert err.retryable is True

    def test_fatal_errors_are_not_retryable(self) -> None:
        for cls in (AuthenticationError, InvalidRequestError, QuotaExceededError):
            err = cls("x")
            assert isinstance(err, FatalTransportError)
            assert err.retryable is False

    def test_cause_is_kept(self) -> None:
        cause = OSError("reset")
        err = TransportError("wrapped", cause=cause)
        assert err.cause is cause
        assert str(err) == "wrapped"

    def test_retries_exhausted_is_fatal_and_counts_attempts(self) -> None:
        err = RetriesExhaustedError("gave up", attempts=3)
        assert isinstance(err, FatalTransportError)
        assert err.attempts == 3

    def test_protocol_anomaly_is_not_a_transport_error(self) -> None:
        assert not issubclass(ProtocolAnomaly, TransportError)


# ---------------------------------------------------------------------------
# error_from_status_code
# ---------------------------------------------------------------------------


class TestErrorFromStatusCode:
    @pytest.mark.parametrize(
        "status, expected",
        [
            (400, InvalidRequestError),
            (401, AuthenticationError),
            (403, AccessDeniedError),
            (404, NotFoundError),
            (408, RequestTimeoutError),
            (413, ContextLengthError),
            (422, InvalidRequestError),
            (429, RateLimitError),
            (500, ServerError),
            (503, ServerError),
        ],
    )
    def test_status_mapping(self, status: int, expected: type) -> None:
        assert type(error_from_status_code(status, "msg")) is expected

    def test_unknown_status_is_transient(self) -> None:
        err = error_from_status_code(418, "teapot")
        assert isinstance(err, TransientTransportError)

    def test_quota_code_on_429_is_fatal(self) -> None:
        err = error_from_status_code(429, "no money", error_code="insufficient_quota")
        assert isinstance(err, QuotaExceededError)

    def test_context_length_code_on_400(self) -> None:
        err = error_from_status_code(400, "too long", error_code="context_length_exceeded")
        assert isinstance(err, ContextLengthError)

    def test_retry_after_carried_on_transient(self) -> None:
        err = error_from_status_code(429, "slow down", retry_after=2.5)
        assert err.retry_after == 2.5
        assert err.status_code == 429


# ---------------------------------------------------------------------------
# error_from_failure
# ---------------------------------------------------------------------------


class TestErrorFromFailure:
    def test_fatal_code(self) -> None:
        err = error_from_failure({"code": "invalid_prompt", "message": "nope"})
        assert isinstance(err, ResponseFailedError)
        assert err.error_code == "invalid_prompt"
        assert str(err) == "nope"

    def test_server_error_code_is_transient(self) -> None:
        err = error_from_failure({"code": "server_error", "message": "oops"})
        assert isinstance(err, ServerError)

    def test_rate_limit_code(self) -> None:
        assert isinstance(error_from_failure({"code": "rate_limit_exceeded"}), RateLimitError)

    def test_missing_payload(self) -> None:
        err = error_from_failure(None)
        assert isinstance(err, ServerError)
        assert str(err) == "response failed"
