"""Classification of transport failures and bounded exponential backoff."""

from __future__ import annotations

import random
from dataclasses import dataclass
from enum import StrEnum

from responses_api.errors import TransientTransportError


class Disposition(StrEnum):
    TRANSIENT = "transient"
    FATAL = "fatal"


def classify(exc: BaseException) -> Disposition:
    """Transient errors are retried; everything else is fatal."""
    if isinstance(exc, TransientTransportError):
        return Disposition.TRANSIENT
    return Disposition.FATAL


@dataclass(frozen=True)
class RetryPolicy:
    """Retry schedule for transient transport failures.

    ``max_attempts`` counts the first attempt, so the default allows two
    retries. Delays grow as ``base_delay * backoff_multiplier ** (n - 1)``
    for the n-th retry, clamped to ``max_delay``.
    """

    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 8.0
    backoff_multiplier: float = 2.0
    jitter: bool = True

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be non-negative")

    def should_retry(self, exc: BaseException, attempt: int) -> bool:
        """Whether a failure on (1-based) *attempt* earns another attempt."""
        return classify(exc) == Disposition.TRANSIENT and attempt < self.max_attempts

    def delay_for(self, exc: BaseException, attempt: int) -> float:
        """Delay before the attempt that follows *attempt*.

        A server-supplied ``retry_after`` within ``max_delay`` wins over the
        computed backoff.
        """
        retry_after = getattr(exc, "retry_after", None)
        if retry_after is not None and 0 <= retry_after <= self.max_delay:
            return float(retry_after)
        return calculate_delay(attempt, self)


def calculate_delay(attempt: int, policy: RetryPolicy) -> float:
    """Compute the backoff after the given 1-based attempt failed.

    Uses exponential backoff clamped to *policy.max_delay*, with optional
    jitter.
    """
    delay = min(
        policy.base_delay * (policy.backoff_multiplier ** (attempt - 1)),
        policy.max_delay,
    )
    if policy.jitter:
        delay *= random.uniform(0.5, 1.5)
    return delay
