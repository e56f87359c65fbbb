"""
Retry policies for the HTTP transport.

A policy is a pure decision function: it is told which error occurred and
how many attempts have been made so far, and answers with the number of
seconds to wait before the next attempt. Zero or a negative value means
"stop retrying".
"""

from typing import Protocol

from ..utils.exceptions import APIError, TransportError
from ..utils.logging import get_logger

logger = get_logger(__name__)

RETRYABLE_STATUS_CODES = frozenset({500, 502, 503})
BASE_DELAY = 0.3
STOP = -1.0


class RetryPolicy(Protocol):
    """Interface the transport consults after every failed attempt."""

    max_retries: int
    max_delay: float

    def should_retry(self, error: Exception, attempts_so_far: int) -> bool: ...

    def delay_before_next(self, error: Exception, attempts_so_far: int) -> float: ...


class DefaultRetryPolicy:
    """Exponential backoff (300ms * 2^n) capped at ``max_delay`` seconds.

    Transport failures are always retryable, HTTP failures only for
    500/502/503. Everything else (4xx, decode errors, programming errors)
    is terminal.
    """

    def __init__(self, max_retries: int = 3, max_delay: float = 20.0) -> None:
        if max_retries < 0:
            raise ValueError(f"max_retries must be non-negative, got {max_retries}")
        self.max_retries = max_retries
        self.max_delay = max_delay

    def __repr__(self) -> str:
        return f"DefaultRetryPolicy(max_retries={self.max_retries}, max_delay={self.max_delay})"

    def should_retry(self, error: Exception, attempts_so_far: int) -> bool:
        if attempts_so_far > self.max_retries:
            return False

        if isinstance(error, TransportError):
            logger.info(f"Retry for transport error: {error}")
            return True
        if isinstance(error, APIError):
            if error.status_code in RETRYABLE_STATUS_CODES:
                logger.info(f"Retry for server status {error.status_code}")
                return True
            return False
        return False

    def delay_before_next(self, error: Exception, attempts_so_far: int) -> float:
        if not self.should_retry(error, attempts_so_far):
            return STOP

        # 2^64 * 300ms is far beyond any sane max_delay
        exponent = min(attempts_so_far, 64)
        return min(self.max_delay, BASE_DELAY * (1 << exponent))
