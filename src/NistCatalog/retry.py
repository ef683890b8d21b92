"""Tenacity retry policy for upstream catalog requests.

Only transient failures are retried: connect/read timeouts, dropped
connections, and 429/5xx responses.  Everything else surfaces on the first
attempt so callers can decide whether to fall back (dataset cache) or fail
(live search).

Example:
    >>> policy = create_http_retry_policy(max_attempts=3, max_delay_seconds=5)
    >>> for attempt in policy:
    ...     with attempt:
    ...         response = client.get(url)
"""

from __future__ import annotations

import logging

import httpx
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    stop_after_delay,
    wait_random_exponential,
)

__all__ = ["RETRYABLE_STATUS_CODES", "is_retryable_error", "create_http_retry_policy"]

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


def is_retryable_error(exc: BaseException) -> bool:
    """Return ``True`` for timeouts, transport errors, and 429/5xx responses."""

    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response is not None and exc.response.status_code in RETRYABLE_STATUS_CODES
    return isinstance(exc, (httpx.TimeoutException, httpx.TransportError))


def create_http_retry_policy(
    max_attempts: int = 3,
    max_delay_seconds: float = 10.0,
) -> Retrying:
    """Create a Tenacity policy for one logical HTTP call.

    Args:
        max_attempts: Total attempts including the first; ``1`` disables retries.
        max_delay_seconds: Upper bound for a single full-jitter backoff sleep
            and for the overall retry window.

    Returns:
        Configured :class:`tenacity.Retrying` that re-raises the last error.
    """

    return Retrying(
        retry=retry_if_exception(is_retryable_error),
        wait=wait_random_exponential(multiplier=0.5, max=max_delay_seconds),
        stop=stop_after_attempt(max(1, max_attempts)) | stop_after_delay(max_delay_seconds * max(1, max_attempts)),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
