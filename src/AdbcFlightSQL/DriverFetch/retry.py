"""Tenacity retry policy for registry GETs.

A build that dies on one dropped connection is a poor experience, so each
request gets a small fixed attempt budget. Attempts are repeated on:

- transport failures (connect errors, read timeouts, protocol errors)
- rate limiting (429), waiting for ``Retry-After`` when the server sends one
- server errors (500/502/503/504)

Example:
    >>> policy = create_http_retry_policy(max_attempts=3)
    >>> response = policy(client.get, "https://pypi.org/pypi/adbc-driver-flightsql/1.9.0/json")
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional

import httpx
from tenacity import (
    RetryCallState,
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_random_exponential,
)
from tenacity.wait import wait_base

LOGGER = logging.getLogger("AdbcFlightSQL.DriverFetch.retry")

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


def retry_after_seconds(header: Optional[str]) -> Optional[float]:
    """Return the delay requested by a ``Retry-After`` header, if parseable.

    Both forms are accepted: delta-seconds and an HTTP date. Dates in the
    past yield ``0.0``.
    """
    if not header:
        return None
    header = header.strip()
    if header.isdigit():
        return float(header)
    try:
        when = parsedate_to_datetime(header)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


class _HonourRetryAfter(wait_base):
    """Use the server's ``Retry-After`` when present, else the backoff."""

    def __init__(self, backoff: wait_base, ceiling: float) -> None:
        self.backoff = backoff
        self.ceiling = ceiling

    def __call__(self, retry_state: RetryCallState) -> float:
        outcome = retry_state.outcome
        if outcome is not None and not outcome.failed:
            headers = getattr(outcome.result(), "headers", None)
            requested = retry_after_seconds(headers.get("Retry-After")) if headers else None
            if requested is not None:
                return min(requested, self.ceiling)
        return float(self.backoff(retry_state))


def is_retryable_response(response: object) -> bool:
    """Return ``True`` when ``response`` carries a transient failure status."""

    return getattr(response, "status_code", None) in RETRYABLE_STATUS_CODES


def _last_outcome(retry_state: RetryCallState):
    # Final response or exception goes back to the caller unwrapped, so
    # status handling stays in ``net.fetch_bytes``.
    return retry_state.outcome.result()


def create_http_retry_policy(
    max_attempts: int = 3,
    backoff_base: float = 0.5,
    backoff_max: float = 8.0,
) -> Retrying:
    """Build the retry policy used for every registry request.

    Args:
        max_attempts: Total attempts including the first one.
        backoff_base: Multiplier of the full-jitter exponential backoff.
        backoff_max: Cap on a single sleep, also applied to ``Retry-After``.

    Returns:
        A Tenacity ``Retrying``; call it with the request function and its
        arguments.
    """

    return Retrying(
        stop=stop_after_attempt(max_attempts),
        wait=_HonourRetryAfter(
            wait_random_exponential(multiplier=backoff_base, max=backoff_max),
            ceiling=backoff_max,
        ),
        retry=retry_if_exception_type(httpx.TransportError) | retry_if_result(is_retryable_response),
        before_sleep=before_sleep_log(LOGGER, logging.WARNING),
        retry_error_callback=_last_outcome,
    )


__all__ = [
    "RETRYABLE_STATUS_CODES",
    "create_http_retry_policy",
    "is_retryable_response",
    "retry_after_seconds",
]
