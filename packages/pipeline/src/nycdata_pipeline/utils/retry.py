"""
utils/retry.py — Backoff for provider requests that fail transiently.

Connection resets, timeouts, 429 and 5xx responses from ArcGIS or Socrata
are retried with exponential backoff. Anything else (a 400 for a malformed
where clause, a JSON decode error, an ArcGIS error payload) is raised on
the first attempt.

Usage:
    from nycdata_pipeline.utils.retry import with_retry

    @with_retry(max_attempts=3, base_delay=2.0)
    async def fetch_page(client: httpx.AsyncClient, url: str) -> dict:
        r = await client.get(url)
        r.raise_for_status()
        return r.json()
"""

from __future__ import annotations

import functools
from collections.abc import Callable, Coroutine
from typing import Any, TypeVar

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

log = structlog.get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Coroutine[Any, Any, Any]])

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


def is_transient(exc: BaseException) -> bool:
    """True for network failures and throttling/server-side HTTP statuses."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS_CODES
    return isinstance(exc, httpx.TransportError)


def _log_backoff(call: RetryCallState) -> None:
    exc = call.outcome.exception() if call.outcome else None
    log.warning(
        "request_retry",
        function=call.fn.__qualname__ if call.fn else None,
        attempt=call.attempt_number,
        wait_s=round(call.next_action.sleep, 2) if call.next_action else None,
        error=str(exc),
    )


def with_retry(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    retry_if: Callable[[BaseException], bool] = is_transient,
) -> Callable[[F], F]:
    """
    Retry an async function with exponential backoff.

    Waits base_delay * 2^(attempt-1) seconds between attempts, capped at
    max_delay. After the last attempt the final exception propagates
    unchanged.

    Args:
        max_attempts: Total attempts, including the first.
        base_delay:   Initial wait in seconds.
        max_delay:    Cap on any single wait.
        retry_if:     Predicate deciding whether an exception is retried.
    """

    def decorator(fn: F) -> F:
        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            retrying = AsyncRetrying(
                stop=stop_after_attempt(max_attempts),
                wait=wait_exponential(multiplier=base_delay, max=max_delay),
                retry=retry_if_exception(retry_if),
                before_sleep=_log_backoff,
                reraise=True,
            )
            try:
                return await retrying(fn, *args, **kwargs)
            except Exception as exc:
                log.error(
                    "request_failed",
                    function=fn.__qualname__,
                    retryable=retry_if(exc),
                    error=str(exc),
                )
                raise

        return wrapper  # type: ignore[return-value]

    return decorator
