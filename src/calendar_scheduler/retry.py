"""Exponential backoff for calls to the calendar API.

Only rate limiting (429) and server errors (5xx) are retried. Everything
else, including auth and validation failures, propagates on first sight.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff settings. Delays are in seconds."""

    retries: int = 5  # total attempts, including the first
    base_delay: float = 0.3
    max_delay: float = 8.0
    jitter: bool = True

    def delay_for(self, attempt: int) -> float:
        """Upper bound on the wait after the given failed attempt (1-based)."""
        return min(self.max_delay, self.base_delay * 2 ** (attempt - 1))


def status_of(exc: BaseException) -> int | None:
    """Extract an HTTP status code from an exception, if it carries one."""
    status = getattr(exc, "status_code", None)
    if status is None:
        # googleapiclient.errors.HttpError
        resp = getattr(exc, "resp", None)
        status = getattr(resp, "status", None)
    if status is None:
        status = getattr(exc, "status", None)
    if status is None:
        # httpx.HTTPStatusError
        response = getattr(exc, "response", None)
        status = getattr(response, "status_code", None)

    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def is_retryable(exc: BaseException) -> bool:
    status = status_of(exc)
    return status is not None and (status == 429 or status >= 500)


async def with_backoff(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Call ``fn`` until it succeeds, retrying transient failures.

    Args:
        fn: Zero-argument coroutine function performing the remote call.
        policy: Backoff settings. Defaults to ``RetryPolicy()``.
        sleep: Awaitable sleep, replaceable in tests.

    Returns:
        Whatever ``fn`` returns.

    Raises:
        Exception: The last failure, unchanged, once retries are exhausted or
            on the first non-retryable failure.
    """
    policy = policy or RetryPolicy()
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as e:
            attempt += 1
            if not is_retryable(e) or attempt >= policy.retries:
                raise

            delay = policy.delay_for(attempt)
            wait = random.uniform(0, delay) if policy.jitter else delay
            logger.warning(
                f"Calendar API returned {status_of(e)}, "
                f"retrying in {wait:.2f}s (attempt {attempt}/{policy.retries})"
            )
            await sleep(wait)
