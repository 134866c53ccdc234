"""Bounded retry for async network calls.

Every forge and LLM request goes through ``with_retry``. The policy is a
fixed delay between attempts by default; passing ``backoff=2.0`` doubles the
delay after each failure instead. There is no jitter and no cross-call rate
limiting: each invocation retries on its own.

A retried operation may run more than once after a partial failure, so
callers wrapping non-idempotent requests (posting a comment) accept the risk
of a duplicate.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RETRIES = 3
DEFAULT_DELAY = 1.0


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    retries: int = DEFAULT_RETRIES,
    delay: float = DEFAULT_DELAY,
    backoff: float = 1.0,
    retry_on: Callable[[Exception], bool] | None = None,
) -> T:
    """Await ``operation()`` and retry it up to ``retries`` more times on failure.

    ``operation`` is a zero-argument callable returning a fresh awaitable on
    every call. ``retries=3`` means at most four calls in total. Once the
    retries are used up the last exception is re-raised unchanged.

    ``retry_on`` decides whether an exception is worth another attempt; when
    it returns False the exception is re-raised at once. Without it every
    exception is retried.
    """
    attempt = 0
    wait = delay
    while True:
        try:
            return await operation()
        except Exception as e:
            if retry_on is not None and not retry_on(e):
                raise
            if attempt >= retries:
                logger.error("Operation failed after %d attempt(s): %s", attempt + 1, e)
                raise
            attempt += 1
            logger.warning("Operation failed (%s). Retrying in %.1fs (%d/%d)...", e, wait, attempt, retries)
            await asyncio.sleep(wait)
            wait *= backoff
