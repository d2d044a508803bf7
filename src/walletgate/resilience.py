"""Timeouts and a single retry for calls into external stores.

Learn: asyncio.wait_for wraps every Redis and Postgres call. A store that
hangs surfaces as ServiceUnavailableError (503), never as a request that
blocks forever.

Only transient failures are retried, and only once. Caller-input errors
(bad tokens, wrong passwords) never come through here.
"""

import asyncio
from typing import Awaitable, Callable, TypeVar

import structlog

from walletgate.errors import ServiceUnavailableError

logger = structlog.get_logger()

T = TypeVar("T")


async def call_with_timeout(
    operation: Callable[[], Awaitable[T]],
    *,
    store: str,
    timeout: float,
    backoff: float = 0.05,
    retries: int = 1,
    transient: tuple[type[BaseException], ...] = (),
) -> T:
    """Run ``operation()`` with a timeout, retrying transient failures.

    ``operation`` is a zero-argument factory so every attempt gets a
    fresh awaitable.
    """
    retryable = (asyncio.TimeoutError, ConnectionError) + tuple(transient)
    attempt = 0
    while True:
        try:
            return await asyncio.wait_for(operation(), timeout=timeout)
        except retryable as e:
            if attempt >= retries:
                logger.error(
                    "store.unavailable",
                    store=store,
                    attempts=attempt + 1,
                    error=repr(e),
                )
                raise ServiceUnavailableError(f"{store} unavailable: {e!r}") from e
            attempt += 1
            logger.warning("store.retry", store=store, attempt=attempt, error=repr(e))
            await asyncio.sleep(backoff)
