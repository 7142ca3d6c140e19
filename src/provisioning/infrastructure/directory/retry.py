"""Exponential backoff with jitter for remote directory calls."""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar


T = TypeVar("T")


class RetryableError(Exception):
    """Marks a failure that is worth another attempt (throttling, 5xx, transport)."""

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


def backoff_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    jitter: float = 0.2,
) -> float:
    """Delay before retry number ``attempt`` (1-based)."""
    delay = min(max_delay, base_delay * (2 ** (attempt - 1)))
    return delay * random.uniform(1 - jitter, 1 + jitter)


async def with_backoff(
    func: Callable[[], Awaitable[T]],
    *,
    retries: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 8.0,
    jitter: float = 0.2,
    on_retry: Callable[[int, BaseException], None] | None = None,
) -> T:
    """Call ``func`` until it succeeds, retrying only ``RetryableError``.

    The last ``RetryableError`` propagates once ``retries`` extra attempts
    have been used. A server-provided ``retry_after`` overrides the computed
    delay but is still capped at ``max_delay``.
    """
    attempt = 0
    while True:
        try:
            return await func()
        except RetryableError as e:
            attempt += 1
            if attempt > retries:
                raise
            delay = backoff_delay(attempt, base_delay, max_delay, jitter)
            if e.retry_after is not None:
                delay = min(max_delay, e.retry_after)
            if on_retry:
                on_retry(attempt, e)
            await asyncio.sleep(delay)
