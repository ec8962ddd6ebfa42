# Copyright (c)
# SPDX-License-Identifier: MIT
"""Retry utilities (async) with jittered exponential backoff."""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry attempts."""

    total: int  # number of retries (not counting the first attempt)
    base: float  # base backoff seconds
    cap: float  # max backoff seconds
    jitter: bool = True  # add full jitter if True

    def backoff(self, attempt: int) -> float:
        """Return the sleep before retry number ``attempt`` (0-based)."""
        delay = min(self.cap, self.base * (2**attempt))
        if self.jitter:
            delay = random.uniform(0, delay)  # noqa: S311
        return delay


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    retry_on: Callable[[Exception], bool],
    delay_hint: Callable[[Exception], float | None] | None = None,
) -> T:
    """Retry an async function with backoff until success or budget exhausted.

    Args:
        fn: Zero-arg async function to execute.
        policy: RetryPolicy defining count/backoff.
        retry_on: Predicate that returns True when the exception is retryable.
        delay_hint: Optional hook returning a server-provided delay (for
            example ``Retry-After``) that replaces the computed backoff.

    Returns:
        The return value of ``fn`` if successful.

    Raises:
        The last exception if retries are exhausted or it is not retryable.
    """
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as exc:  # noqa: BLE001
            if attempt >= policy.total or not retry_on(exc):
                raise
            hinted = delay_hint(exc) if delay_hint is not None else None
            delay = min(policy.cap, hinted) if hinted is not None else policy.backoff(attempt)
        await asyncio.sleep(delay)
        attempt += 1
