# Copyright (c)
# SPDX-License-Identifier: MIT
"""Minimal async circuit breaker (in-memory).

State machine:
    - CLOSED -> count failures; when threshold reached, go OPEN.
    - OPEN   -> fail-fast until recovery timeout expires; then HALF-OPEN.
    - HALF-OPEN -> allow limited calls; on success -> CLOSED; on failure -> OPEN.

One breaker guards one provider. It is process-local.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field


class CircuitOpenError(RuntimeError):
    """Raised when the breaker short-circuits a call.

    Attributes:
        state: ``"open"`` or ``"half_open"`` at the time of rejection.
    """

    def __init__(self, state: str) -> None:
        super().__init__(f"circuit_{state}")
        self.state = state


def _count_all(_exc: BaseException) -> bool:
    return True


@dataclass
class CircuitBreaker:
    """Simple circuit breaker suitable for HTTP client protection.

    Attributes:
        failure_threshold: Consecutive failures that open the circuit.
        recovery_timeout_s: Seconds to stay OPEN before admitting trial calls.
        half_open_max_calls: Trial calls admitted while HALF_OPEN.
        is_failure: Predicate deciding whether an exception counts as a
            failure. Client-side errors should not trip the breaker.
    """

    failure_threshold: int
    recovery_timeout_s: float
    half_open_max_calls: int
    is_failure: Callable[[BaseException], bool] = field(default=_count_all, repr=False)

    _state: str = "CLOSED"  # CLOSED|OPEN|HALF_OPEN
    _failures: int = 0
    _opened_at: float = 0.0
    _half_open_calls: int = 0
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @property
    def state(self) -> str:
        """Return the current state name."""
        return self._state

    @asynccontextmanager
    async def guard(self) -> AsyncIterator[None]:
        """Guard an async call with the breaker.

        Raises:
            CircuitOpenError: If the call is short-circuited.
        """
        in_trial = False
        async with self._lock:
            now = time.monotonic()
            if self._state == "OPEN":
                if now - self._opened_at >= self.recovery_timeout_s:
                    self._state = "HALF_OPEN"
                    self._half_open_calls = 0
                else:
                    raise CircuitOpenError("open")
            if self._state == "HALF_OPEN":
                if self._half_open_calls >= self.half_open_max_calls:
                    raise CircuitOpenError("half_open")
                self._half_open_calls += 1
                in_trial = True

        try:
            yield
        except Exception as exc:
            if self.is_failure(exc):
                await self._record_failure()
            else:
                await self._record_success()
            raise
        except BaseException:
            # Cancelled trial call: no outcome to record, give the slot back.
            if in_trial and self._state == "HALF_OPEN" and self._half_open_calls > 0:
                self._half_open_calls -= 1
            raise
        else:
            await self._record_success()

    async def _record_failure(self) -> None:
        async with self._lock:
            if self._state == "HALF_OPEN":
                self._trip()
            else:
                self._failures += 1
                if self._failures >= self.failure_threshold:
                    self._trip()

    async def _record_success(self) -> None:
        async with self._lock:
            if self._state == "HALF_OPEN":
                self._state = "CLOSED"
                self._failures = 0
            elif self._state == "CLOSED":
                self._failures = 0

    def _trip(self) -> None:
        self._state = "OPEN"
        self._opened_at = time.monotonic()
