# tests/unit/infrastructure/test_circuit_breaker.py
from __future__ import annotations

import asyncio

import pytest

from quantam_proxy.infrastructure.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitOpenError,
)


class Boom(Exception):
    pass


class Ignored(Exception):
    pass


async def _fail(breaker: CircuitBreaker, exc: Exception) -> None:
    with pytest.raises(type(exc)):
        async with breaker.guard():
            raise exc


async def _succeed(breaker: CircuitBreaker) -> None:
    async with breaker.guard():
        pass


@pytest.mark.anyio
async def test_opens_after_threshold_and_short_circuits() -> None:
    breaker = CircuitBreaker(failure_threshold=2, recovery_timeout_s=60, half_open_max_calls=1)
    await _fail(breaker, Boom())
    assert breaker.state == "CLOSED"
    await _fail(breaker, Boom())
    assert breaker.state == "OPEN"

    with pytest.raises(CircuitOpenError) as info:
        await _succeed(breaker)
    assert info.value.state == "open"
    assert str(info.value) == "circuit_open"


@pytest.mark.anyio
async def test_success_resets_failure_count() -> None:
    breaker = CircuitBreaker(failure_threshold=2, recovery_timeout_s=60, half_open_max_calls=1)
    await _fail(breaker, Boom())
    await _succeed(breaker)
    await _fail(breaker, Boom())
    assert breaker.state == "CLOSED"


@pytest.mark.anyio
async def test_half_open_trial_closes_on_success() -> None:
    breaker = CircuitBreaker(failure_threshold=1, recovery_timeout_s=0, half_open_max_calls=1)
    await _fail(breaker, Boom())
    assert breaker.state == "OPEN"
    await _succeed(breaker)
    assert breaker.state == "CLOSED"


@pytest.mark.anyio
async def test_half_open_trial_reopens_on_failure() -> None:
    breaker = CircuitBreaker(failure_threshold=1, recovery_timeout_s=0, half_open_max_calls=1)
    await _fail(breaker, Boom())
    await _fail(breaker, Boom())
    assert breaker.state == "OPEN"


@pytest.mark.anyio
async def test_predicate_excludes_errors_from_failure_count() -> None:
    breaker = CircuitBreaker(
        failure_threshold=1,
        recovery_timeout_s=60,
        half_open_max_calls=1,
        is_failure=lambda exc: not isinstance(exc, Ignored),
    )
    for _ in range(3):
        await _fail(breaker, Ignored())
    assert breaker.state == "CLOSED"


@pytest.mark.anyio
async def test_cancelled_half_open_call_releases_slot() -> None:
    breaker = CircuitBreaker(failure_threshold=1, recovery_timeout_s=0, half_open_max_calls=1)
    await _fail(breaker, Boom())
    entered = asyncio.Event()

    async def hang() -> None:
        async with breaker.guard():
            entered.set()
            await asyncio.Event().wait()

    task = asyncio.create_task(hang())
    await entered.wait()
    assert breaker.state == "HALF_OPEN"
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    await _succeed(breaker)
    assert breaker.state == "CLOSED"
