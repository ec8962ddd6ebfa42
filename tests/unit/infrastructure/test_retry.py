# tests/unit/infrastructure/test_retry.py
from __future__ import annotations

import pytest

from quantam_proxy.infrastructure.resilience.retry import RetryPolicy, retry_async


class Flaky:
    def __init__(self, failures: int, exc: type[Exception] = RuntimeError) -> None:
        self.failures = failures
        self.exc = exc
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc(f"attempt {self.calls}")
        return "ok"


def test_backoff_is_capped_without_jitter() -> None:
    policy = RetryPolicy(total=5, base=0.5, cap=2.0, jitter=False)
    assert [policy.backoff(i) for i in range(4)] == [0.5, 1.0, 2.0, 2.0]


def test_jittered_backoff_stays_in_range() -> None:
    policy = RetryPolicy(total=5, base=1.0, cap=4.0, jitter=True)
    for attempt in range(6):
        assert 0.0 <= policy.backoff(attempt) <= 4.0


@pytest.mark.anyio
async def test_retries_until_success() -> None:
    fn = Flaky(failures=2)
    result = await retry_async(
        fn, policy=RetryPolicy(total=3, base=0, cap=0, jitter=False), retry_on=lambda _: True
    )
    assert result == "ok"
    assert fn.calls == 3


@pytest.mark.anyio
async def test_budget_exhausted_reraises_last_error() -> None:
    fn = Flaky(failures=10)
    with pytest.raises(RuntimeError, match="attempt 3"):
        await retry_async(
            fn, policy=RetryPolicy(total=2, base=0, cap=0, jitter=False), retry_on=lambda _: True
        )
    assert fn.calls == 3


@pytest.mark.anyio
async def test_non_retryable_error_is_raised_immediately() -> None:
    fn = Flaky(failures=1, exc=KeyError)
    with pytest.raises(KeyError):
        await retry_async(
            fn,
            policy=RetryPolicy(total=5, base=0, cap=0, jitter=False),
            retry_on=lambda exc: not isinstance(exc, KeyError),
        )
    assert fn.calls == 1


@pytest.mark.anyio
async def test_delay_hint_replaces_backoff_and_is_capped(monkeypatch: pytest.MonkeyPatch) -> None:
    slept: list[float] = []

    async def fake_sleep(delay: float) -> None:
        slept.append(delay)

    monkeypatch.setattr("quantam_proxy.infrastructure.resilience.retry.asyncio.sleep", fake_sleep)
    fn = Flaky(failures=2)
    await retry_async(
        fn,
        policy=RetryPolicy(total=3, base=0.1, cap=1.5, jitter=False),
        retry_on=lambda _: True,
        delay_hint=lambda exc: 9.0 if "1" in str(exc) else None,
    )
    assert slept == [1.5, 0.2]
