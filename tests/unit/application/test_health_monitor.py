# tests/unit/application/test_health_monitor.py
from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from quantam_proxy.adapters.repositories.in_memory import InMemoryBarStore, InMemoryJobLedger
from quantam_proxy.application.services.health_monitor import HealthMonitor
from quantam_proxy.application.services.background import BackgroundTasks
from quantam_proxy.application.services.provider_adapter import ProviderAdapter
from quantam_proxy.application.services.provider_router import ProviderRouter
from quantam_proxy.domain.enums.provider_status import ProviderStatus
from quantam_proxy.domain.exceptions.market_data import MarketDataUnavailable


@pytest.fixture
def router(
    ledger: InMemoryJobLedger,
    make_adapter: Callable[..., ProviderAdapter],
    fake_source_cls: Any,
) -> ProviderRouter:
    return ProviderRouter(
        ledger,
        [
            make_adapter(fake_source_cls("Up")),
            make_adapter(fake_source_cls("Down", ping_error=MarketDataUnavailable("down"))),
        ],
    )


@pytest.mark.anyio
async def test_check_once_pings_and_recomputes_stats(router: ProviderRouter) -> None:
    monitor = HealthMonitor(router, interval_s=60)

    results = await monitor.check_once()

    assert [s.provider_name for s, _ in results] == ["Up", "Down"]
    assert [s.reachable for s, _ in results] == [True, False]
    assert all(stats.status is ProviderStatus.UNKNOWN for _, stats in results)
    assert monitor.last_sweep == results


@pytest.mark.anyio
async def test_run_bounded_iterations(router: ProviderRouter) -> None:
    monitor = HealthMonitor(router, interval_s=0.001)
    await monitor.run(iterations=2)
    assert len(monitor.last_sweep) == 2


def test_interval_must_be_positive(router: ProviderRouter) -> None:
    with pytest.raises(ValueError):
        HealthMonitor(router, interval_s=0)


class _BrokenReadsLedger(InMemoryJobLedger):
    def __init__(self, broken: str) -> None:
        super().__init__()
        self.broken = broken

    async def recent_for(self, provider_name: str, window: int) -> Any:
        if provider_name == self.broken:
            raise ConnectionError("database unavailable")
        return await super().recent_for(provider_name, window)


@pytest.mark.anyio
async def test_stats_failure_skips_provider_and_keeps_running(
    fake_source_cls: Any, caplog: pytest.LogCaptureFixture
) -> None:
    ledger = _BrokenReadsLedger("Up")
    tasks = BackgroundTasks()
    router = ProviderRouter(
        ledger,
        [
            ProviderAdapter(
                fake_source_cls(name), ledger=ledger, bar_store=InMemoryBarStore(), tasks=tasks
            )
            for name in ("Up", "Other")
        ],
    )
    monitor = HealthMonitor(router, interval_s=0.001)

    with caplog.at_level("WARNING"):
        await monitor.run(iterations=2)

    assert [s.provider_name for s, _ in monitor.last_sweep] == ["Other"]
    assert "provider_stats_failed" in caplog.messages
