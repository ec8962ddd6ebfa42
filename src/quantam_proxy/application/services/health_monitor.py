# src/quantam_proxy/application/services/health_monitor.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Periodic provider health sweeps.

Each sweep pings every registered provider and recomputes its stats from the
ledger, logging one line per provider. Pings are advisory; a failed ping
never stops the sweep.
"""

from __future__ import annotations

import asyncio

from quantam_proxy.application.services.provider_router import ProviderRouter
from quantam_proxy.domain.entities.provider_stats import HealthSnapshot, ProviderStats
from quantam_proxy.infrastructure.logging.logger import get_json_logger

logger = get_json_logger(__name__)


class HealthMonitor:
    """Schedules health sweeps over a router's providers."""

    def __init__(self, router: ProviderRouter, *, interval_s: float = 300.0) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        self._router = router
        self._interval_s = interval_s
        self.last_sweep: list[tuple[HealthSnapshot, ProviderStats]] = []

    async def check_once(self) -> list[tuple[HealthSnapshot, ProviderStats]]:
        """Run one sweep over all providers.

        Returns:
            ``(snapshot, stats)`` pairs in provider registration order. A
            provider whose stats cannot be read is logged and left out.
        """
        names = self._router.providers
        snapshots = await asyncio.gather(*(self._router.ping_health(n) for n in names))
        results: list[tuple[HealthSnapshot, ProviderStats]] = []
        for snapshot in snapshots:
            try:
                stats = await self._router.get_stats(snapshot.provider_name)
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "provider_stats_failed",
                    exc_info=(type(exc), exc, exc.__traceback__),
                    extra={"extra": {"provider": snapshot.provider_name}},
                )
                continue
            logger.info(
                "provider_health",
                extra={
                    "extra": {
                        "provider": stats.name,
                        "reachable": snapshot.reachable,
                        "latency_s": round(snapshot.latency_s, 6),
                        "status": stats.status.value,
                        "hit_rate": stats.hit_rate,
                        "sample_size": stats.sample_size,
                    }
                },
            )
            results.append((snapshot, stats))
        self.last_sweep = results
        return results

    async def run(self, iterations: int | None = None) -> None:
        """Sweep repeatedly, sleeping ``interval_s`` between sweeps.

        Args:
            iterations: Number of sweeps, or ``None`` to run until cancelled.
        """
        done = 0
        while iterations is None or done < iterations:
            await self.check_once()
            done += 1
            if iterations is not None and done >= iterations:
                break
            await asyncio.sleep(self._interval_s)
