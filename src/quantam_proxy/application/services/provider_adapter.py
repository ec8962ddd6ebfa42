# src/quantam_proxy/application/services/provider_adapter.py
# Copyright (c) Quantam.
# SPDX-License-Identifier: MIT
"""Provider adapter: retrieval orchestration for one bar source.

The adapter is the single place where a retrieval job is carried out against
a provider variant. It owns ledger bookkeeping and error classification so
that provider variants only implement the narrow
:class:`~quantam_proxy.domain.interfaces.gateways.bar_source.BarSource`
capability set.

Retrieval steps:

1. Mark the ledger row in flight.
2. Resolve the path (daily / intraday) from the capability descriptor; a
   rejected request is finalized as a client failure without any fetch.
3. Build the deterministic, secret-free provider URL.
4. Fetch.
5. Success: spawn bar persistence in the background and finalize with
   ``200`` / ``DataSize=<n>``.
6. Failure: classify (``ClientError`` -> 400, anything else -> 500),
   finalize, re-raise the classified error.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from datetime import UTC, datetime

from quantam_proxy.application.services.background import BackgroundTasks
from quantam_proxy.domain.entities.job_log import STATUS_OK, JobLogEntry
from quantam_proxy.domain.entities.provider_stats import HealthSnapshot, ProviderStats
from quantam_proxy.domain.entities.retrieval import RetrievalJobRequest
from quantam_proxy.domain.entities.stock_bar import StockBar
from quantam_proxy.domain.exceptions.proxy import (
    ClientError,
    PersistenceWarning,
    ProviderError,
    RetrievalFailure,
    UnsupportedRequest,
)
from quantam_proxy.domain.interfaces.gateways.bar_source import BarSource
from quantam_proxy.domain.interfaces.repositories.bar_store import BarStore
from quantam_proxy.domain.interfaces.repositories.job_ledger import JobLedger
from quantam_proxy.domain.services.health_classifier import classify, hit_rate, terminal_sample
from quantam_proxy.domain.value_objects.capability import CapabilityDescriptor, RetrievalPath
from quantam_proxy.infrastructure.logging.logger import bind_job_context, get_json_logger
from quantam_proxy.infrastructure.observability.metrics import (
    get_bar_persist_failures_total,
    get_provider_hit_rate,
    get_provider_ping_latency_seconds,
    get_retrieval_jobs_total,
)

logger = get_json_logger(__name__)

DEFAULT_STATS_WINDOW = 100


class ProviderAdapter:
    """Wraps one bar source with ledger bookkeeping and health reporting."""

    def __init__(
        self,
        source: BarSource,
        *,
        ledger: JobLedger,
        bar_store: BarStore,
        tasks: BackgroundTasks,
        stats_window: int = DEFAULT_STATS_WINDOW,
    ) -> None:
        """Initialize the adapter.

        Args:
            source: Provider variant performing the actual I/O.
            ledger: Job ledger shared by all adapters.
            bar_store: Destination for retrieved bars.
            tasks: Registry for background persistence.
            stats_window: Number of most recent ledger rows used for hit-rate.

        Raises:
            ValueError: If ``stats_window`` is not positive.
        """
        if stats_window < 1:
            raise ValueError("stats_window must be >= 1")
        self._source = source
        self._ledger = ledger
        self._bar_store = bar_store
        self._tasks = tasks
        self._stats_window = stats_window

    @property
    def name(self) -> str:
        """Provider name."""
        return self._source.name

    @property
    def capabilities(self) -> CapabilityDescriptor:
        """Capability descriptor of the wrapped source."""
        return self._source.capabilities

    def request_url(self, request: RetrievalJobRequest, path: RetrievalPath) -> str:
        """Return the audit URL for ``request`` on ``path``."""
        if path is RetrievalPath.DAILY:
            return self._source.daily_url(request.symbol, request.exchange)
        return self._source.intraday_url(request.symbol, request.exchange, request.interval)

    # ------------------------------------------------------------------ #
    # Health
    # ------------------------------------------------------------------ #

    async def ping_health(self) -> HealthSnapshot:
        """Ping the provider; failures degrade the snapshot instead of raising."""
        start = time.perf_counter()
        reachable = False
        detail = "ok"
        try:
            await self._source.ping()
            reachable = True
        except Exception as exc:  # noqa: BLE001
            detail = f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__
            logger.warning(
                "provider_ping_failed",
                extra={"extra": {"provider": self.name, "detail": detail}},
            )
        elapsed = time.perf_counter() - start
        get_provider_ping_latency_seconds().labels(
            provider=self.name, outcome="ok" if reachable else "error"
        ).observe(elapsed)
        return HealthSnapshot(
            provider_name=self.name,
            reachable=reachable,
            latency_s=elapsed,
            detail=detail,
            checked_at=datetime.now(UTC),
        )

    async def get_stats(self) -> ProviderStats:
        """Recompute the provider's health from its recent ledger rows."""
        entries = await self._ledger.recent_for(self.name, self._stats_window)
        rate = hit_rate(entries)
        status = classify(rate)
        get_provider_hit_rate().labels(provider=self.name).set(-1.0 if rate is None else rate)
        return ProviderStats(
            name=self.name,
            api_key_identifier=self._source.api_key_name,
            config=self.capabilities.describe(),
            status=status,
            hit_rate=rate,
            sample_size=len(terminal_sample(entries)),
        )

    # ------------------------------------------------------------------ #
    # Retrieval
    # ------------------------------------------------------------------ #

    async def retrieve(self, request: RetrievalJobRequest, job_id: int) -> JobLogEntry:
        """Run one retrieval job against the provider.

        Args:
            request: Normalized retrieval request.
            job_id: Ledger row in the Created state.

        Returns:
            The finalized (Succeeded) ledger entry.

        Raises:
            ClientError: Request not admissible or rejected upstream (row finalized 400).
            ProviderError: Any other failure (row finalized 500).
            LedgerInconsistency: The ledger row is missing or not Created.
        """
        with bind_job_context(job_id=job_id, provider=self.name):
            await self._ledger.mark_in_flight(job_id)

            path = self.capabilities.resolve_path(request)
            if path is RetrievalPath.REJECT:
                reason = self.capabilities.rejection_reason(request) or "Unsupported request"
                error = UnsupportedRequest(
                    reason,
                    details={"exchange": request.exchange, "interval": request.interval.value},
                )
                await self._fail(job_id, "", error, path)
                raise error

            url = ""
            try:
                url = self.request_url(request, path)
                logger.info(
                    "retrieval_started",
                    extra={"extra": {"path": path.value, "url": url, "symbol": request.symbol}},
                )
                bars = await self._fetch(request, path)
            except RetrievalFailure as exc:
                await self._fail(job_id, url, exc, path)
                raise
            except Exception as exc:  # noqa: BLE001
                wrapped = ProviderError(
                    f"{type(exc).__name__}: {exc}", details={"error": type(exc).__name__}
                )
                await self._fail(job_id, url, wrapped, path)
                raise wrapped from exc

            self._tasks.spawn(
                self._persist(request, bars),
                name=f"persist:{self.name}:{job_id}",
            )
            entry = await self._ledger.finalize(
                job_id, self.name, url, STATUS_OK, f"DataSize={len(bars)}"
            )
            get_retrieval_jobs_total().labels(
                provider=self.name, path=path.value, outcome="succeeded"
            ).inc()
            logger.info(
                "retrieval_succeeded",
                extra={"extra": {"path": path.value, "bars": len(bars)}},
            )
            return entry

    async def _fetch(self, request: RetrievalJobRequest, path: RetrievalPath) -> Sequence[StockBar]:
        if path is RetrievalPath.DAILY:
            return await self._source.fetch_daily(request.symbol, request.exchange)
        return await self._source.fetch_intraday(request.symbol, request.exchange, request.interval)

    async def _fail(
        self, job_id: int, url: str, error: RetrievalFailure, path: RetrievalPath
    ) -> None:
        outcome = "client_failed" if isinstance(error, ClientError) else "provider_failed"
        await self._ledger.finalize(job_id, self.name, url, error.status_code, error.ledger_message)
        get_retrieval_jobs_total().labels(provider=self.name, path=path.value, outcome=outcome).inc()
        logger.warning(
            "retrieval_failed",
            extra={
                "extra": {
                    "path": path.value,
                    "status_code": error.status_code,
                    "code": error.code,
                    "reason": str(error),
                }
            },
        )

    async def _persist(self, request: RetrievalJobRequest, bars: Sequence[StockBar]) -> None:
        """Save bars; failures are logged as a persistence warning and dropped."""
        if not bars:
            return
        try:
            saved = await self._bar_store.save(
                request.symbol, request.exchange, request.interval, bars
            )
        except Exception as exc:  # noqa: BLE001
            warning = PersistenceWarning(
                "bar persistence failed",
                details={"symbol": request.symbol, "error": f"{type(exc).__name__}: {exc}"},
            )
            get_bar_persist_failures_total().labels(provider=self.name).inc()
            logger.warning(
                "bar_persistence_failed",
                exc_info=(type(exc), exc, exc.__traceback__),
                extra={"extra": {"code": warning.code, **warning.details}},
            )
            return
        logger.debug("bars_persisted", extra={"extra": {"count": saved}})
