# src/quantam_proxy/dependencies/proxies.py

# Copyright (c) Quantam.
# SPDX-License-Identifier: MIT
"""Dependency wiring for the provider proxy.

Overview:
    Builds a :class:`ProxyContainer` holding the router, the job ledger, the
    bar store, the background task registry and the provider HTTP clients.

Layer:
    dependencies

Design:
    * Select storage by configuration:
        - SQLAlchemy ledger and bar store when ``DATABASE_URL`` is set.
        - In-memory ledger and bar store otherwise.
    * Build only the providers listed in ``PROXY_ENABLED_PROVIDERS``; a
      provider whose API key is missing is skipped with a warning.
    * One circuit breaker per provider client; clients may share a caller
      supplied ``httpx.AsyncClient``.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

import httpx
from pydantic import ValidationError

from quantam_proxy.adapters.gateways.alphavantage_gateway import AlphaVantageGateway
from quantam_proxy.adapters.gateways.marketstack_gateway import MarketstackGateway
from quantam_proxy.adapters.repositories.bar_store_repository import SqlAlchemyBarStore
from quantam_proxy.adapters.repositories.in_memory import InMemoryBarStore, InMemoryJobLedger
from quantam_proxy.adapters.repositories.job_ledger_repository import SqlAlchemyJobLedger
from quantam_proxy.application.services.background import BackgroundTasks
from quantam_proxy.application.services.provider_adapter import ProviderAdapter
from quantam_proxy.application.services.provider_router import ProviderRouter
from quantam_proxy.config.settings import Settings
from quantam_proxy.domain.interfaces.gateways.bar_source import BarSource
from quantam_proxy.domain.interfaces.repositories.bar_store import BarStore
from quantam_proxy.domain.interfaces.repositories.job_ledger import JobLedger
from quantam_proxy.infrastructure.database.session import (
    dispose_engine,
    init_engine_and_sessionmaker,
)
from quantam_proxy.infrastructure.external_apis.alphavantage.client import AlphaVantageClient
from quantam_proxy.infrastructure.external_apis.alphavantage.settings import (
    AlphaVantageSettings,
)
from quantam_proxy.infrastructure.external_apis.base_client import ProviderHttpClient
from quantam_proxy.infrastructure.external_apis.marketstack.client import MarketstackClient
from quantam_proxy.infrastructure.external_apis.marketstack.settings import (
    MarketstackSettings,
)
from quantam_proxy.infrastructure.logging.logger import get_json_logger

logger = get_json_logger(__name__)

SourceFactory = Callable[[httpx.AsyncClient | None], tuple[BarSource, ProviderHttpClient]]


def _alphavantage(http: httpx.AsyncClient | None) -> tuple[BarSource, ProviderHttpClient]:
    settings = AlphaVantageSettings()  # type: ignore[call-arg]
    client = AlphaVantageClient(settings, http=http)
    return AlphaVantageGateway(client, settings), client


def _marketstack(http: httpx.AsyncClient | None) -> tuple[BarSource, ProviderHttpClient]:
    settings = MarketstackSettings()  # type: ignore[call-arg]
    client = MarketstackClient(settings, http=http)
    return MarketstackGateway(client, settings), client


#: Builders keyed by the identifiers accepted in ``PROXY_ENABLED_PROVIDERS``.
SOURCE_FACTORIES: dict[str, SourceFactory] = {
    "alphavantage": _alphavantage,
    "marketstack": _marketstack,
}


@dataclass
class ProxyContainer:
    """Wired proxy components and the resources they own."""

    router: ProviderRouter
    ledger: JobLedger
    bar_store: BarStore
    tasks: BackgroundTasks
    clients: list[ProviderHttpClient] = field(default_factory=list)
    owns_engine: bool = False

    async def aclose(self, drain_timeout_s: float | None = 30.0) -> None:
        """Drain background persistence, then release clients and the engine."""
        try:
            await self.tasks.drain(timeout_s=drain_timeout_s)
        finally:
            for client in self.clients:
                await client.aclose()
            if self.owns_engine:
                await dispose_engine()


def build_storage(settings: Settings) -> tuple[JobLedger, BarStore, bool]:
    """Return ``(ledger, bar_store, owns_engine)`` for the configured backend."""
    if settings.database_url:
        factory = init_engine_and_sessionmaker(settings)
        return SqlAlchemyJobLedger(factory), SqlAlchemyBarStore(factory), True
    return InMemoryJobLedger(), InMemoryBarStore(), False


def build_container(
    settings: Settings,
    *,
    http: httpx.AsyncClient | None = None,
    ledger: JobLedger | None = None,
    bar_store: BarStore | None = None,
) -> ProxyContainer:
    """Build a :class:`ProxyContainer` from settings.

    Args:
        settings: Process settings.
        http: Optional shared ``httpx.AsyncClient`` for every provider client.
        ledger: Optional ledger override (tests).
        bar_store: Optional bar store override (tests).

    Returns:
        The wired container. Providers that could not be configured are
        absent from ``container.router.providers``.
    """
    owns_engine = False
    if ledger is None or bar_store is None:
        default_ledger, default_store, owns_engine = build_storage(settings)
        ledger = default_ledger if ledger is None else ledger
        bar_store = default_store if bar_store is None else bar_store

    tasks = BackgroundTasks()
    router = ProviderRouter(ledger)
    clients: list[ProviderHttpClient] = []

    for key in settings.enabled_providers:
        factory = SOURCE_FACTORIES.get(key.lower())
        if factory is None:
            logger.warning("provider_unknown", extra={"extra": {"provider": key}})
            continue
        try:
            source, client = factory(http)
        except ValidationError as exc:
            logger.warning(
                "provider_not_configured",
                extra={
                    "extra": {
                        "provider": key,
                        "fields": [".".join(map(str, e["loc"])) for e in exc.errors()],
                    }
                },
            )
            continue
        clients.append(client)
        router.register(
            ProviderAdapter(
                source,
                ledger=ledger,
                bar_store=bar_store,
                tasks=tasks,
                stats_window=settings.stats_window,
            )
        )

    logger.info(
        "proxy_container_built",
        extra={
            "extra": {
                "providers": router.providers,
                "storage": type(ledger).__name__,
            }
        },
    )
    return ProxyContainer(
        router=router,
        ledger=ledger,
        bar_store=bar_store,
        tasks=tasks,
        clients=clients,
        owns_engine=owns_engine,
    )
