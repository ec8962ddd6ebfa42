# Copyright (c) Quantam.
# SPDX-License-Identifier: MIT
"""Quantam proxy CLI: operational commands.

Commands:
    dispatch   Run one retrieval job on a named provider.
    stats      Print provider health stats computed from the job ledger.
    ping       Ping providers and print reachability.
    monitor    Run periodic health sweeps.
    init-db    Create the ledger and bar tables (development only).

Output is JSON on stdout; logs go to stderr. ``dispatch`` exits with code 2
on client errors and 3 on provider errors.

Environment:
    DATABASE_URL                 Async SQLAlchemy URL (optional).
    PROXY_ENABLED_PROVIDERS      e.g., "alphavantage,marketstack"
    PROXY_APIKEY_ALPHA_VANTAGE   Alpha Vantage API key.
    PROXY_APIKEY_MARKET_STACK    Marketstack access key.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any

import typer

from quantam_proxy.application.services.health_monitor import HealthMonitor
from quantam_proxy.application.services.provider_router import ProviderRouter
from quantam_proxy.config.settings import Settings, get_settings
from quantam_proxy.dependencies.proxies import ProxyContainer, build_container
from quantam_proxy.domain.exceptions.base import DomainError
from quantam_proxy.domain.exceptions.proxy import ClientError, ProviderError, RetrievalFailure
from quantam_proxy.infrastructure.database.session import (
    create_all,
    dispose_engine,
    init_engine_and_sessionmaker,
)
from quantam_proxy.infrastructure.logging.logger import configure_root_logging, get_json_logger

configure_root_logging()
log = get_json_logger(__name__)

EXIT_CLIENT_ERROR = 2
EXIT_PROVIDER_ERROR = 3

app = typer.Typer(add_completion=False, no_args_is_help=True)


def _emit(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, default=str))


def _error_payload(exc: DomainError) -> dict[str, Any]:
    body: dict[str, Any] = {
        "error": {"code": exc.code, "message": str(exc), "details": exc.details},
    }
    if isinstance(exc, RetrievalFailure):
        body["result"] = exc.result.to_dict() if exc.result is not None else None
    return body


def _exit_code(exc: DomainError) -> int:
    if isinstance(exc, ClientError):
        return EXIT_CLIENT_ERROR
    if isinstance(exc, ProviderError):
        return EXIT_PROVIDER_ERROR
    return 1


def _resolve(router: ProviderRouter, name: str) -> str:
    """Match a provider name case-insensitively; unknown names pass through."""
    for registered in router.providers:
        if registered.casefold() == name.casefold():
            return registered
    return name


def _selected(router: ProviderRouter, name: str | None) -> list[str]:
    return [_resolve(router, name)] if name else router.providers


def _run(work: Callable[[ProxyContainer], Awaitable[tuple[Any, int]]]) -> None:
    """Build a container, run ``work``, drain and close, then exit."""
    settings: Settings = get_settings()

    async def _main() -> tuple[Any, int]:
        container = build_container(settings)
        try:
            return await work(container)
        finally:
            await container.aclose()

    payload, code = asyncio.run(_main())
    _emit(payload)
    if code:
        raise typer.Exit(code=code)


@app.command("dispatch")
def dispatch(
    provider: str = typer.Argument(..., help="Provider name (e.g., AlphaVantage)."),  # noqa: B008
    symbol: str = typer.Argument(..., help="Ticker (e.g., MSFT)."),  # noqa: B008
    exchange: str = typer.Argument(..., help="Exchange code (e.g., NASDAQ)."),  # noqa: B008
    interval: str = typer.Argument(
        ..., help='Interval label (e.g., "1d", "1h", "15min").'
    ),  # noqa: B008
    job_id: int | None = typer.Option(
        None, "--job-id", help="Reuse a pre-created ledger row."
    ),  # noqa: B008
) -> None:
    """Run one retrieval job and print the ledger-derived result."""

    async def _work(container: ProxyContainer) -> tuple[Any, int]:
        router = container.router
        try:
            result = await router.submit(
                _resolve(router, provider),
                symbol=symbol,
                exchange=exchange,
                interval=interval,
                job_id=job_id,
            )
        except DomainError as exc:
            log.warning(
                "dispatch.failed",
                extra={"extra": {"provider": provider, "code": exc.code}},
            )
            return _error_payload(exc), _exit_code(exc)
        return result.to_dict(), 0

    _run(_work)


@app.command("stats")
def stats(
    provider: str | None = typer.Argument(None, help="Provider name; all if omitted."),  # noqa: B008
) -> None:
    """Print hit-rate based health stats per provider."""

    async def _work(container: ProxyContainer) -> tuple[Any, int]:
        router = container.router
        try:
            items = [
                (await router.get_stats(name)).to_dict() for name in _selected(router, provider)
            ]
        except ClientError as exc:
            return _error_payload(exc), EXIT_CLIENT_ERROR
        return items, 0

    _run(_work)


@app.command("ping")
def ping(
    provider: str | None = typer.Argument(None, help="Provider name; all if omitted."),  # noqa: B008
) -> None:
    """Ping providers and print reachability and latency."""

    async def _work(container: ProxyContainer) -> tuple[Any, int]:
        router = container.router
        try:
            snapshots = await asyncio.gather(
                *(router.ping_health(name) for name in _selected(router, provider))
            )
        except ClientError as exc:
            return _error_payload(exc), EXIT_CLIENT_ERROR
        return [s.to_dict() for s in snapshots], 0

    _run(_work)


@app.command("monitor")
def monitor(
    iterations: int | None = typer.Option(
        None, min=1, help="Number of sweeps; runs until interrupted if omitted."
    ),  # noqa: B008
    interval_s: float | None = typer.Option(
        None, min=0.001, help="Seconds between sweeps (PROXY_HEALTH_CHECK_INTERVAL_S)."
    ),  # noqa: B008
) -> None:
    """Run periodic provider health sweeps and print the last one."""
    settings = get_settings()

    async def _work(container: ProxyContainer) -> tuple[Any, int]:
        mon = HealthMonitor(
            container.router,
            interval_s=interval_s or settings.health_check_interval_s,
        )
        await mon.run(iterations=iterations)
        return [
            {"ping": snap.to_dict(), "stats": st.to_dict()} for snap, st in mon.last_sweep
        ], 0

    _run(_work)


@app.command("init-db")
def init_db() -> None:
    """Create proxy tables on the configured database (development only)."""
    settings = get_settings()
    if not settings.database_url:
        _emit({"error": {"code": "CONFIG_ERROR", "message": "DATABASE_URL is not set"}})
        raise typer.Exit(code=1)

    async def _main() -> None:
        init_engine_and_sessionmaker(settings)
        try:
            await create_all()
        finally:
            await dispose_engine()

    asyncio.run(_main())
    log.info("init_db.done")
    _emit({"created": ["proxy_job_logs", "md_daily_bars", "md_intraday_bars"]})


if __name__ == "__main__":
    app()
