# tests/conftest.py
from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from datetime import UTC, datetime
from decimal import Decimal

import pytest

from quantam_proxy.adapters.repositories.in_memory import InMemoryBarStore, InMemoryJobLedger
from quantam_proxy.application.services.background import BackgroundTasks
from quantam_proxy.application.services.provider_adapter import ProviderAdapter
from quantam_proxy.config.settings import get_settings
from quantam_proxy.domain.entities.stock_bar import BarInterval, StockBar
from quantam_proxy.domain.value_objects.capability import CapabilityDescriptor


@pytest.fixture
def anyio_backend() -> str:
    """Run anyio-marked tests on asyncio only."""
    return "asyncio"


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def make_bar(
    ts: datetime | None = None,
    *,
    symbol: str = "IBM",
    exchange: str = "NYSE",
    interval: BarInterval = BarInterval.I1D,
    close: str = "10.5",
) -> StockBar:
    return StockBar(
        symbol=symbol,
        exchange=exchange,
        interval=interval,
        timestamp=ts or datetime(2024, 1, 2, tzinfo=UTC),
        open=Decimal("10"),
        high=Decimal("11"),
        low=Decimal("9.5"),
        close=Decimal(close),
        volume=Decimal("1000"),
    )


class FakeSource:
    """Scriptable bar source used by adapter, router and monitor tests."""

    def __init__(
        self,
        name: str = "Fake",
        *,
        exchanges: Sequence[str] = ("NYSE", "NASDAQ"),
        intraday: Sequence[str] = ("1h",),
        daily_supported: bool = True,
        bars: Sequence[StockBar] | None = None,
        error: Exception | None = None,
        ping_error: Exception | None = None,
    ) -> None:
        self._name = name
        self._capabilities = CapabilityDescriptor.build(
            exchanges=exchanges,
            intraday_intervals=intraday,
            daily_supported=daily_supported,
            preferences={"output_size": "full"},
        )
        self.bars = list(bars) if bars is not None else [make_bar()]
        self.error = error
        self.ping_error = ping_error
        self.fetch_calls: list[tuple[str, str, BarInterval]] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def api_key_name(self) -> str:
        return "FAKE_API_KEY"

    @property
    def capabilities(self) -> CapabilityDescriptor:
        return self._capabilities

    def daily_url(self, symbol: str, exchange: str) -> str:
        return f"https://fake.test/daily?symbol={symbol}&exchange={exchange}&apikey=***"

    def intraday_url(self, symbol: str, exchange: str, interval: BarInterval) -> str:
        return (
            f"https://fake.test/intraday?symbol={symbol}&exchange={exchange}"
            f"&interval={interval.value}&apikey=***"
        )

    async def fetch_daily(self, symbol: str, exchange: str) -> Sequence[StockBar]:
        self.fetch_calls.append((symbol, exchange, BarInterval.I1D))
        if self.error is not None:
            raise self.error
        return self.bars

    async def fetch_intraday(
        self, symbol: str, exchange: str, interval: BarInterval
    ) -> Sequence[StockBar]:
        self.fetch_calls.append((symbol, exchange, interval))
        if self.error is not None:
            raise self.error
        return self.bars

    async def ping(self) -> None:
        if self.ping_error is not None:
            raise self.ping_error


@pytest.fixture
def ledger() -> InMemoryJobLedger:
    return InMemoryJobLedger()


@pytest.fixture
def bar_store() -> InMemoryBarStore:
    return InMemoryBarStore()


@pytest.fixture
def tasks() -> BackgroundTasks:
    return BackgroundTasks()


@pytest.fixture
def make_adapter(
    ledger: InMemoryJobLedger, bar_store: InMemoryBarStore, tasks: BackgroundTasks
) -> Callable[..., ProviderAdapter]:
    def _make(source: FakeSource | None = None, *, stats_window: int = 100) -> ProviderAdapter:
        return ProviderAdapter(
            source or FakeSource(),
            ledger=ledger,
            bar_store=bar_store,
            tasks=tasks,
            stats_window=stats_window,
        )

    return _make


@pytest.fixture
def fake_source_cls() -> type[FakeSource]:
    return FakeSource


@pytest.fixture
def bar_factory() -> Callable[..., StockBar]:
    return make_bar
