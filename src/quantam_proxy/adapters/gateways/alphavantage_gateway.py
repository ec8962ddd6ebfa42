# src/quantam_proxy/adapters/gateways/alphavantage_gateway.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Alpha Vantage bar source.

Implements :class:`~quantam_proxy.domain.interfaces.gateways.bar_source.BarSource`
on top of :class:`AlphaVantageClient`. Alpha Vantage addresses non-US listings
by symbol suffix (``VOD.LON``) and reports timestamps in US/Eastern.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Final
from zoneinfo import ZoneInfo

from quantam_proxy.adapters.gateways.bar_mapping import build_bar
from quantam_proxy.domain.entities.stock_bar import ONE_DAY, BarInterval, StockBar
from quantam_proxy.domain.exceptions.proxy import UnsupportedRequest
from quantam_proxy.domain.value_objects.capability import CapabilityDescriptor
from quantam_proxy.infrastructure.external_apis.alphavantage.client import AlphaVantageClient
from quantam_proxy.infrastructure.external_apis.alphavantage.settings import (
    API_KEY_ENV,
    AlphaVantageSettings,
)

NAME: Final[str] = "AlphaVantage"

EXCHANGE_SUFFIXES: Final[Mapping[str, str]] = {
    "NASDAQ": "",
    "NYSE": "",
    "AMEX": "",
    "LSE": ".LON",
    "TSX": ".TRT",
    "TSXV": ".TRV",
    "XETRA": ".DEX",
    "BSE": ".BSE",
    "SSE": ".SHH",
    "SZSE": ".SHZ",
}

INTERVAL_LABELS: Final[Mapping[BarInterval, str]] = {
    BarInterval.I1M: "1min",
    BarInterval.I5M: "5min",
    BarInterval.I15M: "15min",
    BarInterval.I30M: "30min",
    BarInterval.I1H: "60min",
}

_EASTERN: Final = ZoneInfo("America/New_York")


class AlphaVantageGateway:
    """Alpha Vantage variant of the bar source capability set."""

    def __init__(self, client: AlphaVantageClient, settings: AlphaVantageSettings) -> None:
        """Initialize the gateway.

        Args:
            client: Configured Alpha Vantage transport client.
            settings: Provider settings; source of the capability sets.
        """
        self._client = client
        self._capabilities = CapabilityDescriptor.build(
            exchanges=settings.exchanges,
            intraday_intervals=settings.allowed_intraday_intervals,
            daily_supported=settings.daily_supported,
            preferences={"data_type": settings.data_type, "output_size": settings.output_size},
        )

    @property
    def name(self) -> str:
        """Provider name used for routing and ledger rows."""
        return NAME

    @property
    def api_key_name(self) -> str:
        """Env var holding the API key."""
        return API_KEY_ENV

    @property
    def capabilities(self) -> CapabilityDescriptor:
        """Capability descriptor built from settings."""
        return self._capabilities

    @staticmethod
    def vendor_symbol(symbol: str, exchange: str) -> str:
        """Return the vendor symbol, suffixed for non-US exchanges."""
        return f"{symbol.upper()}{EXCHANGE_SUFFIXES.get(exchange.upper(), '')}"

    @staticmethod
    def _interval_label(interval: BarInterval) -> str:
        label = INTERVAL_LABELS.get(interval)
        if label is None:
            raise UnsupportedRequest(f"Invalid interval='{interval.value}'")
        return label

    def daily_url(self, symbol: str, exchange: str) -> str:
        """Return the secret-free daily series URL."""
        params = self._client.daily_params(symbol=self.vendor_symbol(symbol, exchange))
        return self._client.audit_url("", params)

    def intraday_url(self, symbol: str, exchange: str, interval: BarInterval) -> str:
        """Return the secret-free intraday series URL."""
        params = self._client.intraday_params(
            symbol=self.vendor_symbol(symbol, exchange), interval=self._interval_label(interval)
        )
        return self._client.audit_url("", params)

    async def fetch_daily(self, symbol: str, exchange: str) -> Sequence[StockBar]:
        """Fetch daily bars."""
        rows = await self._client.daily(symbol=self.vendor_symbol(symbol, exchange))
        return [
            build_bar(
                row,
                symbol=symbol.upper(),
                exchange=exchange.upper(),
                interval=ONE_DAY,
                timestamp_key="timestamp",
            )
            for row in rows
        ]

    async def fetch_intraday(
        self, symbol: str, exchange: str, interval: BarInterval
    ) -> Sequence[StockBar]:
        """Fetch intraday bars."""
        rows = await self._client.intraday(
            symbol=self.vendor_symbol(symbol, exchange), interval=self._interval_label(interval)
        )
        return [
            build_bar(
                row,
                symbol=symbol.upper(),
                exchange=exchange.upper(),
                interval=interval,
                timestamp_key="timestamp",
                tz=_EASTERN,
            )
            for row in rows
        ]

    async def ping(self) -> None:
        """Query market status; raises on failure."""
        await self._client.market_status()
