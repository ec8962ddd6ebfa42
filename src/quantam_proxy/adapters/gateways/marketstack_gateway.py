# src/quantam_proxy/adapters/gateways/marketstack_gateway.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Marketstack bar source.

Implements :class:`~quantam_proxy.domain.interfaces.gateways.bar_source.BarSource`
on top of :class:`MarketstackClient`: translates exchange codes to MICs and
canonical intervals to V2 labels, and maps provider rows to
:class:`StockBar` entities.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Final

from quantam_proxy.adapters.gateways.bar_mapping import build_bar
from quantam_proxy.domain.entities.stock_bar import ONE_DAY, BarInterval, StockBar
from quantam_proxy.domain.exceptions.proxy import UnsupportedRequest
from quantam_proxy.domain.value_objects.capability import CapabilityDescriptor
from quantam_proxy.infrastructure.external_apis.marketstack.client import MarketstackClient
from quantam_proxy.infrastructure.external_apis.marketstack.settings import (
    API_KEY_ENV,
    MarketstackSettings,
)

NAME: Final[str] = "MarketStack"

# Exchange code -> ISO 10383 MIC used by the V2 ``exchange`` filter.
EXCHANGE_MICS: Final[Mapping[str, str]] = {
    "NASDAQ": "XNAS",
    "NYSE": "XNYS",
    "AMEX": "XASE",
    "NYSEARCA": "ARCX",
    "LSE": "XLON",
    "TSX": "XTSE",
    "XETRA": "XETR",
    "ASX": "XASX",
}

INTERVAL_LABELS: Final[Mapping[BarInterval, str]] = {
    BarInterval.I1M: "1min",
    BarInterval.I5M: "5min",
    BarInterval.I15M: "15min",
    BarInterval.I30M: "30min",
    BarInterval.I1H: "1h",
}


class MarketstackGateway:
    """Marketstack variant of the bar source capability set."""

    def __init__(self, client: MarketstackClient, settings: MarketstackSettings) -> None:
        """Initialize the gateway.

        Args:
            client: Configured Marketstack transport client.
            settings: Provider settings; source of the capability sets.
        """
        self._client = client
        self._capabilities = CapabilityDescriptor.build(
            exchanges=settings.exchanges,
            intraday_intervals=settings.allowed_intraday_intervals,
            daily_supported=settings.daily_supported,
            preferences={"page_limit": str(settings.page_limit)},
        )

    @property
    def name(self) -> str:
        """Provider name used for routing and ledger rows."""
        return NAME

    @property
    def api_key_name(self) -> str:
        """Env var holding the access key."""
        return API_KEY_ENV

    @property
    def capabilities(self) -> CapabilityDescriptor:
        """Capability descriptor built from settings."""
        return self._capabilities

    # ------------------------------------------------------------------ #
    # URL building
    # ------------------------------------------------------------------ #

    @staticmethod
    def _mic(exchange: str) -> str:
        return EXCHANGE_MICS.get(exchange.upper(), exchange.upper())

    @staticmethod
    def _interval_label(interval: BarInterval) -> str:
        label = INTERVAL_LABELS.get(interval)
        if label is None:
            raise UnsupportedRequest(f"Invalid interval='{interval.value}'")
        return label

    def daily_url(self, symbol: str, exchange: str) -> str:
        """Return the secret-free ``/eod`` URL."""
        params = self._client.eod_params(symbol=symbol, exchange_mic=self._mic(exchange))
        return self._client.audit_url("/eod", params)

    def intraday_url(self, symbol: str, exchange: str, interval: BarInterval) -> str:
        """Return the secret-free ``/intraday`` URL."""
        params = self._client.intraday_params(
            symbol=symbol, exchange_mic=self._mic(exchange), interval=self._interval_label(interval)
        )
        return self._client.audit_url("/intraday", params)

    # ------------------------------------------------------------------ #
    # Fetching
    # ------------------------------------------------------------------ #

    async def fetch_daily(self, symbol: str, exchange: str) -> Sequence[StockBar]:
        """Fetch end-of-day bars."""
        rows = await self._client.eod(symbol=symbol, exchange_mic=self._mic(exchange))
        return self._to_bars(rows, symbol=symbol, exchange=exchange, interval=ONE_DAY)

    async def fetch_intraday(
        self, symbol: str, exchange: str, interval: BarInterval
    ) -> Sequence[StockBar]:
        """Fetch intraday bars."""
        rows = await self._client.intraday(
            symbol=symbol,
            exchange_mic=self._mic(exchange),
            interval=self._interval_label(interval),
        )
        return self._to_bars(rows, symbol=symbol, exchange=exchange, interval=interval)

    async def ping(self) -> None:
        """Fetch a single exchange record; raises on failure."""
        await self._client.exchanges()

    @staticmethod
    def _to_bars(
        rows: Sequence[Mapping[str, Any]],
        *,
        symbol: str,
        exchange: str,
        interval: BarInterval,
    ) -> list[StockBar]:
        bars: list[StockBar] = []
        for row in rows:
            # Intraday rows outside trading hours carry null prices.
            if any(row.get(k) is None for k in ("open", "high", "low", "close")):
                continue
            bars.append(
                build_bar(
                    row,
                    symbol=symbol.upper(),
                    exchange=exchange.upper(),
                    interval=interval,
                    timestamp_key="date",
                )
            )
        return bars
