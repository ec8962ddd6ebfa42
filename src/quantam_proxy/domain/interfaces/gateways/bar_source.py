# src/quantam_proxy/domain/interfaces/gateways/bar_source.py
# Copyright (c) Quantam.
# SPDX-License-Identifier: MIT
"""Domain-facing interface for external bar providers.

A bar source is one provider variant (Alpha Vantage, Marketstack, ...). It
describes its capabilities, builds deterministic audit URLs, and performs the
actual fetches. Failures are reported with structured error types:

* :class:`~quantam_proxy.domain.exceptions.proxy.ClientError` subclasses when
  the request itself is at fault, and
* :class:`~quantam_proxy.domain.exceptions.proxy.ProviderError` subclasses
  for everything the upstream got wrong.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from quantam_proxy.domain.entities.stock_bar import BarInterval, StockBar
from quantam_proxy.domain.value_objects.capability import CapabilityDescriptor


class BarSource(Protocol):
    """Capability set every provider variant implements."""

    @property
    def name(self) -> str:
        """Provider name used for routing and ledger rows."""
        raise NotImplementedError

    @property
    def api_key_name(self) -> str:
        """Name of the credential the provider uses (never its value)."""
        raise NotImplementedError

    @property
    def capabilities(self) -> CapabilityDescriptor:
        """Static capability descriptor."""
        raise NotImplementedError

    def daily_url(self, symbol: str, exchange: str) -> str:
        """Return the secret-free URL of a daily fetch."""
        raise NotImplementedError

    def intraday_url(self, symbol: str, exchange: str, interval: BarInterval) -> str:
        """Return the secret-free URL of an intraday fetch."""
        raise NotImplementedError

    async def fetch_daily(self, symbol: str, exchange: str) -> Sequence[StockBar]:
        """Fetch daily bars."""
        raise NotImplementedError

    async def fetch_intraday(
        self, symbol: str, exchange: str, interval: BarInterval
    ) -> Sequence[StockBar]:
        """Fetch intraday bars at ``interval``."""
        raise NotImplementedError

    async def ping(self) -> None:
        """Issue a lightweight call; raise on failure."""
        raise NotImplementedError
