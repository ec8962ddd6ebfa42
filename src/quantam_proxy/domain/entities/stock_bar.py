# src/quantam_proxy/domain/entities/stock_bar.py
# Copyright (c) Quantam.
# SPDX-License-Identifier: MIT
"""Stock Bars (Domain Entities).

Synopsis:
    Immutable OHLCV bar retrieved from an external provider, plus the interval
    enumeration shared by requests, capability descriptors and storage.

Layer:
    domain/entities
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Final

from quantam_proxy.domain.entities.base import BaseEntity


class BarInterval(str, Enum):
    """Supported bar intervals.

    Attributes:
        I1M: 1-minute bars.
        I5M: 5-minute bars.
        I15M: 15-minute bars.
        I30M: 30-minute bars.
        I1H: 1-hour bars.
        I1D: 1-day (end-of-day) bars.
    """

    I1M = "1m"
    I5M = "5m"
    I15M = "15m"
    I30M = "30m"
    I1H = "1h"
    I1D = "1d"

    def __str__(self) -> str:  # pragma: no cover - trivial
        """Return the canonical string representation for this interval."""
        return self.value

    @property
    def is_daily(self) -> bool:
        """Return True for the one-day interval."""
        return self is BarInterval.I1D

    @classmethod
    def parse(cls, label: str | BarInterval) -> BarInterval:
        """Parse a canonical or provider-style interval label.

        Args:
            label: Interval label such as ``"1m"``, ``"1min"``, ``"60min"``,
                ``"1hour"`` or ``"daily"``; case-insensitive.

        Returns:
            The canonical :class:`BarInterval`.

        Raises:
            ValueError: If the label is not recognized.
        """
        if isinstance(label, BarInterval):
            return label
        key = str(label).strip().lower()
        canonical = _INTERVAL_ALIASES.get(key, key)
        try:
            return cls(canonical)
        except ValueError:
            raise ValueError(f"Unsupported interval label: {label!r}") from None


ONE_DAY: Final[BarInterval] = BarInterval.I1D

_INTERVAL_ALIASES: Final[dict[str, str]] = {
    "1min": "1m",
    "5min": "5m",
    "15min": "15m",
    "30min": "30m",
    "60m": "1h",
    "60min": "1h",
    "1hour": "1h",
    "1day": "1d",
    "d": "1d",
    "daily": "1d",
    "eod": "1d",
}


@dataclass(frozen=True)
class StockBar(BaseEntity):
    """A single OHLCV bar for a symbol on an exchange.

    Attributes:
        symbol: Upper-case ticker symbol (non-empty).
        exchange: Upper-case exchange code (non-empty).
        interval: Interval used to aggregate this bar; ``1d`` means daily.
        timestamp: Timezone-aware bar timestamp (session date for daily bars).
        open: Open price (must be >= 0).
        high: High price (must be >= 0).
        low: Low price (must be >= 0 and <= high).
        close: Close price (must be >= 0).
        volume: Traded volume (may be None, otherwise >= 0).
    """

    symbol: str
    exchange: str
    interval: BarInterval
    timestamp: datetime
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal | None

    def __post_init__(self) -> None:
        """Enforce core invariants for stock bars."""
        super().__post_init__()

        if not isinstance(self.symbol, str) or not self.symbol.strip():
            raise ValueError("StockBar.symbol must be a non-empty string.")
        if self.symbol != self.symbol.upper():
            raise ValueError("StockBar.symbol must be upper-case.")
        if not isinstance(self.exchange, str) or not self.exchange.strip():
            raise ValueError("StockBar.exchange must be a non-empty string.")

        for field_name in ("open", "high", "low", "close"):
            value = getattr(self, field_name)
            if value < 0:
                raise ValueError(f"StockBar.{field_name} must be >= 0.")

        if self.low > self.high:
            raise ValueError("StockBar.low must be <= StockBar.high.")

        if self.volume is not None and self.volume < 0:
            raise ValueError("StockBar.volume must be >= 0 when provided.")
