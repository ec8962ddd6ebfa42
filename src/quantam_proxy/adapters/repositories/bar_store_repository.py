# src/quantam_proxy/adapters/repositories/bar_store_repository.py
# Copyright (c) Quantam.
# SPDX-License-Identifier: MIT
"""Bar store repository.

Persists retrieved bars into ``md_daily_bars`` and ``md_intraday_bars``.

Responsibilities
----------------
* Insert bars keyed by listing and time; existing rows are left untouched.
* De-duplicate a batch by key before insertion (first occurrence wins).

Layer
-----
Adapters / repositories.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from quantam_proxy.adapters.repositories.base_repository import BaseRepository
from quantam_proxy.domain.entities.stock_bar import BarInterval, StockBar
from quantam_proxy.infrastructure.database.models.md import DailyBar, IntradayBar

_INSERTS = {"postgresql": pg_insert, "sqlite": sqlite_insert}


class SqlAlchemyBarStore(BaseRepository):
    """Bar store backed by the market data tables."""

    async def save(
        self,
        symbol: str,
        exchange: str,
        interval: BarInterval,
        bars: Sequence[StockBar],
    ) -> int:
        """Insert a batch of bars, ignoring rows that already exist.

        Args:
            symbol: Upper-case ticker symbol.
            exchange: Upper-case exchange code.
            interval: Interval of every bar in ``bars``.
            bars: Bars to persist.

        Returns:
            Number of bars submitted (input rows, not distinct keys).

        Raises:
            RuntimeError: If the bound dialect has no conflict-aware insert.
        """
        if not bars:
            return 0

        if interval.is_daily:
            model: Any = DailyBar
            rows = self._daily_rows(symbol, exchange, bars)
        else:
            model = IntradayBar
            rows = self._intraday_rows(symbol, exchange, interval, bars)

        async with self._transaction() as session:
            dialect = session.get_bind().dialect.name
            insert = _INSERTS.get(dialect)
            if insert is None:
                raise RuntimeError(f"Bar persistence is not supported on dialect {dialect!r}")
            stmt = insert(model).values(rows).on_conflict_do_nothing()
            await session.execute(stmt)
        return len(bars)

    @staticmethod
    def _daily_rows(symbol: str, exchange: str, bars: Sequence[StockBar]) -> list[dict[str, Any]]:
        dedup: dict[Any, dict[str, Any]] = {}
        for bar in bars:
            d = bar.timestamp.date()
            dedup.setdefault(
                d,
                {
                    "symbol": symbol,
                    "exchange": exchange,
                    "d": d,
                    "open": bar.open,
                    "high": bar.high,
                    "low": bar.low,
                    "close": bar.close,
                    "volume": bar.volume,
                },
            )
        return list(dedup.values())

    @staticmethod
    def _intraday_rows(
        symbol: str,
        exchange: str,
        interval: BarInterval,
        bars: Sequence[StockBar],
    ) -> list[dict[str, Any]]:
        dedup: dict[Any, dict[str, Any]] = {}
        for bar in bars:
            dedup.setdefault(
                bar.timestamp,
                {
                    "symbol": symbol,
                    "exchange": exchange,
                    "interval": interval.value,
                    "ts": bar.timestamp,
                    "open": bar.open,
                    "high": bar.high,
                    "low": bar.low,
                    "close": bar.close,
                    "volume": bar.volume,
                },
            )
        return list(dedup.values())
