# src/quantam_proxy/domain/interfaces/repositories/bar_store.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Domain-facing interface for bar persistence."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from quantam_proxy.domain.entities.stock_bar import BarInterval, StockBar


class BarStore(Protocol):
    """Write-only store for retrieved bars."""

    async def save(
        self,
        symbol: str,
        exchange: str,
        interval: BarInterval,
        bars: Sequence[StockBar],
    ) -> int:
        """Persist bars; rows that already exist are left untouched.

        Args:
            symbol: Upper-case ticker symbol.
            exchange: Upper-case exchange code.
            interval: Interval of every bar in ``bars``.
            bars: Bars to persist.

        Returns:
            Number of bars submitted for insertion.

        Raises:
            Exception: Any failure; callers treat it as a persistence warning.
        """
        raise NotImplementedError
