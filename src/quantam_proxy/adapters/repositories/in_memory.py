# src/quantam_proxy/adapters/repositories/in_memory.py
# Copyright (c) Quantam.
# SPDX-License-Identifier: MIT
"""In-memory job ledger and bar store.

Used when no ``DATABASE_URL`` is configured (local runs, tests). Both stores
honor the same contracts as their SQLAlchemy counterparts: ledger updates are
serialized under one lock and terminal rows are never updated again.
"""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import UTC, datetime

from quantam_proxy.domain.entities.job_log import STATUS_IN_FLIGHT, JobLogEntry, JobState
from quantam_proxy.domain.entities.stock_bar import BarInterval, StockBar
from quantam_proxy.domain.exceptions.proxy import LedgerInconsistency


class InMemoryJobLedger:
    """A concurrency-safe in-memory job ledger."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._rows: dict[int, JobLogEntry] = {}
        self._lock = asyncio.Lock()

    async def create(self, provider_name: str, url: str = "") -> int:
        """Append a Created row and return its id."""
        async with self._lock:
            job_id = next(self._ids)
            self._rows[job_id] = JobLogEntry(
                id=job_id,
                provider_name=provider_name,
                url=url,
                status_code=None,
                message=None,
                created_at=datetime.now(UTC),
            )
            return job_id

    async def mark_in_flight(self, job_id: int) -> JobLogEntry:
        """Move a Created row to InFlight."""
        async with self._lock:
            row = self._require(job_id)
            if row.state is not JobState.CREATED:
                raise self._wrong_state(row, "mark in flight")
            updated = replace(row, status_code=STATUS_IN_FLIGHT)
            self._rows[job_id] = updated
            return updated

    async def finalize(
        self,
        job_id: int,
        provider_name: str,
        url: str,
        status_code: int,
        message: str,
    ) -> JobLogEntry:
        """Record the terminal outcome of a job exactly once."""
        if not JobState.from_status_code(status_code).is_terminal:
            raise ValueError(f"status_code {status_code} is not terminal")
        async with self._lock:
            row = self._require(job_id)
            if row.is_terminal:
                raise self._wrong_state(row, "finalize")
            updated = replace(
                row,
                provider_name=provider_name,
                url=url,
                status_code=status_code,
                message=message,
                finished_at=datetime.now(UTC),
            )
            self._rows[job_id] = updated
            return updated

    async def find(self, job_id: int) -> JobLogEntry:
        """Return a row by id or raise ``LedgerInconsistency``."""
        return self._require(job_id)

    async def recent_for(self, provider_name: str, window: int) -> Sequence[JobLogEntry]:
        """Return at most ``window`` rows for a provider, newest first."""
        if window < 1:
            return []
        rows = [r for r in self._rows.values() if r.provider_name == provider_name]
        rows.sort(key=lambda r: r.id, reverse=True)
        return rows[:window]

    def __len__(self) -> int:
        return len(self._rows)

    def _require(self, job_id: int) -> JobLogEntry:
        row = self._rows.get(job_id)
        if row is None:
            raise LedgerInconsistency(
                f"Job {job_id} not found in ledger", details={"job_id": job_id}
            )
        return row

    @staticmethod
    def _wrong_state(row: JobLogEntry, action: str) -> LedgerInconsistency:
        return LedgerInconsistency(
            f"Cannot {action} job {row.id} in state {row.state.value}",
            details={"job_id": row.id, "state": row.state.value},
        )


@dataclass(frozen=True)
class SavedBatch:
    """One call to :meth:`InMemoryBarStore.save`."""

    symbol: str
    exchange: str
    interval: BarInterval
    bars: tuple[StockBar, ...]


class InMemoryBarStore:
    """Bar store that keeps saved batches in a list.

    Args:
        fail_with: Optional exception raised by every ``save`` call.
    """

    def __init__(self, fail_with: Exception | None = None) -> None:
        self.batches: list[SavedBatch] = []
        self.fail_with = fail_with

    async def save(
        self,
        symbol: str,
        exchange: str,
        interval: BarInterval,
        bars: Sequence[StockBar],
    ) -> int:
        """Record a batch of bars."""
        if self.fail_with is not None:
            raise self.fail_with
        self.batches.append(SavedBatch(symbol, exchange, interval, tuple(bars)))
        return len(bars)
