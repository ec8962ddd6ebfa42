# src/quantam_proxy/domain/interfaces/repositories/job_ledger.py
# Copyright (c) Quantam.
# SPDX-License-Identifier: MIT
"""Domain-facing interface for the retrieval job ledger.

The ledger is the only shared mutable resource in the retrieval flow. It must
support concurrent appends and serialize updates to any single row: once a
row is terminal, further updates raise
:class:`~quantam_proxy.domain.exceptions.proxy.LedgerInconsistency`.

Notes:
    * Implementations live in ``adapters/repositories`` (SQLAlchemy and
      in-memory).
    * Reads (``find``/``recent_for``) may observe rows mid-update; callers
      accept an eventually consistent view.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from quantam_proxy.domain.entities.job_log import JobLogEntry


class JobLedger(Protocol):
    """Append/finalize log of retrieval attempts."""

    async def create(self, provider_name: str, url: str = "") -> int:
        """Append a new row in the Created state.

        Args:
            provider_name: Provider the job is routed to.
            url: Provider URL if already known, otherwise empty.

        Returns:
            The new job identifier.
        """
        raise NotImplementedError

    async def mark_in_flight(self, job_id: int) -> JobLogEntry:
        """Move a Created row to InFlight.

        Raises:
            LedgerInconsistency: If the row is missing or not Created.
        """
        raise NotImplementedError

    async def finalize(
        self,
        job_id: int,
        provider_name: str,
        url: str,
        status_code: int,
        message: str,
    ) -> JobLogEntry:
        """Record the terminal outcome of a job exactly once.

        Args:
            job_id: Row to finalize.
            provider_name: Provider that served the job.
            url: Secret-free provider URL (empty when none was built).
            status_code: Terminal status code (2xx, 4xx or 5xx).
            message: Outcome message.

        Returns:
            The finalized entry.

        Raises:
            LedgerInconsistency: If the row is missing or already terminal.
            ValueError: If ``status_code`` is not terminal.
        """
        raise NotImplementedError

    async def find(self, job_id: int) -> JobLogEntry:
        """Return a row by id.

        Raises:
            LedgerInconsistency: If the row does not exist.
        """
        raise NotImplementedError

    async def recent_for(self, provider_name: str, window: int) -> Sequence[JobLogEntry]:
        """Return at most ``window`` rows for a provider, newest first."""
        raise NotImplementedError
