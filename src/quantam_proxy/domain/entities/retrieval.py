# src/quantam_proxy/domain/entities/retrieval.py
# Copyright (c) Quantam.
# SPDX-License-Identifier: MIT
"""Retrieval job request and ledger-derived result view.

Layer:
    domain/entities
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from quantam_proxy.domain.entities.base import BaseEntity
from quantam_proxy.domain.entities.job_log import JobLogEntry, JobState
from quantam_proxy.domain.entities.stock_bar import BarInterval
from quantam_proxy.domain.exceptions.proxy import UnsupportedRequest


@dataclass(frozen=True)
class RetrievalJobRequest(BaseEntity):
    """A request to retrieve bars for a symbol on an exchange.

    Attributes:
        symbol: Ticker symbol; normalized to upper-case.
        exchange: Exchange code; normalized to upper-case.
        interval: Requested bar interval.
        job_id: Optional pre-created ledger row to reuse.
    """

    symbol: str
    exchange: str
    interval: BarInterval
    job_id: int | None = None

    def __post_init__(self) -> None:
        """Normalize identifiers and enforce basic shape.

        Raises:
            ValueError: If the symbol or exchange is empty.
            UnsupportedRequest: If the interval label names no known interval.
        """
        super().__post_init__()

        if not isinstance(self.symbol, str) or not self.symbol.strip():
            raise ValueError("RetrievalJobRequest.symbol must be a non-empty string.")
        if not isinstance(self.exchange, str) or not self.exchange.strip():
            raise ValueError("RetrievalJobRequest.exchange must be a non-empty string.")

        object.__setattr__(self, "symbol", self.symbol.strip().upper())
        object.__setattr__(self, "exchange", self.exchange.strip().upper())
        try:
            interval = BarInterval.parse(self.interval)
        except ValueError:
            raise UnsupportedRequest(
                f"Invalid interval='{self.interval}'",
                details={"exchange": self.exchange, "interval": str(self.interval)},
            ) from None
        object.__setattr__(self, "interval", interval)


@dataclass(frozen=True)
class RetrievalJobResult(BaseEntity):
    """Caller-facing view of a job, always built from the ledger row."""

    job_id: int
    provider_name: str
    url: str
    status_code: int | None
    message: str | None
    state: JobState
    created_at: datetime
    finished_at: datetime | None

    @classmethod
    def from_entry(cls, entry: JobLogEntry) -> RetrievalJobResult:
        """Build the view from a ledger entry.

        Args:
            entry: Ledger row as returned by ``JobLedger.find``.

        Returns:
            The result view mirroring the ledger row.
        """
        return cls(
            job_id=entry.id,
            provider_name=entry.provider_name,
            url=entry.url,
            status_code=entry.status_code,
            message=entry.message,
            state=entry.state,
            created_at=entry.created_at,
            finished_at=entry.finished_at,
        )

    @property
    def succeeded(self) -> bool:
        """Return True when the job finished successfully."""
        return self.state is JobState.SUCCEEDED

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly representation."""
        return {
            "job_id": self.job_id,
            "provider": self.provider_name,
            "url": self.url,
            "status_code": self.status_code,
            "message": self.message,
            "state": self.state.value,
            "created_at": self.created_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }
