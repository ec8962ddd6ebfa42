# src/quantam_proxy/domain/entities/job_log.py
# Copyright (c) Quantam.
# SPDX-License-Identifier: MIT
"""Retrieval job ledger entries (Domain Entities).

Synopsis:
    A :class:`JobLogEntry` is one row of the job ledger: it is created before
    the external call is issued, marked in flight, then finalized exactly once.
    The job state is encoded in ``status_code`` using HTTP-like values:

    * ``None``  -> Created
    * ``102``   -> InFlight
    * ``2xx``   -> Succeeded
    * ``4xx``   -> ClientFailed
    * ``5xx``   -> ProviderFailed

Layer:
    domain/entities
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Final

from quantam_proxy.domain.entities.base import BaseEntity

STATUS_IN_FLIGHT: Final[int] = 102
STATUS_OK: Final[int] = 200
STATUS_CLIENT_ERROR: Final[int] = 400
STATUS_PROVIDER_ERROR: Final[int] = 500


class JobState(str, Enum):
    """Lifecycle state of a retrieval job."""

    CREATED = "created"
    IN_FLIGHT = "in_flight"
    SUCCEEDED = "succeeded"
    CLIENT_FAILED = "client_failed"
    PROVIDER_FAILED = "provider_failed"

    @classmethod
    def from_status_code(cls, status_code: int | None) -> JobState:
        """Derive the job state from a ledger status code.

        Args:
            status_code: Ledger status code or ``None`` for a fresh row.

        Returns:
            The corresponding :class:`JobState`.

        Raises:
            ValueError: If the code does not map to a known state.
        """
        if status_code is None:
            return cls.CREATED
        if status_code == STATUS_IN_FLIGHT:
            return cls.IN_FLIGHT
        if 200 <= status_code < 300:
            return cls.SUCCEEDED
        if 400 <= status_code < 500:
            return cls.CLIENT_FAILED
        if 500 <= status_code < 600:
            return cls.PROVIDER_FAILED
        raise ValueError(f"Unmapped ledger status code: {status_code}")

    @property
    def is_terminal(self) -> bool:
        """Return True when no further transition is allowed."""
        return self in (JobState.SUCCEEDED, JobState.CLIENT_FAILED, JobState.PROVIDER_FAILED)


@dataclass(frozen=True)
class JobLogEntry(BaseEntity):
    """Audit record of one retrieval attempt.

    Attributes:
        id: Ledger-assigned job identifier.
        provider_name: Name of the provider the job was routed to.
        url: Secret-free provider URL (empty when no call was built).
        status_code: HTTP-like status code; see module docstring.
        message: Outcome message (``DataSize=<n>`` on success, reason on failure).
        created_at: Creation timestamp (UTC).
        finished_at: Terminal-update timestamp (UTC), if finalized.
    """

    id: int
    provider_name: str
    url: str
    status_code: int | None
    message: str | None
    created_at: datetime
    finished_at: datetime | None = None

    def __post_init__(self) -> None:
        """Enforce ledger entry invariants."""
        super().__post_init__()

        if not self.provider_name:
            raise ValueError("JobLogEntry.provider_name must be non-empty.")
        # Raises for codes outside the encoded ranges.
        JobState.from_status_code(self.status_code)

    @property
    def state(self) -> JobState:
        """Return the job state encoded by ``status_code``."""
        return JobState.from_status_code(self.status_code)

    @property
    def is_terminal(self) -> bool:
        """Return True once the entry has been finalized."""
        return self.state.is_terminal
