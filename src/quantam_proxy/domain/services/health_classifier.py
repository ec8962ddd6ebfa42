# src/quantam_proxy/domain/services/health_classifier.py
# Copyright (c) Quantam.
# SPDX-License-Identifier: MIT
"""Provider health classification.

Purpose:
    Convert a provider's recent hit-rate into a discrete
    :class:`~quantam_proxy.domain.enums.provider_status.ProviderStatus`.

Bands (lower bound closed, ties go to the higher band):

    ==================  ============
    hit-rate            status
    ==================  ============
    ``None``            UNKNOWN
    ``1.0``             SUNNY
    ``[0.75, 1.0)``     CLOUDY
    ``[0.25, 0.75)``    RAINING
    ``[0.01, 0.25)``    THUNDERSTORM
    ``< 0.01``          ECLIPSE
    ==================  ============

Layer:
    domain/services
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from typing import Final

from quantam_proxy.domain.entities.job_log import JobLogEntry, JobState
from quantam_proxy.domain.enums.provider_status import ProviderStatus

__all__ = ["classify", "hit_rate", "terminal_sample"]

# Ordered highest band first; the first lower bound <= hit-rate wins.
_BANDS: Final[tuple[tuple[float, ProviderStatus], ...]] = (
    (1.0, ProviderStatus.SUNNY),
    (0.75, ProviderStatus.CLOUDY),
    (0.25, ProviderStatus.RAINING),
    (0.01, ProviderStatus.THUNDERSTORM),
)


def classify(rate: float | None) -> ProviderStatus:
    """Classify a hit-rate into a provider status.

    Args:
        rate: Success fraction in ``[0, 1]``, or ``None`` when unknown.

    Returns:
        The matching :class:`ProviderStatus`.

    Raises:
        ValueError: If ``rate`` is NaN or outside ``[0, 1]``.
    """
    if rate is None:
        return ProviderStatus.UNKNOWN
    if math.isnan(rate) or rate < 0.0 or rate > 1.0:
        raise ValueError(f"hit-rate must be within [0, 1], got {rate!r}")
    for lower, status in _BANDS:
        if rate >= lower:
            return status
    return ProviderStatus.ECLIPSE


def terminal_sample(entries: Iterable[JobLogEntry]) -> list[JobLogEntry]:
    """Return only the entries that reached a terminal state."""
    return [e for e in entries if e.is_terminal]


def hit_rate(entries: Iterable[JobLogEntry]) -> float | None:
    """Compute the success fraction over terminal ledger entries.

    Created and in-flight rows are ignored so that a burst of concurrent
    jobs does not drag the rate down before they resolve.

    Args:
        entries: Recent ledger entries for one provider.

    Returns:
        Fraction of terminal entries that succeeded, or ``None`` when there
        are no terminal entries.
    """
    sample = terminal_sample(entries)
    if not sample:
        return None
    succeeded = sum(1 for e in sample if e.state is JobState.SUCCEEDED)
    return succeeded / len(sample)
