# src/quantam_proxy/domain/value_objects/capability.py
# Copyright (c) Quantam.
# SPDX-License-Identifier: MIT
"""Provider capability descriptor.

Purpose:
    Static, explicit description of what a provider can serve: which
    exchanges, which intraday intervals, and whether daily bars are offered.
    Admissibility and path resolution are pure functions of the descriptor
    and the request.

Layer:
    domain/value_objects
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

from quantam_proxy.domain.entities.retrieval import RetrievalJobRequest
from quantam_proxy.domain.entities.stock_bar import ONE_DAY, BarInterval


class RetrievalPath(str, Enum):
    """Which provider path serves a request."""

    DAILY = "daily"
    INTRADAY = "intraday"
    REJECT = "reject"


@dataclass(frozen=True)
class CapabilityDescriptor:
    """Immutable provider capability set.

    Attributes:
        exchanges: Upper-case exchange codes the provider covers.
        intraday_intervals: Intraday intervals the provider serves. Must not
            contain the one-day interval.
        daily_supported: Whether daily (end-of-day) bars are offered.
        preferences: Output preferences such as data type or output size.
    """

    exchanges: frozenset[str]
    intraday_intervals: frozenset[BarInterval]
    daily_supported: bool
    preferences: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Normalize sets and reject a one-day intraday entry."""
        object.__setattr__(
            self, "exchanges", frozenset(e.strip().upper() for e in self.exchanges if e.strip())
        )
        object.__setattr__(
            self,
            "intraday_intervals",
            frozenset(BarInterval.parse(i) for i in self.intraday_intervals),
        )
        object.__setattr__(self, "preferences", MappingProxyType(dict(self.preferences)))

        if ONE_DAY in self.intraday_intervals:
            raise ValueError("CapabilityDescriptor.intraday_intervals must not contain 1d.")

    @classmethod
    def build(
        cls,
        *,
        exchanges: Iterable[str],
        intraday_intervals: Iterable[str | BarInterval] = (),
        daily_supported: bool = True,
        preferences: Mapping[str, str] | None = None,
    ) -> CapabilityDescriptor:
        """Build a descriptor from plain iterables (e.g. settings lists)."""
        return cls(
            exchanges=frozenset(exchanges),
            intraday_intervals=frozenset(BarInterval.parse(i) for i in intraday_intervals),
            daily_supported=daily_supported,
            preferences=dict(preferences or {}),
        )

    def resolve_path(self, request: RetrievalJobRequest) -> RetrievalPath:
        """Return the path that serves ``request``, or ``REJECT``."""
        if request.exchange not in self.exchanges:
            return RetrievalPath.REJECT
        if request.interval is ONE_DAY:
            return RetrievalPath.DAILY if self.daily_supported else RetrievalPath.REJECT
        if request.interval in self.intraday_intervals:
            return RetrievalPath.INTRADAY
        return RetrievalPath.REJECT

    def is_admissible(self, request: RetrievalJobRequest) -> bool:
        """Return True when the descriptor covers the request."""
        return self.resolve_path(request) is not RetrievalPath.REJECT

    def rejection_reason(self, request: RetrievalJobRequest) -> str | None:
        """Describe why a request is not admissible.

        Returns:
            ``None`` when admissible, otherwise a human-readable reason naming
            the offending exchange or interval.
        """
        if request.exchange not in self.exchanges:
            return f"Invalid exchange='{request.exchange}'"
        if self.resolve_path(request) is RetrievalPath.REJECT:
            return f"Invalid interval='{request.interval.value}'"
        return None

    def describe(self) -> dict[str, str]:
        """Flatten the descriptor into string config for stats reporting."""
        config = {
            "exchanges": ",".join(sorted(self.exchanges)),
            "intraday_intervals": ",".join(
                i.value for i in sorted(self.intraday_intervals, key=_interval_order)
            ),
            "daily_supported": "true" if self.daily_supported else "false",
        }
        config.update(self.preferences)
        return config


def _interval_order(interval: BarInterval) -> int:
    return list(BarInterval).index(interval)
