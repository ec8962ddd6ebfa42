# src/quantam_proxy/domain/entities/provider_stats.py
# Copyright (c) Quantam.
# SPDX-License-Identifier: MIT
"""Provider health views (Domain Entities).

Layer:
    domain/entities
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any

from quantam_proxy.domain.entities.base import BaseEntity
from quantam_proxy.domain.enums.provider_status import ProviderStatus


@dataclass(frozen=True)
class ProviderStats(BaseEntity):
    """Point-in-time health snapshot for one provider.

    Attributes:
        name: Provider name.
        api_key_identifier: Name of the credential the provider uses (never the value).
        config: Flattened capability configuration.
        status: Classified health level.
        hit_rate: Success fraction over the trailing window, or ``None`` when
            the window holds no terminal attempts.
        sample_size: Number of terminal attempts the hit-rate was computed over.
    """

    name: str
    api_key_identifier: str
    config: Mapping[str, str] = field(default_factory=dict)
    status: ProviderStatus = ProviderStatus.UNKNOWN
    hit_rate: float | None = None
    sample_size: int = 0

    def __post_init__(self) -> None:
        """Freeze the config mapping and validate the hit-rate range."""
        super().__post_init__()
        object.__setattr__(self, "config", MappingProxyType(dict(self.config)))

        if self.hit_rate is not None and not 0.0 <= self.hit_rate <= 1.0:
            raise ValueError("ProviderStats.hit_rate must be within [0, 1].")
        if self.sample_size < 0:
            raise ValueError("ProviderStats.sample_size must be >= 0.")

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly representation."""
        return {
            "name": self.name,
            "api_key_name": self.api_key_identifier,
            "proxy_config": dict(self.config),
            "api_stats": {
                "status": self.status.value,
                "api_hit_rate": self.hit_rate,
                "sample_size": self.sample_size,
            },
        }


@dataclass(frozen=True)
class HealthSnapshot(BaseEntity):
    """Advisory result of a provider health ping.

    Attributes:
        provider_name: Provider that was pinged.
        reachable: Whether the lightweight call succeeded.
        latency_s: Wall-clock latency of the ping in seconds.
        detail: ``"ok"`` or a short failure description.
        checked_at: Timestamp of the check (UTC).
    """

    provider_name: str
    reachable: bool
    latency_s: float
    detail: str
    checked_at: datetime

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly representation."""
        return {
            "provider": self.provider_name,
            "reachable": self.reachable,
            "latency_s": round(self.latency_s, 6),
            "detail": self.detail,
            "checked_at": self.checked_at.isoformat(),
        }
