# Copyright (c) Quantam.
# SPDX-License-Identifier: MIT
"""Provider health status levels, ordered from healthiest to dead."""

from __future__ import annotations

from enum import Enum


class ProviderStatus(str, Enum):
    """Discrete health level derived from a provider's recent hit-rate.

    Attributes:
        SUNNY: Every recent attempt succeeded.
        CLOUDY: At least 75% succeeded.
        RAINING: At least 25% succeeded.
        THUNDERSTORM: At least 1% succeeded.
        ECLIPSE: Effectively nothing succeeded.
        UNKNOWN: No terminal attempts to judge from.
    """

    SUNNY = "sunny"
    CLOUDY = "cloudy"
    RAINING = "raining"
    THUNDERSTORM = "thunderstorm"
    ECLIPSE = "eclipse"
    UNKNOWN = "unknown"
