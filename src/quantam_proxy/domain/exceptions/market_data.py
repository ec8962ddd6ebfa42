# Copyright (c) Quantam.
# SPDX-License-Identifier: MIT
"""
Market Data Domain Exceptions

Purpose:
    Exceptions raised by provider transports and gateways. Each one is either
    a ``ClientError`` (the request itself was wrong) or a ``ProviderError``
    (the upstream failed), so callers never inspect message text.

Layer: domain/exceptions
"""
from __future__ import annotations

from .proxy import ClientError, ProviderError


class MarketDataBadRequest(ClientError):
    """Upstream rejected the request parameters (400/422 or vendor error note)."""

    code = "MARKET_DATA_BAD_REQUEST"


class SymbolNotFound(ClientError):
    """Upstream has no data for the requested symbol."""

    code = "SYMBOL_NOT_FOUND"


class MarketDataUnavailable(ProviderError):
    """Third-party market data dependency is unavailable or timed out."""

    code = "MARKET_DATA_UNAVAILABLE"


class MarketDataRateLimited(ProviderError):
    """Upstream throttled the request (429 or vendor throttle note)."""

    code = "MARKET_DATA_RATE_LIMITED"


class MarketDataQuotaExceeded(ProviderError):
    """Upstream plan quota is exhausted (402)."""

    code = "MARKET_DATA_QUOTA_EXCEEDED"


class MarketDataUnauthorized(ProviderError):
    """Upstream refused our credentials (401/403)."""

    code = "MARKET_DATA_UNAUTHORIZED"


class MarketDataValidationError(ProviderError):
    """Upstream returned an unexpected/invalid payload."""

    code = "UPSTREAM_SCHEMA_ERROR"
