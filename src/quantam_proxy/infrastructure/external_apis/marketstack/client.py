# src/quantam_proxy/infrastructure/external_apis/marketstack/client.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Marketstack Transport Client (V2).

Thin endpoint layer over :class:`ProviderHttpClient`:

* ``eod``      -> ``GET /eod``
* ``intraday`` -> ``GET /intraday``
* ``exchanges``-> ``GET /exchanges?limit=1`` (health ping)

Return shape: the parsed JSON payload, validated to carry a ``data`` list.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, ClassVar

import httpx

from quantam_proxy.domain.exceptions.market_data import (
    MarketDataBadRequest,
    MarketDataValidationError,
    SymbolNotFound,
)
from quantam_proxy.infrastructure.external_apis.base_client import ProviderHttpClient
from quantam_proxy.infrastructure.external_apis.marketstack.settings import MarketstackSettings
from quantam_proxy.infrastructure.resilience.circuit_breaker import CircuitBreaker
from quantam_proxy.infrastructure.resilience.retry import RetryPolicy

# Vendor error codes that mean the caller asked for something that does not exist.
_CLIENT_ERROR_CODES: frozenset[str] = frozenset(
    {"no_valid_symbols_provided", "invalid_exchange", "validation_error"}
)


class MarketstackClient(ProviderHttpClient):
    """Resilient, instrumented transport client for Marketstack (V2)."""

    provider: ClassVar[str] = "marketstack"
    secret_params: ClassVar[frozenset[str]] = frozenset({"access_key"})
    default_headers: ClassVar[Mapping[str, str]] = {
        "Accept": "application/json",
        "User-Agent": "quantam-marketstack-client/1.0",
    }

    def __init__(
        self,
        settings: MarketstackSettings,
        *,
        http: httpx.AsyncClient | None = None,
        timeout_s: float | None = None,
        retry_policy: RetryPolicy | None = None,
        breaker: CircuitBreaker | None = None,
    ) -> None:
        """Initialize the transport client.

        Args:
            settings: Provider settings loaded from environment or DI.
            http: Optional shared ``httpx.AsyncClient``.
            timeout_s: Optional per-request timeout override in seconds.
            retry_policy: Optional retry configuration for retryable failures.
            breaker: Circuit breaker instance to use; created if omitted.
        """
        super().__init__(
            base_url=settings.base_url,
            timeout_s=timeout_s if timeout_s is not None else settings.timeout_s,
            max_retries=settings.max_retries,
            http=http,
            retry_policy=retry_policy,
            breaker=breaker,
        )
        self._settings = settings

    # ---------------------------- Public API ----------------------------- #

    def eod_params(self, *, symbol: str, exchange_mic: str | None) -> dict[str, Any]:
        """Return the query parameters of an ``/eod`` call."""
        return {
            "symbols": symbol.upper(),
            "exchange": exchange_mic,
            "limit": self._settings.page_limit,
            "access_key": self._settings.access_key.get_secret_value(),
        }

    def intraday_params(
        self, *, symbol: str, exchange_mic: str | None, interval: str
    ) -> dict[str, Any]:
        """Return the query parameters of an ``/intraday`` call."""
        return {
            "symbols": symbol.upper(),
            "exchange": exchange_mic,
            "interval": interval,
            "limit": self._settings.page_limit,
            "access_key": self._settings.access_key.get_secret_value(),
        }

    async def eod(self, *, symbol: str, exchange_mic: str | None) -> list[Mapping[str, Any]]:
        """Call the V2 ``/eod`` endpoint.

        Args:
            symbol: Ticker symbol; normalized to uppercase.
            exchange_mic: Optional MIC filter (e.g. ``"XNAS"``).

        Returns:
            The provider ``data`` rows.

        Raises:
            MarketDataValidationError: If the JSON does not contain a ``data`` list.
        """
        params = self.eod_params(symbol=symbol, exchange_mic=exchange_mic)
        payload = await self._get_json(op="eod", path="/eod", params=_compact(params))
        return _data_rows(payload)

    async def intraday(
        self, *, symbol: str, exchange_mic: str | None, interval: str
    ) -> list[Mapping[str, Any]]:
        """Call the V2 ``/intraday`` endpoint.

        Args:
            symbol: Ticker symbol; normalized to uppercase.
            exchange_mic: Optional MIC filter.
            interval: Provider interval label (e.g. ``"15min"``, ``"1h"``).

        Returns:
            The provider ``data`` rows.
        """
        params = self.intraday_params(symbol=symbol, exchange_mic=exchange_mic, interval=interval)
        payload = await self._get_json(op="intraday", path="/intraday", params=_compact(params))
        return _data_rows(payload)

    async def exchanges(self) -> list[Mapping[str, Any]]:
        """Fetch one exchange record; used as a cheap liveness check."""
        params = {"limit": 1, "access_key": self._settings.access_key.get_secret_value()}
        payload = await self._get_json(op="exchanges", path="/exchanges", params=params)
        return _data_rows(payload)

    # --------------------------- Internal helpers ------------------------- #

    def _inspect(self, response: httpx.Response) -> None:
        """Surface ``{"error": {...}}`` envelopes delivered with a 2xx status."""
        try:
            body = response.json()
        except ValueError:
            return
        if not isinstance(body, Mapping) or not isinstance(body.get("error"), Mapping):
            return
        err = body["error"]
        details = {"code": err.get("code"), "message": err.get("message")}
        code = str(err.get("code") or "")
        if code == "no_valid_symbols_provided":
            raise SymbolNotFound("no_valid_symbols", details=details)
        if code in _CLIENT_ERROR_CODES:
            raise MarketDataBadRequest("provider_rejected", details=details)
        raise MarketDataValidationError("provider_error", details=details)


def _compact(params: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in params.items() if v is not None}


def _data_rows(payload: Mapping[str, Any]) -> list[Mapping[str, Any]]:
    data = payload.get("data")
    if not isinstance(data, list):
        raise MarketDataValidationError("bad_shape", details={"expected": "data:list"})
    rows: list[Mapping[str, Any]] = []
    for item in data:
        if not isinstance(item, Mapping):
            raise MarketDataValidationError("bad_shape", details={"expected": "data:list[object]"})
        rows.append(item)
    return rows
