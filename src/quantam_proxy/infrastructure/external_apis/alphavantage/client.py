# src/quantam_proxy/infrastructure/external_apis/alphavantage/client.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Alpha Vantage Transport Client.

Every call is a ``GET`` on the single query endpoint, selected by the
``function`` parameter:

* ``TIME_SERIES_DAILY``    -> daily bars
* ``TIME_SERIES_INTRADAY`` -> intraday bars (``interval`` = ``1min`` .. ``60min``)
* ``MARKET_STATUS``        -> cheap liveness check

Alpha Vantage answers most failures with HTTP 200 and a JSON note instead of
a status code. :meth:`AlphaVantageClient._inspect` maps those notes:

* ``"Error Message"``          -> :class:`MarketDataBadRequest` (bad symbol/params)
* ``"Note"`` / ``"Information"`` -> :class:`MarketDataRateLimited` (throttled or
  plan-restricted; not retried, the vendor window is per-minute/per-day)

Series are returned as a list of row dicts with keys ``timestamp``, ``open``,
``high``, ``low``, ``close`` and ``volume``, whichever ``datatype`` is used.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Mapping
from typing import Any, ClassVar, Final

import httpx

from quantam_proxy.domain.exceptions.market_data import (
    MarketDataBadRequest,
    MarketDataRateLimited,
    MarketDataValidationError,
)
from quantam_proxy.infrastructure.external_apis.alphavantage.settings import AlphaVantageSettings
from quantam_proxy.infrastructure.external_apis.base_client import ProviderHttpClient
from quantam_proxy.infrastructure.resilience.circuit_breaker import CircuitBreaker
from quantam_proxy.infrastructure.resilience.retry import RetryPolicy

_ROW_KEYS: Final[tuple[str, ...]] = ("open", "high", "low", "close", "volume")


class AlphaVantageClient(ProviderHttpClient):
    """Resilient, instrumented transport client for Alpha Vantage."""

    provider: ClassVar[str] = "alphavantage"
    secret_params: ClassVar[frozenset[str]] = frozenset({"apikey"})
    default_headers: ClassVar[Mapping[str, str]] = {
        "Accept": "text/csv, application/json",
        "User-Agent": "quantam-alphavantage-client/1.0",
    }

    def __init__(
        self,
        settings: AlphaVantageSettings,
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

    def daily_params(self, *, symbol: str) -> dict[str, Any]:
        """Return the query parameters of a daily series call."""
        return {
            "function": "TIME_SERIES_DAILY",
            "symbol": symbol,
            "outputsize": self._settings.output_size,
            "datatype": self._settings.data_type,
            "apikey": self._settings.api_key.get_secret_value(),
        }

    def intraday_params(self, *, symbol: str, interval: str) -> dict[str, Any]:
        """Return the query parameters of an intraday series call."""
        return {
            "function": "TIME_SERIES_INTRADAY",
            "symbol": symbol,
            "interval": interval,
            "outputsize": self._settings.output_size,
            "datatype": self._settings.data_type,
            "apikey": self._settings.api_key.get_secret_value(),
        }

    async def daily(self, *, symbol: str) -> list[dict[str, str]]:
        """Fetch the daily series for a (suffixed) symbol.

        Args:
            symbol: Vendor symbol, e.g. ``"IBM"`` or ``"VOD.LON"``.

        Returns:
            Series rows, newest first as delivered.
        """
        response = await self._get(op="daily", path="", params=self.daily_params(symbol=symbol))
        return self._rows(response)

    async def intraday(self, *, symbol: str, interval: str) -> list[dict[str, str]]:
        """Fetch the intraday series for a symbol.

        Args:
            symbol: Vendor symbol.
            interval: Vendor interval label (``1min``, ``5min``, ``15min``,
                ``30min`` or ``60min``).

        Returns:
            Series rows, newest first as delivered.
        """
        params = self.intraday_params(symbol=symbol, interval=interval)
        response = await self._get(op="intraday", path="", params=params)
        return self._rows(response)

    async def market_status(self) -> Mapping[str, Any]:
        """Fetch global market status; used as a cheap liveness check."""
        params = {"function": "MARKET_STATUS", "apikey": self._settings.api_key.get_secret_value()}
        return await self._get_json(op="market_status", path="", params=params)

    # --------------------------- Internal helpers ------------------------- #

    def _inspect(self, response: httpx.Response) -> None:
        """Map vendor JSON notes delivered with HTTP 200 to domain errors."""
        body = _json_object(response)
        if body is None:
            return
        if "Error Message" in body:
            raise MarketDataBadRequest(
                "provider_rejected", details={"message": str(body["Error Message"])}
            )
        for key in ("Note", "Information"):
            if key in body:
                raise MarketDataRateLimited(
                    "provider_throttled",
                    details={"message": str(body[key]), "retryable": False},
                )

    def _rows(self, response: httpx.Response) -> list[dict[str, str]]:
        body = _json_object(response)
        if body is not None:
            return _rows_from_json(body)
        return _rows_from_csv(response.text)


def _json_object(response: httpx.Response) -> Mapping[str, Any] | None:
    """Return the body as a JSON object, or ``None`` for CSV/other bodies."""
    text = response.text.lstrip()
    if not text.startswith("{"):
        return None
    try:
        body = response.json()
    except ValueError:
        return None
    return body if isinstance(body, Mapping) else None


def _rows_from_csv(text: str) -> list[dict[str, str]]:
    reader = csv.DictReader(io.StringIO(text))
    fields = [f.strip().lower() for f in (reader.fieldnames or [])]
    if "timestamp" not in fields or not set(_ROW_KEYS[:4]).issubset(fields):
        raise MarketDataValidationError("bad_shape", details={"expected": "csv:timestamp,ohlcv"})
    rows: list[dict[str, str]] = []
    for raw in reader:
        row = {str(k).strip().lower(): (v or "").strip() for k, v in raw.items() if k is not None}
        rows.append(row)
    return rows


def _rows_from_json(body: Mapping[str, Any]) -> list[dict[str, str]]:
    series_key = next((k for k in body if str(k).startswith("Time Series")), None)
    if series_key is None or not isinstance(body[series_key], Mapping):
        raise MarketDataValidationError("bad_shape", details={"expected": "Time Series object"})
    rows: list[dict[str, str]] = []
    for ts, values in body[series_key].items():
        if not isinstance(values, Mapping):
            raise MarketDataValidationError("bad_shape", details={"expected": "series entry"})
        row = {"timestamp": str(ts)}
        for raw_key, value in values.items():
            # Keys look like "1. open".
            name = str(raw_key).split(".", 1)[-1].strip().lower()
            if name in _ROW_KEYS:
                row[name] = str(value)
        rows.append(row)
    return rows
