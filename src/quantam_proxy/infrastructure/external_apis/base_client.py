# src/quantam_proxy/infrastructure/external_apis/base_client.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Provider transport base: async HTTP with retries, breaker and metrics.

Shared by every provider client:

* Async HTTP (httpx) with per-request timeout.
* Jittered exponential retries (bounded); honors ``Retry-After`` seconds.
* Circuit breaker (CLOSED, OPEN, HALF_OPEN); client errors do not trip it.
* Deterministic mapping of HTTP statuses to domain errors
  (400/401/402/403/404/422/429/5xx).
* Prometheus metrics for latency, status codes, retries and breaker events.
* Secret-free audit URLs for the job ledger.
"""

from __future__ import annotations

import time
from collections.abc import Collection, Mapping
from contextlib import suppress
from typing import Any, ClassVar, Final
from urllib.parse import urlencode

import httpx

from quantam_proxy.domain.exceptions.market_data import (
    MarketDataBadRequest,
    MarketDataQuotaExceeded,
    MarketDataRateLimited,
    MarketDataUnauthorized,
    MarketDataUnavailable,
    MarketDataValidationError,
    SymbolNotFound,
)
from quantam_proxy.domain.exceptions.proxy import ClientError, RetrievalFailure
from quantam_proxy.infrastructure.logging.logger import get_json_logger, get_job_id
from quantam_proxy.infrastructure.observability.metrics import (
    get_provider_breaker_events_total,
    get_provider_errors_total,
    get_provider_http_status_total,
    get_provider_request_latency_seconds,
    get_provider_retries_total,
)
from quantam_proxy.infrastructure.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitOpenError,
)
from quantam_proxy.infrastructure.resilience.retry import RetryPolicy, retry_async

logger = get_json_logger(__name__)

_DEFAULT_TIMEOUT: Final[float] = 8.0
_DEFAULT_TOTAL_RETRIES: Final[int] = 4
_DEFAULT_BASE_BACKOFF: Final[float] = 0.25
_DEFAULT_MAX_BACKOFF: Final[float] = 2.5
_REDACTED: Final[str] = "***"


def _parse_retry_after(val: str | None) -> float | None:
    """Parse the HTTP ``Retry-After`` header (seconds form only).

    Args:
        val: Header value as a string, or ``None``.

    Returns:
        The seconds to wait as a float if parseable, otherwise ``None``.
    """
    if not val:
        return None
    try:
        return max(0.0, float(val))
    except ValueError:
        return None


def is_retryable(exc: BaseException) -> bool:
    """Return True for transient upstream failures only.

    Client errors, quota exhaustion, bad payloads and breaker short-circuits
    are never retried. Errors may opt out via ``details["retryable"] = False``.
    """
    if not isinstance(exc, (MarketDataRateLimited, MarketDataUnavailable)):
        return False
    return bool(exc.details.get("retryable", True))


def _trips_breaker(exc: BaseException) -> bool:
    return not isinstance(exc, ClientError)


def map_status(status: int, details: dict[str, Any] | None = None) -> None:
    """Raise the domain error for a non-success HTTP status.

    Args:
        status: HTTP status code.
        details: Optional context attached to the raised error.

    Raises:
        ClientError: For 400/404/422.
        ProviderError: For 401/402/403/429/5xx and any other non-2xx status.
    """
    if 200 <= status < 300:
        return
    info = dict(details or {})
    info.setdefault("status", status)
    if status in (400, 422):
        raise MarketDataBadRequest("bad_request", details=info)
    if status == 404:
        raise SymbolNotFound("not_found", details=info)
    if status in (401, 403):
        raise MarketDataUnauthorized("unauthorized", details=info)
    if status == 402:
        raise MarketDataQuotaExceeded("quota_exceeded", details=info)
    if status == 429:
        raise MarketDataRateLimited("rate_limited", details=info)
    if status >= 500:
        raise MarketDataUnavailable("upstream_unavailable", details=info)
    raise MarketDataValidationError("unexpected_status", details=info)


class ProviderHttpClient:
    """Resilient transport shared by provider clients.

    Subclasses set :attr:`provider`, expose endpoint methods, and may
    override :meth:`_inspect` to detect error envelopes returned with a
    success status.
    """

    provider: ClassVar[str] = "provider"
    #: Query parameters whose values never appear in logs or audit URLs.
    secret_params: ClassVar[Collection[str]] = ()
    default_headers: ClassVar[Mapping[str, str]] = {"Accept": "application/json"}

    def __init__(
        self,
        *,
        base_url: str,
        timeout_s: float | None = None,
        max_retries: int | None = None,
        http: httpx.AsyncClient | None = None,
        retry_policy: RetryPolicy | None = None,
        breaker: CircuitBreaker | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            base_url: Provider base URL; trailing slashes are dropped.
            timeout_s: Per-request timeout in seconds (default ``8.0``).
            max_retries: Retry budget used when ``retry_policy`` is omitted.
            http: Optional shared ``httpx.AsyncClient``. If omitted, a client
                is created and owned by this instance.
            retry_policy: Optional retry configuration for retryable failures.
            breaker: Circuit breaker instance to use; created if omitted.
        """
        self._base_url = str(base_url).rstrip("/")
        self._timeout = float(timeout_s) if timeout_s is not None else _DEFAULT_TIMEOUT

        self._owns_client = http is None
        self._client = http or httpx.AsyncClient(
            timeout=self._timeout,
            headers=dict(self.default_headers),
        )
        if http is not None:
            for key, value in self.default_headers.items():
                self._client.headers.setdefault(key, value)

        total = _DEFAULT_TOTAL_RETRIES if max_retries is None else int(max_retries)
        self._retry = retry_policy or RetryPolicy(
            total=total,
            base=_DEFAULT_BASE_BACKOFF,
            cap=_DEFAULT_MAX_BACKOFF,
            jitter=True,
        )
        self._breaker = breaker or CircuitBreaker(
            failure_threshold=5,
            recovery_timeout_s=30.0,
            half_open_max_calls=1,
            is_failure=_trips_breaker,
        )

        self._latency = get_provider_request_latency_seconds()
        self._errors = get_provider_errors_total()
        self._status_total = get_provider_http_status_total()
        self._retries_total = get_provider_retries_total()
        self._breaker_events_total = get_provider_breaker_events_total()

    @property
    def base_url(self) -> str:
        """Return the normalized base URL."""
        return self._base_url

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance owns it."""
        if self._owns_client and not self._client.is_closed:
            await self._client.aclose()

    def audit_url(self, path: str, params: Mapping[str, Any]) -> str:
        """Return a deterministic URL with secret parameters redacted.

        Args:
            path: Endpoint path appended to the base URL (may be empty).
            params: Query parameters as sent upstream.

        Returns:
            URL whose query string is sorted and free of secrets.
        """
        safe = {
            k: (_REDACTED if k in self.secret_params else v)
            for k, v in sorted(params.items())
            if v is not None
        }
        query = urlencode(safe, safe="*,")
        url = f"{self._base_url}{path}"
        return f"{url}?{query}" if query else url

    def _inspect(self, response: httpx.Response) -> None:
        """Hook for vendor error envelopes delivered with a 2xx status."""
        return None

    def _error_details(self, response: httpx.Response) -> dict[str, Any]:
        """Extract error context from a failed response (best effort)."""
        details: dict[str, Any] = {"status": response.status_code}
        retry_after = _parse_retry_after(response.headers.get("Retry-After"))
        if retry_after is not None:
            details["retry_after"] = retry_after
        with suppress(ValueError):
            body = response.json()
            if isinstance(body, dict) and isinstance(body.get("error"), dict):
                err = body["error"]
                details.update({"code": err.get("code"), "message": err.get("message")})
        return details

    async def _get(
        self,
        *,
        op: str,
        path: str,
        params: Mapping[str, Any],
    ) -> httpx.Response:
        """Wrap a GET call with breaker, retry and metrics.

        Args:
            op: Logical endpoint name used for metric labels.
            path: Endpoint path appended to the base URL.
            params: Query parameters, secrets included.

        Returns:
            The successful ``httpx.Response``.

        Raises:
            RetrievalFailure: A classified ``ClientError`` or ``ProviderError``.
        """
        url = f"{self._base_url}{path}"
        provider = self.provider
        headers: dict[str, str] = {}
        job_id = get_job_id()
        if job_id is not None:
            headers["X-Job-ID"] = str(job_id)

        async def _call() -> httpx.Response:
            """Execute a single HTTP GET under breaker control."""
            try:
                async with self._breaker.guard():
                    try:
                        response = await self._client.get(
                            url, params=params, headers=headers, timeout=self._timeout
                        )
                    except httpx.RequestError as exc:
                        # Transport errors (including timeouts) are provider unavailability.
                        raise MarketDataUnavailable(
                            "transport_error", details={"error": type(exc).__name__}
                        ) from exc

                    with suppress(Exception):
                        self._status_total.labels(provider, op, str(response.status_code)).inc()

                    map_status(response.status_code, self._error_details(response))
                    self._inspect(response)
                    return response
            except CircuitOpenError as exc:
                with suppress(Exception):
                    self._breaker_events_total.labels(provider, op, exc.state).inc()
                raise MarketDataUnavailable(
                    "circuit_open", details={"breaker": exc.state, "retryable": False}
                ) from exc

        def _should_retry(exc: Exception) -> bool:
            retryable = is_retryable(exc)
            if retryable:
                with suppress(Exception):
                    self._retries_total.labels(provider, op, type(exc).__name__).inc()
                logger.info(
                    "upstream_retry",
                    extra={"extra": {"provider": provider, "endpoint": op, "reason": str(exc)}},
                )
            return retryable

        def _retry_after(exc: Exception) -> float | None:
            if isinstance(exc, RetrievalFailure):
                hint = exc.details.get("retry_after")
                return float(hint) if hint is not None else None
            return None

        start = time.perf_counter()
        error_reason: str | None = None
        try:
            return await retry_async(
                _call, policy=self._retry, retry_on=_should_retry, delay_hint=_retry_after
            )
        except RetrievalFailure as exc:
            error_reason = type(exc).__name__
            raise
        finally:
            elapsed = time.perf_counter() - start
            with suppress(Exception):
                outcome = "error" if error_reason else "success"
                self._latency.labels(provider=provider, endpoint=op, outcome=outcome).observe(
                    elapsed
                )
                if error_reason:
                    self._errors.labels(provider=provider, endpoint=op, reason=error_reason).inc()

    async def _get_json(
        self, *, op: str, path: str, params: Mapping[str, Any]
    ) -> Mapping[str, Any]:
        """GET and decode a JSON object body.

        Raises:
            MarketDataValidationError: If the body is not a JSON object.
        """
        response = await self._get(op=op, path=path, params=params)
        try:
            payload = response.json()
        except ValueError as exc:
            raise MarketDataValidationError("non_json", details={"error": str(exc)}) from exc
        if not isinstance(payload, Mapping):
            raise MarketDataValidationError("bad_shape", details={"expected": "object"})
        return payload
