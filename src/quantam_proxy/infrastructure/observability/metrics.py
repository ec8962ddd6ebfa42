# src/quantam_proxy/infrastructure/observability/metrics.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Proxy observability helpers and Prometheus metrics.

Exports
-------
Collectors (names are part of the public contract and must remain stable):

* ``quantam_provider_request_latency_seconds`` (Histogram)
* ``quantam_provider_errors_total`` (Counter)
* ``quantam_provider_retries_total`` (Counter)
* ``quantam_provider_breaker_events_total`` (Counter)
* ``quantam_provider_http_status_total`` (Counter)
* ``quantam_retrieval_jobs_total`` (Counter)
* ``quantam_bar_persist_failures_total`` (Counter)
* ``quantam_provider_hit_rate`` (Gauge)
* ``quantam_provider_ping_latency_seconds`` (Histogram)

Design
------
All collectors are created against the *current* default registry
(:data:`prometheus_client.REGISTRY`). If a collector with the same name
already exists in the active registry, the existing instance is reused instead
of registering a duplicate, so module re-imports and registry swaps in tests
are safe.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TypeVar

import prometheus_client as prom
from prometheus_client import Counter, Gauge, Histogram
from prometheus_client.registry import CollectorRegistry

_C = TypeVar("_C", Counter, Gauge, Histogram)


def _get_or_create(
    kind: type[_C],
    name: str,
    doc: str,
    labelnames: Sequence[str] | None = None,
) -> _C:
    """Return a collector of ``kind`` bound to the current default registry.

    1. Look up an existing collector with the given name in the current
       :data:`prom.REGISTRY` and reuse it if it has the right type.
    2. Otherwise, register a new collector on the same registry.
    3. If a concurrent registration caused a ``Duplicated timeseries`` error,
       look up the collector again and reuse it.

    Args:
        kind: Collector class (``Counter``, ``Gauge`` or ``Histogram``).
        name: Metric name.
        doc: Human-readable metric description.
        labelnames: Optional iterable of label names.

    Returns:
        A collector bound to the current :data:`prom.REGISTRY`.
    """
    registry: CollectorRegistry = prom.REGISTRY
    mapping = getattr(registry, "_names_to_collectors", {})  # internal but stable
    existing = mapping.get(name)
    if isinstance(existing, kind):
        return existing

    labels = tuple(labelnames) if labelnames is not None else ()
    try:
        return kind(name, doc, labels, registry=registry)
    except ValueError as exc:
        if "Duplicated timeseries" in str(exc):
            again = getattr(registry, "_names_to_collectors", {}).get(name)
            if isinstance(again, kind):
                return again
        raise


def _get_or_create_histogram(
    name: str, doc: str, labelnames: Sequence[str] | None = None
) -> Histogram:
    return _get_or_create(Histogram, name, doc, labelnames)


def _get_or_create_counter(
    name: str, doc: str, labelnames: Sequence[str] | None = None
) -> Counter:
    return _get_or_create(Counter, name, doc, labelnames)


def _get_or_create_gauge(name: str, doc: str, labelnames: Sequence[str] | None = None) -> Gauge:
    return _get_or_create(Gauge, name, doc, labelnames)


# ---------------------------------------------------------------------------
# Upstream transport metrics
# ---------------------------------------------------------------------------

provider_request_latency_seconds: Histogram = _get_or_create_histogram(
    "quantam_provider_request_latency_seconds",
    "Latency of upstream provider calls (seconds).",
    labelnames=("provider", "endpoint", "outcome"),
)

provider_errors_total: Counter = _get_or_create_counter(
    "quantam_provider_errors_total",
    "Total errors encountered when calling upstream providers.",
    labelnames=("provider", "endpoint", "reason"),
)

provider_retries_total: Counter = _get_or_create_counter(
    "quantam_provider_retries_total",
    "Retries attempted for upstream provider requests.",
    labelnames=("provider", "endpoint", "reason"),
)

provider_breaker_events_total: Counter = _get_or_create_counter(
    "quantam_provider_breaker_events_total",
    "Circuit-breaker short-circuits for upstream providers.",
    labelnames=("provider", "endpoint", "state"),
)

provider_http_status_total: Counter = _get_or_create_counter(
    "quantam_provider_http_status_total",
    "HTTP status codes returned by upstream providers.",
    labelnames=("provider", "endpoint", "status_code"),
)

# ---------------------------------------------------------------------------
# Retrieval job metrics
# ---------------------------------------------------------------------------

retrieval_jobs_total: Counter = _get_or_create_counter(
    "quantam_retrieval_jobs_total",
    "Retrieval jobs by provider, path and terminal outcome.",
    labelnames=("provider", "path", "outcome"),
)

bar_persist_failures_total: Counter = _get_or_create_counter(
    "quantam_bar_persist_failures_total",
    "Background bar persistence failures (logged and dropped).",
    labelnames=("provider",),
)

provider_hit_rate: Gauge = _get_or_create_gauge(
    "quantam_provider_hit_rate",
    "Most recently computed provider hit-rate (-1 when unknown).",
    labelnames=("provider",),
)

provider_ping_latency_seconds: Histogram = _get_or_create_histogram(
    "quantam_provider_ping_latency_seconds",
    "Latency of provider health pings (seconds).",
    labelnames=("provider", "outcome"),
)


def get_provider_request_latency_seconds() -> Histogram:
    """Return the upstream request latency histogram."""
    return provider_request_latency_seconds


def get_provider_errors_total() -> Counter:
    """Return the upstream errors counter."""
    return provider_errors_total


def get_provider_retries_total() -> Counter:
    """Return the upstream retry counter."""
    return provider_retries_total


def get_provider_breaker_events_total() -> Counter:
    """Return the circuit-breaker events counter."""
    return provider_breaker_events_total


def get_provider_http_status_total() -> Counter:
    """Return the upstream HTTP status counter."""
    return provider_http_status_total


def get_retrieval_jobs_total() -> Counter:
    """Return the retrieval jobs counter."""
    return retrieval_jobs_total


def get_bar_persist_failures_total() -> Counter:
    """Return the bar persistence failures counter."""
    return bar_persist_failures_total


def get_provider_hit_rate() -> Gauge:
    """Return the provider hit-rate gauge."""
    return provider_hit_rate


def get_provider_ping_latency_seconds() -> Histogram:
    """Return the ping latency histogram."""
    return provider_ping_latency_seconds
