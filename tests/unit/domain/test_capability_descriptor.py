# tests/unit/domain/test_capability_descriptor.py
from __future__ import annotations

import itertools

import pytest

from quantam_proxy.domain.entities.retrieval import RetrievalJobRequest
from quantam_proxy.domain.entities.stock_bar import ONE_DAY, BarInterval
from quantam_proxy.domain.value_objects.capability import CapabilityDescriptor, RetrievalPath


@pytest.fixture
def descriptor() -> CapabilityDescriptor:
    return CapabilityDescriptor.build(
        exchanges=["nyse", "NASDAQ"],
        intraday_intervals=["1min", "1h"],
        daily_supported=True,
    )


def _req(exchange: str, interval: str) -> RetrievalJobRequest:
    return RetrievalJobRequest(symbol="ibm", exchange=exchange, interval=interval)


def test_build_normalizes_exchanges_and_intervals(descriptor: CapabilityDescriptor) -> None:
    assert descriptor.exchanges == frozenset({"NYSE", "NASDAQ"})
    assert descriptor.intraday_intervals == frozenset({BarInterval.I1M, BarInterval.I1H})


def test_one_day_is_rejected_as_intraday_interval() -> None:
    with pytest.raises(ValueError):
        CapabilityDescriptor.build(exchanges=["NYSE"], intraday_intervals=["1d"])


def test_daily_request_on_supported_exchange_takes_daily_path(
    descriptor: CapabilityDescriptor,
) -> None:
    request = _req("NYSE", "daily")
    assert descriptor.resolve_path(request) is RetrievalPath.DAILY
    assert descriptor.is_admissible(request)
    assert descriptor.rejection_reason(request) is None


def test_unsupported_intraday_interval_is_rejected(descriptor: CapabilityDescriptor) -> None:
    request = _req("NYSE", "5m")
    assert descriptor.resolve_path(request) is RetrievalPath.REJECT
    assert descriptor.rejection_reason(request) == "Invalid interval='5m'"


def test_unsupported_exchange_is_rejected(descriptor: CapabilityDescriptor) -> None:
    request = _req("LSE", "1h")
    assert not descriptor.is_admissible(request)
    assert descriptor.rejection_reason(request) == "Invalid exchange='LSE'"


def test_daily_disabled_rejects_one_day() -> None:
    d = CapabilityDescriptor.build(
        exchanges=["NYSE"], intraday_intervals=["1h"], daily_supported=False
    )
    assert d.resolve_path(_req("NYSE", "1d")) is RetrievalPath.REJECT
    assert d.rejection_reason(_req("NYSE", "1d")) == "Invalid interval='1d'"


def test_admissibility_matches_capability_sets() -> None:
    exchanges = ["NYSE", "LSE"]
    for daily, intraday in itertools.product((True, False), (["1m"], ["1m", "1h"], [])):
        d = CapabilityDescriptor.build(
            exchanges=["NYSE"], intraday_intervals=intraday, daily_supported=daily
        )
        for exchange, interval in itertools.product(exchanges, list(BarInterval)):
            request = _req(exchange, interval.value)
            expected = exchange in d.exchanges and (
                (interval is ONE_DAY and d.daily_supported) or interval in d.intraday_intervals
            )
            assert d.is_admissible(request) is expected


def test_describe_flattens_config(descriptor: CapabilityDescriptor) -> None:
    d = CapabilityDescriptor.build(
        exchanges=["NYSE", "AMEX"],
        intraday_intervals=["1h", "1m"],
        preferences={"data_type": "csv"},
    )
    assert d.describe() == {
        "exchanges": "AMEX,NYSE",
        "intraday_intervals": "1m,1h",
        "daily_supported": "true",
        "data_type": "csv",
    }
