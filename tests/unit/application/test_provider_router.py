# tests/unit/application/test_provider_router.py
from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import pytest

from quantam_proxy.adapters.repositories.in_memory import InMemoryJobLedger
from quantam_proxy.application.services.provider_adapter import ProviderAdapter
from quantam_proxy.application.services.provider_router import ProviderRouter
from quantam_proxy.domain.entities.job_log import JobState
from quantam_proxy.domain.entities.retrieval import RetrievalJobRequest
from quantam_proxy.domain.enums.provider_status import ProviderStatus
from quantam_proxy.domain.exceptions.market_data import MarketDataRateLimited
from quantam_proxy.domain.exceptions.proxy import (
    ClientError,
    InvalidRequest,
    LedgerInconsistency,
    ProviderError,
    UnknownProvider,
    UnsupportedRequest,
)


def _req(exchange: str = "NYSE", interval: str = "1d", job_id: int | None = None) -> Any:
    return RetrievalJobRequest(
        symbol="IBM", exchange=exchange, interval=interval, job_id=job_id  # type: ignore[arg-type]
    )


@pytest.fixture
def router(
    ledger: InMemoryJobLedger,
    make_adapter: Callable[..., ProviderAdapter],
    fake_source_cls: Any,
) -> ProviderRouter:
    return ProviderRouter(
        ledger,
        [
            make_adapter(fake_source_cls("Alpha", exchanges=("NYSE",), intraday=("1h",))),
            make_adapter(fake_source_cls("Beta", exchanges=("NYSE", "LSE"), intraday=())),
        ],
    )


@pytest.mark.anyio
async def test_dispatch_success_returns_ledger_view(router: ProviderRouter) -> None:
    result = await router.dispatch("Alpha", _req())

    assert result.state is JobState.SUCCEEDED
    assert result.provider_name == "Alpha"
    assert result.status_code == 200
    assert result.message == "DataSize=1"
    assert result.finished_at is not None


@pytest.mark.anyio
async def test_unknown_provider_writes_nothing(
    router: ProviderRouter, ledger: InMemoryJobLedger
) -> None:
    with pytest.raises(UnknownProvider, match="Unknown provider='Gamma'"):
        await router.dispatch("Gamma", _req())
    assert len(ledger) == 0


@pytest.mark.anyio
async def test_client_failure_carries_ledger_result(router: ProviderRouter) -> None:
    with pytest.raises(ClientError) as info:
        await router.dispatch("Alpha", _req(exchange="LSE"))

    result = info.value.result
    assert result is not None
    assert result.state is JobState.CLIENT_FAILED
    assert result.status_code == 400
    assert result.url == ""


@pytest.mark.anyio
async def test_provider_failure_carries_ledger_result(
    ledger: InMemoryJobLedger,
    make_adapter: Callable[..., ProviderAdapter],
    fake_source_cls: Any,
) -> None:
    router = ProviderRouter(
        ledger, [make_adapter(fake_source_cls("Alpha", error=MarketDataRateLimited("rate_limited")))]
    )
    with pytest.raises(ProviderError) as info:
        await router.dispatch("Alpha", _req())

    assert info.value.result is not None
    assert info.value.result.state is JobState.PROVIDER_FAILED
    assert info.value.result.message == "MARKET_DATA_RATE_LIMITED: rate_limited"


@pytest.mark.anyio
async def test_dispatch_reuses_precreated_job(
    router: ProviderRouter, ledger: InMemoryJobLedger
) -> None:
    job_id = await ledger.create("Alpha")

    result = await router.dispatch("Alpha", _req(job_id=job_id))

    assert result.job_id == job_id
    assert len(ledger) == 1


@pytest.mark.anyio
async def test_dispatch_rejects_terminal_or_missing_job(
    router: ProviderRouter, ledger: InMemoryJobLedger
) -> None:
    done = await router.dispatch("Alpha", _req())

    with pytest.raises(LedgerInconsistency):
        await router.dispatch("Alpha", _req(job_id=done.job_id))
    with pytest.raises(LedgerInconsistency):
        await router.dispatch("Alpha", _req(job_id=12345))
    assert (await ledger.find(done.job_id)).state is JobState.SUCCEEDED


@pytest.mark.anyio
async def test_concurrent_dispatches_get_distinct_terminal_rows(
    router: ProviderRouter, ledger: InMemoryJobLedger
) -> None:
    results = await asyncio.gather(*(router.dispatch("Alpha", _req()) for _ in range(20)))

    assert len({r.job_id for r in results}) == 20
    for r in results:
        assert (await ledger.find(r.job_id)).is_terminal


@pytest.mark.anyio
async def test_stats_reflect_dispatch_history(router: ProviderRouter) -> None:
    for _ in range(3):
        await router.dispatch("Alpha", _req())
    with pytest.raises(ClientError):
        await router.dispatch("Alpha", _req(interval="5m"))

    stats = await router.get_stats("Alpha")
    assert stats.hit_rate == 0.75
    assert stats.status is ProviderStatus.CLOUDY
    assert (await router.get_stats("Beta")).status is ProviderStatus.UNKNOWN


def test_admissible_providers(router: ProviderRouter) -> None:
    assert router.admissible_providers(_req(interval="1h")) == ["Alpha"]
    assert router.admissible_providers(_req(exchange="LSE")) == ["Beta"]
    assert router.admissible_providers(_req()) == ["Alpha", "Beta"]


def test_register_rejects_duplicates(
    router: ProviderRouter,
    make_adapter: Callable[..., ProviderAdapter],
    fake_source_cls: Any,
) -> None:
    with pytest.raises(ValueError):
        router.register(make_adapter(fake_source_cls("Alpha")))
    assert router.providers == ["Alpha", "Beta"]


@pytest.mark.anyio
async def test_submit_unknown_interval_label_finalizes_precreated_row(
    router: ProviderRouter, ledger: InMemoryJobLedger
) -> None:
    job_id = await ledger.create("Alpha")

    with pytest.raises(UnsupportedRequest, match="Invalid interval='1w'") as info:
        await router.submit("Alpha", symbol="AAPL", exchange="NYSE", interval="1w", job_id=job_id)

    row = await ledger.find(job_id)
    assert row.state is JobState.CLIENT_FAILED
    assert row.status_code == 400
    assert row.url == ""
    assert info.value.result is not None
    assert info.value.result.job_id == job_id


@pytest.mark.anyio
async def test_submit_unknown_interval_label_records_new_row(
    router: ProviderRouter, ledger: InMemoryJobLedger
) -> None:
    with pytest.raises(ClientError):
        await router.submit("Alpha", symbol="AAPL", exchange="NYSE", interval="4h")

    [row] = await ledger.recent_for("Alpha", 10)
    assert row.state is JobState.CLIENT_FAILED
    assert row.message is not None and row.message.startswith("UNSUPPORTED_REQUEST")


@pytest.mark.anyio
async def test_submit_empty_symbol_is_invalid_request(
    router: ProviderRouter, ledger: InMemoryJobLedger
) -> None:
    with pytest.raises(InvalidRequest) as info:
        await router.submit("Beta", symbol=" ", exchange="LSE", interval="1d")

    assert info.value.result is not None
    assert info.value.result.state is JobState.CLIENT_FAILED
    assert len(ledger) == 1


@pytest.mark.anyio
async def test_submit_unknown_provider_records_nothing(
    router: ProviderRouter, ledger: InMemoryJobLedger
) -> None:
    with pytest.raises(UnknownProvider):
        await router.submit("Gamma", symbol="IBM", exchange="NYSE", interval="1w")
    assert len(ledger) == 0


@pytest.mark.anyio
async def test_submit_valid_labels_dispatches(router: ProviderRouter) -> None:
    result = await router.submit("Alpha", symbol="ibm", exchange="nyse", interval="60min")
    assert result.state is JobState.SUCCEEDED
