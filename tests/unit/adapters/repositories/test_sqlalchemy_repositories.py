# tests/unit/adapters/repositories/test_sqlalchemy_repositories.py
from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from quantam_proxy.adapters.repositories.bar_store_repository import SqlAlchemyBarStore
from quantam_proxy.adapters.repositories.job_ledger_repository import SqlAlchemyJobLedger
from quantam_proxy.domain.entities.job_log import JobState
from quantam_proxy.domain.entities.stock_bar import BarInterval, StockBar
from quantam_proxy.domain.exceptions.proxy import LedgerInconsistency
from quantam_proxy.infrastructure.database.models.md import DailyBar, IntradayBar
from quantam_proxy.infrastructure.database.session import create_all


@pytest.fixture
async def session_factory(tmp_path: Path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'proxy.db'}")
    await create_all(engine)
    try:
        yield async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    finally:
        await engine.dispose()


async def _count(factory: async_sessionmaker[AsyncSession], model: type) -> int:
    async with factory() as session:
        return int((await session.execute(select(func.count()).select_from(model))).scalar_one())


@pytest.mark.anyio
async def test_sql_ledger_lifecycle(session_factory: async_sessionmaker[AsyncSession]) -> None:
    ledger = SqlAlchemyJobLedger(session_factory)

    job_id = await ledger.create("AlphaVantage")
    created = await ledger.find(job_id)
    assert created.state is JobState.CREATED
    assert created.created_at.tzinfo is not None

    assert (await ledger.mark_in_flight(job_id)).status_code == 102

    done = await ledger.finalize(job_id, "AlphaVantage", "https://x?apikey=***", 200, "DataSize=5")
    assert done.state is JobState.SUCCEEDED
    assert done.message == "DataSize=5"
    assert done.finished_at is not None


@pytest.mark.anyio
async def test_sql_ledger_refuses_second_finalize(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    ledger = SqlAlchemyJobLedger(session_factory)
    job_id = await ledger.create("P")
    await ledger.finalize(job_id, "P", "", 500, "PROVIDER_ERROR: down")

    with pytest.raises(LedgerInconsistency, match="provider_failed"):
        await ledger.finalize(job_id, "P", "", 200, "DataSize=1")
    with pytest.raises(LedgerInconsistency, match="not found"):
        await ledger.mark_in_flight(job_id + 100)
    assert (await ledger.find(job_id)).status_code == 500


@pytest.mark.anyio
async def test_sql_ledger_recent_for(session_factory: async_sessionmaker[AsyncSession]) -> None:
    ledger = SqlAlchemyJobLedger(session_factory)
    ids = [await ledger.create("P") for _ in range(3)]
    await ledger.create("Q")

    recent = await ledger.recent_for("P", 2)

    assert [e.id for e in recent] == [ids[2], ids[1]]
    assert await ledger.recent_for("P", 0) == []


def _bars(
    interval: BarInterval, start: datetime, n: int, bar_factory: Callable[..., StockBar]
) -> list[StockBar]:
    step = timedelta(days=1) if interval.is_daily else timedelta(hours=1)
    return [bar_factory(start + i * step, interval=interval) for i in range(n)]


@pytest.mark.anyio
async def test_bar_store_inserts_and_ignores_existing_rows(
    session_factory: async_sessionmaker[AsyncSession],
    bar_factory: Callable[..., StockBar],
) -> None:
    store = SqlAlchemyBarStore(session_factory)
    start = datetime(2024, 1, 2, tzinfo=UTC)

    daily = _bars(BarInterval.I1D, start, 3, bar_factory)
    assert await store.save("IBM", "NYSE", BarInterval.I1D, daily) == 3
    assert await store.save("IBM", "NYSE", BarInterval.I1D, daily[1:] + _bars(
        BarInterval.I1D, start + timedelta(days=3), 1, bar_factory
    )) == 3
    assert await _count(session_factory, DailyBar) == 4

    hourly = _bars(BarInterval.I1H, start, 2, bar_factory)
    await store.save("IBM", "NYSE", BarInterval.I1H, hourly)
    await store.save("IBM", "NYSE", BarInterval.I1H, hourly)
    assert await _count(session_factory, IntradayBar) == 2


@pytest.mark.anyio
async def test_bar_store_empty_batch(session_factory: async_sessionmaker[AsyncSession]) -> None:
    assert await SqlAlchemyBarStore(session_factory).save("IBM", "NYSE", BarInterval.I1D, []) == 0
