# src/quantam_proxy/adapters/repositories/job_ledger_repository.py
# Copyright (c) Quantam.
# SPDX-License-Identifier: MIT
"""SQLAlchemy job ledger.

Row-level serialization uses conditional UPDATEs: a transition only applies
while the row is still in an allowed source state, so two concurrent
finalizations of one job cannot both succeed regardless of backend. When an
UPDATE matches nothing, the row is re-read to report whether it is missing
or already terminal.
"""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from quantam_proxy.adapters.repositories.base_repository import BaseRepository
from quantam_proxy.domain.entities.job_log import STATUS_IN_FLIGHT, JobLogEntry, JobState
from quantam_proxy.domain.exceptions.proxy import LedgerInconsistency
from quantam_proxy.infrastructure.database.models.job_log import ProxyJobLog


class SqlAlchemyJobLedger(BaseRepository):
    """Job ledger stored in ``proxy_job_logs``."""

    async def create(self, provider_name: str, url: str = "") -> int:
        """Append a Created row and return its id."""
        row = ProxyJobLog(provider_name=provider_name, url=url, created_at=self.utc_now())
        async with self._transaction() as session:
            session.add(row)
            await session.flush()
            return int(row.id)

    async def mark_in_flight(self, job_id: int) -> JobLogEntry:
        """Move a Created row to InFlight."""
        stmt = (
            update(ProxyJobLog)
            .where(ProxyJobLog.id == job_id, ProxyJobLog.status_code.is_(None))
            .values(status_code=STATUS_IN_FLIGHT)
            .execution_options(synchronize_session=False)
        )
        async with self._transaction() as session:
            res = await session.execute(stmt)
            if res.rowcount == 0:
                await self._raise_for(session, job_id, "mark in flight")
        return await self.find(job_id)

    async def finalize(
        self,
        job_id: int,
        provider_name: str,
        url: str,
        status_code: int,
        message: str,
    ) -> JobLogEntry:
        """Record the terminal outcome of a job exactly once."""
        if not JobState.from_status_code(status_code).is_terminal:
            raise ValueError(f"status_code {status_code} is not terminal")

        stmt = (
            update(ProxyJobLog)
            .where(
                ProxyJobLog.id == job_id,
                or_(
                    ProxyJobLog.status_code.is_(None),
                    ProxyJobLog.status_code == STATUS_IN_FLIGHT,
                ),
            )
            .values(
                provider_name=provider_name,
                url=url,
                status_code=status_code,
                message=message,
                finished_at=self.utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        async with self._transaction() as session:
            res = await session.execute(stmt)
            if res.rowcount == 0:
                await self._raise_for(session, job_id, "finalize")
        return await self.find(job_id)

    async def find(self, job_id: int) -> JobLogEntry:
        """Return a row by id or raise ``LedgerInconsistency``."""
        async with self._session_factory() as session:
            row = await session.get(ProxyJobLog, job_id)
            if row is None:
                raise LedgerInconsistency(
                    f"Job {job_id} not found in ledger", details={"job_id": job_id}
                )
            return self._to_entry(row)

    async def recent_for(self, provider_name: str, window: int) -> Sequence[JobLogEntry]:
        """Return at most ``window`` rows for a provider, newest first."""
        if window < 1:
            return []
        stmt = self.order_by_latest(
            select(ProxyJobLog).where(ProxyJobLog.provider_name == provider_name),
            ProxyJobLog.created_at,
            ProxyJobLog.id,
        ).limit(window)
        async with self._session_factory() as session:
            res = await session.execute(stmt)
            return [self._to_entry(row) for row in res.scalars().all()]

    async def _raise_for(self, session: AsyncSession, job_id: int, action: str) -> None:
        row = await session.get(ProxyJobLog, job_id)
        if row is None:
            raise LedgerInconsistency(
                f"Job {job_id} not found in ledger", details={"job_id": job_id}
            )
        state = JobState.from_status_code(row.status_code)
        raise LedgerInconsistency(
            f"Cannot {action} job {job_id} in state {state.value}",
            details={"job_id": job_id, "state": state.value},
        )

    def _to_entry(self, row: ProxyJobLog) -> JobLogEntry:
        return JobLogEntry(
            id=int(row.id),
            provider_name=row.provider_name,
            url=row.url or "",
            status_code=row.status_code,
            message=row.message,
            created_at=self.as_utc(row.created_at) or row.created_at,
            finished_at=self.as_utc(row.finished_at),
        )
