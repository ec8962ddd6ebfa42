# src/quantam_proxy/adapters/repositories/base_repository.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""
BaseRepository: shared mechanics for SQLAlchemy repositories.

Purpose:
      * One session per unit of work, committed on success.
      * Deterministic latest-first ordering.
      * UTC timestamp helpers (SQLite returns naive datetimes).

Layer: adapters / repositories

Notes:
    * No business logic, no domain decisions.
    * Each public repository call is its own transaction; the ledger's
      audit guarantees must not depend on a caller-owned session.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import Select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


class BaseRepository:
    """Base class for session-factory backed repositories."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Initialize the repository.

        Args:
            session_factory: Async session factory bound to the target database.
        """
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        """Yield a session inside a transaction that commits on success."""
        async with self._session_factory() as session, session.begin():
            yield session

    @staticmethod
    def utc_now() -> datetime:
        """Return current UTC time with timezone info."""
        return datetime.now(UTC)

    @staticmethod
    def as_utc(value: datetime | None) -> datetime | None:
        """Attach UTC to naive datetimes read back from the database."""
        if value is None or value.tzinfo is not None:
            return value
        return value.replace(tzinfo=UTC)

    @staticmethod
    def order_by_latest(stmt: Select[Any], timestamp_col: Any, pk_col: Any) -> Select[Any]:
        """Apply deterministic latest-first ordering.

        The resulting query orders by:

            timestamp DESC, pk DESC
        """
        return stmt.order_by(timestamp_col.desc(), pk_col.desc())
