# Copyright (c) Quantam.
# SPDX-License-Identifier: MIT
"""Async SQLAlchemy engine/session factory.

This module owns the process-global async SQLAlchemy engine and
`async_sessionmaker` used by the job ledger and bar store repositories.

Lifecycle:
    * Call `init_engine_and_sessionmaker(settings)` at startup.
    * Repositories receive the session factory it returns and open one
      session per unit of work.
    * Call `dispose_engine()` during shutdown.

Notes:
    * No business logic here; repositories consume the session factory.
    * `pool_pre_ping=True` helps surface dead connections before use.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from quantam_proxy.config.settings import Settings
from quantam_proxy.infrastructure.database.models import job_log as _job_log  # noqa: F401
from quantam_proxy.infrastructure.database.models import md as _md  # noqa: F401
from quantam_proxy.infrastructure.database.models.base import metadata

_engine: AsyncEngine | None = None
_sessionmaker: async_sessionmaker[AsyncSession] | None = None


def init_engine_and_sessionmaker(settings: Settings) -> async_sessionmaker[AsyncSession]:
    """Initialize the global async engine and sessionmaker (idempotent).

    Args:
        settings: Process settings providing `database_url`.

    Returns:
        The global session factory.

    Raises:
        ValueError: If `database_url` is empty.
    """
    global _engine, _sessionmaker

    if not settings.database_url:
        raise ValueError("database_url must be configured")
    if _engine is not None and _sessionmaker is not None:
        return _sessionmaker

    _engine = create_async_engine(
        url=settings.database_url,
        pool_pre_ping=True,
        echo=False,
    )
    _sessionmaker = async_sessionmaker(bind=_engine, expire_on_commit=False, class_=AsyncSession)
    return _sessionmaker


def get_engine() -> AsyncEngine:
    """Return the initialized engine.

    Raises:
        RuntimeError: If the engine is not yet initialized.
    """
    if _engine is None:
        raise RuntimeError("DB engine not initialized (call init_engine_and_sessionmaker)")
    return _engine


async def create_all(engine: AsyncEngine | None = None) -> None:
    """Create all proxy tables that do not exist yet.

    Intended for development and tests; production schemas are managed by
    Alembic migrations.
    """
    target = engine or get_engine()
    async with target.begin() as conn:
        await conn.run_sync(metadata.create_all)


async def dispose_engine() -> None:
    """Dispose the global engine at shutdown."""
    global _engine, _sessionmaker
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _sessionmaker = None
