# tests/unit/infrastructure/test_session.py
from __future__ import annotations

from pathlib import Path

import pytest

from quantam_proxy.config.settings import Settings
from quantam_proxy.infrastructure.database import session


def _settings(url: str | None) -> Settings:
    return Settings(_env_file=None, DATABASE_URL=url)  # type: ignore[call-arg]


def test_factory_is_handed_out_by_init_only() -> None:
    assert not hasattr(session, "get_sessionmaker")


def test_init_requires_database_url() -> None:
    with pytest.raises(ValueError, match="database_url"):
        session.init_engine_and_sessionmaker(_settings(None))


@pytest.mark.anyio
async def test_init_is_idempotent_and_dispose_resets(tmp_path: Path) -> None:
    settings = _settings(f"sqlite+aiosqlite:///{tmp_path / 'proxy.db'}")
    factory = session.init_engine_and_sessionmaker(settings)
    try:
        assert session.init_engine_and_sessionmaker(settings) is factory
        await session.create_all()
        async with factory() as s:
            assert s.bind is session.get_engine()
    finally:
        await session.dispose_engine()

    with pytest.raises(RuntimeError):
        session.get_engine()
