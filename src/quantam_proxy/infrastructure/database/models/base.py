"""Declarative Base for Quantam Proxy ORM models.

This module defines a project-wide SQLAlchemy Declarative Base with
deterministic naming conventions (for stable Alembic diffs). Models are
persistence-only; no domain behavior lives here.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

__all__ = ["metadata", "Base", "now_utc"]

#: Deterministic naming conventions for Alembic-friendly diffs.
#: Ref: https://alembic.sqlalchemy.org/en/latest/naming.html
NAMING_CONVENTIONS: dict[str, str] = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=NAMING_CONVENTIONS)


class Base(DeclarativeBase):
    """Declarative Base for all ORM models."""

    metadata = metadata


def now_utc() -> datetime:
    """Return the current UTC time with timezone info."""
    return datetime.now(UTC)
