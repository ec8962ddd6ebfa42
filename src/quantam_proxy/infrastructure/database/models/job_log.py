# Copyright (c) Quantam.
# SPDX-License-Identifier: MIT
"""Job ledger ORM model.

One row per retrieval attempt. ``status_code`` encodes the job state
(NULL = created, 102 = in flight, 2xx/4xx/5xx = terminal).
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from quantam_proxy.infrastructure.database.models.base import Base, now_utc


class ProxyJobLog(Base):
    """Append/finalize audit row of a retrieval attempt."""

    __tablename__ = "proxy_job_logs"
    __table_args__ = (Index("ix_proxy_job_logs_provider_created", "provider_name", "created_at"),)

    # BigInteger on PostgreSQL; SQLite only autoincrements INTEGER primary keys.
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer(), "sqlite"), primary_key=True, autoincrement=True
    )
    provider_name: Mapped[str] = mapped_column(String(64), nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status_code: Mapped[int | None] = mapped_column(Integer, nullable=True)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now_utc
    )
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
