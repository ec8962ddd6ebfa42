# migrations/versions/20261019_0001_proxy_tables.py
"""Create the job ledger and market data bar tables."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# Revision identifiers, used by Alembic.
revision = "20261019_0001_proxy_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "proxy_job_logs",
        sa.Column(
            "id",
            sa.BigInteger().with_variant(sa.Integer(), "sqlite"),
            primary_key=True,
            autoincrement=True,
        ),
        sa.Column("provider_name", sa.String(length=64), nullable=False),
        sa.Column("url", sa.Text(), nullable=False, server_default=""),
        sa.Column("status_code", sa.Integer(), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_proxy_job_logs"),
    )
    op.create_index(
        "ix_proxy_job_logs_provider_created",
        "proxy_job_logs",
        ["provider_name", "created_at"],
    )

    op.create_table(
        "md_daily_bars",
        sa.Column("symbol", sa.String(length=32), nullable=False),
        sa.Column("exchange", sa.String(length=16), nullable=False),
        sa.Column("d", sa.Date(), nullable=False),
        sa.Column("open", sa.Numeric(20, 8), nullable=False),
        sa.Column("high", sa.Numeric(20, 8), nullable=False),
        sa.Column("low", sa.Numeric(20, 8), nullable=False),
        sa.Column("close", sa.Numeric(20, 8), nullable=False),
        sa.Column("volume", sa.Numeric(38, 0), nullable=True),
        sa.PrimaryKeyConstraint("symbol", "exchange", "d", name="pk_md_daily_bars"),
    )

    op.create_table(
        "md_intraday_bars",
        sa.Column("symbol", sa.String(length=32), nullable=False),
        sa.Column("exchange", sa.String(length=16), nullable=False),
        sa.Column("interval", sa.String(length=8), nullable=False),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        sa.Column("open", sa.Numeric(20, 8), nullable=False),
        sa.Column("high", sa.Numeric(20, 8), nullable=False),
        sa.Column("low", sa.Numeric(20, 8), nullable=False),
        sa.Column("close", sa.Numeric(20, 8), nullable=False),
        sa.Column("volume", sa.Numeric(38, 0), nullable=True),
        sa.PrimaryKeyConstraint(
            "symbol", "exchange", "interval", "ts", name="pk_md_intraday_bars"
        ),
    )


def downgrade() -> None:
    op.drop_table("md_intraday_bars")
    op.drop_table("md_daily_bars")
    op.drop_index("ix_proxy_job_logs_provider_created", table_name="proxy_job_logs")
    op.drop_table("proxy_job_logs")
