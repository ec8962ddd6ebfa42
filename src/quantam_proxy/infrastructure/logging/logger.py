# src/quantam_proxy/infrastructure/logging/logger.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Structured JSON logging utilities.

This module exposes an idempotent root configurator and a per-module logger
factory that produce JSON logs suitable for ingestion by log pipelines.

Features:
    * Stable keys: ``ts``, ``level``, ``logger``, ``message``.
    * Automatic enrichment with ``job_id`` and ``provider`` via contextvars,
      so every line emitted while a retrieval job runs is correlated.
    * Merges an ``extra={"extra": {...}}`` dict into the payload.

Typical usage:
    configure_root_logging()
    log = get_json_logger(__name__)
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

__all__ = [
    "bind_job_context",
    "configure_root_logging",
    "get_json_logger",
    "get_job_id",
    "get_provider",
]

# Per-job correlation context (task-local via contextvars).
_JOB_ID_CTX: ContextVar[int | None] = ContextVar("quantam_job_id", default=None)
_PROVIDER_CTX: ContextVar[str | None] = ContextVar("quantam_provider", default=None)


@contextmanager
def bind_job_context(*, job_id: int | None = None, provider: str | None = None) -> Iterator[None]:
    """Bind job correlation identifiers for the duration of a block.

    Args:
        job_id: Ledger job identifier, if known.
        provider: Provider name, if known.

    Notes:
        Values passed as ``None`` leave the current binding unchanged. The
        previous values are restored on exit, including on error.
    """
    job_token = _JOB_ID_CTX.set(job_id) if job_id is not None else None
    provider_token = _PROVIDER_CTX.set(provider) if provider is not None else None
    try:
        yield
    finally:
        if provider_token is not None:
            _PROVIDER_CTX.reset(provider_token)
        if job_token is not None:
            _JOB_ID_CTX.reset(job_token)


def get_job_id() -> int | None:
    """Return the current job id from contextvars, if any."""
    return _JOB_ID_CTX.get(None)


def get_provider() -> str | None:
    """Return the current provider name from contextvars, if any."""
    return _PROVIDER_CTX.get(None)


class _JsonFormatter(logging.Formatter):
    """JSON log formatter emitting stable keys and optional extras."""

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as a JSON object.

        Args:
            record: Logging record.

        Returns:
            JSON-encoded log line.
        """
        ts = datetime.now(tz=UTC).isoformat()
        payload: dict[str, Any] = {
            "ts": ts,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Record attribute wins over the contextvar.
        job_id = getattr(record, "job_id", None)
        if job_id is None:
            job_id = _JOB_ID_CTX.get(None)
        if job_id is not None:
            payload["job_id"] = job_id

        provider = getattr(record, "provider", None) or _PROVIDER_CTX.get(None)
        if provider:
            payload["provider"] = provider

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            if exc_type is not None:
                payload["exc_type"] = exc_type.__name__
            if exc_value is not None:
                payload["exc_message"] = str(exc_value)

        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            payload.update(extra)

        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str)


def configure_root_logging(level: str | int | None = None) -> None:
    """Initialize the root logger with a JSON stream handler (idempotent).

    Args:
        level: Logging level or level name. If ``None``, use env ``LOG_LEVEL`` or ``INFO``.
    """
    root = logging.getLogger()

    env_level = os.getenv("LOG_LEVEL")
    resolved: int | str = (
        level if level is not None else (env_level.upper() if env_level else "INFO")
    )
    if isinstance(resolved, str):
        resolved = resolved.upper()
    root.setLevel(resolved)

    if any(isinstance(h.formatter, _JsonFormatter) for h in root.handlers):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(_JsonFormatter())
    root.addHandler(handler)


def get_json_logger(name: str) -> logging.Logger:
    """Return a module-specific logger backed by the JSON root handler.

    This does *not* implicitly configure the root logger. Call
    :func:`configure_root_logging` once at startup for global defaults.

    Args:
        name: Logger name, typically ``__name__`` of the caller.

    Returns:
        Configured logger.
    """
    logger = logging.getLogger(name)
    logger.propagate = True
    return logger
