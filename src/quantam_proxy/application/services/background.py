# src/quantam_proxy/application/services/background.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Fire-and-forget task registry.

Background work (bar persistence) must not block the caller, yet its tasks
must stay referenced until done and its failures must land somewhere. The
registry keeps strong references, routes every failure to an error callback
that logs and drops it, and lets the process drain outstanding work at
shutdown.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from typing import Any

from quantam_proxy.infrastructure.logging.logger import get_json_logger

logger = get_json_logger(__name__)

ErrorHandler = Callable[[str, BaseException], None]


def _log_error(name: str, exc: BaseException) -> None:
    logger.warning(
        "background_task_failed",
        exc_info=(type(exc), exc, exc.__traceback__),
        extra={"extra": {"task": name}},
    )


class BackgroundTasks:
    """Tracks spawned tasks until completion."""

    def __init__(self, on_error: ErrorHandler | None = None) -> None:
        """Initialize the registry.

        Args:
            on_error: Called with ``(task_name, exception)`` for every failed
                task. Defaults to a warning log.
        """
        self._pending: set[asyncio.Task[Any]] = set()
        self._on_error = on_error or _log_error

    def __len__(self) -> int:
        return len(self._pending)

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task[Any]:
        """Schedule ``coro`` without awaiting it.

        Args:
            coro: Coroutine to run.
            name: Task name used in logs.

        Returns:
            The scheduled task.
        """
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._pending.add(task)
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: asyncio.Task[Any]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            try:
                self._on_error(task.get_name(), exc)
            except Exception:  # noqa: BLE001
                logger.exception("background_error_handler_failed")

    async def drain(self, timeout_s: float | None = None) -> None:
        """Wait for every pending task to finish.

        Args:
            timeout_s: Optional upper bound; tasks still running afterwards
                are cancelled.
        """
        if not self._pending:
            return
        pending = set(self._pending)
        _, still_running = await asyncio.wait(pending, timeout=timeout_s)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
