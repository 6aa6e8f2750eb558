"""
Best-effort notification dispatch.

Notifications run as detached asyncio tasks so the request that triggered
them returns without waiting. The dispatcher keeps a reference to every
pending task until it finishes and logs failures; nothing is retried and a
failure never reaches the caller.
"""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

from courseapp.core.errors import NotificationError

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Schedules fire-and-forget notification coroutines."""

    def __init__(self):
        self._pending: set[asyncio.Task] = set()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def dispatch(self, coro: Coroutine[Any, Any, Any], description: str) -> asyncio.Task:
        """
        Run ``coro`` in the background.

        Args:
            coro: The notification coroutine
            description: Short label used in log lines
        """
        task = asyncio.create_task(coro, name=f"notification:{description}")
        self._pending.add(task)
        task.add_done_callback(lambda t: self._on_done(t, description))
        return task

    def _on_done(self, task: asyncio.Task, description: str) -> None:
        self._pending.discard(task)

        if task.cancelled():
            logger.warning(f"Notification cancelled: {description}")
            return

        exc = task.exception()
        if exc is None:
            logger.debug(f"Notification delivered: {description}")
        elif isinstance(exc, NotificationError):
            logger.error(f"Notification failed ({description}): {exc.message}")
        else:
            logger.error(f"Notification failed ({description}): {exc}", exc_info=exc)

    async def drain(self, timeout: float = 10.0) -> None:
        """Wait for pending notifications, cancelling any still running after ``timeout``."""
        if not self._pending:
            return

        logger.info(f"Waiting for {len(self._pending)} pending notifications...")
        _done, pending = await asyncio.wait(set(self._pending), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning(f"Cancelled {len(pending)} notifications still pending at shutdown")


dispatcher = NotificationDispatcher()


def get_dispatcher() -> NotificationDispatcher:
    return dispatcher
