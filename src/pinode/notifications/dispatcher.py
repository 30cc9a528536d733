"""Fire-and-forget notification dispatch.

Services call ``dispatch`` only after their unit of work has committed. The
send runs as a separate asyncio task; its outcome never reaches the caller,
and any failure is logged and dropped.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from pinode.notifications.telegram import BaseNotifier, create_notifier

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Schedules best-effort deliveries through a notifier."""

    def __init__(self, notifier: BaseNotifier | None = None) -> None:
        self.notifier = notifier or create_notifier()
        self._tasks: set[asyncio.Task[bool]] = set()

    def dispatch(
        self,
        chat_id: int | str | None,
        text: str,
        reply_markup: dict[str, Any] | None = None,
    ) -> None:
        """Queue a message for ``chat_id``. Users without a linked chat are skipped."""
        if chat_id is None:
            return
        task = asyncio.create_task(self._deliver(chat_id, text, reply_markup))
        # Keep a strong reference until the task finishes.
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver(self, chat_id: int | str, text: str, reply_markup: dict[str, Any] | None) -> bool:
        try:
            delivered = await self.notifier.send(chat_id, text, reply_markup=reply_markup)
        except Exception:
            logger.warning("Notification to chat %s failed", chat_id, exc_info=True)
            return False
        if not delivered:
            logger.info("Notification to chat %s was not delivered", chat_id)
        return delivered

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for all queued deliveries (shutdown and tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


# Module-level singleton
_dispatcher: NotificationDispatcher | None = None


def get_dispatcher() -> NotificationDispatcher:
    """Get or create the dispatcher singleton (FastAPI dependency)."""
    global _dispatcher  # noqa: PLW0603
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher()
    return _dispatcher


def set_dispatcher(dispatcher: NotificationDispatcher | None) -> None:
    """Replace the dispatcher singleton (``None`` resets it)."""
    global _dispatcher  # noqa: PLW0603
    _dispatcher = dispatcher
