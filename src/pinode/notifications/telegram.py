"""
Outbound chat delivery.

``BaseNotifier`` is the delivery contract; ``TelegramNotifier`` implements it
over the Bot API ``sendMessage`` method. Delivery failures are logged and
reported as ``False``, never raised.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import httpx
import structlog

from pinode.config import get_settings

logger = structlog.get_logger()


class BaseNotifier(ABC):
    """Abstract base class for chat delivery providers."""

    @abstractmethod
    async def send(
        self,
        chat_id: int | str,
        text: str,
        reply_markup: dict[str, Any] | None = None,
        parse_mode: str = "HTML",
    ) -> bool:
        """Send a message. Returns True on success."""
        ...


class TelegramNotifier(BaseNotifier):
    """Send messages via the Telegram Bot API."""

    def __init__(self, bot_token: str, api_base: str = "https://api.telegram.org", timeout: float = 10.0) -> None:
        self.bot_token = bot_token
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout

    @property
    def send_url(self) -> str:
        return f"{self.api_base}/bot{self.bot_token}/sendMessage"

    async def send(
        self,
        chat_id: int | str,
        text: str,
        reply_markup: dict[str, Any] | None = None,
        parse_mode: str = "HTML",
    ) -> bool:
        if not self.bot_token:
            logger.warning("telegram_not_configured", chat_id=str(chat_id))
            return False

        payload: dict[str, Any] = {"chat_id": chat_id, "text": text, "parse_mode": parse_mode}
        if reply_markup is not None:
            payload["reply_markup"] = reply_markup

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.send_url, json=payload)
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "telegram_send_failed",
                chat_id=str(chat_id),
                status=exc.response.status_code,
                body=exc.response.text[:500],
            )
            return False
        except httpx.HTTPError:
            logger.exception("telegram_send_failed", chat_id=str(chat_id))
            return False

        logger.info("telegram_sent", chat_id=str(chat_id))
        return True


class NullNotifier(BaseNotifier):
    """Drops every message. Used when notifications are disabled."""

    async def send(
        self,
        chat_id: int | str,
        text: str,
        reply_markup: dict[str, Any] | None = None,
        parse_mode: str = "HTML",
    ) -> bool:
        logger.debug("notification_dropped", chat_id=str(chat_id))
        return False


def create_notifier() -> BaseNotifier:
    """Create the notifier based on configuration."""
    settings = get_settings()
    if not settings.notifications_enabled:
        return NullNotifier()
    return TelegramNotifier(settings.telegram_bot_token, settings.telegram_api_base)
