"""Telegram webhook endpoint."""

from __future__ import annotations

import hmac

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import Request

from pinode.bot.commands import BotCommandInterpreter
from pinode.bot.schemas import Update
from pinode.config import get_settings
from pinode.database import get_session
from pinode.notifications.dispatcher import NotificationDispatcher, get_dispatcher

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/telegram", tags=["Telegram"])


def _check_secret(received: str | None) -> None:
    expected = get_settings().telegram_webhook_secret
    if expected and not hmac.compare_digest(received or "", expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook secret")


@router.post("/webhook")
async def webhook(
    request: Request,
    x_telegram_bot_api_secret_token: str | None = Header(default=None),
    db: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> dict[str, bool]:
    """Receive a bot update. Answers ``{"ok": true}`` so Telegram does not redeliver."""
    _check_secret(x_telegram_bot_api_secret_token)

    try:
        update = Update.model_validate(await request.json())
    except (ValueError, ValidationError):
        logger.warning("telegram_update_unparseable")
        return {"ok": True}

    interpreter = BotCommandInterpreter(db, dispatcher.notifier, dispatcher)
    await interpreter.handle(update)
    return {"ok": True}


@router.get("/webhook")
async def webhook_info() -> dict[str, str]:
    return {"message": "Telegram webhook endpoint", "bot": f"@{get_settings().telegram_bot_username}"}
