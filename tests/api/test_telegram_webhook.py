"""Telegram webhook endpoint."""

from __future__ import annotations

from httpx import AsyncClient

from pinode.config import get_settings
from pinode.users.service import get_user_by_telegram_id

START = {
    "update_id": 1,
    "message": {
        "message_id": 1,
        "from": {"id": 6001, "is_bot": False, "first_name": "Dana", "username": "dana"},
        "chat": {"id": 6001, "type": "private"},
        "date": 0,
        "text": "/start",
    },
}


class TestWebhook:
    async def test_start_provisions_and_replies(self, client: AsyncClient, db_session, mock_notifier):
        response = await client.post("/api/v1/telegram/webhook", json=START)

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert await get_user_by_telegram_id(db_session, 6001) is not None
        assert mock_notifier.send.await_args.args[0] == 6001

    async def test_unparseable_update_is_acknowledged(self, client: AsyncClient, mock_notifier):
        response = await client.post("/api/v1/telegram/webhook", json={"hello": "world"})
        assert response.json() == {"ok": True}
        mock_notifier.send.assert_not_awaited()

    async def test_secret_enforced(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr(get_settings(), "telegram_webhook_secret", "s3cret")

        denied = await client.post("/api/v1/telegram/webhook", json=START)
        assert denied.status_code == 401

        allowed = await client.post(
            "/api/v1/telegram/webhook",
            json=START,
            headers={"X-Telegram-Bot-Api-Secret-Token": "s3cret"},
        )
        assert allowed.status_code == 200

    async def test_info(self, client: AsyncClient):
        response = await client.get("/api/v1/telegram/webhook")
        assert response.json()["bot"] == "@pinodelabsbot"
