"""Notification dispatch is fire-and-forget; failures never reach the caller."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from pinode.notifications import templates
from pinode.notifications.dispatcher import NotificationDispatcher
from pinode.notifications.telegram import BaseNotifier, NullNotifier, TelegramNotifier


@pytest.fixture
def notifier() -> AsyncMock:
    n = AsyncMock(spec=BaseNotifier)
    n.send.return_value = True
    return n


class TestDispatcher:
    async def test_dispatch_sends_in_background(self, notifier):
        d = NotificationDispatcher(notifier)
        d.dispatch(123, "hello")
        assert d.pending == 1
        await d.drain()
        notifier.send.assert_awaited_once_with(123, "hello", reply_markup=None)
        assert d.pending == 0

    async def test_no_chat_is_skipped(self, notifier):
        d = NotificationDispatcher(notifier)
        d.dispatch(None, "hello")
        await d.drain()
        notifier.send.assert_not_awaited()

    async def test_failure_is_swallowed(self, notifier):
        notifier.send.side_effect = RuntimeError("telegram down")
        d = NotificationDispatcher(notifier)
        d.dispatch(1, "a")
        d.dispatch(2, "b")
        await d.drain()
        assert notifier.send.await_count == 2

    async def test_undelivered_is_logged_not_raised(self, notifier):
        notifier.send.return_value = False
        d = NotificationDispatcher(notifier)
        assert await d._deliver(1, "a", None) is False


class TestTelegramNotifier:
    async def test_posts_send_message(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/botTOKEN/sendMessage"
            return httpx.Response(200, json={"ok": True})

        transport = httpx.MockTransport(handler)
        real_client = httpx.AsyncClient

        with patch("pinode.notifications.telegram.httpx.AsyncClient",
                   lambda **kw: real_client(transport=transport, **kw)):
            sent = await TelegramNotifier("TOKEN", "https://api.example").send(1, "hi")
        assert sent is True

    async def test_http_error_returns_false(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(400, json={"ok": False}))
        real_client = httpx.AsyncClient

        with patch("pinode.notifications.telegram.httpx.AsyncClient",
                   lambda **kw: real_client(transport=transport, **kw)):
            sent = await TelegramNotifier("TOKEN", "https://api.example").send(1, "hi")
        assert sent is False

    async def test_unconfigured_token(self):
        assert await TelegramNotifier("").send(1, "hi") is False

    async def test_null_notifier(self):
        assert await NullNotifier().send(1, "hi") is False


class TestTemplates:
    def test_referral_bonus_shows_pi_equivalent(self):
        assert templates.referral_bonus(200) == "\U0001f381 Referral Bonus: +200 PiNode (≈ 10.00 PI)"

    def test_withdrawal_rejected_mentions_amount(self):
        assert "120.0000 PI" in templates.withdrawal_rejected(120, "PI")
