"""Telegram bot command interpreter.

Turns inbound updates into reads and referral calls against the services,
and replies in the chat. A chat with no account gets one on ``/start``.
Handler failures are logged and answered with a generic error; nothing
propagates to the webhook.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from pinode.bot.schemas import CallbackQuery, Message, TelegramUser, Update
from pinode.config import get_settings
from pinode.db.models import User
from pinode.errors import LedgerError
from pinode.notifications.dispatcher import NotificationDispatcher
from pinode.notifications.telegram import BaseNotifier
from pinode.referrals.service import attribute_referral, compute_stats, notify_new_referral, referral_reward
from pinode.users.merge import merge_bot_account
from pinode.users.service import create_user, get_user_by_email, get_user_by_telegram_id, link_telegram
from pinode.wallet.service import pi_for

logger = logging.getLogger(__name__)

CALLBACK_REFERRAL_LINK = "get_referral_link"
CALLBACK_BALANCE = "get_balance"
CALLBACK_STATS = "get_stats"

NOT_LINKED = "❌ Account not linked. Please link your account first:\n\n/link your@email.com"
UNKNOWN_COMMAND = "❓ Unknown command. Use /help to see available commands."
PLAIN_TEXT_HINT = "\U0001f44b Hi! Use /help to see available commands.\n\nTo link your account, use: /link your@email.com"
GENERIC_ERROR = "❌ An error occurred. Please try again later."


def _base_url() -> str:
    return get_settings().app_base_url.rstrip("/")


def web_app_url(start_param: str) -> str:
    return f"{_base_url()}?tgWebAppStartParam={start_param}"


def _open_app_button(start_param: str) -> dict[str, Any]:
    return {"text": "\U0001f4f1 Open Web App", "web_app": {"url": web_app_url(start_param)}}


def main_keyboard(start_param: str, *, with_referral: bool = True) -> dict[str, Any]:
    rows: list[list[dict[str, Any]]] = [
        [_open_app_button(start_param)],
        [
            {"text": "\U0001f4ca My Stats", "callback_data": CALLBACK_STATS},
            {"text": "\U0001f4b0 Balance", "callback_data": CALLBACK_BALANCE},
        ],
    ]
    if with_referral:
        rows.append([{"text": "\U0001f381 Referral Link", "callback_data": CALLBACK_REFERRAL_LINK}])
    return {"inline_keyboard": rows}


def _pinode(amount: Decimal) -> str:
    return f"{int(Decimal(amount)):,}"


class BotCommandInterpreter:
    """Handles one update at a time against an open session.

    Replies go straight through ``notifier`` (the user is waiting on them);
    notifications to third parties, like a referrer, go through ``dispatcher``.
    """

    def __init__(
        self,
        db: AsyncSession,
        notifier: BaseNotifier,
        dispatcher: NotificationDispatcher | None = None,
    ) -> None:
        self.db = db
        self.notifier = notifier
        self.dispatcher = dispatcher
        self.settings = get_settings()

    async def reply(self, chat_id: int, text: str, reply_markup: dict[str, Any] | None = None) -> None:
        await self.notifier.send(chat_id, text, reply_markup=reply_markup)

    async def handle(self, update: Update) -> None:
        """Process an update. Never raises."""
        chat_id: int | None = None
        try:
            if update.message is not None:
                chat_id = update.message.chat.id
                await self.on_message(update.message)
            elif update.callback_query is not None:
                chat_id = update.callback_query.from_user.id
                await self.on_callback(update.callback_query)
        except Exception:
            logger.exception("Bot update %d failed", update.update_id)
            await self.db.rollback()
            if chat_id is not None:
                try:
                    await self.reply(chat_id, GENERIC_ERROR)
                except Exception:
                    logger.warning("Could not report failure to chat %s", chat_id, exc_info=True)

    async def on_message(self, message: Message) -> None:
        sender = message.from_user
        if sender is None or sender.is_bot:
            return

        chat_id = message.chat.id
        text = (message.text or "").strip()
        if not text.startswith("/"):
            await self.reply(chat_id, PLAIN_TEXT_HINT)
            return

        parts = text.split()
        # "/start@pinodelabsbot" in group chats
        command = parts[0].lower().split("@", 1)[0]
        args = parts[1:]
        logger.info("Bot command %s from chat %d", command, chat_id)

        if command == "/start":
            await self.cmd_start(chat_id, sender, args)
        elif command in ("/app", "/webapp"):
            await self.cmd_webapp(chat_id, sender, args)
        elif command == "/referral":
            await self.cmd_referral(chat_id)
        elif command == "/balance":
            await self.cmd_balance(chat_id)
        elif command == "/stats":
            await self.cmd_stats(chat_id)
        elif command == "/help":
            await self.cmd_help(chat_id, sender)
        elif command == "/link":
            await self.cmd_link(chat_id, sender, args)
        else:
            await self.reply(chat_id, UNKNOWN_COMMAND)

    async def on_callback(self, callback: CallbackQuery) -> None:
        if callback.from_user.is_bot:
            return
        chat_id = callback.from_user.id
        if callback.data == CALLBACK_REFERRAL_LINK:
            await self.cmd_referral(chat_id)
        elif callback.data == CALLBACK_BALANCE:
            await self.cmd_balance(chat_id)
        elif callback.data == CALLBACK_STATS:
            await self.cmd_stats(chat_id)
        else:
            logger.debug("Ignoring callback data %r", callback.data)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def _provision(self, chat_id: int, sender: TelegramUser, code: str | None) -> User:
        """Create an account for a new chat, attributing ``code`` if it is known. Commits."""
        try:
            user = await create_user(
                self.db,
                username=sender.username or sender.first_name or None,
                telegram_id=chat_id,
                telegram_username=sender.username,
            )
            attributed = await attribute_referral(self.db, code, user) if code else None
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info("Bot account provisioned: user=%d chat=%d", user.id, chat_id)
        if attributed is not None and self.dispatcher is not None:
            referrer, _referral = attributed
            await notify_new_referral(self.db, self.dispatcher, referrer, sender.label)
        return user

    async def cmd_start(self, chat_id: int, sender: TelegramUser, args: list[str]) -> None:
        user = await get_user_by_telegram_id(self.db, chat_id)
        if user is None:
            user = await self._provision(chat_id, sender, args[0] if args else None)

        text = (
            "\U0001f44b <b>Welcome to PiNode Labs Bot!</b>\n\n"
            f"I'm @{self.settings.telegram_bot_username}, your assistant for PiNode mining and referrals.\n\n"
            "<b>Available Commands:</b>\n"
            "/start - Show this welcome message\n"
            "/referral - Get your referral link and stats\n"
            "/balance - Check your balances\n"
            "/stats - View detailed statistics\n"
            "/link - Link your Telegram to your account\n"
            "/help - Show help message\n\n"
            "<b>Quick Actions:</b>\n"
            "Use the buttons below to get started!"
        )
        await self.reply(chat_id, text, main_keyboard(user.referral_code))

    async def cmd_webapp(self, chat_id: int, sender: TelegramUser, args: list[str]) -> None:
        user = await get_user_by_telegram_id(self.db, chat_id)
        if user is not None:
            start_param = user.referral_code
        elif args:
            start_param = args[0]
        else:
            start_param = str(sender.id)

        text = (
            "\U0001f680 <b>Open PiNode Labs Web App</b>\n\n"
            "Tap the button below to open the web app in Telegram!\n\n"
            "You can:\n"
            "• Check your balances\n"
            "• Share referral links\n"
            "• Claim rewards\n\n"
            f'<a href="{web_app_url(start_param)}">\U0001f4f1 Open Web App</a>'
        )
        await self.reply(chat_id, text, main_keyboard(start_param, with_referral=False))

    async def cmd_referral(self, chat_id: int) -> None:
        user = await get_user_by_telegram_id(self.db, chat_id)
        if user is None:
            await self.reply(chat_id, NOT_LINKED)
            return

        stats = await compute_stats(self.db, user.id)
        reward = referral_reward()
        text = (
            "\U0001f381 <b>Your Referral Program</b>\n\n"
            "\U0001f517 <b>Referral Link:</b>\n"
            f"<code>{_base_url()}/ref/{user.referral_code}</code>\n\n"
            "\U0001f4ca <b>Statistics:</b>\n"
            f"\U0001f465 Total Referrals: {stats.total}\n"
            f"✅ Active Referrals: {stats.active}\n"
            f"\U0001f4b0 Total Earned: {_pinode(stats.total_bonus_earned)} PiNode\n"
            f"⏳ Pending Bonus: {_pinode(stats.pending_bonus)} PiNode (≈ {pi_for(stats.pending_bonus):.2f} PI)\n\n"
            "\U0001f4a1 <b>How it works:</b>\n"
            f"Share your referral link with friends. Each active friend gives you {_pinode(reward)} PiNode "
            f"(≈ {pi_for(reward):.0f} PI Network).\n\n"
            "Claim your bonus on the website!"
        )
        await self.reply(chat_id, text)

    async def cmd_balance(self, chat_id: int) -> None:
        user = await get_user_by_telegram_id(self.db, chat_id)
        if user is None:
            await self.reply(chat_id, NOT_LINKED)
            return

        text = (
            "\U0001f4b0 <b>Your Balances</b>\n\n"
            f"\U0001f48e <b>PI Network:</b> {Decimal(user.network_balance):.4f} PI\n"
            f"⛏️ <b>PiNode:</b> {_pinode(user.mined_balance)} PiNode\n\n"
            "\U0001f4a1 Exchange PiNode for PI on the website!"
        )
        await self.reply(chat_id, text)

    async def cmd_stats(self, chat_id: int) -> None:
        user = await get_user_by_telegram_id(self.db, chat_id)
        if user is None:
            await self.reply(chat_id, NOT_LINKED)
            return

        stats = await compute_stats(self.db, user.id)
        text = (
            "\U0001f4ca <b>Your Statistics</b>\n\n"
            "<b>\U0001f4b0 Balances:</b>\n"
            f"\U0001f48e PI Network: {Decimal(user.network_balance):.4f} PI\n"
            f"⛏️ PiNode: {_pinode(user.mined_balance)} PiNode\n\n"
            "<b>\U0001f381 Referrals:</b>\n"
            f"\U0001f465 Total: {stats.total}\n"
            f"✅ Active: {stats.active}\n"
            f"\U0001f4b0 Earned: {_pinode(stats.total_bonus_earned)} PiNode\n"
            f"⏳ Pending: {_pinode(stats.pending_bonus)} PiNode\n\n"
            f"\U0001f517 <b>Referral Code:</b> <code>{user.referral_code}</code>"
        )
        await self.reply(chat_id, text)

    async def cmd_help(self, chat_id: int, sender: TelegramUser) -> None:
        url = web_app_url(str(sender.id))
        text = (
            "\U0001f4d6 <b>PiNode Labs Bot - Help</b>\n\n"
            "<b>Available Commands:</b>\n\n"
            "/start - Show welcome message and quick actions\n"
            "/app - Open web app in Telegram\n"
            "/referral - Get your referral link and statistics\n"
            "/balance - Check your PI Network and PiNode balances\n"
            "/stats - View detailed statistics (referrals, balances)\n"
            "/link - Link your Telegram account to your email\n"
            "/help - Show this help message\n\n"
            "<b>Quick Actions:</b>\n"
            f'<a href="{url}">\U0001f4f1 Open Web App</a>\n\n'
            "<b>How to get started:</b>\n"
            "1. Register on our website\n"
            "2. Use /link your@email.com to link your Telegram\n"
            "3. Complete missions and share your referral link!\n\n"
            "<b>Need more help?</b>\n"
            f"Visit our website: {_base_url()}"
        )
        await self.reply(chat_id, text, {"inline_keyboard": [[_open_app_button(str(sender.id))]]})

    async def cmd_link(self, chat_id: int, sender: TelegramUser, args: list[str]) -> None:
        if not args:
            await self.reply(chat_id, "❌ Please provide your email address:\n\n/link your@email.com")
            return

        email = args[0].strip().lower()
        if "@" not in email or "." not in email:
            await self.reply(chat_id, "❌ Invalid email format. Please try again.")
            return

        account = await get_user_by_email(self.db, email)
        if account is None:
            await self.reply(
                chat_id,
                "❌ Account not found.\n\n"
                "Please register on our website first, then link your Telegram account.\n\n"
                f"Website: {_base_url()}",
            )
            return

        current = await get_user_by_telegram_id(self.db, chat_id)
        if current is not None and current.id != account.id and current.email is not None:
            await self.reply(chat_id, "❌ This Telegram account is already linked to another email address.")
            return

        try:
            if current is not None and current.id != account.id:
                await merge_bot_account(self.db, current, account)
            await link_telegram(self.db, account, chat_id, sender.username)
            await self.db.commit()
        except LedgerError:
            await self.db.rollback()
            raise
        except Exception:
            await self.db.rollback()
            logger.exception("Linking chat %d to user %d failed", chat_id, account.id)
            await self.reply(chat_id, "❌ Failed to link account. Please try again later.")
            return

        logger.info("Chat %d linked to user %d", chat_id, account.id)
        await self.reply(
            chat_id,
            "✅ <b>Account Linked Successfully!</b>\n\n"
            f"Your Telegram account is now linked to:\n<code>{email}</code>\n\n"
            "You'll now receive notifications about your rewards, referrals, and more!",
        )
