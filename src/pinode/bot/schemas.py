"""The subset of Telegram Bot API update objects the webhook reads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class _TelegramModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class TelegramUser(_TelegramModel):
    id: int
    is_bot: bool = False
    first_name: str = ""
    last_name: str | None = None
    username: str | None = None
    language_code: str | None = None

    @property
    def label(self) -> str:
        return f"@{self.username}" if self.username else self.first_name or str(self.id)


class Chat(_TelegramModel):
    id: int
    type: str = "private"


class Message(_TelegramModel):
    message_id: int
    from_user: TelegramUser | None = Field(default=None, alias="from")
    chat: Chat
    date: int = 0
    text: str | None = None


class CallbackQuery(_TelegramModel):
    id: str
    from_user: TelegramUser = Field(alias="from")
    message: Message | None = None
    data: str | None = None


class Update(_TelegramModel):
    update_id: int
    message: Message | None = None
    callback_query: CallbackQuery | None = None
