"""Telegram Bot API package."""

from chamber.services.telegram.client import (
    InlineKeyboard,
    TelegramAPIError,
    TelegramClient,
)

__all__ = [
    "InlineKeyboard",
    "TelegramAPIError",
    "TelegramClient",
]
