"""
Telegram Bot API wire models.

Only the fields the gateway reads are declared; everything else in
the payload is ignored.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _TelegramModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class TelegramChat(_TelegramModel):
    id: int
    type: Optional[str] = None


class TelegramUser(_TelegramModel):
    id: int
    first_name: Optional[str] = None
    username: Optional[str] = None


class TelegramPhotoSize(_TelegramModel):
    file_id: str
    file_unique_id: Optional[str] = None
    width: int = 0
    height: int = 0
    file_size: Optional[int] = None


class TelegramDocument(_TelegramModel):
    file_id: str
    file_unique_id: Optional[str] = None
    file_name: Optional[str] = None
    mime_type: Optional[str] = None
    file_size: Optional[int] = None


class TelegramMessage(_TelegramModel):
    message_id: int
    chat: TelegramChat
    from_user: Optional[TelegramUser] = Field(default=None, alias="from")
    date: Optional[int] = None
    text: Optional[str] = None
    caption: Optional[str] = None
    photo: list[TelegramPhotoSize] = Field(default_factory=list)
    document: Optional[TelegramDocument] = None


class TelegramCallbackQuery(_TelegramModel):
    id: str
    from_user: Optional[TelegramUser] = Field(default=None, alias="from")
    message: Optional[TelegramMessage] = None
    data: Optional[str] = None


class TelegramUpdate(_TelegramModel):
    update_id: int
    message: Optional[TelegramMessage] = None
    callback_query: Optional[TelegramCallbackQuery] = None
