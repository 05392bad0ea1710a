"""
Inbound update union

The webhook hands the dialogue controller exactly one of four update
kinds. Telegram's loosely shaped payload is validated and narrowed here,
at the boundary, so the controller never inspects raw JSON.

Precedence when a message carries several things (mirrors what the
Telegram clients actually send):
    callback > photo > document > text
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from chamber.models.telegram import TelegramUpdate


class _Update(BaseModel):
    model_config = ConfigDict(frozen=True)

    update_id: int
    chat_id: int


class TextUpdate(_Update):
    kind: Literal["text"] = "text"
    message_id: int
    text: str


class PhotoUpdate(_Update):
    kind: Literal["photo"] = "photo"
    message_id: int
    file_ref: str
    file_size: Optional[int] = None
    width: int = 0
    height: int = 0
    caption: Optional[str] = None


class DocumentUpdate(_Update):
    kind: Literal["document"] = "document"
    message_id: int
    file_ref: str
    mime_type: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    caption: Optional[str] = None


class CallbackUpdate(_Update):
    kind: Literal["callback"] = "callback"
    callback_id: str
    message_id: int
    data: str = ""


InboundUpdate = Annotated[
    Union[TextUpdate, PhotoUpdate, DocumentUpdate, CallbackUpdate],
    Field(discriminator="kind"),
]


def parse_update(payload: dict[str, Any]) -> Optional[InboundUpdate]:
    """
    Narrow a raw Telegram update to one of the four kinds.

    Returns None for updates the gateway does not handle (stickers,
    edited messages, inline callbacks without a message, ...).

    Raises:
        pydantic.ValidationError: If the payload is not a Telegram update
    """
    update = TelegramUpdate.model_validate(payload)

    callback = update.callback_query
    if callback is not None:
        if callback.message is None:
            return None
        return CallbackUpdate(
            update_id=update.update_id,
            chat_id=callback.message.chat.id,
            callback_id=callback.id,
            message_id=callback.message.message_id,
            data=callback.data or "",
        )

    message = update.message
    if message is None:
        return None

    if message.photo:
        # Telegram lists sizes smallest first
        largest = message.photo[-1]
        return PhotoUpdate(
            update_id=update.update_id,
            chat_id=message.chat.id,
            message_id=message.message_id,
            file_ref=largest.file_id,
            file_size=largest.file_size,
            width=largest.width,
            height=largest.height,
            caption=message.caption,
        )

    if message.document is not None:
        return DocumentUpdate(
            update_id=update.update_id,
            chat_id=message.chat.id,
            message_id=message.message_id,
            file_ref=message.document.file_id,
            mime_type=message.document.mime_type,
            file_name=message.document.file_name,
            file_size=message.document.file_size,
            caption=message.caption,
        )

    if message.text:
        return TextUpdate(
            update_id=update.update_id,
            chat_id=message.chat.id,
            message_id=message.message_id,
            text=message.text,
        )

    return None
