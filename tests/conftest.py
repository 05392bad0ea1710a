"""
Shared fixtures for the gateway tests.

No real API calls: Telegram, Gemini and Mindee are replaced by the
fakes below, storage by the in-memory implementations.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from io import BytesIO
from typing import Optional

import pytest
from PIL import Image

from chamber.models.capture import (
    ExpenseCategory,
    ExtractedExpense,
    ExtractionResult,
    ExtractionSource,
    ExtractionSuccess,
    FailureKind,
    extraction_failed,
)
from chamber.services.storage import InMemoryBlobStorage, InMemoryExpenseStore
from chamber.services.telegram import TelegramAPIError
from chamber.sessions import SessionStore
from chamber.validation import CandidateValidator

LINKED_CHAT = 100
UNLINKED_CHAT = 200
USER_ID = "user-1"


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2026, 3, 14, 6, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class FakeTelegram:
    """Records every outbound Bot API call."""

    def __init__(self):
        self.sent: list[dict] = []
        self.edits: list[dict] = []
        self.answers: list[dict] = []
        self.files: dict[str, bytes] = {}
        self.fail_get_file = False
        self.fail_send = False
        self.fail_edit = False
        self.closed = False
        self._next_message_id = 1000

    async def send_message(self, chat_id, text, keyboard=None):
        if self.fail_send:
            raise TelegramAPIError("sendMessage", "Bad Gateway")
        self.sent.append({"chat_id": chat_id, "text": text, "keyboard": keyboard})
        self._next_message_id += 1
        return self._next_message_id

    async def edit_message_text(self, chat_id, message_id, text, keyboard=None):
        if self.fail_edit:
            raise TelegramAPIError("editMessageText", "message to edit not found")
        self.edits.append({"chat_id": chat_id, "message_id": message_id, "text": text})

    async def answer_callback_query(self, callback_id, text=None):
        self.answers.append({"callback_id": callback_id, "text": text})

    async def get_file_path(self, file_id):
        if self.fail_get_file or file_id not in self.files:
            raise TelegramAPIError("getFile", "file not found")
        return f"documents/{file_id}"

    async def download_file(self, file_path):
        return self.files[file_path.split("/", 1)[1]]

    async def aclose(self):
        self.closed = True

    @property
    def texts(self) -> list[str]:
        return [message["text"] for message in self.sent]


class FakeAgent:
    """
    Stands in for ExpenseExtractionAgent.

    text_results maps an exact prompt prefix to a result; anything
    unmatched fails like an unreachable AI.
    """

    def __init__(self):
        self.text_results: dict[str, ExtractionResult] = {}
        self.image_result: ExtractionResult = extraction_failed("Failed to process image")
        self.text_calls: list[str] = []
        self.image_calls: list[bytes] = []

    async def extract_from_text(self, text, fallback_description=None):
        self.text_calls.append(text)
        for prefix, result in self.text_results.items():
            if text.startswith(prefix):
                return result
        return extraction_failed("AI request failed", FailureKind.TRANSIENT_IO)

    async def extract_from_image(self, image_bytes):
        self.image_calls.append(image_bytes)
        return self.image_result


def ai_success(
    amount: str,
    description: str,
    category: ExpenseCategory = ExpenseCategory.GENERAL,
    merchant: Optional[str] = None,
) -> ExtractionSuccess:
    return ExtractionSuccess(
        expense=ExtractedExpense(
            amount=Decimal(amount),
            category=category,
            description=description,
            merchant=merchant,
            confidence=0.9,
            source=ExtractionSource.AI,
        )
    )


def make_jpeg() -> bytes:
    buf = BytesIO()
    Image.new("RGB", (8, 8), color=(200, 30, 30)).save(buf, format="JPEG")
    return buf.getvalue()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def telegram() -> FakeTelegram:
    return FakeTelegram()


@pytest.fixture
def agent() -> FakeAgent:
    return FakeAgent()


@pytest.fixture
def validator() -> CandidateValidator:
    return CandidateValidator(max_amount=10_000_000)


@pytest.fixture
def expense_store() -> InMemoryExpenseStore:
    store = InMemoryExpenseStore(tz=timezone.utc)
    store.link_chat(LINKED_CHAT, USER_ID)
    return store


@pytest.fixture
def blob_storage() -> InMemoryBlobStorage:
    return InMemoryBlobStorage()


@pytest.fixture
def sessions(clock) -> SessionStore:
    return SessionStore(ttl=timedelta(minutes=5), clock=clock)


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_jpeg()
