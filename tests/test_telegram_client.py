"""Tests for the Bot API client against an httpx mock transport."""

import json

import httpx
import pytest

from chamber.config import TelegramSettings
from chamber.services.telegram import TelegramAPIError, TelegramClient

TOKEN = "123:abc"


class Recorder:
    """MockTransport handler that replays canned Bot API answers."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        method = request.url.path.rsplit("/", 1)[-1]
        status, body = self.routes.get(method, (404, {"ok": False, "description": "Not Found"}))
        if isinstance(body, bytes):
            return httpx.Response(status, content=body)
        return httpx.Response(status, json=body)

    def payload(self, index=-1) -> dict:
        return json.loads(self.requests[index].content)


def make_client(routes) -> tuple[TelegramClient, Recorder]:
    recorder = Recorder(routes)
    settings = TelegramSettings(bot_token=TOKEN, webhook_secret="s3cret")
    return TelegramClient(settings, transport=httpx.MockTransport(recorder)), recorder


class TestTelegramClient:
    """Tests for the individual Bot API calls."""

    @pytest.mark.asyncio
    async def test_send_message(self):
        """Test payload shape and the returned message id."""
        client, recorder = make_client(
            {"sendMessage": (200, {"ok": True, "result": {"message_id": 77}})}
        )
        keyboard = [[{"text": "💵 Cash", "callback_data": "pay_CASH"}]]

        message_id = await client.send_message(100, "<b>hi</b>", keyboard=keyboard)

        assert message_id == 77
        assert recorder.requests[0].url.path == f"/bot{TOKEN}/sendMessage"
        assert recorder.payload() == {
            "chat_id": 100,
            "text": "<b>hi</b>",
            "parse_mode": "HTML",
            "reply_markup": {"inline_keyboard": keyboard},
        }
        await client.aclose()

    @pytest.mark.asyncio
    async def test_api_error(self):
        """Test ok=false is raised, not swallowed."""
        client, _ = make_client(
            {"sendMessage": (400, {"ok": False, "description": "Bad Request: chat not found"})}
        )
        with pytest.raises(TelegramAPIError) as exc_info:
            await client.send_message(100, "hi")
        assert exc_info.value.method == "sendMessage"
        assert "chat not found" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_answer_callback_without_text(self):
        client, recorder = make_client({"answerCallbackQuery": (200, {"ok": True, "result": True})})
        await client.answer_callback_query("cb-1")
        assert recorder.payload() == {"callback_query_id": "cb-1"}

    @pytest.mark.asyncio
    async def test_get_file_and_download(self):
        """Test getFile followed by the file download URL."""
        client, recorder = make_client({
            "getFile": (200, {"ok": True, "result": {"file_id": "f", "file_path": "photos/f.jpg"}}),
            "f.jpg": (200, b"\xff\xd8bytes"),
        })
        path = await client.get_file_path("f")
        assert path == "photos/f.jpg"

        data = await client.download_file(path)
        assert data == b"\xff\xd8bytes"
        assert recorder.requests[-1].url.path == f"/file/bot{TOKEN}/photos/f.jpg"

    @pytest.mark.asyncio
    async def test_get_file_without_path(self):
        client, _ = make_client({"getFile": (200, {"ok": True, "result": {"file_id": "f"}})})
        with pytest.raises(TelegramAPIError):
            await client.get_file_path("f")

    @pytest.mark.asyncio
    async def test_download_http_error(self):
        client, _ = make_client({})
        with pytest.raises(TelegramAPIError):
            await client.download_file("photos/missing.jpg")
