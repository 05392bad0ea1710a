"""
Telegram Bot API client

A thin async wrapper over the handful of Bot API methods the gateway
uses. Every call is a single attempt: a failed send is surfaced to the
caller immediately, the dialogue controller decides what to do.

The one exception is set_webhook, an admin call run once at deploy
time, which is retried.
"""

from typing import Any, Optional

import httpx
import structlog
from tenacity import retry, stop_after_attempt, wait_exponential

from chamber.config import TelegramSettings, get_settings
from chamber.errors import TransientIOError

logger = structlog.get_logger(__name__)


class TelegramAPIError(TransientIOError):
    """A Bot API call failed (transport error or ok=false)."""

    def __init__(self, method: str, message: str):
        self.method = method
        super().__init__(f"{method}: {message}")


InlineKeyboard = list[list[dict[str, str]]]


class TelegramClient:
    """
    Async Bot API client.

    Args:
        settings: Telegram settings; loaded from the environment if omitted
        transport: Optional httpx transport (tests pass a MockTransport)
    """

    def __init__(
        self,
        settings: Optional[TelegramSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._settings = settings or get_settings().telegram
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    def _get_http(self) -> httpx.AsyncClient:
        """Get or create the shared HTTP client."""
        if self._http is None:
            self._http = httpx.AsyncClient(
                timeout=self._settings.request_timeout_seconds,
                transport=self._transport,
            )
        return self._http

    @property
    def _api_url(self) -> str:
        return f"{self._settings.api_base_url}/bot{self._settings.bot_token}"

    def file_url(self, file_path: str) -> str:
        """Download URL for a file path returned by getFile."""
        return f"{self._settings.api_base_url}/file/bot{self._settings.bot_token}/{file_path}"

    async def _call(self, method: str, payload: dict[str, Any]) -> Any:
        try:
            response = await self._get_http().post(f"{self._api_url}/{method}", json=payload)
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise TelegramAPIError(method, str(e))

        if not data.get("ok"):
            raise TelegramAPIError(method, data.get("description", f"HTTP {response.status_code}"))
        return data.get("result")

    async def send_message(
        self,
        chat_id: int,
        text: str,
        keyboard: Optional[InlineKeyboard] = None,
    ) -> Optional[int]:
        """
        Send an HTML message, optionally with an inline keyboard.

        Returns:
            The id of the sent message
        """
        payload: dict[str, Any] = {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": "HTML",
        }
        if keyboard:
            payload["reply_markup"] = {"inline_keyboard": keyboard}

        result = await self._call("sendMessage", payload)
        return result.get("message_id") if isinstance(result, dict) else None

    async def edit_message_text(
        self,
        chat_id: int,
        message_id: int,
        text: str,
        keyboard: Optional[InlineKeyboard] = None,
    ) -> None:
        """Replace the text of a sent message (drops its keyboard unless given)."""
        payload: dict[str, Any] = {
            "chat_id": chat_id,
            "message_id": message_id,
            "text": text,
            "parse_mode": "HTML",
        }
        if keyboard:
            payload["reply_markup"] = {"inline_keyboard": keyboard}
        await self._call("editMessageText", payload)

    async def answer_callback_query(
        self,
        callback_id: str,
        text: Optional[str] = None,
    ) -> None:
        """Stop the button's loading spinner, optionally with a toast."""
        payload: dict[str, Any] = {"callback_query_id": callback_id}
        if text:
            payload["text"] = text
        await self._call("answerCallbackQuery", payload)

    async def get_file_path(self, file_id: str) -> str:
        """Resolve a file_id to a short-lived download path."""
        result = await self._call("getFile", {"file_id": file_id})
        file_path = result.get("file_path") if isinstance(result, dict) else None
        if not file_path:
            raise TelegramAPIError("getFile", "no file_path in response")
        return file_path

    async def download_file(self, file_path: str) -> bytes:
        """Download the bytes behind a getFile path."""
        try:
            response = await self._get_http().get(self.file_url(file_path))
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise TelegramAPIError("downloadFile", str(e))
        return response.content

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def set_webhook(self, url: str, secret_token: str) -> bool:
        """Point Telegram at our webhook endpoint."""
        result = await self._call(
            "setWebhook",
            {
                "url": url,
                "secret_token": secret_token,
                "allowed_updates": ["message", "callback_query"],
            },
        )
        logger.info("webhook_registered", url=url)
        return bool(result)

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None
