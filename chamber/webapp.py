"""
Webhook HTTP surface

Telegram POSTs every update to /api/telegram/webhook with the secret
we registered in the X-Telegram-Bot-Api-Secret-Token header.

The endpoint answers 200 {"ok": true} for everything it accepted,
including updates it could not process: a non-2xx answer makes
Telegram redeliver the same update over and over.
"""

import hmac
from typing import Optional

import structlog
from fastapi import APIRouter, FastAPI, Header, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from chamber import __version__
from chamber.audit import configure_logging
from chamber.config import get_settings
from chamber.models.updates import parse_update
from chamber.orchestrator import DialogueController, create_app_components

logger = structlog.get_logger(__name__)

WEBHOOK_PATH = "/api/telegram/webhook"


def _secret_matches(received: Optional[str], expected: str) -> bool:
    if not received or not expected:
        return False
    return hmac.compare_digest(received.encode("utf-8"), expected.encode("utf-8"))


def create_app(
    controller: Optional[DialogueController] = None,
    webhook_secret: Optional[str] = None,
) -> FastAPI:
    """
    Build the ASGI app.

    Args:
        controller: Dialogue controller; built from settings on the
            first update when omitted
        webhook_secret: Expected secret header; read from settings
            when omitted
    """
    configure_logging(get_settings().app.log_level)

    app = FastAPI(title="Chamber Chat Capture Gateway", version=__version__)
    app.state.controller = controller
    router = APIRouter()

    def get_controller() -> DialogueController:
        if app.state.controller is None:
            app.state.controller = create_app_components()
        return app.state.controller

    def get_secret() -> str:
        return webhook_secret or get_settings().telegram.webhook_secret

    @router.post(WEBHOOK_PATH)
    async def telegram_webhook(
        request: Request,
        x_telegram_bot_api_secret_token: Optional[str] = Header(
            None, alias="X-Telegram-Bot-Api-Secret-Token"
        ),
    ):
        if not _secret_matches(x_telegram_bot_api_secret_token, get_secret()):
            logger.warning("webhook_unauthorized")
            return JSONResponse({"error": "Unauthorized"}, status_code=401)

        try:
            payload = await request.json()
            update = parse_update(payload)
        except (ValueError, ValidationError) as e:
            logger.warning("webhook_payload_rejected", error=str(e))
            return {"ok": True}

        if update is None:
            logger.debug("webhook_update_ignored")
            return {"ok": True}

        await get_controller().handle_update(update)
        return {"ok": True}

    @router.get(WEBHOOK_PATH)
    async def webhook_status():
        return {"status": "Telegram webhook is active"}

    @router.get("/health")
    async def health():
        return {"status": "ok"}

    @app.on_event("shutdown")
    async def _close_clients():
        if app.state.controller is not None:
            await app.state.controller.aclose()

    app.include_router(router)
    return app
