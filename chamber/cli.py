"""
Admin commands

    python -m chamber.cli register-webhook [--url URL]
    python -m chamber.cli check-config

register-webhook points Telegram at the deployed webhook endpoint,
using TELEGRAM_WEBHOOK_URL and TELEGRAM_WEBHOOK_SECRET unless a URL is
given on the command line.
"""

import argparse
import asyncio
import sys
from typing import Optional

import structlog

from chamber.audit import configure_logging
from chamber.config import get_settings, validate_all_settings
from chamber.services.telegram import TelegramAPIError, TelegramClient

logger = structlog.get_logger(__name__)


async def register_webhook(url: Optional[str] = None) -> bool:
    settings = get_settings().telegram
    url = url or settings.webhook_url
    if not url:
        raise ValueError("No webhook URL: pass --url or set TELEGRAM_WEBHOOK_URL")

    client = TelegramClient(settings)
    try:
        return await client.set_webhook(url, settings.webhook_secret)
    finally:
        await client.aclose()


def check_config() -> bool:
    """Print which collaborators are configured."""
    results = validate_all_settings()
    ok = True
    for name, value in results.items():
        if name.endswith("_error"):
            continue
        print(f"{name:15} {'ok' if value else 'MISSING'}")
        if not value:
            ok = False
            print(f"    {results[f'{name}_error']}")
    return ok


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Chamber chat gateway admin commands.")
    subcommands = parser.add_subparsers(dest="command", required=True)

    register = subcommands.add_parser("register-webhook", help="Call Telegram setWebhook.")
    register.add_argument("--url", help="Public webhook URL (default: TELEGRAM_WEBHOOK_URL).")

    subcommands.add_parser("check-config", help="Report which services are configured.")

    args = parser.parse_args(argv)
    configure_logging(get_settings().app.log_level)

    if args.command == "check-config":
        return 0 if check_config() else 1

    try:
        registered = asyncio.run(register_webhook(args.url))
    except (ValueError, TelegramAPIError) as e:
        logger.error("webhook_registration_failed", error=str(e))
        print(f"Failed: {e}", file=sys.stderr)
        return 1

    print("Webhook registered." if registered else "Telegram did not confirm the webhook.")
    return 0 if registered else 1


if __name__ == "__main__":
    sys.exit(main())
