#!/usr/bin/env python3
"""Register the bot webhook with Telegram.

Points Telegram at the API's webhook endpoint and sets the secret token
that the endpoint checks on every update.

Usage:
    # From project root:
    python scripts/set_telegram_webhook.py https://voicenotes.example.com

    # Token and secret come from the environment or .env:
    TELEGRAM_BOT_TOKEN=... TELEGRAM_WEBHOOK_SECRET=... \
        python scripts/set_telegram_webhook.py https://voicenotes.example.com
"""

import asyncio
import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from voicenotes.config import get_settings
from voicenotes.services.telegram import TelegramClient

WEBHOOK_PATH = "/api/v1/telegram/webhook"


async def set_webhook(base_url: str) -> None:
    """Register `base_url` + the webhook path with Telegram."""
    settings = get_settings()
    client = TelegramClient(settings)
    url = base_url.rstrip("/") + WEBHOOK_PATH
    await client.set_webhook(url, secret_token=settings.telegram_webhook_secret)
    print(f"Webhook set to {url}")
    if not settings.telegram_webhook_secret:
        print("Warning: TELEGRAM_WEBHOOK_SECRET is not set, updates will not be verified")


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print(f"Usage: {sys.argv[0]} <public base url>")
        sys.exit(1)
    asyncio.run(set_webhook(sys.argv[1]))
