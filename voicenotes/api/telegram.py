"""Telegram webhook endpoint."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, status

from voicenotes.config import Settings, get_settings
from voicenotes.schemas.telegram import TelegramUpdate
from voicenotes.tasks.voice_processing import process_voice_note

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/telegram", tags=["telegram"])


@router.post("/webhook")
async def telegram_webhook(
    update: TelegramUpdate,
    settings: Annotated[Settings, Depends(get_settings)],
    x_telegram_bot_api_secret_token: Annotated[str | None, Header()] = None,
) -> dict:
    """Receive a Telegram update and queue audio messages for processing.

    Updates without audio are acknowledged and ignored so Telegram does
    not redeliver them.
    """
    secret = settings.telegram_webhook_secret
    if secret and x_telegram_bot_api_secret_token != secret:
        logger.warning(f"Rejected Telegram update {update.update_id}: bad secret token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid secret token",
        )

    incoming = update.to_incoming()
    if incoming is None:
        logger.debug(f"Ignoring Telegram update {update.update_id}: no audio")
        return {"ok": True, "queued": False}

    process_voice_note.delay(incoming.model_dump(mode="json"))
    logger.info(
        f"Queued voice note {incoming.message_id} from {incoming.sender.display_name} "
        f"({incoming.kind.value}, {incoming.file_size} bytes)"
    )
    return {"ok": True, "queued": True}
