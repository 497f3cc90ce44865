"""Celery task for processing Telegram voice notes."""

import asyncio
import logging

import httpx

from voicenotes.celery_app import app as celery_app
from voicenotes.config import Settings, get_settings
from voicenotes.database import SessionLocal
from voicenotes.errors import TelegramError
from voicenotes.schemas.voice_note import IncomingVoiceNote, PipelineResult
from voicenotes.services.pipeline import VoiceNotePipeline
from voicenotes.services.telegram import TelegramClient, TelegramStatusReporter

logger = logging.getLogger(__name__)


@celery_app.task(name="tasks.process_voice_note")
def process_voice_note(payload: dict) -> dict:
    """Download, transcribe, analyze and store one voice note.

    Args:
        payload: IncomingVoiceNote serialized with model_dump(mode="json")

    Returns:
        dict with processing result
    """
    try:
        incoming = IncomingVoiceNote.model_validate(payload)
        result = asyncio.run(_process(incoming, get_settings()))
    except Exception as e:
        logger.error(f"Error processing voice note payload: {e}", exc_info=True)
        return {"success": False, "error": str(e)}

    return {
        "success": result.succeeded,
        "state": result.state.value,
        "record_id": result.record_id,
        "error_kind": result.error_kind.value if result.error_kind else None,
        "warnings": [kind.value for kind in result.warnings],
    }


async def _process(incoming: IncomingVoiceNote, settings: Settings) -> PipelineResult:
    telegram = TelegramClient(settings)
    reporter = TelegramStatusReporter(telegram, incoming.chat_id, reply_to=incoming.message_id)
    pipeline = VoiceNotePipeline.build(settings, telegram, SessionLocal)
    pipeline.file_handler.cleanup_stale_files()

    result = await pipeline.process(incoming, on_status=reporter)

    try:
        await reporter.report_result(result, incoming.duration)
    except (httpx.HTTPError, TelegramError) as e:
        logger.warning(f"Could not send final status to chat {incoming.chat_id}: {e}")
    return result
