"""Telegram Bot API client and status reporting."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx

from voicenotes.config import Settings
from voicenotes.errors import TelegramError
from voicenotes.models.enums import PipelineState
from voicenotes.schemas.voice_note import PipelineResult
from voicenotes.services.date_extraction import format_extracted_date
from voicenotes.services.file_handler import format_duration
from voicenotes.services.transcription import transcription_stats

logger = logging.getLogger(__name__)

PROCESSING_HEADER = "⏳ *Elaborazione messaggio vocale...*"

STATUS_MESSAGES: dict[PipelineState, str] = {
    PipelineState.RECEIVED: PROCESSING_HEADER,
    PipelineState.DOWNLOADING: f"{PROCESSING_HEADER}\n\n📥 Download in corso...",
    PipelineState.TRANSCRIBING: f"{PROCESSING_HEADER}\n\n🎙️ Trascrizione in corso...",
    PipelineState.ANALYZING: f"{PROCESSING_HEADER}\n\n🤖 Analisi del contenuto...",
    PipelineState.PERSISTING: f"{PROCESSING_HEADER}\n\n💾 Salvataggio in corso...",
}


class TelegramClient:
    """Minimal async client for the Telegram Bot API."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        if not settings.telegram_bot_token:
            raise ValueError("TELEGRAM_BOT_TOKEN is not configured")
        self.settings = settings
        self.token = settings.telegram_bot_token
        self.api_url = f"{settings.telegram_api_base}/bot{self.token}"
        self.file_url = f"{settings.telegram_api_base}/file/bot{self.token}"
        self.timeout = settings.download_timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def call(self, method: str, **params: Any) -> Any:
        """Invoke a Bot API method and return its `result` field."""
        async with self._client() as client:
            response = await client.post(f"{self.api_url}/{method}", json=params)
            response.raise_for_status()
            data = response.json()
        if not data.get("ok"):
            raise TelegramError(f"{method} failed: {data.get('description', 'unknown error')}")
        return data["result"]

    async def get_file(self, file_id: str) -> dict[str, Any]:
        """Resolve a file reference to its remote path and size."""
        return await self.call("getFile", file_id=file_id)

    @asynccontextmanager
    async def stream_file(self, file_path: str) -> AsyncIterator[httpx.Response]:
        """Open a streaming download of a file returned by `get_file`."""
        async with self._client() as client:
            async with client.stream("GET", f"{self.file_url}/{file_path}") as response:
                response.raise_for_status()
                yield response

    async def send_message(self, chat_id: int, text: str, reply_to: int | None = None) -> dict:
        params: dict[str, Any] = {"chat_id": chat_id, "text": text, "parse_mode": "Markdown"}
        if reply_to is not None:
            params["reply_to_message_id"] = reply_to
        return await self.call("sendMessage", **params)

    async def edit_message_text(self, chat_id: int, message_id: int, text: str) -> dict:
        return await self.call(
            "editMessageText",
            chat_id=chat_id,
            message_id=message_id,
            text=text,
            parse_mode="Markdown",
        )

    async def set_webhook(self, url: str, secret_token: str | None = None) -> bool:
        params: dict[str, Any] = {"url": url, "allowed_updates": ["message"]}
        if secret_token:
            params["secret_token"] = secret_token
        return await self.call("setWebhook", **params)


class TelegramStatusReporter:
    """Keeps one status message per voice note up to date.

    The first report sends a message, later reports edit it. If editing
    fails, a new message is sent instead.
    """

    def __init__(self, client: TelegramClient, chat_id: int, reply_to: int | None = None):
        self.client = client
        self.chat_id = chat_id
        self.reply_to = reply_to
        self.status_message_id: int | None = None

    async def _show(self, text: str) -> None:
        if self.status_message_id is not None:
            try:
                await self.client.edit_message_text(self.chat_id, self.status_message_id, text)
                return
            except (httpx.HTTPError, TelegramError) as e:
                logger.warning(f"Could not edit status message {self.status_message_id}: {e}")
        message = await self.client.send_message(self.chat_id, text, reply_to=self.reply_to)
        self.status_message_id = message["message_id"]

    async def __call__(self, state: PipelineState) -> None:
        """Report an intermediate pipeline state."""
        text = STATUS_MESSAGES.get(state)
        if text:
            await self._show(text)

    async def report_result(self, result: PipelineResult, duration: float = 0) -> None:
        """Report the final outcome of the pipeline."""
        await self._show(format_result_message(result, duration))


def format_result_message(result: PipelineResult, duration: float = 0) -> str:
    """Render the final message sent to the operator."""
    if not result.succeeded:
        return result.user_message

    lines = ["✅ *Nota vocale salvata!*", ""]
    if result.record_id is not None:
        lines.append(f"📝 *ID:* #{result.record_id}")
    lines.append(f"⏰ *Durata:* {format_duration(duration)}")
    if result.transcript:
        stats = transcription_stats(result.transcript)
        words = f"🗣️ *Parole:* {stats.word_count}"
        if stats.words_per_minute:
            words += f" ({stats.words_per_minute} parole/min)"
        lines.append(words)
    if result.classification:
        lines.append(f"🏷️ *Categoria:* {result.classification.category.value}")
        lines.append(f"⚡ *Priorità:* {result.classification.priority}/5")
    if result.dates:
        lines.append("")
        lines.append("📅 *Date rilevate:*")
        for extracted in result.dates:
            lines.append(f"• {format_extracted_date(extracted.parsed_date)} ({extracted.text})")
    if result.warnings:
        lines.append("")
        lines.append("⚠️ Analisi automatica non riuscita, la nota sarà rivista dal team.")
    lines.append("")
    lines.append("👥 Sarà processata dal team tramite Voice Triage.")
    return "\n".join(lines)
