"""Retrieval, validation and scratch storage of incoming audio."""

import logging
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

import httpx

from voicenotes.config import Settings
from voicenotes.errors import DownloadFailed, FileTooLarge, TelegramError, UnsupportedFormat
from voicenotes.models.enums import AudioKind
from voicenotes.schemas.voice_note import DownloadedAudio, IncomingVoiceNote

if TYPE_CHECKING:
    from voicenotes.services.telegram import TelegramClient

logger = logging.getLogger(__name__)

STALE_FILE_AGE = 60 * 60  # seconds

EXTENSION_BY_MIME: dict[str, str] = {
    "audio/ogg": "ogg",
    "audio/mpeg": "mp3",
    "audio/wav": "wav",
    "audio/mp4": "mp4",
    "audio/webm": "webm",
    "audio/x-wav": "wav",
    "audio/x-mpeg": "mp3",
}

MIME_BY_EXTENSION: dict[str, str] = {
    "ogg": "audio/ogg",
    "oga": "audio/ogg",
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "mp4": "audio/mp4",
    "m4a": "audio/mp4",
    "webm": "audio/webm",
}


def extension_for_mime(mime_type: str | None) -> str:
    return EXTENSION_BY_MIME.get(mime_type or "", "audio")


def mime_for_path(path: str) -> str:
    """Infer a mime type from the extension of a remote or local path."""
    extension = Path(path).suffix.lstrip(".").lower()
    return MIME_BY_EXTENSION.get(extension, "audio/unknown")


def format_file_size(size: int) -> str:
    """Format a byte count for humans, e.g. 1536 -> '1.5 KB'."""
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    exponent = 0
    while size >= 1024 ** (exponent + 1) and exponent < len(units) - 1:
        exponent += 1
    value = round(size / 1024**exponent, 2)
    return f"{value:g} {units[exponent]}"


def format_duration(seconds: float | None) -> str:
    """Format seconds as m:ss."""
    if not seconds:
        return "0:00"
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}:{secs:02d}"


class FileHandler:
    """Downloads Telegram audio into uniquely named scratch files."""

    def __init__(self, settings: Settings, telegram: "TelegramClient | None" = None):
        self.settings = settings
        self.telegram = telegram
        self.scratch_dir = Path(settings.scratch_dir)
        self.max_size = settings.max_file_size_bytes

    def declared_mime_type(self, incoming: IncomingVoiceNote) -> str | None:
        """Mime type of the message, defaulting voice notes to OGG/Opus."""
        if incoming.mime_type:
            return incoming.mime_type
        if incoming.kind == AudioKind.VOICE:
            return "audio/ogg"
        return None

    def validate(self, incoming: IncomingVoiceNote) -> None:
        """Check the declared size and format before anything is transferred.

        Raises:
            FileTooLarge: declared size above the configured ceiling
            UnsupportedFormat: mime type missing or not allow-listed
        """
        if incoming.file_size > self.max_size:
            raise FileTooLarge(f"{incoming.file_size} bytes > {self.max_size} bytes")
        mime_type = self.declared_mime_type(incoming)
        if mime_type not in self.settings.supported_audio_types:
            raise UnsupportedFormat(f"unsupported format: {mime_type}")

    @contextmanager
    def scratch_file(self, incoming: IncomingVoiceNote) -> Iterator[Path]:
        """Yield a unique scratch path and delete the file on exit.

        Deletion happens on success, on error and on task cancellation.
        """
        self.scratch_dir.mkdir(parents=True, exist_ok=True)
        extension = extension_for_mime(self.declared_mime_type(incoming))
        unique_id = incoming.file_unique_id or incoming.file_id
        path = self.scratch_dir / f"telegram_{unique_id}_{uuid.uuid4().hex}.{extension}"
        try:
            yield path
        finally:
            self.cleanup(path)

    def cleanup(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
            logger.debug(f"Scratch file deleted: {path}")
        except OSError as e:
            logger.warning(f"Could not delete scratch file {path}: {e}")

    def cleanup_stale_files(self, max_age: float = STALE_FILE_AGE) -> int:
        """Delete scratch files older than `max_age` seconds.

        Returns:
            Number of files removed
        """
        if not self.scratch_dir.exists():
            return 0
        cutoff = time.time() - max_age
        removed = 0
        for path in self.scratch_dir.iterdir():
            try:
                if path.is_file() and path.stat().st_mtime < cutoff:
                    path.unlink()
                    removed += 1
            except OSError as e:
                logger.warning(f"Could not delete stale scratch file {path}: {e}")
        if removed:
            logger.info(f"Removed {removed} stale scratch files from {self.scratch_dir}")
        return removed

    async def download(self, incoming: IncomingVoiceNote, destination: Path) -> DownloadedAudio:
        """Fetch the audio referenced by `incoming` into `destination`.

        The size reported by Telegram is checked again before the transfer,
        and the stream is aborted as soon as it exceeds the ceiling.
        """
        if self.telegram is None:
            raise DownloadFailed("Telegram client is not configured")

        try:
            file_info = await self.telegram.get_file(incoming.file_id)
        except (httpx.HTTPError, TelegramError) as e:
            raise DownloadFailed(f"getFile failed for {incoming.file_id}: {e}") from e

        remote_path = file_info.get("file_path")
        if not remote_path:
            raise DownloadFailed(f"Telegram returned no file path for {incoming.file_id}")
        reported_size = file_info.get("file_size") or 0
        if reported_size > self.max_size:
            raise FileTooLarge(f"{reported_size} bytes > {self.max_size} bytes")

        written = 0
        try:
            async with self.telegram.stream_file(remote_path) as response:
                with destination.open("wb") as out:
                    async for chunk in response.aiter_bytes():
                        written += len(chunk)
                        if written > self.max_size:
                            raise FileTooLarge(f"stream exceeded {self.max_size} bytes")
                        out.write(chunk)
        except (httpx.HTTPError, OSError) as e:
            raise DownloadFailed(f"download of {remote_path} failed: {e}") from e

        logger.info(f"Downloaded {remote_path} ({format_file_size(written)}) to {destination}")
        return DownloadedAudio(
            path=destination,
            file_size=written,
            mime_type=incoming.mime_type or mime_for_path(remote_path),
        )
