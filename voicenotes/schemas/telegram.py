"""Telegram Bot API update schemas (only the fields the bot reads)."""

from datetime import UTC, datetime

from pydantic import BaseModel, Field

from voicenotes.models.enums import AudioKind
from voicenotes.schemas.voice_note import IncomingVoiceNote, SenderInfo


class TelegramUser(BaseModel):
    id: int
    is_bot: bool = False
    first_name: str = ""
    last_name: str | None = None
    username: str | None = None


class TelegramChat(BaseModel):
    id: int
    type: str = "private"


class TelegramFile(BaseModel):
    """Voice, audio or document attachment."""

    file_id: str
    file_unique_id: str | None = None
    file_size: int | None = None
    mime_type: str | None = None
    duration: float | None = None
    file_name: str | None = None


class TelegramMessage(BaseModel):
    message_id: int
    date: int
    chat: TelegramChat
    from_user: TelegramUser | None = Field(default=None, alias="from")
    text: str | None = None
    voice: TelegramFile | None = None
    audio: TelegramFile | None = None
    document: TelegramFile | None = None


class TelegramUpdate(BaseModel):
    update_id: int
    message: TelegramMessage | None = None

    def audio_attachment(self) -> tuple[AudioKind, TelegramFile] | None:
        """Return the audio attachment of the message, if there is one.

        Documents count only when their mime type is audio/*.
        """
        message = self.message
        if message is None:
            return None
        if message.voice:
            return AudioKind.VOICE, message.voice
        if message.audio:
            return AudioKind.AUDIO, message.audio
        if message.document and (message.document.mime_type or "").startswith("audio/"):
            return AudioKind.DOCUMENT, message.document
        return None

    def to_incoming(self) -> IncomingVoiceNote | None:
        """Convert an audio message into the pipeline's input."""
        attachment = self.audio_attachment()
        if attachment is None or self.message is None or self.message.from_user is None:
            return None
        kind, file = attachment
        message = self.message
        user = message.from_user
        return IncomingVoiceNote(
            file_id=file.file_id,
            file_unique_id=file.file_unique_id,
            file_size=file.file_size or 0,
            mime_type=file.mime_type,
            duration=file.duration or 0,
            kind=kind,
            file_name=file.file_name,
            chat_id=message.chat.id,
            message_id=message.message_id,
            sender=SenderInfo(
                user_id=str(user.id),
                username=user.username,
                first_name=user.first_name,
                last_name=user.last_name,
            ),
            sent_at=datetime.fromtimestamp(message.date, tz=UTC),
        )
