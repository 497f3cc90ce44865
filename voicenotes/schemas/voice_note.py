"""Voice note schemas."""

from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field

from voicenotes.errors import ErrorKind
from voicenotes.models.enums import AudioKind, PipelineState, VoiceNoteStatus
from voicenotes.schemas.analysis import ClassificationResult, ExtractedDate
from voicenotes.schemas.transcript import Transcript


class SenderInfo(BaseModel):
    """Identity of the operator who sent the voice note."""

    user_id: str
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None

    @property
    def display_name(self) -> str:
        """Username when present, otherwise the full name."""
        if self.username:
            return self.username
        full_name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return full_name or f"utente {self.user_id}"


class IncomingVoiceNote(BaseModel):
    """An audio message received by the bot, before anything is downloaded."""

    file_id: str
    file_unique_id: str | None = None
    file_size: int = Field(default=0, ge=0)
    mime_type: str | None = None
    duration: float = Field(default=0, ge=0)
    kind: AudioKind = AudioKind.VOICE
    file_name: str | None = None
    chat_id: int
    message_id: int
    sender: SenderInfo
    sent_at: datetime | None = None


class DownloadedAudio(BaseModel):
    """Audio bytes stored in a scratch file."""

    path: Path
    file_size: int
    mime_type: str


class VoiceNoteRecord(BaseModel):
    """Everything the pipeline hands over to the persistence gateway."""

    audio_data: bytes
    audio_mime_type: str
    file_size: int
    duration_seconds: float
    telegram_message_id: str
    telegram_chat_id: str
    sender: SenderInfo
    transcript: Transcript
    classification: ClassificationResult
    extracted_dates: list[ExtractedDate] = Field(default_factory=list)
    needs_review: bool = True
    status: VoiceNoteStatus = VoiceNoteStatus.PENDING
    received_at: datetime


class PipelineResult(BaseModel):
    """Outcome of processing one voice note."""

    state: PipelineState
    record_id: int | None = None
    error_kind: ErrorKind | None = None
    user_message: str
    transcript: Transcript | None = None
    classification: ClassificationResult | None = None
    dates: list[ExtractedDate] = Field(default_factory=list)
    warnings: list[ErrorKind] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state == PipelineState.DONE

