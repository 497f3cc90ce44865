"""Voice note model for transcribed and analyzed Telegram audio."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Float, Integer, LargeBinary, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from voicenotes.database import Base
from voicenotes.models.enums import VoiceNoteStatus
from voicenotes.models.mixins import TimestampMixin


class VoiceNote(Base, TimestampMixin):
    """A voice note captured by the Telegram bot, waiting for human triage."""

    __tablename__ = "voice_notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    # Audio
    audio_data: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    audio_mime_type: Mapped[str] = mapped_column(String(50), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    duration_seconds: Mapped[float] = mapped_column(Float, nullable=False, default=0)

    # Sender and message reference
    telegram_message_id: Mapped[str] = mapped_column(String(50), nullable=False)
    telegram_chat_id: Mapped[str] = mapped_column(String(50), nullable=False)
    telegram_user_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    telegram_username: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sender_name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Transcript
    transcription: Mapped[str] = mapped_column(Text, nullable=False)
    transcription_confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    language_code: Mapped[str | None] = mapped_column(String(10), nullable=True)

    # Analysis
    category: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    sentiment: Mapped[str] = mapped_column(String(20), nullable=False)
    priority_level: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    reasoning: Mapped[str | None] = mapped_column(Text, nullable=True)
    confidence_scores: Mapped[dict] = mapped_column(JSON, nullable=False)
    extracted_dates: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    suggested_dates: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    analysis_source: Mapped[str] = mapped_column(String(20), nullable=False, default="model")
    analysis_error: Mapped[str | None] = mapped_column(String(50), nullable=True)

    needs_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=VoiceNoteStatus.PENDING.value,
        index=True,
    )  # pending, completed
    received_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<VoiceNote(id={self.id}, category={self.category}, status={self.status})>"
