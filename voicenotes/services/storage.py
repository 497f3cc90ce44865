"""Persistence gateway for processed voice notes."""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from voicenotes.errors import PersistenceFailed
from voicenotes.models.voice_note import VoiceNote
from voicenotes.schemas.voice_note import VoiceNoteRecord

logger = logging.getLogger(__name__)


def record_to_model(record: VoiceNoteRecord) -> VoiceNote:
    """Map a pipeline record onto a new ORM row."""
    classification = record.classification
    return VoiceNote(
        audio_data=record.audio_data,
        audio_mime_type=record.audio_mime_type,
        file_size=record.file_size,
        duration_seconds=record.duration_seconds,
        telegram_message_id=record.telegram_message_id,
        telegram_chat_id=record.telegram_chat_id,
        telegram_user_id=record.sender.user_id,
        telegram_username=record.sender.username,
        sender_name=record.sender.display_name,
        transcription=record.transcript.text,
        transcription_confidence=record.transcript.confidence,
        language_code=record.transcript.language_code,
        category=classification.category.value,
        sentiment=classification.sentiment.value,
        priority_level=classification.priority,
        reasoning=classification.reasoning,
        confidence_scores=classification.confidence_scores.model_dump(),
        extracted_dates=[d.model_dump(mode="json") for d in record.extracted_dates],
        suggested_dates=[d.model_dump() for d in classification.suggested_dates],
        analysis_source=classification.source,
        analysis_error=classification.error.value if classification.error else None,
        needs_review=record.needs_review,
        status=record.status.value,
        received_at=record.received_at,
    )


class VoiceNoteStore:
    """Writes voice note records and assigns their durable ids."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self.session_factory = session_factory

    def insert(self, record: VoiceNoteRecord) -> int:
        """Insert a record and return its id.

        Raises:
            PersistenceFailed: any database error; the transaction is rolled back
        """
        db: Session = self.session_factory()
        try:
            voice_note = record_to_model(record)
            db.add(voice_note)
            db.commit()
            db.refresh(voice_note)
            logger.info(
                f"Voice note {voice_note.id} saved for {record.sender.display_name} "
                f"({voice_note.category}, review={voice_note.needs_review})"
            )
            return voice_note.id
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to save voice note: {e}", exc_info=True)
            raise PersistenceFailed(str(e)) from e
        finally:
            db.close()

    def get(self, voice_note_id: int) -> VoiceNote | None:
        db: Session = self.session_factory()
        try:
            return db.get(VoiceNote, voice_note_id)
        finally:
            db.close()
