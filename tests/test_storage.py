"""Tests for the voice note store."""

from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from voicenotes.errors import ErrorKind, PersistenceFailed
from voicenotes.models.enums import VoiceNoteStatus
from voicenotes.schemas.analysis import ClassificationResult, ConfidenceScores, ModelDate
from voicenotes.schemas.transcript import Transcript
from voicenotes.schemas.voice_note import SenderInfo, VoiceNoteRecord
from voicenotes.services.analysis import fallback_classification
from voicenotes.services.storage import VoiceNoteStore


def make_record(**overrides) -> VoiceNoteRecord:
    data = {
        "audio_data": b"OggS",
        "audio_mime_type": "audio/ogg",
        "file_size": 4,
        "duration_seconds": 3.5,
        "telegram_message_id": "17",
        "telegram_chat_id": "4242",
        "sender": SenderInfo(user_id="99", first_name="Lucia", last_name="Bianchi"),
        "transcript": Transcript(text="Ordinare lenti Varilux", confidence=0.88),
        "classification": ClassificationResult(
            priority=2,
            needs_review=False,
            reasoning="Ordine materiale",
            confidence_scores=ConfidenceScores(
                category=0.5, sentiment=0.5, priority=0.7, dates=0.9, overall=0.57
            ),
        ),
        "needs_review": False,
        "received_at": datetime(2025, 10, 13, 8, 0, tzinfo=UTC),
    }
    data.update(overrides)
    return VoiceNoteRecord(**data)


def test_insert_assigns_id(session_factory):
    store = VoiceNoteStore(session_factory)

    first = store.insert(make_record())
    second = store.insert(make_record(telegram_message_id="18"))

    assert second > first
    stored = store.get(first)
    assert stored.sender_name == "Lucia Bianchi"
    assert stored.telegram_username is None
    assert stored.transcription == "Ordinare lenti Varilux"
    assert stored.transcription_confidence == 0.88
    assert stored.status == VoiceNoteStatus.PENDING.value
    assert stored.extracted_dates == []
    assert stored.suggested_dates == []
    assert stored.created_at is not None


def test_insert_fallback_analysis(session_factory):
    store = VoiceNoteStore(session_factory)
    record = make_record(
        classification=fallback_classification(error=ErrorKind.INVALID_MODEL_RESPONSE),
        needs_review=True,
    )

    stored = store.get(store.insert(record))

    assert stored.category == "ALTRO"
    assert stored.needs_review is True
    assert stored.analysis_source == "fallback"
    assert stored.analysis_error == "invalid_model_response"


def test_insert_keeps_model_dates(session_factory):
    store = VoiceNoteStore(session_factory)
    classification = make_record().classification.model_copy(
        update={
            "suggested_dates": [
                ModelDate(text="venerdì", parsed_date="2025-10-17", type="consegna"),
                ModelDate(
                    text="alle 15",
                    parsed_date="2025-10-17T15:00",
                    type="appuntamento",
                    confidence=0.6,
                ),
            ]
        }
    )

    stored = store.get(store.insert(make_record(classification=classification)))

    assert stored.suggested_dates == [
        {"text": "venerdì", "parsed_date": "2025-10-17", "type": "consegna", "confidence": None},
        {
            "text": "alle 15",
            "parsed_date": "2025-10-17T15:00",
            "type": "appuntamento",
            "confidence": 0.6,
        },
    ]


def test_get_missing(session_factory):
    assert VoiceNoteStore(session_factory).get(999999) is None


def test_database_error_is_persistence_failure():
    session = MagicMock()
    session.commit.side_effect = OperationalError("INSERT", {}, Exception("database is locked"))
    store = VoiceNoteStore(lambda: session)

    with pytest.raises(PersistenceFailed) as exc_info:
        store.insert(make_record())

    assert exc_info.value.permanent is False
    session.rollback.assert_called_once()
    session.close.assert_called_once()
