"""Pydantic schemas for the voice note pipeline."""

from voicenotes.schemas.analysis import ClassificationResult, ConfidenceScores, ExtractedDate
from voicenotes.schemas.telegram import TelegramUpdate
from voicenotes.schemas.transcript import Transcript
from voicenotes.schemas.voice_note import (
    DownloadedAudio,
    IncomingVoiceNote,
    PipelineResult,
    SenderInfo,
    VoiceNoteRecord,
)

__all__ = [
    "ClassificationResult",
    "ConfidenceScores",
    "ExtractedDate",
    "TelegramUpdate",
    "Transcript",
    "DownloadedAudio",
    "IncomingVoiceNote",
    "PipelineResult",
    "SenderInfo",
    "VoiceNoteRecord",
]
