"""Transcript schemas."""

from pydantic import BaseModel, Field


class TranscriptWord(BaseModel):
    """Word-level timing returned by the speech-to-text provider."""

    text: str
    start: int | None = None  # milliseconds
    end: int | None = None
    confidence: float | None = None


class Transcript(BaseModel):
    """Recognized text of a voice note."""

    text: str
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    language_code: str | None = None
    words: list[TranscriptWord] = Field(default_factory=list)
    audio_duration: float | None = None  # seconds
    provider_id: str | None = None


class TranscriptionStats(BaseModel):
    """Simple statistics about a transcript."""

    character_count: int
    word_count: int
    words_per_minute: int | None
    confidence: float
    duration: float | None
    language: str | None
