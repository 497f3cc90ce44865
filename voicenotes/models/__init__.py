"""SQLAlchemy models."""

from voicenotes.models.voice_note import VoiceNote

__all__ = ["VoiceNote"]
