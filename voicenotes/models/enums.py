"""Enums for model fields."""

from enum import Enum


class _Vocabulary(str, Enum):
    """Closed vocabulary that accepts either the stored value or the member name."""

    @classmethod
    def coerce(cls, value: object):
        """Return the matching member, or None when the value is out of vocabulary."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        key = value.strip().upper()
        for member in cls:
            if key in (member.value, member.name):
                return member
        return None


class Category(_Vocabulary):
    """Category assigned to a voice note."""

    CLIENT = "CLIENTE"  # clients, complaints, feedback
    TECHNICAL = "TECNICO"  # repairs, instrument maintenance
    ADMINISTRATIVE = "AMMINISTRATIVO"  # invoices, paperwork
    INVENTORY = "INVENTARIO"  # orders, stock, suppliers
    APPOINTMENTS = "APPUNTAMENTI"  # visits, eye exams, agenda
    URGENT = "URGENTE"
    FOLLOW_UP = "SEGUIRE"
    OTHER = "ALTRO"


class Sentiment(_Vocabulary):
    """Tone of the operator who recorded the note."""

    NEUTRAL = "NEUTRALE"
    CONCERNED = "PREOCCUPATO"
    FRUSTRATED = "FRUSTRATO"
    ANGRY = "ARRABBIATO"
    URGENT = "URGENTE"
    POSITIVE = "POSITIVO"


PRIORITY_LEVELS: dict[int, str] = {
    1: "MOLTO_BASSA",
    2: "BASSA",
    3: "MEDIA",
    4: "ALTA",
    5: "CRITICA",
}


class DateType(str, Enum):
    """Functional type of an extracted date."""

    APPOINTMENT = "appointment"
    DEADLINE = "deadline"
    DELIVERY = "delivery"
    REMINDER = "reminder"
    GENERAL = "general"


class DateSource(str, Enum):
    """Which extraction pass produced a date."""

    PARSER = "parser"
    CUSTOM_PATTERN = "custom_pattern"


class AudioKind(str, Enum):
    """How the audio reached the bot."""

    VOICE = "voice"
    AUDIO = "audio"
    DOCUMENT = "document"


class VoiceNoteStatus(str, Enum):
    """Review status of a stored voice note."""

    PENDING = "pending"
    COMPLETED = "completed"


class PipelineState(str, Enum):
    """Processing state of one voice note."""

    RECEIVED = "received"
    DOWNLOADING = "downloading"
    TRANSCRIBING = "transcribing"
    ANALYZING = "analyzing"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Check if no further transitions are possible."""
        return self in (PipelineState.DONE, PipelineState.FAILED)
