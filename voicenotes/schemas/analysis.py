"""Classification and date extraction schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from voicenotes.errors import ErrorKind
from voicenotes.models.enums import Category, DateSource, DateType, Sentiment


class ConfidenceScores(BaseModel):
    """Per-field confidence of an analysis."""

    category: float = Field(ge=0.0, le=1.0)
    sentiment: float = Field(ge=0.0, le=1.0)
    priority: float = Field(ge=0.0, le=1.0)
    dates: float = Field(ge=0.0, le=1.0)
    overall: float = Field(ge=0.0, le=1.0)


class ModelDate(BaseModel):
    """A date mention as reported by the language model (unverified)."""

    text: str
    parsed_date: str
    type: str
    confidence: float | None = None


class ClassificationResult(BaseModel):
    """Category, sentiment and priority judgment for a transcript."""

    category: Category = Category.OTHER
    sentiment: Sentiment = Sentiment.NEUTRAL
    priority: int = Field(default=2, ge=1, le=5)
    needs_review: bool = True
    reasoning: str = ""
    suggested_dates: list[ModelDate] = Field(default_factory=list)
    confidence_scores: ConfidenceScores
    source: str = "model"  # model | fallback
    error: ErrorKind | None = None


class ExtractedDate(BaseModel):
    """A calendar-relevant date/time mention resolved to an absolute timestamp."""

    text: str
    parsed_date: datetime
    type: DateType = DateType.GENERAL
    confidence: float = Field(ge=0.0, le=1.0)
    source: DateSource
    original_index: int = 0


class AnalysisMetadata(BaseModel):
    """Transcription facts passed along to the classifier."""

    duration: float | None = None
    confidence: float | None = None
