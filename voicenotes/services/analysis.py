"""Classification and confidence scoring of transcripts."""

import logging
import re
from typing import Any

from voicenotes.config import Settings
from voicenotes.errors import ErrorKind
from voicenotes.models.enums import Category, Sentiment
from voicenotes.schemas.analysis import (
    AnalysisMetadata,
    ClassificationResult,
    ConfidenceScores,
    ModelDate,
)
from voicenotes.services.llm import LLMService
from voicenotes.services.llm_prompts import ANALYSIS_SYSTEM_PROMPT, get_analysis_prompt

logger = logging.getLogger(__name__)

MIN_ANALYSIS_LENGTH = 5
MAX_MODEL_DATES = 5
FALLBACK_CONFIDENCE = 0.1
DEFAULT_PRIORITY = 2
COERCED_PRIORITY = 3
DEFAULT_REASONING = "Nessuna motivazione fornita"
FALLBACK_REASONING = "Analisi AI non disponibile, revisione manuale necessaria"

# Word stems that corroborate the chosen category.
CATEGORY_KEYWORDS: dict[Category, list[str]] = {
    Category.CLIENT: ["cliente", "signor", "signora", "telefon", "chiama", "reclam", "lament"],
    Category.TECHNICAL: ["ripara", "aggiust", "rott", "problem", "manutenz", "sistemare"],
    Category.ADMINISTRATIVE: ["fattur", "document", "pratic", "ufficio", "admin"],
    Category.INVENTORY: ["ordin", "material", "stock", "fornitor", "arriva", "scort"],
    Category.APPOINTMENTS: ["appuntament", "visit", "control", "domani", "oggi", r"ore\b"],
    Category.URGENT: ["urgent", "subito", "immediat", "emergen", "problem"],
    Category.FOLLOW_UP: ["richiam", "ricontatt", "seguito", "verificar", "ricordar"],
}

# Word stems that corroborate the chosen sentiment.
SENTIMENT_KEYWORDS: dict[Sentiment, list[str]] = {
    Sentiment.ANGRY: ["maledett", "cazz", "merda", "odio", "rabbia"],
    Sentiment.FRUSTRATED: ["stress", "nervos", "irrit", "stufo", "basta"],
    Sentiment.CONCERNED: ["preoccup", "ansia", "problem", "paura", "timore"],
    Sentiment.POSITIVE: ["bene", "ottimo", "perfetto", "contento", "bravo"],
    Sentiment.URGENT: ["urgent", "subito", "veloce", "presto", "immediat"],
}

URGENCY_KEYWORDS = ["urgent", "subito", "presto", "immediat", "emergen"]


def fallback_classification(
    error: ErrorKind | None = None, reasoning: str = FALLBACK_REASONING
) -> ClassificationResult:
    """Low-confidence result used when the model cannot be consulted."""
    return ClassificationResult(
        category=Category.OTHER,
        sentiment=Sentiment.NEUTRAL,
        priority=DEFAULT_PRIORITY,
        needs_review=True,
        reasoning=reasoning,
        suggested_dates=[],
        confidence_scores=ConfidenceScores(
            category=FALLBACK_CONFIDENCE,
            sentiment=FALLBACK_CONFIDENCE,
            priority=FALLBACK_CONFIDENCE,
            dates=FALLBACK_CONFIDENCE,
            overall=FALLBACK_CONFIDENCE,
        ),
        source="fallback",
        error=error,
    )


def _count_hits(text: str, keywords: list[str]) -> int:
    """Count keywords that start a word in `text`."""
    return sum(1 for keyword in keywords if re.search(r"\b" + keyword, text))


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "si", "sì")
    return bool(value)


def _coerce_priority(value: Any) -> int | None:
    """Return the priority as an int in 1..5, or None when it is unusable."""
    if isinstance(value, bool):
        return None
    try:
        priority = int(value)
    except (TypeError, ValueError):
        return None
    return priority if 1 <= priority <= 5 else None


def _coerce_dates(value: Any) -> list[ModelDate]:
    if not isinstance(value, list):
        return []
    dates = []
    for entry in value:
        if not isinstance(entry, dict):
            continue
        if not all(isinstance(entry.get(key), str) for key in ("text", "parsed_date", "type")):
            continue
        confidence = entry.get("confidence")
        if not isinstance(confidence, (int, float)) or isinstance(confidence, bool):
            confidence = None
        dates.append(
            ModelDate(
                text=entry["text"],
                parsed_date=entry["parsed_date"],
                type=entry["type"],
                confidence=confidence,
            )
        )
        if len(dates) == MAX_MODEL_DATES:
            break
    return dates


class AnalysisService:
    """Classifies transcripts with the language model and scores the result."""

    def __init__(self, settings: Settings, llm: LLMService | None = None):
        self.settings = settings
        self.llm = llm or LLMService(settings)

    async def analyze(
        self, transcript: str, metadata: AnalysisMetadata | None = None
    ) -> ClassificationResult:
        """Classify a transcript.

        Returns the fallback result when the transcript is too short or no
        completion credential is configured.

        Raises:
            CompletionUnavailable: credentials rejected or quota exhausted
            InvalidModelResponse: the model did not answer with valid JSON
            httpx.HTTPError: transient failures once retries are exhausted
        """
        text = (transcript or "").strip()
        if len(text) < MIN_ANALYSIS_LENGTH:
            logger.info("Transcript too short for analysis, using fallback")
            return fallback_classification()
        if not self.llm.is_configured:
            logger.warning("Analysis skipped: OPENROUTER_API_KEY is not set")
            return fallback_classification()

        metadata = metadata or AnalysisMetadata()
        parsed = await self.llm.generate_json(
            prompt=get_analysis_prompt(text, metadata.duration, metadata.confidence),
            system_prompt=ANALYSIS_SYSTEM_PROMPT,
        )
        result = self.build_result(parsed, text)
        logger.info(
            f"Analysis completed: category={result.category.value}, "
            f"sentiment={result.sentiment.value}, priority={result.priority}, "
            f"overall={result.confidence_scores.overall:.2f}, review={result.needs_review}"
        )
        return result

    def build_result(self, parsed: dict[str, Any], transcript: str) -> ClassificationResult:
        """Coerce a parsed model answer into a validated result."""
        coerced = []

        category = Category.coerce(parsed.get("category_auto", parsed.get("category")))
        if category is None:
            coerced.append("category")
            category = Category.OTHER

        sentiment = Sentiment.coerce(parsed.get("sentiment"))
        if sentiment is None:
            coerced.append("sentiment")
            sentiment = Sentiment.NEUTRAL

        priority = _coerce_priority(parsed.get("priority_level", parsed.get("priority")))
        if priority is None:
            coerced.append("priority")
            priority = COERCED_PRIORITY

        raw_dates = parsed.get("extracted_dates")
        if raw_dates is not None and not isinstance(raw_dates, list):
            coerced.append("extracted_dates")
        dates = _coerce_dates(raw_dates)

        reasoning = parsed.get("reasoning")
        if not isinstance(reasoning, str) or not reasoning.strip():
            reasoning = DEFAULT_REASONING

        if coerced:
            logger.warning(f"Coerced model fields: {', '.join(coerced)}")

        scores = self.score(category, sentiment, priority, bool(dates), transcript)
        needs_review = (
            _coerce_bool(parsed.get("needs_review", False))
            or bool(coerced)
            or scores.overall < self.settings.review_confidence_threshold
        )
        return ClassificationResult(
            category=category,
            sentiment=sentiment,
            priority=priority,
            needs_review=needs_review,
            reasoning=reasoning,
            suggested_dates=dates,
            confidence_scores=scores,
        )

    def score(
        self,
        category: Category,
        sentiment: Sentiment,
        priority: int,
        has_dates: bool,
        transcript: str,
    ) -> ConfidenceScores:
        """Recompute per-field confidence from lexical cues in the transcript."""
        text = transcript.lower()

        category_hits = _count_hits(text, CATEGORY_KEYWORDS.get(category, []))
        category_score = min(0.9, 0.4 + 0.1 * category_hits)

        sentiment_hits = _count_hits(text, SENTIMENT_KEYWORDS.get(sentiment, []))
        sentiment_score = min(0.9, 0.5 + 0.1 * sentiment_hits)

        urgency_hits = _count_hits(text, URGENCY_KEYWORDS)
        if priority >= 4 and urgency_hits > 0:
            priority_score = 0.8
        elif priority <= 2 and urgency_hits == 0:
            priority_score = 0.7
        else:
            priority_score = 0.6

        dates_score = 0.7 if has_dates else 0.9

        weights = self.settings.confidence_weights
        parts = {
            "category": category_score,
            "sentiment": sentiment_score,
            "priority": priority_score,
        }
        total_weight = sum(weights.get(name, 1.0) for name in parts)
        if total_weight > 0:
            overall = sum(score * weights.get(name, 1.0) for name, score in parts.items())
            overall /= total_weight
        else:
            overall = sum(parts.values()) / len(parts)

        return ConfidenceScores(
            category=round(category_score, 4),
            sentiment=round(sentiment_score, 4),
            priority=priority_score,
            dates=dates_score,
            overall=round(overall, 4),
        )
