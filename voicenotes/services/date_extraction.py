"""Extraction of calendar-relevant date and time mentions from Italian text."""

import calendar
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from dateparser.search import search_dates

from voicenotes.config import Settings
from voicenotes.models.enums import DateSource, DateType
from voicenotes.schemas.analysis import ExtractedDate

logger = logging.getLogger(__name__)

MAX_DATES = 5
CUSTOM_PATTERN_CONFIDENCE = 0.7

WEEKDAYS_IT = ["lunedì", "martedì", "mercoledì", "giovedì", "venerdì", "sabato", "domenica"]
MONTHS_IT = [
    "gennaio", "febbraio", "marzo", "aprile", "maggio", "giugno",
    "luglio", "agosto", "settembre", "ottobre", "novembre", "dicembre",
]  # fmt: skip

# Checked in order over the whole text, first match wins.
DATE_TYPE_KEYWORDS: list[tuple[DateType, list[str]]] = [
    (DateType.APPOINTMENT, ["appuntament", "visit", "control", "consulta", "incontro"]),
    (DateType.DEADLINE, ["entro", "scadenza", "deadline", "termine", "limite"]),
    (DateType.DELIVERY, ["arriv", "consegn", "pronto", "ritir"]),
    (DateType.REMINDER, ["ricordar", "promemoria", "non dimenticar", "da fare"]),
]

# A parser hit must carry a digit or one of these words to count as a date.
CALENDAR_WORDS = re.compile(
    r"\b(?:luned|marted|mercoled|gioved|venerd|sabato|domenica|gennaio|febbraio|marzo"
    r"|aprile|maggio|giugno|luglio|agosto|settembre|ottobre|novembre|dicembre|oggi"
    r"|domani|dopodomani|ieri|settiman|mese|mesi|anno|mattin|pomeriggio|sera|notte"
    r"|stamattina|stasera|stanotte|mezzogiorno|mezzanotte)",
    re.IGNORECASE,
)
NUMERIC_DATE = re.compile(r"\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}")
CLOCK_TIME = re.compile(r"\b\d{1,2}[:.]\d{2}\b|\b(?:alle|ore)\s+\d{1,2}\b", re.IGNORECASE)

CLOCK = r"\b(?:alle|verso\s+le|per\s+le|ore)\s+(?P<hour>\d{1,2})(?:[:.](?P<minute>\d{2}))?\b"
TIME = r"(?:\s+(?:alle|verso\s+le|per\s+le|ore)\s+(?P<hour>\d{1,2})(?:[:.](?P<minute>\d{2}))?)?"

# dateparser reads the hour of "20 ottobre alle 18" as the year, so clock
# clauses are hidden from it and applied to its hits afterwards.
CLOCK_CLAUSE = re.compile(CLOCK, re.IGNORECASE)
CLAUSE_GAP = re.compile(r"[\s,]*")
MAX_YEAR_DISTANCE = 5

WEEKDAY_INDEX = {
    "luned": 0,
    "marted": 1,
    "mercoled": 2,
    "gioved": 3,
    "venerd": 4,
    "sabato": 5,
    "domenica": 6,
}
DAY_OFFSETS = {"oggi": 0, "domani": 1, "dopodomani": 2, "ieri": -1}
PART_OF_DAY_HOURS = {"stamattina": 9, "nel pomeriggio": 15, "stasera": 19, "stanotte": 22}
OFFSET_UNITS = {
    "or": "hours",
    "giorn": "days",
    "settiman": "weeks",
    "minut": "minutes",
}


def _with_time(base: datetime, match: re.Match) -> datetime:
    """Apply the optional "alle H[:MM]" suffix, keeping the clock time otherwise."""
    hour = match.groupdict().get("hour")
    if hour is None:
        return base
    minute = match.groupdict().get("minute") or "0"
    return base.replace(hour=int(hour), minute=int(minute), second=0, microsecond=0)


def _add_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def _resolve_relative_day(match: re.Match, reference: datetime) -> datetime:
    offset = DAY_OFFSETS[match.group("word").lower()]
    return _with_time(reference + timedelta(days=offset), match)


def _resolve_weekday(match: re.Match, reference: datetime) -> datetime:
    word = match.group("word").lower()
    target = next(index for stem, index in WEEKDAY_INDEX.items() if word.startswith(stem))
    delta = (target - reference.weekday()) % 7 or 7
    return _with_time(reference + timedelta(days=delta), match)


def _resolve_offset(match: re.Match, reference: datetime) -> datetime:
    amount = int(match.group("amount"))
    unit = match.group("unit").lower()
    for stem, name in OFFSET_UNITS.items():
        if unit.startswith(stem):
            return reference + timedelta(**{name: amount})
    raise ValueError(f"unknown unit {unit!r}")


def _resolve_next_week(match: re.Match, reference: datetime) -> datetime:
    return reference + timedelta(days=7)


def _resolve_next_month(match: re.Match, reference: datetime) -> datetime:
    return _add_months(reference, 1)


def _resolve_part_of_day(match: re.Match, reference: datetime) -> datetime:
    word = re.sub(r"\s+", " ", match.group("word").lower())
    return reference.replace(hour=PART_OF_DAY_HOURS[word], minute=0, second=0, microsecond=0)


def _resolve_clock(match: re.Match, reference: datetime) -> datetime:
    resolved = _with_time(reference, match)
    if resolved < reference:
        resolved += timedelta(days=1)
    return resolved


def _resolve_numeric_date(match: re.Match, reference: datetime) -> datetime:
    year = int(match.group("year"))
    if year < 100:
        year += 2000
    month = int(match.group("month"))
    base = reference.replace(year=year, month=month, day=int(match.group("day")))
    return _with_time(base, match)


@dataclass(frozen=True)
class DatePattern:
    name: str
    regex: re.Pattern[str]
    resolve: Callable[[re.Match, datetime], datetime]


def _pattern(name: str, regex: str, resolve: Callable[[re.Match, datetime], datetime]):
    return DatePattern(name, re.compile(regex, re.IGNORECASE), resolve)


DATE_PATTERNS: list[DatePattern] = [
    _pattern(
        "relative_day",
        r"\b(?P<word>dopodomani|domani|oggi|ieri)\b" + TIME,
        _resolve_relative_day,
    ),
    _pattern(
        "weekday",
        r"\b(?P<word>luned[iì]|marted[iì]|mercoled[iì]|gioved[iì]|venerd[iì]"
        r"|sabato|domenica)\b(?:\s+prossim[oa])?"
        + TIME,
        _resolve_weekday,
    ),
    _pattern(
        "offset",
        r"\b(?:fra|tra)\s+(?P<amount>\d+)\s+"
        r"(?P<unit>ore|ora|giorni|giorno|settimane|settimana|minuti|minuto)\b",
        _resolve_offset,
    ),
    _pattern(
        "next_week",
        r"\b(?:settimana\s+prossima|prossima\s+settimana)\b",
        _resolve_next_week,
    ),
    _pattern("next_month", r"\b(?:mese\s+prossimo|prossimo\s+mese)\b", _resolve_next_month),
    _pattern(
        "part_of_day",
        r"\b(?P<word>stamattina|stasera|stanotte|nel\s+pomeriggio)\b",
        _resolve_part_of_day,
    ),
    _pattern("clock", CLOCK, _resolve_clock),
    _pattern(
        "numeric_date",
        r"\b(?P<day>\d{1,2})(?P<sep>[/.\-])(?P<month>\d{1,2})(?P=sep)(?P<year>\d{4}|\d{2})\b"
        + TIME,
        _resolve_numeric_date,
    ),
]


@dataclass
class _Candidate:
    date: ExtractedDate
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start

    def overlaps(self, other: "_Candidate") -> bool:
        return self.start < other.end and other.start < self.end


def classify_date_type(text: str) -> DateType:
    """Functional type of the dates mentioned in a text."""
    lowered = text.lower()
    for date_type, keywords in DATE_TYPE_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return date_type
    return DateType.GENERAL


def parser_confidence(hit: str) -> float:
    """Confidence of a generic parser hit."""
    confidence = 0.6
    if NUMERIC_DATE.search(hit):
        confidence += 0.3
    if CLOCK_TIME.search(hit):
        confidence += 0.2
    if len(hit.strip()) < 4:
        confidence -= 0.1
    return round(min(1.0, max(0.1, confidence)), 2)


def is_date_fragment(hit: str) -> bool:
    """Check if a parser hit is noise such as a bare number."""
    stripped = hit.strip()
    if not stripped or stripped.isdigit():
        return True
    return not any(char.isdigit() for char in stripped) and not CALENDAR_WORDS.search(stripped)


def _following_clause(text: str, end: int, clauses: list[re.Match]) -> re.Match | None:
    """Clock clause that directly follows position `end`, if any."""
    for clause in clauses:
        if clause.start() >= end and CLAUSE_GAP.fullmatch(text, end, clause.start()):
            return clause
    return None


def format_extracted_date(value: datetime) -> str:
    """Italian long form, e.g. 'venerdì 17 ottobre 2025, 15:00'."""
    return (
        f"{WEEKDAYS_IT[value.weekday()]} {value.day} {MONTHS_IT[value.month - 1]} "
        f"{value.year}, {value.hour:02d}:{value.minute:02d}"
    )


class DateExtractionService:
    """Finds dates in transcripts with dateparser plus Italian patterns."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.zone = ZoneInfo(settings.timezone)

    def _local_reference(self, reference: datetime | None) -> datetime:
        """Reference instant as a naive datetime in the configured zone."""
        if reference is None:
            return datetime.now(self.zone).replace(tzinfo=None)
        if reference.tzinfo is None:
            return reference
        return reference.astimezone(self.zone).replace(tzinfo=None)

    def extract_dates(self, text: str, reference: datetime | None = None) -> list[ExtractedDate]:
        """Extract at most five dates, one per hour, by decreasing confidence."""
        if not text or not text.strip():
            return []
        local_reference = self._local_reference(reference)
        date_type = classify_date_type(text)

        candidates = self._parser_pass(text, local_reference, date_type)
        candidates += self._pattern_pass(text, local_reference, date_type)

        dates = self._merge(candidates)
        logger.info(
            f"Found {len(dates)} date(s): "
            f"{[(d.text, d.parsed_date.isoformat(timespec='minutes')) for d in dates]}"
        )
        return dates

    def _parser_pass(
        self, text: str, reference: datetime, date_type: DateType
    ) -> list[_Candidate]:
        clauses = list(CLOCK_CLAUSE.finditer(text))
        masked = CLOCK_CLAUSE.sub(lambda m: " " * len(m.group(0)), text)
        try:
            hits = search_dates(
                masked,
                languages=["it"],
                settings={
                    "RELATIVE_BASE": reference,
                    "PREFER_DATES_FROM": "future",
                    "RETURN_AS_TIMEZONE_AWARE": False,
                    "DATE_ORDER": "DMY",
                },
            )
        except (ValueError, TypeError, OverflowError) as e:
            logger.warning(f"Date parser failed on transcript: {e}")
            return []

        candidates = []
        cursor = 0
        lowered = masked.lower()
        for hit, parsed in hits or []:
            hit = hit.strip()
            start = lowered.find(hit.lower(), cursor)
            if start == -1:
                start = lowered.find(hit.lower())
            if start == -1:
                continue
            end = start + len(hit)
            cursor = end
            if is_date_fragment(hit):
                continue
            if abs(parsed.year - reference.year) > MAX_YEAR_DISTANCE:
                logger.debug(f"Ignoring parser hit {hit!r}: implausible year {parsed.year}")
                continue

            clause = _following_clause(text, end, clauses)
            if clause is not None:
                try:
                    parsed = _with_time(parsed, clause)
                except ValueError as e:
                    logger.warning(f"Skipping malformed time {clause.group(0)!r}: {e}")
                    continue
                end = clause.end()

            span = text[start:end]
            extracted = ExtractedDate(
                text=span,
                parsed_date=parsed.replace(tzinfo=self.zone),
                type=date_type,
                confidence=parser_confidence(span),
                source=DateSource.PARSER,
                original_index=start,
            )
            candidates.append(_Candidate(extracted, start, end))
        return candidates

    def _pattern_pass(
        self, text: str, reference: datetime, date_type: DateType
    ) -> list[_Candidate]:
        candidates = []
        for pattern in DATE_PATTERNS:
            for match in pattern.regex.finditer(text):
                try:
                    resolved = pattern.resolve(match, reference)
                except (ValueError, OverflowError) as e:
                    logger.warning(
                        f"Skipping malformed date {match.group(0)!r} ({pattern.name}): {e}"
                    )
                    continue
                extracted = ExtractedDate(
                    text=match.group(0),
                    parsed_date=resolved.replace(tzinfo=self.zone),
                    type=date_type,
                    confidence=CUSTOM_PATTERN_CONFIDENCE,
                    source=DateSource.CUSTOM_PATTERN,
                    original_index=match.start(),
                )
                candidates.append(_Candidate(extracted, match.start(), match.end()))
        return candidates

    def _merge(self, candidates: list[_Candidate]) -> list[ExtractedDate]:
        # Overlapping spans are the same mention: longest span, then custom
        # pattern, then higher confidence.
        ranked = sorted(
            candidates,
            key=lambda c: (
                -c.length,
                c.date.source != DateSource.CUSTOM_PATTERN,
                -c.date.confidence,
                c.start,
            ),
        )
        mentions: list[_Candidate] = []
        for candidate in ranked:
            if not any(candidate.overlaps(kept) for kept in mentions):
                mentions.append(candidate)
        mentions.sort(key=lambda c: c.start)

        by_hour: dict[datetime, ExtractedDate] = {}
        for mention in mentions:
            bucket = mention.date.parsed_date.replace(minute=0, second=0, microsecond=0)
            existing = by_hour.get(bucket)
            if existing is None or mention.date.confidence > existing.confidence:
                by_hour[bucket] = mention.date

        dates = sorted(by_hour.values(), key=lambda d: (-d.confidence, d.original_index))
        return dates[:MAX_DATES]
