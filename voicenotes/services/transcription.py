"""Speech-to-text through the AssemblyAI REST API."""

import asyncio
import logging
import re
from pathlib import Path
from typing import Any

import httpx

from voicenotes.config import Settings
from voicenotes.errors import EmptyTranscript, TranscriptionUnavailable
from voicenotes.schemas.transcript import Transcript, TranscriptionStats, TranscriptWord
from voicenotes.services.retry import RetryPolicy, is_auth_error, is_quota_error

logger = logging.getLogger(__name__)

# Vocabulary the recognizer should favor: optical brands, lens types,
# technical terms and frame parts.
WORD_BOOST: list[str] = [
    "Zeiss", "Essilor", "Hoya", "Ray-Ban", "Oakley", "Persol", "Prada", "Gucci",
    "Versace", "Tom Ford", "Armani", "Dolce e Gabbana", "Chanel", "Swarovski",
    "Luxottica", "Serengeti", "Bollé", "Miu Miu", "Rudy Project", "Arnette",
    "Vogue", "Bulgari", "Michael Kors",
    "progressive", "progressivi", "bifocali", "multifocali", "monofocali",
    "antiriflesso", "toriche", "Crizal", "Transitions", "polarizzate",
    "fotocromatiche", "Blue Control", "DriveSafe", "DuraVision", "Eyezen",
    "Varilux", "MiyoSmart", "Hoyalux", "PhotoFusion",
    "diottrie", "centratura", "distanza pupillare", "calibro", "cilindro",
    "addizione", "prisma", "sferico", "astigmatismo", "miopia", "ipermetropia",
    "presbiopia", "ambliopia", "strabismo", "cataratta", "glaucoma",
    "acetato", "titanio", "TR90", "aviator", "wayfarer", "Clubmaster",
    "montatura", "nasello", "plaquette", "cerniera", "stanghetta", "frontale",
    "controllo vista", "esame visivo", "refrazione", "tonometria", "pachimetria",
    "campo visivo", "OCT", "retinografia", "ortocheratologia", "cheratocono",
]  # fmt: skip

# Whole-word misrecognitions of domain terms.
CORRECTIONS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(pattern, re.IGNORECASE), replacement)
    for pattern, replacement in [
        (r"\b(?:zais|zeis|zaiss)\b", "Zeiss"),
        (r"\bessilor\b", "Essilor"),
        (r"\b(?:oja|hoja)\b", "Hoya"),
        (r"\bray ?ban\b", "Ray-Ban"),
        (r"\boakly\b", "Oakley"),
        (r"\bvarilux\b", "Varilux"),
        (r"\bcrizal\b", "Crizal"),
        (r"\bhoyalux\b", "Hoyalux"),
        (r"\bluxottica\b", "Luxottica"),
    ]
]

JOB_COMPLETED = "completed"
JOB_ERROR = "error"


def post_process(text: str) -> str:
    """Normalize a raw transcript.

    Collapses whitespace, fixes known misrecognitions, collapses repeated
    dots and commas, and removes whitespace before punctuation. Applying it
    twice gives the same result as applying it once.
    """
    if not text:
        return ""
    processed = re.sub(r"\s+", " ", text)
    for pattern, replacement in CORRECTIONS:
        processed = pattern.sub(replacement, processed)
    processed = re.sub(r"\.(?:\s*\.)+", ".", processed)
    processed = re.sub(r",(?:\s*,)+", ",", processed)
    processed = re.sub(r"\s+([.,!?])", r"\1", processed)
    return processed.strip()


def transcription_stats(transcript: Transcript) -> TranscriptionStats:
    """Count characters and words and estimate the speaking rate."""
    words = transcript.text.split()
    duration = transcript.audio_duration
    return TranscriptionStats(
        character_count=len(transcript.text),
        word_count=len(words),
        words_per_minute=round(len(words) / duration * 60) if duration else None,
        confidence=transcript.confidence,
        duration=duration,
        language=transcript.language_code,
    )


class TranscriptionService:
    """Uploads audio to AssemblyAI and waits for the Italian transcript."""

    def __init__(
        self,
        settings: Settings,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings
        self.api_key = settings.assemblyai_api_key
        self.base_url = settings.assemblyai_base_url
        self.retry_policy = retry_policy or RetryPolicy.from_settings(settings)
        self.transport = transport
        self.poll_interval = settings.transcription_poll_interval
        self.timeout = settings.transcription_timeout

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=30.0,
            transport=self.transport,
            headers={"authorization": self.api_key or ""},
        )

    async def transcribe(self, path: Path, duration: float | None = None) -> Transcript:
        """Transcribe an audio file.

        Raises:
            TranscriptionUnavailable: missing key, rejected credentials,
                exhausted quota (permanent) or retries exhausted (transient)
            EmptyTranscript: the provider could not use the audio, or the
                text is too short after post-processing
        """
        if not self.api_key:
            logger.error("Transcription misconfigured: ASSEMBLYAI_API_KEY is not set")
            raise TranscriptionUnavailable("AssemblyAI API key not configured", permanent=True)

        audio = path.read_bytes()
        logger.info(f"Transcribing {path.name} ({len(audio)} bytes)")

        try:
            data = await self.retry_policy.run(lambda: self._attempt(audio), "transcription")
        except httpx.HTTPStatusError as e:
            if is_auth_error(e) or is_quota_error(e):
                logger.error(
                    f"Transcription misconfigured: AssemblyAI rejected the request "
                    f"({e.response.status_code})"
                )
                raise TranscriptionUnavailable(str(e), permanent=True) from e
            raise TranscriptionUnavailable(str(e), permanent=False) from e
        except (httpx.HTTPError, TimeoutError) as e:
            logger.warning(f"Transcription temporarily unavailable: {e!r}")
            raise TranscriptionUnavailable(repr(e), permanent=False) from e

        transcript = self._to_transcript(data, duration)
        if len(transcript.text) < self.settings.min_transcript_length:
            raise EmptyTranscript(f"transcript too short: {transcript.text!r}")

        logger.info(
            f"Transcription completed: {len(transcript.text)} chars, "
            f"confidence {transcript.confidence:.2f}"
        )
        return transcript

    async def _attempt(self, audio: bytes) -> dict[str, Any]:
        """Upload, submit and poll one transcription job."""
        async with self._client() as client:
            upload = await client.post(
                f"{self.base_url}/upload",
                content=audio,
                headers={"content-type": "application/octet-stream"},
            )
            upload.raise_for_status()
            audio_url = upload.json()["upload_url"]

            submit = await client.post(
                f"{self.base_url}/transcript",
                json={
                    "audio_url": audio_url,
                    "language_code": self.settings.transcription_language,
                    "punctuate": True,
                    "format_text": True,
                    "word_boost": WORD_BOOST,
                },
            )
            submit.raise_for_status()
            job_id = submit.json()["id"]
            logger.debug(f"Transcription job {job_id} submitted")

            async with asyncio.timeout(self.timeout):
                return await self._poll(client, job_id)

    async def _poll(self, client: httpx.AsyncClient, job_id: str) -> dict[str, Any]:
        while True:
            response = await client.get(f"{self.base_url}/transcript/{job_id}")
            response.raise_for_status()
            data = response.json()
            status = data.get("status")
            if status == JOB_COMPLETED:
                return data
            if status == JOB_ERROR:
                raise EmptyTranscript(f"job {job_id} failed: {data.get('error', 'unknown')}")
            await asyncio.sleep(self.poll_interval)

    def _to_transcript(self, data: dict[str, Any], duration: float | None) -> Transcript:
        words = [
            TranscriptWord(
                text=word.get("text", ""),
                start=word.get("start"),
                end=word.get("end"),
                confidence=word.get("confidence"),
            )
            for word in data.get("words") or []
        ]
        return Transcript(
            text=post_process(data.get("text") or ""),
            confidence=data.get("confidence") or 0.0,
            language_code=data.get("language_code") or self.settings.transcription_language,
            words=words,
            audio_duration=data.get("audio_duration") or duration,
            provider_id=data.get("id"),
        )
