"""Voice note pipeline: download, transcribe, analyze, persist."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

from sqlalchemy.orm import Session, sessionmaker

from voicenotes.config import Settings
from voicenotes.errors import ErrorKind, VoiceNoteError, classify_error, user_message
from voicenotes.models.enums import PipelineState, VoiceNoteStatus
from voicenotes.schemas.analysis import AnalysisMetadata, ClassificationResult, ExtractedDate
from voicenotes.schemas.transcript import Transcript
from voicenotes.schemas.voice_note import IncomingVoiceNote, PipelineResult, VoiceNoteRecord
from voicenotes.services.analysis import AnalysisService, fallback_classification
from voicenotes.services.date_extraction import DateExtractionService
from voicenotes.services.file_handler import FileHandler
from voicenotes.services.storage import VoiceNoteStore
from voicenotes.services.telegram import TelegramClient
from voicenotes.services.transcription import TranscriptionService

logger = logging.getLogger(__name__)

StatusCallback = Callable[[PipelineState], Awaitable[None]]

SUCCESS_MESSAGE = "✅ *Nota vocale salvata!*"


class VoiceNotePipeline:
    """Runs one voice note through every stage and reports the outcome.

    Typed failures become a FAILED result with the matching user message.
    A failed analysis does not fail the note: the fallback classification
    is stored and the note is flagged for review.
    """

    def __init__(
        self,
        settings: Settings,
        file_handler: FileHandler,
        transcriber: TranscriptionService,
        analyzer: AnalysisService,
        date_extractor: DateExtractionService,
        store: VoiceNoteStore,
    ):
        self.settings = settings
        self.file_handler = file_handler
        self.transcriber = transcriber
        self.analyzer = analyzer
        self.date_extractor = date_extractor
        self.store = store

    @classmethod
    def build(
        cls,
        settings: Settings,
        telegram: TelegramClient,
        session_factory: sessionmaker[Session],
    ) -> "VoiceNotePipeline":
        """Wire the production services from configuration."""
        return cls(
            settings=settings,
            file_handler=FileHandler(settings, telegram),
            transcriber=TranscriptionService(settings),
            analyzer=AnalysisService(settings),
            date_extractor=DateExtractionService(settings),
            store=VoiceNoteStore(session_factory),
        )

    async def _transition(
        self, incoming: IncomingVoiceNote, state: PipelineState, on_status: StatusCallback | None
    ) -> None:
        logger.info(f"Voice note {incoming.chat_id}/{incoming.message_id}: {state.value}")
        if on_status is None:
            return
        try:
            await on_status(state)
        except Exception as e:
            logger.warning(f"Status callback failed for state {state.value}: {e}", exc_info=True)

    async def process(
        self, incoming: IncomingVoiceNote, on_status: StatusCallback | None = None
    ) -> PipelineResult:
        """Process one incoming voice note.

        The scratch file is removed on every exit path. Cancellation is
        propagated once cleanup has run.
        """
        state = PipelineState.RECEIVED
        await self._transition(incoming, state, on_status)

        transcript: Transcript | None = None
        classification: ClassificationResult | None = None
        dates: list[ExtractedDate] = []
        warnings: list[ErrorKind] = []

        try:
            self.file_handler.validate(incoming)

            with self.file_handler.scratch_file(incoming) as scratch_path:
                state = PipelineState.DOWNLOADING
                await self._transition(incoming, state, on_status)
                audio = await self.file_handler.download(incoming, scratch_path)

                state = PipelineState.TRANSCRIBING
                await self._transition(incoming, state, on_status)
                transcript = await self.transcriber.transcribe(audio.path, incoming.duration)

                state = PipelineState.ANALYZING
                await self._transition(incoming, state, on_status)
                classification, dates = await self._analyze(incoming, transcript, warnings)

                state = PipelineState.PERSISTING
                await self._transition(incoming, state, on_status)
                record = VoiceNoteRecord(
                    audio_data=audio.path.read_bytes(),
                    audio_mime_type=audio.mime_type,
                    file_size=audio.file_size,
                    duration_seconds=incoming.duration or transcript.audio_duration or 0,
                    telegram_message_id=str(incoming.message_id),
                    telegram_chat_id=str(incoming.chat_id),
                    sender=incoming.sender,
                    transcript=transcript,
                    classification=classification,
                    extracted_dates=dates,
                    needs_review=classification.needs_review,
                    status=VoiceNoteStatus.PENDING,
                    received_at=incoming.sent_at or datetime.now(UTC),
                )
                record_id = await asyncio.to_thread(self.store.insert, record)

        except VoiceNoteError as e:
            logger.warning(
                f"Voice note {incoming.message_id} failed while {state.value}: "
                f"{e.kind.value} ({'permanent' if e.permanent else 'transient'}): {e.detail}"
            )
            return await self._fail(incoming, e, transcript, classification, dates, on_status)
        except Exception as e:
            logger.exception(f"Unexpected error processing voice note {incoming.message_id}")
            return await self._fail(incoming, e, transcript, classification, dates, on_status)

        await self._transition(incoming, PipelineState.DONE, on_status)
        return PipelineResult(
            state=PipelineState.DONE,
            record_id=record_id,
            user_message=SUCCESS_MESSAGE,
            transcript=transcript,
            classification=classification,
            dates=dates,
            warnings=warnings,
        )

    async def _analyze(
        self, incoming: IncomingVoiceNote, transcript: Transcript, warnings: list[ErrorKind]
    ) -> tuple[ClassificationResult, list[ExtractedDate]]:
        """Classify and extract dates concurrently, degrading on failure."""
        metadata = AnalysisMetadata(
            duration=incoming.duration or transcript.audio_duration,
            confidence=transcript.confidence,
        )
        analysis_outcome, dates_outcome = await asyncio.gather(
            self.analyzer.analyze(transcript.text, metadata),
            asyncio.to_thread(self.date_extractor.extract_dates, transcript.text, incoming.sent_at),
            return_exceptions=True,
        )

        for outcome in (analysis_outcome, dates_outcome):
            if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
                raise outcome

        if isinstance(analysis_outcome, Exception):
            kind = classify_error(analysis_outcome)
            logger.warning(
                f"Analysis degraded to fallback ({kind.value}): {analysis_outcome!r}",
                exc_info=kind == ErrorKind.UNKNOWN,
            )
            classification = fallback_classification(error=kind)
            warnings.append(kind)
        else:
            classification = analysis_outcome

        if isinstance(dates_outcome, Exception):
            logger.warning(f"Date extraction failed: {dates_outcome!r}", exc_info=True)
            dates = []
        else:
            dates = dates_outcome

        return classification, dates

    async def _fail(
        self,
        incoming: IncomingVoiceNote,
        error: Exception,
        transcript: Transcript | None,
        classification: ClassificationResult | None,
        dates: list[ExtractedDate],
        on_status: StatusCallback | None,
    ) -> PipelineResult:
        kind = classify_error(error)
        await self._transition(incoming, PipelineState.FAILED, on_status)
        return PipelineResult(
            state=PipelineState.FAILED,
            error_kind=kind,
            user_message=user_message(kind, self.settings.max_file_size_mb),
            transcript=transcript,
            classification=classification,
            dates=dates,
        )
