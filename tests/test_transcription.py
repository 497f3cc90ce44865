"""Tests for the transcription service."""

import json

import httpx
import pytest

from voicenotes.errors import EmptyTranscript, TranscriptionUnavailable
from voicenotes.schemas.transcript import Transcript
from voicenotes.services.transcription import (
    TranscriptionService,
    post_process,
    transcription_stats,
)

COMPLETED_JOB = {
    "id": "job-1",
    "status": "completed",
    "text": "Appuntamento  con il cliente zais domani .",
    "confidence": 0.91,
    "language_code": "it",
    "audio_duration": 4.2,
    "words": [{"text": "Appuntamento", "start": 0, "end": 640, "confidence": 0.95}],
}


class FakeAssemblyAI:
    """Scripted AssemblyAI endpoints recording every request."""

    def __init__(self, upload=None, polls=None):
        self.requests: list[httpx.Request] = []
        self.upload = list(upload or [])
        self.polls = list(polls or [COMPLETED_JOB])

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.endswith("/upload"):
            if self.upload:
                return self.upload.pop(0)
            return httpx.Response(200, json={"upload_url": "https://cdn.assemblyai.com/upload/1"})
        if request.method == "POST" and path.endswith("/transcript"):
            return httpx.Response(200, json={"id": "job-1", "status": "queued"})
        if path.endswith("/transcript/job-1"):
            return httpx.Response(200, json=self.polls.pop(0))
        return httpx.Response(404)

    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]


@pytest.fixture
def audio_file(tmp_path):
    path = tmp_path / "note.ogg"
    path.write_bytes(b"OggS fake audio")
    return path


class TestPostProcess:
    """Tests for transcript normalization."""

    def test_collapses_whitespace_and_punctuation(self):
        assert post_process("Ciao ,  mondo . .") == "Ciao, mondo."

    def test_fixes_brand_names(self):
        assert post_process("lenti zais e montatura ray ban") == "lenti Zeiss e montatura Ray-Ban"
        assert post_process("occhiali OAKLY") == "occhiali Oakley"

    def test_leaves_words_containing_brand_fragments(self):
        assert post_process("la ojala") == "la ojala"

    def test_is_idempotent(self):
        raw = "  Il cliente ,, vuole lenti  hoja .. e varilux !"
        once = post_process(raw)
        assert post_process(once) == once

    def test_empty_text(self):
        assert post_process("") == ""
        assert post_process("   ") == ""


class TestTranscribe:
    """Tests for TranscriptionService.transcribe."""

    @pytest.mark.asyncio
    async def test_uploads_submits_and_polls(self, settings, no_sleep_policy, audio_file):
        processing = {"id": "job-1", "status": "processing"}
        fake = FakeAssemblyAI(polls=[processing, COMPLETED_JOB])
        service = TranscriptionService(settings, no_sleep_policy, httpx.MockTransport(fake))

        transcript = await service.transcribe(audio_file, duration=4)

        assert transcript.text == "Appuntamento con il cliente Zeiss domani."
        assert transcript.confidence == 0.91
        assert transcript.audio_duration == 4.2
        assert transcript.provider_id == "job-1"
        assert transcript.words[0].text == "Appuntamento"
        assert fake.paths() == [
            "/v2/upload",
            "/v2/transcript",
            "/v2/transcript/job-1",
            "/v2/transcript/job-1",
        ]
        assert fake.requests[0].headers["authorization"] == "aai-test-key"
        assert fake.requests[0].content == b"OggS fake audio"

        submitted = json.loads(fake.requests[1].content)
        assert submitted["language_code"] == "it"
        assert submitted["audio_url"] == "https://cdn.assemblyai.com/upload/1"
        assert "Zeiss" in submitted["word_boost"]

    @pytest.mark.asyncio
    async def test_retries_server_errors(self, settings, no_sleep_policy, audio_file):
        fake = FakeAssemblyAI(upload=[httpx.Response(500), httpx.Response(500)])
        service = TranscriptionService(settings, no_sleep_policy, httpx.MockTransport(fake))

        transcript = await service.transcribe(audio_file)

        assert transcript.text.endswith("domani.")
        assert fake.paths().count("/v2/upload") == 3
        waits = [call.args[0] for call in no_sleep_policy.sleep.await_args_list]
        assert waits == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_exhausted_retries_are_transient(self, settings, no_sleep_policy, audio_file):
        fake = FakeAssemblyAI(upload=[httpx.Response(503) for _ in range(3)])
        service = TranscriptionService(settings, no_sleep_policy, httpx.MockTransport(fake))

        with pytest.raises(TranscriptionUnavailable) as exc_info:
            await service.transcribe(audio_file)

        assert exc_info.value.permanent is False
        assert fake.paths().count("/v2/upload") == 3

    @pytest.mark.asyncio
    async def test_rejected_key_is_permanent(self, settings, no_sleep_policy, audio_file):
        fake = FakeAssemblyAI(upload=[httpx.Response(401, json={"error": "Invalid API key"})])
        service = TranscriptionService(settings, no_sleep_policy, httpx.MockTransport(fake))

        with pytest.raises(TranscriptionUnavailable) as exc_info:
            await service.transcribe(audio_file)

        assert exc_info.value.permanent is True
        assert len(fake.requests) == 1
        no_sleep_policy.sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_key_makes_no_request(self, settings, no_sleep_policy, audio_file):
        unconfigured = settings.model_copy(update={"assemblyai_api_key": None})
        fake = FakeAssemblyAI()
        service = TranscriptionService(unconfigured, no_sleep_policy, httpx.MockTransport(fake))

        with pytest.raises(TranscriptionUnavailable) as exc_info:
            await service.transcribe(audio_file)

        assert exc_info.value.permanent is True
        assert fake.requests == []

    @pytest.mark.asyncio
    async def test_failed_job_is_empty_transcript(self, settings, no_sleep_policy, audio_file):
        failed = {"id": "job-1", "status": "error", "error": "Audio file has no audio stream"}
        fake = FakeAssemblyAI(polls=[failed])
        service = TranscriptionService(settings, no_sleep_policy, httpx.MockTransport(fake))

        with pytest.raises(EmptyTranscript):
            await service.transcribe(audio_file)

        assert fake.paths().count("/v2/upload") == 1

    @pytest.mark.asyncio
    async def test_short_transcript_is_empty(self, settings, no_sleep_policy, audio_file):
        fake = FakeAssemblyAI(polls=[{**COMPLETED_JOB, "text": " . "}])
        service = TranscriptionService(settings, no_sleep_policy, httpx.MockTransport(fake))

        with pytest.raises(EmptyTranscript):
            await service.transcribe(audio_file)


def test_transcription_stats():
    transcript = Transcript(
        text="uno due tre quattro", confidence=0.8, language_code="it", audio_duration=2.0
    )
    stats = transcription_stats(transcript)
    assert stats.word_count == 4
    assert stats.character_count == 19
    assert stats.words_per_minute == 120


def test_transcription_stats_without_duration():
    stats = transcription_stats(Transcript(text="ciao"))
    assert stats.words_per_minute is None
