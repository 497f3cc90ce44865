"""Tests for transcript classification and confidence scoring."""

import json
from unittest.mock import AsyncMock

import httpx
import pytest

from voicenotes.errors import CompletionUnavailable, InvalidModelResponse
from voicenotes.models.enums import Category, Sentiment
from voicenotes.services.analysis import AnalysisService, fallback_classification
from voicenotes.services.llm import LLMService, extract_json_object

COMPLAINT = "Il cliente ha chiamato per un reclamo sugli occhiali"


def model_answer(**overrides) -> dict:
    answer = {
        "category_auto": "CLIENTE",
        "sentiment": "NEUTRALE",
        "priority_level": 2,
        "extracted_dates": [],
        "needs_review": False,
        "reasoning": "Reclamo di un cliente",
    }
    answer.update(overrides)
    return answer


def completion_transport(content: str, requests: list[httpx.Request] | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})

    return httpx.MockTransport(handler)


def make_service(settings, policy, content: str, requests=None) -> AnalysisService:
    llm = LLMService(settings, policy, completion_transport(content, requests))
    return AnalysisService(settings, llm)


class TestAnalyze:
    """Tests for AnalysisService.analyze."""

    @pytest.mark.asyncio
    async def test_classifies_fenced_answer(self, settings, no_sleep_policy):
        requests: list[httpx.Request] = []
        content = f"```json\n{json.dumps(model_answer())}\n```"
        service = make_service(settings, no_sleep_policy, content, requests)

        result = await service.analyze(COMPLAINT)

        assert result.category == Category.CLIENT
        assert result.sentiment == Sentiment.NEUTRAL
        assert result.priority == 2
        assert result.source == "model"
        assert result.confidence_scores.category == 0.7
        assert result.confidence_scores.sentiment == 0.5
        assert result.confidence_scores.priority == 0.7
        assert result.confidence_scores.dates == 0.9
        assert result.confidence_scores.overall == pytest.approx(0.6333, abs=1e-4)
        assert result.needs_review is False

        sent = json.loads(requests[0].content)
        assert requests[0].url.path == "/api/v1/chat/completions"
        assert requests[0].headers["authorization"] == "Bearer or-test-key"
        assert sent["messages"][0]["role"] == "system"
        assert COMPLAINT in sent["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_short_transcript_uses_fallback(self, settings):
        llm = AsyncMock(spec=LLMService)
        service = AnalysisService(settings, llm)

        result = await service.analyze("ok")

        assert result.source == "fallback"
        assert result.needs_review is True
        assert result.confidence_scores.overall == 0.1
        llm.generate_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_key_uses_fallback(self, settings):
        unconfigured = settings.model_copy(update={"openrouter_api_key": None})
        service = AnalysisService(unconfigured)

        result = await service.analyze(COMPLAINT)

        assert result == fallback_classification()

    @pytest.mark.asyncio
    async def test_prose_answer_is_invalid(self, settings, no_sleep_policy):
        service = make_service(settings, no_sleep_policy, "Non sono sicuro della categoria.")

        with pytest.raises(InvalidModelResponse):
            await service.analyze(COMPLAINT)

    @pytest.mark.asyncio
    async def test_rejected_key_is_unavailable(self, settings, no_sleep_policy):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": {"message": "No auth credentials found"}})

        llm = LLMService(settings, no_sleep_policy, httpx.MockTransport(handler))

        with pytest.raises(CompletionUnavailable):
            await AnalysisService(settings, llm).analyze(COMPLAINT)

        no_sleep_policy.sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_server_errors_are_retried_then_raised(self, settings, no_sleep_policy):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(502)

        llm = LLMService(settings, no_sleep_policy, httpx.MockTransport(handler))

        with pytest.raises(httpx.HTTPStatusError):
            await AnalysisService(settings, llm).analyze(COMPLAINT)

        assert len(calls) == 3


class TestBuildResult:
    """Tests for coercion of model answers."""

    def test_unknown_category_becomes_other(self, settings):
        result = AnalysisService(settings).build_result(
            model_answer(category_auto="MARKETING"), COMPLAINT
        )
        assert result.category == Category.OTHER
        assert result.needs_review is True

    def test_member_names_are_accepted(self, settings):
        result = AnalysisService(settings).build_result(
            model_answer(category_auto="client", sentiment="positive"), COMPLAINT
        )
        assert result.category == Category.CLIENT
        assert result.sentiment == Sentiment.POSITIVE

    @pytest.mark.parametrize("priority", [9, 0, "alta", None, True])
    def test_unusable_priority_becomes_medium(self, settings, priority):
        result = AnalysisService(settings).build_result(
            model_answer(priority_level=priority), COMPLAINT
        )
        assert result.priority == 3
        assert result.needs_review is True

    def test_numeric_string_priority(self, settings):
        result = AnalysisService(settings).build_result(
            model_answer(priority_level="4"), COMPLAINT
        )
        assert result.priority == 4

    def test_non_list_dates_are_coerced(self, settings):
        result = AnalysisService(settings).build_result(
            model_answer(extracted_dates="domani"), COMPLAINT
        )
        assert result.suggested_dates == []
        assert result.needs_review is True

    def test_model_dates_are_validated_and_capped(self, settings):
        valid = {"text": "domani", "parsed_date": "2025-10-14T10:00:00", "type": "appointment"}
        dates = [valid] * 7 + [{"text": "dopo"}, "venerdì"]
        result = AnalysisService(settings).build_result(
            model_answer(extracted_dates=dates), COMPLAINT
        )
        assert len(result.suggested_dates) == 5
        assert result.confidence_scores.dates == 0.7

    def test_missing_reasoning_gets_default(self, settings):
        result = AnalysisService(settings).build_result(model_answer(reasoning=""), COMPLAINT)
        assert result.reasoning == "Nessuna motivazione fornita"

    def test_model_review_flag_is_kept(self, settings):
        result = AnalysisService(settings).build_result(
            model_answer(needs_review="true"), COMPLAINT
        )
        assert result.needs_review is True

    def test_low_confidence_requires_review(self, settings):
        strict = settings.model_copy(update={"review_confidence_threshold": 0.9})
        result = AnalysisService(strict).build_result(model_answer(), COMPLAINT)
        assert result.needs_review is True


class TestScore:
    """Tests for lexical confidence scoring."""

    def test_urgent_high_priority(self, settings):
        scores = AnalysisService(settings).score(
            Category.URGENT, Sentiment.URGENT, 5, False, "Urgente, serve subito la montatura"
        )
        assert scores.category == pytest.approx(0.6)
        assert scores.sentiment == pytest.approx(0.7)
        assert scores.priority == 0.8

    def test_category_score_is_capped(self, settings):
        text = "cliente signora telefona chiama reclamo lamenta signor"
        scores = AnalysisService(settings).score(Category.CLIENT, Sentiment.NEUTRAL, 3, False, text)
        assert scores.category == 0.9
        assert scores.priority == 0.6

    def test_keywords_match_word_starts(self, settings):
        service = AnalysisService(settings)

        inside_words = service.score(
            Category.APPOINTMENTS, Sentiment.NEUTRAL, 2, False, "Chiama il fornitore per il colore"
        )
        hour = service.score(
            Category.APPOINTMENTS, Sentiment.NEUTRAL, 2, False, "Ci vediamo alle ore 15"
        )

        assert inside_words.category == pytest.approx(0.4)
        assert hour.category == pytest.approx(0.5)

    def test_weights_change_overall(self, settings):
        weighted = settings.model_copy(
            update={"confidence_weights": {"category": 1.0, "sentiment": 0.0, "priority": 0.0}}
        )
        scores = AnalysisService(weighted).score(
            Category.CLIENT, Sentiment.NEUTRAL, 2, False, COMPLAINT
        )
        assert scores.overall == 0.7

    def test_zero_weights_fall_back_to_average(self, settings):
        weighted = settings.model_copy(
            update={"confidence_weights": {"category": 0.0, "sentiment": 0.0, "priority": 0.0}}
        )
        scores = AnalysisService(weighted).score(
            Category.CLIENT, Sentiment.NEUTRAL, 2, False, COMPLAINT
        )
        assert scores.overall == pytest.approx(0.6333, abs=1e-4)


class TestExtractJsonObject:
    """Tests for pulling a JSON object out of model text."""

    def test_plain_object(self):
        assert extract_json_object('{"a": 1}') == {"a": 1}

    def test_object_surrounded_by_prose(self):
        text = 'Ecco la risposta: {"a": {"b": [1, 2]}} Spero sia utile. {"c": 3}'
        assert extract_json_object(text) == {"a": {"b": [1, 2]}}

    def test_braces_inside_strings(self):
        text = '{"reasoning": "usa {parentesi} e \\"virgolette\\"", "ok": true}'
        assert extract_json_object(text) == {
            "reasoning": 'usa {parentesi} e "virgolette"',
            "ok": True,
        }

    def test_unterminated_object(self):
        with pytest.raises(InvalidModelResponse):
            extract_json_object('{"a": 1')

    def test_invalid_json(self):
        with pytest.raises(InvalidModelResponse):
            extract_json_object("{'a': 1}")
