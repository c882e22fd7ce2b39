"""Tests for the detector adapters, the shared cache and the timeout runner."""

import json
from unittest.mock import AsyncMock, MagicMock
from urllib.parse import parse_qs

import httpx
import pytest
import yaml

from conftest import StubDetector
from message_accuracy.assessment.text import tokenize_words
from message_accuracy.detectors import cefr
from message_accuracy.detectors.base import DetectorUnavailable, run_detector
from message_accuracy.detectors.cache import TTLCache, cache_key
from message_accuracy.detectors.cefr import CEFRVocabularyModel
from message_accuracy.detectors.dictionary import DictionarySpeller
from message_accuracy.detectors.grammar_service import GrammarServiceDetector, map_severity
from message_accuracy.detectors.llm_fluency import LLMFluencyScorer, heuristic_fluency
from message_accuracy.models.errors import ErrorKind, ErrorSeverity

LT_RESPONSE = {
    "matches": [
        {
            "message": "Possible spelling mistake found.",
            "shortMessage": "Spelling mistake",
            "offset": 2,
            "length": 7,
            "replacements": [{"value": "receive"}, {"value": "relieve"}],
            "context": {"text": "I recieve it", "offset": 2, "length": 7},
            "rule": {"id": "MORFOLOGIK_RULE_EN_US", "issueType": "misspelling", "category": {"id": "TYPOS"}},
        },
        {
            "message": "The verb 'was' does not agree with the subject.",
            "offset": 17,
            "length": 6,
            "replacements": [{"value": "we were"}],
            "context": {"text": "I recieve it, we was glad", "offset": 14, "length": 6},
            "rule": {"id": "EN_SVA", "issueType": "grammar", "category": {"id": "GRAMMAR"}},
        },
    ],
}


class TestCache:
    async def test_set_and_get(self):
        cache = TTLCache(ttl_seconds=60)
        await cache.set("k", 1)
        assert await cache.get("k") == 1
        assert await cache.get("missing") is None

    async def test_expired_entry(self):
        cache = TTLCache(ttl_seconds=60)
        await cache.set("k", 1, ttl_seconds=-1)
        assert await cache.get("k") is None
        assert len(cache) == 0

    async def test_eviction(self):
        cache = TTLCache(max_entries=2)
        for key in ("a", "b", "c"):
            await cache.set(key, key)
        assert len(cache) == 2
        assert await cache.get("a") is None

    async def test_background_write(self):
        cache = TTLCache()
        cache.set_background("k", "v")
        await cache.drain()
        assert await cache.lookup("k") == "v"

    def test_cache_key_is_namespaced(self):
        key = cache_key("lt", "hello")
        assert key.startswith("lt:")
        assert key != cache_key("dict", "hello")
        assert key == cache_key("lt", "hello")


class TestRunDetector:
    async def test_success_records_latency(self):
        result = await run_detector(StubDetector("d", "src", score=70), "text", timeout=1.0)
        assert result.contribution.score == 70
        assert not result.contribution.is_fallback
        assert result.contribution.latency_ms >= 0

    async def test_timeout_uses_fallback(self):
        result = await run_detector(StubDetector("d", "src", delay=0.5), "text", timeout=0.05)
        assert result.contribution.source == "fallback-src"
        assert result.contribution.note == "timed out after 0.05s"

    async def test_unavailable(self):
        detector = StubDetector("d", "src", exc=DetectorUnavailable("no key"))
        result = await run_detector(detector, "text", timeout=1.0)
        assert result.contribution.note == "unavailable: no key"

    async def test_unexpected_error(self):
        result = await run_detector(StubDetector("d", "src", exc=ValueError("boom")), "text", timeout=1.0)
        assert result.contribution.note == "failed: ValueError"
        assert result.contribution.is_fallback

    async def test_broken_fallback_still_labelled(self):
        detector = StubDetector("d", "src", exc=RuntimeError())
        detector.fallback = MagicMock(side_effect=RuntimeError("also broken"))
        result = await run_detector(detector, "text", timeout=1.0)
        assert result.contribution.detector == "d"
        assert result.contribution.source == "fallback-src"
        assert result.contribution.score is None


class TestGrammarService:
    @pytest.mark.parametrize(
        "args, expected",
        [
            (("misspelling", "MORFOLOGIK_RULE_EN_US", "TYPOS", "Possible spelling mistake found.", ""), ErrorSeverity.HIGH),
            (("style", "PASSIVE_VOICE", "STYLE", "Passive voice", ""), ErrorSeverity.SUGGESTION),
            (("grammar", "", "GRAMMAR", "Wrong tense", ""), ErrorSeverity.MAJOR),
            (("grammar", "SOME_RULE", "GRAMMAR", "Check this.", "we was happy"), ErrorSeverity.CRITICAL),
            (("grammar", "", "GRAMMAR", "Possible subject-verb agreement error.", ""), ErrorSeverity.CRITICAL),
            (("grammar", "SOME_RULE", "GRAMMAR", "Check this.", ""), ErrorSeverity.HIGH),
            (("grammar", "", "GRAMMAR", "Check this.", ""), ErrorSeverity.MEDIUM),
        ],
    )
    def test_map_severity(self, args, expected):
        assert map_severity(*args) is expected

    async def test_detect_normalizes_matches(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=LT_RESPONSE)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        detector = GrammarServiceDetector("http://lt.local/v2/check", client=client)
        result = await detector.detect("I recieve it, we was glad")

        assert str(requests[0].url) == "http://lt.local/v2/check"
        form = parse_qs(requests[0].content.decode())
        assert form["language"] == ["en-US"]
        assert form["enabledOnly"] == ["false"]

        spelling, grammar = result.errors
        assert spelling.kind is ErrorKind.SPELLING
        assert spelling.text == "recieve"
        assert spelling.suggestion == "receive"
        assert spelling.alternatives == ["relieve"]
        assert grammar.severity is ErrorSeverity.CRITICAL
        assert grammar.source == "languagetool"
        assert result.contribution.score == 78
        assert result.payload == {"authoritative": True}
        await detector.aclose()

    async def test_results_are_cached(self):
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(200, json={"matches": []})

        cache = TTLCache()
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        detector = GrammarServiceDetector("http://lt.local/v2", cache=cache, client=client)
        await detector.detect("Hello there.")
        await cache.drain()
        result = await detector.detect("Hello there.")
        assert calls == 1
        assert result.contribution.score == 100

    async def test_service_error_falls_back_to_rules(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500)))
        detector = GrammarServiceDetector("http://lt.local/v2", client=client)
        result = await run_detector(detector, "They was happy.", timeout=1.0)
        assert result.contribution.source == "fallback-languagetool"
        assert result.contribution.note == "unavailable: grammar service returned 500"
        assert result.payload == {"authoritative": False}
        assert result.contribution.confidence == 0.5

    async def test_connection_refused_is_unavailable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        detector = GrammarServiceDetector("http://lt.local/v2", client=client)
        with pytest.raises(DetectorUnavailable, match=r"unreachable \(ConnectError\)"):
            await detector.check("They was happy.")
        result = await run_detector(detector, "They was happy.", timeout=1.0)
        assert result.contribution.note == "unavailable: grammar service unreachable (ConnectError)"
        assert result.contribution.source == "fallback-languagetool"


class TestDictionarySpeller:
    @pytest.fixture
    def word_list(self, tmp_path):
        path = tmp_path / "words.txt"
        path.write_text("cat\nsat\nmat\nbig\ndog\n", encoding="utf-8")
        return path

    def test_unknown_words(self, word_list):
        errors, counts = DictionarySpeller(word_list).check("The big cat sat on a mat with a dgo.")
        assert [e.text for e in errors] == ["dgo"]
        assert errors[0].suggestion == "dog"
        assert counts["content_tokens"] == 5
        assert counts["content_errors"] == 1
        assert counts["checked_words"] == 8
        assert counts["known_words"] == 7

    def test_names_mid_sentence_are_skipped(self, word_list):
        errors, _ = DictionarySpeller(word_list).check("The cat sat with Zorblax.")
        assert errors == []

    def test_is_known(self, word_list):
        speller = DictionarySpeller(word_list)
        assert speller.is_known("Cat")
        assert speller.is_known("the")
        assert not speller.is_known("dogs")

    def test_suggest_prefers_misspelling_table(self, word_list):
        speller = DictionarySpeller(word_list)
        assert speller.suggest("recieve") == "receive"
        assert speller.suggest("mta") == "mat"

    def test_bundled_english_dictionary(self):
        speller = DictionarySpeller()
        assert speller.is_known("receive")
        assert not speller.is_known("qwpoe")

    async def test_detect_score(self, word_list):
        result = await DictionarySpeller(word_list).detect("The big cat sat on a mat with a dgo.")
        assert result.contribution.score == 86
        assert result.contribution.error_count == 1
        assert result.payload["known_words"] == 7

    async def test_missing_list_is_unavailable(self, tmp_path):
        with pytest.raises(DetectorUnavailable):
            await DictionarySpeller(tmp_path / "nope.txt").detect("hello")
        with pytest.raises(DetectorUnavailable):
            await DictionarySpeller(language="xx").detect("hello")

    async def test_unavailable_without_checkable_words_is_fallback(self, tmp_path):
        result = await run_detector(DictionarySpeller(tmp_path / "nope.txt"), "I", timeout=1.0)
        assert result.contribution.source == "fallback-dictionary"
        assert result.contribution.note.startswith("unavailable: dictionary not found")

    def test_fallback_uses_misspelling_table(self):
        result = DictionarySpeller().fallback("I recieve it")
        assert result.errors[0].suggestion == "receive"


class TestCEFRVocabularyModel:
    @pytest.fixture
    def model(self, tmp_path, monkeypatch):
        monkeypatch.setattr(cefr, "lemmatize", tokenize_words)
        path = tmp_path / "cefr.yaml"
        path.write_text(yaml.safe_dump({"A1": ["cat", "like"], "C2": ["ubiquitous"]}), encoding="utf-8")
        return CEFRVocabularyModel(path)

    def test_grade(self, model):
        graded = model.grade("I like the ubiquitous cat")
        assert graded["cefr_level"] == "C2"
        assert graded["sophistication"] == pytest.approx(33.3)
        assert graded["score"] == 77
        assert graded["distribution"]["A1"] == pytest.approx(0.667)

    def test_level_of(self, model):
        assert model.level_of("cats") == "A1"
        assert model.level_of("zebra") == "B2"

    def test_only_function_words(self, model):
        assert model.grade("it is the")["score"] == 0

    async def test_detect(self, model):
        result = await model.detect("I like the ubiquitous cat")
        assert result.contribution.score == 77
        assert result.contribution.note == "CEFR C2"

    async def test_missing_lists(self, tmp_path):
        with pytest.raises(DetectorUnavailable):
            await CEFRVocabularyModel(tmp_path / "missing.yaml").detect("hello")


def _openai_client(content: dict) -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=json.dumps(content)))]
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=response)
    return client


class TestLLMFluencyScorer:
    async def test_detect(self):
        client = _openai_client({"score": 82, "reasoning": "Reads naturally.", "confidence": 0.8})
        scorer = LLMFluencyScorer(api_key=None, client=client)
        result = await scorer.detect("I went home.", {"level": "Beginner"})
        assert result.contribution.score == 82
        assert result.contribution.confidence == 0.8
        assert result.contribution.note == "Reads naturally."
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert "Beginner" in kwargs["messages"][0]["content"]

    async def test_out_of_range_score_falls_back(self):
        scorer = LLMFluencyScorer(api_key=None, client=_openai_client({"score": 150}))
        result = await run_detector(scorer, "Hi", timeout=1.0)
        assert result.contribution.note == "failed: ValidationError"
        assert result.contribution.score == 75

    async def test_without_key(self):
        result = await run_detector(LLMFluencyScorer(api_key=None), "Hi", timeout=1.0)
        assert result.contribution.note == "unavailable: no OpenAI API key configured"
        assert result.contribution.source == "fallback-transformer-fluency"

    def test_heuristic(self):
        assert heuristic_fluency("Hi") == 75
        assert heuristic_fluency("I went to the market, and bought bread. It was fresh.") == 90
