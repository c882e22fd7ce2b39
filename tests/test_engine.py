"""End-to-end tests for the accuracy engine with stubbed detectors."""

from unittest.mock import AsyncMock

import pytest

from conftest import StubDetector
from message_accuracy.assessment.coverage import LOW_COVERAGE_NOTE
from message_accuracy.assessment.engine import NO_CONTENT_NOTE, AccuracyEngine
from message_accuracy.assessment.fluency import analyze_fluency
from message_accuracy.assessment.profiles import InMemoryProfileLookup, UserProfile
from message_accuracy.assessment.vocabulary import analyze_vocabulary
from message_accuracy.models.analysis import LanguageMode
from message_accuracy.models.errors import ErrorKind, ErrorRecord, ErrorSeverity
from message_accuracy.models.request import AnalysisRequest, LanguageSummary, Tier
from message_accuracy.models.snapshot import AccuracySnapshot, CategoryScores

CLEAN = "I went to the market yesterday, and I bought fresh vegetables for dinner."
BROKEN = "Me go store yesterday. He go there every day. They was happy. I not like it. Why you go there?"


def _previous(value: float = 90, count: int = 10) -> AccuracySnapshot:
    return AccuracySnapshot(
        overall=value,
        adjusted_overall=value,
        categories=CategoryScores.neutral(value),
        calculation_count=count,
    )


class TestScoring:
    @pytest.mark.parametrize(
        "message", [CLEAN, "I went to the store yesterday and bought some fresh vegetables."]
    )
    async def test_clean_message(self, make_engine, message):
        pair = await make_engine().analyze(AnalysisRequest(message=message))
        categories = pair.current.categories
        assert categories.grammar == 100
        assert categories.spelling == 100
        assert categories.punctuation == 100
        assert categories.capitalization == 100
        assert pair.current.critical_errors == 0
        assert pair.current.overall >= 85
        assert pair.current.calculation_count == 1
        assert "Grammar service reported no issues." in pair.feedback

    async def test_broken_message(self, make_engine):
        pair = await make_engine().analyze(AnalysisRequest(message=BROKEN))
        assert pair.current.categories.grammar <= 50
        assert pair.current.critical_errors >= 5
        assert pair.weights_redistributed
        assert pair.fusion_weights["grammar"] == 0.25
        assert pair.current.overall < 80

    async def test_overall_matches_weighted_categories(self, make_engine):
        pair = await make_engine().analyze(AnalysisRequest(message=CLEAN))
        categories = pair.current.categories
        expected = sum(getattr(categories, name) * w for name, w in pair.fusion_weights.items())
        assert pair.current.overall == round(expected)

    async def test_repeat_runs_are_identical(self, make_engine):
        engine = make_engine()
        first = await engine.analyze(AnalysisRequest(message=BROKEN))
        second = await engine.analyze(AnalysisRequest(message=BROKEN))
        assert first.current.categories == second.current.categories
        assert first.current.overall == second.current.overall

    async def test_category_metrics_carry_final_scores(self, make_engine):
        pair = await make_engine().analyze(AnalysisRequest(message=BROKEN))
        assert set(pair.categories) == {
            "grammar", "spelling", "vocabulary", "fluency", "punctuation", "capitalization",
        }
        assert pair.categories["grammar"].score == pair.current.categories.grammar


class TestDetectorIntegration:
    async def test_vocabulary_and_fluency_blends(self, make_engine):
        pair = await make_engine().analyze(AnalysisRequest(message=CLEAN))
        assert pair.categories["fluency"].score == AccuracyEngine._blend(analyze_fluency(CLEAN).score, 90)
        assert pair.categories["vocabulary"].score == AccuracyEngine._blend(
            analyze_vocabulary(CLEAN).score, 90
        )

    async def test_fallback_scores_are_not_blended(self, make_engine):
        engine = make_engine(
            vocabulary_model=StubDetector("cefr-vocabulary", "cefr-wordlists", exc=RuntimeError()),
            fluency_scorer=StubDetector("llm-fluency", "transformer-fluency", exc=RuntimeError()),
        )
        pair = await engine.analyze(AnalysisRequest(message=CLEAN))
        assert pair.categories["fluency"].score == analyze_fluency(CLEAN).score
        assert pair.categories["vocabulary"].score == analyze_vocabulary(CLEAN).score

    async def test_service_grammar_errors_are_authoritative(self, make_engine):
        service_error = ErrorRecord(
            kind=ErrorKind.GRAMMAR,
            severity=ErrorSeverity.CRITICAL,
            message="Subject-verb agreement",
            start=12,
            end=15,
            text="was",
            suggestion="were",
            source="languagetool",
        )
        grammar_service = StubDetector(
            "grammar-service", "languagetool", score=85,
            errors=[service_error], payload={"authoritative": True},
        )
        pair = await make_engine(grammar_service=grammar_service).analyze(
            AnalysisRequest(message="The reports was on the desk.")
        )
        assert pair.current.categories.grammar <= 85
        assert any(e.source == "languagetool" for e in pair.errors)
        assert "'was' -> 'were'" in pair.suggestions

    async def test_service_spelling_errors_lower_spelling(self, make_engine):
        typo = ErrorRecord(
            kind=ErrorKind.SPELLING,
            severity=ErrorSeverity.HIGH,
            message="Possible spelling mistake",
            start=10,
            end=14,
            text="hapy",
            suggestion="happy",
            source="languagetool",
        )
        grammar_service = StubDetector(
            "grammar-service", "languagetool", errors=[typo], payload={"authoritative": True}
        )
        pair = await make_engine(grammar_service=grammar_service).analyze(
            AnalysisRequest(message="I am very hapy today.")
        )
        assert pair.current.categories.spelling < 100

    async def test_non_authoritative_service_keeps_local_grammar(self, make_engine):
        grammar_service = StubDetector("grammar-service", "languagetool", payload={"authoritative": False})
        pair = await make_engine(grammar_service=grammar_service).analyze(AnalysisRequest(message=CLEAN))
        assert "Grammar service reported no issues." not in pair.feedback

    async def test_failing_detectors_fall_back(self, make_engine):
        engine = make_engine(**{
            key: StubDetector(name, source, exc=RuntimeError("down"))
            for key, name, source in [
                ("grammar_service", "grammar-service", "languagetool"),
                ("speller", "dictionary-checker", "dictionary"),
                ("vocabulary_model", "cefr-vocabulary", "cefr-wordlists"),
                ("fluency_scorer", "llm-fluency", "transformer-fluency"),
            ]
        })
        pair = await engine.analyze(AnalysisRequest(message=BROKEN))
        assert all(c.is_fallback for c in pair.contributions)
        assert all(c.note == "failed: RuntimeError" for c in pair.contributions)
        assert pair.current.categories.grammar < 100

    async def test_unrecognized_words_are_penalized(self, make_engine):
        message = "asdkj qwpoe zxmnv lkjhg."

        async def score(known_words: int):
            speller = StubDetector(
                "dictionary-checker", "dictionary",
                payload={"checked_words": 4, "known_words": known_words},
            )
            return await make_engine(speller=speller).analyze(AnalysisRequest(message=message))

        recognized, gibberish = await score(4), await score(0)
        assert LOW_COVERAGE_NOTE in gibberish.feedback
        assert LOW_COVERAGE_NOTE not in recognized.feedback
        assert gibberish.current.categories.vocabulary < recognized.current.categories.vocabulary
        assert gibberish.current.overall < recognized.current.overall

    async def test_coverage_needs_a_live_dictionary(self, make_engine):
        speller = StubDetector("dictionary-checker", "dictionary", exc=RuntimeError())
        pair = await make_engine(speller=speller).analyze(AnalysisRequest(message="asdkj qwpoe zxmnv lkjhg."))
        assert LOW_COVERAGE_NOTE not in pair.feedback

    async def test_total_timeout(self, make_engine, settings):
        slow = {
            key: StubDetector(name, source, delay=0.5)
            for key, name, source in [
                ("grammar_service", "grammar-service", "languagetool"),
                ("speller", "dictionary-checker", "dictionary"),
                ("vocabulary_model", "cefr-vocabulary", "cefr-wordlists"),
                ("fluency_scorer", "llm-fluency", "transformer-fluency"),
            ]
        }
        engine = make_engine(settings.model_copy(update={"total_timeout_seconds": 0.05}), **slow)
        pair = await engine.analyze(AnalysisRequest(message=CLEAN))
        assert [c.note for c in pair.contributions] == ["detector phase exceeded 0.05s"] * 4
        assert pair.current.overall > 0

    async def test_aclose_closes_detectors(self, make_engine):
        grammar_service = StubDetector("grammar-service", "languagetool")
        grammar_service.aclose = AsyncMock()
        await make_engine(grammar_service=grammar_service).aclose()
        grammar_service.aclose.assert_awaited_once()


class TestHistory:
    async def test_history_damps_the_current_score(self, make_engine):
        pair = await make_engine().analyze(AnalysisRequest(message=BROKEN, previous=_previous()))
        current, weighted = pair.current.overall, pair.weighted.overall
        assert current < weighted <= 90
        assert pair.weighted.calculation_count == 11
        assert pair.weighting.history_count == 10
        assert pair.weighting.current_weight + pair.weighting.historical_weight == pytest.approx(1.0)

    async def test_long_good_history_still_drops(self, make_engine):
        pair = await make_engine().analyze(AnalysisRequest(message=BROKEN, previous=_previous(95, count=20)))
        assert pair.weighting.current_weight >= 0.55
        assert pair.weighted.overall <= 87

    async def test_trends_against_previous(self, make_engine):
        pair = await make_engine().analyze(AnalysisRequest(message=BROKEN, previous=_previous()))
        grammar = next(t for t in pair.trends if t.category == "grammar")
        assert grammar.direction == "declining"

    async def test_empty_message_skips_detectors(self, make_engine):
        detectors = {
            "grammar_service": StubDetector("grammar-service", "languagetool"),
            "speller": StubDetector("dictionary-checker", "dictionary"),
        }
        engine = make_engine(**detectors)
        previous = _previous(77, count=4)
        pair = await engine.analyze(AnalysisRequest(message="   ", previous=previous))

        assert all(d.calls == 0 for d in detectors.values())
        assert all(c.is_fallback for c in pair.contributions)
        assert pair.feedback == [NO_CONTENT_NOTE]
        assert pair.current.overall == 0
        assert pair.weighted.overall == 77
        assert pair.weighted.categories == previous.categories
        assert pair.weighted.calculation_count == 5
        assert pair.weighting.reason == "no_evidence"

    @pytest.mark.parametrize("message", ["?!", "12345", "... --- ..."])
    async def test_message_without_words_has_no_content(self, make_engine, message):
        speller = StubDetector("dictionary-checker", "dictionary")
        pair = await make_engine(speller=speller).analyze(
            AnalysisRequest(message=message, previous=_previous(77, count=4))
        )
        assert speller.calls == 0
        assert pair.feedback == [NO_CONTENT_NOTE]
        assert pair.current.overall == 0
        assert pair.weighted.overall == 77
        assert pair.weighted.calculation_count == 5

    async def test_empty_message_without_history(self, make_engine):
        pair = await make_engine().analyze(AnalysisRequest(message=""))
        assert pair.weighted.overall == 0
        assert pair.weighted.calculation_count == 1
        assert pair.categories["grammar"].details == {"evaluated": False}


class TestLanguageHandling:
    async def test_non_english_message_is_neutral(self, make_engine):
        engine = make_engine()
        pair = await engine.analyze(AnalysisRequest(message="मैं आज बाजार गया था"))
        assert pair.current.categories == CategoryScores.neutral(50)
        assert pair.feedback[0].startswith("Cannot evaluate")
        assert pair.language.skip_english_checks
        assert engine.grammar_service.calls == 0

    async def test_caller_summary_for_latin_script_language_is_neutral(self, make_engine):
        engine = make_engine()
        pair = await engine.analyze(AnalysisRequest(
            message="Je suis allé au marché hier.",
            language=LanguageSummary(primary_language="fra", english_ratio=0.05),
        ))
        assert pair.current.categories == CategoryScores.neutral(50)
        assert pair.feedback[0].startswith("Cannot evaluate")
        assert engine.grammar_service.calls == 0

    async def test_mixed_message_is_scored_with_deduction(self, make_engine):
        pair = await make_engine().analyze(AnalysisRequest(message="I went to बाजार और दुकान yesterday."))
        assert pair.language.mode is LanguageMode.MIXED
        assert any(f.startswith("Mixed-language content") for f in pair.feedback)
        assert pair.current.categories.punctuation < 100


class TestTutorEvidence:
    async def test_tutor_correction_caps_grammar(self, make_engine):
        pair = await make_engine().analyze(AnalysisRequest(
            message="I goed to school yesterday.",
            tutor_response='[CORRECTION: "goed" -> "went"] Good effort!',
        ))
        assert pair.current.categories.grammar <= 85
        assert any(f.startswith("Fluency adjusted for grammar issues") for f in pair.feedback)
        assert pair.ai_response_analysis is not None
        assert pair.ai_response_analysis.detected_corrections >= 1

    async def test_no_tutor_response(self, make_engine):
        pair = await make_engine().analyze(AnalysisRequest(message=CLEAN))
        assert pair.ai_response_analysis is None


class TestTierGating:
    async def test_free_tier(self, make_engine):
        pair = await make_engine().analyze(AnalysisRequest(message=BROKEN))
        assert pair.advanced == {}
        assert len(pair.suggestions) <= 3
        assert len(pair.feedback) <= 5
        assert all(e.explanation is None and e.examples == [] for e in pair.errors)

    async def test_pro_tier_gets_advanced_analyses(self, make_engine):
        pair = await make_engine().analyze(AnalysisRequest(message=BROKEN, tier=Tier.PRO))
        assert {"tone", "readability", "style", "coherence"} <= set(pair.advanced)
        assert "premium_insights" not in pair.advanced
        assert pair.current.readability is not None

    async def test_profile_lookup_sets_tier(self, make_engine):
        profiles = InMemoryProfileLookup({"u": UserProfile(user_id="u", tier=Tier.PREMIUM)})
        pair = await make_engine(profiles=profiles).analyze_for_user("u", BROKEN)
        assert "premium_insights" in pair.advanced

    async def test_unknown_user_is_free(self, make_engine):
        pair = await make_engine().analyze_for_user("nobody", BROKEN)
        assert pair.advanced == {}
