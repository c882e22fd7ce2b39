"""Tests for tutor-response evidence extraction and the advanced analyses."""

import pytest

from message_accuracy.analysis.advanced import (
    analyze_coherence,
    analyze_premium_insights,
    analyze_readability,
    analyze_tone,
    reading_level,
    run_advanced_analyses,
)
from message_accuracy.analysis.evidence import (
    analyze_tutor_response,
    appreciation_level,
    correction_severity,
    extract_corrections,
    semantic_difference,
)
from message_accuracy.models.analysis import AIResponseAnalysis
from message_accuracy.models.errors import ErrorKind, ErrorRecord, ErrorSeverity
from message_accuracy.models.request import Tier


def _error(severity):
    return ErrorRecord(kind=ErrorKind.GRAMMAR, severity=severity, message="m")


class TestExtractCorrections:
    def test_bracket_correction(self):
        errors = extract_corrections("I goed to school.", 'Nice try! [CORRECTION: "goed" -> "went"]')
        assert len(errors) == 1
        assert errors[0].rule == "tutor-bracket-correction"
        assert errors[0].suggestion == "went"
        assert (errors[0].start, errors[0].end) == (2, 6)
        assert errors[0].source == "tutor-evidence"

    def test_span_found_across_repeated_spaces(self):
        errors = extract_corrections("I  goed home.", '[CORRECTION: "I goed" -> "I went"]')
        assert (errors[0].start, errors[0].end) == (0, 7)
        assert errors[0].text == "I  goed"

    def test_side_by_side(self):
        errors = extract_corrections("She have a cat.", 'Try this: "she have" -> "she has".')
        assert [e.rule for e in errors] == ["tutor-side-by-side-correction"]
        assert errors[0].text == "She have"

    def test_paired_rewrite_counted_when_different(self):
        tutor = 'Original: "Me want go park." Improved: "I want to go to the park."'
        errors = extract_corrections("Me want go park.", tutor)
        assert [e.rule for e in errors] == ["tutor-paired-rewrite"]

    def test_paired_rewrite_ignored_when_identical(self):
        tutor = 'Original: "I like apples." Improved: "I like apples."'
        assert extract_corrections("I like apples.", tutor) == []


class TestAnalyzeTutorResponse:
    def test_no_response(self):
        analysis, errors = analyze_tutor_response("Hello.", None)
        assert analysis == AIResponseAnalysis()
        assert errors == []

    def test_bracket_feedback(self):
        analysis, errors = analyze_tutor_response(
            "I goed to school.", 'Nice try! [CORRECTION: "goed" -> "went"]'
        )
        assert analysis.has_correction_feedback
        assert analysis.detected_corrections == 1
        assert analysis.appreciation_level == "minimal"
        assert analysis.engagement_score == 55
        assert analysis.fluency_penalty == 6
        assert analysis.severity_of_corrections == "minor"
        assert len(errors) == 1

    def test_quoted_phrase_becomes_evidence(self):
        analysis, errors = analyze_tutor_response(
            "Yesterday I buyed a car.", 'Small mistake: "buyed" should be "bought".'
        )
        assert [e.rule for e in errors] == ["tutor-quoted-phrase"]
        assert (errors[0].start, errors[0].end) == (12, 17)
        assert analysis.corrected_phrases == ["buyed", "bought"]
        assert analysis.engagement_score == 50

    def test_quotes_without_correction_language_are_ignored(self):
        _, errors = analyze_tutor_response("I love \"jazz\" music.", 'You said "jazz", great choice!')
        assert errors == []

    def test_fluency_penalty_is_capped(self):
        tutor = " ".join(f'[CORRECTION: "w{i}" -> "x{i}"]' for i in range(7))
        analysis, errors = analyze_tutor_response("w0 w1 w2 w3 w4 w5 w6", tutor)
        assert len(errors) == 7
        assert analysis.fluency_penalty == 30
        assert analysis.severity_of_corrections == "critical"


class TestEvidenceHelpers:
    @pytest.mark.parametrize(
        "severities, expected",
        [
            ([], "none"),
            ([ErrorSeverity.LOW], "minor"),
            ([ErrorSeverity.HIGH], "moderate"),
            ([ErrorSeverity.MEDIUM] * 2, "moderate"),
            ([ErrorSeverity.LOW] * 4, "major"),
            ([ErrorSeverity.CRITICAL], "critical"),
            ([ErrorSeverity.LOW] * 5, "critical"),
        ],
    )
    def test_correction_severity(self, severities, expected):
        assert correction_severity([_error(s) for s in severities]) == expected

    def test_appreciation(self):
        assert appreciation_level("Great job!") == "high"
        assert appreciation_level("Well done.") == "moderate"
        assert appreciation_level("Okay.") == "minimal"
        assert appreciation_level("Next question.") == "none"

    def test_semantic_difference(self):
        jaccard, distance = semantic_difference("kitten", "sitting")
        assert jaccard == 0.0
        assert distance == pytest.approx(3 / 7)
        assert semantic_difference("i went home", "i went home") == (1.0, 0.0)
        assert semantic_difference("", "") == (0.0, 0.0)


class TestAdvancedAnalyses:
    def test_free_tier_gets_none(self):
        assert run_advanced_analyses("I like tea.", Tier.FREE) == {}

    def test_pro_and_premium_keys(self):
        assert set(run_advanced_analyses("I like tea.", Tier.PRO)) == {
            "tone", "readability", "style", "coherence",
        }
        assert "premium_insights" in run_advanced_analyses("I like tea.", Tier.PREMIUM)

    def test_tone(self):
        assert analyze_tone("Furthermore, however, therefore the plan works.").overall == "formal"
        assert analyze_tone("Yeah cool awesome party.").overall == "informal"
        assert analyze_tone("I like tea.").overall == "neutral"

    def test_coherence(self):
        result = analyze_coherence("However, it rained. Therefore we stayed inside.")
        assert result.transitions_used == 2
        assert result.score == 76
        assert result.suggested_transitions == []

    def test_readability(self):
        result = analyze_readability("The cat sat on the mat. It was happy.")
        assert 0 <= result.flesch_reading_ease <= 100
        assert result.average_level == reading_level(result.flesch_kincaid_grade)

    def test_reading_level(self):
        assert reading_level(17) == "Graduate"
        assert reading_level(11) == "High School"
        assert reading_level(2) == "Elementary"

    def test_premium_insights(self):
        insights = analyze_premium_insights(
            "I think we should do a decision. It is a piece of cake.", Tier.PREMIUM, []
        )
        assert insights.collocation_issues[0]["phrase"] == "do a decision"
        assert insights.idioms[0]["phrase"] == "piece of cake"
        assert "Personal opinion expressions" in insights.advanced_patterns
