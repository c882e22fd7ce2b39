"""Tests for the authoritative grammar merge."""

import pytest

from message_accuracy.detectors.authority import merge_grammar, score_error_count
from message_accuracy.models.errors import ErrorKind, ErrorRecord, ErrorSeverity


def _error(severity, start, rule, kind=ErrorKind.GRAMMAR, source="languagetool"):
    return ErrorRecord(
        kind=kind, severity=severity, message=rule, start=start, end=start + 3, rule=rule, source=source
    )


@pytest.mark.parametrize(
    "count, expected",
    [(0, 100), (1, 85), (2, 78), (3, 70), (4, 65), (5, 60), (6, 45), (20, 20)],
)
def test_score_error_count(count, expected):
    assert score_error_count(count) == expected


class TestMergeGrammar:
    def test_without_service_local_result_stands(self):
        local = [_error(ErrorSeverity.HIGH, 0, "r", source="local")]
        merged = merge_grammar(72, local, None, [], [])
        assert merged.score == 72
        assert merged.errors == local
        assert not merged.authoritative

    def test_clean_report_forces_perfect_score(self):
        local = [_error(ErrorSeverity.MEDIUM, 0, "r", source="local")]
        merged = merge_grammar(80, local, [], [], [])
        assert merged.score == 100
        assert merged.strict_zero_applied
        assert merged.errors == []

    def test_clean_report_corroborated_by_spelling(self):
        spelling = [_error(ErrorSeverity.MEDIUM, 5, "typo", kind=ErrorKind.SPELLING)]
        merged = merge_grammar(70, [], [], spelling, [])
        assert merged.score == 80
        assert not merged.strict_zero_applied

    def test_clean_report_corroborated_keeps_local_errors(self):
        local = [_error(ErrorSeverity.MEDIUM, 0, "r", source="local")]
        evidence = [_error(ErrorSeverity.MEDIUM, 0, "tutor", source="tutor-evidence")]
        merged = merge_grammar(60, local, [], [], evidence)
        assert merged.score == 60
        assert merged.errors == local

    def test_strict_zero_disabled(self):
        assert merge_grammar(90, [], [], [], [], strict_zero=False).score == 90

    def test_count_score_caps_light_errors(self):
        service = [_error(ErrorSeverity.MEDIUM, 0, "r1")]
        merged = merge_grammar(100, [], service, [], [], word_count=20, sentence_count=2)
        assert merged.score == 85
        assert merged.authoritative

    def test_severity_caps_count_score(self):
        service = [_error(ErrorSeverity.CRITICAL, i * 5, f"r{i}") for i in range(4)]
        merged = merge_grammar(100, [], service, [], [], word_count=8, sentence_count=1)
        assert merged.score == 50

    def test_serious_local_errors_are_added(self):
        service = [_error(ErrorSeverity.MEDIUM, 0, "svc")]
        local = [
            _error(ErrorSeverity.HIGH, 1, "overlapping", source="local"),
            _error(ErrorSeverity.HIGH, 20, "extra", source="local"),
            _error(ErrorSeverity.LOW, 40, "minor", source="local"),
        ]
        merged = merge_grammar(70, local, service, [], [], word_count=20, sentence_count=2)
        assert [e.rule for e in merged.errors] == ["svc", "extra"]

    def test_style_matches_do_not_count(self):
        service = [_error(ErrorSeverity.SUGGESTION, 0, "style", kind=ErrorKind.STYLE)]
        merged = merge_grammar(100, [], service, [], [])
        assert merged.strict_zero_applied

    def test_floor_when_only_local_findings_remain(self):
        local = [_error(ErrorSeverity.HIGH, i * 5, f"r{i}", source="local") for i in range(4)]
        merged = merge_grammar(40, local, [], [], [], word_count=8, sentence_count=1)
        assert merged.score == 80

    def test_no_floor_for_critical_local_findings(self):
        local = [_error(ErrorSeverity.CRITICAL, i * 5, f"r{i}", source="local") for i in range(4)]
        merged = merge_grammar(40, local, [], [], [], word_count=8, sentence_count=1)
        assert merged.score == 50
