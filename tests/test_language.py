"""Tests for the language filter."""

import pytest

from message_accuracy.analysis.language import (
    LIMITED_NOTE,
    RELAX_NOTE,
    SKIP_NOTE,
    detect_language,
    non_english_deduction,
    summarize_language,
)
from message_accuracy.models.analysis import LanguageMode
from message_accuracy.models.request import LanguageSummary


class TestSummarizeLanguage:
    def test_empty_defaults_to_english(self):
        summary = summarize_language("")
        assert summary.english_ratio == 1.0
        assert summary.primary_language == "eng"

    def test_pure_english(self):
        summary = summarize_language("Hello there, how are you?")
        assert summary.english_ratio == 1.0
        assert summary.non_latin_ratio == 0.0

    def test_devanagari(self):
        summary = summarize_language("मैं आज बाजार गया था")
        assert summary.english_ratio == 0.0
        assert summary.primary_language == "hin"


class TestDetectLanguage:
    def test_pure_english_has_no_flags(self):
        context = detect_language("I went to the market.")
        assert context.mode is LanguageMode.PURE_ENGLISH
        assert not context.skip_english_checks
        assert not context.relax_grammar
        assert context.notes == []

    def test_mostly_hindi_is_skipped(self):
        context = detect_language("मैं आज बाजार गया था")
        assert context.skip_english_checks
        assert context.mode is LanguageMode.NON_ENGLISH
        assert context.notes == [SKIP_NOTE]

    def test_mixed_message_relaxes_grammar(self):
        context = detect_language("I went to बाजार और दुकान yesterday.")
        assert context.mode is LanguageMode.MIXED
        assert context.relax_grammar
        assert not context.skip_english_checks
        assert RELAX_NOTE in context.notes

    def test_caller_summary_is_used_as_is(self):
        summary = LanguageSummary(primary_language="hin", english_ratio=0.3, non_latin_ratio=0.7)
        context = detect_language("This text looks English.", summary)
        assert context.skip_english_checks
        assert context.primary_language == "hin"

    def test_limited_coverage_note(self):
        summary = LanguageSummary(english_ratio=0.45, non_latin_ratio=0.55)
        context = detect_language("text", summary)
        assert context.notes == [RELAX_NOTE, LIMITED_NOTE]

    def test_latin_script_non_english_summary_is_skipped(self):
        summary = LanguageSummary(primary_language="fra", english_ratio=0.05)
        context = detect_language("Je suis allé au marché hier.", summary)
        assert context.skip_english_checks
        assert not context.relax_grammar
        assert context.mode is LanguageMode.NON_ENGLISH
        assert context.notes == [SKIP_NOTE]

    def test_low_ratio_without_non_latin_letters_is_skipped(self):
        summary = LanguageSummary(english_ratio=0.3, non_latin_ratio=0.0)
        context = detect_language("text", summary)
        assert context.skip_english_checks
        assert context.mode is LanguageMode.MIXED


@pytest.mark.parametrize("ratio, expected", [(1.0, 0), (0.8, 8), (0.6, 16), (0.2, 20)])
def test_non_english_deduction(ratio, expected):
    assert non_english_deduction(ratio) == expected
