"""Language filter: decide how much English checking a message can take."""

import re

from message_accuracy.models.analysis import LanguageContext, LanguageMode
from message_accuracy.models.request import LanguageSummary

PURE_ENGLISH_RATIO = 0.9
NON_ENGLISH_RATIO = 0.25
SKIP_RATIO = 0.4
LIMITED_COVERAGE_RATIO = 0.5

SKIP_NOTE = "Detected mostly non-English content; skipping English-heavy detectors."
RELAX_NOTE = "Detected mixed-language content; relaxing strict grammar thresholds."
LIMITED_NOTE = "English coverage is limited; accuracy scores may be less stable."

_ASCII_LETTER_RE = re.compile(r"[A-Za-z]")
_DEVANAGARI_RE = re.compile(r"[ऀ-ॿ]")


def _is_non_latin_letter(char: str) -> bool:
    return char.isalpha() and not char.isascii() and ord(char) > 0x024F


def summarize_language(message: str) -> LanguageSummary:
    """Measure the share of ASCII letters among all letters in ``message``."""
    ascii_letters = len(_ASCII_LETTER_RE.findall(message))
    non_latin = sum(1 for c in message if _is_non_latin_letter(c))
    total = ascii_letters + non_latin
    if total == 0:
        return LanguageSummary()
    english_ratio = ascii_letters / total
    devanagari = len(_DEVANAGARI_RE.findall(message))
    if english_ratio >= PURE_ENGLISH_RATIO:
        primary = "eng"
    elif devanagari and devanagari >= non_latin / 2:
        primary = "hin"
    else:
        primary = "und"
    return LanguageSummary(
        primary_language=primary,
        english_ratio=english_ratio,
        non_latin_ratio=non_latin / total,
    )


def context_from_summary(summary: LanguageSummary) -> LanguageContext:
    """Turn a language summary into the flags the analyzers read.

    Args:
        summary: Measured or caller-supplied language summary.

    Returns:
        LanguageContext with mode, skip/relax flags and notes.
    """
    ratio = summary.english_ratio
    if ratio >= PURE_ENGLISH_RATIO:
        mode = LanguageMode.PURE_ENGLISH
    elif ratio < NON_ENGLISH_RATIO:
        mode = LanguageMode.NON_ENGLISH
    else:
        mode = LanguageMode.MIXED

    skip = ratio < SKIP_RATIO
    relax = mode is LanguageMode.MIXED and not skip

    notes: list[str] = []
    if skip:
        notes.append(SKIP_NOTE)
    elif relax:
        notes.append(RELAX_NOTE)
    if ratio < LIMITED_COVERAGE_RATIO and not skip:
        notes.append(LIMITED_NOTE)

    return LanguageContext(
        primary_language=summary.primary_language,
        english_ratio=ratio,
        non_latin_ratio=summary.non_latin_ratio,
        mode=mode,
        skip_english_checks=skip,
        relax_grammar=relax,
        notes=notes,
    )


def detect_language(message: str, summary: LanguageSummary | None = None) -> LanguageContext:
    """Run the language filter, preferring a caller-supplied summary."""
    return context_from_summary(summary or summarize_language(message))


def non_english_deduction(english_ratio: float) -> int:
    """Points removed from every category score in mixed-language mode."""
    return round(min(0.5, 1 - english_ratio) * 40)
