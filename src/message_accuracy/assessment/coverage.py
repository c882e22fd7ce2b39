"""Lexical coverage check: penalize text whose words are not English vocabulary."""

import re

from pydantic import BaseModel

LEXICAL_PENALTY_THRESHOLD = 0.2
MAX_LEXICAL_PENALTY = 10
MIN_LEXICAL_PENALTY = 6
MIN_WORDS_FOR_COVERAGE = 4
SHORT_GIBBERISH_MAX_WORDS = 3
SHORT_GIBBERISH_MIN_CHARS = 6

# Low coverage is forgiven for long, clearly English text with some known words
STRONG_ENGLISH_RATIO = 0.55
MIN_WORDS_FOR_CONFIDENCE = 8
MIN_KNOWN_RATIO_FOR_CONFIDENCE = 0.05

GIBBERISH_NOTE = "We detected random text that does not look like English sentences."
LOW_COVERAGE_NOTE = "Most words were not recognized as English vocabulary."

# Share of the penalty taken by each category
CATEGORY_SHARES: dict[str, float] = {
    "grammar": 0.45,
    "vocabulary": 0.65,
    "spelling": 0.3,
    "fluency": 0.45,
    "punctuation": 0.25,
    "capitalization": 0.25,
    "syntax": 0.35,
    "coherence": 0.35,
}


class CoveragePenalty(BaseModel):
    """Outcome of the coverage check; ``points`` is 0 when nothing applies."""

    checked_words: int = 0
    known_words: int = 0
    known_ratio: float = 1.0
    points: int = 0
    note: str | None = None


def lexical_penalty(
    message: str,
    checked_words: int,
    known_words: int,
    english_ratio: float = 1.0,
) -> CoveragePenalty:
    """Grade how much of ``message`` a dictionary recognized.

    Args:
        message: Learner message.
        checked_words: Words the dictionary looked up.
        known_words: Words the dictionary recognized.
        english_ratio: Share of English script from the language filter.

    Returns:
        CoveragePenalty with the penalty points and a feedback note.
    """
    known_ratio = known_words / checked_words if checked_words else 1.0
    result = CoveragePenalty(
        checked_words=checked_words,
        known_words=known_words,
        known_ratio=round(known_ratio, 3),
    )

    chars = len(re.sub(r"\s", "", message))
    short_gibberish = (
        0 < checked_words <= SHORT_GIBBERISH_MAX_WORDS
        and known_words == 0
        and chars > SHORT_GIBBERISH_MIN_CHARS
    )
    low_coverage = checked_words >= MIN_WORDS_FOR_COVERAGE and known_ratio < LEXICAL_PENALTY_THRESHOLD
    if low_coverage and (
        english_ratio >= STRONG_ENGLISH_RATIO
        and checked_words >= MIN_WORDS_FOR_CONFIDENCE
        and known_ratio >= MIN_KNOWN_RATIO_FOR_CONFIDENCE
    ):
        low_coverage = False
    if not (short_gibberish or low_coverage):
        return result

    severity = min(1.0, max(0.0, LEXICAL_PENALTY_THRESHOLD - known_ratio) / LEXICAL_PENALTY_THRESHOLD)
    points = round(severity * MAX_LEXICAL_PENALTY)
    if points == 0 and not short_gibberish:
        return result
    return result.model_copy(update={
        "points": max(MIN_LEXICAL_PENALTY, points),
        "note": GIBBERISH_NOTE if short_gibberish else LOW_COVERAGE_NOTE,
    })


def apply_coverage_penalty(scores: dict[str, float], penalty: CoveragePenalty) -> dict[str, float]:
    """Subtract each category's share of the penalty, flooring at 0."""
    return {
        name: max(0, score - round(penalty.points * CATEGORY_SHARES.get(name, 0)))
        for name, score in scores.items()
    }
