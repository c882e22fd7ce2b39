"""Spelling analyzer based on a misspelling and contraction table."""

import re

from message_accuracy.assessment.text import FUNCTION_WORDS, normalize_typography
from message_accuracy.assessment.tiers import get_features
from message_accuracy.models.analysis import CategoryMetrics, CategoryResult
from message_accuracy.models.errors import ErrorKind, ErrorRecord, ErrorSeverity, severity_histogram
from message_accuracy.models.request import Tier

COMMON_MISSPELLINGS: dict[str, str] = {
    "teh": "the",
    "recieve": "receive",
    "recieved": "received",
    "seperate": "separate",
    "beleive": "believe",
    "definately": "definitely",
    "untill": "until",
    "tommorrow": "tomorrow",
    "tommorow": "tomorrow",
    "begining": "beginning",
    "grammer": "grammar",
    "occured": "occurred",
    "arguement": "argument",
    "wierd": "weird",
    "freind": "friend",
    "thier": "their",
    "becuase": "because",
    "wich": "which",
    "accomodate": "accommodate",
    "acheive": "achieve",
    "adress": "address",
    "alot": "a lot",
    "enviroment": "environment",
    "goverment": "government",
    "neccessary": "necessary",
    "occassion": "occasion",
    "publically": "publicly",
    "realy": "really",
    "truely": "truly",
    "wether": "whether",
}

# Missing apostrophes. "cant", "wont", "ill", "well", "were", "its" are real words.
CONTRACTIONS: dict[str, str] = {
    "dont": "don't",
    "didnt": "didn't",
    "doesnt": "doesn't",
    "isnt": "isn't",
    "arent": "aren't",
    "wasnt": "wasn't",
    "werent": "weren't",
    "havent": "haven't",
    "hasnt": "hasn't",
    "couldnt": "couldn't",
    "shouldnt": "shouldn't",
    "wouldnt": "wouldn't",
    "im": "I'm",
    "ive": "I've",
    "youre": "you're",
    "theyre": "they're",
    "thats": "that's",
    "whats": "what's",
}

AMBIGUOUS_REAL_WORDS = frozenset({
    "cant", "wont", "ill", "well", "were", "its", "shell", "hell", "wed", "id", "lets",
})

# British to American spellings; neither form is an error
DIALECT_VARIANTS: dict[str, str] = {
    "analysed": "analyzed",
    "analyse": "analyze",
    "organisation": "organization",
    "organise": "organize",
    "realise": "realize",
    "realised": "realized",
    "behaviour": "behavior",
    "colour": "color",
    "favourite": "favorite",
    "honour": "honor",
    "centre": "center",
    "theatre": "theater",
    "travelling": "traveling",
    "cancelled": "canceled",
    "programme": "program",
    "apologise": "apologize",
    "recognise": "recognize",
}

_TOKEN_RE = re.compile(r"[A-Za-z]+(?:'[A-Za-z]+)?")


def normalize_dialect(word: str) -> str:
    return DIALECT_VARIANTS.get(word, word)


def lookup_misspelling(word: str) -> str | None:
    """Return the correction for a known misspelling, or None."""
    word = normalize_dialect(word.lower())
    if word in AMBIGUOUS_REAL_WORDS:
        return None
    return COMMON_MISSPELLINGS.get(word) or CONTRACTIONS.get(word)


def spelling_score(
    content_errors: int,
    content_tokens: int,
    function_errors: int,
    function_tokens: int,
) -> tuple[int, float, float]:
    """Fuse content and function word error densities (70/30).

    Returns:
        Tuple of (score, content_density, function_density).
    """
    content_density = content_errors / max(1, content_tokens)
    function_density = function_errors / max(1, function_tokens)
    score = round(100 - (0.7 * content_density + 0.3 * function_density) * 100)
    return max(0, min(100, score)), content_density, function_density


def rescore_spelling(message: str, errors: list[ErrorRecord]) -> tuple[int, dict[str, float]]:
    """Score an already-merged set of spelling errors against ``message``.

    Each error is classified as a content or function word error by its
    matched text; errors without text count as content errors.

    Returns:
        Tuple of (score, details).
    """
    tokens = [m.group().lower() for m in _TOKEN_RE.finditer(normalize_typography(message))]
    function_tokens = sum(1 for t in tokens if t in FUNCTION_WORDS)
    content_tokens = len(tokens) - function_tokens
    function_errors = sum(1 for e in errors if (e.text or "").lower() in FUNCTION_WORDS)
    content_errors = len(errors) - function_errors
    score, content_density, function_density = spelling_score(
        content_errors, content_tokens, function_errors, function_tokens
    )
    return score, {
        "content_density": round(content_density, 4),
        "function_density": round(function_density, 4),
        "content_errors": content_errors,
        "function_errors": function_errors,
        "tokens": len(tokens),
    }


def analyze_spelling(message: str, tier: Tier = Tier.FREE) -> CategoryResult:
    """Score spelling with separate content and function word densities.

    Args:
        message: Learner message.
        tier: Subscription tier.

    Returns:
        CategoryResult for spelling.
    """
    text = normalize_typography(message)
    tokens = list(_TOKEN_RE.finditer(text))
    if not tokens:
        return CategoryResult(
            score=100,
            metrics=CategoryMetrics(
                score=100,
                details={"content_density": 0.0, "function_density": 0.0, "tokens": 0},
            ),
        )

    errors: list[ErrorRecord] = []
    content_tokens = function_tokens = content_errors = function_errors = 0
    for match in tokens:
        word = match.group().lower()
        is_function = word in FUNCTION_WORDS
        if is_function:
            function_tokens += 1
        else:
            content_tokens += 1

        correction = lookup_misspelling(word)
        if correction is None:
            continue
        if is_function:
            function_errors += 1
        else:
            content_errors += 1
        errors.append(ErrorRecord(
            kind=ErrorKind.SPELLING,
            severity=ErrorSeverity.MEDIUM,
            message=f"Possible misspelling: '{match.group()}'.",
            start=match.start(),
            end=match.end(),
            text=match.group(),
            suggestion=correction,
            rule="missing-apostrophe" if word in CONTRACTIONS else "common-misspelling",
            source="spelling-table",
        ))

    score, content_density, function_density = spelling_score(
        content_errors, content_tokens, function_errors, function_tokens
    )

    feedback: list[str] = []
    if errors:
        limit = get_features(tier).max_suggestions
        shown = ", ".join(f"{e.text} -> {e.suggestion}" for e in errors[:limit])
        feedback.append(f"Check spelling: {shown}.")
    else:
        feedback.append("No spelling mistakes found.")

    metrics = CategoryMetrics(
        score=score,
        error_count=len(errors),
        severity_distribution=severity_histogram(errors),
        dominant_patterns=[e.text or "" for e in errors[:3]],
        details={
            "content_density": round(content_density, 4),
            "function_density": round(function_density, 4),
            "content_errors": content_errors,
            "function_errors": function_errors,
            "tokens": len(tokens),
        },
    )
    return CategoryResult(score=score, errors=errors, feedback=feedback, metrics=metrics)
