"""Punctuation and capitalization analyzers."""

import re

from message_accuracy.models.analysis import CategoryMetrics, CategoryResult
from message_accuracy.models.errors import ErrorKind, ErrorRecord, ErrorSeverity, severity_histogram

PENALTY_PER_ERROR = 10

_MULTIPLE_SPACES_RE = re.compile(r" {2,}")
_SPACE_BEFORE_PUNCT_RE = re.compile(r"\s+[,.!?;:]")
_SENTENCE_START_RE = re.compile(r"(?:^|[.!?]\s+)([a-z])")
_LOWERCASE_I_RE = re.compile(r"\bi\b(?!\.e\.)")

# "may" excluded: almost always the modal verb
PROPER_NOUNS: frozenset[str] = frozenset({
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
    "january", "february", "march", "april", "june", "july", "august",
    "september", "october", "november", "december",
    "english", "spanish", "french", "german", "chinese", "japanese", "hindi",
    "korean", "italian", "portuguese", "russian", "arabic",
    "america", "england", "france", "germany", "china", "japan", "india",
    "canada", "mexico", "spain", "italy", "brazil", "russia", "australia",
})
_PROPER_NOUN_RE = re.compile(r"\b[a-z]+\b")


def _result(errors: list[ErrorRecord], feedback_ok: str) -> CategoryResult:
    score = max(0, 100 - len(errors) * PENALTY_PER_ERROR)
    feedback = [e.message for e in errors] or [feedback_ok]
    return CategoryResult(
        score=score,
        errors=errors,
        feedback=feedback,
        metrics=CategoryMetrics(
            score=score,
            error_count=len(errors),
            severity_distribution=severity_histogram(errors),
            dominant_patterns=[e.rule or "" for e in errors[:3]],
        ),
    )


def analyze_punctuation(message: str) -> CategoryResult:
    """Check end marks and spacing around punctuation; -10 per issue."""
    text = message.rstrip()
    errors: list[ErrorRecord] = []
    if text and not re.search(r"[.!?]['\")\]]*$", text):
        errors.append(ErrorRecord(
            kind=ErrorKind.PUNCTUATION,
            severity=ErrorSeverity.LOW,
            message="Missing punctuation at the end of the message.",
            start=len(text),
            end=len(text),
            suggestion="End the sentence with a period, question mark or exclamation mark.",
            rule="missing-end-punctuation",
        ))
    for match in _MULTIPLE_SPACES_RE.finditer(text):
        errors.append(ErrorRecord(
            kind=ErrorKind.PUNCTUATION,
            severity=ErrorSeverity.LOW,
            message="Multiple spaces between words.",
            start=match.start(),
            end=match.end(),
            text=match.group(),
            suggestion=" ",
            rule="multiple-spaces",
        ))
    for match in _SPACE_BEFORE_PUNCT_RE.finditer(text):
        errors.append(ErrorRecord(
            kind=ErrorKind.PUNCTUATION,
            severity=ErrorSeverity.LOW,
            message="Space before punctuation.",
            start=match.start(),
            end=match.end(),
            text=match.group(),
            suggestion=match.group().strip(),
            rule="space-before-punctuation",
        ))
    return _result(errors, "Punctuation looks good.")


def analyze_capitalization(message: str) -> CategoryResult:
    """Check sentence-initial capitals, the pronoun "I" and common proper nouns."""
    errors: list[ErrorRecord] = []
    for match in _SENTENCE_START_RE.finditer(message):
        errors.append(ErrorRecord(
            kind=ErrorKind.CAPITALIZATION,
            severity=ErrorSeverity.HIGH,
            message="Sentence should start with a capital letter.",
            start=match.start(1),
            end=match.end(1),
            text=match.group(1),
            suggestion=match.group(1).upper(),
            rule="sentence-start",
        ))
    for match in _LOWERCASE_I_RE.finditer(message):
        if match.start() == 0 or re.search(r"[.!?]\s+$", message[:match.start()]):
            # already reported as a sentence start
            continue
        errors.append(ErrorRecord(
            kind=ErrorKind.CAPITALIZATION,
            severity=ErrorSeverity.HIGH,
            message='The pronoun "I" is always capitalized.',
            start=match.start(),
            end=match.end(),
            text="i",
            suggestion="I",
            rule="lowercase-i",
        ))
    for match in _PROPER_NOUN_RE.finditer(message):
        if match.group() not in PROPER_NOUNS:
            continue
        errors.append(ErrorRecord(
            kind=ErrorKind.CAPITALIZATION,
            severity=ErrorSeverity.MEDIUM,
            message=f"'{match.group()}' is a proper noun and should be capitalized.",
            start=match.start(),
            end=match.end(),
            text=match.group(),
            suggestion=match.group().capitalize(),
            rule="proper-noun",
        ))
    return _result(errors, "Capitalization looks good.")
