"""Pattern-based grammar analyzer."""

import math
import re
from collections import defaultdict

from message_accuracy.assessment.rules import HEURISTIC_CHECKS, rules_for_tier
from message_accuracy.assessment.text import (
    normalize_typography,
    split_sentences,
    tokenize_words,
)
from message_accuracy.assessment.tiers import get_features
from message_accuracy.models.analysis import CategoryMetrics, CategoryResult, LanguageContext
from message_accuracy.models.errors import (
    ErrorKind,
    ErrorRecord,
    ErrorSeverity,
    highest_severity,
    severity_histogram,
)
from message_accuracy.models.request import Proficiency, Tier

SEVERITY_WEIGHTS: dict[ErrorSeverity, float] = {
    ErrorSeverity.CRITICAL: 2.0,
    ErrorSeverity.MAJOR: 1.5,
    ErrorSeverity.HIGH: 1.2,
    ErrorSeverity.MEDIUM: 0.8,
    ErrorSeverity.LOW: 0.35,
    ErrorSeverity.SUGGESTION: 0.1,
}

TYPE_MODIFIERS: dict[ErrorKind, float] = {
    ErrorKind.GRAMMAR: 1.0,
    ErrorKind.SYNTAX: 1.0,
    ErrorKind.VOCABULARY: 0.75,  # semantic
    ErrorKind.STYLE: 0.5,
}

REPEAT_DAMPENING = 0.35
RUN_ON_WORDS = 20
MAX_PENALTY_PER_ERROR = 20
CAP_FLOOR = 60
RELAXED_FLOOR = 55
NEUTRAL_SCORE = 50.0

LEVEL_ADJUSTMENTS: dict[Proficiency, int] = {
    Proficiency.BEGINNER: 8,
    Proficiency.EXPERT: -4,
}

_REPEATED_WORD_RE = re.compile(r"\b(\w+)\s+\1\b", re.IGNORECASE)
_REPEAT_ALLOWED = {"the", "and", "or", "but"}
_SENTENCE_SPAN_RE = re.compile(r"[^.!?]+")
# One-word replies that are complete utterances
_STANDALONE_WORDS = {
    "yes", "yeah", "nope", "thanks", "okay", "hello", "sure", "please", "sorry",
    "right", "great", "wow", "cool", "absolutely", "exactly", "indeed", "bye",
    "goodbye", "why", "really", "definitely", "agreed", "perfect",
}


def _severity_scale(highest: ErrorSeverity | None) -> float:
    if highest is None:
        return 0.0
    if not highest.at_least(ErrorSeverity.MEDIUM):
        return 0.35
    if highest is ErrorSeverity.MEDIUM:
        return 0.75
    return 1.0


def per_error_penalty(highest: ErrorSeverity | None) -> int:
    """Hard cap step: how many points each error costs at most from 100."""
    if highest is ErrorSeverity.CRITICAL:
        return 10
    if highest is not None and highest.at_least(ErrorSeverity.HIGH):
        return 9
    return 8


def weighted_impact(errors: list[ErrorRecord]) -> float:
    """Sum rule-grouped error weights with repeat dampening.

    Errors of the same rule are grouped; each group contributes its heaviest
    severity weight times the type modifier, scaled by
    ``1 + 0.35 * (count - 1)`` instead of growing linearly.

    Args:
        errors: Scoring errors (heuristic penalties excluded).

    Returns:
        Total weighted penalty before length normalization.
    """
    groups: dict[str, list[ErrorRecord]] = defaultdict(list)
    for error in errors:
        groups[error.rule or error.message].append(error)

    total = 0.0
    for members in groups.values():
        weight = max(
            SEVERITY_WEIGHTS[m.severity] * TYPE_MODIFIERS.get(m.kind, 1.0) for m in members
        )
        total += weight * (1 + REPEAT_DAMPENING * (len(members) - 1))
    return total


def compute_grammar_score(
    errors: list[ErrorRecord],
    word_count: int,
    sentence_count: int,
    heuristic_penalty: int = 0,
    level: Proficiency = Proficiency.INTERMEDIATE,
    relaxed: bool = False,
) -> tuple[int, dict[str, float]]:
    """Convert grammar errors into a 0-100 score.

    Args:
        errors: Scoring errors for this message.
        word_count: Number of word tokens.
        sentence_count: Number of sentences.
        heuristic_penalty: Fixed points deducted by phrase heuristics.
        level: Learner proficiency.
        relaxed: Mixed-language mode.

    Returns:
        Tuple of (score, details) where details carries the weighted penalty
        and normalized impact.
    """
    penalty = weighted_impact(errors)
    length_normalizer = max(4, math.ceil(word_count / 4))
    impact = penalty / length_normalizer
    units = max(4, sentence_count, math.ceil(word_count / 15))
    highest = highest_severity(errors)
    ratio = min(1.0, (impact / units) * _severity_scale(highest))

    score = round((1 - ratio) * 100) - heuristic_penalty
    score += LEVEL_ADJUSTMENTS.get(level, 0)

    n = len(errors)
    if n:
        floor = RELAXED_FLOOR if relaxed else CAP_FLOOR
        ceiling = max(100 - n * per_error_penalty(highest), floor)
        score = min(score, ceiling)
        if n <= 2:
            score = max(score, 100 - n * MAX_PENALTY_PER_ERROR - heuristic_penalty)
    if relaxed:
        score = max(score, RELAXED_FLOOR)

    score = max(0, min(100, score))
    return score, {
        "weighted_penalty": round(penalty, 3),
        "normalized_impact": round(impact, 3),
        "length_normalizer": length_normalizer,
        "evaluation_units": units,
    }


def _structural_errors(text: str) -> list[ErrorRecord]:
    errors: list[ErrorRecord] = []
    for match in _SENTENCE_SPAN_RE.finditer(text):
        sentence = match.group().strip()
        if not sentence:
            continue
        start = match.start() + match.group().index(sentence)
        words = sentence.split()
        if (
            len(words) == 1
            and len(words[0]) > 2
            and words[0].lower().strip("'\",") not in _STANDALONE_WORDS
        ):
            errors.append(ErrorRecord(
                kind=ErrorKind.GRAMMAR,
                severity=ErrorSeverity.HIGH,
                message="Sentence fragment: a single word is not a complete sentence.",
                start=start,
                end=start + len(sentence),
                text=sentence,
                suggestion="Add a subject and a verb to complete the thought.",
                rule="sentence-fragment",
            ))
        if len(words) > RUN_ON_WORDS and not re.search(r"[,;:]", sentence):
            errors.append(ErrorRecord(
                kind=ErrorKind.GRAMMAR,
                severity=ErrorSeverity.HIGH,
                message="Run-on sentence: long clause with no internal punctuation.",
                start=start,
                end=start + len(sentence),
                text=sentence,
                suggestion="Split the sentence or add commas between clauses.",
                rule="run-on-sentence",
            ))

    for match in _REPEATED_WORD_RE.finditer(text):
        if match.group(1).lower() in _REPEAT_ALLOWED:
            continue
        errors.append(ErrorRecord(
            kind=ErrorKind.GRAMMAR,
            severity=ErrorSeverity.MEDIUM,
            message=f"Repeated word: '{match.group(1)}'.",
            start=match.start(),
            end=match.end(),
            text=match.group(),
            suggestion=match.group(1),
            rule="repeated-word",
        ))
    return errors


def _with_detail(error: ErrorRecord, tier: Tier, explanation: str, examples: tuple[str, ...]) -> ErrorRecord:
    features = get_features(tier)
    if not features.detailed_explanations:
        return error
    update: dict = {"explanation": explanation, "examples": list(examples)}
    if features.alternative_phrasing and error.suggestion:
        update["alternatives"] = [error.suggestion]
    return error.model_copy(update=update)


def find_rule_errors(text: str, tier: Tier = Tier.FREE) -> list[ErrorRecord]:
    """Run the tier-filtered rule table and structural checks over ``text``."""
    text = normalize_typography(text)
    errors: list[ErrorRecord] = []
    for rule in rules_for_tier(tier):
        for match in rule.pattern.finditer(text):
            error = ErrorRecord(
                kind=rule.kind,
                severity=rule.severity,
                message=rule.message,
                start=match.start(),
                end=match.end(),
                text=match.group(),
                suggestion=rule.suggestion,
                rule=rule.id,
            )
            errors.append(_with_detail(error, tier, rule.explanation, rule.examples))
    errors.extend(_structural_errors(text))
    return errors


def _heuristic_errors(text: str) -> tuple[list[ErrorRecord], int]:
    text = normalize_typography(text)
    errors: list[ErrorRecord] = []
    penalty = 0
    for check in HEURISTIC_CHECKS:
        for match in check.pattern.finditer(text):
            penalty += check.penalty
            errors.append(ErrorRecord(
                kind=check.kind,
                severity=check.severity,
                message=check.message,
                start=match.start(),
                end=match.end(),
                text=match.group(),
                suggestion=check.suggestion,
                rule=check.id,
            ))
    return errors, penalty


def _dominant(errors: list[ErrorRecord]) -> list[str]:
    counts: dict[str, int] = defaultdict(int)
    for error in errors:
        counts[error.rule or error.message] += 1
    return [name for name, _ in sorted(counts.items(), key=lambda kv: -kv[1])[:3]]


def neutral_result(category: str, reason: str) -> CategoryResult:
    """Conservative result used when a category cannot be evaluated."""
    return CategoryResult(
        score=NEUTRAL_SCORE,
        feedback=[reason],
        metrics=CategoryMetrics(score=NEUTRAL_SCORE, details={"evaluated": False, "category": category}),
    )


def analyze_grammar(
    message: str,
    tier: Tier = Tier.FREE,
    level: Proficiency = Proficiency.INTERMEDIATE,
    language: LanguageContext | None = None,
) -> CategoryResult:
    """Score grammar with tier-filtered rules and structural heuristics.

    Args:
        message: Learner message.
        tier: Subscription tier (controls rule set and explanation detail).
        level: Learner proficiency.
        language: Language Filter output.

    Returns:
        CategoryResult for grammar.
    """
    language = language or LanguageContext()
    if language.skip_english_checks:
        return neutral_result(
            "grammar", "Cannot evaluate English grammar: the message is mostly non-English."
        )

    rule_errors = find_rule_errors(message, tier)
    heuristic_errors, heuristic_penalty = _heuristic_errors(message)
    feedback: list[str] = []

    if language.relax_grammar:
        kept = [e for e in rule_errors if e.severity.at_least(ErrorSeverity.HIGH)]
        skipped = len(rule_errors) - len(kept)
        rule_errors = kept
        if skipped:
            feedback.append(
                f"Mixed-language detected - skipped {skipped} minor grammar suggestions."
            )

    words = tokenize_words(message)
    sentences = split_sentences(message)
    score, details = compute_grammar_score(
        rule_errors,
        word_count=len(words),
        sentence_count=len(sentences),
        heuristic_penalty=heuristic_penalty,
        level=level,
        relaxed=language.relax_grammar,
    )

    errors = rule_errors + heuristic_errors
    critical = sum(1 for e in errors if e.severity is ErrorSeverity.CRITICAL)
    if critical:
        feedback.append(f"Found {critical} critical grammar issue(s); focus on sentence structure.")
    elif errors:
        feedback.append("A few grammar points to review.")
    else:
        feedback.append("Grammar looks correct.")

    metrics = CategoryMetrics(
        score=score,
        error_count=len(errors),
        severity_distribution=severity_histogram(errors),
        dominant_patterns=_dominant(errors),
        details={**details, "heuristic_penalty": heuristic_penalty, "relaxed": language.relax_grammar},
    )
    return CategoryResult(score=score, errors=errors, feedback=feedback, metrics=metrics)
