"""Vocabulary range analyzer."""

from message_accuracy.assessment.text import ACADEMIC_WORDS, tokenize_words
from message_accuracy.assessment.tiers import get_features
from message_accuracy.models.analysis import CategoryMetrics, CategoryResult
from message_accuracy.models.errors import ErrorKind, ErrorRecord, ErrorSeverity, severity_histogram
from message_accuracy.models.request import Proficiency, Tier

SHORT_TEXT_WORDS = 25
SHORT_TEXT_BOOST = 10
RARE_WORD_LENGTH = 10

# Basic word -> stronger alternatives, offered from Pro upward
ADVANCED_ALTERNATIVES: dict[str, list[str]] = {
    "good": ["excellent", "outstanding", "remarkable"],
    "bad": ["poor", "inadequate", "unsatisfactory"],
    "big": ["large", "substantial", "considerable"],
    "small": ["minor", "modest", "limited"],
    "very": ["extremely", "highly", "particularly"],
    "get": ["obtain", "acquire", "receive"],
    "make": ["create", "produce", "generate"],
    "think": ["believe", "consider", "suppose"],
    "nice": ["pleasant", "delightful", "agreeable"],
}


def estimate_cefr(academic_percent: float, word_count: int) -> str:
    """Rough CEFR band from the share of academic words."""
    if academic_percent > 30:
        return "C2"
    if academic_percent > 20:
        return "C1"
    if academic_percent > 10:
        return "B2"
    if academic_percent > 5:
        return "B1"
    if word_count > 10:
        return "A2"
    return "A1"


def vocabulary_metrics(words: list[str]) -> dict[str, float]:
    """Compute diversity, academic, rare-word and length statistics.

    Args:
        words: Lowercased word tokens.

    Returns:
        Dict with diversity, academic_percent, rare_ratio, average_word_length,
        repetition_rate and total_words.
    """
    total = len(words)
    if not total:
        return {
            "diversity": 0.0,
            "academic_percent": 0.0,
            "rare_ratio": 0.0,
            "average_word_length": 0.0,
            "repetition_rate": 0.0,
            "total_words": 0,
        }
    diversity = len(set(words)) / total
    academic = sum(1 for w in words if w in ACADEMIC_WORDS)
    rare = sum(1 for w in words if len(w) > RARE_WORD_LENGTH)
    return {
        "diversity": diversity,
        "academic_percent": academic / total * 100,
        "rare_ratio": rare / total,
        "average_word_length": sum(len(w) for w in words) / total,
        "repetition_rate": 1 - diversity,
        "total_words": total,
    }


def vocabulary_score(metrics: dict[str, float]) -> int:
    """Range score minus repetition penalty, with a short-text leniency boost."""
    if not metrics["total_words"]:
        return 0
    range_score = min(100, round(
        metrics["diversity"] * 75
        + min(20, metrics["average_word_length"] * 3)
        + min(10, metrics["academic_percent"] * 0.5)
    ))
    repetition_penalty = round(metrics["repetition_rate"] * 45)
    score = range_score - repetition_penalty + min(5, metrics["rare_ratio"] * 40)
    if metrics["total_words"] < SHORT_TEXT_WORDS:
        score += SHORT_TEXT_BOOST
    return round(max(0, min(100, score)))


def analyze_vocabulary(
    message: str,
    tier: Tier = Tier.FREE,
    level: Proficiency = Proficiency.INTERMEDIATE,
) -> CategoryResult:
    """Score lexical range and repetition.

    Args:
        message: Learner message.
        tier: Subscription tier (Pro and up get word-choice suggestions).
        level: Learner proficiency.

    Returns:
        CategoryResult for vocabulary.
    """
    words = tokenize_words(message)
    metrics = vocabulary_metrics(words)
    score = vocabulary_score(metrics)
    cefr = estimate_cefr(metrics["academic_percent"], len(words))

    errors: list[ErrorRecord] = []
    feedback: list[str] = []
    if words and metrics["diversity"] < 0.5 and len(words) >= 8:
        errors.append(ErrorRecord(
            kind=ErrorKind.VOCABULARY,
            severity=ErrorSeverity.LOW,
            message="Many words are repeated.",
            suggestion="Use synonyms to avoid repeating the same words.",
            rule="low-lexical-diversity",
        ))
        feedback.append("Try varying your word choice; several words are repeated.")
    if words and metrics["academic_percent"] < 5 and level in (Proficiency.ADVANCED, Proficiency.EXPERT):
        feedback.append("Add more precise or academic vocabulary for your level.")

    features = get_features(tier)
    suggestions: list[str] = []
    if features.vocabulary_analysis:
        for basic, alternatives in ADVANCED_ALTERNATIVES.items():
            if basic in words:
                suggestions.append(f"Instead of '{basic}', try '{alternatives[0]}' or '{alternatives[1]}'.")
        feedback.extend(suggestions[: features.max_suggestions])

    result_metrics = CategoryMetrics(
        score=score,
        error_count=len(errors),
        severity_distribution=severity_histogram(errors),
        dominant_patterns=[e.rule or "" for e in errors],
        details={
            "diversity": round(metrics["diversity"], 3),
            "academic_ratio": round(metrics["academic_percent"] / 100, 3),
            "rare_ratio": round(metrics["rare_ratio"], 3),
            "average_word_length": round(metrics["average_word_length"], 2),
            "repetition_rate": round(metrics["repetition_rate"], 3),
            "cefr_level": cefr,
        },
    )
    return CategoryResult(score=score, errors=errors, feedback=feedback, metrics=result_metrics)
