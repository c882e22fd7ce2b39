"""Heuristic fluency analyzer."""

import math
import re
import statistics

import textstat

from message_accuracy.assessment.text import (
    TRANSITION_WORDS,
    get_nlp,
    normalize_typography,
    split_sentences,
)
from message_accuracy.models.analysis import CategoryMetrics, CategoryResult
from message_accuracy.models.errors import ErrorKind, ErrorRecord, ErrorSeverity, severity_histogram
from message_accuracy.models.request import Proficiency, Tier

TARGET_SENTENCE_LENGTH = 16

FILLER_WORDS = {"um", "uh", "er", "ah", "like", "basically", "actually", "literally"}
FILLER_PHRASES = [
    re.compile(r"\byou\s+know\b", re.IGNORECASE),
    re.compile(r"\bi\s+mean\b", re.IGNORECASE),
    re.compile(r"\bsort\s+of\b", re.IGNORECASE),
    re.compile(r"\bkind\s+of\b", re.IGNORECASE),
]

LEVEL_ADJUSTMENTS: dict[Proficiency, int] = {
    Proficiency.BEGINNER: 5,
    Proficiency.EXPERT: -3,
}

_PAST_RE = re.compile(r"\b\w+ed\b|\bwas\b|\bwere\b|\bhad\b", re.IGNORECASE)
_FUTURE_RE = re.compile(r"\bwill\b|\bgoing to\b|\bgonna\b|\bshall\b", re.IGNORECASE)
_CONJUNCTION_RE = re.compile(r"\b(?:and|but|or|so|then)\b", re.IGNORECASE)
_FINITE_AUX_RE = re.compile(
    r"\b(?:am|is|are|was|were|be|been|being|have|has|had|do|does|did|will|would|shall|"
    r"should|can|could|must|may|might)\b",
    re.IGNORECASE,
)
_PAST_OR_THIRD_RE = re.compile(r"\b\w+(?:ed|s)\b", re.IGNORECASE)
_COMMON_FINITE_RE = re.compile(
    r"\b(?:went|came|saw|ate|bought|made|took|got|gave|told|said|felt|knew|thought|left|"
    r"found|ran|wrote|met|began|kept|brought|sat|stood|heard|paid|lost|won|spent|"
    r"go|like|want|need|know|think|love|live|work|play|come|see|eat|feel|hope)\b",
    re.IGNORECASE,
)
# Subject directly followed by a gerund ("he going")
_SUBJECT_GERUND_RE = re.compile(r"\b(?:i|you|he|she|we|they)\s+\w+ing\b", re.IGNORECASE)
_SUBJECT_NOT_VERB_RE = re.compile(
    r"\b(?:i|you|he|she|we|they)\s+not\s+(?!\w+(?:ing|ed)\b)[a-z]{2,}\b", re.IGNORECASE
)
# Sentence opening with a past/third-person verb followed by a subject pronoun ("Went he home")
_REVERSED_ORDER_RE = re.compile(
    r"^(?:[a-z]+ed|went|came|saw|ate|bought|goes|likes|wants)\s+(?:i|you|he|she|we|they)\b",
    re.IGNORECASE,
)
# Words before a verb or comparison "like", used when spaCy is unavailable
_LIKE_VERB_CONTEXT = {
    "i", "you", "he", "she", "we", "they", "would", "do", "don't", "didn't", "not", "to",
    "really", "also",
    "look", "looks", "feel", "feels", "seem", "seems", "sound", "sounds",
}
_ADVERBIAL_OPENER_RE = re.compile(r"^(?:rarely|never|seldom|hardly|scarcely)\b", re.IGNORECASE)
_QUESTION_RE = re.compile(r"([^.!?]+)\?")
_EXPANDED_RE = re.compile(
    r"\b(?:do not|does not|did not|is not|are not|would not|could not|should not|I am)\b",
    re.IGNORECASE,
)
_CONTRACTION_RE = re.compile(
    r"\b(?:don't|doesn't|didn't|isn't|aren't|wouldn't|couldn't|shouldn't|I'm)\b", re.IGNORECASE
)


def readability_components(text: str) -> dict[str, float]:
    """Flesch reading ease, Gunning fog and the blended readability score."""
    flesch = max(0.0, min(100.0, float(textstat.flesch_reading_ease(text))))
    fog = max(0.0, float(textstat.gunning_fog(text)))
    fog_score = max(0.0, min(100.0, 120 - fog * 10))
    return {
        "flesch_reading_ease": flesch,
        "gunning_fog": fog,
        "fog_score": fog_score,
        "readability": round(flesch * 0.6 + fog_score * 0.4),
    }


def is_filler_word(token) -> bool:
    """Context-aware filler check on a spaCy token."""
    word = token.text.lower()
    if word != "like":
        return word in FILLER_WORDS
    # "I like dogs", "would like", "like a dog"
    if token.pos_ == "VERB":
        return False
    if any(t.text.lower() == "would" for t in token.head.children):
        return False
    return not (token.pos_ in ("ADP", "SCONJ") and token.dep_ in ("prep", "mark"))


def count_fillers(text: str, words: list[str]) -> int:
    """Filler words and phrases in ``text``; ``words`` are its cleaned lowercase tokens."""
    count = sum(len(p.findall(text)) for p in FILLER_PHRASES)
    nlp = get_nlp()
    if nlp is None:
        return count + sum(
            1 for i, w in enumerate(words)
            if w in FILLER_WORDS and not (w == "like" and i and words[i - 1] in _LIKE_VERB_CONTEXT)
        )
    return count + sum(1 for token in nlp(text) if is_filler_word(token))


def _fluency_error(message: str, severity: ErrorSeverity, rule: str, suggestion: str) -> ErrorRecord:
    return ErrorRecord(
        kind=ErrorKind.FLUENCY,
        severity=severity,
        message=message,
        suggestion=suggestion,
        rule=rule,
    )


def analyze_fluency(
    message: str,
    tier: Tier = Tier.FREE,
    level: Proficiency = Proficiency.INTERMEDIATE,
) -> CategoryResult:
    """Score fluency from readability, smoothness and cohesion minus penalties.

    Args:
        message: Learner message.
        tier: Subscription tier.
        level: Learner proficiency.

    Returns:
        CategoryResult for fluency, with prosody/intelligibility/pacing/stress
        sub-scores in the metrics details.
    """
    text = normalize_typography(message)
    raw_words = text.split()
    if not raw_words:
        error = _fluency_error(
            "Provide at least one full sentence for fluency analysis.",
            ErrorSeverity.MEDIUM,
            "no-sentence",
            "Write a complete thought with a subject and a verb.",
        )
        return CategoryResult(
            score=50,
            errors=[error],
            feedback=["Add more context so we can evaluate fluency accurately."],
            metrics=CategoryMetrics(
                score=50,
                error_count=1,
                severity_distribution=severity_histogram([error]),
                details={"prosody": 40, "intelligibility": 45, "pacing": 50, "stress": 55},
            ),
        )

    sentences = split_sentences(text) or [text.strip()]
    lengths = [len(s.split()) for s in sentences]
    total_words = len(raw_words)
    avg_sentence = total_words / max(1, len(sentences))
    std_dev = statistics.pstdev(lengths) if len(lengths) > 1 else 0.0

    words = [re.sub(r"[^a-z']", "", w.lower()) for w in raw_words]
    words = [w for w in words if w]
    readability = readability_components(text)

    length_score = max(40, 100 - abs(avg_sentence - TARGET_SENTENCE_LENGTH) * 4)
    smooth_score = max(40, 100 - max(0, std_dev - 6) * 5)
    smoothness = round(length_score * 0.6 + smooth_score * 0.4)

    connectors = sum(1 for w in words if w in TRANSITION_WORDS)
    cohesion = min(100, 65 + connectors * 6)

    filler_count = count_fillers(text, words)
    filler_penalty = min(25, filler_count * 3)

    variety = len(set(words)) / max(len(words), 1)
    redundancy_penalty = 12 if variety < 0.35 else 6 if variety < 0.45 else 0

    base = readability["readability"] * 0.4 + smoothness * 0.35 + cohesion * 0.25
    score = round(base - filler_penalty - redundancy_penalty)

    punctuation_variety = len(set(re.findall(r"[,:;?!]", text)))
    stress_indicators = len(re.findall(r"\b[A-Z]{2,}\b", message))
    pacing = max(40, min(100, 100 - abs(avg_sentence - TARGET_SENTENCE_LENGTH) * 3 - max(0, std_dev - 4) * 4))
    prosody = max(40, min(100, 60 + min(25, punctuation_variety * 6) + min(15, connectors * 3) - max(0, std_dev - 5) * 3))
    intelligibility = max(40, min(100, readability["readability"] - filler_penalty * 1.2 - redundancy_penalty * 1.5))
    stress = max(40, min(100, 90 - min(20, stress_indicators * 4)))

    errors: list[ErrorRecord] = []
    feedback: list[str] = []

    tense_conflicts = sum(1 for s in sentences if _PAST_RE.search(s) and _FUTURE_RE.search(s))
    if tense_conflicts > 1:
        score -= 20
        errors.append(_fluency_error(
            f"Multiple tense inconsistencies detected ({tense_conflicts}).",
            ErrorSeverity.HIGH,
            "tense-conflict",
            "Keep verb tenses consistent; avoid mixing past and future in one clause.",
        ))
        feedback.append("Tense inconsistencies make writing confusing. Keep tenses consistent.")

    missing_commas = sum(1 for s, n in zip(sentences, lengths) if n > 10 and "," not in s)
    if missing_commas:
        score -= 10
        errors.append(_fluency_error(
            f"Long sentence(s) missing commas ({missing_commas}).",
            ErrorSeverity.MEDIUM,
            "missing-comma",
            "Use commas to break long sentences into readable clauses.",
        ))
        feedback.append("Consider using commas in long sentences to improve readability.")

    run_ons = 0
    for s in sentences:
        indicators = s.count(";") + max(0, len(_CONJUNCTION_RE.findall(s)) - 1)
        if indicators > 2:
            run_ons += 1
    if run_ons > 2:
        score -= 15
        errors.append(_fluency_error(
            f"Run-on clause patterns detected ({run_ons}).",
            ErrorSeverity.HIGH,
            "run-on-clauses",
            "Split run-on clauses into separate sentences.",
        ))
        feedback.append("Run-on sentences reduce clarity; try splitting clauses.")

    questions = {m.group(1).strip() for m in _QUESTION_RE.finditer(text)}
    fragments = missing_aux = reversed_order = 0
    for s, n in zip(sentences, lengths):
        has_verb = (
            _FINITE_AUX_RE.search(s)
            or _PAST_OR_THIRD_RE.search(s)
            or _COMMON_FINITE_RE.search(s)
        )
        if not has_verb and n <= 8:
            fragments += 1
        if _SUBJECT_GERUND_RE.search(s) or _SUBJECT_NOT_VERB_RE.search(s):
            missing_aux += 1
        if (
            s not in questions
            and _REVERSED_ORDER_RE.search(s)
            and not _ADVERBIAL_OPENER_RE.search(s)
        ):
            reversed_order += 1

    if fragments:
        score -= min(20, 6 + fragments * 6)
        errors.append(_fluency_error(
            f"Possible sentence fragments detected ({fragments}).",
            ErrorSeverity.MEDIUM,
            "fragment",
            "Make sure each sentence has a main verb and a complete thought.",
        ))
        feedback.append("Some sentence fragments were detected; add a verb or complete the clause.")

    if missing_aux:
        score -= min(30, 8 + missing_aux * 10)
        errors.append(_fluency_error(
            f"Missing auxiliary verbs detected ({missing_aux}).",
            ErrorSeverity.HIGH,
            "missing-auxiliary",
            "Check for missing 'be'/'do' auxiliaries (e.g. 'He going' -> 'He is going').",
        ))
        feedback.append("Add the correct auxiliary (is/are/do/does/has/have).")

    expanded = len(_EXPANDED_RE.findall(text))
    if expanded and not _CONTRACTION_RE.search(text) and total_words > 4:
        score -= min(8, expanded * 2)
        errors.append(_fluency_error(
            f"Expanded forms detected ({expanded}) with no contractions.",
            ErrorSeverity.LOW,
            "expanded-forms",
            "Use contractions in casual contexts (e.g. 'do not' -> 'don't').",
        ))
        feedback.append("Contractions can make casual writing sound more natural.")

    if reversed_order:
        score -= min(25, 7 + reversed_order * 9)
        errors.append(_fluency_error(
            f"Possible reversed subject-verb order detected ({reversed_order}).",
            ErrorSeverity.HIGH,
            "reversed-order",
            "Put the subject before the main verb in statements.",
        ))
        feedback.append("Some sentences appear to have inverted word order.")

    score += LEVEL_ADJUSTMENTS.get(level, 0)
    score = max(0, min(100, score))

    if filler_count:
        feedback.append(f"Reduce filler words ({filler_count} found).")
    if connectors == 0 and len(sentences) > 1:
        feedback.append("Add transition words to guide the reader between ideas.")
    if not feedback:
        feedback.append("Your writing flows well.")

    metrics = CategoryMetrics(
        score=score,
        error_count=len(errors),
        severity_distribution=severity_histogram(errors),
        dominant_patterns=[e.rule or "" for e in errors[:3]],
        details={
            "readability": readability["readability"],
            "flesch_reading_ease": round(readability["flesch_reading_ease"], 1),
            "gunning_fog": round(readability["gunning_fog"], 1),
            "smoothness": smoothness,
            "cohesion": cohesion,
            "filler_count": filler_count,
            "lexical_variety": round(variety, 3),
            "average_sentence_length": round(avg_sentence, 2),
            "prosody": round(prosody),
            "intelligibility": round(intelligibility),
            "pacing": round(pacing),
            "stress": round(stress),
            "pronunciation_overall": math.floor(
                prosody * 0.35 + intelligibility * 0.35 + pacing * 0.2 + stress * 0.1 + 0.5
            ),
        },
    )
    return CategoryResult(score=score, errors=errors, feedback=feedback, metrics=metrics)
