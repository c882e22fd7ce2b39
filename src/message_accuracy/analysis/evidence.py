"""Mine the tutor's reply for evidence that the learner message had errors."""

import re

import Levenshtein
import structlog

from message_accuracy.models.analysis import AIResponseAnalysis
from message_accuracy.models.errors import ErrorKind, ErrorRecord, ErrorSeverity

logger = structlog.get_logger()

EVIDENCE_SOURCE = "tutor-evidence"
FLUENCY_PENALTY_PER_CORRECTION = 6
MAX_FLUENCY_PENALTY = 30
JACCARD_THRESHOLD = 0.8
LEVENSHTEIN_THRESHOLD = 0.15

_BRACKET_RE = re.compile(r'\[CORRECTION:\s*"([^"\]]+)"(?:\s*->\s*"([^"\]]+)")?\]', re.IGNORECASE)
_SIDE_BY_SIDE_RE = re.compile(r'"([^"\]]+)"\s*(?:→|->|=>)\s*"([^"\]]+)"')
_PAIRED_RE = re.compile(
    r'(?:original|before)\s*:\s*"([^"]+)"[\s\S]{0,120}?'
    r'(?:improved|after|better|rewrite)\s*:\s*"([^"]+)"',
    re.IGNORECASE,
)
_QUOTED_RE = re.compile(r'"([^"]+)"|(?<!\w)\'([^\']+)\'(?!\w)')

_MARKERS = ("[ERROR:", "[CORRECTION", "✓", "[NOTE")
_CORRECTION_RE = re.compile(
    r"should be|correct|mistake|error|wrong|incorrect|fix|change|instead of|better to say",
    re.IGNORECASE,
)
_GRAMMAR_RE = re.compile(
    r"grammar|word order|verb|tense|structure|subject-verb|question formation|pronoun",
    re.IGNORECASE,
)
_STYLE_RE = re.compile(r"style|tone|formality", re.IGNORECASE)

APPRECIATION_POINTS = {"high": 25, "moderate": 15, "minimal": 5, "none": 0}


def normalize(text: str) -> str:
    return re.sub(r"\s+", " ", text.lower()).strip()


def semantic_difference(a: str, b: str) -> tuple[float, float]:
    """Word-set Jaccard similarity and normalized Levenshtein distance."""
    words_a, words_b = set(a.split()), set(b.split())
    union = words_a | words_b
    jaccard = len(words_a & words_b) / len(union) if union else 0.0
    longest = max(len(a), len(b))
    lev = Levenshtein.distance(a, b) / longest if longest else 0.0
    return jaccard, lev


def correction_severity(errors: list[ErrorRecord]) -> str:
    """Grade the overall severity of corrections from an error list."""
    total = len(errors)
    critical = sum(1 for e in errors if e.severity is ErrorSeverity.CRITICAL)
    high = sum(1 for e in errors if e.severity is ErrorSeverity.HIGH)
    medium = sum(1 for e in errors if e.severity is ErrorSeverity.MEDIUM)
    if critical or total >= 5:
        return "critical"
    if high >= 3 or total >= 4:
        return "major"
    if high or medium >= 2:
        return "moderate"
    if total:
        return "minor"
    return "none"


def appreciation_level(response: str) -> str:
    lowered = response.lower()
    if any(w in lowered for w in ("great", "excellent", "perfect")):
        return "high"
    if any(w in lowered for w in ("good", "well done")):
        return "moderate"
    if any(w in lowered for w in ("nice", "okay")):
        return "minimal"
    return "none"


def _evidence_error(message: str, before: str | None, after: str | None, rule: str, note: str) -> ErrorRecord:
    start = end = None
    if before:
        # Corrections are whitespace-collapsed; match any whitespace run in the message
        pattern = r"\s+".join(re.escape(part) for part in before.split())
        match = re.search(pattern, message, re.IGNORECASE)
        if match:
            start, end = match.span()
    return ErrorRecord(
        kind=ErrorKind.GRAMMAR,
        severity=ErrorSeverity.MEDIUM,
        message=note,
        start=start,
        end=end,
        text=message[start:end] if start is not None else before,
        suggestion=after,
        rule=rule,
        source=EVIDENCE_SOURCE,
    )


def extract_corrections(message: str, tutor_response: str) -> list[ErrorRecord]:
    """Collect explicit corrections from bracket, arrow and before/after markup.

    Args:
        message: Learner message.
        tutor_response: Tutor reply that may contain corrections.

    Returns:
        One medium grammar ErrorRecord per correction, located in ``message``
        when the corrected text can be found there.
    """
    errors: list[ErrorRecord] = []

    for match in _BRACKET_RE.finditer(tutor_response):
        before = normalize(match.group(1)) if match.group(2) else None
        after = normalize(match.group(2) or match.group(1))
        errors.append(_evidence_error(
            message, before, after, "tutor-bracket-correction", "Tutor suggested a correction."
        ))
    # Blank out bracket markup so its inner arrow pair is not counted twice
    remaining = _BRACKET_RE.sub(lambda m: " " * len(m.group()), tutor_response)

    for match in _SIDE_BY_SIDE_RE.finditer(remaining):
        errors.append(_evidence_error(
            message,
            normalize(match.group(1)),
            normalize(match.group(2)),
            "tutor-side-by-side-correction",
            "Tutor suggested a side-by-side correction.",
        ))

    original = normalize(message)
    for match in _PAIRED_RE.finditer(tutor_response):
        after = normalize(match.group(2))
        jaccard, lev = semantic_difference(original, after)
        if jaccard < JACCARD_THRESHOLD or lev > LEVENSHTEIN_THRESHOLD:
            errors.append(_evidence_error(
                message,
                normalize(match.group(1)),
                after,
                "tutor-paired-rewrite",
                "Tutor provided a rewritten version.",
            ))
    return errors


def analyze_tutor_response(
    message: str,
    tutor_response: str | None,
    local_errors: list[ErrorRecord] | None = None,
) -> tuple[AIResponseAnalysis, list[ErrorRecord]]:
    """Summarize correction evidence in the tutor reply.

    Args:
        message: Learner message.
        tutor_response: Tutor reply, if any.
        local_errors: Errors already found locally; they feed the
            correction-severity grade.

    Returns:
        Tuple of (analysis, evidence errors).
    """
    if not tutor_response or not tutor_response.strip():
        return AIResponseAnalysis(), []

    explicit = extract_corrections(message, tutor_response)
    has_marker = any(marker in tutor_response for marker in _MARKERS)
    has_feedback = has_marker or bool(_CORRECTION_RE.search(tutor_response))
    has_grammar = bool(_GRAMMAR_RE.search(tutor_response))

    phrases = [a or b for a, b in _QUOTED_RE.findall(tutor_response)]
    evidence = list(explicit)
    if has_feedback:
        covered = {e.text.lower() for e in explicit if e.text}
        lowered = message.lower()
        for phrase in phrases:
            key = normalize(phrase)
            if len(key) < 2 or key in covered or key not in lowered:
                continue
            covered.add(key)
            evidence.append(_evidence_error(
                message, key, None, "tutor-quoted-phrase", "Tutor quoted this phrase as needing a fix."
            ))

    appreciation = appreciation_level(tutor_response)
    engagement = min(
        100,
        (30 if has_feedback else 0)
        + (25 if has_grammar else 0)
        + (20 if phrases else 0)
        + APPRECIATION_POINTS[appreciation],
    )
    grammar_corrections = sum(1 for e in evidence if e.kind is ErrorKind.GRAMMAR)
    analysis = AIResponseAnalysis(
        has_correction_feedback=has_feedback,
        has_grammar_correction=has_grammar,
        has_style_suggestion=bool(_STYLE_RE.search(tutor_response)),
        detected_corrections=len(evidence),
        corrected_phrases=phrases,
        severity_of_corrections=correction_severity((local_errors or []) + evidence),
        appreciation_level=appreciation,
        engagement_score=engagement,
        fluency_penalty=min(MAX_FLUENCY_PENALTY, grammar_corrections * FLUENCY_PENALTY_PER_CORRECTION),
    )
    if evidence:
        logger.debug(
            "tutor_evidence_extracted",
            corrections=len(explicit),
            quoted=len(evidence) - len(explicit),
        )
    return analysis, evidence
