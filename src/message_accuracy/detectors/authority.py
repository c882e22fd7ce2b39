"""Authoritative grammar merge: a grammar-service result overrides the pattern score."""

from pydantic import BaseModel, Field

from message_accuracy.assessment.grammar import compute_grammar_score
from message_accuracy.models.errors import ErrorKind, ErrorRecord, ErrorSeverity

GRAMMAR_KINDS = frozenset({ErrorKind.GRAMMAR, ErrorKind.SYNTAX})
ZERO_REPORT_FLOOR = 80


class GrammarMerge(BaseModel):
    """Outcome of merging service and local grammar findings."""

    score: float
    errors: list[ErrorRecord] = Field(default_factory=list)
    authoritative: bool = False
    strict_zero_applied: bool = False
    note: str | None = None


def score_error_count(count: int) -> int:
    """Grammar score for a number of real grammar errors.

    0 -> 100, 1-3 -> 85 stepping down by 7.5, 4 -> 65, 5 -> 60, then 5 points
    per extra error down to 20.
    """
    if count <= 0:
        return 100
    if count <= 3:
        return round(85 - (count - 1) * 7.5)
    if count == 4:
        return 65
    if count == 5:
        return 60
    return max(20, 50 - (count - 5) * 5)


def _extra_local(local_errors: list[ErrorRecord], service_errors: list[ErrorRecord]) -> list[ErrorRecord]:
    extras = []
    for error in local_errors:
        if error.kind not in GRAMMAR_KINDS or not error.severity.at_least(ErrorSeverity.HIGH):
            continue
        if any(error.overlaps(s) for s in service_errors):
            continue
        extras.append(error)
    return extras


def merge_grammar(
    local_score: float,
    local_errors: list[ErrorRecord],
    service_errors: list[ErrorRecord] | None,
    spelling_errors: list[ErrorRecord],
    evidence_errors: list[ErrorRecord],
    word_count: int = 0,
    sentence_count: int = 0,
    strict_zero: bool = True,
) -> GrammarMerge:
    """Combine the grammar service's findings with the local pattern analysis.

    Args:
        local_score: Pattern-rule grammar score.
        local_errors: Pattern-rule grammar errors.
        service_errors: Errors from a live grammar service, or None when only
            a fallback was available.
        spelling_errors: Spelling findings that may corroborate a problem.
        evidence_errors: Tutor-evidence findings that may corroborate a problem.
        word_count: Words in the message, for the severity-weighted cap.
        sentence_count: Sentences in the message.
        strict_zero: Allow a clean service report to force a perfect score.

    Returns:
        GrammarMerge with the final grammar score and the merged error list.
    """
    if service_errors is None:
        return GrammarMerge(score=local_score, errors=local_errors)

    reported = [e for e in service_errors if e.kind in GRAMMAR_KINDS]
    merged = reported + _extra_local(local_errors, reported)

    if not merged:
        corroborated = bool(spelling_errors or evidence_errors)
        if strict_zero and not corroborated:
            return GrammarMerge(
                score=100,
                authoritative=True,
                strict_zero_applied=True,
                note="Grammar service reported no issues.",
            )
        return GrammarMerge(
            score=max(local_score, ZERO_REPORT_FLOOR) if not local_errors else local_score,
            errors=local_errors,
            authoritative=True,
        )

    # Severities cap the count-based score
    weighted, _ = compute_grammar_score(merged, word_count, sentence_count)
    score = min(score_error_count(len(merged)), weighted)
    has_critical = any(e.severity is ErrorSeverity.CRITICAL for e in merged)
    if not reported and not has_critical:
        score = max(score, ZERO_REPORT_FLOOR)
    return GrammarMerge(score=score, errors=merged, authoritative=True)
