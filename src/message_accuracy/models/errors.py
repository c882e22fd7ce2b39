"""Error record models."""

from collections import Counter
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class ErrorKind(StrEnum):
    """What part of the language an error belongs to."""

    GRAMMAR = "grammar"
    SPELLING = "spelling"
    VOCABULARY = "vocabulary"
    FLUENCY = "fluency"
    PUNCTUATION = "punctuation"
    CAPITALIZATION = "capitalization"
    SYNTAX = "syntax"
    STYLE = "style"
    COHERENCE = "coherence"


class ErrorSeverity(StrEnum):
    """Error severity, ordered from most to least severe."""

    CRITICAL = "critical"
    MAJOR = "major"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    SUGGESTION = "suggestion"

    @property
    def rank(self) -> int:
        """Higher rank means more severe (suggestion=0 ... critical=5)."""
        return len(_SEVERITY_ORDER) - 1 - _SEVERITY_ORDER.index(self)

    def at_least(self, other: "ErrorSeverity") -> bool:
        return self.rank >= other.rank


_SEVERITY_ORDER = list(ErrorSeverity)


class ErrorRecord(BaseModel):
    """One detected issue in a learner message."""

    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    severity: ErrorSeverity
    message: str
    start: int | None = None
    end: int | None = None
    text: str | None = None
    suggestion: str | None = None
    rule: str | None = None
    explanation: str | None = None
    examples: list[str] = Field(default_factory=list)
    alternatives: list[str] = Field(default_factory=list)
    source: str = "local"

    @property
    def has_span(self) -> bool:
        return self.start is not None and self.end is not None

    def overlaps(self, other: "ErrorRecord") -> bool:
        """Whether two records point at overlapping character spans."""
        if not (self.has_span and other.has_span):
            return False
        return self.start < other.end and other.start < self.end


def dedupe_errors(records: list[ErrorRecord]) -> list[ErrorRecord]:
    """Drop records describing the same issue twice.

    Records are keyed on (kind, start, end); records without a span fall back
    to (kind, rule, message). The first record for a key wins.

    Args:
        records: Errors in detection order.

    Returns:
        Errors with duplicates removed, order preserved.
    """
    seen: set[tuple] = set()
    unique: list[ErrorRecord] = []
    for record in records:
        if record.has_span:
            key = (record.kind, record.start, record.end)
        else:
            key = (record.kind, record.rule, record.message)
        if key in seen:
            continue
        seen.add(key)
        unique.append(record)
    return unique


def severity_histogram(records: list[ErrorRecord]) -> dict[str, int]:
    """Count errors per severity, including zero buckets."""
    counts = Counter(r.severity.value for r in records)
    return {s.value: counts.get(s.value, 0) for s in ErrorSeverity}


def kind_histogram(records: list[ErrorRecord]) -> dict[str, int]:
    """Count errors per kind, omitting kinds with no errors."""
    return dict(Counter(r.kind.value for r in records))


def highest_severity(records: list[ErrorRecord]) -> ErrorSeverity | None:
    if not records:
        return None
    return max((r.severity for r in records), key=lambda s: s.rank)
