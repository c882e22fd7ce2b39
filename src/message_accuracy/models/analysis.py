"""Per-stage analysis result models."""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from message_accuracy.models.errors import ErrorRecord
from message_accuracy.models.snapshot import AccuracySnapshot, CategoryTrend


class LanguageMode(StrEnum):
    PURE_ENGLISH = "pure_english"
    MIXED = "mixed"
    NON_ENGLISH = "non_english"


class LanguageContext(BaseModel):
    """Language Filter output consulted by every downstream analyzer."""

    model_config = ConfigDict(frozen=True)

    primary_language: str = "eng"
    english_ratio: float = 1.0
    non_latin_ratio: float = 0.0
    mode: LanguageMode = LanguageMode.PURE_ENGLISH
    skip_english_checks: bool = False
    relax_grammar: bool = False
    notes: list[str] = Field(default_factory=list)


class CategoryMetrics(BaseModel):
    """Diagnostic bundle for one category."""

    score: float
    error_count: int = 0
    severity_distribution: dict[str, int] = Field(default_factory=dict)
    dominant_patterns: list[str] = Field(default_factory=list)
    details: dict[str, Any] = Field(default_factory=dict)


class CategoryResult(BaseModel):
    """What every category analyzer returns."""

    model_config = ConfigDict(frozen=True)

    score: float
    errors: list[ErrorRecord] = Field(default_factory=list)
    feedback: list[str] = Field(default_factory=list)
    metrics: CategoryMetrics


class DetectorContribution(BaseModel):
    """Observability record for one external detector call."""

    detector: str
    source: str
    score: float | None = None
    confidence: float = 0.0
    error_count: int = 0
    latency_ms: float = 0.0
    note: str | None = None

    @property
    def is_fallback(self) -> bool:
        return self.source.startswith("fallback-")


class AIResponseAnalysis(BaseModel):
    """Summary of correction evidence mined from the tutor response."""

    has_correction_feedback: bool = False
    has_grammar_correction: bool = False
    has_style_suggestion: bool = False
    detected_corrections: int = 0
    corrected_phrases: list[str] = Field(default_factory=list)
    severity_of_corrections: str = "none"
    appreciation_level: str = "none"
    engagement_score: int = 0
    fluency_penalty: int = 0


class WeightingInfo(BaseModel):
    """How the current and historical snapshots were blended."""

    current_weight: float = 1.0
    historical_weight: float = 0.0
    history_count: int = 0
    reason: str = "no_history"


class AccuracySnapshotPair(BaseModel):
    """Everything an analysis run produces.

    ``current`` scores this message alone and ``weighted`` blends it with the
    user's history; both are always present.
    """

    current: AccuracySnapshot
    weighted: AccuracySnapshot
    errors: list[ErrorRecord] = Field(default_factory=list)
    feedback: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    categories: dict[str, CategoryMetrics] = Field(default_factory=dict)
    contributions: list[DetectorContribution] = Field(default_factory=list)
    ai_response_analysis: AIResponseAnalysis | None = None
    language: LanguageContext = Field(default_factory=LanguageContext)
    advanced: dict[str, Any] = Field(default_factory=dict)
    trends: list[CategoryTrend] = Field(default_factory=list)
    weighting: WeightingInfo = Field(default_factory=WeightingInfo)
    fusion_weights: dict[str, float] = Field(default_factory=dict)
    weights_redistributed: bool = False
