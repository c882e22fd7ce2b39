"""Accuracy snapshot models."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator

BASE_CATEGORIES: tuple[str, ...] = (
    "grammar",
    "vocabulary",
    "spelling",
    "fluency",
    "punctuation",
    "capitalization",
)

ALL_CATEGORIES: tuple[str, ...] = BASE_CATEGORIES + ("syntax", "coherence")


def clamp_score(value: float) -> float:
    """Clamp a score into [0, 100]."""
    return max(0.0, min(100.0, float(value)))


class CategoryScores(BaseModel):
    """Scores for the six base categories plus syntax and coherence (0-100 each)."""

    grammar: float = 0.0
    vocabulary: float = 0.0
    spelling: float = 0.0
    fluency: float = 0.0
    punctuation: float = 0.0
    capitalization: float = 0.0
    syntax: float = 0.0
    coherence: float = 0.0

    @field_validator("*", mode="before")
    @classmethod
    def _clamp(cls, value: float) -> float:
        return clamp_score(value)

    def base_scores(self) -> dict[str, float]:
        return {name: getattr(self, name) for name in BASE_CATEGORIES}

    @classmethod
    def neutral(cls, value: float = 50.0) -> "CategoryScores":
        return cls(**{name: value for name in ALL_CATEGORIES})


class AccuracySnapshot(BaseModel):
    """A complete scored result at one point in time."""

    overall: float = 0.0
    adjusted_overall: float = 0.0
    categories: CategoryScores = Field(default_factory=CategoryScores)
    total_errors: int = 0
    critical_errors: int = 0
    errors_by_kind: dict[str, int] = Field(default_factory=dict)
    readability: float | None = None
    tone: str | None = None
    style: float | None = None
    calculation_count: int = 0
    timestamp: datetime = Field(default_factory=datetime.now)

    @field_validator("overall", "adjusted_overall", mode="before")
    @classmethod
    def _clamp(cls, value: float) -> float:
        return clamp_score(value)


class TrendDirection(StrEnum):
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


class CategoryTrend(BaseModel):
    """Movement of one category between two snapshots."""

    category: str
    previous: float
    current: float
    delta: float
    percent_change: float
    direction: TrendDirection
