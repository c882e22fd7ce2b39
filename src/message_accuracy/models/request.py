"""Analysis request models."""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from message_accuracy.models.snapshot import AccuracySnapshot


class Tier(StrEnum):
    """Subscription tier gating analysis depth."""

    FREE = "free"
    PRO = "pro"
    PREMIUM = "premium"

    @property
    def rank(self) -> int:
        return _TIER_ORDER.index(self)

    def includes(self, other: "Tier") -> bool:
        """Whether this tier unlocks everything available to ``other``."""
        return self.rank >= other.rank


_TIER_ORDER = [Tier.FREE, Tier.PRO, Tier.PREMIUM]


class Proficiency(StrEnum):
    """Learner proficiency level."""

    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"
    EXPERT = "Expert"


class HistoricalOverrides(BaseModel):
    """Caller-supplied knobs for historical smoothing."""

    model_config = ConfigDict(frozen=True)

    current_weight: float | None = None
    decay_factor: float | None = None
    minimum_message_count_for_history: int | None = None
    disable_historical: bool = False
    category_baselines: dict[str, float] = Field(default_factory=dict)


class LanguageSummary(BaseModel):
    """Language-detection summary supplied by an upstream collaborator."""

    model_config = ConfigDict(frozen=True)

    primary_language: str = "eng"
    english_ratio: float = Field(default=1.0, ge=0.0, le=1.0)
    non_latin_ratio: float = Field(default=0.0, ge=0.0, le=1.0)


class AnalysisRequest(BaseModel):
    """Immutable input for a single analysis run."""

    model_config = ConfigDict(frozen=True)

    message: str
    tutor_response: str | None = None
    tier: Tier = Tier.FREE
    level: Proficiency = Proficiency.INTERMEDIATE
    language: LanguageSummary | None = None
    previous: AccuracySnapshot | None = None
    overrides: HistoricalOverrides = Field(default_factory=HistoricalOverrides)
