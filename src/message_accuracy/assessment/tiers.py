"""Tier feature gate: which analyses run and how much detail each tier gets."""

from pydantic import BaseModel, ConfigDict

from message_accuracy.models.request import Tier


class TierFeatures(BaseModel):
    """Capabilities unlocked by a subscription tier."""

    model_config = ConfigDict(frozen=True)

    max_feedback: int
    max_suggestions: int
    detailed_explanations: bool
    tone_analysis: bool
    readability_metrics: bool
    vocabulary_analysis: bool
    coherence_analysis: bool
    style_analysis: bool
    premium_insights: bool
    advanced_grammar: bool
    alternative_phrasing: bool
    analysis_depth: str
    explanation_depth: str


TIER_FEATURES: dict[Tier, TierFeatures] = {
    Tier.FREE: TierFeatures(
        max_feedback=5,
        max_suggestions=3,
        detailed_explanations=False,
        tone_analysis=False,
        readability_metrics=False,
        vocabulary_analysis=False,
        coherence_analysis=False,
        style_analysis=False,
        premium_insights=False,
        advanced_grammar=False,
        alternative_phrasing=False,
        analysis_depth="basic",
        explanation_depth="simple",
    ),
    Tier.PRO: TierFeatures(
        max_feedback=20,
        max_suggestions=10,
        detailed_explanations=True,
        tone_analysis=True,
        readability_metrics=True,
        vocabulary_analysis=True,
        coherence_analysis=True,
        style_analysis=True,
        premium_insights=False,
        advanced_grammar=True,
        alternative_phrasing=False,
        analysis_depth="advanced",
        explanation_depth="detailed",
    ),
    Tier.PREMIUM: TierFeatures(
        max_feedback=50,
        max_suggestions=20,
        detailed_explanations=True,
        tone_analysis=True,
        readability_metrics=True,
        vocabulary_analysis=True,
        coherence_analysis=True,
        style_analysis=True,
        premium_insights=True,
        advanced_grammar=True,
        alternative_phrasing=True,
        analysis_depth="expert",
        explanation_depth="comprehensive",
    ),
}


def get_features(tier: Tier) -> TierFeatures:
    """Look up the capability table for a tier."""
    return TIER_FEATURES[tier]
