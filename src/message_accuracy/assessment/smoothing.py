"""Historical smoothing: blend the current snapshot with the user's running snapshot."""

from datetime import datetime

import structlog
from pydantic import BaseModel

from message_accuracy.models.analysis import WeightingInfo
from message_accuracy.models.request import HistoricalOverrides, Tier
from message_accuracy.models.snapshot import (
    ALL_CATEGORIES,
    BASE_CATEGORIES,
    AccuracySnapshot,
    CategoryScores,
    CategoryTrend,
    TrendDirection,
    clamp_score,
)

logger = structlog.get_logger()

TIER_BIAS: dict[Tier, float] = {
    Tier.PREMIUM: 0.50,
    Tier.PRO: 0.58,
    Tier.FREE: 0.65,
}
EXPERIENCE_STEP = 0.015
MAX_EXPERIENCE_DISCOUNT = 0.18
MIN_CURRENT_WEIGHT = 0.40
TYPICAL_CURRENT_WEIGHT = 0.55
OVERRIDE_BOUNDS = (0.1, 0.95)
DECAY_BOUNDS = (0.0, 2.0)
HISTORY_FLOOR_SAMPLES = 5
TREND_THRESHOLD = 1.5


class SmoothingResult(BaseModel):
    current: AccuracySnapshot
    weighted: AccuracySnapshot
    weighting: WeightingInfo


def escalate_for_errors(current_weight: float, error_count: int) -> float:
    """Raise the current weight for messages with many errors."""
    if error_count > 8:
        return 0.85
    if error_count > 6:
        return 0.75
    if error_count > 4:
        return 0.65
    return max(current_weight, TYPICAL_CURRENT_WEIGHT)


def compute_weights(
    tier: Tier,
    history_count: int,
    error_count: int,
    overrides: HistoricalOverrides,
    minimum_message_count: int = 3,
    minimum_historical_weight: float = 0.2,
) -> tuple[float, float, str]:
    """Current and historical weights for one blend.

    Args:
        tier: Subscription tier; premium weights recent messages most.
        history_count: Prior snapshots behind the previous snapshot.
        error_count: Errors in the current message.
        overrides: Caller-supplied weighting knobs.
        minimum_message_count: Below this many prior samples history is halved.
        minimum_historical_weight: History floor once 5 samples exist.

    Returns:
        Tuple of (current_weight, historical_weight, reason); the weights sum to 1.
    """
    if overrides.current_weight is not None:
        low, high = OVERRIDE_BOUNDS
        current = min(high, max(low, overrides.current_weight))
        reason = "override"
    else:
        experience = min(MAX_EXPERIENCE_DISCOUNT, history_count * EXPERIENCE_STEP)
        current = max(MIN_CURRENT_WEIGHT, TIER_BIAS[tier] - experience)
        current = escalate_for_errors(current, error_count)
        reason = "error_escalation" if error_count > 4 else "tier_bias"
    historical = 1 - current

    minimum = overrides.minimum_message_count_for_history
    if minimum is None:
        minimum = minimum_message_count
    if history_count < minimum:
        historical *= 0.5
        current = 1 - historical
        reason = "limited_history"

    if history_count >= HISTORY_FLOOR_SAMPLES and historical < minimum_historical_weight:
        historical = minimum_historical_weight
        current = 1 - historical

    if overrides.decay_factor is not None:
        low, high = DECAY_BOUNDS
        historical *= min(high, max(low, overrides.decay_factor))

    total = current + historical
    if total <= 0:
        return 0.5, 0.5, reason
    return current / total, historical / total, reason


def _blend(current: float, previous: float, current_weight: float, historical_weight: float) -> float:
    return round(current_weight * current + historical_weight * previous)


def smooth(
    current: AccuracySnapshot,
    previous: AccuracySnapshot | None,
    tier: Tier,
    error_count: int,
    overrides: HistoricalOverrides | None = None,
    minimum_message_count: int = 3,
    minimum_historical_weight: float = 0.2,
    category_baselines: dict[str, float] | None = None,
) -> SmoothingResult:
    """Blend ``current`` into the user's running snapshot.

    Args:
        current: Snapshot of this message alone.
        previous: The user's previous weighted snapshot, if any.
        tier: Subscription tier.
        error_count: Errors in the current message.
        overrides: Caller-supplied weighting knobs.
        minimum_message_count: Default history-halving threshold.
        minimum_historical_weight: History floor once enough samples exist.
        category_baselines: Fallback previous values for fields the previous
            snapshot never set.

    Returns:
        SmoothingResult with the stamped current snapshot, the weighted
        snapshot and the weights used.
    """
    overrides = overrides or HistoricalOverrides()
    now = datetime.now()

    if previous is None:
        stamped = current.model_copy(update={"calculation_count": 1, "timestamp": now})
        return SmoothingResult(
            current=stamped,
            weighted=stamped.model_copy(),
            weighting=WeightingInfo(),
        )

    count = previous.calculation_count + 1
    stamped = current.model_copy(update={"calculation_count": count, "timestamp": now})

    if overrides.disable_historical:
        return SmoothingResult(
            current=stamped,
            weighted=stamped.model_copy(),
            weighting=WeightingInfo(history_count=previous.calculation_count, reason="disabled"),
        )

    current_weight, historical_weight, reason = compute_weights(
        tier,
        previous.calculation_count,
        error_count,
        overrides,
        minimum_message_count,
        minimum_historical_weight,
    )

    baselines = {**(category_baselines or {}), **overrides.category_baselines}
    categories: dict[str, float] = {}
    previous_set = previous.categories.model_fields_set
    for name in ALL_CATEGORIES:
        previous_value = getattr(previous.categories, name)
        if name not in previous_set and name in baselines:
            previous_value = clamp_score(baselines[name])
        categories[name] = _blend(getattr(current.categories, name), previous_value, current_weight, historical_weight)

    overall_previous = previous.overall
    if "overall" not in previous.model_fields_set and "overall" in baselines:
        overall_previous = clamp_score(baselines["overall"])
    adjusted_previous = (
        previous.adjusted_overall if "adjusted_overall" in previous.model_fields_set else overall_previous
    )

    weighted = AccuracySnapshot(
        overall=_blend(current.overall, overall_previous, current_weight, historical_weight),
        adjusted_overall=_blend(current.adjusted_overall, adjusted_previous, current_weight, historical_weight),
        categories=CategoryScores(**categories),
        total_errors=current.total_errors,
        critical_errors=current.critical_errors,
        errors_by_kind=dict(current.errors_by_kind or previous.errors_by_kind),
        readability=current.readability if current.readability is not None else previous.readability,
        tone=current.tone or previous.tone,
        style=current.style if current.style is not None else previous.style,
        calculation_count=count,
        timestamp=now,
    )
    weighting = WeightingInfo(
        current_weight=round(current_weight, 3),
        historical_weight=round(historical_weight, 3),
        history_count=previous.calculation_count,
        reason=reason,
    )
    logger.debug(
        "historical_smoothing_applied",
        current_weight=weighting.current_weight,
        historical_weight=weighting.historical_weight,
        calculation_count=count,
    )
    return SmoothingResult(current=stamped, weighted=weighted, weighting=weighting)


def category_trends(previous: AccuracySnapshot | None, current: AccuracySnapshot) -> list[CategoryTrend]:
    """Per-category movement between the previous and current snapshots."""
    if previous is None:
        return []
    trends = []
    for name in BASE_CATEGORIES:
        before = getattr(previous.categories, name)
        after = getattr(current.categories, name)
        delta = after - before
        if delta > TREND_THRESHOLD:
            direction = TrendDirection.IMPROVING
        elif delta < -TREND_THRESHOLD:
            direction = TrendDirection.DECLINING
        else:
            direction = TrendDirection.STABLE
        trends.append(CategoryTrend(
            category=name,
            previous=before,
            current=after,
            delta=round(delta, 1),
            percent_change=round(delta / before * 100, 1) if before else 0.0,
            direction=direction,
        ))
    return trends
