"""Score fusion: weighted overall score with critical-error redistribution."""

from pydantic import BaseModel

from message_accuracy.models.snapshot import BASE_CATEGORIES, clamp_score

CATEGORY_WEIGHTS: dict[str, float] = {
    "grammar": 0.40,
    "vocabulary": 0.20,
    "spelling": 0.20,
    "fluency": 0.15,
    "punctuation": 0.03,
    "capitalization": 0.02,
}

CAPPED_GRAMMAR_WEIGHT = 0.25
DEFAULT_CRITICAL_THRESHOLD = 3


class FusionResult(BaseModel):
    overall: float
    weights: dict[str, float]
    redistributed: bool = False


def effective_weights(critical_count: int, threshold: int = DEFAULT_CRITICAL_THRESHOLD) -> tuple[dict[str, float], bool]:
    """Category weights after optional grammar capping.

    When ``critical_count`` exceeds ``threshold`` grammar is capped at 0.25 and
    the freed weight is spread over the other categories in proportion to
    their base weights. Weights always sum to 1.

    Args:
        critical_count: Critical errors in the message.
        threshold: Redistribution triggers strictly above this count.

    Returns:
        Tuple of (weights, redistributed).
    """
    if critical_count <= threshold:
        return dict(CATEGORY_WEIGHTS), False

    freed = CATEGORY_WEIGHTS["grammar"] - CAPPED_GRAMMAR_WEIGHT
    others = {k: w for k, w in CATEGORY_WEIGHTS.items() if k != "grammar"}
    others_total = sum(others.values())
    weights = {"grammar": CAPPED_GRAMMAR_WEIGHT}
    for name, weight in others.items():
        weights[name] = weight + freed * weight / others_total
    return weights, True


def fuse(
    scores: dict[str, float],
    critical_count: int = 0,
    threshold: int = DEFAULT_CRITICAL_THRESHOLD,
) -> FusionResult:
    """Combine the six base category scores into one overall score.

    Args:
        scores: Category name to score; missing categories count as 0.
        critical_count: Critical errors in the message.
        threshold: Critical-error count above which grammar weight is capped.

    Returns:
        FusionResult with the rounded, clamped overall score.
    """
    weights, redistributed = effective_weights(critical_count, threshold)
    total = sum(clamp_score(scores.get(name, 0.0)) * weights[name] for name in BASE_CATEGORIES)
    return FusionResult(overall=round(clamp_score(total)), weights=weights, redistributed=redistributed)
