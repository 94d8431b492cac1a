"""
Hit/miss grading shared by every calibration stage.

The evaluator, the weight learner and the pattern detector must classify each
prediction identically, so all of them grade through this module.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

# Position-rank threshold per recommendation bucket
HIT_CRITERIA: dict[str, int] = {
    "SMASH": 5,   # top 5 at position
    "START": 12,  # top 12
    "FLEX": 24,   # top 24
    "RISKY": 20,  # outside top 20 to be right
    "SIT": 20,    # outside top 20
    "AVOID": 30,  # outside top 30
}

POSITIVE_RECOMMENDATIONS = frozenset({"SMASH", "START", "FLEX"})
NEGATIVE_RECOMMENDATIONS = frozenset({"RISKY", "SIT", "AVOID"})

DEFAULT_THRESHOLD = 12
UNRANKED = 999

HIGH_CONFIDENCE = 80
MEDIUM_CONFIDENCE = 60


@dataclass(frozen=True)
class Grade:
    """Result of grading one prediction against its outcome."""

    recommendation: str
    threshold: int
    actual_rank: int
    is_hit: bool

    @property
    def rank_diff(self) -> int:
        """Positive when the player finished worse than the threshold."""
        return self.actual_rank - self.threshold


def threshold_for(recommendation: str) -> int:
    return HIT_CRITERIA.get(recommendation, DEFAULT_THRESHOLD)


def is_positive(recommendation: str) -> bool:
    """Unknown labels are graded as positive calls."""
    return recommendation not in NEGATIVE_RECOMMENDATIONS


def effective_rank(position_rank: int | None) -> int:
    # A missing or zero rank means the player did not register
    return position_rank or UNRANKED


def is_hit(recommendation: str, position_rank: int | None) -> bool:
    """
    Whether an outcome satisfies the recommendation's threshold rule.

    Positive calls (SMASH/START/FLEX) hit when the player finishes at or inside
    the threshold; negative calls (RISKY/SIT/AVOID) hit when the player
    finishes outside it.
    """
    rank = effective_rank(position_rank)
    threshold = threshold_for(recommendation)
    if is_positive(recommendation):
        return rank <= threshold
    return rank > threshold


def grade(recommendation: str, position_rank: int | None) -> Grade:
    return Grade(
        recommendation=recommendation,
        threshold=threshold_for(recommendation),
        actual_rank=effective_rank(position_rank),
        is_hit=is_hit(recommendation, position_rank),
    )


def confidence_tier(confidence: float) -> str:
    if confidence >= HIGH_CONFIDENCE:
        return "high"
    if confidence >= MEDIUM_CONFIDENCE:
        return "medium"
    return "low"


def hit_rate(correct: int, total: int) -> float:
    """Percentage rounded half-up to one decimal (1/16 -> 6.3); 0.0 for an empty slice."""
    if total <= 0:
        return 0.0
    pct = Decimal(correct * 100) / Decimal(total)
    return float(pct.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))
