"""Accuracy report Pydantic schemas."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class HitRateBucket(BaseModel):
    """Hit/miss tally for one slice of predictions."""

    total: int = 0
    correct: int = 0
    hit_rate: float = Field(default=0.0, description="Percentage, one decimal")


class ConfidenceBreakdown(BaseModel):
    """Tallies by confidence tier (high >= 80, medium 60-79, low < 60)."""

    high: HitRateBucket = Field(default_factory=HitRateBucket)
    medium: HitRateBucket = Field(default_factory=HitRateBucket)
    low: HitRateBucket = Field(default_factory=HitRateBucket)


class NotableExample(BaseModel):
    """A prediction worth calling out in the weekly report."""

    player_name: str
    week: int
    edge_score: float
    recommendation: str
    actual_points: float
    position_rank: int = Field(description="0 when the player was unranked")


class AccuracyReport(BaseModel):
    """Season (or single week) accuracy report."""

    season: int
    week: int | None = None
    total_predictions: int = 0
    overall_hit_rate: float = 0.0

    by_recommendation: dict[str, HitRateBucket] = Field(default_factory=dict)
    by_position: dict[str, HitRateBucket] = Field(default_factory=dict)
    by_confidence: ConfidenceBreakdown = Field(default_factory=ConfidenceBreakdown)
    by_edge_type: dict[str, HitRateBucket] = Field(
        default_factory=dict, description="Ordered by hit rate, best first"
    )

    biggest_hits: list[NotableExample] = Field(default_factory=list)
    biggest_misses: list[NotableExample] = Field(default_factory=list)

    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def empty(cls, season: int, week: int | None = None) -> "AccuracyReport":
        return cls(season=season, week=week)


class EdgeHitRate(BaseModel):
    edge_type: str
    hit_rate: float


class QuickStats(BaseModel):
    """Dashboard summary built from the cached per-edge accuracy rows."""

    season: int
    total_predictions: int = 0
    overall_hit_rate: float = 0.0
    top_edges: list[EdgeHitRate] = Field(default_factory=list)
