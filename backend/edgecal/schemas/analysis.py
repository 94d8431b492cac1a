"""Prediction analysis and pattern Pydantic schemas."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class AnalysisResult(BaseModel):
    analyzed_count: int = 0
    patterns_detected: int = 0


class PatternStats(BaseModel):
    """Statistics for one grouping of analysed predictions."""

    model_config = ConfigDict(from_attributes=True)

    pattern_type: str = Field(
        description="team, position, edge_type, recommendation, confidence_level "
        "or contributing_factor"
    )
    pattern_key: str
    total_predictions: int
    correct_predictions: int
    hit_rate: float
    sample_predictions: list[int] = Field(default_factory=list)
    severity: str = Field(description="critical, concerning, notable or good")
    pattern_description: str | None = None
    times_detected: int = 1
    addressed: bool = False


class BadMiss(BaseModel):
    """A bad or major miss, joined with the prediction that produced it."""

    prediction_id: int
    player_name: str
    position: str
    team: str | None = None
    week: int
    recommendation: str
    edge_score: float
    confidence: int
    severity: str
    predicted_rank: int
    actual_rank: int
    rank_diff: int
    strongest_signal: str
    contributing_factors: list[str] = Field(default_factory=list)
    edge_signals_used: list[dict[str, Any]] = Field(default_factory=list)
