"""Weight learning Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class WeightUpdate(BaseModel):
    """One applied change to an edge type's global weight."""

    edge_type: str
    old_weight: float
    new_weight: float
    hit_rate: float = Field(description="Season-to-date hit rate for the edge type")
    sample_size: int
    reason: str


class LearningResult(BaseModel):
    updated_count: int = 0
    updates: list[WeightUpdate] = Field(default_factory=list)


class WeightSummary(BaseModel):
    """Current weight state for one edge type."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    edge_type: str
    weight: float = Field(validation_alias="current_weight")
    hit_rate: float | None = None
    predictions: int = Field(default=0, validation_alias="total_predictions")
    qb_weight: float = 1.0
    rb_weight: float = 1.0
    wr_weight: float = 1.0
    te_weight: float = 1.0
    last_updated: datetime | None = None


class WeightHistoryPoint(BaseModel):
    """One row of an edge type's weight trail."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    week: int
    weight_before: float | None = None
    weight_after: float | None = None
    hit_rate: float | None = Field(default=None, validation_alias="hit_rate_this_week")
    sample_size: int | None = None
    reason: str | None = Field(default=None, validation_alias="adjustment_reason")
    created_at: datetime | None = None
