"""Per-prediction analysis and detected pattern models."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from edgecal.database import Base, BigIntPK
from edgecal.models.prediction import Prediction, utcnow


class PredictionAnalysis(Base):
    """Post-game breakdown of one prediction. At most one row per prediction."""

    __tablename__ = "prediction_analysis"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    prediction_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("predictions.id"), nullable=False, unique=True
    )

    # Outcome classification
    was_hit: Mapped[bool] = mapped_column(Boolean, nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    predicted_rank: Mapped[int] = mapped_column(Integer, nullable=False)
    actual_rank: Mapped[int] = mapped_column(Integer, nullable=False)
    rank_diff: Mapped[int] = mapped_column(Integer, nullable=False)  # positive = worse than expected

    # What drove the call
    edge_signals_used: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    strongest_signal: Mapped[str] = mapped_column(String(50), default="none")
    weakest_signal: Mapped[str] = mapped_column(String(50), default="none")
    contributing_factors: Mapped[list[str]] = mapped_column(JSON, default=list)

    analyzed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    analysis_version: Mapped[str] = mapped_column(String(10), default="v1")

    prediction: Mapped[Prediction] = relationship(Prediction, lazy="joined")

    __table_args__ = (
        Index("idx_prediction_analysis_severity", "severity"),
        Index("idx_prediction_analysis_analyzed_at", "analyzed_at"),
    )


class DetectedPattern(Base):
    """A weak cross-section of predictions sharing one grouping key."""

    __tablename__ = "detected_patterns"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    pattern_type: Mapped[str] = mapped_column(String(30), nullable=False)
    pattern_key: Mapped[str] = mapped_column(String(100), nullable=False)

    # Statistics
    total_predictions: Mapped[int] = mapped_column(Integer, nullable=False)
    correct_predictions: Mapped[int] = mapped_column(Integer, nullable=False)
    hit_rate: Mapped[float] = mapped_column(Numeric(5, 2, asdecimal=False), nullable=False)

    sample_predictions: Mapped[list[int]] = mapped_column(JSON, default=list)

    pattern_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)  # critical/concerning/notable

    first_detected_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    last_updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    times_detected: Mapped[int] = mapped_column(Integer, default=1)
    last_detected_season: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_detected_week: Mapped[int | None] = mapped_column(Integer, nullable=True)
    addressed: Mapped[bool] = mapped_column(Boolean, default=False)

    __table_args__ = (
        UniqueConstraint("pattern_type", "pattern_key", name="uq_detected_pattern_type_key"),
        Index("idx_detected_patterns_severity", "severity"),
    )
