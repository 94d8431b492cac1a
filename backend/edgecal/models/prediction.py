"""Prediction and outcome database models."""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from edgecal.database import Base, BigIntPK
from edgecal.schemas.signals import EdgeSignal, parse_signals


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Prediction(Base):
    """Start/sit call for one player in one week, captured before kickoff."""

    __tablename__ = "predictions"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)

    player_id: Mapped[str] = mapped_column(String(50), nullable=False)
    player_name: Mapped[str] = mapped_column(String(100), nullable=False)
    position: Mapped[str] = mapped_column(String(5), nullable=False)  # QB/RB/WR/TE
    team: Mapped[str | None] = mapped_column(String(10), nullable=True)
    opponent: Mapped[str | None] = mapped_column(String(10), nullable=True)
    is_home: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    week: Mapped[int] = mapped_column(Integer, nullable=False)
    season: Mapped[int] = mapped_column(Integer, nullable=False)

    # Overall call
    edge_score: Mapped[float] = mapped_column(Numeric(5, 2, asdecimal=False), nullable=False)
    confidence: Mapped[int] = mapped_column(Integer, nullable=False)
    recommendation: Mapped[str] = mapped_column(String(10), nullable=False)

    # {"signals": [{type, magnitude, confidence, ...}], "summary": {...}}
    edge_signals: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    game_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint("player_id", "week", "season", name="uq_prediction_player_week"),
        Index("idx_predictions_season_week", "season", "week"),
    )

    @property
    def signals(self) -> list[EdgeSignal]:
        return parse_signals(self.edge_signals, prediction_id=self.id)


class Outcome(Base):
    """Realized fantasy result for one player in one week."""

    __tablename__ = "outcomes"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)

    player_id: Mapped[str] = mapped_column(String(50), nullable=False)
    player_name: Mapped[str] = mapped_column(String(100), nullable=False)
    position: Mapped[str] = mapped_column(String(5), nullable=False)
    week: Mapped[int] = mapped_column(Integer, nullable=False)
    season: Mapped[int] = mapped_column(Integer, nullable=False)

    fantasy_points: Mapped[float] = mapped_column(Numeric(5, 2, asdecimal=False), nullable=False)
    position_rank: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Raw box score for later analysis
    stats: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint("player_id", "week", "season", name="uq_outcome_player_week"),
        Index("idx_outcomes_season_week", "season", "week"),
    )


class EdgeAccuracy(Base):
    """Per-season accuracy cache for one edge type, read by dashboards."""

    __tablename__ = "edge_accuracy"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    edge_type: Mapped[str] = mapped_column(String(50), nullable=False)
    season: Mapped[int] = mapped_column(Integer, nullable=False)

    total_predictions: Mapped[int] = mapped_column(Integer, default=0)
    correct_predictions: Mapped[int] = mapped_column(Integer, default=0)
    hit_rate: Mapped[float | None] = mapped_column(Numeric(5, 2, asdecimal=False), nullable=True)

    # Breakdown by confidence
    high_conf_total: Mapped[int] = mapped_column(Integer, default=0)
    high_conf_correct: Mapped[int] = mapped_column(Integer, default=0)
    med_conf_total: Mapped[int] = mapped_column(Integer, default=0)
    med_conf_correct: Mapped[int] = mapped_column(Integer, default=0)
    low_conf_total: Mapped[int] = mapped_column(Integer, default=0)
    low_conf_correct: Mapped[int] = mapped_column(Integer, default=0)

    # Breakdown by position
    qb_hit_rate: Mapped[float | None] = mapped_column(Numeric(5, 2, asdecimal=False), nullable=True)
    rb_hit_rate: Mapped[float | None] = mapped_column(Numeric(5, 2, asdecimal=False), nullable=True)
    wr_hit_rate: Mapped[float | None] = mapped_column(Numeric(5, 2, asdecimal=False), nullable=True)
    te_hit_rate: Mapped[float | None] = mapped_column(Numeric(5, 2, asdecimal=False), nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        UniqueConstraint("edge_type", "season", name="uq_edge_accuracy_type_season"),
    )
