"""Edge weight and weight history models."""

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from edgecal.database import Base, BigIntPK
from edgecal.models.prediction import utcnow

ROLES = ("QB", "RB", "WR", "TE")


class EdgeWeight(Base):
    """Learned multiplier for one signal type.

    Rows are created lazily at 1.0 and only mutated by the weight learner or
    an auto-applied agent change.
    """

    __tablename__ = "edge_weights"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    edge_type: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)

    base_weight: Mapped[float] = mapped_column(Numeric(4, 2, asdecimal=False), default=1.0)
    current_weight: Mapped[float] = mapped_column(Numeric(4, 2, asdecimal=False), default=1.0)

    # Position-specific learned weights
    qb_weight: Mapped[float] = mapped_column(Numeric(4, 2, asdecimal=False), default=1.0)
    rb_weight: Mapped[float] = mapped_column(Numeric(4, 2, asdecimal=False), default=1.0)
    wr_weight: Mapped[float] = mapped_column(Numeric(4, 2, asdecimal=False), default=1.0)
    te_weight: Mapped[float] = mapped_column(Numeric(4, 2, asdecimal=False), default=1.0)

    confidence_adjustment: Mapped[int] = mapped_column(Integer, default=0)

    # Performance tracking
    total_predictions: Mapped[int] = mapped_column(Integer, default=0)
    correct_predictions: Mapped[int] = mapped_column(Integer, default=0)
    hit_rate: Mapped[float | None] = mapped_column(Numeric(5, 2, asdecimal=False), nullable=True)

    qb_predictions: Mapped[int] = mapped_column(Integer, default=0)
    qb_correct: Mapped[int] = mapped_column(Integer, default=0)
    rb_predictions: Mapped[int] = mapped_column(Integer, default=0)
    rb_correct: Mapped[int] = mapped_column(Integer, default=0)
    wr_predictions: Mapped[int] = mapped_column(Integer, default=0)
    wr_correct: Mapped[int] = mapped_column(Integer, default=0)
    te_predictions: Mapped[int] = mapped_column(Integer, default=0)
    te_correct: Mapped[int] = mapped_column(Integer, default=0)

    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    def role_weight(self, role: str) -> float | None:
        if role.upper() not in ROLES:
            return None
        return getattr(self, f"{role.lower()}_weight")


class WeightHistory(Base):
    """Append-only audit trail of weight changes. Never updated or deleted."""

    __tablename__ = "weight_history"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    edge_type: Mapped[str] = mapped_column(String(50), nullable=False)
    season: Mapped[int] = mapped_column(Integer, nullable=False)
    week: Mapped[int] = mapped_column(Integer, nullable=False)  # 0 for agent/rollback changes

    weight_before: Mapped[float | None] = mapped_column(Numeric(4, 2, asdecimal=False), nullable=True)
    weight_after: Mapped[float | None] = mapped_column(Numeric(4, 2, asdecimal=False), nullable=True)

    hit_rate_this_week: Mapped[float | None] = mapped_column(
        Numeric(5, 2, asdecimal=False), nullable=True
    )
    sample_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    adjustment_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("idx_weight_history_edge", "edge_type", "season", "week"),
    )
