"""Improvement proposal, applied change and agent audit models."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from edgecal.database import Base, BigIntPK
from edgecal.models.prediction import utcnow


class ImprovementProposal(Base):
    """A recommendation that needs human review before anything changes."""

    __tablename__ = "improvement_proposals"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)

    pattern_id: Mapped[int | None] = mapped_column(
        BigIntPK, ForeignKey("detected_patterns.id"), nullable=True
    )
    prediction_ids: Mapped[list[int]] = mapped_column(JSON, default=list)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(30), nullable=False)
    priority: Mapped[str] = mapped_column(String(10), nullable=False)

    evidence: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    affected_edge_types: Mapped[list[str]] = mapped_column(JSON, default=list)

    proposed_code_changes: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    proposed_weight_changes: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    expected_improvement: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String(20), default="pending")  # pending/applied/rejected
    github_issue_url: Mapped[str | None] = mapped_column(String(300), nullable=True)
    github_issue_number: Mapped[int | None] = mapped_column(Integer, nullable=True)

    auto_applicable: Mapped[bool] = mapped_column(Boolean, default=False)
    applied_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    applied_by: Mapped[str | None] = mapped_column(String(50), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index("idx_improvement_proposals_status", "status"),
    )


class AppliedImprovement(Base):
    """A change that was actually applied, with the snapshot needed to undo it."""

    __tablename__ = "applied_improvements"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    proposal_id: Mapped[int | None] = mapped_column(
        BigIntPK, ForeignKey("improvement_proposals.id"), nullable=True
    )

    change_type: Mapped[str] = mapped_column(String(20), nullable=False)  # weight/threshold/code
    change_description: Mapped[str] = mapped_column(Text, nullable=False)
    change_details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    state_before: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    state_after: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    # Impact tracking
    predictions_before: Mapped[int] = mapped_column(Integer, default=0)
    predictions_after: Mapped[int] = mapped_column(Integer, default=0)
    accuracy_before: Mapped[float | None] = mapped_column(Numeric(5, 2, asdecimal=False), nullable=True)
    accuracy_after: Mapped[float | None] = mapped_column(Numeric(5, 2, asdecimal=False), nullable=True)
    improvement_detected: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    improvement_percentage: Mapped[float | None] = mapped_column(
        Numeric(6, 2, asdecimal=False), nullable=True
    )

    # Rollback
    rolled_back: Mapped[bool] = mapped_column(Boolean, default=False)
    rolled_back_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rollback_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    evaluation_due_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    evaluation_complete: Mapped[bool] = mapped_column(Boolean, default=False)
    auto_rollback_triggered: Mapped[bool] = mapped_column(Boolean, default=False)

    applied_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("idx_applied_improvements_proposal", "proposal_id"),
        Index("idx_applied_improvements_evaluation", "evaluation_due_at"),
    )


class AgentDecision(Base):
    """Audit log entry for every agent decision, including the ones with no action."""

    __tablename__ = "agent_decisions"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)

    # weight_adjustment/refused_out_of_bounds/proposal_created/auto_rollback/no_action
    decision_type: Mapped[str] = mapped_column(String(40), nullable=False)
    edge_type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    data_analyzed: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    sample_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reasoning: Mapped[str] = mapped_column(Text, nullable=False)

    action_taken: Mapped[str | None] = mapped_column(String(20), nullable=True)
    action_details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    improvement_id: Mapped[int | None] = mapped_column(
        BigIntPK, ForeignKey("applied_improvements.id"), nullable=True
    )
    proposal_id: Mapped[int | None] = mapped_column(
        BigIntPK, ForeignKey("improvement_proposals.id"), nullable=True
    )

    agent_version: Mapped[str] = mapped_column(String(10), default="v1")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("idx_agent_decisions_type", "decision_type"),
        Index("idx_agent_decisions_edge", "edge_type"),
    )
