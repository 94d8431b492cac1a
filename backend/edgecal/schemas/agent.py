"""Improvement agent Pydantic schemas, including the recommendation contract."""

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

RecommendationType = Literal[
    "weight_adjustment", "threshold_change", "new_edge", "code_change", "data_source"
]
Priority = Literal["critical", "high", "medium", "low"]


class ProposedChange(BaseModel):
    """The concrete change a recommendation asks for."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    edge_type: str | None = None
    current_value: float | None = None
    new_value: float | None = None
    code_change: str | None = None
    reasoning: str = ""


class Recommendation(BaseModel):
    """
    One recommendation returned by the language model.

    Field names are camelCase on the wire (``autoApplicable``,
    ``proposedChange``) and snake_case in Python.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: RecommendationType
    priority: Priority
    title: str
    description: str = ""
    evidence: list[str] = Field(default_factory=list)
    proposed_change: ProposedChange = Field(default_factory=ProposedChange)
    auto_applicable: bool = False
    expected_improvement: str = ""


class ImprovementReport(BaseModel):
    """Outcome of one improvement agent run."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    season: int
    patterns_analyzed: int = 0
    bad_misses_analyzed: int = 0
    recommendations: list[Recommendation] = Field(default_factory=list)
    auto_applied: int = 0
    refused: int = Field(default=0, description="Auto-apply attempts outside the hard bounds")
    proposals_created: int = 0
    issues_created: int = 0


class ImpactReport(BaseModel):
    """Hit rate of analysed predictions before vs. after an applied change."""

    improvement_id: int
    predictions_before: int = 0
    predictions_after: int = 0
    accuracy_before: float = 0.0
    accuracy_after: float = 0.0
    improvement_detected: bool = False
    improvement_percentage: float = 0.0


class EvaluationSweep(BaseModel):
    """Result of checking every applied change whose evaluation window has closed."""

    evaluated: int = 0
    rolled_back: int = 0
    impacts: list[ImpactReport] = Field(default_factory=list)


class IssueReference(BaseModel):
    url: str
    number: int


class ProposalSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    category: str
    priority: str
    status: str
    auto_applicable: bool
    affected_edge_types: list[str] = Field(default_factory=list)
    proposed_weight_changes: dict[str, Any] | None = None
    expected_improvement: str | None = None
    github_issue_url: str | None = None
    created_at: datetime | None = None


class AppliedImprovementSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    change_type: str
    change_description: str
    state_before: dict[str, Any]
    state_after: dict[str, Any]
    accuracy_before: float | None = None
    accuracy_after: float | None = None
    improvement_detected: bool | None = None
    rolled_back: bool
    rollback_reason: str | None = None
    evaluation_due_at: datetime | None = None
    evaluation_complete: bool
    applied_at: datetime | None = None
