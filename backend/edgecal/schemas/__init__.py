"""Pydantic schemas for signals, reports and the recommendation contract."""

from edgecal.schemas.signals import EdgeSignal, EdgeType, KNOWN_EDGE_TYPES, parse_signals
from edgecal.schemas.evaluation import (
    AccuracyReport,
    ConfidenceBreakdown,
    EdgeHitRate,
    HitRateBucket,
    NotableExample,
    QuickStats,
)
from edgecal.schemas.learning import LearningResult, WeightHistoryPoint, WeightSummary, WeightUpdate
from edgecal.schemas.analysis import AnalysisResult, BadMiss, PatternStats
from edgecal.schemas.agent import (
    AppliedImprovementSummary,
    EvaluationSweep,
    ImpactReport,
    ImprovementReport,
    IssueReference,
    ProposalSummary,
    ProposedChange,
    Recommendation,
)

__all__ = [
    "EdgeSignal",
    "EdgeType",
    "KNOWN_EDGE_TYPES",
    "parse_signals",
    "AccuracyReport",
    "ConfidenceBreakdown",
    "EdgeHitRate",
    "HitRateBucket",
    "NotableExample",
    "QuickStats",
    "LearningResult",
    "WeightHistoryPoint",
    "WeightSummary",
    "WeightUpdate",
    "AnalysisResult",
    "BadMiss",
    "PatternStats",
    "AppliedImprovementSummary",
    "EvaluationSweep",
    "ImpactReport",
    "ImprovementReport",
    "IssueReference",
    "ProposalSummary",
    "ProposedChange",
    "Recommendation",
]
