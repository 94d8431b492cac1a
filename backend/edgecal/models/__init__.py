"""SQLAlchemy database models."""

from edgecal.models.prediction import Prediction, Outcome, EdgeAccuracy
from edgecal.models.weights import EdgeWeight, WeightHistory
from edgecal.models.analysis import PredictionAnalysis, DetectedPattern
from edgecal.models.improvement import ImprovementProposal, AppliedImprovement, AgentDecision

__all__ = [
    # Store inputs
    "Prediction",
    "Outcome",
    # Calibration state
    "EdgeAccuracy",
    "EdgeWeight",
    "WeightHistory",
    # Analysis
    "PredictionAnalysis",
    "DetectedPattern",
    # Agent
    "ImprovementProposal",
    "AppliedImprovement",
    "AgentDecision",
]
