"""Improvement agent and its external boundaries."""

from edgecal.services.agent.github import GitHubIssueTracker, IssueTracker
from edgecal.services.agent.improve import ImprovementAgent, build_analysis_context
from edgecal.services.agent.llm import (
    AnthropicRecommendationService,
    RecommendationService,
    parse_recommendations,
)

__all__ = [
    "AnthropicRecommendationService",
    "GitHubIssueTracker",
    "ImprovementAgent",
    "IssueTracker",
    "RecommendationService",
    "build_analysis_context",
    "parse_recommendations",
]
