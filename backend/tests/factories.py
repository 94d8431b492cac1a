"""Seed helpers for predictions, outcomes and analyses."""

import itertools
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from edgecal.models import Outcome, Prediction, PredictionAnalysis
from edgecal.schemas.agent import IssueReference, Recommendation
from edgecal.services.analysis import PatternDetector

_ids = itertools.count(1)


def signal_payload(*signals: tuple[str, float]) -> dict:
    return {
        "signals": [{"type": t, "magnitude": m, "confidence": 70} for t, m in signals],
        "summary": {"count": len(signals)},
    }


async def add_graded(
    session: AsyncSession,
    recommendation: str = "START",
    position_rank: int | None = 5,
    position: str = "WR",
    team: str = "KC",
    week: int = 1,
    season: int = 2025,
    confidence: int = 70,
    edge_score: float = 3.0,
    signals: tuple[tuple[str, float], ...] = (("matchup_defense", 3.0),),
) -> tuple[Prediction, Outcome]:
    player_id = f"player-{next(_ids)}"
    prediction = Prediction(
        player_id=player_id,
        player_name=f"Player {player_id}",
        position=position,
        team=team,
        opponent="DEN",
        is_home=True,
        week=week,
        season=season,
        edge_score=edge_score,
        confidence=confidence,
        recommendation=recommendation,
        edge_signals=signal_payload(*signals),
    )
    outcome = Outcome(
        player_id=player_id,
        player_name=prediction.player_name,
        position=position,
        week=week,
        season=season,
        fantasy_points=12.5,
        position_rank=position_rank,
    )
    session.add_all([prediction, outcome])
    await session.flush()
    return prediction, outcome


async def add_weak_season(session: AsyncSession, season: int = 2025, week: int = 1) -> None:
    """
    Twelve NYJ running back START calls, three hits and nine rank-40 busts.

    Every grouping lands at 25% (critical) and the nine busts share the
    positive_edge_negative_outcome factor.
    """
    for i in range(12):
        await add_graded(
            session,
            recommendation="START",
            position_rank=5 if i < 3 else 40,
            position="RB",
            team="NYJ",
            week=week,
            season=season,
        )


async def analyze_weak_season(session: AsyncSession, season: int = 2025, week: int = 1) -> None:
    await add_weak_season(session, season, week)
    await PatternDetector(session).analyze(season, week)


async def add_analysis(session: AsyncSession, was_hit: bool, analyzed_at: datetime) -> PredictionAnalysis:
    prediction, _ = await add_graded(session, position_rank=5 if was_hit else 40)
    analysis = PredictionAnalysis(
        prediction_id=prediction.id,
        was_hit=was_hit,
        severity="hit" if was_hit else "bad_miss",
        predicted_rank=12,
        actual_rank=5 if was_hit else 40,
        rank_diff=-7 if was_hit else 28,
        analyzed_at=analyzed_at,
    )
    session.add(analysis)
    await session.flush()
    return analysis


def weight_recommendation(
    edge_type: str | None = "matchup_defense",
    new_value: float | None = 0.7,
    auto_applicable: bool = True,
    **overrides,
) -> Recommendation:
    payload = {
        "type": "weight_adjustment",
        "priority": "high",
        "title": f"Reduce {edge_type} weight",
        "description": "Matchup edge is overconfident on running backs",
        "evidence": [],
        "proposedChange": {
            "edgeType": edge_type,
            "currentValue": 1.0,
            "newValue": new_value,
            "reasoning": "25% hit rate over 12 predictions",
        },
        "autoApplicable": auto_applicable,
        "expectedImprovement": "+3% hit rate",
    }
    payload.update(overrides)
    return Recommendation.model_validate(payload)


class StubRecommender:
    def __init__(self, recommendations: list[Recommendation] | None = None):
        self.recommendations = recommendations or []
        self.contexts: list[str] = []

    async def recommend(self, context: str) -> list[Recommendation]:
        self.contexts.append(context)
        return self.recommendations


class StubIssueTracker:
    def __init__(self):
        self.calls: list[dict] = []

    async def create_issue(self, title: str, body: str, labels: list[str]) -> IssueReference:
        self.calls.append({"title": title, "body": body, "labels": labels})
        number = len(self.calls)
        return IssueReference(url=f"https://github.com/acme/edges/issues/{number}", number=number)
