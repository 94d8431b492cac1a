"""
Calibration pipeline entry points.

Plain season/week integers in, JSON-serialisable dicts out. Every entry point
opens its own session, commits on success and degrades to an empty result when
the store is unconfigured or unreachable, so callers (Celery, the API, the CLI)
never have to handle persistence errors themselves.
"""

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from edgecal import database
from edgecal.config import settings
from edgecal.schemas.agent import EvaluationSweep, ImprovementReport
from edgecal.schemas.analysis import AnalysisResult
from edgecal.schemas.evaluation import AccuracyReport
from edgecal.schemas.learning import LearningResult
from edgecal.services.agent.github import GitHubIssueTracker, IssueTracker
from edgecal.services.agent.improve import ImprovementAgent
from edgecal.services.agent.llm import RecommendationService
from edgecal.services.analysis import PatternDetector
from edgecal.services.evaluation import AccuracyEvaluator
from edgecal.services.learning import WeightLearner

logger = structlog.get_logger()

T = TypeVar("T")

SessionFactory = async_sessionmaker[AsyncSession]


def resolve_session_factory(session_factory: SessionFactory | None = None) -> SessionFactory | None:
    if session_factory is not None:
        return session_factory
    if database.engine is None:
        return None
    return database.async_session_maker


async def _run_stage(
    stage: str,
    empty: T,
    work: Callable[[AsyncSession], Awaitable[T]],
    session_factory: SessionFactory | None,
    **context: Any,
) -> T:
    factory = resolve_session_factory(session_factory)
    if factory is None:
        logger.warning("Database not configured, skipping stage", stage=stage, **context)
        return empty

    try:
        async with factory() as session:
            result = await work(session)
            await session.commit()
            return result
    except (SQLAlchemyError, OSError) as e:
        logger.error("Calibration stage failed", stage=stage, error=str(e), **context)
        return empty


async def evaluate(
    season: int,
    week: int | None = None,
    session_factory: SessionFactory | None = None,
) -> dict:
    """Accuracy report for a season (or one week of it)."""

    async def work(session: AsyncSession) -> AccuracyReport:
        return await AccuracyEvaluator(session).evaluate(season, week)

    report = await _run_stage(
        "evaluate", AccuracyReport.empty(season, week), work, session_factory, season=season, week=week
    )
    return report.model_dump(mode="json")


async def learn(season: int, week: int, session_factory: SessionFactory | None = None) -> dict:
    """Update edge weights from the season to date."""

    async def work(session: AsyncSession) -> LearningResult:
        return await WeightLearner(session).learn(season, week)

    result = await _run_stage("learn", LearningResult(), work, session_factory, season=season, week=week)
    return result.model_dump(mode="json")


async def analyze(season: int, week: int, session_factory: SessionFactory | None = None) -> dict:
    """Analyse the week's predictions and refresh the season's patterns."""

    async def work(session: AsyncSession) -> AnalysisResult:
        return await PatternDetector(session).analyze(season, week)

    result = await _run_stage("analyze", AnalysisResult(), work, session_factory, season=season, week=week)
    return result.model_dump(mode="json")


def _default_issue_tracker() -> IssueTracker | None:
    if not settings.create_issues:
        return None
    return GitHubIssueTracker()


async def run_improvement_agent(
    season: int,
    recommender: RecommendationService | None = None,
    issue_tracker: IssueTracker | None = None,
    create_issues: bool | None = None,
    session_factory: SessionFactory | None = None,
) -> dict:
    """Ask for recommendations and apply, file or escalate them."""
    if create_issues is None:
        create_issues = settings.create_issues
    tracker = issue_tracker if issue_tracker is not None else _default_issue_tracker()

    async def work(session: AsyncSession) -> ImprovementReport:
        agent = ImprovementAgent(
            session,
            recommender=recommender,
            issue_tracker=tracker,
            create_issues=create_issues,
        )
        return await agent.run(season)

    report = await _run_stage(
        "improve", ImprovementReport(season=season), work, session_factory, season=season
    )
    return report.model_dump(mode="json")


async def rollback(
    improvement_id: int,
    reason: str,
    session_factory: SessionFactory | None = None,
) -> dict:
    """Undo an applied improvement. Refused for unknown or already rolled back ids."""

    async def work(session: AsyncSession) -> bool:
        agent = ImprovementAgent(session)
        return await agent.rollback_improvement(improvement_id, reason)

    rolled_back = await _run_stage(
        "rollback", False, work, session_factory, improvement_id=improvement_id
    )
    return {"improvement_id": improvement_id, "rolled_back": rolled_back}


async def evaluate_improvements(session_factory: SessionFactory | None = None) -> dict:
    """Impact-check applied changes whose evaluation window has closed."""

    async def work(session: AsyncSession) -> EvaluationSweep:
        agent = ImprovementAgent(session)
        return await agent.evaluate_due_improvements()

    sweep = await _run_stage("evaluate_improvements", EvaluationSweep(), work, session_factory)
    return sweep.model_dump(mode="json")


async def run_weekly_cycle(
    season: int,
    week: int,
    recommender: RecommendationService | None = None,
    session_factory: SessionFactory | None = None,
) -> dict:
    """Evaluate, learn, analyse and improve, in that order."""
    logger.info("Starting weekly calibration cycle", season=season, week=week)

    results = {
        "evaluation": await evaluate(season, session_factory=session_factory),
        "learning": await learn(season, week, session_factory=session_factory),
        "analysis": await analyze(season, week, session_factory=session_factory),
        "improvement": await run_improvement_agent(
            season, recommender=recommender, session_factory=session_factory
        ),
    }

    logger.info(
        "Completed weekly calibration cycle",
        season=season,
        week=week,
        weights_updated=results["learning"]["updated_count"],
        analyzed=results["analysis"]["analyzed_count"],
        auto_applied=results["improvement"]["auto_applied"],
    )
    return results
