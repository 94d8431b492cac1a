"""Calibration trigger and read endpoints."""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from edgecal import pipeline
from edgecal.database import get_db
from edgecal.models import AppliedImprovement, ImprovementProposal
from edgecal.schemas.agent import AppliedImprovementSummary, ProposalSummary
from edgecal.schemas.analysis import PatternStats
from edgecal.schemas.evaluation import QuickStats
from edgecal.schemas.learning import WeightHistoryPoint, WeightSummary
from edgecal.services.analysis import PatternDetector
from edgecal.services.evaluation import AccuracyEvaluator
from edgecal.services.learning import WeightRepository, get_edge_weight

logger = structlog.get_logger()

router = APIRouter(prefix="/calibration", tags=["Calibration"])

OPERATION_FAILED = "Operation failed"


class RollbackRequest(BaseModel):
    reason: str


class TaskResult(BaseModel):
    """Task execution result."""
    status: str
    message: str


def _failed(operation: str, error: Exception, **context) -> HTTPException:
    logger.error("Calibration endpoint failed", operation=operation, error=str(error), **context)
    return HTTPException(status_code=500, detail=OPERATION_FAILED)


# Triggers


@router.post("/evaluate")
async def trigger_evaluation(season: int, week: int | None = None) -> dict:
    """
    Grade predictions against outcomes.

    Season-wide runs also refresh the per-edge accuracy cache.
    """
    try:
        return await pipeline.evaluate(season, week)
    except Exception as e:
        raise _failed("evaluate", e, season=season, week=week)


@router.post("/learn")
async def trigger_learning(season: int, week: int) -> dict:
    """Update edge weights from the season to date. ``week`` labels the history rows."""
    try:
        return await pipeline.learn(season, week)
    except Exception as e:
        raise _failed("learn", e, season=season, week=week)


@router.post("/analyze")
async def trigger_analysis(season: int, week: int) -> dict:
    try:
        return await pipeline.analyze(season, week)
    except Exception as e:
        raise _failed("analyze", e, season=season, week=week)


@router.post("/improve")
async def trigger_improvement_agent(season: int) -> dict:
    """Run the improvement agent. Waits on the recommendation service."""
    try:
        return await pipeline.run_improvement_agent(season)
    except Exception as e:
        raise _failed("improve", e, season=season)


@router.post("/weekly-cycle")
async def trigger_weekly_cycle(season: int, week: int) -> dict:
    try:
        return await pipeline.run_weekly_cycle(season, week)
    except Exception as e:
        raise _failed("weekly_cycle", e, season=season, week=week)


@router.post("/improvements/evaluate")
async def trigger_improvement_evaluation() -> dict:
    try:
        return await pipeline.evaluate_improvements()
    except Exception as e:
        raise _failed("evaluate_improvements", e)


@router.post("/improvements/{improvement_id}/rollback", response_model=TaskResult)
async def rollback_improvement(improvement_id: int, body: RollbackRequest) -> TaskResult:
    try:
        result = await pipeline.rollback(improvement_id, body.reason)
    except Exception as e:
        raise _failed("rollback", e, improvement_id=improvement_id)

    if not result["rolled_back"]:
        return TaskResult(
            status="refused",
            message=f"Improvement {improvement_id} is unknown or already rolled back",
        )
    return TaskResult(status="rolled_back", message=f"Rolled back improvement {improvement_id}")


# Reads


@router.get("/weights", response_model=list[WeightSummary])
async def list_weights(db: AsyncSession = Depends(get_db)) -> list[WeightSummary]:
    try:
        rows = await WeightRepository(db).list_all()
    except SQLAlchemyError as e:
        raise _failed("list_weights", e)
    return [WeightSummary.model_validate(row) for row in rows]


@router.get("/weights/{edge_type}")
async def read_weight(edge_type: str, role: str | None = None) -> dict:
    """Effective weight for an edge type, 1.0 when nothing has been learned."""
    weight = await get_edge_weight(edge_type, role)
    return {"edge_type": edge_type, "role": role, "weight": weight}


@router.get("/weights/{edge_type}/history", response_model=list[WeightHistoryPoint])
async def read_weight_history(
    edge_type: str,
    season: int,
    db: AsyncSession = Depends(get_db),
) -> list[WeightHistoryPoint]:
    try:
        rows = await WeightRepository(db).history(edge_type, season)
    except SQLAlchemyError as e:
        raise _failed("weight_history", e, edge_type=edge_type, season=season)
    return [WeightHistoryPoint.model_validate(row) for row in rows]


@router.get("/accuracy/summary", response_model=QuickStats)
async def accuracy_summary(season: int, db: AsyncSession = Depends(get_db)) -> QuickStats:
    """Dashboard summary from the cached per-edge accuracy rows."""
    try:
        return await AccuracyEvaluator(db).quick_stats(season)
    except SQLAlchemyError as e:
        raise _failed("accuracy_summary", e, season=season)


@router.get("/patterns", response_model=list[PatternStats])
async def list_patterns(
    include_addressed: bool = False,
    db: AsyncSession = Depends(get_db),
) -> list[PatternStats]:
    try:
        rows = await PatternDetector(db).list_patterns(include_addressed=include_addressed)
    except SQLAlchemyError as e:
        raise _failed("list_patterns", e)
    return [PatternStats.model_validate(row) for row in rows]


@router.post("/patterns/{pattern_type}/{pattern_key}/addressed", response_model=TaskResult)
async def mark_pattern_addressed(
    pattern_type: str,
    pattern_key: str,
    db: AsyncSession = Depends(get_db),
) -> TaskResult:
    try:
        found = await PatternDetector(db).mark_pattern_addressed(pattern_type, pattern_key)
    except SQLAlchemyError as e:
        raise _failed("mark_pattern_addressed", e, pattern_type=pattern_type, pattern_key=pattern_key)

    if not found:
        raise HTTPException(status_code=404, detail="Pattern not found")
    return TaskResult(status="addressed", message=f"{pattern_type}:{pattern_key} marked addressed")


@router.get("/proposals", response_model=list[ProposalSummary])
async def list_proposals(
    status: str | None = Query(default=None, pattern="^(pending|applied|rejected)$"),
    db: AsyncSession = Depends(get_db),
) -> list[ProposalSummary]:
    query = select(ImprovementProposal).order_by(ImprovementProposal.created_at.desc())
    if status:
        query = query.where(ImprovementProposal.status == status)
    try:
        rows = (await db.execute(query)).scalars().all()
    except SQLAlchemyError as e:
        raise _failed("list_proposals", e)
    return [ProposalSummary.model_validate(row) for row in rows]


@router.get("/improvements", response_model=list[AppliedImprovementSummary])
async def list_improvements(db: AsyncSession = Depends(get_db)) -> list[AppliedImprovementSummary]:
    try:
        result = await db.execute(
            select(AppliedImprovement).order_by(AppliedImprovement.applied_at.desc())
        )
        rows = result.scalars().all()
    except SQLAlchemyError as e:
        raise _failed("list_improvements", e)
    return [AppliedImprovementSummary.model_validate(row) for row in rows]
