"""Health check endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from edgecal.database import get_db
from edgecal.models import AppliedImprovement, EdgeAccuracy, PredictionAnalysis, WeightHistory

router = APIRouter()


@router.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)) -> dict:
    """
    Health check endpoint for load balancers and monitoring.

    Checks database connectivity and returns service status.
    """
    checks = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {},
    }

    # Database check
    try:
        await db.execute(text("SELECT 1"))
        checks["checks"]["database"] = "ok"
    except Exception as e:
        checks["checks"]["database"] = f"error: {str(e)}"
        checks["status"] = "unhealthy"

    return checks


@router.get("/ready")
async def readiness_check() -> dict:
    """Readiness probe for Kubernetes/Railway."""
    return {"status": "ready"}


@router.get("/pipeline")
async def pipeline_status(db: AsyncSession = Depends(get_db)) -> dict:
    """
    Last time each calibration stage wrote anything.

    The weekly stages run in Celery workers, so their freshness is read from
    the tables they write rather than from process memory.
    """
    stage_columns = {
        "evaluate": EdgeAccuracy.updated_at,
        "learn": WeightHistory.created_at,
        "analyze": PredictionAnalysis.analyzed_at,
        "improve": AppliedImprovement.applied_at,
    }

    stages = {}
    for stage, column in stage_columns.items():
        try:
            last_run = (await db.execute(select(func.max(column)))).scalar()
            stages[stage] = {
                "last_run": last_run.isoformat() if last_run else None,
                "status": "ok" if last_run else "no_data",
            }
        except Exception as e:
            stages[stage] = {"status": "error", "error": str(e)}

    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "stages": stages,
    }
