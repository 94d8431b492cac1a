"""Weekly calibration tasks."""

import asyncio
from datetime import date, datetime, timedelta, timezone

import structlog

from edgecal import pipeline
from edgecal.celery_app import celery_app

logger = structlog.get_logger()

REGULAR_SEASON_WEEKS = 18


def season_kickoff(year: int) -> date:
    """Thursday after Labor Day (first Monday of September)."""
    first = date(year, 9, 1)
    labor_day = first + timedelta(days=(0 - first.weekday()) % 7)
    return labor_day + timedelta(days=3)


def current_season_week(today: date | None = None) -> tuple[int, int]:
    """
    Season and most recently completed week for a given day.

    Weeks run Thursday to Wednesday, so on the Tuesday after week N's games
    this returns week N. Days before kickoff belong to the previous season.
    """
    today = today or datetime.now(timezone.utc).date()
    season = today.year
    kickoff = season_kickoff(season)
    if today < kickoff:
        season -= 1
        kickoff = season_kickoff(season)

    week = (today - kickoff).days // 7 + 1
    return season, max(1, min(REGULAR_SEASON_WEEKS, week))


def _resolve(season: int | None, week: int | None) -> tuple[int, int]:
    current_season, current_week = current_season_week()
    return season or current_season, week or current_week


@celery_app.task(name="edgecal.tasks.calibration.run_accuracy_evaluation")
def run_accuracy_evaluation(season: int | None = None, week: int | None = None) -> dict:
    """Season-wide accuracy report; refreshes the per-edge accuracy cache."""
    season, _ = _resolve(season, week)
    logger.info("Starting accuracy evaluation", season=season)

    report = asyncio.run(pipeline.evaluate(season))

    logger.info(
        "Completed accuracy evaluation",
        season=season,
        total=report["total_predictions"],
        hit_rate=report["overall_hit_rate"],
    )
    return {
        "season": season,
        "total_predictions": report["total_predictions"],
        "overall_hit_rate": report["overall_hit_rate"],
    }


@celery_app.task(name="edgecal.tasks.calibration.run_weight_learning")
def run_weight_learning(season: int | None = None, week: int | None = None) -> dict:
    season, week = _resolve(season, week)
    logger.info("Starting weight learning", season=season, week=week)

    result = asyncio.run(pipeline.learn(season, week))

    logger.info("Completed weight learning", season=season, week=week, updated=result["updated_count"])
    return result


@celery_app.task(name="edgecal.tasks.calibration.run_analysis_and_agent")
def run_analysis_and_agent(season: int | None = None, week: int | None = None) -> dict:
    """Analyse the week, then let the improvement agent act on what was found."""
    season, week = _resolve(season, week)
    logger.info("Starting analysis and improvement agent", season=season, week=week)

    async def _run() -> dict:
        analysis = await pipeline.analyze(season, week)
        improvement = await pipeline.run_improvement_agent(season)
        return {"analysis": analysis, "improvement": improvement}

    result = asyncio.run(_run())

    logger.info(
        "Completed analysis and improvement agent",
        season=season,
        week=week,
        analyzed=result["analysis"]["analyzed_count"],
        patterns=result["analysis"]["patterns_detected"],
        auto_applied=result["improvement"]["auto_applied"],
        proposals=result["improvement"]["proposals_created"],
    )
    return result


@celery_app.task(name="edgecal.tasks.calibration.run_improvement_evaluation")
def run_improvement_evaluation() -> dict:
    """Impact-check due improvements and auto-roll back the harmful ones."""
    result = asyncio.run(pipeline.evaluate_improvements())
    logger.info(
        "Completed improvement evaluation",
        evaluated=result["evaluated"],
        rolled_back=result["rolled_back"],
    )
    return result
