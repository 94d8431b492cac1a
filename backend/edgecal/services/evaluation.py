"""Accuracy evaluation of predictions against realized outcomes."""

from collections import defaultdict
from dataclasses import dataclass

import structlog
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from edgecal.models import EdgeAccuracy, Outcome, Prediction
from edgecal.models.prediction import utcnow
from edgecal.schemas.evaluation import (
    AccuracyReport,
    ConfidenceBreakdown,
    EdgeHitRate,
    HitRateBucket,
    NotableExample,
    QuickStats,
)
from edgecal.services import grading

logger = structlog.get_logger()

# Signals weaker than this are noise for the per-edge breakdown
ACCURACY_SIGNAL_FLOOR = 2.0

NOTABLE_EXAMPLES = 5


@dataclass
class _Tally:
    total: int = 0
    correct: int = 0

    def add(self, hit: bool) -> None:
        self.total += 1
        if hit:
            self.correct += 1

    def bucket(self) -> HitRateBucket:
        return HitRateBucket(
            total=self.total,
            correct=self.correct,
            hit_rate=grading.hit_rate(self.correct, self.total),
        )


async def load_graded_pairs(
    session: AsyncSession,
    season: int,
    week: int | None = None,
) -> list[tuple[Prediction, Outcome]]:
    """Predictions joined 1:1 to their outcomes by (player, week, season)."""
    query = (
        select(Prediction, Outcome)
        .join(
            Outcome,
            and_(
                Outcome.player_id == Prediction.player_id,
                Outcome.week == Prediction.week,
                Outcome.season == Prediction.season,
            ),
        )
        .where(Prediction.season == season)
        .order_by(Prediction.week, Prediction.id)
    )
    if week is not None:
        query = query.where(Prediction.week == week)

    result = await session.execute(query)
    return [(row[0], row[1]) for row in result.all()]


def _example(prediction: Prediction, outcome: Outcome) -> NotableExample:
    return NotableExample(
        player_name=prediction.player_name,
        week=prediction.week,
        edge_score=prediction.edge_score,
        recommendation=prediction.recommendation,
        actual_points=outcome.fantasy_points,
        position_rank=outcome.position_rank or 0,
    )


class AccuracyEvaluator:
    """Grades a season's predictions and caches per-edge accuracy."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def evaluate(self, season: int, week: int | None = None) -> AccuracyReport:
        """
        Build the accuracy report for a season, or for one week of it.

        Only season-wide runs refresh the ``edge_accuracy`` cache, so a
        single-week report never overwrites the dashboard figures.
        """
        pairs = await load_graded_pairs(self.session, season, week)
        if not pairs:
            logger.info("No graded predictions", season=season, week=week)
            return AccuracyReport.empty(season, week)

        overall = _Tally()
        by_recommendation: dict[str, _Tally] = defaultdict(_Tally)
        by_position: dict[str, _Tally] = defaultdict(_Tally)
        by_confidence: dict[str, _Tally] = defaultdict(_Tally)
        by_edge_type: dict[str, _Tally] = defaultdict(_Tally)

        hits: list[tuple[Prediction, Outcome]] = []
        misses: list[tuple[Prediction, Outcome]] = []

        for prediction, outcome in pairs:
            hit = grading.is_hit(prediction.recommendation, outcome.position_rank)

            overall.add(hit)
            by_recommendation[prediction.recommendation].add(hit)
            by_position[prediction.position].add(hit)
            by_confidence[grading.confidence_tier(prediction.confidence)].add(hit)

            for signal in prediction.signals:
                if abs(signal.magnitude) >= ACCURACY_SIGNAL_FLOOR:
                    by_edge_type[signal.edge_type].add(hit)

            # Notable examples only make sense for calls that backed a player
            if grading.is_positive(prediction.recommendation):
                (hits if hit else misses).append((prediction, outcome))

        hits.sort(key=lambda pair: grading.effective_rank(pair[1].position_rank))
        misses.sort(key=lambda pair: grading.effective_rank(pair[1].position_rank), reverse=True)

        edge_buckets = {k: v.bucket() for k, v in by_edge_type.items()}
        ordered_edges = dict(
            sorted(edge_buckets.items(), key=lambda item: item[1].hit_rate, reverse=True)
        )

        report = AccuracyReport(
            season=season,
            week=week,
            total_predictions=overall.total,
            overall_hit_rate=grading.hit_rate(overall.correct, overall.total),
            by_recommendation={k: v.bucket() for k, v in by_recommendation.items()},
            by_position={k: v.bucket() for k, v in by_position.items()},
            by_confidence=ConfidenceBreakdown(
                high=by_confidence["high"].bucket(),
                medium=by_confidence["medium"].bucket(),
                low=by_confidence["low"].bucket(),
            ),
            by_edge_type=ordered_edges,
            biggest_hits=[_example(p, o) for p, o in hits[:NOTABLE_EXAMPLES]],
            biggest_misses=[_example(p, o) for p, o in misses[:NOTABLE_EXAMPLES]],
        )

        if week is None:
            await self._cache_edge_accuracy(report)

        logger.info(
            "Accuracy evaluated",
            season=season,
            week=week,
            total=report.total_predictions,
            hit_rate=report.overall_hit_rate,
            edge_types=len(report.by_edge_type),
        )
        return report

    async def _cache_edge_accuracy(self, report: AccuracyReport) -> None:
        """Upsert one cache row per edge type for the report's season."""
        existing_rows = await self.session.execute(
            select(EdgeAccuracy).where(EdgeAccuracy.season == report.season)
        )
        existing = {row.edge_type: row for row in existing_rows.scalars().all()}

        def role_rate(role: str) -> float | None:
            bucket = report.by_position.get(role)
            return bucket.hit_rate if bucket else None

        for edge_type, stats in report.by_edge_type.items():
            row = existing.get(edge_type)
            if row is None:
                row = EdgeAccuracy(edge_type=edge_type, season=report.season)
                self.session.add(row)

            row.total_predictions = stats.total
            row.correct_predictions = stats.correct
            row.hit_rate = stats.hit_rate
            row.qb_hit_rate = role_rate("QB")
            row.rb_hit_rate = role_rate("RB")
            row.wr_hit_rate = role_rate("WR")
            row.te_hit_rate = role_rate("TE")
            row.high_conf_total = report.by_confidence.high.total
            row.high_conf_correct = report.by_confidence.high.correct
            row.med_conf_total = report.by_confidence.medium.total
            row.med_conf_correct = report.by_confidence.medium.correct
            row.low_conf_total = report.by_confidence.low.total
            row.low_conf_correct = report.by_confidence.low.correct
            row.updated_at = utcnow()

        await self.session.flush()

    async def quick_stats(self, season: int, limit: int = 5) -> QuickStats:
        """Top edges by cached hit rate, with a sample-weighted overall rate."""
        result = await self.session.execute(
            select(EdgeAccuracy)
            .where(EdgeAccuracy.season == season)
            .order_by(EdgeAccuracy.hit_rate.desc())
            .limit(limit)
        )
        rows = result.scalars().all()
        if not rows:
            return QuickStats(season=season)

        total = sum(r.total_predictions or 0 for r in rows)
        weighted = sum((r.hit_rate or 0.0) * (r.total_predictions or 0) for r in rows)

        return QuickStats(
            season=season,
            total_predictions=total,
            overall_hit_rate=round(weighted / total, 1) if total else 0.0,
            top_edges=[EdgeHitRate(edge_type=r.edge_type, hit_rate=r.hit_rate or 0.0) for r in rows],
        )
