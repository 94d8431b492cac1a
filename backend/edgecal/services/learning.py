"""
Edge weight learning.

Runs weekly after the accuracy evaluation. Each edge type's weight is a
scalar multiplier nudged toward its observed hit rate:

- compare the season-to-date hit rate against a 50% baseline
- scale the nudge by sample size so small samples barely move the weight
- decay 10% of the distance back toward neutral every cycle
- clamp to [0.2, 3.0] so no edge can dominate or vanish
- repeat per role (QB/RB/WR/TE) where the role has enough samples
"""

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from edgecal import database
from edgecal.models import EdgeWeight, WeightHistory
from edgecal.models.prediction import utcnow
from edgecal.models.weights import ROLES
from edgecal.schemas.learning import LearningResult, WeightHistoryPoint, WeightSummary, WeightUpdate
from edgecal.services import grading
from edgecal.services.evaluation import load_graded_pairs

logger = structlog.get_logger()

LEARNING_RATE = 0.1        # max 10% move per cycle at full confidence
MIN_SAMPLE_SIZE = 10
MIN_ROLE_SAMPLE_SIZE = 5
MIN_WEIGHT = 0.2
MAX_WEIGHT = 3.0
BASELINE_HIT_RATE = 50.0   # coin flip
DECAY_FACTOR = 0.9
FULL_CONFIDENCE_SAMPLES = 50
MIN_SIGNAL_MAGNITUDE = 1.5
NO_OP_THRESHOLD = 0.01
NEUTRAL_WEIGHT = 1.0


def round_weight(value: float) -> float:
    """Round half-up to 2 decimals on the printed value (1.015 -> 1.02)."""
    return float(Decimal(repr(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def clamp_weight(value: float) -> float:
    return max(MIN_WEIGHT, min(MAX_WEIGHT, value))


def within_bounds(value: float) -> bool:
    return MIN_WEIGHT <= value <= MAX_WEIGHT


def adjustment_reason(hit_rate: float) -> str:
    if hit_rate > BASELINE_HIT_RATE + 10:
        return f"Strong performer ({hit_rate:.1f}% hit rate) - increasing weight"
    if hit_rate < BASELINE_HIT_RATE - 10:
        return f"Weak performer ({hit_rate:.1f}% hit rate) - decreasing weight"
    return f"Average performer ({hit_rate:.1f}% hit rate) - minor adjustment"


def compute_new_weight(current_weight: float, hit_rate: float, sample_size: int) -> float:
    """
    Closed-form weight update.

    Args:
        current_weight: Weight before this cycle
        hit_rate: Observed hit rate, 0-100
        sample_size: Number of qualifying predictions

    Returns:
        New weight, clamped to [0.2, 3.0] and rounded to 2 decimals
    """
    performance_diff = (hit_rate - BASELINE_HIT_RATE) / 100
    confidence_factor = min(1.0, sample_size / FULL_CONFIDENCE_SAMPLES)
    adjustment = LEARNING_RATE * performance_diff * confidence_factor

    decayed_weight = 1 + (current_weight - 1) * DECAY_FACTOR
    new_weight = clamp_weight(decayed_weight * (1 + adjustment))
    return round_weight(new_weight)


@dataclass
class _RoleStats:
    total: int = 0
    correct: int = 0

    @property
    def hit_rate(self) -> float:
        return self.correct / self.total * 100 if self.total else BASELINE_HIT_RATE


@dataclass
class EdgePerformance:
    """Season-to-date performance of one edge type."""

    edge_type: str
    total: int = 0
    correct: int = 0
    by_role: dict[str, _RoleStats] = field(
        default_factory=lambda: {role: _RoleStats() for role in ROLES}
    )

    @property
    def hit_rate(self) -> float:
        return self.correct / self.total * 100 if self.total else BASELINE_HIT_RATE

    def add(self, role: str, hit: bool) -> None:
        self.total += 1
        if hit:
            self.correct += 1
        stats = self.by_role.get(role)
        if stats is not None:
            stats.total += 1
            if hit:
                stats.correct += 1


class WeightRepository:
    """Natural-key access to edge weights and their history trail."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, edge_type: str) -> EdgeWeight | None:
        result = await self.session.execute(
            select(EdgeWeight).where(EdgeWeight.edge_type == edge_type)
        )
        return result.scalar_one_or_none()

    async def list_all(self) -> Sequence[EdgeWeight]:
        result = await self.session.execute(
            select(EdgeWeight).order_by(EdgeWeight.current_weight.desc(), EdgeWeight.edge_type)
        )
        return result.scalars().all()

    async def upsert(self, edge_type: str, **values) -> EdgeWeight:
        """Insert the edge type at neutral weight if missing, then apply ``values``."""
        row = await self.get(edge_type)
        if row is None:
            row = EdgeWeight(
                edge_type=edge_type,
                base_weight=NEUTRAL_WEIGHT,
                current_weight=NEUTRAL_WEIGHT,
                qb_weight=NEUTRAL_WEIGHT,
                rb_weight=NEUTRAL_WEIGHT,
                wr_weight=NEUTRAL_WEIGHT,
                te_weight=NEUTRAL_WEIGHT,
            )
            self.session.add(row)

        for key, value in values.items():
            setattr(row, key, value)
        row.last_updated = utcnow()

        await self.session.flush()
        return row

    async def append_history(
        self,
        edge_type: str,
        season: int,
        week: int,
        weight_before: float | None,
        weight_after: float | None,
        reason: str,
        hit_rate: float | None = None,
        sample_size: int | None = None,
    ) -> WeightHistory:
        entry = WeightHistory(
            edge_type=edge_type,
            season=season,
            week=week,
            weight_before=weight_before,
            weight_after=weight_after,
            hit_rate_this_week=hit_rate,
            sample_size=sample_size,
            adjustment_reason=reason,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def history(self, edge_type: str, season: int) -> Sequence[WeightHistory]:
        result = await self.session.execute(
            select(WeightHistory)
            .where(WeightHistory.edge_type == edge_type)
            .where(WeightHistory.season == season)
            .order_by(WeightHistory.week, WeightHistory.id)
        )
        return result.scalars().all()


class WeightLearner:
    """Turns season-to-date hit rates into new edge weights."""

    def __init__(self, session: AsyncSession, repository: WeightRepository | None = None):
        self.session = session
        self.repository = repository or WeightRepository(session)

    async def edge_performance(self, season: int) -> list[EdgePerformance]:
        performance: dict[str, EdgePerformance] = {}

        for prediction, outcome in await load_graded_pairs(self.session, season):
            hit = grading.is_hit(prediction.recommendation, outcome.position_rank)
            for signal in prediction.signals:
                if abs(signal.magnitude) < MIN_SIGNAL_MAGNITUDE:
                    continue
                perf = performance.get(signal.edge_type)
                if perf is None:
                    perf = performance[signal.edge_type] = EdgePerformance(signal.edge_type)
                perf.add(prediction.position, hit)

        return sorted(performance.values(), key=lambda p: p.edge_type)

    async def learn(self, season: int, week: int) -> LearningResult:
        """
        Update weights from the full season to date.

        ``week`` only labels the history rows; facts are never filtered by it.
        """
        performances = await self.edge_performance(season)
        if not performances:
            logger.info("No predictions with outcomes to learn from", season=season, week=week)
            return LearningResult()

        updates: list[WeightUpdate] = []

        for perf in performances:
            if perf.total < MIN_SAMPLE_SIZE:
                logger.debug(
                    "Skipping edge type, sample too small",
                    edge_type=perf.edge_type,
                    sample_size=perf.total,
                )
                continue

            row = await self.repository.get(perf.edge_type)
            old_weight = row.current_weight if row is not None else NEUTRAL_WEIGHT
            new_weight = compute_new_weight(old_weight, perf.hit_rate, perf.total)

            if abs(new_weight - old_weight) < NO_OP_THRESHOLD:
                continue

            values: dict = {
                "current_weight": new_weight,
                "total_predictions": perf.total,
                "correct_predictions": perf.correct,
                "hit_rate": round(perf.hit_rate, 2),
            }
            for role, stats in perf.by_role.items():
                role_weight = row.role_weight(role) if row is not None else NEUTRAL_WEIGHT
                if stats.total >= MIN_ROLE_SAMPLE_SIZE:
                    role_weight = compute_new_weight(role_weight, stats.hit_rate, stats.total)
                prefix = role.lower()
                values[f"{prefix}_weight"] = role_weight
                values[f"{prefix}_predictions"] = stats.total
                values[f"{prefix}_correct"] = stats.correct

            reason = adjustment_reason(perf.hit_rate)
            await self.repository.upsert(perf.edge_type, **values)
            await self.repository.append_history(
                edge_type=perf.edge_type,
                season=season,
                week=week,
                weight_before=old_weight,
                weight_after=new_weight,
                reason=reason,
                hit_rate=round(perf.hit_rate, 2),
                sample_size=perf.total,
            )

            updates.append(
                WeightUpdate(
                    edge_type=perf.edge_type,
                    old_weight=old_weight,
                    new_weight=new_weight,
                    hit_rate=round(perf.hit_rate, 1),
                    sample_size=perf.total,
                    reason=reason,
                )
            )

        logger.info("Updated edge weights", season=season, week=week, updated=len(updates))
        return LearningResult(updated_count=len(updates), updates=updates)


def _session_factory(
    session_factory: async_sessionmaker[AsyncSession] | None,
) -> async_sessionmaker[AsyncSession] | None:
    if session_factory is not None:
        return session_factory
    if database.engine is None:
        return None
    return database.async_session_maker


async def get_edge_weight(
    edge_type: str,
    role: str | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> float:
    """
    Weight used by the signal generators when scoring.

    Returns the role weight when one has been learned, otherwise the global
    weight. Falls back to 1.0 whenever calibration data is missing so scoring
    is never blocked.
    """
    factory = _session_factory(session_factory)
    if factory is None:
        return NEUTRAL_WEIGHT

    try:
        async with factory() as session:
            row = await WeightRepository(session).get(edge_type)
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Weight lookup failed, using neutral weight", edge_type=edge_type, error=str(e))
        return NEUTRAL_WEIGHT

    if row is None:
        return NEUTRAL_WEIGHT

    if role:
        role_weight = row.role_weight(role)
        if role_weight and role_weight != NEUTRAL_WEIGHT:
            return role_weight

    return row.current_weight or NEUTRAL_WEIGHT


async def get_all_weights(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> list[WeightSummary]:
    """All weights, heaviest first."""
    factory = _session_factory(session_factory)
    if factory is None:
        return []

    try:
        async with factory() as session:
            rows = await WeightRepository(session).list_all()
            return [WeightSummary.model_validate(row) for row in rows]
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Failed to load weights", error=str(e))
        return []


async def get_weight_history(
    edge_type: str,
    season: int,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> list[WeightHistoryPoint]:
    """Weight trail for one edge type, in week order."""
    factory = _session_factory(session_factory)
    if factory is None:
        return []

    try:
        async with factory() as session:
            rows = await WeightRepository(session).history(edge_type, season)
            return [WeightHistoryPoint.model_validate(row) for row in rows]
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Failed to load weight history", edge_type=edge_type, season=season, error=str(e))
        return []
