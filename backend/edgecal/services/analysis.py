"""
Deep analysis of predictions vs. outcomes.

Each graded prediction gets one stored breakdown (how badly it missed, which
signal drove it, what went wrong). Breakdowns are then grouped across the
season to surface systematically weak cross-sections as patterns.
"""

from collections import defaultdict
from collections.abc import Callable, Sequence
from dataclasses import dataclass

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from edgecal.models import DetectedPattern, Outcome, Prediction, PredictionAnalysis
from edgecal.models.prediction import utcnow
from edgecal.schemas.analysis import AnalysisResult, BadMiss
from edgecal.services import grading
from edgecal.services.evaluation import load_graded_pairs

logger = structlog.get_logger()

# Miss severity by rank difference (positive = finished worse than the threshold)
BAD_MISS = 20
MAJOR_MISS = 12
MINOR_MISS = 6
SMASH_HIT = -5

ANALYSIS_VERSION = "v1"

MIN_ANALYSES_FOR_PATTERNS = 10
MIN_TEAM_GROUP = 3
MIN_GROUP = 5
MIN_SERIOUS_MISSES = 3
MIN_FACTOR_OCCURRENCES = 2
MAX_SAMPLE_PREDICTIONS = 10

SERIOUS_MISSES = ("bad_miss", "major_miss")
OPEN_PATTERN_SEVERITIES = ("critical", "concerning")


def classify_severity(was_hit: bool, rank_diff: int) -> str:
    if not was_hit:
        if rank_diff >= BAD_MISS:
            return "bad_miss"
        if rank_diff >= MAJOR_MISS:
            return "major_miss"
        if rank_diff >= MINOR_MISS:
            return "minor_miss"
        return "miss"
    if rank_diff <= SMASH_HIT:
        return "smash_hit"
    return "hit"


def pattern_severity(hit_rate: float) -> str:
    if hit_rate < 40:
        return "critical"
    if hit_rate < 50:
        return "concerning"
    if hit_rate < 55:
        return "notable"
    return "good"


def contributing_factors(prediction: Prediction, actual_rank: int, rank_diff: int) -> list[str]:
    """Qualitative reasons a miss happened. Only called for misses."""
    factors = []
    if prediction.edge_score > 0 and actual_rank > 20:
        factors.append("positive_edge_negative_outcome")
    if prediction.edge_score < 0 and actual_rank < 10:
        factors.append("negative_edge_positive_outcome")
    if prediction.confidence >= 80 and rank_diff > 12:
        factors.append("high_confidence_bad_miss")
    if prediction.position == "QB" and actual_rank > 20:
        factors.append("qb_bust")
    return factors


def analyze_prediction(prediction: Prediction, outcome: Outcome) -> PredictionAnalysis:
    """Build the (unsaved) breakdown for one graded prediction."""
    result = grading.grade(prediction.recommendation, outcome.position_rank)
    rank_diff = result.rank_diff
    signals = prediction.signals

    strongest, weakest = "none", "none"
    max_mag, min_mag = 0.0, float("inf")
    for signal in signals:
        magnitude = abs(signal.magnitude)
        if magnitude > max_mag:
            max_mag = magnitude
            strongest = signal.edge_type
        if 0 < magnitude < min_mag:
            min_mag = magnitude
            weakest = signal.edge_type

    factors = []
    if not result.is_hit:
        factors = contributing_factors(prediction, result.actual_rank, rank_diff)

    return PredictionAnalysis(
        prediction=prediction,
        prediction_id=prediction.id,
        was_hit=result.is_hit,
        severity=classify_severity(result.is_hit, rank_diff),
        predicted_rank=result.threshold,
        actual_rank=result.actual_rank,
        rank_diff=rank_diff,
        edge_signals_used=[s.model_dump(mode="json", exclude_none=True) for s in signals],
        strongest_signal=strongest,
        weakest_signal=weakest,
        contributing_factors=factors,
        analysis_version=ANALYSIS_VERSION,
    )


@dataclass
class PatternCandidate:
    pattern_type: str
    pattern_key: str
    total: int
    correct: int
    hit_rate: float
    severity: str
    samples: list[int]
    description: str


def _rate_pattern(
    pattern_type: str,
    pattern_key: str,
    analyses: Sequence[PredictionAnalysis],
    description: str,
) -> PatternCandidate:
    total = len(analyses)
    correct = sum(1 for a in analyses if a.was_hit)
    rate = grading.hit_rate(correct, total)
    return PatternCandidate(
        pattern_type=pattern_type,
        pattern_key=pattern_key,
        total=total,
        correct=correct,
        hit_rate=rate,
        severity=pattern_severity(rate),
        samples=[a.prediction_id for a in analyses[:MAX_SAMPLE_PREDICTIONS]],
        description=description,
    )


def _group(
    analyses: Sequence[PredictionAnalysis],
    key: Callable[[PredictionAnalysis], str | None],
) -> dict[str, list[PredictionAnalysis]]:
    groups: dict[str, list[PredictionAnalysis]] = defaultdict(list)
    for analysis in analyses:
        value = key(analysis)
        if value:
            groups[value].append(analysis)
    return groups


def mine_patterns(analyses: Sequence[PredictionAnalysis]) -> list[PatternCandidate]:
    """
    Group a season's analyses and keep the weak cross-sections.

    Healthy groups (hit rate >= 55%) are dropped. Bad and major misses are
    additionally mined for shared contributing factors.
    """
    if len(analyses) < MIN_ANALYSES_FOR_PATTERNS:
        return []

    passes: list[tuple[str, Callable[[PredictionAnalysis], str | None], int, Callable[[str], str]]] = [
        ("team", lambda a: a.prediction.team, MIN_TEAM_GROUP, lambda k: f"{k} player predictions"),
        ("position", lambda a: a.prediction.position, MIN_GROUP, lambda k: f"{k} predictions"),
        (
            "edge_type",
            lambda a: a.strongest_signal if a.strongest_signal != "none" else None,
            MIN_GROUP,
            lambda k: f"Predictions led by {k.replace('_', ' ')} edge",
        ),
        (
            "recommendation",
            lambda a: a.prediction.recommendation,
            MIN_GROUP,
            lambda k: f"{k} recommendations",
        ),
        (
            "confidence_level",
            lambda a: grading.confidence_tier(a.prediction.confidence),
            MIN_GROUP,
            lambda k: f"{k} confidence predictions",
        ),
    ]

    candidates: list[PatternCandidate] = []
    for pattern_type, key, min_size, describe in passes:
        for value, group in _group(analyses, key).items():
            if len(group) < min_size:
                continue
            candidate = _rate_pattern(pattern_type, value, group, describe(value))
            if candidate.severity != "good":
                candidates.append(candidate)

    serious = [a for a in analyses if a.severity in SERIOUS_MISSES]
    if len(serious) >= MIN_SERIOUS_MISSES:
        factor_counts: dict[str, int] = defaultdict(int)
        for miss in serious:
            for factor in miss.contributing_factors or []:
                factor_counts[factor] += 1

        for factor, count in factor_counts.items():
            if count < MIN_FACTOR_OCCURRENCES:
                continue
            samples = [m.prediction_id for m in serious if factor in (m.contributing_factors or [])]
            candidates.append(
                PatternCandidate(
                    pattern_type="contributing_factor",
                    pattern_key=factor,
                    total=count,
                    correct=0,
                    hit_rate=0.0,
                    severity="critical",
                    samples=samples[:MAX_SAMPLE_PREDICTIONS],
                    description=f"{count} bad misses with factor: {factor.replace('_', ' ')}",
                )
            )

    return candidates


class PatternDetector:
    """Analyses graded predictions and maintains the detected pattern table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def analyze(self, season: int, week: int) -> AnalysisResult:
        """Analyse the week's new predictions, then re-mine the whole season."""
        pairs = await load_graded_pairs(self.session, season, week)
        if not pairs:
            logger.info("No predictions to analyze", season=season, week=week)
            return AnalysisResult()

        ids = [prediction.id for prediction, _ in pairs]
        existing = await self.session.execute(
            select(PredictionAnalysis.prediction_id).where(PredictionAnalysis.prediction_id.in_(ids))
        )
        already_analyzed = set(existing.scalars().all())

        analyzed = 0
        for prediction, outcome in pairs:
            if prediction.id in already_analyzed:
                continue
            self.session.add(analyze_prediction(prediction, outcome))
            analyzed += 1
        await self.session.flush()

        logger.info(
            "Analyzed predictions",
            season=season,
            week=week,
            analyzed=analyzed,
            skipped=len(already_analyzed),
        )

        patterns = await self.detect_patterns(season, week)
        return AnalysisResult(analyzed_count=analyzed, patterns_detected=patterns)

    async def season_analyses(self, season: int) -> Sequence[PredictionAnalysis]:
        result = await self.session.execute(
            select(PredictionAnalysis)
            .join(Prediction, Prediction.id == PredictionAnalysis.prediction_id)
            .where(Prediction.season == season)
            .order_by(PredictionAnalysis.prediction_id)
        )
        return result.scalars().all()

    async def detect_patterns(self, season: int, week: int) -> int:
        analyses = await self.season_analyses(season)
        if len(analyses) < MIN_ANALYSES_FOR_PATTERNS:
            logger.info("Not enough data for pattern detection", season=season, analyses=len(analyses))
            return 0

        candidates = mine_patterns(analyses)
        for candidate in candidates:
            await self._upsert_pattern(candidate, season, week)
        await self.session.flush()

        logger.info("Detected patterns", season=season, patterns=len(candidates))
        return len(candidates)

    async def _upsert_pattern(
        self, candidate: PatternCandidate, season: int, week: int
    ) -> DetectedPattern:
        result = await self.session.execute(
            select(DetectedPattern)
            .where(DetectedPattern.pattern_type == candidate.pattern_type)
            .where(DetectedPattern.pattern_key == candidate.pattern_key)
        )
        pattern = result.scalar_one_or_none()
        now = utcnow()

        if pattern is None:
            pattern = DetectedPattern(
                pattern_type=candidate.pattern_type,
                pattern_key=candidate.pattern_key,
                first_detected_at=now,
                times_detected=1,
                addressed=False,
            )
            self.session.add(pattern)
        elif (pattern.last_detected_season, pattern.last_detected_week) != (season, week):
            pattern.times_detected = (pattern.times_detected or 0) + 1

        pattern.last_detected_season = season
        pattern.last_detected_week = week
        pattern.total_predictions = candidate.total
        pattern.correct_predictions = candidate.correct
        pattern.hit_rate = candidate.hit_rate
        pattern.sample_predictions = candidate.samples
        pattern.severity = candidate.severity
        pattern.pattern_description = candidate.description
        pattern.last_updated_at = now
        return pattern

    async def get_open_patterns(self) -> Sequence[DetectedPattern]:
        """Unaddressed critical/concerning patterns, worst first."""
        result = await self.session.execute(
            select(DetectedPattern)
            .where(DetectedPattern.severity.in_(OPEN_PATTERN_SEVERITIES))
            .where(DetectedPattern.addressed.is_(False))
            .order_by(DetectedPattern.hit_rate, DetectedPattern.id)
        )
        return result.scalars().all()

    async def get_bad_misses(self, season: int, limit: int = 20) -> list[BadMiss]:
        """Bad and major misses for the season, largest rank difference first."""
        result = await self.session.execute(
            select(PredictionAnalysis)
            .join(Prediction, Prediction.id == PredictionAnalysis.prediction_id)
            .where(Prediction.season == season)
            .where(PredictionAnalysis.severity.in_(SERIOUS_MISSES))
            .order_by(PredictionAnalysis.rank_diff.desc(), PredictionAnalysis.id)
            .limit(limit)
        )
        misses = []
        for analysis in result.scalars().all():
            prediction = analysis.prediction
            misses.append(
                BadMiss(
                    prediction_id=prediction.id,
                    player_name=prediction.player_name,
                    position=prediction.position,
                    team=prediction.team,
                    week=prediction.week,
                    recommendation=prediction.recommendation,
                    edge_score=prediction.edge_score,
                    confidence=prediction.confidence,
                    severity=analysis.severity,
                    predicted_rank=analysis.predicted_rank,
                    actual_rank=analysis.actual_rank,
                    rank_diff=analysis.rank_diff,
                    strongest_signal=analysis.strongest_signal,
                    contributing_factors=analysis.contributing_factors or [],
                    edge_signals_used=analysis.edge_signals_used or [],
                )
            )
        return misses

    async def list_patterns(self, include_addressed: bool = False) -> Sequence[DetectedPattern]:
        query = select(DetectedPattern).order_by(DetectedPattern.hit_rate, DetectedPattern.id)
        if not include_addressed:
            query = query.where(DetectedPattern.addressed.is_(False))
        result = await self.session.execute(query)
        return result.scalars().all()

    async def mark_pattern_addressed(self, pattern_type: str, pattern_key: str) -> bool:
        result = await self.session.execute(
            select(DetectedPattern)
            .where(DetectedPattern.pattern_type == pattern_type)
            .where(DetectedPattern.pattern_key == pattern_key)
        )
        pattern = result.scalar_one_or_none()
        if pattern is None:
            return False
        pattern.addressed = True
        pattern.last_updated_at = utcnow()
        await self.session.flush()
        return True
