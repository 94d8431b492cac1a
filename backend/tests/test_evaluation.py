"""Tests for the accuracy evaluator."""

from sqlalchemy import func, select

from edgecal.models import EdgeAccuracy
from edgecal.services.evaluation import AccuracyEvaluator, load_graded_pairs
from tests.factories import add_graded


async def seed_season(session):
    await add_graded(session, "START", 5, position="WR", confidence=85)
    await add_graded(
        session,
        "SMASH",
        30,
        position="RB",
        confidence=65,
        signals=(("weather_wind", -2.5), ("matchup_defense", 1.0)),
    )
    await add_graded(
        session, "SIT", 25, position="WR", confidence=50, signals=(("rest_advantage", 2.0),)
    )
    await add_graded(
        session, "FLEX", None, position="TE", confidence=70, signals=(("matchup_defense", 2.0),)
    )
    await add_graded(
        session,
        "START",
        2,
        position="QB",
        confidence=90,
        week=2,
        signals=(("usage_target_share", 4.0),),
    )


class TestLoadGradedPairs:
    async def test_joins_on_player_week_season(self, session):
        await seed_season(session)
        await add_graded(session, season=2024)

        assert len(await load_graded_pairs(session, 2025)) == 5
        assert len(await load_graded_pairs(session, 2025, week=2)) == 1


class TestEvaluate:
    async def test_overall_and_breakdowns(self, session):
        await seed_season(session)

        report = await AccuracyEvaluator(session).evaluate(2025)

        assert report.total_predictions == 5
        assert report.overall_hit_rate == 60.0
        assert report.by_recommendation["START"].total == 2
        assert report.by_recommendation["START"].correct == 2
        assert report.by_recommendation["SMASH"].hit_rate == 0.0
        assert report.by_position["WR"].correct == 2
        assert report.by_confidence.high.total == 2
        assert report.by_confidence.high.correct == 2
        assert report.by_confidence.medium.total == 2
        assert report.by_confidence.medium.correct == 0
        assert report.by_confidence.low.correct == 1

    async def test_edge_breakdown_ignores_weak_signals(self, session):
        await seed_season(session)

        report = await AccuracyEvaluator(session).evaluate(2025)

        assert set(report.by_edge_type) == {
            "matchup_defense",
            "weather_wind",
            "rest_advantage",
            "usage_target_share",
        }
        # The 1.0 matchup signal on the SMASH bust is below the floor
        assert report.by_edge_type["matchup_defense"].total == 2
        assert report.by_edge_type["matchup_defense"].hit_rate == 50.0
        assert list(report.by_edge_type)[-1] == "weather_wind"

    async def test_notable_examples_only_positive_calls(self, session):
        await seed_season(session)

        report = await AccuracyEvaluator(session).evaluate(2025)

        assert [e.position_rank for e in report.biggest_hits] == [2, 5]
        assert [e.recommendation for e in report.biggest_misses] == ["FLEX", "SMASH"]
        assert report.biggest_misses[0].position_rank == 0
        assert all(e.recommendation != "SIT" for e in report.biggest_hits)

    async def test_season_run_caches_edge_accuracy(self, session):
        await seed_season(session)
        evaluator = AccuracyEvaluator(session)

        await evaluator.evaluate(2025)
        await evaluator.evaluate(2025)

        count = await session.scalar(select(func.count()).select_from(EdgeAccuracy))
        assert count == 4
        row = await session.scalar(
            select(EdgeAccuracy).where(EdgeAccuracy.edge_type == "matchup_defense")
        )
        assert row.total_predictions == 2
        assert row.correct_predictions == 1
        assert row.hit_rate == 50.0
        assert row.wr_hit_rate == 100.0

    async def test_week_run_leaves_cache_alone(self, session):
        await seed_season(session)

        report = await AccuracyEvaluator(session).evaluate(2025, week=2)

        assert report.week == 2
        assert report.total_predictions == 1
        count = await session.scalar(select(func.count()).select_from(EdgeAccuracy))
        assert count == 0

    async def test_empty_season(self, session):
        report = await AccuracyEvaluator(session).evaluate(2030)
        assert report.total_predictions == 0
        assert report.overall_hit_rate == 0.0
        assert report.by_edge_type == {}


class TestQuickStats:
    async def test_top_edges_from_cache(self, session):
        await seed_season(session)
        evaluator = AccuracyEvaluator(session)
        await evaluator.evaluate(2025)

        stats = await evaluator.quick_stats(2025, limit=2)

        assert len(stats.top_edges) == 2
        assert all(edge.hit_rate == 100.0 for edge in stats.top_edges)
        assert stats.total_predictions == 2
        assert stats.overall_hit_rate == 100.0

    async def test_no_cache_rows(self, session):
        stats = await AccuracyEvaluator(session).quick_stats(2025)
        assert stats.total_predictions == 0
        assert stats.top_edges == []
