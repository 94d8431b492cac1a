"""Tests for the calibration pipeline entry points."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from edgecal import pipeline
from tests.factories import StubRecommender, add_weak_season, weight_recommendation


@pytest.fixture
async def broken_factory():
    """Sessions against a database with no tables."""
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


class TestUnconfiguredStore:
    async def test_stages_return_empty_results(self):
        evaluation = await pipeline.evaluate(2025, 3)
        assert evaluation["season"] == 2025
        assert evaluation["week"] == 3
        assert evaluation["total_predictions"] == 0

        assert (await pipeline.learn(2025, 3))["updated_count"] == 0
        assert (await pipeline.analyze(2025, 3))["analyzed_count"] == 0
        assert (await pipeline.evaluate_improvements())["evaluated"] == 0
        assert await pipeline.rollback(1, "test") == {"improvement_id": 1, "rolled_back": False}

    async def test_agent_not_called(self):
        recommender = StubRecommender([weight_recommendation()])
        report = await pipeline.run_improvement_agent(2025, recommender=recommender)
        assert report["auto_applied"] == 0
        assert recommender.contexts == []


class TestStoreErrors:
    async def test_failed_stage_degrades_to_empty(self, broken_factory):
        result = await pipeline.evaluate(2025, session_factory=broken_factory)
        assert result["total_predictions"] == 0

        result = await pipeline.learn(2025, 1, session_factory=broken_factory)
        assert result == {"updated_count": 0, "updates": []}


class TestWeeklyCycle:
    async def test_runs_all_stages_in_order(self, session, session_factory):
        await add_weak_season(session)
        await session.commit()
        recommender = StubRecommender([weight_recommendation(new_value=0.7)])

        results = await pipeline.run_weekly_cycle(
            2025, 1, recommender=recommender, session_factory=session_factory
        )

        assert list(results) == ["evaluation", "learning", "analysis", "improvement"]
        assert results["evaluation"]["total_predictions"] == 12
        assert results["evaluation"]["overall_hit_rate"] == 25.0
        assert results["analysis"]["analyzed_count"] == 12
        assert results["analysis"]["patterns_detected"] == 6
        assert results["improvement"]["patterns_analyzed"] == 6
        assert results["improvement"]["auto_applied"] == 1
        # The agent saw the patterns the analysis stage committed
        assert "### edge_type: matchup_defense" in recommender.contexts[0]

    async def test_results_are_json_ready(self, session, session_factory):
        await add_weak_season(session)
        await session.commit()

        report = await pipeline.evaluate(2025, session_factory=session_factory)

        assert isinstance(report["updated_at"], str)
        assert report["by_recommendation"]["START"] == {"total": 12, "correct": 3, "hit_rate": 25.0}


class TestRollback:
    async def test_rollback_round_trip(self, session, session_factory):
        await add_weak_season(session)
        await session.commit()

        await pipeline.analyze(2025, 1, session_factory=session_factory)
        await pipeline.run_improvement_agent(
            2025,
            recommender=StubRecommender([weight_recommendation(new_value=0.7)]),
            session_factory=session_factory,
        )

        first = await pipeline.rollback(1, "manual", session_factory=session_factory)
        second = await pipeline.rollback(1, "manual", session_factory=session_factory)

        assert first == {"improvement_id": 1, "rolled_back": True}
        assert second == {"improvement_id": 1, "rolled_back": False}
