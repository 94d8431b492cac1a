"""Tests for edge weight learning."""

import pytest
from sqlalchemy import func, select

from edgecal.models import EdgeWeight, WeightHistory
from edgecal.services import learning
from edgecal.services.evaluation import AccuracyEvaluator
from edgecal.services.learning import (
    WeightLearner,
    WeightRepository,
    adjustment_reason,
    clamp_weight,
    compute_new_weight,
    get_all_weights,
    get_edge_weight,
    get_weight_history,
    round_weight,
)
from tests.factories import add_graded


async def seed_edge(session, edge_type, hits, misses, position="WR", magnitude=3.0):
    for i in range(hits + misses):
        await add_graded(
            session,
            "START",
            5 if i < hits else 40,
            position=position,
            signals=((edge_type, magnitude),),
        )


class TestComputeNewWeight:
    def test_strong_edge_from_neutral(self):
        # 65% over 60 samples: 1.0 * (1 + 0.1 * 0.15 * 1) = 1.015
        assert compute_new_weight(1.0, 65.0, 60) == 1.02

    def test_small_sample_dampens_adjustment(self):
        # confidence factor 0.2 -> 1.0 * (1 + 0.1 * 0.3 * 0.2) = 1.006
        assert compute_new_weight(1.0, 80.0, 10) == 1.01

    def test_decays_toward_neutral(self):
        assert compute_new_weight(2.0, 50.0, 50) == 1.9
        assert compute_new_weight(0.5, 50.0, 50) == 0.55

    def test_result_within_bounds(self):
        assert learning.MIN_WEIGHT <= compute_new_weight(0.2, 0.0, 500) <= learning.MAX_WEIGHT
        assert learning.MIN_WEIGHT <= compute_new_weight(3.0, 100.0, 500) <= learning.MAX_WEIGHT


def test_round_weight_is_half_up():
    assert round_weight(1.015) == 1.02
    assert round_weight(0.125) == 0.13
    assert round_weight(1.0) == 1.0


def test_clamp_weight():
    assert clamp_weight(3.4) == 3.0
    assert clamp_weight(0.05) == 0.2
    assert clamp_weight(1.3) == 1.3


@pytest.mark.parametrize(
    "hit_rate,label",
    [(65.0, "Strong performer"), (35.0, "Weak performer"), (55.0, "Average performer")],
)
def test_adjustment_reason(hit_rate, label):
    assert adjustment_reason(hit_rate).startswith(label)


class TestWeightLearner:
    async def test_updates_weight_and_writes_history(self, session):
        await seed_edge(session, "weather_wind", hits=39, misses=21)

        result = await WeightLearner(session).learn(2025, 4)

        assert result.updated_count == 1
        update = result.updates[0]
        assert update.edge_type == "weather_wind"
        assert update.old_weight == 1.0
        assert update.new_weight == 1.02
        assert update.sample_size == 60
        assert update.hit_rate == 65.0

        row = await WeightRepository(session).get("weather_wind")
        assert row.current_weight == 1.02
        assert row.total_predictions == 60
        assert row.correct_predictions == 39
        assert row.wr_weight == 1.02
        assert row.wr_predictions == 60
        assert row.qb_weight == 1.0

        history = await WeightRepository(session).history("weather_wind", 2025)
        assert len(history) == 1
        assert history[0].week == 4
        assert history[0].weight_before == 1.0
        assert history[0].weight_after == 1.02
        assert history[0].adjustment_reason.startswith("Strong performer")

    async def test_learns_generator_signal_types(self, session):
        generator_signals = (("usage_redzone", 3.0), ("usage_trend", 3.0), ("weather_precip", -3.0))
        for i in range(20):
            await add_graded(session, "START", 5 if i < 18 else 40, signals=generator_signals)

        result = await WeightLearner(session).learn(2025, 4)

        assert result.updated_count == 3
        assert sorted(u.edge_type for u in result.updates) == ["usage_redzone", "usage_trend", "weather_precip"]
        assert all(u.new_weight == 1.02 for u in result.updates)
        row = await WeightRepository(session).get("usage_redzone")
        assert row.current_weight == 1.02

    async def test_small_sample_skipped(self, session):
        await seed_edge(session, "revenge_game", hits=8, misses=0)

        result = await WeightLearner(session).learn(2025, 4)

        assert result.updated_count == 0
        assert await WeightRepository(session).get("revenge_game") is None

    async def test_weak_signals_not_counted(self, session):
        await seed_edge(session, "division_rivalry", hits=30, misses=0, magnitude=1.0)

        result = await WeightLearner(session).learn(2025, 4)

        assert result.updated_count == 0

    async def test_coin_flip_is_a_no_op(self, session):
        await seed_edge(session, "betting_total", hits=10, misses=10)

        result = await WeightLearner(session).learn(2025, 4)

        assert result.updated_count == 0
        count = await session.scalar(select(func.count()).select_from(WeightHistory))
        assert count == 0

    async def test_role_weight_needs_five_samples(self, session):
        await seed_edge(session, "usage_snap_count", hits=50, misses=0, position="WR")
        await seed_edge(session, "usage_snap_count", hits=4, misses=0, position="TE")

        await WeightLearner(session).learn(2025, 4)

        row = await WeightRepository(session).get("usage_snap_count")
        assert row.current_weight > 1.0
        assert row.wr_weight > 1.0
        assert row.te_weight == 1.0
        assert row.te_predictions == 4

    async def test_no_data(self, session):
        result = await WeightLearner(session).learn(2025, 1)
        assert result.updated_count == 0
        assert result.updates == []


class TestWeightRepository:
    async def test_upsert_creates_neutral_row(self, session):
        repo = WeightRepository(session)

        row = await repo.upsert("weather_snow", confidence_adjustment=-5)

        assert row.current_weight == 1.0
        assert row.te_weight == 1.0
        assert row.confidence_adjustment == -5

    async def test_upsert_updates_in_place(self, session):
        repo = WeightRepository(session)
        await repo.upsert("weather_snow", current_weight=0.8)
        await repo.upsert("weather_snow", current_weight=0.9)

        count = await session.scalar(select(func.count()).select_from(EdgeWeight))
        assert count == 1
        assert (await repo.get("weather_snow")).current_weight == 0.9

    async def test_list_all_heaviest_first(self, session):
        repo = WeightRepository(session)
        await repo.upsert("weather_snow", current_weight=0.8)
        await repo.upsert("betting_spread", current_weight=1.4)
        await repo.upsert("ol_injury", current_weight=1.1)

        assert [w.edge_type for w in await repo.list_all()] == [
            "betting_spread",
            "ol_injury",
            "weather_snow",
        ]


class TestWeightLookups:
    async def test_role_weight_preferred(self, session, session_factory):
        await WeightRepository(session).upsert("weather_wind", current_weight=1.2, wr_weight=1.4)
        await session.commit()

        assert await get_edge_weight("weather_wind", "WR", session_factory=session_factory) == 1.4
        # Neutral role weights fall back to the global weight
        assert await get_edge_weight("weather_wind", "QB", session_factory=session_factory) == 1.2
        assert await get_edge_weight("weather_wind", session_factory=session_factory) == 1.2

    async def test_unknown_edge_is_neutral(self, session_factory):
        assert await get_edge_weight("travel_distance", session_factory=session_factory) == 1.0

    async def test_unconfigured_store_is_neutral(self):
        assert await get_edge_weight("travel_distance") == 1.0
        assert await get_all_weights() == []
        assert await get_weight_history("travel_distance", 2025) == []

    async def test_all_weights_and_history(self, session, session_factory):
        await seed_edge(session, "weather_wind", hits=39, misses=21)
        await WeightLearner(session).learn(2025, 4)
        await session.commit()

        weights = await get_all_weights(session_factory=session_factory)
        assert [(w.edge_type, w.weight, w.predictions) for w in weights] == [("weather_wind", 1.02, 60)]

        history = await get_weight_history("weather_wind", 2025, session_factory=session_factory)
        assert [(h.week, h.weight_after, h.hit_rate) for h in history] == [(4, 1.02, 65.0)]


async def test_learner_and_evaluator_agree_on_hits(session):
    await seed_edge(session, "betting_spread", hits=7, misses=5)
    await seed_edge(session, "weather_cold", hits=2, misses=9, position="QB")

    report = await AccuracyEvaluator(session).evaluate(2025)
    performance = {p.edge_type: p for p in await WeightLearner(session).edge_performance(2025)}

    for edge_type in ("betting_spread", "weather_cold"):
        assert report.by_edge_type[edge_type].total == performance[edge_type].total
        assert report.by_edge_type[edge_type].correct == performance[edge_type].correct
