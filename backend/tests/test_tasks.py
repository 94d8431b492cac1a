"""Tests for the scheduled calibration tasks."""

from datetime import date

import pytest

from edgecal import pipeline
from edgecal.celery_app import celery_app
from edgecal.tasks import calibration


class TestSeasonCalendar:
    def test_kickoff_is_thursday_after_labor_day(self):
        assert calibration.season_kickoff(2025) == date(2025, 9, 4)
        assert calibration.season_kickoff(2024) == date(2024, 9, 5)
        assert calibration.season_kickoff(2026) == date(2026, 9, 10)

    @pytest.mark.parametrize(
        "today,expected",
        [
            (date(2025, 9, 4), (2025, 1)),
            (date(2025, 9, 9), (2025, 1)),
            (date(2025, 9, 16), (2025, 2)),
            (date(2026, 1, 6), (2025, 18)),
            (date(2025, 8, 1), (2024, 18)),
        ],
    )
    def test_current_season_week(self, today, expected):
        assert calibration.current_season_week(today) == expected


def test_beat_schedule():
    tasks = {entry["task"] for entry in celery_app.conf.beat_schedule.values()}
    assert tasks == {
        "edgecal.tasks.calibration.run_accuracy_evaluation",
        "edgecal.tasks.calibration.run_weight_learning",
        "edgecal.tasks.calibration.run_analysis_and_agent",
        "edgecal.tasks.calibration.run_improvement_evaluation",
    }


def test_weight_learning_task(monkeypatch):
    calls = []

    async def fake_learn(season, week):
        calls.append((season, week))
        return {"updated_count": 2, "updates": []}

    monkeypatch.setattr(pipeline, "learn", fake_learn)

    result = calibration.run_weight_learning(2025, 6)

    assert calls == [(2025, 6)]
    assert result["updated_count"] == 2


def test_analysis_and_agent_task(monkeypatch):
    async def fake_analyze(season, week):
        return {"analyzed_count": 12, "patterns_detected": 6}

    async def fake_agent(season):
        return {"auto_applied": 1, "proposals_created": 2}

    monkeypatch.setattr(pipeline, "analyze", fake_analyze)
    monkeypatch.setattr(pipeline, "run_improvement_agent", fake_agent)

    result = calibration.run_analysis_and_agent(2025, 6)

    assert result == {
        "analysis": {"analyzed_count": 12, "patterns_detected": 6},
        "improvement": {"auto_applied": 1, "proposals_created": 2},
    }


def test_accuracy_task_summarises_report(monkeypatch):
    async def fake_evaluate(season):
        return {"total_predictions": 40, "overall_hit_rate": 57.5, "by_edge_type": {}}

    monkeypatch.setattr(pipeline, "evaluate", fake_evaluate)

    assert calibration.run_accuracy_evaluation(2025) == {
        "season": 2025,
        "total_predictions": 40,
        "overall_hit_rate": 57.5,
    }
