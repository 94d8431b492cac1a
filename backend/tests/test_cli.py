"""Tests for the command line entry point."""

import json

from edgecal import __main__ as cli
from edgecal import pipeline


def test_evaluate_prints_report(monkeypatch, capsys):
    async def fake_evaluate(season, week=None):
        return {"season": season, "week": week, "total_predictions": 0}

    monkeypatch.setattr(pipeline, "evaluate", fake_evaluate)

    assert cli.main(["evaluate", "--season", "2024", "--week", "5"]) == 0
    assert json.loads(capsys.readouterr().out) == {"season": 2024, "week": 5, "total_predictions": 0}


def test_learn_defaults_to_current_week(monkeypatch, capsys):
    seen = {}

    async def fake_learn(season, week):
        seen.update(season=season, week=week)
        return {"updated_count": 0, "updates": []}

    monkeypatch.setattr(pipeline, "learn", fake_learn)
    monkeypatch.setattr(cli, "current_season_week", lambda: (2025, 7))

    assert cli.main(["learn"]) == 0
    assert seen == {"season": 2025, "week": 7}


def test_refused_rollback_exits_nonzero(monkeypatch, capsys):
    async def fake_rollback(improvement_id, reason):
        return {"improvement_id": improvement_id, "rolled_back": False}

    monkeypatch.setattr(pipeline, "rollback", fake_rollback)

    assert cli.main(["rollback", "3", "--reason", "regressed"]) == 1
    assert json.loads(capsys.readouterr().out)["rolled_back"] is False
