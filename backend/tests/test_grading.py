"""Tests for hit/miss grading."""

import pytest

from edgecal.services import grading


class TestIsHit:
    @pytest.mark.parametrize(
        "recommendation,rank,expected",
        [
            ("SMASH", 3, True),
            ("SMASH", 5, True),
            ("SMASH", 6, False),
            ("START", 12, True),
            ("START", 13, False),
            ("FLEX", 24, True),
            ("FLEX", 25, False),
            ("RISKY", 21, True),
            ("SIT", 20, False),
            ("SIT", 21, True),
            ("AVOID", 30, False),
            ("AVOID", 31, True),
        ],
    )
    def test_threshold_rules(self, recommendation, rank, expected):
        assert grading.is_hit(recommendation, rank) is expected

    def test_unranked_player_misses_positive_call(self):
        assert grading.is_hit("START", None) is False
        assert grading.is_hit("START", 0) is False

    def test_unranked_player_hits_negative_call(self):
        assert grading.is_hit("SIT", None) is True

    def test_unknown_label_graded_as_positive_with_default_threshold(self):
        assert grading.threshold_for("MAYBE") == grading.DEFAULT_THRESHOLD
        assert grading.is_hit("MAYBE", 10) is True
        assert grading.is_hit("MAYBE", 13) is False


class TestGrade:
    def test_smash_bust_rank_diff(self):
        result = grading.grade("SMASH", 30)
        assert result.threshold == 5
        assert result.actual_rank == 30
        assert result.rank_diff == 25
        assert not result.is_hit

    def test_missing_rank_uses_unranked_sentinel(self):
        result = grading.grade("FLEX", None)
        assert result.actual_rank == grading.UNRANKED


class TestConfidenceTier:
    @pytest.mark.parametrize(
        "confidence,tier",
        [(95, "high"), (80, "high"), (79, "medium"), (60, "medium"), (59, "low"), (0, "low")],
    )
    def test_tiers(self, confidence, tier):
        assert grading.confidence_tier(confidence) == tier


def test_hit_rate_rounds_to_one_decimal():
    assert grading.hit_rate(2, 3) == 66.7
    assert grading.hit_rate(1, 8) == 12.5


def test_hit_rate_rounds_ties_up():
    assert grading.hit_rate(1, 16) == 6.3
    assert grading.hit_rate(5, 16) == 31.3
    assert grading.hit_rate(3, 16) == 18.8


def test_hit_rate_empty_slice():
    assert grading.hit_rate(0, 0) == 0.0
