"""Tests for the outcome trajectory signal."""

import pytest

from conftest import STRONG_ROWS, make_visits, with_visits
from kinetic_referrals.outcome_trajectory import (
    compute_outcome_trajectory,
    function_improvement,
    pain_reduction,
    tapering_score,
)
from kinetic_referrals.signal_policy import Confidence, to_stored_value


class TestComponents:

    def test_pain_reduction(self):
        first, _, _, last = make_visits("ep", STRONG_ROWS)
        assert pain_reduction(first, last) == pytest.approx(0.75)

    def test_pain_reduction_with_no_initial_pain(self):
        first, last = make_visits("ep", [(0, 0, 50), (7, 3, 60)])
        assert pain_reduction(first, last) == 0.0

    def test_pain_reduction_never_negative(self):
        first, last = make_visits("ep", [(0, 3, 50), (7, 6, 60)])
        assert pain_reduction(first, last) == 0.0

    def test_function_improvement(self):
        first, _, _, last = make_visits("ep", STRONG_ROWS)
        assert function_improvement(first, last) == pytest.approx(50 / 65)

    def test_function_improvement_at_full_function(self):
        first, last = make_visits("ep", [(0, 3, 100), (7, 2, 100)])
        assert function_improvement(first, last) == 0.0

    def test_tapering_lower_second_half_rate(self):
        assert tapering_score(make_visits("ep", STRONG_ROWS)) == 0.8

    def test_tapering_needs_four_visits(self):
        assert tapering_score(make_visits("ep", [(0, 5, 50), (7, 4, 55), (14, 3, 60)])) == 0.0

    def test_tapering_with_same_day_visits(self):
        rows = [(0, 5, 50), (0, 5, 50), (0, 4, 55), (7, 3, 60)]
        assert tapering_score(make_visits("ep", rows)) == 0.0


class TestComputeOutcomeTrajectory:

    def test_no_episodes(self):
        result = compute_outcome_trajectory([])
        assert result.value == 0.0
        assert result.confidence == Confidence.LOW
        assert result.episode_count == 0

    def test_strong_performer(self):
        result = compute_outcome_trajectory([with_visits(STRONG_ROWS, status="discharged")])
        expected = 0.75 * 0.3 + (50 / 65) * 0.3 + 0.8 * 0.2 + 0.825 * 0.2
        assert result.value == pytest.approx(expected)
        assert to_stored_value(result.value) == 78
        assert result.episode_count == 1
        assert result.details["appropriate_discharge"] == pytest.approx(0.825)

    def test_short_episodes_are_skipped(self):
        episodes = [
            with_visits([(0, 8, 30), (7, 6, 40)], episode_id="short"),
            with_visits(STRONG_ROWS, episode_id="long", status="discharged"),
        ]
        result = compute_outcome_trajectory(episodes)
        assert result.episode_count == 1

    def test_only_short_episodes_use_neutral_defaults(self):
        result = compute_outcome_trajectory([with_visits([(0, 8, 30), (7, 6, 40)])])
        assert result.episode_count == 0
        assert result.value == pytest.approx(0.5 * 0.2 + 0.5 * 0.2)

    def test_self_discharge_scores_low(self):
        result = compute_outcome_trajectory([with_visits(STRONG_ROWS, status="self-discharged")])
        assert result.details["appropriate_discharge"] == pytest.approx(0.2)

    def test_active_episode_is_neutral(self):
        result = compute_outcome_trajectory([with_visits(STRONG_ROWS)])
        assert result.details["appropriate_discharge"] == pytest.approx(0.5)

    def test_value_stays_in_range(self):
        worsening = [(0, 2, 90), (7, 5, 70), (14, 8, 40), (15, 9, 30)]
        result = compute_outcome_trajectory([with_visits(worsening, status="discharged")])
        assert 0.0 <= result.value <= 1.0

    def test_confidence_grows_with_episodes(self):
        episodes = [
            with_visits(STRONG_ROWS, episode_id=f"ep-{i}", status="discharged") for i in range(5)
        ]
        assert compute_outcome_trajectory(episodes).confidence == Confidence.MEDIUM
