"""Tests for the clinical decision quality signal."""

import pytest

from conftest import make_visits, with_visits
from kinetic_referrals.clinical_decision import (
    adjustment_responsiveness,
    compute_clinical_decision,
    escalation_rate_score,
    escalation_timing_score,
)
from kinetic_referrals.signal_policy import Confidence


class TestEscalationRate:

    def test_optimal_rate_scores_full(self):
        assert escalation_rate_score(0.075) == pytest.approx(1.0)

    def test_too_many_escalations(self):
        assert escalation_rate_score(0.2) == 0.4

    def test_too_few_escalations(self):
        assert escalation_rate_score(0.0) == 0.5
        assert escalation_rate_score(0.019) == 0.5

    def test_linear_falloff(self):
        assert escalation_rate_score(0.05) == pytest.approx(1 - 0.025 / 0.075)


class TestEscalationTiming:

    def test_no_escalation(self):
        visits = make_visits("ep", [(0, 5, 50), (7, 4, 55)])
        assert escalation_timing_score(visits) is None

    def test_first_visit_escalation_scores_zero(self):
        visits = make_visits("ep", [(0, 9, 20, True), (7, 8, 25)])
        assert escalation_timing_score(visits) == 0.0

    def test_early_escalation_after_high_pain(self):
        visits = make_visits("ep", [(0, 8, 50), (7, 8, 50, True)])
        assert escalation_timing_score(visits) == 1.0

    def test_early_escalation_after_low_function(self):
        visits = make_visits("ep", [(0, 4, 35), (7, 4, 40), (14, 4, 40, True)])
        assert escalation_timing_score(visits) == 1.0

    def test_early_escalation_without_justification(self):
        visits = make_visits("ep", [(0, 4, 60), (7, 4, 60, True)])
        assert escalation_timing_score(visits) == 0.7

    def test_late_escalation(self):
        rows = [(0, 8, 30), (7, 8, 30), (14, 8, 30), (21, 8, 30), (28, 8, 30, True)]
        assert escalation_timing_score(make_visits("ep", rows)) == 0.4


class TestResponsiveness:

    def test_improvement_after_adjustment(self):
        visits = make_visits("ep", [(0, 6, 50, False, True), (7, 5, 50)])
        assert adjustment_responsiveness(visits) == 1.0

    def test_no_improvement_after_adjustment(self):
        visits = make_visits("ep", [(0, 6, 50, False, True), (7, 6, 50)])
        assert adjustment_responsiveness(visits) == 0.3

    def test_function_gain_counts_as_improvement(self):
        visits = make_visits("ep", [(0, 6, 50, False, True), (7, 7, 55)])
        assert adjustment_responsiveness(visits) == 1.0

    def test_adjustment_on_last_visit_is_not_judged(self):
        visits = make_visits("ep", [(0, 6, 50), (7, 6, 50, False, True)])
        assert adjustment_responsiveness(visits) is None


class TestComputeClinicalDecision:

    def test_no_episodes(self):
        result = compute_clinical_decision([])
        assert result.value == 0.0
        assert result.episode_count == 0

    def test_single_visit_episodes_are_skipped(self):
        result = compute_clinical_decision([with_visits([(0, 9, 20, True)])])
        assert result.episode_count == 0
        # Escalation rate 0 scores 0.5, timing and responsiveness default to 0.5
        assert result.value == pytest.approx(0.5)

    def test_two_visit_episode_counts(self):
        result = compute_clinical_decision([with_visits([(0, 6, 50), (7, 5, 55)])])
        assert result.episode_count == 1
        assert result.confidence == Confidence.LOW

    def test_responsiveness_averaged_per_episode(self):
        mixed = [(0, 6, 50, False, True), (7, 5, 50, False, True), (14, 5, 50)]
        improving = [(0, 6, 50, False, True), (7, 4, 60)]
        result = compute_clinical_decision([
            with_visits(mixed, episode_id="a"),
            with_visits(improving, episode_id="b"),
        ])
        assert result.details["treatment_adjustment_responsiveness"] == pytest.approx((0.65 + 1.0) / 2)

    def test_escalation_rate_pools_visits(self):
        episodes = [
            with_visits([(0, 8, 30), (7, 8, 30, True)] + [(14 + i, 6, 50) for i in range(8)], episode_id="a"),
            with_visits([(0, 5, 50)] + [(7 + i, 4, 60) for i in range(9)], episode_id="b"),
        ]
        result = compute_clinical_decision(episodes)
        assert result.details["escalation_rate"] == pytest.approx(1 / 20)
        assert result.details["appropriate_escalation_timing"] == 1.0
