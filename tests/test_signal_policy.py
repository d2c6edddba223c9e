"""Tests for confidence tiers, stored values and strength cutoffs."""

import pytest

from kinetic_referrals.signal_policy import (
    Confidence,
    SignalType,
    confidence_for,
    days_between,
    is_strong,
    to_stored_value,
)

TIER_ORDER = [Confidence.LOW, Confidence.MEDIUM, Confidence.HIGH]


class TestConfidence:

    @pytest.mark.parametrize("count,expected", [
        (0, Confidence.LOW),
        (4, Confidence.LOW),
        (5, Confidence.MEDIUM),
        (9, Confidence.MEDIUM),
        (10, Confidence.HIGH),
        (250, Confidence.HIGH),
    ])
    def test_tiers(self, count, expected):
        assert confidence_for(count) == expected

    def test_more_episodes_never_lower_confidence(self):
        tiers = [TIER_ORDER.index(confidence_for(n)) for n in range(0, 30)]
        assert tiers == sorted(tiers)


class TestStoredValue:

    def test_rounds_half_up(self):
        assert to_stored_value(0.125) == 13
        assert to_stored_value(0.5) == 50

    def test_bounds(self):
        assert to_stored_value(0.0) == 0
        assert to_stored_value(1.0) == 100


class TestIsStrong:

    def test_outcome_needs_confidence(self):
        assert not is_strong(SignalType.OUTCOME_TRAJECTORY, 95, Confidence.LOW)
        assert is_strong(SignalType.OUTCOME_TRAJECTORY, 60, Confidence.MEDIUM)
        assert not is_strong(SignalType.OUTCOME_TRAJECTORY, 59, Confidence.HIGH)

    def test_clinical_needs_confidence(self):
        assert not is_strong(SignalType.CLINICAL_DECISION, 80, Confidence.LOW)
        assert is_strong(SignalType.CLINICAL_DECISION, 60, Confidence.HIGH)

    def test_preference_has_no_confidence_gate(self):
        assert is_strong(SignalType.PATIENT_PREFERENCE, 50, Confidence.LOW)
        assert not is_strong(SignalType.PATIENT_PREFERENCE, 49, Confidence.HIGH)


def test_days_between_is_fractional():
    assert days_between("2025-03-03T00:00:00", "2025-03-04T12:00:00") == pytest.approx(1.5)
    assert days_between("2025-03-03", "2025-03-10") == pytest.approx(7)
