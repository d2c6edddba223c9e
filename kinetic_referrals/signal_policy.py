"""Shared policy for quality signals: types, confidence tiers and strength cutoffs."""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from kinetic_referrals.care_records.database.episode_repository import Episode, Visit


class SignalType(Enum):
    OUTCOME_TRAJECTORY = "outcome-trajectory"
    CLINICAL_DECISION = "clinical-decision"
    PATIENT_PREFERENCE = "patient-preference"


class Confidence(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Episode counts needed for each confidence tier
HIGH_CONFIDENCE_EPISODES = 10
MEDIUM_CONFIDENCE_EPISODES = 5

# Stored (0-100) values at which a signal counts as strong
STRONG_OUTCOME_VALUE = 60
STRONG_CLINICAL_VALUE = 60
STRONG_PREFERENCE_VALUE = 50


@dataclass
class EpisodeWithVisits:
    episode: Episode
    visits: list[Visit]


@dataclass
class SignalResult:
    value: float  # normalized 0-1
    confidence: Confidence
    episode_count: int
    details: dict = field(default_factory=dict)


def confidence_for(episode_count: int) -> Confidence:
    """Map the number of contributing episodes to a confidence tier."""
    if episode_count >= HIGH_CONFIDENCE_EPISODES:
        return Confidence.HIGH
    if episode_count >= MEDIUM_CONFIDENCE_EPISODES:
        return Confidence.MEDIUM
    return Confidence.LOW


def empty_result() -> SignalResult:
    return SignalResult(value=0.0, confidence=Confidence.LOW, episode_count=0, details={})


def to_stored_value(value: float) -> int:
    """Scale a 0-1 value to the stored 0-100 integer, rounding half up."""
    return int(math.floor(value * 100 + 0.5))


def is_strong(signal_type: SignalType, stored_value: int, confidence: Confidence) -> bool:
    """Whether a stored signal is strong enough to count toward eligibility.

    Preference has no confidence gate.
    """
    if signal_type == SignalType.PATIENT_PREFERENCE:
        return stored_value >= STRONG_PREFERENCE_VALUE
    if confidence == Confidence.LOW:
        return False
    if signal_type == SignalType.OUTCOME_TRAJECTORY:
        return stored_value >= STRONG_OUTCOME_VALUE
    return stored_value >= STRONG_CLINICAL_VALUE


def clamp01(x: float) -> float:
    return max(0.0, min(1.0, x))


def days_between(start: str, end: str) -> float:
    """Fractional days between two ISO dates or datetimes."""
    delta = datetime.fromisoformat(end) - datetime.fromisoformat(start)
    return delta.total_seconds() / 86400
