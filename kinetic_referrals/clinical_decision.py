"""Clinical decision quality signal: escalation rate, escalation timing and
responsiveness to treatment adjustments."""

from kinetic_referrals.care_records.database.episode_repository import Visit
from kinetic_referrals.signal_policy import (
    EpisodeWithVisits,
    SignalResult,
    confidence_for,
    empty_result,
)

MIN_VISITS = 2

RATE_WEIGHT = 0.3
TIMING_WEIGHT = 0.4
RESPONSIVENESS_WEIGHT = 0.3

# Escalation rate scoring peaks at the optimum and falls off linearly
OPTIMAL_ESCALATION_RATE = 0.075
MAX_ESCALATION_RATE = 0.15
MIN_ESCALATION_RATE = 0.02
TOO_MANY_ESCALATIONS_SCORE = 0.4
TOO_FEW_ESCALATIONS_SCORE = 0.5

# Visit numbers 2-4 count as early escalation
EARLY_ESCALATION_LAST_VISIT = 4
HIGH_PAIN = 7
LOW_FUNCTION = 40

JUSTIFIED_EARLY_SCORE = 1.0
UNJUSTIFIED_EARLY_SCORE = 0.7
LATE_SCORE = 0.4

IMPROVED_SCORE = 1.0
NOT_IMPROVED_SCORE = 0.3
NEUTRAL_SCORE = 0.5


def escalation_rate_score(rate: float) -> float:
    if rate > MAX_ESCALATION_RATE:
        return TOO_MANY_ESCALATIONS_SCORE
    if rate < MIN_ESCALATION_RATE:
        return TOO_FEW_ESCALATIONS_SCORE
    return 1.0 - abs(OPTIMAL_ESCALATION_RATE - rate) / OPTIMAL_ESCALATION_RATE


def escalation_timing_score(visits: list[Visit]) -> float | None:
    """Score when the first escalation happened, None if there was none.

    An escalation on the very first visit has no prior assessment to justify
    it and scores 0.
    """
    index = next((i for i, v in enumerate(visits) if v.escalated), None)
    if index is None:
        return None
    if index == 0:
        return 0.0
    if index < EARLY_ESCALATION_LAST_VISIT:
        prior = visits[index - 1]
        high_pain = prior.pain_score is not None and prior.pain_score >= HIGH_PAIN
        low_function = prior.function_score is not None and prior.function_score <= LOW_FUNCTION
        if high_pain or low_function:
            return JUSTIFIED_EARLY_SCORE
        return UNJUSTIFIED_EARLY_SCORE
    return LATE_SCORE


def improved_after(adjustment: Visit, following: Visit) -> bool:
    improved = False
    if adjustment.pain_score is not None and following.pain_score is not None:
        improved = following.pain_score < adjustment.pain_score
    if adjustment.function_score is not None and following.function_score is not None:
        improved = improved or following.function_score > adjustment.function_score
    return improved


def adjustment_responsiveness(visits: list[Visit]) -> float | None:
    """Average response to treatment adjustments in one episode.

    Only adjustments followed by another visit can be judged. Returns None
    when there are none.
    """
    scores = []
    for i, visit in enumerate(visits[:-1]):
        if visit.treatment_adjusted:
            scores.append(IMPROVED_SCORE if improved_after(visit, visits[i + 1]) else NOT_IMPROVED_SCORE)
    if not scores:
        return None
    return sum(scores) / len(scores)


def compute_clinical_decision(episodes: list[EpisodeWithVisits]) -> SignalResult:
    """Score clinical decision quality across consented episodes."""
    if not episodes:
        return empty_result()

    total_visits = 0
    total_escalations = 0
    timing_scores = []
    responsiveness_scores = []
    valid_episodes = 0

    for item in episodes:
        visits = item.visits
        if len(visits) < MIN_VISITS:
            continue
        valid_episodes += 1

        total_visits += len(visits)
        total_escalations += sum(1 for v in visits if v.escalated)

        timing = escalation_timing_score(visits)
        if timing is not None:
            timing_scores.append(timing)

        responsiveness = adjustment_responsiveness(visits)
        if responsiveness is not None:
            responsiveness_scores.append(responsiveness)

    escalation_rate = total_escalations / total_visits if total_visits else 0.0
    rate_score = escalation_rate_score(escalation_rate)
    avg_timing = sum(timing_scores) / len(timing_scores) if timing_scores else NEUTRAL_SCORE
    avg_responsiveness = (
        sum(responsiveness_scores) / len(responsiveness_scores)
        if responsiveness_scores else NEUTRAL_SCORE
    )

    value = (
        rate_score * RATE_WEIGHT
        + avg_timing * TIMING_WEIGHT
        + avg_responsiveness * RESPONSIVENESS_WEIGHT
    )

    return SignalResult(
        value=value,
        confidence=confidence_for(valid_episodes),
        episode_count=valid_episodes,
        details={
            "escalation_rate": escalation_rate,
            "escalation_rate_score": rate_score,
            "appropriate_escalation_timing": avg_timing,
            "treatment_adjustment_responsiveness": avg_responsiveness,
        },
    )
