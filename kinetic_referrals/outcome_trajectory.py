"""Outcome trajectory signal: how patients' pain and function move over an episode."""

from kinetic_referrals.care_records.database.episode_repository import Episode, Visit
from kinetic_referrals.signal_policy import (
    EpisodeWithVisits,
    SignalResult,
    clamp01,
    confidence_for,
    days_between,
    empty_result,
)

MIN_VISITS = 3
MIN_TAPERING_VISITS = 4

PAIN_WEIGHT = 0.3
FUNCTION_WEIGHT = 0.3
TAPERING_WEIGHT = 0.2
DISCHARGE_WEIGHT = 0.2

TAPERING_SCORES = {"lower": 0.8, "equal": 0.5, "higher": 0.2}
SELF_DISCHARGE_SCORE = 0.2
NEUTRAL_SCORE = 0.5


def pain_reduction(first: Visit, last: Visit) -> float:
    """Share of initial pain resolved, 0 when it can't be measured."""
    if first.pain_score is None or last.pain_score is None or first.pain_score <= 0:
        return 0.0
    return clamp01((first.pain_score - last.pain_score) / first.pain_score)


def function_improvement(first: Visit, last: Visit) -> float:
    """Share of the remaining function deficit recovered."""
    if first.function_score is None or last.function_score is None or first.function_score >= 100:
        return 0.0
    return clamp01((last.function_score - first.function_score) / (100 - first.function_score))


def tapering_score(visits: list[Visit]) -> float:
    """Compare visit rate in the first half of the episode with the second half.

    Visits should thin out as the patient improves. Returns 0 when the episode
    is too short or a half spans no time.
    """
    if len(visits) < MIN_TAPERING_VISITS:
        return 0.0

    split = len(visits) // 2
    first_days = days_between(visits[0].visit_date, visits[split].visit_date)
    second_days = days_between(visits[split].visit_date, visits[-1].visit_date)
    if first_days <= 0 or second_days <= 0:
        return 0.0

    first_rate = split / first_days
    second_rate = (len(visits) - split) / second_days
    if second_rate < first_rate:
        return TAPERING_SCORES["lower"]
    if second_rate == first_rate:
        return TAPERING_SCORES["equal"]
    return TAPERING_SCORES["higher"]


def discharge_score(episode: Episode, last: Visit) -> float:
    if episode.status == "discharged":
        if last.pain_score is None or last.function_score is None:
            return NEUTRAL_SCORE
        return ((1 - last.pain_score / 10) + last.function_score / 100) / 2
    if episode.status == "self-discharged":
        return SELF_DISCHARGE_SCORE
    return NEUTRAL_SCORE


def compute_outcome_trajectory(episodes: list[EpisodeWithVisits]) -> SignalResult:
    """Score outcome trajectory across consented episodes with enough visits."""
    if not episodes:
        return empty_result()

    total_pain = 0.0
    total_function = 0.0
    total_tapering = 0.0
    total_discharge = 0.0
    valid_episodes = 0

    for item in episodes:
        visits = item.visits
        if len(visits) < MIN_VISITS:
            continue
        valid_episodes += 1

        first, last = visits[0], visits[-1]
        total_pain += pain_reduction(first, last)
        total_function += function_improvement(first, last)
        total_tapering += tapering_score(visits)
        total_discharge += discharge_score(item.episode, last)

    if valid_episodes:
        avg_pain = total_pain / valid_episodes
        avg_function = total_function / valid_episodes
        avg_tapering = total_tapering / valid_episodes
        avg_discharge = total_discharge / valid_episodes
    else:
        avg_pain = avg_function = 0.0
        avg_tapering = avg_discharge = NEUTRAL_SCORE

    value = (
        avg_pain * PAIN_WEIGHT
        + avg_function * FUNCTION_WEIGHT
        + avg_tapering * TAPERING_WEIGHT
        + avg_discharge * DISCHARGE_WEIGHT
    )

    return SignalResult(
        value=value,
        confidence=confidence_for(valid_episodes),
        episode_count=valid_episodes,
        details={
            "avg_pain_reduction": avg_pain,
            "avg_function_improvement": avg_function,
            "visit_frequency_tapering": avg_tapering,
            "appropriate_discharge": avg_discharge,
        },
    )
