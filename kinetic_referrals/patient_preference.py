"""Patient preference signal: inbound transfers, handoff outcomes and retention."""

from kinetic_referrals.signal_policy import (
    EpisodeWithVisits,
    SignalResult,
    confidence_for,
    empty_result,
)

INBOUND_WEIGHT = 0.4
HANDOFF_WEIGHT = 0.3
RETENTION_WEIGHT = 0.3

# A transferred patient was handed off in good shape at or below this pain,
# or at or above this function
HANDOFF_MAX_PAIN = 5
HANDOFF_MIN_FUNCTION = 60

SELF_DISCHARGE_CREDIT = 0.3
NEUTRAL_SCORE = 0.5


def compute_patient_preference(episodes: list[EpisodeWithVisits]) -> SignalResult:
    """Score patient preference across all consented episodes."""
    if not episodes:
        return empty_result()

    total = len(episodes)
    inbound = sum(1 for e in episodes if e.episode.prior_physio_episode_id is not None)
    inbound_rate = inbound / total

    transferred = [e for e in episodes if e.episode.status == "transferred"]
    successful = 0
    for item in transferred:
        if not item.visits:
            continue
        last = item.visits[-1]
        if (last.pain_score is not None and last.pain_score <= HANDOFF_MAX_PAIN) or (
            last.function_score is not None and last.function_score >= HANDOFF_MIN_FUNCTION
        ):
            successful += 1
    handoff_rate = successful / len(transferred) if transferred else NEUTRAL_SCORE

    completed = sum(1 for e in episodes if e.episode.status in ("discharged", "transferred"))
    self_discharged = sum(1 for e in episodes if e.episode.status == "self-discharged")
    retention = (completed + self_discharged * SELF_DISCHARGE_CREDIT) / total

    value = (
        inbound_rate * INBOUND_WEIGHT
        + handoff_rate * HANDOFF_WEIGHT
        + retention * RETENTION_WEIGHT
    )

    return SignalResult(
        value=value,
        confidence=confidence_for(total),
        episode_count=total,
        details={
            "inbound_transfer_rate": inbound_rate,
            "successful_handoff_rate": handoff_rate,
            "retention_indicator": retention,
        },
    )
