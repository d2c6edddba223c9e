"""Signal computation: consent gate, the three scoring algorithms, persistence."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from kinetic_referrals.care_records.database.base import RepositoryError
from kinetic_referrals.care_records.database.episode_repository import (
    ComputedSignal,
    EpisodeRepository,
)
from kinetic_referrals.clinical_decision import compute_clinical_decision
from kinetic_referrals.consent_gate import consented_episodes
from kinetic_referrals.outcome_trajectory import compute_outcome_trajectory
from kinetic_referrals.patient_preference import compute_patient_preference
from kinetic_referrals.signal_policy import (
    EpisodeWithVisits,
    SignalResult,
    SignalType,
    to_stored_value,
)

logger = logging.getLogger(__name__)

ALGORITHMS: dict[SignalType, Callable[[list[EpisodeWithVisits]], SignalResult]] = {
    SignalType.OUTCOME_TRAJECTORY: compute_outcome_trajectory,
    SignalType.CLINICAL_DECISION: compute_clinical_decision,
    SignalType.PATIENT_PREFERENCE: compute_patient_preference,
}


class PhysioNotFoundError(LookupError):
    """Raised when signals are requested for a physio that doesn't exist."""
    pass


@dataclass
class BatchReport:
    """Outcome of recomputing signals for many physiotherapists."""
    computed: dict[str, list[ComputedSignal]] = field(default_factory=dict)
    failed: dict[str, str] = field(default_factory=dict)


def compute_signals(episodes: list[EpisodeWithVisits]) -> dict[SignalType, SignalResult]:
    """Run every scoring algorithm over the same consented episode set."""
    return {signal_type: algorithm(episodes) for signal_type, algorithm in ALGORITHMS.items()}


def compute_signals_for_physio(repo: EpisodeRepository, physio_id: str) -> list[ComputedSignal]:
    """Recompute and store every signal for a physiotherapist.

    Each stored row replaces the previous one of the same type. Signals are
    stored even when nothing is consented, so a revoked episode never lingers
    in an older value.

    Raises PhysioNotFoundError for an unknown physio.
    """
    if not repo.get_physio(physio_id):
        raise PhysioNotFoundError(f"Physiotherapist {physio_id} not found")

    episodes = consented_episodes(repo, physio_id)
    if not episodes:
        logger.info(f"No consented episodes for physio {physio_id}; storing empty signals")

    computed_at = datetime.now().isoformat()
    stored = []
    for signal_type, result in compute_signals(episodes).items():
        signal = repo.upsert_computed_signal(
            physio_id=physio_id,
            signal_type=signal_type.value,
            value=to_stored_value(result.value),
            confidence=result.confidence.value,
            episode_count=result.episode_count,
            computed_at=computed_at,
            details=result.details,
        )
        logger.debug(
            f"Physio {physio_id}: {signal_type.value} = {signal.value} "
            f"({signal.confidence}, {signal.episode_count} episodes)"
        )
        stored.append(signal)

    logger.info(f"Computed signals for physio {physio_id}")
    return stored


def recompute_all_signals(
    repo: EpisodeRepository,
    physio_ids: list[str] | None = None,
) -> BatchReport:
    """Recompute signals for many physiotherapists.

    An unknown physio or a store failure for one physio is recorded and the
    batch moves on.
    """
    if physio_ids is None:
        physio_ids = [physio.id for physio in repo.list_physios()]

    report = BatchReport()
    for physio_id in physio_ids:
        try:
            report.computed[physio_id] = compute_signals_for_physio(repo, physio_id)
        except (PhysioNotFoundError, RepositoryError) as e:
            logger.warning(f"Skipping physio {physio_id}: {e}")
            report.failed[physio_id] = str(e)

    logger.info(
        f"Recomputed signals for {len(report.computed)} physios, {len(report.failed)} failed"
    )
    return report
