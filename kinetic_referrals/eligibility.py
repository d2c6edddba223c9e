"""Referral eligibility simulation from stored signals and GP regions."""

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime

from kinetic_referrals.care_records.database.episode_repository import (
    EligibilitySnapshot,
    EpisodeRepository,
)
from kinetic_referrals.results import ActionResult
from kinetic_referrals.signal_policy import Confidence, SignalType, is_strong

logger = logging.getLogger(__name__)

# Strong signals needed, out of three, for one referral set
MIN_STRONG_SIGNALS = 2

NOT_OPTED_IN_GAP = "Not opted in to the referral network"
NO_REGION_GAP = "No GPs in your region"
NO_SIGNALS_GAP = "No signals computed yet - need episodes with patient consent"
WEAK_SIGNALS_GAP = "Signals need more data or stronger patterns"


@dataclass
class ConfidenceFactors:
    """Which eligibility conditions were met by at least one referral set."""
    region_match: bool = False
    signals_computed: bool = False
    outcome_trajectory_strong: bool = False
    clinical_decision_strong: bool = False
    patient_preference_strong: bool = False


@dataclass
class EligibilityResult:
    eligible_referral_sets: int
    total_referral_sets: int
    confidence_factors: ConfidenceFactors = field(default_factory=ConfidenceFactors)
    gaps: list[str] = field(default_factory=list)


def simulate_eligibility(repo: EpisodeRepository, physio_id: str) -> ActionResult:
    """Count the GP referral sets a physio would currently qualify for.

    A referral set qualifies when the regions match and at least two of the
    three signals are strong.
    """
    physio = repo.get_physio(physio_id)
    if not physio:
        return ActionResult.not_found("Physiotherapist")

    regions = repo.list_referral_regions()

    if not physio.opted_in:
        result = EligibilityResult(
            eligible_referral_sets=0,
            total_referral_sets=len(regions),
            gaps=[NOT_OPTED_IN_GAP],
        )
        _save_snapshot(repo, physio_id, physio.region, result)
        return ActionResult.ok(result)

    signals = {s.signal_type: s for s in repo.list_signals(physio_id)}
    strong = {}
    for signal_type in SignalType:
        signal = signals.get(signal_type.value)
        strong[signal_type] = bool(signal) and is_strong(
            signal_type, signal.value, Confidence(signal.confidence)
        )
    strong_count = sum(strong.values())

    factors = ConfidenceFactors(signals_computed=bool(signals))
    eligible = 0
    for region in regions:
        region_matches = region == physio.region
        if region_matches:
            factors.region_match = True

        # Signal strength doesn't depend on the referral set, but a flag is only
        # raised once some referral set has been evaluated
        factors.outcome_trajectory_strong |= strong[SignalType.OUTCOME_TRAJECTORY]
        factors.clinical_decision_strong |= strong[SignalType.CLINICAL_DECISION]
        factors.patient_preference_strong |= strong[SignalType.PATIENT_PREFERENCE]

        if region_matches and strong_count >= MIN_STRONG_SIGNALS:
            eligible += 1

    gaps = []
    if not factors.region_match:
        gaps.append(NO_REGION_GAP)
    if not factors.signals_computed:
        gaps.append(NO_SIGNALS_GAP)
    if not (
        factors.outcome_trajectory_strong
        or factors.clinical_decision_strong
        or factors.patient_preference_strong
    ):
        gaps.append(WEAK_SIGNALS_GAP)

    result = EligibilityResult(
        eligible_referral_sets=eligible,
        total_referral_sets=len(regions),
        confidence_factors=factors,
        gaps=gaps,
    )
    _save_snapshot(repo, physio_id, physio.region, result)
    logger.info(f"Physio {physio_id} eligible for {eligible}/{len(regions)} referral sets")
    return ActionResult.ok(result)


def _save_snapshot(
    repo: EpisodeRepository,
    physio_id: str,
    region: str,
    result: EligibilityResult,
) -> None:
    repo.save_eligibility_snapshot(EligibilitySnapshot(
        physio_id=physio_id,
        region=region,
        eligible_referral_sets=result.eligible_referral_sets,
        total_referral_sets=result.total_referral_sets,
        confidence_factors=asdict(result.confidence_factors),
        gaps=result.gaps,
        simulated_at=datetime.now().isoformat(),
    ))
