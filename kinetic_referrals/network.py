"""Referral network membership and GP-initiated referrals."""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from kinetic_referrals.care_records.database.base import RepositoryError
from kinetic_referrals.care_records.database.episode_repository import (
    ComputedSignal,
    Episode,
    EpisodeRepository,
    Physiotherapist,
)
from kinetic_referrals.continuity import ContinuityWorkflow
from kinetic_referrals.results import ActionResult, ErrorKind
from kinetic_referrals.state_machine import TransitionType

logger = logging.getLogger(__name__)

# Lower sorts first when matching physios for a GP
CAPACITY_ORDER = {"available": 0, "limited": 1, "waitlist": 2}


class _ReferralAborted(Exception):
    """Unwinds the referral transaction when the transition step fails."""

    def __init__(self, result: ActionResult):
        super().__init__(result.error)
        self.result = result


@dataclass
class PhysioMatch:
    physio: Physiotherapist
    signals: list[ComputedSignal] = field(default_factory=list)


def toggle_opt_in(repo: EpisodeRepository, physio_id: str, opt_in: bool) -> ActionResult:
    """Join or leave the referral network.

    Joining starts in preview mode so the physio can check their signals before
    GPs see them. Leaving keeps all episode and signal data.
    """
    physio = repo.get_physio(physio_id)
    if not physio:
        return ActionResult.not_found("Physiotherapist")

    now = datetime.now().isoformat()
    if opt_in:
        updates = {"opted_in": True, "opted_in_at": now, "preview_mode": True}
    else:
        updates = {"opted_in": False, "opted_out_at": now, "preview_mode": False}

    physio = repo.update_physio(physio_id, updates)
    logger.info(f"Physio {physio_id} {'opted in' if opt_in else 'opted out'}")
    return ActionResult.ok(physio)


def disable_preview_mode(repo: EpisodeRepository, physio_id: str) -> ActionResult:
    physio = repo.get_physio(physio_id)
    if not physio:
        return ActionResult.not_found("Physiotherapist")

    physio = repo.update_physio(physio_id, {"preview_mode": False})
    logger.info(f"Physio {physio_id} left preview mode")
    return ActionResult.ok(physio)


def find_physios_for_gp(
    repo: EpisodeRepository,
    gp_id: str,
    patient_region: str | None = None,
    limit: int = 5,
) -> ActionResult:
    """Physios a GP can refer to, best matches first.

    Only opted-in physios out of preview mode are listed. Physios in the
    patient's region (the GP's region when none is given) come first, then
    by capacity.
    """
    gp = repo.get_gp(gp_id)
    if not gp:
        return ActionResult.not_found("GP")

    region = patient_region or gp.region
    physios = [p for p in repo.list_physios(opted_in=True) if not p.preview_mode]
    physios.sort(key=lambda p: (
        p.region != region,
        CAPACITY_ORDER.get(p.capacity, len(CAPACITY_ORDER)),
        p.name,
    ))

    matches = [PhysioMatch(physio=p, signals=repo.list_signals(p.id)) for p in physios[:limit]]
    logger.debug(f"GP {gp_id}: {len(matches)} physios matched in {region}")
    return ActionResult.ok(matches)


def create_gp_referral(
    episodes: EpisodeRepository,
    workflow: ContinuityWorkflow,
    gp_id: str,
    patient_id: str,
    destination_physio_id: str,
    condition: str,
    origin_episode_id: str | None = None,
) -> ActionResult:
    """Refer a patient to a physio on behalf of a GP.

    Opens a new GP-referred episode with the destination physio. When the
    patient has a prior physio episode, a gp-referral transition is started
    from it so a continuity summary can follow. Returns the new episode.
    """
    if not episodes.get_gp(gp_id):
        return ActionResult.not_found("GP")
    if not episodes.get_patient(patient_id):
        return ActionResult.not_found("Patient")
    if not episodes.get_physio(destination_physio_id):
        return ActionResult.not_found("Physiotherapist")
    if origin_episode_id and not episodes.get_episode(origin_episode_id):
        return ActionResult.not_found("Origin episode")

    try:
        with workflow.db.transaction():
            episode = workflow.episodes.create_episode(Episode(
                id="",
                patient_id=patient_id,
                physio_id=destination_physio_id,
                condition=condition,
                started_at=datetime.now().isoformat(),
                referring_gp_id=gp_id,
                is_gp_referred=True,
                prior_physio_episode_id=origin_episode_id,
            ))
            if origin_episode_id:
                result = workflow.initiate_transition(
                    origin_episode_id,
                    TransitionType.GP_REFERRAL,
                    destination_physio_id=destination_physio_id,
                    referring_gp_id=gp_id,
                    destination_episode_id=episode.id,
                )
                if not result.success:
                    raise _ReferralAborted(result)
    except _ReferralAborted as e:
        logger.warning(f"GP referral for patient {patient_id} rolled back: {e.result.error}")
        return e.result
    except RepositoryError as e:
        logger.error(f"GP referral for patient {patient_id} failed: {e}")
        return ActionResult.fail(ErrorKind.REPOSITORY, str(e))

    logger.info(f"GP {gp_id} referred patient {patient_id} to physio {destination_physio_id}")
    return ActionResult.ok(episode)
