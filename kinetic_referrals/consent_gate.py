"""Consent gate: restricts signal computation to patient-consented episodes.

Exposure is decided per episode by the patient. An episode with no consent row,
or only a revoked one, is left out entirely, so a physiotherapist cannot pick
which of their episodes feed the signals.
"""

import logging
from datetime import datetime

from kinetic_referrals.care_records.database.episode_repository import (
    Consent,
    EpisodeRepository,
    SIGNAL_CONSENT_SCOPE,
)
from kinetic_referrals.results import ActionResult
from kinetic_referrals.signal_policy import EpisodeWithVisits

logger = logging.getLogger(__name__)


def consented_episodes(repo: EpisodeRepository, physio_id: str) -> list[EpisodeWithVisits]:
    """Episodes of a physio with a granted consent, each with its ordered visits.

    Always reads through to the repository so a revocation takes effect on the
    next call.
    """
    result = []
    for episode, _consent in repo.list_consented_episodes(physio_id):
        result.append(EpisodeWithVisits(episode=episode, visits=repo.list_visits(episode.id)))
    logger.debug(f"Physio {physio_id}: {len(result)} consented episodes")
    return result


def grant_consent(
    repo: EpisodeRepository,
    patient_id: str,
    episode_id: str,
    physio_id: str,
) -> ActionResult:
    """Grant signal-computation consent, re-granting an existing row if present."""
    episode = repo.get_episode(episode_id)
    if not episode:
        return ActionResult.not_found("Episode")

    existing = repo.find_consent(episode_id, patient_id)
    if existing:
        consent = repo.update_consent_status(existing.id, "granted")
    else:
        consent = repo.insert_consent(Consent(
            id="",
            patient_id=patient_id,
            episode_id=episode_id,
            physio_id=physio_id,
            status="granted",
            scope=SIGNAL_CONSENT_SCOPE,
            granted_at=datetime.now().isoformat(),
        ))

    logger.info(f"Consent granted for episode {episode_id}")
    return ActionResult.ok(consent)


def revoke_consent(repo: EpisodeRepository, consent_id: str) -> ActionResult:
    """Revoke a consent. The episode drops out of the next signal computation."""
    consent = repo.get_consent(consent_id)
    if not consent:
        return ActionResult.not_found("Consent")

    consent = repo.update_consent_status(consent_id, "revoked")
    logger.info(
        f"Consent {consent_id} revoked; signals for physio {consent.physio_id} should be recomputed"
    )
    return ActionResult.ok(consent)
