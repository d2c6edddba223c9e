"""Care transition workflow: continuity consent, summary review and release.

Every status change goes through the repositories' guarded updates, which
consult the state-machine tables before writing. Multi-step actions run in a
single transaction so a failure part way through leaves nothing behind.
"""

import functools
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from kinetic_referrals.care_records.database.base import Database, RepositoryError
from kinetic_referrals.care_records.database.episode_repository import EpisodeRepository
from kinetic_referrals.care_records.database.transition_repository import (
    ContinuityConsent,
    ContinuitySummary,
    TransitionEvent,
    TransitionRepository,
)
from kinetic_referrals.results import ActionResult, ErrorKind
from kinetic_referrals.state_machine import (
    InvalidTransitionError,
    SummaryStatus,
    TransitionStatus,
    TransitionType,
    is_valid_summary_transition,
    is_valid_transition,
    require_summary_transition,
    require_transition,
)
from kinetic_referrals.summary_generator import generate_summary

logger = logging.getLogger(__name__)


@dataclass
class SummaryView:
    summary: ContinuitySummary
    access_level: str  # "full" or "read-only"


def _as_action(func):
    """Turn state-machine and store failures into failed ActionResults."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except InvalidTransitionError as e:
            logger.warning(f"{func.__name__} rejected: {e}")
            return ActionResult.fail(ErrorKind.INVALID_TRANSITION, str(e))
        except RepositoryError as e:
            logger.error(f"{func.__name__} failed: {e}")
            return ActionResult.fail(ErrorKind.REPOSITORY, str(e))
    return wrapper


class ContinuityWorkflow:
    """Drives transitions and their continuity summaries through their lifecycles."""

    def __init__(self, db: Database | None = None):
        self.db = db or Database()
        self.episodes = EpisodeRepository(self.db)
        self.transitions = TransitionRepository(self.db)

    @_as_action
    def initiate_transition(
        self,
        origin_episode_id: str,
        transition_type: TransitionType | str,
        destination_physio_id: str | None = None,
        referring_gp_id: str | None = None,
        destination_episode_id: str | None = None,
    ) -> ActionResult:
        """Open a handoff and wait for the patient's continuity consent.

        An active origin episode is marked transferred.
        """
        try:
            transition_type = TransitionType(transition_type)
        except ValueError:
            return ActionResult.fail(
                ErrorKind.CONSISTENCY, f"Unknown transition type: {transition_type}"
            )

        episode = self.episodes.get_episode(origin_episode_id)
        if not episode:
            return ActionResult.not_found("Origin episode")
        if destination_physio_id and not self.episodes.get_physio(destination_physio_id):
            return ActionResult.not_found("Destination physiotherapist")
        if referring_gp_id and not self.episodes.get_gp(referring_gp_id):
            return ActionResult.not_found("Referring GP")
        if destination_episode_id and not self.episodes.get_episode(destination_episode_id):
            return ActionResult.not_found("Destination episode")

        with self.db.transaction():
            event = self.transitions.create_transition(TransitionEvent(
                id=str(uuid.uuid4()),
                patient_id=episode.patient_id,
                origin_episode_id=episode.id,
                origin_physio_id=episode.physio_id,
                transition_type=transition_type,
                status=TransitionStatus.INITIATED,
                destination_episode_id=destination_episode_id,
                destination_physio_id=destination_physio_id,
                referring_gp_id=referring_gp_id,
            ))
            self.transitions.update_transition_status(event.id, TransitionStatus.CONSENT_PENDING)
            if episode.status == "active":
                self.episodes.update_episode_status(episode.id, "transferred")

        logger.info(f"Transition {event.id} ({transition_type.value}) awaiting consent")
        return ActionResult.ok(event.id)

    @_as_action
    def grant_continuity_consent(
        self,
        patient_id: str,
        transition_id: str,
        origin_episode_id: str,
    ) -> ActionResult:
        """Record the patient's consent and generate the summary for review.

        Returns the new summary id.
        """
        transition = self.transitions.find_transition(transition_id)
        if not transition:
            return ActionResult.not_found("Transition")
        if transition.origin_episode_id != origin_episode_id:
            return ActionResult.fail(
                ErrorKind.CONSISTENCY,
                f"Episode {origin_episode_id} is not the origin of transition {transition_id}",
            )
        if transition.patient_id != patient_id:
            return ActionResult.fail(
                ErrorKind.CONSISTENCY,
                f"Patient {patient_id} is not the subject of transition {transition_id}",
            )
        require_transition(transition.status, TransitionStatus.SUMMARY_PENDING)
        if self.transitions.find_continuity_consent(transition_id):
            return ActionResult.fail(
                ErrorKind.CONSISTENCY, "Transition already has an active continuity consent"
            )

        episode = self.episodes.get_episode(origin_episode_id)
        patient = self.episodes.get_patient(patient_id)
        if not episode or not patient:
            return ActionResult.not_found("Episode or patient")

        content = generate_summary(episode, self.episodes.list_visits(episode.id), patient.name)

        with self.db.transaction():
            self.transitions.insert_continuity_consent(ContinuityConsent(
                id=str(uuid.uuid4()),
                patient_id=patient_id,
                transition_event_id=transition_id,
                origin_episode_id=origin_episode_id,
            ))
            self.transitions.update_transition_status(transition_id, TransitionStatus.SUMMARY_PENDING)

            summary = self.transitions.insert_summary(ContinuitySummary(
                id=str(uuid.uuid4()),
                transition_event_id=transition_id,
                origin_episode_id=episode.id,
                origin_physio_id=episode.physio_id,
                patient_id=patient_id,
                status=SummaryStatus.DRAFT,
                **content.model_dump(),
            ))
            self.transitions.update_summary_status(summary.id, SummaryStatus.PENDING_REVIEW)
            self.transitions.update_transition_status(transition_id, TransitionStatus.REVIEW_PENDING)

        logger.info(f"Summary {summary.id} generated for transition {transition_id}")
        return ActionResult.ok(summary.id)

    @_as_action
    def revoke_continuity_consent(self, consent_id: str) -> ActionResult:
        """Withdraw consent: revokes the summary and declines the transition."""
        consent = self.transitions.get_continuity_consent(consent_id)
        if not consent:
            return ActionResult.not_found("Consent")
        if consent.status != "granted":
            return ActionResult.fail(
                ErrorKind.INVALID_TRANSITION, f"Consent is already {consent.status}"
            )

        with self.db.transaction():
            if not self.transitions.revoke_continuity_consent(consent_id):
                return ActionResult.fail(ErrorKind.INVALID_TRANSITION, "Consent is already revoked")

            summary = self.transitions.find_summary_for_transition(consent.transition_event_id)
            if summary and is_valid_summary_transition(summary.status, SummaryStatus.REVOKED):
                self.transitions.update_summary_status(summary.id, SummaryStatus.REVOKED)

            transition = self.transitions.find_transition(consent.transition_event_id)
            if transition and is_valid_transition(transition.status, TransitionStatus.DECLINED):
                self.transitions.update_transition_status(transition.id, TransitionStatus.DECLINED)
            elif transition:
                logger.warning(
                    f"Transition {transition.id} is {transition.status.value}; left unchanged on revoke"
                )

        logger.info(f"Continuity consent {consent_id} revoked")
        return ActionResult.ok()

    @_as_action
    def approve_summary(self, summary_id: str, annotations: str | None = None) -> ActionResult:
        summary = self.transitions.find_summary(summary_id)
        if not summary:
            return ActionResult.not_found("Summary")
        require_summary_transition(summary.status, SummaryStatus.APPROVED)

        self.transitions.update_summary_status(
            summary_id,
            SummaryStatus.APPROVED,
            reviewed_at=datetime.now().isoformat(),
            annotations=annotations or None,
        )
        logger.info(f"Summary {summary_id} approved")
        return ActionResult.ok()

    @_as_action
    def release_summary(self, summary_id: str) -> ActionResult:
        """Release a summary to the destination physio and complete the transition.

        A summary still pending review is approved first through
        _auto_approve_for_release.
        """
        summary = self.transitions.find_summary(summary_id)
        if not summary:
            return ActionResult.not_found("Summary")

        needs_approval = summary.status == SummaryStatus.PENDING_REVIEW
        if not needs_approval:
            require_summary_transition(summary.status, SummaryStatus.RELEASED)

        transition = self.transitions.find_transition(summary.transition_event_id)
        if not transition:
            return ActionResult.fail(ErrorKind.CONSISTENCY, "Summary has no transition")
        if not is_valid_transition(transition.status, TransitionStatus.RELEASED):
            return ActionResult.fail(
                ErrorKind.CONSISTENCY,
                f"Transition {transition.id} is {transition.status.value}, not review-pending",
            )

        now = datetime.now().isoformat()
        with self.db.transaction():
            if needs_approval:
                self._auto_approve_for_release(summary_id, now)
            self.transitions.update_summary_status(summary_id, SummaryStatus.RELEASED, released_at=now)
            self.transitions.update_transition_status(
                transition.id, TransitionStatus.RELEASED, completed_at=now
            )

        logger.info(f"Summary {summary_id} released for transition {transition.id}")
        return ActionResult.ok()

    def _auto_approve_for_release(self, summary_id: str, reviewed_at: str) -> None:
        """Approve a pending-review summary as part of releasing it."""
        self.transitions.update_summary_status(
            summary_id, SummaryStatus.APPROVED, reviewed_at=reviewed_at
        )
        logger.info(f"Summary {summary_id} auto-approved on release")

    @_as_action
    def expire_transition(self, transition_id: str) -> ActionResult:
        """Close a transition whose consent request went unanswered."""
        transition = self.transitions.update_transition_status(transition_id, TransitionStatus.EXPIRED)
        if not transition:
            return ActionResult.not_found("Transition")
        logger.info(f"Transition {transition_id} expired")
        return ActionResult.ok()

    @_as_action
    def view_summary(self, summary_id: str, physio_id: str) -> ActionResult:
        """Fetch a summary for a physio.

        The origin physio always has full access. The destination physio can
        read it only once released.
        """
        summary = self.transitions.find_summary(summary_id)
        if not summary:
            return ActionResult.not_found("Summary")

        if summary.origin_physio_id == physio_id:
            return ActionResult.ok(SummaryView(summary=summary, access_level="full"))

        transition = self.transitions.find_transition(summary.transition_event_id)
        if transition and transition.destination_physio_id == physio_id:
            if summary.status != SummaryStatus.RELEASED:
                return ActionResult.fail(ErrorKind.ACCESS_DENIED, "Summary not yet released")
            return ActionResult.ok(SummaryView(summary=summary, access_level="read-only"))

        return ActionResult.fail(ErrorKind.ACCESS_DENIED, "Access denied")
