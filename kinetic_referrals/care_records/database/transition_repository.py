"""Repository for care transitions, continuity consents and continuity summaries."""

import json
import uuid
from dataclasses import dataclass
from datetime import datetime

from kinetic_referrals.state_machine import (
    InvalidTransitionError,
    SummaryStatus,
    TransitionStatus,
    TransitionType,
    require_summary_transition,
    require_transition,
)

from .base import BaseRepository

CONTINUITY_CONSENT_SCOPE = "continuity-summary-for-transition"


@dataclass
class TransitionEvent:
    id: str
    patient_id: str
    origin_episode_id: str
    origin_physio_id: str
    transition_type: TransitionType
    status: TransitionStatus = TransitionStatus.INITIATED
    destination_episode_id: str | None = None
    destination_physio_id: str | None = None
    referring_gp_id: str | None = None
    initiated_at: str | None = None
    completed_at: str | None = None


@dataclass
class ContinuityConsent:
    id: str
    patient_id: str
    transition_event_id: str
    origin_episode_id: str
    status: str = "granted"
    scope: str = CONTINUITY_CONSENT_SCOPE
    granted_at: str | None = None
    revoked_at: str | None = None


@dataclass
class ContinuitySummary:
    id: str
    transition_event_id: str
    origin_episode_id: str
    origin_physio_id: str
    patient_id: str
    condition_framing: str
    diagnosis_hypothesis: str
    interventions_attempted: list[str]
    response_profile: dict
    current_status: str
    open_considerations: list[str]
    status: SummaryStatus = SummaryStatus.DRAFT
    physio_annotations: str | None = None
    generated_at: str | None = None
    reviewed_at: str | None = None
    released_at: str | None = None
    revoked_at: str | None = None


class TransitionRepository(BaseRepository):
    """Repository for the handoff workflow records."""

    # Transition events

    def create_transition(self, event: TransitionEvent) -> TransitionEvent:
        event.id = event.id or str(uuid.uuid4())
        event.initiated_at = event.initiated_at or datetime.now().isoformat()
        with self.db.session() as conn:
            conn.execute("""
                INSERT INTO transition_events (
                    id, patient_id, origin_episode_id, origin_physio_id,
                    destination_episode_id, destination_physio_id, referring_gp_id,
                    transition_type, status, initiated_at, completed_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                event.id, event.patient_id, event.origin_episode_id, event.origin_physio_id,
                event.destination_episode_id, event.destination_physio_id, event.referring_gp_id,
                event.transition_type.value, event.status.value, event.initiated_at,
                event.completed_at,
            ))
        return event

    def find_transition(self, transition_id: str) -> TransitionEvent | None:
        with self.db.session() as conn:
            row = conn.execute(
                "SELECT * FROM transition_events WHERE id = ?", (transition_id,)
            ).fetchone()
        return self._row_to_transition(row) if row else None

    def list_transitions_for_physio(self, physio_id: str) -> list[TransitionEvent]:
        """Transitions where the physio is either origin or destination."""
        with self.db.session() as conn:
            rows = conn.execute(
                """SELECT * FROM transition_events
                   WHERE origin_physio_id = ? OR destination_physio_id = ?
                   ORDER BY initiated_at DESC, id""",
                (physio_id, physio_id),
            ).fetchall()
        return [self._row_to_transition(row) for row in rows]

    def update_transition_status(
        self,
        transition_id: str,
        status: TransitionStatus,
        completed_at: str | None = None,
    ) -> TransitionEvent | None:
        """Move a transition along a valid edge. Returns None when it doesn't exist.

        Raises InvalidTransitionError before writing if the edge is not allowed,
        or if another writer moved the transition after it was read.
        """
        with self.db.transaction():
            current = self.find_transition(transition_id)
            if current is None:
                return None
            require_transition(current.status, status)
            with self.db.session() as conn:
                cursor = conn.execute(
                    """UPDATE transition_events
                       SET status = ?, completed_at = COALESCE(?, completed_at)
                       WHERE id = ? AND status = ?""",
                    (status.value, completed_at, transition_id, current.status.value),
                )
            if cursor.rowcount == 0:
                raise InvalidTransitionError(
                    "transition", self.find_transition(transition_id).status, status
                )
            current.status = status
            current.completed_at = completed_at or current.completed_at
        return current

    # Continuity consents

    def insert_continuity_consent(self, consent: ContinuityConsent) -> ContinuityConsent:
        consent.id = consent.id or str(uuid.uuid4())
        consent.granted_at = consent.granted_at or datetime.now().isoformat()
        with self.db.session() as conn:
            conn.execute("""
                INSERT INTO continuity_consents (
                    id, patient_id, transition_event_id, origin_episode_id,
                    status, scope, granted_at, revoked_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                consent.id, consent.patient_id, consent.transition_event_id,
                consent.origin_episode_id, consent.status, consent.scope,
                consent.granted_at, consent.revoked_at,
            ))
        return consent

    def get_continuity_consent(self, consent_id: str) -> ContinuityConsent | None:
        with self.db.session() as conn:
            row = conn.execute(
                "SELECT * FROM continuity_consents WHERE id = ?", (consent_id,)
            ).fetchone()
        return self._row_to_continuity_consent(row) if row else None

    def find_continuity_consent(self, transition_id: str) -> ContinuityConsent | None:
        """The active (granted) consent for a transition, if any."""
        with self.db.session() as conn:
            row = conn.execute(
                """SELECT * FROM continuity_consents
                   WHERE transition_event_id = ? AND status = 'granted'
                   ORDER BY granted_at DESC LIMIT 1""",
                (transition_id,),
            ).fetchone()
        return self._row_to_continuity_consent(row) if row else None

    def revoke_continuity_consent(self, consent_id: str) -> ContinuityConsent | None:
        """Revoke a granted consent. Returns None when it was not granted."""
        now = datetime.now().isoformat()
        with self.db.session() as conn:
            cursor = conn.execute(
                """UPDATE continuity_consents SET status = 'revoked', revoked_at = ?
                   WHERE id = ? AND status = 'granted'""",
                (now, consent_id),
            )
        if cursor.rowcount == 0:
            return None
        return self.get_continuity_consent(consent_id)

    # Continuity summaries

    def insert_summary(self, summary: ContinuitySummary) -> ContinuitySummary:
        summary.id = summary.id or str(uuid.uuid4())
        summary.generated_at = summary.generated_at or datetime.now().isoformat()
        with self.db.session() as conn:
            conn.execute("""
                INSERT INTO continuity_summaries (
                    id, transition_event_id, origin_episode_id, origin_physio_id, patient_id,
                    condition_framing, diagnosis_hypothesis, interventions_attempted,
                    response_profile, current_status, open_considerations,
                    physio_annotations, status, generated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                summary.id, summary.transition_event_id, summary.origin_episode_id,
                summary.origin_physio_id, summary.patient_id, summary.condition_framing,
                summary.diagnosis_hypothesis, json.dumps(summary.interventions_attempted),
                json.dumps(summary.response_profile, sort_keys=True), summary.current_status,
                json.dumps(summary.open_considerations), summary.physio_annotations,
                summary.status.value, summary.generated_at,
            ))
        return summary

    def find_summary(self, summary_id: str) -> ContinuitySummary | None:
        with self.db.session() as conn:
            row = conn.execute(
                "SELECT * FROM continuity_summaries WHERE id = ?", (summary_id,)
            ).fetchone()
        return self._row_to_summary(row) if row else None

    def find_summary_for_transition(self, transition_id: str) -> ContinuitySummary | None:
        with self.db.session() as conn:
            row = conn.execute(
                """SELECT * FROM continuity_summaries WHERE transition_event_id = ?
                   ORDER BY generated_at DESC LIMIT 1""",
                (transition_id,),
            ).fetchone()
        return self._row_to_summary(row) if row else None

    def update_summary_status(
        self,
        summary_id: str,
        status: SummaryStatus,
        reviewed_at: str | None = None,
        released_at: str | None = None,
        annotations: str | None = None,
    ) -> ContinuitySummary | None:
        """Move a summary along a valid edge. Generated content is never touched.

        Raises InvalidTransitionError before writing if the edge is not allowed,
        or if another writer moved the summary after it was read.
        """
        revoked_at = datetime.now().isoformat() if status == SummaryStatus.REVOKED else None
        with self.db.transaction():
            current = self.find_summary(summary_id)
            if current is None:
                return None
            require_summary_transition(current.status, status)
            with self.db.session() as conn:
                cursor = conn.execute("""
                    UPDATE continuity_summaries SET
                        status = ?,
                        reviewed_at = COALESCE(?, reviewed_at),
                        released_at = COALESCE(?, released_at),
                        revoked_at = COALESCE(?, revoked_at),
                        physio_annotations = COALESCE(?, physio_annotations)
                    WHERE id = ? AND status = ?
                """, (
                    status.value, reviewed_at, released_at, revoked_at, annotations,
                    summary_id, current.status.value,
                ))
            if cursor.rowcount == 0:
                raise InvalidTransitionError("summary", self.find_summary(summary_id).status, status)
        return self.find_summary(summary_id)

    # Private helpers

    def _row_to_transition(self, row) -> TransitionEvent:
        return TransitionEvent(
            id=row["id"],
            patient_id=row["patient_id"],
            origin_episode_id=row["origin_episode_id"],
            origin_physio_id=row["origin_physio_id"],
            transition_type=TransitionType(row["transition_type"]),
            status=TransitionStatus(row["status"]),
            destination_episode_id=row["destination_episode_id"],
            destination_physio_id=row["destination_physio_id"],
            referring_gp_id=row["referring_gp_id"],
            initiated_at=row["initiated_at"],
            completed_at=row["completed_at"],
        )

    def _row_to_continuity_consent(self, row) -> ContinuityConsent:
        return ContinuityConsent(
            id=row["id"],
            patient_id=row["patient_id"],
            transition_event_id=row["transition_event_id"],
            origin_episode_id=row["origin_episode_id"],
            status=row["status"],
            scope=row["scope"],
            granted_at=row["granted_at"],
            revoked_at=row["revoked_at"],
        )

    def _row_to_summary(self, row) -> ContinuitySummary:
        return ContinuitySummary(
            id=row["id"],
            transition_event_id=row["transition_event_id"],
            origin_episode_id=row["origin_episode_id"],
            origin_physio_id=row["origin_physio_id"],
            patient_id=row["patient_id"],
            condition_framing=row["condition_framing"],
            diagnosis_hypothesis=row["diagnosis_hypothesis"],
            interventions_attempted=json.loads(row["interventions_attempted"]),
            response_profile=json.loads(row["response_profile"]),
            current_status=row["current_status"],
            open_considerations=json.loads(row["open_considerations"]),
            status=SummaryStatus(row["status"]),
            physio_annotations=row["physio_annotations"],
            generated_at=row["generated_at"],
            reviewed_at=row["reviewed_at"],
            released_at=row["released_at"],
            revoked_at=row["revoked_at"],
        )
