"""Repository for the referral network, care episodes, consents and signals."""

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from .base import BaseRepository

EPISODE_STATUSES = ("active", "discharged", "self-discharged", "transferred")
TERMINAL_EPISODE_STATUSES = ("discharged", "self-discharged", "transferred")

SIGNAL_CONSENT_SCOPE = "episode-data-for-signal-computation"


@dataclass
class Physiotherapist:
    id: str
    name: str
    email: str
    clinic_name: str
    region: str
    specialties: list[str] = field(default_factory=list)
    capacity: str = "available"
    opted_in: bool = False
    opted_in_at: str | None = None
    opted_out_at: str | None = None
    preview_mode: bool = False


@dataclass
class Patient:
    id: str
    name: str
    date_of_birth: str
    region: str


@dataclass
class GP:
    id: str
    name: str
    practice_name: str
    region: str


@dataclass
class Episode:
    id: str
    patient_id: str
    physio_id: str
    condition: str
    started_at: str
    status: str = "active"
    referring_gp_id: str | None = None
    discharged_at: str | None = None
    is_gp_referred: bool = False
    prior_physio_episode_id: str | None = None


@dataclass
class Visit:
    id: str
    episode_id: str
    visit_number: int
    visit_date: str
    pain_score: int | None = None
    function_score: int | None = None
    escalated: bool = False
    treatment_adjusted: bool = False
    notes_summary: str | None = None


@dataclass
class Consent:
    id: str
    patient_id: str
    episode_id: str
    physio_id: str
    status: str
    scope: str = SIGNAL_CONSENT_SCOPE
    granted_at: str | None = None
    revoked_at: str | None = None


@dataclass
class ComputedSignal:
    id: str
    physio_id: str
    signal_type: str
    value: int
    confidence: str
    episode_count: int
    computed_at: str
    details: dict = field(default_factory=dict)


@dataclass
class EligibilitySnapshot:
    physio_id: str
    region: str
    eligible_referral_sets: int
    total_referral_sets: int
    confidence_factors: dict
    gaps: list[str]
    simulated_at: str


class EpisodeRepository(BaseRepository):
    """Repository for physios, GPs, patients, episodes, visits, consents and signals."""

    # Physiotherapist fields that can be updated
    PHYSIO_FIELDS = [
        "name", "email", "clinic_name", "region", "capacity",
        "opted_in", "opted_in_at", "opted_out_at", "preview_mode",
    ]

    # Physiotherapists

    def create_physio(self, physio: Physiotherapist) -> Physiotherapist:
        physio.id = physio.id or str(uuid.uuid4())
        with self.db.session() as conn:
            conn.execute("""
                INSERT INTO physiotherapists (
                    id, name, email, clinic_name, region, specialties, capacity,
                    opted_in, opted_in_at, opted_out_at, preview_mode
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                physio.id, physio.name, physio.email, physio.clinic_name, physio.region,
                json.dumps(physio.specialties), physio.capacity, int(physio.opted_in),
                physio.opted_in_at, physio.opted_out_at, int(physio.preview_mode),
            ))
        return physio

    def get_physio(self, physio_id: str) -> Physiotherapist | None:
        with self.db.session() as conn:
            row = conn.execute(
                "SELECT * FROM physiotherapists WHERE id = ?", (physio_id,)
            ).fetchone()
        return self._row_to_physio(row) if row else None

    def list_physios(self, opted_in: bool | None = None) -> list[Physiotherapist]:
        query = "SELECT * FROM physiotherapists"
        params = []
        if opted_in is not None:
            query += " WHERE opted_in = ?"
            params.append(int(opted_in))
        query += " ORDER BY id"

        with self.db.session() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_physio(row) for row in rows]

    def update_physio(self, physio_id: str, updates: dict) -> Physiotherapist | None:
        """Update physiotherapist fields. Unknown fields are ignored."""
        valid_updates = {}
        for name, value in updates.items():
            if name in self.PHYSIO_FIELDS:
                if name in ("opted_in", "preview_mode"):
                    value = int(bool(value))
                valid_updates[name] = value

        if valid_updates:
            set_clause = ", ".join(f"{name} = ?" for name in valid_updates)
            values = list(valid_updates.values()) + [physio_id]
            with self.db.session() as conn:
                conn.execute(
                    f"UPDATE physiotherapists SET {set_clause} WHERE id = ?",
                    values,
                )
        return self.get_physio(physio_id)

    # Patients and GPs

    def create_patient(self, patient: Patient) -> Patient:
        patient.id = patient.id or str(uuid.uuid4())
        with self.db.session() as conn:
            conn.execute(
                "INSERT INTO patients (id, name, date_of_birth, region) VALUES (?, ?, ?, ?)",
                (patient.id, patient.name, patient.date_of_birth, patient.region),
            )
        return patient

    def get_patient(self, patient_id: str) -> Patient | None:
        with self.db.session() as conn:
            row = conn.execute("SELECT * FROM patients WHERE id = ?", (patient_id,)).fetchone()
        if not row:
            return None
        return Patient(
            id=row["id"],
            name=row["name"],
            date_of_birth=row["date_of_birth"],
            region=row["region"],
        )

    def create_gp(self, gp: GP) -> GP:
        gp.id = gp.id or str(uuid.uuid4())
        with self.db.session() as conn:
            conn.execute(
                "INSERT INTO gps (id, name, practice_name, region) VALUES (?, ?, ?, ?)",
                (gp.id, gp.name, gp.practice_name, gp.region),
            )
        return gp

    def get_gp(self, gp_id: str) -> GP | None:
        with self.db.session() as conn:
            row = conn.execute("SELECT * FROM gps WHERE id = ?", (gp_id,)).fetchone()
        return self._row_to_gp(row) if row else None

    def list_gps(self) -> list[GP]:
        """All GP practices. Each one is a potential referral set."""
        with self.db.session() as conn:
            rows = conn.execute("SELECT * FROM gps ORDER BY id").fetchall()
        return [self._row_to_gp(row) for row in rows]

    def list_referral_regions(self) -> list[str]:
        """Region of every referral set, one entry per GP practice."""
        return [gp.region for gp in self.list_gps()]

    # Episodes and visits

    def create_episode(self, episode: Episode) -> Episode:
        if episode.status not in EPISODE_STATUSES:
            raise ValueError(f"Unknown episode status: {episode.status}")
        episode.id = episode.id or str(uuid.uuid4())
        with self.db.session() as conn:
            conn.execute("""
                INSERT INTO episodes (
                    id, patient_id, physio_id, referring_gp_id, condition, status,
                    started_at, discharged_at, is_gp_referred, prior_physio_episode_id
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                episode.id, episode.patient_id, episode.physio_id, episode.referring_gp_id,
                episode.condition, episode.status, episode.started_at, episode.discharged_at,
                int(episode.is_gp_referred), episode.prior_physio_episode_id,
            ))
        return episode

    def get_episode(self, episode_id: str) -> Episode | None:
        with self.db.session() as conn:
            row = conn.execute("SELECT * FROM episodes WHERE id = ?", (episode_id,)).fetchone()
        return self._row_to_episode(row) if row else None

    def list_episodes(self, physio_id: str) -> list[Episode]:
        with self.db.session() as conn:
            rows = conn.execute(
                "SELECT * FROM episodes WHERE physio_id = ? ORDER BY started_at, id",
                (physio_id,),
            ).fetchall()
        return [self._row_to_episode(row) for row in rows]

    def update_episode_status(
        self,
        episode_id: str,
        status: str,
        discharged_at: str | None = None,
    ) -> bool:
        """Move an active episode to a terminal status.

        Terminal statuses are one-way, so only active episodes are updated.
        Returns True when a row changed.
        """
        if status not in TERMINAL_EPISODE_STATUSES:
            raise ValueError(f"Episodes can only move to a terminal status, not {status}")
        if discharged_at is None and status != "transferred":
            discharged_at = datetime.now().isoformat()

        with self.db.session() as conn:
            cursor = conn.execute(
                """UPDATE episodes SET status = ?, discharged_at = ?
                   WHERE id = ? AND status = 'active'""",
                (status, discharged_at, episode_id),
            )
            return cursor.rowcount > 0

    def add_visit(self, visit: Visit) -> Visit:
        visit.id = visit.id or str(uuid.uuid4())
        with self.db.session() as conn:
            conn.execute("""
                INSERT INTO visits (
                    id, episode_id, visit_number, visit_date, pain_score, function_score,
                    escalated, treatment_adjusted, notes_summary
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                visit.id, visit.episode_id, visit.visit_number, visit.visit_date,
                visit.pain_score, visit.function_score, int(visit.escalated),
                int(visit.treatment_adjusted), visit.notes_summary,
            ))
        return visit

    def list_visits(self, episode_id: str) -> list[Visit]:
        """Visits for an episode, ordered by visit number."""
        with self.db.session() as conn:
            rows = conn.execute(
                "SELECT * FROM visits WHERE episode_id = ? ORDER BY visit_number",
                (episode_id,),
            ).fetchall()
        return [self._row_to_visit(row) for row in rows]

    # Signal-computation consents

    def list_consented_episodes(self, physio_id: str) -> list[tuple[Episode, Consent]]:
        """Episodes of a physio paired with their granted consent row."""
        with self.db.session() as conn:
            rows = conn.execute("""
                SELECT e.*,
                       c.id AS consent_id, c.patient_id AS consent_patient_id,
                       c.status AS consent_status, c.scope AS consent_scope,
                       c.granted_at AS consent_granted_at, c.revoked_at AS consent_revoked_at
                FROM episodes e
                JOIN consents c ON c.episode_id = e.id AND c.status = 'granted'
                WHERE e.physio_id = ?
                ORDER BY e.started_at, e.id
            """, (physio_id,)).fetchall()

        pairs = []
        seen = set()
        for row in rows:
            # A re-granted episode may carry more than one granted row
            if row["id"] in seen:
                continue
            seen.add(row["id"])
            consent = Consent(
                id=row["consent_id"],
                patient_id=row["consent_patient_id"],
                episode_id=row["id"],
                physio_id=row["physio_id"],
                status=row["consent_status"],
                scope=row["consent_scope"],
                granted_at=row["consent_granted_at"],
                revoked_at=row["consent_revoked_at"],
            )
            pairs.append((self._row_to_episode(row), consent))
        return pairs

    def get_consent(self, consent_id: str) -> Consent | None:
        with self.db.session() as conn:
            row = conn.execute("SELECT * FROM consents WHERE id = ?", (consent_id,)).fetchone()
        return self._row_to_consent(row) if row else None

    def find_consent(self, episode_id: str, patient_id: str) -> Consent | None:
        with self.db.session() as conn:
            row = conn.execute(
                """SELECT * FROM consents WHERE episode_id = ? AND patient_id = ?
                   ORDER BY created_at DESC, id LIMIT 1""",
                (episode_id, patient_id),
            ).fetchone()
        return self._row_to_consent(row) if row else None

    def insert_consent(self, consent: Consent) -> Consent:
        consent.id = consent.id or str(uuid.uuid4())
        with self.db.session() as conn:
            conn.execute("""
                INSERT INTO consents (
                    id, patient_id, episode_id, physio_id, status, scope, granted_at, revoked_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                consent.id, consent.patient_id, consent.episode_id, consent.physio_id,
                consent.status, consent.scope, consent.granted_at, consent.revoked_at,
            ))
        return consent

    def update_consent_status(self, consent_id: str, status: str) -> Consent | None:
        """Grant or revoke a consent row, stamping the matching timestamp."""
        now = datetime.now().isoformat()
        with self.db.session() as conn:
            if status == "granted":
                conn.execute(
                    "UPDATE consents SET status = ?, granted_at = ?, revoked_at = NULL WHERE id = ?",
                    (status, now, consent_id),
                )
            elif status == "revoked":
                conn.execute(
                    "UPDATE consents SET status = ?, revoked_at = ? WHERE id = ?",
                    (status, now, consent_id),
                )
            else:
                raise ValueError(f"Unknown consent status: {status}")
        return self.get_consent(consent_id)

    # Computed signals

    def upsert_computed_signal(
        self,
        physio_id: str,
        signal_type: str,
        value: int,
        confidence: str,
        episode_count: int,
        computed_at: str,
        details: dict,
    ) -> ComputedSignal:
        """Replace the stored signal of this type for the physio.

        The delete and insert share one transaction, so readers never see an
        empty or doubled row set.
        """
        signal = ComputedSignal(
            id=str(uuid.uuid4()),
            physio_id=physio_id,
            signal_type=signal_type,
            value=value,
            confidence=confidence,
            episode_count=episode_count,
            computed_at=computed_at,
            details=details,
        )
        with self.db.transaction(), self.db.session() as conn:
            conn.execute(
                "DELETE FROM computed_signals WHERE physio_id = ? AND signal_type = ?",
                (physio_id, signal_type),
            )
            conn.execute("""
                INSERT INTO computed_signals (
                    id, physio_id, signal_type, value, confidence, episode_count, computed_at, details
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                signal.id, physio_id, signal_type, value, confidence, episode_count,
                computed_at, json.dumps(details, sort_keys=True),
            ))
        return signal

    def list_signals(self, physio_id: str) -> list[ComputedSignal]:
        with self.db.session() as conn:
            rows = conn.execute(
                "SELECT * FROM computed_signals WHERE physio_id = ? ORDER BY signal_type",
                (physio_id,),
            ).fetchall()
        return [self._row_to_signal(row) for row in rows]

    # Eligibility snapshots

    def save_eligibility_snapshot(self, snapshot: EligibilitySnapshot) -> EligibilitySnapshot:
        """Store the latest eligibility simulation, replacing the previous one."""
        with self.db.session() as conn:
            conn.execute("""
                INSERT INTO simulated_eligibility (
                    id, physio_id, region, eligible_referral_sets, total_referral_sets,
                    confidence_factors, gaps, simulated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(physio_id) DO UPDATE SET
                    region = excluded.region,
                    eligible_referral_sets = excluded.eligible_referral_sets,
                    total_referral_sets = excluded.total_referral_sets,
                    confidence_factors = excluded.confidence_factors,
                    gaps = excluded.gaps,
                    simulated_at = excluded.simulated_at
            """, (
                str(uuid.uuid4()), snapshot.physio_id, snapshot.region,
                snapshot.eligible_referral_sets, snapshot.total_referral_sets,
                json.dumps(snapshot.confidence_factors, sort_keys=True),
                json.dumps(snapshot.gaps), snapshot.simulated_at,
            ))
        return snapshot

    def get_eligibility_snapshot(self, physio_id: str) -> EligibilitySnapshot | None:
        with self.db.session() as conn:
            row = conn.execute(
                "SELECT * FROM simulated_eligibility WHERE physio_id = ?", (physio_id,)
            ).fetchone()
        if not row:
            return None
        return EligibilitySnapshot(
            physio_id=row["physio_id"],
            region=row["region"],
            eligible_referral_sets=row["eligible_referral_sets"],
            total_referral_sets=row["total_referral_sets"],
            confidence_factors=json.loads(row["confidence_factors"]) if row["confidence_factors"] else {},
            gaps=json.loads(row["gaps"]) if row["gaps"] else [],
            simulated_at=row["simulated_at"],
        )

    # Private helpers

    def _row_to_physio(self, row) -> Physiotherapist:
        return Physiotherapist(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            clinic_name=row["clinic_name"],
            region=row["region"],
            specialties=json.loads(row["specialties"]) if row["specialties"] else [],
            capacity=row["capacity"],
            opted_in=bool(row["opted_in"]),
            opted_in_at=row["opted_in_at"],
            opted_out_at=row["opted_out_at"],
            preview_mode=bool(row["preview_mode"]),
        )

    def _row_to_gp(self, row) -> GP:
        return GP(
            id=row["id"],
            name=row["name"],
            practice_name=row["practice_name"],
            region=row["region"],
        )

    def _row_to_episode(self, row) -> Episode:
        return Episode(
            id=row["id"],
            patient_id=row["patient_id"],
            physio_id=row["physio_id"],
            condition=row["condition"],
            started_at=row["started_at"],
            status=row["status"],
            referring_gp_id=row["referring_gp_id"],
            discharged_at=row["discharged_at"],
            is_gp_referred=bool(row["is_gp_referred"]),
            prior_physio_episode_id=row["prior_physio_episode_id"],
        )

    def _row_to_visit(self, row) -> Visit:
        return Visit(
            id=row["id"],
            episode_id=row["episode_id"],
            visit_number=row["visit_number"],
            visit_date=row["visit_date"],
            pain_score=row["pain_score"],
            function_score=row["function_score"],
            escalated=bool(row["escalated"]),
            treatment_adjusted=bool(row["treatment_adjusted"]),
            notes_summary=row["notes_summary"],
        )

    def _row_to_consent(self, row) -> Consent:
        return Consent(
            id=row["id"],
            patient_id=row["patient_id"],
            episode_id=row["episode_id"],
            physio_id=row["physio_id"],
            status=row["status"],
            scope=row["scope"],
            granted_at=row["granted_at"],
            revoked_at=row["revoked_at"],
        )

    def _row_to_signal(self, row) -> ComputedSignal:
        return ComputedSignal(
            id=row["id"],
            physio_id=row["physio_id"],
            signal_type=row["signal_type"],
            value=row["value"],
            confidence=row["confidence"],
            episode_count=row["episode_count"],
            computed_at=row["computed_at"],
            details=json.loads(row["details"]) if row["details"] else {},
        )
