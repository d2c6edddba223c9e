"""Seed the database with mock physiotherapists, GPs, patients and episodes."""

from datetime import datetime, timedelta

from kinetic_referrals.care_records.database import Database, EpisodeRepository, init_database
from kinetic_referrals.care_records.database.episode_repository import (
    GP,
    Consent,
    Episode,
    Patient,
    Physiotherapist,
    Visit,
)


MOCK_PHYSIOS = [
    Physiotherapist(
        id="physio-001",
        name="Dr. Sarah Mitchell",
        email="sarah.mitchell@kineticphysio.co.uk",
        clinic_name="Kinetic Physio Manchester",
        region="Manchester",
        specialties=["sports", "musculoskeletal"],
        capacity="available",
        opted_in=True,
        opted_in_at="2025-01-06T09:00:00",
    ),
    Physiotherapist(
        id="physio-002",
        name="James O'Connor",
        email="james.oconnor@salfordphysio.co.uk",
        clinic_name="Salford Spine & Joint",
        region="Manchester",
        specialties=["spinal"],
        capacity="limited",
        opted_in=True,
        opted_in_at="2025-02-10T09:00:00",
        preview_mode=True,
    ),
    Physiotherapist(
        id="physio-003",
        name="Priya Sharma",
        email="priya.sharma@leedsmovement.co.uk",
        clinic_name="Leeds Movement Clinic",
        region="Leeds",
        specialties=["neurological", "post-operative"],
        capacity="waitlist",
    ),
]

MOCK_GPS = [
    GP(id="gp-001", name="Dr. Helen Brooks", practice_name="Didsbury Medical Centre", region="Manchester"),
    GP(id="gp-002", name="Dr. Omar Farouk", practice_name="Chorlton Health Centre", region="Manchester"),
    GP(id="gp-003", name="Dr. Fiona Reid", practice_name="Headingley Surgery", region="Leeds"),
]

MOCK_PATIENTS = [
    Patient(id="patient-001", name="Tom Hughes", date_of_birth="1984-05-12", region="Manchester"),
    Patient(id="patient-002", name="Aisha Khan", date_of_birth="1991-09-03", region="Manchester"),
    Patient(id="patient-003", name="Gareth Lewis", date_of_birth="1967-02-21", region="Manchester"),
    Patient(id="patient-004", name="Chloe Evans", date_of_birth="2001-11-30", region="Leeds"),
]

# (episode, consented, visits as (day offset, pain, function, escalated, adjusted, note))
MOCK_EPISODES = [
    (
        Episode(
            id="episode-001", patient_id="patient-001", physio_id="physio-001",
            condition="lower back pain", started_at="2025-03-03T09:00:00",
            status="discharged", discharged_at="2025-04-07T10:00:00",
            referring_gp_id="gp-001", is_gp_referred=True,
        ),
        True,
        [
            (0, 8, 35, False, False, "Initial assessment"),
            (7, 7, 45, False, True, "Added core stability programme"),
            (14, 5, 60, False, False, None),
            (35, 2, 85, False, False, "Discharged with home exercises"),
        ],
    ),
    (
        Episode(
            id="episode-002", patient_id="patient-002", physio_id="physio-001",
            condition="rotator cuff tendinopathy", started_at="2025-03-10T09:00:00",
        ),
        True,
        [
            (0, 6, 50, False, False, "Initial assessment"),
            (7, 6, 52, False, True, "Progressed to loaded isometrics"),
            (14, 4, 60, False, False, None),
            (21, 4, 62, False, False, None),
        ],
    ),
    (
        Episode(
            id="episode-003", patient_id="patient-003", physio_id="physio-001",
            condition="knee osteoarthritis", started_at="2025-02-03T09:00:00",
        ),
        False,
        [
            (0, 7, 40, False, False, "Initial assessment"),
            (10, 7, 42, True, False, "Referred back to GP for imaging"),
        ],
    ),
    (
        Episode(
            id="episode-004", patient_id="patient-004", physio_id="physio-003",
            condition="ankle sprain", started_at="2025-04-01T09:00:00",
            status="self-discharged", discharged_at="2025-04-15T09:00:00",
        ),
        True,
        [
            (0, 5, 55, False, False, "Initial assessment"),
            (7, 4, 65, False, False, None),
        ],
    ),
]


def seed_database(db: Database | None = None) -> dict[str, int]:
    """Initialize and seed the database with mock data. Existing rows are skipped."""
    db = db or Database()
    init_database(db.db_path)
    repo = EpisodeRepository(db)
    counts = {"physiotherapists": 0, "gps": 0, "patients": 0, "episodes": 0, "visits": 0, "consents": 0}

    with db.transaction():
        for physio in MOCK_PHYSIOS:
            if not repo.get_physio(physio.id):
                repo.create_physio(physio)
                counts["physiotherapists"] += 1

        for gp in MOCK_GPS:
            if not repo.get_gp(gp.id):
                repo.create_gp(gp)
                counts["gps"] += 1

        for patient in MOCK_PATIENTS:
            if not repo.get_patient(patient.id):
                repo.create_patient(patient)
                counts["patients"] += 1

        for episode, consented, visits in MOCK_EPISODES:
            if repo.get_episode(episode.id):
                continue
            repo.create_episode(episode)
            counts["episodes"] += 1

            start = datetime.fromisoformat(episode.started_at)
            for number, (offset, pain, function, escalated, adjusted, note) in enumerate(visits, start=1):
                repo.add_visit(Visit(
                    id=f"{episode.id}-visit-{number}",
                    episode_id=episode.id,
                    visit_number=number,
                    visit_date=(start + timedelta(days=offset)).isoformat(),
                    pain_score=pain,
                    function_score=function,
                    escalated=escalated,
                    treatment_adjusted=adjusted,
                    notes_summary=note,
                ))
                counts["visits"] += 1

            if consented:
                repo.insert_consent(Consent(
                    id=f"consent-{episode.id}",
                    patient_id=episode.patient_id,
                    episode_id=episode.id,
                    physio_id=episode.physio_id,
                    status="granted",
                    granted_at=episode.started_at,
                ))
                counts["consents"] += 1

    return counts


if __name__ == "__main__":
    from kinetic_referrals.config import configure_logging

    configure_logging()
    for name, count in seed_database().items():
        print(f"  - {count} {name}")
