"""Shared pytest fixtures."""

from datetime import datetime, timedelta

import pytest

from kinetic_referrals.care_records.database import (
    Database,
    EpisodeRepository,
    TransitionRepository,
    init_database,
)
from kinetic_referrals.care_records.database.episode_repository import (
    GP,
    Consent,
    Episode,
    Patient,
    Physiotherapist,
    Visit,
)
from kinetic_referrals.continuity import ContinuityWorkflow
from kinetic_referrals.signal_policy import EpisodeWithVisits

START = datetime(2025, 3, 3, 9, 0)


@pytest.fixture
def db(tmp_path):
    """A fresh database file per test."""
    path = tmp_path / "test.db"
    init_database(path)
    return Database(path)


@pytest.fixture
def repo(db):
    return EpisodeRepository(db)


@pytest.fixture
def transitions(db):
    return TransitionRepository(db)


@pytest.fixture
def workflow(db):
    return ContinuityWorkflow(db)


@pytest.fixture
def physio(repo):
    return repo.create_physio(Physiotherapist(
        id="physio-1",
        name="Sarah Mitchell",
        email="sarah@example.com",
        clinic_name="Kinetic Manchester",
        region="Manchester",
        opted_in=True,
    ))


@pytest.fixture
def other_physio(repo):
    return repo.create_physio(Physiotherapist(
        id="physio-2",
        name="James O'Connor",
        email="james@example.com",
        clinic_name="Salford Spine",
        region="Manchester",
        opted_in=True,
    ))


@pytest.fixture
def patient(repo):
    return repo.create_patient(Patient(
        id="patient-1", name="Tom Hughes", date_of_birth="1984-05-12", region="Manchester",
    ))


@pytest.fixture
def gp(repo):
    return repo.create_gp(GP(
        id="gp-1", name="Dr. Helen Brooks", practice_name="Didsbury Medical", region="Manchester",
    ))


def make_visits(episode_id, rows):
    """Build visits from (day offset, pain, function) rows, or longer tuples
    adding escalated, treatment_adjusted and notes_summary."""
    visits = []
    for number, row in enumerate(rows, start=1):
        offset, pain, function, *rest = row
        escalated = rest[0] if len(rest) > 0 else False
        adjusted = rest[1] if len(rest) > 1 else False
        note = rest[2] if len(rest) > 2 else None
        visits.append(Visit(
            id=f"{episode_id}-v{number}",
            episode_id=episode_id,
            visit_number=number,
            visit_date=(START + timedelta(days=offset)).isoformat(),
            pain_score=pain,
            function_score=function,
            escalated=escalated,
            treatment_adjusted=adjusted,
            notes_summary=note,
        ))
    return visits


def make_episode(episode_id="ep-1", status="active", **kwargs):
    return Episode(
        id=episode_id,
        patient_id=kwargs.pop("patient_id", "patient-1"),
        physio_id=kwargs.pop("physio_id", "physio-1"),
        condition=kwargs.pop("condition", "lower back pain"),
        started_at=START.isoformat(),
        status=status,
        **kwargs,
    )


def with_visits(rows, episode_id="ep-1", status="active", **kwargs):
    """An in-memory episode with its visits, for the scoring algorithms."""
    return EpisodeWithVisits(
        episode=make_episode(episode_id, status, **kwargs),
        visits=make_visits(episode_id, rows),
    )


STRONG_ROWS = [(0, 8, 35), (7, 7, 45), (14, 5, 60), (35, 2, 85)]


def store_episode(repo, rows, episode_id="ep-1", status="active", consented=True, **kwargs):
    """Persist an episode with visits and, optionally, a granted consent."""
    episode = repo.create_episode(make_episode(episode_id, status, **kwargs))
    for visit in make_visits(episode_id, rows):
        repo.add_visit(visit)
    if consented:
        repo.insert_consent(Consent(
            id=f"consent-{episode_id}",
            patient_id=episode.patient_id,
            episode_id=episode.id,
            physio_id=episode.physio_id,
            status="granted",
            granted_at=START.isoformat(),
        ))
    return episode
