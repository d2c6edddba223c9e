"""Tests for network membership and GP referrals."""

from conftest import STRONG_ROWS, store_episode
from kinetic_referrals.care_records.database import RepositoryError
from kinetic_referrals.care_records.database.episode_repository import Physiotherapist
from kinetic_referrals.network import (
    create_gp_referral,
    disable_preview_mode,
    find_physios_for_gp,
    toggle_opt_in,
)
from kinetic_referrals.results import ErrorKind
from kinetic_referrals.state_machine import TransitionStatus, TransitionType


def add_physio(repo, physio_id, region, capacity="available", opted_in=True, preview_mode=False):
    return repo.create_physio(Physiotherapist(
        id=physio_id,
        name=f"Physio {physio_id}",
        email=f"{physio_id}@example.com",
        clinic_name="Clinic",
        region=region,
        capacity=capacity,
        opted_in=opted_in,
        preview_mode=preview_mode,
    ))


class TestOptIn:

    def test_opt_in_starts_in_preview(self, repo):
        add_physio(repo, "p1", "Manchester", opted_in=False)
        physio = toggle_opt_in(repo, "p1", True).value

        assert physio.opted_in is True
        assert physio.preview_mode is True
        assert physio.opted_in_at is not None

    def test_opt_out_clears_preview(self, repo):
        add_physio(repo, "p1", "Manchester", preview_mode=True)
        physio = toggle_opt_in(repo, "p1", False).value

        assert physio.opted_in is False
        assert physio.preview_mode is False
        assert physio.opted_out_at is not None

    def test_opt_out_keeps_signals(self, repo):
        add_physio(repo, "p1", "Manchester")
        repo.upsert_computed_signal("p1", "outcome-trajectory", 70, "medium", 6, "2025-05-01", {})
        toggle_opt_in(repo, "p1", False)
        assert len(repo.list_signals("p1")) == 1

    def test_disable_preview(self, repo):
        add_physio(repo, "p1", "Manchester", preview_mode=True)
        assert disable_preview_mode(repo, "p1").value.preview_mode is False

    def test_missing_physio(self, repo):
        assert toggle_opt_in(repo, "nope", True).error_kind == ErrorKind.NOT_FOUND
        assert disable_preview_mode(repo, "nope").error_kind == ErrorKind.NOT_FOUND


class TestFindPhysiosForGp:

    def test_region_then_capacity(self, repo, gp):
        add_physio(repo, "leeds", "Leeds", capacity="available")
        add_physio(repo, "mcr-wait", "Manchester", capacity="waitlist")
        add_physio(repo, "mcr-open", "Manchester", capacity="available")
        add_physio(repo, "mcr-limited", "Manchester", capacity="limited")

        matches = find_physios_for_gp(repo, gp.id).value
        assert [m.physio.id for m in matches] == ["mcr-open", "mcr-limited", "mcr-wait", "leeds"]

    def test_patient_region_overrides_gp_region(self, repo, gp):
        add_physio(repo, "leeds", "Leeds")
        add_physio(repo, "mcr", "Manchester")
        matches = find_physios_for_gp(repo, gp.id, patient_region="Leeds").value
        assert matches[0].physio.id == "leeds"

    def test_hides_preview_and_opted_out(self, repo, gp):
        add_physio(repo, "visible", "Manchester")
        add_physio(repo, "preview", "Manchester", preview_mode=True)
        add_physio(repo, "out", "Manchester", opted_in=False)

        matches = find_physios_for_gp(repo, gp.id).value
        assert [m.physio.id for m in matches] == ["visible"]

    def test_includes_signals_and_limit(self, repo, gp):
        for i in range(7):
            add_physio(repo, f"p{i}", "Manchester")
        repo.upsert_computed_signal("p0", "outcome-trajectory", 70, "medium", 6, "2025-05-01", {})

        matches = find_physios_for_gp(repo, gp.id).value
        assert len(matches) == 5
        assert [s.value for s in matches[0].signals] == [70]

    def test_missing_gp(self, repo):
        assert find_physios_for_gp(repo, "nope").error_kind == ErrorKind.NOT_FOUND


class TestCreateGpReferral:

    def test_new_patient_referral(self, repo, workflow, gp, patient, other_physio):
        result = create_gp_referral(
            repo, workflow, gp.id, patient.id, other_physio.id, "rotator cuff tendinopathy",
        )
        episode = result.value
        assert episode.is_gp_referred is True
        assert episode.referring_gp_id == gp.id
        assert episode.status == "active"
        assert workflow.transitions.list_transitions_for_physio(other_physio.id) == []

    def test_referral_from_prior_episode(self, repo, workflow, transitions, gp, physio, patient, other_physio):
        store_episode(repo, STRONG_ROWS, status="discharged")
        result = create_gp_referral(
            repo, workflow, gp.id, patient.id, other_physio.id, "lower back pain",
            origin_episode_id="ep-1",
        )
        episode = result.value
        assert episode.prior_physio_episode_id == "ep-1"

        [event] = transitions.list_transitions_for_physio(other_physio.id)
        assert event.transition_type == TransitionType.GP_REFERRAL
        assert event.status == TransitionStatus.CONSENT_PENDING
        assert event.destination_episode_id == episode.id
        assert event.referring_gp_id == gp.id

    def test_missing_records(self, repo, workflow, gp, patient, physio):
        assert create_gp_referral(
            repo, workflow, "nope", patient.id, physio.id, "x"
        ).error_kind == ErrorKind.NOT_FOUND
        assert create_gp_referral(
            repo, workflow, gp.id, patient.id, physio.id, "x", origin_episode_id="nope"
        ).error_kind == ErrorKind.NOT_FOUND

    def test_failed_transition_leaves_no_episode(
        self, repo, workflow, transitions, gp, physio, patient, other_physio, monkeypatch
    ):
        store_episode(repo, STRONG_ROWS, status="discharged")

        def fail(event):
            raise RepositoryError("disk full")

        monkeypatch.setattr(workflow.transitions, "create_transition", fail)
        result = create_gp_referral(
            repo, workflow, gp.id, patient.id, other_physio.id, "lower back pain",
            origin_episode_id="ep-1",
        )

        assert result.error_kind == ErrorKind.REPOSITORY
        assert repo.list_episodes(other_physio.id) == []
        assert transitions.list_transitions_for_physio(other_physio.id) == []

    def test_rejected_transition_leaves_no_episode(
        self, repo, workflow, gp, physio, patient, other_physio, monkeypatch
    ):
        store_episode(repo, STRONG_ROWS, status="discharged")
        monkeypatch.setattr(workflow.episodes, "get_gp", lambda gp_id: None)

        result = create_gp_referral(
            repo, workflow, gp.id, patient.id, other_physio.id, "lower back pain",
            origin_episode_id="ep-1",
        )

        assert result.error_kind == ErrorKind.NOT_FOUND
        assert repo.list_episodes(other_physio.id) == []
