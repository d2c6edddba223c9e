"""Tests for episode repository functionality."""

import pytest

from conftest import STRONG_ROWS, make_episode, store_episode
from kinetic_referrals.care_records.database import RepositoryError
from kinetic_referrals.care_records.database.episode_repository import (
    GP,
    Consent,
    EligibilitySnapshot,
    Physiotherapist,
)


class TestPhysios:
    """Tests for physiotherapist records."""

    def test_create_and_get(self, repo, physio):
        fetched = repo.get_physio(physio.id)
        assert fetched.name == "Sarah Mitchell"
        assert fetched.opted_in is True
        assert fetched.preview_mode is False

    def test_get_missing(self, repo):
        assert repo.get_physio("nobody") is None

    def test_update_ignores_unknown_fields(self, repo, physio):
        updated = repo.update_physio(physio.id, {"capacity": "waitlist", "id": "hijack"})
        assert updated.id == physio.id
        assert updated.capacity == "waitlist"

    def test_list_by_opt_in(self, repo, physio):
        repo.create_physio(Physiotherapist(
            id="physio-out", name="Out", email="out@example.com",
            clinic_name="Clinic", region="Leeds",
        ))
        assert [p.id for p in repo.list_physios(opted_in=True)] == [physio.id]
        assert len(repo.list_physios()) == 2


class TestGps:
    """Tests for GP practices and referral regions."""

    def test_referral_region_per_practice(self, repo, gp):
        repo.create_gp(GP(id="gp-2", name="Dr. Fiona Reid", practice_name="Headingley", region="Leeds"))
        repo.create_gp(GP(id="gp-3", name="Dr. Omar Shah", practice_name="Chorlton", region="Manchester"))

        assert repo.list_referral_regions() == ["Manchester", "Leeds", "Manchester"]

    def test_no_practices(self, repo):
        assert repo.list_referral_regions() == []


class TestEpisodes:
    """Tests for episodes and visits."""

    def test_visits_ordered_by_number(self, repo, physio, patient):
        store_episode(repo, [(0, 8, 35), (7, 6, 50), (14, 4, 65)])
        assert [v.visit_number for v in repo.list_visits("ep-1")] == [1, 2, 3]

    def test_duplicate_visit_number_rejected(self, repo, physio, patient):
        store_episode(repo, [(0, 8, 35)])
        visit = repo.list_visits("ep-1")[0]
        visit.id = "another"
        with pytest.raises(RepositoryError):
            repo.add_visit(visit)

    def test_status_change_only_from_active(self, repo, physio, patient):
        store_episode(repo, STRONG_ROWS)
        assert repo.update_episode_status("ep-1", "discharged") is True
        assert repo.update_episode_status("ep-1", "transferred") is False
        episode = repo.get_episode("ep-1")
        assert episode.status == "discharged"
        assert episode.discharged_at is not None

    def test_cannot_reactivate(self, repo, physio, patient):
        store_episode(repo, STRONG_ROWS)
        with pytest.raises(ValueError):
            repo.update_episode_status("ep-1", "active")

    def test_unknown_status_rejected(self, repo, physio, patient):
        with pytest.raises(ValueError):
            repo.create_episode(make_episode(status="paused"))

    def test_list_episodes_for_physio(self, repo, physio, other_physio, patient):
        store_episode(repo, STRONG_ROWS, episode_id="ep-1")
        store_episode(repo, STRONG_ROWS, episode_id="ep-2", status="discharged")
        store_episode(repo, STRONG_ROWS, episode_id="ep-3", physio_id=other_physio.id)

        assert [e.id for e in repo.list_episodes(physio.id)] == ["ep-1", "ep-2"]
        assert [e.id for e in repo.list_episodes(other_physio.id)] == ["ep-3"]
        assert repo.list_episodes("nobody") == []


class TestConsents:
    """Tests for signal-computation consent rows."""

    def test_only_granted_consents_listed(self, repo, physio, patient):
        store_episode(repo, STRONG_ROWS, episode_id="ep-1")
        store_episode(repo, STRONG_ROWS, episode_id="ep-2", consented=False)
        store_episode(repo, STRONG_ROWS, episode_id="ep-3")
        repo.update_consent_status("consent-ep-3", "revoked")

        pairs = repo.list_consented_episodes(physio.id)
        assert [episode.id for episode, _ in pairs] == ["ep-1"]
        assert pairs[0][1].status == "granted"

    def test_duplicate_granted_rows_listed_once(self, repo, physio, patient):
        store_episode(repo, STRONG_ROWS)
        repo.insert_consent(Consent(
            id="consent-dup", patient_id=patient.id, episode_id="ep-1",
            physio_id=physio.id, status="granted",
        ))
        assert len(repo.list_consented_episodes(physio.id)) == 1

    def test_revoke_stamps_time(self, repo, physio, patient):
        store_episode(repo, STRONG_ROWS)
        consent = repo.update_consent_status("consent-ep-1", "revoked")
        assert consent.status == "revoked"
        assert consent.revoked_at is not None


class TestSignalsAndSnapshots:
    """Tests for computed signal and eligibility storage."""

    def test_upsert_keeps_one_row_per_type(self, repo, physio):
        for value in (40, 70):
            repo.upsert_computed_signal(
                physio.id, "outcome-trajectory", value, "medium", 6, "2025-05-01T00:00:00", {"a": 1},
            )
        signals = repo.list_signals(physio.id)
        assert len(signals) == 1
        assert signals[0].value == 70
        assert signals[0].details == {"a": 1}

    def test_failed_upsert_keeps_previous_row(self, repo, physio):
        repo.upsert_computed_signal(
            physio.id, "outcome-trajectory", 40, "medium", 6, "2025-05-01T00:00:00", {},
        )
        with pytest.raises(RepositoryError):
            # NOT NULL violation on value
            repo.upsert_computed_signal(
                physio.id, "outcome-trajectory", None, "medium", 6, "2025-05-02T00:00:00", {},
            )
        assert repo.list_signals(physio.id)[0].value == 40

    def test_snapshot_replaced(self, repo, physio):
        for eligible in (0, 2):
            repo.save_eligibility_snapshot(EligibilitySnapshot(
                physio_id=physio.id, region="Manchester", eligible_referral_sets=eligible,
                total_referral_sets=3, confidence_factors={"region_match": True}, gaps=[],
                simulated_at="2025-05-01T00:00:00",
            ))
        snapshot = repo.get_eligibility_snapshot(physio.id)
        assert snapshot.eligible_referral_sets == 2
        assert snapshot.confidence_factors == {"region_match": True}


class TestTransactions:
    """Tests for the shared transaction handle."""

    def test_rollback_on_error(self, db, repo, physio, patient):
        with pytest.raises(RuntimeError):
            with db.transaction():
                store_episode(repo, STRONG_ROWS)
                raise RuntimeError("boom")
        assert repo.get_episode("ep-1") is None
        assert db.in_transaction is False

    def test_commit_on_success(self, db, repo, physio, patient):
        with db.transaction():
            store_episode(repo, STRONG_ROWS)
        assert len(repo.list_visits("ep-1")) == 4
