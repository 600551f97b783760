"""Tests for ballot submission."""

import random
import time

import pytest
from tests.conftest import full_slider_data, make_service, opponents_of

from tally.errors import GateLocked, IncompleteBallot, InvalidInput, NotFound, StorageUnavailable
from tally.models import UnitKey, VotingMode
from tally.store.base import CRITERIA, TEAMS, VOTERS, VOTES


class TestSubmit:
    def setup_method(self):
        self.service = make_service()
        self.session = self.service.sign_in("NOVA47", "Ada")

    def test_ranking_ballot(self):
        receipt = self.service.submit(self.session, 4, {"rankings": [2, 3, 4, 5]})
        assert not receipt.replaced
        assert receipt.ballot.vote_type == VotingMode.RANKING
        assert receipt.ballot.team_id == 1
        rows = self.service.store.get(VOTES)
        assert len(rows) == 1
        assert rows[0]["vote_data"] == {"rankings": [2, 3, 4, 5]}

    def test_slider_ballot(self):
        receipt = self.service.submit(self.session, 1, full_slider_data(1, score=4))
        assert receipt.ballot.vote_type == VotingMode.SLIDER
        assert len(receipt.ballot.vote_data) == 12

    def test_confirmation_format(self):
        self.service.validator._rng = random.Random(1)
        receipt = self.service.submit(self.session, 4, {"rankings": [2, 3, 4, 5]})
        prefix, phase, code, digits = receipt.confirmation.split("-")
        assert (prefix, phase, code) == ("CPB", "P4", "NOVA47")
        assert len(digits) == 4 and digits.isdigit()

    def test_receipt_prefix_is_configurable(self):
        service = make_service(RECEIPT_PREFIX="XYZ")
        session = service.sign_in("NOVA47", "Ada")
        receipt = service.submit(session, 4, {"rankings": [2, 3, 4, 5]})
        assert receipt.confirmation.startswith("XYZ-P4-NOVA47-")

    def test_missing_opponent_rejected(self):
        with pytest.raises(IncompleteBallot):
            self.service.submit(self.session, 4, {"rankings": [2, 3, 4]})
        assert self.service.store.get(VOTES) == []

    @pytest.mark.parametrize("rankings", [[2.9, 3, 4, 5], [True, 3, 4, 5], ["x", 3, 4, 5]])
    def test_malformed_ranking_ids_not_stored(self, rankings):
        with pytest.raises(IncompleteBallot, match="invalid team id"):
            self.service.submit(self.session, 4, {"rankings": rankings})
        assert self.service.store.get(VOTES) == []

    @pytest.mark.parametrize("score", [0, 6])
    def test_out_of_range_slider_rejected(self, score):
        data = full_slider_data(1)
        data["2-message"] = score
        with pytest.raises(IncompleteBallot):
            self.service.submit(self.session, 2, data)
        assert self.service.store.get(VOTES) == []

    def test_wrong_shape_for_phase(self):
        """Phase 1 is a slider phase; a ranking payload does not fit."""
        with pytest.raises(IncompleteBallot):
            self.service.submit(self.session, 1, {"rankings": [2, 3, 4, 5]})

    def test_unknown_phase(self):
        with pytest.raises(NotFound):
            self.service.submit(self.session, 7, {"rankings": [2, 3, 4, 5]})

    def test_criterion_not_accepted_per_phase(self):
        with pytest.raises(InvalidInput):
            self.service.submit(self.session, 4, {"rankings": [2, 3, 4, 5]}, criterion="creativity")

    def test_removed_voter(self):
        self.service.store.delete(VOTERS, {"voter_id": self.session.voter_id})
        with pytest.raises(NotFound):
            self.service.submit(self.session, 4, {"rankings": [2, 3, 4, 5]})

    def test_removed_team(self):
        self.service.store.delete(TEAMS, {"id": 1})
        with pytest.raises(NotFound):
            self.service.submit(self.session, 4, {"rankings": [2, 3, 4, 5]})


class TestResubmission:
    def setup_method(self):
        self.service = make_service()
        self.session = self.service.sign_in("NOVA47", "Ada")

    def test_overwrites_instead_of_duplicating(self):
        first = self.service.submit(self.session, 4, {"rankings": [2, 3, 4, 5]})
        time.sleep(0.001)
        second = self.service.submit(self.session, 4, {"rankings": [5, 4, 3, 2]})

        assert second.replaced
        rows = self.service.store.get(VOTES, {"voter_id": self.session.voter_id, "phase": 4})
        assert len(rows) == 1
        assert rows[0]["vote_data"] == {"rankings": [5, 4, 3, 2]}
        assert second.ballot.timestamp > first.ballot.timestamp
        assert rows[0]["timestamp"] == second.ballot.timestamp.isoformat()

    def test_rejected_resubmission_keeps_earlier_ballot(self):
        self.service.submit(self.session, 4, {"rankings": [2, 3, 4, 5]})
        with pytest.raises(IncompleteBallot):
            self.service.submit(self.session, 4, {"rankings": [2, 2, 3, 4]})
        assert self.service.store.get(VOTES)[0]["vote_data"] == {"rankings": [2, 3, 4, 5]}

    def test_phases_are_separate(self):
        self.service.submit(self.session, 1, full_slider_data(1))
        self.service.submit(self.session, 2, full_slider_data(1))
        self.service.submit(self.session, 4, {"rankings": [2, 3, 4, 5]})
        assert len(self.service.store.get(VOTES)) == 3

    def test_history_newest_first(self):
        self.service.submit(self.session, 1, full_slider_data(1))
        time.sleep(0.001)
        self.service.submit(self.session, 4, {"rankings": [2, 3, 4, 5]})
        history = self.service.validator.ballots_for(self.session.voter_id)
        assert [b.phase for b in history] == [4, 1]


class TestGateCheck:
    def setup_method(self):
        self.service = make_service()
        self.admin = self.service.admin.authenticate("letmein")
        self.session = self.service.sign_in("NOVA47", "Ada")

    def test_locked_phase_rejects_then_unlock_accepts(self):
        self.service.admin.toggle_lock(self.admin, 4)
        with pytest.raises(GateLocked):
            self.service.submit(self.session, 4, {"rankings": [2, 3, 4, 5]})
        assert self.service.store.get(VOTES) == []

        self.service.admin.toggle_lock(self.admin, 4)
        self.service.submit(self.session, 4, {"rankings": [2, 3, 4, 5]})
        assert len(self.service.store.get(VOTES)) == 1

    def test_gate_checked_before_shape(self):
        self.service.admin.toggle_lock(self.admin, 4)
        with pytest.raises(GateLocked):
            self.service.submit(self.session, 4, {"rankings": []})

    def test_strict_policy_blocks_prior_voters(self):
        self.service.submit(self.session, 4, {"rankings": [2, 3, 4, 5]})
        self.service.admin.toggle_lock(self.admin, 4)
        with pytest.raises(GateLocked):
            self.service.submit(self.session, 4, {"rankings": [5, 4, 3, 2]})

    def test_edit_policy_lets_prior_voters_resubmit(self):
        service = make_service(ALLOW_EDIT_WHEN_LOCKED=True)
        admin = service.admin.authenticate("letmein")
        voted = service.sign_in("NOVA47", "Ada")
        fresh = service.sign_in("NOVA47", "Grace")
        service.submit(voted, 4, {"rankings": [2, 3, 4, 5]})
        service.admin.toggle_lock(admin, 4)

        receipt = service.submit(voted, 4, {"rankings": [5, 4, 3, 2]})
        assert receipt.replaced
        with pytest.raises(GateLocked):
            service.submit(fresh, 4, {"rankings": [2, 3, 4, 5]})


class TestLockIn:
    def setup_method(self):
        self.service = make_service(REQUIRE_LOCK_IN=True)
        self.session = self.service.sign_in("NOVA47", "Ada")

    def test_all_teams_confirmed(self):
        receipt = self.service.submit(
            self.session, 1, full_slider_data(1), confirmed_teams=opponents_of(1)
        )
        assert receipt.ballot.phase == 1

    def test_unconfirmed_team_rejected(self):
        with pytest.raises(IncompleteBallot, match="lock in"):
            self.service.submit(self.session, 1, full_slider_data(1), confirmed_teams=[2, 3, 4])

    def test_no_confirmation_rejected(self):
        with pytest.raises(IncompleteBallot):
            self.service.submit(self.session, 1, full_slider_data(1))

    def test_ranking_phase_needs_no_lock_in(self):
        self.service.submit(self.session, 4, {"rankings": [2, 3, 4, 5]})


class TestCriteriaVariant:
    def setup_method(self):
        self.service = make_service(CRITERIA_SCOPED=True)
        self.admin = self.service.admin.authenticate("letmein")
        self.session = self.service.sign_in("NOVA47", "Ada")

    def test_one_ballot_per_round_and_criterion(self):
        self.service.submit(self.session, 1, {"rankings": [2, 3, 4, 5]}, criterion="creativity")
        self.service.submit(self.session, 1, {"rankings": [5, 4, 3, 2]}, criterion="effectiveness")
        self.service.submit(self.session, 1, {"rankings": [3, 2, 5, 4]}, criterion="creativity")
        rows = self.service.store.get(VOTES)
        assert len(rows) == 2
        by_criterion = {r["criterion"]: r["vote_data"]["rankings"] for r in rows}
        assert by_criterion == {"creativity": [3, 2, 5, 4], "effectiveness": [5, 4, 3, 2]}

    def test_criterion_required(self):
        with pytest.raises(InvalidInput):
            self.service.submit(self.session, 1, {"rankings": [2, 3, 4, 5]})

    def test_unknown_criterion(self):
        with pytest.raises(NotFound):
            self.service.submit(self.session, 1, {"rankings": [2, 3, 4, 5]}, criterion="charisma")

    def test_criterion_outside_its_rounds(self):
        with pytest.raises(NotFound):
            self.service.submit(self.session, 1, {"rankings": [2, 3, 4, 5]}, criterion="adaptation")

    def test_inactive_criterion_closed(self):
        self.service.admin.set_criterion_active(self.admin, "creativity", False)
        with pytest.raises(GateLocked):
            self.service.submit(self.session, 1, {"rankings": [2, 3, 4, 5]}, criterion="creativity")

    def test_round_lock_blocks_criterion(self):
        self.service.admin.toggle_lock(self.admin, 2)
        with pytest.raises(GateLocked):
            self.service.submit(self.session, 2, {"rankings": [2, 3, 4, 5]}, criterion="effectiveness")

    def test_existing_ballot_lookup(self):
        self.service.submit(self.session, 1, {"rankings": [2, 3, 4, 5]}, criterion="creativity")
        validator = self.service.validator
        assert validator.existing_ballot(self.session.voter_id, UnitKey(1, "creativity")) is not None
        assert validator.existing_ballot(self.session.voter_id, UnitKey(1, "effectiveness")) is None
        assert self.service.store.get(CRITERIA, {"id": "creativity"})


class TestStorageFailure:
    def test_unavailable_store_propagates_without_partial_write(self):
        service = make_service()
        session = service.sign_in("NOVA47", "Ada")

        def fail(*args, **kwargs):
            raise StorageUnavailable("Catalog store unreachable")

        service.store.upsert = fail
        with pytest.raises(StorageUnavailable):
            service.submit(session, 4, {"rankings": [2, 3, 4, 5]})
        assert service.store.get(VOTES) == []
