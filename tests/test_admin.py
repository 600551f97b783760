"""Tests for administrator operations."""

import pytest
from tests.conftest import make_service

from tally.admin import AdminSession
from tally.errors import GateLocked, InvalidCredential, InvalidInput, NotFound
from tally.models import Criterion, UnitKey, utcnow
from tally.store.base import BONUS_POINTS, CRITERIA, PHASE_LOCKS, TEAMS, VOTERS, VOTES


class TestAuthentication:
    def setup_method(self):
        self.service = make_service()

    def test_correct_password(self):
        session = self.service.admin.authenticate("letmein")
        assert isinstance(session, AdminSession)

    @pytest.mark.parametrize("password", ["wrong", "", "LETMEIN"])
    def test_wrong_password(self, password):
        with pytest.raises(InvalidCredential):
            self.service.admin.authenticate(password)

    def test_forged_session_rejected(self):
        forged = AdminSession(token="0" * 32, authenticated_at=utcnow())
        with pytest.raises(InvalidCredential):
            self.service.admin.toggle_lock(forged, 1)

    def test_session_from_other_console_rejected(self):
        other = make_service().admin.authenticate("letmein")
        with pytest.raises(InvalidCredential):
            self.service.admin.award_bonus(other, 1, 5, "Spirit")


class TestLocks:
    def setup_method(self):
        self.service = make_service()
        self.session = self.service.admin.authenticate("letmein")

    def test_toggle(self):
        state = self.service.admin.toggle_lock(self.session, 3)
        assert state.is_locked
        assert self.service.gate.is_locked(UnitKey(3))

    def test_criterion_lock_needs_criteria_variant(self):
        with pytest.raises(InvalidInput):
            self.service.admin.toggle_lock(self.session, 1, "creativity")

    def test_criterion_lock(self):
        service = make_service(CRITERIA_SCOPED=True)
        session = service.admin.authenticate("letmein")
        state = service.admin.toggle_lock(session, 1, "creativity")
        assert state.unit == UnitKey(1, "creativity")
        with pytest.raises(NotFound):
            service.admin.toggle_lock(session, 1, "charisma")

    def test_criterion_lock_outside_its_rounds(self):
        """Adaptation is only voted in round 4."""
        service = make_service(CRITERIA_SCOPED=True)
        session = service.admin.authenticate("letmein")
        with pytest.raises(NotFound, match="not voted on in round 1"):
            service.admin.toggle_lock(session, 1, "adaptation")
        assert service.store.get(PHASE_LOCKS, {"unit": "adaptation-R1"}) == []
        assert service.admin.toggle_lock(session, 4, "adaptation").is_locked


class TestBonusPoints:
    def setup_method(self):
        self.service = make_service()
        self.session = self.service.admin.authenticate("letmein")

    def test_award(self):
        bonus = self.service.admin.award_bonus(self.session, 2, 5, "  Best poster ")
        assert bonus.id is not None
        assert (bonus.team_id, bonus.points, bonus.reason, bonus.awarded_by) == (2, 5, "Best poster", "Admin")
        assert bonus.created_at is not None
        assert self.service.results().get(2).total == 5

    def test_negative_points(self):
        self.service.admin.award_bonus(self.session, 2, -4, "Late submission", awarded_by="Judge")
        assert self.service.results().get(2).score.bonus_points == -4

    def test_unknown_team(self):
        with pytest.raises(NotFound):
            self.service.admin.award_bonus(self.session, 99, 5, "Spirit")

    @pytest.mark.parametrize("points", [0, 2.5, "5", True])
    def test_invalid_points(self, points):
        with pytest.raises(InvalidInput):
            self.service.admin.award_bonus(self.session, 2, points, "Spirit")

    def test_reason_required(self):
        with pytest.raises(InvalidInput):
            self.service.admin.award_bonus(self.session, 2, 5, "   ")

    def test_revoke(self):
        bonus = self.service.admin.award_bonus(self.session, 2, 5, "Spirit")
        self.service.admin.revoke_bonus(self.session, bonus.id)
        assert self.service.store.get(BONUS_POINTS) == []
        with pytest.raises(NotFound):
            self.service.admin.revoke_bonus(self.session, bonus.id)


class TestTeamsAndVoters:
    def setup_method(self):
        self.service = make_service()
        self.session = self.service.admin.authenticate("letmein")

    def test_update_team_uppercases_code(self):
        team = self.service.admin.update_team(self.session, 1, "Vega Prime", "nova99")
        assert team.code == "NOVA99"
        assert self.service.store.get_one(TEAMS, {"id": 1})["code"] == "NOVA99"
        assert self.service.sign_in("nova99", "Ada").team_name == "Vega Prime"

    def test_update_team_code_clash(self):
        with pytest.raises(InvalidInput, match="Spence"):
            self.service.admin.update_team(self.session, 1, "Vega", "orbit92")

    def test_update_team_keeps_own_code(self):
        team = self.service.admin.update_team(self.session, 1, "Vega", "NOVA47")
        assert team.name == "Vega"

    def test_update_unknown_team(self):
        with pytest.raises(NotFound):
            self.service.admin.update_team(self.session, 42, "X", "XX")

    def test_add_voter_then_sign_in_reuses_identity(self):
        voter = self.service.admin.add_voter(self.session, 3, "Grace")
        assert voter.voter_id.startswith("COSMO38-GRACE-")
        assert self.service.sign_in("COSMO38", "Grace").voter_id == voter.voter_id

    def test_add_duplicate_voter(self):
        self.service.admin.add_voter(self.session, 3, "Grace")
        with pytest.raises(InvalidInput):
            self.service.admin.add_voter(self.session, 3, "Grace")

    def test_remove_voter_keeps_ballots(self):
        session = self.service.sign_in("NOVA47", "Ada")
        self.service.submit(session, 4, {"rankings": [2, 3, 4, 5]})
        self.service.admin.remove_voter(self.session, session.voter_id)
        assert self.service.store.get(VOTERS) == []
        assert len(self.service.store.get(VOTES)) == 1
        assert self.service.results().get(2).total == 5

    def test_remove_unknown_voter(self):
        with pytest.raises(NotFound):
            self.service.admin.remove_voter(self.session, "nobody")


class TestCriteria:
    def setup_method(self):
        self.service = make_service(CRITERIA_SCOPED=True)
        self.session = self.service.admin.authenticate("letmein")
        self.voter = self.service.sign_in("NOVA47", "Ada")

    def test_save_new_criterion(self):
        criterion = Criterion(id="teamwork", name="Teamwork", rounds=[2, 3], display_order=4)
        self.service.admin.save_criterion(self.session, criterion)
        self.service.submit(self.voter, 2, {"rankings": [2, 3, 4, 5]}, criterion="teamwork")

    def test_save_rejects_unknown_round(self):
        with pytest.raises(InvalidInput):
            self.service.admin.save_criterion(
                self.session, Criterion(id="teamwork", name="Teamwork", rounds=[5])
            )

    def test_save_requires_name(self):
        with pytest.raises(InvalidInput):
            self.service.admin.save_criterion(self.session, Criterion(id="teamwork", name=" "))

    def test_deactivated_criterion_keeps_counting(self):
        self.service.submit(self.voter, 1, {"rankings": [2, 3, 4, 5]}, criterion="creativity")
        self.service.admin.set_criterion_active(self.session, "creativity", False)

        with pytest.raises(GateLocked):
            self.service.submit(self.voter, 1, {"rankings": [5, 4, 3, 2]}, criterion="creativity")
        board = self.service.results()
        assert board.get(2).total == 5
        assert board.get(2).score.breakdown["creativity-R1"] == 5
        assert self.service.results(criterion="creativity").get(2).total == 5

    def test_reactivate(self):
        self.service.admin.set_criterion_active(self.session, "creativity", False)
        self.service.admin.set_criterion_active(self.session, "creativity", True)
        self.service.submit(self.voter, 1, {"rankings": [2, 3, 4, 5]}, criterion="creativity")

    def test_delete_unused_criterion(self):
        self.service.admin.delete_criterion(self.session, "adaptation")
        assert self.service.store.get_one(CRITERIA, {"id": "adaptation"}) is None

    def test_delete_refused_while_ballots_reference_it(self):
        self.service.submit(self.voter, 1, {"rankings": [2, 3, 4, 5]}, criterion="creativity")
        with pytest.raises(InvalidInput, match="Deactivate"):
            self.service.admin.delete_criterion(self.session, "creativity")
        assert self.service.store.get_one(CRITERIA, {"id": "creativity"}) is not None

    def test_unknown_criterion(self):
        with pytest.raises(NotFound):
            self.service.admin.set_criterion_active(self.session, "charisma", False)
