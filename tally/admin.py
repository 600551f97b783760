"""Administrator operations: lock toggles, bonus points and catalog upkeep.

Access is guarded by a single shared password. This is a placeholder trust
model: anyone holding the password can do everything here, and there is no
per-admin audit trail beyond ``awarded_by`` on bonus entries.
"""

import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime

from tally.errors import InvalidCredential, InvalidInput, NotFound
from tally.gate import LockState, PhaseGate
from tally.identity import make_voter_id
from tally.models import BonusPoint, Competition, Criterion, Team, UnitKey, Voter, utcnow
from tally.store.base import (
    BONUS_POINTS,
    CATALOG_CONFLICT_KEYS,
    CRITERIA,
    TEAMS,
    VOTERS,
    VOTES,
    CatalogStore,
)

logger = logging.getLogger(__name__)


@dataclass
class AdminSession:
    token: str
    authenticated_at: datetime


class AdminConsole:
    """Every administrative mutation goes through here.

    Concurrent admins are not coordinated: two sessions toggling the same
    lock or editing the same row race, and the last write wins.
    """

    def __init__(
        self,
        store: CatalogStore,
        competition: Competition,
        password: str,
        gate: PhaseGate | None = None,
    ):
        self.store = store
        self.competition = competition
        self.gate = gate or PhaseGate(store, competition)
        self._password = password
        self._token = secrets.token_hex(16)

    def authenticate(self, password: str) -> AdminSession:
        if not password or not hmac.compare_digest(
            password.encode("utf-8"), self._password.encode("utf-8")
        ):
            logger.warning("Rejected admin login")
            raise InvalidCredential("Invalid admin password.")
        return AdminSession(token=self._token, authenticated_at=utcnow())

    def _require(self, session: AdminSession) -> None:
        if not isinstance(session, AdminSession) or not hmac.compare_digest(
            session.token, self._token
        ):
            raise InvalidCredential("Admin session required.")

    # Gate

    def toggle_lock(self, session: AdminSession, phase: int, criterion: str | None = None) -> LockState:
        self._require(session)
        if criterion is not None:
            if not self.competition.criteria_scoped:
                raise InvalidInput("Locks in this competition are per phase.")
            found = self._get_criterion(criterion)
            if not found.applies_to(phase):
                raise NotFound(f"{found.name} is not voted on in round {phase}.")
        return self.gate.toggle(UnitKey(phase, criterion))

    # Bonus points

    def award_bonus(
        self,
        session: AdminSession,
        team_id: int,
        points: int,
        reason: str,
        awarded_by: str = "Admin",
    ) -> BonusPoint:
        self._require(session)
        team = self._get_team(team_id)
        if isinstance(points, bool) or not isinstance(points, int) or points == 0:
            raise InvalidInput("Bonus points must be a non-zero whole number.")
        reason = (reason or "").strip()
        if not reason:
            raise InvalidInput("Please give a reason for the bonus points.")

        bonus = BonusPoint(
            id=None,
            team_id=team.id,
            points=points,
            reason=reason,
            awarded_by=(awarded_by or "Admin").strip() or "Admin",
            created_at=utcnow(),
        )
        row = self.store.insert(BONUS_POINTS, bonus.to_row())
        logger.info("Awarded %+d points to %s: %s", points, team.name, reason)
        return BonusPoint.from_row(row)

    def revoke_bonus(self, session: AdminSession, bonus_id: int) -> None:
        self._require(session)
        if not self.store.delete(BONUS_POINTS, {"id": bonus_id}):
            raise NotFound(f"No bonus entry with id {bonus_id}.")
        logger.info("Revoked bonus entry %s", bonus_id)

    # Teams and voters

    def update_team(self, session: AdminSession, team_id: int, name: str, code: str) -> Team:
        """Rename a team or change its access code.

        Codes are stored upper-case and must stay unique regardless of case.
        """
        self._require(session)
        self._get_team(team_id)
        name = (name or "").strip()
        code = (code or "").strip().upper()
        if not name or not code:
            raise InvalidInput("A team needs both a name and a code.")
        for row in self.store.get(TEAMS):
            other = Team.from_row(row)
            if other.id != team_id and other.matches_code(code):
                raise InvalidInput(f"The code {code} is already used by {other.name}.")

        team = Team(id=team_id, name=name, code=code)
        self.store.upsert(TEAMS, team.to_row(), CATALOG_CONFLICT_KEYS[TEAMS])
        logger.info("Updated team %s", team_id)
        return team

    def add_voter(
        self,
        session: AdminSession,
        team_id: int,
        name: str,
        now: datetime | None = None,
    ) -> Voter:
        self._require(session)
        team = self._get_team(team_id)
        name = (name or "").strip()
        if not name:
            raise InvalidInput("Please provide both name and team.")
        if self.store.get_one(VOTERS, {"name": name, "team_id": team.id}):
            raise InvalidInput(f"{name} is already registered for {team.name}.")

        voter = Voter(
            voter_id=make_voter_id(team.code, name, now or utcnow()),
            name=name,
            team_id=team.id,
        )
        self.store.insert(VOTERS, voter.to_row())
        logger.info("Added voter %s", voter.voter_id)
        return voter

    def remove_voter(self, session: AdminSession, voter_id: str) -> None:
        """Remove a voter. Their ballots stay and keep counting."""
        self._require(session)
        if not self.store.delete(VOTERS, {"voter_id": voter_id}):
            raise NotFound(f"No voter with id {voter_id}.")
        logger.info("Removed voter %s", voter_id)

    # Criteria

    def save_criterion(self, session: AdminSession, criterion: Criterion) -> Criterion:
        """Create or update a criterion."""
        self._require(session)
        if not criterion.id.strip() or not criterion.name.strip():
            raise InvalidInput("Please provide both ID and name for the criterion.")
        if not criterion.rounds:
            raise InvalidInput("A criterion must apply to at least one round.")
        phase_ids = {p.id for p in self.competition.phases}
        unknown = [r for r in criterion.rounds if r not in phase_ids]
        if unknown:
            raise InvalidInput(f"Unknown rounds: {unknown}")

        self.store.upsert(CRITERIA, criterion.to_row(), CATALOG_CONFLICT_KEYS[CRITERIA])
        logger.info("Saved criterion %s", criterion.id)
        return criterion

    def set_criterion_active(self, session: AdminSession, criterion_id: str, active: bool) -> Criterion:
        """Open or close a criterion to new ballots. Ballots already cast are kept."""
        self._require(session)
        criterion = self._get_criterion(criterion_id)
        criterion.is_active = bool(active)
        self.store.upsert(CRITERIA, criterion.to_row(), CATALOG_CONFLICT_KEYS[CRITERIA])
        logger.info("Criterion %s %s", criterion_id, "activated" if active else "deactivated")
        return criterion

    def delete_criterion(self, session: AdminSession, criterion_id: str) -> None:
        self._require(session)
        self._get_criterion(criterion_id)
        if self.store.get(VOTES, {"criterion": criterion_id}):
            raise InvalidInput(
                "Ballots have been cast under this criterion. Deactivate it instead."
            )
        self.store.delete(CRITERIA, {"id": criterion_id})
        logger.info("Deleted criterion %s", criterion_id)

    def _get_team(self, team_id: int) -> Team:
        row = self.store.get_one(TEAMS, {"id": team_id})
        if row is None:
            raise NotFound(f"No team with id {team_id}.")
        return Team.from_row(row)

    def _get_criterion(self, criterion_id: str) -> Criterion:
        row = self.store.get_one(CRITERIA, {"id": criterion_id})
        if row is None:
            raise NotFound(f"Unknown criterion '{criterion_id}'.")
        return Criterion.from_row(row)
