"""Ballot submission: unit resolution, gate check, shape check and upsert."""

import logging
import random
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from tally.errors import GateLocked, IncompleteBallot, InvalidInput, NotFound
from tally.gate import PhaseGate
from tally.identity import VoterSession
from tally.models import Ballot, Competition, Criterion, Phase, Team, UnitKey, VotingMode, utcnow
from tally.store.base import CRITERIA, TEAMS, VOTERS, VOTES, CatalogStore
from tally.voting import BallotContext, get_scoring_mode

# Import scoring modes to register them
from tally.voting import ranking  # noqa: F401
from tally.voting import slider  # noqa: F401

logger = logging.getLogger(__name__)


@dataclass
class Receipt:
    """Acknowledgement of a stored ballot.

    ``confirmation`` is a cosmetic receipt code for the voter. It is not
    unique and is never used to look a ballot up.
    """
    confirmation: str
    ballot: Ballot
    replaced: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "confirmation": self.confirmation,
            "voter_id": self.ballot.voter_id,
            "phase": self.ballot.phase,
            "criterion": self.ballot.criterion,
            "vote_type": self.ballot.vote_type.value,
            "timestamp": self.ballot.timestamp.isoformat() if self.ballot.timestamp else None,
            "replaced": self.replaced,
        }


class BallotValidator:
    """Accepts or rejects proposed ballots before they reach the store.

    Checks run in a fixed order: the target unit must exist, the gate must
    accept it, lock-in must be complete where required, and the payload must
    have the shape its voting mode demands. Only then is the ballot upserted,
    so a rejected submission leaves earlier ballots untouched.
    """

    def __init__(
        self,
        store: CatalogStore,
        competition: Competition,
        gate: PhaseGate | None = None,
        receipt_prefix: str = "CPB",
        rng: random.Random | None = None,
    ):
        self.store = store
        self.competition = competition
        self.gate = gate or PhaseGate(store, competition)
        self.receipt_prefix = receipt_prefix
        self._rng = rng or random.Random()

    def resolve_unit(self, phase_id: int, criterion_id: str | None = None) -> tuple[Phase, UnitKey]:
        """Find the phase and unit a ballot targets.

        Raises:
            NotFound: Unknown phase or criterion, or a criterion not voted in
                this round
            InvalidInput: Criterion missing where ballots are per criterion,
                or given where they are not
            GateLocked: The criterion has been deactivated
        """
        phase = self.competition.get_phase(phase_id)
        if phase is None:
            raise NotFound(f"Unknown phase {phase_id}.")

        if not self.competition.criteria_scoped:
            if criterion_id is not None:
                raise InvalidInput("Ballots in this competition are not cast per criterion.")
            return phase, UnitKey(phase.id)

        if not criterion_id:
            raise InvalidInput("Please choose a criterion to vote on.")
        row = self.store.get_one(CRITERIA, {"id": criterion_id})
        if row is None:
            raise NotFound(f"Unknown criterion '{criterion_id}'.")
        criterion = Criterion.from_row(row)
        if not criterion.applies_to(phase.id):
            raise NotFound(f"{criterion.name} is not voted on in round {phase.id}.")
        if not criterion.is_active:
            raise GateLocked(f"{criterion.name} is closed to voting.")
        return phase, UnitKey(phase.id, criterion.id)

    def existing_ballot(self, voter_id: str, unit: UnitKey) -> Ballot | None:
        filters = {"voter_id": voter_id, "phase": unit.phase}
        if self.competition.criteria_scoped:
            filters["criterion"] = unit.criterion
        row = self.store.get_one(VOTES, filters)
        return Ballot.from_row(row) if row else None

    def ballots_for(self, voter_id: str) -> list[Ballot]:
        """A voter's ballot history, newest first."""
        rows = self.store.get(VOTES, {"voter_id": voter_id}, order=[("timestamp", True)])
        return [Ballot.from_row(row) for row in rows]

    def build_context(self, session: VoterSession) -> BallotContext:
        teams = [Team.from_row(row) for row in self.store.get(TEAMS, order=[("id", False)])]
        team_ids = [t.id for t in teams]
        if session.team_id not in team_ids:
            raise NotFound("Your team is no longer part of this competition.")
        return BallotContext(
            team_ids=team_ids,
            own_team_id=session.team_id,
            metric_ids=[m.id for m in self.competition.metrics],
            score_min=self.competition.score_min,
            score_max=self.competition.score_max,
        )

    def submit(
        self,
        session: VoterSession,
        phase: int,
        vote_data: Any,
        criterion: str | None = None,
        confirmed_teams: Iterable[int] | None = None,
    ) -> Receipt:
        """Validate and store one ballot, replacing the voter's earlier one.

        Args:
            session: The voter, as returned by resolve_voter
            phase: Phase (or round) ordinal
            vote_data: Ranking or slider payload
            criterion: Criterion id, for competitions voted per criterion
            confirmed_teams: Teams the voter locked in, where lock-in is required

        Returns:
            Receipt with the confirmation code and the stored ballot

        Raises:
            NotFound, InvalidInput, GateLocked, IncompleteBallot, StorageError
        """
        phase_info, unit = self.resolve_unit(phase, criterion)

        if self.store.get_one(VOTERS, {"voter_id": session.voter_id}) is None:
            raise NotFound("Voter not found. Please sign in again.")

        existing = self.existing_ballot(session.voter_id, unit)
        if not self.gate.accepts(unit, existing is not None):
            logger.warning("Rejected ballot of %s: %s is locked", session.voter_id, unit.label)
            raise GateLocked(f"Voting for {phase_info.name} is locked.")

        context = self.build_context(session)

        if self.competition.require_lock_in and phase_info.mode == VotingMode.SLIDER:
            confirmed = set()
            for team_id in confirmed_teams or ():
                try:
                    confirmed.add(int(team_id))
                except (TypeError, ValueError):
                    raise InvalidInput(f"Invalid team id in confirmed teams: {team_id!r}")
            if any(t not in confirmed for t in context.opponents):
                raise IncompleteBallot("Please lock in your scores for every team before submitting.")

        mode = get_scoring_mode(phase_info.mode)
        try:
            normalized = mode.validate(vote_data, context)
        except IncompleteBallot as e:
            logger.warning("Rejected ballot of %s for %s: %s", session.voter_id, unit.label, e)
            raise

        ballot = Ballot(
            voter_id=session.voter_id,
            team_id=session.team_id,
            phase=phase_info.id,
            vote_type=phase_info.mode,
            vote_data=normalized,
            criterion=unit.criterion,
            timestamp=utcnow(),
        )
        self.store.upsert(VOTES, ballot.to_row(), self.competition.conflict_keys)

        confirmation = (
            f"{self.receipt_prefix}-P{phase_info.id}-{session.team_code}-"
            f"{self._rng.randint(0, 9999):04d}"
        )
        logger.info(
            "Stored %s ballot of %s for %s%s",
            ballot.vote_type.value, session.voter_id, unit.label,
            " (replaced)" if existing else "",
        )
        return Receipt(confirmation=confirmation, ballot=ballot, replaced=existing is not None)
