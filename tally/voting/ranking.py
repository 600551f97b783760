"""Ranked-choice ballots."""

import logging
from typing import Any

from tally.errors import IncompleteBallot
from tally.models import Ballot, VotingMode
from tally.voting import register_scoring_mode
from tally.voting.base import BallotContext, ScoringMode

logger = logging.getLogger(__name__)


@register_scoring_mode
class RankingMode(ScoringMode):
    """Ranked-choice ballot: the voter orders every other team.

    Each rank position awards points:
    - 1st place = k+1 points
    - 2nd place = k points
    - ...
    - Last place = 2 points

    Where k is the number of ranked teams (every team but the voter's own).
    With four opponents a single ballot hands out 5+4+3+2 = 14 points.
    Points are summed across all ballots in scope.
    """

    MODE = VotingMode.RANKING

    @property
    def name(self) -> str:
        return "Ranked Choice"

    @property
    def description(self) -> str:
        return "1st = k+1 pts, 2nd = k pts, ..., last = 2 pts, for k ranked teams"

    @staticmethod
    def points_for(position: int, ranked_count: int) -> int:
        """Points for a 0-indexed position on a ballot ranking ``ranked_count`` teams."""
        return ranked_count + 1 - position

    @classmethod
    def points_per_ballot(cls, ranked_count: int) -> int:
        return sum(cls.points_for(i, ranked_count) for i in range(ranked_count))

    @staticmethod
    def parse_team_id(value: Any) -> int:
        """Read a ranked team id, accepting ints and digit strings only."""
        if isinstance(value, bool):
            raise IncompleteBallot("The ranking contains an invalid team id.")
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.strip().isdigit():
            return int(value)
        raise IncompleteBallot("The ranking contains an invalid team id.")

    def validate(self, vote_data: Any, context: BallotContext) -> dict[str, Any]:
        rankings = vote_data.get("rankings") if isinstance(vote_data, dict) else None
        if not isinstance(rankings, list):
            raise IncompleteBallot("A ranking ballot must list the teams in order.")

        ordered = [self.parse_team_id(team_id) for team_id in rankings]

        unknown = [t for t in ordered if t not in context.team_ids]
        if unknown:
            raise IncompleteBallot(f"The ranking names unknown teams: {unknown}")
        if context.own_team_id in ordered:
            raise IncompleteBallot("You cannot rank your own team.")
        if len(set(ordered)) != len(ordered):
            raise IncompleteBallot("Each team may appear only once in the ranking.")

        missing = [t for t in context.opponents if t not in ordered]
        if missing:
            raise IncompleteBallot("Please rank all teams before submitting.")

        return {"rankings": ordered}

    def score(self, ballot: Ballot, team_ids: set[int]) -> dict[int, int]:
        rankings = ballot.vote_data.get("rankings") or []
        scores: dict[int, int] = {}
        for position, team_id in enumerate(rankings):
            points = self.points_for(position, len(rankings))
            try:
                team_id = int(team_id)
            except (TypeError, ValueError):
                team_id = None
            if team_id not in team_ids:
                logger.warning(
                    "Ignoring ranking entry %r on ballot of %s for %s",
                    rankings[position], ballot.voter_id, ballot.unit.label,
                )
                continue
            scores[team_id] = scores.get(team_id, 0) + points
        return scores
