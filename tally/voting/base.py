"""Abstract base class for ballot scoring modes."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from tally.models import Ballot, VotingMode


@dataclass
class BallotContext:
    """What a ballot is checked against.

    Attributes:
        team_ids: Every team currently in the competition
        own_team_id: The voter's team, which they never evaluate
        metric_ids: Active slider metrics
    """
    team_ids: list[int]
    own_team_id: int
    metric_ids: list[str]
    score_min: int = 1
    score_max: int = 5

    @property
    def opponents(self) -> list[int]:
        return [t for t in self.team_ids if t != self.own_team_id]


class ScoringMode(ABC):
    """Abstract base class for ballot styles.

    Each mode knows the payload shape of its ballots and how a ballot turns
    into points per team. Modes are registered via the
    @register_scoring_mode decorator in tally/voting/__init__.py and picked
    by the ``VotingMode`` tag of a phase or ballot.
    """

    MODE: VotingMode

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name of this ballot style."""
        pass

    @property
    def description(self) -> str:
        """Optional description of how ballots of this style score."""
        return ""

    @abstractmethod
    def validate(self, vote_data: Any, context: BallotContext) -> dict[str, Any]:
        """Check a proposed ballot payload.

        Args:
            vote_data: Payload as submitted by the voter
            context: Teams, metrics and score range in force

        Returns:
            The normalized payload to store

        Raises:
            IncompleteBallot: If an entry is missing, duplicated, unknown or
                out of range
        """
        pass

    @abstractmethod
    def score(self, ballot: Ballot, team_ids: set[int]) -> dict[int, int]:
        """Points this ballot gives to each team.

        Entries naming a team outside ``team_ids`` are skipped.
        """
        pass
