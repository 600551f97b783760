"""Tabulation engine: fold ballots and bonus points into a leaderboard."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from itertools import groupby
from typing import Any, Self

from tally.models import (
    Ballot,
    BonusPoint,
    Competition,
    Criterion,
    Leaderboard,
    Scope,
    Standing,
    Team,
    TeamScore,
    UnitKey,
    Voter,
    VotingMode,
)
from tally.store.base import BONUS_POINTS, CRITERIA, TEAMS, VOTERS, VOTES, CatalogStore
from tally.voting import get_scoring_mode
from tally.voting.slider import iter_scores

# Import scoring modes to register them
from tally.voting import ranking  # noqa: F401
from tally.voting import slider  # noqa: F401

logger = logging.getLogger(__name__)

BONUS_KEY = "bonus"

TIE_BREAK = "Equal totals are ordered by lower team id and flagged as tied"


def _unit_sort_key(unit: UnitKey) -> tuple[int, str]:
    return unit.phase, unit.criterion or ""


def tabulate(
    teams: list[Team],
    ballots: Iterable[Ballot],
    bonuses: Iterable[BonusPoint] = (),
    scope: Scope = Scope(),
) -> Leaderboard:
    """Compute standings for every team from the ballots in scope.

    Teams are ranked by total descending. Equal totals are ordered by lower
    team id, each team still getting its own rank, and flagged as tied.

    Args:
        teams: The current team set. Ballot entries naming any other team
            are ignored.
        ballots: All ballots; those outside ``scope`` are skipped. Ballots
            under deactivated criteria still count.
        bonuses: Bonus entries, folded in only for the unscoped view
        scope: Restriction to a phase, criterion or voting mode

    Returns:
        Leaderboard whose breakdowns are keyed by unit label (``P1``,
        ``creativity-R2``) plus ``bonus``
    """
    scores = {team.id: TeamScore(team=team) for team in teams}
    known = set(scores)
    units: set[UnitKey] = set()
    ballot_count = 0

    for ballot in ballots:
        if not scope.matches(ballot):
            continue
        ballot_count += 1
        units.add(ballot.unit)
        mode = get_scoring_mode(ballot.vote_type)
        for team_id, points in mode.score(ballot, known).items():
            team_score = scores[team_id]
            if ballot.vote_type == VotingMode.SLIDER:
                team_score.slider_points += points
            else:
                team_score.ranking_points += points
            team_score.add(ballot.unit.label, points)

    keys = [unit.label for unit in sorted(units, key=_unit_sort_key)]

    bonus_count = 0
    if scope.is_unscoped:
        for bonus in bonuses:
            team_score = scores.get(bonus.team_id)
            if team_score is None:
                logger.warning("Ignoring bonus %s for unknown team %s", bonus.id, bonus.team_id)
                continue
            team_score.bonus_points += bonus.points
            team_score.add(BONUS_KEY, bonus.points)
            bonus_count += 1
        keys.append(BONUS_KEY)

    # Every team reports every column, zero where nothing was received
    for team_score in scores.values():
        team_score.breakdown = {key: team_score.breakdown.get(key, 0) for key in keys}

    ordered = sorted(scores.values(), key=lambda s: (-s.total, s.team.id))
    groups = [list(group) for _, group in groupby(ordered, key=lambda s: s.total)]

    return Leaderboard(
        scope=scope,
        standings=Standing.build_ranking(groups),
        details={
            "ballot_count": ballot_count,
            "bonus_count": bonus_count,
            "columns": keys,
            "tie_break": TIE_BREAK,
        },
    )


@dataclass
class MetricStats:
    """Score statistics for one team on one metric in one phase."""
    team_id: int
    phase: int
    metric_id: str
    total: int = 0
    vote_count: int = 0
    distribution: dict[int, int] = field(default_factory=dict)

    @property
    def mean(self) -> float:
        if not self.vote_count:
            return 0.0
        return self.total / self.vote_count

    def to_dict(self) -> dict[str, Any]:
        return {
            "team_id": self.team_id,
            "phase": self.phase,
            "metric_id": self.metric_id,
            "total": self.total,
            "mean": round(self.mean, 2),
            "vote_count": self.vote_count,
            "distribution": {str(k): v for k, v in self.distribution.items()},
        }


def metric_stats(
    ballots: Iterable[Ballot],
    team_id: int,
    phase: int,
    metric_id: str,
    score_range: range = range(1, 6),
) -> MetricStats:
    """Total, mean and per-score distribution of one team's scores on one metric."""
    stats = MetricStats(
        team_id=team_id,
        phase=phase,
        metric_id=metric_id,
        distribution={score: 0 for score in score_range},
    )
    for ballot in ballots:
        if ballot.phase != phase or ballot.vote_type != VotingMode.SLIDER:
            continue
        for scored_team, scored_metric, score in iter_scores(ballot):
            if scored_team == team_id and scored_metric == metric_id:
                stats.total += score
                stats.vote_count += 1
                stats.distribution[score] = stats.distribution.get(score, 0) + 1
    return stats


def metric_analytics(
    teams: list[Team],
    ballots: Iterable[Ballot],
    competition: Competition,
) -> list[MetricStats]:
    """One MetricStats per team, slider phase and metric."""
    slider_ballots = [b for b in ballots if b.vote_type == VotingMode.SLIDER]
    return [
        metric_stats(slider_ballots, team.id, phase.id, metric.id, competition.score_range)
        for phase in competition.phases_with_mode(VotingMode.SLIDER)
        for team in teams
        for metric in competition.metrics
    ]


@dataclass
class Snapshot:
    """Full copy of the tables tabulation reads."""
    teams: list[Team]
    ballots: list[Ballot]
    bonuses: list[BonusPoint]
    criteria: list[Criterion]
    voters: list[Voter]

    @classmethod
    def load(cls, store: CatalogStore) -> Self:
        return cls(
            teams=[Team.from_row(r) for r in store.get(TEAMS, order=[("id", False)])],
            ballots=[Ballot.from_row(r) for r in store.get(VOTES, order=[("timestamp", True)])],
            bonuses=[
                BonusPoint.from_row(r)
                for r in store.get(BONUS_POINTS, order=[("created_at", True)])
            ],
            criteria=[
                Criterion.from_row(r)
                for r in store.get(CRITERIA, order=[("display_order", False)])
            ],
            voters=[Voter.from_row(r) for r in store.get(VOTERS, order=[("name", False)])],
        )

    def leaderboard(self, scope: Scope = Scope()) -> Leaderboard:
        return tabulate(self.teams, self.ballots, self.bonuses, scope)
