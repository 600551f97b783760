"""Participation and progress views for the admin dashboard."""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from tally.models import Ballot, Competition, Team, UnitKey, Voter


def _percentage(done: int, expected: int) -> int:
    return round(done * 100 / expected) if expected > 0 else 0


@dataclass
class Participation:
    """How many of a team's voters have a ballot for one unit."""
    team: Team
    voters: int
    voted: int

    @property
    def expected(self) -> int:
        # One ballot per unit per voter
        return self.voters

    @property
    def percentage(self) -> int:
        return _percentage(self.voted, self.expected)

    def to_dict(self) -> dict[str, Any]:
        return {
            "team_id": self.team.id,
            "team": self.team.name,
            "voters": self.voters,
            "voted": self.voted,
            "expected": self.expected,
            "percentage": self.percentage,
        }


def team_participation(
    teams: list[Team],
    voters: list[Voter],
    ballots: Iterable[Ballot],
    phase: int,
    criterion: str | None = None,
) -> list[Participation]:
    unit = UnitKey(phase, criterion)
    voted_ids = {b.voter_id for b in ballots if b.unit == unit}
    rows = []
    for team in teams:
        team_voters = [v for v in voters if v.team_id == team.id]
        rows.append(Participation(
            team=team,
            voters=len(team_voters),
            voted=sum(1 for v in team_voters if v.voter_id in voted_ids),
        ))
    return rows


def total_progress(voters: list[Voter], ballots: list[Ballot], unit_count: int) -> dict[str, int]:
    """Ballots cast against the number expected if every voter voted every unit.

    Ballots of removed voters still count in results but not here.
    """
    voter_ids = {v.voter_id for v in voters}
    total = sum(1 for b in ballots if b.voter_id in voter_ids)
    expected = len(voters) * unit_count
    return {
        "total": total,
        "expected": expected,
        "percentage": _percentage(total, expected),
    }


def recent_ballots(
    ballots: list[Ballot],
    voters: list[Voter],
    teams: list[Team],
    competition: Competition,
    limit: int = 10,
) -> list[dict[str, Any]]:
    """Newest ballots first, annotated with voter, team and phase names."""
    names = {v.voter_id: v.name for v in voters}
    team_names = {t.id: t.name for t in teams}
    ordered = sorted(
        ballots,
        key=lambda b: b.timestamp.timestamp() if b.timestamp else 0.0,
        reverse=True,
    )
    feed = []
    for ballot in ordered[:limit]:
        phase = competition.get_phase(ballot.phase)
        feed.append({
            "voter_id": ballot.voter_id,
            "voter_name": names.get(ballot.voter_id, "Unknown"),
            "team_name": team_names.get(ballot.team_id, "Unknown"),
            "phase": ballot.phase,
            "phase_name": phase.name if phase else f"Phase {ballot.phase}",
            "criterion": ballot.criterion,
            "vote_type": ballot.vote_type.value,
            "timestamp": ballot.timestamp.isoformat() if ballot.timestamp else None,
        })
    return feed


def voter_registry(
    voters: list[Voter],
    ballots: Iterable[Ballot],
    units: list[UnitKey],
    team_id: int | None = None,
) -> list[dict[str, Any]]:
    """Per voter, whether they hold a ballot for each unit.

    Args:
        team_id: Only list voters of this team
    """
    cast = {(b.voter_id, b.unit) for b in ballots}
    registry = []
    for voter in voters:
        if team_id is not None and voter.team_id != team_id:
            continue
        status = {unit.label: (voter.voter_id, unit) in cast for unit in units}
        registry.append({
            "voter_id": voter.voter_id,
            "name": voter.name,
            "team_id": voter.team_id,
            "units": status,
            "completed": sum(status.values()),
        })
    return registry
