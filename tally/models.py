"""Core data models for the catalog, ballots and tabulation results."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Self


class VotingMode(str, Enum):
    """Ballot style used by a phase."""
    RANKING = "ranking"
    SLIDER = "slider"


def parse_timestamp(value: Any) -> datetime | None:
    """Read a stored timestamp (ISO string or datetime) as an aware datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value)
        # Accept 'Z' suffix
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Team:
    """A competing team. ``code`` doubles as the team's voter access token."""
    id: int
    name: str
    code: str

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Self:
        return cls(id=int(row["id"]), name=row["name"], code=row["code"])

    def to_row(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "code": self.code}

    def matches_code(self, code: str) -> bool:
        return self.code.upper() == code.strip().upper()


@dataclass
class Voter:
    voter_id: str
    name: str
    team_id: int

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Self:
        return cls(voter_id=row["voter_id"], name=row["name"], team_id=int(row["team_id"]))

    def to_row(self) -> dict[str, Any]:
        return {"voter_id": self.voter_id, "name": self.name, "team_id": self.team_id}


@dataclass
class Criterion:
    """An axis of evaluation for ranked ballots, scoped to a subset of rounds.

    Attributes:
        id: Stable identifier stored on every ballot cast under it
        rounds: Round ordinals this criterion is voted on in
        is_active: Inactive criteria accept no new ballots, but ballots
            already cast under them keep counting in results
    """
    id: str
    name: str
    icon: str = "⭐"
    rounds: list[int] = field(default_factory=lambda: [1, 2, 3, 4])
    description: str = ""
    display_order: int = 0
    is_active: bool = True

    def applies_to(self, round_number: int) -> bool:
        return round_number in self.rounds

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Self:
        return cls(
            id=row["id"],
            name=row["name"],
            icon=row.get("icon") or "⭐",
            rounds=sorted(int(r) for r in row.get("rounds") or []),
            description=row.get("description") or "",
            display_order=int(row.get("display_order") or 0),
            is_active=bool(row.get("is_active", True)),
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "icon": self.icon,
            "rounds": sorted(self.rounds),
            "description": self.description,
            "display_order": self.display_order,
            "is_active": self.is_active,
        }


@dataclass
class Metric:
    """A fixed slider metric. ``descriptions`` maps each score to its meaning."""
    id: str
    name: str
    question: str = ""
    descriptions: dict[int, str] = field(default_factory=dict)


@dataclass
class Phase:
    id: int
    name: str
    mode: VotingMode


@dataclass(frozen=True)
class UnitKey:
    """The unit a lock flag and a ballot are keyed on.

    ``phase`` is the ordinal of the phase (or round). ``criterion`` is only
    set for competitions where every round is voted per criterion.
    """
    phase: int
    criterion: str | None = None

    @property
    def label(self) -> str:
        if self.criterion is None:
            return f"P{self.phase}"
        return f"{self.criterion}-R{self.phase}"

    def round_level(self) -> Self:
        """The whole-round unit enclosing this one."""
        return type(self)(phase=self.phase)


@dataclass
class Ballot:
    """One voter's evaluation for one unit.

    Attributes:
        team_id: The voter's own team (never an evaluated team)
        vote_data: ``{"rankings": [team_id, ...]}`` for ranking ballots, or
            ``{"<team_id>-<metric_id>": score}`` for slider ballots
    """
    voter_id: str
    team_id: int
    phase: int
    vote_type: VotingMode
    vote_data: dict[str, Any]
    criterion: str | None = None
    timestamp: datetime | None = None

    @property
    def unit(self) -> UnitKey:
        return UnitKey(self.phase, self.criterion)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Self:
        """Build a ballot from a stored row.

        Rows written by the per-round criteria ballot table use ``round``
        instead of ``phase`` and keep the ranking in a bare ``rankings``
        column; both are read into the common shape.
        """
        phase = row.get("phase")
        if phase is None:
            phase = row.get("round")
        vote_data = row.get("vote_data")
        if vote_data is None and row.get("rankings") is not None:
            vote_data = {"rankings": list(row["rankings"])}
        return cls(
            voter_id=row["voter_id"],
            team_id=int(row["team_id"]) if row.get("team_id") is not None else 0,
            phase=int(phase),
            vote_type=VotingMode(row.get("vote_type") or VotingMode.RANKING.value),
            vote_data=dict(vote_data or {}),
            criterion=row.get("criterion"),
            timestamp=parse_timestamp(row.get("timestamp")),
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "voter_id": self.voter_id,
            "team_id": self.team_id,
            "phase": self.phase,
            "criterion": self.criterion,
            "vote_type": self.vote_type.value,
            "vote_data": self.vote_data,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


@dataclass
class BonusPoint:
    """A manual, phase-independent adjustment to a team's grand total."""
    id: int | None
    team_id: int
    points: int
    reason: str
    awarded_by: str = "Admin"
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Self:
        return cls(
            id=row.get("id"),
            team_id=int(row["team_id"]),
            points=int(row["points"]),
            reason=row.get("reason") or "",
            awarded_by=row.get("awarded_by") or "Admin",
            created_at=parse_timestamp(row.get("created_at")),
        )

    def to_row(self) -> dict[str, Any]:
        row = {
            "team_id": self.team_id,
            "points": self.points,
            "reason": self.reason,
            "awarded_by": self.awarded_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if self.id is not None:
            row["id"] = self.id
        return row


@dataclass
class Competition:
    """Variant configuration shared by the validator, gate and tabulation.

    Attributes:
        phases: Ordered phases (rounds), each with its voting mode
        metrics: Slider metrics, active in every slider phase
        allow_edit_when_locked: Let voters who already hold a ballot for a
            locked unit resubmit it
        require_lock_in: Slider ballots must arrive with every opponent team
            confirmed by the voter
        criteria_scoped: Ballots are keyed per (round, criterion) rather than
            per phase
    """
    phases: list[Phase]
    metrics: list[Metric]
    score_min: int = 1
    score_max: int = 5
    allow_edit_when_locked: bool = False
    require_lock_in: bool = False
    criteria_scoped: bool = False

    @property
    def score_range(self) -> range:
        return range(self.score_min, self.score_max + 1)

    @property
    def conflict_keys(self) -> tuple[str, ...]:
        if self.criteria_scoped:
            return ("voter_id", "phase", "criterion")
        return ("voter_id", "phase")

    def get_phase(self, phase_id: int) -> Phase | None:
        for phase in self.phases:
            if phase.id == phase_id:
                return phase
        return None

    def phases_with_mode(self, mode: VotingMode) -> list[Phase]:
        return [p for p in self.phases if p.mode == mode]


@dataclass(frozen=True)
class Scope:
    """Restriction of the ballot set for by-phase / by-criterion views.

    The default scope covers everything, and is the only one that folds in
    bonus points.
    """
    phase: int | None = None
    criterion: str | None = None
    mode: VotingMode | None = None

    @property
    def is_unscoped(self) -> bool:
        return self.phase is None and self.criterion is None and self.mode is None

    def matches(self, ballot: Ballot) -> bool:
        if self.phase is not None and ballot.phase != self.phase:
            return False
        if self.criterion is not None and ballot.criterion != self.criterion:
            return False
        if self.mode is not None and ballot.vote_type != self.mode:
            return False
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "phase": self.phase,
            "criterion": self.criterion,
            "mode": self.mode.value if self.mode else None,
        }


@dataclass
class TeamScore:
    """Running totals for one team while ballots are folded."""
    team: Team
    slider_points: int = 0
    ranking_points: int = 0
    bonus_points: int = 0
    breakdown: dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return self.slider_points + self.ranking_points + self.bonus_points

    def add(self, key: str, points: int) -> None:
        self.breakdown[key] = self.breakdown.get(key, 0) + points


@dataclass
class Standing:
    """A team's placement in a leaderboard.

    Attributes:
        rank: 1-indexed placement; equal totals still get distinct ranks
        tied: Whether another team has the same total
    """
    score: TeamScore
    rank: int
    tied: bool

    @property
    def team(self) -> Team:
        return self.score.team

    @property
    def total(self) -> int:
        return self.score.total

    def to_dict(self) -> dict[str, Any]:
        return {
            "rank": self.rank,
            "tied": self.tied,
            "team_id": self.team.id,
            "team": self.team.name,
            "code": self.team.code,
            "slider_points": self.score.slider_points,
            "ranking_points": self.score.ranking_points,
            "bonus_points": self.score.bonus_points,
            "total": self.total,
            "breakdown": dict(self.score.breakdown),
        }

    @classmethod
    def build_ranking(cls, groups: list[list[TeamScore]]) -> list[Self]:
        """Build standings from groups of equal totals, best group first.

        Members of a group are expected in tie-break order already; each gets
        its own rank and is flagged as tied when the group has several
        members.
        """
        standings = []
        rank = 1
        for group in groups:
            tied = len(group) > 1
            for score in group:
                standings.append(cls(score=score, rank=rank, tied=tied))
                rank += 1
        return standings


@dataclass
class Leaderboard:
    """Result of a tabulation run."""
    scope: Scope
    standings: list[Standing]
    details: dict[str, Any] = field(default_factory=dict)

    def get_place(self, team_id: int) -> int | None:
        """Get the 1-indexed placement for a team, or None if not found."""
        for s in self.standings:
            if s.team.id == team_id:
                return s.rank
        return None

    def get(self, team_id: int) -> Standing | None:
        for s in self.standings:
            if s.team.id == team_id:
                return s
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "scope": self.scope.to_dict(),
            "standings": [s.to_dict() for s in self.standings],
            "details": self.details,
        }
