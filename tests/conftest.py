"""Shared test helpers."""

from datetime import datetime, timedelta, timezone

import pytest

from tally.config import Settings
from tally.defaults import DEFAULT_METRICS, DEFAULT_TEAMS
from tally.models import Ballot, Team, VotingMode
from tally.service import TallyService, build_service
from tally.store.memory import MemoryStore

METRIC_IDS = [m.id for m in DEFAULT_METRICS]

BASE_TIME = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_teams(names: str = "ABCDE") -> list[Team]:
    """One team per letter, ids counting from 1, code ``CODE<letter>``."""
    return [Team(id=i, name=name, code=f"CODE{name}") for i, name in enumerate(names, start=1)]


def at(minutes: int) -> datetime:
    return BASE_TIME + timedelta(minutes=minutes)


def ranking_ballot(
    voter_id: str,
    team_id: int,
    rankings: list[int],
    phase: int = 4,
    criterion: str | None = None,
    minutes: int = 0,
) -> Ballot:
    return Ballot(
        voter_id=voter_id,
        team_id=team_id,
        phase=phase,
        vote_type=VotingMode.RANKING,
        vote_data={"rankings": list(rankings)},
        criterion=criterion,
        timestamp=at(minutes),
    )


def slider_ballot(voter_id: str, team_id: int, scores: dict[str, int], phase: int = 1, minutes: int = 0) -> Ballot:
    return Ballot(
        voter_id=voter_id,
        team_id=team_id,
        phase=phase,
        vote_type=VotingMode.SLIDER,
        vote_data=dict(scores),
        timestamp=at(minutes),
    )


def full_slider_data(
    own_team_id: int,
    score: int = 3,
    team_ids: list[int] | None = None,
    metric_ids: list[str] | None = None,
) -> dict[str, int]:
    """A complete slider payload giving every opponent ``score`` on every metric."""
    team_ids = team_ids or [t.id for t in DEFAULT_TEAMS]
    metric_ids = metric_ids or METRIC_IDS
    return {
        f"{team_id}-{metric_id}": score
        for team_id in team_ids
        if team_id != own_team_id
        for metric_id in metric_ids
    }


def opponents_of(own_team_id: int) -> list[int]:
    return [t.id for t in DEFAULT_TEAMS if t.id != own_team_id]


def make_settings(**overrides) -> Settings:
    """Settings that ignore the environment and any ``.env`` file."""
    values = {"ADMIN_PASSWORD": "letmein", "STORE_URL": "memory://"}
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_service(**overrides) -> TallyService:
    """Service over a fresh, seeded in-memory store."""
    return build_service(make_settings(**overrides), store=MemoryStore())


def totals(leaderboard) -> list[tuple[str, int]]:
    return [(s.team.name, s.total) for s in leaderboard.standings]


@pytest.fixture
def service():
    return make_service()


@pytest.fixture
def criteria_service():
    return make_service(CRITERIA_SCOPED=True)
