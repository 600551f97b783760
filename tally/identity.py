"""Resolve a team code and display name into a voter session."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from tally.errors import InvalidCredential, InvalidInput, NotFound
from tally.models import Team, Voter, utcnow
from tally.store.base import TEAMS, VOTERS, CatalogStore

logger = logging.getLogger(__name__)


@dataclass
class VoterSession:
    """The identity a voter submits ballots under."""
    voter_id: str
    name: str
    team_id: int
    team_name: str
    team_code: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "voter_id": self.voter_id,
            "name": self.name,
            "team_id": self.team_id,
            "team_name": self.team_name,
            "team_code": self.team_code,
        }


def make_voter_id(team_code: str, name: str, now: datetime) -> str:
    """Build ``<CODE>-<NAME>-<last 6 digits of the epoch millis>``."""
    millis = str(int(now.timestamp() * 1000))
    return f"{team_code}-{name.upper()}-{millis[-6:]}"


def find_team_by_code(store: CatalogStore, team_code: str) -> Team:
    """Case-insensitive exact match on the team code."""
    code = (team_code or "").strip()
    if code:
        for row in store.get(TEAMS):
            team = Team.from_row(row)
            if team.matches_code(code):
                return team
    raise InvalidCredential("Invalid team code. Please check and try again.")


def resolve_voter(
    store: CatalogStore,
    team_code: str,
    display_name: str,
    now: datetime | None = None,
) -> VoterSession:
    """Authenticate a voter by team code and name.

    A voter who comes back with the same name on the same team gets their
    earlier identity, and with it their earlier ballots.

    Args:
        store: Catalog store
        team_code: The team's access code, in any case
        display_name: Free text name; surrounding whitespace is dropped
        now: Clock override used when minting a new voter id

    Returns:
        VoterSession for the existing or newly created voter

    Raises:
        InvalidCredential: If no team has this code
        InvalidInput: If the name is empty
        StorageError: If the store fails for a reason other than a missing row
    """
    team = find_team_by_code(store, team_code)

    name = (display_name or "").strip()
    if not name:
        raise InvalidInput("Please enter your name.")

    try:
        row = store.get_one(VOTERS, {"name": name, "team_id": team.id})
    except NotFound:
        row = None

    if row is not None:
        voter = Voter.from_row(row)
    else:
        voter = Voter(
            voter_id=make_voter_id(team.code, name, now or utcnow()),
            name=name,
            team_id=team.id,
        )
        store.insert(VOTERS, voter.to_row())
        logger.info("Registered voter %s for team %s", voter.voter_id, team.name)

    return VoterSession(
        voter_id=voter.voter_id,
        name=voter.name,
        team_id=team.id,
        team_name=team.name,
        team_code=team.code,
    )
