"""Orchestrator: wire settings, store, gate, validator and tabulation together."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from tally.admin import AdminConsole
from tally.ballots import BallotValidator, Receipt
from tally.config import Settings, get_settings
from tally.defaults import build_competition, initialize_catalog
from tally.gate import PhaseGate, voting_units
from tally.identity import VoterSession, resolve_voter
from tally.models import Ballot, Competition, Leaderboard, Scope, UnitKey
from tally.monitoring import recent_ballots, team_participation, total_progress, voter_registry
from tally.store import open_store
from tally.store.base import CatalogStore
from tally.tabulate import MetricStats, Snapshot, metric_analytics

# Import stores to register them
from tally.store import memory  # noqa: F401
from tally.store import postgrest  # noqa: F401

logger = logging.getLogger(__name__)


@dataclass
class TallyService:
    """Entry point used by the HTTP handlers and scripts."""
    settings: Settings
    store: CatalogStore
    competition: Competition
    gate: PhaseGate
    validator: BallotValidator
    admin: AdminConsole

    def sign_in(self, team_code: str, name: str) -> VoterSession:
        return resolve_voter(self.store, team_code, name)

    def submit(
        self,
        session: VoterSession,
        phase: int,
        vote_data: Any,
        criterion: str | None = None,
        confirmed_teams: Iterable[int] | None = None,
    ) -> Receipt:
        return self.validator.submit(session, phase, vote_data, criterion, confirmed_teams)

    def voter_status(self, session: VoterSession) -> dict[str, Any]:
        """The voter's portal: phases on offer, their locks and the voter's ballots.

        Phases superseded by a later lock are left out unless the voter
        already voted in them. Each unit carries the voter's current ballot
        so a resubmission can start from it.
        """
        history = self.validator.ballots_for(session.voter_id)
        latest: dict[UnitKey, Ballot] = {}
        for ballot in history:
            latest.setdefault(ballot.unit, ballot)

        units = self.units()
        phases = []
        for phase in self.gate.visible_phases(b.phase for b in history):
            entries = []
            for unit in units:
                if unit.phase != phase.id:
                    continue
                ballot = latest.get(unit)
                entries.append({
                    "unit": unit.label,
                    "criterion": unit.criterion,
                    "is_locked": self.gate.is_locked(unit),
                    "has_voted": ballot is not None,
                    "ballot": ballot.to_row() if ballot else None,
                })
            phases.append({
                "phase": phase.id,
                "name": phase.name,
                "mode": phase.mode.value,
                "is_locked": self.gate.is_locked(UnitKey(phase.id)),
                "has_voted": any(e["has_voted"] for e in entries),
                "units": entries,
            })

        return {
            "voter": session.to_dict(),
            "phases": phases,
            "history": [b.to_row() for b in history],
        }

    def snapshot(self) -> Snapshot:
        return Snapshot.load(self.store)

    def units(self, snapshot: Snapshot | None = None) -> list[UnitKey]:
        snapshot = snapshot or self.snapshot()
        return voting_units(self.competition, snapshot.criteria)

    def results(self, phase: int | None = None, criterion: str | None = None) -> Leaderboard:
        """Grand total leaderboard, or the view restricted to a phase or criterion."""
        return self.snapshot().leaderboard(Scope(phase=phase, criterion=criterion))

    def analytics(self, snapshot: Snapshot | None = None) -> list[MetricStats]:
        snapshot = snapshot or self.snapshot()
        return metric_analytics(snapshot.teams, snapshot.ballots, self.competition)

    def dashboard(self, limit: int = 10) -> dict[str, Any]:
        """Everything the monitoring screen shows, from one snapshot."""
        snapshot = self.snapshot()
        units = self.units(snapshot)
        return {
            "progress": total_progress(snapshot.voters, snapshot.ballots, len(units)),
            "participation": {
                unit.label: [
                    p.to_dict()
                    for p in team_participation(
                        snapshot.teams, snapshot.voters, snapshot.ballots,
                        unit.phase, unit.criterion,
                    )
                ]
                for unit in units
            },
            "recent": recent_ballots(
                snapshot.ballots, snapshot.voters, snapshot.teams, self.competition, limit
            ),
            "registry": voter_registry(snapshot.voters, snapshot.ballots, units),
            "locks": [state.to_dict() for state in self.gate.states()],
        }


def build_service(
    settings: Settings | None = None,
    store: CatalogStore | None = None,
    seed: bool = True,
) -> TallyService:
    """Build a service from settings, opening the configured store.

    Args:
        settings: Defaults to the environment settings
        store: Use this store instead of opening ``STORE_URL``
        seed: Seed the default catalog if the store holds no teams
    """
    settings = settings or get_settings()
    if store is None:
        store = open_store(
            settings.STORE_URL,
            api_key=settings.STORE_API_KEY,
            timeout=settings.HTTP_TIMEOUT,
        )
    competition = build_competition(settings)
    if seed:
        initialize_catalog(store, competition)

    gate = PhaseGate(store, competition)
    validator = BallotValidator(store, competition, gate, receipt_prefix=settings.RECEIPT_PREFIX)
    admin = AdminConsole(store, competition, settings.ADMIN_PASSWORD, gate)
    logger.debug("Service ready on %s", settings.STORE_URL)
    return TallyService(
        settings=settings,
        store=store,
        competition=competition,
        gate=gate,
        validator=validator,
        admin=admin,
    )
