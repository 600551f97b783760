"""Lock flags gating ballot submission per phase, round or criterion."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Self

from tally.errors import NotFound
from tally.models import Competition, Criterion, Phase, UnitKey, parse_timestamp, utcnow
from tally.store.base import CATALOG_CONFLICT_KEYS, PHASE_LOCKS, CatalogStore, Row

logger = logging.getLogger(__name__)


class GateState(str, Enum):
    OPEN = "open"
    LOCKED = "locked"


@dataclass
class LockState:
    """Stored lock flag for one unit.

    ``version`` counts toggles. It is informational only: concurrent
    toggles are not compared against it and the last write wins.
    """
    phase: int
    criterion: str | None = None
    is_locked: bool = False
    updated_at: datetime | None = None
    version: int = 0
    phase_name: str = ""

    @property
    def unit(self) -> UnitKey:
        return UnitKey(self.phase, self.criterion)

    @property
    def state(self) -> GateState:
        return GateState.LOCKED if self.is_locked else GateState.OPEN

    @classmethod
    def from_row(cls, row: Row) -> Self:
        # Older round lock rows carry ``round`` instead of ``phase``
        phase = row.get("phase")
        if phase is None:
            phase = row.get("round")
        return cls(
            phase=int(phase),
            criterion=row.get("criterion"),
            is_locked=bool(row.get("is_locked", False)),
            updated_at=parse_timestamp(row.get("updated_at")),
            version=int(row.get("version") or 0),
            phase_name=row.get("phase_name") or "",
        )

    def to_row(self) -> Row:
        return {
            "unit": self.unit.label,
            "phase": self.phase,
            "criterion": self.criterion,
            "phase_name": self.phase_name,
            "is_locked": self.is_locked,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "version": self.version,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "phase": self.phase,
            "criterion": self.criterion,
            "unit": self.unit.label,
            "phase_name": self.phase_name,
            "state": self.state.value,
            "is_locked": self.is_locked,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "version": self.version,
        }


def voting_units(competition: Competition, criteria: Iterable[Criterion] = ()) -> list[UnitKey]:
    """Every unit a voter can hold a ballot for.

    One unit per phase, or one per (round, applicable criterion) where the
    competition is voted per criterion. Inactive criteria still count, since
    their ballots remain part of the record.
    """
    if not competition.criteria_scoped:
        return [UnitKey(phase.id) for phase in competition.phases]
    ordered = sorted(criteria, key=lambda c: (c.display_order, c.id))
    return [
        UnitKey(phase.id, criterion.id)
        for phase in competition.phases
        for criterion in ordered
        if criterion.applies_to(phase.id)
    ]


class PhaseGate:
    """OPEN/LOCKED state machine over competition units.

    Every unit starts OPEN and only changes through ``toggle``, which the
    admin console calls on behalf of an authenticated administrator. A unit
    without a stored row is OPEN.
    """

    def __init__(self, store: CatalogStore, competition: Competition):
        self.store = store
        self.competition = competition

    def _check_unit(self, unit: UnitKey) -> Phase:
        phase = self.competition.get_phase(unit.phase)
        if phase is None:
            raise NotFound(f"Unknown phase {unit.phase}.")
        return phase

    def get_state(self, unit: UnitKey) -> LockState:
        row = self.store.get_one(PHASE_LOCKS, {"unit": unit.label})
        if row is None:
            phase = self.competition.get_phase(unit.phase)
            return LockState(
                phase=unit.phase,
                criterion=unit.criterion,
                phase_name=phase.name if phase else "",
            )
        return LockState.from_row(row)

    def states(self) -> list[LockState]:
        rows = self.store.get(PHASE_LOCKS, order=[("phase", False), ("criterion", False)])
        return [LockState.from_row(row) for row in rows]

    def is_locked(self, unit: UnitKey) -> bool:
        """A unit is locked when its own flag is set, or its whole round is."""
        if self.get_state(unit).is_locked:
            return True
        if unit.criterion is not None:
            return self.get_state(unit.round_level()).is_locked
        return False

    def is_open(self, unit: UnitKey) -> bool:
        return not self.is_locked(unit)

    def accepts(
        self,
        unit: UnitKey,
        has_prior_ballot: bool,
        allow_edit_when_locked: bool | None = None,
    ) -> bool:
        """Whether a ballot for ``unit`` may be written right now."""
        if allow_edit_when_locked is None:
            allow_edit_when_locked = self.competition.allow_edit_when_locked
        if self.is_open(unit):
            return True
        return allow_edit_when_locked and has_prior_ballot

    def toggle(self, unit: UnitKey) -> LockState:
        self._check_unit(unit)
        current = self.get_state(unit)
        updated = LockState(
            phase=unit.phase,
            criterion=unit.criterion,
            is_locked=not current.is_locked,
            updated_at=utcnow(),
            version=current.version + 1,
            phase_name=current.phase_name,
        )
        self.store.upsert(PHASE_LOCKS, updated.to_row(), CATALOG_CONFLICT_KEYS[PHASE_LOCKS])
        logger.info("%s is now %s", unit.label, updated.state.value)
        return updated

    def ensure_units(self, units: Iterable[UnitKey]) -> int:
        """Store an OPEN row for each unit that has none. Returns how many were added."""
        added = 0
        for unit in units:
            phase = self._check_unit(unit)
            if self.store.get_one(PHASE_LOCKS, {"unit": unit.label}):
                continue
            state = LockState(phase=unit.phase, criterion=unit.criterion, phase_name=phase.name)
            self.store.upsert(PHASE_LOCKS, state.to_row(), CATALOG_CONFLICT_KEYS[PHASE_LOCKS])
            added += 1
        return added

    def visible_phases(self, voted_phases: Iterable[int] = ()) -> list[Phase]:
        """Phases offered for ballot selection.

        Phases are meant to be voted in order: once a later phase is locked,
        earlier phases drop out of the selection unless the voter already has
        a ballot there.
        """
        voted = set(voted_phases)
        locked = {s.phase for s in self.states() if s.is_locked and s.criterion is None}
        visible = []
        for phase in self.competition.phases:
            superseded = any(other > phase.id for other in locked)
            if superseded and phase.id not in voted:
                continue
            visible.append(phase)
        return visible
