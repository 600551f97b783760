"""Ballot scoring modes."""

from tally.errors import InvalidInput
from tally.models import VotingMode

from .base import BallotContext, ScoringMode

# Scoring mode registry - import modes here to register them
_scoring_modes: dict[VotingMode, type[ScoringMode]] = {}


def register_scoring_mode(mode_class: type[ScoringMode]) -> type[ScoringMode]:
    """Decorator to register a scoring mode class under its ``MODE`` tag."""
    _scoring_modes[mode_class.MODE] = mode_class
    return mode_class


def get_scoring_mode(mode: VotingMode | str) -> ScoringMode:
    """Return an instance of the scoring mode registered for ``mode``."""
    try:
        return _scoring_modes[VotingMode(mode)]()
    except (KeyError, ValueError):
        raise InvalidInput(f"Unsupported vote type: {mode}")


def get_all_scoring_modes() -> list[ScoringMode]:
    """Return instances of all registered scoring modes."""
    return [mode_class() for mode_class in _scoring_modes.values()]


__all__ = [
    "BallotContext",
    "ScoringMode",
    "get_all_scoring_modes",
    "get_scoring_mode",
    "register_scoring_mode",
]
