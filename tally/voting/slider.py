"""Per-metric slider ballots."""

import logging
from collections.abc import Iterator
from typing import Any

from tally.errors import IncompleteBallot
from tally.models import Ballot, VotingMode
from tally.voting import register_scoring_mode
from tally.voting.base import BallotContext, ScoringMode

logger = logging.getLogger(__name__)


def score_key(team_id: int, metric_id: str) -> str:
    return f"{team_id}-{metric_id}"


def parse_score_key(key: str) -> tuple[int, str] | None:
    """Split a ``"<team_id>-<metric_id>"`` key, or None if it is malformed."""
    team_part, sep, metric_id = str(key).partition("-")
    if not sep or not metric_id:
        return None
    try:
        return int(team_part), metric_id
    except ValueError:
        return None


def iter_scores(ballot: Ballot) -> Iterator[tuple[int, str, int]]:
    """Yield (team_id, metric_id, score) for each readable entry of a slider ballot."""
    for key, value in ballot.vote_data.items():
        parsed = parse_score_key(key)
        if parsed is None or isinstance(value, bool):
            continue
        try:
            score = int(value)
        except (TypeError, ValueError):
            continue
        yield parsed[0], parsed[1], score


@register_scoring_mode
class SliderMode(ScoringMode):
    """Slider ballot: every other team scored on every metric.

    A team's slider points are the plain sum of every score it received,
    whichever voter or metric it came from. Two voters scoring the same
    team 3 and 5 on one metric contribute 8.
    """

    MODE = VotingMode.SLIDER

    @property
    def name(self) -> str:
        return "Metric Sliders"

    @property
    def description(self) -> str:
        return "Sum of all scores received across metrics and voters"

    def validate(self, vote_data: Any, context: BallotContext) -> dict[str, Any]:
        if not isinstance(vote_data, dict):
            raise IncompleteBallot("A slider ballot must score every team on every metric.")

        expected = [
            score_key(team_id, metric_id)
            for team_id in context.opponents
            for metric_id in context.metric_ids
        ]
        provided = {str(k): v for k, v in vote_data.items()}

        missing = [k for k in expected if k not in provided]
        if missing:
            raise IncompleteBallot(f"Missing scores for: {', '.join(missing)}")
        extra = sorted(set(provided) - set(expected))
        if extra:
            raise IncompleteBallot(f"Unexpected score entries: {', '.join(extra)}")

        normalized = {}
        for key in expected:
            value = provided[key]
            if isinstance(value, bool) or not isinstance(value, int):
                raise IncompleteBallot(f"Score for {key} must be a whole number.")
            if not context.score_min <= value <= context.score_max:
                raise IncompleteBallot(
                    f"Score for {key} must be between "
                    f"{context.score_min} and {context.score_max}."
                )
            normalized[key] = value
        return normalized

    def score(self, ballot: Ballot, team_ids: set[int]) -> dict[int, int]:
        scores: dict[int, int] = {}
        for team_id, metric_id, value in iter_scores(ballot):
            if team_id not in team_ids:
                logger.warning(
                    "Ignoring score for unknown team %s (%s) on ballot of %s",
                    team_id, metric_id, ballot.voter_id,
                )
                continue
            scores[team_id] = scores.get(team_id, 0) + value
        return scores
