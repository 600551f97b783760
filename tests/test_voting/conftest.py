"""Shared fixtures for scoring mode tests."""

import pytest

from tally.voting import BallotContext


@pytest.fixture
def five_teams():
    """Five teams, voter on team 1, three metrics, scores 1-5.

    Opponents: 2, 3, 4, 5
    """
    return BallotContext(
        team_ids=[1, 2, 3, 4, 5],
        own_team_id=1,
        metric_ids=["message", "strategy", "execution"],
        score_min=1,
        score_max=5,
    )


@pytest.fixture
def three_teams():
    """Three teams, voter on team 2, one metric.

    Opponents: 1, 3
    """
    return BallotContext(
        team_ids=[1, 2, 3],
        own_team_id=2,
        metric_ids=["message"],
    )
