"""Tests for slider ballots."""

import pytest
from tests.conftest import full_slider_data, slider_ballot

from tally.errors import IncompleteBallot
from tally.voting.slider import SliderMode, iter_scores, parse_score_key


class TestSliderScore:
    def setup_method(self):
        self.mode = SliderMode()

    def test_sums_across_metrics(self):
        ballot = slider_ballot("v1", 1, {"2-message": 3, "2-strategy": 4, "3-message": 5})
        assert self.mode.score(ballot, {1, 2, 3}) == {2: 7, 3: 5}

    def test_two_voters_same_metric(self):
        """Scores 3 and 5 from two teammates add up to 8."""
        first = slider_ballot("v1", 1, {"2-message": 3})
        second = slider_ballot("v2", 1, {"2-message": 5})
        total = self.mode.score(first, {1, 2})[2] + self.mode.score(second, {1, 2})[2]
        assert total == 8

    def test_unknown_team_ignored(self):
        ballot = slider_ballot("v1", 1, {"2-message": 3, "9-message": 5})
        assert self.mode.score(ballot, {1, 2}) == {2: 3}

    def test_malformed_keys_ignored(self):
        ballot = slider_ballot("v1", 1, {"2-message": 3, "message": 5, "x-message": 4})
        assert self.mode.score(ballot, {1, 2}) == {2: 3}


class TestSliderValidate:
    def setup_method(self):
        self.mode = SliderMode()

    def test_complete_ballot(self, five_teams):
        data = full_slider_data(1, score=4)
        assert self.mode.validate(data, five_teams) == data

    @pytest.mark.parametrize("score", [0, 6, -1])
    def test_out_of_range(self, five_teams, score):
        data = full_slider_data(1)
        data["3-strategy"] = score
        with pytest.raises(IncompleteBallot, match="between 1 and 5"):
            self.mode.validate(data, five_teams)

    @pytest.mark.parametrize("score", [1, 5])
    def test_range_is_closed(self, five_teams, score):
        data = full_slider_data(1, score=score)
        assert self.mode.validate(data, five_teams) == data

    def test_missing_key(self, five_teams):
        data = full_slider_data(1)
        del data["5-execution"]
        with pytest.raises(IncompleteBallot, match="5-execution"):
            self.mode.validate(data, five_teams)

    def test_own_team_scored(self, five_teams):
        data = full_slider_data(1)
        data["1-message"] = 5
        with pytest.raises(IncompleteBallot, match="Unexpected"):
            self.mode.validate(data, five_teams)

    @pytest.mark.parametrize("score", [3.5, "3", True, None])
    def test_not_a_whole_number(self, five_teams, score):
        data = full_slider_data(1)
        data["2-message"] = score
        with pytest.raises(IncompleteBallot, match="whole number"):
            self.mode.validate(data, five_teams)

    def test_not_a_dict(self, three_teams):
        with pytest.raises(IncompleteBallot):
            self.mode.validate(None, three_teams)

    def test_smaller_competition(self, three_teams):
        data = {"1-message": 2, "3-message": 5}
        assert self.mode.validate(data, three_teams) == data


class TestScoreKeys:
    def test_parse(self):
        assert parse_score_key("12-message") == (12, "message")

    def test_metric_with_dash(self):
        assert parse_score_key("3-time-management") == (3, "time-management")

    @pytest.mark.parametrize("key", ["message", "x-message", "3-", ""])
    def test_malformed(self, key):
        assert parse_score_key(key) is None

    def test_iter_scores(self):
        ballot = slider_ballot("v1", 1, {"2-message": 3, "3-strategy": 4})
        assert sorted(iter_scores(ballot)) == [(2, "message", 3), (3, "strategy", 4)]
