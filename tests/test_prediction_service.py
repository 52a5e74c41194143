"""Tests for prediction parsing and winner resolution."""

from types import SimpleNamespace

import pytest

from core.exceptions import ValidationError
from services.prediction_service import NO_WINNER_NAME, parse_prediction, resolve_winner


def _player(name, prediction, join_order):
    return SimpleNamespace(name=name, prediction=prediction, join_order=join_order)


# ─── PARSING ──────────────────────────────────────────────────────────────────

class TestParsePrediction:
    @pytest.mark.parametrize("raw, expected", [
        ("101.5", 101.5),
        (" 99 ", 99.0),
        (42, 42.0),
        (0.01, 0.01),
        ("-3", -3.0),
    ])
    def test_accepts_numbers(self, raw, expected):
        assert parse_prediction(raw) == expected

    @pytest.mark.parametrize("raw", ["", "   ", None, "abc", "1,5", "nan", "inf", True])
    def test_rejects_non_numeric(self, raw):
        with pytest.raises(ValidationError):
            parse_prediction(raw)


# ─── WINNER RESOLUTION ────────────────────────────────────────────────────────

class TestResolveWinner:
    def test_closest_prediction_wins(self):
        """A=100, B=105, C=None at 103: B is 2 away, A is 3 away, C is ineligible."""
        players = [_player("A", 100, 0), _player("B", 105, 1), _player("C", None, 2)]
        result = resolve_winner(players, 103)
        assert result.name == "B"
        assert result.prediction == 105
        assert result.final_price == 103
        assert result.has_winner

    def test_no_predictions_gives_sentinel(self):
        players = [_player("A", None, 0), _player("B", None, 1)]
        result = resolve_winner(players, 50)
        assert result.name == NO_WINNER_NAME
        assert result.prediction is None
        assert not result.has_winner

    def test_empty_room_gives_sentinel(self):
        assert resolve_winner([], 1.0).name == NO_WINNER_NAME

    def test_tie_goes_to_earliest_joiner(self):
        """Equal distance above and below: join order decides, not list order."""
        players = [_player("Late", 104, 3), _player("Early", 102, 1)]
        assert resolve_winner(players, 103).name == "Early"

    def test_exact_hit(self):
        players = [_player("A", 97.5, 0), _player("B", 98, 1)]
        assert resolve_winner(players, 98).name == "B"
