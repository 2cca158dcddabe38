"""Tests for duration-constrained action selection."""

from nextbestmove.db.models import Action, Lane
from nextbestmove.engine.duration_filter import (
    filter_actions_for_duration,
    get_action_for_duration,
)


class TestGetActionForDuration:
    """Best action that fits a block of time."""

    def test_lane_beats_score(self):
        actions = [
            Action(id="1", estimated_minutes=10, lane=Lane.ON_DECK, next_move_score=90),
            Action(id="3", estimated_minutes=10, lane=Lane.PRIORITY, next_move_score=70),
        ]
        assert get_action_for_duration(actions, 10).id == "3"

    def test_score_breaks_lane_ties(self):
        actions = [
            Action(id="a", estimated_minutes=10, lane=Lane.IN_MOTION, next_move_score=40),
            Action(id="b", estimated_minutes=10, lane=Lane.IN_MOTION, next_move_score=60),
        ]
        assert get_action_for_duration(actions, 30).id == "b"

    def test_unset_minutes_never_returned(self):
        actions = [Action(id="x", estimated_minutes=None, lane=Lane.PRIORITY, next_move_score=99)]
        assert get_action_for_duration(actions, 10_000) is None

    def test_too_long_excluded(self):
        actions = [
            Action(id="long", estimated_minutes=45, lane=Lane.PRIORITY, next_move_score=99),
            Action(id="short", estimated_minutes=15, lane=Lane.ON_DECK, next_move_score=1),
        ]
        assert get_action_for_duration(actions, 30).id == "short"

    def test_empty_input(self):
        assert get_action_for_duration([], 60) is None

    def test_unset_lane_and_score(self):
        """Unset lane ranks as on deck, unset score as zero."""
        actions = [
            Action(id="bare", estimated_minutes=5),
            Action(id="scored", estimated_minutes=5, lane=Lane.ON_DECK, next_move_score=1),
        ]
        assert get_action_for_duration(actions, 5).id == "scored"


class TestFilterActionsForDuration:
    def test_full_order_is_stable(self):
        actions = [
            Action(id="p", estimated_minutes=10, lane=Lane.ON_DECK, next_move_score=50),
            Action(id="q", estimated_minutes=10, lane=Lane.ON_DECK, next_move_score=50),
            Action(id="r", estimated_minutes=10, lane=Lane.PRIORITY, next_move_score=5),
        ]
        assert [a.id for a in filter_actions_for_duration(actions, 10)] == ["r", "p", "q"]
