"""Pick the best action that fits a block of free time.

Only actions with an estimate that fits are considered; an action with no
estimate never qualifies. Survivors are ordered by lane (priority, in
motion, on deck) and then by next_move_score, highest first. Python's sort
is stable, so equal lane and score keep input order.
"""

from typing import Iterable, Optional

from nextbestmove.db.models import Action
from nextbestmove.engine.lanes import lane_rank


def filter_actions_for_duration(actions: Iterable[Action], duration_minutes: int) -> list[Action]:
    """Return every action that fits, best first."""
    fitting = [
        action
        for action in actions
        if action.estimated_minutes is not None and action.estimated_minutes <= duration_minutes
    ]
    fitting.sort(key=lambda a: (lane_rank(a.lane), -(a.next_move_score or 0)))
    return fitting


def get_action_for_duration(actions: Iterable[Action], duration_minutes: int) -> Optional[Action]:
    """Return the best action that fits in duration_minutes, or None."""
    fitting = filter_actions_for_duration(actions, duration_minutes)
    return fitting[0] if fitting else None
