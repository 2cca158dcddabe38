"""Smart scheduling for new actions.

Keeps any one relationship from piling up more than a couple of pending
actions on the same day.

Usage:
    from nextbestmove.engine.scheduling import find_next_available_date

    due = find_next_available_date(existing_due_dates, proposed, today)
"""

from collections import Counter
from datetime import date, timedelta
from typing import Iterable, Optional

from nextbestmove.core.logging import get_logger
from nextbestmove.db.database import Database
from nextbestmove.db.models import PENDING_STATES

logger = get_logger(__name__)


DEFAULT_MAX_ACTIONS_PER_DAY = 2
DEFAULT_MAX_DAYS = 30


def find_next_available_date(
    existing_due_dates: Iterable[Optional[date]],
    proposed: date,
    today: date,
    max_actions_per_day: int = DEFAULT_MAX_ACTIONS_PER_DAY,
    max_days: int = DEFAULT_MAX_DAYS,
) -> date:
    """Return the first day with room for another action.

    Starts at the later of proposed and today and checks up to max_days
    days. Falls back to proposed when no day has room.

    Args:
        existing_due_dates: Due dates of the relationship's pending actions
        proposed: Requested due date
        today: Earliest allowed day
        max_actions_per_day: Pending actions allowed per day
        max_days: Days to search

    Returns:
        Chosen due date
    """
    per_day = Counter(d for d in existing_due_dates if d is not None)
    current = max(proposed, today)

    for _ in range(max_days):
        if per_day[current] < max_actions_per_day:
            return current
        current += timedelta(days=1)

    logger.warning(
        "No free slot found, using proposed date",
        extra={"context": {"proposed": str(proposed), "max_days": max_days}},
    )
    return proposed


def schedule_for_relationship(
    db: Database,
    user_id: str,
    person_id: str,
    proposed: date,
    today: date,
    max_actions_per_day: int = DEFAULT_MAX_ACTIONS_PER_DAY,
) -> date:
    """find_next_available_date() over the relationship's pending actions in the store."""
    pending = db.get_actions(user_id=user_id, states=PENDING_STATES, person_id=person_id)
    return find_next_available_date(
        (a.due_date for a in pending), proposed, today, max_actions_per_day
    )
