"""Daily capacity resolution.

How many actions go into a day's plan. Resolution order, first hit wins:
    1. Per-day override stored for that date
    2. The user's default override
    3. Calendar free time for that date

The store only needs get_capacity_override(user_id, day),
get_default_capacity_override(user_id), set_capacity_override(...) and
remove_capacity_override(...); Database provides all four. The calendar
collaborator needs get_free_minutes(user_id, day) returning minutes or
None. Calendar errors propagate to the caller.

Usage:
    from nextbestmove.engine.capacity import get_capacity_with_overrides

    info = get_capacity_with_overrides(db, "u1", date(2026, 3, 2), calendar)
    print(info.level, info.action_count, info.source)
"""

from dataclasses import dataclass
from datetime import date
from typing import Any, Optional, Union

from nextbestmove.core.logging import get_logger
from nextbestmove.db.models import CapacityLevel, CapacitySource

logger = get_logger(__name__)


ACTION_COUNT_BY_LEVEL: dict[CapacityLevel, int] = {
    CapacityLevel.MICRO: 2,
    CapacityLevel.LIGHT: 4,
    CapacityLevel.STANDARD: 6,
    CapacityLevel.HEAVY: 8,
    CapacityLevel.DEFAULT: 6,
}

CAPACITY_LABELS: dict[CapacityLevel, tuple[str, str]] = {
    CapacityLevel.MICRO: ("Busy Day", "1-2 actions"),
    CapacityLevel.LIGHT: ("Light Day", "3-4 actions"),
    CapacityLevel.STANDARD: ("Standard", "5-6 actions"),
    CapacityLevel.HEAVY: ("Heavy Day", "7-8 actions"),
    CapacityLevel.DEFAULT: ("Auto", "Use calendar-based capacity"),
}


@dataclass(frozen=True)
class CapacityInfo:
    """Resolved capacity for one user and day.

    Attributes:
        level: Capacity level
        action_count: Number of actions the plan should hold
        source: override, user_default or calendar
        reason: Why the per-day override was set (override source only)
        free_minutes: Calendar free minutes (calendar source only)
    """

    level: CapacityLevel
    action_count: int
    source: CapacitySource
    reason: Optional[str] = None
    free_minutes: Optional[int] = None


def parse_capacity_level(value: Union[str, CapacityLevel, None]) -> CapacityLevel:
    """Return the level for a stored string. Unknown values mean DEFAULT."""
    if isinstance(value, CapacityLevel):
        return value
    try:
        return CapacityLevel(value)
    except ValueError:
        return CapacityLevel.DEFAULT


def get_action_count_for_level(level: Union[str, CapacityLevel, None]) -> int:
    """micro 2, light 4, standard 6, heavy 8, anything else 6."""
    return ACTION_COUNT_BY_LEVEL[parse_capacity_level(level)]


def get_capacity_label(level: Union[str, CapacityLevel, None]) -> str:
    return CAPACITY_LABELS[parse_capacity_level(level)][0]


def get_capacity_description(level: Union[str, CapacityLevel, None]) -> str:
    return CAPACITY_LABELS[parse_capacity_level(level)][1]


def capacity_from_free_minutes(free_minutes: Optional[int]) -> CapacityLevel:
    """Map calendar free time to a level.

    None (no calendar) -> default, under 30 -> micro, under 60 -> light,
    under 120 -> standard, otherwise heavy.
    """
    if free_minutes is None:
        return CapacityLevel.DEFAULT
    if free_minutes < 30:
        return CapacityLevel.MICRO
    if free_minutes < 60:
        return CapacityLevel.LIGHT
    if free_minutes < 120:
        return CapacityLevel.STANDARD
    return CapacityLevel.HEAVY


def get_capacity_with_overrides(
    store: Any,
    user_id: str,
    day: date,
    calendar: Optional[Any] = None,
) -> CapacityInfo:
    """Resolve capacity for a user and day.

    Args:
        store: Override storage (see module docstring)
        user_id: User
        day: Plan date
        calendar: Free/busy collaborator (None means no calendar connected)

    Returns:
        CapacityInfo

    Raises:
        CalendarError: If the calendar lookup fails
    """
    override = store.get_capacity_override(user_id, day)
    if override and override.get("level"):
        level = parse_capacity_level(override["level"])
        return CapacityInfo(
            level=level,
            action_count=ACTION_COUNT_BY_LEVEL[level],
            source=CapacitySource.OVERRIDE,
            reason=override.get("reason"),
        )

    default_level = store.get_default_capacity_override(user_id)
    if default_level:
        level = parse_capacity_level(default_level)
        return CapacityInfo(
            level=level,
            action_count=ACTION_COUNT_BY_LEVEL[level],
            source=CapacitySource.USER_DEFAULT,
        )

    free_minutes = calendar.get_free_minutes(user_id, day) if calendar is not None else None
    level = capacity_from_free_minutes(free_minutes)
    logger.debug(
        "Calendar capacity resolved",
        extra={
            "context": {
                "user_id": user_id,
                "date": str(day),
                "free_minutes": free_minutes,
                "level": level.value,
            }
        },
    )
    return CapacityInfo(
        level=level,
        action_count=ACTION_COUNT_BY_LEVEL[level],
        source=CapacitySource.CALENDAR,
        free_minutes=free_minutes,
    )


def set_capacity_override(
    store: Any,
    user_id: str,
    day: date,
    level: Union[str, CapacityLevel],
    reason: Optional[str] = None,
) -> None:
    """Store a per-day override. Repeating the call is harmless."""
    store.set_capacity_override(user_id, day, parse_capacity_level(level).value, reason)


def remove_capacity_override(store: Any, user_id: str, day: date) -> None:
    """Delete a per-day override. Removing a missing override is a no-op."""
    store.remove_capacity_override(user_id, day)
