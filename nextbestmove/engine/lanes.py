"""Lane assignment: Priority / In Motion / On Deck.

Lanes are a coarse triage bucket independent of the numeric score. A
relationship gets a lane from its snapshot; each action then gets a lane
from its own due date and type, never lower than its relationship's lane.

Usage:
    from nextbestmove.engine.lanes import assign_relationship_lane, assign_action_lane

    rel_lane = assign_relationship_lane(snapshot).lane
    action_lane = assign_action_lane(action, rel_lane, today).lane
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Union

from nextbestmove.db.models import (
    Action,
    ActionState,
    ActionType,
    Lane,
    MomentumTrend,
    RelationshipSnapshot,
    RelationshipState,
    as_date,
)
from nextbestmove.engine.state_machine import check_exhaustive

# =============================================================================
# LANE TABLES
# =============================================================================

LANE_ORDER: dict[Lane, int] = {
    Lane.PRIORITY: 0,
    Lane.IN_MOTION: 1,
    Lane.ON_DECK: 2,
}

LIFECYCLE_LANES: dict[RelationshipState, Lane] = {
    RelationshipState.ACTIVE_CONVERSATION: Lane.IN_MOTION,
    RelationshipState.OPPORTUNITY: Lane.IN_MOTION,
    RelationshipState.WARM_BUT_PASSIVE: Lane.ON_DECK,
    RelationshipState.DORMANT: Lane.ON_DECK,
    RelationshipState.UNENGAGED: Lane.ON_DECK,
}

check_exhaustive(LIFECYCLE_LANES, "LIFECYCLE_LANES")

INSIGHT_WINDOW_BUSINESS_DAYS = 5
AWAITING_RESPONSE_DAYS = 7
NEXT_TOUCH_WINDOW_DAYS = 7
ACTION_PRIORITY_DAYS = 2
ACTION_IN_MOTION_DAYS = 14

HIGH_PRIORITY_TYPES = frozenset({ActionType.FOLLOW_UP, ActionType.CALL_PREP, ActionType.POST_CALL})


@dataclass(frozen=True)
class LaneAssignment:
    """A lane and why it was chosen."""

    lane: Lane
    reason: str


def lane_rank(lane: Optional[Lane]) -> int:
    """Sort key for a lane; priority first. Unset counts as on_deck."""
    return LANE_ORDER[lane or Lane.ON_DECK]


def business_days_between(start: date, end: date) -> int:
    """Count weekdays from start to end, both inclusive (0 if end < start)."""
    count = 0
    current = start
    while current <= end:
        if current.weekday() < 5:
            count += 1
        current += timedelta(days=1)
    return count


# =============================================================================
# RELATIONSHIP LANES
# =============================================================================


def assign_relationship_lane(snapshot: RelationshipSnapshot) -> LaneAssignment:
    """Assign a lane to a relationship.

    Priority when any of these hold:
        - overdue actions
        - a relevant insight within 5 business days
        - declining momentum and past cadence
        - awaiting a response for more than 7 days

    Otherwise by lifecycle state (ACTIVE_CONVERSATION and OPPORTUNITY are
    in motion, the rest on deck). With no lifecycle state, pending work or a
    touch due within a week puts it in motion.
    """
    today = snapshot.reference_date
    days = snapshot.days_since_last_interaction

    if snapshot.overdue_actions_count > 0:
        return LaneAssignment(
            Lane.PRIORITY, f"Has {snapshot.overdue_actions_count} overdue action(s)"
        )

    if snapshot.earliest_relevant_insight_date is not None and today is not None:
        business_days = business_days_between(today, snapshot.earliest_relevant_insight_date)
        if business_days <= INSIGHT_WINDOW_BUSINESS_DAYS:
            return LaneAssignment(
                Lane.PRIORITY,
                f"Relevant insight due within {business_days} business days",
            )

    if (
        snapshot.momentum_trend == MomentumTrend.DECLINING
        and days is not None
        and snapshot.cadence_days is not None
        and days > snapshot.cadence_days
    ):
        return LaneAssignment(
            Lane.PRIORITY,
            f"Momentum declining and {days} days since last interaction "
            f"(cadence: {snapshot.cadence_days} days)",
        )

    if snapshot.awaiting_response and days is not None and days > AWAITING_RESPONSE_DAYS:
        return LaneAssignment(
            Lane.PRIORITY, f"Awaiting response and {days} days since last interaction"
        )

    if snapshot.lifecycle_state is not None:
        lane = LIFECYCLE_LANES[snapshot.lifecycle_state]
        return LaneAssignment(lane, f"Relationship is {snapshot.lifecycle_state.value}")

    if snapshot.pending_actions_count > 0:
        return LaneAssignment(
            Lane.IN_MOTION, f"Has {snapshot.pending_actions_count} pending action(s)"
        )

    if snapshot.next_touch_due_at is not None and today is not None:
        touch_due = as_date(snapshot.next_touch_due_at)
        if touch_due <= today + timedelta(days=NEXT_TOUCH_WINDOW_DAYS):
            return LaneAssignment(Lane.IN_MOTION, "Next touch due soon")

    return LaneAssignment(Lane.ON_DECK, "No pending actions, low-touch relationship")


# =============================================================================
# ACTION LANES
# =============================================================================


def _action_derived_lane(
    action: Action, relationship_lane: Lane, today: date
) -> LaneAssignment:
    days_until_due = (action.due_date - today).days if action.due_date is not None else None

    if days_until_due is not None and days_until_due <= ACTION_PRIORITY_DAYS:
        when = "overdue" if days_until_due <= 0 else f"{days_until_due} day(s) away"
        return LaneAssignment(Lane.PRIORITY, f"Due within 2 days ({when})")

    if action.action_type in HIGH_PRIORITY_TYPES and action.state in (
        ActionState.NEW,
        ActionState.SENT,
    ):
        return LaneAssignment(
            Lane.PRIORITY,
            f"High priority action type ({action.action_type.value}) "
            f"in {action.state.value} state",
        )

    if (
        days_until_due is not None
        and days_until_due <= ACTION_IN_MOTION_DAYS
        and relationship_lane in (Lane.PRIORITY, Lane.IN_MOTION)
    ):
        return LaneAssignment(
            Lane.IN_MOTION,
            f"Due within 14 days and relationship is {relationship_lane.value}",
        )

    return LaneAssignment(Lane.ON_DECK, "Long-range or low-priority action")


def assign_action_lane(
    action: Action,
    relationship_lane: Lane,
    reference_date: Union[date, datetime],
) -> LaneAssignment:
    """Assign a lane to an action.

    The result is never lower than relationship_lane: the action can only
    escalate or keep its relationship's lane.

    Args:
        action: Action to place
        relationship_lane: Lane of the action's relationship (on_deck when
            the action has none)
        reference_date: Day the lanes are computed for

    Returns:
        LaneAssignment
    """
    derived = _action_derived_lane(action, relationship_lane, as_date(reference_date))
    if lane_rank(derived.lane) <= lane_rank(relationship_lane):
        return derived
    return LaneAssignment(relationship_lane, f"Relationship is in {relationship_lane.value}")


def group_actions_by_lane(actions: Iterable[Action]) -> dict[Lane, list[Action]]:
    """Bucket actions by lane, each bucket ordered by next_move_score descending.

    Actions without a lane go to on_deck; ties keep input order.
    """
    grouped: dict[Lane, list[Action]] = {lane: [] for lane in LANE_ORDER}
    for action in actions:
        grouped[action.lane or Lane.ON_DECK].append(action)
    for lane in grouped:
        grouped[lane].sort(key=lambda a: -(a.next_move_score or 0))
    return grouped
