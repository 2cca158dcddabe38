"""Per-relationship snapshot computation.

Builds a RelationshipSnapshot for each relationship from its persisted row
and its actions at a reference instant. Snapshots are recomputed on every
pass; there is no incremental update path.

Usage:
    from nextbestmove.engine.relationship_state import compute_relationship_snapshots

    snapshots = compute_relationship_snapshots(relationships, actions, today)
    snapshot = snapshots[relationship.id]
"""

from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Iterable, Mapping, Optional, Union

from nextbestmove.db.models import (
    COMPLETED_STATES,
    PENDING_STATES,
    Action,
    ActionState,
    Cadence,
    Relationship,
    RelationshipSnapshot,
    RelationshipStatus,
    as_date,
    to_naive_utc,
)

CADENCE_DAYS: dict[Cadence, int] = {
    Cadence.FREQUENT: 7,
    Cadence.MODERATE: 14,
    Cadence.INFREQUENT: 30,
    Cadence.AD_HOC: 90,
}
DEFAULT_CADENCE_DAYS = 30

ReferenceDate = Union[date, datetime]


def resolve_cadence_days(
    cadence: Optional[Cadence], cadence_days: Optional[int]
) -> Optional[int]:
    """Explicit cadence_days wins; otherwise map the cadence (None if neither)."""
    if cadence_days:
        return cadence_days
    if cadence is None:
        return None
    return CADENCE_DAYS.get(cadence, DEFAULT_CADENCE_DAYS)


def days_between(earlier: datetime, reference: ReferenceDate) -> int:
    """Whole days from earlier to reference, floored.

    With a datetime reference this is floor(elapsed / 1 day); with a date
    reference it counts calendar days.
    """
    earlier = to_naive_utc(earlier)
    if isinstance(reference, datetime):
        return (to_naive_utc(reference) - earlier) // timedelta(days=1)
    return (reference - earlier.date()).days


def _last_completed_at(actions: Iterable[Action]) -> Optional[datetime]:
    completed = [
        to_naive_utc(a.completed_at)
        for a in actions
        if a.state in COMPLETED_STATES and a.completed_at is not None
    ]
    return max(completed) if completed else None


def compute_relationship_snapshot(
    relationship: Relationship,
    actions: Iterable[Action],
    reference_date: ReferenceDate,
    earliest_relevant_insight_date: Optional[date] = None,
) -> RelationshipSnapshot:
    """Compute the snapshot for one relationship.

    Args:
        relationship: Persisted relationship row
        actions: The relationship's actions (any state)
        reference_date: Instant the snapshot is computed for
        earliest_relevant_insight_date: Earliest upcoming insight, if known

    Returns:
        Frozen snapshot
    """
    actions = [a for a in actions if a.person_id == relationship.id]
    today = as_date(reference_date)

    last_interaction_at = relationship.last_interaction_at
    if last_interaction_at is None:
        last_interaction_at = _last_completed_at(actions)
    else:
        last_interaction_at = to_naive_utc(last_interaction_at)

    days_since: Optional[int] = None
    if last_interaction_at is not None:
        days_since = days_between(last_interaction_at, reference_date)

    pending = [a for a in actions if a.state in PENDING_STATES]
    overdue = [a for a in pending if a.due_date is not None and a.due_date < today]

    return RelationshipSnapshot(
        relationship_id=relationship.id or "",
        user_id=relationship.user_id,
        days_since_last_interaction=days_since,
        pending_actions_count=len(pending),
        overdue_actions_count=len(overdue),
        awaiting_response=any(a.state == ActionState.SENT for a in pending),
        earliest_relevant_insight_date=earliest_relevant_insight_date,
        cadence=relationship.cadence,
        cadence_days=resolve_cadence_days(relationship.cadence, relationship.cadence_days),
        tier=relationship.tier,
        last_interaction_at=last_interaction_at,
        next_touch_due_at=relationship.next_touch_due_at,
        momentum_score=relationship.momentum_score,
        momentum_trend=relationship.momentum_trend,
        next_move_action_id=relationship.next_move_action_id,
        lifecycle_state=relationship.relationship_state,
        reference_date=today,
    )


def compute_relationship_snapshots(
    relationships: Iterable[Relationship],
    actions: Iterable[Action],
    reference_date: ReferenceDate,
    insight_dates: Optional[Mapping[str, date]] = None,
) -> dict[str, RelationshipSnapshot]:
    """Compute snapshots for every ACTIVE relationship.

    Args:
        relationships: One user's relationships
        actions: That user's actions (any state, any relationship)
        reference_date: Instant the snapshots are computed for
        insight_dates: Optional relationship_id -> earliest relevant insight date

    Returns:
        relationship_id -> snapshot
    """
    by_relationship: dict[str, list[Action]] = defaultdict(list)
    for action in actions:
        if action.person_id:
            by_relationship[action.person_id].append(action)

    insight_dates = insight_dates or {}
    snapshots: dict[str, RelationshipSnapshot] = {}
    for relationship in relationships:
        if relationship.status != RelationshipStatus.ACTIVE or relationship.id is None:
            continue
        snapshots[relationship.id] = compute_relationship_snapshot(
            relationship,
            by_relationship.get(relationship.id, []),
            reference_date,
            insight_dates.get(relationship.id),
        )
    return snapshots
