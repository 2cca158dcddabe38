"""Close an action and move its relationship through the state machine.

Flow:
    1. Record completion events and notes on the action
    2. determine_next_state() from the relationship's persisted state
       (UNENGAGED when never classified)
    3. Persist the new state if it changed
    4. Mark the action DONE
    5. An OUTREACH that opened a conversation gets an automatic FOLLOW_UP
       due a week out, placed with smart scheduling

Usage:
    from nextbestmove.engine.completion import close_action_and_transition

    result = close_action_and_transition(
        db, action_id, CompletionEvents(got_response_at=now), notes="Keen to talk"
    )
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from nextbestmove.core.config import get_config
from nextbestmove.core.exceptions import ValidationError
from nextbestmove.core.logging import get_logger
from nextbestmove.db.database import Database
from nextbestmove.db.models import (
    Action,
    ActionState,
    ActionType,
    CompletionEvents,
    RelationshipState,
    to_naive_utc,
)
from nextbestmove.engine.scheduling import schedule_for_relationship
from nextbestmove.engine.state_machine import TransitionContext, determine_next_state

logger = get_logger(__name__)


FOLLOW_UP_DELAY_DAYS = 7


@dataclass
class CloseResult:
    """Outcome of closing an action.

    Attributes:
        action_id: Closed action
        previous_state: Relationship state before the close
        next_state: Relationship state after the close
        new_action_id: Auto-created follow-up, if any
    """

    action_id: str
    previous_state: RelationshipState
    next_state: RelationshipState
    new_action_id: Optional[str] = None

    @property
    def state_changed(self) -> bool:
        return self.previous_state != self.next_state


def close_action_and_transition(
    db: Database,
    action_id: str,
    completion_events: Optional[CompletionEvents] = None,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> CloseResult:
    """Close an action and transition its relationship.

    Args:
        db: Database instance
        action_id: Action to close
        completion_events: What happened (response, call booked, reply sent)
        notes: Notes to store on the action
        now: Completion time (defaults to the current UTC time)

    Returns:
        CloseResult

    Raises:
        ValidationError: If the action is missing or already DONE
        ValidationError: If the action has no relationship
    """
    now = to_naive_utc(now) if now is not None else datetime.now(timezone.utc).replace(tzinfo=None)

    action = db.get_action(action_id)
    if action is None:
        raise ValidationError(f"Action not found: {action_id}")
    if action.state == ActionState.DONE:
        raise ValidationError(f"Action already completed: {action_id}")
    if not action.person_id:
        raise ValidationError("Action must be associated with a relationship")

    relationship = db.get_relationship(action.person_id)
    if relationship is None:
        raise ValidationError(f"Relationship not found: {action.person_id}")

    if completion_events is not None:
        if completion_events.next_call_calendared_at is not None:
            action.next_call_calendared_at = completion_events.next_call_calendared_at
        if completion_events.replied_to_email_at is not None:
            action.replied_to_email_at = completion_events.replied_to_email_at
        if completion_events.got_response_at is not None:
            action.got_response_at = completion_events.got_response_at
            if completion_events.got_response_notes:
                notes = (
                    f"{notes}\nResponse: {completion_events.got_response_notes}"
                    if notes
                    else f"Response: {completion_events.got_response_notes}"
                )
    if notes:
        action.notes = notes

    current_state = relationship.relationship_state or RelationshipState.UNENGAGED
    next_state = determine_next_state(
        current_state,
        TransitionContext(completion_events=completion_events),
        action.action_type,
    )

    if next_state != current_state or relationship.relationship_state is None:
        relationship.relationship_state = next_state
        relationship.state_updated_at = now
        db.update_relationship(relationship)

    action.state = ActionState.DONE
    action.completed_at = now
    db.update_action(action)

    result = CloseResult(
        action_id=action_id, previous_state=current_state, next_state=next_state
    )

    if next_state == RelationshipState.ACTIVE_CONVERSATION and (
        action.action_type == ActionType.OUTREACH
    ):
        due = schedule_for_relationship(
            db,
            action.user_id,
            relationship.id or action.person_id,
            proposed=now.date() + timedelta(days=FOLLOW_UP_DELAY_DAYS),
            today=now.date(),
            max_actions_per_day=get_config().max_actions_per_day,
        )
        result.new_action_id = db.create_action(
            Action(
                user_id=action.user_id,
                person_id=action.person_id,
                action_type=ActionType.FOLLOW_UP,
                state=ActionState.NEW,
                due_date=due,
                description=f"Follow up with {relationship.name}",
                auto_created=True,
            )
        )

    logger.info(
        "Action closed",
        extra={
            "context": {
                "action_id": action_id,
                "relationship_id": relationship.id,
                "previous_state": current_state.value,
                "next_state": next_state.value,
                "new_action_id": result.new_action_id,
            }
        },
    )
    return result
