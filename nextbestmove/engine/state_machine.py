"""Relationship lifecycle state machine.

Five states: UNENGAGED, ACTIVE_CONVERSATION, OPPORTUNITY, WARM_BUT_PASSIVE,
DORMANT. The state is derived from signals, never set directly; the
close-and-transition flow also goes through determine_next_state().

The machine is advisory, not gatekeeping: can_transition_to_state() accepts
every pair.

Every table keyed by RelationshipState is checked at import time. Adding a
state without updating the tables raises immediately.

Usage:
    from nextbestmove.engine.state_machine import detect_state, StateInput

    state = detect_state(StateInput(days_since_last_interaction=10))
    # RelationshipState.WARM_BUT_PASSIVE
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Mapping, Optional

from nextbestmove.db.models import (
    OPEN_DEAL_STAGES,
    Action,
    ActionState,
    ActionType,
    CompletionEvents,
    EmailSignals,
    RelationshipSnapshot,
    RelationshipState,
    RelationshipTier,
    as_date,
)

# =============================================================================
# THRESHOLDS
# =============================================================================

DORMANT_SILENCE_DAYS = 90
ACTIVE_CONVERSATION_MAX_DAYS = 7
WARM_MAX_DAYS = 30
RECENT_SIGNAL_DAYS = 7


def check_exhaustive(table: Mapping[RelationshipState, object], name: str) -> None:
    """Fail loudly if a state-keyed table does not cover every state.

    Raises:
        RuntimeError: If any RelationshipState is missing or unknown keys exist
    """
    missing = set(RelationshipState) - set(table)
    extra = set(table) - set(RelationshipState)
    if missing or extra:
        raise RuntimeError(
            f"{name} is not exhaustive over RelationshipState: "
            f"missing={sorted(s.value for s in missing)}, extra={sorted(map(str, extra))}"
        )


# =============================================================================
# VALID ACTIONS
# =============================================================================

VALID_ACTIONS_BY_STATE: dict[RelationshipState, frozenset[ActionType]] = {
    RelationshipState.UNENGAGED: frozenset({ActionType.OUTREACH, ActionType.NURTURE}),
    RelationshipState.ACTIVE_CONVERSATION: frozenset(
        {ActionType.POST_CALL, ActionType.FOLLOW_UP}
    ),
    RelationshipState.OPPORTUNITY: frozenset({ActionType.FOLLOW_UP, ActionType.POST_CALL}),
    RelationshipState.WARM_BUT_PASSIVE: frozenset({ActionType.NURTURE}),
    # Occasional only; the rate is not enforced here
    RelationshipState.DORMANT: frozenset({ActionType.NURTURE}),
}

STATE_TRANSITION_TRIGGERS: dict[RelationshipState, tuple[str, ...]] = {
    RelationshipState.UNENGAGED: (
        "They respond",
        "A meeting is scheduled",
        "They engage with content meaningfully",
    ),
    RelationshipState.ACTIVE_CONVERSATION: (
        "Opportunity confirmed -> OPPORTUNITY",
        "Explicit 'no' -> DORMANT",
        "Silence beyond threshold -> WARM_BUT_PASSIVE",
    ),
    RelationshipState.OPPORTUNITY: (
        "Deal won -> Active Client / Partner",
        "Deal lost -> DORMANT",
        "Decision deferred -> WARM_BUT_PASSIVE",
    ),
    RelationshipState.WARM_BUT_PASSIVE: (
        "Inbound signal (job change, funding, post, email)",
        "Periodic re-engagement window opens",
    ),
    RelationshipState.DORMANT: (
        "Clear external signal",
        "Time-based reactivation rule",
    ),
}

check_exhaustive(VALID_ACTIONS_BY_STATE, "VALID_ACTIONS_BY_STATE")
check_exhaustive(STATE_TRANSITION_TRIGGERS, "STATE_TRANSITION_TRIGGERS")


def get_valid_actions_for_state(state: RelationshipState) -> frozenset[ActionType]:
    """Return the action types that make sense for a state."""
    return VALID_ACTIONS_BY_STATE[state]


def is_valid_action_for_state(state: RelationshipState, action_type: ActionType) -> bool:
    return action_type in VALID_ACTIONS_BY_STATE[state]


def can_transition_to_state(
    current_state: Optional[RelationshipState], new_state: RelationshipState
) -> bool:
    """Always True. State is re-derived from signals, so no pair is rejected."""
    return True


def get_state_transition_triggers() -> dict[RelationshipState, list[str]]:
    """Return the human-readable triggers that move a relationship out of each state."""
    return {state: list(triggers) for state, triggers in STATE_TRANSITION_TRIGGERS.items()}


# =============================================================================
# STATE DETECTION
# =============================================================================


@dataclass(frozen=True)
class StateInput:
    """Signals the classifier looks at.

    Attributes:
        days_since_last_interaction: Whole days since last interaction (None = never)
        has_recent_email: Email exchanged in the last week
        has_recent_response: The relationship responded in the last week
        has_scheduled_meeting: A meeting is on the calendar
        has_open_opportunity: An open deal exists (see has_open_opportunity())
        has_explicit_no: The relationship said no
        silence_days: Days of silence (0 when never interacted)
        tier: Relationship tier (informational)
    """

    days_since_last_interaction: Optional[int] = None
    has_recent_email: bool = False
    has_recent_response: bool = False
    has_scheduled_meeting: bool = False
    has_open_opportunity: bool = False
    has_explicit_no: bool = False
    silence_days: int = 0
    tier: Optional[RelationshipTier] = None


def detect_state(state_input: StateInput) -> RelationshipState:
    """Classify a relationship. First matching rule wins.

    1. Explicit no, or 90+ days of silence -> DORMANT
    2. Open opportunity -> OPPORTUNITY
    3. Recent email with a response inside a week, or a scheduled meeting
       -> ACTIVE_CONVERSATION
    4. 8-30 days since last interaction -> WARM_BUT_PASSIVE
    5. Anything else, including never interacted -> UNENGAGED
    """
    days = state_input.days_since_last_interaction

    if state_input.has_explicit_no or state_input.silence_days >= DORMANT_SILENCE_DAYS:
        return RelationshipState.DORMANT

    if state_input.has_open_opportunity:
        return RelationshipState.OPPORTUNITY

    recent_exchange = (
        state_input.has_recent_email
        and state_input.has_recent_response
        and days is not None
        and days <= ACTIVE_CONVERSATION_MAX_DAYS
    )
    if recent_exchange or state_input.has_scheduled_meeting:
        return RelationshipState.ACTIVE_CONVERSATION

    if days is not None and ACTIVE_CONVERSATION_MAX_DAYS < days <= WARM_MAX_DAYS:
        return RelationshipState.WARM_BUT_PASSIVE

    return RelationshipState.UNENGAGED


def has_open_opportunity(actions: Iterable[Action]) -> bool:
    """True if any non-archived action carries an open deal stage.

    This is the only place OPPORTUNITY is sourced from; the persisted
    relationship_state is a cache and is never read back as a signal.
    """
    return any(
        action.state != ActionState.ARCHIVED and action.deal_stage in OPEN_DEAL_STAGES
        for action in actions
    )


def build_state_input(
    snapshot: RelationshipSnapshot,
    actions: Iterable[Action],
    email_signals: Optional[EmailSignals] = None,
    has_explicit_no: bool = False,
    has_scheduled_meeting: bool = False,
) -> StateInput:
    """Derive classifier input from a snapshot and the relationship's actions.

    A pending CALL_PREP action counts as a scheduled meeting. A response
    recorded on any action (or a REPLIED action) inside the last week counts
    as a recent response.

    Args:
        snapshot: Snapshot computed for the same reference date
        actions: All of the relationship's actions
        email_signals: Optional email signals
        has_explicit_no: The relationship said no
        has_scheduled_meeting: Caller knows about a meeting on the calendar
    """
    actions = list(actions)
    reference = snapshot.reference_date
    days = snapshot.days_since_last_interaction

    def _within_recent_window(day: Optional[date]) -> bool:
        if day is None or reference is None:
            return False
        return reference - timedelta(days=RECENT_SIGNAL_DAYS) <= day <= reference

    has_recent_response = False
    for action in actions:
        if action.got_response_at is not None and _within_recent_window(
            as_date(action.got_response_at)
        ):
            has_recent_response = True
            break
        if action.state == ActionState.REPLIED and action.completed_at is not None:
            if _within_recent_window(as_date(action.completed_at)):
                has_recent_response = True
                break

    has_recent_email = bool(
        email_signals is not None
        and email_signals.days_since_last_email is not None
        and email_signals.days_since_last_email <= RECENT_SIGNAL_DAYS
    )

    meeting = has_scheduled_meeting or any(
        action.action_type == ActionType.CALL_PREP and action.is_pending for action in actions
    )

    return StateInput(
        days_since_last_interaction=days,
        has_recent_email=has_recent_email,
        has_recent_response=has_recent_response,
        has_scheduled_meeting=meeting,
        has_open_opportunity=has_open_opportunity(actions),
        has_explicit_no=has_explicit_no,
        silence_days=days if days is not None else 0,
        tier=snapshot.tier,
    )


def classify_relationship(
    snapshot: RelationshipSnapshot,
    actions: Iterable[Action],
    email_signals: Optional[EmailSignals] = None,
    has_explicit_no: bool = False,
) -> RelationshipState:
    """detect_state() over build_state_input()."""
    return detect_state(build_state_input(snapshot, actions, email_signals, has_explicit_no))


# =============================================================================
# POST-COMPLETION TRANSITIONS
# =============================================================================


@dataclass
class TransitionContext:
    """What is known about the relationship when an action is closed."""

    completion_events: Optional[CompletionEvents] = None
    overdue_actions_count: int = 0


def determine_next_state(
    current_state: RelationshipState,
    context: Optional[TransitionContext] = None,
    action_type: Optional[ActionType] = None,
) -> RelationshipState:
    """Return the state a relationship moves to after an action is closed.

    Rules, in order:
        1. Response or call calendared: UNENGAGED -> ACTIVE_CONVERSATION,
           ACTIVE_CONVERSATION stays
        2. Replied to their email: UNENGAGED -> ACTIVE_CONVERSATION
        3. OUTREACH completed: UNENGAGED -> ACTIVE_CONVERSATION
        4. POST_CALL completed in ACTIVE_CONVERSATION: stays (promotion to
           OPPORTUNITY is a manual step)
        5. Otherwise: unchanged

    Args:
        current_state: Persisted state of the relationship
        context: Completion events recorded with the close
        action_type: Type of the action being closed

    Returns:
        Next relationship state
    """
    events = context.completion_events if context is not None else None

    if events is not None and events.has_response_or_call():
        if current_state in (
            RelationshipState.UNENGAGED,
            RelationshipState.ACTIVE_CONVERSATION,
        ):
            return RelationshipState.ACTIVE_CONVERSATION

    if (
        events is not None
        and events.replied_to_email_at is not None
        and current_state == RelationshipState.UNENGAGED
    ):
        return RelationshipState.ACTIVE_CONVERSATION

    if action_type == ActionType.OUTREACH and current_state == RelationshipState.UNENGAGED:
        return RelationshipState.ACTIVE_CONVERSATION

    if (
        action_type == ActionType.POST_CALL
        and current_state == RelationshipState.ACTIVE_CONVERSATION
    ):
        return RelationshipState.ACTIVE_CONVERSATION

    return current_state
