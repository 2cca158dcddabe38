"""Data models and enumerations for NextBestMove.

All enums are stored as TEXT in SQLite using their exact values; the values
are the persisted literals and round-trip case-sensitively.

Datetimes are naive UTC throughout. Aware values coming from callers are
normalized with to_naive_utc() before any arithmetic.

This module defines:
    - Enumerations for all categorical fields
    - Dataclasses for records and engine inputs
    - Utility functions (date parsing, status mapping)
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional, Union

from nextbestmove.core.exceptions import ValidationError

# =============================================================================
# ENUMERATIONS
# =============================================================================


class ActionType(str, Enum):
    """Kind of outreach work an action represents."""

    OUTREACH = "OUTREACH"
    FOLLOW_UP = "FOLLOW_UP"
    NURTURE = "NURTURE"
    CALL_PREP = "CALL_PREP"
    POST_CALL = "POST_CALL"
    CONTENT = "CONTENT"
    FAST_WIN = "FAST_WIN"


class ActionState(str, Enum):
    """Lifecycle state of an action.

    Values:
        NEW: Created, not yet acted on
        SENT: Outreach sent, waiting on the other side
        REPLIED: The other side replied
        SNOOZED: Deferred until snooze_until
        DONE: Completed
        ARCHIVED: Retired by housekeeping
    """

    NEW = "NEW"
    SENT = "SENT"
    REPLIED = "REPLIED"
    SNOOZED = "SNOOZED"
    DONE = "DONE"
    ARCHIVED = "ARCHIVED"


PENDING_STATES: frozenset[ActionState] = frozenset(
    {ActionState.NEW, ActionState.SENT, ActionState.SNOOZED}
)
COMPLETED_STATES: frozenset[ActionState] = frozenset({ActionState.DONE, ActionState.REPLIED})


class RelationshipState(str, Enum):
    """Lifecycle state of a relationship.

    Derived by the state machine; persisted on the relationship as a cache.

    Values:
        UNENGAGED: No recent signals
        ACTIVE_CONVERSATION: Recent back-and-forth or a meeting on the books
        OPPORTUNITY: Open deal
        WARM_BUT_PASSIVE: Mutual awareness, no urgency
        DORMANT: Explicit no, or silent for 90+ days
    """

    UNENGAGED = "UNENGAGED"
    ACTIVE_CONVERSATION = "ACTIVE_CONVERSATION"
    OPPORTUNITY = "OPPORTUNITY"
    WARM_BUT_PASSIVE = "WARM_BUT_PASSIVE"
    DORMANT = "DORMANT"


class Lane(str, Enum):
    """Triage bucket, independent of numeric score."""

    PRIORITY = "priority"
    IN_MOTION = "in_motion"
    ON_DECK = "on_deck"


class CapacityLevel(str, Enum):
    """How heavy a day's plan should be."""

    MICRO = "micro"
    LIGHT = "light"
    STANDARD = "standard"
    HEAVY = "heavy"
    DEFAULT = "default"


class CapacitySource(str, Enum):
    """Where a resolved capacity came from."""

    OVERRIDE = "override"
    USER_DEFAULT = "user_default"
    CALENDAR = "calendar"


class RelationshipTier(str, Enum):
    """Strategic importance bucket."""

    INNER = "inner"
    ACTIVE = "active"
    WARM = "warm"
    BACKGROUND = "background"


class Cadence(str, Enum):
    """Expected touch frequency."""

    FREQUENT = "frequent"
    MODERATE = "moderate"
    INFREQUENT = "infrequent"
    AD_HOC = "ad_hoc"


class MomentumTrend(str, Enum):
    """Direction of a relationship's momentum."""

    INCREASING = "increasing"
    STABLE = "stable"
    DECLINING = "declining"
    UNKNOWN = "unknown"


class DealStage(str, Enum):
    """Deal progression stage recorded on an action."""

    PROSPECTING = "prospecting"
    QUALIFYING = "qualifying"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    CLOSED_WON = "closed_won"
    CLOSED_LOST = "closed_lost"


OPEN_DEAL_STAGES: frozenset[DealStage] = frozenset(
    {
        DealStage.PROSPECTING,
        DealStage.QUALIFYING,
        DealStage.PROPOSAL,
        DealStage.NEGOTIATION,
    }
)


class RelationshipStatus(str, Enum):
    """Whether a relationship is still tracked."""

    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"


class ActionStatus(str, Enum):
    """User-facing status labels for action states."""

    PENDING = "pending"
    WAITING = "waiting"
    SNOOZED = "snoozed"
    DONE = "done"


_STATE_TO_STATUS: dict[ActionState, ActionStatus] = {
    ActionState.NEW: ActionStatus.PENDING,
    ActionState.SENT: ActionStatus.WAITING,
    ActionState.SNOOZED: ActionStatus.SNOOZED,
    ActionState.DONE: ActionStatus.DONE,
    ActionState.REPLIED: ActionStatus.DONE,
    ActionState.ARCHIVED: ActionStatus.DONE,
}

_STATUS_TO_STATES: dict[ActionStatus, list[ActionState]] = {
    ActionStatus.PENDING: [ActionState.NEW],
    ActionStatus.WAITING: [ActionState.SENT],
    ActionStatus.SNOOZED: [ActionState.SNOOZED],
    ActionStatus.DONE: [ActionState.DONE, ActionState.REPLIED],
}


def map_state_to_status(state: ActionState) -> ActionStatus:
    """Return the user-facing status for an action state."""
    return _STATE_TO_STATUS[state]


def map_status_to_states(status: ActionStatus) -> list[ActionState]:
    """Return the action states a user-facing status filter covers."""
    return list(_STATUS_TO_STATES[status])


# =============================================================================
# DATE UTILITIES
# =============================================================================


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def as_date(value: Union[date, datetime]) -> date:
    """Return the calendar day of a date or datetime (UTC for aware values)."""
    if isinstance(value, datetime):
        return to_naive_utc(value).date()
    return value


def parse_date(value: Optional[Union[str, date, datetime]]) -> Optional[date]:
    """Parse an ISO date (or the date part of an ISO timestamp)."""
    if value is None or value == "":
        return None
    if isinstance(value, (date, datetime)):
        return as_date(value)
    return date.fromisoformat(str(value)[:10])


def parse_datetime(value: Optional[Union[str, datetime, date]]) -> Optional[datetime]:
    """Parse an ISO timestamp into a naive UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return to_naive_utc(datetime.fromisoformat(text))


# =============================================================================
# DATACLASSES
# =============================================================================


@dataclass
class CompletionEvents:
    """Things that happened when an action was completed.

    Attributes:
        next_call_calendared_at: A follow-up call was put on the calendar
        replied_to_email_at: The user replied to the relationship's email
        got_response_at: The relationship responded
        got_response_notes: Free-text notes about the response
    """

    next_call_calendared_at: Optional[datetime] = None
    replied_to_email_at: Optional[datetime] = None
    got_response_at: Optional[datetime] = None
    got_response_notes: Optional[str] = None

    def has_response_or_call(self) -> bool:
        return self.got_response_at is not None or self.next_call_calendared_at is not None


@dataclass
class Action:
    """A unit of outreach work.

    Attributes:
        id: Primary key
        user_id: Owning user
        person_id: Relationship this action belongs to (optional)
        action_type: Kind of work
        state: Lifecycle state
        description: Short description
        due_date: Calendar day the action is due
        promised_due_at: Time the user promised the relationship a response
        estimated_minutes: Duration estimate (positive if set)
        completed_at: When completed
        snooze_until: Day the snooze lapses
        notes: Free-text notes
        auto_created: Created by an automatic rule rather than the user
        lane: Last lane assigned by the decision engine
        next_move_score: Last score assigned by the decision engine
        deal_stage: Deal progression stage, if this action tracks a deal
        next_call_calendared_at: Completion event
        replied_to_email_at: Completion event
        got_response_at: Completion event
        created_at: Record creation time
        updated_at: Last update time
    """

    id: Optional[str] = None
    user_id: str = ""
    person_id: Optional[str] = None
    action_type: ActionType = ActionType.OUTREACH
    state: ActionState = ActionState.NEW
    description: Optional[str] = None
    due_date: Optional[date] = None
    promised_due_at: Optional[datetime] = None
    estimated_minutes: Optional[int] = None
    completed_at: Optional[datetime] = None
    snooze_until: Optional[date] = None
    notes: Optional[str] = None
    auto_created: bool = False
    lane: Optional[Lane] = None
    next_move_score: Optional[float] = None
    deal_stage: Optional[DealStage] = None
    next_call_calendared_at: Optional[datetime] = None
    replied_to_email_at: Optional[datetime] = None
    got_response_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_pending(self) -> bool:
        return self.state in PENDING_STATES

    def completion_events(self) -> CompletionEvents:
        """Return the completion events recorded on this action."""
        return CompletionEvents(
            next_call_calendared_at=self.next_call_calendared_at,
            replied_to_email_at=self.replied_to_email_at,
            got_response_at=self.got_response_at,
        )

    def validate_estimated_minutes(self) -> None:
        """Reject a non-positive duration estimate.

        Raises:
            ValidationError: If estimated_minutes is set and not positive
        """
        if self.estimated_minutes is not None and self.estimated_minutes <= 0:
            raise ValidationError(
                f"estimated_minutes must be positive, got {self.estimated_minutes}"
            )


@dataclass
class Relationship:
    """A tracked contact/lead.

    Attributes:
        id: Primary key
        user_id: Owning user
        name: Display name
        url: Profile or mailto: link
        tier: Strategic importance
        cadence: Expected touch frequency
        cadence_days: Explicit cadence in days (overrides cadence mapping)
        status: ACTIVE or ARCHIVED
        last_interaction_at: Last interaction timestamp
        next_touch_due_at: When the next touch is due
        relationship_state: Cached lifecycle state
        state_updated_at: When relationship_state last changed
        momentum_score: Derived 0-100 momentum
        momentum_trend: Derived trend
        next_move_action_id: Best action chosen by the last engine run
        has_explicit_no: The relationship said no
        notes: Free-text notes
        created_at: Record creation time
        updated_at: Last update time
    """

    id: Optional[str] = None
    user_id: str = ""
    name: str = ""
    url: Optional[str] = None
    tier: Optional[RelationshipTier] = None
    cadence: Optional[Cadence] = None
    cadence_days: Optional[int] = None
    status: RelationshipStatus = RelationshipStatus.ACTIVE
    last_interaction_at: Optional[datetime] = None
    next_touch_due_at: Optional[datetime] = None
    relationship_state: Optional[RelationshipState] = None
    state_updated_at: Optional[datetime] = None
    momentum_score: Optional[float] = None
    momentum_trend: MomentumTrend = MomentumTrend.UNKNOWN
    next_move_action_id: Optional[str] = None
    has_explicit_no: bool = False
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class RelationshipSnapshot:
    """Per-relationship state computed for one scoring pass.

    A pure function of the relationship's history at reference_date. Never
    patched in place; recompute instead.
    """

    relationship_id: str
    user_id: str = ""
    days_since_last_interaction: Optional[int] = None
    pending_actions_count: int = 0
    overdue_actions_count: int = 0
    awaiting_response: bool = False
    earliest_relevant_insight_date: Optional[date] = None
    cadence: Optional[Cadence] = None
    cadence_days: Optional[int] = None
    tier: Optional[RelationshipTier] = None
    last_interaction_at: Optional[datetime] = None
    next_touch_due_at: Optional[datetime] = None
    momentum_score: Optional[float] = None
    momentum_trend: MomentumTrend = MomentumTrend.UNKNOWN
    next_move_action_id: Optional[str] = None
    lifecycle_state: Optional[RelationshipState] = None
    reference_date: Optional[date] = None


@dataclass(frozen=True)
class EmailSignals:
    """Email-derived signals for one relationship.

    Attributes:
        days_since_last_email: Days since the last email (None = no email)
        has_unread: Unread mail from the relationship
        thread_count: Number of threads
        has_open_loops: Threads with unresolved loops
        has_unanswered_asks: Recent asks not yet answered
        recent_email_count: Emails in the lookback window
    """

    days_since_last_email: Optional[int] = None
    has_unread: bool = False
    thread_count: int = 0
    has_open_loops: bool = False
    has_unanswered_asks: bool = False
    recent_email_count: int = 0


@dataclass
class UserProfile:
    """User-level planning preferences.

    Attributes:
        id: User ID
        timezone: IANA timezone
        exclude_weekends: Skip plan generation on Saturday/Sunday
        default_capacity_override: Capacity level applied to every day
    """

    id: str = ""
    timezone: str = "UTC"
    exclude_weekends: bool = False
    default_capacity_override: Optional[str] = None


@dataclass
class DailyPlanAction:
    """One slot in a daily plan."""

    action_id: str
    position: int
    is_fast_win: bool = False


@dataclass
class DailyPlan:
    """A user's plan for one day.

    Attributes:
        id: Primary key
        user_id: Owning user
        date: Plan date
        capacity: Resolved capacity level
        capacity_override: Per-day override level (if any)
        override_reason: Why the override was set
        free_minutes: Calendar free minutes used for capacity (if any)
        focus_statement: Weekly focus line
        actions: Ordered plan slots
        created_at: Record creation time
    """

    id: Optional[int] = None
    user_id: str = ""
    date: Optional[date] = None
    capacity: Optional[CapacityLevel] = None
    capacity_override: Optional[str] = None
    override_reason: Optional[str] = None
    free_minutes: Optional[int] = None
    focus_statement: Optional[str] = None
    actions: list[DailyPlanAction] = field(default_factory=list)
    created_at: Optional[datetime] = None
