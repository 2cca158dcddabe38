"""Daily plan generation.

Builds one user's plan for one day:
    1. Refuse if a plan exists, or the day is a weekend the user skips
    2. Resolve capacity (override, user default, calendar)
    3. Candidates: NEW actions and lapsed SNOOZED actions due on/before the day
    4. Rank by plan priority
    5. One fast win goes first, then fill up to capacity
    6. Persist plan and plan actions together

Usage:
    from nextbestmove.engine.daily_plan import generate_daily_plan

    plan = generate_daily_plan(db, "u1", date(2026, 3, 2), calendar=calendar_client)
"""

from datetime import date
from typing import Any, Optional

from nextbestmove.core.exceptions import PlanGenerationError
from nextbestmove.core.logging import get_logger
from nextbestmove.db.database import Database
from nextbestmove.db.models import (
    Action,
    ActionState,
    ActionType,
    CapacitySource,
    DailyPlan,
    DailyPlanAction,
)
from nextbestmove.engine.capacity import get_capacity_with_overrides

logger = get_logger(__name__)


# =============================================================================
# PLAN PRIORITY
# =============================================================================

REPLIED_BONUS = 1000
LAPSED_SNOOZE_BONUS = 800
FOLLOW_UP_DUE_TODAY_BONUS = 200
FOLLOW_UP_RECENTLY_OVERDUE_BONUS = 100

TYPE_PRIORITY: dict[ActionType, int] = {
    ActionType.FOLLOW_UP: 500,
    ActionType.POST_CALL: 450,
    ActionType.CALL_PREP: 400,
    ActionType.OUTREACH: 300,
    ActionType.NURTURE: 200,
    ActionType.CONTENT: 100,
    ActionType.FAST_WIN: 0,
}


def _snooze_lapsed(action: Action, plan_date: date) -> bool:
    return (
        action.state == ActionState.SNOOZED
        and action.snooze_until is not None
        and action.snooze_until <= plan_date
    )


def calculate_plan_priority(action: Action, plan_date: date) -> int:
    """Rank an action for the plan; higher goes first."""
    score = 0
    # generate_daily_plan() never admits REPLIED rows; callers building their
    # own candidate list with select_plan_actions() may.
    if action.state == ActionState.REPLIED:
        score += REPLIED_BONUS
    elif _snooze_lapsed(action, plan_date):
        score += LAPSED_SNOOZE_BONUS

    score += TYPE_PRIORITY[action.action_type]

    if action.action_type == ActionType.FOLLOW_UP and action.due_date is not None:
        days_overdue = (plan_date - action.due_date).days
        if days_overdue == 0:
            score += FOLLOW_UP_DUE_TODAY_BONUS
        elif 1 <= days_overdue <= 3:
            score += FOLLOW_UP_RECENTLY_OVERDUE_BONUS

    return score


def is_fast_win_candidate(action: Action, plan_date: date) -> bool:
    """Quick, high-impact actions that can open the day.

    A reply to answer, a snoozed follow-up that is due again, a fresh
    follow-up, or a nurture touch.
    """
    if action.state == ActionState.REPLIED:
        return True
    if action.action_type == ActionType.FOLLOW_UP and _snooze_lapsed(action, plan_date):
        return True
    if action.action_type == ActionType.FOLLOW_UP and action.state == ActionState.NEW:
        return True
    return action.action_type == ActionType.NURTURE


def is_plan_candidate(action: Action, plan_date: date) -> bool:
    """NEW, or SNOOZED with no snooze date or a lapsed one; due on/before plan_date."""
    if action.due_date is None or action.due_date > plan_date:
        return False
    if action.state == ActionState.NEW:
        return True
    if action.state == ActionState.SNOOZED:
        return action.snooze_until is None or action.snooze_until <= plan_date
    return False


def select_plan_actions(
    candidates: list[Action], plan_date: date, action_count: int
) -> list[DailyPlanAction]:
    """Order candidates into plan slots: fast win first, then by priority."""
    ranked = sorted(
        candidates,
        key=lambda a: (-calculate_plan_priority(a, plan_date), a.due_date or plan_date, a.id or ""),
    )

    fast_win: Optional[Action] = None
    for action in ranked:
        if is_fast_win_candidate(action, plan_date):
            fast_win = action
            break

    slots: list[DailyPlanAction] = []
    if fast_win is not None:
        ranked.remove(fast_win)
        slots.append(DailyPlanAction(action_id=fast_win.id or "", position=0, is_fast_win=True))

    for action in ranked[: max(0, action_count - len(slots))]:
        slots.append(DailyPlanAction(action_id=action.id or "", position=len(slots)))

    return slots


# =============================================================================
# GENERATION
# =============================================================================


def generate_daily_plan(
    db: Database,
    user_id: str,
    plan_date: date,
    calendar: Optional[Any] = None,
) -> DailyPlan:
    """Generate and persist a user's plan for a day.

    Args:
        db: Database instance
        user_id: User
        plan_date: Day to plan
        calendar: Free/busy collaborator for capacity (optional)

    Returns:
        The stored DailyPlan

    Raises:
        PlanGenerationError: Plan exists, excluded weekend, or no candidates
        CalendarError: If the calendar lookup fails
    """
    if db.daily_plan_exists(user_id, plan_date):
        raise PlanGenerationError(f"Plan already exists for {plan_date}")

    profile = db.get_user_profile(user_id)
    if profile is not None and profile.exclude_weekends and plan_date.weekday() >= 5:
        raise PlanGenerationError("Weekends are excluded from daily plan generation")

    capacity = get_capacity_with_overrides(db, user_id, plan_date, calendar)

    candidates = [
        a
        for a in db.get_actions(user_id=user_id, states=[ActionState.NEW, ActionState.SNOOZED])
        if is_plan_candidate(a, plan_date)
    ]
    if not candidates:
        raise PlanGenerationError("No candidate actions available for plan generation")

    plan = DailyPlan(
        user_id=user_id,
        date=plan_date,
        capacity=capacity.level,
        capacity_override=(
            capacity.level.value if capacity.source == CapacitySource.OVERRIDE else None
        ),
        override_reason=capacity.reason,
        free_minutes=capacity.free_minutes,
        actions=select_plan_actions(candidates, plan_date, capacity.action_count),
    )
    db.create_daily_plan(plan)

    logger.info(
        "Daily plan generated",
        extra={
            "context": {
                "user_id": user_id,
                "date": str(plan_date),
                "capacity": capacity.level.value,
                "capacity_source": capacity.source.value,
                "candidates": len(candidates),
                "planned": len(plan.actions),
            }
        },
    )
    return plan
