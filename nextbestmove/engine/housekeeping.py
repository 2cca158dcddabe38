"""Housekeeping - Daily action maintenance.

Three steps:
    1. Archive DONE actions completed more than 90 days ago
    2. Archive auto-created actions nobody touched, 7+ days past due
    3. Unsnooze SNOOZED actions whose snooze_until has arrived

Each step is independent; a store failure in one is recorded in the result
and the remaining steps still run.

Usage:
    from nextbestmove.engine.housekeeping import run_housekeeping

    result = run_housekeeping(db, date.today())
    print(result.archived_done, result.archived_stale, result.unsnoozed)
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Union

from nextbestmove.core.exceptions import DatabaseError
from nextbestmove.core.logging import get_logger
from nextbestmove.db.database import Database
from nextbestmove.db.models import Action, ActionState, as_date, to_naive_utc

logger = get_logger(__name__)


DONE_RETENTION_DAYS = 90
STALE_AUTO_CREATED_DAYS = 7
STALE_ARCHIVE_NOTE = "Auto-archived: No user interaction within 7 days of due date"


@dataclass
class HousekeepingResult:
    """Result of a housekeeping run."""

    reference_date: date
    archived_done: int = 0
    archived_stale: int = 0
    unsnoozed: int = 0
    errors: list[str] = field(default_factory=list)


# =============================================================================
# PREDICATES
# =============================================================================


def should_archive_done(action: Action, reference_date: Union[date, datetime]) -> bool:
    """DONE and completed before midnight 90 days ago."""
    if action.state != ActionState.DONE or action.completed_at is None:
        return False
    cutoff = as_date(reference_date) - timedelta(days=DONE_RETENTION_DAYS)
    cutoff_instant = datetime(cutoff.year, cutoff.month, cutoff.day)
    return to_naive_utc(action.completed_at) < cutoff_instant


def _never_touched(action: Action) -> bool:
    if action.created_at is None or action.updated_at is None:
        return True
    delta = to_naive_utc(action.updated_at) - to_naive_utc(action.created_at)
    return abs(delta) < timedelta(seconds=1)


def is_stale_auto_created(action: Action, reference_date: Union[date, datetime]) -> bool:
    """Auto-created, still NEW, due 7+ days ago and never touched since creation."""
    if not action.auto_created or action.state != ActionState.NEW:
        return False
    if action.due_date is None:
        return False
    cutoff = as_date(reference_date) - timedelta(days=STALE_AUTO_CREATED_DAYS)
    return action.due_date < cutoff and _never_touched(action)


def should_unsnooze(action: Action, reference_date: Union[date, datetime]) -> bool:
    """SNOOZED with a snooze_until on or before the reference day."""
    return (
        action.state == ActionState.SNOOZED
        and action.snooze_until is not None
        and action.snooze_until <= as_date(reference_date)
    )


# =============================================================================
# RUNNER
# =============================================================================


def run_housekeeping(db: Database, reference_date: Union[date, datetime]) -> HousekeepingResult:
    """Apply all housekeeping rules across every user's actions.

    Args:
        db: Database instance
        reference_date: Day the rules are evaluated for

    Returns:
        HousekeepingResult with counts and any step errors
    """
    result = HousekeepingResult(reference_date=as_date(reference_date))
    logger.info("Housekeeping starting", extra={"context": {"date": str(result.reference_date)}})

    try:
        for action in db.get_actions(states=[ActionState.DONE]):
            if should_archive_done(action, reference_date):
                action.state = ActionState.ARCHIVED
                db.update_action(action)
                result.archived_done += 1
    except DatabaseError as e:
        result.errors.append(f"Archive DONE: {e}")
        logger.error(f"Archive DONE step failed: {e}")

    try:
        for action in db.get_actions(states=[ActionState.NEW]):
            if is_stale_auto_created(action, reference_date):
                action.state = ActionState.ARCHIVED
                action.notes = STALE_ARCHIVE_NOTE
                db.update_action(action)
                result.archived_stale += 1
    except DatabaseError as e:
        result.errors.append(f"Archive stale: {e}")
        logger.error(f"Archive stale step failed: {e}")

    try:
        for action in db.get_actions(states=[ActionState.SNOOZED]):
            if should_unsnooze(action, reference_date):
                action.state = ActionState.NEW
                action.snooze_until = None
                db.update_action(action)
                result.unsnoozed += 1
    except DatabaseError as e:
        result.errors.append(f"Unsnooze: {e}")
        logger.error(f"Unsnooze step failed: {e}")

    logger.info(
        "Housekeeping complete",
        extra={
            "context": {
                "archived_done": result.archived_done,
                "archived_stale": result.archived_stale,
                "unsnoozed": result.unsnoozed,
                "errors": len(result.errors),
            }
        },
    )
    return result
