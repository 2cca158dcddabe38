"""Daily plan digest.

Plain-text memo for a stored daily plan:
    - Capacity label and any override reason
    - Calendar free time (when capacity came from the calendar)
    - The fast win
    - Remaining actions in plan order, with their lanes

Usage:
    from nextbestmove.content.plan_digest import generate_plan_digest

    digest = generate_plan_digest(db, "u1", date(2026, 3, 2))
    print(digest.full_text)
"""

from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Mapping, Optional

import jinja2

from nextbestmove.core.exceptions import ValidationError
from nextbestmove.core.logging import get_logger
from nextbestmove.db.database import Database
from nextbestmove.db.models import Action, ActionType, DailyPlan, Lane, Relationship
from nextbestmove.engine.capacity import get_capacity_description, get_capacity_label

logger = get_logger(__name__)


TEMPLATE_DIR = Path(__file__).parent.parent / "templates"
DIGEST_TEMPLATE = "plan_digest.txt.j2"

LANE_LABELS: dict[Lane, str] = {
    Lane.PRIORITY: "Priority",
    Lane.IN_MOTION: "In Motion",
    Lane.ON_DECK: "On Deck",
}

ACTION_TYPE_LABELS: dict[ActionType, str] = {
    ActionType.OUTREACH: "Outreach",
    ActionType.FOLLOW_UP: "Follow up",
    ActionType.NURTURE: "Nurture",
    ActionType.CALL_PREP: "Call prep",
    ActionType.POST_CALL: "Post-call notes",
    ActionType.CONTENT: "Content",
    ActionType.FAST_WIN: "Fast win",
}

_env: Optional[jinja2.Environment] = None


def _get_env() -> jinja2.Environment:
    global _env
    if _env is None:
        _env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(TEMPLATE_DIR)),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=jinja2.StrictUndefined,
        )
    return _env


@dataclass
class DigestItem:
    """One line of the digest."""

    label: str
    lane: str
    person: Optional[str] = None
    minutes: Optional[int] = None


@dataclass
class PlanDigest:
    """Rendered digest plus the numbers behind it."""

    date: str
    capacity_label: str
    action_count: int
    fast_win: Optional[str]
    full_text: str


def _item(action: Action, relationships: Mapping[str, Relationship]) -> DigestItem:
    relationship = relationships.get(action.person_id) if action.person_id else None
    return DigestItem(
        label=action.description or ACTION_TYPE_LABELS[action.action_type],
        lane=LANE_LABELS[action.lane or Lane.ON_DECK],
        person=relationship.name if relationship else None,
        minutes=action.estimated_minutes,
    )


def render_plan_digest(
    plan: DailyPlan,
    actions: Mapping[str, Action],
    relationships: Optional[Mapping[str, Relationship]] = None,
) -> str:
    """Render a plan to text.

    Args:
        plan: Stored plan
        actions: action_id -> Action for every plan slot
        relationships: relationship_id -> Relationship, for names

    Returns:
        Digest text

    Raises:
        ValidationError: If a plan slot references an unknown action
    """
    relationships = relationships or {}

    fast_win: Optional[DigestItem] = None
    items: list[DigestItem] = []
    for slot in sorted(plan.actions, key=lambda s: s.position):
        action = actions.get(slot.action_id)
        if action is None:
            raise ValidationError(f"Plan references unknown action: {slot.action_id}")
        if slot.is_fast_win and fast_win is None:
            fast_win = _item(action, relationships)
        else:
            items.append(_item(action, relationships))

    template = _get_env().get_template(DIGEST_TEMPLATE)
    return template.render(
        plan_date=plan.date,
        capacity_label=get_capacity_label(plan.capacity),
        capacity_description=get_capacity_description(plan.capacity),
        override_reason=plan.override_reason,
        free_minutes=plan.free_minutes,
        focus_statement=plan.focus_statement,
        fast_win=fast_win,
        items=items,
    )


def generate_plan_digest(db: Database, user_id: str, plan_date: date) -> PlanDigest:
    """Load a stored plan and render its digest.

    Raises:
        ValidationError: If there is no plan for the day
    """
    plan = db.get_daily_plan(user_id, plan_date)
    if plan is None:
        raise ValidationError(f"No daily plan for {plan_date}")

    actions: dict[str, Action] = {}
    relationships: dict[str, Relationship] = {}
    for slot in plan.actions:
        action = db.get_action(slot.action_id)
        if action is None:
            continue
        actions[slot.action_id] = action
        if action.person_id and action.person_id not in relationships:
            relationship = db.get_relationship(action.person_id)
            if relationship is not None:
                relationships[action.person_id] = relationship

    full_text = render_plan_digest(plan, actions, relationships)
    fast_win_slot = next((s for s in plan.actions if s.is_fast_win), None)
    fast_win_action = actions.get(fast_win_slot.action_id) if fast_win_slot else None

    digest = PlanDigest(
        date=plan_date.strftime("%A, %B %d, %Y"),
        capacity_label=get_capacity_label(plan.capacity),
        action_count=len(plan.actions),
        fast_win=(
            fast_win_action.description or ACTION_TYPE_LABELS[fast_win_action.action_type]
            if fast_win_action
            else None
        ),
        full_text=full_text,
    )
    logger.info(
        "Plan digest generated",
        extra={"context": {"user_id": user_id, "date": str(plan_date), "actions": len(plan.actions)}},
    )
    return digest
