"""Tests for the daily plan digest (nextbestmove/content/plan_digest.py)."""

from datetime import date

import pytest

from nextbestmove.core.exceptions import ValidationError
from nextbestmove.db.database import Database
from nextbestmove.db.models import (
    Action,
    ActionType,
    CapacityLevel,
    DailyPlan,
    DailyPlanAction,
    Lane,
    Relationship,
)
from nextbestmove.content.plan_digest import generate_plan_digest, render_plan_digest
from nextbestmove.engine.daily_plan import generate_daily_plan

TODAY = date(2026, 3, 2)


def _plan(**kwargs) -> DailyPlan:
    fields = {
        "user_id": "u1",
        "date": TODAY,
        "capacity": CapacityLevel.LIGHT,
        "actions": [
            DailyPlanAction(action_id="fw", position=0, is_fast_win=True),
            DailyPlanAction(action_id="a1", position=1),
        ],
    }
    fields.update(kwargs)
    return DailyPlan(**fields)


ACTIONS = {
    "fw": Action(
        id="fw",
        action_type=ActionType.FOLLOW_UP,
        description="Check in about the pilot",
        person_id="r1",
        estimated_minutes=10,
    ),
    "a1": Action(id="a1", action_type=ActionType.OUTREACH, lane=Lane.PRIORITY),
}
RELATIONSHIPS = {"r1": Relationship(id="r1", name="Dana Cole")}


class TestRenderPlanDigest:
    def test_header_and_sections(self):
        text = render_plan_digest(_plan(), ACTIONS, RELATIONSHIPS)

        assert text.startswith("Daily Plan - Monday, March 02, 2026\n")
        assert "Capacity: Light Day (3-4 actions)" in text
        assert "FAST WIN\n  Check in about the pilot - Dana Cole (10 min)" in text
        assert "TODAY'S ACTIONS\n  1. [Priority] Outreach" in text
        assert "Override:" not in text
        assert "Free time:" not in text

    def test_override_and_free_time(self):
        plan = _plan(override_reason="Conference", free_minutes=200, focus_statement="Close Q1")
        text = render_plan_digest(plan, ACTIONS, RELATIONSHIPS)
        assert "Override: Conference" in text
        assert "Free time: 3h 20m" in text
        assert "Focus: Close Q1" in text

    def test_only_fast_win(self):
        plan = _plan(actions=[DailyPlanAction(action_id="fw", position=0, is_fast_win=True)])
        text = render_plan_digest(plan, ACTIONS, RELATIONSHIPS)
        assert "No further actions planned." in text
        assert "TODAY'S ACTIONS" not in text

    def test_unknown_action(self):
        plan = _plan(actions=[DailyPlanAction(action_id="ghost", position=0)])
        with pytest.raises(ValidationError, match="ghost"):
            render_plan_digest(plan, ACTIONS)


class TestGeneratePlanDigest:
    def test_stored_plan(self, memory_db: Database, sample_relationship, make_action):
        make_action(
            person_id=sample_relationship.id,
            description="Send recap",
            estimated_minutes=15,
        )
        make_action(action_type=ActionType.CONTENT)
        generate_daily_plan(memory_db, "u1", TODAY)

        digest = generate_plan_digest(memory_db, "u1", TODAY)

        assert digest.date == "Monday, March 02, 2026"
        assert digest.capacity_label == "Auto"
        assert digest.action_count == 2
        assert digest.fast_win == "Send recap"
        assert "Send recap - Dana Cole (15 min)" in digest.full_text
        assert "1. [On Deck] Content" in digest.full_text

    def test_missing_plan(self, memory_db: Database):
        with pytest.raises(ValidationError, match="No daily plan"):
            generate_plan_digest(memory_db, "u1", TODAY)
