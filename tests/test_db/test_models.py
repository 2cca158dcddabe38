"""Tests for data models and enumerations."""

from datetime import date, datetime, timedelta, timezone

import pytest

from nextbestmove.core.exceptions import ValidationError
from nextbestmove.db.models import (
    Action,
    ActionState,
    ActionStatus,
    ActionType,
    CapacityLevel,
    CompletionEvents,
    Lane,
    RelationshipState,
    as_date,
    map_state_to_status,
    map_status_to_states,
    parse_date,
    parse_datetime,
    to_naive_utc,
)


class TestEnumLiterals:
    """Persisted literals round-trip exactly."""

    def test_relationship_state_literals(self):
        assert [s.value for s in RelationshipState] == [
            "UNENGAGED",
            "ACTIVE_CONVERSATION",
            "OPPORTUNITY",
            "WARM_BUT_PASSIVE",
            "DORMANT",
        ]

    def test_lane_literals(self):
        assert {lane.value for lane in Lane} == {"priority", "in_motion", "on_deck"}

    def test_capacity_literals(self):
        assert CapacityLevel("micro") is CapacityLevel.MICRO
        assert CapacityLevel("default") is CapacityLevel.DEFAULT

    def test_literals_are_case_sensitive(self):
        with pytest.raises(ValueError):
            ActionState("new")


class TestStatusMapping:
    """User-facing status labels."""

    @pytest.mark.parametrize(
        "state,status",
        [
            (ActionState.NEW, ActionStatus.PENDING),
            (ActionState.SENT, ActionStatus.WAITING),
            (ActionState.SNOOZED, ActionStatus.SNOOZED),
            (ActionState.DONE, ActionStatus.DONE),
            (ActionState.REPLIED, ActionStatus.DONE),
            (ActionState.ARCHIVED, ActionStatus.DONE),
        ],
    )
    def test_state_to_status(self, state, status):
        assert map_state_to_status(state) is status

    def test_done_status_covers_done_and_replied(self):
        assert map_status_to_states(ActionStatus.DONE) == [ActionState.DONE, ActionState.REPLIED]


class TestDateUtilities:
    """Date parsing and normalisation."""

    def test_aware_datetime_becomes_naive_utc(self):
        aware = datetime(2026, 3, 2, 9, 0, tzinfo=timezone(timedelta(hours=-5)))
        assert to_naive_utc(aware) == datetime(2026, 3, 2, 14, 0)

    def test_as_date(self):
        assert as_date(datetime(2026, 3, 2, 23, 59)) == date(2026, 3, 2)
        assert as_date(date(2026, 3, 2)) == date(2026, 3, 2)

    def test_parse_date_from_timestamp_text(self):
        assert parse_date("2026-03-02T10:00:00") == date(2026, 3, 2)
        assert parse_date(None) is None
        assert parse_date("") is None

    def test_parse_datetime_handles_z_suffix(self):
        assert parse_datetime("2026-03-02T10:00:00Z") == datetime(2026, 3, 2, 10, 0)

    def test_parse_datetime_from_date(self):
        assert parse_datetime(date(2026, 3, 2)) == datetime(2026, 3, 2)


class TestAction:
    """Action dataclass helpers."""

    def test_defaults(self):
        action = Action()
        assert action.state == ActionState.NEW
        assert action.action_type == ActionType.OUTREACH
        assert action.is_pending

    @pytest.mark.parametrize("state", [ActionState.DONE, ActionState.REPLIED, ActionState.ARCHIVED])
    def test_not_pending(self, state):
        assert not Action(state=state).is_pending

    def test_completion_events(self):
        when = datetime(2026, 3, 1, 10, 0)
        events = Action(got_response_at=when).completion_events()
        assert events.got_response_at == when
        assert events.has_response_or_call()

    def test_no_events(self):
        assert not CompletionEvents().has_response_or_call()

    @pytest.mark.parametrize("minutes", [0, -5])
    def test_non_positive_minutes_rejected(self, minutes):
        with pytest.raises(ValidationError):
            Action(estimated_minutes=minutes).validate_estimated_minutes()

    def test_unset_minutes_allowed(self):
        Action(estimated_minutes=None).validate_estimated_minutes()
