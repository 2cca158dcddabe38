"""Tests for next-move scoring.

Covers:
    - Factor contributions and the 0-100 clamp
    - Determinism, overdue monotonicity, promise boost, tier ordering
    - Missing optional inputs are neutral
    - Best-action selection and tie-breaking
"""

from dataclasses import replace
from datetime import date, datetime, timedelta

import pytest

from nextbestmove.db.models import (
    Action,
    ActionType,
    EmailSignals,
    MomentumTrend,
    RelationshipSnapshot,
    RelationshipTier,
)
from nextbestmove.engine.scoring import (
    DEFAULT_WEIGHTS,
    ScoreBreakdown,
    ScoredAction,
    ScoreWeights,
    calculate_next_move_score,
    select_best_action,
)

TODAY = date(2026, 3, 2)

# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def base_action() -> Action:
    return Action(id="a1", action_type=ActionType.OUTREACH, due_date=TODAY)


@pytest.fixture
def snapshot() -> RelationshipSnapshot:
    return RelationshipSnapshot(
        relationship_id="r1",
        days_since_last_interaction=5,
        cadence_days=14,
        tier=RelationshipTier.ACTIVE,
        momentum_score=50.0,
        momentum_trend=MomentumTrend.STABLE,
        reference_date=TODAY,
    )


def _scored(action_id: str, score: float) -> ScoredAction:
    breakdown = ScoreBreakdown(0, 0, 0, 0, 0, 0, 0, score)
    return ScoredAction(action_id=action_id, score=score, breakdown=breakdown, reason="")


# =============================================================================
# WEIGHTS
# =============================================================================


class TestWeights:
    def test_default_weights_total_100(self):
        assert DEFAULT_WEIGHTS.total == 100


# =============================================================================
# SCORE
# =============================================================================


class TestCalculateScore:
    """Factor contributions."""

    def test_minimal_action(self, base_action):
        """Due today with nothing else known: urgency, neutral value and effort."""
        scored = calculate_next_move_score(base_action, None, TODAY)
        assert scored.breakdown.urgency == 18.0
        assert scored.breakdown.value == 5.0
        assert scored.breakdown.effort_bias == 5.0
        assert scored.breakdown.email == 0.0
        assert scored.score == 28.0
        assert scored.reason == "Score: 28 (due today)"
        assert scored.action_id == "a1"

    def test_everything_maxed_hits_100(self, base_action):
        action = replace(
            base_action,
            due_date=TODAY - timedelta(days=12),
            promised_due_at=datetime(2026, 3, 1, 9, 0),
            estimated_minutes=10,
        )
        snapshot = RelationshipSnapshot(
            relationship_id="r1",
            days_since_last_interaction=30,
            cadence_days=7,
            awaiting_response=True,
            tier=RelationshipTier.INNER,
            momentum_score=100.0,
            momentum_trend=MomentumTrend.INCREASING,
        )
        signals = EmailSignals(has_unread=True, has_open_loops=True, has_unanswered_asks=True)
        scored = calculate_next_move_score(action, snapshot, TODAY, signals)
        assert scored.score == 100.0
        assert "overdue" in scored.reason
        assert "promise due" in scored.reason
        assert "stall risk" in scored.reason
        assert "high value relationship" in scored.reason
        assert "low effort" in scored.reason
        assert "email activity" in scored.reason

    def test_score_within_bounds(self, base_action, snapshot):
        scored = calculate_next_move_score(base_action, snapshot, TODAY)
        assert 0 <= scored.score <= 100

    def test_determinism(self, base_action, snapshot):
        signals = EmailSignals(has_unread=True)
        first = calculate_next_move_score(base_action, snapshot, TODAY, signals)
        for _ in range(5):
            assert calculate_next_move_score(base_action, snapshot, TODAY, signals) == first

    def test_overdue_monotonicity(self, base_action, snapshot):
        scores = [
            calculate_next_move_score(
                replace(base_action, due_date=TODAY - timedelta(days=d)), snapshot, TODAY
            ).score
            for d in range(0, 16)
        ]
        assert scores == sorted(scores)

    def test_overdue_plateaus(self, base_action):
        ten = calculate_next_move_score(
            replace(base_action, due_date=TODAY - timedelta(days=10)), None, TODAY
        )
        fifteen = calculate_next_move_score(
            replace(base_action, due_date=TODAY - timedelta(days=15)), None, TODAY
        )
        assert ten.score == fifteen.score
        assert ten.breakdown.urgency == 30.0

    def test_later_due_dates_score_lower(self, base_action):
        def urgency(offset):
            action = replace(base_action, due_date=TODAY + timedelta(days=offset))
            return calculate_next_move_score(action, None, TODAY).breakdown.urgency

        assert urgency(0) > urgency(2) > urgency(7) > urgency(8)
        assert urgency(8) == calculate_next_move_score(
            replace(base_action, due_date=None), None, TODAY
        ).breakdown.urgency

    def test_promise_boost(self, base_action, snapshot):
        without = calculate_next_move_score(base_action, snapshot, TODAY)
        with_promise = calculate_next_move_score(
            replace(base_action, promised_due_at=datetime(2026, 3, 1, 17, 0)), snapshot, TODAY
        )
        assert with_promise.score > without.score
        assert with_promise.breakdown.promise == 10.0

    def test_promise_due_within_a_day(self, base_action):
        scored = calculate_next_move_score(
            replace(base_action, promised_due_at=datetime(2026, 3, 2, 12, 0)), None, TODAY
        )
        assert scored.breakdown.promise == 5.0

    def test_promise_far_off(self, base_action):
        scored = calculate_next_move_score(
            replace(base_action, promised_due_at=datetime(2026, 3, 9)), None, TODAY
        )
        assert scored.breakdown.promise == 0.0

    def test_tier_ordering(self, base_action, snapshot):
        scores = [
            calculate_next_move_score(base_action, replace(snapshot, tier=tier), TODAY).score
            for tier in (
                RelationshipTier.INNER,
                RelationshipTier.ACTIVE,
                RelationshipTier.WARM,
                RelationshipTier.BACKGROUND,
            )
        ]
        assert scores[0] > scores[1] > scores[2] > scores[3]

    def test_stall_risk(self, base_action, snapshot):
        past_cadence = replace(snapshot, days_since_last_interaction=20)
        assert calculate_next_move_score(base_action, past_cadence, TODAY).breakdown.stall_risk == 10.0
        awaiting = replace(snapshot, awaiting_response=True)
        assert calculate_next_move_score(base_action, awaiting, TODAY).breakdown.stall_risk == 5.0

    def test_momentum(self, base_action, snapshot):
        # 0.7 * 0.5 + 0.1 stable bonus
        assert calculate_next_move_score(base_action, snapshot, TODAY).breakdown.momentum == 4.5
        unknown = replace(snapshot, momentum_score=None, momentum_trend=MomentumTrend.UNKNOWN)
        assert calculate_next_move_score(base_action, unknown, TODAY).breakdown.momentum == 0.0

    @pytest.mark.parametrize(
        "minutes,points", [(None, 5.0), (15, 10.0), (30, 10.0), (90, 7.0), (240, 3.0)]
    )
    def test_effort_bias(self, base_action, minutes, points):
        scored = calculate_next_move_score(
            replace(base_action, estimated_minutes=minutes), None, TODAY
        )
        assert scored.breakdown.effort_bias == points

    def test_low_effort_reason(self, base_action):
        quick = calculate_next_move_score(replace(base_action, estimated_minutes=60), None, TODAY)
        slow = calculate_next_move_score(replace(base_action, estimated_minutes=200), None, TODAY)
        assert "low effort" in quick.reason
        assert "low effort" not in slow.reason

    def test_email_signals(self, base_action):
        signals = EmailSignals(has_unread=True, has_unanswered_asks=True)
        assert calculate_next_move_score(base_action, None, TODAY, signals).breakdown.email == 7.0

    def test_missing_inputs_are_neutral(self):
        """No due date, relationship, estimate or email still yields a valid score."""
        scored = calculate_next_move_score(Action(id="x"), None, TODAY, None)
        assert 0 <= scored.score <= 100
        assert scored.reason.startswith("Score: ")

    def test_datetime_reference(self, base_action):
        at_noon = calculate_next_move_score(base_action, None, datetime(2026, 3, 2, 12, 0))
        at_midnight = calculate_next_move_score(base_action, None, TODAY)
        assert at_noon.score == at_midnight.score

    def test_custom_weights(self, base_action):
        weights = ScoreWeights(urgency=60, value=0, effort=0)
        scored = calculate_next_move_score(base_action, None, TODAY, weights=weights)
        assert scored.score == 36.0


# =============================================================================
# SELECTION
# =============================================================================


class TestSelectBestAction:
    def test_highest_score_wins(self):
        best = select_best_action([_scored("a", 40), _scored("b", 70), _scored("c", 55)])
        assert best.action_id == "b"

    def test_tie_goes_to_lowest_id(self):
        best = select_best_action([_scored("b", 70), _scored("a", 70)])
        assert best.action_id == "a"

    def test_empty(self):
        assert select_best_action([]) is None
