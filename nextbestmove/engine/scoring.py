"""Next-move action scoring.

Calculates a 0-100 score for a candidate action from additive factors:
    - Urgency (due date: overdue > today > soon > later)
    - Promise (a promised response that is past due or due within a day)
    - Stall risk (silence beyond cadence, awaiting a response)
    - Momentum (momentum score plus a trend bonus, never negative)
    - Value (relationship tier)
    - Effort bias (short actions first)
    - Email signals (unread, open loops, unanswered asks)

Each factor produces a fraction in [0, 1] that is multiplied by its weight,
so the orderings hold for any positive calibration. With the default
weights the maxima sum to 100 and the final clamp never bites.

Missing optional inputs contribute a neutral amount; nothing here raises
for an absent relationship, duration, promise or email signal bundle.

Usage:
    from nextbestmove.engine.scoring import calculate_next_move_score

    scored = calculate_next_move_score(action, snapshot, date(2026, 3, 2))
    print(scored.score, scored.reason)
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Union

from nextbestmove.db.models import (
    Action,
    EmailSignals,
    MomentumTrend,
    RelationshipSnapshot,
    RelationshipTier,
    as_date,
    to_naive_utc,
)

# =============================================================================
# SCORING WEIGHTS
# =============================================================================


@dataclass(frozen=True)
class ScoreWeights:
    """Maximum points per factor.

    Defaults total 100.
    """

    urgency: float = 30
    promise: float = 10
    stall_risk: float = 15
    momentum: float = 10
    value: float = 15
    effort: float = 10
    email: float = 10

    @property
    def total(self) -> float:
        return (
            self.urgency
            + self.promise
            + self.stall_risk
            + self.momentum
            + self.value
            + self.effort
            + self.email
        )


DEFAULT_WEIGHTS = ScoreWeights()

# Overdue items gain a step per day until this many days
OVERDUE_PLATEAU_DAYS = 10

TIER_VALUE: dict[RelationshipTier, float] = {
    RelationshipTier.INNER: 1.0,
    RelationshipTier.ACTIVE: 2 / 3,
    RelationshipTier.WARM: 0.4,
    RelationshipTier.BACKGROUND: 0.2,
}
UNKNOWN_TIER_VALUE = 1 / 3

TREND_BONUS: dict[MomentumTrend, float] = {
    MomentumTrend.INCREASING: 0.3,
    MomentumTrend.STABLE: 0.1,
    MomentumTrend.DECLINING: 0.0,
    MomentumTrend.UNKNOWN: 0.0,
}


@dataclass(frozen=True)
class ScoreBreakdown:
    """Points contributed by each factor."""

    urgency: float
    promise: float
    stall_risk: float
    momentum: float
    value: float
    effort_bias: float
    email: float
    total: float


@dataclass(frozen=True)
class ScoredAction:
    """Score for one action.

    Attributes:
        action_id: Scored action
        score: Clamped total, 0-100
        breakdown: Per-factor points
        reason: Human-readable summary
    """

    action_id: str
    score: float
    breakdown: ScoreBreakdown
    reason: str


# =============================================================================
# FACTORS
# =============================================================================


def _urgency(due_date: Optional[date], today: date) -> float:
    """Fraction for the due date.

    overdue 0.7-1.0, today 0.6, within 2 days ~0.47, within 7 days ~0.33,
    later or no due date ~0.13.
    """
    if due_date is None:
        return 4 / 30
    days_until = (due_date - today).days
    if days_until < 0:
        overdue_days = min(-days_until, OVERDUE_PLATEAU_DAYS)
        return 2 / 3 + (1 / 3) * overdue_days / OVERDUE_PLATEAU_DAYS
    if days_until == 0:
        return 0.6
    if days_until <= 2:
        return 14 / 30
    if days_until <= 7:
        return 1 / 3
    return 4 / 30


def _promise(promised_due_at: Optional[datetime], now: datetime) -> float:
    if promised_due_at is None:
        return 0.0
    promised = to_naive_utc(promised_due_at)
    if promised < now:
        return 1.0
    if promised - now <= timedelta(days=1):
        return 0.5
    return 0.0


def _past_cadence(snapshot: RelationshipSnapshot) -> bool:
    return (
        snapshot.days_since_last_interaction is not None
        and snapshot.cadence_days is not None
        and snapshot.days_since_last_interaction > snapshot.cadence_days
    )


def _stall_risk(snapshot: Optional[RelationshipSnapshot]) -> float:
    if snapshot is None:
        return 0.0
    fraction = 0.0
    if _past_cadence(snapshot):
        fraction += 2 / 3
    if snapshot.awaiting_response:
        fraction += 1 / 3
    return min(fraction, 1.0)


def _momentum(snapshot: Optional[RelationshipSnapshot]) -> float:
    if snapshot is None:
        return 0.0
    fraction = 0.0
    if snapshot.momentum_score is not None:
        fraction += 0.7 * max(0.0, min(100.0, float(snapshot.momentum_score))) / 100
    fraction += TREND_BONUS.get(snapshot.momentum_trend, 0.0)
    return min(fraction, 1.0)


def _value(snapshot: Optional[RelationshipSnapshot]) -> float:
    if snapshot is None or snapshot.tier is None:
        return UNKNOWN_TIER_VALUE
    return TIER_VALUE[snapshot.tier]


def _effort(estimated_minutes: Optional[int]) -> float:
    if estimated_minutes is None or estimated_minutes <= 0:
        return 0.5
    if estimated_minutes <= 30:
        return 1.0
    if estimated_minutes <= 120:
        return 0.7
    return 0.3


def _email(signals: Optional[EmailSignals]) -> float:
    if signals is None:
        return 0.0
    fraction = 0.0
    if signals.has_unread:
        fraction += 0.3
    if signals.has_open_loops:
        fraction += 0.3
    if signals.has_unanswered_asks:
        fraction += 0.4
    return min(fraction, 1.0)


def _reference_instant(reference_date: Union[date, datetime]) -> datetime:
    if isinstance(reference_date, datetime):
        return to_naive_utc(reference_date)
    return datetime(reference_date.year, reference_date.month, reference_date.day)


# =============================================================================
# SCORING FUNCTIONS
# =============================================================================


def calculate_next_move_score(
    action: Action,
    relationship_state: Optional[RelationshipSnapshot],
    reference_date: Union[date, datetime],
    email_signals: Optional[EmailSignals] = None,
    weights: ScoreWeights = DEFAULT_WEIGHTS,
) -> ScoredAction:
    """Calculate the next-move score for an action.

    Deterministic for fixed inputs; the only notion of "now" is
    reference_date (a date means midnight UTC of that day).

    Args:
        action: Candidate action
        relationship_state: Snapshot of the action's relationship (None if
            the action has no relationship)
        reference_date: Scoring instant
        email_signals: Optional email signals for the relationship
        weights: Points per factor

    Returns:
        ScoredAction with score in [0, 100]
    """
    today = as_date(reference_date)
    now = _reference_instant(reference_date)

    urgency = weights.urgency * _urgency(action.due_date, today)
    promise = weights.promise * _promise(action.promised_due_at, now)
    stall = weights.stall_risk * _stall_risk(relationship_state)
    momentum = weights.momentum * _momentum(relationship_state)
    value = weights.value * _value(relationship_state)
    effort = weights.effort * _effort(action.estimated_minutes)
    email = weights.email * _email(email_signals)

    raw = urgency + promise + stall + momentum + value + effort + email
    total = round(max(0.0, min(100.0, raw)), 2)

    reasons: list[str] = []
    if action.due_date is not None and action.due_date < today:
        reasons.append("overdue")
    elif action.due_date == today:
        reasons.append("due today")
    if promise > 0:
        reasons.append("promise due")
    if stall > 0:
        reasons.append("stall risk")
    if relationship_state is not None and relationship_state.tier in (
        RelationshipTier.INNER,
        RelationshipTier.ACTIVE,
    ):
        reasons.append("high value relationship")
    if action.estimated_minutes is not None and 0 < action.estimated_minutes <= 120:
        reasons.append("low effort")
    if email > 0:
        reasons.append("email activity")

    reason = f"Score: {total:g}"
    if reasons:
        reason += f" ({', '.join(reasons)})"

    return ScoredAction(
        action_id=action.id or "",
        score=total,
        breakdown=ScoreBreakdown(
            urgency=round(urgency, 2),
            promise=round(promise, 2),
            stall_risk=round(stall, 2),
            momentum=round(momentum, 2),
            value=round(value, 2),
            effort_bias=round(effort, 2),
            email=round(email, 2),
            total=total,
        ),
        reason=reason,
    )


def select_best_action(scored_actions: Iterable[ScoredAction]) -> Optional[ScoredAction]:
    """Highest score wins; ties go to the lowest action id."""
    ranked = sorted(scored_actions, key=lambda s: (-s.score, s.action_id))
    return ranked[0] if ranked else None
