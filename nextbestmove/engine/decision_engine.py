"""Decision engine orchestrator.

Ties the pieces together for one user:
    1. Snapshot every active relationship
    2. Classify relationships with the state machine
    3. Assign relationship lanes
    4. Lane and score every candidate action
    5. Pick the single best action from the priority and in-motion lanes
    6. Optionally persist lanes, scores and the best action

evaluate_actions() is pure; run_decision_engine() loads from and writes to
the store around it.

Usage:
    from nextbestmove.engine.decision_engine import run_decision_engine

    result = run_decision_engine(db, "u1", date.today(), persist=True)
    if result.best_action:
        print(result.best_action.action_id, result.best_action.reason)
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Iterable, Mapping, Optional, Union

from nextbestmove.core.logging import bind_context, get_logger
from nextbestmove.db.database import Database
from nextbestmove.db.models import (
    PENDING_STATES,
    Action,
    EmailSignals,
    Lane,
    Relationship,
    RelationshipSnapshot,
    RelationshipState,
    as_date,
)
from nextbestmove.engine.lanes import (
    LaneAssignment,
    assign_action_lane,
    assign_relationship_lane,
)
from nextbestmove.engine.relationship_state import compute_relationship_snapshots
from nextbestmove.engine.scoring import (
    DEFAULT_WEIGHTS,
    ScoredAction,
    ScoreWeights,
    calculate_next_move_score,
    select_best_action,
)
from nextbestmove.engine.state_machine import classify_relationship

logger = get_logger(__name__)

TOP_ACTIONS_LOGGED = 5


@dataclass(frozen=True)
class BestAction:
    """The one action to do next."""

    action_id: str
    relationship_id: Optional[str]
    score: float
    lane: Lane
    reason: str


@dataclass
class DecisionEngineResult:
    """Everything one engine pass computed.

    Attributes:
        best_action: Best priority/in-motion action, or None
        snapshots: relationship_id -> snapshot used for scoring
        detected_states: relationship_id -> state the classifier derived
        relationship_lanes: relationship_id -> lane
        scored_actions: Scores for every candidate, in candidate order
        lanes: action_id -> lane assignment
        actions: Candidate actions carrying their new lane and score
    """

    best_action: Optional[BestAction] = None
    snapshots: dict[str, RelationshipSnapshot] = field(default_factory=dict)
    detected_states: dict[str, RelationshipState] = field(default_factory=dict)
    relationship_lanes: dict[str, LaneAssignment] = field(default_factory=dict)
    scored_actions: list[ScoredAction] = field(default_factory=list)
    lanes: dict[str, LaneAssignment] = field(default_factory=dict)
    actions: list[Action] = field(default_factory=list)


def is_candidate(action: Action, reference_day: date) -> bool:
    """Pending and due on or before the reference day."""
    return (
        action.state in PENDING_STATES
        and action.due_date is not None
        and action.due_date <= reference_day
    )


def evaluate_actions(
    relationships: Iterable[Relationship],
    actions: Iterable[Action],
    reference_date: Union[date, datetime],
    email_signals: Optional[Mapping[str, EmailSignals]] = None,
    weights: ScoreWeights = DEFAULT_WEIGHTS,
) -> DecisionEngineResult:
    """Run one pure engine pass over already-loaded rows.

    The lifecycle used for lanes is always the state the classifier derives
    from the current inputs. The stored relationship_state is not consulted.

    Args:
        relationships: One user's relationships
        actions: That user's actions (any state; history feeds the snapshots)
        reference_date: Evaluation instant
        email_signals: Optional relationship_id -> email signals
        weights: Score weights

    Returns:
        DecisionEngineResult
    """
    relationships = list(relationships)
    actions = list(actions)
    email_signals = email_signals or {}
    reference_day = as_date(reference_date)

    result = DecisionEngineResult()
    raw_snapshots = compute_relationship_snapshots(relationships, actions, reference_date)

    actions_by_relationship: dict[str, list[Action]] = {}
    for action in actions:
        if action.person_id:
            actions_by_relationship.setdefault(action.person_id, []).append(action)

    for relationship in relationships:
        rel_id = relationship.id
        if rel_id is None or rel_id not in raw_snapshots:
            continue
        snapshot = raw_snapshots[rel_id]
        detected = classify_relationship(
            snapshot,
            actions_by_relationship.get(rel_id, []),
            email_signals.get(rel_id),
            has_explicit_no=relationship.has_explicit_no,
        )
        result.detected_states[rel_id] = detected
        snapshot = replace(snapshot, lifecycle_state=detected)
        result.snapshots[rel_id] = snapshot
        result.relationship_lanes[rel_id] = assign_relationship_lane(snapshot)

    candidates = [a for a in actions if is_candidate(a, reference_day)]
    eligible: list[ScoredAction] = []
    for action in candidates:
        snapshot = result.snapshots.get(action.person_id) if action.person_id else None
        relationship_lane = (
            result.relationship_lanes[action.person_id].lane
            if snapshot is not None and action.person_id is not None
            else Lane.ON_DECK
        )
        lane = assign_action_lane(action, relationship_lane, reference_date)
        scored = calculate_next_move_score(
            action,
            snapshot,
            reference_date,
            email_signals.get(action.person_id) if action.person_id else None,
            weights,
        )
        result.lanes[scored.action_id] = lane
        result.scored_actions.append(scored)
        result.actions.append(replace(action, lane=lane.lane, next_move_score=scored.score))
        if lane.lane in (Lane.PRIORITY, Lane.IN_MOTION):
            eligible.append(scored)

    best = select_best_action(eligible)
    if best is not None:
        best_action = next(a for a in candidates if (a.id or "") == best.action_id)
        result.best_action = BestAction(
            action_id=best.action_id,
            relationship_id=best_action.person_id,
            score=best.score,
            lane=result.lanes[best.action_id].lane,
            reason=best.reason,
        )

    return result


def run_decision_engine(
    db: Database,
    user_id: str,
    reference_date: Union[date, datetime],
    persist: bool = False,
    email_signals: Optional[Mapping[str, EmailSignals]] = None,
) -> DecisionEngineResult:
    """Load a user's rows, evaluate them, and optionally persist the outcome.

    With persist=True:
        - every candidate action gets its lane and next_move_score
        - next_move_action_id is cleared on all relationships and set on the
          best action's relationship
        - relationships whose stored relationship_state differs from the
          derived one are rewritten with it

    Args:
        db: Database instance
        user_id: User to evaluate
        reference_date: Evaluation instant
        persist: Write results back to the store
        email_signals: Optional relationship_id -> email signals

    Returns:
        DecisionEngineResult
    """
    relationships = db.get_relationships(user_id)
    actions = db.get_actions(user_id=user_id)
    result = evaluate_actions(relationships, actions, reference_date, email_signals)
    log = bind_context(logger, user_id=user_id)

    if result.best_action is not None:
        breakdown = next(
            s.breakdown for s in result.scored_actions if s.action_id == result.best_action.action_id
        )
        log.info(
            "Best action selected",
            extra={
                "context": {
                    "action_id": result.best_action.action_id,
                    "relationship_id": result.best_action.relationship_id,
                    "lane": result.best_action.lane.value,
                    "score": result.best_action.score,
                    "breakdown": breakdown,
                }
            },
        )
    else:
        log.info(
            "No best action",
            extra={"context": {"candidates": len(result.actions)}},
        )

    top = sorted(result.scored_actions, key=lambda s: (-s.score, s.action_id))
    for scored in top[:TOP_ACTIONS_LOGGED]:
        log.debug(
            "Top action",
            extra={
                "context": {
                    "action_id": scored.action_id,
                    "score": scored.score,
                    "reason": scored.reason,
                }
            },
        )

    if persist:
        db.update_action_rankings(
            (a.id, a.lane, a.next_move_score)
            for a in result.actions
            if a.id is not None and a.lane is not None and a.next_move_score is not None
        )
        if result.best_action is not None:
            for relationship in relationships:
                if relationship.id is None:
                    continue
                wanted = (
                    result.best_action.action_id
                    if relationship.id == result.best_action.relationship_id
                    else None
                )
                if relationship.next_move_action_id != wanted:
                    db.set_next_move_action(relationship.id, wanted)
                    relationship.next_move_action_id = wanted
        for relationship in relationships:
            detected = result.detected_states.get(relationship.id)
            if detected is not None and relationship.relationship_state != detected:
                relationship.relationship_state = detected
                relationship.state_updated_at = (
                    reference_date
                    if isinstance(reference_date, datetime)
                    else datetime(reference_date.year, reference_date.month, reference_date.day)
                )
                db.update_relationship(relationship)

    return result
