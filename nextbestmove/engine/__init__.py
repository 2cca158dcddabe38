"""Engine package - Decision logic.

This package contains the decision core and the workflows built on it:
    - Relationship snapshots and lifecycle states
    - Lanes, scoring and best-action selection
    - Capacity, daily plans and housekeeping

Modules:
    - relationship_state: Per-relationship snapshot aggregation
    - state_machine: Lifecycle detection and transitions
    - lanes: Priority / in-motion / on-deck assignment
    - scoring: NextMoveScore and best-action selection
    - capacity: Daily capacity with overrides
    - duration_filter: Best action that fits a time slot
    - decision_engine: One full engine pass for a user
    - daily_plan: Daily plan generation
    - housekeeping: Archiving and unsnoozing
    - scheduling: Smart due-date placement
    - completion: Close an action and transition its relationship
"""

from nextbestmove.engine.capacity import (
    CapacityInfo,
    get_action_count_for_level,
    get_capacity_with_overrides,
)
from nextbestmove.engine.decision_engine import (
    BestAction,
    DecisionEngineResult,
    evaluate_actions,
    run_decision_engine,
)
from nextbestmove.engine.duration_filter import get_action_for_duration
from nextbestmove.engine.lanes import assign_action_lane, assign_relationship_lane
from nextbestmove.engine.relationship_state import compute_relationship_snapshot
from nextbestmove.engine.scoring import calculate_next_move_score, select_best_action
from nextbestmove.engine.state_machine import (
    detect_state,
    determine_next_state,
    get_valid_actions_for_state,
)

__all__ = [
    "BestAction",
    "CapacityInfo",
    "DecisionEngineResult",
    "assign_action_lane",
    "assign_relationship_lane",
    "calculate_next_move_score",
    "compute_relationship_snapshot",
    "detect_state",
    "determine_next_state",
    "evaluate_actions",
    "get_action_count_for_level",
    "get_action_for_duration",
    "get_capacity_with_overrides",
    "get_valid_actions_for_state",
    "run_decision_engine",
    "select_best_action",
]
