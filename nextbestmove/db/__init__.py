"""Database package - SQLite database and models.

This package provides all persistence functionality:
    - database: Connection management and CRUD operations
    - models: Dataclasses and enumerations

Modules:
    - database: SQLite connection and operations
    - models: Data models and enumerations
"""

from nextbestmove.db.models import (
    Action,
    ActionState,
    ActionStatus,
    ActionType,
    Cadence,
    CapacityLevel,
    CapacitySource,
    CompletionEvents,
    DailyPlan,
    DailyPlanAction,
    DealStage,
    EmailSignals,
    Lane,
    MomentumTrend,
    Relationship,
    RelationshipSnapshot,
    RelationshipState,
    RelationshipStatus,
    RelationshipTier,
    UserProfile,
)

__all__ = [
    # Enums
    "ActionType",
    "ActionState",
    "ActionStatus",
    "RelationshipState",
    "RelationshipStatus",
    "RelationshipTier",
    "Lane",
    "CapacityLevel",
    "CapacitySource",
    "Cadence",
    "MomentumTrend",
    "DealStage",
    # Dataclasses
    "Action",
    "Relationship",
    "RelationshipSnapshot",
    "EmailSignals",
    "CompletionEvents",
    "DailyPlan",
    "DailyPlanAction",
    "UserProfile",
]
