"""SQLite database connection and operations for NextBestMove.

Provides:
    - Connection management with WAL mode
    - Schema creation
    - CRUD operations for users, relationships, actions and daily plans
    - Per-day and user-default capacity overrides

Dates and timestamps are stored as ISO-8601 TEXT (naive UTC) and parsed
back into date/datetime objects by the row mappers.

Usage:
    from nextbestmove.db.database import Database

    db = Database()
    db.initialize()

    rel_id = db.create_relationship(Relationship(user_id="u1", name="Dana Cole"))
    action_id = db.create_action(Action(user_id="u1", person_id=rel_id))
"""

import sqlite3
import uuid
from datetime import date, datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Optional

from nextbestmove.core.config import get_config
from nextbestmove.core.exceptions import DatabaseError, ValidationError
from nextbestmove.core.logging import get_logger
from nextbestmove.db.models import (
    Action,
    ActionState,
    ActionType,
    Cadence,
    CapacityLevel,
    DailyPlan,
    DailyPlanAction,
    DealStage,
    Lane,
    MomentumTrend,
    Relationship,
    RelationshipState,
    RelationshipStatus,
    RelationshipTier,
    UserProfile,
    parse_date,
    parse_datetime,
)

logger = get_logger(__name__)


SCHEMA_VERSION = 1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _to_db(value: Any) -> Any:
    """Convert a Python value to its stored TEXT/INTEGER form."""
    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, bool):
        return int(value)
    return value


def _enum_or_none(enum_cls: Any, value: Optional[str], default: Any = None) -> Any:
    """Map a stored string onto ``enum_cls``; unknown or empty values give ``default``."""
    if not value:
        return default
    try:
        return enum_cls(value)
    except ValueError:
        logger.warning(
            "Unknown stored enum value",
            extra={"context": {"enum": enum_cls.__name__, "value": value}},
        )
        return default


def _new_id() -> str:
    return uuid.uuid4().hex


class Database:
    """SQLite database manager.

    Attributes:
        db_path: Path to database file
    """

    def __init__(self, db_path: Optional[str] = None):
        """Initialize database.

        Args:
            db_path: Path to database file. Use ":memory:" for in-memory.
                    Defaults to config path.
        """
        if db_path is None:
            config = get_config()
            self.db_path = str(config.db_path)
        else:
            self.db_path = db_path

        self._conn: Optional[sqlite3.Connection] = None

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            try:
                if self.db_path != ":memory:":
                    Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

                self._conn = sqlite3.connect(self.db_path)
                self._conn.row_factory = sqlite3.Row
                self._conn.execute("PRAGMA foreign_keys = ON")

                if self.db_path != ":memory:":
                    self._conn.execute("PRAGMA journal_mode = WAL")

            except sqlite3.Error as e:
                raise DatabaseError(f"Cannot connect to database: {e}") from e

        return self._conn

    def close(self) -> None:
        """Close database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def initialize(self) -> None:
        """Create schema if not exists."""
        conn = self._get_connection()

        try:
            conn.executescript(self._get_schema_ddl())
            conn.execute(
                "INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
            )
            conn.commit()
            logger.info("Database initialized", extra={"context": {"path": self.db_path}})
        except sqlite3.Error as e:
            raise DatabaseError(f"Cannot initialize database: {e}") from e

    def _get_schema_ddl(self) -> str:
        """Return complete schema DDL."""
        return """
        CREATE TABLE IF NOT EXISTS schema_version (
            version INTEGER PRIMARY KEY
        );

        -- Users (planning preferences only)
        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY,
            timezone TEXT NOT NULL DEFAULT 'UTC',
            exclude_weekends INTEGER NOT NULL DEFAULT 0,
            default_capacity_override TEXT,
            created_at TEXT
        );

        -- Relationships
        CREATE TABLE IF NOT EXISTS relationships (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            name TEXT NOT NULL,
            url TEXT,
            tier TEXT,
            cadence TEXT,
            cadence_days INTEGER,
            status TEXT NOT NULL DEFAULT 'ACTIVE',
            last_interaction_at TEXT,
            next_touch_due_at TEXT,
            relationship_state TEXT,
            state_updated_at TEXT,
            momentum_score REAL,
            momentum_trend TEXT NOT NULL DEFAULT 'unknown',
            next_move_action_id TEXT,
            has_explicit_no INTEGER NOT NULL DEFAULT 0,
            notes TEXT,
            created_at TEXT,
            updated_at TEXT
        );

        CREATE INDEX IF NOT EXISTS idx_relationships_user ON relationships(user_id, status);

        -- Actions
        CREATE TABLE IF NOT EXISTS actions (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            person_id TEXT,
            action_type TEXT NOT NULL,
            state TEXT NOT NULL DEFAULT 'NEW',
            description TEXT,
            due_date TEXT,
            promised_due_at TEXT,
            estimated_minutes INTEGER CHECK (estimated_minutes IS NULL OR estimated_minutes > 0),
            completed_at TEXT,
            snooze_until TEXT,
            notes TEXT,
            auto_created INTEGER NOT NULL DEFAULT 0,
            lane TEXT,
            next_move_score REAL,
            deal_stage TEXT,
            next_call_calendared_at TEXT,
            replied_to_email_at TEXT,
            got_response_at TEXT,
            created_at TEXT,
            updated_at TEXT,
            FOREIGN KEY (person_id) REFERENCES relationships(id)
        );

        CREATE INDEX IF NOT EXISTS idx_actions_user_state ON actions(user_id, state);
        CREATE INDEX IF NOT EXISTS idx_actions_person ON actions(person_id);
        CREATE INDEX IF NOT EXISTS idx_actions_due ON actions(due_date);

        -- Per-day capacity overrides
        CREATE TABLE IF NOT EXISTS capacity_overrides (
            user_id TEXT NOT NULL,
            date TEXT NOT NULL,
            level TEXT NOT NULL,
            reason TEXT,
            updated_at TEXT,
            PRIMARY KEY (user_id, date)
        );

        -- Daily plans
        CREATE TABLE IF NOT EXISTS daily_plans (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL,
            date TEXT NOT NULL,
            capacity TEXT NOT NULL,
            capacity_override TEXT,
            override_reason TEXT,
            free_minutes INTEGER,
            focus_statement TEXT,
            created_at TEXT,
            UNIQUE (user_id, date)
        );

        CREATE TABLE IF NOT EXISTS daily_plan_actions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            daily_plan_id INTEGER NOT NULL,
            action_id TEXT NOT NULL,
            position INTEGER NOT NULL,
            is_fast_win INTEGER NOT NULL DEFAULT 0,
            FOREIGN KEY (daily_plan_id) REFERENCES daily_plans(id) ON DELETE CASCADE,
            FOREIGN KEY (action_id) REFERENCES actions(id)
        );

        CREATE INDEX IF NOT EXISTS idx_plan_actions_plan ON daily_plan_actions(daily_plan_id);
        """

    # =========================================================================
    # ROW MAPPERS
    # =========================================================================

    def _row_to_relationship(self, row: sqlite3.Row) -> Relationship:
        """Convert a database row to a Relationship dataclass."""
        return Relationship(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"],
            url=row["url"],
            tier=_enum_or_none(RelationshipTier, row["tier"]),
            cadence=_enum_or_none(Cadence, row["cadence"]),
            cadence_days=row["cadence_days"],
            status=RelationshipStatus(row["status"]),
            last_interaction_at=parse_datetime(row["last_interaction_at"]),
            next_touch_due_at=parse_datetime(row["next_touch_due_at"]),
            relationship_state=_enum_or_none(RelationshipState, row["relationship_state"]),
            state_updated_at=parse_datetime(row["state_updated_at"]),
            momentum_score=row["momentum_score"],
            momentum_trend=_enum_or_none(MomentumTrend, row["momentum_trend"], MomentumTrend.UNKNOWN),
            next_move_action_id=row["next_move_action_id"],
            has_explicit_no=bool(row["has_explicit_no"]),
            notes=row["notes"],
            created_at=parse_datetime(row["created_at"]),
            updated_at=parse_datetime(row["updated_at"]),
        )

    def _row_to_action(self, row: sqlite3.Row) -> Action:
        """Convert a database row to an Action dataclass."""
        return Action(
            id=row["id"],
            user_id=row["user_id"],
            person_id=row["person_id"],
            action_type=ActionType(row["action_type"]),
            state=ActionState(row["state"]),
            description=row["description"],
            due_date=parse_date(row["due_date"]),
            promised_due_at=parse_datetime(row["promised_due_at"]),
            estimated_minutes=row["estimated_minutes"],
            completed_at=parse_datetime(row["completed_at"]),
            snooze_until=parse_date(row["snooze_until"]),
            notes=row["notes"],
            auto_created=bool(row["auto_created"]),
            lane=_enum_or_none(Lane, row["lane"]),
            next_move_score=row["next_move_score"],
            deal_stage=_enum_or_none(DealStage, row["deal_stage"]),
            next_call_calendared_at=parse_datetime(row["next_call_calendared_at"]),
            replied_to_email_at=parse_datetime(row["replied_to_email_at"]),
            got_response_at=parse_datetime(row["got_response_at"]),
            created_at=parse_datetime(row["created_at"]),
            updated_at=parse_datetime(row["updated_at"]),
        )

    def _row_to_user(self, row: sqlite3.Row) -> UserProfile:
        """Convert a database row to a UserProfile dataclass."""
        return UserProfile(
            id=row["id"],
            timezone=row["timezone"] or "UTC",
            exclude_weekends=bool(row["exclude_weekends"]),
            default_capacity_override=row["default_capacity_override"],
        )

    # =========================================================================
    # USER OPERATIONS
    # =========================================================================

    def upsert_user(self, profile: UserProfile) -> None:
        """Create or replace a user's planning preferences."""
        conn = self._get_connection()
        try:
            conn.execute(
                """INSERT INTO users
                   (id, timezone, exclude_weekends, default_capacity_override, created_at)
                   VALUES (?, ?, ?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                       timezone = excluded.timezone,
                       exclude_weekends = excluded.exclude_weekends,
                       default_capacity_override = excluded.default_capacity_override""",
                (
                    profile.id,
                    profile.timezone,
                    int(profile.exclude_weekends),
                    profile.default_capacity_override,
                    _to_db(_utcnow()),
                ),
            )
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise DatabaseError(f"Failed to save user: {e}") from e

    def get_user_profile(self, user_id: str) -> Optional[UserProfile]:
        """Get user preferences by ID."""
        conn = self._get_connection()
        row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def get_default_capacity_override(self, user_id: str) -> Optional[str]:
        """Return the user's default capacity level, if any."""
        profile = self.get_user_profile(user_id)
        if profile is None:
            return None
        return profile.default_capacity_override

    def set_default_capacity_override(self, user_id: str, level: Optional[str]) -> None:
        """Set (or clear with None) the user's default capacity level."""
        conn = self._get_connection()
        try:
            conn.execute(
                """INSERT INTO users (id, default_capacity_override, created_at)
                   VALUES (?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                       default_capacity_override = excluded.default_capacity_override""",
                (user_id, level, _to_db(_utcnow())),
            )
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise DatabaseError(f"Failed to set default capacity: {e}") from e

    # =========================================================================
    # CAPACITY OVERRIDE OPERATIONS
    # =========================================================================

    def get_capacity_override(self, user_id: str, day: date) -> Optional[dict[str, Any]]:
        """Return the per-day override as {"level", "reason"}, or None."""
        conn = self._get_connection()
        row = conn.execute(
            "SELECT level, reason FROM capacity_overrides WHERE user_id = ? AND date = ?",
            (user_id, _to_db(day)),
        ).fetchone()
        if row is None:
            return None
        return {"level": row["level"], "reason": row["reason"]}

    def set_capacity_override(
        self, user_id: str, day: date, level: str, reason: Optional[str] = None
    ) -> None:
        """Upsert the per-day override. Setting the same value twice is a no-op."""
        conn = self._get_connection()
        try:
            conn.execute(
                """INSERT INTO capacity_overrides (user_id, date, level, reason, updated_at)
                   VALUES (?, ?, ?, ?, ?)
                   ON CONFLICT(user_id, date) DO UPDATE SET
                       level = excluded.level,
                       reason = excluded.reason,
                       updated_at = excluded.updated_at""",
                (user_id, _to_db(day), level, reason, _to_db(_utcnow())),
            )
            conn.commit()
            logger.info(
                "Capacity override set",
                extra={"context": {"user_id": user_id, "date": str(day), "level": level}},
            )
        except sqlite3.Error as e:
            conn.rollback()
            raise DatabaseError(f"Failed to set capacity override: {e}") from e

    def remove_capacity_override(self, user_id: str, day: date) -> bool:
        """Delete the per-day override. Returns True if one existed."""
        conn = self._get_connection()
        try:
            cursor = conn.execute(
                "DELETE FROM capacity_overrides WHERE user_id = ? AND date = ?",
                (user_id, _to_db(day)),
            )
            conn.commit()
            return cursor.rowcount > 0
        except sqlite3.Error as e:
            conn.rollback()
            raise DatabaseError(f"Failed to remove capacity override: {e}") from e

    # =========================================================================
    # RELATIONSHIP OPERATIONS
    # =========================================================================

    def create_relationship(self, relationship: Relationship) -> str:
        """Create a relationship record.

        Args:
            relationship: Relationship to create. An id is generated if unset.

        Returns:
            Relationship ID
        """
        conn = self._get_connection()
        rel_id = relationship.id or _new_id()
        now = _utcnow()
        try:
            conn.execute(
                """INSERT INTO relationships
                   (id, user_id, name, url, tier, cadence, cadence_days, status,
                    last_interaction_at, next_touch_due_at, relationship_state,
                    state_updated_at, momentum_score, momentum_trend,
                    next_move_action_id, has_explicit_no, notes, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    rel_id,
                    relationship.user_id,
                    relationship.name,
                    relationship.url,
                    _to_db(relationship.tier),
                    _to_db(relationship.cadence),
                    relationship.cadence_days,
                    _to_db(relationship.status),
                    _to_db(relationship.last_interaction_at),
                    _to_db(relationship.next_touch_due_at),
                    _to_db(relationship.relationship_state),
                    _to_db(relationship.state_updated_at),
                    relationship.momentum_score,
                    _to_db(relationship.momentum_trend),
                    relationship.next_move_action_id,
                    int(relationship.has_explicit_no),
                    relationship.notes,
                    _to_db(relationship.created_at or now),
                    _to_db(relationship.updated_at or now),
                ),
            )
            conn.commit()
            logger.info(
                "Relationship created",
                extra={"context": {"relationship_id": rel_id, "name": relationship.name}},
            )
            return rel_id
        except sqlite3.Error as e:
            conn.rollback()
            raise DatabaseError(f"Failed to create relationship: {e}") from e

    def get_relationship(self, relationship_id: str) -> Optional[Relationship]:
        """Get relationship by ID."""
        conn = self._get_connection()
        row = conn.execute(
            "SELECT * FROM relationships WHERE id = ?", (relationship_id,)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_relationship(row)

    def get_relationships(
        self, user_id: str, status: Optional[RelationshipStatus] = RelationshipStatus.ACTIVE
    ) -> list[Relationship]:
        """Get a user's relationships, ACTIVE only by default (None for all)."""
        conn = self._get_connection()
        if status is None:
            rows = conn.execute(
                "SELECT * FROM relationships WHERE user_id = ? ORDER BY name", (user_id,)
            ).fetchall()
        else:
            rows = conn.execute(
                "SELECT * FROM relationships WHERE user_id = ? AND status = ? ORDER BY name",
                (user_id, status.value),
            ).fetchall()
        return [self._row_to_relationship(row) for row in rows]

    def update_relationship(self, relationship: Relationship) -> bool:
        """Update relationship. Returns True if updated."""
        if relationship.id is None:
            return False
        conn = self._get_connection()
        try:
            cursor = conn.execute(
                """UPDATE relationships SET
                   name = ?, url = ?, tier = ?, cadence = ?, cadence_days = ?, status = ?,
                   last_interaction_at = ?, next_touch_due_at = ?, relationship_state = ?,
                   state_updated_at = ?, momentum_score = ?, momentum_trend = ?,
                   next_move_action_id = ?, has_explicit_no = ?, notes = ?, updated_at = ?
                   WHERE id = ?""",
                (
                    relationship.name,
                    relationship.url,
                    _to_db(relationship.tier),
                    _to_db(relationship.cadence),
                    relationship.cadence_days,
                    _to_db(relationship.status),
                    _to_db(relationship.last_interaction_at),
                    _to_db(relationship.next_touch_due_at),
                    _to_db(relationship.relationship_state),
                    _to_db(relationship.state_updated_at),
                    relationship.momentum_score,
                    _to_db(relationship.momentum_trend),
                    relationship.next_move_action_id,
                    int(relationship.has_explicit_no),
                    relationship.notes,
                    _to_db(_utcnow()),
                    relationship.id,
                ),
            )
            conn.commit()
            return cursor.rowcount > 0
        except sqlite3.Error as e:
            conn.rollback()
            raise DatabaseError(f"Failed to update relationship: {e}") from e

    def set_next_move_action(self, relationship_id: str, action_id: Optional[str]) -> None:
        """Record the best action chosen for a relationship."""
        conn = self._get_connection()
        try:
            conn.execute(
                "UPDATE relationships SET next_move_action_id = ? WHERE id = ?",
                (action_id, relationship_id),
            )
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise DatabaseError(f"Failed to set next move action: {e}") from e

    # =========================================================================
    # ACTION OPERATIONS
    # =========================================================================

    def create_action(self, action: Action) -> str:
        """Create an action record.

        Args:
            action: Action to create. An id is generated if unset.

        Returns:
            Action ID

        Raises:
            ValidationError: If estimated_minutes is not positive
        """
        action.validate_estimated_minutes()
        conn = self._get_connection()
        action_id = action.id or _new_id()
        now = _utcnow()
        try:
            conn.execute(
                """INSERT INTO actions
                   (id, user_id, person_id, action_type, state, description, due_date,
                    promised_due_at, estimated_minutes, completed_at, snooze_until, notes,
                    auto_created, lane, next_move_score, deal_stage,
                    next_call_calendared_at, replied_to_email_at, got_response_at,
                    created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    action_id,
                    action.user_id,
                    action.person_id,
                    _to_db(action.action_type),
                    _to_db(action.state),
                    action.description,
                    _to_db(action.due_date),
                    _to_db(action.promised_due_at),
                    action.estimated_minutes,
                    _to_db(action.completed_at),
                    _to_db(action.snooze_until),
                    action.notes,
                    int(action.auto_created),
                    _to_db(action.lane),
                    action.next_move_score,
                    _to_db(action.deal_stage),
                    _to_db(action.next_call_calendared_at),
                    _to_db(action.replied_to_email_at),
                    _to_db(action.got_response_at),
                    _to_db(action.created_at or now),
                    _to_db(action.updated_at or now),
                ),
            )
            conn.commit()
            logger.debug(
                "Action created",
                extra={
                    "context": {
                        "action_id": action_id,
                        "action_type": action.action_type.value,
                        "person_id": action.person_id,
                    }
                },
            )
            return action_id
        except sqlite3.Error as e:
            conn.rollback()
            raise DatabaseError(f"Failed to create action: {e}") from e

    def get_action(self, action_id: str) -> Optional[Action]:
        """Get action by ID."""
        conn = self._get_connection()
        row = conn.execute("SELECT * FROM actions WHERE id = ?", (action_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_action(row)

    def get_actions(
        self,
        user_id: Optional[str] = None,
        states: Optional[Iterable[ActionState]] = None,
        person_id: Optional[str] = None,
    ) -> list[Action]:
        """Get actions with optional user, state and relationship filters.

        Ordered by due_date then id so callers see a stable input order.
        """
        conn = self._get_connection()

        conditions: list[str] = []
        params: list[Any] = []

        if user_id is not None:
            conditions.append("user_id = ?")
            params.append(user_id)

        if states is not None:
            state_values = [s.value for s in states]
            if not state_values:
                return []
            placeholders = ",".join("?" for _ in state_values)
            conditions.append(f"state IN ({placeholders})")
            params.extend(state_values)

        if person_id is not None:
            conditions.append("person_id = ?")
            params.append(person_id)

        where_clause = ""
        if conditions:
            where_clause = "WHERE " + " AND ".join(conditions)

        rows = conn.execute(
            f"SELECT * FROM actions {where_clause} ORDER BY due_date, id", params
        ).fetchall()
        return [self._row_to_action(row) for row in rows]

    def update_action(self, action: Action, touch: bool = True) -> bool:
        """Update action. Returns True if updated.

        Args:
            action: Action with new field values
            touch: Stamp updated_at with the current time (otherwise keep
                the value on the dataclass)

        Raises:
            ValidationError: If estimated_minutes is not positive
        """
        if action.id is None:
            return False
        action.validate_estimated_minutes()
        conn = self._get_connection()
        updated_at = _utcnow() if touch or action.updated_at is None else action.updated_at
        try:
            cursor = conn.execute(
                """UPDATE actions SET
                   person_id = ?, action_type = ?, state = ?, description = ?,
                   due_date = ?, promised_due_at = ?, estimated_minutes = ?,
                   completed_at = ?, snooze_until = ?, notes = ?, auto_created = ?,
                   lane = ?, next_move_score = ?, deal_stage = ?,
                   next_call_calendared_at = ?, replied_to_email_at = ?, got_response_at = ?,
                   updated_at = ?
                   WHERE id = ?""",
                (
                    action.person_id,
                    _to_db(action.action_type),
                    _to_db(action.state),
                    action.description,
                    _to_db(action.due_date),
                    _to_db(action.promised_due_at),
                    action.estimated_minutes,
                    _to_db(action.completed_at),
                    _to_db(action.snooze_until),
                    action.notes,
                    int(action.auto_created),
                    _to_db(action.lane),
                    action.next_move_score,
                    _to_db(action.deal_stage),
                    _to_db(action.next_call_calendared_at),
                    _to_db(action.replied_to_email_at),
                    _to_db(action.got_response_at),
                    _to_db(updated_at),
                    action.id,
                ),
            )
            conn.commit()
            action.updated_at = updated_at
            return cursor.rowcount > 0
        except sqlite3.Error as e:
            conn.rollback()
            raise DatabaseError(f"Failed to update action: {e}") from e

    def update_action_rankings(self, rankings: Iterable[tuple[str, Lane, float]]) -> int:
        """Persist lane and next_move_score for many actions in one transaction.

        Does not touch updated_at; rankings are derived, not user edits.

        Args:
            rankings: (action_id, lane, score) tuples

        Returns:
            Number of rows updated
        """
        conn = self._get_connection()
        updated = 0
        try:
            for action_id, lane, score in rankings:
                cursor = conn.execute(
                    "UPDATE actions SET lane = ?, next_move_score = ? WHERE id = ?",
                    (lane.value, score, action_id),
                )
                updated += cursor.rowcount
            conn.commit()
            return updated
        except sqlite3.Error as e:
            conn.rollback()
            raise DatabaseError(f"Failed to persist action rankings: {e}") from e

    # =========================================================================
    # DAILY PLAN OPERATIONS
    # =========================================================================

    def daily_plan_exists(self, user_id: str, day: date) -> bool:
        """Return True if a plan was already generated for the day."""
        conn = self._get_connection()
        row = conn.execute(
            "SELECT 1 FROM daily_plans WHERE user_id = ? AND date = ?",
            (user_id, _to_db(day)),
        ).fetchone()
        return row is not None

    def create_daily_plan(self, plan: DailyPlan) -> int:
        """Insert a plan and its ordered actions in one transaction.

        Returns:
            New plan ID
        """
        if plan.date is None or plan.capacity is None:
            raise ValidationError("Daily plan needs a date and a capacity")
        conn = self._get_connection()
        created_at = plan.created_at or _utcnow()
        try:
            cursor = conn.execute(
                """INSERT INTO daily_plans
                   (user_id, date, capacity, capacity_override, override_reason,
                    free_minutes, focus_statement, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    plan.user_id,
                    _to_db(plan.date),
                    _to_db(plan.capacity),
                    plan.capacity_override,
                    plan.override_reason,
                    plan.free_minutes,
                    plan.focus_statement,
                    _to_db(created_at),
                ),
            )
            plan_id = cursor.lastrowid
            assert plan_id is not None, "lastrowid was None after INSERT"
            conn.executemany(
                """INSERT INTO daily_plan_actions (daily_plan_id, action_id, position, is_fast_win)
                   VALUES (?, ?, ?, ?)""",
                [
                    (plan_id, item.action_id, item.position, int(item.is_fast_win))
                    for item in plan.actions
                ],
            )
            conn.commit()
            plan.id = plan_id
            plan.created_at = created_at
            logger.info(
                "Daily plan created",
                extra={
                    "context": {
                        "plan_id": plan_id,
                        "user_id": plan.user_id,
                        "date": str(plan.date),
                        "actions": len(plan.actions),
                    }
                },
            )
            return plan_id
        except sqlite3.Error as e:
            conn.rollback()
            raise DatabaseError(f"Failed to create daily plan: {e}") from e

    def get_daily_plan(self, user_id: str, day: date) -> Optional[DailyPlan]:
        """Get a user's plan for a day, with its actions in position order."""
        conn = self._get_connection()
        row = conn.execute(
            "SELECT * FROM daily_plans WHERE user_id = ? AND date = ?",
            (user_id, _to_db(day)),
        ).fetchone()
        if row is None:
            return None

        action_rows = conn.execute(
            """SELECT action_id, position, is_fast_win FROM daily_plan_actions
               WHERE daily_plan_id = ? ORDER BY position""",
            (row["id"],),
        ).fetchall()

        return DailyPlan(
            id=row["id"],
            user_id=row["user_id"],
            date=parse_date(row["date"]),
            capacity=CapacityLevel(row["capacity"]),
            capacity_override=row["capacity_override"],
            override_reason=row["override_reason"],
            free_minutes=row["free_minutes"],
            focus_statement=row["focus_statement"],
            actions=[
                DailyPlanAction(
                    action_id=r["action_id"],
                    position=r["position"],
                    is_fast_win=bool(r["is_fast_win"]),
                )
                for r in action_rows
            ],
            created_at=parse_datetime(row["created_at"]),
        )
