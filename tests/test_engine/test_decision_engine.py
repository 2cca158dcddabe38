"""Tests for the decision engine orchestrator."""

from datetime import date, datetime, timedelta

from nextbestmove.db.database import Database
from nextbestmove.db.models import (
    Action,
    ActionState,
    ActionType,
    DealStage,
    Lane,
    Relationship,
    RelationshipState,
    RelationshipStatus,
    RelationshipTier,
)
from nextbestmove.engine.decision_engine import (
    evaluate_actions,
    is_candidate,
    run_decision_engine,
)

TODAY = date(2026, 3, 2)


def _rel(rel_id: str, tier: RelationshipTier, **kwargs) -> Relationship:
    return Relationship(id=rel_id, user_id="u1", name=rel_id.upper(), tier=tier, **kwargs)


def _action(action_id: str, person_id=None, **kwargs) -> Action:
    fields = {
        "action_type": ActionType.FOLLOW_UP,
        "state": ActionState.NEW,
        "due_date": TODAY,
    }
    fields.update(kwargs)
    return Action(id=action_id, user_id="u1", person_id=person_id, **fields)


class TestIsCandidate:
    """Pending and due on or before the reference day."""

    def test_due_today(self):
        assert is_candidate(_action("a"), TODAY)

    def test_overdue_snoozed(self):
        assert is_candidate(_action("a", state=ActionState.SNOOZED, due_date=date(2026, 2, 1)), TODAY)

    def test_due_tomorrow(self):
        assert not is_candidate(_action("a", due_date=TODAY + timedelta(days=1)), TODAY)

    def test_completed(self):
        assert not is_candidate(_action("a", state=ActionState.DONE), TODAY)
        assert not is_candidate(_action("a", state=ActionState.REPLIED), TODAY)

    def test_no_due_date(self):
        assert not is_candidate(_action("a", due_date=None), TODAY)


class TestEvaluateActions:
    """Pure engine pass."""

    def test_picks_highest_scoring_action(self):
        relationships = [
            _rel("r1", RelationshipTier.INNER),
            _rel("r2", RelationshipTier.BACKGROUND),
        ]
        actions = [
            _action("a1", "r1"),
            _action("a2", "r2", action_type=ActionType.NURTURE),
        ]

        result = evaluate_actions(relationships, actions, TODAY)

        scores = {s.action_id: s.score for s in result.scored_actions}
        assert scores == {"a1": 38.0, "a2": 26.0}
        assert result.best_action is not None
        assert result.best_action.action_id == "a1"
        assert result.best_action.relationship_id == "r1"
        assert result.best_action.lane == Lane.PRIORITY
        assert result.best_action.reason == "Score: 38 (due today, high value relationship)"

    def test_candidates_carry_lane_and_score(self):
        result = evaluate_actions(
            [_rel("r1", RelationshipTier.INNER)], [_action("a1", "r1")], TODAY
        )
        assert len(result.actions) == 1
        assert result.actions[0].lane == Lane.PRIORITY
        assert result.actions[0].next_move_score == 38.0

    def test_input_actions_not_mutated(self):
        action = _action("a1", "r1")
        evaluate_actions([_rel("r1", RelationshipTier.INNER)], [action], TODAY)
        assert action.lane is None
        assert action.next_move_score is None

    def test_non_candidates_are_not_scored(self):
        actions = [
            _action("tomorrow", "r1", due_date=TODAY + timedelta(days=1)),
            _action("done", "r1", state=ActionState.DONE),
            _action("undated", "r1", due_date=None),
        ]
        result = evaluate_actions([_rel("r1", RelationshipTier.INNER)], actions, TODAY)
        assert result.scored_actions == []
        assert result.actions == []
        assert result.best_action is None

    def test_empty_input(self):
        result = evaluate_actions([], [], TODAY)
        assert result.best_action is None
        assert result.snapshots == {}

    def test_action_without_relationship(self):
        result = evaluate_actions([], [_action("solo")], TODAY)
        assert result.scored_actions[0].score == 28.0
        assert result.best_action.relationship_id is None

    def test_archived_relationship_gets_no_snapshot(self):
        relationships = [
            _rel("r1", RelationshipTier.INNER, status=RelationshipStatus.ARCHIVED)
        ]
        result = evaluate_actions(relationships, [_action("a1", "r1")], TODAY)
        assert "r1" not in result.snapshots
        assert result.scored_actions[0].score == 28.0

    def test_equal_scores_prefer_lowest_id(self):
        result = evaluate_actions([], [_action("b"), _action("a")], TODAY)
        assert result.best_action.action_id == "a"

    def test_detected_states(self):
        relationships = [
            _rel("meeting", RelationshipTier.ACTIVE),
            _rel("deal", RelationshipTier.ACTIVE),
            _rel("no", RelationshipTier.ACTIVE, has_explicit_no=True),
            _rel("quiet", RelationshipTier.ACTIVE),
        ]
        actions = [
            _action("m1", "meeting", action_type=ActionType.CALL_PREP, due_date=TODAY + timedelta(days=3)),
            _action("d1", "deal", deal_stage=DealStage.PROPOSAL, due_date=None),
        ]

        result = evaluate_actions(relationships, actions, TODAY)

        assert result.detected_states == {
            "meeting": RelationshipState.ACTIVE_CONVERSATION,
            "deal": RelationshipState.OPPORTUNITY,
            "no": RelationshipState.DORMANT,
            "quiet": RelationshipState.UNENGAGED,
        }
        assert result.relationship_lanes["meeting"].lane == Lane.IN_MOTION
        assert result.relationship_lanes["quiet"].lane == Lane.ON_DECK

    def test_stored_state_does_not_drive_lanes(self):
        relationships = [
            _rel("r1", RelationshipTier.ACTIVE, relationship_state=RelationshipState.OPPORTUNITY)
        ]
        result = evaluate_actions(relationships, [], TODAY)
        assert result.detected_states["r1"] == RelationshipState.UNENGAGED
        assert result.snapshots["r1"].lifecycle_state == RelationshipState.UNENGAGED
        assert result.relationship_lanes["r1"].lane == Lane.ON_DECK

    def test_explicit_no_overrides_stale_conversation(self):
        """A stored ACTIVE_CONVERSATION does not keep a declined contact in motion."""
        relationships = [
            _rel(
                "r1",
                RelationshipTier.ACTIVE,
                relationship_state=RelationshipState.ACTIVE_CONVERSATION,
                has_explicit_no=True,
                last_interaction_at=datetime(2025, 10, 1),
            )
        ]
        result = evaluate_actions(relationships, [], TODAY)
        assert result.detected_states["r1"] == RelationshipState.DORMANT
        assert result.relationship_lanes["r1"].lane == Lane.ON_DECK

    def test_datetime_reference(self):
        result = evaluate_actions([], [_action("a")], datetime(2026, 3, 2, 18, 30))
        assert result.best_action.action_id == "a"
        assert result.best_action.score == 28.0


class TestRunDecisionEngine:
    """Engine pass against the database."""

    def _seed(self, db: Database) -> tuple[str, str, str, str]:
        r1 = db.create_relationship(_rel("r1", RelationshipTier.INNER))
        r2 = db.create_relationship(_rel("r2", RelationshipTier.BACKGROUND))
        a1 = db.create_action(_action(None, r1))
        a2 = db.create_action(_action(None, r2, action_type=ActionType.NURTURE))
        return r1, r2, a1, a2

    def test_persist_writes_rankings_and_best_action(self, memory_db: Database):
        r1, r2, a1, a2 = self._seed(memory_db)
        memory_db.set_next_move_action(r2, "stale-action")

        result = run_decision_engine(memory_db, "u1", TODAY, persist=True)

        assert result.best_action.action_id == a1
        stored = memory_db.get_action(a1)
        assert stored.lane == Lane.PRIORITY
        assert stored.next_move_score == 38.0
        assert memory_db.get_action(a2).next_move_score == 26.0
        assert memory_db.get_relationship(r1).next_move_action_id == a1
        assert memory_db.get_relationship(r2).next_move_action_id is None

    def test_persist_writes_detected_state_once(self, memory_db: Database):
        r1, _, _, _ = self._seed(memory_db)

        run_decision_engine(memory_db, "u1", TODAY, persist=True)

        stored = memory_db.get_relationship(r1)
        assert stored.relationship_state == RelationshipState.UNENGAGED
        assert stored.state_updated_at == datetime(2026, 3, 2)

    def test_persist_rewrites_stale_state(self, memory_db: Database):
        rel_id = memory_db.create_relationship(
            _rel(
                "r9",
                RelationshipTier.WARM,
                relationship_state=RelationshipState.ACTIVE_CONVERSATION,
                has_explicit_no=True,
            )
        )
        run_decision_engine(memory_db, "u1", TODAY, persist=True)
        stored = memory_db.get_relationship(rel_id)
        assert stored.relationship_state == RelationshipState.DORMANT
        assert stored.state_updated_at == datetime(2026, 3, 2)

    def test_persist_leaves_matching_state_alone(self, memory_db: Database):
        rel_id = memory_db.create_relationship(
            _rel("r9", RelationshipTier.WARM, relationship_state=RelationshipState.UNENGAGED)
        )
        run_decision_engine(memory_db, "u1", TODAY, persist=True)
        assert memory_db.get_relationship(rel_id).state_updated_at is None

    def test_unknown_stored_tier_does_not_abort(self, memory_db: Database):
        r1, _, a1, _ = self._seed(memory_db)
        conn = memory_db._get_connection()
        conn.execute("UPDATE relationships SET tier = 'vip' WHERE id = ?", (r1,))
        conn.commit()

        result = run_decision_engine(memory_db, "u1", TODAY, persist=True)

        assert a1 in result.lanes
        assert result.best_action is not None

    def test_no_persist_writes_nothing(self, memory_db: Database):
        r1, _, a1, _ = self._seed(memory_db)

        result = run_decision_engine(memory_db, "u1", TODAY)

        assert result.best_action.action_id == a1
        assert memory_db.get_action(a1).lane is None
        assert memory_db.get_action(a1).next_move_score is None
        stored = memory_db.get_relationship(r1)
        assert stored.next_move_action_id is None
        assert stored.relationship_state is None

    def test_other_users_ignored(self, memory_db: Database):
        self._seed(memory_db)
        result = run_decision_engine(memory_db, "someone-else", TODAY, persist=True)
        assert result.best_action is None
        assert result.actions == []
