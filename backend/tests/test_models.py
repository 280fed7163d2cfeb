"""Tests for the Goal / Move / DailyProgress entities."""
import pytest
from sqlalchemy import func, select

from conftest import NOW, move_named
from inchforward.models.goal import Goal, Move, DailyProgress, MoveCategory


class TestMoveValidation:
    def test_duration_must_be_positive(self):
        with pytest.raises(ValueError):
            Move(title="Outline", estimated_duration=0)
        with pytest.raises(ValueError):
            Move(title="Outline", estimated_duration=-30)

    def test_category_must_be_known(self):
        with pytest.raises(ValueError):
            Move(title="Outline", category="dancing")

    def test_category_accepts_raw_value(self):
        move = Move(title="Outline", category="writing")
        assert move.category is MoveCategory.WRITING

    def test_display_duration(self):
        assert Move(title="a", estimated_duration=30).display_duration == "<1 min"
        assert Move(title="b", estimated_duration=1800).display_duration == "30 min"


class TestGoalHelpers:
    async def test_recommended_move_prefers_default(self, make_goal):
        goal = await make_goal(moves=["A", "B", "C"], default="B")
        assert goal.recommended_move.title == "B"

    async def test_recommended_move_falls_back_to_first(self, make_goal):
        goal = await make_goal(moves=["A", "B"])
        assert goal.default_move is None
        assert goal.recommended_move.title == "A"

    async def test_recommended_move_none_without_moves(self, make_goal):
        goal = await make_goal(moves=[])
        assert goal.recommended_move is None

    async def test_set_default_move_keeps_single_default(self, make_goal, store):
        goal = await make_goal(moves=["A", "B", "C"], default="A")
        goal.set_default_move(move_named(goal, "C"))
        await store.save()
        assert [m.title for m in goal.moves if m.is_default_move] == ["C"]

    async def test_set_default_move_rejects_foreign_move(self, make_goal):
        goal = await make_goal(moves=["A"])
        other = await make_goal(title="Run a marathon", moves=["Jog"])
        with pytest.raises(ValueError):
            goal.set_default_move(other.moves[0])
        assert goal.moves[0].is_default_move is False

    async def test_mark_completed(self, make_goal):
        goal = await make_goal(moves=["A"])
        goal.mark_completed(NOW)
        assert goal.is_completed is True
        assert goal.completion_date == NOW

    async def test_last_progress_date(self, make_goal, record_progress):
        goal = await make_goal(moves=["A"])
        assert goal.last_progress_date is None
        await record_progress(goal, goal.moves[0], when=NOW)
        assert goal.last_progress_date == NOW


async def test_deleting_goal_cascades_to_moves_and_progress(make_goal, record_progress, store, db_session):
    goal = await make_goal(moves=["A", "B"])
    keeper = await make_goal(title="Learn Spanish", moves=["Flashcards"])
    await record_progress(goal, goal.moves[0])
    await record_progress(keeper, keeper.moves[0])

    await store.delete(goal)
    await store.save()

    moves = (await db_session.execute(select(func.count()).select_from(Move))).scalar_one()
    progress = (await db_session.execute(select(func.count()).select_from(DailyProgress))).scalar_one()
    goals = (await db_session.execute(select(func.count()).select_from(Goal))).scalar_one()
    assert (goals, moves, progress) == (1, 1, 1)
