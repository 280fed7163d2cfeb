from datetime import date
from types import SimpleNamespace

import pytest

from inchforward.services import prompts
from inchforward.services.prompts import DetailLevel, PromptContext


def _move(title, description="", duration=600):
    return SimpleNamespace(title=title, description=description, estimated_duration=duration)


def _goal(moves=()):
    return SimpleNamespace(title="Write a Novel", description="Finish a first draft", moves=list(moves))


TODAY = date(2026, 10, 19)


def test_long_date():
    assert prompts.long_date(TODAY) == "Monday, October 19, 2026"


@pytest.mark.parametrize("level, multiplier", [
    (DetailLevel.VAGUE, 0.5),
    (DetailLevel.CONCISE, 0.75),
    (DetailLevel.DETAILED, 1.0),
    (DetailLevel.GRANULAR, 1.5),
    (DetailLevel.STEP_BY_STEP, 2.5),
])
def test_detail_level_multipliers(level, multiplier):
    assert level.time_multiplier == multiplier


def test_context_lists_recent_moves_newest_first_and_caps_at_three():
    recent = [_move(f"Move {i}", f"did {i}") for i in range(5)]
    context = PromptContext.for_goal(_goal(), TODAY, recent)
    assert [t for t, _ in context.recent_moves] == ["Move 0", "Move 1", "Move 2"]
    rendered = context.render()
    assert rendered.index("Move 0") < rendered.index("Move 1") < rendered.index("Move 2")
    assert "Move 3" not in rendered


def test_context_names_existing_moves_and_the_date():
    goal = _goal([_move("Outline chapter one"), _move("Write 300 words")])
    rendered = PromptContext.for_goal(goal, TODAY).render()
    assert '"Outline chapter one", "Write 300 words"' in rendered
    assert "do not suggest duplicates" in rendered
    assert "Monday, October 19, 2026" in rendered
    assert "in the future relative to today" in rendered


def test_new_moves_prompt():
    text = prompts.new_moves_prompt(PromptContext.for_goal(_goal(), TODAY))
    assert "Write a Novel" in text
    assert "3-5" in text
    assert "JSON array" in text


def test_alternative_prompt_names_the_excluded_move():
    context = PromptContext.for_goal(_goal(), TODAY)
    text = prompts.alternative_moves_prompt(context, "Outline chapter one")
    assert 'The current move is "Outline chapter one"' in text
    assert "suggest 3 alternative" in text
    assert "current move is" not in prompts.alternative_moves_prompt(context, None)


def test_adjust_prompt_carries_multiplier_as_guidance():
    context = PromptContext.for_goal(_goal(), TODAY)
    text = prompts.adjust_detail_prompt(context, _move("Write 300 words", duration=1200), DetailLevel.STEP_BY_STEP)
    assert '"Step-by-Step" detail level' in text
    assert "Current estimate: 20 minutes" in text
    assert "2.5x" in text
    assert "roughly 50 minutes" in text


def test_smart_prompt():
    text = prompts.smart_goal_prompt(PromptContext.for_goal(_goal(), TODAY))
    assert "SMART" in text
    assert "smartTitle" in text and "smartDescription" in text
