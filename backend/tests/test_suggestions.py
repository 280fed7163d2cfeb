"""Tests for SuggestionOrchestrator: prompts out, outcomes back."""
import json

from conftest import NOW, ScriptedClient, suggestions_json
from inchforward.services.ai_service import EmptyResponseError, ServiceUnreachableError, UnsuccessfulRequestError
from inchforward.services.prompts import DetailLevel
from inchforward.services.suggestions import SuggestionOrchestrator, describe_failure

TODAY = NOW.date()


def test_failure_messages():
    assert describe_failure(UnsuccessfulRequestError(429, "slow down")).startswith("AI service error (429)")
    assert describe_failure(ServiceUnreachableError("offline")) == "Could not reach AI service. Details: offline"
    assert describe_failure(EmptyResponseError("nothing")) == "AI did not provide valid suggestions."


async def test_new_moves_include_context(make_goal, record_progress):
    goal = await make_goal(moves=["Outline", "Research"])
    await record_progress(goal, goal.moves[1])
    client = ScriptedClient(suggestions_json("Sketch a hero", "Name the town", "Draft a scene"))

    outcome = await SuggestionOrchestrator(client, timeout_seconds=12).suggest_new_moves(
        goal, TODAY, recent_moves=[goal.moves[1]]
    )

    assert outcome.error is None
    assert [s.title for s in outcome.suggestions] == ["Sketch a hero", "Name the town", "Draft a scene"]
    assert len({s.id for s in outcome.suggestions}) == 3
    call = client.calls[0]
    assert call["timeout_seconds"] == 12
    assert call["max_output_tokens"] == 1024 and call["temperature"] == 0.7
    assert '- "Research": About Research' in call["prompt"]
    assert '"Outline", "Research"' in call["prompt"]
    assert "Monday, October 19, 2026" in call["prompt"]


async def test_alternatives_exclude_current_move(make_goal):
    goal = await make_goal(moves=["Outline", "Research"])
    client = ScriptedClient(suggestions_json("Free-write 10 minutes"))

    outcome = await SuggestionOrchestrator(client).suggest_alternatives(goal, TODAY, excluding=goal.moves[0])

    assert [s.title for s in outcome.suggestions] == ["Free-write 10 minutes"]
    assert 'The current move is "Outline"' in client.calls[0]["prompt"]


async def test_service_error_becomes_outcome_error(make_goal):
    goal = await make_goal(moves=["Outline"])
    client = ScriptedClient(UnsuccessfulRequestError(429, '{"error": "quota"}'))

    outcome = await SuggestionOrchestrator(client).suggest_new_moves(goal, TODAY)

    assert outcome.suggestions == []
    assert "429" in outcome.error


async def test_unparseable_reply(make_goal):
    goal = await make_goal(moves=["Outline"])
    client = ScriptedClient("I cannot do that")

    outcome = await SuggestionOrchestrator(client).suggest_new_moves(goal, TODAY)

    assert outcome.suggestions == []
    assert outcome.error.startswith("Could not understand AI suggestions.")


async def test_adjust_detail_level_converts_minutes(make_goal):
    goal = await make_goal(moves=["Write 300 words"])
    reply = json.dumps({"title": "Write 100 words", "description": "Just the first paragraph", "duration": 5})
    client = ScriptedClient(reply)

    outcome = await SuggestionOrchestrator(client).adjust_detail_level(
        goal, goal.moves[0], DetailLevel.VAGUE, TODAY
    )

    assert outcome.error is None
    assert outcome.title == "Write 100 words"
    assert outcome.description == "Just the first paragraph"
    assert outcome.duration == 300
    assert client.calls[0]["max_output_tokens"] == 512


async def test_adjust_detail_level_ignores_bad_duration(make_goal):
    goal = await make_goal(moves=["Write 300 words"])
    client = ScriptedClient('{"title": "Write", "description": "Go", "duration": "soon"}')

    outcome = await SuggestionOrchestrator(client).adjust_detail_level(
        goal, goal.moves[0], DetailLevel.GRANULAR, TODAY
    )

    assert outcome.title == "Write"
    assert outcome.duration is None


async def test_format_goal_as_smart(make_goal):
    goal = await make_goal(title="write a book", moves=[])
    client = ScriptedClient(
        'Sure: {"smartTitle": "Draft a 60k-word novel by June 2027", "smartDescription": "Write 500 words a day."}'
    )

    outcome = await SuggestionOrchestrator(client).format_goal_as_smart(goal, TODAY)

    assert outcome.title == "Draft a 60k-word novel by June 2027"
    assert outcome.description == "Write 500 words a day."


async def test_format_goal_as_smart_failure(make_goal):
    goal = await make_goal(title="write a book", moves=[])
    client = ScriptedClient(ServiceUnreachableError("timeout"))

    outcome = await SuggestionOrchestrator(client).format_goal_as_smart(goal, TODAY)

    assert outcome.title is None
    assert outcome.error.startswith("Could not reach AI service")
