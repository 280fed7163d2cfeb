import asyncio
import json

from inchforward.services.debounce import Debouncer
from inchforward.services.prompts import DetailLevel


async def test_debouncer_fires_once_with_last_value():
    fired = []

    async def action(token, value):
        fired.append(value)

    debouncer = Debouncer(action, delay=0.05)
    for value in range(5):
        debouncer.schedule(value)
        await asyncio.sleep(0.01)
    await debouncer.wait()

    assert fired == [4]
    assert debouncer.pending is False


async def test_cancel_drops_scheduled_call():
    fired = []

    async def action(token, value):
        fired.append(value)

    debouncer = Debouncer(action, delay=0.05)
    debouncer.schedule("x")
    debouncer.cancel()
    await debouncer.wait()
    await asyncio.sleep(0.08)

    assert fired == []


async def test_stale_token_is_detected():
    debouncer = Debouncer(lambda token: None, delay=1)
    debouncer.token = 7
    assert debouncer.is_current(7)
    debouncer.cancel()
    assert not debouncer.is_current(7)


async def test_rapid_detail_changes_make_one_request(goal_session, make_goal, client):
    await make_goal(moves=["Write 300 words"])
    await goal_session.resolve_today()
    move = goal_session.todays_move
    client.queue(json.dumps({"title": "Write 300 words, one line at a time", "description": "Go", "duration": 25}))

    for level in (DetailLevel.CONCISE, DetailLevel.DETAILED, DetailLevel.GRANULAR, DetailLevel.STEP_BY_STEP):
        task = goal_session.request_detail_level(move, level)
        await asyncio.sleep(0.01)
    assert goal_session.is_loading is True
    await task

    assert len(client.calls) == 1
    assert '"Step-by-Step" detail level' in client.calls[0]["prompt"]
    assert move.title == "Write 300 words, one line at a time"
    assert move.estimated_duration == 1500
    assert goal_session.is_loading is False


async def test_immediate_adjust_supersedes_debounced_request(goal_session, make_goal, client):
    await make_goal(moves=["Write 300 words"])
    await goal_session.resolve_today()
    move = goal_session.todays_move
    client.queue('{"title": "Write anything", "description": "", "duration": 5}')

    pending = goal_session.request_detail_level(move, DetailLevel.GRANULAR)
    await goal_session.adjust_detail_level(move, DetailLevel.VAGUE)
    await asyncio.wait({pending})

    assert len(client.calls) == 1
    assert '"Vague" detail level' in client.calls[0]["prompt"]
    assert move.title == "Write anything"
