"""
Shared fixtures: an in-memory SQLite store, a scripted stand-in for the
suggestion client, a fixed clock and a GoalSession wired to all three.
"""
import asyncio
import json
import os
from datetime import datetime, timedelta

import pytest

# Settings are read at import time
os.environ.setdefault("GROQ_API_KEY", "test-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from inchforward.core.database import init_db  # noqa: E402
from inchforward.models.goal import Goal, Move, DailyProgress, MoveCategory  # noqa: E402
from inchforward.services.ai_service import ServiceUnreachableError  # noqa: E402
from inchforward.services.session import GoalSession  # noqa: E402
from inchforward.services.store import ProgressStore  # noqa: E402
from inchforward.services.suggestions import SuggestionOrchestrator  # noqa: E402

NOW = datetime(2026, 10, 19, 9, 30)
YESTERDAY = NOW - timedelta(days=1)


def suggestions_json(*titles):
    return json.dumps([{"title": t, "description": f"Do {t.lower()}"} for t in titles])


class ScriptedClient:
    """
    Stands in for SuggestionClient. Each reply is a string, an exception to
    raise, or an async callable producing one of those.
    """

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    def queue(self, *replies):
        self.replies.extend(replies)

    async def send(self, prompt, schema, max_output_tokens=1024, temperature=0.7,
                   timeout_seconds=None, system_instruction=None):
        self.calls.append({
            "prompt": prompt,
            "schema": schema,
            "max_output_tokens": max_output_tokens,
            "temperature": temperature,
            "timeout_seconds": timeout_seconds,
        })
        if not self.replies:
            raise ServiceUnreachableError("no scripted reply left")
        reply = self.replies.pop(0)
        if callable(reply):
            reply = await reply()
        if isinstance(reply, Exception):
            raise reply
        return reply


def gated(reply):
    """A reply that is held back until the returned event is set."""
    release = asyncio.Event()

    async def wait_then_reply():
        await release.wait()
        return reply

    return wait_then_reply, release


@pytest.fixture
async def db_session():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_db(bind=engine)
    factory = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    session = factory()
    yield session
    await session.close()
    await engine.dispose()


@pytest.fixture
def store(db_session):
    return ProgressStore(db_session)


@pytest.fixture
def client():
    return ScriptedClient()


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def goal_session(store, client, clock):
    return GoalSession(store, SuggestionOrchestrator(client), clock=clock, debounce_seconds=0.05)


@pytest.fixture
def make_goal(store):
    """Persist a goal with moves given by title; ``default`` names the flagged one."""

    async def _make(title="Write a Novel", moves=(), default=None, created_at=None,
                    description="Finish a first draft", is_completed=False):
        goal = Goal(
            title=title,
            description=description,
            created_at=created_at or NOW - timedelta(days=10),
            is_completed=is_completed,
            moves=[],
            daily_progresses=[],
        )
        for move_title in moves:
            Move(
                title=move_title,
                description=f"About {move_title}",
                estimated_duration=600,
                category=MoveCategory.WRITING,
                is_default_move=(move_title == default),
                goal=goal,
            )
        store.insert(goal)
        await store.save()
        return goal

    return _make


@pytest.fixture
def record_progress(store):
    async def _record(goal, move=None, when=NOW, skipped=False):
        progress = DailyProgress(date=when, was_skipped=skipped, goal=goal, move=move)
        store.insert(progress)
        await store.save()
        return progress

    return _record


def move_named(goal, title):
    return next(m for m in goal.moves if m.title == title)
