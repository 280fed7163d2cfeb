from fastapi import Request, HTTPException

from inchforward.services.session import GoalSession


async def get_goal_session(request: Request):
    session: GoalSession = getattr(request.app.state, "goal_session", None)
    if session is None:
        raise HTTPException(503, "Session is not ready yet")
    # Requests share one database session, so they run one at a time
    async with session.lock:
        yield session
