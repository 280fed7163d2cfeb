import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from slowapi import Limiter
from slowapi.util import get_remote_address

from inchforward.api.deps import get_goal_session
from inchforward.schemas.goal import GoalCreate, GoalUpdate, GoalOut, MoveCreate, MoveOut, goal_out, move_out
from inchforward.services.session import GoalSession

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
router = APIRouter()


async def _goal_or_404(goal_id: str, session: GoalSession):
    goal = await session.store.get_goal(goal_id)
    if not goal:
        raise HTTPException(404, "Goal not found")
    return goal


@router.get("/goals", response_model=List[GoalOut])
async def list_goals(session: GoalSession = Depends(get_goal_session)):
    return [goal_out(g) for g in await session.store.list_goals()]


@router.get("/goals/{goal_id}", response_model=GoalOut)
async def get_goal(goal_id: str, session: GoalSession = Depends(get_goal_session)):
    return goal_out(await _goal_or_404(goal_id, session))


@router.post("/goals", response_model=GoalOut, status_code=201)
@limiter.limit("10/minute")
async def create_goal(request: Request, req: GoalCreate, session: GoalSession = Depends(get_goal_session)):
    goal = await session.create_goal(req.title, req.description, req.estimated_time_to_complete)
    if goal is None:
        raise HTTPException(503, session.error or "Could not save the goal")

    if req.format_with_ai:
        # SMART formatting and first moves; AI failures only show up in session.error
        await session.process_new_goal(goal)
    else:
        await session.resolve_today()
    return goal_out(goal)


@router.put("/goals/{goal_id}", response_model=GoalOut)
async def update_goal(goal_id: str, req: GoalUpdate, session: GoalSession = Depends(get_goal_session)):
    goal = await _goal_or_404(goal_id, session)
    if not await session.update_goal(goal, req.title, req.description, req.estimated_time_to_complete):
        raise HTTPException(503, session.error)
    return goal_out(goal)


@router.post("/goals/{goal_id}/complete", response_model=GoalOut)
async def complete_goal(goal_id: str, session: GoalSession = Depends(get_goal_session)):
    goal = await _goal_or_404(goal_id, session)
    if not await session.complete_goal(goal):
        raise HTTPException(503, session.error)
    return goal_out(goal)


@router.delete("/goals/{goal_id}", status_code=204)
async def delete_goal(goal_id: str, session: GoalSession = Depends(get_goal_session)):
    goal = await _goal_or_404(goal_id, session)
    if not await session.delete_goal(goal):
        raise HTTPException(503, session.error)
    return Response(status_code=204)


@router.post("/goals/{goal_id}/moves", response_model=MoveOut, status_code=201)
async def add_move(goal_id: str, req: MoveCreate, session: GoalSession = Depends(get_goal_session)):
    goal = await _goal_or_404(goal_id, session)
    move = await session.add_move(
        goal,
        req.title,
        description=req.description,
        estimated_duration=req.estimated_duration,
        category=req.category,
        is_default_move=req.is_default_move,
    )
    if move is None:
        raise HTTPException(503, session.error)
    return move_out(move)
