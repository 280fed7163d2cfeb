import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from inchforward.api.deps import get_goal_session
from inchforward.schemas.goal import (
    TodayResponse,
    PostponeRequest,
    AdoptRequest,
    DetailLevelRequest,
    goal_out,
    move_out,
)
from inchforward.services.session import GoalSession, CommandRejected

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
router = APIRouter()


def today_response(session: GoalSession) -> TodayResponse:
    return TodayResponse(
        state=session.state.status.value,
        until=session.state.until,
        goal=goal_out(session.current_goal) if session.current_goal is not None else None,
        todays_move=move_out(session.todays_move) if session.todays_move is not None else None,
        alternative_moves=[move_out(m) for m in session.alternative_moves],
        suggestions=list(session.suggestions),
        recent_completed=[move_out(m) for m in session.recent_completed_moves()],
        completed_today=session.completed_moves_today(),
        no_moves=session.no_moves,
        is_loading=session.is_loading,
        error=session.error,
    )


def _persisted_or_503(ok: bool, session: GoalSession):
    if not ok:
        raise HTTPException(503, session.error or "Could not save your changes")


@router.get("/today", response_model=TodayResponse)
async def get_today(session: GoalSession = Depends(get_goal_session)):
    return today_response(session)


@router.post("/today/refresh", response_model=TodayResponse)
async def refresh_today(session: GoalSession = Depends(get_goal_session)):
    await session.resolve_today()
    return today_response(session)


@router.post("/today/done", response_model=TodayResponse)
async def mark_done(session: GoalSession = Depends(get_goal_session)):
    try:
        _persisted_or_503(await session.mark_done(), session)
    except CommandRejected as e:
        raise HTTPException(409, str(e))
    return today_response(session)


@router.post("/today/skip", response_model=TodayResponse)
async def mark_skipped(session: GoalSession = Depends(get_goal_session)):
    try:
        _persisted_or_503(await session.mark_skipped(), session)
    except CommandRejected as e:
        raise HTTPException(409, str(e))
    return today_response(session)


@router.post("/today/postpone", response_model=TodayResponse)
async def postpone(req: PostponeRequest, session: GoalSession = Depends(get_goal_session)):
    try:
        session.postpone(req.seconds)
    except CommandRejected as e:
        raise HTTPException(409, str(e))
    return today_response(session)


@router.post("/today/swap", response_model=TodayResponse)
@limiter.limit("20/minute")
async def prepare_for_swap(request: Request, session: GoalSession = Depends(get_goal_session)):
    await session.prepare_for_swap()
    return today_response(session)


@router.post("/today/more", response_model=TodayResponse)
@limiter.limit("20/minute")
async def look_for_more_moves(request: Request, session: GoalSession = Depends(get_goal_session)):
    try:
        await session.look_for_more_moves()
    except CommandRejected as e:
        raise HTTPException(409, str(e))
    return today_response(session)


@router.post("/today/select/{move_id}", response_model=TodayResponse)
async def select_move(move_id: str, session: GoalSession = Depends(get_goal_session)):
    goal = session.current_goal
    move = next((m for m in goal.moves if m.public_id == move_id), None) if goal is not None else None
    if move is None:
        raise HTTPException(404, "Move not found for the current goal")
    session.select_move(move)
    return today_response(session)


@router.post("/suggestions/{suggestion_id}/adopt", response_model=TodayResponse)
async def adopt_suggestion(suggestion_id: str, req: AdoptRequest, session: GoalSession = Depends(get_goal_session)):
    try:
        move = await session.adopt_suggestion(suggestion_id, set_as_today=req.set_as_today)
    except CommandRejected as e:
        raise HTTPException(404, str(e))
    _persisted_or_503(move is not None, session)
    return today_response(session)


@router.post("/moves/{move_id}/detail-level", response_model=TodayResponse)
async def adjust_detail_level(move_id: str, req: DetailLevelRequest, session: GoalSession = Depends(get_goal_session)):
    move = await session.store.get_move(move_id)
    if move is None:
        raise HTTPException(404, "Move not found")
    try:
        if req.debounce:
            session.request_detail_level(move, req.level)
        else:
            await session.adjust_detail_level(move, req.level)
    except CommandRejected as e:
        raise HTTPException(409, str(e))
    return today_response(session)
