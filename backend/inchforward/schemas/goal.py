from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
import uuid

from inchforward.models.goal import MoveCategory
from inchforward.services.prompts import DetailLevel


class MoveSuggestion(BaseModel):
    # Transient id, only used to find the suggestion again when it is adopted
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str
    description: str


class GoalCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=5000)
    description: Optional[str] = None
    estimated_time_to_complete: Optional[float] = Field(None, gt=0)
    format_with_ai: bool = True


class GoalUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=5000)
    description: Optional[str] = None
    estimated_time_to_complete: Optional[float] = Field(None, gt=0)


class MoveCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    estimated_duration: Optional[float] = Field(None, gt=0)
    category: MoveCategory = MoveCategory.PLANNING
    is_default_move: bool = False


class MoveOut(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    estimated_duration: float
    display_duration: str
    category: MoveCategory
    is_default_move: bool


class GoalOut(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    estimated_time_to_complete: Optional[float] = None
    created_at: Optional[datetime] = None
    is_completed: bool
    completion_date: Optional[datetime] = None
    moves: List[MoveOut] = []


class TodayResponse(BaseModel):
    state: str
    until: Optional[datetime] = None
    goal: Optional[GoalOut] = None
    todays_move: Optional[MoveOut] = None
    alternative_moves: List[MoveOut] = []
    suggestions: List[MoveSuggestion] = []
    recent_completed: List[MoveOut] = []
    completed_today: int = 0
    no_moves: bool = False
    is_loading: bool = False
    error: Optional[str] = None


class PostponeRequest(BaseModel):
    seconds: Optional[float] = Field(None, gt=0)


class AdoptRequest(BaseModel):
    set_as_today: bool = False


class DetailLevelRequest(BaseModel):
    level: DetailLevel
    debounce: bool = False


def move_out(move) -> MoveOut:
    return MoveOut(
        id=move.public_id,
        title=move.title,
        description=move.description,
        estimated_duration=move.estimated_duration,
        display_duration=move.display_duration,
        category=move.category,
        is_default_move=bool(move.is_default_move),
    )


def goal_out(goal) -> GoalOut:
    return GoalOut(
        id=goal.public_id,
        title=goal.title,
        description=goal.description,
        estimated_time_to_complete=goal.estimated_time_to_complete,
        created_at=goal.created_at,
        is_completed=bool(goal.is_completed),
        completion_date=goal.completion_date,
        moves=[move_out(m) for m in goal.moves],
    )
