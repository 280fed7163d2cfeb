import enum
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional


class DailyStatus(str, enum.Enum):
    LOADING = "loading"
    NO_GOAL = "no_goal"
    PENDING = "pending"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    POSTPONED = "postponed"


@dataclass(frozen=True)
class DailyState:
    status: DailyStatus
    until: Optional[datetime] = None

    @classmethod
    def postponed(cls, until: datetime) -> "DailyState":
        return cls(DailyStatus.POSTPONED, until)

    def __str__(self):
        if self.until is not None:
            return f"{self.status.value}({self.until.isoformat(timespec='minutes')})"
        return self.status.value


LOADING = DailyState(DailyStatus.LOADING)
NO_GOAL = DailyState(DailyStatus.NO_GOAL)
PENDING = DailyState(DailyStatus.PENDING)
COMPLETED = DailyState(DailyStatus.COMPLETED)
SKIPPED = DailyState(DailyStatus.SKIPPED)


def is_same_day(moment: Optional[datetime], day: date) -> bool:
    return moment is not None and moment.date() == day


def progress_for_day(goal, day: date) -> list:
    """All of the goal's records on ``day``, oldest first."""
    records = [p for p in goal.daily_progresses if is_same_day(p.date, day)]
    return sorted(records, key=lambda p: (p.date, p.id or 0))


def todays_progress(goal, day: date):
    # Storage does not enforce one record per day, so the first one is the reference
    records = progress_for_day(goal, day)
    return records[0] if records else None


def skipped_progress(goal, day: date):
    """The first skip recorded on ``day``, if any. One skip marks the whole day skipped."""
    return next((p for p in progress_for_day(goal, day) if p.was_skipped), None)


def completed_moves_on(goal, day: date) -> list:
    moves = []
    for p in progress_for_day(goal, day):
        if not p.was_skipped and p.move is not None and p.move not in moves:
            moves.append(p.move)
    return moves


def uncompleted_moves(goal, day: date) -> list:
    done = completed_moves_on(goal, day)
    return [m for m in goal.moves if m not in done]


def pick_move(moves: list):
    """Default move first, then creation order."""
    if not moves:
        return None
    return next((m for m in moves if m.is_default_move), moves[0])


def recent_completed_moves(goal, limit: int = 3) -> List:
    """Distinct moves from the goal's completed history, most recent first."""
    done = [p for p in goal.daily_progresses if not p.was_skipped and p.move is not None]
    done.sort(key=lambda p: (p.date, p.id or 0), reverse=True)
    moves = []
    for progress in done:
        if progress.move not in moves:
            moves.append(progress.move)
        if len(moves) == limit:
            break
    return moves
