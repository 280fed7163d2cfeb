from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, Text, ForeignKey, Enum as SAEnum
from sqlalchemy.orm import relationship, validates
from datetime import datetime
import enum
import uuid
from inchforward.core.database import Base


class MoveCategory(str, enum.Enum):
    WRITING = "writing"
    PLANNING = "planning"
    ORGANIZING = "organizing"
    LEARNING = "learning"
    CREATING = "creating"
    REFLECTING = "reflecting"


def _public_id():
    return str(uuid.uuid4())


class Goal(Base):
    __tablename__ = "goals"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String, unique=True, index=True, default=_public_id)

    title = Column(Text, nullable=False, default="")
    description = Column(Text, nullable=True)
    estimated_time_to_complete = Column(Float, nullable=True)  # seconds
    created_at = Column(DateTime, default=datetime.now, index=True)
    is_completed = Column(Boolean, default=False, nullable=False, index=True)
    completion_date = Column(DateTime, nullable=True)

    moves = relationship(
        "Move",
        back_populates="goal",
        cascade="all, delete-orphan",
        order_by="Move.id",
        lazy="selectin",
    )
    daily_progresses = relationship(
        "DailyProgress",
        back_populates="goal",
        cascade="all, delete-orphan",
        order_by="DailyProgress.id",
        lazy="selectin",
    )

    @property
    def default_move(self):
        return next((m for m in self.moves if m.is_default_move), None)

    @property
    def recommended_move(self):
        """The flagged default move, otherwise the oldest move, otherwise None."""
        return self.default_move or (self.moves[0] if self.moves else None)

    @property
    def last_progress_date(self):
        dates = [p.date for p in self.daily_progresses if p.date is not None]
        return max(dates) if dates else None

    def set_default_move(self, move):
        if move is not None and move not in self.moves:
            raise ValueError("Move does not belong to this goal")
        # Only one move per goal may carry the default flag
        for other in self.moves:
            other.is_default_move = other is move

    def mark_completed(self, when=None):
        self.is_completed = True
        self.completion_date = when or datetime.now()

    def __repr__(self):
        return f"<Goal {self.public_id} {self.title!r}>"


class Move(Base):
    __tablename__ = "moves"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String, unique=True, index=True, default=_public_id)
    goal_id = Column(Integer, ForeignKey("goals.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(Text, nullable=False, default="")
    description = Column(Text, nullable=True)
    estimated_duration = Column(Float, nullable=False, default=300.0)  # seconds
    category = Column(
        SAEnum(MoveCategory, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=MoveCategory.PLANNING,
    )
    is_default_move = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.now)

    goal = relationship("Goal", back_populates="moves", lazy="selectin")

    @validates("estimated_duration")
    def _validate_duration(self, key, value):
        if value is None or float(value) <= 0:
            raise ValueError("estimated_duration must be a positive number of seconds")
        return float(value)

    @validates("category")
    def _validate_category(self, key, value):
        try:
            return MoveCategory(value)
        except ValueError:
            raise ValueError(f"Unknown move category: {value!r}") from None

    @property
    def display_duration(self) -> str:
        minutes = int(self.estimated_duration or 0) // 60
        if minutes < 1:
            return "<1 min"
        return f"{minutes} min"

    def __repr__(self):
        return f"<Move {self.public_id} {self.title!r}>"


class DailyProgress(Base):
    __tablename__ = "daily_progress"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String, unique=True, index=True, default=_public_id)
    goal_id = Column(Integer, ForeignKey("goals.id", ondelete="CASCADE"), nullable=False, index=True)
    # Absent when the day was skipped before any move was chosen
    move_id = Column(Integer, ForeignKey("moves.id", ondelete="SET NULL"), nullable=True)

    date = Column(DateTime, default=datetime.now, nullable=False, index=True)
    was_skipped = Column(Boolean, default=False, nullable=False)
    notes = Column(Text, nullable=True)

    goal = relationship("Goal", back_populates="daily_progresses", lazy="selectin")
    move = relationship("Move", lazy="selectin")

    def __repr__(self):
        state = "skipped" if self.was_skipped else "done"
        return f"<DailyProgress {self.date:%Y-%m-%d} {state}>"
