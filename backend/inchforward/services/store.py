import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from inchforward.models.goal import Goal, Move

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """A read or write against the progress store failed."""


class ProgressStore:
    """Insert / fetch / save / delete over one long-lived AsyncSession."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def insert(self, entity):
        self.session.add(entity)

    async def delete(self, entity):
        # Goal -> Move / DailyProgress cascade is declared on the relationships
        await self.session.delete(entity)

    def discard(self, entity):
        if entity in self.session:
            self.session.expunge(entity)

    async def fetch(self, statement, refresh: bool = False):
        if refresh:
            statement = statement.execution_options(populate_existing=True)
        try:
            result = await self.session.execute(statement)
        except SQLAlchemyError as e:
            logger.error(f"❌ [STORE] Fetch failed: {e}")
            raise PersistenceError(str(e)) from e
        return list(result.scalars().all())

    async def fetch_current_goal(self, refresh: bool = False) -> Optional[Goal]:
        """The oldest goal that is not completed yet."""
        stmt = (
            select(Goal)
            .where(Goal.is_completed.is_(False))
            .order_by(Goal.created_at.asc(), Goal.id.asc())
            .limit(1)
        )
        goals = await self.fetch(stmt, refresh=refresh)
        return goals[0] if goals else None

    async def list_goals(self, refresh: bool = False):
        return await self.fetch(select(Goal).order_by(Goal.created_at.asc(), Goal.id.asc()), refresh=refresh)

    async def get_goal(self, public_id: str) -> Optional[Goal]:
        goals = await self.fetch(select(Goal).where(Goal.public_id == public_id))
        return goals[0] if goals else None

    async def get_move(self, public_id: str) -> Optional[Move]:
        moves = await self.fetch(select(Move).where(Move.public_id == public_id))
        return moves[0] if moves else None

    async def save(self):
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            logger.error(f"❌ [STORE] Save failed, rolling back: {e}")
            await self.session.rollback()
            raise PersistenceError(str(e)) from e

    async def close(self):
        await self.session.close()
