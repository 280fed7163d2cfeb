import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional

from inchforward.core.config import settings
from inchforward.models.goal import Goal, Move, DailyProgress, MoveCategory
from inchforward.schemas.goal import MoveSuggestion
from inchforward.services import daily_state
from inchforward.services.daily_state import DailyState, DailyStatus
from inchforward.services.debounce import Debouncer, DEBOUNCE_SECONDS
from inchforward.services.prompts import DetailLevel
from inchforward.services.store import ProgressStore, PersistenceError
from inchforward.services.suggestions import SuggestionOrchestrator, SuggestionOutcome, AdjustmentOutcome

logger = logging.getLogger(__name__)

SAVE_FAILED = "Could not save your changes. Nothing was changed, please try again."
AI_FAILED = "Something went wrong while talking to the AI service. Details: {}"


class CommandRejected(Exception):
    """A command was issued in a state where it cannot apply."""


@dataclass
class _Snapshot:
    goal_pk: Optional[int]
    move_pk: Optional[int]
    state: DailyState
    alternative_pks: List[int] = field(default_factory=list)
    no_moves: bool = False


class GoalSession:
    """
    Single owner of the daily-move state for one user.

    All mutation goes through the command methods below and happens on the
    event loop that owns the session. Presentation code only reads the public
    attributes.
    """

    def __init__(self, store: ProgressStore, orchestrator: SuggestionOrchestrator,
                 clock: Callable[[], datetime] = datetime.now,
                 debounce_seconds: float = DEBOUNCE_SECONDS):
        self.store = store
        self.orchestrator = orchestrator
        self._clock = clock

        self.current_goal: Optional[Goal] = None
        self.todays_move: Optional[Move] = None
        self.state: DailyState = daily_state.LOADING
        self.alternative_moves: List[Move] = []
        self.suggestions: List[MoveSuggestion] = []
        self.error: Optional[str] = None
        self.is_loading = False
        self.no_moves = False

        self._suggestion_token = 0
        self._detail = Debouncer(self._apply_detail_level_locked, delay=debounce_seconds)
        # One AsyncSession backs every command; callers from concurrent requests take turns
        self.lock = asyncio.Lock()

    # --- helpers ---

    def today(self) -> date:
        return self._clock().date()

    def _refresh_alternatives(self, goal: Optional[Goal]):
        if goal is None:
            self.alternative_moves = []
            return
        self.alternative_moves = [m for m in goal.moves if m is not self.todays_move]

    def _set_no_goal(self):
        self.current_goal = None
        self.todays_move = None
        self.alternative_moves = []
        self.state = daily_state.NO_GOAL

    def _snapshot(self) -> _Snapshot:
        return _Snapshot(
            goal_pk=self.current_goal.id if self.current_goal is not None else None,
            move_pk=self.todays_move.id if self.todays_move is not None else None,
            state=self.state,
            alternative_pks=[m.id for m in self.alternative_moves],
            no_moves=self.no_moves,
        )

    async def _restore(self, snapshot: _Snapshot):
        # The rollback expired every loaded object; load them again before touching attributes
        try:
            goals = await self.store.list_goals(refresh=True)
        except PersistenceError as e:
            logger.error(f"❌ [SESSION] Could not reload after a failed save: {e}")
            self._set_no_goal()
            return

        goal = next((g for g in goals if g.id == snapshot.goal_pk), None)
        if goal is None:
            self._set_no_goal()
            return
        moves = {m.id: m for m in goal.moves}
        self.current_goal = goal
        self.todays_move = moves.get(snapshot.move_pk)
        self.alternative_moves = [moves[pk] for pk in snapshot.alternative_pks if pk in moves]
        self.state = snapshot.state
        self.no_moves = snapshot.no_moves

    async def _save(self, snapshot: _Snapshot, *new_entities) -> bool:
        try:
            await self.store.save()
            return True
        except PersistenceError as e:
            logger.error(f"❌ [SESSION] Save failed, restoring last good state: {e}")
            for entity in new_entities:
                self.store.discard(entity)
            await self._restore(snapshot)
            self.error = SAVE_FAILED
            self.is_loading = False
            return False

    async def _request_suggestions(self, call) -> bool:
        """Run a suggestion call; only the most recently issued one may update the list."""
        self._suggestion_token += 1
        token = self._suggestion_token
        self.is_loading = True
        self.error = None
        try:
            outcome = await call
        except Exception as e:
            logger.exception(f"🔥 [SESSION] Suggestion request #{token} failed unexpectedly: {e}")
            outcome = SuggestionOutcome(error=AI_FAILED.format(e))
        if token != self._suggestion_token:
            logger.info(f"🗑️ [SESSION] Dropping stale suggestion result #{token}.")
            return False
        self.is_loading = False
        self.suggestions = outcome.suggestions
        self.error = outcome.error
        return outcome.error is None

    def cancel_pending(self):
        """Abandon in-flight AI work; late results are ignored."""
        self._suggestion_token += 1
        self._detail.cancel()
        self.is_loading = False

    # --- daily state engine ---

    async def resolve_today(self) -> DailyState:
        self.is_loading = True
        self.state = daily_state.LOADING
        self.error = None
        self.suggestions = []
        self.no_moves = False
        # Suggestions still in flight belong to the state being replaced
        self._suggestion_token += 1

        try:
            goal = await self.store.fetch_current_goal()
        except PersistenceError as e:
            logger.error(f"❌ [SESSION] Error fetching goals, falling back to no goal: {e}")
            self._set_no_goal()
            self.is_loading = False
            return self.state

        self.current_goal = goal
        if goal is None:
            self._set_no_goal()
            self.is_loading = False
            return self.state

        day = self.today()
        skipped = daily_state.skipped_progress(goal, day)
        if skipped is not None:
            self.state = daily_state.SKIPPED
            # A skipped record may still point at the move that was skipped
            self.todays_move = skipped.move
        elif daily_state.completed_moves_on(goal, day):
            remaining = daily_state.uncompleted_moves(goal, day)
            if remaining:
                self.todays_move = daily_state.pick_move(remaining)
                self.state = daily_state.PENDING
            else:
                self.todays_move = daily_state.completed_moves_on(goal, day)[-1]
                self.state = daily_state.COMPLETED
        else:
            self.state = daily_state.PENDING
            await self._select_move(goal)

        self._refresh_alternatives(goal)
        self.is_loading = False
        logger.info(f"📅 [SESSION] Today for '{goal.title}': {self.state} / {self.todays_move!r}")
        return self.state

    async def _select_move(self, goal: Goal):
        self.todays_move = goal.recommended_move
        self._refresh_alternatives(goal)
        if self.todays_move is not None or goal.moves:
            return

        logger.info(f"🌱 [SESSION] No moves for goal '{goal.title}'. Generating initial suggestions...")
        await self._request_suggestions(
            self.orchestrator.suggest_new_moves(goal, self.today(), self.recent_completed_moves())
        )
        if self.suggestions:
            await self.adopt_suggestion(self.suggestions[0].id, set_as_today=True)
        if self.todays_move is None:
            self.no_moves = True

    def recent_completed_moves(self) -> List[Move]:
        if self.current_goal is None:
            return []
        return daily_state.recent_completed_moves(self.current_goal)

    def completed_moves_today(self) -> int:
        if self.current_goal is None:
            return 0
        return len(daily_state.completed_moves_on(self.current_goal, self.today()))

    # --- commands ---

    async def mark_done(self) -> bool:
        goal, move = self.current_goal, self.todays_move
        if goal is None or move is None:
            raise CommandRejected("Cannot mark move as done. No current goal or move.")

        snapshot = self._snapshot()
        progress = DailyProgress(date=self._clock(), was_skipped=False, goal=goal, move=move)
        self.store.insert(progress)
        if not await self._save(snapshot, progress):
            return False

        remaining = daily_state.uncompleted_moves(goal, self.today())
        if remaining:
            self.todays_move = daily_state.pick_move(remaining)
            self.state = daily_state.PENDING
        else:
            self.state = daily_state.COMPLETED
        self._refresh_alternatives(goal)
        logger.info(f"✅ [SESSION] Completed '{move.title}'. Now {self.state}.")
        return True

    async def mark_skipped(self) -> bool:
        goal = self.current_goal
        if goal is None:
            raise CommandRejected("Cannot mark as skipped. No current goal.")

        snapshot = self._snapshot()
        progress = DailyProgress(date=self._clock(), was_skipped=True, goal=goal, move=self.todays_move)
        self.store.insert(progress)
        if not await self._save(snapshot, progress):
            return False
        self.state = daily_state.SKIPPED
        return True

    def postpone(self, interval: Optional[float] = None) -> DailyState:
        if self.todays_move is None:
            raise CommandRejected("Cannot postpone, no move is set for today.")
        seconds = interval if interval is not None else settings.DEFAULT_POSTPONE_SECONDS
        until = self._clock() + timedelta(seconds=seconds)
        self.state = DailyState.postponed(until)
        logger.info(f"⏰ [SESSION] Move postponed until {until:%H:%M}.")
        return self.state

    async def prepare_for_swap(self):
        goal = self.current_goal
        if goal is None:
            self.alternative_moves = []
            self.suggestions = []
            return

        self.error = None
        self.suggestions = []
        self._refresh_alternatives(goal)
        await self._request_suggestions(
            self.orchestrator.suggest_alternatives(
                goal, self.today(), excluding=self.todays_move, recent_moves=self.recent_completed_moves()
            )
        )
        if not self.alternative_moves and not self.suggestions and goal.moves:
            self.alternative_moves = list(goal.moves)

    def select_move(self, move: Move):
        if self.current_goal is not None and move not in self.current_goal.moves:
            logger.warning(f"⚠️ [SESSION] Selected move {move!r} does not belong to the current goal.")
        self.todays_move = move
        self.state = daily_state.PENDING
        self.no_moves = False
        self._refresh_alternatives(self.current_goal)

    async def adopt_suggestion(self, suggestion_id: str, set_as_today: bool = False,
                               goal: Optional[Goal] = None) -> Optional[Move]:
        suggestion = next((s for s in self.suggestions if s.id == suggestion_id), None)
        if suggestion is None:
            raise CommandRejected("That suggestion is no longer available.")
        goal = goal or self.current_goal
        if goal is None:
            raise CommandRejected("Cannot adopt a suggestion without a goal.")

        snapshot = self._snapshot()
        move = Move(
            title=suggestion.title,
            description=suggestion.description,
            estimated_duration=settings.DEFAULT_MOVE_DURATION,
            category=MoveCategory.PLANNING,
            is_default_move=False,
            goal=goal,
        )
        self.store.insert(move)
        if not await self._save(snapshot, move):
            return None

        self.suggestions = [s for s in self.suggestions if s.id != suggestion.id]
        if goal is self.current_goal:
            if set_as_today or self.todays_move is None:
                self.todays_move = move
                self.state = daily_state.PENDING
                self.no_moves = False
            self._refresh_alternatives(goal)
        logger.info(f"✨ [SESSION] New move '{move.title}' created from AI suggestion and saved.")
        return move

    async def adjust_detail_level(self, move: Move, level: DetailLevel) -> bool:
        """Rewrite ``move`` right away; supersedes any debounced request."""
        if move.goal is None:
            raise CommandRejected("Move does not belong to a goal.")
        self._detail.cancel()
        return await self._apply_detail_level(self._detail.token, move, level)

    def request_detail_level(self, move: Move, level: DetailLevel):
        """Debounced variant for rapid input; returns the scheduled task."""
        if move.goal is None:
            raise CommandRejected("Move does not belong to a goal.")
        self.is_loading = True
        return self._detail.schedule(move, level)

    async def _apply_detail_level_locked(self, token: int, move: Move, level: DetailLevel) -> bool:
        async with self.lock:
            return await self._apply_detail_level(token, move, level)

    async def _apply_detail_level(self, token: int, move: Move, level: DetailLevel) -> bool:
        self.is_loading = True
        try:
            outcome = await self.orchestrator.adjust_detail_level(
                move.goal, move, level, self.today(), self.recent_completed_moves()
            )
        except Exception as e:
            logger.exception(f"🔥 [SESSION] Detail adjustment for '{move.title}' failed unexpectedly: {e}")
            outcome = AdjustmentOutcome(error=AI_FAILED.format(e))
        if not self._detail.is_current(token):
            logger.info(f"🗑️ [SESSION] Dropping stale detail adjustment for '{move.title}'.")
            return False
        self.is_loading = False
        if outcome.error:
            self.error = outcome.error
            return False

        snapshot = self._snapshot()
        move.title = outcome.title
        if outcome.description is not None:
            move.description = outcome.description
        if outcome.duration:
            move.estimated_duration = outcome.duration
        if not await self._save(snapshot):
            return False
        self.error = None
        logger.info(f"🎚️ [SESSION] '{move.title}' rewritten at {level.label} level.")
        return True

    async def look_for_more_moves(self):
        goal = self.current_goal
        if goal is None:
            raise CommandRejected("No current goal.")
        remaining = daily_state.uncompleted_moves(goal, self.today())
        if remaining:
            self.select_move(daily_state.pick_move(remaining))
            return
        await self._request_suggestions(
            self.orchestrator.suggest_new_moves(goal, self.today(), self.recent_completed_moves())
        )

    # --- goal bookkeeping ---

    async def create_goal(self, title: str, description: Optional[str] = None,
                          estimated_time_to_complete: Optional[float] = None) -> Optional[Goal]:
        snapshot = self._snapshot()
        goal = Goal(
            title=title,
            description=description or None,
            estimated_time_to_complete=estimated_time_to_complete,
            created_at=self._clock(),
            is_completed=False,
            moves=[],
            daily_progresses=[],
        )
        self.store.insert(goal)
        if not await self._save(snapshot, goal):
            return None
        logger.info(f"🎯 [SESSION] Goal '{goal.title}' created.")
        return goal

    async def process_new_goal(self, goal: Goal):
        """SMART-format a new goal and give it a first batch of moves."""
        errors = []
        smart = await self.orchestrator.format_goal_as_smart(goal, self.today())
        if smart.error:
            errors.append(smart.error)
        else:
            snapshot = self._snapshot()
            goal.title = smart.title
            if smart.description:
                goal.description = smart.description
            if not await self._save(snapshot):
                errors.append(self.error)

        if not goal.moves:
            outcome = await self.orchestrator.suggest_new_moves(goal, self.today())
            if outcome.error:
                errors.append(outcome.error)
            elif outcome.suggestions:
                snapshot = self._snapshot()
                created = [
                    Move(
                        title=s.title,
                        description=s.description,
                        estimated_duration=settings.DEFAULT_MOVE_DURATION,
                        category=MoveCategory.PLANNING,
                        is_default_move=False,
                        goal=goal,
                    )
                    for s in outcome.suggestions
                ]
                for move in created:
                    self.store.insert(move)
                goal.set_default_move(created[0])
                if not await self._save(snapshot, *created):
                    errors.append(self.error)

        await self.resolve_today()
        if errors and self.error is None:
            self.error = errors[0]

    async def add_move(self, goal: Goal, title: str, description: Optional[str] = None,
                       estimated_duration: Optional[float] = None, category: MoveCategory = MoveCategory.PLANNING,
                       is_default_move: bool = False) -> Optional[Move]:
        snapshot = self._snapshot()
        move = Move(
            title=title,
            description=description,
            estimated_duration=estimated_duration or settings.DEFAULT_MOVE_DURATION,
            category=category,
            is_default_move=False,
            goal=goal,
        )
        self.store.insert(move)
        if is_default_move:
            goal.set_default_move(move)
        if not await self._save(snapshot, move):
            return None

        if goal is self.current_goal:
            if self.todays_move is None and self.state.status == DailyStatus.PENDING:
                self.todays_move = move
                self.no_moves = False
            self._refresh_alternatives(goal)
        return move

    async def update_goal(self, goal: Goal, title: Optional[str] = None, description: Optional[str] = None,
                          estimated_time_to_complete: Optional[float] = None) -> bool:
        snapshot = self._snapshot()
        if title is not None:
            goal.title = title
        if description is not None:
            goal.description = description or None
        if estimated_time_to_complete is not None:
            goal.estimated_time_to_complete = estimated_time_to_complete
        return await self._save(snapshot)

    async def complete_goal(self, goal: Goal) -> bool:
        snapshot = self._snapshot()
        goal.mark_completed(self._clock())
        if not await self._save(snapshot):
            return False
        if goal is self.current_goal:
            await self.resolve_today()
        return True

    async def delete_goal(self, goal: Goal) -> bool:
        snapshot = self._snapshot()
        was_current = goal is self.current_goal
        await self.store.delete(goal)
        if not await self._save(snapshot):
            return False
        logger.info(f"🗑️ [SESSION] Goal '{goal.title}' deleted with its moves and progress.")
        if was_current:
            await self.resolve_today()
        return True
