import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

DEBOUNCE_SECONDS = 0.8


class Debouncer:
    """
    Cancel-and-replace scheduling: every ``schedule`` supersedes the previous
    one, and only the value of the last call inside the quiet window fires.

    ``token`` increases with every schedule, so a callback can check
    ``is_current(token)`` after its own awaits and drop stale results.
    """

    def __init__(self, action: Callable[..., Awaitable], delay: float = DEBOUNCE_SECONDS):
        self._action = action
        self.delay = delay
        self.token = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def is_current(self, token: int) -> bool:
        return token == self.token

    def schedule(self, *args) -> asyncio.Task:
        self.cancel()
        self.token += 1
        self._task = asyncio.create_task(self._fire(self.token, args))
        return self._task

    def cancel(self):
        if self.pending:
            self._task.cancel()
        # Anything still awaiting inside the action becomes stale
        self.token += 1

    async def _fire(self, token: int, args):
        await asyncio.sleep(self.delay)
        if not self.is_current(token):
            return None
        logger.debug(f"⏲️ [DEBOUNCE] Firing after {self.delay:g}s quiet period.")
        return await self._action(token, *args)

    async def wait(self):
        """Wait for the scheduled call, if any, to finish."""
        if self._task is not None:
            await asyncio.wait({self._task})
