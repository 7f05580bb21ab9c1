import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTimer:
    """Fires `callback` every `interval` seconds on the running event loop.

    Each tick is spawned as its own task, so a slow callback never delays the
    next tick. Cancelling the timer stops future ticks only; ticks already
    running are left to finish.
    """

    def __init__(self, name: str, interval: float, callback: Callable[[], Awaitable[object]],
                 initial_delay: Optional[float] = None):
        self.name = name
        self.interval = interval
        self.callback = callback
        self.initial_delay = interval if initial_delay is None else initial_delay
        self._task: Optional[asyncio.Task] = None
        self._inflight: set[asyncio.Task] = set()

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.active:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=f"timer:{self.name}")

    def cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        delay = self.initial_delay
        while True:
            await asyncio.sleep(delay)
            delay = self.interval
            self.fire()

    def fire(self) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._guarded(), name=f"tick:{self.name}")
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def _guarded(self) -> None:
        try:
            await self.callback()
        except Exception:
            logger.exception("Timer %s tick failed", self.name)
