from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional


class PeriodicTask:
    """Runs ``callback`` every ``interval`` seconds on the running event loop until cancelled."""

    def __init__(self, interval: float, callback: Callable[[], Awaitable[None]], name: str = "periodic") -> None:
        self.interval = interval
        self.callback = callback
        self.name = name
        self._task: Optional[asyncio.Task] = None
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done() and not self._stopped

    def start(self) -> None:
        if self.running:
            return
        self._stopped = False
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)

    def cancel(self) -> None:
        self._stopped = True
        task, self._task = self._task, None
        if task is None or task.done():
            return
        # a callback cancelling its own timer finishes its body and the loop then exits
        if task is not asyncio.current_task():
            task.cancel()

    async def _run(self) -> None:
        while not self._stopped:
            await asyncio.sleep(self.interval)
            if self._stopped:
                break
            await self.callback()
