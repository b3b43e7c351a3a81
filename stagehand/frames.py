"""Frame clock driving every suspended continuation in a session."""

from __future__ import annotations

import asyncio
from typing import Callable, List

TickListener = Callable[[float], None]


class FrameClock:
    """Cooperative tick source.

    Nothing here blocks a thread: ``next_frame()`` hands out futures that
    the next ``tick()`` resolves, so waiting coroutines resume on a later
    frame of the same event loop.
    """

    def __init__(self) -> None:
        self.frame = 0
        self._listeners: List[TickListener] = []
        self._waiters: List[asyncio.Future] = []

    def add_listener(self, listener: TickListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def next_frame(self) -> asyncio.Future:
        future = asyncio.get_running_loop().create_future()
        self._waiters.append(future)
        return future

    async def frames(self, count: int) -> int:
        for _ in range(max(int(count), 1)):
            await self.next_frame()
        return self.frame

    def tick(self, delta: float = 0.0) -> int:
        self.frame += 1
        for listener in list(self._listeners):
            listener(delta)
        waiters, self._waiters = self._waiters, []
        for future in waiters:
            if not future.done():
                future.set_result(self.frame)
        return self.frame

    async def step(self, delta: float = 0.0, *, settle: int = 3) -> int:
        frame = self.tick(delta)
        for _ in range(max(settle, 1)):
            await asyncio.sleep(0)
        return frame

    @property
    def waiting(self) -> int:
        return sum(1 for future in self._waiters if not future.done())
