"""Readiness barrier: resume a continuation once dependent state exists."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Set

from .frames import FrameClock

LOGGER = logging.getLogger(__name__)

Predicate = Callable[[], bool]

_UNSET = object()


class ReadinessTimeout(Exception):
    """Raised when a predicate did not hold within the allowed frames."""


class ReadinessBarrier:
    def __init__(
        self,
        clock: FrameClock,
        *,
        poll_frames: int = 1,
        timeout_frames: Optional[int] = None,
    ) -> None:
        self.clock = clock
        self.poll_frames = max(int(poll_frames), 1)
        self.timeout_frames = timeout_frames
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    async def wait_until(
        self,
        predicate: Predicate,
        *,
        poll_frames: Optional[int] = None,
        timeout_frames=_UNSET,
    ) -> int:
        """Suspend until ``predicate()`` holds; returns the frames waited."""
        poll = self.poll_frames if poll_frames is None else max(int(poll_frames), 1)
        limit = self.timeout_frames if timeout_frames is _UNSET else timeout_frames
        waited = 0
        while not predicate():
            if limit is not None and waited >= limit:
                raise ReadinessTimeout(f"Condition not met after {waited} frames.")
            await self.clock.frames(poll)
            waited += poll
        return waited

    def schedule(
        self,
        predicate: Predicate,
        on_ready: Callable[[], None],
        *,
        on_timeout: Optional[Callable[[ReadinessTimeout], None]] = None,
        poll_frames: Optional[int] = None,
        timeout_frames=_UNSET,
        name: str = "readiness",
    ) -> Optional[asyncio.Task]:
        """Run ``on_ready`` once ``predicate`` holds, without blocking the caller.

        Returns ``None`` when the predicate already held and ``on_ready`` ran
        synchronously, otherwise the task performing the wait.
        """
        if predicate():
            on_ready()
            return None

        async def _wait() -> None:
            try:
                await self.wait_until(
                    predicate, poll_frames=poll_frames, timeout_frames=timeout_frames
                )
            except ReadinessTimeout as exc:
                if on_timeout is None:
                    LOGGER.warning("%s: %s", name, exc)
                else:
                    on_timeout(exc)
                return
            on_ready()

        task = asyncio.get_running_loop().create_task(_wait(), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
