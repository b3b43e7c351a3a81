"""Process start-up wiring: build every long-lived collaborator exactly once."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from .confirmation import ConfirmationGate
from .contexts import ContextDirector, LoadedContext
from .coordinator import SessionCoordinator
from .frames import FrameClock
from .menus import MainMenuFlow, PauseMenuFlow
from .narrative import NarrativeCursor, PresentationHandles
from .readiness import ReadinessBarrier
from .save_store import SaveStore
from .script import ContextScript
from .settings import SessionSettings
from .slot_browser import SlotBrowserFlow

HandlesFactory = Callable[[str], PresentationHandles]


@dataclass
class Session:
    settings: SessionSettings
    clock: FrameClock
    store: SaveStore
    cursor: NarrativeCursor
    gate: ConfirmationGate
    director: ContextDirector
    barrier: ReadinessBarrier
    coordinator: SessionCoordinator

    def register_story(
        self,
        story: ContextScript,
        handles_factory: Optional[HandlesFactory] = None,
    ) -> None:
        """Declare a playable context that starts its lines when loaded."""

        def build(context: LoadedContext) -> None:
            context.add(PauseMenuFlow(self.coordinator))
            self.cursor.begin(story.lines)
            if handles_factory is not None:
                handles = handles_factory(context.name)
                self.cursor.rebind(handles)

        self.director.register(story.name, build)

    def close(self) -> None:
        self.coordinator.close()
        self.director.shutdown()


def build_session(
    settings: Optional[SessionSettings] = None,
    *,
    notify_func: Callable[[str], None] = print,
    now_func: Callable[[], datetime] = datetime.now,
) -> Session:
    settings = (settings or SessionSettings()).copy()
    clock = FrameClock()
    store = SaveStore(settings.save_dir, slot_count=settings.slot_count)
    cursor = NarrativeCursor()
    gate = ConfirmationGate()
    director = ContextDirector(clock)
    barrier = ReadinessBarrier(
        clock,
        poll_frames=settings.poll_frames,
        timeout_frames=settings.readiness_timeout_frames,
    )
    coordinator = SessionCoordinator(
        store,
        cursor,
        gate,
        director,
        barrier,
        clock,
        settings=settings,
        notify_func=notify_func,
        now_func=now_func,
    )

    director.register(
        settings.main_menu_context,
        lambda context: context.add(MainMenuFlow(coordinator)),
    )
    director.register(
        settings.browser_context,
        lambda context: context.add(SlotBrowserFlow(coordinator)),
    )

    def build_new_session(context: LoadedContext) -> None:
        context.add(PauseMenuFlow(coordinator))
        cursor.begin([])

    director.register(settings.new_session_context, build_new_session)
    return Session(
        settings=settings,
        clock=clock,
        store=store,
        cursor=cursor,
        gate=gate,
        director=director,
        barrier=barrier,
        coordinator=coordinator,
    )
