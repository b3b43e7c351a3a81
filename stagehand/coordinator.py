"""Process-wide session coordination across context transitions."""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Generic, Optional, Set, TypeVar

from .confirmation import ConfirmationGate
from .contexts import ContextDirector, TransitionError, TransitionMode
from .frames import FrameClock
from .narrative import NarrativeCursor
from .readiness import ReadinessBarrier, ReadinessTimeout
from .save_store import (
    TIMESTAMP_FORMAT,
    SaveError,
    SaveNotFoundError,
    SaveStore,
    SessionSnapshot,
)
from .settings import SessionSettings
from .slot_browser import BrowserMode, BrowserOrigin, SlotBrowserFlow

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

_EMPTY = object()


class StaleCycleError(Exception):
    """Raised when a suspended continuation outlived its transition cycle."""


class PendingAction(Generic[T]):
    """A single deferred value that is consumed by taking it."""

    def __init__(self) -> None:
        self._value: Any = _EMPTY

    @property
    def is_armed(self) -> bool:
        return self._value is not _EMPTY

    def arm(self, value: T) -> None:
        self._value = value

    def peek(self) -> Optional[T]:
        return None if self._value is _EMPTY else self._value

    def take(self) -> Optional[T]:
        value, self._value = self._value, _EMPTY
        return None if value is _EMPTY else value

    def take_if(self, predicate: Callable[[T], bool]) -> Optional[T]:
        if self._value is _EMPTY or not predicate(self._value):
            return None
        return self.take()

    def clear(self) -> None:
        self._value = _EMPTY


@dataclass(frozen=True)
class AutoSave:
    slot: int
    context_name: str


@dataclass
class BrowserRequest:
    mode: BrowserMode
    origin: BrowserOrigin
    on_close: Optional[Callable[[], None]] = None


@dataclass
class SessionState:
    elapsed_seconds: float = 0.0
    paused: bool = False
    last_used_slot: Optional[int] = None
    new_session: bool = False
    browser: Optional[BrowserRequest] = None
    auto_save: PendingAction[AutoSave] = field(default_factory=PendingAction)
    reset_for_new_session: PendingAction[bool] = field(default_factory=PendingAction)


def format_play_time(seconds: float) -> str:
    seconds = max(float(seconds), 0.0)
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    return f"{hours}h {minutes}m"


class SessionCoordinator:
    """Own session state and sequence work across context transitions.

    The coordinator subscribes to the director when it is built and drops
    the subscription in :meth:`close`. Disk failures never escape its public
    methods; they become notifications plus a falsy result.
    """

    def __init__(
        self,
        store: SaveStore,
        cursor: NarrativeCursor,
        gate: ConfirmationGate,
        director: ContextDirector,
        barrier: ReadinessBarrier,
        clock: FrameClock,
        *,
        settings: Optional[SessionSettings] = None,
        notify_func: Callable[[str], None] = print,
        now_func: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.cursor = cursor
        self.gate = gate
        self.director = director
        self.barrier = barrier
        self.clock = clock
        self.settings = settings or SessionSettings()
        self.notify = notify_func
        self.now = now_func
        self.state = SessionState()
        self.current_save: Optional[SessionSnapshot] = None
        self.slot_browser: Optional[SlotBrowserFlow] = None
        self._cycle = 0
        self._generation = 0
        self._tasks: Set[asyncio.Task] = set()
        self._closers = [
            director.subscribe(self.on_transition_completed, self._on_context_unloaded),
            clock.add_listener(self._on_tick),
        ]

    # ---------- Lifecycle ----------
    def __enter__(self) -> "SessionCoordinator":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        closers, self._closers = self._closers, []
        for closer in closers:
            closer()
        self.barrier.cancel_all()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    @property
    def closed(self) -> bool:
        return not self._closers

    # ---------- Session state ----------
    def start_new_session(self) -> None:
        self.current_save = None
        self.state.new_session = True
        self.state.elapsed_seconds = 0.0

    def set_paused(self, paused: bool) -> None:
        self.state.paused = bool(paused)

    def set_last_used_slot(self, slot: Optional[int]) -> None:
        self.state.last_used_slot = slot

    def formatted_play_time(self) -> str:
        return format_play_time(self.state.elapsed_seconds)

    def is_save_allowed(self) -> bool:
        active = self.director.active_context
        return active is not None and active not in self.settings.setup_contexts

    # ---------- Persistence ----------
    def save_to_slot(self, slot: int, position: int, *, context_name: Optional[str] = None) -> bool:
        context_name = context_name or self.director.active_context
        if not context_name:
            self.notify("Nothing to save yet.")
            return False
        snapshot = SessionSnapshot(
            context_name=context_name,
            position=max(int(position), 0),
            elapsed_seconds=self.state.elapsed_seconds,
            saved_at=self.now().strftime(TIMESTAMP_FORMAT),
        )
        try:
            self.store.write(slot, snapshot)
        except SaveError as exc:
            LOGGER.warning("Save to slot %s failed: %s", slot, exc)
            self.notify(f"Save failed: {exc}")
            return False
        self.state.last_used_slot = slot
        self.current_save = snapshot
        self.notify(f"Saved to slot {slot + 1}")
        return True

    def load_from_slot(self, slot: int) -> Optional[SessionSnapshot]:
        try:
            snapshot = self.store.read(slot)
        except SaveNotFoundError:
            self.notify("This slot is empty")
            return None
        except SaveError as exc:
            LOGGER.warning("Load from slot %s failed: %s", slot, exc)
            self.notify(f"Slot {slot + 1} could not be read: {exc}")
            return None
        if not self._is_resumable(snapshot.context_name):
            LOGGER.warning(
                "Slot %s names context '%s', which cannot be resumed.", slot, snapshot.context_name
            )
            self.notify(f"Slot {slot + 1} cannot be resumed.")
            return None
        self.current_save = snapshot
        self.state.elapsed_seconds = snapshot.elapsed_seconds
        self.state.last_used_slot = slot
        self.state.new_session = False
        return snapshot

    def reset_slot(self, slot: int) -> bool:
        try:
            deleted = self.store.delete(slot)
        except SaveError as exc:
            LOGGER.warning("Reset of slot %s failed: %s", slot, exc)
            self.notify(f"Reset failed: {exc}")
            return False
        if deleted:
            self.notify(f"Slot {slot + 1} reset")
        return True

    # ---------- Deferred actions ----------
    def arm_deferred_auto_save(self, slot: int, context_name: Optional[str] = None) -> None:
        context_name = context_name or self.settings.new_session_context
        self.state.auto_save.arm(AutoSave(slot=slot, context_name=context_name))

    def consume_deferred_auto_save(self) -> Optional[int]:
        pending = self.state.auto_save.take()
        return pending.slot if pending is not None else None

    def arm_reset_for_new_session(self) -> None:
        self.state.reset_for_new_session.arm(True)

    def take_reset_for_new_session(self) -> bool:
        return bool(self.state.reset_for_new_session.take())

    # ---------- Transition cycle ----------
    def on_transition_completed(self, context_name: str, additive: bool = False) -> None:
        self._cycle += 1
        if not additive:
            self._generation += 1
        LOGGER.debug(
            "Transition cycle %s completed for '%s' (additive=%s).", self._cycle, context_name, additive
        )

        save = self.current_save
        if (
            save is not None
            and save.context_name == context_name
            and not self.state.new_session
            and context_name != self.settings.main_menu_context
        ):
            self.current_save = None
            self._schedule_restore(save, self._generation)

        pending = self.state.auto_save.take_if(lambda action: action.context_name == context_name)
        if pending is not None:
            self.save_to_slot(pending.slot, 0, context_name=context_name)

        self.gate.force_close()

        if (
            context_name == self.settings.browser_context
            and additive
            and self.state.browser is not None
        ):
            self._attach_slot_browser(context_name, self._cycle)

    def _schedule_restore(self, save: SessionSnapshot, generation: int) -> None:
        def apply() -> None:
            try:
                self._ensure_current(generation, save.context_name)
            except StaleCycleError as exc:
                LOGGER.debug("Dropped narrative restore: %s", exc)
                return
            if not self.cursor.jump_to(save.position):
                LOGGER.info(
                    "Saved line %s is not available in '%s'; position left unchanged.",
                    save.position,
                    save.context_name,
                )

        def timed_out(exc: ReadinessTimeout) -> None:
            LOGGER.warning("Narrative position for '%s' not restored: %s", save.context_name, exc)

        self.barrier.schedule(
            self.cursor.is_bound,
            apply,
            on_timeout=timed_out,
            poll_frames=self.settings.poll_frames,
            timeout_frames=self.settings.readiness_timeout_frames,
            name=f"restore:{save.context_name}",
        )

    def _attach_slot_browser(self, context_name: str, cycle: int) -> None:
        request = self.state.browser

        def find() -> Optional[SlotBrowserFlow]:
            context = self.director.get(context_name)
            return context.find(SlotBrowserFlow) if context is not None else None

        def attach() -> None:
            if self.state.browser is not request or not self.director.is_loaded(context_name):
                LOGGER.debug("Browser request changed before cycle %s could attach.", cycle)
                return
            flow = find()
            if flow is None:
                LOGGER.error("Slot browser vanished from '%s' before it could attach.", context_name)
                return
            self.slot_browser = flow
            flow.initialize(request.mode)

        def missing(exc: ReadinessTimeout) -> None:
            LOGGER.error("Slot browser not found in '%s': %s", context_name, exc)

        self.barrier.schedule(
            lambda: find() is not None,
            attach,
            on_timeout=missing,
            poll_frames=self.settings.poll_frames,
            timeout_frames=self.settings.readiness_timeout_frames,
            name=f"attach:{context_name}",
        )

    def _ensure_current(self, generation: int, context_name: str) -> None:
        if generation != self._generation:
            raise StaleCycleError(
                f"generation {generation} superseded by {self._generation}"
            )
        if self.director.active_context != context_name:
            raise StaleCycleError(f"'{context_name}' is no longer the active context")

    def _on_context_unloaded(self, context_name: str) -> None:
        if self.cursor.bound_owner == context_name:
            self.cursor.unbind()
        if context_name == self.settings.browser_context and self.slot_browser is not None:
            self.slot_browser.dispose()
            self.slot_browser = None

    def _on_tick(self, delta: float) -> None:
        if self.state.paused:
            return
        if self.director.active_context in (None, self.settings.main_menu_context):
            return
        delta = float(delta)
        if math.isfinite(delta) and delta > 0:
            self.state.elapsed_seconds += delta

    def _is_resumable(self, context_name: str) -> bool:
        if context_name in (self.settings.main_menu_context, self.settings.browser_context):
            return False
        return self.director.knows(context_name)

    # ---------- Sequenced transitions ----------
    def open_slot_browser(
        self,
        mode: BrowserMode,
        origin: BrowserOrigin,
        on_close: Optional[Callable[[], None]] = None,
    ) -> Awaitable:
        self.state.browser = BrowserRequest(mode=mode, origin=origin, on_close=on_close)
        return self.director.transition_to(self.settings.browser_context, TransitionMode.ADDITIVE)

    async def close_slot_browser(self, *, restore_origin: bool = True) -> None:
        request, self.state.browser = self.state.browser, None
        if restore_origin and request is not None and request.on_close is not None:
            request.on_close()
        if self.director.is_loaded(self.settings.browser_context):
            await self.director.unload(self.settings.browser_context)

    async def resume_from(self, snapshot: SessionSnapshot) -> None:
        await self.close_slot_browser(restore_origin=False)
        self.set_paused(False)
        # The destination installs its own lines; none of the old ones survive.
        self.cursor.begin([])
        await self.director.transition_to(snapshot.context_name, TransitionMode.REPLACE)

    async def begin_new_session_in(self, slot: int) -> bool:
        """Reset ``slot`` and load the new-session context; False if the reset failed."""
        if not self.reset_slot(slot):
            return False
        self.start_new_session()
        self.state.last_used_slot = slot
        self.arm_deferred_auto_save(slot)
        await self.close_slot_browser(restore_origin=False)
        self.cursor.begin([])
        await self.director.transition_to(self.settings.new_session_context, TransitionMode.REPLACE)
        return True

    async def return_to_main_menu(self) -> None:
        self.set_paused(False)
        self.cursor.begin([])
        self.state.browser = None
        self.state.new_session = False
        await self.director.transition_to(self.settings.main_menu_context, TransitionMode.REPLACE)

    def spawn(self, coro: Awaitable, *, name: str = "sequence") -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._sequence_finished)
        return task

    def _sequence_finished(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if isinstance(exc, TransitionError):
            LOGGER.error("%s failed: %s", task.get_name(), exc)
            self.notify(f"Could not change scene: {exc}")
        elif exc is not None:
            LOGGER.error("%s crashed", task.get_name(), exc_info=exc)

    # ---------- Input events ----------
    def _input_blocked(self) -> bool:
        return self.state.paused or self.gate.is_active

    def advance_requested(self) -> bool:
        if self._input_blocked():
            return False
        return self.cursor.advance()

    def choice_selected(self, index: int) -> bool:
        if self._input_blocked():
            return False
        return self.cursor.choose(index)
