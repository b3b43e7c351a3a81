"""Save/load slot browser shown while the browser context is loaded."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, List, Optional, Sequence

if TYPE_CHECKING:
    from .coordinator import SessionCoordinator

LOGGER = logging.getLogger(__name__)


class BrowserMode(Enum):
    SAVE = "save"
    LOAD = "load"


class BrowserOrigin(Enum):
    MAIN_MENU = "main_menu"
    PAUSE_MENU = "pause_menu"
    NEW_SESSION = "new_session"


@dataclass(frozen=True)
class SlotView:
    slot: int
    label: str
    occupied: bool
    primary_enabled: bool
    reset_enabled: bool


ViewSink = Callable[[Sequence[SlotView]], None]


class SlotBrowserFlow:
    """Route slot clicks through confirmations into coordinator operations.

    One instance belongs to one loaded browser context. Once that context
    unloads the coordinator disposes the flow and every handler turns into
    a no-op.
    """

    def __init__(self, coordinator: "SessionCoordinator", *, view_sink: Optional[ViewSink] = None) -> None:
        self.coordinator = coordinator
        self.view_sink = view_sink
        self.mode: Optional[BrowserMode] = None
        self.views: List[SlotView] = []
        self.disposed = False

    @property
    def origin(self) -> Optional[BrowserOrigin]:
        request = self.coordinator.state.browser
        return request.origin if request is not None else None

    def initialize(self, mode: BrowserMode) -> None:
        LOGGER.debug("Slot browser initialized in %s mode.", mode.value)
        self.mode = mode
        self.refresh()

    def refresh(self) -> None:
        if self.disposed or self.mode is None:
            return
        store = self.coordinator.store
        all_full = store.all_full()
        views = []
        for slot in store.slots():
            occupied = store.exists(slot)
            if self.mode is BrowserMode.LOAD:
                primary = occupied
            elif self.origin is BrowserOrigin.NEW_SESSION:
                primary = not all_full and not occupied
            else:
                primary = True
            views.append(
                SlotView(
                    slot=slot,
                    label=store.label(slot),
                    occupied=occupied,
                    primary_enabled=primary,
                    reset_enabled=occupied,
                )
            )
        self.views = views
        if self.view_sink is not None:
            self.view_sink(list(views))

    # ---------- Click handlers ----------
    def on_slot_clicked(self, slot: int) -> None:
        if self.disposed or self.mode is None:
            return
        coordinator = self.coordinator
        gate = coordinator.gate
        store = coordinator.store
        number = slot + 1

        if self.mode is BrowserMode.LOAD:
            if not store.exists(slot):
                gate.show_message(f"Slot {number} is empty.")
                return
            gate.request(
                f"Load from slot {number}? Current progress will be lost.",
                lambda: self._load(slot),
                None,
            )
            return

        if self.origin is BrowserOrigin.NEW_SESSION:
            if store.all_full():
                self._confirm_new_session_overwrite(slot)
                return
            target = store.first_empty_slot()
            LOGGER.debug("New session routed to first empty slot %s.", target)
            coordinator.state.reset_for_new_session.clear()
            coordinator.spawn(coordinator.begin_new_session_in(target), name="new-session")
            return

        position = coordinator.cursor.current_position()
        if store.exists(slot):
            gate.request(
                f"Overwrite slot {number}?",
                lambda: self._save(slot, position),
                self.refresh,
            )
        else:
            self._save(slot, position)

    def on_reset_clicked(self, slot: int) -> None:
        if self.disposed or self.mode is None:
            return
        store = self.coordinator.store
        if (
            self.mode is BrowserMode.SAVE
            and self.origin is BrowserOrigin.NEW_SESSION
            and store.all_full()
        ):
            self._confirm_new_session_overwrite(slot)
            return
        if not store.exists(slot):
            return
        self.coordinator.gate.request(
            f"Reset slot {slot + 1}? This cannot be undone.",
            lambda: self._reset(slot),
            self.refresh,
        )

    def close(self) -> None:
        if self.disposed:
            return
        self.coordinator.spawn(self.coordinator.close_slot_browser(), name="close-browser")

    def dispose(self) -> None:
        self.disposed = True
        self.view_sink = None

    # ---------- Internal helpers ----------
    def _save(self, slot: int, position: int) -> None:
        self.coordinator.save_to_slot(slot, position)
        self.refresh()

    def _reset(self, slot: int) -> None:
        self.coordinator.reset_slot(slot)
        self.refresh()

    def _load(self, slot: int) -> None:
        coordinator = self.coordinator
        snapshot = coordinator.load_from_slot(slot)
        coordinator.gate.force_close()
        if snapshot is None:
            self.refresh()
            return
        coordinator.spawn(coordinator.resume_from(snapshot), name=f"resume:{snapshot.context_name}")

    def _confirm_new_session_overwrite(self, slot: int) -> None:
        self.coordinator.gate.request(
            f"Overwrite slot {slot + 1} and start a new session?",
            lambda: self._overwrite_for_new_session(slot),
            self.refresh,
        )

    def _overwrite_for_new_session(self, slot: int) -> None:
        if not self.coordinator.take_reset_for_new_session():
            LOGGER.debug("Reset for new session already consumed; ignoring slot %s.", slot)
            return
        self.coordinator.spawn(self._begin_overwrite(slot), name="new-session")

    async def _begin_overwrite(self, slot: int) -> None:
        coordinator = self.coordinator
        if not await coordinator.begin_new_session_in(slot):
            # The slot could not be cleared; leave the overwrite available for a retry.
            coordinator.arm_reset_for_new_session()
            self.refresh()
