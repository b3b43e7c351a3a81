"""Main menu and pause menu flows."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from .slot_browser import BrowserMode, BrowserOrigin

if TYPE_CHECKING:
    from .coordinator import SessionCoordinator

LOGGER = logging.getLogger(__name__)


class MainMenuFlow:
    def __init__(self, coordinator: "SessionCoordinator") -> None:
        self.coordinator = coordinator
        self.visible = True

    def show(self) -> None:
        self.visible = True

    def start_new_session(self) -> None:
        coordinator = self.coordinator
        first_empty = coordinator.store.first_empty_slot()
        if first_empty is None:
            coordinator.gate.request(
                "All slots are full! You must reset a slot to continue.",
                self._open_overwrite_browser,
                None,
            )
            return
        LOGGER.debug("Starting new session in slot %s.", first_empty)
        coordinator.spawn(coordinator.begin_new_session_in(first_empty), name="new-session")
        self.visible = False

    def open_load_browser(self) -> None:
        self.coordinator.open_slot_browser(BrowserMode.LOAD, BrowserOrigin.MAIN_MENU, on_close=self.show)
        self.visible = False

    def quit(self, on_quit: Callable[[], None]) -> None:
        self.coordinator.gate.request("Are you sure you want to quit?", on_quit, None)

    def _open_overwrite_browser(self) -> None:
        self.coordinator.arm_reset_for_new_session()
        self.coordinator.open_slot_browser(
            BrowserMode.SAVE, BrowserOrigin.NEW_SESSION, on_close=self.show
        )
        self.visible = False


class PauseMenuFlow:
    """Pause overlay living in each playable context.

    A fresh instance starts hidden and unpaused, which is what un-freezes
    the session after a scene change.
    """

    def __init__(self, coordinator: "SessionCoordinator") -> None:
        self.coordinator = coordinator
        self.visible = False
        self.showing_play_time = False
        coordinator.set_paused(False)

    @property
    def is_paused(self) -> bool:
        return self.coordinator.state.paused

    def pause(self) -> None:
        self.visible = True
        self.coordinator.set_paused(True)

    def resume(self) -> None:
        self.visible = False
        self.coordinator.set_paused(False)

    def pause_toggled(self) -> bool:
        if self.coordinator.gate.is_active:
            return False
        if self.is_paused:
            self.resume()
        else:
            self.pause()
        return True

    def open_save_browser(self) -> bool:
        if not self.coordinator.is_save_allowed():
            LOGGER.debug("Saving is not allowed in '%s'.", self.coordinator.director.active_context)
            return False
        self.coordinator.open_slot_browser(BrowserMode.SAVE, BrowserOrigin.PAUSE_MENU, on_close=self.pause)
        self.visible = False
        return True

    def open_load_browser(self) -> bool:
        self.coordinator.open_slot_browser(BrowserMode.LOAD, BrowserOrigin.PAUSE_MENU, on_close=self.pause)
        self.visible = False
        return True

    def return_to_main_menu(self) -> None:
        coordinator = self.coordinator
        coordinator.gate.request(
            "Return to Main Menu? Unsaved progress will be lost.",
            lambda: coordinator.spawn(coordinator.return_to_main_menu(), name="main-menu"),
            None,
        )

    def toggle_play_time(self) -> str:
        self.showing_play_time = not self.showing_play_time
        if self.showing_play_time:
            return f"Playtime: {self.coordinator.formatted_play_time()}"
        return "Show Playtime"
