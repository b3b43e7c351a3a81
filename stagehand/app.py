"""
Terminal host for stagehand sessions.
- Loads a narrative script and exposes each context in it as a playable scene.
- Main menu, pause menu, save/load browser and confirmations are text prompts.
- Every command is followed by a few frame ticks so queued transitions finish.
Usage: python3 -m stagehand [script.json]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple

from .bootstrap import Session, build_session
from .contexts import TransitionError, TransitionMode
from .menus import MainMenuFlow, PauseMenuFlow
from .narrative import PresentationHandles
from .script import Script, ScriptError, load_script
from .settings import SETTINGS_PATH, load_settings

LOGGER = logging.getLogger(__name__)

DEFAULT_SCRIPT_PATH = "script/script.json"
SETTLE_FRAMES = 4


def emit_print(*args, **kwargs) -> None:
    print(*args, **kwargs)


async def read_input(prompt: str = "") -> str:
    return await asyncio.to_thread(input, prompt)


def setup_logging(verbose: bool = False, log_dir: Optional[Path] = None) -> None:
    """Console logging plus, when ``log_dir`` is given, one log file per day."""
    logger = logging.getLogger("stagehand")
    if logger.handlers:
        return
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    logger.addHandler(console)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / f"stagehand_{datetime.now().strftime('%Y-%m-%d')}.log"
        handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(
            logging.Formatter("%(asctime)s | %(levelname)-7s | %(name)s | %(message)s", "%H:%M:%S")
        )
        logger.addHandler(handler)


class TerminalView:
    """Collects sink output for one context and prints it once per frame."""

    def __init__(self, context_name: str) -> None:
        self.context_name = context_name
        self.text = ""
        self.speaker: Optional[str] = None
        self.choices: List[str] = []
        self.dirty = False

    def handles(self) -> PresentationHandles:
        return PresentationHandles(
            text_sink=self._set_text,
            speaker_sink=self._set_speaker,
            portrait_sink=lambda _portrait: None,
            choice_sink=self._set_choices,
            owner=self.context_name,
        )

    def flush(self) -> None:
        if not self.dirty:
            return
        self.dirty = False
        if self.text:
            prefix = f"{self.speaker}: " if self.speaker else ""
            emit_print(f"\n{prefix}{self.text}")
        for idx, choice in enumerate(self.choices, start=1):
            emit_print(f"  {idx}. {choice}")

    def _set_text(self, text: str) -> None:
        self.text = text
        self.dirty = True

    def _set_speaker(self, speaker: Optional[str]) -> None:
        self.speaker = speaker
        self.dirty = True

    def _set_choices(self, choices: List[str]) -> None:
        self.choices = list(choices)
        self.dirty = True


class TerminalHost:
    def __init__(self, session: Session, script: Script) -> None:
        self.session = session
        self.script = script
        self.views: dict[str, TerminalView] = {}
        self.running = True
        self._offered: Optional[Tuple[str, int]] = None
        self._last_tick = time.monotonic()
        self.session.gate.display = self._show_request
        for story in script.contexts.values():
            session.register_story(story, self._handles_for)

    def _handles_for(self, context_name: str) -> PresentationHandles:
        view = self.views[context_name] = TerminalView(context_name)
        return view.handles()

    def _show_request(self, request: Any) -> None:
        if request is None:
            return
        if request.is_prompt:
            emit_print(f"\n[?] {request.message} (y/n)")
        else:
            emit_print(f"\n[!] {request.message} (press Enter)")

    async def settle(self) -> None:
        """Run SETTLE_FRAMES ticks paced at the configured frame rate."""
        interval = 1.0 / self.session.settings.frame_rate
        for frame in range(SETTLE_FRAMES):
            if frame:
                await asyncio.sleep(interval)
            now = time.monotonic()
            delta, self._last_tick = now - self._last_tick, now
            await self.session.clock.step(delta)
        self._offer_choices()
        active = self.session.director.active_context
        view = self.views.get(active) if active else None
        if view is not None:
            view.flush()

    def _offer_choices(self) -> None:
        cursor = self.session.cursor
        active = self.session.director.active_context
        story = self.script.contexts.get(active) if active else None
        if story is None or not cursor.is_active or cursor.choices_pending:
            return
        key = (story.name, cursor.current_position())
        if key == self._offered:
            return
        options = story.choices.get(cursor.current_position())
        if options:
            self._offered = key
            cursor.present_choices(options)

    async def run(self) -> None:
        self.session.director.transition_to(self.session.settings.main_menu_context)
        await self.settle()
        while self.running:
            self.print_prompt()
            raw = (await read_input("> ")).strip().lower()
            self.handle(raw)
            await self.settle()

    def print_prompt(self) -> None:
        session = self.session
        if session.gate.is_active:
            return
        browser = session.coordinator.slot_browser
        if browser is not None and not browser.disposed:
            emit_print(f"\n=== {browser.mode.value.title()} ===")
            for view in browser.views:
                marker = " " if view.primary_enabled else "x"
                emit_print(f" {marker} {view.slot + 1}. {view.label}")
            emit_print("Pick a slot number, R<n> to reset a slot, C to close.")
            return
        menu = session.director.find(MainMenuFlow)
        if menu is not None and menu.visible:
            emit_print(f"\n=== {self.script.title} ===")
            emit_print("N. New Game  L. Load Game  Q. Quit")
            return
        pause = session.director.find(PauseMenuFlow)
        if pause is not None and pause.visible:
            emit_print("\n=== Pause Menu ===")
            options = ["R. Resume"]
            if session.coordinator.is_save_allowed():
                options.append("S. Save")
            options.extend(["L. Load", "T. Playtime", "M. Main Menu"])
            emit_print("  ".join(options))

    def handle(self, raw: str) -> None:
        session = self.session
        coordinator = session.coordinator
        if session.gate.is_active:
            if raw in {"y", "yes"}:
                session.gate.resolve(True)
            elif raw in {"n", "no"} or not session.gate.current.is_prompt:
                session.gate.resolve(False)
            else:
                emit_print("Answer Y or N.")
            return

        browser = coordinator.slot_browser
        if browser is not None and not browser.disposed:
            if raw in {"c", "close"}:
                browser.close()
            elif raw.startswith("r") and raw[1:].isdigit():
                browser.on_reset_clicked(int(raw[1:]) - 1)
            elif raw.isdigit() and 1 <= int(raw) <= session.store.slot_count:
                browser.on_slot_clicked(int(raw) - 1)
            else:
                emit_print("Pick a valid slot.")
            return

        menu = session.director.find(MainMenuFlow)
        if menu is not None and menu.visible:
            if raw in {"n", "new"}:
                menu.start_new_session()
            elif raw in {"l", "load"}:
                menu.open_load_browser()
            elif raw in {"q", "quit"}:
                menu.quit(self.stop)
            else:
                emit_print("Pick N, L, or Q.")
            return

        pause = session.director.find(PauseMenuFlow)
        if pause is not None and pause.visible:
            if raw in {"r", "resume", "p", "esc"}:
                pause.resume()
            elif raw in {"s", "save"}:
                if not pause.open_save_browser():
                    emit_print("Saving is not available here.")
            elif raw in {"l", "load"}:
                pause.open_load_browser()
            elif raw in {"t", "time"}:
                emit_print(pause.toggle_play_time())
            elif raw in {"m", "menu"}:
                pause.return_to_main_menu()
            else:
                emit_print("Pick R, S, L, T, or M.")
            return

        if raw in {"p", "esc"} and pause is not None:
            pause.pause_toggled()
            return
        if raw.isdigit():
            if not coordinator.choice_selected(int(raw) - 1):
                emit_print("Pick a valid choice number.")
            return
        if raw == "":
            if not coordinator.advance_requested() and not session.cursor.is_active:
                self._continue_story()
            return
        emit_print("Press Enter to continue, a number to choose, or P to pause.")

    def _continue_story(self) -> None:
        """Move to the next context in script order once the current one ends."""
        names = list(self.script.contexts)
        active = self.session.director.active_context
        if active in names and names.index(active) + 1 < len(names):
            target = names[names.index(active) + 1]
        elif active == self.session.settings.new_session_context and names:
            target = names[0]
        else:
            emit_print("\n*** The End ***")
            coordinator = self.session.coordinator
            coordinator.spawn(coordinator.return_to_main_menu(), name="main-menu")
            return
        try:
            self.session.director.transition_to(target, TransitionMode.REPLACE)
        except TransitionError as exc:
            emit_print(f"[!] {exc}")

    def stop(self) -> None:
        emit_print("Goodbye!")
        self.running = False


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a stagehand narrative session in the terminal.")
    parser.add_argument("script", nargs="?", default=DEFAULT_SCRIPT_PATH)
    parser.add_argument("--settings", default=str(SETTINGS_PATH), help="Path to the settings JSON file.")
    parser.add_argument("--verbose", action="store_true", help="Log debug output to stderr.")
    parser.add_argument("--log-dir", default=None, help="Directory for daily log files.")
    return parser.parse_args(argv)


async def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    setup_logging(args.verbose, Path(args.log_dir) if args.log_dir else None)
    try:
        script = load_script(args.script)
    except (OSError, ScriptError) as exc:
        emit_print(f"[!] Could not load script '{args.script}': {exc}")
        return 1
    settings = load_settings(args.settings)
    session = build_session(settings, notify_func=lambda message: emit_print(f"[Session] {message}"))
    host = TerminalHost(session, script)
    try:
        await host.run()
    finally:
        session.close()
    return 0


def run() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        emit_print("\n[Interrupted] Bye.")

