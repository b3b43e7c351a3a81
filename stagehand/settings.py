"""Settings persistence for stagehand sessions."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional

LOGGER = logging.getLogger(__name__)

SETTINGS_PATH = Path("stagehand.json")


def _clamp(value: int, minimum: int, maximum: int) -> int:
    return max(minimum, min(maximum, value))


@dataclass
class SessionSettings:
    """Where saves live, which contexts are special, and how long to wait."""

    save_dir: str = "saves"
    slot_count: int = 3
    main_menu_context: str = "MainMenuScene"
    browser_context: str = "SaveLoadScene"
    new_session_context: str = "CharacterSelectionScene"
    poll_frames: int = 1
    readiness_timeout_frames: Optional[int] = 600
    frame_rate: int = 60

    @property
    def setup_contexts(self) -> tuple:
        return (self.main_menu_context, self.new_session_context, self.browser_context)

    def clamp(self) -> "SessionSettings":
        self.save_dir = str(self.save_dir or "saves")
        self.slot_count = _clamp(int(self.slot_count), 1, 9)
        self.poll_frames = max(int(self.poll_frames), 1)
        if self.readiness_timeout_frames is not None:
            self.readiness_timeout_frames = max(int(self.readiness_timeout_frames), 1)
        self.frame_rate = _clamp(int(self.frame_rate), 1, 240)
        for name in ("main_menu_context", "browser_context", "new_session_context"):
            value = str(getattr(self, name) or "").strip()
            setattr(self, name, value or getattr(SessionSettings, name))
        return self

    def copy(self) -> "SessionSettings":
        return SessionSettings.from_dict(self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any] | None) -> "SessionSettings":
        if not isinstance(data, dict):
            return cls()

        def _as_int(key: str, default: int) -> int:
            try:
                return int(data.get(key, default))
            except (TypeError, ValueError):
                return default

        timeout = data.get("readiness_timeout_frames", cls.readiness_timeout_frames)
        if timeout is not None:
            try:
                timeout = int(timeout)
            except (TypeError, ValueError):
                timeout = cls.readiness_timeout_frames
            else:
                if timeout <= 0:
                    timeout = None

        settings = cls(
            save_dir=str(data.get("save_dir", cls.save_dir)),
            slot_count=_as_int("slot_count", cls.slot_count),
            main_menu_context=str(data.get("main_menu_context", cls.main_menu_context)),
            browser_context=str(data.get("browser_context", cls.browser_context)),
            new_session_context=str(data.get("new_session_context", cls.new_session_context)),
            poll_frames=_as_int("poll_frames", cls.poll_frames),
            readiness_timeout_frames=timeout,
            frame_rate=_as_int("frame_rate", cls.frame_rate),
        )
        return settings.clamp()


def load_settings(path: Path | str = SETTINGS_PATH) -> SessionSettings:
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except FileNotFoundError:
        return SessionSettings()
    except (OSError, json.JSONDecodeError, TypeError) as exc:
        LOGGER.warning("Ignoring unreadable settings file %s: %s", path, exc)
        return SessionSettings()
    return SessionSettings.from_dict(data)


def save_settings(settings: SessionSettings, path: Path | str = SETTINGS_PATH) -> SessionSettings:
    path = Path(path)
    sanitized = settings.copy().clamp()
    path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            "w", delete=False, dir=path.parent, prefix=path.name, suffix=".tmp", encoding="utf-8"
        ) as tmp_file:
            json.dump(sanitized.to_dict(), tmp_file, indent=2)
            tmp_file.write("\n")
            tmp_path = Path(tmp_file.name)
        os.replace(str(tmp_path), str(path))
    except OSError as exc:
        LOGGER.error("Failed to save settings: %s", exc)
        if tmp_path is not None:
            try:
                tmp_path.unlink()
            except OSError:
                pass
    return sanitized
