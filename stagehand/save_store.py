"""Slot based session persistence for stagehand."""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

LOGGER = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
SLOT_FILENAME = "SaveSlot_{slot}.json"
DEFAULT_SLOT_COUNT = 3


class SaveError(Exception):
    """Base class for save related failures."""


class SaveNotFoundError(SaveError):
    """Raised when a slot holds no save file."""


class SaveCorruptError(SaveError):
    """Raised when a save file cannot be parsed or validated."""


class SaveWriteError(SaveError):
    """Raised when a save file cannot be written or removed."""


@dataclass(frozen=True)
class SessionSnapshot:
    context_name: str
    position: int
    elapsed_seconds: float
    saved_at: str

    def to_dict(self) -> Dict[str, Any]:
        # Key order is part of the on-disk format.
        return {
            "sceneName": self.context_name,
            "dialogueIndex": self.position,
            "playTimeSeconds": float(self.elapsed_seconds),
            "savedAt": self.saved_at,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "SessionSnapshot":
        if not isinstance(data, dict):
            raise SaveCorruptError("Payload was not an object.")
        for key in ("sceneName", "dialogueIndex", "playTimeSeconds", "savedAt"):
            if key not in data:
                raise SaveCorruptError(f"Missing key: {key}")
        scene = data["sceneName"]
        if not isinstance(scene, str) or not scene.strip():
            raise SaveCorruptError("sceneName must be a non-empty string.")
        index = data["dialogueIndex"]
        if isinstance(index, bool) or not isinstance(index, int) or index < 0:
            raise SaveCorruptError("dialogueIndex must be a non-negative integer.")
        play_time = data["playTimeSeconds"]
        if isinstance(play_time, bool) or not isinstance(play_time, (int, float)):
            raise SaveCorruptError("playTimeSeconds must be a number.")
        if not math.isfinite(play_time):
            raise SaveCorruptError("playTimeSeconds must be a finite number.")
        if play_time < 0:
            raise SaveCorruptError("playTimeSeconds must not be negative.")
        saved_at = data["savedAt"]
        if not isinstance(saved_at, str):
            raise SaveCorruptError("savedAt must be a string.")
        return cls(
            context_name=scene,
            position=index,
            elapsed_seconds=float(play_time),
            saved_at=saved_at,
        )


def encode_snapshot(snapshot: SessionSnapshot) -> str:
    return json.dumps(snapshot.to_dict(), indent=4, allow_nan=False) + "\n"


def decode_snapshot(raw: str) -> SessionSnapshot:
    try:
        payload = json.loads(raw)
    except (ValueError, RecursionError) as exc:
        raise SaveCorruptError(f"Invalid JSON: {exc}") from exc
    return SessionSnapshot.from_dict(payload)


class SaveStore:
    """Read and write one session snapshot per numbered slot."""

    def __init__(self, base_path: Path | str = "saves", *, slot_count: int = DEFAULT_SLOT_COUNT) -> None:
        self.base_path = Path(base_path)
        self.slot_count = max(int(slot_count), 1)

    # ---------- Public API ----------
    def slots(self) -> range:
        return range(self.slot_count)

    def exists(self, slot: int) -> bool:
        return self._slot_path(self._check_slot(slot)).is_file()

    def write(self, slot: int, snapshot: SessionSnapshot) -> Path:
        slot = self._check_slot(slot)
        save_path = self._slot_path(slot)
        tmp_path = save_path.with_suffix(save_path.suffix + ".tmp")
        try:
            encoded = encode_snapshot(snapshot)
        except ValueError as exc:
            raise SaveWriteError(f"Could not encode slot {slot + 1}: {exc}") from exc
        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
            if tmp_path.exists():
                LOGGER.debug("Removing stale temporary save %s", tmp_path)
                tmp_path.unlink()
            with open(tmp_path, "w", encoding="utf-8") as handle:
                handle.write(encoded)
            tmp_path.replace(save_path)
        except OSError as exc:
            raise SaveWriteError(f"Could not write slot {slot + 1}: {exc.strerror or exc}") from exc
        LOGGER.debug("Slot %s written to %s", slot, save_path)
        return save_path

    def read(self, slot: int) -> SessionSnapshot:
        slot = self._check_slot(slot)
        save_path = self._slot_path(slot)
        try:
            with open(save_path, "r", encoding="utf-8") as handle:
                raw = handle.read()
        except FileNotFoundError as exc:
            raise SaveNotFoundError(f"Slot {slot + 1} is empty.") from exc
        except UnicodeDecodeError as exc:
            raise SaveCorruptError(f"Slot {slot + 1} is not valid text.") from exc
        except OSError as exc:
            raise SaveError(f"Could not read slot {slot + 1}: {exc.strerror or exc}") from exc
        return decode_snapshot(raw)

    def delete(self, slot: int) -> bool:
        """Remove the slot's file; returns whether anything was deleted."""
        slot = self._check_slot(slot)
        save_path = self._slot_path(slot)
        try:
            save_path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise SaveWriteError(f"Could not reset slot {slot + 1}: {exc.strerror or exc}") from exc
        return True

    def label(self, slot: int) -> str:
        try:
            snapshot = self.read(slot)
        except SaveError:
            return f"Slot {slot + 1} - Empty"
        return f"Slot {slot + 1} - {snapshot.context_name} ({snapshot.saved_at})"

    def first_empty_slot(self) -> Optional[int]:
        for slot in self.slots():
            if not self.exists(slot):
                return slot
        return None

    def all_full(self) -> bool:
        return self.first_empty_slot() is None

    # ---------- Internal helpers ----------
    def _check_slot(self, slot: int) -> int:
        if isinstance(slot, bool) or not isinstance(slot, int):
            raise SaveError(f"Slot must be a number, got {slot!r}.")
        if not 0 <= slot < self.slot_count:
            raise SaveError(f"Slot {slot + 1} is out of range (1-{self.slot_count}).")
        return slot

    def _slot_path(self, slot: int) -> Path:
        return self.base_path / SLOT_FILENAME.format(slot=slot)
