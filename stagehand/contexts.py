"""Headless context loading with asynchronous completion."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, TypeVar

from .frames import FrameClock

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

LoadedListener = Callable[[str, bool], None]
UnloadedListener = Callable[[str], None]


class TransitionError(Exception):
    """Raised when a context transition cannot be requested."""


class TransitionMode(Enum):
    REPLACE = "replace"
    ADDITIVE = "additive"


@dataclass
class LoadedContext:
    name: str
    mode: TransitionMode
    objects: List[Any] = field(default_factory=list)

    def add(self, obj: T) -> T:
        self.objects.append(obj)
        return obj

    def find(self, kind: Type[T]) -> Optional[T]:
        for obj in self.objects:
            if isinstance(obj, kind):
                return obj
        return None


ContextBuilder = Callable[[LoadedContext], None]


class ContextDirector:
    """Load and unload named contexts one frame after they are requested."""

    def __init__(self, clock: FrameClock) -> None:
        self.clock = clock
        self._builders: Dict[str, Optional[ContextBuilder]] = {}
        self._loaded: List[LoadedContext] = []
        self._queue: List[Tuple[str, Optional[TransitionMode], asyncio.Future]] = []
        self._listeners: List[Tuple[LoadedListener, Optional[UnloadedListener]]] = []
        self.active_context: Optional[str] = None
        self._remove_tick = clock.add_listener(self._on_tick)

    # ---------- Registration ----------
    def register(self, name: str, builder: Optional[ContextBuilder] = None) -> None:
        self._builders[name] = builder

    def knows(self, name: str) -> bool:
        return name in self._builders

    def subscribe(
        self,
        on_loaded: LoadedListener,
        on_unloaded: Optional[UnloadedListener] = None,
    ) -> Callable[[], None]:
        entry = (on_loaded, on_unloaded)
        self._listeners.append(entry)

        def unsubscribe() -> None:
            if entry in self._listeners:
                self._listeners.remove(entry)

        return unsubscribe

    # ---------- Queries ----------
    def loaded_names(self) -> List[str]:
        return [context.name for context in self._loaded]

    def is_loaded(self, name: str) -> bool:
        return any(context.name == name for context in self._loaded)

    def get(self, name: str) -> Optional[LoadedContext]:
        for context in self._loaded:
            if context.name == name:
                return context
        return None

    def find(self, kind: Type[T]) -> Optional[T]:
        for context in reversed(self._loaded):
            found = context.find(kind)
            if found is not None:
                return found
        return None

    # ---------- Requests ----------
    def transition_to(self, name: str, mode: TransitionMode = TransitionMode.REPLACE) -> asyncio.Future:
        if not self.knows(name):
            raise TransitionError(f"Unknown context '{name}'.")
        future = asyncio.get_running_loop().create_future()
        self._queue.append((name, mode, future))
        LOGGER.debug("Queued %s load of '%s'.", mode.value, name)
        return future

    def unload(self, name: str) -> asyncio.Future:
        future = asyncio.get_running_loop().create_future()
        self._queue.append((name, None, future))
        LOGGER.debug("Queued unload of '%s'.", name)
        return future

    def shutdown(self) -> None:
        self._remove_tick()
        for _, _, future in self._queue:
            future.cancel()
        self._queue.clear()

    # ---------- Internal helpers ----------
    def _on_tick(self, _delta: float) -> None:
        queue, self._queue = self._queue, []
        for name, mode, future in queue:
            if future.cancelled():
                continue
            if mode is None:
                self._unload(name)
                future.set_result(None)
                continue
            context = self._load(name, mode)
            if not future.done():
                future.set_result(context)

    def _load(self, name: str, mode: TransitionMode) -> LoadedContext:
        if mode is TransitionMode.REPLACE:
            for existing in list(self._loaded):
                self._unload(existing.name)
        context = LoadedContext(name=name, mode=mode)
        self._loaded.append(context)
        if mode is TransitionMode.REPLACE:
            self.active_context = name
        builder = self._builders.get(name)
        if builder is not None:
            builder(context)
        LOGGER.debug("Context '%s' loaded (%s).", name, mode.value)
        additive = mode is TransitionMode.ADDITIVE
        for on_loaded, _ in list(self._listeners):
            try:
                on_loaded(name, additive)
            except Exception:
                LOGGER.exception("Load listener failed for context '%s'.", name)
        return context

    def _unload(self, name: str) -> None:
        context = self.get(name)
        if context is None:
            return
        self._loaded.remove(context)
        if self.active_context == name:
            self.active_context = None
        LOGGER.debug("Context '%s' unloaded.", name)
        for _, on_unloaded in list(self._listeners):
            if on_unloaded is None:
                continue
            try:
                on_unloaded(name)
            except Exception:
                LOGGER.exception("Unload listener failed for context '%s'.", name)
