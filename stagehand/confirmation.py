"""Single-flight confirmation prompts."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

LOGGER = logging.getLogger(__name__)

Callback = Callable[[], None]
DisplaySink = Callable[[Optional["ConfirmationRequest"]], None]


@dataclass(frozen=True)
class ConfirmationRequest:
    message: str
    on_confirm: Optional[Callback] = None
    on_cancel: Optional[Callback] = None
    is_prompt: bool = True


class ConfirmationGate:
    """Hold at most one outstanding message or yes/no prompt.

    A new request replaces the outstanding one without invoking its
    callbacks. ``resolve`` releases the request before running the chosen
    callback, so the gate is clear even if that callback raises.
    """

    def __init__(self, *, display: Optional[DisplaySink] = None) -> None:
        self.display = display
        self._current: Optional[ConfirmationRequest] = None

    @property
    def is_active(self) -> bool:
        return self._current is not None

    @property
    def current(self) -> Optional[ConfirmationRequest]:
        return self._current

    def show_message(self, message: str) -> None:
        self._open(ConfirmationRequest(message=message, is_prompt=False))

    def request(
        self,
        message: str,
        on_confirm: Optional[Callback] = None,
        on_cancel: Optional[Callback] = None,
    ) -> None:
        self._open(ConfirmationRequest(message, on_confirm, on_cancel, is_prompt=True))

    def resolve(self, accepted: bool) -> bool:
        request = self._take()
        if request is None:
            return False
        callback = request.on_confirm if accepted else request.on_cancel
        if callback is not None:
            callback()
        return True

    def force_close(self) -> None:
        request = self._take()
        if request is not None:
            LOGGER.debug("Discarded confirmation %r without a response.", request.message)

    def _open(self, request: ConfirmationRequest) -> None:
        if self._current is not None:
            LOGGER.debug("Replacing confirmation %r.", self._current.message)
        self._current = request
        if self.display is not None:
            self.display(request)

    def _take(self) -> Optional[ConfirmationRequest]:
        request, self._current = self._current, None
        if request is not None and self.display is not None:
            self.display(None)
        return request
