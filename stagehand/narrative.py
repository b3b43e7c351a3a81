"""Narrative position tracking and choice resolution."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Union

LOGGER = logging.getLogger(__name__)

TextSink = Callable[[str], None]
SpeakerSink = Callable[[Optional[str]], None]
PortraitSink = Callable[[Any], None]
ChoiceSink = Callable[[List[str]], None]


class InvalidPositionError(Exception):
    """Raised when a line index falls outside the active sequence."""


class UnboundPresentationError(Exception):
    """Raised when presentation handles are required but not supplied."""


@dataclass(frozen=True)
class NarrativeLine:
    speaker: str = ""  # empty for narration
    text: str = ""
    portrait: Any = None

    @property
    def is_narration(self) -> bool:
        return not self.speaker


def narration(text: str) -> NarrativeLine:
    return NarrativeLine(speaker="", text=text)


@dataclass(frozen=True)
class Choice:
    text: str
    target: Optional[int] = None


@dataclass(frozen=True)
class PresentationHandles:
    text_sink: Optional[TextSink]
    speaker_sink: Optional[SpeakerSink]
    portrait_sink: Optional[PortraitSink]
    choice_sink: Optional[ChoiceSink] = None
    owner: Optional[str] = None

    def complete(self) -> bool:
        return (
            self.text_sink is not None
            and self.speaker_sink is not None
            and self.portrait_sink is not None
        )


class NarrativeCursor:
    """Own the active line sequence and the reader's position within it.

    The cursor is either inactive (no lines, position 0) or active with a
    position inside ``[0, len(lines))``. Presentation handles belong to the
    currently loaded context and are swapped through :meth:`rebind` after
    every transition; rendering silently does nothing while they are absent.
    """

    def __init__(self) -> None:
        self._lines: List[NarrativeLine] = []
        self._position = 0
        self._handles: Optional[PresentationHandles] = None
        self._choices: List[Choice] = []
        self._on_choice: Optional[Callable[[int], None]] = None

    # ---------- State ----------
    @property
    def is_active(self) -> bool:
        return bool(self._lines)

    @property
    def line_count(self) -> int:
        return len(self._lines)

    @property
    def choices_pending(self) -> bool:
        return bool(self._choices)

    @property
    def handles(self) -> PresentationHandles:
        if self._handles is None or not self._handles.complete():
            raise UnboundPresentationError("Presentation handles have not been provided.")
        return self._handles

    @property
    def bound_owner(self) -> Optional[str]:
        return self._handles.owner if self._handles is not None else None

    def current_position(self) -> int:
        return self._position if self._lines else 0

    def current_line(self) -> Optional[NarrativeLine]:
        if not self._lines:
            return None
        return self._lines[self._position]

    def is_bound(self) -> bool:
        return self._handles is not None and self._handles.complete()

    # ---------- Sequence control ----------
    def begin(self, lines: Sequence[Union[NarrativeLine, str]]) -> None:
        converted = [line if isinstance(line, NarrativeLine) else narration(str(line)) for line in lines]
        self._clear_choices()
        self._lines = converted
        self._position = 0
        if not converted:
            LOGGER.debug("begin() called with no lines; cursor stays inactive.")
            return
        self._render()

    def advance(self) -> bool:
        if not self._lines:
            return False
        if self._choices:
            LOGGER.debug("advance() ignored while a choice is pending.")
            return False
        self._position += 1
        if self._position >= len(self._lines):
            self._end()
        else:
            self._render()
        return True

    def check_position(self, position: int) -> int:
        if isinstance(position, bool) or not isinstance(position, int):
            raise InvalidPositionError(f"Line index must be an integer, got {position!r}.")
        if not 0 <= position < len(self._lines):
            raise InvalidPositionError(
                f"Line index {position} outside sequence of {len(self._lines)} lines."
            )
        return position

    def jump_to(self, position: int) -> bool:
        try:
            position = self.check_position(position)
        except InvalidPositionError as exc:
            LOGGER.debug("jump_to ignored: %s", exc)
            return False
        self._clear_choices()
        self._position = position
        self._render()
        return True

    # ---------- Choices ----------
    def present_choices(
        self,
        choices: Sequence[Union[Choice, str]],
        on_selected: Optional[Callable[[int], None]] = None,
    ) -> None:
        self._choices = [c if isinstance(c, Choice) else Choice(str(c)) for c in choices]
        self._on_choice = on_selected if self._choices else None
        self._push_choices()

    def choose(self, index: int) -> bool:
        if not self._choices or not 0 <= index < len(self._choices):
            return False
        choice = self._choices[index]
        callback = self._on_choice
        self._clear_choices()
        if callback is not None:
            callback(index)
        if choice.target is not None:
            self.jump_to(choice.target)
        else:
            self.advance()
        return True

    # ---------- Presentation ----------
    def rebind(self, handles: PresentationHandles) -> None:
        self._handles = handles
        if self.is_bound():
            self._render()
            if self._choices:
                self._push_choices()

    def provide_handles(
        self,
        text_sink: TextSink,
        speaker_sink: SpeakerSink,
        portrait_sink: PortraitSink,
        *,
        choice_sink: Optional[ChoiceSink] = None,
        owner: Optional[str] = None,
    ) -> None:
        self.rebind(
            PresentationHandles(
                text_sink=text_sink,
                speaker_sink=speaker_sink,
                portrait_sink=portrait_sink,
                choice_sink=choice_sink,
                owner=owner,
            )
        )

    def unbind(self) -> None:
        self._handles = None

    # ---------- Internal helpers ----------
    def _end(self) -> None:
        self._lines = []
        self._position = 0
        self._clear_choices()
        if self.is_bound():
            self._handles.text_sink("")
            self._handles.speaker_sink(None)
            self._handles.portrait_sink(None)

    def _render(self) -> None:
        if not self.is_bound() or not self._lines:
            return
        line = self._lines[self._position]
        self._handles.text_sink(line.text)
        self._handles.speaker_sink(line.speaker or None)
        self._handles.portrait_sink(line.portrait)

    def _push_choices(self) -> None:
        if self._handles is None or self._handles.choice_sink is None:
            return
        self._handles.choice_sink([choice.text for choice in self._choices])

    def _clear_choices(self) -> None:
        had_choices = bool(self._choices)
        self._choices = []
        self._on_choice = None
        if had_choices:
            self._push_choices()
