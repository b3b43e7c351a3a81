from datetime import datetime
from pathlib import Path
from typing import List

import pytest

from stagehand.bootstrap import Session, build_session
from stagehand.narrative import NarrativeLine, PresentationHandles
from stagehand.script import ContextScript
from stagehand.settings import SessionSettings

FIXED_NOW = datetime(2026, 10, 19, 12, 30, 45)
FIXED_STAMP = "2026-10-19 12:30:45"

STORY_LINES = [NarrativeLine("Mira", f"Line {idx}") for idx in range(10)]


async def settle(session: Session, frames: int = 6) -> None:
    for _ in range(frames):
        await session.clock.step()


def add_story(session: Session, name: str = "ChapterOne", *, bind: bool = True) -> List[str]:
    """Register a playable context; returns the text its view receives."""
    rendered: List[str] = []

    def handles(context_name: str) -> PresentationHandles:
        return PresentationHandles(
            text_sink=rendered.append,
            speaker_sink=lambda _speaker: None,
            portrait_sink=lambda _portrait: None,
            owner=context_name,
        )

    session.register_story(
        ContextScript(name=name, lines=list(STORY_LINES)),
        handles if bind else None,
    )
    return rendered


@pytest.fixture
def messages() -> List[str]:
    return []


@pytest.fixture
def settings(tmp_path: Path) -> SessionSettings:
    return SessionSettings(save_dir=str(tmp_path / "saves"), readiness_timeout_frames=10)


@pytest.fixture
def session(settings: SessionSettings, messages: List[str]):
    session = build_session(settings, notify_func=messages.append, now_func=lambda: FIXED_NOW)
    yield session
    session.close()
