import asyncio
import json
import logging
import time
from pathlib import Path
from typing import List

import pytest

from stagehand import app
from stagehand.save_store import SaveStore
from stagehand.script import parse_script

REPO_ROOT = Path(__file__).resolve().parents[1]


@pytest.fixture
def clean_logging():
    yield
    logger = logging.getLogger("stagehand")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


def play(monkeypatch, commands: List[str], argv: List[str]) -> List[str]:
    output: List[str] = []
    pending = iter(commands)

    async def fake_input(prompt: str = "") -> str:
        return next(pending)

    monkeypatch.setattr(app, "read_input", fake_input)
    monkeypatch.setattr(app, "emit_print", lambda *args, **kwargs: output.append(" ".join(map(str, args))))
    assert asyncio.run(app.main(argv)) == 0
    return output


def test_terminal_session_saves_and_returns_to_menu(tmp_path: Path, monkeypatch, clean_logging) -> None:
    settings_path = tmp_path / "stagehand.json"
    settings_path.write_text(json.dumps({"save_dir": str(tmp_path / "saves")}), encoding="utf-8")
    commands = ["n", "", "", "p", "s", "2", "c", "m", "y", "q", "y"]

    output = play(
        monkeypatch,
        commands,
        [
            str(REPO_ROOT / "script" / "script.json"),
            "--settings",
            str(settings_path),
            "--log-dir",
            str(tmp_path / "logs"),
        ],
    )
    text = "\n".join(output)

    assert "=== The Lantern Road ===" in text
    assert "[Session] Saved to slot 1" in text
    assert "Rain drums on the roof of the waystation." in text
    assert "Mira: Someone is knocking. At this hour?" in text
    assert "[Session] Saved to slot 2" in text
    assert "[?] Return to Main Menu? Unsaved progress will be lost. (y/n)" in text
    assert output[-1] == "Goodbye!"

    store = SaveStore(tmp_path / "saves")
    assert store.read(0).context_name == "CharacterSelectionScene"
    saved = store.read(1)
    assert saved.context_name == "ChapterOne"
    assert saved.position == 1
    assert list((tmp_path / "logs").glob("stagehand_*.log"))


def test_missing_script_exits_with_error(tmp_path: Path, monkeypatch, clean_logging) -> None:
    output: List[str] = []
    monkeypatch.setattr(app, "emit_print", lambda *args, **kwargs: output.append(" ".join(map(str, args))))

    code = asyncio.run(app.main([str(tmp_path / "missing.json")]))

    assert code == 1
    assert output[0].startswith("[!] Could not load script")


def test_settle_paces_ticks_at_frame_rate(session) -> None:
    session.settings.frame_rate = 20
    script = parse_script({"title": "Test", "contexts": {"Intro": {"lines": ["x"]}}})
    host = app.TerminalHost(session, script)

    async def scenario() -> float:
        start = time.monotonic()
        await host.settle()
        return time.monotonic() - start

    elapsed = asyncio.run(scenario())

    assert session.clock.frame == app.SETTLE_FRAMES
    assert elapsed >= (app.SETTLE_FRAMES - 1) / 20 * 0.9
