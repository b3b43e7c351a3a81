import asyncio

from conftest import add_story, settle
from stagehand.menus import MainMenuFlow, PauseMenuFlow
from stagehand.save_store import SessionSnapshot
from stagehand.slot_browser import BrowserMode, BrowserOrigin


async def enter(session, name: str):
    session.director.transition_to(name)
    await settle(session)
    return session.director.get(name)


def test_new_session_uses_first_empty_slot(session, messages) -> None:
    session.store.write(0, SessionSnapshot("ChapterOne", 3, 10.0, "2026-10-01 08:00:00"))

    async def scenario():
        menu = (await enter(session, "MainMenuScene")).find(MainMenuFlow)
        menu.start_new_session()
        await settle(session)
        return menu

    menu = asyncio.run(scenario())

    assert menu.visible is False
    assert session.director.active_context == "CharacterSelectionScene"
    assert session.store.read(1).context_name == "CharacterSelectionScene"
    assert session.store.read(0).position == 3
    assert messages == ["Saved to slot 2"]
    assert session.coordinator.state.last_used_slot == 1


def test_full_slots_prompt_can_be_declined(session) -> None:
    for slot in range(3):
        session.store.write(slot, SessionSnapshot("ChapterOne", 0, 0.0, "2026-10-01 08:00:00"))

    async def scenario():
        menu = (await enter(session, "MainMenuScene")).find(MainMenuFlow)
        menu.start_new_session()
        session.gate.resolve(False)
        await settle(session)
        return menu

    menu = asyncio.run(scenario())

    assert menu.visible is True
    assert session.director.loaded_names() == ["MainMenuScene"]
    assert session.coordinator.take_reset_for_new_session() is False


def test_closing_load_browser_shows_main_menu_again(session) -> None:
    async def scenario():
        menu = (await enter(session, "MainMenuScene")).find(MainMenuFlow)
        menu.open_load_browser()
        assert menu.visible is False
        await settle(session)
        session.coordinator.slot_browser.close()
        await settle(session)
        return menu

    menu = asyncio.run(scenario())

    assert menu.visible is True
    assert session.director.loaded_names() == ["MainMenuScene"]


def test_quit_runs_only_when_confirmed(session) -> None:
    menu = MainMenuFlow(session.coordinator)
    quits = []

    menu.quit(lambda: quits.append(1))
    assert session.gate.current.message == "Are you sure you want to quit?"
    session.gate.resolve(False)
    menu.quit(lambda: quits.append(1))
    session.gate.resolve(True)

    assert quits == [1]


def test_pause_toggle_blocked_by_open_prompt(session) -> None:
    pause = PauseMenuFlow(session.coordinator)

    assert pause.pause_toggled() is True
    assert pause.is_paused and pause.visible

    session.gate.show_message("Saved to slot 1")
    assert pause.pause_toggled() is False
    assert pause.is_paused

    session.gate.resolve(True)
    assert pause.pause_toggled() is True
    assert not pause.is_paused and not pause.visible


def test_loading_a_context_unpauses(session) -> None:
    add_story(session)
    session.coordinator.set_paused(True)

    asyncio.run(enter(session, "ChapterOne"))

    assert session.coordinator.state.paused is False


def test_save_browser_refused_outside_story(session) -> None:
    async def scenario() -> bool:
        pause = (await enter(session, "CharacterSelectionScene")).find(PauseMenuFlow)
        return pause.open_save_browser()

    assert asyncio.run(scenario()) is False
    assert session.coordinator.state.browser is None


def test_closing_save_browser_returns_to_pause_menu(session) -> None:
    add_story(session)

    async def scenario():
        pause = (await enter(session, "ChapterOne")).find(PauseMenuFlow)
        pause.pause()
        assert pause.open_save_browser() is True
        assert pause.visible is False
        await settle(session)
        flow = session.coordinator.slot_browser
        assert flow.mode is BrowserMode.SAVE
        assert flow.origin is BrowserOrigin.PAUSE_MENU
        flow.close()
        await settle(session)
        return pause

    pause = asyncio.run(scenario())

    assert pause.visible is True
    assert pause.is_paused
    assert session.director.loaded_names() == ["ChapterOne"]


def test_return_to_main_menu_after_confirmation(session) -> None:
    add_story(session)

    async def scenario() -> None:
        pause = (await enter(session, "ChapterOne")).find(PauseMenuFlow)
        pause.pause()
        pause.return_to_main_menu()
        assert session.gate.current.message == "Return to Main Menu? Unsaved progress will be lost."
        session.gate.resolve(True)
        await settle(session)

    asyncio.run(scenario())

    assert session.director.active_context == "MainMenuScene"
    assert session.coordinator.state.paused is False
    assert not session.cursor.is_active


def test_play_time_label_toggles(session) -> None:
    pause = PauseMenuFlow(session.coordinator)
    session.coordinator.state.elapsed_seconds = 3725.0

    assert pause.toggle_play_time() == "Playtime: 1h 2m"
    assert pause.toggle_play_time() == "Show Playtime"
