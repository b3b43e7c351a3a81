import pytest

from stagehand.confirmation import ConfirmationGate


def test_newer_request_replaces_outstanding_one() -> None:
    gate = ConfirmationGate()
    calls = []
    gate.request("A?", lambda: calls.append("A confirm"), lambda: calls.append("A cancel"))
    gate.request("B?", lambda: calls.append("B confirm"), lambda: calls.append("B cancel"))

    assert gate.resolve(True) is True

    assert calls == ["B confirm"]
    assert not gate.is_active


def test_cancel_runs_cancel_callback_only() -> None:
    gate = ConfirmationGate()
    calls = []
    gate.request("Quit?", lambda: calls.append("confirm"), lambda: calls.append("cancel"))

    gate.resolve(False)

    assert calls == ["cancel"]


def test_gate_clears_even_when_callback_raises() -> None:
    gate = ConfirmationGate()

    def explode() -> None:
        raise RuntimeError("boom")

    gate.request("Risky?", explode)
    with pytest.raises(RuntimeError):
        gate.resolve(True)

    assert not gate.is_active
    assert gate.resolve(True) is False


def test_force_close_discards_callbacks() -> None:
    gate = ConfirmationGate()
    calls = []
    gate.request("Stale?", lambda: calls.append("confirm"), lambda: calls.append("cancel"))

    gate.force_close()

    assert not gate.is_active
    assert gate.resolve(True) is False
    assert calls == []


def test_callback_may_open_a_follow_up_request() -> None:
    gate = ConfirmationGate()
    gate.request("First?", lambda: gate.show_message("Done."))

    gate.resolve(True)

    assert gate.is_active
    assert gate.current.message == "Done."
    assert gate.current.is_prompt is False


def test_display_sink_sees_open_and_close() -> None:
    shown = []
    gate = ConfirmationGate(display=shown.append)

    gate.show_message("Saved to slot 1")
    gate.resolve(True)

    assert [getattr(item, "message", None) for item in shown] == ["Saved to slot 1", None]
