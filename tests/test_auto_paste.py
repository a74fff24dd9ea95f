from __future__ import annotations

from unittest.mock import MagicMock

import auto_paste
from auto_paste import ClipboardPasteService


def test_paste_returns_failure_when_dependencies_missing(monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.setattr(auto_paste, "pyperclip", None)
    monkeypatch.setattr(auto_paste, "Controller", None)
    monkeypatch.setattr(auto_paste, "Key", None)

    service = ClipboardPasteService()
    result = service.paste_text("hello")

    assert result.success is False
    assert result.clipboard_restored is False


def test_paste_returns_failure_on_empty_text() -> None:
    service = ClipboardPasteService()
    result = service.paste_text("   ")

    assert result.success is False
    assert result.clipboard_restored is True


def test_paste_copies_presses_chord_and_restores(monkeypatch) -> None:  # noqa: ANN001
    clipboard = MagicMock()
    clipboard.paste.return_value = "previous"
    keyboard = MagicMock()
    monkeypatch.setattr(auto_paste, "pyperclip", clipboard)
    monkeypatch.setattr(auto_paste, "Controller", MagicMock(return_value=keyboard))
    monkeypatch.setattr(auto_paste, "Key", MagicMock())

    result = ClipboardPasteService(restore_delay_s=0, modifier="cmd").paste_text("hello world")

    assert result.success is True
    assert [c.args[0] for c in clipboard.copy.call_args_list] == ["hello world", "previous"]
    keyboard.pressed.assert_called_once_with("cmd")
    keyboard.press.assert_called_once_with("v")
    keyboard.release.assert_called_once_with("v")


def test_paste_failure_keeps_transcript_in_clipboard(monkeypatch) -> None:  # noqa: ANN001
    clipboard = MagicMock()
    clipboard.paste.return_value = "previous"
    keyboard = MagicMock()
    keyboard.press.side_effect = RuntimeError("no focused window")
    monkeypatch.setattr(auto_paste, "pyperclip", clipboard)
    monkeypatch.setattr(auto_paste, "Controller", MagicMock(return_value=keyboard))
    monkeypatch.setattr(auto_paste, "Key", MagicMock())

    result = ClipboardPasteService(restore_delay_s=0, modifier="cmd").paste_text("hello")

    assert result.success is False
    assert result.reason.startswith("NO_ACTIVE_TARGET")
    assert clipboard.copy.call_args_list[-1].args[0] == "hello"
