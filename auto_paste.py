"""Delivery of the final transcript into the focused application."""

from __future__ import annotations

import logging
import sys
import time
from typing import Any, Optional

from errors import NO_ACTIVE_TARGET
from models import PasteResult

logger = logging.getLogger(__name__)

try:
    import pyperclip
except Exception:  # pragma: no cover
    pyperclip = None  # type: ignore

try:
    from pynput.keyboard import Controller, Key
except Exception:  # pragma: no cover
    Controller = None  # type: ignore
    Key = None  # type: ignore


class ClipboardPasteService:
    def __init__(self, restore_delay_s: float = 0.1, modifier: Optional[Any] = None) -> None:
        self._restore_delay_s = restore_delay_s
        self._modifier = modifier

    def paste_text(self, text: str) -> PasteResult:
        if not text.strip():
            return PasteResult(success=False, reason="empty text", clipboard_restored=True)
        if pyperclip is None or Controller is None or Key is None:
            return PasteResult(
                success=False,
                reason="clipboard/keyboard dependency missing",
                clipboard_restored=False,
            )

        previous: str | None = None
        try:
            previous = pyperclip.paste()
            pyperclip.copy(text)
            self._press_paste_chord(Controller())
            time.sleep(self._restore_delay_s)
            pyperclip.copy(previous)
            return PasteResult(success=True, reason="ok", clipboard_restored=True)
        except Exception as exc:
            logger.warning("Paste failed, transcript left in clipboard: %s", exc)
            return PasteResult(
                success=False,
                reason=f"{NO_ACTIVE_TARGET}: {exc}",
                clipboard_restored=False,
            )

    def _press_paste_chord(self, keyboard: Any) -> None:
        modifier = self._modifier or _default_modifier()
        with keyboard.pressed(modifier):
            keyboard.press("v")
            keyboard.release("v")


def _default_modifier() -> Any:
    return Key.cmd if sys.platform == "darwin" else Key.ctrl
