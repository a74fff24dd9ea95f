"""Protocol interfaces used by the dictation flow."""

from __future__ import annotations

from concurrent.futures import Future
from typing import Callable, Optional, Protocol

from models import PasteResult, StreamEvent

EventCallback = Callable[[StreamEvent], None]


class StreamingRecognizer(Protocol):
    def start(
        self,
        language: Optional[str],
        on_update: Callable[[str, bool], None],
        on_error: Optional[Callable[[str, str], None]] = None,
    ) -> None: ...

    def stop(self) -> Future: ...

    def kill(self) -> None: ...

    def kill_and_reset(self) -> None: ...

    def get_result(self) -> str: ...


class PasteService(Protocol):
    def paste_text(self, text: str) -> PasteResult: ...
