"""Wake-word detection on top of a streaming recognizer."""

from __future__ import annotations

import logging
import subprocess
import threading
import time
from typing import Any, Callable, Optional, Sequence

from config import EngineSettings
from models import ListenerState, StreamEvent, StreamEventKind
from supervisor import ProcessSupervisor

logger = logging.getLogger(__name__)

DETECTION_COOLDOWN_S = 3.0


class WakeWordDetector:
    """Substring match of a phrase against partials, with a cooldown."""

    def __init__(
        self,
        phrase: str,
        on_detected: Callable[[], None],
        cooldown_s: float = DETECTION_COOLDOWN_S,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.phrase = phrase.strip().lower()
        self._on_detected = on_detected
        self._cooldown_s = cooldown_s
        self._clock = clock
        self._lock = threading.Lock()
        self.last_detection: Optional[float] = None

    def handle(self, event: StreamEvent) -> None:
        if event.kind == StreamEventKind.PARTIAL and event.partial is not None:
            self.check(event.partial.partial)

    def check(self, text: str) -> bool:
        """Return True when ``text`` triggered a detection."""
        if not self.phrase or self.phrase not in text.lower():
            return False
        with self._lock:
            now = self._clock()
            if self.last_detection is not None and now - self.last_detection < self._cooldown_s:
                logger.debug("Wake word suppressed by cooldown: %s", self.phrase)
                return False
            self.last_detection = now
        logger.info("Wake word detected: %s", self.phrase)
        self._on_detected()
        return True


class WakeWordListener:
    """Background listener that owns its own recognizer process."""

    def __init__(
        self,
        command: Sequence[str],
        settings: Optional[EngineSettings] = None,
        popen: Callable[..., Any] = subprocess.Popen,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings or EngineSettings()
        self._clock = clock
        self._supervisor = ProcessSupervisor(
            command,
            settings=self._settings,
            popen=popen,
            name="wake word listener",
            quiet_task_failures=True,
        )
        self._detector: Optional[WakeWordDetector] = None

    @property
    def supervisor(self) -> ProcessSupervisor:
        return self._supervisor

    @property
    def detector(self) -> Optional[WakeWordDetector]:
        return self._detector

    @property
    def is_active(self) -> bool:
        return self._supervisor.is_listening

    @property
    def state(self) -> ListenerState:
        return self._supervisor.state

    def start(
        self,
        phrase: str,
        on_detected: Callable[[], None],
        language: Optional[str] = None,
    ) -> None:
        self.stop()
        self._detector = WakeWordDetector(
            phrase,
            on_detected,
            cooldown_s=self._settings.wake_cooldown_s,
            clock=self._clock,
        )
        self._supervisor.start(language, self._detector.handle)

    def stop(self) -> None:
        # No graceful shutdown needed for a listener.
        self._supervisor.kill()
        self._detector = None

    def pause(self) -> None:
        self._supervisor.pause()

    def resume(self) -> None:
        self._supervisor.resume()
