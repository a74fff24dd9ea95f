"""Streaming dictation: a reconciled transcript plus session orchestration."""

from __future__ import annotations

import logging
import subprocess
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, Optional, Sequence

from config import EngineSettings
from errors import ERROR_MESSAGES, NO_ACTIVE_TARGET, STOP_TIMEOUT
from interfaces import PasteService, StreamingRecognizer
from models import DictationState, PasteResult, StreamEvent, StreamEventKind
from reconciler import SegmentReconciler, UpdateCallback
from supervisor import ProcessSupervisor
from wake_word import WakeWordListener

logger = logging.getLogger(__name__)

StateCallback = Callable[[DictationState, DictationState], None]
PartialCallback = Callable[[str, bool], None]
ErrorCallback = Callable[[str, str], None]


class DictationStream:
    """One supervised recognizer process feeding one reconciler."""

    def __init__(
        self,
        command: Sequence[str],
        settings: Optional[EngineSettings] = None,
        popen: Callable[..., Any] = subprocess.Popen,
    ) -> None:
        self._settings = settings or EngineSettings()
        self._supervisor = ProcessSupervisor(
            command, settings=self._settings, popen=popen, name="dictation stream"
        )
        self._reconciler = SegmentReconciler(
            reset_ratio=self._settings.reset_ratio,
            reset_min_len=self._settings.reset_min_len,
        )
        self._on_error: Optional[ErrorCallback] = None

    @property
    def supervisor(self) -> ProcessSupervisor:
        return self._supervisor

    @property
    def reconciler(self) -> SegmentReconciler:
        return self._reconciler

    def start(
        self,
        language: Optional[str],
        on_update: UpdateCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._supervisor.kill()
        self._reconciler.reset()
        self._reconciler.set_on_update(on_update)
        self._on_error = on_error
        self._supervisor.start(language, self._handle_event)

    def stop(self) -> Future:
        """Stop gracefully; the future resolves with the final transcript."""
        result: Future = Future()

        def _done(_: Future) -> None:
            result.set_result(self._reconciler.get_result())

        self._supervisor.stop().add_done_callback(_done)
        return result

    def kill(self) -> None:
        """Force-terminate the process, keeping the transcript so far."""
        self._supervisor.kill()

    def kill_and_reset(self) -> None:
        self._supervisor.kill()
        self._reconciler.reset()

    def get_result(self) -> str:
        return self._reconciler.get_result()

    def _handle_event(self, event: StreamEvent) -> None:
        if event.kind == StreamEventKind.ERROR and self._on_error:
            self._on_error(event.code, event.message)
            return
        self._reconciler.handle(event)


class DictationController:
    """Dictation flow: stream, finalize, paste.

    While dictating, an optional wake-word listener is paused so the two
    recognizers never compete for the microphone.
    """

    def __init__(
        self,
        stream: StreamingRecognizer,
        paste_service: PasteService,
        wake_listener: Optional[WakeWordListener] = None,
        finalize_timeout_s: float = 7.0,
        on_state_change: Optional[StateCallback] = None,
        on_partial: Optional[PartialCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._stream = stream
        self._paste_service = paste_service
        self._wake_listener = wake_listener
        self._finalize_timeout_s = finalize_timeout_s
        self._on_state_change = on_state_change
        self._on_partial = on_partial
        self._on_error = on_error

        self._lock = threading.RLock()
        self._state = DictationState.IDLE
        self._last_result = ""

    @property
    def state(self) -> DictationState:
        return self._state

    @property
    def last_result(self) -> str:
        return self._last_result

    def start_session(self, language: Optional[str] = None) -> None:
        with self._lock:
            if self._state != DictationState.IDLE:
                return
            self._last_result = ""
            if self._wake_listener is not None:
                self._wake_listener.pause()
            self._transition(DictationState.STREAMING)
            self._stream.start(language, self._handle_partial, self._handle_stream_error)

    def stop_session(self) -> str:
        """Finish dictation and paste the transcript; returns the transcript."""
        with self._lock:
            if self._state != DictationState.STREAMING:
                return ""
            self._transition(DictationState.FINALIZING)
            pending = self._stream.stop()

        try:
            text = pending.result(timeout=self._finalize_timeout_s)
        except FutureTimeoutError:
            logger.warning("Dictation stream did not finish, using last result")
            self._emit_error(STOP_TIMEOUT, ERROR_MESSAGES[STOP_TIMEOUT])
            text = self._stream.get_result()
            self._stream.kill_and_reset()

        with self._lock:
            if self._state != DictationState.FINALIZING:
                return ""
            text = text.strip()
            self._last_result = text
            if text:
                self._transition(DictationState.PASTING)
                result = self._run_paste(text)
                if not result.success:
                    self._emit_error(NO_ACTIVE_TARGET, result.reason)
            self._transition(DictationState.IDLE)
            self._resume_wake_listener()
            return text

    def cancel_session(self, reason: str) -> None:
        """Discard the recording entirely."""
        with self._lock:
            if self._state == DictationState.IDLE:
                return
            logger.info("Dictation cancelled: %s", reason)
            self._stream.kill_and_reset()
            self._transition(DictationState.IDLE)
            self._resume_wake_listener()

    def _handle_partial(self, text: str, is_final: bool) -> None:
        if self._on_partial:
            self._on_partial(text, is_final)

    def _handle_stream_error(self, code: str, message: str) -> None:
        # Delivered on a supervisor thread, which must not wait for a session
        # held by stop_session or start_session on another thread.
        if not self._lock.acquire(blocking=False):
            threading.Thread(
                target=self._finish_after_error_deferred,
                args=(code, message),
                daemon=True,
            ).start()
            return
        try:
            self._finish_after_error(code, message)
        finally:
            self._lock.release()

    def _finish_after_error_deferred(self, code: str, message: str) -> None:
        with self._lock:
            self._finish_after_error(code, message)

    def _finish_after_error(self, code: str, message: str) -> None:
        if self._state != DictationState.STREAMING:
            logger.warning("Dictation stream error after streaming ended: %s %s", code, message)
            return
        self._transition(DictationState.ERROR)
        self._emit_error(code, message)
        # Keep what was recognized before the failure.
        self._stream.kill()
        text = self._stream.get_result().strip()
        self._last_result = text
        if text:
            self._transition(DictationState.PASTING)
            result = self._run_paste(text)
            if not result.success:
                self._emit_error(NO_ACTIVE_TARGET, result.reason)
        self._transition(DictationState.IDLE)
        self._resume_wake_listener()

    def _run_paste(self, text: str) -> PasteResult:
        try:
            return self._paste_service.paste_text(text)
        except Exception as exc:  # pragma: no cover - defensive
            logger.exception("Paste failed")
            return PasteResult(success=False, reason=str(exc), clipboard_restored=False)

    def _resume_wake_listener(self) -> None:
        if self._wake_listener is not None:
            self._wake_listener.resume()

    def _emit_error(self, code: str, message: str) -> None:
        if self._on_error:
            self._on_error(code, message)

    def _transition(self, to_state: DictationState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        if self._on_state_change:
            self._on_state_change(from_state, to_state)
