"""Lifecycle supervision of a streaming recognizer process.

A ``ProcessSupervisor`` keeps one recognizer process alive while a caller is
listening. The recognizer ends its own session after about a minute, so the
supervisor replaces the process on a fixed schedule before that happens, and
respawns it after a short delay when it dies unexpectedly.

Everything the process produces is published on an event channel: partial
results from stdout, task failures spotted on stderr, restarts, exits and
spawn errors. Events are queued under the state lock and delivered after it
is released, in emission order and one at a time, so subscribers never run
while the supervisor state is locked. A subscriber may call back into the
supervisor (for example ``pause`` or ``kill``) but must not block on
``stop()``'s future.
"""

from __future__ import annotations

import logging
import subprocess
import threading
from collections import deque
from concurrent.futures import Future
from typing import Any, Callable, Deque, List, Optional, Sequence, Tuple

from config import EngineSettings
from errors import ERROR_MESSAGES, SPAWN_FAILED
from interfaces import EventCallback
from line_parser import is_task_failure, parse_line
from locales import build_stream_args
from models import ListenerState, StreamEvent, StreamEventKind

logger = logging.getLogger(__name__)

_READER_JOIN_TIMEOUT_S = 1.0


class ProcessSupervisor:
    def __init__(
        self,
        command: Sequence[str],
        settings: Optional[EngineSettings] = None,
        popen: Callable[..., Any] = subprocess.Popen,
        name: str = "stt stream",
        quiet_task_failures: bool = False,
    ) -> None:
        self._command = list(command)
        self._settings = settings or EngineSettings()
        self._popen = popen
        self._name = name
        self._task_failure_level = logging.DEBUG if quiet_task_failures else logging.INFO

        # Guards all state below.
        self._lock = threading.RLock()
        # Serializes delivery; always taken before _lock, never while holding it.
        self._delivery_lock = threading.RLock()
        self._outbox: Deque[Tuple[StreamEvent, Tuple[EventCallback, ...]]] = deque()
        self._subscribers: List[EventCallback] = []
        self._session_callback: Optional[EventCallback] = None
        self._process: Any = None
        self._stdout_thread: Optional[threading.Thread] = None
        self._generation = 0
        self._restart_timer: Optional[threading.Timer] = None
        self._timer_token = 0
        self._listening = False
        self._paused = False
        self._language: Optional[str] = None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def language(self) -> Optional[str]:
        return self._language

    @property
    def is_listening(self) -> bool:
        return self._listening

    @property
    def is_running(self) -> bool:
        process = self._process
        return process is not None and process.poll() is None

    @property
    def state(self) -> ListenerState:
        if not self._listening:
            return ListenerState.STOPPED
        if self._paused:
            return ListenerState.PAUSED
        return ListenerState.LISTENING

    # ------------------------------------------------------------------
    # Event channel
    # ------------------------------------------------------------------

    def subscribe(self, callback: EventCallback) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, language: Optional[str], on_event: Optional[EventCallback] = None) -> None:
        """Replace any running session with a fresh one for ``language``."""
        with self._lock:
            self._teardown_locked()
            self._language = language
            self._session_callback = on_event
            self._listening = True
            self._paused = False
            self._spawn_locked()
        self._deliver()

    def stop(self) -> Future:
        """Ask the process to finish, force-killing it after the stop timeout.

        The returned future resolves once the process is gone and its
        remaining output has been published.
        """
        future: Future = Future()
        with self._lock:
            self._listening = False
            self._paused = False
            self._cancel_timer_locked()
            process = self._process
            if process is None:
                self._process = None
                self._generation += 1
                self._session_callback = None
                future.set_result(None)
                return future
            generation = self._generation
            reader = self._stdout_thread
            try:
                if process.stdin is not None:
                    process.stdin.write("\n")
                    process.stdin.flush()
                    process.stdin.close()
            except (OSError, ValueError) as exc:
                logger.debug("%s stdin already closed: %s", self._name, exc)

        threading.Thread(
            target=self._await_exit,
            args=(process, generation, reader, future),
            daemon=True,
        ).start()
        return future

    def kill(self) -> None:
        """Force-terminate the process now and forget the session."""
        with self._lock:
            self._teardown_locked()

    def pause(self) -> None:
        """Kill the process but keep language and callback for ``resume``."""
        with self._lock:
            if not self._listening or self._paused:
                return
            self._paused = True
            self._cancel_timer_locked()
            self._kill_process_locked()
            logger.info("%s paused", self._name)

    def resume(self) -> None:
        with self._lock:
            if not self._listening or not self._paused:
                return
            self._paused = False
            logger.info("%s resumed", self._name)
            self._spawn_locked()
        self._deliver()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _teardown_locked(self) -> None:
        self._listening = False
        self._paused = False
        self._session_callback = None
        self._cancel_timer_locked()
        self._kill_process_locked()

    def _spawn_locked(self) -> None:
        args = self._command + build_stream_args(self._language)
        logger.info("Starting %s: %s", self._name, " ".join(args))
        self._generation += 1
        generation = self._generation
        try:
            process = self._popen(
                args,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except (OSError, ValueError) as exc:
            logger.error("Failed to spawn %s: %s", self._name, exc)
            self._process = None
            self._enqueue_locked(
                StreamEvent(
                    kind=StreamEventKind.ERROR,
                    code=SPAWN_FAILED,
                    message=f"{ERROR_MESSAGES[SPAWN_FAILED]} {exc}",
                ),
                generation,
            )
            return

        self._process = process
        self._stdout_thread = threading.Thread(
            target=self._read_stdout, args=(process, generation), daemon=True
        )
        self._stdout_thread.start()
        threading.Thread(
            target=self._read_stderr, args=(process, generation), daemon=True
        ).start()
        self._schedule_restart_locked(self._settings.restart_interval_s)

    def _kill_process_locked(self) -> None:
        # Bumping the generation silences the old process's readers.
        self._generation += 1
        self._outbox.clear()
        process = self._process
        self._process = None
        if process is None:
            return
        self._force_kill(process)

    def _force_kill(self, process: Any) -> None:
        if process.poll() is not None:
            return
        try:
            process.kill()
        except OSError as exc:
            logger.debug("%s already gone: %s", self._name, exc)

    def _schedule_restart_locked(self, delay_s: float) -> None:
        self._cancel_timer_locked()
        if not self._listening or self._paused:
            return
        token = self._timer_token
        timer = threading.Timer(delay_s, self._on_restart_timer, args=(token,))
        timer.daemon = True
        self._restart_timer = timer
        timer.start()

    def _cancel_timer_locked(self) -> None:
        # A timer that already fired sees a stale token and does nothing.
        self._timer_token += 1
        if self._restart_timer is not None:
            self._restart_timer.cancel()
            self._restart_timer = None

    def _on_restart_timer(self, token: int) -> None:
        with self._lock:
            if token != self._timer_token or not self._listening or self._paused:
                return
            self._restart_timer = None
            logger.info("Restarting %s", self._name)
            self._kill_process_locked()
            self._enqueue_locked(StreamEvent(kind=StreamEventKind.RESTART), self._generation)
            self._spawn_locked()
        self._deliver()

    def _read_stdout(self, process: Any, generation: int) -> None:
        try:
            for line in process.stdout:
                event = parse_line(line)
                if event is None:
                    logger.debug("%s ignored line: %s", self._name, line.rstrip())
                    continue
                self._publish(
                    StreamEvent(kind=StreamEventKind.PARTIAL, partial=event, line=line.rstrip("\n")),
                    generation,
                )
        except (OSError, ValueError) as exc:
            logger.warning("%s stdout reader failed: %s", self._name, exc)

        try:
            returncode = process.wait(timeout=self._settings.stop_timeout_s)
        except subprocess.TimeoutExpired:
            returncode = None
        self._on_process_exit(process, generation, returncode)

    def _read_stderr(self, process: Any, generation: int) -> None:
        marker = self._settings.task_failure_marker
        try:
            for line in process.stderr:
                message = line.strip()
                if not message:
                    continue
                if is_task_failure(message, marker):
                    logger.log(self._task_failure_level, "%s task failed: %s", self._name, message)
                    self._publish(
                        StreamEvent(kind=StreamEventKind.TASK_FAILED, line=message),
                        generation,
                    )
                else:
                    logger.debug("%s stderr: %s", self._name, message)
        except (OSError, ValueError) as exc:
            logger.debug("%s stderr reader stopped: %s", self._name, exc)

    def _on_process_exit(self, process: Any, generation: int, returncode: Optional[int]) -> None:
        with self._lock:
            self._handle_exit_locked(process, generation, returncode)
        self._deliver()

    def _handle_exit_locked(self, process: Any, generation: int, returncode: Optional[int]) -> None:
        if generation != self._generation:
            return
        logger.info("%s exited with code %s", self._name, returncode)
        self._enqueue_locked(StreamEvent(kind=StreamEventKind.EXIT, returncode=returncode), generation)
        if not self._listening or self._process is not process:
            return
        self._process = None
        self._generation += 1
        # stdout may close before the process is gone.
        self._force_kill(process)
        logger.warning(
            "%s exited unexpectedly, respawning in %.1fs",
            self._name,
            self._settings.crash_restart_delay_s,
        )
        self._schedule_restart_locked(self._settings.crash_restart_delay_s)

    def _await_exit(
        self,
        process: Any,
        generation: int,
        reader: Optional[threading.Thread],
        future: Future,
    ) -> None:
        try:
            process.wait(timeout=self._settings.stop_timeout_s)
        except subprocess.TimeoutExpired:
            logger.warning(
                "%s did not exit within %.1fs, killing",
                self._name,
                self._settings.stop_timeout_s,
            )
            self._force_kill(process)
        if reader is not None:
            reader.join(timeout=_READER_JOIN_TIMEOUT_S)
        with self._lock:
            if self._generation == generation:
                self._generation += 1
                self._process = None
                self._session_callback = None
        future.set_result(None)

    def _publish(self, event: StreamEvent, generation: int) -> None:
        with self._lock:
            self._enqueue_locked(event, generation)
        self._deliver()

    def _enqueue_locked(self, event: StreamEvent, generation: int) -> None:
        if generation != self._generation:
            return
        callbacks = list(self._subscribers)
        if self._session_callback is not None:
            callbacks.append(self._session_callback)
        self._outbox.append((event, tuple(callbacks)))

    def _deliver(self) -> None:
        with self._delivery_lock:
            while True:
                with self._lock:
                    if not self._outbox:
                        return
                    event, callbacks = self._outbox.popleft()
                for callback in callbacks:
                    try:
                        callback(event)
                    except Exception:
                        logger.exception("%s event subscriber failed", self._name)
