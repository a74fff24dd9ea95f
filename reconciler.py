"""Reconstruction of one stable transcript from unreliable partial results.

The recognizer reports the text of its current recognition task as a series
of growing partials. It may silently drop that task and start a new one, in
which case the next partial is suddenly much shorter. The reconciler detects
those boundaries, commits the finished segment into ``accumulated_text`` and
keeps tracking the new one, so the caller always sees
``accumulated_text + " " + current_segment_text``.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from models import PartialEvent, StreamEvent, StreamEventKind

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[str, bool], None]

# Heuristic, not a recognizer guarantee: corrections inside one task shrink
# the text only slightly, a new task starts from scratch.
DEFAULT_RESET_RATIO = 0.8
DEFAULT_RESET_MIN_LEN = 3


class SegmentReconciler:
    def __init__(
        self,
        on_update: Optional[UpdateCallback] = None,
        reset_ratio: float = DEFAULT_RESET_RATIO,
        reset_min_len: int = DEFAULT_RESET_MIN_LEN,
    ) -> None:
        self._on_update = on_update
        self._reset_ratio = reset_ratio
        self._reset_min_len = reset_min_len
        self._lock = threading.RLock()

        self.accumulated_text = ""
        self.current_segment_text = ""
        self.current_segment_max_len = 0
        self.last_final_text = ""

    @property
    def display_text(self) -> str:
        with self._lock:
            if self.current_segment_text:
                if self.accumulated_text:
                    return f"{self.accumulated_text} {self.current_segment_text}"
                return self.current_segment_text
            return self.accumulated_text

    def set_on_update(self, on_update: Optional[UpdateCallback]) -> None:
        self._on_update = on_update

    def handle(self, event: StreamEvent) -> None:
        """Consume one message from a supervisor's event channel."""
        if event.kind == StreamEventKind.PARTIAL and event.partial is not None:
            self.apply(event.partial)
        elif event.kind == StreamEventKind.TASK_FAILED:
            self.commit_task_failure()
        elif event.kind == StreamEventKind.RESTART:
            # The replacement process starts a new recognition task.
            self.commit_task_failure()

    def apply(self, event: PartialEvent) -> None:
        with self._lock:
            partial = event.partial
            logger.debug(
                'partial="%s" segEnd=%s isFinal=%s accumulated="%s" curSeg="%s" maxLen=%d',
                partial[:60],
                event.segment_end,
                event.is_final,
                self.accumulated_text[:40],
                self.current_segment_text[:40],
                self.current_segment_max_len,
            )

            if event.segment_end:
                self.commit(partial or self.current_segment_text)
                self._notify(self.display_text, event.is_final)
                return

            if self._is_reset(len(partial)):
                logger.info(
                    "Reset detected: new len=%d vs max=%d, committing segment",
                    len(partial),
                    self.current_segment_max_len,
                )
                self.commit(self.current_segment_text)

            self.current_segment_text = partial
            self.current_segment_max_len = max(self.current_segment_max_len, len(partial))

            display = self.display_text
            if display:
                self.last_final_text = display
                self._notify(display, event.is_final)

    def commit(self, text: str) -> None:
        with self._lock:
            if text:
                if self.accumulated_text:
                    self.accumulated_text = f"{self.accumulated_text} {text}"
                else:
                    self.accumulated_text = text
            self.current_segment_text = ""
            self.current_segment_max_len = 0
            self.last_final_text = self.accumulated_text
            logger.debug('Committed segment, accumulated="%s"', self.accumulated_text[:80])

    def commit_task_failure(self) -> None:
        """Preserve in-flight text after the recognition task died.

        The caller is not notified; this is a recovery path, not an
        utterance boundary.
        """
        with self._lock:
            if not self.current_segment_text:
                return
            self.commit(self.current_segment_text)

    def get_result(self) -> str:
        with self._lock:
            return self.last_final_text

    def reset(self) -> None:
        with self._lock:
            self.accumulated_text = ""
            self.current_segment_text = ""
            self.current_segment_max_len = 0
            self.last_final_text = ""

    def _is_reset(self, new_len: int) -> bool:
        max_len = self.current_segment_max_len
        return (
            max_len > self._reset_min_len
            and new_len > 0
            and new_len < max_len * self._reset_ratio
        )

    def _notify(self, display: str, is_final: bool) -> None:
        if self._on_update is not None:
            self._on_update(display, is_final)
