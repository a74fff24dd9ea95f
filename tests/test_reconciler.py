"""Tests for SegmentReconciler.

Reset detection is a length heuristic (a sharp drop in partial length means
the recognizer started a new task), not something the recognizer promises.
"""

from __future__ import annotations

from typing import List, Tuple

from models import PartialEvent, StreamEvent, StreamEventKind
from reconciler import SegmentReconciler


def _partial(text: str, is_final: bool = False, segment_end: bool = False) -> StreamEvent:
    return StreamEvent(
        kind=StreamEventKind.PARTIAL,
        partial=PartialEvent(partial=text, is_final=is_final, segment_end=segment_end),
    )


def _recording() -> Tuple[SegmentReconciler, List[Tuple[str, bool]]]:
    updates: List[Tuple[str, bool]] = []
    reconciler = SegmentReconciler(on_update=lambda text, final: updates.append((text, final)))
    return reconciler, updates


# ---------------------------------------------------------------
# Ordinary growth
# ---------------------------------------------------------------

def test_growing_partials_never_touch_accumulated_text() -> None:
    reconciler, updates = _recording()

    for text in ["he", "hel", "hello", "hello wo", "hello world", "hello world!"]:
        reconciler.handle(_partial(text))
        assert reconciler.accumulated_text == ""
        assert reconciler.current_segment_text == text

    assert reconciler.current_segment_max_len == len("hello world!")
    assert updates[-1] == ("hello world!", False)
    assert reconciler.get_result() == "hello world!"


def test_small_correction_is_not_a_reset() -> None:
    reconciler, _ = _recording()
    reconciler.handle(_partial("I scream"))
    reconciler.handle(_partial("ice cream"))
    reconciler.handle(_partial("ice crea"))

    assert reconciler.accumulated_text == ""
    assert reconciler.current_segment_text == "ice crea"
    assert reconciler.current_segment_max_len == 9


def test_is_final_flag_is_forwarded() -> None:
    reconciler, updates = _recording()
    reconciler.handle(_partial("done", is_final=True))
    assert updates == [("done", True)]


def test_empty_partial_with_empty_state_is_not_forwarded() -> None:
    reconciler, updates = _recording()
    reconciler.handle(_partial(""))
    assert updates == []
    assert reconciler.get_result() == ""


# ---------------------------------------------------------------
# Reset detection
# ---------------------------------------------------------------

def test_reset_boundary_below_threshold_commits() -> None:
    reconciler, _ = _recording()
    reconciler.handle(_partial("abcdefghij"))
    assert reconciler.current_segment_max_len == 10

    reconciler.handle(_partial("klmnopq"))  # 7 < 8

    assert reconciler.accumulated_text == "abcdefghij"
    assert reconciler.current_segment_text == "klmnopq"
    assert reconciler.current_segment_max_len == 7


def test_reset_boundary_at_threshold_does_not_commit() -> None:
    reconciler, _ = _recording()
    reconciler.handle(_partial("abcdefghij"))

    reconciler.handle(_partial("klmnopqr"))  # 8 == 0.8 * 10

    assert reconciler.accumulated_text == ""
    assert reconciler.current_segment_text == "klmnopqr"
    assert reconciler.current_segment_max_len == 10


def test_short_segments_are_never_reset() -> None:
    reconciler, _ = _recording()
    reconciler.handle(_partial("abc"))
    reconciler.handle(_partial("a"))
    assert reconciler.accumulated_text == ""
    assert reconciler.current_segment_text == "a"


def test_reset_detection_scenario() -> None:
    reconciler, updates = _recording()
    reconciler.handle(_partial("he"))
    reconciler.handle(_partial("hello"))
    reconciler.handle(_partial("hi"))  # max 5, 2 < 4

    assert reconciler.accumulated_text == "hello"
    assert reconciler.current_segment_text == "hi"
    assert reconciler.display_text == "hello hi"
    assert updates[-1] == ("hello hi", False)
    assert reconciler.get_result() == "hello hi"


def test_reset_ratio_is_tunable() -> None:
    reconciler = SegmentReconciler(reset_ratio=0.5)
    reconciler.handle(_partial("abcdefghij"))
    reconciler.handle(_partial("klmnopq"))
    assert reconciler.accumulated_text == ""


# ---------------------------------------------------------------
# Explicit segment end
# ---------------------------------------------------------------

def test_segment_end_commits_event_text() -> None:
    reconciler, updates = _recording()
    reconciler.handle(_partial("first part"))
    reconciler.handle(_partial("first part.", is_final=True, segment_end=True))

    assert reconciler.accumulated_text == "first part."
    assert reconciler.current_segment_text == ""
    assert reconciler.current_segment_max_len == 0
    assert updates[-1] == ("first part.", True)


def test_segment_end_with_empty_partial_commits_current_segment() -> None:
    reconciler, updates = _recording()
    reconciler.handle(_partial("kept words"))
    reconciler.handle(_partial("", segment_end=True))

    assert reconciler.accumulated_text == "kept words"
    assert updates[-1] == ("kept words", False)


def test_segment_end_takes_priority_over_reset_detection() -> None:
    reconciler, _ = _recording()
    reconciler.handle(_partial("a much longer segment"))
    reconciler.handle(_partial("tiny", segment_end=True))

    assert reconciler.accumulated_text == "tiny"
    assert reconciler.current_segment_text == ""


# ---------------------------------------------------------------
# Commit
# ---------------------------------------------------------------

def test_commit_separator() -> None:
    reconciler = SegmentReconciler()
    reconciler.commit("hello")
    reconciler.commit("world")
    assert reconciler.accumulated_text == "hello world"
    assert reconciler.get_result() == "hello world"


def test_commit_empty_is_idempotent() -> None:
    reconciler = SegmentReconciler()
    reconciler.commit("")
    assert reconciler.accumulated_text == ""
    reconciler.commit("hello")
    reconciler.commit("")
    reconciler.commit("")
    assert reconciler.accumulated_text == "hello"


def test_commit_resets_segment_tracking() -> None:
    reconciler = SegmentReconciler()
    reconciler.handle(_partial("some text"))
    reconciler.commit(reconciler.current_segment_text)
    assert reconciler.current_segment_text == ""
    assert reconciler.current_segment_max_len == 0
    assert reconciler.last_final_text == reconciler.display_text == "some text"


# ---------------------------------------------------------------
# Task failure and restarts
# ---------------------------------------------------------------

def test_task_failure_commits_in_flight_text_silently() -> None:
    reconciler, updates = _recording()
    reconciler.handle(_partial("partial words"))
    updates.clear()

    reconciler.handle(StreamEvent(kind=StreamEventKind.TASK_FAILED, line="Stream task error: x"))

    assert reconciler.accumulated_text == "partial words"
    assert reconciler.current_segment_text == ""
    assert updates == []


def test_task_failure_then_new_task_continues_transcript() -> None:
    reconciler, _ = _recording()
    reconciler.handle(_partial("first"))
    reconciler.handle(StreamEvent(kind=StreamEventKind.TASK_FAILED))
    reconciler.handle(_partial("second"))
    assert reconciler.display_text == "first second"


def test_task_failure_without_segment_is_noop() -> None:
    reconciler = SegmentReconciler()
    reconciler.commit("done")
    reconciler.handle(StreamEvent(kind=StreamEventKind.TASK_FAILED))
    assert reconciler.accumulated_text == "done"


def test_process_restart_commits_segment() -> None:
    reconciler, _ = _recording()
    reconciler.handle(_partial("before restart"))
    reconciler.handle(StreamEvent(kind=StreamEventKind.RESTART))
    reconciler.handle(_partial("after"))
    assert reconciler.accumulated_text == "before restart"
    assert reconciler.display_text == "before restart after"


def test_exit_and_error_events_are_ignored() -> None:
    reconciler = SegmentReconciler()
    reconciler.handle(_partial("text"))
    reconciler.handle(StreamEvent(kind=StreamEventKind.EXIT, returncode=0))
    reconciler.handle(StreamEvent(kind=StreamEventKind.ERROR, code="SPAWN_FAILED"))
    assert reconciler.current_segment_text == "text"


def test_reset_clears_everything_without_commit() -> None:
    reconciler = SegmentReconciler()
    reconciler.commit("old")
    reconciler.handle(_partial("in flight"))
    reconciler.reset()

    assert reconciler.accumulated_text == ""
    assert reconciler.current_segment_text == ""
    assert reconciler.current_segment_max_len == 0
    assert reconciler.get_result() == ""
