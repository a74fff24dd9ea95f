"""Core data models for the streaming recognition engine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class StreamEventKind(str, Enum):
    PARTIAL = "partial"
    TASK_FAILED = "task_failed"
    RESTART = "restart"
    EXIT = "exit"
    ERROR = "error"


class ListenerState(str, Enum):
    STOPPED = "STOPPED"
    LISTENING = "LISTENING"
    PAUSED = "PAUSED"


class DictationState(str, Enum):
    IDLE = "IDLE"
    STREAMING = "STREAMING"
    FINALIZING = "FINALIZING"
    PASTING = "PASTING"
    ERROR = "ERROR"


@dataclass
class PartialEvent:
    partial: str
    is_final: bool = False
    segment_end: bool = False


@dataclass
class StreamEvent:
    """A message on a supervisor's event channel."""

    kind: StreamEventKind
    partial: Optional[PartialEvent] = None
    line: str = ""
    returncode: Optional[int] = None
    code: str = ""
    message: str = ""


@dataclass
class Availability:
    available: bool
    permission_granted: bool
    supports_on_device: Optional[bool] = None
    error_code: str = ""


@dataclass
class PasteResult:
    success: bool
    reason: str
    clipboard_restored: bool
