"""Shared error codes and user-facing messages."""

from __future__ import annotations

from typing import Optional

SPAWN_FAILED = "SPAWN_FAILED"
PERMISSION_DENIED = "PERMISSION_DENIED"
RECOGNIZER_UNAVAILABLE = "RECOGNIZER_UNAVAILABLE"
AUDIO_NOT_FOUND = "AUDIO_NOT_FOUND"
RECOGNIZER_FAILED = "RECOGNIZER_FAILED"
STOP_TIMEOUT = "STOP_TIMEOUT"
NO_ACTIVE_TARGET = "NO_ACTIVE_TARGET"

ERROR_MESSAGES = {
    SPAWN_FAILED: "Speech recognizer could not be started.",
    PERMISSION_DENIED: "Speech recognition permission is required in macOS settings.",
    RECOGNIZER_UNAVAILABLE: "Speech recognition is unavailable for this language.",
    AUDIO_NOT_FOUND: "Input audio was not found.",
    RECOGNIZER_FAILED: "Speech recognizer failed.",
    STOP_TIMEOUT: "Speech recognizer did not stop in time.",
    NO_ACTIVE_TARGET: "No active input target, result kept in clipboard.",
}

# Exit codes of single-shot recognizer invocations.
EXIT_PERMISSION_DENIED = 2
EXIT_RECOGNIZER_UNAVAILABLE = 3
EXIT_FILE_NOT_FOUND = 4

_EXIT_CODE_ERRORS = {
    EXIT_PERMISSION_DENIED: PERMISSION_DENIED,
    EXIT_RECOGNIZER_UNAVAILABLE: RECOGNIZER_UNAVAILABLE,
    EXIT_FILE_NOT_FOUND: AUDIO_NOT_FOUND,
}


def error_for_exit_code(code: Optional[int]) -> str:
    """Map a recognizer exit code to an error code, or "" on success."""
    if code == 0:
        return ""
    return _EXIT_CODE_ERRORS.get(code, RECOGNIZER_FAILED)  # type: ignore[arg-type]
