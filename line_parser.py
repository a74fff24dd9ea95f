"""Decoding of recognizer output lines.

The recognizer writes one JSON object per line on stdout, e.g.
``{"partial": "hello wor", "isFinal": false, "segmentEnd": false}``, and may
interleave informational lines that are not events. Those are dropped.
"""

from __future__ import annotations

import json
from typing import Optional

from models import PartialEvent


def parse_line(line: str) -> Optional[PartialEvent]:
    line = line.strip()
    if not line:
        return None
    try:
        data = json.loads(line)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    partial = data.get("partial")
    if not isinstance(partial, str):
        return None
    return PartialEvent(
        partial=partial,
        is_final=bool(data.get("isFinal")),
        segment_end=bool(data.get("segmentEnd")),
    )


def is_task_failure(line: str, marker: str) -> bool:
    """True when a stderr line reports that the recognition task died."""
    return bool(marker) and marker in line
