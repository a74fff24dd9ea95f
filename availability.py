"""Recognizer availability and permission check."""

from __future__ import annotations

import json
import logging
import subprocess
from typing import Any, Callable, Optional, Sequence

from errors import RECOGNIZER_FAILED, SPAWN_FAILED, error_for_exit_code
from locales import resolve_locale
from models import Availability

logger = logging.getLogger(__name__)


def check_availability(
    command: Sequence[str],
    language: Optional[str] = None,
    timeout_s: float = 15.0,
    run: Callable[..., Any] = subprocess.run,
) -> Availability:
    """Run ``<command> --check`` and parse its one-line JSON report."""
    args = list(command) + ["--check"]
    locale = resolve_locale(language)
    if locale:
        args.extend(["--language", locale])

    try:
        completed = run(args, capture_output=True, text=True, timeout=timeout_s)
    except OSError as exc:
        logger.error("Recognizer check could not start: %s", exc)
        return Availability(available=False, permission_granted=False, error_code=SPAWN_FAILED)
    except subprocess.TimeoutExpired:
        logger.error("Recognizer check timed out after %.1fs", timeout_s)
        return Availability(available=False, permission_granted=False, error_code=RECOGNIZER_FAILED)

    if completed.returncode != 0:
        logger.warning(
            "Recognizer check failed with code %s: %s",
            completed.returncode,
            (completed.stderr or "").strip(),
        )
        return Availability(
            available=False,
            permission_granted=False,
            error_code=error_for_exit_code(completed.returncode),
        )

    try:
        data = json.loads((completed.stdout or "").strip())
    except ValueError:
        logger.warning("Recognizer check parse error: %s", completed.stdout)
        return Availability(available=False, permission_granted=False, error_code=RECOGNIZER_FAILED)
    if not isinstance(data, dict):
        return Availability(available=False, permission_granted=False, error_code=RECOGNIZER_FAILED)

    supports = data.get("supportsOnDevice")
    return Availability(
        available=bool(data.get("available", False)),
        permission_granted=bool(data.get("permissionGranted", False)),
        supports_on_device=None if supports is None else bool(supports),
    )
