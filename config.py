"""Engine settings and a simple JSON-based config store."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class EngineSettings:
    executable: str = "apple-stt"
    # The recognizer ends its own session after roughly 60s.
    restart_interval_s: float = 55.0
    crash_restart_delay_s: float = 2.0
    stop_timeout_s: float = 5.0
    wake_cooldown_s: float = 3.0
    reset_ratio: float = 0.8
    reset_min_len: int = 3
    task_failure_marker: str = "Stream task error:"
    check_timeout_s: float = 15.0


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "toolify" / "stt_stream.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def load(self) -> EngineSettings:
        data = self._read_all()
        defaults = EngineSettings()
        values = {}
        for field in fields(EngineSettings):
            default = getattr(defaults, field.name)
            raw = data.get(field.name, default)
            values[field.name] = _coerce(raw, default, field.name)
        return EngineSettings(**values)

    def save(self, settings: EngineSettings) -> None:
        self._write_all(asdict(settings))

    def get_executable(self) -> str:
        return self.load().executable

    def set_executable(self, executable: str) -> None:
        data = self._read_all()
        data["executable"] = executable
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            logger.warning("Ignoring unreadable config at %s", self._path)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


def _coerce(raw: object, default: object, name: str) -> object:
    if isinstance(default, bool) or isinstance(raw, bool):
        return raw if type(raw) is type(default) else default
    if isinstance(default, float) and isinstance(raw, (int, float)):
        return float(raw)
    if isinstance(raw, type(default)):
        return raw
    logger.warning("Config value %s=%r has the wrong type, using %r", name, raw, default)
    return default
