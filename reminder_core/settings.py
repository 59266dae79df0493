"""
File-backed configuration for the reminder engine runtime.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from reminder_daemon.reminder_daemon import logger as app_logger
from reminder_daemon.reminder_daemon.logger import ENGINE_HOME

from .timing import IMPORTANT_MARKER

_LOGGER = app_logger.get_logger()

DEFAULT_SETTINGS_PATH = Path(os.environ.get("REMINDER_ENGINE_SETTINGS", str(ENGINE_HOME / "settings.json")))
DEFAULT_SCAN_INTERVAL_SECONDS = 60
DEFAULT_AUTO_DISMISS_MS = 10_000
DEFAULT_EVENT_REFRESH_SECONDS = 120

_SCAN_INTERVAL_BOUNDS = (10, 3600)
_AUTO_DISMISS_BOUNDS = (1_000, 600_000)
_EVENT_REFRESH_BOUNDS = (30, 86_400)


@dataclass(eq=True)
class EngineSettings:
    enabled: bool = True
    scan_interval_seconds: int = DEFAULT_SCAN_INTERVAL_SECONDS
    auto_dismiss_ms: int = DEFAULT_AUTO_DISMISS_MS
    event_refresh_seconds: int = DEFAULT_EVENT_REFRESH_SECONDS
    important_marker: str = IMPORTANT_MARKER
    store_path: Path = field(default_factory=lambda: ENGINE_HOME / "notifications.json")
    events_path: Path = field(default_factory=lambda: ENGINE_HOME / "events.json")


class SettingsManager:
    """Loads persisted settings from JSON and clamps invalid data."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = Path(path) if path is not None else DEFAULT_SETTINGS_PATH

    def read_settings(self) -> EngineSettings:
        raw = self._read_raw()
        if raw is None:
            return EngineSettings()

        defaults = EngineSettings()
        return EngineSettings(
            enabled=self._read_bool(raw, "enabled", defaults.enabled),
            scan_interval_seconds=self._read_int(
                raw, "scan_interval_seconds", defaults.scan_interval_seconds, _SCAN_INTERVAL_BOUNDS
            ),
            auto_dismiss_ms=self._read_int(raw, "auto_dismiss_ms", defaults.auto_dismiss_ms, _AUTO_DISMISS_BOUNDS),
            event_refresh_seconds=self._read_int(
                raw, "event_refresh_seconds", defaults.event_refresh_seconds, _EVENT_REFRESH_BOUNDS
            ),
            important_marker=self._read_str(raw, "important_marker", defaults.important_marker),
            store_path=self._read_path(raw, "store_path", defaults.store_path),
            events_path=self._read_path(raw, "events_path", defaults.events_path),
        )

    def _read_raw(self) -> Optional[Dict[str, Any]]:
        try:
            contents = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            _LOGGER.warning("Unable to read settings file {}: {}", self.path, exc)
            return None

        try:
            raw = json.loads(contents)
        except json.JSONDecodeError as exc:
            _LOGGER.warning("Settings file {} is not valid JSON: {}", self.path, exc)
            return None
        if not isinstance(raw, dict):
            _LOGGER.warning("Settings file {} must contain a JSON object.", self.path)
            return None
        return raw

    def _read_bool(self, raw: Dict[str, Any], name: str, default: bool) -> bool:
        value = raw.get(name)
        if value is None:
            return default
        if not isinstance(value, bool):
            _LOGGER.warning("Setting {} has unexpected type {}.", name, type(value).__name__)
            return default
        return value

    def _read_int(self, raw: Dict[str, Any], name: str, default: int, bounds: tuple) -> int:
        value = raw.get(name)
        if value is None:
            return default
        if isinstance(value, bool) or not isinstance(value, int):
            _LOGGER.warning("Setting {} has unexpected type {}.", name, type(value).__name__)
            return default
        low, high = bounds
        if value < low or value > high:
            _LOGGER.warning("Invalid {} {} found in settings. Clamping to safe bounds.", name, value)
        return max(low, min(high, value))

    def _read_str(self, raw: Dict[str, Any], name: str, default: str) -> str:
        value = raw.get(name)
        if isinstance(value, str) and value.strip():
            return value.strip()
        if value is not None:
            _LOGGER.warning("Setting {} must be a non-empty string.", name)
        return default

    def _read_path(self, raw: Dict[str, Any], name: str, default: Path) -> Path:
        value = self._read_str(raw, name, "")
        return Path(value).expanduser() if value else default
