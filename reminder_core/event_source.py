"""
Event sources feeding the engine: a JSON file reader and a timer-driven poller.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List

from PySide6.QtCore import QObject, QTimer, Signal

from shared.calendar_event import CalendarEvent
from shared.event_schema import EventValidationError, load_and_validate_events
from reminder_daemon.reminder_daemon import logger as app_logger


class EventSourceError(RuntimeError):
    """Raised when the event list cannot be produced."""


@dataclass
class JsonEventSource:
    """Reads events from a JSON file, either a list or ``{"events": [...]}``."""

    path: Path

    def fetch(self) -> List[CalendarEvent]:
        try:
            normalized = load_and_validate_events(Path(self.path))
        except EventValidationError as exc:
            raise EventSourceError(str(exc)) from exc
        return [CalendarEvent(**item) for item in normalized]


class EventSourcePoller(QObject):
    """
    Periodically fetches the event list and pushes it through ``eventsUpdated``.
    Failed fetches emit ``fetchFailed`` and polling continues.
    """

    eventsUpdated = Signal(list)
    fetchFailed = Signal(str)

    def __init__(self, fetch: Callable[[], List[CalendarEvent]], interval_seconds: int = 120) -> None:
        super().__init__()
        self._fetch = fetch
        self._logger = app_logger.get_logger()
        self._timer = QTimer(self)
        self._timer.setInterval(interval_seconds * 1000)
        self._timer.timeout.connect(self.poll)  # type: ignore[arg-type]
        self._active = False

    def start(self) -> None:
        """Fetch immediately, then keep polling on the interval."""
        if self._active:
            return
        self._active = True
        self._timer.start()
        self.poll()

    def stop(self) -> None:
        if not self._active:
            return
        self._timer.stop()
        self._active = False

    def set_interval(self, interval_seconds: int) -> None:
        interval_ms = max(1, interval_seconds) * 1000
        if self._timer.interval() != interval_ms:
            self._timer.setInterval(interval_ms)

    def poll(self) -> None:
        try:
            events = self._fetch()
        except EventSourceError as exc:
            self._logger.warning("Event fetch failed: {}", exc)
            self.fetchFailed.emit(str(exc))
            return

        self._logger.debug("Fetched {} events", len(events))
        self.eventsUpdated.emit(events)
