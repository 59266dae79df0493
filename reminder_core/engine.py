"""
Reminder engine orchestrating discovery, persistence and delivery.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Callable, FrozenSet, Iterable, List, Optional

from PySide6.QtCore import QObject, QTimer, Signal

from shared.calendar_event import CalendarEvent
from reminder_daemon.reminder_daemon import logger as app_logger

from .delivery_queue import DeliveryQueue
from .notification_key import ActiveNotification, rehydrate_active
from .notification_store import NotificationStore, StoreUnavailableError
from .scanner import ScanResult, scan_due, scan_missed
from .settings import EngineSettings, SettingsManager

SETTINGS_REFRESH_INTERVAL_MS = 15000


class SourceStatus(Enum):
    UNKNOWN = "unknown"
    OK = "ok"
    UNAVAILABLE = "unavailable"


class ReminderEngine(QObject):
    """
    Single actor owning the event list, the session dispatched set, the
    delivery queue and its timers.

    ``on_events_updated``, ``tick`` and ``dismiss_active`` are the only
    mutators; presentation code listens to the signals.
    """

    notificationActivated = Signal(object)
    notificationCleared = Signal(str)
    queueChanged = Signal(int)
    settingsChanged = Signal(object)

    def __init__(
        self,
        store: NotificationStore,
        *,
        settings: Optional[EngineSettings] = None,
        settings_manager: Optional[SettingsManager] = None,
    ) -> None:
        super().__init__()
        self._logger = app_logger.get_logger()
        self.store = store
        self.settings_manager = settings_manager
        self._settings = settings or EngineSettings()

        self._events: List[CalendarEvent] = []
        self._dispatched: set[str] = set()
        self._queue = DeliveryQueue()
        self._clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)

        self._running = False
        self._core_active = False
        self._rehydrated = False
        self._missed_pass_pending = False
        self.source_status = SourceStatus.UNKNOWN

        self._scan_timer = QTimer(self)
        self._scan_timer.setInterval(self._settings.scan_interval_seconds * 1000)
        self._scan_timer.timeout.connect(self.tick)

        self._dismiss_timer = QTimer(self)
        self._dismiss_timer.setSingleShot(True)
        self._dismiss_timer.setInterval(self._settings.auto_dismiss_ms)
        self._dismiss_timer.timeout.connect(self._on_auto_dismiss)

        self._settings_timer = QTimer(self)
        self._settings_timer.setInterval(SETTINGS_REFRESH_INTERVAL_MS)
        self._settings_timer.timeout.connect(self._reload_settings)

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    @property
    def active(self) -> Optional[ActiveNotification]:
        return self._queue.active

    @property
    def waiting(self) -> int:
        return self._queue.waiting

    @property
    def queue(self) -> DeliveryQueue:
        return self._queue

    @property
    def dispatched(self) -> FrozenSet[str]:
        return frozenset(self._dispatched)

    @property
    def events(self) -> List[CalendarEvent]:
        return list(self._events)

    @property
    def is_running(self) -> bool:
        return self._running

    def set_clock(self, provider: Callable[[], datetime]) -> None:
        """
        Override the wall clock. Primarily used for testing.
        """
        self._clock = provider

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._logger.info("Starting reminder engine with store {}", self.store.path)
        initial = self.settings_manager.read_settings() if self.settings_manager else self._settings
        self._apply_settings(initial, initial=True)
        if self.settings_manager is not None:
            self._settings_timer.start()

    def stop(self) -> None:
        if not self._running:
            return
        self._logger.info("Stopping reminder engine.")
        self._running = False
        self._core_active = False
        self._scan_timer.stop()
        self._dismiss_timer.stop()
        self._settings_timer.stop()

    def on_events_updated(self, events: Iterable[CalendarEvent]) -> None:
        """Accept a fresh event list; runs the missed pass, then a due pass."""
        self._events = list(events)
        self.source_status = SourceStatus.OK
        self._missed_pass_pending = True
        self._logger.debug("Received {} events from source", len(self._events))
        if not self._core_active:
            return
        self._run_missed_pass()
        self._scan_timer.start()
        self.tick()

    def on_source_error(self, message: str) -> None:
        self.source_status = SourceStatus.UNAVAILABLE
        self._logger.warning(
            "Event source unavailable ({}); keeping {} known events.",
            message,
            len(self._events),
        )

    def tick(self) -> None:
        """Run the due pass against the current event list."""
        if not self._core_active:
            return
        now = self._clock()
        self._store_call(self.store.auto_cleanup_if_needed, now)
        result = scan_due(
            self._events,
            store=self.store,
            dispatched=self._dispatched,
            is_pending=self._queue.contains,
            now=now,
            marker=self._settings.important_marker,
        )
        self._handle_scan_result(result, "due")

    def dismiss_active(self, notification_id: Optional[str] = None) -> bool:
        """
        Clear the displayed reminder, persisting it as shown and dismissed.

        When ``notification_id`` is given it must match the active reminder.
        """
        active = self._queue.active
        if active is None:
            return False
        if notification_id is not None and notification_id != active.id:
            self._logger.debug("Ignoring dismiss for inactive reminder {}", notification_id)
            return False

        self._store_call(self.store.mark_shown, active.id)
        self._store_call(self.store.mark_dismissed, active.id)
        self._queue.clear_active()
        self._dismiss_timer.stop()
        self._dispatched.add(active.id)
        self._logger.info("Reminder {} dismissed", active.id)
        self.notificationCleared.emit(active.id)
        self._process_next()
        self.queueChanged.emit(self._queue.waiting)
        return True

    def rehydrate(self) -> int:
        """
        Seed the queue with reminders persisted by an earlier session.

        Loaded records are marked shown right away; they stay undismissed
        until the queue actually displays and clears them.
        """
        now = self._clock()
        records = self._store_call(self.store.get_undismissed, now, default=[])
        if not self._running:
            return 0

        added = self._queue.enqueue_front(rehydrate_active(record, now=now) for record in records)
        for record in records:
            self._store_call(self.store.mark_shown, record.id)
            self._dispatched.add(record.id)
        self._logger.info("Rehydrated {} undismissed reminders", added)
        return added

    def _run_missed_pass(self) -> None:
        self._missed_pass_pending = False
        result = scan_missed(
            self._events,
            store=self.store,
            dispatched=self._dispatched,
            now=self._clock(),
            marker=self._settings.important_marker,
        )
        self._handle_scan_result(result, "missed")

    def _handle_scan_result(self, result: ScanResult, pass_name: str) -> None:
        for key, error in result.errors:
            self._logger.error("Store call failed during {} pass for {}: {}", pass_name, key, error)

        if not self._running:
            return

        for notification in result.notifications:
            self._dispatched.add(notification.id)
        added = self._queue.enqueue(result.notifications)
        self._logger.log(
            "INFO" if added else "DEBUG",
            "{} pass: {} reminders queued, {} persisted, {} waiting",
            pass_name.capitalize(),
            added,
            len(result.persisted),
            self._queue.waiting,
        )
        self._process_next()
        if added:
            self.queueChanged.emit(self._queue.waiting)

    def _process_next(self) -> None:
        if not self._core_active:
            return

        if self._queue.active is not None:
            if not self._dismiss_timer.isActive():
                self._dismiss_timer.start()
            return

        notification = self._queue.advance()
        if notification is None:
            self._logger.debug("No pending reminders to display.")
            return

        self._logger.info(
            "Presenting reminder {} for '{}' ({} before start, {} waiting)",
            notification.id,
            notification.event.title,
            notification.tier.label,
            self._queue.waiting,
        )
        self._dismiss_timer.start()
        self.notificationActivated.emit(notification)

    def _on_auto_dismiss(self) -> None:
        active = self._queue.active
        if active is None:
            return
        self._logger.debug("Auto-dismiss timer fired for {}", active.id)
        self.dismiss_active(active.id)

    def _reload_settings(self) -> None:
        if self.settings_manager is None:
            return
        new_settings = self.settings_manager.read_settings()
        if new_settings != self._settings:
            self._logger.info("Detected settings change. Applying updates.")
            self._apply_settings(new_settings)
            self.settingsChanged.emit(new_settings)

    def _apply_settings(self, settings: EngineSettings, *, initial: bool = False) -> None:
        previous = self._settings
        self._settings = settings

        if not settings.enabled:
            if self._core_active or initial:
                self._logger.info("Engine disabled via settings; pausing reminders.")
            self._core_active = False
            self._scan_timer.stop()
            self._dismiss_timer.stop()
            return

        scan_ms = max(1, settings.scan_interval_seconds) * 1000
        if self._scan_timer.interval() != scan_ms:
            self._scan_timer.setInterval(scan_ms)
        if self._dismiss_timer.interval() != settings.auto_dismiss_ms:
            self._dismiss_timer.setInterval(settings.auto_dismiss_ms)

        if not self._core_active:
            self._activate()
        elif previous.scan_interval_seconds != settings.scan_interval_seconds:
            self._logger.info("Scan interval updated to {} seconds.", settings.scan_interval_seconds)

    def _activate(self) -> None:
        self._core_active = True
        if not self._rehydrated:
            self._rehydrated = True
            self.rehydrate()
        if self._missed_pass_pending:
            self._run_missed_pass()
        self._scan_timer.start()
        self.tick()
        self._process_next()
        self.queueChanged.emit(self._queue.waiting)

    def _store_call(self, func, *args, default=None):
        try:
            return func(*args)
        except StoreUnavailableError as exc:
            self._logger.error("Notification store unavailable: {}", exc)
            return default
