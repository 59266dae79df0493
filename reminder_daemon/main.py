"""
Entry point for the reminder daemon.
"""

from __future__ import annotations

import argparse
import signal
import sys
import time
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from PySide6.QtCore import QCoreApplication, QLockFile, QTimer

from reminder_core.engine import ReminderEngine
from reminder_core.event_source import EventSourcePoller, JsonEventSource
from reminder_core.notification_key import ActiveNotification
from reminder_core.notification_store import NotificationStore
from reminder_core.settings import EngineSettings, SettingsManager
from reminder_daemon.reminder_daemon import logger as app_logger
from reminder_daemon.reminder_daemon.logger import ENGINE_HOME

_LOGGER = app_logger.get_logger()
_LOCK_PATH = ENGINE_HOME / "engine.lock"


class DaemonCoordinator:
    """Wires the event poller, the engine and a log-based presenter together."""

    def __init__(self, settings_manager: SettingsManager, events_path: Optional[Path] = None) -> None:
        settings = settings_manager.read_settings()
        self._manual_shutdown_requested = False
        self.store = NotificationStore(settings.store_path)
        self.engine = ReminderEngine(self.store, settings=settings, settings_manager=settings_manager)
        self.source = JsonEventSource(events_path or settings.events_path)
        self.poller = EventSourcePoller(self.source.fetch, interval_seconds=settings.event_refresh_seconds)

        self.poller.eventsUpdated.connect(self.engine.on_events_updated)
        self.poller.fetchFailed.connect(self.engine.on_source_error)
        self.engine.notificationActivated.connect(self._present)
        self.engine.notificationCleared.connect(self._on_cleared)
        self.engine.settingsChanged.connect(self._on_settings_changed)

    @property
    def manual_shutdown_requested(self) -> bool:
        return self._manual_shutdown_requested

    def start(self) -> None:
        self.engine.start()
        self.poller.start()

    def shutdown(self) -> None:
        _LOGGER.info("Shutting down reminder daemon on request.")
        self._manual_shutdown_requested = True
        self.poller.stop()
        self.engine.stop()
        QCoreApplication.quit()

    def _present(self, notification: ActiveNotification) -> None:
        extra = f" (+{self.engine.waiting} more)" if self.engine.waiting else ""
        _LOGGER.info(
            "REMINDER: '{}' starts in {}{}",
            notification.event.title,
            notification.tier.label,
            extra,
        )

    def _on_cleared(self, notification_id: str) -> None:
        _LOGGER.debug("Reminder {} cleared from display", notification_id)

    def _on_settings_changed(self, settings: EngineSettings) -> None:
        self.poller.set_interval(settings.event_refresh_seconds)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Calendar reminder daemon")
    parser.add_argument("--settings", type=Path, default=None, help="Path to settings.json")
    parser.add_argument("--events", type=Path, default=None, help="Path to the events JSON file")
    return parser.parse_args(list(argv))


def _install_signal_handlers(app: QCoreApplication, coordinator: DaemonCoordinator) -> QTimer:
    def _handle(signum, _frame) -> None:
        _LOGGER.info("Received signal {}", signum)
        coordinator.shutdown()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)

    # Python signal handlers only run when the interpreter regains control.
    wakeup = QTimer(app)
    wakeup.setInterval(500)
    wakeup.timeout.connect(lambda: None)
    wakeup.start()
    return wakeup


def _run_application_once(argv: List[str], options: argparse.Namespace) -> Tuple[int, bool]:
    """Start the Qt application once and report whether shutdown was intentional."""
    app = QCoreApplication.instance() or QCoreApplication(argv)
    coordinator = DaemonCoordinator(SettingsManager(options.settings), events_path=options.events)
    wakeup = _install_signal_handlers(app, coordinator)
    coordinator.start()
    exit_code = app.exec()
    wakeup.stop()
    return exit_code, coordinator.manual_shutdown_requested


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Launch the daemon with single-instance + recovery safeguards."""
    args = list(sys.argv[1:] if argv is None else argv)
    options = _parse_args(args)

    _LOCK_PATH.parent.mkdir(parents=True, exist_ok=True)
    guard = QLockFile(str(_LOCK_PATH))
    if not guard.tryLock(100):
        _LOGGER.debug("Reminder daemon instance already running; exiting silently.")
        return 0

    backoff_seconds = 2
    max_backoff = 30

    try:
        while True:
            try:
                exit_code, manual = _run_application_once([sys.argv[0], *args], options)
            except Exception:  # pragma: no cover - crash guard
                _LOGGER.exception("Reminder daemon crashed; attempting automatic recovery.")
                exit_code = 1
                manual = False

            if manual:
                return exit_code

            _LOGGER.warning(
                "Reminder daemon exited unexpectedly (code={}). Restarting in {} seconds.",
                exit_code,
                backoff_seconds,
            )
            time.sleep(backoff_seconds)
            backoff_seconds = min(backoff_seconds * 2, max_backoff)
    finally:
        guard.unlock()


if __name__ == "__main__":
    raise SystemExit(main())
