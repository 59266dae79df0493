"""
Persistence layer for reminder state using a JSON file in the engine home.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional

from shared.event_schema import format_utc_iso, parse_iso8601_utc
from reminder_daemon.reminder_daemon import logger as app_logger

from .notification_key import StoredNotification

RETENTION_PERIOD = timedelta(days=30)
CLEANUP_INTERVAL = timedelta(days=1)


class StoreUnavailableError(OSError):
    """Raised when the backing file cannot be written."""


@dataclass
class NotificationStore:
    """
    File-backed record of every reminder ever scheduled, keyed by
    notification id. Every mutation is flushed to disk immediately.
    """

    path: Path
    _records: Dict[str, StoredNotification] = field(init=False, default_factory=dict)
    _last_cleanup: datetime = field(init=False)

    def __post_init__(self) -> None:
        self._logger = app_logger.get_logger()
        self.path = Path(self.path)
        self._last_cleanup = _utcnow()
        self._load()
        try:
            self.auto_cleanup_if_needed()
        except StoreUnavailableError as exc:
            self._logger.error("Initial cleanup of {} failed: {}", self.path, exc)

    @property
    def last_cleanup(self) -> datetime:
        return self._last_cleanup

    def save(self, record: StoredNotification) -> None:
        """Insert or overwrite the record with the same id."""
        self._records[record.id] = record
        self._flush()

    def get_by_id(self, notification_id: str) -> Optional[StoredNotification]:
        return self._records.get(notification_id)

    def get_all(self) -> List[StoredNotification]:
        return list(self._records.values())

    def get_undismissed(self, now: Optional[datetime] = None) -> List[StoredNotification]:
        """Return records not yet dismissed whose scheduled time has been reached."""
        reference = now or _utcnow()
        return [
            record
            for record in self._records.values()
            if not record.dismissed and record.scheduled_time <= reference
        ]

    def mark_shown(self, notification_id: str) -> None:
        record = self._records.get(notification_id)
        if record is None:
            return
        record.shown = True
        self._flush()

    def mark_dismissed(self, notification_id: str) -> None:
        record = self._records.get(notification_id)
        if record is None:
            return
        record.dismissed = True
        self._flush()

    def exists(self, notification_id: str) -> bool:
        """Return True only when the record exists and has been dismissed."""
        record = self._records.get(notification_id)
        return record.dismissed if record is not None else False

    def cleanup(self, now: Optional[datetime] = None) -> int:
        """Purge records older than the retention window. Returns the number removed."""
        reference = now or _utcnow()
        cutoff = reference - RETENTION_PERIOD
        before = len(self._records)
        self._records = {
            key: record for key, record in self._records.items() if record.created_at > cutoff
        }
        removed = before - len(self._records)
        self._last_cleanup = reference
        self._flush()
        if removed:
            self._logger.info("Cleaned up {} old notifications", removed)
        return removed

    def auto_cleanup_if_needed(self, now: Optional[datetime] = None) -> bool:
        reference = now or _utcnow()
        if reference - self._last_cleanup < CLEANUP_INTERVAL:
            return False
        self.cleanup(reference)
        return True

    def reset(self) -> None:
        self._records = {}
        self._last_cleanup = _utcnow()
        self._flush()

    def _load(self) -> None:
        if not self.path.exists():
            try:
                self._flush()
            except StoreUnavailableError as exc:
                self._logger.error("Unable to create notification store at {}: {}", self.path, exc)
            return

        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
            records = {}
            for raw in payload.get("notifications", []):
                record = StoredNotification.from_dict(raw)
                records[record.id] = record
            last_cleanup = parse_iso8601_utc(payload["lastCleanup"], field="lastCleanup")
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            self._logger.error("Failed to load notification store {}: {}", self.path, exc)
            return

        self._records = records
        self._last_cleanup = last_cleanup

    def _flush(self) -> None:
        payload = {
            "notifications": [record.to_dict() for record in self._records.values()],
            "lastCleanup": format_utc_iso(self._last_cleanup),
        }
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise StoreUnavailableError(f"Unable to write notification store {self.path}: {exc}") from exc


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)
