import os
import tempfile
from datetime import datetime, timedelta, timezone

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
os.environ.setdefault("REMINDER_ENGINE_HOME", tempfile.mkdtemp(prefix="reminder-engine-tests-"))

from reminder_core.notification_store import NotificationStore  # noqa: E402
from shared.calendar_event import CalendarEvent  # noqa: E402

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_event():
    def _make(event_id="evt-1", *, start, title="Standup", description=None, location=None):
        return CalendarEvent(
            id=event_id,
            title=title,
            start=start,
            end=start + timedelta(minutes=30),
            description=description,
            location=location,
        )

    return _make


@pytest.fixture
def store(tmp_path):
    return NotificationStore(tmp_path / "notifications.json")
