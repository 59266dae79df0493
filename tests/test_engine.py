import json
from datetime import timedelta
from pathlib import Path

import pytest

from reminder_core.engine import ReminderEngine, SourceStatus
from reminder_core.notification_key import compute_notification_key, project_stored
from reminder_core.notification_store import NotificationStore, StoreUnavailableError
from reminder_core.settings import EngineSettings, SettingsManager
from reminder_core.timing import REGULAR_TIERS


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


class FailingStore:
    path = Path("unavailable.json")

    def _fail(self, *args, **kwargs):
        raise StoreUnavailableError("store offline")

    save = get_by_id = get_undismissed = mark_shown = mark_dismissed = exists = _fail
    cleanup = auto_cleanup_if_needed = _fail


@pytest.fixture
def clock(now):
    return FakeClock(now)


@pytest.fixture
def make_engine(qtbot, clock):
    engines = []

    def _make(store, **settings_overrides):
        engine = ReminderEngine(store, settings=EngineSettings(**settings_overrides))
        engine.set_clock(clock)
        engines.append(engine)
        return engine

    yield _make
    for engine in engines:
        engine.stop()


def _missed_events(make_event, now, count):
    # The 10 minute tier of each event fired six minutes ago.
    return [make_event(f"e{i}", start=now + timedelta(minutes=4)) for i in range(count)]


def test_five_reminders_leave_one_active_and_four_waiting(make_engine, store, make_event, now):
    engine = make_engine(store)
    engine.start()
    engine.on_events_updated(_missed_events(make_event, now, 5))

    assert engine.active.event.id == "e0"
    assert engine.active.tier.label == "10 minutes"
    assert engine.waiting == 4


def test_auto_dismiss_timer_advances_queue(qtbot, make_engine, store, make_event, now):
    engine = make_engine(store, auto_dismiss_ms=200)
    engine.start()
    engine.on_events_updated(_missed_events(make_event, now, 5))
    first = engine.active

    with qtbot.waitSignal(engine.notificationCleared, timeout=3000) as blocker:
        pass

    assert blocker.args == [first.id]
    assert engine.active.event.id == "e1"
    assert engine.waiting == 3
    record = store.get_by_id(first.id)
    assert record.shown is True
    assert record.dismissed is True


def test_manual_dismiss(make_engine, store, make_event, now):
    engine = make_engine(store)
    engine.start()
    engine.on_events_updated(_missed_events(make_event, now, 2))
    first = engine.active

    assert engine.dismiss_active("not-the-active-one") is False
    assert engine.active is first

    assert engine.dismiss_active(first.id) is True
    assert engine.active.event.id == "e1"
    assert store.exists(first.id)

    assert engine.dismiss_active() is True
    assert engine.active is None
    assert engine.dismiss_active() is False


def test_dismissed_reminders_stay_dismissed_across_restart(qtbot, make_engine, tmp_path, make_event, now):
    path = tmp_path / "notifications.json"
    missed = make_event("missed", start=now + timedelta(minutes=4))
    due = make_event("due", start=now + timedelta(minutes=30))

    first = make_engine(NotificationStore(path))
    first.start()
    first.on_events_updated([missed, due])
    while first.dismiss_active():
        pass
    first.stop()

    second = make_engine(NotificationStore(path))
    second.start()
    second.on_events_updated([missed, due])
    second.tick()

    assert second.active is None
    assert second.waiting == 0


def test_rehydrated_reminders_precede_live_ones(make_engine, store, make_event, now):
    older = project_stored(make_event("r1", start=now + timedelta(minutes=20)), REGULAR_TIERS[0], now=now)
    newer = project_stored(make_event("r2", start=now + timedelta(minutes=25)), REGULAR_TIERS[0], now=now)
    finished = project_stored(make_event("r3", start=now + timedelta(minutes=25)), REGULAR_TIERS[0], now=now)
    for record in (older, newer, finished):
        store.save(record)
    store.mark_dismissed(finished.id)

    engine = make_engine(store)
    engine.start()

    assert engine.active.id == older.id
    assert store.get_by_id(older.id).shown is True
    assert store.get_by_id(older.id).dismissed is False
    assert store.get_by_id(newer.id).shown is True

    engine.on_events_updated([make_event("live", start=now + timedelta(hours=1))])
    assert [item.id for item in engine.queue.pending()] == [newer.id, "live-3600000"]


def test_rehydrated_reminder_is_not_queued_twice_by_missed_pass(make_engine, store, make_event, now):
    event = make_event("standup", start=now + timedelta(minutes=4))
    store.save(project_stored(event, REGULAR_TIERS[2], now=now))

    engine = make_engine(store)
    engine.start()
    engine.on_events_updated([event])

    assert engine.active.id == compute_notification_key(event, REGULAR_TIERS[2])
    assert engine.waiting == 0


def test_standup_scenario(make_engine, store, make_event, clock, now):
    start = now + timedelta(minutes=31)
    standup = make_event("standup", start=start, title="Standup")
    activated = []

    engine = make_engine(store)
    engine.notificationActivated.connect(lambda notification: activated.append(notification.id))
    engine.start()
    engine.on_events_updated([standup])
    engine.dismiss_active()

    hour_key, half_hour_key, ten_minute_key = (compute_notification_key(standup, tier) for tier in REGULAR_TIERS)
    assert activated == [hour_key]

    clock.now = start - timedelta(minutes=30, milliseconds=1)
    engine.tick()
    assert half_hour_key not in engine.dispatched

    clock.now = start - timedelta(minutes=30)
    engine.tick()
    engine.dismiss_active()
    assert activated == [hour_key, half_hour_key]

    clock.now = start - timedelta(minutes=9)
    engine.tick()
    engine.dismiss_active()
    clock.now = start - timedelta(minutes=8)
    engine.tick()

    assert activated == [hour_key, half_hour_key, ten_minute_key]
    assert engine.active is None


def test_due_items_promote_first_and_queue_rest(make_engine, store, make_event, now):
    engine = make_engine(store)
    engine.start()
    events = [make_event(f"d{i}", start=now + timedelta(hours=1)) for i in range(3)]
    engine.on_events_updated(events)

    assert engine.active.event.id == "d0"
    assert [item.event.id for item in engine.queue.pending()] == ["d1", "d2"]


def test_source_error_keeps_last_known_events(make_engine, store, make_event, now):
    engine = make_engine(store)
    engine.start()
    events = [make_event(start=now + timedelta(days=1))]
    engine.on_events_updated(events)

    engine.on_source_error("network down")

    assert engine.source_status is SourceStatus.UNAVAILABLE
    assert engine.events == events


def test_store_failures_do_not_stop_delivery(make_engine, make_event, now):
    engine = make_engine(FailingStore())
    engine.start()
    engine.on_events_updated(
        [
            make_event("a", start=now + timedelta(minutes=30)),
            make_event("b", start=now + timedelta(minutes=4)),
        ]
    )

    assert engine.active is not None
    assert engine.dismiss_active() is True
    assert engine.active is not None


def test_stop_cancels_timers(make_engine, store, make_event, now):
    engine = make_engine(store)
    engine.start()
    engine.on_events_updated(_missed_events(make_event, now, 2))

    engine.stop()

    assert not engine.is_running
    assert not engine._scan_timer.isActive()
    assert not engine._dismiss_timer.isActive()
    active = engine.active
    engine.tick()
    assert engine.active is active


def test_disabled_engine_waits_for_settings(qtbot, tmp_path, store, make_event, clock, now):
    settings_path = tmp_path / "settings.json"
    settings_path.write_text(json.dumps({"enabled": False}), encoding="utf-8")
    engine = ReminderEngine(store, settings_manager=SettingsManager(settings_path))
    engine.set_clock(clock)
    engine.start()
    engine.on_events_updated(_missed_events(make_event, now, 1))
    assert engine.active is None

    settings_path.write_text(json.dumps({"enabled": True, "scan_interval_seconds": 30}), encoding="utf-8")
    engine._reload_settings()

    assert engine.settings.scan_interval_seconds == 30
    assert engine.active.event.id == "e0"
    engine.stop()
