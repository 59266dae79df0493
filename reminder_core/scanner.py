"""
Reminder discovery passes over the event x tier cross-product.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import AbstractSet, Callable, Iterable, List, Optional, Tuple

from shared.calendar_event import CalendarEvent

from .notification_key import (
    ActiveNotification,
    compute_notification_key,
    project_active,
    project_stored,
    scheduled_time_for,
)
from .notification_store import NotificationStore, StoreUnavailableError
from .timing import IMPORTANT_MARKER, TimingTier, tiers_for

# Shared boundary between "due" and "missed"; also the proactive-save horizon.
GRACE_WINDOW = timedelta(minutes=5)


class TierState(Enum):
    FUTURE = "future"
    DUE = "due"
    MISSED = "missed"


@dataclass(slots=True)
class ScanResult:
    notifications: List[ActiveNotification] = field(default_factory=list)
    persisted: List[str] = field(default_factory=list)
    errors: List[Tuple[str, Exception]] = field(default_factory=list)


def classify(scheduled: datetime, now: datetime) -> TierState:
    delta = now - scheduled
    if delta < timedelta(0):
        return TierState.FUTURE
    if delta <= GRACE_WINDOW:
        return TierState.DUE
    return TierState.MISSED


def latest_missed_tier(
    event: CalendarEvent,
    now: datetime,
    marker: str = IMPORTANT_MARKER,
) -> Optional[TimingTier]:
    """
    Return the missed tier whose scheduled time is closest to ``now``.

    Older missed tiers of the same event are ignored so a long absence
    produces a single reminder per event rather than a burst.
    """
    best: Optional[TimingTier] = None
    best_time: Optional[datetime] = None
    for tier in tiers_for(event, marker):
        scheduled = scheduled_time_for(event, tier)
        if classify(scheduled, now) is not TierState.MISSED:
            continue
        if best_time is None or scheduled > best_time:
            best, best_time = tier, scheduled
    return best


def scan_missed(
    events: Iterable[CalendarEvent],
    *,
    store: NotificationStore,
    dispatched: AbstractSet[str],
    now: datetime,
    marker: str = IMPORTANT_MARKER,
) -> ScanResult:
    """
    Promote at most one missed reminder per event.

    Reminders already dismissed in the store are skipped; the rest are
    persisted and returned for queueing.
    """
    result = ScanResult()
    processed: set[str] = set()

    for event in events:
        if event.id in processed:
            continue
        processed.add(event.id)

        tier = latest_missed_tier(event, now, marker)
        if tier is None:
            continue

        key = compute_notification_key(event, tier)
        if key in dispatched:
            continue

        try:
            dismissed = store.exists(key)
        except StoreUnavailableError as exc:
            result.errors.append((key, exc))
            dismissed = False
        if dismissed:
            continue

        try:
            store.save(project_stored(event, tier, now=now, marker=marker))
            result.persisted.append(key)
        except StoreUnavailableError as exc:
            result.errors.append((key, exc))

        result.notifications.append(project_active(event, tier, now=now))

    return result


def scan_due(
    events: Iterable[CalendarEvent],
    *,
    store: NotificationStore,
    dispatched: AbstractSet[str],
    is_pending: Callable[[str], bool],
    now: datetime,
    marker: str = IMPORTANT_MARKER,
) -> ScanResult:
    """
    Collect reminders inside the due window and persist future ones.

    Missed reminders are left to ``scan_missed``. Future reminders more than
    the grace window ahead are written to the store so a restart before
    their due time can still rehydrate them. Due reminders without a record
    get one, so their dismissal is remembered across restarts.
    """
    result = ScanResult()
    seen_keys: set[str] = set()

    for event in events:
        for tier in tiers_for(event, marker):
            key = compute_notification_key(event, tier)
            if key in seen_keys:
                continue
            seen_keys.add(key)

            scheduled = scheduled_time_for(event, tier)
            state = classify(scheduled, now)

            if state is TierState.DUE:
                if key in dispatched or is_pending(key):
                    continue
                try:
                    dismissed = store.exists(key)
                except StoreUnavailableError as exc:
                    result.errors.append((key, exc))
                    dismissed = False
                if dismissed:
                    continue
                try:
                    if store.get_by_id(key) is None:
                        store.save(project_stored(event, tier, now=now, marker=marker))
                        result.persisted.append(key)
                except StoreUnavailableError as exc:
                    result.errors.append((key, exc))
                result.notifications.append(project_active(event, tier, now=now))
            elif state is TierState.FUTURE and scheduled - now > GRACE_WINDOW and key not in dispatched:
                try:
                    existing = store.get_by_id(key)
                    if existing is not None and existing.scheduled_time == scheduled:
                        continue
                    store.save(project_stored(event, tier, now=now, marker=marker))
                    result.persisted.append(key)
                except StoreUnavailableError as exc:
                    result.errors.append((key, exc))

    return result
