"""
Notification identifier utilities.

Derives a stable key from an event and a timing tier, and projects events
into the records the store and the delivery queue work with.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from shared.calendar_event import CalendarEvent
from shared.event_schema import format_utc_iso, parse_iso8601_utc

from .timing import IMPORTANT_MARKER, TimingTier, is_important


def compute_notification_key(event: CalendarEvent, tier: TimingTier) -> str:
    """
    Compute the deterministic key for an event/tier pair.

    The same event id and tier offset always produce the same key, which is
    what makes store upserts idempotent.
    """
    return f"{event.id}-{tier.offset_ms}"


def scheduled_time_for(event: CalendarEvent, tier: TimingTier) -> datetime:
    return event.start - tier.offset


@dataclass(slots=True)
class StoredNotification:
    """Persisted reminder record, denormalized so it survives without the event source."""

    id: str
    event_id: str
    event_title: str
    event_description: Optional[str]
    event_start: datetime
    event_end: datetime
    event_location: Optional[str]
    is_important: bool
    tier: TimingTier
    scheduled_time: datetime
    created_at: datetime
    shown: bool = False
    dismissed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "eventId": self.event_id,
            "eventTitle": self.event_title,
            "eventDescription": self.event_description,
            "eventStartDate": format_utc_iso(self.event_start),
            "eventEndDate": format_utc_iso(self.event_end),
            "eventLocation": self.event_location,
            "isImportant": self.is_important,
            "timing": {"timeMs": self.tier.offset_ms, "label": self.tier.label},
            "scheduledTime": format_utc_iso(self.scheduled_time),
            "createdAt": format_utc_iso(self.created_at),
            "shown": self.shown,
            "dismissed": self.dismissed,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "StoredNotification":
        """Rebuild a record from its JSON form. Raises KeyError/ValueError on malformed input."""
        timing = raw["timing"]
        return cls(
            id=str(raw["id"]),
            event_id=str(raw["eventId"]),
            event_title=str(raw.get("eventTitle") or ""),
            event_description=raw.get("eventDescription"),
            event_start=parse_iso8601_utc(raw["eventStartDate"], field="eventStartDate"),
            event_end=parse_iso8601_utc(raw["eventEndDate"], field="eventEndDate"),
            event_location=raw.get("eventLocation"),
            is_important=bool(raw.get("isImportant", False)),
            tier=TimingTier(timedelta(milliseconds=int(timing["timeMs"])), str(timing["label"])),
            scheduled_time=parse_iso8601_utc(raw["scheduledTime"], field="scheduledTime"),
            created_at=parse_iso8601_utc(raw["createdAt"], field="createdAt"),
            shown=bool(raw.get("shown", False)),
            dismissed=bool(raw.get("dismissed", False)),
        )


@dataclass(frozen=True, slots=True)
class ActiveNotification:
    """In-memory reminder waiting in, or displayed by, the delivery queue."""

    id: str
    event: CalendarEvent
    tier: TimingTier
    created_at: datetime


def project_stored(
    event: CalendarEvent,
    tier: TimingTier,
    *,
    now: datetime,
    marker: str = IMPORTANT_MARKER,
) -> StoredNotification:
    return StoredNotification(
        id=compute_notification_key(event, tier),
        event_id=event.id,
        event_title=event.title,
        event_description=event.description,
        event_start=event.start,
        event_end=event.end,
        event_location=event.location,
        is_important=is_important(event, marker),
        tier=tier,
        scheduled_time=scheduled_time_for(event, tier),
        created_at=now,
    )


def project_active(event: CalendarEvent, tier: TimingTier, *, now: datetime) -> ActiveNotification:
    return ActiveNotification(
        id=compute_notification_key(event, tier),
        event=event,
        tier=tier,
        created_at=now,
    )


def rehydrate_active(record: StoredNotification, *, now: datetime) -> ActiveNotification:
    """
    Rebuild an ActiveNotification from a stored record.

    The all-day flag is not persisted, so rehydrated events are always
    treated as timed events.
    """
    event = CalendarEvent(
        id=record.event_id,
        title=record.event_title,
        start=record.event_start,
        end=record.event_end,
        description=record.event_description,
        location=record.event_location,
        is_all_day=False,
        status="confirmed",
    )
    return ActiveNotification(id=record.id, event=event, tier=record.tier, created_at=now)
