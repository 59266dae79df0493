"""
Reminder timing tiers: how long before an event each reminder fires.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Tuple

from shared.calendar_event import CalendarEvent

IMPORTANT_MARKER = "[IMPORTANT]"


@dataclass(frozen=True, slots=True)
class TimingTier:
    offset: timedelta
    label: str

    @property
    def offset_ms(self) -> int:
        return self.offset // timedelta(milliseconds=1)


IMPORTANT_TIERS: Tuple[TimingTier, ...] = (
    TimingTier(timedelta(days=30), "1 month"),
    TimingTier(timedelta(weeks=1), "1 week"),
    TimingTier(timedelta(days=5), "5 days"),
    TimingTier(timedelta(days=3), "3 days"),
    TimingTier(timedelta(days=2), "2 days"),
    TimingTier(timedelta(days=1), "1 day"),
    TimingTier(timedelta(hours=12), "12 hours"),
    TimingTier(timedelta(hours=6), "6 hours"),
    TimingTier(timedelta(hours=3), "3 hours"),
    TimingTier(timedelta(hours=1), "1 hour"),
    TimingTier(timedelta(minutes=30), "30 minutes"),
    TimingTier(timedelta(minutes=10), "10 minutes"),
)

REGULAR_TIERS: Tuple[TimingTier, ...] = (
    TimingTier(timedelta(hours=1), "1 hour"),
    TimingTier(timedelta(minutes=30), "30 minutes"),
    TimingTier(timedelta(minutes=10), "10 minutes"),
)


def is_important(event: CalendarEvent, marker: str = IMPORTANT_MARKER) -> bool:
    """Return whether the event description carries the importance marker."""
    return bool(event.description) and marker in event.description


def tiers_for(event: CalendarEvent, marker: str = IMPORTANT_MARKER) -> Tuple[TimingTier, ...]:
    """Return the ordered reminder tiers that apply to ``event``."""
    if is_important(event, marker):
        return IMPORTANT_TIERS
    return REGULAR_TIERS
