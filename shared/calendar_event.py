"""
Shared representation of a calendar event as delivered by an event source.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from .event_schema import validate_event


@dataclass(frozen=True, slots=True)
class CalendarEvent:
    """
    Immutable snapshot of a single event instance. The engine only reads it;
    ownership stays with the event source.
    """

    id: str
    title: str
    start: datetime
    end: datetime
    description: Optional[str] = None
    location: Optional[str] = None
    is_all_day: bool = False
    status: str = "confirmed"

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "CalendarEvent":
        """Build an event from a raw mapping, validating it on the way."""
        normalized = validate_event(raw)
        return cls(**normalized)
