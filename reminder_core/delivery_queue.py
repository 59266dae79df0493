"""
Single-slot delivery queue: one reminder is displayed, the rest wait.
"""

from __future__ import annotations

from collections import deque
from enum import Enum
from typing import Deque, Iterable, List, Optional

from .notification_key import ActiveNotification


class QueueState(Enum):
    IDLE = "idle"
    SHOWING = "showing"


class DeliveryQueue:
    """
    FIFO of pending reminders plus the active slot.

    The queue never holds the same id twice, counting the active slot. Timers
    and persistence belong to the owner; this class only tracks order.
    """

    def __init__(self) -> None:
        self._pending: Deque[ActiveNotification] = deque()
        self._active: Optional[ActiveNotification] = None

    @property
    def active(self) -> Optional[ActiveNotification]:
        return self._active

    @property
    def waiting(self) -> int:
        return len(self._pending)

    @property
    def state(self) -> QueueState:
        return QueueState.SHOWING if self._active is not None else QueueState.IDLE

    def pending(self) -> List[ActiveNotification]:
        return list(self._pending)

    def contains(self, notification_id: str) -> bool:
        if self._active is not None and self._active.id == notification_id:
            return True
        return any(item.id == notification_id for item in self._pending)

    def enqueue(self, items: Iterable[ActiveNotification]) -> int:
        """Append to the tail in the given order. Returns how many were added."""
        added = 0
        for item in items:
            if self.contains(item.id):
                continue
            self._pending.append(item)
            added += 1
        return added

    def enqueue_front(self, items: Iterable[ActiveNotification]) -> int:
        """Insert ahead of everything waiting, keeping the given order."""
        fresh: List[ActiveNotification] = []
        for item in items:
            if self.contains(item.id) or any(existing.id == item.id for existing in fresh):
                continue
            fresh.append(item)
        self._pending.extendleft(reversed(fresh))
        return len(fresh)

    def advance(self) -> Optional[ActiveNotification]:
        """
        Promote the head of the queue when the active slot is empty.

        Returns the newly active notification, or None when nothing changed.
        """
        if self._active is not None or not self._pending:
            return None
        self._active = self._pending.popleft()
        return self._active

    def clear_active(self) -> Optional[ActiveNotification]:
        cleared, self._active = self._active, None
        return cleared
