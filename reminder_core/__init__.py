"""
Core helpers for the reminder engine shared across entry points.
"""

from .notification_key import compute_notification_key  # noqa: F401
from .notification_store import NotificationStore, StoreUnavailableError  # noqa: F401
