"""
reminder_daemon package.

Holds process-wide helpers for the reminder daemon runtime.
"""

__all__ = [
    "logger",
]
