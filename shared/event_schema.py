"""
Calendar event validation utilities shared by the engine and event sources.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional


class EventValidationError(ValueError):
    """Raised when an event payload is missing required data or is malformed."""


@dataclass(frozen=True)
class EventConstraints:
    """Schema constraints as simple dataclass constants."""

    max_title_length: int = 500
    default_title: str = "Untitled Event"
    default_status: str = "confirmed"
    allowed_statuses: frozenset = frozenset({"confirmed", "tentative", "cancelled"})


def load_and_validate_events(path: Path) -> List[Dict[str, Any]]:
    """
    Load an events JSON file and validate every entry.

    The file may hold either a list of event objects or an object with an
    ``events`` list. Returns normalized event dictionaries with timestamps
    expressed as UTC datetimes.
    """
    try:
        contents = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise EventValidationError(f"Events file not found: {path}") from exc
    except OSError as exc:
        raise EventValidationError(f"Unable to read events file: {path}") from exc

    try:
        payload = json.loads(contents)
    except json.JSONDecodeError as exc:
        raise EventValidationError(f"Events file is not valid JSON: {exc}") from exc

    if isinstance(payload, dict):
        payload = payload.get("events")
    if not isinstance(payload, list):
        raise EventValidationError("Events payload must be a list of objects.")

    return [validate_event(item, index=i) for i, item in enumerate(payload, start=1)]


def validate_event(raw: Any, *, index: Optional[int] = None) -> Dict[str, Any]:
    """Validate a single raw event mapping and return its normalized form."""
    prefix = f"Event {index}: " if index is not None else ""
    if not isinstance(raw, dict):
        raise EventValidationError(f"{prefix}event must be a JSON object.")

    constraints = EventConstraints()

    try:
        event_id = _require_string(raw.get("id"), field="id", required=True)
        title = _require_string(
            raw.get("title"),
            field="title",
            max_length=constraints.max_title_length,
            required=False,
        ) or constraints.default_title
        description = _require_string(raw.get("description"), field="description", required=False) or None
        location = _require_string(raw.get("location"), field="location", required=False) or None

        start = parse_iso8601_utc(_require_string(raw.get("start"), field="start", required=True), field="start")
        end_raw = _require_string(raw.get("end"), field="end", required=False)
        end = parse_iso8601_utc(end_raw, field="end") if end_raw else start
        if end < start:
            raise EventValidationError("end must not be before start.")

        is_all_day = raw.get("is_all_day", False)
        if not isinstance(is_all_day, bool):
            raise EventValidationError("is_all_day must be a boolean.")

        status = _require_string(raw.get("status"), field="status", required=False).lower()
        status = status or constraints.default_status
        if status not in constraints.allowed_statuses:
            raise EventValidationError(
                "status must be one of: " + ", ".join(sorted(constraints.allowed_statuses)) + "."
            )
    except EventValidationError as exc:
        raise EventValidationError(f"{prefix}{exc}") from exc

    return {
        "id": event_id,
        "title": title,
        "description": description,
        "start": start,
        "end": end,
        "location": location,
        "is_all_day": is_all_day,
        "status": status,
    }


def parse_iso8601_utc(value: str, *, field: str = "timestamp") -> datetime:
    """
    Parse an ISO-8601 timestamp and normalise it to UTC.

    Accepts values ending with 'Z' or any explicit offset. Naive values are
    rejected since the event source is responsible for resolving zones.
    """
    if not isinstance(value, str):
        raise EventValidationError(f"{field} must be a string.")

    cleaned = value.strip()
    try:
        if cleaned.endswith("Z"):
            cleaned = cleaned[:-1] + "+00:00"
        dt = datetime.fromisoformat(cleaned)
    except ValueError as exc:
        raise EventValidationError(
            f"{field} must be in ISO-8601 format (e.g. 2026-01-01T09:00:00Z)."
        ) from exc

    if dt.tzinfo is None:
        raise EventValidationError(f"{field} must include a timezone offset.")

    return dt.astimezone(timezone.utc)


def format_utc_iso(dt: datetime) -> str:
    """Return a canonical UTC ISO-8601 string with trailing 'Z'."""
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _require_string(
    value: Any,
    *,
    field: str,
    max_length: Optional[int] = None,
    required: bool,
) -> str:
    """Validate that a value is a string in accordance with constraints."""
    if value is None:
        if required:
            raise EventValidationError(f"{field} is required.")
        return ""

    if not isinstance(value, str):
        raise EventValidationError(f"{field} must be a string.")

    stripped = value.strip()
    if required and stripped == "":
        raise EventValidationError(f"{field} must be a non-empty string.")

    if max_length is not None and len(stripped) > max_length:
        raise EventValidationError(f"{field} must be at most {max_length} characters.")

    return stripped
