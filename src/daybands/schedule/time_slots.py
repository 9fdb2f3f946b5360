# src/daybands/schedule/time_slots.py

"""
Fixed daily time bands.

The day is split into four half-open bands on the hour:
[0,8), [8,12), [12,16), [16,24). Instances without a band live in NONE_SLOT.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta

from ..core.ports import Clock

NONE_SLOT = "none"

SLOT_KEYS: tuple[str, ...] = ("0:00-8:00", "8:00-12:00", "12:00-16:00", "16:00-0:00")

# Start hour of each band, in SLOT_KEYS order.
_BOUNDARY_HOURS: tuple[int, ...] = (0, 8, 12, 16)

_HHMM = re.compile(r"^(\d{1,2}):(\d{2})$")


def _slot_for_minutes(minutes: int) -> str:
    if minutes < 8 * 60:
        return SLOT_KEYS[0]
    if minutes < 12 * 60:
        return SLOT_KEYS[1]
    if minutes < 16 * 60:
        return SLOT_KEYS[2]
    return SLOT_KEYS[3]


def classify(time_str: str) -> str:
    """Band for a "HH:MM" string. Malformed input is the caller's problem."""
    hour, minute = (int(part) for part in time_str.split(":", 1))
    return _slot_for_minutes(hour * 60 + minute)


def slot_for_datetime(dt: datetime) -> str:
    return _slot_for_minutes(dt.hour * 60 + dt.minute)


def current_slot(clock: Clock) -> str:
    return slot_for_datetime(clock.now())


def natural_slot(scheduled_time: str | None) -> str:
    """Band a definition is scheduled into; NONE_SLOT when unscheduled or unreadable."""
    if not isinstance(scheduled_time, str):
        return NONE_SLOT
    m = _HHMM.match(scheduled_time.strip())
    if not m or int(m.group(1)) > 23 or int(m.group(2)) > 59:
        return NONE_SLOT
    return classify(scheduled_time.strip())


def is_valid_slot_key(key: str | None, *, include_none: bool = True) -> bool:
    if key == NONE_SLOT:
        return include_none
    return key in SLOT_KEYS


def group_key(key: str | None) -> str:
    """Display group of a slot key: unknown or missing keys fall into NONE_SLOT."""
    return key if key in SLOT_KEYS else NONE_SLOT  # type: ignore[return-value]


def slot_index(key: str | None) -> int:
    """Position of a band in the day; -1 for NONE_SLOT and unknown keys."""
    try:
        return SLOT_KEYS.index(key)  # type: ignore[arg-type]
    except ValueError:
        return -1


def next_boundary(now: datetime) -> datetime:
    """First band boundary strictly after `now` (tomorrow 00:00 after 16:00)."""
    for hour in _BOUNDARY_HOURS:
        candidate = now.replace(hour=hour, minute=0, second=0, microsecond=0)
        if candidate > now:
            return candidate
    tomorrow = now + timedelta(days=1)
    return tomorrow.replace(hour=_BOUNDARY_HOURS[0], minute=0, second=0, microsecond=0)
