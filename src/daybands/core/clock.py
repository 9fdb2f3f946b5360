# src/daybands/core/clock.py

from __future__ import annotations

from datetime import datetime, timedelta


class SystemClock:
    """Local wall clock (naive datetimes, like the host's note timestamps)."""

    def now(self) -> datetime:
        return datetime.now()


class FixedClock:
    """Controllable clock for tests and replays."""

    def __init__(self, at: datetime) -> None:
        self._at = at

    def now(self) -> datetime:
        return self._at

    def set(self, at: datetime) -> None:
        self._at = at

    def advance(self, **kwargs: float) -> datetime:
        self._at = self._at + timedelta(**kwargs)
        return self._at
