# mindlog/core/utils/clock.py
"""Injectable wall-clock sources.

All scheduling happens in naive local wall-clock time; no timezone
conversion is performed anywhere.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable

Clock = Callable[[], datetime]


def system_clock() -> datetime:
    """Current local wall-clock time, truncated to whole seconds."""
    return datetime.now().replace(microsecond=0)


class FixedClock:
    """Clock that returns a settable instant. Used by tests and dry runs."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now

    def advance(self, delta: timedelta) -> datetime:
        self.now = self.now + delta
        return self.now
