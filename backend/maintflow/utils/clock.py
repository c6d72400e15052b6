from __future__ import annotations
"""Injectable time source.

Timestamps are stored as naive UTC datetimes (SQLite drops tzinfo on read), so
every comparison in the workflow code goes through ``Clock.now()``.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


class Clock:
    def now(self) -> datetime:
        return utcnow()


class FixedClock(Clock):
    """Controlled clock for tests; ``advance`` moves time forward."""

    def __init__(self, start: Optional[datetime] = None):
        self._now = to_naive_utc(start) or datetime(2024, 1, 1, 12, 0, 0)

    def now(self) -> datetime:
        return self._now

    def set(self, when: datetime) -> None:
        self._now = to_naive_utc(when)

    def advance(self, seconds: float = 0, minutes: float = 0) -> datetime:
        self._now = self._now + timedelta(seconds=seconds, minutes=minutes)
        return self._now


SYSTEM_CLOCK = Clock()

__all__ = ['Clock', 'FixedClock', 'SYSTEM_CLOCK', 'utcnow', 'to_naive_utc']
