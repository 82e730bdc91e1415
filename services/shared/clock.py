"""Time sources.

All timestamps in the store are naive UTC, so clocks return naive UTC too.
"""
import threading
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock in naive UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


class FixedClock:
    """Manually driven clock for tests and reproducible runs."""

    def __init__(self, start: Optional[datetime] = None):
        self._now = start or SystemClock().now()
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def set(self, value: datetime) -> None:
        with self._lock:
            self._now = value

    def advance(self, **kwargs) -> datetime:
        """Move forward by a timedelta built from kwargs (minutes=5, days=1, ...)."""
        with self._lock:
            self._now = self._now + timedelta(**kwargs)
            return self._now
