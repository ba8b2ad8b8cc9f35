from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Optional

_TICK = timedelta(microseconds=1)


# PUBLIC_INTERFACE
def utc_now() -> datetime:
    """Return the current instant as an aware UTC datetime."""
    return datetime.now(timezone.utc)


# PUBLIC_INTERFACE
def as_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC; naive values are taken to be UTC already."""
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# PUBLIC_INTERFACE
def new_id() -> str:
    """Generate a fresh countdown id."""
    return str(uuid.uuid4())


# PUBLIC_INTERFACE
class MonotonicClock:
    """
    Clock returning strictly increasing UTC instants.

    Two calls within the same microsecond (or a wall clock stepping backwards)
    still yield ordered timestamps, so creation order and update ordering are
    preserved by every store sharing the clock.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._last: Optional[datetime] = None

    def __call__(self) -> datetime:
        with self._lock:
            now = utc_now()
            if self._last is not None and now <= self._last:
                now = self._last + _TICK
            self._last = now
            return now
