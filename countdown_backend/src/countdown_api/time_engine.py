"""
Time-remaining calculations for countdowns.

Pure functions only: callers pass "now" explicitly, nothing here reads the
clock, touches storage or raises for bad configuration. Missing or unusable
working-hours settings degrade to the natural (wall-clock) calculation.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Any, Dict, Mapping, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .models import CountType
from .utils import as_utc

logger = logging.getLogger(__name__)

MS_PER_SECOND = 1000
MS_PER_MINUTE = 60 * MS_PER_SECOND
MS_PER_HOUR = 60 * MS_PER_MINUTE
MS_PER_DAY = 24 * MS_PER_HOUR

MINUTES_PER_DAY = 24 * 60
WORKING_DAY_MINUTES = 8 * 60
# Above this many working minutes the calculation falls back to natural time.
WORKING_MINUTES_CEILING = 1_000_000
# Targets further out than this also fall back, so the day-by-day count stays bounded.
WORKING_SPAN_LIMIT = timedelta(days=3660)

_ONE_DAY = timedelta(days=1)
_MINUTE_US = 60 * 1_000_000
_MICROSECOND = timedelta(microseconds=1)


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class TimeRemaining:
    """
    Remaining duration split into display units.

    All unit fields are non-negative integers. In working mode a "day" is an
    8-hour working day and seconds are always 0.
    """

    days: int
    hours: int
    minutes: int
    seconds: int
    is_expired: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


EXPIRED = TimeRemaining(days=0, hours=0, minutes=0, seconds=0, is_expired=True)


# PUBLIC_INTERFACE
def compute_remaining(now: datetime, countdown: Mapping[str, Any]) -> TimeRemaining:
    """
    Compute the time left until a countdown's target.

    Args:
        now: The current instant (naive values are read as UTC).
        countdown: A CountdownEntity-shaped mapping; only target_date,
            count_type, working_hours and timezone are read.

    Returns:
        TimeRemaining, or EXPIRED once now has reached the target.
    """
    now = as_utc(now)
    target = as_utc(countdown["target_date"])
    if now >= target:
        return EXPIRED

    if countdown.get("count_type") != CountType.WORKING.value:
        return natural_remaining(now, target)
    return working_remaining(
        now,
        target,
        countdown.get("working_hours"),
        countdown.get("timezone") or "UTC",
    )


# PUBLIC_INTERFACE
def natural_remaining(now: datetime, target: datetime) -> TimeRemaining:
    """Exact floor decomposition of target - now into 24h days, hours, minutes and seconds."""
    diff = (as_utc(target) - as_utc(now)) // timedelta(milliseconds=1)
    if diff <= 0:
        return EXPIRED

    return TimeRemaining(
        days=diff // MS_PER_DAY,
        hours=(diff % MS_PER_DAY) // MS_PER_HOUR,
        minutes=(diff % MS_PER_HOUR) // MS_PER_MINUTE,
        seconds=(diff % MS_PER_MINUTE) // MS_PER_SECOND,
        is_expired=False,
    )


# PUBLIC_INTERFACE
def working_remaining(
    now: datetime,
    target: datetime,
    working_hours: Optional[Mapping[str, Any]],
    timezone_name: str,
) -> TimeRemaining:
    """
    Remaining working time between now and target, counted in whole minutes.

    Falls back to natural_remaining when the working hours are missing or
    unparsable, when the timezone is unknown, when target lies more than
    WORKING_SPAN_LIMIT ahead, or when the count exceeds WORKING_MINUTES_CEILING.
    """
    now = as_utc(now)
    target = as_utc(target)
    window = _parse_window(working_hours)
    zone = _load_zone(timezone_name)
    if window is None or zone is None:
        return natural_remaining(now, target)
    if target - now > WORKING_SPAN_LIMIT:
        logger.debug("Target more than %s ahead; using natural time", WORKING_SPAN_LIMIT)
        return natural_remaining(now, target)

    start_minute, end_minute, exclude_weekends = window
    total = count_working_minutes(now, target, start_minute, end_minute, exclude_weekends, zone)
    if total > WORKING_MINUTES_CEILING:
        logger.debug("Working minutes exceed ceiling (%d); using natural time", total)
        return natural_remaining(now, target)
    if total <= 0:
        return EXPIRED

    return TimeRemaining(
        days=total // WORKING_DAY_MINUTES,
        hours=(total % WORKING_DAY_MINUTES) // 60,
        minutes=total % 60,
        seconds=0,
        is_expired=False,
    )


# PUBLIC_INTERFACE
def count_working_minutes(
    now: datetime,
    target: datetime,
    start_minute: int,
    end_minute: int,
    exclude_weekends: bool,
    zone: tzinfo,
) -> int:
    """
    Count the minute ticks between now and target that fall in the daily window.

    A tick happens every minute starting at now; it counts when its local
    minute-of-day lies in [start_minute, end_minute). When a tick lands on a
    Saturday or Sunday and weekends are excluded, ticking resumes at the next
    local midnight.

    The timeline is cut into runs that share one local day and one UTC offset,
    and each run is handled as a single clipped interval. A run is split at a
    DST transition, so a repeated hour is counted twice and a skipped hour not
    at all. The cost is proportional to the number of days, not minutes. Stops
    early once the count passes WORKING_MINUTES_CEILING.
    """
    now = as_utc(now)
    target = as_utc(target)
    end_minute = min(end_minute, MINUTES_PER_DAY)
    if now >= target or start_minute >= end_minute:
        return 0

    anchor = now
    pos = now
    total = 0
    while pos < target:
        offset = _utcoffset(pos, zone)
        day = (pos + offset).date()
        # local midnight of day under the offset in force at pos
        day_start = datetime.combine(day, time(), tzinfo=timezone.utc) - offset
        run_end = _offset_run_end(pos, min(day_start + _ONE_DAY, target), offset, zone)

        if exclude_weekends and day.weekday() >= 5:
            tick = anchor + timedelta(minutes=_ticks_before(anchor, pos))
            if tick < run_end:
                resume = _wall_instant(day + _ONE_DAY, 0, zone)
                if resume > tick:
                    anchor = pos = resume
                    continue
        else:
            lo = max(pos, day_start + timedelta(minutes=start_minute))
            hi = min(run_end, day_start + timedelta(minutes=end_minute))
            if hi > lo:
                total += _ticks_before(anchor, hi) - _ticks_before(anchor, lo)
                if total > WORKING_MINUTES_CEILING:
                    break
        pos = run_end
    return total


# PUBLIC_INTERFACE
def format_time_remaining(remaining: TimeRemaining) -> str:
    """Render a TimeRemaining as e.g. "2d 3h 15m"; "Time's up!" once expired."""
    if remaining.is_expired:
        return "Time's up!"

    parts = []
    if remaining.days > 0:
        parts.append(f"{remaining.days}d")
    if remaining.hours > 0:
        parts.append(f"{remaining.hours}h")
    if remaining.minutes > 0:
        parts.append(f"{remaining.minutes}m")
    if remaining.seconds > 0:
        parts.append(f"{remaining.seconds}s")
    return " ".join(parts) or "0s"


# PUBLIC_INTERFACE
def parse_clock_time(value: Any) -> Optional[int]:
    """
    Parse an "HH:MM" string into minutes after midnight; None if unusable.

    Anything after the minutes ("09:00:00") is ignored.
    """
    if not isinstance(value, str):
        return None
    parts = value.strip().split(":")
    if len(parts) < 2:
        return None
    try:
        h, m = int(parts[0]), int(parts[1])
    except ValueError:
        return None
    if h < 0 or m < 0:
        return None
    return h * 60 + m


def _parse_window(working_hours: Optional[Mapping[str, Any]]) -> Optional[Tuple[int, int, bool]]:
    if not working_hours:
        return None
    start = parse_clock_time(working_hours.get("start"))
    end = parse_clock_time(working_hours.get("end"))
    if start is None or end is None:
        return None
    return start, end, bool(working_hours.get("exclude_weekends", False))


def _load_zone(name: str) -> Optional[tzinfo]:
    if name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        logger.debug("Unknown timezone %r; using natural time", name)
        return None


def _wall_instant(day: date, minute_of_day: int, zone: tzinfo) -> datetime:
    """UTC instant of a local wall-clock time; minute 1440 is the next midnight."""
    local = datetime.combine(day, time(), tzinfo=zone) + timedelta(minutes=minute_of_day)
    return local.astimezone(timezone.utc)


def _ticks_before(anchor: datetime, limit: datetime) -> int:
    """Number of ticks anchor + k minutes (k >= 0) strictly before limit."""
    span = (limit - anchor) // _MICROSECOND
    if span <= 0:
        return 0
    return -(-span // _MINUTE_US)


def _utcoffset(instant: datetime, zone: tzinfo) -> timedelta:
    return instant.astimezone(zone).utcoffset() or timedelta(0)


def _offset_run_end(start: datetime, limit: datetime, offset: timedelta, zone: tzinfo) -> datetime:
    """
    End of the stretch from start during which zone keeps the given offset, capped at limit.

    Assumes at most one offset change between start and limit (limit is never
    more than a day away).
    """
    last = limit - _MICROSECOND
    if last <= start or _utcoffset(last, zone) == offset:
        return limit
    lo, hi = start, last
    while hi - lo > _MICROSECOND:
        mid = lo + (hi - lo) // 2
        if _utcoffset(mid, zone) == offset:
            lo = mid
        else:
            hi = mid
    return hi
