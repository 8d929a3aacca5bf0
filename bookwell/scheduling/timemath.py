"""
Timezone-aware interval arithmetic.

Every instant handled here is a timezone-aware UTC ``datetime``; local wall
clock values only appear at the edges (weekly blocks in, display labels out).
Intervals are half-open, so back-to-back intervals never overlap.
"""

from collections import namedtuple
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List

import pytz

from .errors import InvalidInputError, InvalidTimezoneError


Interval = namedtuple("Interval", ["start", "end"])


def get_timezone(tz_name: str):
    if not tz_name or not isinstance(tz_name, str):
        raise InvalidTimezoneError()
    try:
        return pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        raise InvalidTimezoneError(f"Invalid timezone: {tz_name}") from None


def is_valid_timezone(tz_name) -> bool:
    try:
        get_timezone(tz_name)
    except InvalidTimezoneError:
        return False
    return True


def ensure_utc(dt: datetime) -> datetime:
    # Naive values come back from the database and are UTC by convention.
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_naive_utc(dt: datetime) -> datetime:
    return ensure_utc(dt).replace(tzinfo=None)


def to_timezone(instant: datetime, tz_name: str) -> datetime:
    """Project a UTC instant onto the wall clock of ``tz_name``."""
    tz = get_timezone(tz_name)
    return ensure_utc(instant).astimezone(tz)


def from_timezone(local: datetime, tz_name: str) -> datetime:
    """Resolve a wall-clock value in ``tz_name`` to a UTC instant.

    Naive values are localized (DST-aware); aware values are simply converted.
    """
    tz = get_timezone(tz_name)
    if local.tzinfo is None:
        local = tz.normalize(tz.localize(local))
    return local.astimezone(timezone.utc)


def wall_clock_instants(local: datetime, tz_name: str) -> List[datetime]:
    """Every UTC instant at which the clocks in ``tz_name`` read ``local``.

    Usually one; two during a fall-back repeat (earlier first); none inside a
    spring-forward gap.
    """
    tz = get_timezone(tz_name)
    try:
        return [tz.localize(local, is_dst=None).astimezone(timezone.utc)]
    except pytz.AmbiguousTimeError:
        return [tz.localize(local, is_dst=flag).astimezone(timezone.utc) for flag in (True, False)]
    except pytz.NonExistentTimeError:
        return []


def expand_weekly_block(weekday: int, block, host_tz: str, target_date: date) -> Interval:
    """Resolve a host-local clock block on ``target_date`` to a UTC interval."""
    if target_date.weekday() != int(weekday):
        raise InvalidInputError(
            f"{target_date.isoformat()} is not weekday {int(weekday)}"
        )
    start = from_timezone(datetime.combine(target_date, block.start), host_tz)
    end = from_timezone(datetime.combine(target_date, block.end), host_tz)
    return Interval(start, end)


def intervals_overlap(a, b) -> bool:
    return a.start < b.end and a.end > b.start


def merge_intervals(intervals: Iterable) -> List[Interval]:
    """Sort and merge overlapping or adjacent intervals."""
    merged: List[Interval] = []
    for iv in sorted(intervals, key=lambda i: (i.start, i.end)):
        if iv.end <= iv.start:
            continue
        if merged and iv.start <= merged[-1].end:
            last = merged[-1]
            merged[-1] = Interval(last.start, max(last.end, iv.end))
        else:
            merged.append(Interval(iv.start, iv.end))
    return merged


def subtract_intervals(base, busy: Iterable) -> List[Interval]:
    free: List[Interval] = []
    cursor = base.start
    for b in merge_intervals(busy):
        if b.end <= cursor:
            continue
        if b.start >= base.end:
            break
        if b.start > cursor:
            free.append(Interval(cursor, b.start))
        cursor = max(cursor, b.end)
        if cursor >= base.end:
            break
    if cursor < base.end:
        free.append(Interval(cursor, base.end))
    return free


def ceil_to_quantum(local: datetime, quantum_minutes: int) -> datetime:
    """Round a local wall-clock value up to the next grid boundary from midnight."""
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    elapsed = local - midnight
    step = timedelta(minutes=quantum_minutes)
    remainder = elapsed % step
    if remainder:
        return local + (step - remainder)
    return local


def parse_instant(value) -> datetime:
    if isinstance(value, datetime):
        return ensure_utc(value)
    if not value or not isinstance(value, str):
        raise InvalidInputError("A start time is required")
    s = value.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(s))
    except ValueError:
        raise InvalidInputError(f"Invalid date/time: {value}") from None


def parse_date(value) -> date:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise InvalidInputError(f"Invalid date: {value}") from None


def format_label(local: datetime) -> str:
    return local.strftime("%I:%M %p").lstrip("0")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
