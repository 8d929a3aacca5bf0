"""
Availability Resolver

Turns a host's weekly hours, buffers, notice/advance limits and busy time
into the bookable slots of one host-local calendar day, shown in the guest's
timezone.

Algorithm:
    1. Effective buffers: event type override, else the rules' defaults.
    2. Weekday of the date; no blocks (None or []) means no slots.
    3. Each block becomes a UTC working interval.
    4. Busy time = confirmed bookings (buffered) + external calendar busy
       intervals. External failures count as "no busy data".
    5. Working interval minus busy time gives free remainders.
    6. Remainders are sliced on a fixed host-local grid.
    7. Slots before now + min notice or after now + max advance are dropped.
    8. Survivors are labelled in the guest timezone.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import List

from .timemath import (
    Interval,
    ceil_to_quantum,
    expand_weekly_block,
    format_label,
    get_timezone,
    intervals_overlap,
    subtract_intervals,
    to_timezone,
    wall_clock_instants,
)
from .weekly_hours import Weekday


log = logging.getLogger(__name__)

SLOT_QUANTUM_MINUTES = 30


@dataclass(frozen=True)
class Slot:
    local_label: str
    local_time: str
    utc_instant: datetime
    available: bool = True

    def to_dict(self) -> dict:
        return {
            "localLabel": self.local_label,
            "localTime": self.local_time,
            "utcInstant": self.utc_instant.isoformat().replace("+00:00", "Z"),
            "available": self.available,
        }


class AvailabilityResolver:

    def __init__(self, ledger, busy_calendar, quantum_minutes: int = SLOT_QUANTUM_MINUTES):
        if quantum_minutes <= 0:
            raise ValueError("Slot quantum must be positive")
        self.ledger = ledger
        self.busy_calendar = busy_calendar
        self.quantum_minutes = quantum_minutes

    def working_intervals(self, rules, target_date: date) -> List[Interval]:
        weekday = Weekday(target_date.weekday())
        return [
            expand_weekly_block(weekday, block, rules.timezone, target_date)
            for block in rules.hours.blocks_for(weekday)
        ]

    def resolve(self, event_type, rules, target_date: date, guest_tz: str, now: datetime,
                exclude_booking_id=None, include_unavailable: bool = False) -> List[Slot]:
        get_timezone(guest_tz)
        host_id = event_type.user_id
        duration = timedelta(minutes=event_type.duration_min)
        before, after = event_type.effective_buffers(rules)
        buffer_before = timedelta(minutes=before)
        buffer_after = timedelta(minutes=after)

        working = self.working_intervals(rules, target_date)
        if not working:
            return []

        window = Interval(min(w.start for w in working), max(w.end for w in working))
        busy = self._busy(host_id, window, exclude_booking_id)

        earliest = now + timedelta(minutes=rules.min_notice_min)
        latest = now + timedelta(days=rules.max_advance_days)

        slots = {}
        for work in working:
            free = subtract_intervals(work, busy)
            bookable = set()
            for remainder in free:
                for start in self._grid(remainder.start, remainder.end, rules.timezone):
                    if start + duration + buffer_after > remainder.end:
                        break
                    if remainder.start > work.start and start - buffer_before < remainder.start:
                        continue
                    bookable.add(start)

            candidates = bookable
            if include_unavailable:
                candidates = set(
                    s for s in self._grid(work.start, work.end, rules.timezone)
                    if s + duration <= work.end
                )

            for start in candidates:
                if start < earliest or start > latest:
                    continue
                slots[start] = self._slot(start, guest_tz, start in bookable)

        return [slots[k] for k in sorted(slots)]

    def fits_schedule(self, event_type, rules, start: datetime) -> bool:
        """Whether ``start`` is a grid point whose buffered end fits its working block."""
        local_day = to_timezone(start, rules.timezone).date()
        _, after = event_type.effective_buffers(rules)
        end = start + timedelta(minutes=event_type.duration_min + after)
        for work in self.working_intervals(rules, local_day):
            if work.start <= start and end <= work.end:
                return start in set(self._grid(work.start, work.end, rules.timezone))
        return False

    def _grid(self, start_utc: datetime, end_utc: datetime, host_tz: str):
        """UTC instants of host-local grid points in [start_utc, end_utc)."""
        local = to_timezone(start_utc, host_tz).replace(tzinfo=None)
        cursor = ceil_to_quantum(local, self.quantum_minutes)
        step = timedelta(minutes=self.quantum_minutes)
        while True:
            for instant in wall_clock_instants(cursor, host_tz):
                if instant >= end_utc:
                    return
                if instant >= start_utc:
                    yield instant
            cursor += step

    def _busy(self, host_id, window: Interval, exclude_booking_id=None) -> List[Interval]:
        busy = [
            b.blocked_interval
            for b in self.ledger.bookings_in_window(host_id, window, exclude_booking_id)
        ]
        try:
            external = self._external_busy(host_id, window)
        except Exception as e:
            log.warning("Busy calendar unavailable for host %s, ignoring it: %s", host_id, e)
            external = []
        busy.extend(iv for iv in external if intervals_overlap(iv, window))
        return busy

    def _external_busy(self, host_id, window: Interval) -> List[Interval]:
        if self.busy_calendar is None:
            return []
        return list(self.busy_calendar.get_busy_intervals(host_id, window.start, window.end))

    def _slot(self, start: datetime, guest_tz: str, available: bool) -> Slot:
        local = to_timezone(start, guest_tz)
        return Slot(
            local_label=format_label(local),
            local_time=local.isoformat(),
            utc_instant=start,
            available=available,
        )
