"""
Scheduling Service

Public operations of the engine. Each one validates in the same order,
cheapest first, and stops at the first failure:

    1. resolve the token / id (NotFound)
    2. status (AlreadyCancelled)
    3. input: parseable, not in the past, inside the hard ceiling
    4. no-op reschedule
    5. conflict check (inside the ledger, with self-exclusion)
    6. commit
    7. enqueue side effects; they never undo the commit
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from bookwell import db
from bookwell.models import AvailabilityRules, Booking, EventType
from bookwell.models.booking import CANCELLED, CONFIRMED

from . import outbox as effects
from .availability import Slot
from .errors import (
    AlreadyCancelledError,
    InvalidInputError,
    NoOpRescheduleError,
    NotFoundError,
    OutOfWindowError,
)
from .ledger import BookingDraft
from .timemath import get_timezone, parse_date, parse_instant, utcnow


log = logging.getLogger(__name__)

MAX_BOOKING_WINDOW_DAYS = 365
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_RE = re.compile(r"^\+?[\d\s\-()]+$")


def text_field(data: dict, key: str) -> str:
    """``data[key]`` stripped; missing or null gives an empty string."""
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise InvalidInputError(f"{key} must be a string")
    return value.strip()


@dataclass
class GuestDetails:
    name: str
    email: str
    phone: Optional[str] = None
    company: Optional[str] = None
    notes: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "GuestDetails":
        return cls(
            name=text_field(data, "name"),
            email=text_field(data, "email").lower(),
            phone=text_field(data, "phone") or None,
            company=text_field(data, "company") or None,
            notes=text_field(data, "notes") or None,
        )

    def validate(self) -> None:
        if not self.name:
            raise InvalidInputError("Name is required")
        if not self.email or not EMAIL_RE.match(self.email):
            raise InvalidInputError("A valid email is required")
        if self.phone and not PHONE_RE.match(self.phone):
            raise InvalidInputError("Invalid phone number format")


class SchedulingService:

    def __init__(self, ledger, resolver, outbox=None, clock: Callable[[], datetime] = utcnow,
                 max_window_days: int = MAX_BOOKING_WINDOW_DAYS):
        self.ledger = ledger
        self.resolver = resolver
        self.outbox = outbox
        self.clock = clock
        self.max_window_days = max_window_days

    # ------------------------------------------------------------ availability

    def list_slots(self, event_type_ref, date_str, guest_tz: str,
                   include_unavailable: bool = False) -> List[Slot]:
        event_type = self._active_event_type(event_type_ref)
        target = parse_date(date_str)
        get_timezone(guest_tz)
        now = self.clock()
        self._check_date_ceiling(target, now)
        rules = AvailabilityRules.for_host(event_type.user_id)
        return self.resolver.resolve(
            event_type, rules, target, guest_tz, now,
            include_unavailable=include_unavailable,
        )

    def reschedule_availability(self, token: str, date_str, guest_tz: Optional[str] = None) -> List[Slot]:
        booking = self.ledger.find_by_reschedule_token(token)
        self._require_confirmed(booking)
        target = parse_date(date_str)
        guest_tz = guest_tz or booking.timezone
        get_timezone(guest_tz)
        now = self.clock()
        self._check_date_ceiling(target, now)
        rules = AvailabilityRules.for_host(booking.host_id)
        return self.resolver.resolve(
            booking.event_type, rules, target, guest_tz, now,
            exclude_booking_id=booking.id,
        )

    # --------------------------------------------------------------- booking

    def create_booking(self, event_type_ref, guest: GuestDetails, start_utc,
                       guest_tz: Optional[str] = None) -> Booking:
        event_type = self._active_event_type(event_type_ref)

        guest.validate()
        guest_tz = guest_tz or "UTC"
        get_timezone(guest_tz)
        start = parse_instant(start_utc)
        now = self.clock()
        self._check_window(start, now)
        rules = AvailabilityRules.for_host(event_type.user_id)
        self._check_rules(start, now, rules)
        if not self.resolver.fits_schedule(event_type, rules, start):
            raise InvalidInputError("This time is not an available slot")

        booking = self.ledger.create(BookingDraft(
            event_type=event_type,
            guest_name=guest.name,
            guest_email=guest.email,
            guest_phone=guest.phone,
            guest_company=guest.company,
            notes=guest.notes,
            start=start,
            timezone=guest_tz,
        ))

        self._enqueue(booking.id, [
            (effects.CALENDAR_SYNC, {}),
            (effects.EMAIL_BOOKING_CONFIRMED, {}),
            (effects.EMAIL_HOST_NEW_BOOKING, {}),
        ])
        return booking

    def reschedule_by_token(self, token: str, start_utc, guest_tz: Optional[str] = None) -> Booking:
        booking = self.ledger.find_by_reschedule_token(token)
        return self._reschedule(booking, start_utc, guest_tz, initiated_by="guest")

    def reschedule_by_host(self, host_id, booking_id, start_utc) -> Booking:
        booking = self._host_booking(host_id, booking_id)
        return self._reschedule(booking, start_utc, None, initiated_by="host")

    def cancel_by_token(self, token: str, reason: Optional[str] = None) -> Booking:
        booking = self.ledger.find_by_cancel_token(token)
        return self._cancel(booking, reason, cancelled_by="guest")

    def cancel_by_host(self, host_id, booking_id, reason: Optional[str] = None) -> Booking:
        booking = self._host_booking(host_id, booking_id)
        return self._cancel(booking, reason, cancelled_by="host")

    def mark_status(self, host_id, booking_id, status: str) -> Booking:
        booking = self._host_booking(host_id, booking_id)
        return self.ledger.mark_status(booking.id, status)

    def manage_view(self, token: str) -> Booking:
        """Look a booking up by either of its tokens."""
        try:
            return self.ledger.find_by_cancel_token(token)
        except NotFoundError:
            return self.ledger.find_by_reschedule_token(token)

    # -------------------------------------------------------------- internals

    def _reschedule(self, booking: Booking, start_utc, guest_tz, initiated_by: str) -> Booking:
        self._require_confirmed(booking)

        new_start = parse_instant(start_utc)
        if guest_tz:
            get_timezone(guest_tz)
        now = self.clock()
        self._check_window(new_start, now)

        if new_start == booking.start:
            raise NoOpRescheduleError()

        rules = AvailabilityRules.for_host(booking.host_id)
        if initiated_by == "guest":
            self._check_rules(new_start, now, rules)
            if not self.resolver.fits_schedule(booking.event_type, rules, new_start):
                raise InvalidInputError("This time is not an available slot")

        old_start, old_end = booking.start, booking.end
        booking = self.ledger.reschedule(booking.id, new_start, timezone=guest_tz)

        # Lateness is judged against the meeting being moved, not its new time.
        payload = {
            "old_start": old_start.isoformat(),
            "old_end": old_end.isoformat(),
            "initiated_by": initiated_by,
            "within_notice_period": self._within_notice(old_start, now, rules),
        }
        if payload["within_notice_period"]:
            log.info("Booking %s rescheduled by %s inside the notice period", booking.id, initiated_by)
        self._enqueue(booking.id, [
            (effects.CALENDAR_SYNC, {}),
            (effects.EMAIL_RESCHEDULE_GUEST, payload),
            (effects.EMAIL_RESCHEDULE_HOST, payload),
        ])
        return booking

    def _cancel(self, booking: Booking, reason, cancelled_by: str) -> Booking:
        if booking.status == CANCELLED:
            raise AlreadyCancelledError()

        booking = self.ledger.cancel(booking.id, reason)

        rules = AvailabilityRules.for_host(booking.host_id)
        payload = {
            "reason": booking.cancellation_reason,
            "cancelled_by": cancelled_by,
            "within_notice_period": self._within_notice(booking.start, self.clock(), rules),
        }
        if payload["within_notice_period"]:
            log.info("Booking %s cancelled by %s inside the notice period", booking.id, cancelled_by)
        self._enqueue(booking.id, [
            (effects.CALENDAR_SYNC, {}),
            (effects.EMAIL_CANCELLATION_GUEST, payload),
            (effects.EMAIL_CANCELLATION_HOST, payload),
        ])
        return booking

    def _active_event_type(self, ref) -> EventType:
        if isinstance(ref, EventType):
            event_type = ref
        elif isinstance(ref, int):
            event_type = db.session.get(EventType, ref)
        elif isinstance(ref, str) and ref:
            event_type = EventType.query.filter_by(slug=ref).first()
        else:
            event_type = None
        if not event_type or not event_type.is_active:
            raise NotFoundError()
        return event_type

    def _host_booking(self, host_id, booking_id) -> Booking:
        booking = self.ledger.get(booking_id)
        if booking.host_id != host_id:
            raise NotFoundError()
        return booking

    @staticmethod
    def _require_confirmed(booking: Booking) -> None:
        if booking.status == CANCELLED:
            raise AlreadyCancelledError()
        if booking.status != CONFIRMED:
            raise InvalidInputError("This booking can no longer be changed")

    def _check_window(self, start: datetime, now: datetime) -> None:
        if start < now:
            raise OutOfWindowError("Cannot book a time in the past")
        if start - now > timedelta(days=self.max_window_days):
            raise OutOfWindowError(f"Cannot book more than {self.max_window_days} days ahead")

    def _check_date_ceiling(self, target, now: datetime) -> None:
        if target > (now + timedelta(days=self.max_window_days)).date():
            raise OutOfWindowError(f"Cannot book more than {self.max_window_days} days ahead")

    @staticmethod
    def _check_rules(start: datetime, now: datetime, rules) -> None:
        if start < now + timedelta(minutes=rules.min_notice_min):
            raise OutOfWindowError("This time is inside the host's minimum notice period")
        if start > now + timedelta(days=rules.max_advance_days):
            raise OutOfWindowError("This time is too far in advance")

    @staticmethod
    def _within_notice(start: datetime, now: datetime, rules) -> bool:
        minutes_until = (start - now).total_seconds() / 60
        return 0 < minutes_until < rules.min_notice_min

    def _enqueue(self, booking_id: int, items) -> None:
        if self.outbox is None:
            return
        self.outbox.enqueue(booking_id, items)
