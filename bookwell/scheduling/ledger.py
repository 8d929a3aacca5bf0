"""
Booking Ledger

The single authority for conflict-checked mutation of bookings. Every
check-then-write for a host runs while holding that host's lock, so two
guests racing for the same slot produce exactly one booking.
"""

import hmac
import logging
import secrets
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from bookwell import db
from bookwell.models import AvailabilityRules, Booking, EventType
from bookwell.models.booking import CANCELLED, COMPLETED, CONFIRMED, NO_SHOW

from .errors import (
    AlreadyCancelledError,
    ConflictError,
    InvalidInputError,
    LedgerBusyError,
    NotFoundError,
)
from .timemath import Interval, intervals_overlap, to_naive_utc


log = logging.getLogger(__name__)

CANCELLATION_REASON_MAX_LENGTH = 1000


@dataclass
class BookingDraft:
    event_type: EventType
    guest_name: str
    guest_email: str
    start: datetime
    timezone: str = "UTC"
    guest_phone: Optional[str] = None
    guest_company: Optional[str] = None
    notes: Optional[str] = None


class HostLocks:
    """One mutex per host id; hosts never share a lock."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = {}

    def _lock_for(self, host_id) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(host_id)
            if lock is None:
                lock = self._locks[host_id] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, host_id, timeout: float):
        lock = self._lock_for(host_id)
        if not lock.acquire(timeout=timeout):
            log.warning("Timed out waiting for booking lock of host %s", host_id)
            raise LedgerBusyError()
        try:
            yield
        finally:
            lock.release()


def generate_token() -> str:
    return secrets.token_hex(32)


def buffered_interval(start: datetime, duration_min: int, before: int, after: int) -> Interval:
    end = start + timedelta(minutes=duration_min)
    return Interval(start - timedelta(minutes=before), end + timedelta(minutes=after))


class BookingLedger:

    def __init__(self, lock_timeout: float = 10.0, artifact_store=None,
                 reason_max_length: int = CANCELLATION_REASON_MAX_LENGTH):
        self.locks = HostLocks()
        self.lock_timeout = lock_timeout
        self.artifact_store = artifact_store
        self.reason_max_length = reason_max_length

    # ------------------------------------------------------------------ reads

    def get(self, booking_id) -> Booking:
        booking = db.session.get(Booking, booking_id) if booking_id is not None else None
        if not booking:
            raise NotFoundError()
        return booking

    def find_by_cancel_token(self, token: str) -> Booking:
        return self._find_by_token(Booking.cancel_token, "cancel_token", token)

    def find_by_reschedule_token(self, token: str) -> Booking:
        return self._find_by_token(Booking.reschedule_token, "reschedule_token", token)

    def _find_by_token(self, column, attr: str, token: str) -> Booking:
        if not token or not isinstance(token, str):
            raise NotFoundError()
        booking = Booking.query.filter(column == token).first()
        if not booking or not hmac.compare_digest(getattr(booking, attr), token):
            raise NotFoundError()
        return booking

    def bookings_in_window(self, host_id, window: Interval,
                           exclude_booking_id=None) -> List[Booking]:
        """Confirmed bookings whose buffered interval touches the window."""
        query = Booking.query.filter(
            Booking.host_id == host_id,
            Booking.status == CONFIRMED,
            Booking.blocked_start < to_naive_utc(window.end),
            Booking.blocked_end > to_naive_utc(window.start),
        )
        if exclude_booking_id is not None:
            query = query.filter(Booking.id != exclude_booking_id)
        return query.order_by(Booking.blocked_start.asc()).all()

    def check_conflict(self, host_id, candidate: Interval, exclude_booking_id=None) -> bool:
        """``candidate`` must already include the new booking's buffers."""
        existing = self.bookings_in_window(host_id, candidate, exclude_booking_id)
        return any(intervals_overlap(candidate, b.blocked_interval) for b in existing)

    # -------------------------------------------------------------- mutations

    def create(self, draft: BookingDraft) -> Booking:
        event_type = draft.event_type
        host_id = event_type.user_id
        rules = AvailabilityRules.for_host(host_id)
        before, after = event_type.effective_buffers(rules)
        start = draft.start
        end = start + timedelta(minutes=event_type.duration_min)
        blocked = buffered_interval(start, event_type.duration_min, before, after)

        with self._serialized(host_id):
            if self.check_conflict(host_id, blocked):
                log.info("Conflict creating booking for host %s at %s", host_id, start.isoformat())
                raise ConflictError()
            booking = Booking(
                event_type_id=event_type.id,
                host_id=host_id,
                guest_name=draft.guest_name,
                guest_email=draft.guest_email,
                guest_phone=draft.guest_phone,
                guest_company=draft.guest_company,
                notes=draft.notes,
                start_utc=to_naive_utc(start),
                end_utc=to_naive_utc(end),
                blocked_start=to_naive_utc(blocked.start),
                blocked_end=to_naive_utc(blocked.end),
                timezone=draft.timezone,
                status=CONFIRMED,
                cancel_token=generate_token(),
                reschedule_token=generate_token(),
            )
            db.session.add(booking)
            self._commit()

        log.info("Booking %s created for host %s at %s", booking.id, host_id, start.isoformat())
        return booking

    def reschedule(self, booking_id, new_start: datetime, timezone: Optional[str] = None) -> Booking:
        booking = self.get(booking_id)
        host_id = booking.host_id
        event_type = booking.event_type
        rules = AvailabilityRules.for_host(host_id)
        before, after = event_type.effective_buffers(rules)
        new_end = new_start + timedelta(minutes=event_type.duration_min)
        blocked = buffered_interval(new_start, event_type.duration_min, before, after)

        with self._serialized(host_id):
            db.session.refresh(booking)
            if booking.status == CANCELLED:
                raise AlreadyCancelledError()
            if booking.status != CONFIRMED:
                raise InvalidInputError("Only confirmed bookings can be rescheduled")
            if self.check_conflict(host_id, blocked, exclude_booking_id=booking.id):
                log.info("Conflict rescheduling booking %s to %s", booking.id, new_start.isoformat())
                raise ConflictError()
            booking.start_utc = to_naive_utc(new_start)
            booking.end_utc = to_naive_utc(new_end)
            booking.blocked_start = to_naive_utc(blocked.start)
            booking.blocked_end = to_naive_utc(blocked.end)
            if timezone:
                booking.timezone = timezone
            self._commit()

        log.info("Booking %s rescheduled to %s", booking.id, new_start.isoformat())
        self._invalidate_artifacts(booking.id)
        return booking

    def cancel(self, booking_id, reason: Optional[str] = None) -> Booking:
        booking = self.get(booking_id)
        with self._serialized(booking.host_id):
            db.session.refresh(booking)
            if booking.status == CANCELLED:
                raise AlreadyCancelledError()
            if booking.status != CONFIRMED:
                raise InvalidInputError("Only confirmed bookings can be cancelled")
            booking.status = CANCELLED
            booking.cancellation_reason = self.clean_reason(reason)
            self._commit()

        log.info("Booking %s cancelled", booking.id)
        return booking

    def mark_status(self, booking_id, status: str) -> Booking:
        """Host-only markings once a meeting has taken place (or not)."""
        if status not in (COMPLETED, NO_SHOW):
            raise InvalidInputError(f"Invalid status: {status}")
        booking = self.get(booking_id)
        with self._serialized(booking.host_id):
            db.session.refresh(booking)
            if booking.status == CANCELLED:
                raise AlreadyCancelledError()
            if booking.status != CONFIRMED:
                raise InvalidInputError(f"Booking is already marked {booking.status}")
            booking.status = status
            self._commit()
        return booking

    def clean_reason(self, reason) -> Optional[str]:
        if not reason:
            return None
        return str(reason)[: self.reason_max_length]

    # ---------------------------------------------------------------- helpers

    @contextmanager
    def _serialized(self, host_id):
        with self.locks.hold(host_id, self.lock_timeout):
            # Drop any transaction opened before the lock so the checks below
            # read what the previous holder committed.
            db.session.rollback()
            yield

    def _commit(self) -> None:
        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    def _invalidate_artifacts(self, booking_id) -> None:
        if not self.artifact_store:
            return
        try:
            self.artifact_store.invalidate(booking_id)
        except Exception as e:
            log.warning("Could not invalidate artifacts for booking %s: %s", booking_id, e)
