"""
Outbox handlers: what actually happens after a booking change commits.
"""

import logging

from bookwell import db
from bookwell.models import AvailabilityRules
from bookwell.scheduling import outbox as effects
from bookwell.scheduling.timemath import ensure_utc, parse_instant, to_timezone


log = logging.getLogger(__name__)


def format_when(instant, tz_name: str) -> str:
    local = to_timezone(instant, tz_name)
    return local.strftime('%A, %B %d, %Y %I:%M %p').replace(' 0', ' ')


class SideEffects:

    def __init__(self, busy_calendar, dispatcher, base_url: str = "http://localhost:5000"):
        self.busy_calendar = busy_calendar
        self.dispatcher = dispatcher
        self.base_url = base_url.rstrip('/')

    def register(self, outbox) -> None:
        outbox.register(effects.CALENDAR_SYNC, self.sync_calendar)
        outbox.register(effects.EMAIL_BOOKING_CONFIRMED, self.email_booking_confirmed)
        outbox.register(effects.EMAIL_HOST_NEW_BOOKING, self.email_host_new_booking)
        outbox.register(effects.EMAIL_CANCELLATION_GUEST, self.email_cancellation_guest)
        outbox.register(effects.EMAIL_CANCELLATION_HOST, self.email_cancellation_host)
        outbox.register(effects.EMAIL_RESCHEDULE_GUEST, self.email_reschedule_guest)
        outbox.register(effects.EMAIL_RESCHEDULE_HOST, self.email_reschedule_host)

    # ---------------------------------------------------------------- calendar

    def sync_calendar(self, booking, payload) -> None:
        """Make the external event match the booking; safe to run twice."""
        if booking.calendar_event_id:
            self.busy_calendar.delete_event(booking.host_id, booking.calendar_event_id)
            log.info("Removed calendar event %s of booking %s", booking.calendar_event_id, booking.id)
            booking.calendar_event_id = None
            db.session.commit()
        if booking.is_confirmed:
            booking.calendar_event_id = self.busy_calendar.create_event(booking.host_id, booking)
            db.session.commit()

    # ------------------------------------------------------------------ emails

    def email_booking_confirmed(self, booking, payload) -> None:
        self.dispatcher.send("booking_confirmation", booking.guest_email, self._guest_data(booking, payload))

    def email_host_new_booking(self, booking, payload) -> None:
        self.dispatcher.send("host_new_booking", booking.host.email, self._host_data(booking, payload),
                             user_id=booking.host_id, preference="new_booking")

    def email_cancellation_guest(self, booking, payload) -> None:
        self.dispatcher.send("cancellation_booker", booking.guest_email, self._guest_data(booking, payload))

    def email_cancellation_host(self, booking, payload) -> None:
        self.dispatcher.send("cancellation_host", booking.host.email, self._host_data(booking, payload),
                             user_id=booking.host_id, preference="cancellation")

    def email_reschedule_guest(self, booking, payload) -> None:
        self.dispatcher.send("reschedule_booker", booking.guest_email, self._guest_data(booking, payload))

    def email_reschedule_host(self, booking, payload) -> None:
        self.dispatcher.send("reschedule_host", booking.host.email, self._host_data(booking, payload),
                             user_id=booking.host_id, preference="reschedule")

    # ----------------------------------------------------------------- helpers

    def _data(self, booking, payload, tz_name: str) -> dict:
        event_type = booking.event_type
        data = {
            "booking_id": booking.id,
            "event_name": event_type.name,
            "duration": event_type.duration_min,
            "host_name": booking.host.name,
            "guest_name": booking.guest_name,
            "guest_email": booking.guest_email,
            "guest_phone": booking.guest_phone,
            "guest_company": booking.guest_company,
            "notes": booking.notes,
            "timezone": tz_name,
            "start_label": format_when(booking.start, tz_name),
        }
        data.update(payload or {})
        if data.get("old_start"):
            data["old_start_label"] = format_when(ensure_utc(parse_instant(data["old_start"])), tz_name)
        return data

    def _guest_data(self, booking, payload) -> dict:
        data = self._data(booking, payload, booking.timezone)
        if booking.is_confirmed:
            data["reschedule_url"] = f"{self.base_url}/booking/reschedule/{booking.reschedule_token}"
            data["cancel_url"] = f"{self.base_url}/booking/cancel/{booking.cancel_token}"
        return data

    def _host_data(self, booking, payload) -> dict:
        rules = AvailabilityRules.for_host(booking.host_id)
        return self._data(booking, payload, rules.timezone)
