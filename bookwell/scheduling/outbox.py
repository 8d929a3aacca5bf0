"""
Outbox of post-commit side effects.

A committed booking change enqueues its effects (calendar sync, emails) as
rows keyed by booking id. ``drain`` delivers them later; a failing effect is
retried on the next drain until ``max_attempts``, and never touches the
booking itself.
"""

import json
import logging
from datetime import datetime
from typing import Callable, Dict, Iterable

from bookwell import db
from bookwell.models import Booking, OutboxEffect
from bookwell.models.outbox_effect import DONE, FAILED, PENDING


log = logging.getLogger(__name__)

CALENDAR_SYNC = "calendar.sync"
EMAIL_BOOKING_CONFIRMED = "email.booking_confirmed"
EMAIL_HOST_NEW_BOOKING = "email.host_new_booking"
EMAIL_CANCELLATION_GUEST = "email.cancellation_guest"
EMAIL_CANCELLATION_HOST = "email.cancellation_host"
EMAIL_RESCHEDULE_GUEST = "email.reschedule_guest"
EMAIL_RESCHEDULE_HOST = "email.reschedule_host"


class Outbox:

    def __init__(self, max_attempts: int = 5):
        self.max_attempts = max_attempts
        self.handlers: Dict[str, Callable] = {}

    def register(self, kind: str, handler: Callable) -> None:
        """``handler(booking, payload)``; raise to mark the attempt failed."""
        self.handlers[kind] = handler

    def enqueue(self, booking_id: int, effects: Iterable) -> list:
        """Add ``(kind, payload)`` pairs for a booking in one commit."""
        rows = []
        for kind, payload in effects:
            row = OutboxEffect(
                booking_id=booking_id,
                kind=kind,
                payload=json.dumps(payload or {}, default=str),
                status=PENDING,
            )
            db.session.add(row)
            rows.append(row)
        try:
            db.session.commit()
        except Exception as e:
            # The booking is already committed; losing a notification must not fail the request.
            db.session.rollback()
            log.error("Could not enqueue effects for booking %s: %s", booking_id, e)
            return []
        return rows

    def pending(self, booking_id=None, limit=None) -> list:
        query = OutboxEffect.query.filter_by(status=PENDING)
        if booking_id is not None:
            query = query.filter_by(booking_id=booking_id)
        query = query.order_by(OutboxEffect.id.asc())
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def drain(self, limit: int = 100) -> int:
        """Deliver pending effects. Returns how many succeeded."""
        delivered = 0
        for effect in self.pending(limit=limit):
            if self._run(effect):
                delivered += 1
        return delivered

    def _run(self, effect: OutboxEffect) -> bool:
        effect_id = effect.id
        attempts = effect.attempts + 1
        handler = self.handlers.get(effect.kind)
        try:
            if handler is None:
                raise LookupError(f"No handler for effect {effect.kind}")
            booking = db.session.get(Booking, effect.booking_id)
            handler(booking, effect.data)
        except Exception as e:
            db.session.rollback()
            effect = db.session.get(OutboxEffect, effect_id)
            effect.attempts = attempts
            effect.last_error = str(e)[:500]
            if effect.attempts >= self.max_attempts:
                effect.status = FAILED
            log.warning(
                "Effect %s (%s) for booking %s failed, attempt %s: %s",
                effect.id, effect.kind, effect.booking_id, effect.attempts, e,
            )
            db.session.commit()
            return False

        effect = db.session.get(OutboxEffect, effect_id)
        effect.attempts = attempts
        effect.status = DONE
        effect.processed_at = datetime.utcnow()
        db.session.commit()
        return True

