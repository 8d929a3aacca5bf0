from datetime import datetime

from bookwell import db
from bookwell.scheduling.timemath import Interval, ensure_utc


CONFIRMED = 'confirmed'
CANCELLED = 'cancelled'
COMPLETED = 'completed'
NO_SHOW = 'no_show'
STATUSES = (CONFIRMED, CANCELLED, COMPLETED, NO_SHOW)


class Booking(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    event_type_id = db.Column(db.Integer, db.ForeignKey('event_type.id'), nullable=False, index=True)
    host_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    guest_name = db.Column(db.String(120), nullable=False)
    guest_email = db.Column(db.String(255), nullable=False, index=True)
    guest_phone = db.Column(db.String(40), nullable=True)
    guest_company = db.Column(db.String(200), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    # naive UTC
    start_utc = db.Column(db.DateTime, nullable=False, index=True)
    end_utc = db.Column(db.DateTime, nullable=False)
    # [start - buffer_before, end + buffer_after], what conflict checks compare
    blocked_start = db.Column(db.DateTime, nullable=False, index=True)
    blocked_end = db.Column(db.DateTime, nullable=False, index=True)
    timezone = db.Column(db.String(64), default='UTC', nullable=False)
    status = db.Column(db.String(20), default=CONFIRMED, nullable=False, index=True)
    cancel_token = db.Column(db.String(64), nullable=False, unique=True, index=True)
    reschedule_token = db.Column(db.String(64), nullable=False, unique=True, index=True)
    cancellation_reason = db.Column(db.Text, nullable=True)
    calendar_event_id = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    event_type = db.relationship('EventType')
    host = db.relationship('User')

    @property
    def start(self) -> datetime:
        return ensure_utc(self.start_utc)

    @property
    def end(self) -> datetime:
        return ensure_utc(self.end_utc)

    @property
    def blocked_interval(self) -> Interval:
        return Interval(ensure_utc(self.blocked_start), ensure_utc(self.blocked_end))

    @property
    def is_confirmed(self) -> bool:
        return self.status == CONFIRMED

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'eventTypeId': self.event_type_id,
            'guestName': self.guest_name,
            'guestEmail': self.guest_email,
            'guestPhone': self.guest_phone,
            'guestCompany': self.guest_company,
            'notes': self.notes,
            'startTime': self.start.isoformat(),
            'endTime': self.end.isoformat(),
            'timezone': self.timezone,
            'status': self.status,
            'cancellationReason': self.cancellation_reason,
        }

    def to_public_dict(self) -> dict:
        """What a token holder may see about their own booking."""
        return {
            'eventTypeName': self.event_type.name if self.event_type else None,
            'duration': self.event_type.duration_min if self.event_type else None,
            'hostName': self.host.name if self.host else None,
            'guestName': self.guest_name,
            'startTime': self.start.isoformat(),
            'endTime': self.end.isoformat(),
            'timezone': self.timezone,
            'status': self.status,
        }
