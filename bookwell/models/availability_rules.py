import json
from datetime import datetime

from bookwell import db
from bookwell.scheduling.weekly_hours import WeeklyHours


DEFAULT_TIMEZONE = 'UTC'
DEFAULT_MIN_NOTICE_MIN = 1440
DEFAULT_MAX_ADVANCE_DAYS = 60


class AvailabilityRules(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, unique=True, index=True)
    timezone = db.Column(db.String(64), default=DEFAULT_TIMEZONE, nullable=False)
    # JSON string, e.g. {"monday": [{"start": "09:00", "end": "17:00"}], "saturday": null, ...}
    weekly_hours = db.Column(db.Text, nullable=True)
    min_notice_min = db.Column(db.Integer, nullable=False, default=DEFAULT_MIN_NOTICE_MIN)
    max_advance_days = db.Column(db.Integer, nullable=False, default=DEFAULT_MAX_ADVANCE_DAYS)
    default_buffer_before = db.Column(db.Integer, nullable=False, default=0)
    default_buffer_after = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship('User', backref=db.backref('availability_rules', uselist=False))

    @property
    def hours(self) -> WeeklyHours:
        if not self.weekly_hours:
            return WeeklyHours.default()
        return WeeklyHours.from_dict(json.loads(self.weekly_hours))

    @hours.setter
    def hours(self, value: WeeklyHours) -> None:
        self.weekly_hours = json.dumps(value.to_dict())

    @classmethod
    def for_host(cls, user_id: int) -> "AvailabilityRules":
        """Stored rules, or an unsaved instance carrying the defaults."""
        rules = cls.query.filter_by(user_id=user_id).first()
        if rules:
            return rules
        return cls(
            user_id=user_id,
            timezone=DEFAULT_TIMEZONE,
            weekly_hours=None,
            min_notice_min=DEFAULT_MIN_NOTICE_MIN,
            max_advance_days=DEFAULT_MAX_ADVANCE_DAYS,
            default_buffer_before=0,
            default_buffer_after=0,
        )

    def to_dict(self) -> dict:
        return {
            'timezone': self.timezone,
            'weeklyHours': self.hours.to_dict(),
            'minNotice': self.min_notice_min,
            'maxAdvance': self.max_advance_days,
            'defaultBufferBefore': self.default_buffer_before,
            'defaultBufferAfter': self.default_buffer_after,
        }
