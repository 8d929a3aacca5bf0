from bookwell import db


PREFERENCE_KEYS = ('new_booking', 'cancellation', 'reschedule', 'daily_digest')


class NotificationPreferences(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, unique=True, index=True)
    new_booking = db.Column(db.Boolean, nullable=False, default=True)
    cancellation = db.Column(db.Boolean, nullable=False, default=True)
    reschedule = db.Column(db.Boolean, nullable=False, default=True)
    daily_digest = db.Column(db.Boolean, nullable=False, default=True)

    @staticmethod
    def is_enabled(user_id: int, key: str) -> bool:
        if key not in PREFERENCE_KEYS:
            raise ValueError(f"Unknown notification preference: {key}")
        prefs = NotificationPreferences.query.filter_by(user_id=user_id).first()
        if not prefs:
            return True
        return bool(getattr(prefs, key))

    def to_dict(self) -> dict:
        return {
            'newBooking': self.new_booking,
            'cancellation': self.cancellation,
            'reschedule': self.reschedule,
            'dailyDigest': self.daily_digest,
        }
