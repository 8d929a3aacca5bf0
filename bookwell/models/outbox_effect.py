import json
from datetime import datetime

from bookwell import db


PENDING = 'pending'
DONE = 'done'
FAILED = 'failed'


class OutboxEffect(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey('booking.id'), nullable=False, index=True)
    kind = db.Column(db.String(64), nullable=False)
    payload = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default=PENDING, index=True)
    attempts = db.Column(db.Integer, nullable=False, default=0)
    last_error = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    processed_at = db.Column(db.DateTime, nullable=True)

    @property
    def data(self) -> dict:
        return json.loads(self.payload) if self.payload else {}
