from datetime import datetime

from bookwell import db


class CalendarToken(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, unique=True, index=True)
    # Google authorized-user JSON, written by the OAuth connect flow
    credentials_json = db.Column(db.Text, nullable=False)
    calendar_id = db.Column(db.String(255), nullable=False, default='primary')
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
