from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from bookwell import db
from bookwell.models import AvailabilityRules, Booking, EventType, NotificationPreferences
from bookwell.models.booking import STATUSES
from bookwell.scheduling.errors import InvalidInputError, NotFoundError
from bookwell.scheduling.service import text_field
from bookwell.scheduling.timemath import is_valid_timezone
from bookwell.scheduling.weekly_hours import WeeklyHours


host_bp = Blueprint("host", __name__, url_prefix="/api")

MAX_ADVANCE_LIMIT = 365
PREFERENCE_FIELDS = {
    "newBooking": "new_booking",
    "cancellation": "cancellation",
    "reschedule": "reschedule",
    "dailyDigest": "daily_digest",
}


def _service():
    return current_app.extensions["scheduling"]


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidInputError("Expected a JSON object")
    return data


def _int_field(data: dict, key: str, minimum: int, maximum=None, allow_none=False):
    value = data.get(key)
    if value is None and allow_none:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInputError(f"{key} must be an integer")
    if value < minimum or (maximum is not None and value > maximum):
        bounds = f"between {minimum} and {maximum}" if maximum is not None else f"at least {minimum}"
        raise InvalidInputError(f"{key} must be {bounds}")
    return value


# ----------------------------------------------------------- availability rules

@host_bp.route("/availability-rules", methods=["GET"])
@login_required
def get_availability_rules():
    return jsonify(AvailabilityRules.for_host(current_user.id).to_dict())


@host_bp.route("/availability-rules", methods=["PUT"])
@login_required
def update_availability_rules():
    data = _json_body()
    rules = AvailabilityRules.query.filter_by(user_id=current_user.id).first()
    if not rules:
        rules = AvailabilityRules.for_host(current_user.id)
        db.session.add(rules)

    if "timezone" in data:
        tz = text_field(data, "timezone")
        if not is_valid_timezone(tz):
            raise InvalidInputError("Invalid time zone. Please choose a valid IANA time zone (e.g., America/New_York).")
        rules.timezone = tz
    if "weeklyHours" in data:
        rules.hours = WeeklyHours.from_dict(data.get("weeklyHours"))
    if "minNotice" in data:
        rules.min_notice_min = _int_field(data, "minNotice", 0)
    if "maxAdvance" in data:
        rules.max_advance_days = _int_field(data, "maxAdvance", 1, MAX_ADVANCE_LIMIT)
    if "defaultBufferBefore" in data:
        rules.default_buffer_before = _int_field(data, "defaultBufferBefore", 0)
    if "defaultBufferAfter" in data:
        rules.default_buffer_after = _int_field(data, "defaultBufferAfter", 0)

    db.session.commit()
    return jsonify(rules.to_dict())


# ------------------------------------------------------------------ event types

def _own_event_type(event_type_id: int) -> EventType:
    et = db.session.get(EventType, event_type_id)
    if not et or et.user_id != current_user.id:
        raise NotFoundError()
    return et


def _apply_event_type_fields(et: EventType, data: dict) -> None:
    if "name" in data:
        name = text_field(data, "name")
        if not name:
            raise InvalidInputError("Name is required")
        et.name = name
    if "description" in data:
        et.description = text_field(data, "description") or None
    if "duration" in data:
        et.duration_min = _int_field(data, "duration", 1)
    if "bufferBefore" in data:
        et.buffer_before = _int_field(data, "bufferBefore", 0, allow_none=True)
    if "bufferAfter" in data:
        et.buffer_after = _int_field(data, "bufferAfter", 0, allow_none=True)
    if "isActive" in data:
        et.is_active = bool(data.get("isActive"))


@host_bp.route("/event-types", methods=["GET"])
@login_required
def list_event_types():
    items = EventType.query.filter_by(user_id=current_user.id).order_by(EventType.created_at.asc(), EventType.id.asc()).all()
    return jsonify([et.to_dict() for et in items])


@host_bp.route("/event-types", methods=["POST"])
@login_required
def create_event_type():
    data = _json_body()
    if not text_field(data, "name"):
        raise InvalidInputError("Name is required")
    et = EventType(user_id=current_user.id, duration_min=30, is_active=True)
    _apply_event_type_fields(et, data)
    et.slug = EventType.generate_slug(text_field(data, "slug") or et.name)
    db.session.add(et)
    db.session.commit()
    return jsonify(et.to_dict()), 201


@host_bp.route("/event-types/<int:event_type_id>", methods=["PATCH"])
@login_required
def update_event_type(event_type_id):
    et = _own_event_type(event_type_id)
    _apply_event_type_fields(et, _json_body())
    db.session.commit()
    return jsonify(et.to_dict())


# --------------------------------------------------------------------- bookings

@host_bp.route("/bookings", methods=["GET"])
@login_required
def list_bookings():
    query = Booking.query.filter_by(host_id=current_user.id)
    status = request.args.get("status")
    if status:
        if status not in STATUSES:
            raise InvalidInputError(f"Invalid status: {status}")
        query = query.filter_by(status=status)
    items = query.order_by(Booking.start_utc.asc(), Booking.id.asc()).all()
    return jsonify([b.to_dict() for b in items])


@host_bp.route("/bookings/<int:booking_id>/reschedule", methods=["POST"])
@login_required
def reschedule_booking(booking_id):
    data = _json_body()
    booking = _service().reschedule_by_host(current_user.id, booking_id, data.get("startTime"))
    return jsonify(booking.to_dict())


@host_bp.route("/bookings/<int:booking_id>/cancel", methods=["POST"])
@login_required
def cancel_booking(booking_id):
    data = request.get_json(silent=True) or {}
    booking = _service().cancel_by_host(current_user.id, booking_id, data.get("reason"))
    return jsonify(booking.to_dict())


@host_bp.route("/bookings/<int:booking_id>/status", methods=["POST"])
@login_required
def mark_booking_status(booking_id):
    data = _json_body()
    booking = _service().mark_status(current_user.id, booking_id, data.get("status"))
    return jsonify(booking.to_dict())


# ------------------------------------------------------ notification preferences

@host_bp.route("/notification-preferences", methods=["GET"])
@login_required
def get_notification_preferences():
    prefs = NotificationPreferences.query.filter_by(user_id=current_user.id).first()
    if not prefs:
        return jsonify({key: True for key in PREFERENCE_FIELDS})
    return jsonify(prefs.to_dict())


@host_bp.route("/notification-preferences", methods=["PUT"])
@login_required
def update_notification_preferences():
    data = _json_body()
    prefs = NotificationPreferences.query.filter_by(user_id=current_user.id).first()
    if not prefs:
        prefs = NotificationPreferences(
            user_id=current_user.id,
            new_booking=True,
            cancellation=True,
            reschedule=True,
            daily_digest=True,
        )
        db.session.add(prefs)
    for key, attr in PREFERENCE_FIELDS.items():
        if key in data:
            if not isinstance(data[key], bool):
                raise InvalidInputError(f"{key} must be true or false")
            setattr(prefs, attr, data[key])
    db.session.commit()
    return jsonify(prefs.to_dict())
