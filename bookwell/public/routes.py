from flask import Blueprint, current_app, jsonify, request

from bookwell.models import AvailabilityRules, EventType
from bookwell.scheduling.errors import InvalidInputError, NotFoundError
from bookwell.scheduling.service import GuestDetails


public_bp = Blueprint("public", __name__, url_prefix="/api/public")


def _service():
    return current_app.extensions["scheduling"]


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidInputError("Expected a JSON object")
    return data


@public_bp.route("/event-types/<slug>")
def event_type(slug):
    et = EventType.query.filter_by(slug=slug).first()
    if not et or not et.is_active:
        raise NotFoundError()
    data = et.to_dict()
    data["hostName"] = et.host.name if et.host else None
    data["hostTimezone"] = AvailabilityRules.for_host(et.user_id).timezone
    return jsonify(data)


@public_bp.route("/availability/<slug>")
def availability(slug):
    tzname = (request.args.get("timezone") or "UTC").strip() or "UTC"
    include_unavailable = request.args.get("includeUnavailable") in ("1", "true")
    slots = _service().list_slots(slug, request.args.get("date"), tzname,
                                  include_unavailable=include_unavailable)
    return jsonify({"slots": [s.to_dict() for s in slots], "timezone": tzname})


@public_bp.route("/book", methods=["POST"])
def book():
    data = _json_body()
    slug = data.get("eventTypeSlug") or data.get("slug")
    guest = GuestDetails.from_dict(data)
    booking = _service().create_booking(slug, guest, data.get("startTime"), data.get("timezone"))
    body = booking.to_dict()
    body["cancelToken"] = booking.cancel_token
    body["rescheduleToken"] = booking.reschedule_token
    return jsonify(body), 201


@public_bp.route("/booking/<token>")
def manage_booking(token):
    booking = _service().manage_view(token)
    return jsonify(booking.to_public_dict())


@public_bp.route("/booking/cancel/<token>", methods=["POST"])
def cancel_booking(token):
    data = _json_body()
    booking = _service().cancel_by_token(token, data.get("reason"))
    return jsonify({"ok": True, "status": booking.status})


@public_bp.route("/booking/reschedule/<token>", methods=["POST"])
def reschedule_booking(token):
    data = _json_body()
    booking = _service().reschedule_by_token(token, data.get("startTime"), data.get("timezone"))
    return jsonify({"ok": True, "booking": booking.to_public_dict()})


@public_bp.route("/booking/reschedule/<token>/availability")
def reschedule_availability(token):
    tzname = (request.args.get("timezone") or "").strip() or None
    slots = _service().reschedule_availability(token, request.args.get("date"), tzname)
    return jsonify({"slots": [s.to_dict() for s in slots]})
