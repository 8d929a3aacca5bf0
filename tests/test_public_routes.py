from bookwell import db
from bookwell.models import Booking, OutboxEffect


def book(client, slug, start="2026-02-10T10:00:00Z", **extra):
    body = {
        "eventTypeSlug": slug,
        "name": "Gus Guest",
        "email": "Gus@Example.com",
        "startTime": start,
        "timezone": "America/New_York",
    }
    body.update(extra)
    return client.post("/api/public/book", json=body)


def test_event_type_lookup(client, event_type):
    resp = client.get(f"/api/public/event-types/{event_type.slug}")
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["slug"] == "intro-call"
    assert data["hostName"] == "Hannah Host"
    assert data["hostTimezone"] == "UTC"

    assert client.get("/api/public/event-types/missing").status_code == 404


def test_availability(client, event_type):
    resp = client.get(f"/api/public/availability/{event_type.slug}?date=2026-02-10&timezone=Europe/Berlin")
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["timezone"] == "Europe/Berlin"
    assert len(data["slots"]) == 16
    first = data["slots"][0]
    assert first["utcInstant"] == "2026-02-10T09:00:00Z"
    assert first["localLabel"] == "10:00 AM"
    assert first["available"] is True


def test_availability_errors(client, event_type):
    assert client.get(f"/api/public/availability/{event_type.slug}?date=bad").status_code == 400
    resp = client.get(f"/api/public/availability/{event_type.slug}?date=2026-02-10&timezone=Not/AZone")
    assert resp.status_code == 400
    assert "timezone" in resp.get_json()["error"].lower()
    assert client.get("/api/public/availability/nope?date=2026-02-10").status_code == 404


def test_book_and_conflict(client, event_type):
    resp = book(client, event_type.slug)
    assert resp.status_code == 201
    data = resp.get_json()
    assert data["guestEmail"] == "gus@example.com"
    assert data["status"] == "confirmed"
    assert len(data["cancelToken"]) == 64

    again = book(client, event_type.slug, email="late@example.com")
    assert again.status_code == 409
    assert again.get_json() == {"error": "This time slot is no longer available"}


def test_book_validation(client, event_type):
    assert book(client, event_type.slug, email="nope").status_code == 400
    assert book(client, event_type.slug, start="2026-02-10T10:10:00Z").status_code == 400
    assert book(client, "unknown-slug").status_code == 404
    assert client.post("/api/public/book", data="not json", content_type="text/plain").status_code == 404


def test_manage_cancel_and_reschedule_flow(client, event_type):
    created = book(client, event_type.slug).get_json()
    cancel_token, reschedule_token = created["cancelToken"], created["rescheduleToken"]

    view = client.get(f"/api/public/booking/{reschedule_token}").get_json()
    assert view["eventTypeName"] == "Intro Call"
    assert view["status"] == "confirmed"
    assert "cancelToken" not in view

    avail = client.get(f"/api/public/booking/reschedule/{reschedule_token}/availability?date=2026-02-10")
    assert avail.status_code == 200
    assert "2026-02-10T10:00:00Z" in [s["utcInstant"] for s in avail.get_json()["slots"]]

    same = client.post(f"/api/public/booking/reschedule/{reschedule_token}",
                       json={"startTime": "2026-02-10T10:00:00Z"})
    assert same.status_code == 400

    moved = client.post(f"/api/public/booking/reschedule/{reschedule_token}",
                        json={"startTime": "2026-02-10T15:00:00Z"})
    assert moved.status_code == 200
    assert moved.get_json()["booking"]["startTime"] == "2026-02-10T15:00:00+00:00"

    cancelled = client.post(f"/api/public/booking/cancel/{cancel_token}", json={"reason": "No longer needed"})
    assert cancelled.status_code == 200
    assert cancelled.get_json()["status"] == "cancelled"

    again = client.post(f"/api/public/booking/cancel/{cancel_token}")
    assert again.status_code == 400

    db.session.expire_all()
    booking = Booking.query.one()
    assert booking.cancellation_reason == "No longer needed"
    assert OutboxEffect.query.filter_by(booking_id=booking.id).count() == 9


def test_tokens_are_not_interchangeable(client, event_type):
    created = book(client, event_type.slug).get_json()
    resp = client.post(f"/api/public/booking/cancel/{created['rescheduleToken']}")
    assert resp.status_code == 404
    assert resp.get_json() == {"error": "Not found"}
    assert client.get("/api/public/booking/" + "a" * 64).status_code == 404


def test_book_rejects_non_string_guest_fields(client, event_type):
    for field, value in (("name", 123), ("email", ["gus@example.com"]), ("notes", {"a": 1})):
        resp = book(client, event_type.slug, **{field: value})
        assert resp.status_code == 400
        assert field in resp.get_json()["error"]
    assert Booking.query.count() == 0
