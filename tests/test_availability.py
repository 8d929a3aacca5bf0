from datetime import date, datetime, timezone

import pytest

from bookwell.scheduling.errors import InvalidTimezoneError
from bookwell.scheduling.timemath import Interval

from conftest import NOW, draft, make_event_type, make_host, set_rules, utc


TUESDAY = date(2026, 2, 10)


@pytest.fixture
def ny_host(app):
    host = make_host()
    rules = set_rules(host, tz="America/New_York", min_notice=60, max_advance=30)
    return host, rules


def resolve(app, event_type, rules, target=TUESDAY, guest_tz="America/New_York", **kwargs):
    resolver = app.extensions["scheduling"].resolver
    return resolver.resolve(event_type, rules, target, guest_tz, NOW, **kwargs)


def test_existing_booking_removes_exactly_its_slot(app, ledger, ny_host):
    host, rules = ny_host
    et = make_event_type(host)
    # 14:00 New York == 19:00 UTC
    ledger.create(draft(et, utc(2026, 2, 10, 19, 0)))

    slots = resolve(app, et, rules)

    assert len(slots) == 15
    labels = [s.local_label for s in slots]
    assert "2:00 PM" not in labels
    assert labels[0] == "9:00 AM"
    assert labels[-1] == "4:30 PM"
    assert slots[0].utc_instant == utc(2026, 2, 10, 14, 0)
    assert [s.utc_instant for s in slots] == sorted(s.utc_instant for s in slots)


def test_slots_are_shown_in_guest_timezone(app, ny_host):
    host, rules = ny_host
    et = make_event_type(host)

    slots = resolve(app, et, rules, guest_tz="Europe/London")

    assert len(slots) == 16
    assert slots[0].local_label == "2:00 PM"
    assert slots[0].to_dict()["utcInstant"] == "2026-02-10T14:00:00Z"


def test_day_without_hours_has_no_slots(app, ny_host):
    host, rules = ny_host
    et = make_event_type(host)
    assert resolve(app, et, rules, target=date(2026, 2, 14)) == []


def test_invalid_guest_timezone(app, ny_host):
    host, rules = ny_host
    et = make_event_type(host)
    with pytest.raises(InvalidTimezoneError):
        resolve(app, et, rules, guest_tz="Nowhere/Land")


def test_buffers_widen_the_blocked_time(app, ledger):
    host = make_host()
    rules = set_rules(host, tz="UTC", min_notice=0, buffer_before=15, buffer_after=15)
    et = make_event_type(host)
    ledger.create(draft(et, utc(2026, 2, 10, 12, 0)))

    starts = {s.utc_instant.hour * 60 + s.utc_instant.minute for s in resolve(app, et, rules, guest_tz="UTC")}

    # booking blocks 11:45-12:45; 11:30 would need until 12:15, 12:30 would need from 12:15
    assert 11 * 60 in starts
    assert 11 * 60 + 30 not in starts
    assert 12 * 60 not in starts
    assert 12 * 60 + 30 not in starts
    assert 13 * 60 in starts
    # before-buffer may fall before the working day starts
    assert 9 * 60 in starts
    # after-buffer must fit before the working day ends
    assert 16 * 60 + 30 not in starts
    assert 16 * 60 in starts


def test_event_type_buffer_overrides_rules_default(app):
    host = make_host()
    rules = set_rules(host, tz="UTC", min_notice=0, buffer_after=30)
    et = make_event_type(host, buffer_after=0)
    slots = resolve(app, et, rules, guest_tz="UTC")
    assert slots[-1].utc_instant == utc(2026, 2, 10, 16, 30)


def test_min_notice_and_max_advance_filter(app):
    host = make_host()
    rules = set_rules(host, tz="UTC", min_notice=24 * 60 + 120, max_advance=1)
    et = make_event_type(host)

    # earliest = Feb 10 14:00 UTC, latest = Feb 10 12:00 UTC
    assert resolve(app, et, rules, guest_tz="UTC") == []

    rules.max_advance_days = 2
    slots = resolve(app, et, rules, guest_tz="UTC")
    assert slots[0].utc_instant == utc(2026, 2, 10, 14, 0)


def test_external_busy_intervals_are_subtracted(app, busy_calendar, ny_host):
    host, rules = ny_host
    et = make_event_type(host)
    busy_calendar.busy = [Interval(utc(2026, 2, 10, 15, 0), utc(2026, 2, 10, 16, 0))]

    labels = [s.local_label for s in resolve(app, et, rules)]

    assert "10:00 AM" not in labels
    assert "10:30 AM" not in labels
    assert len(labels) == 14


def test_external_calendar_failure_is_ignored(app, busy_calendar, ny_host):
    host, rules = ny_host
    et = make_event_type(host)
    busy_calendar.fail = True
    assert len(resolve(app, et, rules)) == 16


def test_free_remainder_rounds_up_to_grid(app):
    host = make_host()
    rules = set_rules(host, tz="UTC", min_notice=0)
    et = make_event_type(host)
    app.extensions["busy_calendar"].busy = [
        Interval(utc(2026, 2, 10, 9, 0), utc(2026, 2, 10, 9, 40)),
    ]
    slots = resolve(app, et, rules, guest_tz="UTC")
    assert slots[0].utc_instant == utc(2026, 2, 10, 10, 0)


def test_excluded_booking_does_not_block(app, ledger, ny_host):
    host, rules = ny_host
    et = make_event_type(host)
    booking = ledger.create(draft(et, utc(2026, 2, 10, 19, 0)))
    slots = resolve(app, et, rules, exclude_booking_id=booking.id)
    assert len(slots) == 16


def test_include_unavailable_marks_blocked_points(app, ledger, ny_host):
    host, rules = ny_host
    et = make_event_type(host)
    ledger.create(draft(et, utc(2026, 2, 10, 19, 0)))
    slots = resolve(app, et, rules, include_unavailable=True)
    assert len(slots) == 16
    blocked = [s for s in slots if not s.available]
    assert [s.local_label for s in blocked] == ["2:00 PM"]


def test_cancelled_bookings_free_their_slot(app, ledger, ny_host):
    host, rules = ny_host
    et = make_event_type(host)
    booking = ledger.create(draft(et, utc(2026, 2, 10, 19, 0)))
    ledger.cancel(booking.id)
    assert len(resolve(app, et, rules)) == 16


def test_fits_schedule(app, ny_host):
    host, rules = ny_host
    et = make_event_type(host, duration=60)
    resolver = app.extensions["scheduling"].resolver
    assert resolver.fits_schedule(et, rules, utc(2026, 2, 10, 14, 0))
    assert resolver.fits_schedule(et, rules, utc(2026, 2, 10, 21, 0))
    # ends after 17:00 local
    assert not resolver.fits_schedule(et, rules, utc(2026, 2, 10, 21, 30))
    # off-grid
    assert not resolver.fits_schedule(et, rules, utc(2026, 2, 10, 14, 15))
    # Saturday
    assert not resolver.fits_schedule(et, rules, utc(2026, 2, 14, 15, 0))


def test_dst_day_keeps_local_grid(app):
    host = make_host()
    rules = set_rules(host, tz="America/New_York", min_notice=0, max_advance=60,
                      weekly_hours={"sunday": [["09:00", "11:00"]]})
    et = make_event_type(host)
    # 2026-03-08 is the US spring-forward Sunday
    slots = resolve(app, et, rules, target=date(2026, 3, 8))
    assert [s.local_label for s in slots] == ["9:00 AM", "9:30 AM", "10:00 AM", "10:30 AM"]
    assert slots[0].utc_instant == datetime(2026, 3, 8, 13, 0, tzinfo=timezone.utc)


def test_fall_back_day_offers_both_repeated_hours(app):
    host = make_host()
    rules = set_rules(host, tz="America/New_York", min_notice=0, max_advance=365,
                      weekly_hours={"sunday": [["00:00", "03:00"]]})
    et = make_event_type(host)
    # 2026-11-01 is the US fall-back Sunday: 01:00-02:00 happens twice
    slots = resolve(app, et, rules, target=date(2026, 11, 1))
    assert [s.local_label for s in slots] == [
        "12:00 AM", "12:30 AM", "1:00 AM", "1:30 AM", "1:00 AM", "1:30 AM", "2:00 AM", "2:30 AM",
    ]
    assert [s.utc_instant.hour * 60 + s.utc_instant.minute for s in slots] == list(range(4 * 60, 8 * 60, 30))


def test_empty_day_list_has_no_slots(app):
    host = make_host()
    rules = set_rules(host, tz="UTC", weekly_hours={"monday": [["09:00", "17:00"]], "tuesday": []})
    et = make_event_type(host)
    assert resolve(app, et, rules, guest_tz="UTC") == []
    assert len(resolve(app, et, rules, target=date(2026, 2, 16), guest_tz="UTC")) == 16


def test_resolve_is_idempotent(app, ledger, busy_calendar, ny_host):
    host, rules = ny_host
    et = make_event_type(host)
    ledger.create(draft(et, utc(2026, 2, 10, 19, 0)))
    busy_calendar.busy = [Interval(utc(2026, 2, 10, 15, 0), utc(2026, 2, 10, 16, 0))]

    first = resolve(app, et, rules)
    second = resolve(app, et, rules)
    assert first == second
    assert len(first) == 13
