from datetime import date, datetime, time, timezone

import pytest

from bookwell.scheduling.errors import InvalidInputError, InvalidTimezoneError
from bookwell.scheduling.timemath import (
    Interval,
    ceil_to_quantum,
    expand_weekly_block,
    format_label,
    from_timezone,
    intervals_overlap,
    is_valid_timezone,
    merge_intervals,
    parse_date,
    parse_instant,
    subtract_intervals,
    to_timezone,
    wall_clock_instants,
)
from bookwell.scheduling.weekly_hours import TimeBlock, Weekday


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def iv(h1, m1, h2, m2):
    return Interval(utc(2026, 3, 2, h1, m1), utc(2026, 3, 2, h2, m2))


def test_expand_block_in_winter_new_york():
    block = TimeBlock(time(9, 0), time(17, 0))
    result = expand_weekly_block(Weekday.TUESDAY, block, "America/New_York", date(2026, 2, 10))
    assert result == Interval(utc(2026, 2, 10, 14, 0), utc(2026, 2, 10, 22, 0))


def test_expand_block_follows_dst():
    block = TimeBlock(time(9, 0), time(17, 0))
    # US DST starts 2026-03-08
    before = expand_weekly_block(Weekday.FRIDAY, block, "America/New_York", date(2026, 3, 6))
    after = expand_weekly_block(Weekday.MONDAY, block, "America/New_York", date(2026, 3, 9))
    assert before.start.hour == 14
    assert after.start.hour == 13


def test_expand_block_rejects_wrong_weekday():
    block = TimeBlock(time(9, 0), time(17, 0))
    with pytest.raises(InvalidInputError):
        expand_weekly_block(Weekday.MONDAY, block, "UTC", date(2026, 2, 10))


def test_timezone_round_trip_and_validation():
    instant = utc(2026, 7, 1, 15, 30)
    local = to_timezone(instant, "Asia/Kolkata")
    assert (local.hour, local.minute) == (21, 0)
    assert from_timezone(local.replace(tzinfo=None), "Asia/Kolkata") == instant

    assert is_valid_timezone("Europe/London")
    assert not is_valid_timezone("Mars/Olympus")
    with pytest.raises(InvalidTimezoneError):
        to_timezone(instant, "Mars/Olympus")
    with pytest.raises(InvalidTimezoneError):
        from_timezone(datetime(2026, 1, 1, 9, 0), "")


@pytest.mark.parametrize("a, b, expected", [
    (iv(9, 0, 10, 0), iv(9, 30, 10, 30), True),
    (iv(9, 0, 10, 0), iv(10, 0, 11, 0), False),
    (iv(9, 0, 12, 0), iv(10, 0, 11, 0), True),
    (iv(9, 0, 9, 30), iv(14, 0, 15, 0), False),
])
def test_intervals_overlap_is_half_open_and_symmetric(a, b, expected):
    assert intervals_overlap(a, b) is expected
    assert intervals_overlap(b, a) is expected


def test_merge_intervals_joins_overlapping_and_adjacent():
    merged = merge_intervals([iv(13, 0, 14, 0), iv(9, 0, 10, 0), iv(9, 30, 11, 0), iv(11, 0, 11, 30)])
    assert merged == [iv(9, 0, 11, 30), iv(13, 0, 14, 0)]


def test_subtract_intervals_unsorted_overlapping_busy():
    base = iv(9, 0, 17, 0)
    busy = [iv(15, 0, 16, 0), iv(10, 0, 11, 0), iv(10, 30, 12, 0), iv(8, 0, 9, 15)]
    assert subtract_intervals(base, busy) == [
        iv(9, 15, 10, 0),
        iv(12, 0, 15, 0),
        iv(16, 0, 17, 0),
    ]


def test_subtract_intervals_edge_cases():
    base = iv(9, 0, 17, 0)
    assert subtract_intervals(base, []) == [base]
    assert subtract_intervals(base, [iv(8, 0, 18, 0)]) == []
    assert subtract_intervals(base, [iv(6, 0, 7, 0), iv(18, 0, 19, 0)]) == [base]


def test_ceil_to_quantum():
    assert ceil_to_quantum(datetime(2026, 1, 1, 9, 0), 30) == datetime(2026, 1, 1, 9, 0)
    assert ceil_to_quantum(datetime(2026, 1, 1, 9, 1), 30) == datetime(2026, 1, 1, 9, 30)
    assert ceil_to_quantum(datetime(2026, 1, 1, 9, 45), 30) == datetime(2026, 1, 1, 10, 0)


def test_parse_helpers():
    assert parse_instant("2026-02-10T14:00:00Z") == utc(2026, 2, 10, 14, 0)
    assert parse_instant("2026-02-10T09:00:00-05:00") == utc(2026, 2, 10, 14, 0)
    assert parse_instant("2026-02-10T14:00:00") == utc(2026, 2, 10, 14, 0)
    assert parse_date("2026-02-10") == date(2026, 2, 10)
    with pytest.raises(InvalidInputError):
        parse_instant("tomorrow")
    with pytest.raises(InvalidInputError):
        parse_instant(None)
    with pytest.raises(InvalidInputError):
        parse_date("10/02/2026")


def test_format_label():
    assert format_label(datetime(2026, 1, 1, 9, 30)) == "9:30 AM"
    assert format_label(datetime(2026, 1, 1, 14, 0)) == "2:00 PM"


def test_wall_clock_instants_around_dst_changes():
    # 2026-11-01 01:30 happens twice in New York, 2026-03-08 02:30 never happens
    assert wall_clock_instants(datetime(2026, 11, 1, 1, 30), "America/New_York") == [
        utc(2026, 11, 1, 5, 30),
        utc(2026, 11, 1, 6, 30),
    ]
    assert wall_clock_instants(datetime(2026, 3, 8, 2, 30), "America/New_York") == []
    assert wall_clock_instants(datetime(2026, 3, 8, 3, 30), "America/New_York") == [utc(2026, 3, 8, 7, 30)]
