from datetime import time

import pytest

from bookwell.scheduling.errors import InvalidInputError
from bookwell.scheduling.weekly_hours import TimeBlock, WeeklyHours, Weekday


def test_default_is_weekdays_nine_to_five():
    hours = WeeklyHours.default()
    for day in (Weekday.MONDAY, Weekday.FRIDAY):
        assert hours.blocks_for(day) == (TimeBlock(time(9, 0), time(17, 0)),)
    assert hours[Weekday.SATURDAY] is None
    assert not hours.is_available(Weekday.SUNDAY)


def test_from_dict_accepts_long_and_short_keys():
    long_form = WeeklyHours.from_dict({
        "monday": [{"start": "13:00", "end": "17:00"}, {"start": "09:00", "end": "12:00"}],
        "saturday": None,
    })
    short_form = WeeklyHours.from_dict({"mon": [["09:00", "12:00"], ["13:00", "17:00"]]})
    assert long_form == short_form
    assert [b.start for b in long_form.blocks_for(Weekday.MONDAY)] == [time(9, 0), time(13, 0)]
    assert long_form[Weekday.TUESDAY] is None


def test_empty_list_means_unavailable():
    hours = WeeklyHours.from_dict({"wednesday": []})
    assert hours.blocks_for(Weekday.WEDNESDAY) == ()
    assert not hours.is_available(Weekday.WEDNESDAY)


@pytest.mark.parametrize("data", [
    {"monday": [{"start": "09:00", "end": "09:00"}]},
    {"monday": [{"start": "10:00", "end": "09:00"}]},
    {"monday": [{"start": "24:00", "end": "25:00"}]},
    {"monday": [{"start": "9:00", "end": "17:00"}]},
    {"monday": [["09:00", "12:00"], ["11:00", "13:00"]]},
    {"funday": [["09:00", "12:00"]]},
    {"monday": "09:00-17:00"},
    ["monday"],
])
def test_from_dict_rejects_invalid_hours(data):
    with pytest.raises(InvalidInputError):
        WeeklyHours.from_dict(data)


def test_to_dict_uses_long_keys():
    data = WeeklyHours.from_dict({"fri": [["08:30", "11:00"]]}).to_dict()
    assert data["friday"] == [{"start": "08:30", "end": "11:00"}]
    assert data["monday"] is None
    assert WeeklyHours.from_dict(data) == WeeklyHours.from_dict({"fri": [["08:30", "11:00"]]})
