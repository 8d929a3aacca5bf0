"""
Typed weekly working hours.

Stored as JSON on the rules row, but the engine only ever sees a
``WeeklyHours``: seven entries indexed by ``Weekday``, each ``None`` (day off)
or a sorted tuple of non-overlapping ``TimeBlock``s in host-local time.
"""

import re
from dataclasses import dataclass
from datetime import time
from enum import IntEnum
from typing import Optional, Tuple

from .errors import InvalidInputError


TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class Weekday(IntEnum):
    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @property
    def key(self) -> str:
        return self.name.lower()

    @property
    def short_key(self) -> str:
        return self.key[:3]


@dataclass(frozen=True)
class TimeBlock:
    start: time
    end: time

    def __post_init__(self):
        if not self.start < self.end:
            raise InvalidInputError("Block start must be before its end")

    @classmethod
    def parse(cls, start: str, end: str) -> "TimeBlock":
        if not (isinstance(start, str) and isinstance(end, str)):
            raise InvalidInputError("Time blocks need a start and an end")
        if not (TIME_RE.match(start) and TIME_RE.match(end)):
            raise InvalidInputError("Time must be in HH:MM format (00:00-23:59)")
        sh, sm = map(int, start.split(":"))
        eh, em = map(int, end.split(":"))
        return cls(time(sh, sm), time(eh, em))

    def to_dict(self) -> dict:
        return {"start": self.start.strftime("%H:%M"), "end": self.end.strftime("%H:%M")}


DayBlocks = Optional[Tuple[TimeBlock, ...]]


def _normalize_day(blocks) -> DayBlocks:
    if blocks is None:
        return None
    ordered = tuple(sorted(blocks, key=lambda b: (b.start, b.end)))
    for prev, cur in zip(ordered, ordered[1:]):
        if cur.start < prev.end:
            raise InvalidInputError("Time blocks within a day must not overlap")
    return ordered


class WeeklyHours:
    """Fixed seven-slot schedule. ``None`` and ``()`` both mean unavailable."""

    __slots__ = ("_days",)

    def __init__(self, days=None):
        days = list(days) if days is not None else [None] * 7
        if len(days) != 7:
            raise InvalidInputError("Weekly hours need exactly seven days")
        self._days = tuple(_normalize_day(d) for d in days)

    def __getitem__(self, weekday) -> DayBlocks:
        return self._days[int(weekday)]

    def __eq__(self, other):
        return isinstance(other, WeeklyHours) and self._days == other._days

    def __repr__(self):
        return f"WeeklyHours({self.to_dict()!r})"

    def blocks_for(self, weekday) -> Tuple[TimeBlock, ...]:
        return self._days[int(weekday)] or ()

    def is_available(self, weekday) -> bool:
        return bool(self._days[int(weekday)])

    @classmethod
    def default(cls) -> "WeeklyHours":
        nine_to_five = (TimeBlock(time(9, 0), time(17, 0)),)
        return cls([nine_to_five] * 5 + [None, None])

    @classmethod
    def from_dict(cls, data) -> "WeeklyHours":
        """Parse either ``{"monday": [{"start", "end"}]}`` or ``{"mon": [["09:00", "17:00"]]}``."""
        if data is None:
            return cls.default()
        if not isinstance(data, dict):
            raise InvalidInputError("Weekly hours must be an object keyed by weekday")
        known = {d.key for d in Weekday} | {d.short_key for d in Weekday}
        unknown = set(data) - known
        if unknown:
            raise InvalidInputError(f"Unknown weekday: {sorted(unknown)[0]}")

        days = []
        for day in Weekday:
            raw = data.get(day.key, data.get(day.short_key))
            if raw is None:
                days.append(None)
                continue
            if not isinstance(raw, list):
                raise InvalidInputError(f"Invalid hours for {day.key}")
            blocks = []
            for item in raw:
                if isinstance(item, dict):
                    blocks.append(TimeBlock.parse(item.get("start"), item.get("end")))
                elif isinstance(item, (list, tuple)) and len(item) == 2:
                    blocks.append(TimeBlock.parse(item[0], item[1]))
                else:
                    raise InvalidInputError(f"Invalid time block for {day.key}")
            days.append(blocks)
        return cls(days)

    def to_dict(self) -> dict:
        out = {}
        for day in Weekday:
            blocks = self._days[day]
            out[day.key] = None if blocks is None else [b.to_dict() for b in blocks]
        return out
