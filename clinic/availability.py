"""Bookable slot computation.

Everything here is a pure function of its inputs: the caller loads the
weekday's opening hours, the blocked windows, the buffer setting and the
bookings of the date, and passes them in. Nothing is read from the database
and nothing is reserved.

Times are wall-clock ``"HH:MM"`` strings compared as minutes since midnight.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Sequence

_TIME_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")

MINUTES_PER_DAY = 24 * 60


class ScheduleError(ValueError):
    """Raised when stored schedule data cannot be interpreted."""


def parse_time(value: str | None, field: str = "time") -> int:
    """Convert ``"HH:MM"`` into minutes since midnight."""
    if not isinstance(value, str):
        raise ScheduleError(f"{field} must be a HH:MM string")
    match = _TIME_RE.match(value.strip())
    if not match:
        raise ScheduleError(f"{field} has invalid time {value!r}")
    return int(match.group(1)) * 60 + int(match.group(2))


def format_time(minutes: int) -> str:
    hours, mins = divmod(minutes, 60)
    return f"{hours:02d}:{mins:02d}"


def is_valid_time(value: object) -> bool:
    return isinstance(value, str) and _TIME_RE.match(value.strip()) is not None


def day_of_week(target: date) -> int:
    """Weekday index with 0=Sunday, matching the working hours table."""
    return (target.weekday() + 1) % 7


@dataclass(frozen=True)
class DaySchedule:
    is_open: bool
    open_time: str | None
    close_time: str | None
    break_start: str | None = None
    break_end: str | None = None


@dataclass(frozen=True)
class BlockedWindow:
    all_day: bool
    start_time: str | None = None
    end_time: str | None = None


@dataclass(frozen=True)
class BookedRange:
    start_time: str
    end_time: str


@dataclass(frozen=True)
class Slot:
    start_time: str
    end_time: str
    available: bool

    def to_dict(self) -> dict[str, object]:
        return {
            "startTime": self.start_time,
            "endTime": self.end_time,
            "available": self.available,
        }


@dataclass(frozen=True)
class AvailabilityConfig:
    """Scheduling settings captured once per computation."""

    schedule: DaySchedule | None
    blocks: tuple[BlockedWindow, ...] = ()
    buffer_minutes: int = 0


Interval = tuple[int, int]


def subtract_window(intervals: Iterable[Interval], start: int, end: int) -> list[Interval]:
    """Remove ``[start, end)`` from every interval, keeping non-empty pieces."""
    result: list[Interval] = []
    for lo, hi in intervals:
        if end <= lo or start >= hi:
            result.append((lo, hi))
            continue
        if lo < start:
            result.append((lo, start))
        if end < hi:
            result.append((end, hi))
    return result


def open_intervals(schedule: DaySchedule | None, blocks: Sequence[BlockedWindow] = ()) -> list[Interval]:
    """Working intervals of the day after removing the break and partial blocks."""
    if schedule is None or not schedule.is_open:
        return []
    if any(block.all_day for block in blocks):
        return []

    opens = parse_time(schedule.open_time, "open_time")
    closes = parse_time(schedule.close_time, "close_time")
    if closes < opens:
        raise ScheduleError("close_time is earlier than open_time")

    intervals: list[Interval] = [(opens, closes)] if closes > opens else []

    if schedule.break_start or schedule.break_end:
        break_start = parse_time(schedule.break_start, "break_start")
        break_end = parse_time(schedule.break_end, "break_end")
        if break_end <= break_start:
            raise ScheduleError("break_end must be after break_start")
        intervals = subtract_window(intervals, break_start, break_end)

    for block in blocks:
        start = parse_time(block.start_time, "blocked start_time")
        end = parse_time(block.end_time, "blocked end_time")
        if end <= start:
            raise ScheduleError("blocked end_time must be after start_time")
        intervals = subtract_window(intervals, start, end)

    return sorted(intervals)


def _occupied_ranges(bookings: Iterable[BookedRange], buffer_minutes: int) -> list[Interval]:
    # The buffer only extends after a booking
    return [
        (parse_time(b.start_time, "booking start_time"), parse_time(b.end_time, "booking end_time") + buffer_minutes)
        for b in bookings
    ]


def compute_slots(
    config: AvailabilityConfig,
    duration_minutes: int,
    bookings: Iterable[BookedRange] = (),
) -> list[Slot]:
    """Return every candidate slot of the day, flagged available or not.

    Candidates are laid out back to back from the start of each open interval,
    ``duration_minutes`` apart. A trailing piece shorter than the duration is
    not offered. A candidate is unavailable when it overlaps a booking
    extended by the buffer.
    """
    if not isinstance(duration_minutes, int) or duration_minutes <= 0:
        raise ScheduleError("service duration must be a positive number of minutes")
    if config.buffer_minutes < 0:
        raise ScheduleError("buffer minutes cannot be negative")

    intervals = open_intervals(config.schedule, config.blocks)
    if not intervals:
        return []

    occupied = _occupied_ranges(bookings, config.buffer_minutes)

    slots: list[Slot] = []
    for lo, hi in intervals:
        start = lo
        while start + duration_minutes <= hi:
            end = start + duration_minutes
            taken = any(start < busy_end and busy_start < end for busy_start, busy_end in occupied)
            slots.append(Slot(format_time(start), format_time(end), not taken))
            start = end
    return slots


def available_slots(
    config: AvailabilityConfig,
    duration_minutes: int,
    bookings: Iterable[BookedRange] = (),
) -> list[Slot]:
    return [slot for slot in compute_slots(config, duration_minutes, bookings) if slot.available]


def is_slot_available(
    config: AvailabilityConfig,
    duration_minutes: int,
    start_time: str,
    bookings: Iterable[BookedRange] = (),
) -> bool:
    """True when ``start_time`` is one of the day's available candidates."""
    wanted = format_time(parse_time(start_time, "start_time"))
    return any(
        slot.start_time == wanted and slot.available
        for slot in compute_slots(config, duration_minutes, bookings)
    )


def overlaps_bookings(
    start_time: str,
    end_time: str,
    bookings: Iterable[BookedRange],
    buffer_minutes: int = 0,
) -> bool:
    """True when ``[start_time, end_time)`` collides with a booking plus its buffer."""
    start = parse_time(start_time, "start_time")
    end = parse_time(end_time, "end_time")
    return any(start < busy_end and busy_start < end for busy_start, busy_end in _occupied_ranges(bookings, buffer_minutes))


def end_time_for(start_time: str, duration_minutes: int) -> str:
    end = parse_time(start_time, "start_time") + duration_minutes
    if end >= MINUTES_PER_DAY:
        raise ScheduleError("appointment would run past midnight")
    return format_time(end)
