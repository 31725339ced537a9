"""
Wall-clock time helpers for the booking engine.

Templates and appointments are local to the provider: no timezone
conversion is ever performed. Legacy clients send "HH:MM" strings;
these are parsed once at the edge and every comparison afterwards
happens on ``datetime.time`` values.
"""

from datetime import date, datetime, time, timedelta
import re
from typing import Union

from .constants import TIME_OF_DAY_PATTERN

_TIME_RE = re.compile(TIME_OF_DAY_PATTERN)

TimeLike = Union[time, str]


def parse_time_of_day(value: TimeLike) -> time:
    """
    Parse a wall-clock time at minute granularity.

    Args:
        value: ``datetime.time`` or "HH:MM" / "H:MM" 24-hour string

    Returns:
        ``datetime.time`` with seconds and microseconds dropped

    Raises:
        ValueError: If the value is not a valid time of day
    """
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0, tzinfo=None)
    if not isinstance(value, str):
        raise ValueError(f"Invalid time of day: {value!r}")
    raw = value.strip()
    # Accept "HH:MM:SS" as produced by time.isoformat() when seconds are zero
    if raw.count(":") == 2 and raw.endswith(":00"):
        raw = raw[:-3]
    if not _TIME_RE.match(raw):
        raise ValueError(f"Invalid time format {value!r}. Use HH:MM (e.g., 09:00, 17:30)")
    hours, minutes = raw.split(":")
    return time(int(hours), int(minutes))


def format_hhmm(value: time) -> str:
    return value.strftime("%H:%M")


def minutes_of_day(value: time) -> int:
    return value.hour * 60 + value.minute


def minutes_between(start: time, end: time) -> int:
    return minutes_of_day(end) - minutes_of_day(start)


def occurrence_datetime(concrete_date: date, start: time) -> datetime:
    """Naive local datetime of a template occurrence."""
    return datetime.combine(concrete_date, parse_time_of_day(start))


def week_dates(week_start: date) -> list[date]:
    return [week_start + timedelta(days=offset) for offset in range(7)]


def ranges_overlap(start_a: time, end_a: time, start_b: time, end_b: time) -> bool:
    """Half-open overlap test; touching edges do not overlap."""
    return start_a < end_b and start_b < end_a
