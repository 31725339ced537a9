from __future__ import annotations

from datetime import date, time

import pytest

from servicebook.core.enums import DayOfWeek, SlotStatus
from servicebook.core.time_utils import (
    format_hhmm,
    minutes_between,
    occurrence_datetime,
    parse_time_of_day,
    ranges_overlap,
    week_dates,
)


def test_day_of_week_from_date_is_calendar_correct() -> None:
    assert DayOfWeek.from_date(date(2025, 7, 7)) is DayOfWeek.MONDAY
    assert DayOfWeek.from_date(date(2025, 7, 9)) is DayOfWeek.WEDNESDAY
    assert DayOfWeek.from_date(date(2025, 7, 13)) is DayOfWeek.SUNDAY
    # Leap day
    assert DayOfWeek.from_date(date(2024, 2, 29)) is DayOfWeek.THURSDAY


@pytest.mark.parametrize("label", ["monday", "MONDAY", " Monday "])
def test_day_of_week_parse_ignores_case_and_whitespace(label: str) -> None:
    assert DayOfWeek.parse(label) is DayOfWeek.MONDAY


def test_day_of_week_parse_rejects_unknown_labels() -> None:
    with pytest.raises(ValueError, match="Invalid day of week"):
        DayOfWeek.parse("Mon")
    with pytest.raises(ValueError):
        DayOfWeek.parse(1)  # type: ignore[arg-type]


def test_weekday_index_is_monday_first() -> None:
    assert [day.weekday for day in DayOfWeek] == list(range(7))


def test_slot_status_values() -> None:
    assert {status.value for status in SlotStatus} == {"available", "booked", "inactive"}


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("09:00", time(9, 0)),
        ("9:05", time(9, 5)),
        ("23:59", time(23, 59)),
        ("10:30:00", time(10, 30)),
        (time(14, 15, 42), time(14, 15)),
    ],
)
def test_parse_time_of_day_accepts_wall_clock_values(raw, expected) -> None:
    assert parse_time_of_day(raw) == expected


@pytest.mark.parametrize("raw", ["24:00", "9am", "10:60", "", "10:30:15", None])
def test_parse_time_of_day_rejects_invalid_values(raw) -> None:
    with pytest.raises(ValueError):
        parse_time_of_day(raw)


def test_format_and_duration_helpers() -> None:
    assert format_hhmm(time(8, 5)) == "08:05"
    assert minutes_between(time(10, 0), time(11, 30)) == 90


def test_occurrence_datetime_combines_date_and_start() -> None:
    result = occurrence_datetime(date(2025, 7, 7), "10:00")
    assert result.isoformat() == "2025-07-07T10:00:00"
    assert result.tzinfo is None


def test_week_dates_returns_seven_consecutive_days() -> None:
    dates = week_dates(date(2025, 7, 7))
    assert len(dates) == 7
    assert dates[0] == date(2025, 7, 7)
    assert dates[-1] == date(2025, 7, 13)


def test_ranges_overlap_is_half_open() -> None:
    assert ranges_overlap(time(10), time(11), time(10, 30), time(11, 30))
    assert not ranges_overlap(time(10), time(11), time(11), time(12))
    assert ranges_overlap(time(9), time(17), time(12), time(13))
