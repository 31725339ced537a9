"""Shared dates and builders for servicebook tests."""

from datetime import date, datetime

from servicebook.core.time_utils import parse_time_of_day

# 2025-07-07 is a Monday
MONDAY = date(2025, 7, 7)
NEXT_MONDAY = date(2025, 7, 14)
WEDNESDAY = date(2025, 7, 9)
PROVIDER_ID = "2"


def at(day: date, hhmm: str) -> datetime:
    """Naive local datetime for ``day`` at "HH:MM"."""
    return datetime.combine(day, parse_time_of_day(hhmm))
