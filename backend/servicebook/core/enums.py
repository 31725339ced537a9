# backend/servicebook/core/enums.py
"""
Core enums for the booking engine.

Day-of-week is a closed set: templates store the label ("Monday") and all
matching happens on the enum member, never on free-form strings.
"""

from datetime import date
from enum import Enum
from typing import Union


class DayOfWeek(str, Enum):
    """Weekday labels, ordered Monday first to line up with ``date.weekday()``."""

    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"
    SUNDAY = "Sunday"

    @property
    def weekday(self) -> int:
        """0 for Monday through 6 for Sunday."""
        return _DAY_ORDER.index(self)

    @classmethod
    def from_date(cls, value: date) -> "DayOfWeek":
        """Calendar-correct weekday for a local date (no timezone conversion)."""
        return _DAY_ORDER[value.weekday()]

    @classmethod
    def parse(cls, value: Union["DayOfWeek", str]) -> "DayOfWeek":
        """Accept an enum member or a label in any casing ("monday", "MONDAY")."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Invalid day of week: {value!r}")
        normalized = value.strip().capitalize()
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(
                f"Invalid day of week {value!r}. Must be one of: "
                + ", ".join(member.value for member in cls)
            ) from None


_DAY_ORDER = list(DayOfWeek)


class SlotStatus(str, Enum):
    """Status of a template projected onto one concrete date."""

    AVAILABLE = "available"
    BOOKED = "booked"
    INACTIVE = "inactive"
