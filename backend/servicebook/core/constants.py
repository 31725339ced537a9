"""Application-wide constants for the servicebook engine."""

from __future__ import annotations

BRAND_NAME = "ServiceBook"

# Day of week mapping (Monday first, matches date.weekday())
DAYS_OF_WEEK = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

# "HH:MM" 24-hour wall-clock times as accepted from clients
TIME_OF_DAY_PATTERN = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"

# User-facing messages for the conflict family
SLOT_UNAVAILABLE_MESSAGE = "This slot is no longer available, please choose another"
SLOT_INACTIVE_MESSAGE = "This slot is not currently offered, please choose another"
BOOKING_TIMEOUT_MESSAGE = "The booking could not be confirmed in time, please try again"

RESCHEDULE_NOTE_PREFIX = "Rescheduled: "

# Query limits
DEFAULT_QUERY_LIMIT = 100
MAX_REASON_LENGTH = 255
