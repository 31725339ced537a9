"""
Database models for the servicebook engine.

- AvailabilityTemplate: recurring weekly windows per provider
- Appointment: concrete dated bookings (the appointment ledger)
"""

from .appointment import (
    ACTIVE_STATUS_VALUES,
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    Appointment,
    AppointmentStatus,
)
from .availability import AvailabilityTemplate

__all__ = [
    "ACTIVE_STATUS_VALUES",
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "Appointment",
    "AppointmentStatus",
    "AvailabilityTemplate",
]
