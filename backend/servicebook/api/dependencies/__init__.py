# backend/servicebook/api/dependencies/__init__.py
"""
FastAPI dependencies for servicebook routes.
"""

from .database import get_db
from .services import (
    get_appointment_service,
    get_availability_service,
    get_booking_notifier,
    get_booking_service,
    get_slot_resolver,
)

__all__ = [
    "get_appointment_service",
    "get_availability_service",
    "get_booking_notifier",
    "get_booking_service",
    "get_db",
    "get_slot_resolver",
]
