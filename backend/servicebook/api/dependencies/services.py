# backend/servicebook/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

Each request gets fresh service instances bound to its own session.
"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.appointment_service import AppointmentService
from ...services.availability_service import AvailabilityService
from ...services.booking_notifier import BookingNotifier
from ...services.booking_service import BookingService
from ...services.slot_resolver import SlotResolver
from .database import get_db


@lru_cache(maxsize=1)
def get_booking_notifier() -> BookingNotifier:
    """Process-wide notifier; override in the app to plug in real delivery."""
    return BookingNotifier()


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    return AvailabilityService(db)


def get_slot_resolver(db: Session = Depends(get_db)) -> SlotResolver:
    return SlotResolver(db)


def get_appointment_service(db: Session = Depends(get_db)) -> AppointmentService:
    return AppointmentService(db)


def get_booking_service(
    db: Session = Depends(get_db),
    notifier: BookingNotifier = Depends(get_booking_notifier),
) -> BookingService:
    """
    Get booking service instance with all dependencies.

    Args:
        db: Database session
        notifier: Post-commit booking event dispatcher

    Returns:
        BookingService sharing ``db`` with its ledger and template reads
    """
    return BookingService(db, notifier=notifier)
