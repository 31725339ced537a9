# backend/servicebook/repositories/__init__.py
"""
Repository layer for the servicebook engine.

Key Components:
- BaseRepository: shared flush/transaction/error handling
- RepositoryFactory: factory for creating repository instances
- AvailabilityRepository: weekly template store queries
- AppointmentRepository: appointment ledger queries

Usage:
    from servicebook.repositories import RepositoryFactory

    repository = RepositoryFactory.create_appointment_repository(db)
    appointment = repository.find_by_provider_and_occurrence(provider_id, day, start)
"""

from .appointment_repository import AppointmentRepository
from .availability_repository import AvailabilityRepository
from .base_repository import BaseRepository
from .factory import RepositoryFactory

__all__ = [
    "AppointmentRepository",
    "AvailabilityRepository",
    "BaseRepository",
    "RepositoryFactory",
]
