# backend/servicebook/services/slot_resolver.py
"""
Slot Resolver for the servicebook engine.

Projects a provider's weekly template onto concrete dates. A window's
status on a date comes only from the appointment ledger for that date, so
booking next Monday never hides this Monday and vice versa. The cached
``is_booked`` flag on templates is ignored here.

Reads take no locks.
"""

from datetime import date, timedelta
import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.enums import DayOfWeek, SlotStatus
from ..core.time_utils import occurrence_datetime, week_dates
from ..models.appointment import Appointment
from ..models.availability import AvailabilityTemplate
from ..repositories.appointment_repository import AppointmentRepository
from ..repositories.availability_repository import AvailabilityRepository
from ..repositories.factory import RepositoryFactory
from ..schemas.availability import DayAvailabilityResponse, ProjectedSlot, WeekAvailabilityResponse
from .base import BaseService

logger = logging.getLogger(__name__)


class SlotResolver(BaseService):
    """Read-only projection of templates plus ledger into per-date slots."""

    def __init__(
        self,
        db: Session,
        availability_repository: Optional[AvailabilityRepository] = None,
        appointment_repository: Optional[AppointmentRepository] = None,
    ):
        super().__init__(db)
        self.availability_repository = (
            availability_repository or RepositoryFactory.create_availability_repository(db)
        )
        self.appointment_repository = (
            appointment_repository or RepositoryFactory.create_appointment_repository(db)
        )

    @BaseService.measure_operation("resolve_availability")
    def resolve_availability(
        self, provider_id: str, concrete_date: date, include_inactive: bool = False
    ) -> List[ProjectedSlot]:
        """
        Status of every window of ``provider_id`` on ``concrete_date``.

        Args:
            provider_id: Provider to resolve
            concrete_date: Local calendar date (no timezone conversion)
            include_inactive: Also return deactivated windows, as ``inactive``

        Returns:
            Projected slots ordered by start time
        """
        day = DayOfWeek.from_date(concrete_date)
        templates = self.availability_repository.get_for_provider_day(
            provider_id, day, include_inactive=include_inactive
        )
        if not templates:
            return []

        # One ledger read per date, indexed by exact start datetime
        booked: Dict = {
            appointment.scheduled_at: appointment
            for appointment in self.appointment_repository.get_active_for_provider_on_date(
                provider_id, concrete_date
            )
        }

        return [self._project(template, concrete_date, booked) for template in templates]

    @BaseService.measure_operation("resolve_week")
    def resolve_week(
        self, provider_id: str, week_start: date, include_inactive: bool = False
    ) -> WeekAvailabilityResponse:
        """Seven consecutive dates from ``week_start``, each resolved independently."""
        days = [
            self.resolve_day(provider_id, concrete_date, include_inactive=include_inactive)
            for concrete_date in week_dates(week_start)
        ]
        return WeekAvailabilityResponse(provider_id=provider_id, week_start=week_start, days=days)

    def resolve_day(
        self, provider_id: str, concrete_date: date, include_inactive: bool = False
    ) -> DayAvailabilityResponse:
        return DayAvailabilityResponse(
            provider_id=provider_id,
            date=concrete_date,
            day_of_week=DayOfWeek.from_date(concrete_date),
            slots=self.resolve_availability(
                provider_id, concrete_date, include_inactive=include_inactive
            ),
        )

    @staticmethod
    def next_occurrence(day: DayOfWeek, on_or_after: date) -> date:
        """First date on or after ``on_or_after`` that falls on ``day``."""
        return on_or_after + timedelta(days=(day.weekday - on_or_after.weekday()) % 7)

    @staticmethod
    def _project(
        template: AvailabilityTemplate,
        concrete_date: date,
        booked: Dict,
    ) -> ProjectedSlot:
        match: Optional[Appointment] = None
        if not template.is_active:
            status = SlotStatus.INACTIVE
        else:
            match = booked.get(occurrence_datetime(concrete_date, template.start_time))
            status = SlotStatus.BOOKED if match is not None else SlotStatus.AVAILABLE

        return ProjectedSlot(
            template_id=template.id,
            provider_id=template.provider_id,
            day_of_week=template.day,
            concrete_date=concrete_date,
            start_time=template.start_time,
            end_time=template.end_time,
            status=status,
            appointment_id=match.id if match is not None else None,
        )
