# backend/servicebook/repositories/appointment_repository.py
"""
Appointment Repository for the servicebook engine.

Data access for the appointment ledger: occurrence lookups used by the slot
resolver and the conflict guard, listings, statistics and the conditional
updates the weekly maintenance job relies on.
"""

from datetime import date, datetime, time, timedelta
from decimal import Decimal
import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..core.time_utils import occurrence_datetime
from ..models.appointment import (
    ACTIVE_STATUS_VALUES,
    Appointment,
    AppointmentStatus,
    status_values_for,
)
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

_ACTIVE_VALUES = sorted(ACTIVE_STATUS_VALUES)


class AppointmentRepository(BaseRepository[Appointment]):
    """Ledger queries. Rows are never deleted."""

    def __init__(self, db: Session):
        super().__init__(db, Appointment)
        self.logger = logging.getLogger(__name__)

    # Occurrence lookups

    def find_active_at(self, provider_id: str, scheduled_at: datetime) -> Optional[Appointment]:
        """The non-terminal appointment starting exactly at ``scheduled_at``, if any."""
        try:
            return (
                self._build_query()
                .filter(
                    Appointment.provider_id == provider_id,
                    Appointment.scheduled_at == scheduled_at,
                    Appointment.status.in_(_ACTIVE_VALUES),
                )
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(
                "Error finding appointment for %s at %s: %s", provider_id, scheduled_at, e
            )
            raise RepositoryException(f"Failed to look up occurrence: {e}") from e

    def find_by_provider_and_occurrence(
        self, provider_id: str, concrete_date: date, start_time: time
    ) -> Optional[Appointment]:
        return self.find_active_at(provider_id, occurrence_datetime(concrete_date, start_time))

    def get_active_for_provider_on_date(
        self, provider_id: str, concrete_date: date
    ) -> List[Appointment]:
        """All non-terminal appointments of a provider starting on ``concrete_date``."""
        day_start = datetime.combine(concrete_date, time.min)
        query = (
            self._build_query()
            .filter(
                Appointment.provider_id == provider_id,
                Appointment.scheduled_at >= day_start,
                Appointment.scheduled_at < day_start + timedelta(days=1),
                Appointment.status.in_(_ACTIVE_VALUES),
            )
            .order_by(Appointment.scheduled_at)
        )
        return self._execute_query(query)

    def get_overlapping_active(
        self,
        provider_id: str,
        starts_at: datetime,
        duration_minutes: int,
        exclude_id: Optional[str] = None,
    ) -> List[Appointment]:
        """
        Non-terminal appointments whose interval overlaps [starts_at, starts_at + duration).

        Windows never span midnight, so candidates are narrowed to a one-day
        band in SQL and the interval test runs on the loaded rows.
        """
        ends_at = starts_at + timedelta(minutes=duration_minutes)
        query = self._build_query().filter(
            Appointment.provider_id == provider_id,
            Appointment.scheduled_at > starts_at - timedelta(days=1),
            Appointment.scheduled_at < ends_at,
            Appointment.status.in_(_ACTIVE_VALUES),
        )
        if exclude_id:
            query = query.filter(Appointment.id != exclude_id)
        return [
            appointment
            for appointment in self._execute_query(query)
            if appointment.scheduled_at < ends_at and starts_at < appointment.ends_at
        ]

    # Listings

    def list_for_provider(
        self, provider_id: str, status: Optional[AppointmentStatus] = None, limit: int = 100
    ) -> List[Appointment]:
        query = self._build_query().filter(Appointment.provider_id == provider_id)
        if status is not None:
            query = query.filter(Appointment.status.in_(sorted(status_values_for({status}))))
        return self._execute_query(
            query.order_by(Appointment.scheduled_at.desc(), Appointment.id.desc()).limit(limit)
        )

    def list_for_customer(
        self, customer_id: str, status: Optional[AppointmentStatus] = None, limit: int = 100
    ) -> List[Appointment]:
        query = self._build_query().filter(Appointment.customer_id == customer_id)
        if status is not None:
            query = query.filter(Appointment.status.in_(sorted(status_values_for({status}))))
        return self._execute_query(
            query.order_by(Appointment.scheduled_at.desc(), Appointment.id.desc()).limit(limit)
        )

    # Statistics

    def count_by_status(self, provider_id: Optional[str] = None) -> Dict[str, int]:
        query = self.db.query(Appointment.status, func.count(Appointment.id))
        if provider_id:
            query = query.filter(Appointment.provider_id == provider_id)
        try:
            rows = query.group_by(Appointment.status).all()
        except SQLAlchemyError as e:
            self.logger.error("Error counting appointments by status: %s", e)
            raise RepositoryException(f"Failed to compute appointment statistics: {e}") from e
        return {status: int(total) for status, total in rows}

    def sum_completed_revenue(self, provider_id: Optional[str] = None) -> Decimal:
        query = self.db.query(func.coalesce(func.sum(Appointment.final_price), 0)).filter(
            Appointment.status == AppointmentStatus.COMPLETED.value
        )
        if provider_id:
            query = query.filter(Appointment.provider_id == provider_id)
        return Decimal(str(self._execute_scalar(query) or 0))

    # Maintenance

    def get_ids_with_status_values(self, values: Iterable[str]) -> List[tuple]:
        """(id, status) pairs for rows holding any of the raw ``values``."""
        try:
            return (
                self.db.query(Appointment.id, Appointment.status)
                .filter(Appointment.status.in_(list(values)))
                .order_by(Appointment.id)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error("Error loading appointments by raw status: %s", e)
            raise RepositoryException(f"Failed to load appointments: {e}") from e

    def get_distinct_status_values(self) -> List[str]:
        try:
            return [row[0] for row in self.db.query(Appointment.status).distinct().all()]
        except SQLAlchemyError as e:
            self.logger.error("Error loading status values: %s", e)
            raise RepositoryException(f"Failed to load status values: {e}") from e

    def get_stale_candidates(
        self, statuses: Iterable[AppointmentStatus], before: datetime
    ) -> List[str]:
        """Ids of appointments in ``statuses`` scheduled before ``before``."""
        try:
            rows = (
                self.db.query(Appointment.id)
                .filter(
                    Appointment.status.in_([status.value for status in statuses]),
                    Appointment.scheduled_at < before,
                )
                .order_by(Appointment.scheduled_at)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error("Error loading stale appointments: %s", e)
            raise RepositoryException(f"Failed to load stale appointments: {e}") from e
        return [row[0] for row in rows]

    def get_active_from(self, since: datetime) -> List[Appointment]:
        """Non-terminal appointments scheduled at or after ``since``, oldest first."""
        query = (
            self._build_query()
            .filter(
                Appointment.scheduled_at >= since,
                Appointment.status.in_(_ACTIVE_VALUES),
            )
            .order_by(Appointment.scheduled_at, Appointment.id)
        )
        return self._execute_query(query)

    def conditional_status_update(
        self, appointment_id: str, expected_values: Iterable[str], new_status: AppointmentStatus
    ) -> int:
        """
        UPDATE ... WHERE id = :id AND status IN (:expected).

        Returns the affected row count; 0 means the row moved on concurrently.
        """
        stmt = (
            update(Appointment)
            .where(
                Appointment.id == appointment_id,
                Appointment.status.in_(list(expected_values)),
            )
            .values(status=new_status.value, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount
