# backend/servicebook/repositories/availability_repository.py
"""
Availability Repository for the servicebook engine.

Data access for recurring weekly templates. Day-of-week is stored as its
label and every lookup goes through ``DayOfWeek`` so callers never match
on free-form strings.
"""

from datetime import date, time
import logging
from typing import Dict, List, Optional

from sqlalchemy import func, or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import DayOfWeek
from ..core.exceptions import RepositoryException
from ..models.availability import AvailabilityTemplate
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class AvailabilityRepository(BaseRepository[AvailabilityTemplate]):
    """Template store queries: per-provider reads, window lookups, cache flags."""

    def __init__(self, db: Session):
        super().__init__(db, AvailabilityTemplate)
        self.logger = logging.getLogger(__name__)

    # Reads

    def get_for_provider(
        self, provider_id: str, active_only: bool = True
    ) -> List[AvailabilityTemplate]:
        """All windows of a provider, unordered; callers sort by weekday."""
        query = self._build_query().filter(AvailabilityTemplate.provider_id == provider_id)
        if active_only:
            query = query.filter(AvailabilityTemplate.is_active.is_(True))
        return self._execute_query(query)

    def get_for_provider_day(
        self, provider_id: str, day: DayOfWeek, include_inactive: bool = False
    ) -> List[AvailabilityTemplate]:
        """Windows for one provider and weekday, ordered by start time."""
        query = self._build_query().filter(
            AvailabilityTemplate.provider_id == provider_id,
            AvailabilityTemplate.day_of_week == day.value,
        )
        if not include_inactive:
            query = query.filter(AvailabilityTemplate.is_active.is_(True))
        return self._execute_query(query.order_by(AvailabilityTemplate.start_time))

    def find_by_start(
        self, provider_id: str, day: DayOfWeek, start_time: time
    ) -> List[AvailabilityTemplate]:
        """
        Windows starting at ``start_time`` on ``day``, active ones first.

        More than one row can match when an inactive window shares its start
        with the currently active one.
        """
        query = (
            self._build_query()
            .filter(
                AvailabilityTemplate.provider_id == provider_id,
                AvailabilityTemplate.day_of_week == day.value,
                AvailabilityTemplate.start_time == start_time,
            )
            .order_by(AvailabilityTemplate.is_active.desc(), AvailabilityTemplate.end_time)
        )
        return self._execute_query(query)

    def find_active_by_start(
        self, provider_id: str, day: DayOfWeek, start_time: time
    ) -> Optional[AvailabilityTemplate]:
        for template in self.find_by_start(provider_id, day, start_time):
            if template.is_active:
                return template
        return None

    def get_overlapping_active(
        self,
        provider_id: str,
        day: DayOfWeek,
        start_time: time,
        end_time: time,
        exclude_id: Optional[str] = None,
    ) -> List[AvailabilityTemplate]:
        """Active windows on the same day that overlap [start, end); touching edges excluded."""
        query = self._build_query().filter(
            AvailabilityTemplate.provider_id == provider_id,
            AvailabilityTemplate.day_of_week == day.value,
            AvailabilityTemplate.is_active.is_(True),
            AvailabilityTemplate.start_time < end_time,
            AvailabilityTemplate.end_time > start_time,
        )
        if exclude_id:
            query = query.filter(AvailabilityTemplate.id != exclude_id)
        return self._execute_query(query.order_by(AvailabilityTemplate.start_time))

    def count_by_day(self, provider_id: str, active_only: bool = True) -> Dict[str, int]:
        query = self.db.query(
            AvailabilityTemplate.day_of_week, func.count(AvailabilityTemplate.id)
        ).filter(AvailabilityTemplate.provider_id == provider_id)
        if active_only:
            query = query.filter(AvailabilityTemplate.is_active.is_(True))
        try:
            rows = query.group_by(AvailabilityTemplate.day_of_week).all()
        except SQLAlchemyError as e:
            self.logger.error("Error counting windows by day: %s", e)
            raise RepositoryException(f"Failed to summarize availability: {e}") from e
        return {day_label: int(total) for day_label, total in rows}

    # Maintenance cache

    def get_stale_booked(self, cutoff: date) -> List[AvailabilityTemplate]:
        """Flagged templates whose cached occurrence is missing or before ``cutoff``."""
        query = self._build_query().filter(
            AvailabilityTemplate.is_booked.is_(True),
            or_(
                AvailabilityTemplate.booked_occurrence_date.is_(None),
                AvailabilityTemplate.booked_occurrence_date < cutoff,
            ),
        )
        return self._execute_query(query)

    def clear_booked_flag(self, template_id: str, cutoff: date) -> int:
        """
        Conditionally clear the cache flag.

        Re-checks staleness in the WHERE clause so a flag written for a
        current occurrence between read and write is left alone.
        """
        stmt = (
            update(AvailabilityTemplate)
            .where(
                AvailabilityTemplate.id == template_id,
                AvailabilityTemplate.is_booked.is_(True),
                or_(
                    AvailabilityTemplate.booked_occurrence_date.is_(None),
                    AvailabilityTemplate.booked_occurrence_date < cutoff,
                ),
            )
            .values(is_booked=False, booked_occurrence_date=None)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount

    def mark_booked(self, template_id: str, occurrence_date: date) -> int:
        """Flag a template for ``occurrence_date`` unless it already carries a later one."""
        stmt = (
            update(AvailabilityTemplate)
            .where(
                AvailabilityTemplate.id == template_id,
                or_(
                    AvailabilityTemplate.is_booked.is_(False),
                    AvailabilityTemplate.booked_occurrence_date.is_(None),
                    AvailabilityTemplate.booked_occurrence_date < occurrence_date,
                ),
            )
            .values(is_booked=True, booked_occurrence_date=occurrence_date)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount
