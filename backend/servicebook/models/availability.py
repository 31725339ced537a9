# backend/servicebook/models/availability.py
"""
Recurring weekly availability templates.

One row per (provider, day-of-week, start, end). Rows are deactivated rather
than deleted so appointment history keeps a valid back-reference.

``is_booked`` / ``booked_occurrence_date`` are a cache owned by the weekly
maintenance job. Slot status for a concrete date is always derived from the
appointment ledger, never from these columns.
"""

from datetime import datetime, timezone
import logging

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Index,
    String,
    Time,
    UniqueConstraint,
)
from sqlalchemy.sql import func
import ulid

from ..core.enums import DayOfWeek
from ..core.time_utils import format_hhmm, minutes_between
from ..database import Base

logger = logging.getLogger(__name__)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class AvailabilityTemplate(Base):
    """A provider's recurring weekly window."""

    __tablename__ = "availability_templates"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    provider_id = Column(String(64), nullable=False, index=True)
    day_of_week = Column(String(9), nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    is_active = Column(Boolean, nullable=False, default=True)
    # Maintenance cache only, see module docstring
    is_booked = Column(Boolean, nullable=False, default=False)
    booked_occurrence_date = Column(Date, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=_now_utc, onupdate=_now_utc)

    __table_args__ = (
        UniqueConstraint(
            "provider_id",
            "day_of_week",
            "start_time",
            "end_time",
            name="uq_availability_templates_provider_window",
        ),
        CheckConstraint("start_time < end_time", name="ck_availability_templates_window_order"),
        Index("ix_availability_templates_provider_day", "provider_id", "day_of_week"),
    )

    @property
    def day(self) -> DayOfWeek:
        return DayOfWeek.parse(self.day_of_week)

    @property
    def duration_minutes(self) -> int:
        return minutes_between(self.start_time, self.end_time)

    @property
    def time_range(self) -> str:
        return f"{format_hhmm(self.start_time)}-{format_hhmm(self.end_time)}"

    def __repr__(self) -> str:
        state = "active" if self.is_active else "inactive"
        return f"<AvailabilityTemplate {self.provider_id} {self.day_of_week} {self.time_range} {state}>"
