# backend/servicebook/models/appointment.py
"""
Appointment model: one concrete, dated booking of a provider.

Appointments reference the template they were booked from, but the
scheduled datetime is stored on the row itself so the booking survives
later template edits. Rows are never deleted; cancellation, completion
and maintenance retirement are terminal statuses.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
import logging
from typing import AbstractSet, Dict, FrozenSet, Optional

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base

logger = logging.getLogger(__name__)


class AppointmentStatus(str, Enum):
    """Appointment lifecycle statuses."""

    PENDING = "pending"
    ACCEPTED = "accepted"  # Default for slot bookings
    ON_THE_WAY = "on_the_way"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FINISHED = "finished"  # Retired by the weekly maintenance job

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @classmethod
    def parse(cls, value: "AppointmentStatus | str") -> "AppointmentStatus":
        """Resolve canonical values and the labels older clients and rows still carry."""
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        if normalized in LEGACY_STATUS_ALIASES:
            return LEGACY_STATUS_ALIASES[normalized]
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(
                f"Invalid status {value!r}. Valid statuses are: "
                + ", ".join(member.value for member in cls)
            ) from None


TERMINAL_STATUSES: FrozenSet[AppointmentStatus] = frozenset(
    {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.FINISHED}
)
ACTIVE_STATUSES: FrozenSet[AppointmentStatus] = frozenset(
    status for status in AppointmentStatus if status not in TERMINAL_STATUSES
)
# Statuses the maintenance job may retire to FINISHED once their occurrence is stale
STALE_ELIGIBLE_STATUSES: FrozenSet[AppointmentStatus] = frozenset(
    {AppointmentStatus.ACCEPTED, AppointmentStatus.ON_THE_WAY}
)

LEGACY_STATUS_ALIASES: Dict[str, AppointmentStatus] = {
    "confirmed": AppointmentStatus.ACCEPTED,
    "approved": AppointmentStatus.ACCEPTED,
    "on the way": AppointmentStatus.ON_THE_WAY,
    "on-the-way": AppointmentStatus.ON_THE_WAY,
    "in-progress": AppointmentStatus.IN_PROGRESS,
    "in progress": AppointmentStatus.IN_PROGRESS,
    "canceled": AppointmentStatus.CANCELLED,
}

# Forward transitions only. CANCELLED is reachable from every non-terminal
# state; FINISHED is written by maintenance, never through a transition.
ALLOWED_TRANSITIONS: Dict[AppointmentStatus, FrozenSet[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset({AppointmentStatus.ACCEPTED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.ACCEPTED: frozenset(
        {AppointmentStatus.ON_THE_WAY, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.ON_THE_WAY: frozenset(
        {AppointmentStatus.IN_PROGRESS, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.IN_PROGRESS: frozenset(
        {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.FINISHED: frozenset(),
}

# Extra fields a caller may set alongside a transition; anything else is ignored
TRANSITION_FIELDS: Dict[AppointmentStatus, FrozenSet[str]] = {
    AppointmentStatus.ACCEPTED: frozenset({"final_price"}),
    AppointmentStatus.COMPLETED: frozenset({"final_price"}),
    AppointmentStatus.CANCELLED: frozenset({"cancellation_reason"}),
}


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def status_values_for(statuses: AbstractSet[AppointmentStatus]) -> FrozenSet[str]:
    """Raw stored values (canonical and legacy) that parse to any of ``statuses``."""
    return frozenset(status.value for status in statuses) | frozenset(
        label for label, status in LEGACY_STATUS_ALIASES.items() if status in statuses
    )


# Rows still carrying a legacy label hold their slot until maintenance rewrites them
ACTIVE_STATUS_VALUES: FrozenSet[str] = status_values_for(ACTIVE_STATUSES)


def _sql_status_list(values: FrozenSet[str]) -> str:
    return ", ".join(f"'{value}'" for value in sorted(values))


ACTIVE_STATUS_PREDICATE = f"status IN ({_sql_status_list(ACTIVE_STATUS_VALUES)})"


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class Appointment(Base):
    """
    A concrete booking of a provider at a local date and time.

    ``scheduled_at`` is a naive wall-clock datetime in the provider's local
    time; it is the join key the slot resolver uses against templates.
    """

    __tablename__ = "appointments"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    provider_id = Column(String(64), nullable=False)
    customer_id = Column(String(64), nullable=False, index=True)
    availability_template_id = Column(
        String(26), ForeignKey("availability_templates.id"), nullable=True
    )

    scheduled_at = Column(DateTime(timezone=False), nullable=False)
    duration_minutes = Column(Integer, nullable=False, default=60)

    # Stored as plain text so rows written with legacy labels stay readable
    status = Column(String(20), nullable=False, default=AppointmentStatus.ACCEPTED.value, index=True)
    final_price = Column(Numeric(10, 2), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    repair_description = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=_now_utc, onupdate=_now_utc)

    availability_template = relationship("AvailabilityTemplate", lazy="joined")

    __table_args__ = (
        # Final backstop against double booking: one live appointment per
        # provider and start datetime.
        Index(
            "uq_appointments_provider_slot_active",
            "provider_id",
            "scheduled_at",
            unique=True,
            sqlite_where=text(ACTIVE_STATUS_PREDICATE),
            postgresql_where=text(ACTIVE_STATUS_PREDICATE),
        ),
        Index("ix_appointments_provider_scheduled", "provider_id", "scheduled_at"),
    )

    @property
    def status_enum(self) -> Optional[AppointmentStatus]:
        try:
            return AppointmentStatus.parse(self.status)
        except ValueError:
            return None

    @property
    def ends_at(self) -> datetime:
        return self.scheduled_at + timedelta(minutes=self.duration_minutes or 0)

    @property
    def is_active(self) -> bool:
        status = self.status_enum
        return status is not None and not status.is_terminal

    def __repr__(self) -> str:
        return f"<Appointment {self.id} {self.provider_id} {self.scheduled_at} {self.status}>"
