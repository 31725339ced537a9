# backend/servicebook/services/appointment_service.py
"""
Appointment Service (the appointment ledger) for the servicebook engine.

Records concrete bookings and enforces the status state machine:

    pending -> accepted -> on_the_way -> in_progress -> completed
    any non-terminal -> cancelled (reason required)

``finished`` is written only by the weekly maintenance job. ``create`` only
flushes: the booking guard owns the surrounding transaction.
"""

from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
import logging
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from ..core.constants import MAX_REASON_LENGTH
from ..core.exceptions import (
    AppointmentChangedException,
    ConflictException,
    InvalidTransitionException,
    NotFoundException,
    RepositoryException,
    ValidationException,
)
from ..core.time_utils import TimeLike, format_hhmm, parse_time_of_day
from ..models.appointment import (
    TRANSITION_FIELDS,
    Appointment,
    AppointmentStatus,
    can_transition,
)
from ..repositories.appointment_repository import AppointmentRepository
from ..repositories.base_repository import is_integrity_violation
from ..repositories.factory import RepositoryFactory
from ..schemas.appointment import AppointmentStatistics
from .base import BaseService

logger = logging.getLogger(__name__)

BOOKABLE_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.ACCEPTED)


def parse_status(value: AppointmentStatus | str) -> AppointmentStatus:
    try:
        return AppointmentStatus.parse(value)
    except ValueError as exc:
        raise ValidationException(str(exc), details={"status": str(value)}) from exc


class AppointmentService(BaseService):
    """Service layer for the appointment ledger."""

    def __init__(self, db: Session, repository: Optional[AppointmentRepository] = None):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_appointment_repository(db)

    # Writes

    def create(
        self,
        *,
        provider_id: str,
        customer_id: str,
        scheduled_at: datetime,
        duration_minutes: int,
        status: AppointmentStatus | str = AppointmentStatus.ACCEPTED,
        description: str = "",
        price: Optional[Decimal] = None,
        template_id: Optional[str] = None,
    ) -> Appointment:
        """
        Insert an appointment inside the caller's transaction.

        Raises:
            ValidationException: Status other than pending/accepted, or bad duration
            ConflictException: An overlapping non-terminal appointment exists,
                or the unique occurrence index fired
        """
        initial = parse_status(status)
        if initial not in BOOKABLE_STATUSES:
            raise ValidationException(
                f"New appointments start as pending or accepted, not {initial.value}",
                details={"status": initial.value},
            )
        if duration_minutes <= 0:
            raise ValidationException(
                "Appointment duration must be positive",
                details={"duration_minutes": duration_minutes},
            )

        overlapping = self.repository.get_overlapping_active(
            provider_id, scheduled_at, duration_minutes
        )
        if overlapping:
            raise ConflictException(
                "Provider already has an appointment at this time",
                details={
                    "provider_id": provider_id,
                    "scheduled_at": scheduled_at.isoformat(),
                    "conflicting_appointment_id": overlapping[0].id,
                },
            )

        try:
            appointment = self.repository.create(
                provider_id=provider_id,
                customer_id=customer_id,
                scheduled_at=scheduled_at,
                duration_minutes=duration_minutes,
                status=initial.value,
                final_price=price,
                repair_description=description or "",
                availability_template_id=template_id,
            )
        except RepositoryException as exc:
            if is_integrity_violation(exc):
                raise ConflictException(
                    "Provider already has an appointment at this time",
                    details={
                        "provider_id": provider_id,
                        "scheduled_at": scheduled_at.isoformat(),
                    },
                ) from exc
            raise

        self.log_operation(
            "appointment_created",
            appointment_id=appointment.id,
            provider_id=provider_id,
            scheduled_at=scheduled_at.isoformat(),
        )
        return appointment

    @BaseService.measure_operation("update_status")
    def update_status(
        self,
        appointment_id: str,
        new_status: AppointmentStatus | str,
        fields: Optional[Mapping[str, Any]] = None,
    ) -> Appointment:
        """
        Move an appointment along the state machine and commit.

        Only fields relevant to the target status are applied:
        ``cancellation_reason`` (required) for cancelled, ``final_price`` for
        accepted and completed. Anything else in ``fields`` is ignored.

        Raises:
            NotFoundException: Unknown appointment
            ValidationException: Unknown status label, missing reason, bad price
            InvalidTransitionException: Transition not allowed
            AppointmentChangedException: Status changed concurrently
        """
        appointment = self.get(appointment_id)
        current_raw = appointment.status
        current = parse_status(current_raw)
        target = parse_status(new_status)

        self._check_transition(current, target)
        updates = self._transition_updates(appointment_id, target, fields or {})

        with self.transaction():
            # Guard against a concurrent move (including maintenance retiring the row)
            changed = self.repository.conditional_status_update(
                appointment.id, [current_raw], target
            )
            if not changed:
                raise AppointmentChangedException(appointment.id)
            self.repository.update(appointment, status=target.value, **updates)

        self.logger.info(
            "Appointment %s: %s -> %s", appointment.id, current.value, target.value
        )
        return appointment

    # Reads

    def get(self, appointment_id: str) -> Appointment:
        appointment = self.repository.get_by_id(appointment_id)
        if not appointment:
            raise NotFoundException(
                f"Appointment {appointment_id} not found",
                details={"appointment_id": appointment_id},
            )
        return appointment

    def find_by_provider_and_occurrence(
        self, provider_id: str, concrete_date: date, start_time: TimeLike
    ) -> Optional[Appointment]:
        """Zero or one non-terminal appointment at exactly date + start."""
        try:
            start: time = parse_time_of_day(start_time)
        except ValueError as exc:
            raise ValidationException(str(exc)) from exc
        return self.repository.find_by_provider_and_occurrence(provider_id, concrete_date, start)

    @BaseService.measure_operation("list_for_provider")
    def list_for_provider(
        self, provider_id: str, status: Optional[AppointmentStatus | str] = None
    ) -> List[Appointment]:
        return self.repository.list_for_provider(
            provider_id, parse_status(status) if status else None
        )

    @BaseService.measure_operation("list_for_customer")
    def list_for_customer(
        self, customer_id: str, status: Optional[AppointmentStatus | str] = None
    ) -> List[Appointment]:
        return self.repository.list_for_customer(
            customer_id, parse_status(status) if status else None
        )

    @BaseService.measure_operation("get_statistics")
    def get_statistics(self, provider_id: Optional[str] = None) -> AppointmentStatistics:
        """Counts by canonical status (legacy labels folded in) and completed revenue."""
        by_status: Dict[str, int] = {status.value: 0 for status in AppointmentStatus}
        for raw, total in self.repository.count_by_status(provider_id).items():
            try:
                key = AppointmentStatus.parse(raw).value
            except ValueError:
                key = raw
            by_status[key] = by_status.get(key, 0) + total

        grand_total = sum(by_status.values())
        completed = by_status[AppointmentStatus.COMPLETED.value]
        return AppointmentStatistics(
            provider_id=provider_id,
            total=grand_total,
            by_status=by_status,
            completed_revenue=self.repository.sum_completed_revenue(provider_id),
            completion_rate=round(completed / grand_total, 4) if grand_total else 0.0,
        )

    # Private helpers

    @staticmethod
    def _check_transition(current: AppointmentStatus, target: AppointmentStatus) -> None:
        if target == AppointmentStatus.FINISHED:
            raise InvalidTransitionException(
                current.value, target.value, "finished is set by scheduled maintenance only"
            )
        if current.is_terminal:
            raise InvalidTransitionException(
                current.value, target.value, f"appointment is already {current.value}"
            )
        if not can_transition(current, target):
            raise InvalidTransitionException(current.value, target.value)

    def _transition_updates(
        self, appointment_id: str, target: AppointmentStatus, fields: Mapping[str, Any]
    ) -> Dict[str, Any]:
        allowed = TRANSITION_FIELDS.get(target, frozenset())
        ignored = sorted(key for key in fields if key not in allowed)
        if ignored:
            self.logger.info(
                "Ignoring fields %s for transition of %s to %s",
                ignored,
                appointment_id,
                target.value,
            )

        updates: Dict[str, Any] = {}
        if "cancellation_reason" in allowed:
            reason = str(fields.get("cancellation_reason") or "").strip()
            if not reason:
                raise ValidationException(
                    "A cancellation reason is required",
                    details={"appointment_id": appointment_id},
                )
            if len(reason) > MAX_REASON_LENGTH:
                raise ValidationException(
                    f"Cancellation reason must be at most {MAX_REASON_LENGTH} characters"
                )
            updates["cancellation_reason"] = reason

        if "final_price" in allowed and fields.get("final_price") is not None:
            updates["final_price"] = self._parse_price(fields["final_price"])
        return updates

    @staticmethod
    def _parse_price(value: Any) -> Decimal:
        try:
            price = Decimal(str(value))
        except (InvalidOperation, ValueError) as exc:
            raise ValidationException(f"Invalid price {value!r}") from exc
        if not price.is_finite() or price < 0:
            raise ValidationException(f"Invalid price {value!r}")
        return price.quantize(Decimal("0.01"))


def describe_occurrence(appointment: Appointment) -> str:
    """Human label used in log lines, e.g. "Monday 2025-03-10 09:00"."""
    scheduled = appointment.scheduled_at
    return f"{scheduled:%A} {scheduled.date().isoformat()} {format_hhmm(scheduled.time())}"
