# backend/servicebook/services/booking_service.py
"""
Booking Service (the booking conflict guard) for the servicebook engine.

Guarantees that one provider occurrence (provider, concrete date, start
time) is granted to at most one customer:

1. Require an active weekly window starting at the requested time.
2. Take the per-occurrence lock (bounded wait).
3. In one transaction, re-check the ledger for that exact occurrence and
   insert the appointment.
4. A constraint race is retried once, then reported as unavailable.

The partial unique index on appointments is the final backstop. Storage
exceptions never leave this service untranslated.
"""

from datetime import date
from decimal import Decimal
import logging
from typing import Any, Callable, Mapping, Optional, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from ..core.booking_lock import slot_lock, slot_lock_key
from ..core.config import settings
from ..core.constants import MAX_REASON_LENGTH, RESCHEDULE_NOTE_PREFIX, SLOT_INACTIVE_MESSAGE
from ..core.enums import DayOfWeek
from ..core.exceptions import (
    AppointmentChangedException,
    BookingTimeoutException,
    ConflictException,
    InvalidTransitionException,
    NotFoundException,
    RepositoryException,
    SlotUnavailableException,
    ValidationException,
)
from ..core.time_utils import TimeLike, format_hhmm, occurrence_datetime, parse_time_of_day
from ..database.session_utils import apply_local_timeouts
from ..models.appointment import Appointment, AppointmentStatus
from ..models.availability import AvailabilityTemplate
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.availability_repository import AvailabilityRepository
from ..repositories.base_repository import is_integrity_violation
from ..repositories.factory import RepositoryFactory
from .appointment_service import AppointmentService, describe_occurrence, parse_status
from .base import BaseService
from .booking_notifier import (
    APPOINTMENT_CREATED,
    APPOINTMENT_RESCHEDULED,
    APPOINTMENT_STATUS_CHANGED,
    BookingEvent,
    BookingNotifier,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# PostgreSQL lock_not_available / query_canceled (lock_timeout, statement_timeout)
_TIMEOUT_SQLSTATES = {"55P03", "57014"}
_TIMEOUT_MARKERS = (
    "lock timeout",
    "statement timeout",
    "canceling statement",
    "database is locked",
)


class BookingService(BaseService):
    """Conflict guard in front of the appointment ledger."""

    @staticmethod
    def _is_timeout_error(exc: OperationalError) -> bool:
        orig = getattr(exc, "orig", None)
        pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
        if pgcode in _TIMEOUT_SQLSTATES:
            return True
        message = str(exc).lower()
        return any(marker in message for marker in _TIMEOUT_MARKERS)

    def __init__(
        self,
        db: Session,
        notifier: Optional[BookingNotifier] = None,
        appointment_service: Optional[AppointmentService] = None,
        availability_repository: Optional[AvailabilityRepository] = None,
        commit_timeout_seconds: Optional[float] = None,
    ):
        """
        Initialize the booking guard.

        Args:
            db: Database session shared by every repository used here
            notifier: Post-commit dispatcher (defaults to logging only)
            appointment_service: Ledger service (created on ``db`` if omitted)
            availability_repository: Template reads (created on ``db`` if omitted)
            commit_timeout_seconds: Overrides ``settings.booking_commit_timeout_seconds``
        """
        super().__init__(db)
        self.notifier = notifier or BookingNotifier()
        self.appointment_service = appointment_service or AppointmentService(db)
        self.appointment_repository = self.appointment_service.repository
        self.availability_repository = (
            availability_repository or RepositoryFactory.create_availability_repository(db)
        )
        self.commit_timeout_seconds = (
            commit_timeout_seconds or settings.booking_commit_timeout_seconds
        )

    @BaseService.measure_operation("request_booking")
    def request_booking(
        self,
        provider_id: str,
        customer_id: str,
        concrete_date: date,
        start_time: TimeLike,
        description: str = "",
        price: Optional[Decimal] = None,
    ) -> Appointment:
        """
        Book one occurrence of a provider's weekly window.

        Returns:
            The committed appointment (status ``settings.initial_booking_status``)

        Raises:
            ValidationException: Unparseable start time
            NotFoundException: No window starts at that time on that weekday
            SlotUnavailableException: Window inactive, or occurrence already taken
            BookingTimeoutException: Lock or commit did not finish in time
        """
        start = self._parse_start(start_time)
        self.log_operation(
            "request_booking",
            provider_id=provider_id,
            customer_id=customer_id,
            concrete_date=concrete_date.isoformat(),
            start_time=format_hhmm(start),
        )

        template = self._require_active_template(provider_id, concrete_date, start)
        template_id = template.id
        duration = template.duration_minutes
        scheduled_at = occurrence_datetime(concrete_date, start)

        def write() -> Appointment:
            existing = self.appointment_repository.find_active_at(provider_id, scheduled_at)
            if existing is not None:
                raise self._unavailable(provider_id, concrete_date, start)
            return self.appointment_service.create(
                provider_id=provider_id,
                customer_id=customer_id,
                scheduled_at=scheduled_at,
                duration_minutes=duration,
                status=settings.initial_booking_status,
                description=description,
                price=price,
                template_id=template_id,
            )

        appointment = self._guarded_write(provider_id, concrete_date, start, write)
        prometheus_metrics.record_booking_attempt("created")
        self.logger.info(
            "Booked %s for provider %s (appointment %s)",
            describe_occurrence(appointment),
            provider_id,
            appointment.id,
        )
        self._notify(BookingEvent.from_appointment(APPOINTMENT_CREATED, appointment))
        return appointment

    @BaseService.measure_operation("transition_appointment")
    def transition_appointment(
        self,
        appointment_id: str,
        new_status: AppointmentStatus | str,
        fields: Optional[Mapping[str, Any]] = None,
    ) -> Appointment:
        """Apply a state-machine transition through the ledger, then notify."""
        previous_status = self.appointment_service.get(appointment_id).status
        appointment = self.appointment_service.update_status(appointment_id, new_status, fields)
        self._notify(
            BookingEvent.from_appointment(
                APPOINTMENT_STATUS_CHANGED, appointment, previous_status=previous_status
            )
        )
        return appointment

    @BaseService.measure_operation("reschedule_appointment")
    def reschedule_appointment(
        self,
        appointment_id: str,
        new_date: date,
        new_start_time: TimeLike,
        reason: str,
    ) -> Appointment:
        """
        Move a non-terminal appointment to another occurrence.

        The target must be an active window and is guarded exactly like a new
        booking. The appointment returns to ``accepted`` and the reason is
        prepended to ``cancellation_reason`` as an audit note.
        """
        note_reason = (reason or "").strip()
        if not note_reason:
            raise ValidationException("A reschedule reason is required")
        if len(note_reason) > MAX_REASON_LENGTH:
            raise ValidationException(
                f"Reschedule reason must be at most {MAX_REASON_LENGTH} characters"
            )

        appointment = self.appointment_service.get(appointment_id)
        self._require_reschedulable(appointment)
        start = self._parse_start(new_start_time)
        provider_id = appointment.provider_id
        new_scheduled_at = occurrence_datetime(new_date, start)
        if new_scheduled_at == appointment.scheduled_at:
            raise ValidationException(
                "Appointment is already scheduled at that time",
                details={"appointment_id": appointment_id},
            )

        previous_status = appointment.status
        previous_scheduled_at = appointment.scheduled_at
        self.log_operation(
            "reschedule_appointment",
            appointment_id=appointment_id,
            provider_id=provider_id,
            new_scheduled_at=new_scheduled_at.isoformat(),
        )

        template = self._require_active_template(provider_id, new_date, start)
        template_id = template.id
        duration = template.duration_minutes

        def write() -> Appointment:
            # Re-read under the lock; the row may have moved since we loaded it
            self.appointment_repository.refresh(appointment)
            self._require_reschedulable(appointment)

            # Claim the row at the status just read; a cancel landing in between wins
            claimed = self.appointment_repository.conditional_status_update(
                appointment.id, [appointment.status], AppointmentStatus.ACCEPTED
            )
            if not claimed:
                raise AppointmentChangedException(appointment.id)

            taken = self.appointment_repository.get_overlapping_active(
                provider_id, new_scheduled_at, duration, exclude_id=appointment.id
            )
            if taken:
                raise self._unavailable(provider_id, new_date, start)

            note = f"{RESCHEDULE_NOTE_PREFIX}{note_reason}"
            if appointment.cancellation_reason:
                note = f"{note} | {appointment.cancellation_reason}"
            return self.appointment_repository.update(
                appointment,
                scheduled_at=new_scheduled_at,
                duration_minutes=duration,
                availability_template_id=template_id,
                status=AppointmentStatus.ACCEPTED.value,
                cancellation_reason=note,
            )

        updated = self._guarded_write(provider_id, new_date, start, write)
        self.logger.info(
            "Rescheduled appointment %s from %s to %s",
            updated.id,
            previous_scheduled_at.isoformat(),
            describe_occurrence(updated),
        )
        self._notify(
            BookingEvent.from_appointment(
                APPOINTMENT_RESCHEDULED,
                updated,
                previous_status=previous_status,
                previous_scheduled_at=previous_scheduled_at,
            )
        )
        return updated

    # Private helpers

    def _guarded_write(
        self,
        provider_id: str,
        concrete_date: date,
        start: Any,
        write: Callable[[], T],
    ) -> T:
        """
        Run ``write`` under the occurrence lock in its own transaction.

        A ledger conflict (overlap check or unique index) gets one retry;
        the retry's re-check then reports the winner as unavailable.
        """
        key = slot_lock_key(provider_id, concrete_date, start)
        for attempt in (1, 2):
            try:
                with slot_lock(key, timeout_s=self.commit_timeout_seconds):
                    with self.appointment_repository.transaction():
                        apply_local_timeouts(self.db, self.commit_timeout_seconds)
                        return write()
            except AppointmentChangedException:
                self.logger.info("Appointment changed while holding %s", key)
                raise
            except SlotUnavailableException:
                prometheus_metrics.record_booking_attempt("unavailable")
                self.logger.info("Slot %s unavailable", key)
                raise
            except BookingTimeoutException:
                prometheus_metrics.record_booking_attempt("timeout")
                self.logger.warning("Timed out waiting for slot lock %s", key)
                raise
            except (ConflictException, IntegrityError, RepositoryException) as exc:
                if isinstance(exc, RepositoryException) and not is_integrity_violation(exc):
                    raise
                if attempt == 1:
                    prometheus_metrics.record_booking_attempt("conflict_retry")
                    self.logger.info("Ledger conflict on %s, retrying once: %s", key, exc)
                    continue
                prometheus_metrics.record_booking_attempt("unavailable")
                raise self._unavailable(provider_id, concrete_date, start) from exc
            except OperationalError as exc:
                if self._is_timeout_error(exc):
                    prometheus_metrics.record_booking_attempt("timeout")
                    self.logger.warning("Database timeout committing %s: %s", key, exc)
                    raise BookingTimeoutException(details={"lock_key": key}) from exc
                raise
        raise self._unavailable(provider_id, concrete_date, start)  # pragma: no cover

    def _require_active_template(
        self, provider_id: str, concrete_date: date, start: Any
    ) -> AvailabilityTemplate:
        day = DayOfWeek.from_date(concrete_date)
        candidates = self.availability_repository.find_by_start(provider_id, day, start)
        if not candidates:
            prometheus_metrics.record_booking_attempt("not_found")
            raise NotFoundException(
                f"Provider {provider_id} has no {day.value} window starting at "
                f"{format_hhmm(start)}",
                details={
                    "provider_id": provider_id,
                    "day_of_week": day.value,
                    "start_time": format_hhmm(start),
                },
            )
        template = candidates[0]
        if not template.is_active:
            prometheus_metrics.record_booking_attempt("unavailable")
            self.logger.info(
                "Window %s %s for provider %s is inactive",
                day.value,
                template.time_range,
                provider_id,
            )
            raise SlotUnavailableException(
                SLOT_INACTIVE_MESSAGE,
                details={
                    "provider_id": provider_id,
                    "date": concrete_date.isoformat(),
                    "start_time": format_hhmm(start),
                    "reason": "inactive",
                },
            )
        return template

    @staticmethod
    def _require_reschedulable(appointment: Appointment) -> None:
        current = parse_status(appointment.status)
        if current.is_terminal:
            raise InvalidTransitionException(
                current.value,
                AppointmentStatus.ACCEPTED.value,
                "only active appointments can be rescheduled",
            )

    @staticmethod
    def _parse_start(start_time: TimeLike) -> Any:
        try:
            return parse_time_of_day(start_time)
        except ValueError as exc:
            raise ValidationException(str(exc), details={"start_time": str(start_time)}) from exc

    @staticmethod
    def _unavailable(
        provider_id: str, concrete_date: date, start: Any
    ) -> SlotUnavailableException:
        return SlotUnavailableException(
            details={
                "provider_id": provider_id,
                "date": concrete_date.isoformat(),
                "start_time": format_hhmm(start),
            }
        )

    def _notify(self, event: BookingEvent) -> None:
        """Best effort: the appointment is already committed."""
        try:
            self.notifier.notify(event)
        except Exception as exc:
            self.logger.error(
                "Failed to dispatch %s for appointment %s: %s",
                event.event_type,
                event.appointment_id,
                exc,
                exc_info=True,
            )
