# backend/servicebook/core/exceptions.py
"""
Domain-specific exceptions for the booking engine.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

from .constants import BOOKING_TIMEOUT_MESSAGE, SLOT_UNAVAILABLE_MESSAGE

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific business exceptions


class SlotUnavailableException(ConflictException):
    """
    The requested occurrence is already booked or its template is inactive.

    Expected, user-facing outcome of a booking attempt. The message is always
    the generic "choose another slot" text; specifics live in ``details``.
    """

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or SLOT_UNAVAILABLE_MESSAGE,
            code="SLOT_UNAVAILABLE",
            details=details or {},
        )


class BookingTimeoutException(ServiceException):
    """Raised when a booking commit could not complete within its time budget."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=BOOKING_TIMEOUT_MESSAGE,
            code="BOOKING_TIMEOUT",
            details=details or {},
        )

    def to_http_exception(self) -> HTTPException:
        exc = super().to_http_exception()
        exc.headers = {"Retry-After": "1"}
        return exc


class InvalidTransitionException(BusinessRuleException):
    """Raised when an appointment status change is not allowed by the state machine."""

    def __init__(self, current_status: str, requested_status: str, reason: Optional[str] = None):
        message = f"Cannot change appointment status from {current_status} to {requested_status}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message=message,
            code="INVALID_STATUS_TRANSITION",
            details={
                "current_status": current_status,
                "requested_status": requested_status,
            },
        )


class AppointmentChangedException(ConflictException):
    """The appointment's status moved on between read and write."""

    def __init__(self, appointment_id: str):
        super().__init__(
            message="Appointment status changed concurrently, reload and retry",
            code="APPOINTMENT_CHANGED",
            details={"appointment_id": appointment_id},
        )


class AvailabilityOverlapException(ConflictException):
    """Raised when an availability window overlaps with an existing window."""

    def __init__(
        self,
        day_of_week: str,
        new_range: str,
        conflicting_range: str,
    ):
        super().__init__(
            message=(
                f"Overlapping slot on {day_of_week}: {new_range} conflicts with {conflicting_range}"
            ),
            code="AVAILABILITY_OVERLAP",
            details={
                "day_of_week": day_of_week,
                "new_slot": new_range,
                "conflicting_slot": conflicting_range,
            },
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
