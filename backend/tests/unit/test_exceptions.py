from __future__ import annotations

from servicebook.core.constants import BOOKING_TIMEOUT_MESSAGE, SLOT_UNAVAILABLE_MESSAGE
from servicebook.core.exceptions import (
    AppointmentChangedException,
    AvailabilityOverlapException,
    BookingTimeoutException,
    ConflictException,
    InvalidTransitionException,
    NotFoundException,
    SlotUnavailableException,
    ValidationException,
)


def test_slot_unavailable_is_a_conflict_with_generic_message() -> None:
    exc = SlotUnavailableException(details={"provider_id": "2"})

    assert isinstance(exc, ConflictException)
    http_exc = exc.to_http_exception()
    assert http_exc.status_code == 409
    assert http_exc.detail["message"] == SLOT_UNAVAILABLE_MESSAGE
    assert http_exc.detail["code"] == "SLOT_UNAVAILABLE"
    assert http_exc.detail["details"] == {"provider_id": "2"}


def test_booking_timeout_maps_to_503_with_retry_after() -> None:
    http_exc = BookingTimeoutException(details={"lock_key": "k"}).to_http_exception()

    assert http_exc.status_code == 503
    assert http_exc.headers == {"Retry-After": "1"}
    assert http_exc.detail["message"] == BOOKING_TIMEOUT_MESSAGE
    assert http_exc.detail["code"] == "BOOKING_TIMEOUT"


def test_invalid_transition_carries_both_statuses() -> None:
    exc = InvalidTransitionException("pending", "completed")

    assert exc.to_http_exception().status_code == 422
    assert exc.details == {"current_status": "pending", "requested_status": "completed"}
    assert "pending" in exc.message and "completed" in exc.message


def test_invalid_transition_reason_is_appended() -> None:
    exc = InvalidTransitionException("completed", "cancelled", "appointment is already completed")
    assert exc.message.endswith(": appointment is already completed")


def test_appointment_changed_is_a_conflict() -> None:
    exc = AppointmentChangedException("01J0000000000000000000000A")

    assert isinstance(exc, ConflictException)
    assert exc.to_http_exception().status_code == 409
    assert exc.code == "APPOINTMENT_CHANGED"
    assert exc.details == {"appointment_id": "01J0000000000000000000000A"}


def test_overlap_exception_names_both_windows() -> None:
    exc = AvailabilityOverlapException("Monday", "10:30-11:30", "10:00-11:00")

    assert exc.to_http_exception().status_code == 409
    assert exc.code == "AVAILABILITY_OVERLAP"
    assert exc.details["conflicting_slot"] == "10:00-11:00"


def test_basic_status_codes() -> None:
    assert NotFoundException("missing").to_http_exception().status_code == 404
    assert ValidationException("bad").to_http_exception().status_code == 400
    assert ValidationException("bad").code == "ValidationException"
