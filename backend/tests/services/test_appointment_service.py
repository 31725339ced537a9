"""Appointment ledger: inserts, state machine and statistics."""

from __future__ import annotations

from decimal import Decimal

import pytest

from servicebook.core.exceptions import (
    ConflictException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
)
from servicebook.models.appointment import Appointment, AppointmentStatus
from servicebook.services.appointment_service import AppointmentService
from tests.helpers import MONDAY, PROVIDER_ID, at


@pytest.fixture
def service(db) -> AppointmentService:
    return AppointmentService(db)


def _create(service: AppointmentService, hhmm: str = "10:00", **overrides) -> Appointment:
    kwargs = dict(
        provider_id=PROVIDER_ID,
        customer_id="customer-1",
        scheduled_at=at(MONDAY, hhmm),
        duration_minutes=60,
    )
    kwargs.update(overrides)
    with service.transaction():
        return service.create(**kwargs)


def test_create_defaults_to_accepted(service) -> None:
    appointment = _create(service, description="Fix the boiler", price=Decimal("80"))

    assert appointment.id
    assert appointment.status == "accepted"
    assert appointment.repair_description == "Fix the boiler"


def test_create_rejects_overlapping_active_appointment(service) -> None:
    _create(service, "10:00")

    with pytest.raises(ConflictException):
        _create(service, "10:30", customer_id="customer-2")
    with pytest.raises(ConflictException):
        _create(service, "10:00", customer_id="customer-3")

    # Back to back is fine
    assert _create(service, "11:00", customer_id="customer-4").status == "accepted"


def test_create_ignores_terminal_appointments(service, make_appointment) -> None:
    make_appointment(at(MONDAY, "10:00"), status="cancelled")
    assert _create(service, "10:00").status == "accepted"


@pytest.mark.parametrize("status", ["in_progress", "completed", "finished"])
def test_create_only_allows_bookable_statuses(service, status) -> None:
    with pytest.raises(ValidationException):
        _create(service, status=status)


def test_create_rejects_non_positive_duration(service) -> None:
    with pytest.raises(ValidationException):
        _create(service, duration_minutes=0)


def test_find_by_provider_and_occurrence(service, make_appointment) -> None:
    live = make_appointment(at(MONDAY, "10:00"))
    make_appointment(at(MONDAY, "12:00"), status="completed")

    assert service.find_by_provider_and_occurrence(PROVIDER_ID, MONDAY, "10:00").id == live.id
    assert service.find_by_provider_and_occurrence(PROVIDER_ID, MONDAY, "12:00") is None
    assert service.find_by_provider_and_occurrence(PROVIDER_ID, MONDAY, "10:30") is None
    with pytest.raises(ValidationException):
        service.find_by_provider_and_occurrence(PROVIDER_ID, MONDAY, "noon")


def test_completed_from_pending_is_rejected(service, make_appointment) -> None:
    appointment = make_appointment(at(MONDAY, "10:00"), status="pending")

    with pytest.raises(InvalidTransitionException):
        service.update_status(appointment.id, "completed")
    assert service.get(appointment.id).status == "pending"


def test_completed_from_in_progress_succeeds_with_price(service, make_appointment) -> None:
    appointment = make_appointment(at(MONDAY, "10:00"), status="in_progress")

    updated = service.update_status(appointment.id, "completed", {"final_price": "80"})

    assert updated.status == "completed"
    assert updated.final_price == Decimal("80.00")


def test_full_forward_walk(service, make_appointment) -> None:
    appointment = make_appointment(at(MONDAY, "10:00"), status="pending")

    for status in ("accepted", "on_the_way", "in_progress", "completed"):
        assert service.update_status(appointment.id, status).status == status


def test_legacy_label_is_resolved_and_rewritten(db, service, make_appointment) -> None:
    appointment = make_appointment(at(MONDAY, "10:00"), status="confirmed")

    service.update_status(appointment.id, "on-the-way")

    db.expire_all()
    assert db.get(Appointment, appointment.id).status == "on_the_way"


def test_cancel_requires_a_reason(service, make_appointment) -> None:
    appointment = make_appointment(at(MONDAY, "10:00"))

    with pytest.raises(ValidationException):
        service.update_status(appointment.id, "cancelled")
    with pytest.raises(ValidationException):
        service.update_status(appointment.id, "cancelled", {"cancellation_reason": "   "})
    with pytest.raises(ValidationException):
        service.update_status(appointment.id, "cancelled", {"cancellation_reason": "x" * 300})

    assert service.get(appointment.id).status == "accepted"


def test_cancel_applies_reason_and_ignores_irrelevant_fields(service, make_appointment) -> None:
    appointment = make_appointment(at(MONDAY, "10:00"), final_price=Decimal("50"))

    updated = service.update_status(
        appointment.id,
        "canceled",
        {"cancellation_reason": "Customer ill", "final_price": "999", "provider_id": "x"},
    )

    assert updated.status == "cancelled"
    assert updated.cancellation_reason == "Customer ill"
    assert updated.final_price == Decimal("50")
    assert updated.provider_id == PROVIDER_ID


@pytest.mark.parametrize("terminal", ["completed", "cancelled", "finished"])
def test_no_transition_out_of_terminal_statuses(service, make_appointment, terminal) -> None:
    appointment = make_appointment(at(MONDAY, "10:00"), status=terminal)

    with pytest.raises(InvalidTransitionException):
        service.update_status(appointment.id, "cancelled", {"cancellation_reason": "late"})


def test_finished_is_not_a_caller_transition(service, make_appointment) -> None:
    appointment = make_appointment(at(MONDAY, "10:00"), status="accepted")

    with pytest.raises(InvalidTransitionException):
        service.update_status(appointment.id, AppointmentStatus.FINISHED)


@pytest.mark.parametrize("price", ["-1", "abc", "NaN"])
def test_invalid_final_price_is_rejected(service, make_appointment, price) -> None:
    appointment = make_appointment(at(MONDAY, "10:00"), status="pending")

    with pytest.raises(ValidationException):
        service.update_status(appointment.id, "accepted", {"final_price": price})


def test_unknown_status_and_unknown_appointment(service, make_appointment) -> None:
    appointment = make_appointment(at(MONDAY, "10:00"))

    with pytest.raises(ValidationException):
        service.update_status(appointment.id, "teleported")
    with pytest.raises(NotFoundException):
        service.update_status("missing", "cancelled", {"cancellation_reason": "x"})
    with pytest.raises(NotFoundException):
        service.get("missing")


def test_concurrent_status_change_is_reported(db, service, make_appointment) -> None:
    appointment = make_appointment(at(MONDAY, "10:00"), status="accepted")
    service.get(appointment.id)

    # Another writer moves the row; this session still holds the old status
    service.repository.conditional_status_update(
        appointment.id, ["accepted"], AppointmentStatus.ON_THE_WAY
    )
    db.commit()

    with pytest.raises(ConflictException):
        service.update_status(appointment.id, "on_the_way")


def test_listings_filter_by_status(service, make_appointment) -> None:
    make_appointment(at(MONDAY, "09:00"), status="completed")
    make_appointment(at(MONDAY, "10:00"))
    make_appointment(at(MONDAY, "11:00"), customer_id="customer-2")

    assert len(service.list_for_provider(PROVIDER_ID)) == 3
    assert [a.status for a in service.list_for_provider(PROVIDER_ID, "completed")] == [
        "completed"
    ]
    newest_first = [a.scheduled_at for a in service.list_for_customer("customer-1")]
    assert newest_first == [at(MONDAY, "10:00"), at(MONDAY, "09:00")]


def test_listing_filter_includes_legacy_labels(service, make_appointment) -> None:
    legacy = make_appointment(at(MONDAY, "09:00"), status="confirmed")
    canonical = make_appointment(at(MONDAY, "10:00"), status="accepted")
    make_appointment(at(MONDAY, "11:00"), status="in-progress")

    accepted = service.list_for_provider(PROVIDER_ID, "accepted")
    assert {a.id for a in accepted} == {legacy.id, canonical.id}

    assert len(service.list_for_customer("customer-1", "in_progress")) == 1


def test_statistics_fold_legacy_labels(service, make_appointment) -> None:
    make_appointment(at(MONDAY, "08:00"), status="accepted")
    make_appointment(at(MONDAY, "09:00"), status="confirmed")
    make_appointment(at(MONDAY, "10:00"), status="completed", final_price=Decimal("100"))
    make_appointment(at(MONDAY, "11:00"), status="cancelled")
    make_appointment(at(MONDAY, "12:00"), status="completed", provider_id="other")

    stats = service.get_statistics(PROVIDER_ID)

    assert stats.total == 4
    assert stats.by_status["accepted"] == 2
    assert stats.by_status["completed"] == 1
    assert stats.by_status["finished"] == 0
    assert "confirmed" not in stats.by_status
    assert stats.completed_revenue == Decimal("100")
    assert stats.completion_rate == 0.25

    assert service.get_statistics().total == 5


def test_statistics_for_empty_ledger(service) -> None:
    stats = service.get_statistics(PROVIDER_ID)
    assert stats.total == 0
    assert stats.completion_rate == 0.0
    assert stats.completed_revenue == Decimal("0")
