from __future__ import annotations

from datetime import date, datetime, time

from pydantic import ValidationError
import pytest

from servicebook.core.config import Settings
from servicebook.core.enums import DayOfWeek, SlotStatus
from servicebook.models.appointment import Appointment
from servicebook.schemas.appointment import BookingRequest, StatusUpdateRequest
from servicebook.schemas.availability import ProjectedSlot, WeeklySlotInput
from servicebook.schemas.maintenance import MaintenanceReport
from servicebook.services.appointment_service import describe_occurrence
from servicebook.services.booking_notifier import APPOINTMENT_CREATED, BookingEvent


def test_weekly_slot_input_parses_labels_and_times() -> None:
    slot = WeeklySlotInput(day_of_week="monday", start_time="9:00", end_time="10:30")

    assert slot.day_of_week is DayOfWeek.MONDAY
    assert slot.start_time == time(9, 0)
    assert slot.end_time == time(10, 30)


def test_weekly_slot_input_forbids_extra_fields() -> None:
    with pytest.raises(ValidationError):
        WeeklySlotInput(day_of_week="Monday", start_time="09:00", end_time="10:00", booked=True)


def test_booking_request_rejects_bad_time_and_negative_price() -> None:
    with pytest.raises(ValidationError):
        BookingRequest(provider_id="2", customer_id="c", date="2025-07-07", start_time="25:00")
    with pytest.raises(ValidationError):
        BookingRequest(
            provider_id="2", customer_id="c", date="2025-07-07", start_time="10:00", price=-1
        )


def test_status_update_request_exposes_only_supplied_fields() -> None:
    payload = StatusUpdateRequest(status="cancelled", cancellation_reason="Customer ill")
    assert payload.transition_fields() == {"cancellation_reason": "Customer ill"}


def test_projected_slot_serializes_hhmm() -> None:
    slot = ProjectedSlot(
        template_id="t1",
        provider_id="2",
        day_of_week=DayOfWeek.MONDAY,
        concrete_date=date(2025, 7, 7),
        start_time=time(10, 0),
        end_time=time(11, 0),
        status=SlotStatus.AVAILABLE,
    )

    dumped = slot.model_dump(mode="json")
    assert dumped["start_time"] == "10:00"
    assert dumped["end_time"] == "11:00"
    assert dumped["status"] == "available"
    assert slot.is_available


def test_maintenance_report_totals() -> None:
    report = MaintenanceReport(
        started_at=datetime(2025, 7, 21, 3, 15),
        cutoff=datetime(2025, 7, 14, 3, 15),
        statuses_normalized=1,
        appointments_finished=2,
        flags_cleared=3,
        flags_set=4,
        unmatched_appointments=5,
    )

    assert report.changed == 10
    result = report.as_task_result()
    assert result["cutoff"] == "2025-07-14T03:15:00"
    assert result["errors"] == 0


def test_booking_event_payload_is_json_friendly() -> None:
    appointment = Appointment(
        id="01J0000000000000000000000A",
        provider_id="2",
        customer_id="customer-1",
        scheduled_at=datetime(2025, 7, 7, 10, 0),
        status="accepted",
    )

    event = BookingEvent.from_appointment(APPOINTMENT_CREATED, appointment)
    payload = event.to_payload()

    assert payload["event_type"] == "appointment.created"
    assert payload["scheduled_at"] == "2025-07-07T10:00:00"
    assert payload["previous_status"] is None
    assert describe_occurrence(appointment) == "Monday 2025-07-07 10:00"


def test_settings_validators() -> None:
    assert Settings(redis_url="  ").redis_url is None
    assert Settings(initial_booking_status=" Pending ").initial_booking_status == "pending"
    with pytest.raises(ValidationError):
        Settings(booking_commit_timeout_seconds=0)
    with pytest.raises(ValidationError):
        Settings(stale_after_days=0)
