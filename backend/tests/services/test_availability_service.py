"""Tests for the weekly template store."""

from __future__ import annotations

from datetime import time

import pytest

from servicebook.core.enums import DayOfWeek
from servicebook.core.exceptions import (
    AvailabilityOverlapException,
    NotFoundException,
    ValidationException,
)
from servicebook.models.appointment import Appointment
from servicebook.schemas.availability import WeeklySlotInput
from servicebook.services.availability_service import AvailabilityService
from tests.helpers import MONDAY, PROVIDER_ID, at


@pytest.fixture
def service(db) -> AvailabilityService:
    return AvailabilityService(db)


def _windows(templates):
    return [(t.day_of_week, t.start_time, t.end_time) for t in templates]


def test_set_weekly_template_accepts_mixed_inputs_and_orders_result(service) -> None:
    result = service.set_weekly_template(
        PROVIDER_ID,
        [
            ("Wednesday", "08:00", "09:00"),
            {"day_of_week": "monday", "start_time": "14:00", "end_time": "15:00"},
            WeeklySlotInput(day_of_week="Monday", start_time="10:00", end_time="11:00"),
        ],
    )

    assert _windows(result) == [
        ("Monday", time(10), time(11)),
        ("Monday", time(14), time(15)),
        ("Wednesday", time(8), time(9)),
    ]
    assert all(template.is_active for template in result)
    assert _windows(service.list_template(PROVIDER_ID)) == _windows(result)


def test_windows_left_out_are_deactivated_not_deleted(service) -> None:
    first = service.set_weekly_template(
        PROVIDER_ID, [("Monday", "10:00", "11:00"), ("Tuesday", "10:00", "11:00")]
    )
    tuesday_id = first[1].id

    result = service.set_weekly_template(PROVIDER_ID, [("Monday", "10:00", "11:00")])

    assert _windows(result) == [("Monday", time(10), time(11))]
    everything = service.list_template(PROVIDER_ID, active_only=False)
    assert len(everything) == 2
    tuesday = service.get_template(tuesday_id)
    assert tuesday.is_active is False


def test_resubmitting_a_window_reactivates_the_same_row(service) -> None:
    original = service.set_weekly_template(PROVIDER_ID, [("Friday", "09:00", "10:00")])[0]
    service.set_weekly_template(PROVIDER_ID, [])
    assert service.list_template(PROVIDER_ID) == []

    again = service.set_weekly_template(PROVIDER_ID, [("friday", "9:00", "10:00")])

    assert [template.id for template in again] == [original.id]
    assert len(service.list_template(PROVIDER_ID, active_only=False)) == 1


def test_templates_are_scoped_per_provider(service) -> None:
    service.set_weekly_template("provider-a", [("Monday", "10:00", "11:00")])
    service.set_weekly_template("provider-b", [("Monday", "10:00", "11:00")])

    service.set_weekly_template("provider-a", [])

    assert service.list_template("provider-a") == []
    assert len(service.list_template("provider-b")) == 1


@pytest.mark.parametrize(
    "slot",
    [
        ("Monday", "11:00", "10:00"),
        ("Monday", "10:00", "10:00"),
        ("Funday", "10:00", "11:00"),
        ("Monday", "10am", "11:00"),
    ],
)
def test_invalid_windows_are_rejected(service, slot) -> None:
    with pytest.raises(ValidationException):
        service.set_weekly_template(PROVIDER_ID, [slot])
    assert service.list_template(PROVIDER_ID, active_only=False) == []


def test_overlapping_windows_on_one_day_are_rejected(service) -> None:
    with pytest.raises(AvailabilityOverlapException) as exc_info:
        service.set_weekly_template(
            PROVIDER_ID, [("Monday", "10:00", "11:00"), ("Monday", "10:30", "11:30")]
        )

    assert exc_info.value.details == {
        "day_of_week": "Monday",
        "new_slot": "10:30-11:30",
        "conflicting_slot": "10:00-11:00",
    }


def test_touching_windows_and_same_time_on_other_days_are_allowed(service) -> None:
    result = service.set_weekly_template(
        PROVIDER_ID,
        [
            ("Monday", "10:00", "11:00"),
            ("Monday", "11:00", "12:00"),
            ("Tuesday", "10:30", "11:30"),
        ],
    )
    assert len(result) == 3


def test_deactivate_and_activate_toggle(service) -> None:
    template = service.set_weekly_template(PROVIDER_ID, [("Monday", "10:00", "11:00")])[0]

    service.deactivate(template.id)
    assert service.list_template(PROVIDER_ID) == []

    service.activate(template.id)
    assert [t.id for t in service.list_template(PROVIDER_ID)] == [template.id]


def test_activate_rejects_window_overlapping_an_active_one(service) -> None:
    old = service.set_weekly_template(PROVIDER_ID, [("Monday", "10:00", "11:00")])[0]
    service.set_weekly_template(PROVIDER_ID, [("Monday", "10:30", "11:30")])

    with pytest.raises(AvailabilityOverlapException):
        service.activate(old.id)
    assert service.get_template(old.id).is_active is False


def test_toggle_unknown_window_raises_not_found(service) -> None:
    with pytest.raises(NotFoundException):
        service.deactivate("missing")
    with pytest.raises(NotFoundException):
        service.activate("missing")


def test_deactivation_leaves_existing_appointments_alone(db, service, make_appointment) -> None:
    template = service.set_weekly_template(PROVIDER_ID, [("Monday", "10:00", "11:00")])[0]
    appointment = make_appointment(at(MONDAY, "10:00"), template=template)

    service.deactivate(template.id)
    service.set_weekly_template(PROVIDER_ID, [])

    db.expire_all()
    stored = db.get(Appointment, appointment.id)
    assert stored.status == "accepted"
    assert stored.availability_template_id == template.id


def test_template_summary_counts(service, make_window) -> None:
    service.set_weekly_template(
        PROVIDER_ID,
        [("Monday", "10:00", "11:00"), ("Monday", "12:00", "13:00"), ("Friday", "09:00", "10:00")],
    )
    make_window("Sunday", "09:00", "10:00", is_active=False)
    make_window("Tuesday", "09:00", "10:00", is_booked=True, booked_occurrence_date=MONDAY)

    summary = service.get_template_summary(PROVIDER_ID)

    assert summary.total_windows == 5
    assert summary.active_windows == 4
    assert summary.inactive_windows == 1
    assert summary.cached_booked_windows == 1
    assert summary.active_by_day[DayOfWeek.MONDAY.value] == 2
    assert summary.active_by_day["Sunday"] == 0
    assert list(summary.active_by_day) == [day.value for day in DayOfWeek]
