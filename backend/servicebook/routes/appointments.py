# backend/servicebook/routes/appointments.py
"""
Booking and appointment lifecycle routes for servicebook.

Router Endpoints:
    POST  /bookings                               - Book one occurrence
    GET   /appointments/{id}                      - Appointment details
    PATCH /appointments/{id}/status               - State-machine transition
    POST  /appointments/{id}/reschedule           - Move to another occurrence
    GET   /appointments/stats                     - Counts and revenue
    GET   /providers/{provider_id}/appointments   - Provider listing
    GET   /customers/{customer_id}/appointments   - Customer listing
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from ..api.dependencies import get_appointment_service, get_booking_service
from ..core.exceptions import DomainException
from ..schemas.appointment import (
    AppointmentResponse,
    AppointmentStatistics,
    BookingRequest,
    RescheduleRequest,
    StatusUpdateRequest,
)
from ..services.appointment_service import AppointmentService
from ..services.booking_service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["appointments"])


def handle_domain_exception(exc: DomainException) -> None:
    """Convert domain exceptions to HTTP exceptions."""
    raise exc.to_http_exception()


@router.post("/bookings", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    booking_data: BookingRequest,
    booking_service: BookingService = Depends(get_booking_service),
) -> AppointmentResponse:
    """
    Book a provider's weekly window on a concrete date.

    409 when the occurrence is already taken or the window is inactive,
    503 (with Retry-After) when the booking could not be committed in time.
    """
    try:
        appointment = booking_service.request_booking(
            provider_id=booking_data.provider_id,
            customer_id=booking_data.customer_id,
            concrete_date=booking_data.date,
            start_time=booking_data.start_time,
            description=booking_data.description,
            price=booking_data.price,
        )
        return AppointmentResponse.model_validate(appointment)
    except DomainException as e:
        handle_domain_exception(e)


# Specific paths before /appointments/{appointment_id}


@router.get("/appointments/stats", response_model=AppointmentStatistics)
def get_appointment_statistics(
    provider_id: Optional[str] = Query(None),
    appointment_service: AppointmentService = Depends(get_appointment_service),
) -> AppointmentStatistics:
    return appointment_service.get_statistics(provider_id)


@router.get("/appointments/{appointment_id}", response_model=AppointmentResponse)
def get_appointment(
    appointment_id: str,
    appointment_service: AppointmentService = Depends(get_appointment_service),
) -> AppointmentResponse:
    try:
        return AppointmentResponse.model_validate(appointment_service.get(appointment_id))
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("/appointments/{appointment_id}/status", response_model=AppointmentResponse)
def update_appointment_status(
    appointment_id: str,
    payload: StatusUpdateRequest,
    booking_service: BookingService = Depends(get_booking_service),
) -> AppointmentResponse:
    try:
        appointment = booking_service.transition_appointment(
            appointment_id, payload.status, payload.transition_fields()
        )
        return AppointmentResponse.model_validate(appointment)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/appointments/{appointment_id}/reschedule", response_model=AppointmentResponse)
def reschedule_appointment(
    appointment_id: str,
    payload: RescheduleRequest,
    booking_service: BookingService = Depends(get_booking_service),
) -> AppointmentResponse:
    try:
        appointment = booking_service.reschedule_appointment(
            appointment_id, payload.date, payload.start_time, payload.reason
        )
        return AppointmentResponse.model_validate(appointment)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/providers/{provider_id}/appointments", response_model=List[AppointmentResponse])
def list_provider_appointments(
    provider_id: str,
    status_filter: Optional[str] = Query(None, alias="status"),
    appointment_service: AppointmentService = Depends(get_appointment_service),
) -> List[AppointmentResponse]:
    try:
        appointments = appointment_service.list_for_provider(provider_id, status_filter)
        return [AppointmentResponse.model_validate(a) for a in appointments]
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/customers/{customer_id}/appointments", response_model=List[AppointmentResponse])
def list_customer_appointments(
    customer_id: str,
    status_filter: Optional[str] = Query(None, alias="status"),
    appointment_service: AppointmentService = Depends(get_appointment_service),
) -> List[AppointmentResponse]:
    try:
        appointments = appointment_service.list_for_customer(customer_id, status_filter)
        return [AppointmentResponse.model_validate(a) for a in appointments]
    except DomainException as e:
        handle_domain_exception(e)
