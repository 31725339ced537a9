# backend/servicebook/routes/availability.py
"""
Availability routes for servicebook.

Router Endpoints:
    GET  /providers/{provider_id}/availability?date=YYYY-MM-DD - Slots for one date
    GET  /providers/{provider_id}/availability/week?start=...  - Seven dates
    GET  /providers/{provider_id}/availability/template        - Weekly template
    PUT  /providers/{provider_id}/availability                 - Replace weekly template
    PATCH /providers/{provider_id}/availability/{template_id}  - Toggle one window

Caller identity is established upstream; these routes take provider ids as
given.
"""

from datetime import date
import logging
from typing import List

from fastapi import APIRouter, Body, Depends, Query

from ..api.dependencies import get_availability_service, get_slot_resolver
from ..core.exceptions import DomainException, NotFoundException
from ..schemas.availability import (
    DayAvailabilityResponse,
    TemplateSlotResponse,
    TemplateSummary,
    WeekAvailabilityResponse,
    WeeklyTemplateUpdate,
    WindowToggle,
)
from ..services.availability_service import AvailabilityService
from ..services.slot_resolver import SlotResolver

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/providers", tags=["availability"])


@router.get("/{provider_id}/availability", response_model=DayAvailabilityResponse)
def get_availability_for_date(
    provider_id: str,
    on_date: date = Query(..., alias="date"),
    include_inactive: bool = Query(False),
    resolver: SlotResolver = Depends(get_slot_resolver),
) -> DayAvailabilityResponse:
    """Open / booked status of each weekly window on one concrete date."""
    try:
        return resolver.resolve_day(provider_id, on_date, include_inactive=include_inactive)
    except DomainException as e:
        raise e.to_http_exception()


@router.get("/{provider_id}/availability/week", response_model=WeekAvailabilityResponse)
def get_week_availability(
    provider_id: str,
    start: date = Query(..., description="First date of the seven-day range"),
    include_inactive: bool = Query(False),
    resolver: SlotResolver = Depends(get_slot_resolver),
) -> WeekAvailabilityResponse:
    try:
        return resolver.resolve_week(provider_id, start, include_inactive=include_inactive)
    except DomainException as e:
        raise e.to_http_exception()


@router.get("/{provider_id}/availability/template", response_model=List[TemplateSlotResponse])
def get_weekly_template(
    provider_id: str,
    active_only: bool = Query(True),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> List[TemplateSlotResponse]:
    templates = availability_service.list_template(provider_id, active_only=active_only)
    return [TemplateSlotResponse.model_validate(template) for template in templates]


@router.get("/{provider_id}/availability/summary", response_model=TemplateSummary)
def get_template_summary(
    provider_id: str,
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> TemplateSummary:
    return availability_service.get_template_summary(provider_id)


@router.put("/{provider_id}/availability", response_model=List[TemplateSlotResponse])
def set_weekly_template(
    provider_id: str,
    payload: WeeklyTemplateUpdate = Body(...),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> List[TemplateSlotResponse]:
    """
    Replace the provider's weekly template.

    Windows missing from the payload are deactivated, never deleted;
    existing appointments are left as they are.
    """
    try:
        templates = availability_service.set_weekly_template(provider_id, payload.slots)
        return [TemplateSlotResponse.model_validate(template) for template in templates]
    except DomainException as e:
        raise e.to_http_exception()


@router.patch("/{provider_id}/availability/{template_id}", response_model=TemplateSlotResponse)
def toggle_window(
    provider_id: str,
    template_id: str,
    payload: WindowToggle = Body(...),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> TemplateSlotResponse:
    """Activate or deactivate one weekly window without touching the others."""
    try:
        template = availability_service.get_template(template_id)
        if template.provider_id != provider_id:
            raise NotFoundException(
                f"Availability window {template_id} not found",
                details={"template_id": template_id},
            )
        if payload.is_active:
            template = availability_service.activate(template_id)
        else:
            template = availability_service.deactivate(template_id)
        return TemplateSlotResponse.model_validate(template)
    except DomainException as e:
        raise e.to_http_exception()
