# backend/servicebook/schemas/__init__.py
"""Pydantic schemas for the servicebook engine."""

from .appointment import (
    AppointmentResponse,
    AppointmentStatistics,
    BookingRequest,
    RescheduleRequest,
    StatusUpdateRequest,
)
from .availability import (
    DayAvailabilityResponse,
    ProjectedSlot,
    TemplateSlotResponse,
    TemplateSummary,
    WeekAvailabilityResponse,
    WeeklySlotInput,
    WeeklyTemplateUpdate,
    WindowToggle,
)
from .maintenance import MaintenanceReport

__all__ = [
    "AppointmentResponse",
    "AppointmentStatistics",
    "BookingRequest",
    "DayAvailabilityResponse",
    "MaintenanceReport",
    "ProjectedSlot",
    "RescheduleRequest",
    "StatusUpdateRequest",
    "TemplateSlotResponse",
    "TemplateSummary",
    "WeekAvailabilityResponse",
    "WeeklySlotInput",
    "WeeklyTemplateUpdate",
    "WindowToggle",
]
