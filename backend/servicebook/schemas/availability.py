# backend/servicebook/schemas/availability.py
"""
Availability schemas for the servicebook engine.

Times travel as "HH:MM" on the wire and as ``datetime.time`` everywhere
else. ``ProjectedSlot`` is the derived, never-persisted view of one template
on one concrete date.
"""

import datetime
from typing import Any, Dict, List, Optional

from pydantic import ConfigDict, Field, field_serializer, field_validator

from ..core.enums import DayOfWeek, SlotStatus
from ..core.time_utils import format_hhmm, parse_time_of_day
from ._strict_base import ORMResponseModel, StrictModel, StrictRequestModel

# Type aliases for clarity
DateType = datetime.date
TimeType = datetime.time


def _coerce_time(value: Any) -> TimeType:
    return parse_time_of_day(value)


class WeeklySlotInput(StrictRequestModel):
    """One recurring window: day label plus "HH:MM" bounds."""

    day_of_week: DayOfWeek
    start_time: TimeType
    end_time: TimeType

    @field_validator("day_of_week", mode="before")
    @classmethod
    def parse_day(cls, v: Any) -> DayOfWeek:
        return DayOfWeek.parse(v)

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_time(cls, v: Any) -> TimeType:
        return _coerce_time(v)


class WeeklyTemplateUpdate(StrictRequestModel):
    """Full replacement of a provider's weekly template."""

    slots: List[WeeklySlotInput] = Field(default_factory=list)


class WindowToggle(StrictRequestModel):
    is_active: bool


class TemplateSlotResponse(ORMResponseModel):
    id: str
    provider_id: str
    day_of_week: str
    start_time: TimeType
    end_time: TimeType
    is_active: bool

    @field_serializer("start_time", "end_time")
    def serialize_time(self, value: TimeType) -> str:
        return format_hhmm(value)


class ProjectedSlot(StrictModel):
    """A template projected onto one concrete date."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    template_id: str
    provider_id: str
    day_of_week: DayOfWeek
    concrete_date: DateType
    start_time: TimeType
    end_time: TimeType
    status: SlotStatus
    appointment_id: Optional[str] = None

    @property
    def is_available(self) -> bool:
        return self.status == SlotStatus.AVAILABLE

    @field_serializer("start_time", "end_time")
    def serialize_time(self, value: TimeType) -> str:
        return format_hhmm(value)


class DayAvailabilityResponse(StrictModel):
    provider_id: str
    date: DateType
    day_of_week: DayOfWeek
    slots: List[ProjectedSlot]


class WeekAvailabilityResponse(StrictModel):
    provider_id: str
    week_start: DateType
    days: List[DayAvailabilityResponse]


class TemplateSummary(StrictModel):
    """Counts over a provider's template, per day and overall."""

    provider_id: str
    total_windows: int
    active_windows: int
    inactive_windows: int
    cached_booked_windows: int
    active_by_day: Dict[str, int]
