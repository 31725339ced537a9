# backend/servicebook/schemas/appointment.py
"""Appointment request/response schemas."""

import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import Field, field_validator

from ..core.constants import MAX_REASON_LENGTH
from ..core.time_utils import parse_time_of_day
from ._strict_base import ORMResponseModel, StrictModel, StrictRequestModel


class BookingRequest(StrictRequestModel):
    """Customer request for one occurrence of a provider's weekly window."""

    provider_id: str = Field(..., min_length=1, max_length=64)
    customer_id: str = Field(..., min_length=1, max_length=64)
    date: datetime.date
    start_time: datetime.time
    description: str = ""
    price: Optional[Decimal] = Field(default=None, ge=0)

    @field_validator("start_time", mode="before")
    @classmethod
    def parse_start(cls, v: Any) -> datetime.time:
        return parse_time_of_day(v)


class StatusUpdateRequest(StrictRequestModel):
    """
    Status change. ``status`` accepts canonical values and legacy labels
    ("confirmed", "in-progress", "canceled"...).
    """

    status: str = Field(..., min_length=1)
    final_price: Optional[Decimal] = Field(default=None, ge=0)
    cancellation_reason: Optional[str] = Field(default=None, max_length=MAX_REASON_LENGTH)

    def transition_fields(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"status"}, exclude_none=True)


class RescheduleRequest(StrictRequestModel):
    date: datetime.date
    start_time: datetime.time
    reason: str = Field(..., min_length=1, max_length=MAX_REASON_LENGTH)

    @field_validator("start_time", mode="before")
    @classmethod
    def parse_start(cls, v: Any) -> datetime.time:
        return parse_time_of_day(v)


class AppointmentResponse(ORMResponseModel):
    id: str
    provider_id: str
    customer_id: str
    availability_template_id: Optional[str] = None
    scheduled_at: datetime.datetime
    duration_minutes: int
    status: str
    final_price: Optional[Decimal] = None
    cancellation_reason: Optional[str] = None
    repair_description: Optional[str] = None


class AppointmentStatistics(StrictModel):
    """Ledger counts by canonical status plus completed revenue."""

    provider_id: Optional[str] = None
    total: int
    by_status: Dict[str, int]
    completed_revenue: Decimal
    completion_rate: float
