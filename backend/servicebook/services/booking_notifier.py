# backend/servicebook/services/booking_notifier.py
"""
Post-commit booking notifications.

The engine only emits events; delivery (email, push, SMS) is someone
else's job. ``BookingNotifier`` is the seam: the default implementation
logs the event, deployments inject their own dispatcher.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
import logging
from typing import Any, Dict, Optional

from ..models.appointment import Appointment

logger = logging.getLogger(__name__)

APPOINTMENT_CREATED = "appointment.created"
APPOINTMENT_STATUS_CHANGED = "appointment.status_changed"
APPOINTMENT_RESCHEDULED = "appointment.rescheduled"


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class BookingEvent:
    """Snapshot of an appointment taken right after commit."""

    event_type: str
    appointment_id: str
    provider_id: str
    customer_id: str
    scheduled_at: datetime
    status: str
    previous_status: Optional[str] = None
    previous_scheduled_at: Optional[datetime] = None
    occurred_at: datetime = field(default_factory=_now_utc)

    @classmethod
    def from_appointment(
        cls,
        event_type: str,
        appointment: Appointment,
        *,
        previous_status: Optional[str] = None,
        previous_scheduled_at: Optional[datetime] = None,
    ) -> "BookingEvent":
        return cls(
            event_type=event_type,
            appointment_id=appointment.id,
            provider_id=appointment.provider_id,
            customer_id=appointment.customer_id,
            scheduled_at=appointment.scheduled_at,
            status=appointment.status,
            previous_status=previous_status,
            previous_scheduled_at=previous_scheduled_at,
        )

    def to_payload(self) -> Dict[str, Any]:
        payload = asdict(self)
        for key, value in payload.items():
            if isinstance(value, datetime):
                payload[key] = value.isoformat()
        return payload


class BookingNotifier:
    """Default dispatcher: records the event in the application log."""

    def notify(self, event: BookingEvent) -> None:
        logger.info(
            "Booking event %s for appointment %s",
            event.event_type,
            event.appointment_id,
            extra={"booking_event": event.to_payload()},
        )
