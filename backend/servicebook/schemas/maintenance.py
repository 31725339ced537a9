# backend/servicebook/schemas/maintenance.py
"""Result of one weekly reset / sync run."""

import datetime
from typing import Any, Dict

from pydantic import Field

from ._strict_base import StrictModel


class MaintenanceReport(StrictModel):
    """
    Per-step counters for a maintenance run.

    ``errors`` counts items whose savepoint was rolled back; those items are
    retried on the next run.
    """

    started_at: datetime.datetime
    cutoff: datetime.datetime
    statuses_normalized: int = 0
    appointments_finished: int = 0
    flags_cleared: int = 0
    flags_set: int = 0
    unmatched_appointments: int = 0
    errors: int = 0
    error_details: list[str] = Field(default_factory=list)

    @property
    def changed(self) -> int:
        return (
            self.statuses_normalized
            + self.appointments_finished
            + self.flags_cleared
            + self.flags_set
        )

    def as_task_result(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
