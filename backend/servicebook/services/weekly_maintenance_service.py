# backend/servicebook/services/weekly_maintenance_service.py
"""
Weekly reset / sync of booking flags and appointment statuses.

Runs as a Celery beat task and as a plain function. Every step is
idempotent and every item runs in its own savepoint, so one bad row is
logged and counted while the rest of the batch proceeds:

1. Rewrite legacy status labels to canonical values.
2. Retire accepted / on_the_way appointments older than the stale window
   to ``finished``.
3. Clear ``is_booked`` on templates whose cached occurrence is stale.
4. Re-flag templates that still have a live appointment on or after the
   cutoff.

Slot availability never depends on the flags written here; they exist
for dashboards and legacy readers.
"""

from datetime import datetime, timedelta
import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import DayOfWeek
from ..models.appointment import STALE_ELIGIBLE_STATUSES, AppointmentStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.appointment_repository import AppointmentRepository
from ..repositories.availability_repository import AvailabilityRepository
from ..repositories.factory import RepositoryFactory
from ..schemas.maintenance import MaintenanceReport
from .base import BaseService

logger = logging.getLogger(__name__)

LOG_TAG = "[AVAIL-MAINT]"


class WeeklyMaintenanceService(BaseService):
    """Explicit, idempotent reconciliation job."""

    def __init__(
        self,
        db: Session,
        availability_repository: Optional[AvailabilityRepository] = None,
        appointment_repository: Optional[AppointmentRepository] = None,
        stale_after_days: Optional[int] = None,
    ):
        super().__init__(db)
        self.availability_repository = (
            availability_repository or RepositoryFactory.create_availability_repository(db)
        )
        self.appointment_repository = (
            appointment_repository or RepositoryFactory.create_appointment_repository(db)
        )
        self.stale_after_days = stale_after_days or settings.stale_after_days

    @BaseService.measure_operation("weekly_reset_and_sync")
    def run(self, now: Optional[datetime] = None) -> MaintenanceReport:
        """
        Execute all maintenance steps once.

        Args:
            now: Local wall-clock "now" (naive, like ``scheduled_at``);
                defaults to the current local time

        Returns:
            Counters per step plus the number of failed items
        """
        now = now or datetime.now()
        cutoff = now - timedelta(days=self.stale_after_days)
        report = MaintenanceReport(started_at=now, cutoff=cutoff)
        logger.info("%s Starting run, cutoff %s", LOG_TAG, cutoff.isoformat())

        self._normalize_legacy_statuses(report)
        self._finish_stale_appointments(cutoff, report)
        self._reset_stale_flags(cutoff, report)
        self._reconcile_flags(cutoff, report)

        logger.info(
            "%s Done: %d normalized, %d finished, %d flags cleared, %d flags set, "
            "%d unmatched, %d errors",
            LOG_TAG,
            report.statuses_normalized,
            report.appointments_finished,
            report.flags_cleared,
            report.flags_set,
            report.unmatched_appointments,
            report.errors,
        )
        return report

    # Steps

    def _normalize_legacy_statuses(self, report: MaintenanceReport) -> None:
        canonical = {status.value for status in AppointmentStatus}
        for raw in self.appointment_repository.get_distinct_status_values():
            if raw in canonical:
                continue
            try:
                target = AppointmentStatus.parse(raw)
            except ValueError:
                logger.warning("%s Unknown appointment status %r left untouched", LOG_TAG, raw)
                continue

            for appointment_id, _ in self.appointment_repository.get_ids_with_status_values(
                [raw]
            ):
                changed = self._run_item(
                    "normalize_status",
                    appointment_id,
                    report,
                    lambda appointment_id=appointment_id, raw=raw, target=target: (
                        self.appointment_repository.conditional_status_update(
                            appointment_id, [raw], target
                        )
                    ),
                )
                report.statuses_normalized += changed
        self.db.commit()

    def _finish_stale_appointments(self, cutoff: datetime, report: MaintenanceReport) -> None:
        expected = [status.value for status in STALE_ELIGIBLE_STATUSES]
        for appointment_id in self.appointment_repository.get_stale_candidates(
            STALE_ELIGIBLE_STATUSES, cutoff
        ):
            changed = self._run_item(
                "finish_stale",
                appointment_id,
                report,
                lambda appointment_id=appointment_id: (
                    self.appointment_repository.conditional_status_update(
                        appointment_id, expected, AppointmentStatus.FINISHED
                    )
                ),
            )
            if changed:
                logger.info("%s Appointment %s retired to finished", LOG_TAG, appointment_id)
            report.appointments_finished += changed
        self.db.commit()

    def _reset_stale_flags(self, cutoff: datetime, report: MaintenanceReport) -> None:
        cutoff_date = cutoff.date()
        for template in self.availability_repository.get_stale_booked(cutoff_date):
            report.flags_cleared += self._run_item(
                "reset_flag",
                template.id,
                report,
                lambda template_id=template.id: self.availability_repository.clear_booked_flag(
                    template_id, cutoff_date
                ),
            )
        self.db.commit()

    def _reconcile_flags(self, cutoff: datetime, report: MaintenanceReport) -> None:
        for appointment in self.appointment_repository.get_active_from(cutoff):
            scheduled = appointment.scheduled_at
            template = self.availability_repository.find_active_by_start(
                appointment.provider_id,
                DayOfWeek.from_date(scheduled.date()),
                scheduled.time(),
            )
            if template is None:
                report.unmatched_appointments += 1
                prometheus_metrics.record_maintenance_item("reconcile", "unmatched")
                logger.warning(
                    "%s Appointment %s (%s at %s) matches no active window",
                    LOG_TAG,
                    appointment.id,
                    appointment.provider_id,
                    scheduled.isoformat(),
                )
                continue

            report.flags_set += self._run_item(
                "reconcile",
                appointment.id,
                report,
                lambda template_id=template.id, occurrence=scheduled.date(): (
                    self.availability_repository.mark_booked(template_id, occurrence)
                ),
            )
        self.db.commit()

    # Private helpers

    def _run_item(
        self,
        step: str,
        item_id: str,
        report: MaintenanceReport,
        action: Callable[[], int],
    ) -> int:
        """Run one item in a savepoint; failures are logged, counted and skipped."""
        try:
            with self.db.begin_nested():
                changed = int(action() or 0)
        except Exception as exc:
            report.errors += 1
            report.error_details.append(f"{step}:{item_id}: {exc}")
            prometheus_metrics.record_maintenance_item(step, "error")
            logger.error("%s %s failed for %s: %s", LOG_TAG, step, item_id, exc, exc_info=True)
            return 0

        prometheus_metrics.record_maintenance_item(step, "changed" if changed else "unchanged")
        return changed
