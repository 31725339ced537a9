# backend/servicebook/services/availability_service.py
"""
Availability Service for the servicebook engine.

Owns a provider's recurring weekly template:
- Full-template upserts (insert, re-activate, deactivate)
- Overlap and ordering validation on typed times
- Soft activation toggles
- Template summaries

Windows are never deleted and existing appointments are never touched
when a template changes.
"""

from collections import defaultdict
import logging
from typing import Any, Dict, Iterable, List, Mapping, NamedTuple, Optional, Sequence, Tuple

from pydantic import ValidationError
from sqlalchemy.orm import Session

from ..core.enums import DayOfWeek
from ..core.exceptions import (
    AvailabilityOverlapException,
    NotFoundException,
    RepositoryException,
    ValidationException,
)
from ..core.time_utils import format_hhmm, parse_time_of_day, ranges_overlap
from ..models.availability import AvailabilityTemplate
from ..repositories.availability_repository import AvailabilityRepository
from ..repositories.base_repository import is_integrity_violation
from ..repositories.factory import RepositoryFactory
from ..schemas.availability import TemplateSummary, WeeklySlotInput
from .base import BaseService

logger = logging.getLogger(__name__)

SlotLike = WeeklySlotInput | Mapping[str, Any] | Tuple[Any, Any, Any]


class _Window(NamedTuple):
    day: DayOfWeek
    start_time: Any
    end_time: Any

    @property
    def label(self) -> str:
        return f"{format_hhmm(self.start_time)}-{format_hhmm(self.end_time)}"


def template_sort_key(template: AvailabilityTemplate) -> Tuple[int, Any]:
    """Monday-first weekday order, then start time."""
    return (template.day.weekday, template.start_time)


class AvailabilityService(BaseService):
    """Service layer for the weekly availability template store."""

    def __init__(self, db: Session, repository: Optional[AvailabilityRepository] = None):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_availability_repository(db)

    # Writes

    @BaseService.measure_operation("set_weekly_template")
    def set_weekly_template(
        self, provider_id: str, slots: Sequence[SlotLike]
    ) -> List[AvailabilityTemplate]:
        """
        Replace a provider's weekly template.

        Windows in ``slots`` are inserted or re-activated; active windows
        absent from ``slots`` are deactivated. An empty sequence deactivates
        everything.

        Args:
            provider_id: Provider whose template is written
            slots: ``WeeklySlotInput`` objects, mappings with day_of_week /
                start_time / end_time, or (day, start, end) tuples

        Returns:
            The provider's active windows after the write, ordered by
            weekday then start time

        Raises:
            ValidationException: Unparseable day or time, or start >= end
            AvailabilityOverlapException: Two windows on one day overlap
        """
        windows = [self._normalize_slot(slot) for slot in slots]
        self._check_no_overlap(windows)

        self.log_operation("set_weekly_template", provider_id=provider_id, windows=len(windows))

        # Two concurrent writers can race on the unique constraint; the
        # second attempt sees the winner's rows and converges on them.
        for attempt in (1, 2):
            try:
                with self.repository.transaction():
                    result = self._apply_template(provider_id, windows)
                break
            except RepositoryException as exc:
                if attempt == 1 and is_integrity_violation(exc):
                    self.logger.info(
                        "Template write for provider %s raced another writer, retrying",
                        provider_id,
                    )
                    continue
                raise

        return sorted(result, key=template_sort_key)

    @BaseService.measure_operation("deactivate_window")
    def deactivate(self, template_id: str) -> AvailabilityTemplate:
        template = self._get_or_404(template_id)
        if not template.is_active:
            return template
        with self.repository.transaction():
            self.repository.update(template, is_active=False)
        self.logger.info(
            "Deactivated window %s (%s %s)", template.id, template.day_of_week, template.time_range
        )
        return template

    @BaseService.measure_operation("activate_window")
    def activate(self, template_id: str) -> AvailabilityTemplate:
        template = self._get_or_404(template_id)
        if template.is_active:
            return template

        conflicts = self.repository.get_overlapping_active(
            template.provider_id,
            template.day,
            template.start_time,
            template.end_time,
            exclude_id=template.id,
        )
        if conflicts:
            raise AvailabilityOverlapException(
                day_of_week=template.day_of_week,
                new_range=template.time_range,
                conflicting_range=conflicts[0].time_range,
            )

        with self.repository.transaction():
            self.repository.update(template, is_active=True)
        self.logger.info(
            "Activated window %s (%s %s)", template.id, template.day_of_week, template.time_range
        )
        return template

    # Reads

    @BaseService.measure_operation("list_template")
    def list_template(
        self, provider_id: str, active_only: bool = True
    ) -> List[AvailabilityTemplate]:
        templates = self.repository.get_for_provider(provider_id, active_only=active_only)
        return sorted(templates, key=template_sort_key)

    def get_template(self, template_id: str) -> AvailabilityTemplate:
        return self._get_or_404(template_id)

    @BaseService.measure_operation("get_template_summary")
    def get_template_summary(self, provider_id: str) -> TemplateSummary:
        templates = self.repository.get_for_provider(provider_id, active_only=False)
        active = [template for template in templates if template.is_active]
        by_day = self.repository.count_by_day(provider_id, active_only=True)
        return TemplateSummary(
            provider_id=provider_id,
            total_windows=len(templates),
            active_windows=len(active),
            inactive_windows=len(templates) - len(active),
            cached_booked_windows=sum(1 for template in active if template.is_booked),
            active_by_day={day.value: by_day.get(day.value, 0) for day in DayOfWeek},
        )

    # Private helpers

    def _get_or_404(self, template_id: str) -> AvailabilityTemplate:
        template = self.repository.get_by_id(template_id)
        if not template:
            raise NotFoundException(
                f"Availability window {template_id} not found",
                details={"template_id": template_id},
            )
        return template

    def _normalize_slot(self, slot: SlotLike) -> _Window:
        try:
            if isinstance(slot, WeeklySlotInput):
                parsed = slot
            elif isinstance(slot, Mapping):
                parsed = WeeklySlotInput.model_validate(dict(slot))
            else:
                day, start, end = slot
                parsed = WeeklySlotInput(day_of_week=day, start_time=start, end_time=end)
        except (ValidationError, ValueError, TypeError) as exc:
            raise ValidationException(
                f"Invalid availability window {slot!r}",
                details={"error": str(exc)},
            ) from exc

        start_time = parse_time_of_day(parsed.start_time)
        end_time = parse_time_of_day(parsed.end_time)
        if start_time >= end_time:
            raise ValidationException(
                f"Window on {parsed.day_of_week.value} must start before it ends "
                f"({format_hhmm(start_time)}-{format_hhmm(end_time)})",
                details={
                    "day_of_week": parsed.day_of_week.value,
                    "start_time": format_hhmm(start_time),
                    "end_time": format_hhmm(end_time),
                },
            )
        return _Window(parsed.day_of_week, start_time, end_time)

    @staticmethod
    def _check_no_overlap(windows: Iterable[_Window]) -> None:
        by_day: Dict[DayOfWeek, List[_Window]] = defaultdict(list)
        for window in windows:
            by_day[window.day].append(window)

        for day, day_windows in by_day.items():
            ordered = sorted(day_windows, key=lambda w: (w.start_time, w.end_time))
            for previous, current in zip(ordered, ordered[1:]):
                # Touching edges are allowed (10:00-11:00 then 11:00-12:00)
                if ranges_overlap(
                    previous.start_time, previous.end_time, current.start_time, current.end_time
                ):
                    raise AvailabilityOverlapException(
                        day_of_week=day.value,
                        new_range=current.label,
                        conflicting_range=previous.label,
                    )

    def _apply_template(
        self, provider_id: str, windows: Sequence[_Window]
    ) -> List[AvailabilityTemplate]:
        existing = self.repository.get_for_provider(provider_id, active_only=False)
        index = {
            (template.day, template.start_time, template.end_time): template
            for template in existing
        }
        wanted = {(window.day, window.start_time, window.end_time) for window in windows}

        deactivated = 0
        for key, template in index.items():
            if template.is_active and key not in wanted:
                self.repository.update(template, is_active=False)
                deactivated += 1

        active: List[AvailabilityTemplate] = []
        created = reactivated = 0
        for key in sorted(wanted, key=lambda k: (k[0].weekday, k[1])):
            template = index.get(key)
            if template is None:
                day, start_time, end_time = key
                template = self.repository.create(
                    provider_id=provider_id,
                    day_of_week=day.value,
                    start_time=start_time,
                    end_time=end_time,
                    is_active=True,
                )
                created += 1
            elif not template.is_active:
                self.repository.update(template, is_active=True)
                reactivated += 1
            active.append(template)

        self.logger.info(
            "Weekly template for provider %s: %d created, %d reactivated, %d deactivated",
            provider_id,
            created,
            reactivated,
            deactivated,
        )
        return active
