# backend/servicebook/tasks/availability_maintenance.py
"""Celery entry point for the weekly availability reset / sync job."""

from datetime import datetime
import logging
from typing import Any, Callable, Dict, Optional, TypeVar, cast

from celery import shared_task

from servicebook.database import get_db_session
from servicebook.services.weekly_maintenance_service import LOG_TAG, WeeklyMaintenanceService
from servicebook.tasks.beat_schedule import MAINTENANCE_TASK_NAME

logger = logging.getLogger(__name__)

_TaskFunc = TypeVar("_TaskFunc", bound=Callable[..., Any])


def _typed_shared_task(*args: Any, **kwargs: Any) -> Callable[[_TaskFunc], _TaskFunc]:
    """Typed wrapper for Celery's shared_task decorator."""
    return cast(Callable[[_TaskFunc], _TaskFunc], shared_task(*args, **kwargs))


def run_weekly_reset_and_sync(now: Optional[datetime] = None) -> Dict[str, Any]:
    """Run the job outside Celery (scripts, tests, manual recovery)."""
    with get_db_session() as db:
        report = WeeklyMaintenanceService(db).run(now=now)
    return report.as_task_result()


@_typed_shared_task(name=MAINTENANCE_TASK_NAME, ignore_result=True)
def weekly_reset_and_sync(now_iso: Optional[str] = None) -> Dict[str, Any]:
    """Scheduled daily by beat; ``now_iso`` lets operators replay a past run."""
    now = datetime.fromisoformat(now_iso) if now_iso else None
    result = run_weekly_reset_and_sync(now)
    if result["errors"]:
        logger.warning("%s Completed with %d failed items", LOG_TAG, result["errors"])
    return result
