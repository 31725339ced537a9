# backend/servicebook/tasks/beat_schedule.py
"""
Celery Beat schedule for servicebook.

The weekly reset / sync job is cheap and idempotent, so it runs daily;
each run only touches rows that crossed the stale window since the last.
"""

from typing import Any, Dict

from celery.schedules import crontab

from servicebook.core.config import settings

MAINTENANCE_TASK_NAME = "availability_maintenance.weekly_reset_and_sync"


def get_beat_schedule(environment: str) -> Dict[str, Dict[str, Any]]:
    """
    Build the beat schedule for an environment.

    Development gets the same entry; tests run the task eagerly instead.
    """
    schedule: Dict[str, Dict[str, Any]] = {
        "weekly-availability-reset-and-sync": {
            "task": MAINTENANCE_TASK_NAME,
            "schedule": crontab(
                hour=settings.maintenance_cron_hour,
                minute=settings.maintenance_cron_minute,
            ),
            "options": {
                "queue": "maintenance" if environment == "production" else "celery",
                "expires": 3600,
            },
        },
    }
    return schedule
