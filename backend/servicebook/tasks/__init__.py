# backend/servicebook/tasks/__init__.py
"""
Celery tasks package for servicebook.

- availability_maintenance: weekly reset / sync of booking flags and statuses
"""

from servicebook.tasks.availability_maintenance import (
    run_weekly_reset_and_sync,
    weekly_reset_and_sync,
)
from servicebook.tasks.celery_app import BaseTask, celery_app

__all__ = [
    "BaseTask",
    "celery_app",
    "run_weekly_reset_and_sync",
    "weekly_reset_and_sync",
]
