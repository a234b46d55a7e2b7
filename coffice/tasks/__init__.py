# coffice/tasks/__init__.py
"""Celery tasks package for Coffice."""

from coffice.tasks.celery_app import BaseTask, celery_app
from coffice.tasks.reservation_tasks import sync_reservation_statuses

__all__ = ["BaseTask", "celery_app", "sync_reservation_statuses"]
