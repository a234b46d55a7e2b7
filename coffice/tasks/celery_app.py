# coffice/tasks/celery_app.py
"""
Celery application configuration for Coffice.

Redis is the broker and result backend. Beat runs the reservation status
sweep on a fixed interval.
"""

from datetime import timedelta
import logging
import os
from typing import Any, Dict, Type, cast

from celery import Celery, Task
from celery.signals import setup_logging

from coffice.core.config import settings

logger = logging.getLogger(__name__)


def get_beat_schedule() -> Dict[str, Dict[str, Any]]:
    return {
        "sync-reservation-statuses": {
            "task": "coffice.tasks.reservation_tasks.sync_reservation_statuses",
            "schedule": timedelta(minutes=settings.status_sync_interval_minutes),
            "options": {"expires": settings.status_sync_interval_minutes * 60},
        },
    }


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Returns:
        Celery: Configured Celery application instance
    """
    # Priority: CELERY_BROKER_URL -> settings.redis_url
    broker_url = os.getenv("CELERY_BROKER_URL") or settings.redis_url
    result_backend = os.getenv("CELERY_RESULT_BACKEND") or broker_url

    celery_app = Celery("coffice", broker=broker_url, backend=result_backend)
    celery_app.conf.update(
        {
            "task_serializer": "json",
            "accept_content": ["json"],
            "result_serializer": "json",
            "timezone": settings.business_timezone,
            "enable_utc": True,
            "worker_prefetch_multiplier": 1,
            "worker_hijack_root_logger": False,
            "task_acks_late": True,
            "task_reject_on_worker_lost": True,
            "task_soft_time_limit": 120,
            "task_time_limit": 300,
            # The sweep is idempotent; running it eagerly in tests needs no broker
            "task_always_eager": settings.is_testing,
        }
    )
    celery_app.conf.imports = ("coffice.tasks.reservation_tasks",)
    celery_app.conf.beat_schedule = get_beat_schedule()
    return celery_app


@setup_logging.connect  # type: ignore[misc]
def config_loggers(*args: Any, **kwargs: Any) -> None:
    """Configure logging to integrate with the application's logging setup."""
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


celery_app = create_celery_app()


class BaseTask(Task):  # type: ignore[misc]
    """Base task with failure and retry logging."""

    def on_failure(self, exc: Exception, task_id: str, args: Any, kwargs: Any, einfo: Any) -> None:
        logger.error(
            f"Task {self.name}[{task_id}] failed with exception: {exc}",
            exc_info=True,
            extra={"task_id": task_id, "task_name": self.name},
        )
        super().on_failure(exc, task_id, args, kwargs, einfo)

    def on_retry(self, exc: Exception, task_id: str, args: Any, kwargs: Any, einfo: Any) -> None:
        logger.warning(
            f"Task {self.name}[{task_id}] retry {self.request.retries} due to: {exc}",
            extra={"task_id": task_id, "task_name": self.name, "retry_count": self.request.retries},
        )
        super().on_retry(exc, task_id, args, kwargs, einfo)


celery_app.Task = cast(Type[Task], BaseTask)
