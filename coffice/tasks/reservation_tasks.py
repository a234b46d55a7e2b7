"""Periodic reservation maintenance tasks."""

from __future__ import annotations

import logging
from typing import Any, Dict

from coffice.database import SessionLocal
from coffice.services.reservation_service import ReservationService
from coffice.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(  # type: ignore[misc]
    bind=True,
    name="coffice.tasks.reservation_tasks.sync_reservation_statuses",
    max_retries=3,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=300,
)
def sync_reservation_statuses(self: Any) -> Dict[str, int]:
    """
    Persist clock-driven status changes (start, complete, expire pending).

    Safe to run concurrently with user actions: every step is a
    compare-and-set, and a reservation moved by someone else is skipped.
    """
    db = SessionLocal()
    try:
        counts = ReservationService(db).sync_time_based_statuses()
    finally:
        db.close()
    logger.info("Reservation status sync finished", extra=counts)
    return counts
