# coffice/repositories/subscription_repository.py
"""Subscription enrollment queries and the conditional hour decrement."""

from datetime import datetime
import logging
from typing import Optional, cast

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.subscription import EnrollmentStatus, SubscriptionEnrollment
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class SubscriptionRepository(BaseRepository[SubscriptionEnrollment]):
    def __init__(self, db: Session):
        super().__init__(db, SubscriptionEnrollment)
        self.logger = logging.getLogger(__name__)

    def find_active_enrollment(self, user_id: str, at: datetime) -> Optional[SubscriptionEnrollment]:
        """Active enrollment covering ``at``; the one ending soonest wins."""
        try:
            return cast(
                Optional[SubscriptionEnrollment],
                self.db.query(SubscriptionEnrollment)
                .filter(
                    SubscriptionEnrollment.user_id == user_id,
                    SubscriptionEnrollment.status == EnrollmentStatus.ACTIVE.value,
                    SubscriptionEnrollment.start_date <= at,
                    SubscriptionEnrollment.end_date > at,
                )
                .order_by(SubscriptionEnrollment.end_date.asc(), SubscriptionEnrollment.id.asc())
                .first(),
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to find enrollment for user %s: %s", user_id, exc)
            raise RepositoryException("Failed to find subscription enrollment") from exc

    def try_consume_hours(self, enrollment_id: str, hours: int) -> bool:
        """Decrement ``hours_remaining`` only if at least ``hours`` are left."""
        try:
            result = self.db.execute(
                update(SubscriptionEnrollment)
                .where(
                    SubscriptionEnrollment.id == enrollment_id,
                    SubscriptionEnrollment.status == EnrollmentStatus.ACTIVE.value,
                    SubscriptionEnrollment.hours_remaining >= hours,
                )
                .values(hours_remaining=SubscriptionEnrollment.hours_remaining - hours)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to consume hours on enrollment %s: %s", enrollment_id, exc)
            raise RepositoryException("Failed to consume subscription hours") from exc
        return result.rowcount == 1

    def restore_hours(self, enrollment_id: str, hours: int) -> None:
        try:
            self.db.execute(
                update(SubscriptionEnrollment)
                .where(SubscriptionEnrollment.id == enrollment_id)
                .values(hours_remaining=SubscriptionEnrollment.hours_remaining + hours)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to restore hours on enrollment %s: %s", enrollment_id, exc)
            raise RepositoryException("Failed to restore subscription hours") from exc
