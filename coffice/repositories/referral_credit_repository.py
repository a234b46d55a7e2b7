# coffice/repositories/referral_credit_repository.py
"""
Referral Credit Repository for Coffice

FIFO credit queries plus the conditional claim used to consume a credit
exactly once.
"""

from __future__ import annotations

from datetime import datetime
import logging
from typing import List, cast

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.referral_credit import ReferralCredit, ReferralCreditStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ReferralCreditRepository(BaseRepository[ReferralCredit]):
    def __init__(self, db: Session):
        super().__init__(db, ReferralCredit)
        self.logger = logging.getLogger(__name__)

    def get_available_credits(self, *, user_id: str) -> List[ReferralCredit]:
        """Available credits, oldest first."""
        try:
            query = (
                self.db.query(ReferralCredit)
                .filter(
                    ReferralCredit.user_id == user_id,
                    ReferralCredit.status == ReferralCreditStatus.AVAILABLE.value,
                    ReferralCredit.amount_remaining > 0,
                )
                .order_by(ReferralCredit.created_at.asc(), ReferralCredit.id.asc())
            )
            return cast(List[ReferralCredit], query.all())
        except SQLAlchemyError as exc:
            self.logger.error("Failed to get available credits: %s", str(exc))
            raise RepositoryException("Failed to get available credits") from exc

    def get_total_available(self, *, user_id: str) -> int:
        try:
            result = (
                self.db.query(func.sum(ReferralCredit.amount_remaining))
                .filter(
                    ReferralCredit.user_id == user_id,
                    ReferralCredit.status == ReferralCreditStatus.AVAILABLE.value,
                )
                .scalar()
            )
            return int(result or 0)
        except SQLAlchemyError as exc:
            self.logger.error("Failed to total available credits: %s", str(exc))
            raise RepositoryException("Failed to total available credits") from exc

    def get_consumed_for_reservation(self, *, reservation_id: str) -> List[ReferralCredit]:
        try:
            query = (
                self.db.query(ReferralCredit)
                .filter(
                    ReferralCredit.consumed_reservation_id == reservation_id,
                    ReferralCredit.status == ReferralCreditStatus.CONSUMED.value,
                )
                .order_by(ReferralCredit.created_at.asc(), ReferralCredit.id.asc())
            )
            return cast(List[ReferralCredit], query.all())
        except SQLAlchemyError as exc:
            self.logger.error(
                "Failed to get consumed credits for reservation %s: %s", reservation_id, exc
            )
            raise RepositoryException("Failed to load consumed credits") from exc

    def has_bonus_for_referred_user(self, *, referred_user_id: str) -> bool:
        try:
            return (
                self.db.query(ReferralCredit.id)
                .filter(ReferralCredit.referred_user_id == referred_user_id)
                .first()
                is not None
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to check referral bonus for %s: %s", referred_user_id, exc)
            raise RepositoryException("Failed to check referral bonus") from exc

    def claim(self, credit_id: str, *, amount_used: int, reservation_id: str, now: datetime) -> bool:
        """
        Close an available credit against a reservation.

        The row keeps ``amount_used`` as its amount; the caller issues any
        remainder as a new credit. False when another request claimed it first.
        """
        try:
            result = self.db.execute(
                update(ReferralCredit)
                .where(
                    ReferralCredit.id == credit_id,
                    ReferralCredit.status == ReferralCreditStatus.AVAILABLE.value,
                    ReferralCredit.amount_remaining >= amount_used,
                )
                .values(
                    status=ReferralCreditStatus.CONSUMED.value,
                    amount=amount_used,
                    amount_remaining=0,
                    consumed_reservation_id=reservation_id,
                    consumed_at=now,
                )
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to claim referral credit %s: %s", credit_id, exc)
            raise RepositoryException("Failed to consume referral credit") from exc
        if result.rowcount != 1:
            return False
        entity = self.db.get(ReferralCredit, credit_id)
        if entity is not None:
            self.db.refresh(entity)
        return True
