# coffice/repositories/promo_code_repository.py
"""
Promo Code Repository for Coffice

``try_increment_usage`` is the only writer of ``uses_so_far``: one
conditional UPDATE, so concurrent redemptions can never both pass the
``uses_so_far < max_uses`` check.
"""

import logging
from typing import Optional, cast

from sqlalchemy import func, or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.promo_code import PromoCode, PromoCodeUsage
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class PromoCodeRepository(BaseRepository[PromoCode]):
    def __init__(self, db: Session):
        super().__init__(db, PromoCode)
        self.logger = logging.getLogger(__name__)

    def get_by_code(self, code: str) -> Optional[PromoCode]:
        """Case-insensitive lookup; codes are stored upper-case."""
        try:
            return cast(
                Optional[PromoCode],
                self.db.query(PromoCode).filter(func.upper(PromoCode.code) == code.upper()).first(),
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load promo code %s: %s", code, exc)
            raise RepositoryException("Failed to load promo code") from exc

    def try_increment_usage(self, promo_code_id: str) -> bool:
        """Atomically consume one use; False when the code is exhausted or inactive."""
        try:
            result = self.db.execute(
                update(PromoCode)
                .where(
                    PromoCode.id == promo_code_id,
                    PromoCode.is_active.is_(True),
                    or_(PromoCode.max_uses.is_(None), PromoCode.uses_so_far < PromoCode.max_uses),
                )
                .values(uses_so_far=PromoCode.uses_so_far + 1)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to increment usage for promo %s: %s", promo_code_id, exc)
            raise RepositoryException("Failed to redeem promo code") from exc

        if result.rowcount != 1:
            return False
        entity = self.db.get(PromoCode, promo_code_id)
        if entity is not None:
            self.db.refresh(entity)
        return True

    # Usage rows

    def get_usage_for_reservation(self, reservation_id: str) -> Optional[PromoCodeUsage]:
        try:
            return cast(
                Optional[PromoCodeUsage],
                self.db.query(PromoCodeUsage)
                .filter(PromoCodeUsage.reservation_id == reservation_id)
                .first(),
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load promo usage for %s: %s", reservation_id, exc)
            raise RepositoryException("Failed to load promo usage") from exc

    def user_has_used(self, promo_code_id: str, user_id: str) -> bool:
        try:
            return (
                self.db.query(PromoCodeUsage.id)
                .filter(
                    PromoCodeUsage.promo_code_id == promo_code_id,
                    PromoCodeUsage.user_id == user_id,
                )
                .first()
                is not None
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to check promo usage for user %s: %s", user_id, exc)
            raise RepositoryException("Failed to check promo usage") from exc

    def record_usage(
        self,
        *,
        promo_code_id: str,
        user_id: str,
        reservation_id: str,
        discount_amount: int,
        amount_before: int,
    ) -> PromoCodeUsage:
        usage = PromoCodeUsage(
            promo_code_id=promo_code_id,
            user_id=user_id,
            reservation_id=reservation_id,
            discount_amount=discount_amount,
            amount_before=amount_before,
            amount_after=amount_before - discount_amount,
        )
        try:
            self.db.add(usage)
            self.db.flush()
        except SQLAlchemyError as exc:
            self.logger.error("Failed to record promo usage for %s: %s", reservation_id, exc)
            raise RepositoryException(f"Failed to record promo usage: {exc}") from exc
        return usage
