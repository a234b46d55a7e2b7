"""
Promo code models.

``uses_so_far`` is only ever changed by the single conditional UPDATE in
PromoCodeRepository.try_increment_usage; the check constraint backs that up
at the database level.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
import ulid

from coffice.database import Base
from coffice.models.types import UTCDateTime, utc_now


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class PromoApplicability(str, Enum):
    ALL = "all"
    RESERVATION = "reservation"
    SUBSCRIPTION = "subscription"
    DOMICILIATION = "domiciliation"


class PromoCode(Base):
    """Redeemable discount token with validity window and usage cap."""

    __tablename__ = "promo_codes"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    discount_type: Mapped[str] = mapped_column(String(20), nullable=False)
    discount_value: Mapped[int] = mapped_column(Integer, nullable=False)
    valid_from: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    valid_until: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    min_order_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_uses: Mapped[Optional[int]] = mapped_column(
        Integer, nullable=True, comment="NULL means unlimited"
    )
    uses_so_far: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    applicable_to: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PromoApplicability.ALL.value
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utc_now, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "discount_type IN ('percentage', 'fixed')", name="ck_promo_codes_discount_type"
        ),
        CheckConstraint(
            "applicable_to IN ('all', 'reservation', 'subscription', 'domiciliation')",
            name="ck_promo_codes_applicable_to",
        ),
        CheckConstraint("discount_value >= 0", name="check_discount_value_non_negative"),
        CheckConstraint(
            "discount_type <> 'percentage' OR discount_value <= 100",
            name="check_percentage_bounds",
        ),
        CheckConstraint("uses_so_far >= 0", name="check_uses_non_negative"),
        CheckConstraint(
            "max_uses IS NULL OR uses_so_far <= max_uses", name="check_uses_within_max"
        ),
    )

    def __repr__(self) -> str:
        return f"<PromoCode {self.code}: {self.discount_type} {self.discount_value} uses={self.uses_so_far}/{self.max_uses}>"


class PromoCodeUsage(Base):
    """One row per redemption; at most one per reservation and per (code, user)."""

    __tablename__ = "promo_code_usages"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    promo_code_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("promo_codes.id"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False)
    reservation_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("reservations.id"), nullable=False, unique=True
    )
    discount_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    amount_before: Mapped[int] = mapped_column(Integer, nullable=False)
    amount_after: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utc_now, nullable=False)

    __table_args__ = (
        UniqueConstraint("promo_code_id", "user_id", name="uq_promo_code_usage_user"),
    )
