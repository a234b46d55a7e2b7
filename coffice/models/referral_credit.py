"""
Referral credit model.

Credits are consumed FIFO. A partially used credit is split: the consumed
part is closed against the reservation and the remainder lives on in a new
``available`` row that points back through ``source_credit_id``.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
import ulid

from coffice.database import Base
from coffice.models.types import UTCDateTime, utc_now


class ReferralCreditStatus(str, Enum):
    AVAILABLE = "available"
    CONSUMED = "consumed"


class ReferralCredit(Base):
    __tablename__ = "referral_credits"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    referred_user_id: Mapped[Optional[str]] = mapped_column(
        String(26), ForeignKey("users.id"), nullable=True
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    amount_remaining: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ReferralCreditStatus.AVAILABLE.value, index=True
    )
    reason: Mapped[str] = mapped_column(String(50), nullable=False, default="referral_bonus")
    source_credit_id: Mapped[Optional[str]] = mapped_column(
        String(26), ForeignKey("referral_credits.id"), nullable=True
    )
    consumed_reservation_id: Mapped[Optional[str]] = mapped_column(
        String(26), ForeignKey("reservations.id"), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utc_now, nullable=False)
    consumed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    __table_args__ = (
        CheckConstraint("amount >= 0", name="check_credit_amount_non_negative"),
        CheckConstraint(
            "amount_remaining >= 0 AND amount_remaining <= amount",
            name="check_credit_remaining_bounds",
        ),
        CheckConstraint("status IN ('available', 'consumed')", name="ck_referral_credits_status"),
    )

    def __repr__(self) -> str:
        return f"<ReferralCredit {self.id}: user={self.user_id} {self.amount_remaining}/{self.amount} {self.status}>"
