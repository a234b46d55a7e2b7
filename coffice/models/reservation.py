# coffice/models/reservation.py
"""
Reservation model.

A reservation holds a resource for the half-open interval
``[start_at, end_at)``. Rows are never deleted: cancellation is a status,
and the pricing breakdown is snapshotted on the row so history survives
price list changes.

Status is only ever changed through ReservationRepository.transition_status,
a compare-and-set update.
"""

from enum import Enum
from typing import Any

from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship
import ulid

from coffice.database import Base
from coffice.models.types import UTCDateTime, utc_now


class ReservationStatus(str, Enum):
    """Reservation lifecycle statuses."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Statuses that occupy the calendar
LIVE_STATUSES = (
    ReservationStatus.PENDING.value,
    ReservationStatus.CONFIRMED.value,
    ReservationStatus.IN_PROGRESS.value,
)


class PricingTier(str, Enum):
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class Reservation(Base):
    __tablename__ = "reservations"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    resource_id = Column(String(26), ForeignKey("resources.id"), nullable=False)
    user_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)

    start_at = Column(UTCDateTime(), nullable=False)
    end_at = Column(UTCDateTime(), nullable=False)
    participant_count = Column(Integer, nullable=False, default=1)
    status = Column(String(20), nullable=False, default=ReservationStatus.PENDING.value, index=True)
    notes = Column(Text, nullable=True)

    # Pricing snapshot
    pricing_tier = Column(String(20), nullable=False, default=PricingTier.HOURLY.value)
    base_price = Column(Integer, nullable=False, default=0)
    subscription_hours_used = Column(Integer, nullable=False, default=0)
    subscription_discount = Column(Integer, nullable=False, default=0)
    promo_discount = Column(Integer, nullable=False, default=0)
    referral_credit_used = Column(Integer, nullable=False, default=0)
    final_price = Column(Integer, nullable=False, default=0)
    applied_promo_code = Column(String(50), nullable=True)
    promo_redeemed_at = Column(UTCDateTime(), nullable=True)
    enrollment_id = Column(String(26), ForeignKey("subscription_enrollments.id"), nullable=True)

    # Timestamps
    created_at = Column(UTCDateTime(), nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime(), nullable=True, onupdate=utc_now)
    confirmed_at = Column(UTCDateTime(), nullable=True)
    started_at = Column(UTCDateTime(), nullable=True)
    completed_at = Column(UTCDateTime(), nullable=True)
    cancelled_at = Column(UTCDateTime(), nullable=True)

    # Cancellation tracking
    cancelled_by_id = Column(String(26), ForeignKey("users.id"), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    resource = relationship("Resource", lazy="joined")

    __table_args__ = (
        Index("ix_reservations_resource_window", "resource_id", "status", "start_at", "end_at"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'in_progress', 'completed', 'cancelled')",
            name="ck_reservations_status",
        ),
        CheckConstraint(
            "pricing_tier IN ('hourly', 'daily', 'weekly', 'monthly')",
            name="ck_reservations_pricing_tier",
        ),
        CheckConstraint("end_at > start_at", name="check_interval_order"),
        CheckConstraint("participant_count > 0", name="check_participants_positive"),
        CheckConstraint(
            "base_price >= 0 AND final_price >= 0 AND subscription_discount >= 0 "
            "AND promo_discount >= 0 AND referral_credit_used >= 0",
            name="check_prices_non_negative",
        ),
        CheckConstraint("final_price <= base_price", name="check_final_not_above_base"),
    )

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if not self.status:
            self.status = ReservationStatus.PENDING.value

    def __repr__(self) -> str:
        return (
            f"<Reservation {self.id}: resource={self.resource_id} user={self.user_id} "
            f"[{self.start_at}, {self.end_at}) status={self.status}>"
        )
