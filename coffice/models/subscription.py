"""
Subscription plans and user enrollments.

An enrollment binds a user to a plan for ``[start_date, end_date]`` and
carries the reservation hours still included in it.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
import ulid

from coffice.database import Base
from coffice.models.types import UTCDateTime, utc_now


class EnrollmentStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    duration_months: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    included_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utc_now, nullable=False)

    __table_args__ = (
        CheckConstraint("price >= 0", name="check_plan_price_non_negative"),
        CheckConstraint("duration_months >= 1", name="check_plan_duration_positive"),
        CheckConstraint("included_hours >= 0", name="check_plan_hours_non_negative"),
    )


class SubscriptionEnrollment(Base):
    __tablename__ = "subscription_enrollments"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    plan_id: Mapped[str] = mapped_column(String(26), ForeignKey("subscription_plans.id"), nullable=False)
    start_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    end_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    hours_remaining: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=EnrollmentStatus.ACTIVE.value, index=True
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utc_now, nullable=False)

    plan: Mapped[SubscriptionPlan] = relationship("SubscriptionPlan")

    __table_args__ = (
        CheckConstraint("hours_remaining >= 0", name="check_hours_remaining_non_negative"),
        CheckConstraint("end_date > start_date", name="check_enrollment_window"),
        CheckConstraint(
            "status IN ('active', 'expired', 'cancelled')", name="ck_enrollments_status"
        ),
    )
