# coffice/models/__init__.py
"""
Database models for Coffice.

Importing this package registers every table on ``Base.metadata``.
"""

from .event_outbox import EventOutbox, EventOutboxStatus
from .promo_code import DiscountType, PromoApplicability, PromoCode, PromoCodeUsage
from .referral_credit import ReferralCredit, ReferralCreditStatus
from .reservation import LIVE_STATUSES, PricingTier, Reservation, ReservationStatus
from .resource import Resource, ResourceType
from .subscription import EnrollmentStatus, SubscriptionEnrollment, SubscriptionPlan
from .transaction import Transaction, TransactionStatus, TransactionType
from .user import User

__all__ = [
    "DiscountType",
    "EnrollmentStatus",
    "EventOutbox",
    "EventOutboxStatus",
    "LIVE_STATUSES",
    "PricingTier",
    "PromoApplicability",
    "PromoCode",
    "PromoCodeUsage",
    "ReferralCredit",
    "ReferralCreditStatus",
    "Reservation",
    "ReservationStatus",
    "Resource",
    "ResourceType",
    "SubscriptionEnrollment",
    "SubscriptionPlan",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
    "User",
]
