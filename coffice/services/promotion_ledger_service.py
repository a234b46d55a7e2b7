"""
Promotion & credit ledger.

Adjusts a reservation's base price into the payable amount. Discounts stack
in a fixed order:

1. subscription hours (removed from the billable hours before pricing)
2. at most one promo code, on what remains (never below zero)
3. referral credit, up to what remains

Validation and quoting are reads. Promo usage, subscription hours and
referral credit are only consumed when a reservation is confirmed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from coffice.core.config import settings
from coffice.core.exceptions import (
    ConflictException,
    NotFoundException,
    PromoInvalidException,
    RepositoryException,
    ValidationException,
)
from coffice.models.promo_code import (
    DiscountType,
    PromoApplicability,
    PromoCode,
    PromoCodeUsage,
)
from coffice.models.referral_credit import ReferralCredit, ReferralCreditStatus
from coffice.models.reservation import PricingTier
from coffice.models.resource import Resource
from coffice.models.subscription import SubscriptionEnrollment
from coffice.models.transaction import TransactionStatus, TransactionType
from coffice.monitoring.prometheus_metrics import prometheus_metrics
from coffice.repositories.factory import RepositoryFactory

from .base import BaseService
from .pricing_service import PriceSegment, PricingService, round_half_up

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PromoQuote:
    code: str
    promo_code_id: str
    discount_amount: int
    amount_before: int

    @property
    def amount_after(self) -> int:
        return self.amount_before - self.discount_amount


@dataclass(frozen=True)
class PricingBreakdown:
    """Every step from base price to final price for one reservation."""

    base_price: int
    tier: str
    subscription_hours_used: int
    subscription_discount: int
    enrollment_id: Optional[str]
    promo_code: Optional[str]
    promo_discount: int
    referral_credit_used: int
    segments: List[PriceSegment] = field(default_factory=list)

    @property
    def amount_after_subscription(self) -> int:
        return self.base_price - self.subscription_discount

    @property
    def amount_after_promo(self) -> int:
        return self.amount_after_subscription - self.promo_discount

    @property
    def final_price(self) -> int:
        return self.amount_after_promo - self.referral_credit_used


def _now() -> datetime:
    return datetime.now(timezone.utc)


class PromotionLedgerService(BaseService):
    """Promo codes, subscription hours and referral credits."""

    def __init__(self, db: Session, pricing_service: Optional[PricingService] = None):
        super().__init__(db)
        self.pricing = pricing_service or PricingService(db)
        self.promo_repository = RepositoryFactory.create_promo_code_repository(db)
        self.subscription_repository = RepositoryFactory.create_subscription_repository(db)
        self.credit_repository = RepositoryFactory.create_referral_credit_repository(db)
        self.transaction_repository = RepositoryFactory.create_transaction_repository(db)

    # ------------------------------------------------------------------ promos

    def compute_promo_discount(self, promo: PromoCode, order_amount: int) -> int:
        """Discount for ``order_amount``, capped so the result never goes below zero."""
        if promo.discount_type == DiscountType.PERCENTAGE.value:
            discount = round_half_up(Decimal(order_amount) * Decimal(promo.discount_value) / 100)
        else:
            discount = int(promo.discount_value)
        return max(0, min(discount, order_amount))

    @BaseService.measure_operation("promo.validate")
    def validate_promo_code(
        self,
        code: str,
        order_amount: int,
        applicable_type: str = PromoApplicability.RESERVATION.value,
        user_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> PromoQuote:
        """
        Check that ``code`` can be applied to ``order_amount``.

        Raises PromoInvalidException with a machine-readable reason. Does not
        consume a use.
        """
        promo = self._check_promo(code, order_amount, applicable_type, user_id, now or _now())
        return PromoQuote(
            code=promo.code,
            promo_code_id=promo.id,
            discount_amount=self.compute_promo_discount(promo, order_amount),
            amount_before=order_amount,
        )

    def _check_promo(
        self,
        code: str,
        order_amount: int,
        applicable_type: str,
        user_id: Optional[str],
        now: datetime,
    ) -> PromoCode:
        normalized = (code or "").strip().upper()
        promo = self.promo_repository.get_by_code(normalized) if normalized else None
        if promo is None:
            raise PromoInvalidException(normalized, "unknown")
        if not promo.is_active:
            raise PromoInvalidException(promo.code, "inactive")
        if now < promo.valid_from:
            raise PromoInvalidException(
                promo.code, "not_yet_valid", valid_from=promo.valid_from.isoformat()
            )
        if now > promo.valid_until:
            raise PromoInvalidException(
                promo.code, "expired", valid_until=promo.valid_until.isoformat()
            )
        if promo.max_uses is not None and promo.uses_so_far >= promo.max_uses:
            raise PromoInvalidException(promo.code, "exhausted")
        if order_amount < promo.min_order_amount:
            raise PromoInvalidException(
                promo.code, "below_minimum", min_order_amount=promo.min_order_amount
            )
        if promo.applicable_to not in (PromoApplicability.ALL.value, applicable_type):
            raise PromoInvalidException(
                promo.code, "not_applicable", applicable_to=promo.applicable_to
            )
        if user_id and self.promo_repository.user_has_used(promo.id, user_id):
            raise PromoInvalidException(promo.code, "already_used")
        return promo

    @BaseService.measure_operation("promo.redeem")
    def redeem_promo_code(
        self,
        code: str,
        reservation_id: str,
        user_id: str,
        amount_before: int,
        now: Optional[datetime] = None,
    ) -> PromoCodeUsage:
        """
        Consume one use of ``code`` for ``reservation_id``.

        The increment is a single conditional UPDATE. Redeeming again for the
        same reservation returns the existing usage without touching the
        counter.
        """
        with self.transaction():
            existing = self.promo_repository.get_usage_for_reservation(reservation_id)
            if existing is not None:
                prometheus_metrics.record_promo_redemption("duplicate")
                return existing

            quote = self.validate_promo_code(
                code, amount_before, PromoApplicability.RESERVATION.value, user_id, now
            )
            if not self.promo_repository.try_increment_usage(quote.promo_code_id):
                prometheus_metrics.record_promo_redemption("exhausted")
                raise PromoInvalidException(quote.code, "exhausted")

            try:
                usage = self.promo_repository.record_usage(
                    promo_code_id=quote.promo_code_id,
                    user_id=user_id,
                    reservation_id=reservation_id,
                    discount_amount=quote.discount_amount,
                    amount_before=amount_before,
                )
            except RepositoryException as exc:
                # Lost a race against another redemption by the same user
                prometheus_metrics.record_promo_redemption("duplicate")
                raise PromoInvalidException(quote.code, "already_used") from exc

            prometheus_metrics.record_promo_redemption("redeemed")
            self.log_operation(
                "promo_redeemed",
                promo_code=quote.code,
                reservation_id=reservation_id,
                discount=quote.discount_amount,
            )
            return usage

    # ----------------------------------------------------------- subscriptions

    def find_active_enrollment(
        self, user_id: str, at: Optional[datetime] = None
    ) -> Optional[SubscriptionEnrollment]:
        return self.subscription_repository.find_active_enrollment(user_id, at or _now())

    @BaseService.measure_operation("subscription.consume_hours")
    def consume_subscription_hours(self, enrollment_id: str, hours: int) -> None:
        if hours <= 0:
            return
        with self.transaction():
            if not self.subscription_repository.try_consume_hours(enrollment_id, hours):
                raise ConflictException(
                    "Not enough subscription hours left",
                    code="SUBSCRIPTION_HOURS_EXHAUSTED",
                    details={"enrollment_id": enrollment_id, "hours": hours},
                )

    @BaseService.measure_operation("subscription.restore_hours")
    def restore_subscription_hours(self, enrollment_id: str, hours: int) -> None:
        if hours <= 0:
            return
        with self.transaction():
            self.subscription_repository.restore_hours(enrollment_id, hours)

    # ------------------------------------------------------------- referrals

    def get_referral_balance(self, user_id: str) -> int:
        return self.credit_repository.get_total_available(user_id=user_id)

    @BaseService.measure_operation("referral.consume")
    def consume_referral_credit(
        self,
        user_id: str,
        reservation_id: str,
        max_amount: int,
        now: Optional[datetime] = None,
    ) -> int:
        """
        Spend up to ``max_amount`` of the user's credits, oldest first.

        A credit larger than what is needed is split; the unused part stays
        available as a new credit. Returns the amount applied.
        """
        if max_amount <= 0:
            return 0
        now = now or _now()
        with self.transaction():
            applied = 0
            for credit in self.credit_repository.get_available_credits(user_id=user_id):
                needed = max_amount - applied
                if needed <= 0:
                    break
                original = int(credit.amount_remaining)
                take = min(original, needed)
                if not self.credit_repository.claim(
                    credit.id, amount_used=take, reservation_id=reservation_id, now=now
                ):
                    continue
                if original > take:
                    self.credit_repository.create(
                        user_id=user_id,
                        referred_user_id=credit.referred_user_id,
                        amount=original - take,
                        amount_remaining=original - take,
                        status=ReferralCreditStatus.AVAILABLE.value,
                        reason="remainder",
                        source_credit_id=credit.id,
                    )
                applied += take

            if applied:
                prometheus_metrics.inc_credits("consumed", applied)
                self.log_operation(
                    "referral_credit_consumed",
                    user_id=user_id,
                    reservation_id=reservation_id,
                    amount=applied,
                )
            return applied

    @BaseService.measure_operation("referral.restore")
    def restore_referral_credit(
        self, user_id: str, reservation_id: str, amount: int
    ) -> Optional[ReferralCredit]:
        """Give back credit spent on a cancelled reservation as a fresh available credit."""
        if amount <= 0:
            return None
        with self.transaction():
            consumed = self.credit_repository.get_consumed_for_reservation(
                reservation_id=reservation_id
            )
            credit = self.credit_repository.create(
                user_id=user_id,
                amount=amount,
                amount_remaining=amount,
                status=ReferralCreditStatus.AVAILABLE.value,
                reason="reservation_cancelled",
                source_credit_id=consumed[0].id if consumed else None,
            )
            prometheus_metrics.inc_credits("restored", amount)
            return credit

    @BaseService.measure_operation("referral.grant_bonus")
    def grant_referral_bonus(self, referrer_id: str, referred_user_id: str) -> List[ReferralCredit]:
        """Credit both sides of a referral once per referred user."""
        if referrer_id == referred_user_id:
            raise ValidationException("Users cannot refer themselves", code="SELF_REFERRAL")
        amount = settings.referral_bonus_amount
        with self.transaction():
            if self.credit_repository.has_bonus_for_referred_user(referred_user_id=referred_user_id):
                raise ConflictException(
                    "Referral bonus already granted for this user",
                    code="REFERRAL_ALREADY_REWARDED",
                    details={"referred_user_id": referred_user_id},
                )
            credits = []
            for beneficiary in (referrer_id, referred_user_id):
                credits.append(
                    self.credit_repository.create(
                        user_id=beneficiary,
                        referred_user_id=referred_user_id,
                        amount=amount,
                        amount_remaining=amount,
                        status=ReferralCreditStatus.AVAILABLE.value,
                        reason="referral_bonus",
                    )
                )
                self.transaction_repository.append(
                    user_id=beneficiary,
                    amount=amount,
                    transaction_type=TransactionType.CREDIT.value,
                    status=TransactionStatus.COMPLETED.value,
                    description="Referral bonus",
                )
            prometheus_metrics.inc_credits("granted", amount * 2)
            self.log_operation(
                "referral_bonus_granted", referrer_id=referrer_id, referred_user_id=referred_user_id
            )
            return credits

    # ------------------------------------------------------------- stacking

    @BaseService.measure_operation("ledger.price_reservation")
    def price_reservation(
        self,
        resource: Resource,
        user_id: str,
        start: datetime,
        end: datetime,
        promo_code: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> PricingBreakdown:
        """
        Full discount stack for a prospective reservation. Pure read.

        Subscription hours come from the enrollment covering ``start``;
        monthly bookings do not draw on them.
        """
        if resource is None:
            raise NotFoundException("Resource not found", code="RESOURCE_NOT_FOUND")

        enrollment = self.find_active_enrollment(user_id, start)
        free_hours = int(enrollment.hours_remaining) if enrollment else 0
        quote = self.pricing.quote(resource, start, end, free_hours=free_hours)

        hours_used = quote.free_hours_applied if quote.tier != PricingTier.MONTHLY.value else 0
        subscription_discount = quote.subscription_discount if hours_used else 0
        after_subscription = quote.base_price - subscription_discount

        promo_discount = 0
        applied_code: Optional[str] = None
        if promo_code:
            promo_quote = self.validate_promo_code(
                promo_code,
                after_subscription,
                PromoApplicability.RESERVATION.value,
                user_id,
                now,
            )
            promo_discount = promo_quote.discount_amount
            applied_code = promo_quote.code

        after_promo = after_subscription - promo_discount
        referral = min(self.get_referral_balance(user_id), after_promo)

        return PricingBreakdown(
            base_price=quote.base_price,
            tier=quote.tier,
            subscription_hours_used=hours_used,
            subscription_discount=subscription_discount,
            enrollment_id=enrollment.id if enrollment and hours_used else None,
            promo_code=applied_code,
            promo_discount=promo_discount,
            referral_credit_used=max(referral, 0),
            segments=list(quote.segments),
        )
