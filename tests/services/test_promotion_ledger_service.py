"""Tests for promo codes, subscription hours and referral credits."""

from datetime import timedelta

import pytest

from coffice.core.config import settings
from coffice.core.exceptions import (
    ConflictException,
    PromoInvalidException,
    ValidationException,
)
from coffice.models import PromoCodeUsage, ReferralCredit, Transaction
from coffice.services.promotion_ledger_service import PromotionLedgerService

from clock_helpers import NOW, local

START = local(2026, 10, 20, 9)
END = local(2026, 10, 20, 17)


@pytest.fixture
def ledger(db) -> PromotionLedgerService:
    return PromotionLedgerService(db)


@pytest.fixture
def member(make_user):
    return make_user()


class TestPromoValidation:
    def test_percentage_discount(self, ledger, make_promo):
        make_promo()

        quote = ledger.validate_promo_code("SAVE20", 3000, now=NOW)

        assert quote.code == "SAVE20"
        assert quote.discount_amount == 600
        assert quote.amount_after == 2400

    def test_percentage_rounds_half_up(self, ledger, make_promo):
        promo = make_promo("HALF", discount_value=15, min_order_amount=0)

        # 1010 * 15% = 151.5
        assert ledger.compute_promo_discount(promo, 1010) == 152

    def test_fixed_discount_is_capped_at_order_amount(self, ledger, make_promo):
        make_promo("FLAT", discount_type="fixed", discount_value=5000, min_order_amount=0)

        quote = ledger.validate_promo_code("flat", 3000, now=NOW)

        assert quote.discount_amount == 3000
        assert quote.amount_after == 0

    @pytest.mark.parametrize(
        "overrides,amount,reason",
        [
            ({"is_active": False}, 3000, "inactive"),
            ({"valid_from": NOW + timedelta(days=1)}, 3000, "not_yet_valid"),
            ({"valid_until": NOW - timedelta(seconds=1)}, 3000, "expired"),
            ({"max_uses": 3, "uses_so_far": 3}, 3000, "exhausted"),
            ({}, 999, "below_minimum"),
            ({"applicable_to": "subscription"}, 3000, "not_applicable"),
        ],
    )
    def test_rejection_reasons(self, ledger, make_promo, overrides, amount, reason):
        make_promo(**overrides)

        with pytest.raises(PromoInvalidException) as exc_info:
            ledger.validate_promo_code("SAVE20", amount, now=NOW)

        assert exc_info.value.reason == reason
        assert exc_info.value.details["reason"] == reason

    def test_unknown_code(self, ledger):
        with pytest.raises(PromoInvalidException) as exc_info:
            ledger.validate_promo_code("GHOST", 3000, now=NOW)
        assert exc_info.value.reason == "unknown"

    def test_applicable_to_all(self, ledger, make_promo):
        make_promo(applicable_to="all")

        assert ledger.validate_promo_code("SAVE20", 3000, "subscription", now=NOW).discount_amount == 600

    def test_validation_does_not_consume(self, db, ledger, make_promo):
        promo = make_promo()

        ledger.validate_promo_code("SAVE20", 3000, now=NOW)
        ledger.validate_promo_code("SAVE20", 3000, now=NOW)

        db.refresh(promo)
        assert promo.uses_so_far == 0


class TestPromoRedemption:
    def test_single_use_code(self, db, ledger, member, make_user, make_resource, make_promo, make_reservation):
        promo = make_promo()
        desk = make_resource()
        first = make_reservation(desk, member, START, END)
        other = make_user()
        second = make_reservation(desk, other, local(2026, 10, 21, 9), local(2026, 10, 21, 17))

        usage = ledger.redeem_promo_code("SAVE20", first.id, member.id, 3000, now=NOW)

        assert usage.discount_amount == 600
        assert usage.amount_after == 2400
        db.refresh(promo)
        assert promo.uses_so_far == 1

        with pytest.raises(PromoInvalidException) as exc_info:
            ledger.redeem_promo_code("SAVE20", second.id, other.id, 3000, now=NOW)
        assert exc_info.value.reason == "exhausted"

        db.refresh(promo)
        assert promo.uses_so_far == 1
        assert db.query(PromoCodeUsage).count() == 1

    def test_redeem_is_idempotent_per_reservation(self, db, ledger, member, make_resource, make_promo, make_reservation):
        promo = make_promo(max_uses=None)
        reservation = make_reservation(make_resource(), member, START, END)

        first = ledger.redeem_promo_code("SAVE20", reservation.id, member.id, 3000, now=NOW)
        again = ledger.redeem_promo_code("SAVE20", reservation.id, member.id, 3000, now=NOW)

        assert again.id == first.id
        db.refresh(promo)
        assert promo.uses_so_far == 1

    def test_same_user_cannot_reuse_code(self, ledger, member, make_resource, make_promo, make_reservation):
        make_promo(max_uses=None)
        desk = make_resource()
        first = make_reservation(desk, member, START, END)
        second = make_reservation(desk, member, local(2026, 10, 21, 9), local(2026, 10, 21, 17))
        ledger.redeem_promo_code("SAVE20", first.id, member.id, 3000, now=NOW)

        with pytest.raises(PromoInvalidException) as exc_info:
            ledger.redeem_promo_code("SAVE20", second.id, member.id, 3000, now=NOW)
        assert exc_info.value.reason == "already_used"


class TestSubscriptionHours:
    def test_consume_and_restore(self, db, ledger, member, make_enrollment):
        enrollment = make_enrollment(member, hours=10)

        ledger.consume_subscription_hours(enrollment.id, 4)
        db.refresh(enrollment)
        assert enrollment.hours_remaining == 6

        ledger.restore_subscription_hours(enrollment.id, 4)
        db.refresh(enrollment)
        assert enrollment.hours_remaining == 10

    def test_cannot_overdraw(self, db, ledger, member, make_enrollment):
        enrollment = make_enrollment(member, hours=3)

        with pytest.raises(ConflictException) as exc_info:
            ledger.consume_subscription_hours(enrollment.id, 4)

        assert exc_info.value.code == "SUBSCRIPTION_HOURS_EXHAUSTED"
        db.refresh(enrollment)
        assert enrollment.hours_remaining == 3

    def test_find_active_enrollment_respects_window(self, ledger, member, make_enrollment):
        enrollment = make_enrollment(member, hours=3)

        assert ledger.find_active_enrollment(member.id, NOW).id == enrollment.id
        assert ledger.find_active_enrollment(member.id, NOW + timedelta(days=40)) is None


class TestReferralCredit:
    def test_consumes_oldest_first_and_keeps_remainder(self, db, ledger, member, make_resource, make_credit, make_reservation):
        older = make_credit(member, 1000, created_at=NOW - timedelta(days=10))
        newer = make_credit(member, 2000, created_at=NOW - timedelta(days=1))
        reservation = make_reservation(make_resource(), member, START, END)

        applied = ledger.consume_referral_credit(member.id, reservation.id, 1500, now=NOW)

        assert applied == 1500
        assert ledger.get_referral_balance(member.id) == 1500
        db.refresh(older)
        db.refresh(newer)
        assert older.status == "consumed"
        assert newer.status == "consumed"
        assert newer.amount == 500
        remainder = db.query(ReferralCredit).filter(ReferralCredit.source_credit_id == newer.id).one()
        assert remainder.status == "available"
        assert remainder.amount_remaining == 1500

    def test_consume_nothing_when_amount_is_zero(self, ledger, member, make_credit, make_resource, make_reservation):
        make_credit(member, 1000)
        reservation = make_reservation(make_resource(), member, START, END)

        assert ledger.consume_referral_credit(member.id, reservation.id, 0, now=NOW) == 0
        assert ledger.get_referral_balance(member.id) == 1000

    def test_restore_issues_fresh_credit(self, ledger, member, make_credit, make_resource, make_reservation):
        make_credit(member, 800)
        reservation = make_reservation(make_resource(), member, START, END)
        ledger.consume_referral_credit(member.id, reservation.id, 800, now=NOW)

        restored = ledger.restore_referral_credit(member.id, reservation.id, 800)

        assert restored.reason == "reservation_cancelled"
        assert ledger.get_referral_balance(member.id) == 800


class TestReferralBonus:
    def test_both_sides_are_credited_once(self, db, ledger, make_user):
        referrer, referred = make_user(), make_user()

        credits = ledger.grant_referral_bonus(referrer.id, referred.id)

        assert sorted(c.user_id for c in credits) == sorted([referrer.id, referred.id])
        assert ledger.get_referral_balance(referrer.id) == settings.referral_bonus_amount
        assert ledger.get_referral_balance(referred.id) == settings.referral_bonus_amount
        assert db.query(Transaction).filter(Transaction.transaction_type == "credit").count() == 2

        with pytest.raises(ConflictException) as exc_info:
            ledger.grant_referral_bonus(referrer.id, referred.id)
        assert exc_info.value.code == "REFERRAL_ALREADY_REWARDED"

    def test_self_referral_is_refused(self, ledger, member):
        with pytest.raises(ValidationException) as exc_info:
            ledger.grant_referral_bonus(member.id, member.id)
        assert exc_info.value.code == "SELF_REFERRAL"


class TestPriceReservation:
    def test_discounts_stack_in_order(self, ledger, member, make_resource, make_promo, make_enrollment, make_credit):
        desk = make_resource()
        make_enrollment(member, hours=4)
        make_promo()
        make_credit(member, 300)

        breakdown = ledger.price_reservation(desk, member.id, START, END, "SAVE20", now=NOW)

        assert breakdown.base_price == 3000
        assert breakdown.subscription_hours_used == 4
        assert breakdown.subscription_discount == 1000
        # 20% of what the subscription left
        assert breakdown.promo_discount == 400
        assert breakdown.referral_credit_used == 300
        assert breakdown.final_price == 1300

    def test_monthly_booking_does_not_use_subscription_hours(self, ledger, member, make_resource, make_enrollment):
        desk = make_resource(monthly_rate=30000)
        make_enrollment(member, hours=10, end_date=NOW + timedelta(days=400))

        breakdown = ledger.price_reservation(desk, member.id, local(2026, 11, 1), local(2026, 12, 1), now=NOW)

        assert breakdown.tier == "monthly"
        assert breakdown.subscription_hours_used == 0
        assert breakdown.enrollment_id is None
        assert breakdown.final_price == 30000
