"""
Reservation Service for Coffice

Owns the reservation lifecycle and orchestrates the availability index, the
pricing engine and the promotion ledger.

Double-booking is prevented by holding the per-resource lock across
check -> write -> commit for every operation that can occupy calendar time
(create and confirm). Status changes are compare-and-set updates, so a
reservation moved by a concurrent request fails with InvalidStateException
instead of being overwritten.
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from coffice.core.config import settings
from coffice.core.exceptions import (
    BookingConflictException,
    ConflictException,
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
    ValidationException,
)
from coffice.core.resource_lock import resource_lock
from coffice.domain import lifecycle
from coffice.events.publisher import EventPublisher
from coffice.events.reservation_events import (
    ReservationCancelled,
    ReservationCompleted,
    ReservationConfirmed,
    ReservationCreated,
    ReservationStarted,
)
from coffice.models.reservation import Reservation
from coffice.models.resource import Resource
from coffice.models.transaction import TransactionStatus, TransactionType
from coffice.models.user import User
from coffice.monitoring.prometheus_metrics import prometheus_metrics
from coffice.repositories.factory import RepositoryFactory

from .availability_service import AvailabilityService, validate_interval
from .base import BaseService
from .pricing_service import PricingService
from .promotion_ledger_service import PricingBreakdown, PromotionLedgerService

logger = logging.getLogger(__name__)

EXPIRED_REASON = "expired"


class ReservationService(BaseService):
    """Reservation state machine."""

    def __init__(
        self,
        db: Session,
        clock: Optional[Callable[[], datetime]] = None,
        ledger: Optional[PromotionLedgerService] = None,
        availability: Optional[AvailabilityService] = None,
    ):
        super().__init__(db)
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.availability = availability or AvailabilityService(db, clock=self.clock)
        self.ledger = ledger or PromotionLedgerService(db, PricingService(db))
        self.reservation_repository = RepositoryFactory.create_reservation_repository(db)
        self.resource_repository = RepositoryFactory.create_resource_repository(db)
        self.transaction_repository = RepositoryFactory.create_transaction_repository(db)
        self.user_repository = RepositoryFactory.create_base_repository(db, User)
        self.event_publisher = EventPublisher(
            RepositoryFactory.create_event_outbox_repository(db)
        )

    # ------------------------------------------------------------------ reads

    def get(self, reservation_id: str) -> Reservation:
        reservation = self.reservation_repository.get_by_id(reservation_id)
        if reservation is None:
            raise NotFoundException(
                "Reservation not found",
                code="RESERVATION_NOT_FOUND",
                details={"reservation_id": reservation_id},
            )
        return reservation

    def list_for_user(self, user_id: str) -> List[Reservation]:
        return self.reservation_repository.list_for_user(user_id)

    def list_for_resource(
        self,
        resource_id: str,
        window_start: Optional[datetime] = None,
        window_end: Optional[datetime] = None,
    ) -> List[Reservation]:
        return self.reservation_repository.list_for_resource(resource_id, window_start, window_end)

    def effective_status(self, reservation: Reservation, now: Optional[datetime] = None) -> str:
        """Status the wall clock implies, without writing it."""
        return lifecycle.derive_status(
            reservation.status, reservation.start_at, reservation.end_at, now or self.clock()
        )

    @BaseService.measure_operation("reservation.quote")
    def quote(
        self,
        resource_id: str,
        user_id: str,
        start: datetime,
        end: datetime,
        promo_code: Optional[str] = None,
    ) -> PricingBreakdown:
        """Price preview; validates like create but persists nothing."""
        start, end = validate_interval(start, end)
        resource = self._get_resource(resource_id)
        return self.ledger.price_reservation(
            resource, user_id, start, end, promo_code, now=self.clock()
        )

    # ---------------------------------------------------------------- create

    @BaseService.measure_operation("reservation.create")
    def create(
        self,
        resource_id: str,
        user_id: str,
        start: datetime,
        end: datetime,
        participant_count: int,
        promo_code: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Reservation:
        """
        Book ``[start, end)`` on a resource as a pending reservation.

        Input is validated before the calendar is consulted. The availability
        check, the insert and the commit all happen under the resource lock.
        No promo use, subscription hours or referral credit is consumed here.
        """
        start, end = validate_interval(start, end)
        self._validate_participants(participant_count)

        with resource_lock(resource_id):
            with self.transaction():
                resource = self.resource_repository.lock_for_booking(resource_id)
                if resource is None:
                    raise NotFoundException(
                        "Resource not found",
                        code="RESOURCE_NOT_FOUND",
                        details={"resource_id": resource_id},
                    )
                if participant_count > resource.capacity:
                    raise ValidationException(
                        "Participant count exceeds resource capacity",
                        code="CAPACITY_EXCEEDED",
                        details={
                            "participant_count": participant_count,
                            "capacity": resource.capacity,
                        },
                    )
                self._require_user(user_id)
                self._ensure_available(resource_id, start, end)

                now = self.clock()
                breakdown = self.ledger.price_reservation(
                    resource, user_id, start, end, promo_code, now=now
                )
                reservation = self.reservation_repository.create(
                    resource_id=resource_id,
                    user_id=user_id,
                    start_at=start,
                    end_at=end,
                    participant_count=participant_count,
                    status=lifecycle.PENDING,
                    notes=notes,
                    applied_promo_code=breakdown.promo_code,
                    **self._amounts(breakdown),
                )
                self.event_publisher.publish(
                    ReservationCreated(
                        reservation_id=reservation.id,
                        resource_id=resource_id,
                        user_id=user_id,
                        start_at=start,
                        end_at=end,
                        base_price=reservation.base_price,
                        final_price=reservation.final_price,
                    )
                )

        self.log_operation(
            "reservation_created",
            reservation_id=reservation.id,
            resource_id=resource_id,
            user_id=user_id,
        )
        if settings.auto_confirm_reservations:
            return self.confirm(reservation.id)
        return reservation

    # --------------------------------------------------------------- confirm

    @BaseService.measure_operation("reservation.confirm")
    def confirm(self, reservation_id: str) -> Reservation:
        """
        pending -> confirmed.

        Re-checks availability under the resource lock, then in one
        transaction consumes subscription hours, redeems the promo code,
        spends referral credit, stores the final amounts and appends the
        ledger entries. Any failure leaves everything untouched.
        """
        reservation = self.get(reservation_id)
        lifecycle.ensure_transition(reservation_id, reservation.status, lifecycle.CONFIRMED)

        with resource_lock(reservation.resource_id):
            with self.transaction():
                self.db.refresh(reservation)
                lifecycle.ensure_transition(
                    reservation_id, reservation.status, lifecycle.CONFIRMED
                )
                now = self.clock()
                if reservation.end_at <= now:
                    raise ValidationException(
                        "Reservation window has already passed",
                        code="RESERVATION_EXPIRED",
                        details={"reservation_id": reservation_id},
                    )

                resource = self.resource_repository.lock_for_booking(reservation.resource_id)
                self._ensure_available(
                    reservation.resource_id,
                    reservation.start_at,
                    reservation.end_at,
                    exclude_reservation_id=reservation_id,
                    allow_past=True,
                )

                breakdown = self.ledger.price_reservation(
                    resource,
                    reservation.user_id,
                    reservation.start_at,
                    reservation.end_at,
                    reservation.applied_promo_code,
                    now=now,
                )
                if breakdown.enrollment_id and breakdown.subscription_hours_used:
                    self.ledger.consume_subscription_hours(
                        breakdown.enrollment_id, breakdown.subscription_hours_used
                    )

                promo_discount = 0
                if breakdown.promo_code:
                    usage = self.ledger.redeem_promo_code(
                        breakdown.promo_code,
                        reservation_id,
                        reservation.user_id,
                        breakdown.amount_after_subscription,
                        now=now,
                    )
                    promo_discount = usage.discount_amount

                after_promo = breakdown.amount_after_subscription - promo_discount
                referral_used = self.ledger.consume_referral_credit(
                    reservation.user_id, reservation_id, after_promo, now=now
                )
                final_price = after_promo - referral_used

                amounts = self._amounts(breakdown)
                amounts.update(
                    promo_discount=promo_discount,
                    referral_credit_used=referral_used,
                    final_price=final_price,
                )
                self._transition(
                    reservation,
                    lifecycle.PENDING,
                    lifecycle.CONFIRMED,
                    confirmed_at=now,
                    promo_redeemed_at=now if breakdown.promo_code else None,
                    **amounts,
                )

                if final_price > 0:
                    self.transaction_repository.append(
                        user_id=reservation.user_id,
                        reservation_id=reservation_id,
                        amount=final_price,
                        transaction_type=TransactionType.PAYMENT.value,
                        status=TransactionStatus.PENDING.value,
                        description="Reservation payment",
                    )
                if referral_used > 0:
                    self.transaction_repository.append(
                        user_id=reservation.user_id,
                        reservation_id=reservation_id,
                        amount=referral_used,
                        transaction_type=TransactionType.CREDIT.value,
                        status=TransactionStatus.COMPLETED.value,
                        description="Referral credit applied",
                    )
                self.event_publisher.publish(
                    ReservationConfirmed(
                        reservation_id=reservation_id,
                        user_id=reservation.user_id,
                        final_price=final_price,
                        confirmed_at=now,
                        promo_code=breakdown.promo_code,
                    )
                )

        self.log_operation("reservation_confirmed", reservation_id=reservation_id)
        return reservation

    # ---------------------------------------------------------------- cancel

    @BaseService.measure_operation("reservation.cancel")
    def cancel(
        self, reservation_id: str, actor_id: str, reason: Optional[str] = None
    ) -> Reservation:
        """
        pending|confirmed -> cancelled, by the owner or an admin.

        Cancelling a confirmed reservation gives back subscription hours and
        referral credit and appends a pending refund. Promo uses are not
        returned.
        """
        reservation = self.get(reservation_id)
        actor = self.user_repository.get_by_id(actor_id)
        if actor is None or (actor.id != reservation.user_id and not actor.is_admin):
            raise ForbiddenException(
                "Only the owner or an admin can cancel this reservation",
                code="CANCEL_FORBIDDEN",
                details={"reservation_id": reservation_id},
            )
        lifecycle.ensure_transition(reservation_id, reservation.status, lifecycle.CANCELLED)

        with self.transaction():
            self._cancel(reservation, actor_id, reason)

        self.log_operation(
            "reservation_cancelled", reservation_id=reservation_id, actor_id=actor_id
        )
        return reservation

    def _cancel(self, reservation: Reservation, actor_id: Optional[str], reason: Optional[str]) -> None:
        previous = reservation.status
        now = self.clock()
        self._transition(
            reservation,
            previous,
            lifecycle.CANCELLED,
            cancelled_at=now,
            cancelled_by_id=actor_id,
            cancellation_reason=reason,
        )

        refund = 0
        if previous == lifecycle.CONFIRMED:
            refund = self._release_confirmed_benefits(reservation)

        self.event_publisher.publish(
            ReservationCancelled(
                reservation_id=reservation.id,
                user_id=reservation.user_id,
                previous_status=previous,
                cancelled_by=actor_id,
                cancelled_at=now,
                reason=reason,
                refund_amount=refund,
            )
        )

    def _release_confirmed_benefits(self, reservation: Reservation) -> int:
        if reservation.enrollment_id and reservation.subscription_hours_used:
            self.ledger.restore_subscription_hours(
                reservation.enrollment_id, reservation.subscription_hours_used
            )
        if reservation.referral_credit_used:
            self.ledger.restore_referral_credit(
                reservation.user_id, reservation.id, reservation.referral_credit_used
            )
            self.transaction_repository.append(
                user_id=reservation.user_id,
                reservation_id=reservation.id,
                amount=reservation.referral_credit_used,
                transaction_type=TransactionType.CREDIT.value,
                status=TransactionStatus.COMPLETED.value,
                description="Referral credit restored",
            )
        if reservation.final_price > 0:
            self.transaction_repository.append(
                user_id=reservation.user_id,
                reservation_id=reservation.id,
                amount=reservation.final_price,
                transaction_type=TransactionType.REFUND.value,
                status=TransactionStatus.PENDING.value,
                description="Reservation cancelled",
            )
        return int(reservation.final_price)

    # ------------------------------------------------------ time transitions

    @BaseService.measure_operation("reservation.start")
    def start(self, reservation_id: str) -> Reservation:
        """confirmed -> in_progress once the start time is reached."""
        reservation = self.get(reservation_id)
        lifecycle.ensure_transition(reservation_id, reservation.status, lifecycle.IN_PROGRESS)
        now = self.clock()
        if now < reservation.start_at:
            raise ValidationException(
                "Reservation has not started yet",
                code="NOT_STARTED",
                details={"reservation_id": reservation_id},
            )
        with self.transaction():
            self._transition(
                reservation, lifecycle.CONFIRMED, lifecycle.IN_PROGRESS, started_at=now
            )
            self.event_publisher.publish(
                ReservationStarted(reservation_id=reservation_id, started_at=now)
            )
        return reservation

    @BaseService.measure_operation("reservation.complete")
    def complete(self, reservation_id: str) -> Reservation:
        """in_progress -> completed once the end time is reached."""
        reservation = self.get(reservation_id)
        lifecycle.ensure_transition(reservation_id, reservation.status, lifecycle.COMPLETED)
        now = self.clock()
        if now < reservation.end_at:
            raise ValidationException(
                "Reservation has not ended yet",
                code="NOT_ENDED",
                details={"reservation_id": reservation_id},
            )
        with self.transaction():
            self._transition(
                reservation, lifecycle.IN_PROGRESS, lifecycle.COMPLETED, completed_at=now
            )
            self.event_publisher.publish(
                ReservationCompleted(reservation_id=reservation_id, completed_at=now)
            )
        return reservation

    @BaseService.measure_operation("reservation.sync_statuses")
    def sync_time_based_statuses(self) -> Dict[str, int]:
        """
        Persist what the clock implies.

        Confirmed reservations that reached their start begin, in-progress
        ones that reached their end complete (one step at a time, so a long
        overdue booking passes through in_progress), and pending ones whose
        end has passed are cancelled as expired.
        """
        now = self.clock()
        counts = {"started": 0, "completed": 0, "expired": 0, "skipped": 0}

        for reservation_id in self.reservation_repository.find_ids_due(
            lifecycle.CONFIRMED, "start_at", now
        ):
            counts[self._sweep_one(self.start, reservation_id, "started")] += 1

        for reservation_id in self.reservation_repository.find_ids_due(
            lifecycle.IN_PROGRESS, "end_at", now
        ):
            counts[self._sweep_one(self.complete, reservation_id, "completed")] += 1

        for reservation_id in self.reservation_repository.find_ids_due(
            lifecycle.PENDING, "end_at", now
        ):
            counts[self._sweep_one(self._expire, reservation_id, "expired")] += 1

        self.log_operation("reservation_status_sync", **counts)
        return counts

    def _expire(self, reservation_id: str) -> Reservation:
        reservation = self.get(reservation_id)
        with self.transaction():
            self._cancel(reservation, None, EXPIRED_REASON)
        return reservation

    def _sweep_one(
        self, step: Callable[[str], Reservation], reservation_id: str, label: str
    ) -> str:
        try:
            step(reservation_id)
        except InvalidStateException as exc:
            # A user or admin action moved it first; the next sweep re-evaluates.
            self.logger.warning(
                "Status sync skipped reservation %s: %s",
                reservation_id,
                exc.message,
                extra={"reservation_id": reservation_id, "step": label},
            )
            return "skipped"
        return label

    # --------------------------------------------------------------- helpers

    def _transition(
        self, reservation: Reservation, expected: str, target: str, **values: object
    ) -> None:
        lifecycle.ensure_transition(reservation.id, expected, target)
        if not self.reservation_repository.transition_status(
            reservation.id, expected, target, **values
        ):
            self.db.refresh(reservation)
            raise InvalidStateException(reservation.id, reservation.status, target)
        prometheus_metrics.record_reservation_transition(expected, target)

    def _ensure_available(
        self,
        resource_id: str,
        start: datetime,
        end: datetime,
        exclude_reservation_id: Optional[str] = None,
        allow_past: bool = False,
    ) -> None:
        result = self.availability.check_availability(
            resource_id,
            start,
            end,
            exclude_reservation_id=exclude_reservation_id,
            allow_past=allow_past,
        )
        if result.available:
            return
        if result.conflicting_reservation_id:
            raise BookingConflictException(
                conflicting_reservation_id=result.conflicting_reservation_id,
                details={"resource_id": resource_id},
            )
        raise ConflictException(
            "Resource is not available for booking",
            code="RESOURCE_UNAVAILABLE",
            details={"resource_id": resource_id, "reason": result.reason},
        )

    def _get_resource(self, resource_id: str) -> Resource:
        resource = self.resource_repository.get_by_id(resource_id)
        if resource is None:
            raise NotFoundException(
                "Resource not found",
                code="RESOURCE_NOT_FOUND",
                details={"resource_id": resource_id},
            )
        return resource

    def _require_user(self, user_id: str) -> None:
        if not self.user_repository.exists(id=user_id):
            raise NotFoundException(
                "User not found", code="USER_NOT_FOUND", details={"user_id": user_id}
            )

    @staticmethod
    def _validate_participants(participant_count: int) -> None:
        if (
            not isinstance(participant_count, int)
            or isinstance(participant_count, bool)
            or participant_count < 1
            or participant_count > settings.max_participants
        ):
            raise ValidationException(
                f"Participant count must be between 1 and {settings.max_participants}",
                code="INVALID_PARTICIPANT_COUNT",
                details={"participant_count": participant_count},
            )

    @staticmethod
    def _amounts(breakdown: PricingBreakdown) -> Dict[str, object]:
        return {
            "pricing_tier": breakdown.tier,
            "base_price": breakdown.base_price,
            "subscription_hours_used": breakdown.subscription_hours_used,
            "subscription_discount": breakdown.subscription_discount,
            "enrollment_id": breakdown.enrollment_id,
            "promo_discount": breakdown.promo_discount,
            "referral_credit_used": breakdown.referral_credit_used,
            "final_price": breakdown.final_price,
        }
