# coffice/routes/v1/reservations.py
"""
Reservation routes - API v1

Endpoints:
    POST / - Create a pending reservation
    POST /quote - Price preview with the full discount stack
    GET / - List the caller's reservations
    GET /{reservation_id} - Reservation details
    POST /{reservation_id}/confirm - Confirm a pending reservation (admin)
    POST /{reservation_id}/cancel - Cancel (owner or admin)
    POST /{reservation_id}/start - Mark as started (admin)
    POST /{reservation_id}/complete - Mark as completed (admin)
    POST /sync-statuses - Run the time-based status sweep now (admin)
"""

from dataclasses import asdict
import logging
from typing import Any, Dict, List, NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status

from ...api.dependencies import get_current_user, get_reservation_service, require_admin
from ...core.exceptions import DomainException, NotFoundException
from ...models.user import User
from ...schemas.reservation import (
    PriceQuoteResponse,
    ReservationCancelRequest,
    ReservationCreate,
    ReservationQuoteRequest,
    ReservationResponse,
    to_reservation_response,
)
from ...services.reservation_service import ReservationService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["reservations-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


# ============================================================================
# Static routes (no path parameters)
# ============================================================================


@router.post("", response_model=ReservationResponse, status_code=status.HTTP_201_CREATED)
def create_reservation(
    payload: ReservationCreate,
    current_user: User = Depends(get_current_user),
    service: ReservationService = Depends(get_reservation_service),
) -> Any:
    try:
        reservation = service.create(
            resource_id=payload.resource_id,
            user_id=current_user.id,
            start=payload.start_at,
            end=payload.end_at,
            participant_count=payload.participant_count,
            promo_code=payload.promo_code,
            notes=payload.notes,
        )
    except DomainException as exc:
        handle_domain_exception(exc)
    return to_reservation_response(reservation)


@router.post("/quote", response_model=PriceQuoteResponse)
def quote_reservation(
    payload: ReservationQuoteRequest,
    current_user: User = Depends(get_current_user),
    service: ReservationService = Depends(get_reservation_service),
) -> PriceQuoteResponse:
    try:
        breakdown = service.quote(
            payload.resource_id,
            current_user.id,
            payload.start_at,
            payload.end_at,
            payload.promo_code,
        )
    except DomainException as exc:
        handle_domain_exception(exc)
    return PriceQuoteResponse(
        base_price=breakdown.base_price,
        tier=breakdown.tier,
        subscription_hours_used=breakdown.subscription_hours_used,
        subscription_discount=breakdown.subscription_discount,
        promo_code=breakdown.promo_code,
        promo_discount=breakdown.promo_discount,
        referral_credit_used=breakdown.referral_credit_used,
        final_price=breakdown.final_price,
        segments=[asdict(segment) for segment in breakdown.segments],
    )


@router.get("", response_model=List[ReservationResponse])
def list_my_reservations(
    current_user: User = Depends(get_current_user),
    service: ReservationService = Depends(get_reservation_service),
) -> List[Any]:
    return [to_reservation_response(r) for r in service.list_for_user(current_user.id)]


@router.post("/sync-statuses")
def sync_statuses(
    _admin: User = Depends(require_admin),
    service: ReservationService = Depends(get_reservation_service),
) -> Dict[str, int]:
    return service.sync_time_based_statuses()


# ============================================================================
# Dynamic routes
# ============================================================================


@router.get("/{reservation_id}", response_model=ReservationResponse)
def get_reservation(
    reservation_id: str,
    current_user: User = Depends(get_current_user),
    service: ReservationService = Depends(get_reservation_service),
) -> Any:
    try:
        reservation = service.get(reservation_id)
        if reservation.user_id != current_user.id and not current_user.is_admin:
            # Do not reveal other users' reservations
            raise NotFoundException("Reservation not found", code="RESERVATION_NOT_FOUND")
    except DomainException as exc:
        handle_domain_exception(exc)
    return to_reservation_response(reservation)


@router.post("/{reservation_id}/confirm", response_model=ReservationResponse)
def confirm_reservation(
    reservation_id: str,
    _admin: User = Depends(require_admin),
    service: ReservationService = Depends(get_reservation_service),
) -> Any:
    try:
        reservation = service.confirm(reservation_id)
    except DomainException as exc:
        handle_domain_exception(exc)
    return to_reservation_response(reservation)


@router.post("/{reservation_id}/cancel", response_model=ReservationResponse)
def cancel_reservation(
    reservation_id: str,
    payload: Optional[ReservationCancelRequest] = Body(None),
    current_user: User = Depends(get_current_user),
    service: ReservationService = Depends(get_reservation_service),
) -> Any:
    reason = payload.reason if payload else None
    try:
        reservation = service.cancel(reservation_id, current_user.id, reason)
    except DomainException as exc:
        handle_domain_exception(exc)
    return to_reservation_response(reservation)


@router.post("/{reservation_id}/start", response_model=ReservationResponse)
def start_reservation(
    reservation_id: str,
    _admin: User = Depends(require_admin),
    service: ReservationService = Depends(get_reservation_service),
) -> Any:
    try:
        reservation = service.start(reservation_id)
    except DomainException as exc:
        handle_domain_exception(exc)
    return to_reservation_response(reservation)


@router.post("/{reservation_id}/complete", response_model=ReservationResponse)
def complete_reservation(
    reservation_id: str,
    _admin: User = Depends(require_admin),
    service: ReservationService = Depends(get_reservation_service),
) -> Any:
    try:
        reservation = service.complete(reservation_id)
    except DomainException as exc:
        handle_domain_exception(exc)
    return to_reservation_response(reservation)
