"""Request and response schemas for the public API."""

from .promo import PromoValidateRequest, PromoValidateResponse
from .reservation import (
    CancelledReservation,
    CompletedReservation,
    ConfirmedReservation,
    InProgressReservation,
    PendingReservation,
    PriceQuoteResponse,
    ReservationCancelRequest,
    ReservationCreate,
    ReservationQuoteRequest,
    ReservationResponse,
    to_reservation_response,
)
from .resource import AvailabilityResponse, ResourceCreate, ResourceResponse, ResourceUpdate

__all__ = [
    "AvailabilityResponse",
    "CancelledReservation",
    "CompletedReservation",
    "ConfirmedReservation",
    "InProgressReservation",
    "PendingReservation",
    "PriceQuoteResponse",
    "PromoValidateRequest",
    "PromoValidateResponse",
    "ReservationCancelRequest",
    "ReservationCreate",
    "ReservationQuoteRequest",
    "ReservationResponse",
    "ResourceCreate",
    "ResourceResponse",
    "ResourceUpdate",
    "to_reservation_response",
]
