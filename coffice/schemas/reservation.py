# coffice/schemas/reservation.py
"""
Reservation schemas.

Responses are tagged by ``status``: each lifecycle state has its own model
carrying only the fields that exist in that state (a pending reservation
has no ``confirmed_at``, a cancelled one always has ``cancelled_at``).
Clients switch on ``status`` instead of probing optional fields.
"""

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import AwareDatetime, Field, TypeAdapter

from ..models.reservation import Reservation
from ._strict_base import StrictModel, StrictRequestModel


class ReservationCreate(StrictRequestModel):
    resource_id: str = Field(..., description="Resource to book")
    start_at: AwareDatetime = Field(..., description="Inclusive start (timezone-aware)")
    end_at: AwareDatetime = Field(..., description="Exclusive end (timezone-aware)")
    # Range checked by the service so every participant error has the same shape
    participant_count: int = Field(1, description="Number of people using the resource")
    promo_code: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = Field(None, max_length=1000)


class ReservationQuoteRequest(StrictRequestModel):
    resource_id: str
    start_at: AwareDatetime
    end_at: AwareDatetime
    promo_code: Optional[str] = Field(None, max_length=50)


class ReservationCancelRequest(StrictRequestModel):
    reason: Optional[str] = Field(None, max_length=500)


class PriceSegmentOut(StrictModel):
    start: datetime
    end: datetime
    tier: str
    hours: int
    free_hours: int
    amount: int


class PriceQuoteResponse(StrictModel):
    base_price: int
    tier: str
    subscription_hours_used: int
    subscription_discount: int
    promo_code: Optional[str] = None
    promo_discount: int
    referral_credit_used: int
    final_price: int
    segments: List[PriceSegmentOut] = Field(default_factory=list)


class _ReservationOut(StrictModel):
    id: str
    resource_id: str
    user_id: str
    start_at: datetime
    end_at: datetime
    participant_count: int
    notes: Optional[str] = None
    pricing_tier: str
    base_price: int
    subscription_hours_used: int
    subscription_discount: int
    promo_discount: int
    referral_credit_used: int
    final_price: int
    applied_promo_code: Optional[str] = None
    created_at: datetime


class PendingReservation(_ReservationOut):
    status: Literal["pending"]


class ConfirmedReservation(_ReservationOut):
    status: Literal["confirmed"]
    confirmed_at: datetime
    promo_redeemed_at: Optional[datetime] = None


class InProgressReservation(_ReservationOut):
    status: Literal["in_progress"]
    confirmed_at: datetime
    started_at: datetime


class CompletedReservation(_ReservationOut):
    status: Literal["completed"]
    confirmed_at: datetime
    completed_at: datetime


class CancelledReservation(_ReservationOut):
    status: Literal["cancelled"]
    cancelled_at: datetime
    cancelled_by_id: Optional[str] = None
    cancellation_reason: Optional[str] = None
    confirmed_at: Optional[datetime] = None


ReservationResponse = Annotated[
    Union[
        PendingReservation,
        ConfirmedReservation,
        InProgressReservation,
        CompletedReservation,
        CancelledReservation,
    ],
    Field(discriminator="status"),
]

# Only these variants accept a cancel request
CancellableReservation = Union[PendingReservation, ConfirmedReservation]

_reservation_adapter: TypeAdapter[Any] = TypeAdapter(ReservationResponse)

_STATE_FIELDS = {
    "confirmed": ("confirmed_at", "promo_redeemed_at"),
    "in_progress": ("confirmed_at", "started_at"),
    "completed": ("confirmed_at", "completed_at"),
    "cancelled": ("cancelled_at", "cancelled_by_id", "cancellation_reason", "confirmed_at"),
}


def to_reservation_response(reservation: Reservation) -> Any:
    """Build the status-specific response model for an ORM reservation."""
    data: Dict[str, Any] = {
        name: getattr(reservation, name) for name in _ReservationOut.model_fields
    }
    data["status"] = reservation.status
    for name in _STATE_FIELDS.get(reservation.status, ()):
        data[name] = getattr(reservation, name)
    return _reservation_adapter.validate_python(data)
