"""Reservation domain events."""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass
class ReservationCreated:
    """Fired after a pending reservation is committed."""

    reservation_id: str
    resource_id: str
    user_id: str
    start_at: datetime
    end_at: datetime
    base_price: int
    final_price: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ReservationConfirmed:
    """Fired after a reservation is confirmed and its discounts consumed."""

    reservation_id: str
    user_id: str
    final_price: int
    confirmed_at: datetime
    promo_code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ReservationCancelled:
    """Fired after a reservation is cancelled (by a user, an admin or expiry)."""

    reservation_id: str
    user_id: str
    previous_status: str
    cancelled_by: Optional[str]
    cancelled_at: datetime
    reason: Optional[str] = None
    refund_amount: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ReservationStarted:
    reservation_id: str
    started_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ReservationCompleted:
    """Fired after a reservation's end time passes."""

    reservation_id: str
    completed_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
