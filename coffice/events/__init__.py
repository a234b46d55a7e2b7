"""Reservation lifecycle events and the outbox publisher."""

from coffice.events.publisher import EventPublisher
from coffice.events.reservation_events import (
    ReservationCancelled,
    ReservationCompleted,
    ReservationConfirmed,
    ReservationCreated,
    ReservationStarted,
)

__all__ = [
    "EventPublisher",
    "ReservationCancelled",
    "ReservationCompleted",
    "ReservationConfirmed",
    "ReservationCreated",
    "ReservationStarted",
]
