"""Event publisher - writes domain events to the transactional outbox."""

from datetime import datetime
from typing import Any, Dict, Optional, Protocol

from coffice.models.event_outbox import EventOutbox
from coffice.repositories.event_outbox_repository import EventOutboxRepository


class Event(Protocol):
    """Protocol for event types."""

    reservation_id: str

    def to_dict(self) -> Dict[str, Any]:
        ...


class EventPublisher:
    """
    Publishes domain events for the notification dispatcher.

    Rows are written in the caller's open transaction; nothing is visible
    to the dispatcher until the state change itself commits.
    """

    def __init__(self, outbox_repository: EventOutboxRepository):
        self.outbox_repo = outbox_repository

    def publish(self, event: Event, idempotency_key: Optional[str] = None) -> EventOutbox:
        event_type = type(event).__name__
        payload = event.to_dict()

        # Convert datetime objects to ISO strings for JSON serialization
        for key, value in payload.items():
            if isinstance(value, datetime):
                payload[key] = value.isoformat()

        return self.outbox_repo.enqueue(
            event_type=event_type,
            aggregate_id=event.reservation_id,
            payload=payload,
            idempotency_key=idempotency_key or f"{event_type}:{event.reservation_id}",
        )
