"""Tests for the event outbox."""

from sqlalchemy.orm import Session

from coffice.core.ulid_helper import generate_ulid
from coffice.models import EventOutbox
from coffice.repositories.event_outbox_repository import EventOutboxRepository


def test_enqueue_is_idempotent_per_key(db: Session):
    repo = EventOutboxRepository(db)
    reservation_id = generate_ulid()

    first = repo.enqueue("ReservationCreated", reservation_id, {"final_price": 3000})
    again = repo.enqueue("ReservationCreated", reservation_id, {"final_price": 1})
    db.commit()

    assert again.id == first.id
    assert again.payload == {"final_price": 3000}
    assert db.query(EventOutbox).count() == 1


def test_distinct_events_for_one_aggregate(db: Session):
    repo = EventOutboxRepository(db)
    reservation_id = generate_ulid()

    repo.enqueue("ReservationCreated", reservation_id)
    repo.enqueue("ReservationCancelled", reservation_id)
    repo.enqueue("ReservationCreated", generate_ulid())
    db.commit()

    events = repo.list_for_aggregate(reservation_id)
    assert sorted(e.event_type for e in events) == ["ReservationCancelled", "ReservationCreated"]
    assert all(e.status == "PENDING" for e in events)
