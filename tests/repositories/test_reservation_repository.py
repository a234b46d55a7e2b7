"""Tests for reservation queries and the status compare-and-set."""

from sqlalchemy.orm import Session, sessionmaker

from coffice.repositories.reservation_repository import ReservationRepository

from clock_helpers import NOW, local


def test_transition_status_only_from_expected_status(db: Session, make_user, make_resource, make_reservation):
    reservation = make_reservation(make_resource(), make_user(), local(2026, 10, 20, 9), local(2026, 10, 20, 12))
    repo = ReservationRepository(db)

    assert repo.transition_status(reservation.id, "pending", "confirmed", confirmed_at=NOW) is True
    db.commit()

    assert reservation.status == "confirmed"
    assert reservation.confirmed_at == NOW

    assert repo.transition_status(reservation.id, "pending", "cancelled") is False
    db.commit()
    db.refresh(reservation)
    assert reservation.status == "confirmed"


def test_second_session_loses_the_race(db: Session, session_factory: sessionmaker, make_user, make_resource, make_reservation):
    reservation = make_reservation(make_resource(), make_user(), local(2026, 10, 20, 9), local(2026, 10, 20, 12))

    first, second = session_factory(), session_factory()
    try:
        assert ReservationRepository(first).transition_status(reservation.id, "pending", "cancelled")
        first.commit()
        assert not ReservationRepository(second).transition_status(reservation.id, "pending", "confirmed")
        second.commit()
    finally:
        first.close()
        second.close()

    db.refresh(reservation)
    assert reservation.status == "cancelled"


def test_find_conflicts_ignores_closed_and_touching_rows(db: Session, make_user, make_resource, make_reservation):
    desk, member = make_resource(), make_user()
    blocker = make_reservation(desk, member, local(2026, 10, 20, 10), local(2026, 10, 20, 12), status="confirmed")
    make_reservation(desk, member, local(2026, 10, 20, 12), local(2026, 10, 20, 14))
    make_reservation(desk, member, local(2026, 10, 20, 9), local(2026, 10, 20, 11), status="cancelled")
    make_reservation(make_resource(name="Other"), member, local(2026, 10, 20, 9), local(2026, 10, 20, 17))

    conflicts = ReservationRepository(db).find_conflicts(desk.id, local(2026, 10, 20, 9), local(2026, 10, 20, 12))

    assert [r.id for r in conflicts] == [blocker.id]


def test_find_ids_due(db: Session, make_user, make_resource, make_reservation):
    desk, member = make_resource(), make_user()
    due = make_reservation(desk, member, local(2026, 10, 19, 8), local(2026, 10, 19, 9), status="confirmed")
    make_reservation(desk, member, local(2026, 10, 19, 10), local(2026, 10, 19, 11), status="confirmed")

    assert ReservationRepository(db).find_ids_due("confirmed", "start_at", NOW) == [due.id]
