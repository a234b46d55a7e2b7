# tests/conftest.py
"""
Pytest configuration.

Every test gets its own SQLite database file so threads in concurrency tests
can open independent connections against shared state. The wall clock is
pinned through an injectable clock; nothing reads the real time.
"""

import os

# Set testing mode BEFORE any coffice imports
os.environ["is_testing"] = "true"
os.environ["lock_backend"] = "local"
os.environ.setdefault("test_database_url", "sqlite:///./coffice_import_only.db")

from datetime import datetime, timedelta
from typing import Any, Callable, Iterator, Optional

from fastapi import Depends
import pytest
from sqlalchemy.orm import Session, sessionmaker

from coffice.core.config import settings
from coffice.database import Base, build_engine
from coffice.models import (
    PromoCode,
    ReferralCredit,
    Reservation,
    Resource,
    SubscriptionEnrollment,
    SubscriptionPlan,
    User,
)

from clock_helpers import NOW, FrozenClock

settings.is_testing = True


# ============================================================================
# Database
# ============================================================================


@pytest.fixture
def engine(tmp_path):
    test_engine = build_engine(f"sqlite:///{tmp_path / 'coffice.db'}")
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


# ============================================================================
# Factories
# ============================================================================


@pytest.fixture
def make_user(db: Session) -> Callable[..., User]:
    counter = {"n": 0}

    def _make(is_admin: bool = False, **overrides: Any) -> User:
        counter["n"] += 1
        user = User(
            email=overrides.pop("email", f"member{counter['n']}@coffice.test"),
            full_name=overrides.pop("full_name", f"Member {counter['n']}"),
            is_admin=is_admin,
            **overrides,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def make_resource(db: Session) -> Callable[..., Resource]:
    def _make(**overrides: Any) -> Resource:
        values: dict[str, Any] = {
            "name": "Open desk A",
            "resource_type": "open_desk",
            "capacity": 4,
            "hourly_rate": 500,
            "daily_rate": 3000,
            "weekly_rate": None,
            "monthly_rate": None,
        }
        values.update(overrides)
        resource = Resource(**values)
        db.add(resource)
        db.commit()
        return resource

    return _make


@pytest.fixture
def make_promo(db: Session) -> Callable[..., PromoCode]:
    def _make(code: str = "SAVE20", **overrides: Any) -> PromoCode:
        values: dict[str, Any] = {
            "code": code,
            "discount_type": "percentage",
            "discount_value": 20,
            "valid_from": NOW - timedelta(days=30),
            "valid_until": NOW + timedelta(days=30),
            "min_order_amount": 1000,
            "max_uses": 1,
            "uses_so_far": 0,
            "applicable_to": "reservation",
        }
        values.update(overrides)
        promo = PromoCode(**values)
        db.add(promo)
        db.commit()
        return promo

    return _make


@pytest.fixture
def make_enrollment(db: Session) -> Callable[..., SubscriptionEnrollment]:
    def _make(user: User, hours: int, **overrides: Any) -> SubscriptionEnrollment:
        plan = SubscriptionPlan(name="Flex 20", price=9000, duration_months=1, included_hours=20)
        db.add(plan)
        db.flush()
        values: dict[str, Any] = {
            "user_id": user.id,
            "plan_id": plan.id,
            "start_date": NOW - timedelta(days=5),
            "end_date": NOW + timedelta(days=25),
            "hours_remaining": hours,
            "status": "active",
        }
        values.update(overrides)
        enrollment = SubscriptionEnrollment(**values)
        db.add(enrollment)
        db.commit()
        return enrollment

    return _make


@pytest.fixture
def make_credit(db: Session) -> Callable[..., ReferralCredit]:
    def _make(user: User, amount: int, created_at: Optional[datetime] = None) -> ReferralCredit:
        credit = ReferralCredit(
            user_id=user.id,
            amount=amount,
            amount_remaining=amount,
            status="available",
            reason="referral_bonus",
            created_at=created_at or NOW - timedelta(days=1),
        )
        db.add(credit)
        db.commit()
        return credit

    return _make


@pytest.fixture
def make_reservation(db: Session) -> Callable[..., Reservation]:
    """Insert a reservation row directly, bypassing the booking flow."""

    def _make(resource: Resource, user: User, start: datetime, end: datetime, **overrides: Any) -> Reservation:
        values: dict[str, Any] = {
            "resource_id": resource.id,
            "user_id": user.id,
            "start_at": start,
            "end_at": end,
            "participant_count": 1,
            "status": "pending",
            "base_price": 3000,
            "final_price": 3000,
        }
        values.update(overrides)
        reservation = Reservation(**values)
        db.add(reservation)
        db.commit()
        return reservation

    return _make


# ============================================================================
# API
# ============================================================================


@pytest.fixture
def client(session_factory: sessionmaker, clock: FrozenClock) -> Iterator[Any]:
    """TestClient whose requests use the per-test database and frozen clock."""
    from fastapi.testclient import TestClient

    from coffice.api.dependencies import get_db, get_reservation_service
    from coffice.main import app
    from coffice.services.reservation_service import ReservationService

    def _get_db() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _get_reservation_service(db: Session = Depends(get_db)) -> ReservationService:
        return ReservationService(db, clock=clock)

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_reservation_service] = _get_reservation_service
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
