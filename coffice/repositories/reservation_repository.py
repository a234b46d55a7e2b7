# coffice/repositories/reservation_repository.py
"""
Reservation Repository for Coffice

Conflict queries for the availability index and the compare-and-set status
update every lifecycle transition goes through.

Overlap uses half-open intervals: ``[s, e)`` and ``[start, end)`` overlap
iff ``s < end AND start < e``, so back-to-back reservations never collide.
"""

from datetime import datetime
import logging
from typing import Any, List, Optional, Sequence, Tuple, cast

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.reservation import LIVE_STATUSES, Reservation
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ReservationRepository(BaseRepository[Reservation]):
    def __init__(self, db: Session):
        super().__init__(db, Reservation)
        self.logger = logging.getLogger(__name__)

    # Conflict queries

    def find_conflicts(
        self,
        resource_id: str,
        start: datetime,
        end: datetime,
        exclude_reservation_id: Optional[str] = None,
    ) -> List[Reservation]:
        """
        Live reservations on the resource overlapping ``[start, end)``.

        Ordered by start time so the first row is the earliest blocker.
        """
        try:
            query = self.db.query(Reservation).filter(
                Reservation.resource_id == resource_id,
                Reservation.status.in_(LIVE_STATUSES),
                Reservation.start_at < end,
                Reservation.end_at > start,
            )
            if exclude_reservation_id:
                query = query.filter(Reservation.id != exclude_reservation_id)
            return cast(
                List[Reservation],
                query.order_by(Reservation.start_at.asc(), Reservation.id.asc()).all(),
            )
        except SQLAlchemyError as exc:
            self.logger.error("Conflict query failed for resource %s: %s", resource_id, exc)
            raise RepositoryException("Failed to check reservation conflicts") from exc

    def get_busy_intervals(
        self, resource_id: str, window_start: datetime, window_end: datetime
    ) -> List[Tuple[datetime, datetime, str]]:
        try:
            rows = (
                self.db.query(Reservation.start_at, Reservation.end_at, Reservation.id)
                .filter(
                    Reservation.resource_id == resource_id,
                    Reservation.status.in_(LIVE_STATUSES),
                    Reservation.start_at < window_end,
                    Reservation.end_at > window_start,
                )
                .order_by(Reservation.start_at.asc(), Reservation.id.asc())
                .all()
            )
            return [(row[0], row[1], row[2]) for row in rows]
        except SQLAlchemyError as exc:
            self.logger.error("Busy interval query failed for resource %s: %s", resource_id, exc)
            raise RepositoryException("Failed to load busy intervals") from exc

    # Listings

    def list_for_user(self, user_id: str, statuses: Optional[Sequence[str]] = None) -> List[Reservation]:
        try:
            query = self.db.query(Reservation).filter(Reservation.user_id == user_id)
            if statuses:
                query = query.filter(Reservation.status.in_(list(statuses)))
            return cast(
                List[Reservation],
                query.order_by(Reservation.start_at.desc(), Reservation.id.desc()).all(),
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to list reservations for user %s: %s", user_id, exc)
            raise RepositoryException("Failed to list reservations") from exc

    def list_for_resource(
        self,
        resource_id: str,
        window_start: Optional[datetime] = None,
        window_end: Optional[datetime] = None,
    ) -> List[Reservation]:
        try:
            query = self.db.query(Reservation).filter(Reservation.resource_id == resource_id)
            if window_end is not None:
                query = query.filter(Reservation.start_at < window_end)
            if window_start is not None:
                query = query.filter(Reservation.end_at > window_start)
            return cast(
                List[Reservation],
                query.order_by(Reservation.start_at.asc(), Reservation.id.asc()).all(),
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to list reservations for resource %s: %s", resource_id, exc)
            raise RepositoryException("Failed to list reservations") from exc

    def find_ids_due(self, status: str, boundary: str, now: datetime, limit: int = 500) -> List[str]:
        """Ids in ``status`` whose ``boundary`` column (start_at/end_at) is at or before ``now``."""
        column = getattr(Reservation, boundary)
        try:
            rows = (
                self.db.query(Reservation.id)
                .filter(Reservation.status == status, column <= now)
                .order_by(column.asc(), Reservation.id.asc())
                .limit(limit)
                .all()
            )
            return [row[0] for row in rows]
        except SQLAlchemyError as exc:
            self.logger.error("Failed to find %s reservations due at %s: %s", status, now, exc)
            raise RepositoryException("Failed to find due reservations") from exc

    # Compare-and-set

    def transition_status(
        self,
        reservation_id: str,
        expected_status: str,
        new_status: str,
        **values: Any,
    ) -> bool:
        """
        Move ``reservation_id`` from ``expected_status`` to ``new_status``.

        Single conditional UPDATE; returns False when the row was not in the
        expected status (someone else transitioned it first). Extra column
        values are written in the same statement.
        """
        try:
            result = self.db.execute(
                update(Reservation)
                .where(Reservation.id == reservation_id, Reservation.status == expected_status)
                .values(status=new_status, **values)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as exc:
            self.logger.error(
                "Status CAS failed for reservation %s (%s -> %s): %s",
                reservation_id,
                expected_status,
                new_status,
                exc,
            )
            raise RepositoryException("Failed to update reservation status") from exc

        if result.rowcount != 1:
            return False

        entity = self.db.get(Reservation, reservation_id)
        if entity is not None:
            self.db.refresh(entity)
        return True
