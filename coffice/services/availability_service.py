"""
Availability index.

Answers whether a resource is free for ``[start, end)``. Pending, confirmed
and in-progress reservations are obstacles; back-to-back bookings are fine.
Every check here is a pure read and therefore advisory: ReservationService
repeats it under the per-resource lock before writing.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session

from coffice.core.exceptions import NotFoundException, ValidationException
from coffice.domain.intervals import ensure_aware, intervals_overlap as _overlap
from coffice.repositories.factory import RepositoryFactory

from .base import BaseService

BusyInterval = Tuple[datetime, datetime, str]


@dataclass(frozen=True)
class AvailabilityResult:
    available: bool
    conflicting_reservation_id: Optional[str] = None
    reason: Optional[str] = None


def validate_interval(start: datetime, end: datetime) -> Tuple[datetime, datetime]:
    """Normalise to UTC and require ``start < end``."""
    try:
        start = ensure_aware(start, "start")
        end = ensure_aware(end, "end")
    except ValueError as exc:
        raise ValidationException(str(exc), code="NAIVE_DATETIME") from exc
    if start >= end:
        raise ValidationException(
            "Reservation start must be before its end",
            code="INVALID_INTERVAL",
            details={"start": start.isoformat(), "end": end.isoformat()},
        )
    return start, end


class AvailabilityService(BaseService):
    def __init__(self, db: Session, clock: Optional[Callable[[], datetime]] = None):
        super().__init__(db)
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.resource_repository = RepositoryFactory.create_resource_repository(db)
        self.reservation_repository = RepositoryFactory.create_reservation_repository(db)

    @staticmethod
    def intervals_overlap(
        a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
    ) -> bool:
        return _overlap(a_start, a_end, b_start, b_end)

    @BaseService.measure_operation("availability.check")
    def check_availability(
        self,
        resource_id: str,
        start: datetime,
        end: datetime,
        exclude_reservation_id: Optional[str] = None,
        *,
        allow_past: bool = False,
    ) -> AvailabilityResult:
        """
        Check ``[start, end)`` on ``resource_id``.

        ``allow_past`` skips the start-in-the-past check; confirmation uses it
        when re-checking an already accepted request.
        """
        start, end = validate_interval(start, end)
        if not allow_past and start < self.clock():
            raise ValidationException(
                "Reservation cannot start in the past",
                code="START_IN_PAST",
                details={"start": start.isoformat()},
            )

        resource = self.resource_repository.get_by_id(resource_id)
        if resource is None:
            raise NotFoundException(
                "Resource not found",
                code="RESOURCE_NOT_FOUND",
                details={"resource_id": resource_id},
            )
        if not resource.is_bookable:
            return AvailabilityResult(available=False, reason="resource_unavailable")

        conflicts = self.reservation_repository.find_conflicts(
            resource_id, start, end, exclude_reservation_id=exclude_reservation_id
        )
        if conflicts:
            return AvailabilityResult(
                available=False,
                conflicting_reservation_id=conflicts[0].id,
                reason="overlap",
            )
        return AvailabilityResult(available=True)

    def list_busy_intervals(
        self, resource_id: str, window_start: datetime, window_end: datetime
    ) -> List[BusyInterval]:
        window_start, window_end = validate_interval(window_start, window_end)
        if not self.resource_repository.exists(id=resource_id):
            raise NotFoundException(
                "Resource not found",
                code="RESOURCE_NOT_FOUND",
                details={"resource_id": resource_id},
            )
        return self.reservation_repository.get_busy_intervals(resource_id, window_start, window_end)
