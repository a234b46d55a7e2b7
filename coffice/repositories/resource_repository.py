# coffice/repositories/resource_repository.py
"""
Resource Repository for Coffice

Data access for the resource registry, including the row lock taken while a
reservation for the resource is being written.
"""

import logging
from typing import List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.reservation import LIVE_STATUSES, Reservation
from ..models.resource import Resource
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ResourceRepository(BaseRepository[Resource]):
    def __init__(self, db: Session):
        super().__init__(db, Resource)
        self.logger = logging.getLogger(__name__)

    def lock_for_booking(self, resource_id: str) -> Optional[Resource]:
        """Load the resource with ``FOR UPDATE`` on PostgreSQL."""
        return self.get_by_id(resource_id, for_update=True)

    def list_resources(
        self,
        *,
        resource_type: Optional[str] = None,
        include_inactive: bool = False,
        only_available: bool = False,
    ) -> List[Resource]:
        try:
            query = self.db.query(Resource)
            if not include_inactive:
                query = query.filter(Resource.is_active.is_(True))
            if only_available:
                query = query.filter(Resource.available.is_(True))
            if resource_type:
                query = query.filter(Resource.resource_type == resource_type)
            return cast(List[Resource], query.order_by(Resource.name.asc(), Resource.id.asc()).all())
        except SQLAlchemyError as exc:
            self.logger.error("Failed to list resources: %s", str(exc))
            raise RepositoryException("Failed to list resources") from exc

    def has_live_reservations(self, resource_id: str) -> bool:
        """True when a pending, confirmed or in-progress reservation references the resource."""
        try:
            return (
                self.db.query(Reservation.id)
                .filter(
                    Reservation.resource_id == resource_id,
                    Reservation.status.in_(LIVE_STATUSES),
                )
                .first()
                is not None
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to check live reservations for %s: %s", resource_id, exc)
            raise RepositoryException("Failed to check live reservations") from exc
