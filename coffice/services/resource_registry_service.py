"""Admin-managed registry of bookable resources."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from coffice.core.exceptions import ConflictException, NotFoundException, ValidationException
from coffice.models.resource import Resource, ResourceType
from coffice.repositories.factory import RepositoryFactory

from .base import BaseService

_RATE_FIELDS = ("hourly_rate", "daily_rate", "weekly_rate", "monthly_rate")
_MUTABLE_FIELDS = frozenset(
    {"name", "resource_type", "capacity", "description", "available", *_RATE_FIELDS}
)


class ResourceRegistryService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.repository = RepositoryFactory.create_resource_repository(db)

    def get_resource(self, resource_id: str) -> Resource:
        resource = self.repository.get_by_id(resource_id)
        if resource is None:
            raise NotFoundException(
                "Resource not found",
                code="RESOURCE_NOT_FOUND",
                details={"resource_id": resource_id},
            )
        return resource

    def list_resources(
        self, resource_type: Optional[str] = None, include_inactive: bool = False
    ) -> List[Resource]:
        return self.repository.list_resources(
            resource_type=resource_type, include_inactive=include_inactive
        )

    @BaseService.measure_operation("resource.create")
    def create_resource(self, **data: Any) -> Resource:
        self._validate(data)
        with self.transaction():
            resource = self.repository.create(**data)
        self.log_operation("resource_created", resource_id=resource.id, resource_name=resource.name)
        return resource

    @BaseService.measure_operation("resource.update")
    def update_resource(self, resource_id: str, **changes: Any) -> Resource:
        unknown = set(changes) - _MUTABLE_FIELDS
        if unknown:
            raise ValidationException(
                "Unknown resource fields",
                code="UNKNOWN_FIELDS",
                details={"fields": sorted(unknown)},
            )
        self._validate(changes)
        with self.transaction():
            resource = self.get_resource(resource_id)
            for key, value in changes.items():
                setattr(resource, key, value)
            self.db.flush()
        self.log_operation("resource_updated", resource_id=resource_id, fields=sorted(changes))
        return resource

    @BaseService.measure_operation("resource.deactivate")
    def deactivate_resource(self, resource_id: str) -> Resource:
        """
        Retire a resource. Refused while live reservations reference it;
        rows are never physically deleted.
        """
        with self.transaction():
            resource = self.get_resource(resource_id)
            if self.repository.has_live_reservations(resource_id):
                raise ConflictException(
                    "Resource still has live reservations; set it unavailable instead",
                    code="RESOURCE_IN_USE",
                    details={"resource_id": resource_id},
                )
            resource.is_active = False
            resource.available = False
            self.db.flush()
        self.log_operation("resource_deactivated", resource_id=resource_id)
        return resource

    @staticmethod
    def _validate(data: Dict[str, Any]) -> None:
        if "resource_type" in data and data["resource_type"] not in {t.value for t in ResourceType}:
            raise ValidationException(
                "Unknown resource type",
                code="INVALID_RESOURCE_TYPE",
                details={"resource_type": data["resource_type"]},
            )
        if "capacity" in data and (data["capacity"] is None or data["capacity"] < 1):
            raise ValidationException("Capacity must be at least 1", code="INVALID_CAPACITY")
        for rate in _RATE_FIELDS:
            value = data.get(rate)
            if value is not None and value < 0:
                raise ValidationException(
                    f"{rate} must be non-negative", code="INVALID_RATE", details={"field": rate}
                )
        if "hourly_rate" in data and data["hourly_rate"] is None:
            raise ValidationException("hourly_rate is required", code="INVALID_RATE")
